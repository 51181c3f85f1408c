import os
import math
import logging

from typing import Any, Dict, List, Optional, Sequence

from pyteomics import mzml

from mzpsm.exceptions import FileAccessError
from mzpsm.spectrum import (
    MzSpectrum, MassRange, Polarity, MZAnalyzerType, DissociationType)

from .base import SpectralFileBase
from .translation import TranslationTable

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def _first(container: Optional[Dict[str, Any]], list_key: str, item_key: str) -> Dict[str, Any]:
    if not container:
        return {}
    items = container.get(list_key, {}).get(item_key, [])
    if not items:
        return {}
    return items[0]


def _to_minutes(value) -> float:
    unit = getattr(value, 'unit_info', None)
    value = float(value)
    if unit in ("second", "s"):
        value /= 60.0
    return value


class MzMLFile(SpectralFileBase):
    """Read an mzML file through :mod:`pyteomics.mzml`.

    Spectrum numbers are the 1-based positions of the spectra in the
    ``spectrumList``, not the native scan identifiers.
    """

    file_format = ".mzml"
    format_name = "mzml"

    polarity_table = TranslationTable({
        "positive scan": Polarity.positive,
        "negative scan": Polarity.negative,
    }, Polarity.neutral)

    analyzer_table = TranslationTable({
        "quadrupole": MZAnalyzerType.quadrupole,
        "radial ejection linear ion trap": MZAnalyzerType.ion_trap_2d,
        "axial ejection linear ion trap": MZAnalyzerType.ion_trap_2d,
        "quadrupole ion trap": MZAnalyzerType.ion_trap_3d,
        "ion trap": MZAnalyzerType.ion_trap_3d,
        "orbitrap": MZAnalyzerType.orbitrap,
        "time-of-flight": MZAnalyzerType.tof,
        "fourier transform ion cyclotron resonance mass spectrometer": MZAnalyzerType.fticr,
        "magnetic sector": MZAnalyzerType.sector,
        "electric field sector": MZAnalyzerType.sector,
    }, MZAnalyzerType.unknown)

    dissociation_table = TranslationTable({
        "collision-induced dissociation": DissociationType.cid,
        "beam-type collision-induced dissociation": DissociationType.hcd,
        "higher energy beam-type collision-induced dissociation": DissociationType.hcd,
        "electron transfer dissociation": DissociationType.etd,
        "electron capture dissociation": DissociationType.ecd,
        "pulsed q dissociation": DissociationType.pqd,
        "photodissociation": DissociationType.mpd,
        "infrared multiphoton dissociation": DissociationType.mpd,
        "electron transfer/higher-energy collision dissociation": DissociationType.ethcd,
    }, DissociationType.unknown)

    _reader: Optional[mzml.MzML]
    _analyzer: MZAnalyzerType
    _cache: Dict[int, Dict[str, Any]]

    def __init__(self, filename):
        super().__init__(filename)
        self._reader = None
        self._analyzer = MZAnalyzerType.unknown
        self._cache = {}

    def _open(self):
        if not os.path.isfile(self.filename):
            raise FileAccessError(self.filename, f"mzML file {self.filename!r} does not exist")
        try:
            self._reader = mzml.MzML(self.filename, use_index=True, decode_binary=True)
            self._analyzer = self._read_analyzer()
        except Exception as err:
            self._reader = None
            raise FileAccessError(self.filename, f"Could not read mzML file {self.filename!r}: {err}") from err

    def _close(self):
        if self._reader is not None:
            self._reader.close()
            self._reader = None
        self._cache.clear()

    def _read_analyzer(self) -> MZAnalyzerType:
        analyzer = MZAnalyzerType.unknown
        for component in self._reader.iterfind("analyzer"):
            for key in component:
                translated = self.analyzer_table.translate(key)
                if translated is not MZAnalyzerType.unknown:
                    analyzer = translated
        self._reader.reset()
        return analyzer

    def _spectrum(self, spectrum_number: int) -> Dict[str, Any]:
        try:
            return self._cache[spectrum_number]
        except KeyError:
            pass
        spectrum = self._reader.get_by_index(spectrum_number - 1)
        self._cache = {spectrum_number: spectrum}
        return spectrum

    def _scan(self, spectrum_number: int) -> Dict[str, Any]:
        return _first(self._spectrum(spectrum_number), "scanList", "scan")

    def _precursor(self, spectrum_number: int) -> Dict[str, Any]:
        return _first(self._spectrum(spectrum_number), "precursorList", "precursor")

    def _selected_ion(self, spectrum_number: int) -> Dict[str, Any]:
        return _first(self._precursor(spectrum_number), "selectedIonList", "selectedIon")

    def _get_last_spectrum_number(self) -> int:
        return len(self._reader)

    def _get_retention_time(self, spectrum_number: int) -> float:
        scan = self._scan(spectrum_number)
        if "scan start time" not in scan:
            return math.nan
        return _to_minutes(scan["scan start time"])

    def _get_msn_order(self, spectrum_number: int) -> int:
        return int(self._spectrum(spectrum_number).get("ms level", 1))

    def _get_polarity(self, spectrum_number: int) -> Polarity:
        spectrum = self._spectrum(spectrum_number)
        for key in self.polarity_table:
            if key in spectrum:
                return self.polarity_table.translate(key)
        return self.polarity_table.default

    def _get_mz_spectrum(self, spectrum_number: int) -> MzSpectrum:
        spectrum = self._spectrum(spectrum_number)
        return MzSpectrum(spectrum.get("m/z array", []), spectrum.get("intensity array", []))

    def _get_mz_analyzer(self, spectrum_number: int) -> MZAnalyzerType:
        return self._analyzer

    def _get_precursor_mz(self, spectrum_number: int, msn_order: int) -> float:
        selected_ion = self._selected_ion(spectrum_number)
        if "selected ion m/z" in selected_ion:
            return float(selected_ion["selected ion m/z"])
        isolation_window = self._precursor(spectrum_number).get("isolationWindow", {})
        return float(isolation_window.get("isolation window target m/z", math.nan))

    def _get_precursor_charge(self, spectrum_number: int, msn_order: int) -> int:
        return int(self._selected_ion(spectrum_number).get("charge state", 0))

    def _get_isolation_width(self, spectrum_number: int, msn_order: int) -> float:
        isolation_window = self._precursor(spectrum_number).get("isolationWindow", {})
        lower = isolation_window.get("isolation window lower offset")
        upper = isolation_window.get("isolation window upper offset")
        if lower is None or upper is None:
            return math.nan
        return float(lower) + float(upper)

    def _get_dissociation_type(self, spectrum_number: int, msn_order: int) -> DissociationType:
        activation = self._precursor(spectrum_number).get("activation", {})
        types: List[DissociationType] = [
            self.dissociation_table.translate(key) for key in activation]
        types = [t for t in types if t is not DissociationType.unknown]
        if DissociationType.etd in types and DissociationType.hcd in types:
            return DissociationType.ethcd
        if types:
            return types[0]
        return self.dissociation_table.default

    def _get_mz_range(self, spectrum_number: int) -> MassRange:
        window = _first(self._scan(spectrum_number), "scanWindowList", "scanWindow")
        if "scan window lower limit" in window and "scan window upper limit" in window:
            return MassRange(window["scan window lower limit"], window["scan window upper limit"])
        spectrum = self._spectrum(spectrum_number)
        return MassRange(spectrum.get("lowest observed m/z", math.nan),
                         spectrum.get("highest observed m/z", math.nan))

    def _get_injection_time(self, spectrum_number: int) -> float:
        return float(self._scan(spectrum_number).get("ion injection time", math.nan))

    def _get_resolution(self, spectrum_number: int) -> float:
        return math.nan

    def _get_tic_times(self) -> Sequence[float]:
        return [self._get_retention_time(i) for i in range(1, len(self._reader) + 1)]
