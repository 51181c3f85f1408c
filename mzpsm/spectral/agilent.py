"""Agilent MassHunter ``.d`` directories.

All data access is delegated to Agilent's MassHunter Data Access SDK
(``MassSpecDataReader``), which is loaded at runtime through ``pythonnet``.
Nothing here reads the vendor's binary layout directly.
"""
import os
import re
import math
import logging
import importlib

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from lxml import etree

from mzpsm.exceptions import FileAccessError
from mzpsm.spectrum import (
    MzSpectrum, MassRange, Polarity, MZAnalyzerType, DissociationType)

from .base import SpectralFileBase
from .translation import TranslationTable

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


SDK_ASSEMBLIES = ("MassSpecDataReader", "BaseCommon", "BaseDataAccess")
SDK_NAMESPACE = "Agilent.MassSpectrometry.DataAnalysis"

ACQUISITION_METHOD_PATH = os.path.join("AcqData", "AcqMethod.xml")

NUMBER_OF_TRANSIENTS = "Number of Transients"
LENGTH_OF_TRANSIENTS = "Length of Transients"

ISOLATION_WIDTH_ID = "TargetIsolationWidth"

# Matches a value such as "Narrow (~1.3 amu)"
AMU_VALUE_PATTERN = re.compile(r"\(~\s*([0-9]*\.?[0-9]+)\s*amu\)")

# The capture group repeats a single character, so only the final character of
# the amu value is captured. Kept unchanged until checked against real method files.
LEGACY_ISOLATION_WIDTH_PATTERN = re.compile(
    r"\s*(?:&lt;|<)ID(?:&gt;|>)TargetIsolationWidth(?:&lt;|<)/ID(?:&gt;|>)\s*"
    r"(?:&lt;|<)Value(?:&gt;|>).*\(~([0-9.])+ amu\)(?:&lt;|<)/Value(?:&gt;|>)")

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")


def _load_mass_spec_data_reader():
    """Instantiate the SDK's ``MassSpecDataReader`` through ``pythonnet``."""
    try:
        clr = importlib.import_module("clr")
    except ImportError as err:
        raise FileAccessError(
            None, "Reading Agilent .d directories requires pythonnet and the MassHunter Data Access SDK") from err
    for assembly in SDK_ASSEMBLIES:
        clr.AddReference(assembly)
    namespace = importlib.import_module(SDK_NAMESPACE)
    return namespace.MassSpecDataReader()


class MassHunterSession(object):
    """Adapts the SDK's ``IMsdrDataReader`` interface to plain Python values.

    Scan rows are addressed with 0-based indices here, as the SDK does.
    """

    def __init__(self, reader):
        self.reader = reader

    def open(self, path: str):
        opened = self.reader.OpenDataFile(path)
        if opened is False:
            raise FileAccessError(path, f"MassHunter could not open {path!r}")

    def close(self):
        self.reader.CloseDataFile()

    @property
    def scan_count(self) -> int:
        return int(self.reader.MSScanFileInformation.TotalScansPresent)

    @property
    def data_file_name(self) -> str:
        return str(self.reader.FileInformation.DataFileName)

    def scan_record(self, index: int):
        return self.reader.GetScanRecord(index)

    def spectrum(self, index: int):
        return self.reader.GetSpectrum(index)

    def precursor_charge(self, spectrum) -> int:
        # pythonnet returns out parameters, preceded by the return value if any
        result = spectrum.GetPrecursorCharge(0)
        if isinstance(result, tuple):
            result = result[-1]
        return int(result)

    def actuals(self, retention_time: float) -> List[Tuple[str, str]]:
        collection = self.reader.ActualsInformation.GetActualCollection(retention_time)
        return [(str(actual.DisplayName), str(actual.DisplayValue)) for actual in collection]

    def tic_times(self) -> List[float]:
        tic = self.reader.GetTIC()
        return [float(x) for x in tic.XArray]


def _local_name(tag) -> Optional[str]:
    if not isinstance(tag, str):
        return None
    return etree.QName(tag).localname


def _embedded_documents(root: etree._Element):
    """Yield ``root`` and every XML document serialized as escaped text beneath it."""
    yield root
    for element in root.iter():
        text = element.text
        if not text or ISOLATION_WIDTH_ID not in text or "<" not in text:
            continue
        text = _XML_DECLARATION.sub("", text.strip())
        try:
            inner = etree.fromstring(f"<fragment>{text}</fragment>".encode("utf8"))
        except etree.XMLSyntaxError:
            continue
        yield from _embedded_documents(inner)


def find_isolation_width(root: etree._Element) -> Optional[float]:
    """
    Locate the ``TargetIsolationWidth`` parameter in a parsed acquisition method.

    Parameters
    ----------
    root : lxml.etree._Element
        The root of the acquisition method document.

    Returns
    -------
    float or None:
        The isolation width in amu, or :const:`None` if the document does not
        have that structure.
    """
    for document in _embedded_documents(root):
        for element in document.iter():
            if _local_name(element.tag) != "ID" or (element.text or '').strip() != ISOLATION_WIDTH_ID:
                continue
            sibling = element.getnext()
            while sibling is not None and _local_name(sibling.tag) != "Value":
                sibling = sibling.getnext()
            if sibling is None:
                continue
            match = AMU_VALUE_PATTERN.search(sibling.text or '')
            if match:
                return float(match.group(1))
    return None


def parse_isolation_width(document: bytes) -> float:
    """Read the isolation width from the raw bytes of an acquisition method,
    returning NaN when it cannot be found.
    """
    try:
        root = etree.fromstring(document, parser=etree.XMLParser(huge_tree=True))
    except etree.XMLSyntaxError as err:
        logger.debug("Acquisition method is not well formed XML: %s", err)
    else:
        value = find_isolation_width(root)
        if value is not None:
            return value
    match = LEGACY_ISOLATION_WIDTH_PATTERN.search(document.decode("utf8", errors="replace"))
    if match is None:
        return math.nan
    logger.warning("Isolation width extracted by pattern matching, the value %r may be truncated",
                   match.group(1))
    try:
        return float(match.group(1))
    except ValueError:
        return math.nan


class AgilentDDirectory(SpectralFileBase):
    """Read an Agilent MassHunter ``.d`` directory through the vendor SDK.

    Parameters
    ----------
    filename : str
        The path to the ``.d`` directory.
    reader_factory : Callable, optional
        Produces the SDK data reader object. Defaults to loading
        ``MassSpecDataReader`` with ``pythonnet``.
    """

    file_format = ".d"
    format_name = "agilent"

    polarity_table = TranslationTable({
        "Positive": Polarity.positive,
        "Negative": Polarity.negative,
    }, Polarity.neutral)

    analyzer_table = TranslationTable({
        "IonTrap": MZAnalyzerType.ion_trap_3d,
        "Quadrupole": MZAnalyzerType.quadrupole,
        "TandemQuadrupole": MZAnalyzerType.quadrupole,
        "QuadrupoleTimeOfFlight": MZAnalyzerType.tof,
        "TimeOfFlight": MZAnalyzerType.tof,
    }, MZAnalyzerType.unknown)

    ms_level_table = TranslationTable({
        "MSMS": 2,
    }, 1)

    _session: Optional[MassHunterSession]
    _isolation_width: Optional[float]

    def __init__(self, filename, reader_factory: Optional[Callable[[], Any]]=None):
        super().__init__(filename)
        if reader_factory is None:
            reader_factory = _load_mass_spec_data_reader
        self.reader_factory = reader_factory
        self._session = None
        self._isolation_width = None

    def _open(self):
        if not os.path.isdir(self.filename):
            raise FileAccessError(self.filename, f"{self.filename!r} is not a .d directory")
        try:
            session = MassHunterSession(self.reader_factory())
            session.open(self.filename)
        except FileAccessError as err:
            if err.path is None:
                err.path = self.filename
            raise
        except Exception as err:
            raise FileAccessError(self.filename, f"MassHunter could not open {self.filename!r}: {err}") from err
        self._session = session
        logger.debug("Injection times of %s may be off by a factor of two if it was acquired "
                     "in extended dynamic range mode", self.name)

    def _close(self):
        if self._session is not None:
            self._session.close()
            self._session = None
        self._isolation_width = None

    def _get_last_spectrum_number(self) -> int:
        return self._session.scan_count

    def _scan_record(self, spectrum_number: int):
        return self._session.scan_record(spectrum_number - 1)

    def _spectrum(self, spectrum_number: int):
        return self._session.spectrum(spectrum_number - 1)

    def _get_retention_time(self, spectrum_number: int) -> float:
        return float(self._scan_record(spectrum_number).RetentionTime)

    def _get_msn_order(self, spectrum_number: int) -> int:
        return self.ms_level_table.translate(self._scan_record(spectrum_number).MSLevel)

    def _get_polarity(self, spectrum_number: int) -> Polarity:
        return self.polarity_table.translate(self._scan_record(spectrum_number).IonPolarity)

    def _get_mz_spectrum(self, spectrum_number: int) -> MzSpectrum:
        spectrum = self._spectrum(spectrum_number)
        return MzSpectrum(list(spectrum.XArray), list(spectrum.YArray))

    def _get_mz_analyzer(self, spectrum_number: int) -> MZAnalyzerType:
        return self.analyzer_table.translate(self._spectrum(spectrum_number).DeviceType)

    def _get_precursor_mz(self, spectrum_number: int, msn_order: int) -> float:
        return float(self._scan_record(spectrum_number).MZOfInterest)

    def _get_precursor_charge(self, spectrum_number: int, msn_order: int) -> int:
        return self._session.precursor_charge(self._spectrum(spectrum_number))

    def _get_dissociation_type(self, spectrum_number: int, msn_order: int) -> DissociationType:
        return DissociationType.cid

    def _get_mz_range(self, spectrum_number: int) -> MassRange:
        mass_range = self._spectrum(spectrum_number).MeasuredMassRange
        return MassRange(mass_range.Start, mass_range.End)

    def _get_resolution(self, spectrum_number: int) -> float:
        return math.nan

    def _get_isolation_width(self, spectrum_number: int, msn_order: int) -> float:
        if self._isolation_width is None:
            path = os.path.join(self.filename, ACQUISITION_METHOD_PATH)
            try:
                with open(path, 'rb') as fh:
                    document = fh.read()
            except OSError as err:
                logger.debug("Could not read acquisition method %s: %s", path, err)
                self._isolation_width = math.nan
            else:
                self._isolation_width = parse_isolation_width(document)
        return self._isolation_width

    def get_actual_values(self, spectrum_number: int) -> Dict[str, str]:
        """The instrument's recorded "actual" values at the time of a scan,
        keyed by display name.
        """
        self._check_spectrum_number(spectrum_number)
        return self._actual_values(spectrum_number)

    def _actual_values(self, spectrum_number: int) -> Dict[str, str]:
        retention_time = self._get_retention_time(spectrum_number)
        return dict(self._session.actuals(retention_time))

    def _get_injection_time(self, spectrum_number: int) -> float:
        """Number of transients times their length.

        This may be off by a factor of two when the instrument was acquiring in
        extended dynamic range mode.
        """
        actuals = self._actual_values(spectrum_number)
        number_of_transients = float(actuals.get(NUMBER_OF_TRANSIENTS, math.nan))
        length_of_transients = float(actuals.get(LENGTH_OF_TRANSIENTS, math.nan))
        return number_of_transients * length_of_transients

    def _get_tic_times(self) -> Sequence[float]:
        return self._session.tic_times()
