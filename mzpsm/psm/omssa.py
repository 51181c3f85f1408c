import csv
import math
import logging

from typing import Dict, Iterator, Optional

from mzpsm.utils import open_stream

from .base import PeptideSpectralMatch, PsmReaderBase, SearchResult

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


SPECTRUM_NUMBER = "Spectrum number"
FILENAME = "Filename/id"
PEPTIDE = "Peptide"
E_VALUE = "E-value"
MASS = "Mass"
GI = "gi"
ACCESSION = "Accession"
START = "Start"
STOP = "Stop"
DEFLINE = "Defline"
MODS = "Mods"
CHARGE = "Charge"
THEORETICAL_MASS = "Theo Mass"
P_VALUE = "P-value"
NIST_SCORE = "NIST score"

REQUIRED_COLUMNS = (SPECTRUM_NUMBER, FILENAME, PEPTIDE, E_VALUE, CHARGE)


def _optional_float(value: Optional[str]) -> float:
    if value is None:
        return math.nan
    value = value.strip()
    if not value:
        return math.nan
    return float(value)


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    return int(value)


class OmssaPeptideSpectralMatch(PeptideSpectralMatch):
    """A PSM with the additional values an OMSSA result row reports"""

    def __init__(self, *args, mass: float=math.nan, theoretical_mass: float=math.nan,
                 accession: Optional[str]=None, p_value: float=math.nan, gi: Optional[int]=None,
                 nist_score: float=math.nan, defline: Optional[str]=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.mass = mass
        self.theoretical_mass = theoretical_mass
        self.accession = accession
        self.p_value = p_value
        self.gi = gi
        self.nist_score = nist_score
        self.defline = defline

    @property
    def mass_error(self) -> float:
        """The observed minus the theoretical mass, in Daltons"""
        return self.mass - self.theoretical_mass


class OmssaCsvPsmReader(PsmReaderBase):
    """Read the CSV report written by OMSSA's ``-oc`` option.

    Columns are matched by header name, so their order does not matter. The file
    is opened when the reader is created and may be gzip compressed.

    Parameters
    ----------
    filename : str or file-like
        The path to the CSV file, or an already opened stream.
    modifications : :class:`~.ModificationDictionary`, optional
    user_modifications : :class:`~.ModificationDictionary`, optional
    extra_columns : Iterable[str], optional
        Columns to copy verbatim into each PSM's ``extra_data``.
    """

    file_format = "omssa_csv"

    def __init__(self, filename, modifications=None, user_modifications=None, extra_columns=None):
        name = getattr(filename, 'name', filename)
        super().__init__(name, modifications=modifications, user_modifications=user_modifications,
                         extra_columns=extra_columns)
        self.handle = open_stream(filename, 'rt', newline='')
        self._reader = csv.DictReader(self.handle, skipinitialspace=True)

    def _close(self):
        self.handle.close()

    def _read_header(self):
        fieldnames = self._reader.fieldnames
        if fieldnames is None:
            raise ValueError(f"{self.filename} has no header line")
        self._reader.fieldnames = [name.strip() for name in fieldnames]
        missing = [name for name in REQUIRED_COLUMNS + tuple(self.extra_columns)
                   if name not in self._reader.fieldnames]
        if missing:
            raise ValueError(f"{self.filename} is missing the column(s) {', '.join(missing)}")
        logger.debug("Reading OMSSA results from %s with columns %r", self.filename, self._reader.fieldnames)

    def _parse_row(self, row: Dict[str, str]) -> SearchResult:
        return SearchResult(
            spectrum_number=int(row[SPECTRUM_NUMBER]),
            filename=row[FILENAME],
            sequence=row[PEPTIDE],
            score=float(row[E_VALUE]),
            charge=int(row[CHARGE]),
            defline=row.get(DEFLINE) or '',
            modifications=row.get(MODS) or '',
            start_residue=_optional_int(row.get(START)),
            stop_residue=_optional_int(row.get(STOP)),
            row=row)

    def _read_records(self) -> Iterator[SearchResult]:
        self._read_header()
        for row in self._reader:
            yield self._parse_row(row)

    def _new_psm(self, result: SearchResult) -> OmssaPeptideSpectralMatch:
        row = result.row
        return OmssaPeptideSpectralMatch(
            mass=_optional_float(row.get(MASS)),
            theoretical_mass=_optional_float(row.get(THEORETICAL_MASS)),
            accession=row.get(ACCESSION),
            p_value=_optional_float(row.get(P_VALUE)),
            gi=_optional_int(row.get(GI)),
            nist_score=_optional_float(row.get(NIST_SCORE)),
            defline=result.defline)
