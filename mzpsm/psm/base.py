import enum
import logging

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

from mzpsm.exceptions import FileAccessError, ModificationParseError
from mzpsm.modifications import (
    ModificationDictionary, default_modifications, parse_variable_modifications)
from mzpsm.peptide import FixedModification, Modification, Peptide, Protein
from mzpsm.spectral.base import SpectralFileBase, SpectralFileCollection
from mzpsm.spectrum import MsnSpectrum

logger = logging.getLogger(__name__.rsplit(".", 1)[0])
logger.addHandler(logging.NullHandler())


DECOY_PREFIX = "DECOY"


class PeptideSpectralMatchScoreType(enum.Enum):
    e_value = enum.auto()


class ReaderState(enum.Enum):
    created = enum.auto()
    parsed = enum.auto()
    modifications_applied = enum.auto()
    spectrum_resolved = enum.auto()
    emitted = enum.auto()
    exhausted = enum.auto()
    faulted = enum.auto()
    closed = enum.auto()


class PeptideSpectralMatch(object):
    """An assignment of a peptide to an observed spectrum.

    Attributes
    ----------
    peptide : :class:`~.Peptide`
    score : float
    score_type : :class:`PeptideSpectralMatchScoreType`
    charge : int
    is_decoy : bool
    filename : str
        The spectrum file name as recorded by the search engine
    spectrum_number : int
    spectrum : :class:`~.MsnSpectrum`, optional
        The matched fragmentation spectrum, once it has been found in a registered spectral file.
    extra_data : Dict[str, str]
        Additional result columns, copied verbatim and keyed by column name.
    """

    peptide: Peptide
    spectrum: Optional[MsnSpectrum]
    extra_data: Dict[str, str]

    def __init__(self, peptide: Optional[Peptide]=None, score: float=None,
                 score_type: PeptideSpectralMatchScoreType=PeptideSpectralMatchScoreType.e_value,
                 charge: int=0, is_decoy: bool=False, filename: Optional[str]=None,
                 spectrum_number: Optional[int]=None, spectrum: Optional[MsnSpectrum]=None,
                 extra_data: Optional[Dict[str, str]]=None):
        self.peptide = peptide
        self.score = score
        self.score_type = score_type
        self.charge = charge
        self.is_decoy = is_decoy
        self.filename = filename
        self.spectrum_number = spectrum_number
        self.spectrum = spectrum
        self.extra_data = dict(extra_data or {})

    def add_extra_data(self, name: str, value: str):
        self.extra_data[name] = value

    def get_extra_data(self, name: str, default=None) -> Optional[str]:
        return self.extra_data.get(name, default)

    @property
    def retention_time(self) -> Optional[float]:
        if self.spectrum is None:
            return None
        return self.spectrum.retention_time

    def __repr__(self):
        return (f"{self.__class__.__name__}({self.peptide!r}, score={self.score}, charge={self.charge}, "
                f"filename={self.filename!r}, spectrum_number={self.spectrum_number}, "
                f"is_decoy={self.is_decoy})")


@dataclass
class SearchResult:
    """The fields of one search engine record that the reading pipeline needs"""
    spectrum_number: int
    filename: str
    sequence: str
    score: float
    charge: int
    defline: str = ''
    modifications: str = ''
    start_residue: Optional[int] = None
    stop_residue: Optional[int] = None
    row: Dict[str, Any] = field(default_factory=dict)


class PsmReaderBase(object):
    """A base class for readers of search engine result files.

    Records are turned into :class:`PeptideSpectralMatch` objects lazily, one per
    iteration step. Each peptide has the fixed modifications registered with
    :meth:`add_fixed_modification` applied, then the record's own variable
    modifications. Parent proteins are looked up by defline among the proteins
    registered with :meth:`add_protein`, and spectra are fetched from the spectral
    files registered with :meth:`add_spectral_file`, which are opened on first use.

    A malformed record stops the whole read. A missing protein or spectral file
    does not; the relationship is simply left empty.

    Parameters
    ----------
    filename : str
        The path to the search result file
    modifications : :class:`~.ModificationDictionary`, optional
        The modifications known by name. Defaults to the bundled dictionary.
    user_modifications : :class:`~.ModificationDictionary`, optional
        Additional modifications consulted before ``modifications``.
    extra_columns : Iterable[str], optional
        Result columns to copy into :attr:`PeptideSpectralMatch.extra_data`.
    """

    file_format = None

    filename: str
    modifications: ModificationDictionary
    user_modifications: ModificationDictionary
    fixed_modifications: List[FixedModification]
    proteins: Dict[str, Protein]
    spectral_files: SpectralFileCollection
    extra_columns: List[str]
    state: ReaderState

    def __init__(self, filename, modifications: Optional[ModificationDictionary]=None,
                 user_modifications: Optional[ModificationDictionary]=None,
                 extra_columns: Optional[Iterable[str]]=None):
        if modifications is None:
            modifications = default_modifications()
        if user_modifications is None:
            user_modifications = ModificationDictionary()
        self.filename = filename
        self.modifications = modifications
        self.user_modifications = user_modifications
        self.fixed_modifications = []
        self.proteins = {}
        self.spectral_files = SpectralFileCollection()
        self.extra_columns = list(extra_columns or [])
        self.state = ReaderState.created
        self._closed = False
        self._released = False
        self._unknown_modifications: Set[str] = set()
        self._unresolved_files: Set[str] = set()

    def add_fixed_modification(self, modification: Modification, residues: Optional[Iterable[str]]=None):
        self.fixed_modifications.append(FixedModification(modification, residues))

    def add_protein(self, protein: Protein, defline: Optional[str]=None):
        if defline is None:
            defline = protein.defline
        self.proteins[defline] = protein

    def add_proteins(self, proteins: Iterable[Protein]):
        for protein in proteins:
            self.add_protein(protein)

    def add_spectral_file(self, spectral_file: SpectralFileBase, key: Optional[str]=None):
        self.spectral_files.add(spectral_file, key)

    def add_spectral_files(self, spectral_files: Iterable[SpectralFileBase]):
        for spectral_file in spectral_files:
            self.add_spectral_file(spectral_file)

    def add_extra_column(self, name: str):
        if name not in self.extra_columns:
            self.extra_columns.append(name)

    def resolve_modification(self, name: str) -> Modification:
        """Look a modification up by name, first among the user modifications.

        Names found in neither dictionary still produce a :class:`~.Modification`,
        with unknown masses.
        """
        if name in self.user_modifications:
            return self.user_modifications[name]
        if name in self.modifications:
            return self.modifications[name]
        if name not in self._unknown_modifications:
            self._unknown_modifications.add(name)
            logger.warning("Could not find the modification %r, its mass will be unknown", name)
        return Modification(name)

    def apply_fixed_modifications(self, peptide: Peptide) -> Peptide:
        for rule in self.fixed_modifications:
            rule.apply(peptide)
        return peptide

    def apply_variable_modifications(self, peptide: Peptide, modifications: Optional[str]) -> Peptide:
        for name, position in parse_variable_modifications(modifications):
            modification = self.resolve_modification(name)
            try:
                peptide.set_modification(modification, position)
            except IndexError as err:
                raise ModificationParseError(
                    f"{name}:{position}",
                    f"The modification {name!r} is placed at {position}, outside of {peptide.sequence}") from err
        return peptide

    def resolve_protein(self, defline: Optional[str]) -> Optional[Protein]:
        if not defline:
            return None
        return self.proteins.get(defline)

    @staticmethod
    def is_decoy(defline: Optional[str]) -> bool:
        if not defline:
            return False
        return defline.startswith(DECOY_PREFIX)

    def resolve_spectrum(self, psm: PeptideSpectralMatch) -> Optional[MsnSpectrum]:
        """
        Fetch the fragmentation spectrum a PSM was matched to from its spectral file.

        Parameters
        ----------
        psm : :class:`PeptideSpectralMatch`

        Returns
        -------
        :class:`~.MsnSpectrum` or :const:`None`:
            :const:`None` if no registered file matches the PSM's file name, if
            that file could not be opened, or if the scan is not a fragmentation scan.
        """
        spectral_file = self.spectral_files.resolve(psm.filename)
        if spectral_file is None:
            if psm.filename not in self._unresolved_files:
                self._unresolved_files.add(psm.filename)
                logger.warning("No spectral file registered for %r", psm.filename)
            return None
        if not spectral_file.is_open:
            try:
                spectral_file.open()
            except FileAccessError as err:
                logger.warning("Could not open %s: %s", spectral_file.filename, err)
                return None
            logger.info("Opened %s", spectral_file.filename)
        spectrum = spectral_file[psm.spectrum_number]
        if not isinstance(spectrum, MsnSpectrum):
            logger.debug("Spectrum %d of %s is an MS%d scan, not attaching it",
                         psm.spectrum_number, spectral_file.filename, spectrum.ms_order)
            return None
        return spectrum

    def _new_psm(self, result: SearchResult) -> PeptideSpectralMatch:
        return PeptideSpectralMatch()

    def _read_records(self) -> Iterator[SearchResult]:
        raise NotImplementedError()

    def _build_psm(self, result: SearchResult) -> PeptideSpectralMatch:
        peptide = Peptide(result.sequence, result.start_residue, result.stop_residue)
        self.apply_fixed_modifications(peptide)
        self.apply_variable_modifications(peptide, result.modifications)
        self.state = ReaderState.modifications_applied
        peptide.parent = self.resolve_protein(result.defline)

        psm = self._new_psm(result)
        for name in self.extra_columns:
            psm.add_extra_data(name, result.row[name])
        psm.peptide = peptide
        psm.score = result.score
        psm.score_type = PeptideSpectralMatchScoreType.e_value
        psm.charge = result.charge
        psm.is_decoy = self.is_decoy(result.defline)
        psm.spectrum_number = result.spectrum_number
        psm.filename = result.filename
        psm.spectrum = self.resolve_spectrum(psm)
        self.state = ReaderState.spectrum_resolved
        return psm

    def read(self) -> Iterator[PeptideSpectralMatch]:
        """
        Lazily read every PSM in the file.

        The underlying record stream can only be consumed once; open a new reader
        to read the file again.

        Yields
        ------
        :class:`PeptideSpectralMatch`
        """
        if self._closed:
            raise ValueError(f"Cannot read from closed reader for {self.filename}")
        if self._released:
            raise ValueError(f"The records of {self.filename} have already been read")
        try:
            for result in self._read_records():
                self.state = ReaderState.parsed
                psm = self._build_psm(result)
                self.state = ReaderState.emitted
                yield psm
            self.state = ReaderState.exhausted
        except Exception:
            if not self._closed:
                self.state = ReaderState.faulted
            raise
        finally:
            self._release()

    def __iter__(self) -> Iterator[PeptideSpectralMatch]:
        return self.read()

    def _close(self):
        pass

    def _release(self):
        if self._released:
            return
        self._released = True
        self._close()

    def close(self):
        """Release the underlying record stream. Only the first call has an effect."""
        if self._closed:
            return
        self._closed = True
        try:
            self._release()
        finally:
            self.state = ReaderState.closed

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> 'PsmReaderBase':
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __repr__(self):
        return f"{self.__class__.__name__}({self.filename!r}, state={self.state.name})"
