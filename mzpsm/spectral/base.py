import os
import logging

from collections import Counter, abc
from typing import Dict, Iterable, Iterator, Optional, Sequence, Type, Union

from mzpsm.exceptions import OutOfRangeError
from mzpsm.spectrum import (
    Spectrum, MsnSpectrum, MzSpectrum, MassRange,
    Polarity, MZAnalyzerType, DissociationType)

from .translation import TranslationTable

logger = logging.getLogger(__name__.rsplit(".", 1)[0])
logger.addHandler(logging.NullHandler())


DEFAULT_MSN_ORDER = 2


class SubclassRegisteringMetaclass(type):
    def __new__(mcs, name, parents, attrs):
        new_type = type.__new__(mcs, name, parents, attrs)
        if not hasattr(new_type, "_file_extension_to_implementation"):
            new_type._file_extension_to_implementation = dict()

        file_extension = attrs.get("file_format")
        if file_extension is not None:
            new_type._file_extension_to_implementation[file_extension.lower()] = new_type

        format_name = attrs.get("format_name")
        if format_name is not None:
            new_type._file_extension_to_implementation[format_name] = new_type
        elif file_extension is not None:
            new_type.format_name = file_extension.lstrip(".")
        return new_type

    def type_for_format(cls, format_or_extension: str):
        impl = cls._file_extension_to_implementation.get(format_or_extension)
        if impl is None:
            impl = cls._file_extension_to_implementation.get(format_or_extension.lower())
        return impl


def _strip_path(filename: Union[str, os.PathLike]) -> str:
    return os.path.normpath(os.fspath(filename))


class SpectralFileBase(metaclass=SubclassRegisteringMetaclass):
    """The capability interface every mass spectrometry data source provides.

    Spectra are addressed by a contiguous, 1-based spectrum number ranging over
    ``[first_spectrum_number, last_spectrum_number]``. Concrete backends implement
    the protected ``_get_*`` hooks, while the public accessors defined here take
    care of opening the file lazily and of validating the spectrum number.

    Vendor specific classification codes are translated through the
    :class:`~.TranslationTable` objects :attr:`polarity_table`, :attr:`analyzer_table`
    and :attr:`dissociation_table`, which each backend may replace or extend.

    Attributes
    ----------
    filename : str
        The path to the file or directory holding the data.
    """

    file_format: Optional[str] = None
    format_name: Optional[str] = None

    _file_extension_to_implementation: Dict[str, Type['SpectralFileBase']] = {}

    polarity_table: TranslationTable[Polarity] = TranslationTable({}, Polarity.neutral)
    analyzer_table: TranslationTable[MZAnalyzerType] = TranslationTable({}, MZAnalyzerType.unknown)
    dissociation_table: TranslationTable[DissociationType] = TranslationTable({}, DissociationType.unknown)

    filename: str
    _is_open: bool

    @classmethod
    def guess_from_filename(cls, filename: Union[str, os.PathLike]) -> bool:
        """
        Guess if the file is of this type by inspecting the file's name and extension.

        Parameters
        ----------
        filename : str
            The path to the file to inspect.

        Returns
        -------
        bool:
            Whether this is an appropriate backend for that file.
        """
        if cls.file_format is None:
            return False
        if not isinstance(filename, (str, os.PathLike)):
            return False
        return _strip_path(filename).lower().endswith(cls.file_format.lower())

    @classmethod
    def guess_implementation(cls, filename, **kwargs) -> 'SpectralFileBase':
        """
        Guess the backend implementation to use with this file format.

        Parameters
        ----------
        filename : str
            The path to the spectral file to open.
        **kwargs
            Passed to implementation

        Returns
        -------
        SpectralFileBase
        """
        for impl in set(cls._file_extension_to_implementation.values()):
            if impl.guess_from_filename(filename):
                return impl(filename, **kwargs)
        raise ValueError(f"Could not guess spectral file implementation for {filename}")

    def __init__(self, filename: Union[str, os.PathLike]):
        self.filename = _strip_path(filename)
        self._is_open = False

    @property
    def name(self) -> str:
        """The file name without its directory and final extension"""
        base = os.path.basename(self.filename)
        return os.path.splitext(base)[0]

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self):
        """Establish the connection to the backing store.

        Calling this on a file which is already open has no effect.

        Raises
        ------
        FileAccessError:
            If the backing store is missing, corrupt or cannot be read.
        """
        if self._is_open:
            return
        self._open()
        self._is_open = True
        logger.debug("Opened %s", self.filename)

    def close(self):
        """Release the connection to the backing store. Safe to call on a file
        which was never opened.
        """
        if not self._is_open:
            return
        try:
            self._close()
        finally:
            self._is_open = False

    def _open(self):
        raise NotImplementedError()

    def _close(self):
        pass

    def _ensure_open(self):
        if not self._is_open:
            self.open()

    def __enter__(self) -> 'SpectralFileBase':
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def first_spectrum_number(self) -> int:
        self._ensure_open()
        return self._get_first_spectrum_number()

    @property
    def last_spectrum_number(self) -> int:
        self._ensure_open()
        return self._get_last_spectrum_number()

    def _get_first_spectrum_number(self) -> int:
        return 1

    def _get_last_spectrum_number(self) -> int:
        raise NotImplementedError()

    def _check_spectrum_number(self, spectrum_number: int) -> int:
        first = self.first_spectrum_number
        last = self.last_spectrum_number
        if not first <= spectrum_number <= last:
            raise OutOfRangeError(spectrum_number, first, last)
        return spectrum_number

    def get_retention_time(self, spectrum_number: int) -> float:
        self._check_spectrum_number(spectrum_number)
        return self._get_retention_time(spectrum_number)

    def get_msn_order(self, spectrum_number: int) -> int:
        self._check_spectrum_number(spectrum_number)
        return self._get_msn_order(spectrum_number)

    def get_polarity(self, spectrum_number: int) -> Polarity:
        self._check_spectrum_number(spectrum_number)
        return self._get_polarity(spectrum_number)

    def get_mz_spectrum(self, spectrum_number: int) -> MzSpectrum:
        self._check_spectrum_number(spectrum_number)
        return self._get_mz_spectrum(spectrum_number)

    def get_mz_analyzer(self, spectrum_number: int) -> MZAnalyzerType:
        self._check_spectrum_number(spectrum_number)
        return self._get_mz_analyzer(spectrum_number)

    def get_precursor_mz(self, spectrum_number: int, msn_order: int=DEFAULT_MSN_ORDER) -> float:
        self._check_spectrum_number(spectrum_number)
        return self._get_precursor_mz(spectrum_number, msn_order)

    def get_precursor_charge(self, spectrum_number: int, msn_order: int=DEFAULT_MSN_ORDER) -> int:
        self._check_spectrum_number(spectrum_number)
        return self._get_precursor_charge(spectrum_number, msn_order)

    def get_isolation_width(self, spectrum_number: int, msn_order: int=DEFAULT_MSN_ORDER) -> float:
        self._check_spectrum_number(spectrum_number)
        return self._get_isolation_width(spectrum_number, msn_order)

    def get_dissociation_type(self, spectrum_number: int,
                              msn_order: int=DEFAULT_MSN_ORDER) -> DissociationType:
        self._check_spectrum_number(spectrum_number)
        return self._get_dissociation_type(spectrum_number, msn_order)

    def get_mz_range(self, spectrum_number: int) -> MassRange:
        self._check_spectrum_number(spectrum_number)
        return self._get_mz_range(spectrum_number)

    def get_injection_time(self, spectrum_number: int) -> float:
        self._check_spectrum_number(spectrum_number)
        return self._get_injection_time(spectrum_number)

    def get_resolution(self, spectrum_number: int) -> float:
        self._check_spectrum_number(spectrum_number)
        return self._get_resolution(spectrum_number)

    def _get_retention_time(self, spectrum_number: int) -> float:
        raise NotImplementedError()

    def _get_msn_order(self, spectrum_number: int) -> int:
        raise NotImplementedError()

    def _get_polarity(self, spectrum_number: int) -> Polarity:
        raise NotImplementedError()

    def _get_mz_spectrum(self, spectrum_number: int) -> MzSpectrum:
        raise NotImplementedError()

    def _get_mz_analyzer(self, spectrum_number: int) -> MZAnalyzerType:
        raise NotImplementedError()

    def _get_precursor_mz(self, spectrum_number: int, msn_order: int) -> float:
        raise NotImplementedError()

    def _get_precursor_charge(self, spectrum_number: int, msn_order: int) -> int:
        raise NotImplementedError()

    def _get_isolation_width(self, spectrum_number: int, msn_order: int) -> float:
        raise NotImplementedError()

    def _get_dissociation_type(self, spectrum_number: int, msn_order: int) -> DissociationType:
        raise NotImplementedError()

    def _get_mz_range(self, spectrum_number: int) -> MassRange:
        raise NotImplementedError()

    def _get_injection_time(self, spectrum_number: int) -> float:
        raise NotImplementedError()

    def _get_resolution(self, spectrum_number: int) -> float:
        raise NotImplementedError()

    def _get_tic_times(self) -> Sequence[float]:
        """The time axis of the total ion chromatogram, one point per spectrum
        unless a backend knows better.
        """
        first = self.first_spectrum_number
        last = self.last_spectrum_number
        return [self._get_retention_time(i) for i in range(first, last + 1)]

    def get_spectrum_number(self, retention_time: float) -> int:
        """
        Find the spectrum acquired closest in time to ``retention_time``.

        The total ion chromatogram is scanned for the point whose time is nearest,
        and when two points are equally close the earlier one is kept.

        Parameters
        ----------
        retention_time : float
            The time to search for, in minutes.

        Returns
        -------
        int:
            The 1-based spectrum number
        """
        self._ensure_open()
        index = -1
        best_delta = None
        for i, time in enumerate(self._get_tic_times()):
            delta = abs(time - retention_time)
            if index < 0 or delta < best_delta:
                index = i
                best_delta = delta
        if index < 0:
            raise ValueError(f"{self.filename} has an empty total ion chromatogram")
        return index + 1

    def get_spectrum(self, spectrum_number: int) -> Spectrum:
        """
        Assemble the complete :class:`~.Spectrum` for a scan.

        Fragmentation scans are returned as :class:`~.MsnSpectrum` with their
        precursor information filled in.

        Parameters
        ----------
        spectrum_number : int
            The 1-based spectrum number

        Returns
        -------
        :class:`~.Spectrum`
        """
        self._check_spectrum_number(spectrum_number)
        ms_order = self._get_msn_order(spectrum_number)
        kwargs = dict(
            polarity=self._get_polarity(spectrum_number),
            mz_spectrum=self._get_mz_spectrum(spectrum_number),
            mz_analyzer=self._get_mz_analyzer(spectrum_number),
            mz_range=self._get_mz_range(spectrum_number),
            injection_time=self._get_injection_time(spectrum_number),
            resolution=self._get_resolution(spectrum_number),
            source=self,
        )
        retention_time = self._get_retention_time(spectrum_number)
        if ms_order >= 2:
            return MsnSpectrum(
                spectrum_number, retention_time, ms_order,
                precursor_mz=self._get_precursor_mz(spectrum_number, ms_order),
                precursor_charge=self._get_precursor_charge(spectrum_number, ms_order),
                isolation_width=self._get_isolation_width(spectrum_number, ms_order),
                dissociation_type=self._get_dissociation_type(spectrum_number, ms_order),
                **kwargs)
        return Spectrum(spectrum_number, retention_time, ms_order, **kwargs)

    def get_ms_order_counts(self) -> Dict[int, int]:
        """Count the spectra at each MS order"""
        first = self.first_spectrum_number
        last = self.last_spectrum_number
        return dict(Counter(self._get_msn_order(i) for i in range(first, last + 1)))

    def __getitem__(self, spectrum_number: int) -> Spectrum:
        return self.get_spectrum(spectrum_number)

    def __iter__(self) -> Iterator[Spectrum]:
        first = self.first_spectrum_number
        last = self.last_spectrum_number
        for i in range(first, last + 1):
            yield self.get_spectrum(i)

    def __len__(self):
        return self.last_spectrum_number - self.first_spectrum_number + 1

    def __repr__(self):
        state = "open" if self._is_open else "closed"
        return f"{self.__class__.__name__}({self.filename!r}, {state})"


guess_implementation = SpectralFileBase.guess_implementation


class SpectralFileCollection(abc.Mapping):
    """A registry of spectral files keyed by their file name stem.

    The same file instance is shared by every PSM that refers to it.
    """

    files: Dict[str, SpectralFileBase]

    def __init__(self, files: Optional[Iterable[SpectralFileBase]]=None):
        self.files = {}
        for spectral_file in files or ():
            self.add(spectral_file)

    def add(self, spectral_file: SpectralFileBase, key: Optional[str]=None):
        if key is None:
            key = spectral_file.name
        self.files[key] = spectral_file

    def resolve(self, filename: str) -> Optional[SpectralFileBase]:
        """Find the spectral file that a search result's file name refers to.

        Only the text before the first ``.`` of ``filename`` is used as the key,
        so ``sample1.raw.mzML`` matches the file registered as ``sample1``.

        Returns
        -------
        :class:`SpectralFileBase` or :const:`None`
        """
        if not filename:
            return None
        key = filename.split(".")[0]
        return self.files.get(key)

    def close(self):
        for spectral_file in self.files.values():
            spectral_file.close()

    def __getitem__(self, key: str) -> SpectralFileBase:
        return self.files[key]

    def __iter__(self):
        return iter(self.files)

    def __len__(self):
        return len(self.files)

    def __repr__(self):
        return f"{self.__class__.__name__}({list(self.files)})"
