import enum
import math

from typing import Optional, Sequence

import numpy as np


class Polarity(enum.Enum):
    positive = enum.auto()
    negative = enum.auto()
    neutral = enum.auto()


class MZAnalyzerType(enum.Enum):
    unknown = enum.auto()
    quadrupole = enum.auto()
    ion_trap_2d = enum.auto()
    ion_trap_3d = enum.auto()
    orbitrap = enum.auto()
    tof = enum.auto()
    fticr = enum.auto()
    sector = enum.auto()


class DissociationType(enum.Enum):
    unknown = enum.auto()
    cid = enum.auto()
    mpd = enum.auto()
    ecd = enum.auto()
    pqd = enum.auto()
    etd = enum.auto()
    hcd = enum.auto()
    ethcd = enum.auto()


class MassRange(object):
    __slots__ = ('minimum', 'maximum')

    minimum: float
    maximum: float

    def __init__(self, minimum: float, maximum: float):
        self.minimum = float(minimum)
        self.maximum = float(maximum)

    @property
    def width(self) -> float:
        return self.maximum - self.minimum

    def __contains__(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum

    def __eq__(self, other):
        if other is None:
            return False
        return self.minimum == other.minimum and self.maximum == other.maximum

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return f"{self.__class__.__name__}({self.minimum}, {self.maximum})"


class MzSpectrum(object):
    """A pair of parallel m/z and intensity arrays."""

    __slots__ = ('mz_array', 'intensity_array')

    mz_array: np.ndarray
    intensity_array: np.ndarray

    def __init__(self, mz_array: Sequence[float], intensity_array: Sequence[float]):
        self.mz_array = np.asarray(mz_array, dtype=float)
        self.intensity_array = np.asarray(intensity_array, dtype=float)
        if self.mz_array.shape != self.intensity_array.shape:
            raise ValueError(
                f"m/z and intensity arrays differ in length ({len(self.mz_array)} != {len(self.intensity_array)})")

    def __len__(self):
        return len(self.mz_array)

    @property
    def total_ion_current(self) -> float:
        return float(self.intensity_array.sum())

    @property
    def base_peak_intensity(self) -> float:
        if len(self) == 0:
            return 0.0
        return float(self.intensity_array.max())

    def __eq__(self, other):
        if other is None:
            return False
        return (np.array_equal(self.mz_array, other.mz_array) and
                np.array_equal(self.intensity_array, other.intensity_array))

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return f"{self.__class__.__name__}(<{len(self)} peaks>)"


class Spectrum(object):
    """A single scan read from a spectral file.

    Attributes
    ----------
    spectrum_number : int
        The 1-based number of the scan within its file.
    retention_time : float
        The scan start time in minutes.
    ms_order : int
        1 for a survey scan, 2 for a fragmentation scan.
    polarity : :class:`Polarity`
    mz_spectrum : :class:`MzSpectrum`
    mz_analyzer : :class:`MZAnalyzerType`
    mz_range : :class:`MassRange`
    injection_time : float
        May be NaN when the file does not record it.
    resolution : float
        May be NaN when the file does not record it.
    """

    __slots__ = ('spectrum_number', 'retention_time', 'ms_order', 'polarity',
                 'mz_spectrum', 'mz_analyzer', 'mz_range', 'injection_time',
                 'resolution', 'source')

    def __init__(self, spectrum_number: int, retention_time: float, ms_order: int=1,
                 polarity: Polarity=Polarity.neutral, mz_spectrum: Optional[MzSpectrum]=None,
                 mz_analyzer: MZAnalyzerType=MZAnalyzerType.unknown,
                 mz_range: Optional[MassRange]=None, injection_time: float=math.nan,
                 resolution: float=math.nan, source=None):
        self.spectrum_number = spectrum_number
        self.retention_time = retention_time
        self.ms_order = ms_order
        self.polarity = polarity
        self.mz_spectrum = mz_spectrum
        self.mz_analyzer = mz_analyzer
        self.mz_range = mz_range
        self.injection_time = injection_time
        self.resolution = resolution
        self.source = source

    def __repr__(self):
        return (f"{self.__class__.__name__}({self.spectrum_number}, rt={self.retention_time}, "
                f"ms_order={self.ms_order}, polarity={self.polarity.name})")


class MsnSpectrum(Spectrum):
    """A fragmentation scan, carrying its precursor selection."""

    __slots__ = ('precursor_mz', 'precursor_charge', 'isolation_width', 'dissociation_type')

    def __init__(self, spectrum_number: int, retention_time: float, ms_order: int=2,
                 precursor_mz: float=math.nan, precursor_charge: int=0,
                 isolation_width: float=math.nan,
                 dissociation_type: DissociationType=DissociationType.unknown, **kwargs):
        super().__init__(spectrum_number, retention_time, ms_order, **kwargs)
        self.precursor_mz = precursor_mz
        self.precursor_charge = precursor_charge
        self.isolation_width = isolation_width
        self.dissociation_type = dissociation_type

    def __repr__(self):
        return (f"{self.__class__.__name__}({self.spectrum_number}, rt={self.retention_time}, "
                f"ms_order={self.ms_order}, precursor_mz={self.precursor_mz}, "
                f"precursor_charge={self.precursor_charge})")
