import os
import math

from mzpsm.exceptions import FileAccessError
from mzpsm.spectral.base import SpectralFileBase
from mzpsm.spectrum import MzSpectrum, MassRange, Polarity, MZAnalyzerType, DissociationType

data_path = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "test_data"))


def datafile(name):
    path = os.path.join(data_path, name)
    if not os.path.exists(path):
        raise Exception(
            ("The path %r could not be located in the test suite's data package." % (path, )) +
            "If you are NOT running the test suite, you should not"
            " be using this function.")
    return path


class InMemorySpectralFile(SpectralFileBase):
    """A spectral file whose scans are a list of dicts, for exercising code
    that consumes spectral files without any backing store.
    """

    def __init__(self, filename, scans, fail_open=False):
        super().__init__(filename)
        self.scans = scans
        self.fail_open = fail_open
        self.open_count = 0

    def _open(self):
        if self.fail_open:
            raise FileAccessError(self.filename, "cannot open")
        self.open_count += 1

    def _scan(self, n):
        return self.scans[n - 1]

    def _get_last_spectrum_number(self):
        return len(self.scans)

    def _get_retention_time(self, n):
        return self._scan(n)["rt"]

    def _get_msn_order(self, n):
        return self._scan(n).get("ms_order", 1)

    def _get_polarity(self, n):
        return Polarity.positive

    def _get_mz_spectrum(self, n):
        return MzSpectrum([100.0, 200.0], [10.0, 20.0])

    def _get_mz_analyzer(self, n):
        return MZAnalyzerType.orbitrap

    def _get_precursor_mz(self, n, msn_order):
        return self._scan(n).get("precursor_mz", math.nan)

    def _get_precursor_charge(self, n, msn_order):
        return self._scan(n).get("charge", 0)

    def _get_isolation_width(self, n, msn_order):
        return 2.0

    def _get_dissociation_type(self, n, msn_order):
        return DissociationType.hcd

    def _get_mz_range(self, n):
        return MassRange(100.0, 2000.0)

    def _get_injection_time(self, n):
        return 50.0

    def _get_resolution(self, n):
        return math.nan


def make_scans(times, ms_orders=None):
    if ms_orders is None:
        ms_orders = [1] * len(times)
    return [{"rt": t, "ms_order": o, "precursor_mz": 500.0 + i, "charge": 2}
            for i, (t, o) in enumerate(zip(times, ms_orders))]
