import unittest

from mzpsm.exceptions import FileAccessError, OutOfRangeError
from mzpsm.spectral.base import SpectralFileBase, SpectralFileCollection
from mzpsm.spectral import MzMLFile, AgilentDDirectory
from mzpsm.spectrum import MsnSpectrum

from .common import InMemorySpectralFile, make_scans


class TestSpectralFileBase(unittest.TestCase):

    def get_file(self, times=(1.0, 2.0, 3.0, 4.0), ms_orders=(1, 2, 2, 1), name="run1.mzML"):
        return InMemorySpectralFile(name, make_scans(list(times), list(ms_orders)))

    def test_name(self):
        assert self.get_file(name="/data/sample1.raw").name == "sample1"
        assert self.get_file(name="sample1.raw.mzML").name == "sample1.raw"

    def test_open_is_idempotent(self):
        spectral_file = self.get_file()
        spectral_file.open()
        spectral_file.open()
        assert spectral_file.open_count == 1
        spectral_file.close()
        spectral_file.close()
        assert not spectral_file.is_open

    def test_close_unopened(self):
        spectral_file = self.get_file()
        spectral_file.close()
        assert not spectral_file.is_open

    def test_lazy_open(self):
        spectral_file = self.get_file()
        assert spectral_file.get_retention_time(2) == 2.0
        assert spectral_file.is_open

    def test_open_failure(self):
        spectral_file = InMemorySpectralFile("broken.mzML", [], fail_open=True)
        with self.assertRaises(FileAccessError) as ctx:
            spectral_file.open()
        assert ctx.exception.path == "broken.mzML"
        assert isinstance(ctx.exception, IOError)
        assert not spectral_file.is_open

    def test_out_of_range(self):
        spectral_file = self.get_file()
        for n in (0, 5, -1):
            with self.assertRaises(OutOfRangeError) as ctx:
                spectral_file.get_msn_order(n)
            assert ctx.exception.first == 1
            assert ctx.exception.last == 4
        with self.assertRaises(IndexError):
            spectral_file[5]

    def test_get_spectrum(self):
        spectral_file = self.get_file()
        survey = spectral_file.get_spectrum(1)
        assert not isinstance(survey, MsnSpectrum)
        fragment = spectral_file.get_spectrum(2)
        assert isinstance(fragment, MsnSpectrum)
        assert fragment.precursor_mz == 501.0
        assert fragment.precursor_charge == 2
        assert fragment.retention_time == 2.0

    def test_iteration(self):
        spectral_file = self.get_file()
        assert [s.spectrum_number for s in spectral_file] == [1, 2, 3, 4]
        assert len(spectral_file) == 4
        assert spectral_file.get_ms_order_counts() == {1: 2, 2: 2}

    def test_get_spectrum_number(self):
        spectral_file = self.get_file()
        assert spectral_file.get_spectrum_number(2.2) == 2
        assert spectral_file.get_spectrum_number(2.5) == 2
        assert spectral_file.get_spectrum_number(-10) == 1
        assert spectral_file.get_spectrum_number(100) == 4

    def test_get_spectrum_number_duplicate_times(self):
        spectral_file = self.get_file(times=(1.0, 3.0, 3.0, 5.0))
        assert spectral_file.get_spectrum_number(3.0) == 2

    def test_get_spectrum_number_empty(self):
        spectral_file = InMemorySpectralFile("empty.mzML", [])
        with self.assertRaises(ValueError):
            spectral_file.get_spectrum_number(1.0)

    def test_registry(self):
        assert SpectralFileBase.type_for_format("mzml") is MzMLFile
        assert SpectralFileBase.type_for_format(".mzML") is MzMLFile
        assert SpectralFileBase.type_for_format("agilent") is AgilentDDirectory
        with self.assertRaises(ValueError):
            SpectralFileBase.guess_implementation("results.txt")


class TestSpectralFileCollection(unittest.TestCase):

    def test_resolve(self):
        sample1 = InMemorySpectralFile("/data/sample1.raw", make_scans([1.0]))
        collection = SpectralFileCollection([sample1])
        assert collection.resolve("sample1.raw.mzML") is sample1
        assert collection.resolve("sample1") is sample1
        assert collection.resolve("Sample1.raw") is None
        assert collection.resolve("unknown.mzML") is None
        assert collection.resolve("") is None
        assert collection.resolve(None) is None

    def test_explicit_key(self):
        spectral_file = InMemorySpectralFile("/data/run_a.mzML", make_scans([1.0]))
        collection = SpectralFileCollection()
        collection.add(spectral_file, "sampleA")
        assert collection.resolve("sampleA.dta") is spectral_file
        assert len(collection) == 1
        assert list(collection) == ["sampleA"]

    def test_close(self):
        spectral_file = InMemorySpectralFile("/data/run_a.mzML", make_scans([1.0]))
        collection = SpectralFileCollection([spectral_file])
        spectral_file.open()
        collection.close()
        assert not spectral_file.is_open
