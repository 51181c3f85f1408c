import io
import math
import unittest

from unittest import mock

from mzpsm.exceptions import ModificationParseError, OutOfRangeError
from mzpsm.modifications import default_modifications, load_modifications
from mzpsm.peptide import Protein
from mzpsm.psm import (
    OmssaCsvPsmReader, OmssaPeptideSpectralMatch, PeptideSpectralMatchScoreType, ReaderState)

from .common import InMemorySpectralFile, datafile, make_scans


TEST_DEFLINE = "sp|P12345|TEST_HUMAN Test protein"


class TestOmssaCsvPsmReader(unittest.TestCase):

    def get_reader(self, name="omssa_results.csv", **kwargs):
        return OmssaCsvPsmReader(datafile(name), **kwargs)

    def get_spectral_file(self, **kwargs):
        return InMemorySpectralFile("/data/sample1.raw", make_scans([1.0, 2.0, 3.0], [1, 2, 2]), **kwargs)

    def test_read(self):
        with self.get_reader() as reader:
            psms = list(reader.read())
        assert len(psms) == 3
        psm = psms[0]
        assert isinstance(psm, OmssaPeptideSpectralMatch)
        assert psm.peptide.sequence == "PEPTMIDE"
        assert psm.peptide.start_residue == 10
        assert psm.peptide.end_residue == 17
        assert psm.score == 0.0012
        assert psm.score_type == PeptideSpectralMatchScoreType.e_value
        assert psm.charge == 2
        assert psm.spectrum_number == 2
        assert psm.filename == "sample1.raw.mzML"
        assert psm.accession == "BL_ORD_ID:1"
        assert psm.defline == TEST_DEFLINE
        assert psm.mass == 933.3721
        assert psm.theoretical_mass == 933.3736
        assert psm.p_value == 1.2e-05
        assert psm.gi == 0
        assert psm.spectrum is None

    def test_sequence_is_uppercased(self):
        with self.get_reader() as reader:
            psms = list(reader)
        assert psms[1].peptide.sequence == "CAKEMK"

    def test_variable_modifications(self):
        with self.get_reader() as reader:
            psms = list(reader)
        first = psms[0].peptide
        assert [(position, mod.name) for position, mod in first.modifications] == [(5, "oxidation of M")]
        second = psms[1].peptide
        assert [(position, mod.name) for position, mod in second.modifications] == [
            (3, "methylation of K"), (5, "oxidation of M")]
        assert psms[2].peptide.modification_count == 0
        assert math.isclose(
            first.monoisotopic_mass, first.unmodified_mass + 15.994915)

    def test_user_modifications_take_precedence(self):
        user_modifications = load_modifications(datafile("usermods.xml"))
        with self.get_reader(user_modifications=user_modifications) as reader:
            psm = next(iter(reader))
        modification = psm.peptide.get_modifications(5)[0]
        assert modification.monoisotopic_mass == 16.0

    def test_fixed_modifications(self):
        modifications = default_modifications()
        with self.get_reader() as reader:
            reader.add_fixed_modification(modifications["carbamidomethyl C"], "C")
            reader.add_fixed_modification(modifications["carbamidomethyl C"], "C")
            psms = list(reader)
        peptide = psms[1].peptide
        assert [mod.name for mod in peptide.get_modifications(1)] == ["carbamidomethyl C"]
        assert peptide.modification_count == 3

    def test_protein_resolution(self):
        protein = Protein("sp|P12345|TEST_HUMAN", TEST_DEFLINE)
        with self.get_reader() as reader:
            reader.add_protein(protein)
            psms = list(reader)
        assert psms[0].peptide.parent is protein
        assert psms[1].peptide.parent is None
        assert psms[2].peptide.parent is None

    def test_decoys(self):
        with self.get_reader() as reader:
            psms = list(reader)
        assert [psm.is_decoy for psm in psms] == [False, True, False]

    def test_extra_columns(self):
        with self.get_reader(extra_columns=["NIST score", "gi"]) as reader:
            psm = next(reader.read())
        assert psm.extra_data == {"NIST score": "0", "gi": "0"}

    def test_missing_extra_column(self):
        with self.get_reader(extra_columns=["Not a column"]) as reader:
            with self.assertRaises(ValueError):
                list(reader)
            assert reader.state == ReaderState.faulted

    def test_spectrum_resolution(self):
        spectral_file = self.get_spectral_file()
        with self.get_reader() as reader:
            reader.add_spectral_file(spectral_file)
            psms = list(reader)
        assert psms[0].spectrum.spectrum_number == 2
        assert psms[0].spectrum.source is spectral_file
        assert psms[0].retention_time == 2.0
        assert psms[1].spectrum.spectrum_number == 3
        assert psms[2].spectrum is None
        assert psms[2].retention_time is None
        assert spectral_file.open_count == 1

    def test_survey_scans_not_attached(self):
        spectral_file = InMemorySpectralFile("/data/sample1.raw", make_scans([1.0, 2.0, 3.0], [1, 1, 2]))
        with self.get_reader() as reader:
            reader.add_spectral_file(spectral_file)
            psms = list(reader)
        assert psms[0].spectrum_number == 2
        assert psms[0].spectrum is None
        assert psms[0].retention_time is None
        assert psms[1].spectrum.spectrum_number == 3
        assert psms[1].spectrum.ms_order == 2

    def test_spectral_file_open_failure(self):
        spectral_file = self.get_spectral_file(fail_open=True)
        with self.get_reader() as reader:
            reader.add_spectral_file(spectral_file)
            psms = list(reader)
            assert reader.state == ReaderState.exhausted
        assert len(psms) == 3
        assert all(psm.spectrum is None for psm in psms)

    def test_spectrum_out_of_range(self):
        spectral_file = InMemorySpectralFile("/data/sample1.raw", make_scans([1.0]))
        with self.get_reader() as reader:
            reader.add_spectral_file(spectral_file)
            with self.assertRaises(OutOfRangeError):
                list(reader)

    def test_bad_modification_aborts(self):
        with self.get_reader("omssa_bad_mods.csv") as reader:
            iterator = reader.read()
            first = next(iterator)
            assert first.peptide.modification_count == 1
            with self.assertRaises(ModificationParseError):
                next(iterator)
            assert reader.state == ReaderState.faulted

    def test_modification_position_outside_peptide_aborts(self):
        for position in ("99", "0"):
            handle = io.StringIO(
                "Spectrum number, Filename/id, Peptide, E-value, Mods, Charge\n"
                f"1,sample1.mzML,PEPTIDE,0.01,oxidation of M:{position},2\n")
            with OmssaCsvPsmReader(handle) as reader:
                with self.assertRaises(ModificationParseError) as context:
                    next(reader.read())
                assert context.exception.token == f"oxidation of M:{position}"
                assert reader.state == ReaderState.faulted

    def test_bad_number_aborts(self):
        with self.get_reader("omssa_bad_number.csv") as reader:
            with self.assertRaises(ValueError):
                list(reader)

    def test_unknown_modification(self):
        handle = io.StringIO(
            "Spectrum number, Filename/id, Peptide, E-value, Mods, Charge\n"
            "1,sample1.mzML,PEPTIDE,0.01,mystery mod:2,2\n")
        with OmssaCsvPsmReader(handle) as reader:
            psm = next(reader.read())
        modification = psm.peptide.get_modifications(2)[0]
        assert modification.name == "mystery mod"
        assert not modification.is_resolved
        assert math.isnan(psm.mass)
        assert psm.peptide.start_residue is None

    def test_gzip(self):
        opened = []
        real_open = io.open

        def tracking_open(*args, **kwargs):
            handle = real_open(*args, **kwargs)
            opened.append(handle)
            return handle

        with mock.patch("mzpsm.utils.io.open", tracking_open):
            reader = self.get_reader("omssa_results.csv.gz")
        with reader:
            psms = list(reader)
        assert len(psms) == 3
        assert len(opened) == 1
        assert opened[0].closed

    def test_states(self):
        reader = self.get_reader()
        assert reader.state == ReaderState.created
        iterator = reader.read()
        next(iterator)
        assert reader.state == ReaderState.emitted
        list(iterator)
        assert reader.state == ReaderState.exhausted
        reader.close()
        assert reader.state == ReaderState.closed

    def test_read_after_close(self):
        reader = self.get_reader()
        reader.close()
        reader.close()
        assert reader.closed
        with self.assertRaises(ValueError):
            next(reader.read())

    def test_stream_released_on_abandon(self):
        reader = self.get_reader()
        iterator = reader.read()
        next(iterator)
        iterator.close()
        assert reader.handle.closed
        with self.assertRaises(ValueError):
            next(reader.read())
        reader.close()
