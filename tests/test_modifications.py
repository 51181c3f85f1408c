import math
import unittest

from mzpsm.exceptions import ModificationParseError
from mzpsm.modifications import (
    ModificationDictionary, default_modifications, load_modifications, parse_variable_modifications)
from mzpsm.peptide import Modification

from .common import datafile


class TestModificationDictionary(unittest.TestCase):

    def test_default_modifications(self):
        modifications = default_modifications()
        oxidation = modifications["oxidation of M"]
        assert oxidation.monoisotopic_mass == 15.994915
        assert oxidation.average_mass == 15.9994
        assert oxidation.residues == ("M",)
        assert "carbamidomethyl C" in modifications
        assert len(modifications) == 92

    def test_default_modification_targets(self):
        modifications = default_modifications()
        assert modifications["sodium adduct of D and E"].residues == ("D", "E")
        assert modifications["acetylation of protein n-term"].residues == ()
        assert modifications["pyro-glu from n-term Q"].monoisotopic_mass == -17.026549
        assert modifications["iTRAQ8plex on K"].average_mass == 304.3074

    def test_load_is_cached(self):
        path = datafile("usermods.xml")
        first = load_modifications(path)
        second = load_modifications(path)
        assert first is second
        assert default_modifications() is default_modifications()
        assert first is not default_modifications()

    def test_user_modifications(self):
        modifications = load_modifications(datafile("usermods.xml"))
        assert len(modifications) == 2
        assert modifications["oxidation of M"].monoisotopic_mass == 16.0
        assert modifications["propionylation of K"].residues == ("K",)
        assert modifications.source.endswith("usermods.xml")

    def test_immutable(self):
        modifications = ModificationDictionary([Modification("test", 1.0, 1.0)])
        with self.assertRaises(TypeError):
            modifications["other"] = Modification("other")
        assert modifications["test"].monoisotopic_mass == 1.0


class TestParseVariableModifications(unittest.TestCase):

    def test_parse(self):
        result = parse_variable_modifications("Oxidation:3;Phospho:7")
        assert result == [("Oxidation", 3), ("Phospho", 7)]

    def test_mixed_delimiters(self):
        result = parse_variable_modifications("oxidation of M:5, methylation of K:3;Phospho:1")
        assert result == [("oxidation of M", 5), ("methylation of K", 3), ("Phospho", 1)]

    def test_empty(self):
        assert parse_variable_modifications("") == []
        assert parse_variable_modifications(None) == []
        assert parse_variable_modifications(" ; ") == []

    def test_bad_position(self):
        with self.assertRaises(ModificationParseError) as ctx:
            parse_variable_modifications("Oxidation:x")
        assert ctx.exception.token == "Oxidation:x"
        assert isinstance(ctx.exception, ValueError)

    def test_missing_position(self):
        with self.assertRaises(ModificationParseError):
            parse_variable_modifications("Oxidation")


class TestModification(unittest.TestCase):

    def test_unresolved(self):
        modification = Modification("mystery")
        assert not modification.is_resolved
        assert math.isnan(modification.monoisotopic_mass)
        assert modification == Modification("mystery", 1.0)
