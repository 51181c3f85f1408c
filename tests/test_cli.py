import logging
import unittest

from click.testing import CliRunner
from colorama import Fore, Style

from mzpsm.tools.cli import main
from mzpsm.tools.utils import ColoringFormatter, parse_fixed_modification

from .common import datafile


class TestCli(unittest.TestCase):

    def test_describe(self):
        runner = CliRunner()
        result = runner.invoke(main, ["describe", datafile("small.mzML")])
        assert result.exit_code == 0, result.output
        assert "Format: mzml" in result.output
        assert "Spectrum Count: 3" in result.output
        assert "MS2 Spectra: 2" in result.output

    def test_read_psms(self):
        runner = CliRunner()
        result = runner.invoke(main, [
            "read-psms", datafile("omssa_results.csv"),
            "-x", "carbamidomethyl C:C",
            "-e", "Accession",
        ])
        assert result.exit_code == 0, result.output
        lines = [line for line in result.output.splitlines() if "\t" in line]
        assert len(lines) == 4
        header = lines[0].split("\t")
        assert header[-1] == "Accession"
        fields = lines[2].split("\t")
        assert fields[2] == "CAKEMK"
        assert fields[3].startswith("C[+57.021464]")
        assert fields[6] == "1"
        assert fields[-1] == "BL_ORD_ID:2"

    def test_read_psms_bad_modification(self):
        runner = CliRunner()
        result = runner.invoke(main, ["read-psms", datafile("omssa_bad_mods.csv")])
        assert result.exit_code != 0
        assert "oxidation of M:x" in result.output


class TestColoringFormatter(unittest.TestCase):

    def make_record(self, level):
        return logging.LogRecord("mzpsm.psm", level, __file__, 1, "Opened %s", ("sample1.mzML",), None)

    def test_level_colors(self):
        formatter = ColoringFormatter("%(levelname).1s | %(name)s | %(message)s")
        warning = formatter.format(self.make_record(logging.WARNING))
        assert warning.startswith(Fore.YELLOW + Style.BRIGHT + "W" + Style.RESET_ALL)
        assert Fore.BLUE + "mzpsm.psm" + Style.RESET_ALL in warning
        assert warning.endswith("Opened sample1.mzML")
        info = formatter.format(self.make_record(logging.INFO))
        assert info.startswith(Fore.GREEN + "I" + Style.RESET_ALL)

    def test_unlisted_level(self):
        formatter = ColoringFormatter("%(levelname)s %(message)s")
        text = formatter.format(self.make_record(25))
        assert text == "Level 25 Opened sample1.mzML"

    def test_parse_fixed_modification(self):
        assert parse_fixed_modification("carbamidomethyl C:C") == ("carbamidomethyl C", ["C"])
        assert parse_fixed_modification("deamidation of N and Q: NQ") == ("deamidation of N and Q", ["N", "Q"])
        assert parse_fixed_modification("oxidation of M") == ("oxidation of M", None)
