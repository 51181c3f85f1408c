"""Mass spectrometry file and search result interoperability."""

from mzpsm.exceptions import MzPsmError, FileAccessError, OutOfRangeError, ModificationParseError

from mzpsm.spectrum import (
    Spectrum, MsnSpectrum, MzSpectrum, MassRange, Polarity, MZAnalyzerType, DissociationType)
from mzpsm.peptide import Modification, FixedModification, Peptide, Protein
from mzpsm.modifications import (
    ModificationDictionary, load_modifications, default_modifications, parse_variable_modifications)

from mzpsm.spectral import (
    SpectralFileBase, SpectralFileCollection, guess_implementation, MzMLFile, AgilentDDirectory)
from mzpsm.psm import (
    PeptideSpectralMatch, PeptideSpectralMatchScoreType, PsmReaderBase, ReaderState,
    OmssaCsvPsmReader, OmssaPeptideSpectralMatch)
