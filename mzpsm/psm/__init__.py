from .base import (
    PeptideSpectralMatch, PeptideSpectralMatchScoreType, PsmReaderBase, ReaderState, SearchResult)
from .omssa import OmssaCsvPsmReader, OmssaPeptideSpectralMatch
