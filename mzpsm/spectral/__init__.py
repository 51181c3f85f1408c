from .translation import TranslationTable
from .base import (guess_implementation, SpectralFileBase, SpectralFileCollection)
from .mzml import MzMLFile
from .agilent import AgilentDDirectory, MassHunterSession
