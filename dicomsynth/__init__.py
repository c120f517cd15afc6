import warnings
# Suppress all pydicom warnings (e.g. strict UID validation)
warnings.filterwarnings("ignore", module="pydicom.*")

from .configuration import GeneratorConfiguration, RangeInt, ModalityProfile
from .config_manager import ConfigLoader
from .errors import ConfigurationError, DicomSynthError
from .generators import DicomStudyGenerator, DicomExamGenerator
from .population import PopulationDriver
from .random_source import RandomSource

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("dicomsynth")
except PackageNotFoundError:
    # Package is not installed
    __version__ = "0.0.0"

__all__ = [
    "GeneratorConfiguration", "RangeInt", "ModalityProfile", "ConfigLoader",
    "ConfigurationError", "DicomSynthError",
    "DicomStudyGenerator", "DicomExamGenerator", "PopulationDriver", "RandomSource",
]
