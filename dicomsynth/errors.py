from typing import List, Optional


class DicomSynthError(Exception):
    """Base class for all generator errors."""


class ConfigurationError(DicomSynthError, ValueError):
    """
    Raised for a missing/blank required argument or an invalid setting
    (e.g. a range whose max is below its min). Always raised before any
    directory or file is touched.
    """


class ConfigValidationError(ConfigurationError):
    """
    Raised when a configuration file fails schema validation.
    All collected problems are kept in `errors`.
    """
    def __init__(self, errors: List[str], source: Optional[str] = None):
        self.errors = list(errors)
        self.source = source
        where = f" in {source}" if source else ""
        details = "\n  - ".join(self.errors)
        super().__init__(f"Invalid configuration{where}:\n  - {details}")


class DicomWriteError(DicomSynthError, OSError):
    """Raised when an instance cannot be written to disk."""


class DatasetValidationError(DicomSynthError):
    """Raised when a generated dataset misses attributes its SOP class requires."""
    def __init__(self, path: str, errors: List[str]):
        self.path = path
        self.errors = list(errors)
        super().__init__(f"Generated dataset for {path} is invalid: {'; '.join(self.errors)}")
