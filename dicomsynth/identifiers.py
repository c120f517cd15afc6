import re
from datetime import datetime
from typing import Optional, Tuple

from pydicom.uid import generate_uid, PYDICOM_ROOT_UID, RE_VALID_UID_PREFIX

from .configuration import OrgPrefixConfig, PatientIdConfig, UPPERCASE, ALPHANUMERIC
from .errors import ConfigurationError
from .random_source import RandomSource

ACCESSION_LENGTH = 16
# Longest UID root generate_uid accepts
UID_PREFIX_MAX_LENGTH = 54


def sample_string(rng: RandomSource, alphabet: str, length: int) -> str:
    """Draws `length` characters independently from `alphabet`."""
    return "".join(rng.choice(alphabet) for _ in range(length))


class OrgPrefixGenerator:
    def __init__(self, rng: RandomSource, config: Optional[OrgPrefixConfig] = None):
        self.rng = rng
        self.config = config or OrgPrefixConfig()

    def next(self) -> str:
        alphabet = self.config.alphabet or UPPERCASE
        length = self.config.prefix_length if self.config.prefix_length > 0 else 3
        return sample_string(self.rng, alphabet, length)


class PatientIdGenerator:
    """
    Builds composite patient ids: {Organization}{Sep}{Initials}{Sep}{Code}{Sep}{Number}
    e.g. `QXD-JM-4K7Z0A-042`.
    """

    def __init__(self, rng: RandomSource, config: Optional[PatientIdConfig] = None):
        self.rng = rng
        self.config = config or PatientIdConfig()

    def next(self, organization: str) -> Tuple[str, str]:
        """
        Returns:
            Tuple[str, str]: (patient_id, patient_name). The name is a DICOM PN
            value `ORG^INITIALS`.
        """
        cfg = self.config
        initials_len = cfg.initials_length if cfg.initials_length > 0 else 2
        initials_alphabet = cfg.initials_alphabet if cfg.initials_alphabet and cfg.initials_alphabet.strip() else UPPERCASE
        code_len = cfg.random_code_length if cfg.random_code_length > 0 else 6
        code_alphabet = cfg.random_code_alphabet if cfg.random_code_alphabet and cfg.random_code_alphabet.strip() else ALPHANUMERIC
        number_digits = cfg.random_number_digits if cfg.random_number_digits > 0 else 3
        sep = cfg.separator if cfg.separator is not None else "-"

        initials = sample_string(self.rng, initials_alphabet, initials_len)
        code = sample_string(self.rng, code_alphabet, code_len)
        number = self.rng.digits(number_digits)

        patient_id = f"{organization}{sep}{initials}{sep}{code}{sep}{number}"
        patient_name = f"{organization}^{initials}"
        return patient_id, patient_name


def uid_prefix_error(prefix: str) -> Optional[str]:
    """
    Checks a UID root the way `generate_uid` does (numeric components
    without leading zeros, at most 54 characters including the trailing
    dot, which is added when missing). Returns the problem, or None.
    """
    if not prefix.endswith("."):
        prefix += "."
    if len(prefix) > UID_PREFIX_MAX_LENGTH:
        return f"'{prefix}' is longer than {UID_PREFIX_MAX_LENGTH} characters"
    if not re.match(RE_VALID_UID_PREFIX, prefix):
        return f"'{prefix}' is not a valid UID root (e.g. '1.2.826.0.1.3680043.8.498.')"
    return None


class UidGenerator:
    """
    Study/Series/SOP Instance UIDs from pydicom's hash-based generator.

    Entropy comes from the shared random stream plus a run-local counter, so a
    seeded run reproduces its UIDs and no two calls in a run share entropy.
    """

    def __init__(self, rng: RandomSource, prefix: Optional[str] = None):
        self.rng = rng
        error = uid_prefix_error(prefix) if prefix else None
        if error:
            raise ConfigurationError(f"uid_prefix: {error}")
        if prefix and not prefix.endswith("."):
            prefix += "."
        self.prefix = prefix or PYDICOM_ROOT_UID
        self._counter = 0

    def next(self) -> str:
        self._counter += 1
        entropy = [str(self._counter), str(self.rng.getrandbits(128))]
        return generate_uid(prefix=self.prefix, entropy_srcs=entropy)


def build_accession(exam_datetime: datetime, rng: RandomSource) -> str:
    """
    Exactly 16 characters (the VR SH limit): "%Y%m%d%H%M" (12) + 4 random digits.
    Example: 202511021602 + 7075 => "2025110216027075"
    """
    return exam_datetime.strftime("%Y%m%d%H%M") + rng.digits(4)
