"""
Instance filename policies.

A policy is a plain function `(sop_instance_uid, instance_number) -> filename`.
The returned name never contains a directory separator and ends with `.dcm`.
Both policies embed the instance number, so the name always matches the
InstanceNumber attribute written into the file.
"""
import os
from typing import Callable, Dict

from .errors import ConfigurationError

FileNamer = Callable[[str, int], str]


def _format_number(instance_number: int, pad: int) -> str:
    return str(instance_number).zfill(pad) if pad > 0 else str(instance_number)


def uid_and_instance_namer(separator: str = "_", pad: int = 5) -> FileNamer:
    """
    Names files `{SOPInstanceUID}{sep}Instance{sep}{InstanceNumber}.dcm`, e.g.
    `1.2.826.0.1.3680043.8.498.123_Instance_00001.dcm`.
    """
    def build(sop_instance_uid: str, instance_number: int) -> str:
        safe_uid = sop_instance_uid.replace("/", ".").replace("\\", ".")
        if os.sep not in ("/", "\\"):
            safe_uid = safe_uid.replace(os.sep, ".")
        num = _format_number(instance_number, pad)
        return f"{safe_uid}{separator}Instance{separator}{num}.dcm"
    return build


def simple_namer(pad: int = 5, prefix: str = "IM") -> FileNamer:
    """Names files `IM{InstanceNumber}.dcm`, e.g. `IM00001.dcm`. The UID is not used."""
    def build(sop_instance_uid: str, instance_number: int) -> str:
        return f"{prefix}{_format_number(instance_number, pad)}.dcm"
    return build


_FACTORIES: Dict[str, Callable[..., FileNamer]] = {
    "uid_and_instance": lambda separator="_", pad=5: uid_and_instance_namer(separator, pad),
    "simple": lambda separator="_", pad=5: simple_namer(pad),
}

FILE_NAMING_POLICIES = tuple(_FACTORIES)


def get_file_namer(policy: str = "uid_and_instance", separator: str = "_", pad: int = 5) -> FileNamer:
    """
    Resolves a configured policy name into a filename function.

    Raises:
        ConfigurationError: If the policy name is unknown.
    """
    factory = _FACTORIES.get((policy or "").lower())
    if factory is None:
        raise ConfigurationError(f"Unknown file naming policy '{policy}'. Expected one of {FILE_NAMING_POLICIES}")
    return factory(separator=separator, pad=pad)
