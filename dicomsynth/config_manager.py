import os
from dataclasses import fields
from datetime import datetime, date
from typing import List, Dict, Any, Optional

import yaml

from .configuration import (
    GeneratorConfiguration, RangeInt, OrgPrefixConfig, PatientIdConfig, DicomDefaults,
    ModalityProfile, ExamMixConfig, FileNamingConfig, SERIES_SPLIT_POLICIES,
)
from .errors import ConfigValidationError
from .identifiers import uid_prefix_error
from .logger import get_logger
from .naming import FILE_NAMING_POLICIES

MANIFEST_FORMATS = ("json", "csv", "html")

RANGE_FIELDS = ("patients_per_org", "exams_per_patient", "modalities_per_exam", "date_range_years")

SECTIONS = {
    "exam_mix": ExamMixConfig,
    "org_prefix": OrgPrefixConfig,
    "patient_id": PatientIdConfig,
    "defaults": DicomDefaults,
    "file_naming": FileNamingConfig,
}

# Spellings used by older configuration files
ALIASES = {
    GeneratorConfiguration: {"numorgs": "num_organizations", "orgprefix": "org_prefix", "seriessplit": "series_split_policy"},
    ExamMixConfig: {"ctptpercent": "pair_a_percent", "ctnmpercent": "pair_b_percent"},
    DicomDefaults: {"columns": "cols"},
    ModalityProfile: {"columns": "cols"},
}


def _norm(key: Any) -> str:
    return str(key).replace("_", "").replace("-", "").lower()


def _field_map(cls) -> Dict[str, str]:
    known = {_norm(f.name): f.name for f in fields(cls)}
    known.update(ALIASES.get(cls, {}))
    return known


def _canonical_keys(data: Dict[str, Any], cls, context: str) -> Dict[str, Any]:
    """Maps PascalCase / snake_case / kebab-case keys onto dataclass field names."""
    known = _field_map(cls)
    out = {}
    for key, value in data.items():
        name = known.get(_norm(key))
        if name is None:
            get_logger().warning(f"Config Warning: Ignoring unknown key '{context}{key}'.")
            continue
        out[name] = value
    return out


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class RangeValidator:
    """Validates an inclusive {min, max} range definition."""

    @staticmethod
    def validate(value: Any, context: str = "range", minimum: Optional[int] = None) -> List[str]:
        if not isinstance(value, dict):
            return [f"{context}: must be an object with 'min' and 'max'"]
        keys = {_norm(k): v for k, v in value.items()}
        errors = []
        for bound in ("min", "max"):
            if bound not in keys:
                errors.append(f"{context}: missing '{bound}'")
            elif not _is_int(keys[bound]):
                errors.append(f"{context}.{bound}: must be an integer")
            elif minimum is not None and keys[bound] < minimum:
                errors.append(f"{context}.{bound}: must be >= {minimum}")
        if not errors and keys["max"] < keys["min"]:
            errors.append(f"{context}: max ({keys['max']}) must be greater than or equal to min ({keys['min']})")
        return errors


class ConfigSchemaValidator:
    """
    Validates a canonicalized configuration document.
    Collects every problem instead of stopping at the first one.
    """

    @staticmethod
    def validate(data: Dict[str, Any]) -> List[str]:
        errors: List[str] = []

        for name in SECTIONS:
            if name in data and not isinstance(data[name], dict):
                errors.append(f"{name}: must be an object")
                data = {k: v for k, v in data.items() if k != name}

        seed = data.get("seed")
        if seed is not None and not _is_int(seed):
            errors.append("seed: must be an integer or null")

        n_orgs = data.get("num_organizations", 0)
        if not _is_int(n_orgs) or n_orgs < 0:
            errors.append("num_organizations: must be a non-negative integer")

        for name in RANGE_FIELDS:
            if name in data:
                minimum = None if name == "date_range_years" else 0
                errors.extend(RangeValidator.validate(data[name], context=name, minimum=minimum))

        modalities = data.get("modalities", [])
        if not isinstance(modalities, list) or not all(isinstance(m, str) for m in modalities):
            errors.append("modalities: must be a list of strings")

        for name in ("output_root", "container"):
            if name in data and (not isinstance(data[name], str) or not data[name].strip()):
                errors.append(f"{name}: must be a non-empty string")

        ref = data.get("reference_datetime")
        if ref is not None and not isinstance(ref, (datetime, date)):
            try:
                datetime.fromisoformat(str(ref))
            except ValueError:
                errors.append(f"reference_datetime: '{ref}' is not an ISO 8601 datetime")

        errors.extend(ConfigSchemaValidator._validate_exam_mix(data.get("exam_mix", {})))
        errors.extend(ConfigSchemaValidator._validate_defaults(data.get("defaults", {})))
        errors.extend(ConfigSchemaValidator._validate_naming(data.get("file_naming", {})))

        for name in ("org_prefix", "patient_id"):
            section = data.get(name, {})
            for key, value in section.items():
                if key.endswith(("length", "digits")) and not _is_int(value):
                    errors.append(f"{name}.{key}: must be an integer")
                elif (key.endswith("alphabet") or key == "separator") and not isinstance(value, str):
                    errors.append(f"{name}.{key}: must be a string")

        profiles = data.get("profiles", {})
        if not isinstance(profiles, dict):
            errors.append("profiles: must be an object keyed by modality")
        else:
            for modality, profile in profiles.items():
                errors.extend(ConfigSchemaValidator._validate_profile(profile, f"profiles.{modality}"))

        policy = data.get("series_split_policy", "partition")
        if policy not in SERIES_SPLIT_POLICIES:
            errors.append(f"series_split_policy: must be one of {list(SERIES_SPLIT_POLICIES)}")

        prefix = data.get("uid_prefix")
        if prefix is not None:
            if not isinstance(prefix, str):
                errors.append("uid_prefix: must be a string or null")
            elif prefix.strip():
                problem = uid_prefix_error(prefix.strip())
                if problem:
                    errors.append(f"uid_prefix: {problem}")

        fmt = data.get("manifest_format")
        if fmt is not None and str(fmt).lower() not in MANIFEST_FORMATS:
            errors.append(f"manifest_format: must be one of {list(MANIFEST_FORMATS)}")

        return errors

    @staticmethod
    def _validate_exam_mix(mix: Dict[str, Any]) -> List[str]:
        errors = []
        for key in ("pair_a_percent", "pair_b_percent", "mixed_percent"):
            if key in mix and (not _is_int(mix[key]) or mix[key] < 0):
                errors.append(f"exam_mix.{key}: must be a non-negative integer")
        for key in ("pair_a", "pair_b"):
            pair = mix.get(key)
            if pair is not None and (not isinstance(pair, list) or len(pair) != 2
                                     or not all(isinstance(m, str) for m in pair)):
                errors.append(f"exam_mix.{key}: must be a list of exactly 2 modality codes")
        return errors

    @staticmethod
    def _validate_defaults(defaults: Dict[str, Any]) -> List[str]:
        errors = []
        for key in ("rows", "cols"):
            if key in defaults and (not _is_int(defaults[key]) or defaults[key] < 1):
                errors.append(f"defaults.{key}: must be a positive integer")
        allocated = defaults.get("bits_allocated", 8)
        stored = defaults.get("bits_stored", allocated)
        if allocated not in (8, 16):
            errors.append("defaults.bits_allocated: must be 8 or 16")
        elif not _is_int(stored) or not 1 <= stored <= allocated:
            errors.append("defaults.bits_stored: must be between 1 and bits_allocated")
        return errors

    @staticmethod
    def _validate_naming(naming: Dict[str, Any]) -> List[str]:
        errors = []
        policy = naming.get("policy", "uid_and_instance")
        if str(policy).lower() not in FILE_NAMING_POLICIES:
            errors.append(f"file_naming.policy: must be one of {list(FILE_NAMING_POLICIES)}")
        pad = naming.get("pad", 5)
        if not _is_int(pad) or pad < 0:
            errors.append("file_naming.pad: must be a non-negative integer")
        return errors

    @staticmethod
    def _validate_profile(profile: Any, context: str) -> List[str]:
        if not isinstance(profile, dict):
            return [f"{context}: must be an object"]
        errors = []
        if "series_per_study" in profile:
            errors.extend(RangeValidator.validate(profile["series_per_study"], f"{context}.series_per_study", minimum=0))
        counts = profile.get("standard_study_file_counts", [])
        if not isinstance(counts, list) or not all(_is_int(c) and c > 0 for c in counts):
            errors.append(f"{context}.standard_study_file_counts: must be a list of positive integers")
        for key in ("series_descriptions", "study_descriptions"):
            values = profile.get(key, [])
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                errors.append(f"{context}.{key}: must be a list of strings")
        for key in ("rows", "cols", "bits_allocated", "bits_stored"):
            if key in profile and (not _is_int(profile[key]) or profile[key] < 0):
                errors.append(f"{context}.{key}: must be a non-negative integer (0 = use default)")
        if profile.get("bits_allocated", 0) not in (0, 8, 16):
            errors.append(f"{context}.bits_allocated: must be 0, 8 or 16")
        return errors


class ConfigLoader:
    @staticmethod
    def load(filepath: str) -> GeneratorConfiguration:
        """
        Loads a generator configuration from a YAML (or JSON) file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not valid YAML/JSON.
            ConfigValidationError: If the document fails schema validation.
        """
        data = ConfigLoader._load_yaml(filepath)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigValidationError(["configuration root must be an object"], source=filepath)

        config = ConfigLoader.from_dict(data, source=filepath)
        config.config_path = filepath
        get_logger().info(f"Loaded configuration from {filepath}.")
        return config

    @staticmethod
    def from_dict(data: Dict[str, Any], source: Optional[str] = None) -> GeneratorConfiguration:
        """Validates a raw configuration mapping and builds the dataclass tree."""
        canonical = ConfigLoader._canonicalize(data)
        errors = ConfigSchemaValidator.validate(canonical)
        if errors:
            raise ConfigValidationError(errors, source=source)
        return ConfigLoader._build(canonical)

    @staticmethod
    def _load_yaml(filepath: str) -> Any:
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        try:
            with open(filepath, 'r') as f:
                return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML format in {filepath}: {e}")

    @staticmethod
    def _canonicalize(data: Dict[str, Any]) -> Dict[str, Any]:
        canonical = _canonical_keys(data, GeneratorConfiguration, "")
        for name, cls in SECTIONS.items():
            section = canonical.get(name)
            if isinstance(section, dict):
                canonical[name] = _canonical_keys(section, cls, f"{name}.")
        profiles = canonical.get("profiles")
        if isinstance(profiles, dict):
            canonical["profiles"] = {
                str(mod): _canonical_keys(p, ModalityProfile, f"profiles.{mod}.") if isinstance(p, dict) else p
                for mod, p in profiles.items()
            }
        return canonical

    @staticmethod
    def _range(value: Dict[str, Any]) -> RangeInt:
        keys = {_norm(k): v for k, v in value.items()}
        return RangeInt(keys["min"], keys["max"])

    @staticmethod
    def _build(data: Dict[str, Any]) -> GeneratorConfiguration:
        kwargs = dict(data)

        for name in RANGE_FIELDS:
            if name in kwargs:
                kwargs[name] = ConfigLoader._range(kwargs[name])

        for name, cls in SECTIONS.items():
            if name in kwargs:
                kwargs[name] = cls(**kwargs[name])

        if "profiles" in kwargs:
            profiles = {}
            for modality, raw in kwargs["profiles"].items():
                raw = dict(raw)
                if "series_per_study" in raw:
                    raw["series_per_study"] = ConfigLoader._range(raw["series_per_study"])
                profiles[modality] = ModalityProfile(**raw)
            kwargs["profiles"] = profiles

        ref = kwargs.get("reference_datetime")
        if ref is not None:
            if isinstance(ref, datetime):
                kwargs["reference_datetime"] = ref
            elif isinstance(ref, date):
                kwargs["reference_datetime"] = datetime(ref.year, ref.month, ref.day)
            else:
                kwargs["reference_datetime"] = datetime.fromisoformat(str(ref))

        if kwargs.get("manifest_format"):
            kwargs["manifest_format"] = str(kwargs["manifest_format"]).lower()

        return GeneratorConfiguration(**kwargs)
