from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Dict, Any, Optional, NamedTuple

from .errors import ConfigurationError
from .random_source import RandomSource

UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ALPHANUMERIC = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

SERIES_SPLIT_POLICIES = ("partition", "equal")


@dataclass(frozen=True)
class RangeInt:
    """
    Inclusive integer range [min, max].

    Raises:
        ConfigurationError: If max < min. Checked at construction, so an
            invalid range never reaches a sampling call.
    """
    min: int
    max: int

    def __post_init__(self):
        if self.max < self.min:
            raise ConfigurationError(f"Range max ({self.max}) must be >= min ({self.min})")

    def sample(self, rng: RandomSource) -> int:
        return rng.sample_range(self.min, self.max)


@dataclass
class OrgPrefixConfig:
    prefix_length: int = 3
    alphabet: str = UPPERCASE


@dataclass
class PatientIdConfig:
    """
    Composition of the patient id: {org}{sep}{initials}{sep}{code}{sep}{number}.
    Non-positive lengths and blank alphabets fall back to the defaults.
    """
    initials_length: int = 2
    initials_alphabet: str = UPPERCASE
    random_code_length: int = 6
    random_code_alphabet: str = ALPHANUMERIC
    random_number_digits: int = 3
    separator: str = "-"


@dataclass
class DicomDefaults:
    rows: int = 128
    cols: int = 128
    bits_allocated: int = 8
    bits_stored: int = 8
    photometric_interpretation: str = "MONOCHROME2"


@dataclass
class ModalityProfile:
    """
    Per-modality overrides. Zero geometry/bit depth and an empty photometric
    interpretation mean "use the global default".
    """
    series_per_study: RangeInt = field(default_factory=lambda: RangeInt(1, 2))
    standard_study_file_counts: List[int] = field(default_factory=lambda: [64])
    series_descriptions: List[str] = field(default_factory=lambda: ["SeriesA", "SeriesB"])
    study_descriptions: List[str] = field(default_factory=lambda: ["Diagnostic"])
    rows: int = 0
    cols: int = 0
    bits_allocated: int = 0
    bits_stored: int = 0
    photometric_interpretation: str = ""


@dataclass
class ExamMixConfig:
    """
    Weighted exam mix: share of exact `pair_a` exams, exact `pair_b` exams
    and mixed exams sampled from the modality pool.
    """
    pair_a: List[str] = field(default_factory=lambda: ["CT", "PT"])
    pair_b: List[str] = field(default_factory=lambda: ["CT", "NM"])
    pair_a_percent: int = 0
    pair_b_percent: int = 0
    mixed_percent: int = 100


@dataclass
class FileNamingConfig:
    policy: str = "uid_and_instance"
    separator: str = "_"
    pad: int = 5


class Geometry(NamedTuple):
    rows: int
    cols: int


class PixelFormat(NamedTuple):
    bits_allocated: int
    bits_stored: int
    photometric_interpretation: str


def resolve_geometry(profile: ModalityProfile, defaults: DicomDefaults) -> Geometry:
    """Profile value when set (> 0), otherwise the global default."""
    rows = profile.rows if profile.rows > 0 else defaults.rows
    cols = profile.cols if profile.cols > 0 else defaults.cols
    return Geometry(rows, cols)


def resolve_pixel_format(profile: ModalityProfile, defaults: DicomDefaults) -> PixelFormat:
    """Profile bit depth / photometric interpretation when set, otherwise the global default."""
    allocated = profile.bits_allocated if profile.bits_allocated > 0 else defaults.bits_allocated
    stored = profile.bits_stored if profile.bits_stored > 0 else defaults.bits_stored
    photometric = profile.photometric_interpretation or defaults.photometric_interpretation
    return PixelFormat(allocated, min(stored, allocated), photometric)


@dataclass
class GeneratorConfiguration:
    """
    Encapsulates the full configuration of a population run.

    Attributes:
        output_root (str): Root folder for generated files.
        container (str): Folder created directly under the root.
        seed (Optional[int]): Seed of the shared random stream. None = non-reproducible.
        reference_datetime (Optional[datetime]): "Now" for date sampling. None = 2025-01-01T00:00:00Z when seeded, UTC now otherwise.
        num_organizations (int): Number of organizations to generate.
        patients_per_org (RangeInt): Patients per organization.
        exams_per_patient (RangeInt): Exams per patient.
        modalities_per_exam (RangeInt): Requested modality count per exam.
        modalities (List[str]): Modality pool.
        exam_mix (ExamMixConfig): Weighted pair/mixed exam policy.
        date_range_years (RangeInt): Year offset of a patient's base date relative to the reference.
        org_prefix (OrgPrefixConfig): Organization code composition.
        patient_id (PatientIdConfig): Patient id composition.
        defaults (DicomDefaults): Global imaging defaults.
        profiles (Dict[str, ModalityProfile]): Per-modality overrides (case-insensitive).
        file_naming (FileNamingConfig): Instance filename policy.
        series_split_policy (str): 'partition' or 'equal'.
        exam_folder_includes_description (bool): Suffix exam folders with the study description.
        unique_series_folders (bool): Suffix series folders with index and UID tail.
        uid_prefix (Optional[str]): UID root; None uses the pydicom root.
        read_back_accession (bool): Re-read the accession tag of the first written file.
        manifest_format (Optional[str]): 'json', 'csv' or 'html' to write a manifest.
        report_path (Optional[str]): Path of a Markdown run report.
        config_path (Optional[str]): Backing YAML file used by `save()`.
    """
    output_root: str = "out"
    container: str = "Dicom"
    seed: Optional[int] = 12345
    reference_datetime: Optional[datetime] = None

    num_organizations: int = 10
    patients_per_org: RangeInt = field(default_factory=lambda: RangeInt(10, 100))
    exams_per_patient: RangeInt = field(default_factory=lambda: RangeInt(1, 4))
    modalities_per_exam: RangeInt = field(default_factory=lambda: RangeInt(1, 6))
    modalities: List[str] = field(default_factory=lambda: ["CT", "PT", "MR", "NM", "XA", "CR", "SR"])
    exam_mix: ExamMixConfig = field(default_factory=ExamMixConfig)
    date_range_years: RangeInt = field(default_factory=lambda: RangeInt(-3, 0))

    org_prefix: OrgPrefixConfig = field(default_factory=OrgPrefixConfig)
    patient_id: PatientIdConfig = field(default_factory=PatientIdConfig)
    defaults: DicomDefaults = field(default_factory=DicomDefaults)
    profiles: Dict[str, ModalityProfile] = field(default_factory=dict)

    file_naming: FileNamingConfig = field(default_factory=FileNamingConfig)
    series_split_policy: str = "partition"
    exam_folder_includes_description: bool = False
    unique_series_folders: bool = True
    uid_prefix: Optional[str] = None
    read_back_accession: bool = True

    manifest_format: Optional[str] = None
    report_path: Optional[str] = None
    config_path: Optional[str] = None

    def __post_init__(self):
        if self.series_split_policy not in SERIES_SPLIT_POLICIES:
            raise ConfigurationError(
                f"series_split_policy must be one of {SERIES_SPLIT_POLICIES}, got '{self.series_split_policy}'"
            )
        # Profiles are looked up case-insensitively
        self.profiles = {k.upper(): v for k, v in self.profiles.items()}

    def profile_for(self, modality: str) -> Optional[ModalityProfile]:
        """Returns the profile for `modality`, or None when it has none."""
        if not modality:
            return None
        return self.profiles.get(modality.upper())

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("config_path", None)
        if self.reference_datetime is not None:
            data["reference_datetime"] = self.reference_datetime.isoformat()
        return data

    def save(self, path: Optional[str] = None) -> None:
        """
        Persists the configuration as YAML to `path` (or `config_path`).

        Short lists (ranges, modality pools, descriptions) are written
        flow-style for readability.
        """
        target = path or self.config_path
        if not target:
            return

        import yaml

        class FlowList(list): pass

        def flow_list_representer(dumper, data):
            return dumper.represent_sequence('tag:yaml.org,2002:seq', data, flow_style=True)

        dumper = type("FlowDumper", (yaml.SafeDumper,), {})
        dumper.add_representer(FlowList, flow_list_representer)

        def wrap(value):
            if isinstance(value, dict):
                return {k: wrap(v) for k, v in value.items()}
            if isinstance(value, list):
                return FlowList(wrap(v) for v in value)
            return value

        with open(target, 'w') as f:
            yaml.dump(wrap(self.to_dict()), f, Dumper=dumper, sort_keys=False, default_flow_style=False)
