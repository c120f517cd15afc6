import numpy as np
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional


# --- Base Classes ---

@dataclass(slots=True)
class DicomItem:
    """
    Base class for any entity that holds DICOM attributes.
    Attributes are keyed by hex tag, e.g. '0010,0020'.
    """
    # init=False to avoid constructor conflicts during inheritance
    attributes: Dict[str, Any] = field(init=False)

    def __post_init__(self):
        self.attributes = {}

    def set_attr(self, tag: str, value: Any):
        """Sets a generic attribute by its hex tag (e.g., '0010,0010')."""
        self.attributes[tag.upper()] = value

    def get_attr(self, tag: str, default: Any = None) -> Any:
        return self.attributes.get(tag.upper(), default)


# --- Population ---

@dataclass(frozen=True, slots=True)
class Organization:
    """A synthetic facility. Codes are unique per run index only."""
    code: str


@dataclass(frozen=True, slots=True)
class Patient:
    """
    A synthetic subject. `base_datetime` is fixed once and reused for every
    exam of the patient.
    """
    patient_id: str
    patient_name: str
    organization: str
    base_datetime: datetime


# --- Generated Objects ---

@dataclass(slots=True)
class Instance(DicomItem):
    """
    One generated SOP Instance: its attribute set plus the single-frame
    pixel buffer. Built, written and discarded.
    """
    sop_instance_uid: str = ""
    sop_class_uid: str = ""
    instance_number: int = 0

    file_path: Optional[str] = None
    pixel_array: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        DicomItem.__post_init__(self)
        self.set_attr("0008,0018", self.sop_instance_uid)
        self.set_attr("0008,0016", self.sop_class_uid)
        self.set_attr("0020,0013", self.instance_number)

    def set_pixel_data(self, array: np.ndarray):
        """
        Sets the pixel array and updates Rows/Columns/SamplesPerPixel.
        Only single-frame 2D (monochrome) or 3D (rows, cols, samples) arrays are accepted.
        """
        shape = array.shape
        if array.ndim == 2:
            rows, cols = shape
            samples = 1
        elif array.ndim == 3 and shape[-1] in (3, 4):
            rows, cols, samples = shape
        else:
            raise ValueError(f"Unsupported pixel array shape: {shape}")

        self.pixel_array = array
        self.set_attr("0028,0010", rows)
        self.set_attr("0028,0011", cols)
        self.set_attr("0028,0002", samples)


@dataclass(frozen=True, slots=True)
class InstanceRecord:
    """
    Lightweight trace of a written instance (what survives after the
    Instance itself is discarded).
    """
    patient_id: str
    accession_number: str
    study_instance_uid: str
    series_instance_uid: str
    sop_instance_uid: str
    sop_class_uid: str
    modality: str
    instance_number: int
    file_path: str
    file_size_bytes: int = 0


@dataclass(slots=True)
class SeriesResult:
    series_instance_uid: str
    series_number: int
    series_description: str
    directory: str
    instance_count: int


@dataclass(slots=True)
class StudyResult:
    """Outcome of one study: its series, written paths and instance records."""
    modality: str
    study_instance_uid: str
    study_description: str
    series: List[SeriesResult] = field(default_factory=list)
    files: List[str] = field(default_factory=list)
    records: List[InstanceRecord] = field(default_factory=list)

    @property
    def series_count(self) -> int:
        return len(self.series)

    @property
    def file_count(self) -> int:
        return len(self.files)


@dataclass(slots=True)
class ExamResult:
    """
    Outcome of one exam: the shared accession number and one study per
    modality.
    """
    accession_number: str
    exam_datetime: datetime
    studies: List[StudyResult] = field(default_factory=list)
    patient_id: str = ""
    organization: str = ""

    @property
    def modalities(self) -> List[str]:
        return [s.modality for s in self.studies]

    @property
    def series_count(self) -> int:
        return sum(s.series_count for s in self.studies)

    @property
    def file_count(self) -> int:
        return sum(s.file_count for s in self.studies)

    @property
    def files(self) -> List[str]:
        return [f for s in self.studies for f in s.files]
