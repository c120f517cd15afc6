"""
Study and exam generation.

A study is one modality's imaging episode (one or more series, each with N
instances), written to:

    <OutputRoot>/<container>/<Organization>/<PatientId>/<YYYYMMDD_HHMMSS>/<Modality SeriesDescription_Snn_UID6>/*.dcm

An exam threads one accession number through one study per modality.
"""
import os
from datetime import datetime
from typing import List, Optional

from .builders import InstanceMetadataBuilder, SeriesContext
from .configuration import GeneratorConfiguration, ModalityProfile, resolve_geometry, resolve_pixel_format
from .entities import StudyResult, SeriesResult, ExamResult, InstanceRecord
from .errors import ConfigurationError
from .identifiers import UidGenerator, build_accession
from .io_handlers import DicomWriter, read_accession
from .logger import get_logger
from .naming import FileNamer, get_file_namer
from .partition import SeriesCountPartitioner
from .random_source import RandomSource
from .sanitizer import sanitize_path_segment, safe_tail

DEFAULT_STUDY_DESCRIPTION = "Diagnostic"
DEFAULT_FILE_COUNT = 64


def _require(value: Optional[str], name: str):
    if value is None or not str(value).strip():
        raise ConfigurationError(f"{name} is required")


class DicomStudyGenerator:
    """
    Generates one synthetic study. Stateless between calls apart from the
    shared random stream and UID generator.
    """

    def __init__(self, config: GeneratorConfiguration, rng: RandomSource,
                 writer: Optional[DicomWriter] = None,
                 uid_generator: Optional[UidGenerator] = None,
                 file_namer: Optional[FileNamer] = None):
        if config is None:
            raise ConfigurationError("config is required")
        if rng is None:
            raise ConfigurationError("rng is required")
        self.config = config
        self.rng = rng
        self.writer = writer or DicomWriter()
        self.uids = uid_generator or UidGenerator(rng, config.uid_prefix)
        naming = config.file_naming
        self.file_namer = file_namer or get_file_namer(naming.policy, naming.separator, naming.pad)
        self.partitioner = SeriesCountPartitioner(rng)
        self.logger = get_logger()

    def generate_study(self, output_root: str, organization: str, patient_id: str, patient_name: str,
                       modality: str, study_datetime: datetime, accession_number: str) -> StudyResult:
        """
        Generates and writes all series of one study.

        Args:
            output_root (str): Root output folder.
            organization (str): Organization code (first folder level).
            patient_id (str): Patient ID, also the patient folder.
            patient_name (str): DICOM PN value.
            modality (str): Modality code; selects the profile and SOP class.
            study_datetime (datetime): Exam datetime (UTC); names the exam folder.
            accession_number (str): Accession shared by the whole exam.

        Returns:
            StudyResult: Series, written paths and instance records.

        Raises:
            ConfigurationError: On a blank required argument, before any I/O.
            DicomWriteError: If an instance cannot be written.
        """
        _require(output_root, "output_root")
        _require(organization, "organization")
        _require(patient_id, "patient_id")
        _require(modality, "modality")
        _require(accession_number, "accession_number")
        if study_datetime is None:
            raise ConfigurationError("study_datetime is required")

        cfg = self.config
        profile = cfg.profile_for(modality) or ModalityProfile()

        study_description = self._pick_study_description(profile)
        geometry = resolve_geometry(profile, cfg.defaults)
        pixel_format = resolve_pixel_format(profile, cfg.defaults)
        per_series = self._instance_counts(profile)

        # Folder structure
        org_folder = sanitize_path_segment(organization)
        patient_folder = sanitize_path_segment(patient_id)
        exam_folder = study_datetime.strftime("%Y%m%d_%H%M%S")
        if cfg.exam_folder_includes_description:
            exam_folder = f"{exam_folder}_{study_description}"
        exam_folder = sanitize_path_segment(exam_folder)
        exam_dir = os.path.join(output_root, cfg.container, org_folder, patient_folder, exam_folder)

        study_uid = self.uids.next()
        result = StudyResult(modality, study_uid, study_description)
        used_dirs = set()

        for s, count in enumerate(per_series):
            series_number = s + 1
            series_desc = self._series_description(profile, s)
            series_uid = self.uids.next()

            series_dir = self._series_dir(exam_dir, modality, series_desc, series_number, series_uid, used_dirs)
            used_dirs.add(series_dir)
            os.makedirs(series_dir, exist_ok=True)

            builder = InstanceMetadataBuilder(SeriesContext(
                patient_id=patient_id,
                patient_name=patient_name or "",
                accession_number=accession_number,
                study_instance_uid=study_uid,
                study_description=study_description,
                study_datetime=study_datetime,
                modality=modality,
                series_instance_uid=series_uid,
                series_number=series_number,
                series_description=series_desc,
                geometry=geometry,
                pixel_format=pixel_format,
            ))

            for i in range(count):
                instance_number = i + 1
                sop_uid = self.uids.next()
                path = os.path.join(series_dir, self.file_namer(sop_uid, instance_number))

                inst = builder.build(sop_uid, instance_number)
                self.writer.write_instance(inst, path)

                result.files.append(path)
                result.records.append(InstanceRecord(
                    patient_id=patient_id,
                    accession_number=accession_number,
                    study_instance_uid=study_uid,
                    series_instance_uid=series_uid,
                    sop_instance_uid=sop_uid,
                    sop_class_uid=inst.sop_class_uid,
                    modality=modality,
                    instance_number=instance_number,
                    file_path=path,
                    file_size_bytes=os.path.getsize(path),
                ))

            result.series.append(SeriesResult(series_uid, series_number, series_desc, series_dir, count))

            if s == 0 and cfg.read_back_accession and count > 0:
                # Realism check only; never affects the output
                acc = read_accession(result.files[0])
                if acc is not None:
                    self.logger.debug(f"  [Study {modality}] AccessionNumber from metadata: {acc}")

            self.logger.info(f"Generated {count} DICOM files at: {series_dir}")

        return result

    def _series_dir(self, exam_dir: str, modality: str, series_desc: str, series_number: int,
                    series_uid: str, used_dirs: set) -> str:
        """
        Series folder `<Modality> <SeriesDescription>`, suffixed with `_Sxx_UID6`
        when `unique_series_folders` is set or when the plain name is already
        taken (earlier series of this study, or an earlier exam writing into
        the same exam folder).
        """
        plain = os.path.join(exam_dir, sanitize_path_segment(f"{modality} {series_desc}"))
        if not self.config.unique_series_folders and plain not in used_dirs and not os.path.exists(plain):
            return plain
        suffixed = f"{modality} {series_desc}_S{series_number:02d}_{safe_tail(series_uid, 6)}"
        return os.path.join(exam_dir, sanitize_path_segment(suffixed))

    def _pick_study_description(self, profile: ModalityProfile) -> str:
        choices = [d for d in (profile.study_descriptions or []) if d and d.strip()]
        if not choices:
            return DEFAULT_STUDY_DESCRIPTION
        return self.rng.choice(choices)

    @staticmethod
    def _series_description(profile: ModalityProfile, index: int) -> str:
        descriptions = profile.series_descriptions or []
        if descriptions:
            return descriptions[index % len(descriptions)]
        return f"Series{index + 1}"

    def _instance_counts(self, profile: ModalityProfile) -> List[int]:
        series_count = profile.series_per_study.sample(self.rng) if profile.series_per_study else 1
        if series_count <= 0:
            series_count = 1

        counts = [c for c in (profile.standard_study_file_counts or []) if c > 0]
        count = self.rng.choice(counts) if counts else DEFAULT_FILE_COUNT

        return self.partitioner.split(self.config.series_split_policy, count, series_count)


class DicomExamGenerator:
    """
    Coordinates an exam (clinical encounter) made of one study per modality.
    All studies and instances of the exam share one AccessionNumber.
    """

    def __init__(self, config: GeneratorConfiguration, rng: RandomSource,
                 writer: Optional[DicomWriter] = None,
                 study_generator: Optional[DicomStudyGenerator] = None):
        if config is None:
            raise ConfigurationError("config is required")
        if rng is None:
            raise ConfigurationError("rng is required")
        self.config = config
        self.rng = rng
        self.study_generator = study_generator or DicomStudyGenerator(config, rng, writer=writer)

    def generate_exam(self, output_root: str, organization: str, patient_id: str, patient_name: str,
                      exam_datetime: datetime, modalities: List[str]) -> ExamResult:
        """
        Generates one exam with one study per modality.

        Raises:
            ConfigurationError: On a blank required argument or an empty modality list.
        """
        _require(output_root, "output_root")
        _require(organization, "organization")
        _require(patient_id, "patient_id")
        if not modalities:
            raise ConfigurationError("At least one modality required")
        for m in modalities:
            _require(m, "modality")
        if exam_datetime is None:
            raise ConfigurationError("exam_datetime is required")

        accession = build_accession(exam_datetime, self.rng)
        result = ExamResult(accession, exam_datetime, patient_id=patient_id, organization=organization)

        for modality in modalities:
            study = self.study_generator.generate_study(
                output_root,
                organization,
                patient_id,
                patient_name,
                modality,
                exam_datetime,
                accession,
            )
            result.studies.append(study)

        return result
