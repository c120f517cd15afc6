import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from tqdm import tqdm

from .configuration import GeneratorConfiguration
from .entities import Organization, Patient, ExamResult
from .generators import DicomExamGenerator
from .identifiers import OrgPrefixGenerator, PatientIdGenerator
from .io_handlers import DicomWriter
from .logger import get_logger
from .manifest import Manifest, ManifestItem, generate_manifest_file
from .random_source import RandomSource
from .reporting import GenerationReport, get_renderer
from .selection import ExamMixSelector


# Reference datetime of seeded runs that configure none
SEEDED_REFERENCE = datetime(2025, 1, 1, tzinfo=timezone.utc)


def shift_years(dt: datetime, years: int) -> datetime:
    """Moves `dt` by whole calendar years; Feb 29 lands on Feb 28 in non-leap years."""
    try:
        return dt.replace(year=dt.year + years)
    except ValueError:
        return dt.replace(year=dt.year + years, day=28)


@dataclass
class PopulationMetrics:
    organizations: int = 0
    patients: int = 0
    exams: int = 0
    studies: int = 0
    series: int = 0
    files: int = 0
    files_by_modality: Dict[str, int] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    def add_exam(self, exam: ExamResult):
        self.exams += 1
        for study in exam.studies:
            self.studies += 1
            self.series += study.series_count
            self.files += study.file_count
            key = study.modality.upper()
            self.files_by_modality[key] = self.files_by_modality.get(key, 0) + study.file_count

    def summary_lines(self) -> List[str]:
        lines = [
            "== Metrics ==",
            f"Organizations: {self.organizations}",
            f"Patients:      {self.patients}",
            f"Exams:         {self.exams}",
            f"Studies:       {self.studies}",
            f"Series:        {self.series}",
            f"Files:         {self.files}",
            "",
            "Files by Modality:",
        ]
        for modality, count in sorted(self.files_by_modality.items()):
            lines.append(f"  {modality}: {count}")
        return lines


@dataclass
class PopulationResult:
    """Everything a run produced, minus the files themselves."""
    output_root: str
    seed: Optional[int]
    metrics: PopulationMetrics
    exams: List[ExamResult] = field(default_factory=list)

    @property
    def files(self) -> List[str]:
        return [f for e in self.exams for f in e.files]

    def to_manifest(self, project_name: str = "dicomsynth") -> Manifest:
        items = []
        for exam in self.exams:
            for study in exam.studies:
                for rec in study.records:
                    items.append(ManifestItem(
                        patient_id=rec.patient_id,
                        accession_number=rec.accession_number,
                        study_instance_uid=rec.study_instance_uid,
                        series_instance_uid=rec.series_instance_uid,
                        sop_instance_uid=rec.sop_instance_uid,
                        sop_class_uid=rec.sop_class_uid,
                        modality=rec.modality,
                        instance_number=rec.instance_number,
                        file_path=os.path.relpath(rec.file_path, self.output_root),
                        file_size_bytes=rec.file_size_bytes,
                    ))
        return Manifest(
            generated_at=datetime.now().isoformat(),
            items=items,
            project_name=project_name,
            seed=self.seed,
        )

    def get_cohort_report(self) -> 'pd.DataFrame':
        """
        Returns a Pandas DataFrame with one row per generated series.
        Useful for analysis and QA of a run.
        """
        import pandas as pd
        rows = []
        for exam in self.exams:
            for study in exam.studies:
                for se in study.series:
                    rows.append({
                        "Organization": exam.organization,
                        "PatientID": exam.patient_id,
                        "AccessionNumber": exam.accession_number,
                        "ExamDateTime": exam.exam_datetime,
                        "StudyInstanceUID": study.study_instance_uid,
                        "StudyDescription": study.study_description,
                        "Modality": study.modality,
                        "SeriesInstanceUID": se.series_instance_uid,
                        "SeriesNumber": se.series_number,
                        "SeriesDescription": se.series_description,
                        "InstanceCount": se.instance_count,
                    })
        return pd.DataFrame(rows)

    def to_report(self, version: str = "Unknown") -> GenerationReport:
        m = self.metrics
        return GenerationReport(
            version=version,
            seed=self.seed,
            output_root=self.output_root,
            total_organizations=m.organizations,
            total_patients=m.patients,
            total_exams=m.exams,
            total_studies=m.studies,
            total_series=m.series,
            total_instances=m.files,
            files_by_modality=dict(m.files_by_modality),
            elapsed_seconds=m.elapsed_seconds,
        )


class PopulationDriver:
    """
    Walks organizations -> patients -> exams, in that fixed order, drawing
    everything from one RandomSource, and aggregates run metrics.
    """

    def __init__(self, config: GeneratorConfiguration, rng: Optional[RandomSource] = None,
                 writer: Optional[DicomWriter] = None, reference_datetime: Optional[datetime] = None,
                 show_progress: bool = True):
        self.config = config
        self.rng = rng or RandomSource(config.seed)
        self.reference_datetime = reference_datetime or config.reference_datetime
        self.show_progress = show_progress
        self.logger = get_logger()

        self.org_generator = OrgPrefixGenerator(self.rng, config.org_prefix)
        self.patient_generator = PatientIdGenerator(self.rng, config.patient_id)
        self.mix_selector = ExamMixSelector(config.modalities, config.exam_mix)
        self.exam_generator = DicomExamGenerator(config, self.rng, writer=writer)

    def _reference(self) -> datetime:
        """
        The run's "now". A seeded run without an explicit reference uses
        SEEDED_REFERENCE so its output does not depend on the wall clock;
        an unseeded run uses the current UTC time.
        """
        ref = self.reference_datetime
        if ref is None:
            ref = SEEDED_REFERENCE if self.rng.seed is not None else datetime.now(timezone.utc)
        if ref.tzinfo is None:
            ref = ref.replace(tzinfo=timezone.utc)
        return ref.astimezone(timezone.utc).replace(microsecond=0)

    def _patient_base_datetime(self, reference: datetime) -> datetime:
        years = self.config.date_range_years.sample(self.rng)
        days_back = self.rng.sample_range(0, 364)
        return shift_years(reference, years) - timedelta(days=days_back)

    def run(self) -> PopulationResult:
        cfg = self.config
        output_root = os.path.abspath(cfg.output_root)
        os.makedirs(os.path.join(output_root, cfg.container), exist_ok=True)

        reference = self._reference()
        metrics = PopulationMetrics()
        result = PopulationResult(output_root, cfg.seed, metrics)
        started = time.perf_counter()

        self.logger.info(f"Generating {cfg.num_organizations} organizations into {output_root} (seed={cfg.seed})")

        for _ in tqdm(range(cfg.num_organizations), desc="Organizations", unit="org", disable=not self.show_progress):
            org = Organization(self.org_generator.next())
            metrics.organizations += 1

            for _ in range(cfg.patients_per_org.sample(self.rng)):
                patient_id, patient_name = self.patient_generator.next(org.code)
                patient = Patient(patient_id, patient_name, org.code, self._patient_base_datetime(reference))
                metrics.patients += 1
                self.logger.debug(f"[Patient] Org={org.code} PatientId={patient.patient_id} ({patient.patient_name})")

                for _ in range(cfg.exams_per_patient.sample(self.rng)):
                    k = max(1, cfg.modalities_per_exam.sample(self.rng))
                    modalities = self.mix_selector.choose(self.rng, k)

                    exam = self.exam_generator.generate_exam(
                        output_root,
                        org.code,
                        patient.patient_id,
                        patient.patient_name,
                        patient.base_datetime,
                        modalities,
                    )
                    metrics.add_exam(exam)
                    result.exams.append(exam)

        metrics.elapsed_seconds = time.perf_counter() - started
        for line in metrics.summary_lines():
            self.logger.info(line)
        self.logger.info(f"Done in {metrics.elapsed_seconds:.3f}s. Output at: {output_root}")

        self._write_outputs(result)
        return result

    def _write_outputs(self, result: PopulationResult):
        cfg = self.config
        if cfg.manifest_format:
            fmt = cfg.manifest_format.lower()
            path = os.path.join(result.output_root, f"manifest.{fmt}")
            generate_manifest_file(result.to_manifest(), path, format=fmt)
            self.logger.info(f"Manifest written to {path}")
        if cfg.report_path:
            from . import __version__
            get_renderer("md").render(result.to_report(__version__), cfg.report_path)
            self.logger.info(f"Report written to {cfg.report_path}")
