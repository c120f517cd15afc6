import pytest
import warnings

# Suppress all pydicom warnings during tests
warnings.filterwarnings("ignore", module="pydicom.*")

import os
from datetime import datetime, timezone
from dicomsynth.configuration import (
    GeneratorConfiguration, RangeInt, ModalityProfile, DicomDefaults, ExamMixConfig,
)
from dicomsynth.random_source import RandomSource

REFERENCE = datetime(2025, 11, 2, 16, 2, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def redirect_logging(tmp_path):
    """Redirects dicomsynth.log to a temp file for all tests."""
    log_file = tmp_path / "dicomsynth.log"
    os.environ["DICOMSYNTH_LOG_FILE"] = str(log_file)
    yield
    if "DICOMSYNTH_LOG_FILE" in os.environ:
        del os.environ["DICOMSYNTH_LOG_FILE"]


@pytest.fixture
def rng():
    return RandomSource(1)


@pytest.fixture
def reference_datetime():
    return REFERENCE


@pytest.fixture
def minimal_ct_config(tmp_path):
    """64x64 CT, exactly one series of 4 instances."""
    return GeneratorConfiguration(
        output_root=str(tmp_path / "out"),
        seed=1,
        reference_datetime=REFERENCE,
        defaults=DicomDefaults(rows=64, cols=64),
        profiles={
            "CT": ModalityProfile(
                series_per_study=RangeInt(1, 1),
                standard_study_file_counts=[4],
                series_descriptions=["Axial"],
                study_descriptions=["CT Chest"],
            )
        },
    )


@pytest.fixture
def small_population_config(tmp_path):
    """A population small enough to write to disk in a test."""
    profile = ModalityProfile(
        series_per_study=RangeInt(1, 3),
        standard_study_file_counts=[3, 5],
        series_descriptions=["Axial", "Coronal"],
        study_descriptions=["Routine", "Follow-up"],
    )
    return GeneratorConfiguration(
        output_root=str(tmp_path / "population"),
        seed=42,
        reference_datetime=REFERENCE,
        num_organizations=2,
        patients_per_org=RangeInt(1, 2),
        exams_per_patient=RangeInt(1, 2),
        modalities_per_exam=RangeInt(1, 3),
        modalities=["CT", "PT", "MR", "NM"],
        exam_mix=ExamMixConfig(pair_a_percent=50, pair_b_percent=20, mixed_percent=30),
        defaults=DicomDefaults(rows=16, cols=16),
        profiles={"CT": profile, "mr": profile, "PT": ModalityProfile(
            series_per_study=RangeInt(1, 1), standard_study_file_counts=[2], rows=8, cols=8,
        )},
    )
