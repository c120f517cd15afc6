import os
from datetime import datetime, timezone
from unittest.mock import patch

import numpy as np
import pydicom
import pytest
from pydicom import uid

from dicomsynth.builders import InstanceMetadataBuilder, SeriesContext
from dicomsynth.configuration import Geometry, PixelFormat
from dicomsynth.errors import DatasetValidationError, DicomWriteError
from dicomsynth.io_handlers import DicomWriter, read_accession
from dicomsynth.validation import IODValidator


def make_instance(modality="CT", pixel_format=PixelFormat(8, 8, "MONOCHROME2"), number=1):
    ctx = SeriesContext(
        patient_id="QXD-JM-4K7Z0A-042",
        patient_name="QXD^JM",
        accession_number="2025110216027075",
        study_instance_uid="1.2.826.0.1.3680043.8.498.1",
        study_description="Routine",
        study_datetime=datetime(2025, 11, 2, 16, 2, 30, tzinfo=timezone.utc),
        modality=modality,
        series_instance_uid="1.2.826.0.1.3680043.8.498.2",
        series_number=1,
        series_description="Axial",
        geometry=Geometry(6, 10),
        pixel_format=pixel_format,
    )
    return InstanceMetadataBuilder(ctx).build(f"1.2.826.0.1.3680043.8.498.3.{number}", number)


class TestDicomWriter:

    def test_write_and_read_back(self, tmp_path):
        inst = make_instance()
        path = str(tmp_path / "a" / "b" / "IM00001.dcm")

        written = DicomWriter().write_instance(inst, path)

        assert written == path
        assert inst.file_path == path
        ds = pydicom.dcmread(path)
        assert ds.file_meta.TransferSyntaxUID == uid.ExplicitVRLittleEndian
        assert ds.file_meta.MediaStorageSOPClassUID == uid.CTImageStorage
        assert ds.SOPInstanceUID == "1.2.826.0.1.3680043.8.498.3.1"
        assert ds.PatientID == "QXD-JM-4K7Z0A-042"
        assert ds.AccessionNumber == "2025110216027075"
        assert ds.Modality == "CT"
        assert ds.InstanceNumber == 1
        assert ds.Rows == 6 and ds.Columns == 10
        assert ds.StudyDate == "20251102"
        np.testing.assert_array_equal(ds.pixel_array, inst.pixel_array)

    def test_sixteen_bit_round_trip(self, tmp_path):
        inst = make_instance(modality="MR", pixel_format=PixelFormat(16, 16, "MONOCHROME2"), number=5)
        path = str(tmp_path / "mr.dcm")
        DicomWriter().write_instance(inst, path)

        ds = pydicom.dcmread(path)
        assert ds.BitsAllocated == 16
        assert ds.pixel_array.dtype == np.uint16
        assert ds.pixel_array[0, 0] == 5

    def test_unmapped_modality_writes_secondary_capture(self, tmp_path):
        path = str(tmp_path / "ot.dcm")
        DicomWriter().write_instance(make_instance(modality="OT"), path)
        ds = pydicom.dcmread(path)
        assert ds.SOPClassUID == uid.SecondaryCaptureImageStorage

    def test_validation_failure_writes_nothing(self, tmp_path):
        inst = make_instance()
        del inst.attributes["0020,000E"]
        path = tmp_path / "bad.dcm"

        with pytest.raises(DatasetValidationError) as exc:
            DicomWriter().write_instance(inst, str(path))

        assert "0020,000E" in str(exc.value)
        assert not path.exists()

    def test_validation_can_be_disabled(self, tmp_path):
        inst = make_instance()
        del inst.attributes["0020,000E"]
        path = str(tmp_path / "unchecked.dcm")
        DicomWriter(validate=False).write_instance(inst, path)
        assert os.path.exists(path)

    def test_os_error_becomes_write_error(self, tmp_path):
        inst = make_instance()
        with patch("pydicom.dataset.Dataset.save_as", side_effect=PermissionError("denied")):
            with pytest.raises(DicomWriteError, match="denied") as exc:
                DicomWriter().write_instance(inst, str(tmp_path / "x.dcm"))
        assert isinstance(exc.value.__cause__, PermissionError)
        assert inst.file_path is None

    def test_write_error_is_os_error(self):
        assert issubclass(DicomWriteError, OSError)


class TestReadAccession:

    def test_reads_written_accession(self, tmp_path):
        path = str(tmp_path / "a.dcm")
        DicomWriter().write_instance(make_instance(), path)
        assert read_accession(path) == "2025110216027075"

    def test_missing_file_returns_none(self, tmp_path):
        assert read_accession(str(tmp_path / "missing.dcm")) is None

    def test_garbage_file_returns_none(self, tmp_path):
        path = tmp_path / "garbage.dcm"
        path.write_bytes(b"not a dicom file")
        assert read_accession(str(path)) is None

    @pytest.mark.parametrize("error", [KeyError("AccessionNumber"), RuntimeError("bad"), OSError("denied")])
    def test_unexpected_read_error_returns_none(self, tmp_path, error):
        path = str(tmp_path / "a.dcm")
        DicomWriter().write_instance(make_instance(), path)
        with patch("dicomsynth.io_handlers.pydicom.dcmread", side_effect=error):
            assert read_accession(path) is None


class TestIODValidator:

    def test_complete_dataset_passes(self):
        ds = DicomWriter().to_dataset(make_instance())
        assert IODValidator.validate(ds) == []

    def test_missing_type1_reported(self):
        ds = DicomWriter().to_dataset(make_instance())
        del ds.Modality
        errors = IODValidator.validate(ds)
        assert any("Type 1 Error" in e and "0008,0060" in e for e in errors)

    def test_empty_type1_reported(self):
        ds = DicomWriter().to_dataset(make_instance())
        ds.SeriesInstanceUID = ""
        errors = IODValidator.validate(ds)
        assert any("0020,000E" in e for e in errors)

    def test_missing_type2_reported_but_empty_allowed(self):
        ds = DicomWriter().to_dataset(make_instance())
        ds.AccessionNumber = ""
        assert IODValidator.validate(ds) == []
        del ds.AccessionNumber
        assert any("Type 2 Error" in e for e in IODValidator.validate(ds))

    def test_image_plane_only_for_cross_sectional(self):
        ds = DicomWriter().to_dataset(make_instance(modality="CR"))
        del ds.ImageOrientationPatient
        assert IODValidator.validate(ds) == []

        ds = DicomWriter().to_dataset(make_instance(modality="CT"))
        del ds.ImageOrientationPatient
        assert any("0020,0037" in e for e in IODValidator.validate(ds))

    def test_unknown_sop_class_not_checked(self):
        ds = DicomWriter().to_dataset(make_instance())
        ds.file_meta.MediaStorageSOPClassUID = "1.2.3.4.5"
        del ds.PatientID
        assert IODValidator.validate(ds) == []
