from datetime import datetime, timezone, timedelta

import numpy as np
import pytest
from pydicom import uid

from dicomsynth.builders import (
    InstanceMetadataBuilder, SeriesContext, gradient_frame, sop_class_for, split_utc,
    FALLBACK_SOP_CLASS,
)
from dicomsynth.configuration import Geometry, PixelFormat
from dicomsynth.entities import Instance


@pytest.fixture
def context():
    return SeriesContext(
        patient_id="ABC-XY-1234AB-001",
        patient_name="ABC^XY",
        accession_number="2025110216021234",
        study_instance_uid="1.2.3.1",
        study_description="CT Chest",
        study_datetime=datetime(2025, 11, 2, 16, 2, 30, tzinfo=timezone.utc),
        modality="CT",
        series_instance_uid="1.2.3.1.1",
        series_number=1,
        series_description="Axial",
        geometry=Geometry(8, 12),
        pixel_format=PixelFormat(8, 8, "MONOCHROME2"),
    )


@pytest.mark.parametrize("modality, expected", [
    ("CT", uid.CTImageStorage),
    ("mr", uid.MRImageStorage),
    ("PT", uid.PositronEmissionTomographyImageStorage),
    ("NM", uid.NuclearMedicineImageStorage),
    ("XA", uid.XRayAngiographicImageStorage),
    ("CR", uid.ComputedRadiographyImageStorage),
    ("SR", uid.EnhancedSRStorage),
    ("OT", FALLBACK_SOP_CLASS),
    ("", FALLBACK_SOP_CLASS),
])
def test_sop_class_for(modality, expected):
    assert sop_class_for(modality) == expected


def test_fallback_is_secondary_capture():
    assert FALLBACK_SOP_CLASS == uid.SecondaryCaptureImageStorage


class TestGradientFrame:

    def test_column_gradient(self):
        frame = gradient_frame(4, 6, instance_number=3)
        assert frame.shape == (4, 6)
        assert frame.dtype == np.uint8
        for r in range(4):
            assert list(frame[r]) == [3, 4, 5, 6, 7, 8]

    def test_wraps_at_256(self):
        frame = gradient_frame(1, 300, instance_number=1)
        assert frame[0, 254] == 255
        assert frame[0, 255] == 0
        assert frame[0, 299] == 44

    def test_16_bit_storage_keeps_values(self):
        frame = gradient_frame(2, 3, instance_number=255, bits_allocated=16)
        assert frame.dtype == np.uint16
        assert list(frame[1]) == [255, 0, 1]

    def test_frame_is_writable(self):
        frame = gradient_frame(2, 2, 1)
        frame[0, 0] = 9
        assert frame[0, 0] == 9


class TestSplitUtc:

    def test_utc(self):
        assert split_utc(datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == ("20250102", "030405")

    def test_offset_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        assert split_utc(datetime(2025, 1, 2, 1, 0, 0, tzinfo=plus_two)) == ("20250101", "230000")

    def test_naive_taken_as_utc(self):
        assert split_utc(datetime(2025, 6, 30, 23, 59, 59)) == ("20250630", "235959")


class TestInstanceMetadataBuilder:

    def test_builds_full_attribute_set(self, context):
        inst = InstanceMetadataBuilder(context).build("1.2.3.1.1.7", 7)

        assert isinstance(inst, Instance)
        assert inst.get_attr("0008,0016") == uid.CTImageStorage
        assert inst.get_attr("0008,0018") == "1.2.3.1.1.7"
        assert inst.get_attr("0020,0013") == 7
        assert inst.get_attr("0010,0020") == "ABC-XY-1234AB-001"
        assert inst.get_attr("0010,0010") == "ABC^XY"
        assert inst.get_attr("0020,000D") == "1.2.3.1"
        assert inst.get_attr("0008,0050") == "2025110216021234"
        assert inst.get_attr("0008,0020") == "20251102"
        assert inst.get_attr("0008,0030") == "160230"
        assert inst.get_attr("0008,1030") == "CT Chest"
        assert inst.get_attr("0020,000E") == "1.2.3.1.1"
        assert inst.get_attr("0008,0060") == "CT"
        assert inst.get_attr("0020,0011") == 1
        assert inst.get_attr("0008,103E") == "Axial"

    def test_pixel_module(self, context):
        inst = InstanceMetadataBuilder(context).build("1.2.3.1.1.1", 1)
        assert inst.get_attr("0028,0010") == 8
        assert inst.get_attr("0028,0011") == 12
        assert inst.get_attr("0028,0002") == 1
        assert inst.get_attr("0028,0004") == "MONOCHROME2"
        assert inst.get_attr("0028,0100") == 8
        assert inst.get_attr("0028,0101") == 8
        assert inst.get_attr("0028,0102") == 7
        assert inst.get_attr("0028,0103") == 0
        assert inst.pixel_array.shape == (8, 12)
        assert inst.pixel_array[0, 0] == 1

    def test_geometry_constants(self, context):
        inst = InstanceMetadataBuilder(context).build("1.2.3.1.1.1", 1)
        assert inst.get_attr("0028,0030") == ["1", "1"]
        assert inst.get_attr("0020,0037") == ["1", "0", "0", "0", "1", "0"]
        assert inst.get_attr("0020,0032") == ["0", "0", "0"]

    def test_sixteen_bit_format(self, context):
        from dataclasses import replace
        ctx = replace(context, pixel_format=PixelFormat(16, 12, "MONOCHROME2"))
        inst = InstanceMetadataBuilder(ctx).build("1.2.3.1.1.1", 1)
        assert inst.get_attr("0028,0100") == 16
        assert inst.get_attr("0028,0102") == 11
        assert inst.pixel_array.dtype == np.uint16


class TestInstanceEntity:

    def test_rejects_multiframe_arrays(self):
        inst = Instance("1.2", uid.CTImageStorage, 1)
        with pytest.raises(ValueError, match="Unsupported pixel array shape"):
            inst.set_pixel_data(np.zeros((2, 4, 4), dtype=np.uint8))

    def test_rgb_sets_samples_per_pixel(self):
        inst = Instance("1.2", uid.CTImageStorage, 1)
        inst.set_pixel_data(np.zeros((4, 5, 3), dtype=np.uint8))
        assert inst.get_attr("0028,0002") == 3
        assert inst.get_attr("0028,0010") == 4
        assert inst.get_attr("0028,0011") == 5

    def test_tags_are_case_insensitive(self):
        inst = Instance("1.2", uid.CTImageStorage, 1)
        inst.set_attr("0020,000e", "1.2.3")
        assert inst.get_attr("0020,000E") == "1.2.3"
