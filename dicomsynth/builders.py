from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np
from pydicom import uid

from .configuration import Geometry, PixelFormat
from .entities import Instance

# Modality -> SOP Class UID. Unmapped modalities fall back to Secondary Capture.
SOP_CLASS_BY_MODALITY = {
    "CT": uid.CTImageStorage,
    "MR": uid.MRImageStorage,
    "PT": uid.PositronEmissionTomographyImageStorage,
    "NM": uid.NuclearMedicineImageStorage,
    "XA": uid.XRayAngiographicImageStorage,
    "CR": uid.ComputedRadiographyImageStorage,
    "DX": uid.DigitalXRayImageStorageForPresentation,
    "MG": uid.DigitalMammographyXRayImageStorageForPresentation,
    "US": uid.UltrasoundImageStorage,
    "SR": uid.EnhancedSRStorage,
}
FALLBACK_SOP_CLASS = uid.SecondaryCaptureImageStorage

# Fixed geometry of a synthetic flat image
PIXEL_SPACING = ["1", "1"]
IMAGE_ORIENTATION = ["1", "0", "0", "0", "1", "0"]
IMAGE_POSITION = ["0", "0", "0"]


def sop_class_for(modality: str) -> str:
    return SOP_CLASS_BY_MODALITY.get((modality or "").upper(), FALLBACK_SOP_CLASS)


def gradient_frame(rows: int, cols: int, instance_number: int, bits_allocated: int = 8) -> np.ndarray:
    """
    Single frame where every sample in column c equals (c + instance_number) % 256.
    uint8 for 8-bit images, uint16 otherwise (same values).
    """
    dtype = np.uint8 if bits_allocated <= 8 else np.uint16
    line = (np.arange(cols, dtype=np.int64) + instance_number) % 256
    return np.broadcast_to(line, (rows, cols)).astype(dtype)


def split_utc(dt: datetime):
    """Returns (DA, TM) strings of `dt` in UTC. Naive datetimes are taken as UTC."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y%m%d"), dt.strftime("%H%M%S")


@dataclass(frozen=True)
class SeriesContext:
    """Everything shared by the instances of one series."""
    patient_id: str
    patient_name: str
    accession_number: str
    study_instance_uid: str
    study_description: str
    study_datetime: datetime
    modality: str
    series_instance_uid: str
    series_number: int
    series_description: str
    geometry: Geometry
    pixel_format: PixelFormat


class InstanceMetadataBuilder:
    """
    Derives the complete attribute set of one instance from its series
    context, SOP Instance UID and instance number.
    """

    def __init__(self, context: SeriesContext):
        self.context = context
        self.sop_class_uid = sop_class_for(context.modality)
        self.study_date, self.study_time = split_utc(context.study_datetime)

    def build(self, sop_instance_uid: str, instance_number: int) -> Instance:
        ctx = self.context
        inst = Instance(sop_instance_uid, self.sop_class_uid, instance_number)

        # Patient
        inst.set_attr("0010,0020", ctx.patient_id)
        inst.set_attr("0010,0010", ctx.patient_name)

        # Study
        inst.set_attr("0020,000D", ctx.study_instance_uid)
        inst.set_attr("0008,1030", ctx.study_description)
        inst.set_attr("0008,0020", self.study_date)
        inst.set_attr("0008,0030", self.study_time)
        inst.set_attr("0008,0050", ctx.accession_number)

        # Series
        inst.set_attr("0020,000E", ctx.series_instance_uid)
        inst.set_attr("0008,0060", ctx.modality)
        inst.set_attr("0020,0011", ctx.series_number)
        inst.set_attr("0008,103E", ctx.series_description)

        # Image Pixel
        fmt = ctx.pixel_format
        inst.set_attr("0028,0004", fmt.photometric_interpretation)
        inst.set_attr("0028,0100", fmt.bits_allocated)
        inst.set_attr("0028,0101", fmt.bits_stored)
        inst.set_attr("0028,0102", fmt.bits_stored - 1)
        inst.set_attr("0028,0103", 0)

        # Geometry
        inst.set_attr("0028,0030", PIXEL_SPACING)
        inst.set_attr("0020,0037", IMAGE_ORIENTATION)
        inst.set_attr("0020,0032", IMAGE_POSITION)

        # Rows / Columns / SamplesPerPixel follow the array
        rows, cols = ctx.geometry
        inst.set_pixel_data(gradient_frame(rows, cols, instance_number, fmt.bits_allocated))
        return inst
