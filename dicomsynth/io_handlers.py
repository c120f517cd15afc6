import os
from typing import Any, Dict, Optional

import pydicom
from pydicom.datadict import dictionary_VR
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.tag import Tag
from pydicom.uid import ExplicitVRLittleEndian, PYDICOM_IMPLEMENTATION_UID

from .entities import Instance
from .errors import DicomWriteError, DatasetValidationError
from .logger import get_logger
from .validation import IODValidator


class DicomWriter:
    """
    Hands a generated Instance to pydicom and writes it to disk.
    The generator never touches the binary encoding itself.
    """

    def __init__(self, validate: bool = True):
        self.validate = validate

    def write_instance(self, inst: Instance, output_path: str) -> str:
        """
        Writes `inst` to `output_path` (Explicit VR Little Endian).

        Returns:
            str: The written path.

        Raises:
            DatasetValidationError: If the dataset misses attributes required by its SOP class.
            DicomWriteError: If the file cannot be written.
        """
        ds = self.to_dataset(inst)

        if self.validate:
            errs = IODValidator.validate(ds)
            if errs:
                raise DatasetValidationError(output_path, errs)

        try:
            # Ensure dir exists (idempotent)
            os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
            ds.save_as(output_path, enforce_file_format=True)
        except OSError as e:
            raise DicomWriteError(f"Failed to write {output_path}: {e}") from e

        inst.file_path = output_path
        return output_path

    def to_dataset(self, inst: Instance) -> Dataset:
        ds = DicomWriter._create_ds(inst)
        DicomWriter._merge(ds, inst.attributes)

        arr = inst.pixel_array
        if arr is not None:
            vr = 'OB' if arr.itemsize == 1 else 'OW'
            ds.add_new(Tag(0x7FE0, 0x0010), vr, arr.tobytes())
        return ds

    @staticmethod
    def _create_ds(inst: Instance) -> Dataset:
        meta = FileMetaDataset()
        meta.MediaStorageSOPClassUID = inst.sop_class_uid
        meta.MediaStorageSOPInstanceUID = inst.sop_instance_uid
        meta.TransferSyntaxUID = ExplicitVRLittleEndian
        meta.ImplementationClassUID = PYDICOM_IMPLEMENTATION_UID
        ds = Dataset()
        ds.file_meta = meta
        return ds

    @staticmethod
    def _merge(ds: Dataset, attrs: Dict[str, Any]):
        for t, v in attrs.items():
            g, e = map(lambda x: int(x, 16), t.split(','))

            # Skip Command Set elements (Group 0000) which are illegal for file persistence
            if g == 0x0000:
                continue

            tag = Tag(g, e)
            ds.add_new(tag, dictionary_VR(tag), v)


def read_accession(path: str) -> Optional[str]:
    """
    Best-effort diagnostic read of the AccessionNumber of a written file.
    Failures are logged and reported as None.
    """
    try:
        ds = pydicom.dcmread(path, stop_before_pixels=True)
        return str(ds.get("AccessionNumber", ""))
    except Exception as e:
        get_logger().warning(f"Could not read accession tag from {path}: {e}")
        return None
