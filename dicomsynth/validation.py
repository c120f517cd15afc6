from pydicom import uid
from pydicom.dataset import Dataset
from typing import List


class IODValidator:
    _MODULE_DEFINITIONS = {
        'Common': {
            '0008,0016': '1', '0008,0018': '1', '0008,0020': '2',
            '0008,0030': '2', '0008,0050': '2', '0008,0060': '1',
            '0010,0010': '2', '0010,0020': '2',
            '0020,000D': '1', '0020,000E': '1', '0020,0013': '2',
        },
        'ImagePixel': {
            '0028,0002': '1', '0028,0004': '1', '0028,0010': '1',
            '0028,0011': '1', '0028,0100': '1', '0028,0101': '1',
            '0028,0102': '1', '0028,0103': '1', '7FE0,0010': '1',
        },
        'ImagePlane': {
            '0020,0032': '1', '0020,0037': '1',  # Pos, Orient
            '0028,0030': '1',  # Pixel Spacing
        }
    }

    _SOP_RULES = {
        uid.CTImageStorage: ['Common', 'ImagePixel', 'ImagePlane'],
        uid.MRImageStorage: ['Common', 'ImagePixel', 'ImagePlane'],
        uid.PositronEmissionTomographyImageStorage: ['Common', 'ImagePixel', 'ImagePlane'],
        uid.NuclearMedicineImageStorage: ['Common', 'ImagePixel'],
        uid.XRayAngiographicImageStorage: ['Common', 'ImagePixel'],
        uid.ComputedRadiographyImageStorage: ['Common', 'ImagePixel'],
        uid.DigitalXRayImageStorageForPresentation: ['Common', 'ImagePixel'],
        uid.DigitalMammographyXRayImageStorageForPresentation: ['Common', 'ImagePixel'],
        uid.UltrasoundImageStorage: ['Common', 'ImagePixel'],
        uid.SecondaryCaptureImageStorage: ['Common', 'ImagePixel'],
        uid.EnhancedSRStorage: ['Common'],
    }

    @staticmethod
    def validate(ds: Dataset) -> List[str]:
        """
        Checks Type 1 (present and non-empty) and Type 2 (present) attributes
        for the dataset's SOP class. Unknown SOP classes are not checked.
        """
        errors = []
        file_meta = getattr(ds, 'file_meta', None)
        sop = file_meta.get("MediaStorageSOPClassUID") if file_meta else None
        sop = sop or ds.get("SOPClassUID")

        if sop not in IODValidator._SOP_RULES:
            return []

        for module in IODValidator._SOP_RULES[sop]:
            for tag_str, req in IODValidator._MODULE_DEFINITIONS.get(module, {}).items():
                group, elem = map(lambda x: int(x, 16), tag_str.split(','))
                tag = (group, elem)

                if req == '1' and (tag not in ds or ds[tag].value in [None, "", b""]):
                    errors.append(f"[Type 1 Error] Missing {tag_str} in {module}")
                elif req == '2' and tag not in ds:
                    errors.append(f"[Type 2 Error] Missing {tag_str} in {module}")
        return errors
