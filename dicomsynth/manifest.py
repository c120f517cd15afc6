from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Protocol
import json
import html


@dataclass
class ManifestItem:
    """
    Represents a single generated file in the manifest.

    Attributes:
        patient_id (str): The Patient ID.
        accession_number (str): Accession number shared by the exam.
        study_instance_uid (str): The Study Instance UID.
        series_instance_uid (str): The Series Instance UID.
        sop_instance_uid (str): The SOP Instance UID.
        sop_class_uid (str): The SOP Class UID.
        modality (str): Modality code (e.g. CT, MR).
        instance_number (int): Instance Number within the series.
        file_path (str): Path relative to the output root.
        file_size_bytes (int): Size of the file in bytes.
    """
    patient_id: str
    accession_number: str
    study_instance_uid: str
    series_instance_uid: str
    sop_instance_uid: str
    sop_class_uid: str = ""
    modality: str = ""
    instance_number: int = 0

    # File details
    file_path: str = ""
    file_size_bytes: int = 0


@dataclass
class Manifest:
    """
    Collection of manifest items describing one generation run.

    Attributes:
        generated_at (str): ISO timestamp of generation.
        items (List[ManifestItem]): The list of file entries.
        project_name (str): Name of the run.
        seed (Optional[int]): Seed the run used, if any.
    """
    generated_at: str
    items: List[ManifestItem]
    project_name: str = "dicomsynth"
    seed: Optional[int] = None

    def to_dict(self):
        """
        Converts the manifest to a dictionary for JSON serialization.
        """
        return {
            "generated_at": self.generated_at,
            "project_name": self.project_name,
            "seed": self.seed,
            "total_files": len(self.items),
            "total_size_bytes": sum(i.file_size_bytes for i in self.items),
            "items": [asdict(i) for i in self.items]
        }

    def to_dataframe(self):
        """One row per generated file."""
        import pandas as pd
        columns = list(ManifestItem.__dataclass_fields__)
        return pd.DataFrame([asdict(i) for i in self.items], columns=columns)


class ManifestRenderer(Protocol):
    """Protocol for a manifest renderer."""
    def render(self, manifest: Manifest, output_path: str) -> None:
        """
        Renders the manifest to the specified file.

        Args:
            manifest (Manifest): The manifest data.
            output_path (str): The destination file path.
        """
        ...


class JSONManifestRenderer:
    """Renders the manifest as a JSON file."""
    def render(self, manifest: Manifest, output_path: str) -> None:
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(manifest.to_dict(), f, indent=2)


class CSVManifestRenderer:
    """Renders the manifest as a flat CSV table (via pandas)."""
    def render(self, manifest: Manifest, output_path: str) -> None:
        manifest.to_dataframe().to_csv(output_path, index=False)


class HTMLManifestRenderer:
    """
    Renders the manifest as a standalone HTML page: a per-modality summary
    followed by one table section per accession.
    """

    STYLE = """
        body { font-family: sans-serif; margin: 2rem; color: #222; }
        .run { color: #555; margin-bottom: 1.5rem; }
        table { border-collapse: collapse; margin-bottom: 1.5rem; font-size: 0.85rem; }
        th, td { padding: 0.35rem 0.6rem; border: 1px solid #ccc; text-align: left; }
        th { background: #eef2f5; }
        h2 { font-size: 1.05rem; margin-top: 2rem; }
    """

    def render(self, manifest: Manifest, output_path: str) -> None:
        esc = html.escape
        by_modality: Dict[str, int] = {}
        by_exam: Dict[str, List[ManifestItem]] = {}
        for item in manifest.items:
            by_modality[item.modality] = by_modality.get(item.modality, 0) + 1
            by_exam.setdefault(item.accession_number, []).append(item)

        parts = [
            "<!DOCTYPE html>",
            '<html lang="en"><head><meta charset="UTF-8">',
            f"<title>DICOM manifest: {esc(manifest.project_name)}</title>",
            f"<style>{self.STYLE}</style></head><body>",
            f"<h1>{esc(manifest.project_name)}</h1>",
            f'<p class="run">Generated {esc(manifest.generated_at)}, seed {manifest.seed}, '
            f"{len(manifest.items)} files in {len(by_exam)} exams</p>",
            "<table><tr><th>Modality</th><th>Files</th></tr>",
        ]
        for modality, count in sorted(by_modality.items()):
            parts.append(f"<tr><td>{esc(modality)}</td><td>{count}</td></tr>")
        parts.append("</table>")

        for accession, items in by_exam.items():
            parts.append(f"<h2>Accession {esc(accession)} ({esc(items[0].patient_id)})</h2>")
            parts.append("<table><tr><th>Modality</th><th>Series UID</th><th>Instance</th>"
                         "<th>SOP Instance UID</th><th>File</th></tr>")
            for item in items:
                parts.append(
                    f"<tr><td>{esc(item.modality)}</td><td>{esc(item.series_instance_uid)}</td>"
                    f"<td>{item.instance_number}</td><td>{esc(item.sop_instance_uid)}</td>"
                    f"<td><code>{esc(item.file_path)}</code></td></tr>"
                )
            parts.append("</table>")

        parts.append("</body></html>\n")
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write("\n".join(parts))


RENDERERS = {
    "json": JSONManifestRenderer,
    "csv": CSVManifestRenderer,
    "html": HTMLManifestRenderer,
}


def generate_manifest_file(manifest: Manifest, output_path: str, format: str = "json"):
    """
    Writes `manifest` to `output_path` as 'json', 'csv' or 'html'
    (case-insensitive).

    Raises:
        ValueError: If the format has no renderer.
    """
    renderer_cls = RENDERERS.get(format.lower())
    if renderer_cls is None:
        raise ValueError(f"Unsupported manifest format: {format}")
    renderer_cls().render(manifest, output_path)
