import datetime
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol


@dataclass
class GenerationReport:
    """
    Data Transfer Object holding the summary of one generation run.

    Attributes:
        generated_at (datetime.datetime): Timestamp of generation.
        version (str): Version of the generator.
        seed (Optional[int]): Seed of the run (None = not reproducible).
        output_root (str): Where the files were written.
        total_organizations (int): Organizations generated.
        total_patients (int): Patients generated.
        total_exams (int): Exams generated.
        total_studies (int): Studies generated.
        total_series (int): Series generated.
        total_instances (int): Files written.
        files_by_modality (Dict[str, int]): Files written per modality.
        elapsed_seconds (float): Wall time of the run.
    """
    generated_at: datetime.datetime = field(default_factory=datetime.datetime.now)
    version: str = "Unknown"
    seed: Optional[int] = None
    output_root: str = ""

    total_organizations: int = 0
    total_patients: int = 0
    total_exams: int = 0
    total_studies: int = 0
    total_series: int = 0
    total_instances: int = 0

    files_by_modality: Dict[str, int] = field(default_factory=dict)
    elapsed_seconds: float = 0.0


class ReportRenderer(Protocol):
    """Protocol for a report renderer."""

    def render(self, report: GenerationReport, output_path: str) -> None:
        """
        Renders the report to the specified output path.

        Args:
            report (GenerationReport): The report object to render.
            output_path (str): The file path to write to.
        """
        ...


class MarkdownRenderer:
    """Renders the GenerationReport as a Markdown document."""

    def render(self, report: GenerationReport, output_path: str) -> None:
        seed = report.seed if report.seed is not None else "none (not reproducible)"
        md_content = f"""# Generation Report

**Generated At:** {report.generated_at.strftime('%Y-%m-%d %H:%M:%S')}
**Generator Version:** dicomsynth v{report.version}
**Seed:** {seed}
**Output Root:** `{report.output_root}`

## 1. Population

| Level | Count |
| :--- | :--- |
| Organizations | {report.total_organizations} |
| Patients | {report.total_patients} |
| Exams | {report.total_exams} |
| Studies | {report.total_studies} |
| Series | {report.total_series} |
| **Instances** | **{report.total_instances}** |

## 2. Files by Modality

| Modality | Files |
| :--- | :--- |
"""
        if report.files_by_modality:
            for modality, count in sorted(report.files_by_modality.items()):
                md_content += f"| {modality} | {count} |\n"
        else:
            md_content += "| *No files generated* | 0 |\n"

        md_content += f"\n*Completed in {report.elapsed_seconds:.3f} seconds.*\n"

        with open(output_path, "w", encoding="utf-8") as f:
            f.write(md_content)


def get_renderer(format_type: str) -> ReportRenderer:
    if format_type.lower() in ["md", "markdown"]:
        return MarkdownRenderer()
    raise ValueError(f"Unsupported report format: {format_type}")
