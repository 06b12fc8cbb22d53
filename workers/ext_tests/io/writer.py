"""
Writer — serialize run reports to JSON files.

Filesystem layout per run:
    <output_dir>/external_test_report.json
"""
import json
from pathlib import Path

from ext_tests.io.schema import ExternalTestReport

REPORT_FILENAME = "external_test_report.json"


def write_report(report: ExternalTestReport, output_dir: Path) -> Path:
    """
    Write external_test_report.json into *output_dir*.

    Creates *output_dir* if it does not exist.
    Returns the report path.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    report_path = output_dir / REPORT_FILENAME
    report_path.write_text(
        json.dumps(
            report.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
        )
        + "\n"
    )
    return report_path
