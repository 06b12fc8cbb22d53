"""
Loader — read project definitions and previously written reports.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ext_tests.errors import fail
from ext_tests.io.schema import ExternalTestReport, ProjectDefinition
from ext_tests.io.writer import REPORT_FILENAME

log = logging.getLogger(__name__)


def _load_json(path: Path) -> Any:
    """Read a JSON file and return the parsed object."""
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def load_project(path: Path) -> ProjectDefinition:
    """Load and validate a project definition JSON file."""
    if not path.is_file():
        fail(f"Project definition not found: {path}")
    try:
        data = _load_json(path)
    except json.JSONDecodeError as exc:
        fail(f"Project definition {path} is not valid JSON: {exc}")
    try:
        return ProjectDefinition.model_validate(data)
    except ValidationError as exc:
        fail(f"Invalid project definition {path}:\n{exc}")


def load_report(output_dir: Path) -> ExternalTestReport | None:
    """Load ``external_test_report.json`` from *output_dir* if present."""
    path = output_dir / REPORT_FILENAME
    if not path.exists():
        return None
    return ExternalTestReport.model_validate(_load_json(path))
