"""
Schema — Pydantic models for project definitions and run reports.

Input:
  ProjectDefinition  — how to fetch, configure, compile and test one
                       external project (loaded from JSON).

Output (one file per run):
  external_test_report.json — compiler identity, project checkout and
                              the outcome of every preset run.

Runtime contract fields (present in every report):
  package_name, runner_version, schema_version.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ext_tests import PACKAGE_NAME, RUNNER_VERSION, SCHEMA_VERSION
from ext_tests.policy.presets import AVAILABLE_PRESETS, BinaryType


# ── Enums ────────────────────────────────────────────────────────────────────

class RefType(str, Enum):
    COMMIT = "commit"
    BRANCH = "branch"
    TAG = "tag"


class Framework(str, Enum):
    TRUFFLE = "truffle"
    HARDHAT = "hardhat"


class RunStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


# ── Project definition ───────────────────────────────────────────────────────

class ProjectDefinition(BaseModel):
    """One external project and the commands that build and test it."""

    name: str
    repo: str
    ref_type: RefType = RefType.BRANCH
    ref: str = "master"
    framework: Framework
    config_file: str
    # Name of the exported config object; TypeScript Hardhat configs only.
    config_var_name: Optional[str] = None

    install_command: Optional[str] = None   # falls back to the profile's
    compile_command: str
    test_command: str

    settings_presets: List[str] = Field(default_factory=lambda: list(AVAILABLE_PRESETS))
    compile_only_presets: List[str] = Field(default_factory=list)

    truffle_version: Optional[str] = None
    solcjs_branch: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or any(c.isspace() or c == "/" for c in v):
            raise ValueError("name must be non-empty and contain no whitespace or '/'")
        return v

    @field_validator("settings_presets", "compile_only_presets")
    @classmethod
    def validate_presets(cls, v: List[str]) -> List[str]:
        unknown = [p for p in v if p not in AVAILABLE_PRESETS]
        if unknown:
            raise ValueError(
                f"Unknown presets: {', '.join(unknown)}. "
                f"Available presets: {' '.join(AVAILABLE_PRESETS)}."
            )
        return v

    @model_validator(mode="after")
    def validate_config(self) -> "ProjectDefinition":
        suffix = self.config_file.rsplit(".", 1)[-1]
        if self.framework == Framework.HARDHAT:
            if suffix not in ("js", "ts"):
                raise ValueError("Hardhat config_file must be a .js or .ts file")
            if suffix == "ts" and not self.config_var_name:
                raise ValueError("config_var_name is required for TypeScript Hardhat configs")
            if suffix == "js" and self.config_var_name:
                raise ValueError("config_var_name is only supported for TypeScript Hardhat configs")
        return self


# ── Compiler identity ────────────────────────────────────────────────────────

class SolcInfo(BaseModel):
    """The compiler under test, as detected by setup_solc."""
    binary_type: BinaryType
    binary_path: str
    version: str          # full, e.g. 0.8.10+commit.fc410830.Linux.g++
    version_short: str    # e.g. 0.8.10; empty if the full version has no commit tag
    solcjs_dir: Optional[str] = None


# ── Step / preset results ────────────────────────────────────────────────────

class StepResult(BaseModel):
    """One compile or test step."""
    name: str
    command: str
    exit_code: int = 0
    duration_ms: int = 0


class PresetRun(BaseModel):
    """Outcome of compiling (and possibly testing) with one preset."""
    preset: str
    settings: Dict[str, Any] = Field(default_factory=dict)
    status: RunStatus = RunStatus.FAILED
    compile: Optional[StepResult] = None
    test: Optional[StepResult] = None
    test_skipped: bool = False
    verified_files: List[str] = Field(default_factory=list)
    error: Optional[str] = None


# ── Top-level report ─────────────────────────────────────────────────────────

class ProjectCheckout(BaseModel):
    repo: str
    ref_type: RefType
    ref: str
    commit: Optional[str] = None


class ExternalTestReport(BaseModel):
    """Wrapper for external_test_report.json."""

    package_name: str = PACKAGE_NAME
    runner_version: str = RUNNER_VERSION
    schema_version: str = SCHEMA_VERSION

    name: str
    framework: Framework
    binary_type: BinaryType
    binary_path: str
    evm_version: str
    presets: List[str] = Field(default_factory=list)

    solc: Optional[SolcInfo] = None
    checkout: Optional[ProjectCheckout] = None
    runs: List[PresetRun] = Field(default_factory=list)

    status: RunStatus = RunStatus.FAILED
    error: Optional[str] = None
    created_at: str
    finished_at: Optional[str] = None

    def compute_status(self) -> RunStatus:
        """Derive the overall status from the preset runs."""
        if self.error:
            return RunStatus.FAILED
        if not self.presets:
            return RunStatus.SKIPPED
        if self.runs and all(r.status == RunStatus.SUCCESS for r in self.runs):
            return RunStatus.SUCCESS
        return RunStatus.FAILED
