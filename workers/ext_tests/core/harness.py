"""
Harness — compile / verify / test loop and the per-project test wrapper.

A *step* is what a project does to compile or test itself: a shell
command (string or argv list) run in the project directory, or a Python
callable that receives the project directory.
"""
import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar, Union

from ext_tests.core.project import replace_version_pragmas
from ext_tests.core.shell import run_command
from ext_tests.errors import fail
from ext_tests.io.schema import PresetRun, RunStatus, SolcInfo, StepResult
from ext_tests.policy.presets import CURRENT_EVM_VERSION, preset_settings

logger = logging.getLogger(__name__)

Step = Union[str, Sequence[str], Callable[[Path], object]]
# verify_fn(project_dir, solc_version, full_solc_version) -> matching files
VerifyFn = Callable[[Path, str, str], List[str]]

T = TypeVar("T")


def run_step(
    name: str,
    step: Step,
    project_dir: Path,
    timeout: Optional[int] = None,
) -> StepResult:
    """Run one compile / test step and time it."""
    if callable(step):
        label = getattr(step, "__name__", repr(step))
        t0 = time.monotonic()
        step(project_dir)
        duration = int((time.monotonic() - t0) * 1000)
        result = StepResult(name=name, command=label, duration_ms=duration)
    else:
        cmd = run_command(step, cwd=project_dir, timeout=timeout)
        result = StepResult(
            name=name,
            command=cmd.command,
            exit_code=cmd.exit_code,
            duration_ms=cmd.duration_ms,
        )

    logger.info("%s step took %.2fs", name, result.duration_ms / 1000)
    return result


def run_test(
    project_dir: Path,
    compile_fn: Step,
    test_fn: Step,
    timeout: Optional[int] = None,
) -> List[StepResult]:
    """Relax pragmas, compile, then test."""
    replace_version_pragmas(project_dir)

    logger.info("Running compile function...")
    compile_result = run_step("compile", compile_fn, project_dir, timeout)

    logger.info("Running test function...")
    test_result = run_step("test", test_fn, project_dir, timeout)
    return [compile_result, test_result]


def compile_and_run_test(
    project_dir: Path,
    compile_fn: Step,
    test_fn: Step,
    verify_fn: VerifyFn,
    preset: str,
    compile_only_presets: Iterable[str],
    solc: SolcInfo,
    compile_only: bool = False,
    evm_version: str = CURRENT_EVM_VERSION,
    timeout: Optional[int] = None,
) -> PresetRun:
    """
    Compile, verify the compiler version, then test unless the preset is
    compile-only (or compile-only mode is on).
    """
    if " " in preset:
        raise ValueError("Preset names must not contain spaces.")

    run = PresetRun(preset=preset, settings=preset_settings(preset, evm_version))

    logger.info("Running compile function...")
    run.compile = run_step("compile", compile_fn, project_dir, timeout)
    run.verified_files = verify_fn(project_dir, solc.version_short, solc.version)

    if compile_only or preset in set(compile_only_presets):
        logger.info("Skipping test function...")
        run.test_skipped = True
    else:
        logger.info("Running test function...")
        run.test = run_step("test", test_fn, project_dir, timeout)

    run.status = RunStatus.SUCCESS
    return run


def external_test(
    name: str,
    main_fn: Optional[Callable[[Path], T]],
    workspace_root: Optional[Path] = None,
    keep_workspace: bool = False,
) -> T:
    """
    Run *main_fn* inside a fresh ``ext-test-<name>-XXXXXX`` directory.

    The directory is removed after a successful run.  After a failure it
    is left in place for inspection and the exception propagates.
    """
    logger.info("Testing %s...", name)
    logger.info("===========================")

    if workspace_root is not None:
        workspace_root.mkdir(parents=True, exist_ok=True)
    test_dir = Path(tempfile.mkdtemp(
        prefix=f"ext-test-{name}-",
        dir=str(workspace_root) if workspace_root is not None else None,
    ))

    try:
        if main_fn is None:
            fail("Test main function not defined.")
        result = main_fn(test_dir)
    except BaseException:
        logger.error("External test %s failed; workspace kept at %s", name, test_dir)
        raise

    if keep_workspace:
        logger.info("Workspace kept at %s", test_dir)
    else:
        shutil.rmtree(test_dir, ignore_errors=True)
    logger.info("Done.")
    return result
