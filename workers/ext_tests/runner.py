"""
Runner — top-level orchestration: project definition → report.

Ties solc setup, project preparation, framework configuration and the
per-preset compile / verify / test loop into ``run_external_test``, which
can be called from the CLI, the queue worker or directly from Python.

Usage:
    python -m ext_tests.runner PROJECT_JSON native|solcjs BINARY [PRESETS]
"""
import argparse
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ext_tests.core.hardhat import force_hardhat_compiler_binary, hardhat_run_test
from ext_tests.core.harness import external_test
from ext_tests.core.project import (
    download_project,
    force_solc_modules,
    force_truffle_version,
    neutralize_package_json_hooks,
    neutralize_package_lock,
    neutralize_packaged_contracts,
    replace_global_solc,
    replace_version_pragmas,
)
from ext_tests.core.shell import run_command
from ext_tests.core.solc import setup_solc
from ext_tests.core.truffle import truffle_run_test
from ext_tests.errors import ExternalTestFailure
from ext_tests.io.loader import load_project
from ext_tests.io.schema import (
    ExternalTestReport,
    Framework,
    PresetRun,
    ProjectCheckout,
    ProjectDefinition,
    RunStatus,
    SolcInfo,
)
from ext_tests.io.writer import write_report
from ext_tests.policy.presets import BinaryType
from ext_tests.policy.profile import Profile
from ext_tests.policy.validation import USAGE, print_presets_or_exit, verify_input

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Per-framework compiler wiring ────────────────────────────────────────────

def _wire_truffle(project_dir: Path, test_dir: Path, solc: SolcInfo) -> Path:
    """Make Truffle pick up the compiler under test; returns the solc path."""
    if solc.binary_type == BinaryType.NATIVE:
        replace_global_solc(test_dir, solc.binary_path)
        return Path(solc.binary_path)
    solcjs_dir = Path(solc.solcjs_dir)
    force_solc_modules(project_dir, solcjs_dir)
    return solcjs_dir


def _wire_hardhat(config_file: Path, solc: SolcInfo) -> Path:
    """Append the solc build subtask; returns the compiler path used."""
    if solc.binary_type == BinaryType.SOLCJS:
        solc_path = Path(solc.solcjs_dir) / "soljson.js"
    else:
        solc_path = Path(solc.binary_path)
    force_hardhat_compiler_binary(config_file, solc.binary_type, solc_path, solc)
    return solc_path


# ── Public API ───────────────────────────────────────────────────────────────

def run_external_test(
    project: ProjectDefinition,
    binary_type: Union[str, BinaryType],
    binary_path: Union[str, Path],
    presets: Optional[Union[str, Iterable[str]]] = None,
    profile: Optional[Profile] = None,
    output_dir: Optional[Path] = None,
    workspace_root: Optional[Path] = None,
    keep_workspace: bool = False,
) -> ExternalTestReport:
    """
    Run one external project against the compiler under test.

    Parameters
    ----------
    project : ProjectDefinition
        What to clone and how to install / compile / test it.
    binary_type : str
        ``native`` or ``solcjs``.
    binary_path : str or Path
        Path to ``solc`` or ``soljson.js``.
    presets : str or iterable, optional
        Preset selection.  Defaults to the project's settings presets.
    profile : Profile, optional
        Runner knobs.  Defaults to Profile.from_env().
    output_dir : Path, optional
        Directory to write ``external_test_report.json`` into.

    Raises ExternalTestFailure on the first failure (after writing the
    report, when *output_dir* is set).
    """
    if profile is None:
        profile = Profile.from_env()

    selected = verify_input(binary_type, binary_path, presets)
    binary_type = BinaryType(binary_type)
    if not selected:
        selected = list(project.settings_presets)

    report = ExternalTestReport(
        name=project.name,
        framework=project.framework,
        binary_type=binary_type,
        binary_path=str(Path(binary_path).resolve()),
        evm_version=profile.evm_version,
        presets=selected,
        created_at=_now_iso(),
    )

    if not print_presets_or_exit(selected):
        report.status = report.compute_status()
        report.finished_at = _now_iso()
        if output_dir:
            write_report(report, output_dir)
        return report

    def main(test_dir: Path) -> None:
        solc = setup_solc(
            test_dir,
            binary_type,
            binary_path,
            solcjs_branch=project.solcjs_branch,
            profile=profile,
        )
        report.solc = solc

        checkout = download_project(
            project.repo, project.ref_type, project.ref, test_dir,
            timeout=profile.command_timeout,
        )
        report.checkout = ProjectCheckout(
            repo=project.repo,
            ref_type=project.ref_type,
            ref=project.ref,
            commit=checkout.commit,
        )
        project_dir = checkout.path
        config_file = project_dir / project.config_file

        if project.truffle_version:
            force_truffle_version(project_dir, project.truffle_version)
        neutralize_package_lock(project_dir)
        neutralize_package_json_hooks(project_dir)

        run_command(
            project.install_command or profile.install_command,
            cwd=project_dir,
            timeout=profile.command_timeout,
        )
        neutralize_packaged_contracts(project_dir)

        if project.framework == Framework.TRUFFLE:
            solc_path = _wire_truffle(project_dir, test_dir, solc)
        else:
            _wire_hardhat(config_file, solc)

        replace_version_pragmas(project_dir)

        for preset in selected:
            run = PresetRun(preset=preset)
            report.runs.append(run)
            if project.framework == Framework.TRUFFLE:
                result = truffle_run_test(
                    project_dir,
                    config_file,
                    binary_type,
                    solc_path,
                    preset,
                    project.compile_only_presets,
                    project.compile_command,
                    project.test_command,
                    solc,
                    compile_only=profile.compile_only,
                    evm_version=profile.evm_version,
                    timeout=profile.command_timeout,
                )
            else:
                result = hardhat_run_test(
                    project_dir,
                    config_file,
                    preset,
                    project.compile_only_presets,
                    project.compile_command,
                    project.test_command,
                    solc,
                    config_var_name=project.config_var_name,
                    compile_only=profile.compile_only,
                    evm_version=profile.evm_version,
                    timeout=profile.command_timeout,
                )
            report.runs[-1] = result

    # replace_global_solc prepends to PATH; undo that once the run is over
    saved_path = os.environ.get("PATH", "")
    try:
        external_test(
            project.name,
            main,
            workspace_root=workspace_root,
            keep_workspace=keep_workspace,
        )
    except Exception as e:
        report.error = str(e)
        if report.runs and report.runs[-1].status != RunStatus.SUCCESS:
            report.runs[-1].error = str(e)
        raise
    finally:
        os.environ["PATH"] = saved_path
        report.status = report.compute_status()
        report.finished_at = _now_iso()
        if output_dir:
            write_report(report, output_dir)

    logger.info(
        "External test %s finished: %s (%d presets)",
        project.name, report.status.value, len(report.runs),
    )
    return report


# ── CLI ──────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ext-tests",
        description="ext_tests — run an external project against a locally built solc",
        usage=f"%(prog)s [options] PROJECT_JSON {USAGE}",
    )
    parser.add_argument("project", type=Path, help="Project definition (JSON)")
    parser.add_argument("binary_type", help="native or solcjs")
    parser.add_argument("binary_path", type=Path, help="Path to solc or soljson.js")
    parser.add_argument(
        "presets",
        nargs="?",
        default=None,
        help="Space-separated settings presets (default: the project's presets)",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Directory to write external_test_report.json",
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        default=None,
        help="Parent directory for the temporary test directory",
    )
    parser.add_argument(
        "--compile-only",
        action="store_true",
        help="Compile and verify only; skip every test step (same as COMPILE_ONLY=1)",
    )
    parser.add_argument(
        "--keep-workspace",
        action="store_true",
        help="Do not delete the test directory after a successful run",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (command output)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    profile = Profile.from_env()
    if args.compile_only and not profile.compile_only:
        profile = replace(profile, compile_only=True)

    try:
        project = load_project(args.project)
        report = run_external_test(
            project,
            args.binary_type,
            args.binary_path,
            presets=args.presets,
            profile=profile,
            output_dir=args.output_dir,
            workspace_root=args.workspace,
            keep_workspace=args.keep_workspace,
        )
    except (ExternalTestFailure, ValueError) as e:
        logger.error("%s", e)
        return 1

    print(f"Project: {report.name} ({report.framework.value})")
    print(f"Compiler: {report.solc.version if report.solc else 'n/a'}")
    for run in report.runs:
        tested = "compile only" if run.test_skipped else "compiled + tested"
        print(f"  {run.preset}: {run.status.value} ({tested})")
    print(f"Status: {report.status.value}")
    if args.output_dir:
        print(f"Report written to: {args.output_dir}")
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
