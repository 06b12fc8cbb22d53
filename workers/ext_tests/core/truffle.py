"""
Truffle — force compiler settings into truffle-config and check artifacts.

Settings are forced by appending an assignment to ``module.exports`` at
the end of the config file, which overrides whatever the project set.
"""
import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ext_tests.core.harness import Step, compile_and_run_test
from ext_tests.errors import fail
from ext_tests.io.schema import PresetRun, SolcInfo
from ext_tests.policy.presets import CURRENT_EVM_VERSION, BinaryType, settings_from_preset

logger = logging.getLogger(__name__)


def truffle_compiler_settings(solc_path: str, preset: str, evm_version: str) -> str:
    return "\n".join([
        "{",
        "    solc: {",
        f'        version: "{solc_path}",',
        f"        settings: {settings_from_preset(preset, evm_version)}",
        "    }",
        "}",
    ])


def _log_banner(rows: List[tuple]) -> None:
    logger.info("-------------------------------------")
    for label, value in rows:
        logger.info("%s: %s", label, value)
    logger.info("-------------------------------------")


def force_truffle_compiler_settings(
    config_file: Path,
    binary_type: Union[str, BinaryType],
    solc_path: Union[str, Path],
    preset: str,
    solc: SolcInfo,
    evm_version: str = CURRENT_EVM_VERSION,
) -> str:
    """Append a ``compilers`` override to *config_file*; returns the text appended."""
    binary_type = BinaryType(binary_type)
    # Truffle looks a native compiler up on PATH by this name
    if binary_type == BinaryType.NATIVE:
        solc_path = "native"

    logger.info("Forcing Truffle compiler settings...")
    _log_banner([
        ("Config file", config_file),
        ("Binary type", binary_type.value),
        ("Compiler path", solc_path),
        ("Settings preset", preset),
        ("Settings", settings_from_preset(preset, evm_version)),
        ("EVM version", evm_version),
        ("Compiler version", solc.version_short),
        ("Compiler version (full)", solc.version),
    ])

    line = (
        f"module.exports['compilers'] = "
        f"{truffle_compiler_settings(str(solc_path), preset, evm_version)};\n"
    )
    with open(config_file, "a", encoding="utf-8") as fh:
        fh.write(line)
    return line


def truffle_verify_compiler_version(
    project_dir: Path,
    solc_version: str,
    full_solc_version: str,
) -> List[str]:
    """Every build must mention the full compiler version somewhere in build/contracts."""
    logger.info(
        "Verify that the correct version (%s/%s) of the compiler was used "
        "to compile the contracts...",
        solc_version, full_solc_version,
    )
    contracts_dir = project_dir / "build" / "contracts"
    matches: List[str] = []
    if full_solc_version and contracts_dir.is_dir():
        for path in sorted(contracts_dir.rglob("*")):
            if not path.is_file():
                continue
            text = path.read_text(encoding="utf-8", errors="replace")
            if full_solc_version in text:
                matches.append(path.relative_to(project_dir).as_posix())

    if not matches:
        fail("Wrong compiler version detected.")
    for rel in matches:
        logger.debug("%s: %s", rel, full_solc_version)
    return matches


def truffle_clean(project_dir: Path) -> None:
    shutil.rmtree(project_dir / "build", ignore_errors=True)


def truffle_run_test(
    project_dir: Path,
    config_file: Path,
    binary_type: Union[str, BinaryType],
    solc_path: Union[str, Path],
    preset: str,
    compile_only_presets: Iterable[str],
    compile_fn: Step,
    test_fn: Step,
    solc: SolcInfo,
    compile_only: bool = False,
    evm_version: str = CURRENT_EVM_VERSION,
    timeout: Optional[int] = None,
) -> PresetRun:
    truffle_clean(project_dir)
    force_truffle_compiler_settings(
        config_file, binary_type, solc_path, preset, solc, evm_version,
    )
    return compile_and_run_test(
        project_dir,
        compile_fn,
        test_fn,
        truffle_verify_compiler_version,
        preset,
        compile_only_presets,
        solc,
        compile_only=compile_only,
        evm_version=evm_version,
        timeout=timeout,
    )
