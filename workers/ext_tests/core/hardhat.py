"""
Hardhat — override the solc build subtask and compiler settings.

Two injections are appended to the project's ``hardhat.config.{js,ts}``:

1. a ``TASK_COMPILE_SOLIDITY_GET_SOLC_BUILD`` subtask returning the
   compiler under test instead of a downloaded release, and
2. a ``solidity`` settings block for the selected preset.

After compilation every ``artifacts/build-info/*.json`` must record both
the short and the long compiler version.
"""
import fnmatch
import logging
import re
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ext_tests.core.harness import Step, compile_and_run_test
from ext_tests.errors import fail
from ext_tests.io.schema import PresetRun, SolcInfo
from ext_tests.policy.presets import CURRENT_EVM_VERSION, BinaryType, settings_from_preset

logger = logging.getLogger(__name__)


def hardhat_solc_build_subtask(
    solc_version: str,
    full_solc_version: str,
    binary_type: Union[str, BinaryType],
    solc_path: Union[str, Path],
    language: str,
) -> str:
    """Render the subtask override in JavaScript or TypeScript."""
    binary_type = BinaryType(binary_type)
    is_solcjs = "true" if binary_type == BinaryType.SOLCJS else "false"

    if language == "js":
        header = [
            "const {TASK_COMPILE_SOLIDITY_GET_SOLC_BUILD} = require('hardhat/builtin-tasks/task-names');",
            "const assert = require('assert');",
            "",
            "subtask(TASK_COMPILE_SOLIDITY_GET_SOLC_BUILD, async (args, hre, runSuper) => {",
        ]
    elif language == "ts":
        header = [
            "import {TASK_COMPILE_SOLIDITY_GET_SOLC_BUILD} from 'hardhat/builtin-tasks/task-names';",
            "import assert = require('assert');",
            "import {subtask} from 'hardhat/config';",
            "",
            "subtask(TASK_COMPILE_SOLIDITY_GET_SOLC_BUILD, async (args: any, _hre: any, _runSuper: any) => {",
        ]
    else:
        raise ValueError(f"Unsupported Hardhat config language: '{language}'")

    body = [
        f"    assert(args.solcVersion == '{solc_version}', 'Unexpected solc version: ' + args.solcVersion)",
        "    return {",
        f"        compilerPath: '{Path(solc_path).resolve()}',",
        f"        isSolcJs: {is_solcjs},",
        "        version: args.solcVersion,",
        f"        longVersion: '{full_solc_version}'",
        "    }",
        "})",
    ]
    return "\n".join(header + body) + "\n"


def hardhat_compiler_settings(solc_version: str, preset: str, evm_version: str) -> str:
    return "\n".join([
        "{",
        f"    version: '{solc_version}',",
        f"    settings: {settings_from_preset(preset, evm_version)}",
        "}",
    ])


def _config_language(config_file: Path) -> str:
    return config_file.suffix.lstrip(".")


def force_hardhat_compiler_binary(
    config_file: Path,
    binary_type: Union[str, BinaryType],
    solc_path: Union[str, Path],
    solc: SolcInfo,
) -> str:
    """Append the solc build subtask to *config_file*; returns the text appended."""
    binary_type = BinaryType(binary_type)
    logger.info("Configuring Hardhat...")
    logger.info("-------------------------------------")
    logger.info("Config file: %s", config_file)
    logger.info("Binary type: %s", binary_type.value)
    logger.info("Compiler path: %s", solc_path)

    subtask = hardhat_solc_build_subtask(
        solc.version_short,
        solc.version,
        binary_type,
        solc_path,
        _config_language(config_file),
    )
    with open(config_file, "a", encoding="utf-8") as fh:
        fh.write(subtask)
    return subtask


def force_hardhat_compiler_settings(
    config_file: Path,
    preset: str,
    solc: SolcInfo,
    config_var_name: Optional[str] = None,
    evm_version: str = CURRENT_EVM_VERSION,
) -> str:
    """Append the preset's ``solidity`` settings; returns the text appended."""
    logger.info("Configuring Hardhat...")
    logger.info("-------------------------------------")
    logger.info("Config file: %s", config_file)
    logger.info("Settings preset: %s", preset)
    logger.info("Settings: %s", settings_from_preset(preset, evm_version))
    logger.info("EVM version: %s", evm_version)
    logger.info("Compiler version: %s", solc.version_short)
    logger.info("Compiler version (full): %s", solc.version)
    logger.info("-------------------------------------")

    settings = hardhat_compiler_settings(solc.version_short, preset, evm_version)
    language = _config_language(config_file)
    if language == "js":
        if config_var_name:
            raise ValueError("config_var_name is only supported for TypeScript configs")
        line = f"module.exports['solidity'] = {settings}\n"
    elif language == "ts":
        if not config_var_name:
            raise ValueError("config_var_name is required for TypeScript configs")
        line = f"{config_var_name}.solidity = {{compilers: [{settings}]}}\n"
    else:
        raise ValueError(f"Unsupported Hardhat config file: {config_file}")

    with open(config_file, "a", encoding="utf-8") as fh:
        fh.write(line)
    return line


BUILD_INFO_PATTERN = "*artifacts/build-info/*.json"


def _find_build_info_files(project_dir: Path) -> List[Path]:
    return sorted(
        p for p in project_dir.rglob("*.json")
        if p.is_file()
        and fnmatch.fnmatchcase(p.relative_to(project_dir).as_posix(), BUILD_INFO_PATTERN)
    )


def hardhat_verify_compiler_version(
    project_dir: Path,
    solc_version: str,
    full_solc_version: str,
) -> List[str]:
    """Check every build-info file records both compiler versions."""
    logger.info(
        "Verify that the correct version (%s/%s) of the compiler was used "
        "to compile the contracts...",
        solc_version, full_solc_version,
    )
    short_re = re.compile(r'"solcVersion":\s*"' + re.escape(solc_version) + '"')
    long_re = re.compile(r'"solcLongVersion":\s*"' + re.escape(full_solc_version) + '"')

    build_info_files = _find_build_info_files(project_dir)
    if not build_info_files:
        logger.warning("No build-info files found under %s", project_dir)

    verified: List[str] = []
    for path in build_info_files:
        rel = path.relative_to(project_dir).as_posix()
        text = path.read_text(encoding="utf-8", errors="replace")
        if not short_re.search(text) or not long_re.search(text):
            fail(f"Wrong compiler version detected in {rel}.")
        verified.append(rel)
    return verified


def hardhat_clean(project_dir: Path) -> None:
    shutil.rmtree(project_dir / "artifacts", ignore_errors=True)
    shutil.rmtree(project_dir / "cache", ignore_errors=True)


def hardhat_run_test(
    project_dir: Path,
    config_file: Path,
    preset: str,
    compile_only_presets: Iterable[str],
    compile_fn: Step,
    test_fn: Step,
    solc: SolcInfo,
    config_var_name: Optional[str] = None,
    compile_only: bool = False,
    evm_version: str = CURRENT_EVM_VERSION,
    timeout: Optional[int] = None,
) -> PresetRun:
    hardhat_clean(project_dir)
    force_hardhat_compiler_settings(
        config_file, preset, solc, config_var_name, evm_version,
    )
    return compile_and_run_test(
        project_dir,
        compile_fn,
        test_fn,
        hardhat_verify_compiler_version,
        preset,
        compile_only_presets,
        solc,
        compile_only=compile_only,
        evm_version=evm_version,
        timeout=timeout,
    )
