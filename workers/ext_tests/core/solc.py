"""
Solc setup — install the compiler under test and detect its version.

Native binaries are used in place.  A ``soljson.js`` is dropped into a
fresh solc-js checkout so that the ``solcjs`` wrapper (and any npm package
symlinked to it) runs the emscripten build under test.
"""
import logging
import re
import shutil
from pathlib import Path
from typing import Optional, Union

from ext_tests.core.shell import run_command
from ext_tests.io.schema import SolcInfo
from ext_tests.policy.presets import BinaryType
from ext_tests.policy.profile import Profile

logger = logging.getLogger(__name__)

_NATIVE_VERSION_RE = re.compile(r"^Version: (.*)$")
_SHORT_VERSION_RE = re.compile(r"^([0-9.]+).*\+commit\.[0-9a-f]+.*$")


def parse_native_version(version_output: str) -> str:
    """Extract the full version from ``solc --version`` output (last line)."""
    lines = version_output.strip().splitlines()
    if not lines:
        return ""
    match = _NATIVE_VERSION_RE.match(lines[-1].strip())
    return match.group(1).strip() if match else ""


def short_version(full_version: str) -> str:
    """``0.8.10+commit.fc410830.Linux.g++`` → ``0.8.10``; empty if no match."""
    match = _SHORT_VERSION_RE.match(full_version.strip())
    return match.group(1) if match else ""


def setup_solc(
    test_dir: Path,
    binary_type: Union[str, BinaryType],
    binary_path: Union[str, Path],
    solcjs_branch: Optional[str] = None,
    install_dir: Optional[str] = None,
    profile: Optional[Profile] = None,
) -> SolcInfo:
    """
    Prepare the compiler under test inside *test_dir*.

    Returns a SolcInfo carrying the full and short version strings.
    """
    if profile is None:
        profile = Profile.default()
    binary_type = BinaryType(binary_type)
    binary_path = Path(binary_path).resolve()
    solcjs_branch = solcjs_branch or profile.solcjs_branch
    install_dir = install_dir or profile.solcjs_install_dir

    solcjs_dir: Optional[Path] = None
    if binary_type == BinaryType.SOLCJS:
        logger.info("Setting up solc-js...")
        solcjs_dir = (test_dir / install_dir).resolve()
        run_command(
            ["git", "clone", "--depth", "1", "-b", solcjs_branch,
             profile.solcjs_repo_url, str(solcjs_dir)],
            cwd=test_dir,
            timeout=profile.command_timeout,
        )
        run_command("npm install", cwd=solcjs_dir, timeout=profile.command_timeout)
        shutil.copyfile(binary_path, solcjs_dir / "soljson.js")
        result = run_command(["./solcjs", "--version"], cwd=solcjs_dir,
                             timeout=profile.command_timeout)
        version = result.stdout.strip()
    else:
        logger.info("Setting up solc...")
        result = run_command([str(binary_path), "--version"], cwd=test_dir,
                             timeout=profile.command_timeout)
        version = parse_native_version(result.stdout)

    version_short = short_version(version)
    if not version_short:
        logger.warning("Could not derive a short version from '%s'", version)
    logger.info("Using compiler version %s", version)

    return SolcInfo(
        binary_type=binary_type,
        binary_path=str(binary_path),
        version=version,
        version_short=version_short,
        solcjs_dir=str(solcjs_dir) if solcjs_dir else None,
    )
