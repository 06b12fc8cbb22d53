"""
Project setup — fetch an external project and neutralize everything that
would let it bypass the compiler under test.

Handles:
- Git checkout of a commit, branch or tag (shallow)
- Lock files and package.json lifecycle hooks
- Framework configs / pre-built artifacts shipped inside npm packages
- solc-js copies installed as dependencies
- Fixed-version pragmas
"""
import fnmatch
import logging
import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from ext_tests.core.shell import run_command
from ext_tests.errors import fail
from ext_tests.io.schema import RefType

logger = logging.getLogger(__name__)

CHECKOUT_DIRNAME = "ext"

_PRAGMA_RE = re.compile(r"pragma solidity [^;\n]+;")
_TRUFFLE_DEP_RE = re.compile(r'"truffle":\s*".*"')
_HOOK_RES = {
    hook: re.compile(rf'"{hook}": *".*"')
    for hook in ("prepublish", "prepare")
}


@dataclass
class Checkout:
    path: Path
    commit: str


def current_commit(repo_dir: Path) -> str:
    return run_command(["git", "rev-parse", "HEAD"], cwd=repo_dir).stdout.strip()


def download_project(
    repo: str,
    ref_type: Union[str, RefType],
    ref: str,
    test_dir: Path,
    timeout: Optional[int] = None,
) -> Checkout:
    """Shallow-fetch *ref* of *repo* into ``<test_dir>/ext``."""
    try:
        ref_type = RefType(ref_type)
    except ValueError:
        raise ValueError(f"Invalid ref type: '{ref_type}'") from None

    target = test_dir / CHECKOUT_DIRNAME
    logger.info("Cloning %s %s of %s...", ref_type.value, ref, repo)

    if ref_type == RefType.COMMIT:
        target.mkdir()
        run_command(["git", "init"], cwd=target, timeout=timeout)
        run_command(["git", "remote", "add", "origin", repo], cwd=target, timeout=timeout)
        run_command(["git", "fetch", "--depth", "1", "origin", ref], cwd=target, timeout=timeout)
        run_command(["git", "reset", "--hard", "FETCH_HEAD"], cwd=target, timeout=timeout)
    else:
        run_command(
            ["git", "clone", "--depth", "1", repo, "-b", ref, str(target)],
            cwd=test_dir,
            timeout=timeout,
        )

    commit = current_commit(target)
    logger.info("Current commit hash: %s", commit)
    return Checkout(path=target, commit=commit)


def force_truffle_version(project_dir: Path, version: str) -> None:
    """Pin the ``truffle`` dependency in package.json to *version*."""
    package_json = project_dir / "package.json"
    if not package_json.is_file():
        fail("package.json not found")
    text = package_json.read_text()
    package_json.write_text(_TRUFFLE_DEP_RE.sub(f'"truffle": "{version}"', text))


def _iter_files(root: Path):
    """Regular files under *root*, not following directory symlinks."""
    for dirpath, dirnames, filenames in os.walk(root):
        if ".git" in dirnames:
            dirnames.remove(".git")
        for name in filenames:
            path = Path(dirpath) / name
            if path.is_file() and not path.is_symlink():
                yield path


def replace_version_pragmas(project_dir: Path) -> int:
    """
    Relax fixed-version pragmas to ``>=0.0`` in every .sol file.

    Node dependencies are included.  Returns the number of files changed.
    """
    logger.info("Replacing fixed-version pragmas...")
    changed = 0
    for path in _iter_files(project_dir):
        if path.suffix != ".sol":
            continue
        text = path.read_text(encoding="utf-8", errors="surrogateescape")
        new_text = _PRAGMA_RE.sub("pragma solidity >=0.0;", text)
        if new_text != text:
            path.write_text(new_text, encoding="utf-8", errors="surrogateescape")
            changed += 1
    return changed


def neutralize_package_lock(project_dir: Path) -> List[str]:
    """Remove lock files so they cannot override package.json changes."""
    logger.info("Removing package lock files...")
    removed = []
    for name in ("yarn.lock", "package-lock.json"):
        path = project_dir / name
        if path.exists():
            path.unlink()
            logger.info("removed '%s'", name)
            removed.append(name)
    return removed


def neutralize_package_json_hooks(project_dir: Path) -> None:
    """Blank out the ``prepublish`` and ``prepare`` scripts."""
    logger.info("Disabling package.json hooks...")
    package_json = project_dir / "package.json"
    if not package_json.is_file():
        fail("package.json not found")

    text = package_json.read_text()
    for hook, pattern in _HOOK_RES.items():
        text = pattern.sub(f'"{hook}": ""', text)
    package_json.write_text(text)


def neutralize_packaged_contracts(project_dir: Path) -> List[Path]:
    """
    Delete framework configs and pre-built artifacts shipped in npm packages.

    Frameworks build contracts from any package that has a config file.
    That is redundant (imported sources are compiled with the main project)
    and it bypasses the compiler under test, which breaks version checks.
    """
    logger.info("Removing framework config and artifacts from npm packages...")
    node_modules = project_dir / "node_modules"
    removed: List[Path] = []
    if not node_modules.is_dir():
        return removed

    for path in _iter_files(node_modules):
        rel = path.relative_to(project_dir).as_posix()
        is_config = (
            fnmatch.fnmatchcase(path.name, "hardhat.config.*")
            or fnmatch.fnmatchcase(path.name, "truffle-config.*")
        )
        is_artifact = fnmatch.fnmatchcase(rel, "*artifacts/build-info/*.json")
        if is_config or is_artifact:
            path.unlink()
            removed.append(path)
    return removed


def force_solc_modules(
    project_dir: Path,
    custom_solcjs_path: Union[str, Path] = "solc/",
) -> List[Path]:
    """Replace every installed solc-js package with a link to ours."""
    node_modules = project_dir / "node_modules"
    if not node_modules.is_dir():
        raise ValueError(f"node_modules/ not found in {project_dir}")

    target = Path(custom_solcjs_path)
    if not target.is_absolute():
        target = (project_dir / target).resolve()

    logger.info("Replacing all installed solc-js with a link to the latest version...")
    module_dirs = sorted({
        p.parent for p in _iter_files(node_modules)
        if p.name == "soljson.js" and p.parent.name == "solc"
    })
    for module_dir in module_dirs:
        logger.info("Found and replaced solc-js in %s", module_dir)
        shutil.rmtree(module_dir)
        module_dir.symlink_to(target, target_is_directory=True)
    return module_dirs


def replace_global_solc(directory: Path, solc_path: Union[str, Path]) -> str:
    """
    Put the compiler under test first on PATH as ``solc``.

    Returns the new PATH value.
    """
    link = directory / "solc"
    if link.exists() or link.is_symlink():
        fail(f"A file named 'solc' already exists in '{directory}'.")

    link.symlink_to(Path(solc_path).resolve())
    os.environ["PATH"] = f"{directory.resolve()}{os.pathsep}{os.environ.get('PATH', '')}"
    return os.environ["PATH"]
