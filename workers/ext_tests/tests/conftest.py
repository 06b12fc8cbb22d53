"""
Shared pytest fixtures for ext_tests tests.

Provides a fake native ``solc`` (a shell script printing a fixed version)
and throwaway git repositories laid out like Truffle / Hardhat projects,
so the full clone → patch → compile → verify → test pipeline runs without
network access or Node.js.

Requirements:
  - a POSIX shell (the fake compiler and project scripts are sh)
  - git, for the checkout tests

Tests that need git are skipped when it is not installed.
"""
import os
import platform
import shutil
import subprocess
import textwrap
from pathlib import Path
from typing import Dict

import pytest

from ext_tests.io.schema import SolcInfo
from ext_tests.policy.presets import BinaryType

FULL_VERSION = "0.8.10+commit.fc410830.Linux.g++"
SHORT_VERSION = "0.8.10"

FAKE_SOLC = textwrap.dedent(f"""\
    #!/bin/sh
    echo "solc, the solidity compiler commandline interface"
    echo "Version: {FULL_VERSION}"
""")

TOKEN_SOL = textwrap.dedent("""\
    // SPDX-License-Identifier: MIT
    pragma solidity ^0.8.0;

    contract Token {
        mapping(address => uint256) public balanceOf;
    }
""")

PACKAGE_JSON = textwrap.dedent("""\
    {
      "name": "fake-project",
      "version": "1.0.0",
      "scripts": {
        "prepare": "husky install",
        "prepublish": "npm run build",
        "test": "truffle test"
      },
      "devDependencies": {
        "truffle": "^5.1.0"
      }
    }
""")

# Truffle writes the compiler version into every artifact; so does this.
TRUFFLE_COMPILE_SH = textwrap.dedent("""\
    set -e
    version=$(solc --version | tail -n 1 | sed 's/^Version: //')
    mkdir -p build/contracts
    printf '{"contractName": "Token", "compiler": {"name": "solc", "version": "%s"}}\\n' "$version" > build/contracts/Token.json
""")

HARDHAT_COMPILE_SH = textwrap.dedent(f"""\
    set -e
    mkdir -p artifacts/build-info
    printf '{{"solcVersion": "{SHORT_VERSION}", "solcLongVersion": "{FULL_VERSION}"}}\\n' > artifacts/build-info/0a1b2c.json
""")

WRONG_COMPILE_SH = textwrap.dedent("""\
    set -e
    mkdir -p build/contracts artifacts/build-info
    echo '{"compiler": {"version": "0.8.9+commit.e5eed63a.Linux.g++"}}' > build/contracts/Token.json
    echo '{"solcVersion": "0.8.9", "solcLongVersion": "0.8.9+commit.e5eed63a.Linux.g++"}' > artifacts/build-info/0a1b2c.json
""")

TEST_SH = "touch tests-ran\n"


@pytest.fixture(scope="session")
def posix_ok():
    """Skip tests that execute shell scripts on non-POSIX hosts."""
    if platform.system() == "Windows":
        pytest.skip("ext_tests runs sh scripts; use WSL or Docker on Windows")


@pytest.fixture(scope="session")
def git_ok(posix_ok):
    """Skip tests if git is not available."""
    if shutil.which("git") is None:
        pytest.skip("git not available - install git to run these tests")


@pytest.fixture
def fake_solc(tmp_path, posix_ok) -> Path:
    """An executable that answers ``--version`` like a native solc build."""
    path = tmp_path / "bin" / "solc-under-test"
    path.parent.mkdir()
    path.write_text(FAKE_SOLC)
    path.chmod(0o755)
    return path


@pytest.fixture
def fake_soljson(tmp_path) -> Path:
    path = tmp_path / "soljson.js"
    path.write_text("var Module = {};\n")
    return path


@pytest.fixture
def solc_info(fake_solc) -> SolcInfo:
    return SolcInfo(
        binary_type=BinaryType.NATIVE,
        binary_path=str(fake_solc),
        version=FULL_VERSION,
        version_short=SHORT_VERSION,
    )


def write_tree(root: Path, files: Dict[str, str]) -> Path:
    """Create *files* (relative path → content) under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.name=ext-tests", "-c", "user.email=ext-tests@example.com",
         *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
        timeout=30,
        env={**os.environ, "GIT_CONFIG_NOSYSTEM": "1"},
    )
    return result.stdout.strip()


def make_git_repo(root: Path, files: Dict[str, str], branch: str = "main") -> Path:
    """Commit *files* into a fresh repository at *root* on *branch*."""
    root.mkdir(parents=True)
    write_tree(root, files)
    _git(root, "init", "-q")
    _git(root, "checkout", "-q", "-b", branch)
    # lets "git fetch origin <sha>" work for commit checkouts
    _git(root, "config", "uploadpack.allowAnySHA1InWant", "true")
    _git(root, "add", "-A")
    _git(root, "commit", "-q", "-m", "initial")
    return root


def head_commit(repo: Path) -> str:
    return _git(repo, "rev-parse", "HEAD")


@pytest.fixture
def project_files() -> Dict[str, str]:
    """A project that can be driven both as Truffle and as Hardhat."""
    return {
        "package.json": PACKAGE_JSON,
        "package-lock.json": "{}\n",
        "truffle-config.js": "module.exports = {networks: {}};\n",
        "hardhat.config.js": "module.exports = {};\n",
        "contracts/Token.sol": TOKEN_SOL,
        "compile-truffle.sh": TRUFFLE_COMPILE_SH,
        "compile-hardhat.sh": HARDHAT_COMPILE_SH,
        "compile-wrong.sh": WRONG_COMPILE_SH,
        "test.sh": TEST_SH,
    }


@pytest.fixture
def project_repo(tmp_path, git_ok, project_files) -> Path:
    return make_git_repo(tmp_path / "upstream", project_files)


@pytest.fixture
def project_dir(tmp_path, project_files) -> Path:
    """The same project as a plain directory (no git)."""
    return write_tree(tmp_path / "project", project_files)


@pytest.fixture
def git_head():
    return head_commit


class FakeRedis:
    """The handful of Redis list/string commands the worker and API use."""

    def __init__(self):
        self.lists: Dict[str, list] = {}
        self.values: Dict[str, str] = {}

    def ping(self):
        return True

    def rpush(self, name, *values):
        self.lists.setdefault(name, []).extend(values)
        return len(self.lists[name])

    def lrange(self, name, start, end):
        items = self.lists.get(name, [])
        return items[start:] if end == -1 else items[start:end + 1]

    def blpop(self, keys, timeout=0):
        for key in keys:
            if self.lists.get(key):
                return key, self.lists[key].pop(0)
        return None

    def set(self, name, value):
        self.values[name] = value
        return True

    def get(self, name):
        return self.values.get(name)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
