"""
Profile — runner knobs that are not part of a project definition.

Keeps the core steps free of environment lookups: everything tunable
(EVM version, solc-js source, timeouts, compile-only mode) flows in
through a Profile.
"""
import os
from dataclasses import dataclass

from ext_tests.policy.presets import CURRENT_EVM_VERSION

SOLCJS_REPO_URL = "https://github.com/ethereum/solc-js.git"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Profile:
    """Describes how external tests are executed."""

    profile_id: str
    evm_version: str = CURRENT_EVM_VERSION
    solcjs_repo_url: str = SOLCJS_REPO_URL
    solcjs_branch: str = "master"
    solcjs_install_dir: str = "solc/"
    install_command: str = "npm install"
    command_timeout: int = 3600       # seconds, per external command
    compile_only: bool = False        # COMPILE_ONLY=1 skips every test step

    @classmethod
    def default(cls) -> "Profile":
        return cls(profile_id="solc-ext-default")

    @classmethod
    def from_env(cls) -> "Profile":
        """Default profile overridden by environment variables."""
        return cls(
            profile_id="solc-ext-env",
            evm_version=os.getenv("EXT_TEST_EVM_VERSION", CURRENT_EVM_VERSION),
            solcjs_repo_url=os.getenv("SOLCJS_REPO_URL", SOLCJS_REPO_URL),
            solcjs_branch=os.getenv("SOLCJS_BRANCH", "master"),
            command_timeout=int(os.getenv("EXT_TEST_COMMAND_TIMEOUT", "3600")),
            compile_only=_env_flag("COMPILE_ONLY"),
        )
