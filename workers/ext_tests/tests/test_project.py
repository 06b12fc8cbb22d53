"""
test_project — checkout and the neutralization steps applied to a fresh clone.
"""
import os

import pytest

from ext_tests.core.project import (
    CHECKOUT_DIRNAME,
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
from ext_tests.errors import CommandFailed, ExternalTestFailure


class TestDownloadProject:

    def test_branch_clone(self, tmp_path, project_repo, git_head):
        test_dir = tmp_path / "work"
        test_dir.mkdir()

        checkout = download_project(project_repo.as_uri(), "branch", "main", test_dir)

        assert checkout.path == test_dir / CHECKOUT_DIRNAME
        assert (checkout.path / "contracts" / "Token.sol").is_file()
        assert checkout.commit == git_head(project_repo)

    def test_tag_clone(self, tmp_path, project_repo, git_head):
        run_command(["git", "tag", "v1.0.0"], cwd=project_repo)
        test_dir = tmp_path / "work"
        test_dir.mkdir()

        checkout = download_project(project_repo.as_uri(), "tag", "v1.0.0", test_dir)
        assert checkout.commit == git_head(project_repo)

    def test_commit_fetch(self, tmp_path, project_repo, git_head):
        sha = git_head(project_repo)
        test_dir = tmp_path / "work"
        test_dir.mkdir()

        checkout = download_project(project_repo.as_uri(), "commit", sha, test_dir)

        assert checkout.commit == sha
        assert (checkout.path / "package.json").is_file()

    def test_invalid_ref_type(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid ref type: 'revision'"):
            download_project("https://example.invalid/repo.git", "revision", "x", tmp_path)

    def test_missing_branch_fails(self, tmp_path, project_repo):
        test_dir = tmp_path / "work"
        test_dir.mkdir()
        with pytest.raises(CommandFailed):
            download_project(project_repo.as_uri(), "branch", "does-not-exist", test_dir)


class TestPackageJson:

    def test_force_truffle_version(self, project_dir):
        force_truffle_version(project_dir, "5.4.0")
        text = (project_dir / "package.json").read_text()
        assert '"truffle": "5.4.0"' in text
        assert "^5.1.0" not in text

    def test_lock_files_removed(self, project_dir):
        (project_dir / "yarn.lock").write_text("")
        removed = neutralize_package_lock(project_dir)
        assert removed == ["yarn.lock", "package-lock.json"]
        assert not (project_dir / "package-lock.json").exists()
        assert neutralize_package_lock(project_dir) == []

    def test_hooks_blanked(self, project_dir):
        neutralize_package_json_hooks(project_dir)
        text = (project_dir / "package.json").read_text()
        assert '"prepare": ""' in text
        assert '"prepublish": ""' in text
        assert '"test": "truffle test"' in text

    def test_hooks_require_package_json(self, tmp_path):
        with pytest.raises(ExternalTestFailure, match="package.json not found"):
            neutralize_package_json_hooks(tmp_path)

    def test_truffle_version_requires_package_json(self, tmp_path):
        with pytest.raises(ExternalTestFailure, match="package.json not found"):
            force_truffle_version(tmp_path, "5.4.0")


class TestPragmas:

    def test_fixed_pragmas_relaxed(self, project_dir):
        dep = project_dir / "node_modules" / "@oz" / "contracts" / "Ownable.sol"
        dep.parent.mkdir(parents=True)
        dep.write_text("pragma solidity 0.6.12;\ncontract Ownable {}\n")
        (project_dir / "contracts" / "Range.sol").write_text(
            "pragma solidity >=0.6.0 <0.9.0;\ncontract Range {}\n"
        )

        changed = replace_version_pragmas(project_dir)

        assert changed == 3
        for path in (dep, project_dir / "contracts" / "Token.sol",
                     project_dir / "contracts" / "Range.sol"):
            assert "pragma solidity >=0.0;" in path.read_text()

    def test_other_files_untouched(self, project_dir):
        readme = project_dir / "README.md"
        readme.write_text("pragma solidity ^0.8.0;\n")
        replace_version_pragmas(project_dir)
        assert readme.read_text() == "pragma solidity ^0.8.0;\n"

    def test_idempotent(self, project_dir):
        replace_version_pragmas(project_dir)
        assert replace_version_pragmas(project_dir) == 0


class TestPackagedContracts:

    def test_configs_and_build_info_removed(self, project_dir):
        nm = project_dir / "node_modules"
        files = {
            "dep-a/hardhat.config.js": "",
            "dep-a/hardhat.config.ts": "",
            "dep-b/truffle-config.js": "",
            "dep-c/artifacts/build-info/abc.json": "{}",
            "dep-c/artifacts/contracts/A.sol/A.json": "{}",
            "dep-d/index.js": "",
        }
        for rel, content in files.items():
            (nm / rel).parent.mkdir(parents=True, exist_ok=True)
            (nm / rel).write_text(content)

        removed = neutralize_packaged_contracts(project_dir)

        assert len(removed) == 4
        assert (nm / "dep-c/artifacts/contracts/A.sol/A.json").exists()
        assert (nm / "dep-d/index.js").exists()
        # the project's own config is not inside node_modules
        assert (project_dir / "hardhat.config.js").exists()

    def test_no_node_modules(self, project_dir):
        assert neutralize_packaged_contracts(project_dir) == []


class TestSolcModules:

    def test_every_solcjs_copy_linked(self, project_dir, tmp_path, posix_ok):
        custom = tmp_path / "custom-solc"
        custom.mkdir()
        (custom / "soljson.js").write_text("// under test\n")
        for rel in ("solc", "truffle/node_modules/solc"):
            mod = project_dir / "node_modules" / rel
            mod.mkdir(parents=True)
            (mod / "soljson.js").write_text("// stock\n")
            (mod / "index.js").write_text("")

        replaced = force_solc_modules(project_dir, custom)

        assert len(replaced) == 2
        for mod in replaced:
            assert mod.is_symlink()
            assert (mod / "soljson.js").read_text() == "// under test\n"

    def test_relative_target_resolved_against_project(self, project_dir, posix_ok):
        (project_dir / "solc").mkdir()
        mod = project_dir / "node_modules" / "solc"
        mod.mkdir(parents=True)
        (mod / "soljson.js").write_text("")

        force_solc_modules(project_dir, "solc/")
        assert os.path.realpath(mod) == str((project_dir / "solc").resolve())

    def test_requires_node_modules(self, project_dir):
        with pytest.raises(ValueError, match="node_modules"):
            force_solc_modules(project_dir)


class TestGlobalSolc:

    def test_link_first_on_path(self, tmp_path, fake_solc, monkeypatch):
        monkeypatch.setenv("PATH", "/usr/bin")
        bin_dir = tmp_path / "work"
        bin_dir.mkdir()

        new_path = replace_global_solc(bin_dir, fake_solc)

        assert new_path.split(os.pathsep)[0] == str(bin_dir.resolve())
        assert os.environ["PATH"] == new_path
        assert os.path.realpath(bin_dir / "solc") == str(fake_solc.resolve())

    def test_refuses_to_overwrite(self, tmp_path, fake_solc, monkeypatch):
        monkeypatch.setenv("PATH", "/usr/bin")
        (tmp_path / "solc").write_text("")
        with pytest.raises(ExternalTestFailure, match="A file named 'solc' already exists"):
            replace_global_solc(tmp_path, fake_solc)
