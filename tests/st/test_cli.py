"""CLI 系统测试 — CliRunner 驱动完整命令链"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from brewform.cli import main
from brewform.utils.hashing import sha256_file
from brewform.utils.yaml_io import load_yaml, save_yaml
from tests.conftest import ARM_URL, SOURCE_URL, descriptor_data


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """main 会重配根日志器，测试结束后恢复原有 handlers"""
    root = logging.getLogger()
    saved = root.handlers[:], root.level
    yield
    for h in root.handlers[:]:
        if h not in saved[0]:
            root.removeHandler(h)
    for h in saved[0]:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(saved[1])


@pytest.fixture()
def workspace(tmp_path: Path, brewup_tarball: Path) -> Path:
    """formula 目录中放一个哈希与本地制品一致的 brewup"""
    digest = sha256_file(brewup_tarball)
    data = descriptor_data()
    for v in data["sources"]:
        v["sha256"] = digest
    save_yaml(tmp_path / "Formula" / "brewup.yml", data)
    return tmp_path


def invoke(workspace: Path, *args: str) -> Result:
    return CliRunner().invoke(main, [
        "--config", str(workspace / "missing.yml"),
        "--formula-dir", str(workspace / "Formula"),
        "--cache-dir", str(workspace / "cache"),
        "--cellar", str(workspace / "Cellar"),
        *args,
    ])


class TestFormulaCommands:
    def test_list(self, workspace: Path) -> None:
        r = invoke(workspace, "list")
        assert r.exit_code == 0, r.output
        assert "brewup" in r.output
        assert "intel-mac,arm-mac" in r.output

    def test_show_unknown(self, workspace: Path) -> None:
        r = invoke(workspace, "show", "nope")
        assert r.exit_code == 1
        assert "FORMULA_NOT_FOUND" in r.output

    def test_check_clean(self, workspace: Path) -> None:
        r = invoke(workspace, "check", "--strict")
        assert r.exit_code == 0, r.output
        assert "✓ brewup@0.1.0" in r.output

    def test_check_placeholder_warns(self, workspace: Path) -> None:
        data = descriptor_data(name="other")
        data["sources"][0]["sha256"] = "REPLACE_WITH_ACTUAL_SHA256"
        save_yaml(workspace / "Formula" / "other.yml", data)
        assert invoke(workspace, "check").exit_code == 0
        r = invoke(workspace, "check", "--strict", "other")
        assert r.exit_code == 1
        assert "sha256" in r.output

    def test_check_invalid_file(self, workspace: Path) -> None:
        save_yaml(workspace / "Formula" / "bad.yml", {"name": "bad"})
        r = invoke(workspace, "check")
        assert r.exit_code == 1
        assert "sources" in r.output

    def test_render(self, workspace: Path) -> None:
        out = workspace / "brewup.rb"
        r = invoke(workspace, "render", "brewup", "--out", str(out))
        assert r.exit_code == 0, r.output
        assert out.read_text().startswith("class Brewup < Formula")

    def test_publish_then_bump(self, workspace: Path) -> None:
        r = invoke(workspace, "publish", "brewup")
        assert r.exit_code == 0, r.output
        assert "0.1.0" in load_yaml(workspace / "Formula" / "published.yml")["brewup"]

        r = invoke(workspace, "bump", "brewup", "0.1.0")
        assert r.exit_code == 1
        assert "VERSION_IMMUTABLE" in r.output

        r = invoke(workspace, "bump", "brewup", "0.2.0", "--sha256", f"arm-mac={'e' * 64}")
        assert r.exit_code == 0, r.output
        assert "REPLACE_WITH_ACTUAL_SHA256" in r.output

        # 占位哈希不能发布
        r = invoke(workspace, "publish", "brewup")
        assert r.exit_code == 1
        assert "intel-mac" in r.output

        r = invoke(workspace, "update-hashes", "brewup", "--sha256", f"intel-mac={'f' * 64}")
        assert r.exit_code == 0, r.output
        assert invoke(workspace, "publish", "brewup").exit_code == 0

    def test_bump_unknown_platform(self, workspace: Path) -> None:
        r = invoke(workspace, "bump", "brewup", "0.2.0", "--sha256", "windows=abc")
        assert r.exit_code == 2
        assert "未知平台" in r.output

    @pytest.mark.parametrize("command", [
        ("bump", "brewup", "0.2.0"),
        ("update-hashes", "brewup"),
    ])
    def test_non_hex_hash_rejected(self, workspace: Path, command: tuple[str, ...]) -> None:
        before = (workspace / "Formula" / "brewup.yml").read_text(encoding="utf-8")
        r = invoke(workspace, *command, "--sha256", "arm-mac=not-a-hash")
        assert r.exit_code == 2
        assert "十六进制" in r.output
        assert (workspace / "Formula" / "brewup.yml").read_text(encoding="utf-8") == before

    def test_edited_published_version_rejected(self, workspace: Path) -> None:
        assert invoke(workspace, "publish", "brewup").exit_code == 0
        path = workspace / "Formula" / "brewup.yml"
        data = load_yaml(path)
        data["sources"][1]["url"] = "https://evil.example.com/brewup.tar.gz"
        save_yaml(path, data)
        r = invoke(workspace, "install", "brewup", "--os", "macos", "--arch", "arm64")
        assert r.exit_code == 1
        assert "VERSION_IMMUTABLE" in r.output

    def test_checksum_local(self, workspace: Path, brewup_tarball: Path) -> None:
        r = invoke(workspace, "checksum", str(brewup_tarball))
        assert r.stdout.strip() == sha256_file(brewup_tarball)

    def test_checksum_remote(self, workspace: Path, brewup_tarball: Path, fake_download) -> None:
        r = invoke(workspace, "checksum", ARM_URL)
        assert r.exit_code == 0, r.output
        assert r.stdout.strip() == sha256_file(brewup_tarball)


class TestInstallCommands:
    def test_resolve(self, workspace: Path) -> None:
        r = invoke(workspace, "resolve", "brewup", "--os", "darwin", "--arch", "aarch64")
        assert r.exit_code == 0, r.output
        assert "arm-mac" in r.output
        assert ARM_URL in r.output

    def test_resolve_no_match(self, workspace: Path) -> None:
        r = invoke(workspace, "resolve", "brewup", "--os", "linux", "--arch", "x86_64")
        assert r.exit_code == 1
        assert "NO_MATCHING_VARIANT" in r.output

    def test_dry_run(self, workspace: Path, fake_download) -> None:
        r = invoke(workspace, "install", "brewup", "--os", "macos", "--arch", "arm64", "--dry-run")
        assert r.exit_code == 0, r.output
        assert f"Would run: download {ARM_URL}" in r.output
        assert fake_download.calls == []
        assert not (workspace / "Cellar").exists()

    def test_install_test_uninstall(self, workspace: Path, fake_download) -> None:
        r = invoke(workspace, "install", "brewup", "--os", "macos", "--arch", "arm64")
        assert r.exit_code == 0, r.output
        assert (workspace / "Cellar" / "brewup" / "0.1.0" / "bin" / "brewup").exists()

        r = invoke(workspace, "test", "brewup")
        assert r.exit_code == 0, r.output

        r = invoke(workspace, "uninstall", "brewup")
        assert "已卸载" in r.output
        r = invoke(workspace, "test", "brewup")
        assert r.exit_code == 1
        assert "NOT_INSTALLED" in r.output and "(test)" in r.output

    def test_install_json_report(self, workspace: Path, fake_download) -> None:
        r = invoke(workspace, "install", "brewup", "--os", "macos", "--arch", "x86_64", "--json")
        assert r.exit_code == 0, r.output
        report = json.loads(r.stdout)
        assert report["outcome"] == "installed"
        assert [s["stage"] for s in report["stages"]] == [
            "resolve", "fetch", "verify", "install", "test",
        ]

    def test_verification_failure_exit_code(self, workspace: Path, fake_download) -> None:
        path = workspace / "Formula" / "brewup.yml"
        data = load_yaml(path)
        data["test"] = ["{bin}/brewup --version", "false"]
        save_yaml(path, data)
        r = invoke(workspace, "install", "brewup", "--os", "macos", "--arch", "arm64")
        assert r.exit_code == 3
        assert "已安装但验证失败" in r.output
        assert (workspace / "Cellar" / "brewup" / "0.1.0" / "bin" / "brewup").exists()

    def test_integrity_failure(self, workspace: Path, fake_download, tmp_path: Path) -> None:
        evil = tmp_path / "evil.tar.gz"
        evil.write_bytes(b"tampered")
        fake_download.assets[ARM_URL] = evil
        r = invoke(workspace, "install", "brewup", "--os", "macos", "--arch", "arm64")
        assert r.exit_code == 1
        assert "verify" in r.output
        assert not (workspace / "Cellar" / "brewup" / "0.1.0").exists()

    def test_source_fallback_missing_build_dep(self, workspace: Path, fake_download) -> None:
        path = workspace / "Formula" / "brewup.yml"
        data = load_yaml(path)
        data["sources"].append({
            "platform": "generic-source", "url": SOURCE_URL,
            "sha256": data["sources"][0]["sha256"], "build_dep": "no-such-toolchain-xyz",
        })
        save_yaml(path, data)
        fake_download.assets[SOURCE_URL] = fake_download.assets[ARM_URL]
        r = invoke(workspace, "install", "brewup", "--os", "linux", "--arch", "x86_64")
        assert r.exit_code == 1
        assert "no-such-toolchain-xyz" in r.output
