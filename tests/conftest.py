"""测试共享 fixture — 制品构造、formula 构造、假下载

网络永远不会被访问：fake_download 替换 fetcher.download_file，
按 URL 从本地文件复制。
"""

from __future__ import annotations

import io
import shutil
import tarfile
import urllib.error
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest

import brewform.core.config as cfgmod
import brewform.core.fetcher as fetchermod
from brewform.core.formula.loader import parse_descriptor
from brewform.core.models import PackageDescriptor
from brewform.utils.hashing import sha256_file

INTEL_URL = "https://example.com/releases/v0.1.0/brewup-v0.1.0-x86_64-apple-darwin.tar.gz"
ARM_URL = "https://example.com/releases/v0.1.0/brewup-v0.1.0-aarch64-apple-darwin.tar.gz"
SOURCE_URL = "https://example.com/archive/refs/tags/v0.1.0.tar.gz"

BREWUP_SCRIPT = "#!/bin/sh\necho \"brewup 0.1.0\"\n"


def make_tarball(path: Path, files: dict[str, str], *, top_dir: str = "") -> Path:
    """构造 tar.gz 制品，files 为 {相对路径: 内容}"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(f"{top_dir}/{name}" if top_dir else name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return path


def descriptor_data(**overrides: object) -> dict:
    data: dict = {
        "name": "brewup",
        "description": "CLI tool to automate Homebrew package management",
        "homepage": "https://github.com/xcrong/brewup",
        "license": "MIT",
        "version": "0.1.0",
        "sources": [
            {"platform": "intel-mac", "url": INTEL_URL, "sha256": "a" * 64},
            {"platform": "arm-mac", "url": ARM_URL, "sha256": "b" * 64},
        ],
        "install": ["install -m 755 brewup {bin}/brewup"],
        "test": ["{bin}/brewup --version"],
    }
    data.update(overrides)
    return data


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> cfgmod.Config:
    """每个测试独立的配置和目录"""
    cfg = cfgmod.Config(
        formula_dir=str(tmp_path / "Formula"),
        ledger_file=str(tmp_path / "Formula" / "published.yml"),
        cache_dir=str(tmp_path / "cache"),
        cellar=str(tmp_path / "Cellar"),
        download_retries=0,
    )
    monkeypatch.setattr(cfgmod, "_current", cfg)
    monkeypatch.setattr(fetchermod, "RETRY_DELAY", 0)
    return cfg


@pytest.fixture()
def brewup_tarball(tmp_path: Path) -> Path:
    return make_tarball(tmp_path / "assets" / "brewup.tar.gz", {"brewup": BREWUP_SCRIPT})


@pytest.fixture()
def make_descriptor(brewup_tarball: Path) -> Callable[..., PackageDescriptor]:
    """构造两个 mac 变体都指向真实制品哈希的 formula"""
    digest = sha256_file(brewup_tarball)

    def _make(**overrides: object) -> PackageDescriptor:
        overrides.setdefault("sources", [
            {"platform": "intel-mac", "url": INTEL_URL, "sha256": digest},
            {"platform": "arm-mac", "url": ARM_URL, "sha256": digest},
        ])
        return parse_descriptor(descriptor_data(**overrides))

    return _make


@dataclass
class FakeDownloads:
    """URL -> 本地文件映射，calls 记录每次下载的 URL"""

    assets: dict[str, Path]
    calls: list[str] = field(default_factory=list)


@pytest.fixture()
def fake_download(
    monkeypatch: pytest.MonkeyPatch, brewup_tarball: Path,
) -> FakeDownloads:
    fake = FakeDownloads(assets={
        INTEL_URL: brewup_tarball,
        ARM_URL: brewup_tarball,
    })

    def _download(url: str, dest: Path, timeout: int) -> None:
        fake.calls.append(url)
        if url not in fake.assets:
            raise urllib.error.URLError(f"no route to {url}")
        shutil.copyfile(fake.assets[url], dest)

    monkeypatch.setattr(fetchermod, "download_file", _download)
    return fake
