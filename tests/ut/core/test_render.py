"""Ruby formula 渲染测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from brewform.core.formula.loader import load_descriptor, parse_descriptor
from brewform.core.formula.render import class_name, render_formula
from tests.conftest import ARM_URL, INTEL_URL, SOURCE_URL, descriptor_data

REPO_FORMULA = Path(__file__).resolve().parents[3] / "Formula"


@pytest.mark.parametrize("name,expected", [
    ("brewup", "Brewup"),
    ("brewup-source", "BrewupSource"),
    ("foo_bar.baz", "FooBarBaz"),
])
def test_class_name(name: str, expected: str) -> None:
    assert class_name(name) == expected


class TestRenderBinary:
    def test_on_macos_blocks(self) -> None:
        ruby = render_formula(parse_descriptor(descriptor_data()))
        assert ruby.startswith("class Brewup < Formula\n")
        assert '  desc "CLI tool to automate Homebrew package management"' in ruby
        assert f'  url "{INTEL_URL}"' in ruby
        assert "  on_macos do\n    if Hardware::CPU.intel?\n" in ruby
        assert f'      url "{ARM_URL}"' in ruby
        assert '    bin.install "brewup"' in ruby
        assert '    system "#{bin}/brewup", "--version"' in ruby
        assert "depends_on" not in ruby
        assert ruby.endswith("end\n")

    def test_intel_branch_before_arm(self) -> None:
        ruby = render_formula(parse_descriptor(descriptor_data()))
        assert ruby.index("Hardware::CPU.intel?") < ruby.index("Hardware::CPU.arm?")

    def test_literal_interpolation_escaped(self) -> None:
        ruby = render_formula(parse_descriptor(descriptor_data(description='say "#{hi}"')))
        assert r'desc "say \"\#{hi}\""' in ruby

    def test_repo_formula(self) -> None:
        ruby = render_formula(load_descriptor(REPO_FORMULA / "brewup.yml"))
        assert "class Brewup < Formula" in ruby
        assert 'bin.install "brewup"' in ruby


class TestRenderSource:
    def test_build_dependency(self) -> None:
        data = descriptor_data(
            name="brewup-source",
            sources=[{
                "platform": "generic-source", "url": SOURCE_URL,
                "sha256": "c" * 64, "build_dep": "rust",
            }],
            install=["cargo install --locked --root {prefix} --path ."],
        )
        ruby = render_formula(parse_descriptor(data))
        assert ruby.startswith("class BrewupSource < Formula\n")
        assert f'  url "{SOURCE_URL}"' in ruby
        assert '  depends_on "rust" => :build' in ruby
        assert 'system "cargo", "install", *std_cargo_args' in ruby
        assert "on_macos" not in ruby

    def test_repo_source_formula_text(self) -> None:
        ruby = render_formula(load_descriptor(REPO_FORMULA / "brewup-source.yml"))
        assert ruby == '''\
class BrewupSource < Formula
  desc "🍺 CLI tool to automate Homebrew package management"
  homepage "https://github.com/xcrong/brewup"
  url "https://github.com/xcrong/brewup/archive/refs/tags/v0.1.0.tar.gz"
  sha256 "REPLACE_WITH_ACTUAL_SHA256"
  license "MIT"
  version "0.1.0"

  depends_on "rust" => :build

  def install
    system "cargo", "install", *std_cargo_args
  end

  test do
    system "#{bin}/brewup", "--version"
  end
end
'''

    def test_source_variant_is_top_level_url(self) -> None:
        data = descriptor_data()
        data["sources"] = data["sources"] + [{
            "platform": "generic-source", "url": SOURCE_URL,
            "sha256": "c" * 64, "build_dep": "rust",
        }]
        ruby = render_formula(parse_descriptor(data))
        assert ruby.index(SOURCE_URL) < ruby.index("on_macos do")

    def test_generic_command(self) -> None:
        ruby = render_formula(parse_descriptor(descriptor_data(
            install=["make install PREFIX={prefix}"],
        )))
        assert '    system "make", "install", "PREFIX=#{prefix}"' in ruby
