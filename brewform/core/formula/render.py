"""把 formula 描述渲染为 Homebrew Ruby formula

渲染规则:
- 类名为包名的 CamelCase（brewup-source -> BrewupSource）
- 顶层 url/sha256 取 generic-source 变体，没有则取第一个变体
- macOS 预编译变体放进 on_macos 块，按 Hardware::CPU.intel? / arm? 分支
- 源码变体的 build_dep 是 Homebrew formula 名，渲染为 depends_on "<formula>" => :build
- 命令中的 {bin} / {prefix} 等占位符映射为 Ruby 插值 #{bin} / #{prefix}
"""

from __future__ import annotations

import re
import shlex

from brewform.core.models import PackageDescriptor, Platform, SourceVariant

_CPU_PREDICATE = {
    Platform.INTEL_MAC: "Hardware::CPU.intel?",
    Platform.ARM_MAC: "Hardware::CPU.arm?",
}

# {buildpath} 在 Homebrew 中就是安装时的当前目录
_PLACEHOLDER_TO_RUBY = {
    "{bin}": "#{bin}",
    "{prefix}": "#{prefix}",
    "{name}": "#{name}",
    "{version}": "#{version}",
    "{buildpath}": "#{buildpath}",
}

_STD_CARGO_ARGS = ["--locked", "--root", "{prefix}", "--path", "."]


def class_name(name: str) -> str:
    parts = [p for p in re.split(r"[-_.+]", name) if p]
    return "".join(p[:1].upper() + p[1:] for p in parts)


def _quote(text: str) -> str:
    """Ruby 双引号字符串；字面量中的 #{ 被转义"""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("#{", "\\#{")
    return f'"{escaped}"'


def _quote_arg(arg: str) -> str:
    """命令参数；占位符转为 Ruby 插值"""
    quoted = _quote(arg)
    for placeholder, ruby in _PLACEHOLDER_TO_RUBY.items():
        quoted = quoted.replace(placeholder, ruby)
    return quoted


def _render_step(step: str) -> str:
    tokens = shlex.split(step)
    # install -m 755 <file> {bin}/<file>  ->  bin.install "<file>"
    if (
        len(tokens) == 5
        and tokens[:3] == ["install", "-m", "755"]
        and tokens[4] == "{bin}/" + tokens[3].rsplit("/", 1)[-1]
    ):
        return f"bin.install {_quote(tokens[3])}"
    if tokens[:2] == ["cargo", "install"] and tokens[2:] == _STD_CARGO_ARGS:
        return 'system "cargo", "install", *std_cargo_args'
    return "system " + ", ".join(_quote_arg(t) for t in tokens)


def _primary_variant(descriptor: PackageDescriptor) -> SourceVariant:
    for v in descriptor.sources:
        if v.platform is Platform.GENERIC_SOURCE:
            return v
    return descriptor.sources[0]


def render_formula(descriptor: PackageDescriptor) -> str:
    """渲染完整的 Ruby formula 文本"""
    primary = _primary_variant(descriptor)
    mac_variants = [v for v in descriptor.sources if v.platform in _CPU_PREDICATE]

    lines = [f"class {class_name(descriptor.name)} < Formula"]
    if descriptor.description:
        lines.append(f"  desc {_quote(descriptor.description)}")
    if descriptor.homepage:
        lines.append(f"  homepage {_quote(descriptor.homepage)}")
    lines.append(f"  url {_quote(primary.url)}")
    lines.append(f"  sha256 {_quote(primary.sha256)}")
    if descriptor.license:
        lines.append(f"  license {_quote(descriptor.license)}")
    lines.append(f"  version {_quote(descriptor.version)}")

    build_deps = sorted({
        v.build_dependency for v in descriptor.sources
        if v.platform is Platform.GENERIC_SOURCE and v.build_dependency
    })
    if build_deps:
        lines.append("")
        lines.extend(f"  depends_on {_quote(dep)} => :build" for dep in build_deps)

    if mac_variants:
        lines.append("")
        lines.append("  on_macos do")
        blocks = []
        for v in mac_variants:
            blocks.append([
                f"    if {_CPU_PREDICATE[v.platform]}",
                f"      url {_quote(v.url)}",
                f"      sha256 {_quote(v.sha256)}",
                "    end",
            ])
        for i, block in enumerate(blocks):
            if i:
                lines.append("")
            lines.extend(block)
        lines.append("  end")

    lines.append("")
    lines.append("  def install")
    lines.extend(f"    {_render_step(s)}" for s in descriptor.install_steps)
    lines.append("  end")

    if descriptor.test_steps:
        lines.append("")
        lines.append("  test do")
        lines.extend(f"    {_render_step(s)}" for s in descriptor.test_steps)
        lines.append("  end")

    lines.append("end")
    return "\n".join(lines) + "\n"
