"""formula 描述模块

- loader.py: YAML -> PackageDescriptor 加载与校验
- registry.py: formula 目录 + 发布台账
- lint.py: 静态检查
- render.py: 渲染为 Homebrew Ruby formula
"""

from brewform.core.formula.lint import lint
from brewform.core.formula.loader import load_descriptor, parse_descriptor
from brewform.core.formula.registry import FormulaRegistry
from brewform.core.formula.render import render_formula

__all__ = [
    "FormulaRegistry",
    "lint",
    "load_descriptor",
    "parse_descriptor",
    "render_formula",
]
