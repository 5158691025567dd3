"""Symbol sources: produce a document symbol tree for a buffer."""

import ast
from pathlib import Path
from typing import Protocol

from loguru import logger

from wherewasi.context.models import Symbol, SymbolKind, SymbolRange

PYTHON_SUFFIXES = {".py", ".pyi", ".pyw"}


class SymbolSource(Protocol):
    def symbols_for(self, file_path: str, text: str) -> list[Symbol] | None:
        """Return the top-level symbols of the buffer, or None if unavailable."""
        ...


def _range(node: ast.AST) -> SymbolRange:
    start = node.lineno
    decorators = getattr(node, "decorator_list", None)
    if decorators:
        start = min(start, *(d.lineno for d in decorators))
    return SymbolRange(
        start_line=start - 1,
        start_column=0 if decorators else node.col_offset,
        end_line=(node.end_lineno or node.lineno) - 1,
        end_column=node.end_col_offset or 0,
    )


def _is_property(node: ast.FunctionDef | ast.AsyncFunctionDef) -> bool:
    for decorator in node.decorator_list:
        if isinstance(decorator, ast.Name) and decorator.id in ("property", "cached_property"):
            return True
        if isinstance(decorator, ast.Attribute) and decorator.attr in ("setter", "getter", "cached_property"):
            return True
    return False


def _assigned_names(node: ast.Assign | ast.AnnAssign) -> list[str]:
    targets = node.targets if isinstance(node, ast.Assign) else [node.target]
    return [t.id for t in targets if isinstance(t, ast.Name)]


class _SymbolBuilder:
    def build(self, body: list[ast.stmt], in_class: bool = False) -> list[Symbol]:
        symbols: list[Symbol] = []
        for node in body:
            if isinstance(node, ast.ClassDef):
                symbols.append(
                    Symbol(
                        name=node.name,
                        kind=SymbolKind.CLASS,
                        range=_range(node),
                        children=self.build(node.body, in_class=True),
                    )
                )
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                symbols.append(
                    Symbol(
                        name=node.name,
                        kind=self._function_kind(node, in_class),
                        range=_range(node),
                        children=self.build(node.body),
                    )
                )
            elif isinstance(node, (ast.Assign, ast.AnnAssign)):
                for name in _assigned_names(node):
                    kind = SymbolKind.CONSTANT if name.isupper() else SymbolKind.VARIABLE
                    symbols.append(Symbol(name=name, kind=kind, range=_range(node)))
        return symbols

    @staticmethod
    def _function_kind(node: ast.FunctionDef | ast.AsyncFunctionDef, in_class: bool) -> SymbolKind:
        if not in_class:
            return SymbolKind.FUNCTION
        if node.name == "__init__":
            return SymbolKind.CONSTRUCTOR
        if _is_property(node):
            return SymbolKind.PROPERTY
        return SymbolKind.METHOD


class PythonSymbolSource:
    """Derives symbols from Python source with the ``ast`` module."""

    def symbols_for(self, file_path: str, text: str) -> list[Symbol] | None:
        if Path(file_path).suffix not in PYTHON_SUFFIXES:
            return None
        try:
            tree = ast.parse(text, filename=file_path)
        except (SyntaxError, ValueError) as exc:
            logger.debug("No symbols for {}: {}", file_path, exc)
            return None
        return _SymbolBuilder().build(tree.body)
