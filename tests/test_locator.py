"""Tests for symbol and comment location."""

import textwrap

import pytest

from wherewasi.context.locator import (
    code_preview,
    extract_tagged_comment,
    find_containing_symbol,
    format_symbol,
    locate_comment,
    locate_symbol,
)
from wherewasi.context.models import Symbol, SymbolKind, SymbolRange
from wherewasi.context.symbols import PythonSymbolSource

KEYWORDS = ["TODO", "FIXME", "HACK", "NOTE", "BUG", "XXX"]


def sym(name, kind, start, end, children=None) -> Symbol:
    return Symbol(
        name=name,
        kind=kind,
        range=SymbolRange(start_line=start, end_line=end, end_column=80),
        children=children or [],
    )


@pytest.fixture
def tree():
    return [
        sym("helper", SymbolKind.FUNCTION, 0, 4),
        sym(
            "Repo",
            SymbolKind.CLASS,
            6,
            30,
            [
                sym("__init__", SymbolKind.CONSTRUCTOR, 7, 9),
                sym("save", SymbolKind.METHOD, 11, 20, [sym("inner", SymbolKind.FUNCTION, 13, 15)]),
            ],
        ),
    ]


class TestLocateSymbol:
    def test_innermost_wins(self, tree):
        assert find_containing_symbol(tree, 14, 2).name == "inner"

    def test_method_inside_class(self, tree):
        assert locate_symbol(tree, 18, 0) == "Method: save()"

    def test_class_body_outside_methods(self, tree):
        assert locate_symbol(tree, 25, 0) == "Class: Repo"

    def test_top_level_function(self, tree):
        assert locate_symbol(tree, 2, 0) == "Function: helper()"

    def test_outside_everything(self, tree):
        assert locate_symbol(tree, 5, 0) is None

    def test_no_symbols(self):
        assert locate_symbol(None, 1, 1) is None
        assert locate_symbol([], 1, 1) is None

    def test_column_bounds(self):
        symbol = Symbol(
            name="x",
            kind=SymbolKind.VARIABLE,
            range=SymbolRange(start_line=3, start_column=4, end_line=3, end_column=9),
        )
        assert locate_symbol([symbol], 3, 5) == "Variable: x"
        assert locate_symbol([symbol], 3, 2) is None
        assert locate_symbol([symbol], 3, 10) is None

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (SymbolKind.FUNCTION, "Function: run()"),
            (SymbolKind.METHOD, "Method: run()"),
            (SymbolKind.CONSTRUCTOR, "Constructor: run"),
            (SymbolKind.INTERFACE, "Interface: run"),
            (SymbolKind.PROPERTY, "Property: run"),
            (SymbolKind.CONSTANT, "Constant: run"),
            (SymbolKind.OTHER, "Code: run"),
        ],
    )
    def test_format(self, kind, expected):
        assert format_symbol(sym("run", kind, 0, 1)) == expected


class TestExtractTaggedComment:
    @pytest.mark.parametrize(
        "line,expected",
        [
            ("    // TODO: fix this", "TODO: fix this"),
            ("x = 1  # FIXME handle None", "FIXME: handle None"),
            ("/* HACK: temporary */", "HACK: temporary"),
            ("<!-- NOTE: keep in sync -->", "NOTE: keep in sync"),
            ("// todo: lowercase works", "TODO: lowercase works"),
        ],
    )
    def test_comment_styles(self, line, expected):
        assert extract_tagged_comment(line, KEYWORDS) == expected

    def test_plain_code_does_not_match(self):
        assert extract_tagged_comment("todo_list.append(item)", KEYWORDS) is None

    def test_keyword_without_message(self):
        assert extract_tagged_comment("# TODO", KEYWORDS) is None

    def test_custom_keywords(self):
        assert extract_tagged_comment("# REVIEW: naming", ["REVIEW"]) == "REVIEW: naming"
        assert extract_tagged_comment("# TODO: naming", ["REVIEW"]) is None


class TestLocateComment:
    def test_prefers_lines_before(self):
        lines = ["code"] * 20
        lines[7] = "# TODO: before"
        lines[13] = "# TODO: after"
        assert locate_comment(lines, 10, KEYWORDS) == "TODO: before"

    def test_current_line_first(self):
        lines = ["# TODO: above", "x = 1  # FIXME: here"]
        assert locate_comment(lines, 1, KEYWORDS) == "FIXME: here"

    def test_nearest_before_wins(self):
        lines = ["# TODO: far", "# TODO: near", "code"]
        assert locate_comment(lines, 2, KEYWORDS) == "TODO: near"

    def test_falls_back_to_after(self):
        lines = ["code"] * 10
        lines[8] = "// BUG: off by one"
        assert locate_comment(lines, 2, KEYWORDS) == "BUG: off by one"

    def test_window_is_ten_lines(self):
        lines = ["code"] * 40
        lines[9] = "# TODO: eleven above"
        lines[31] = "# TODO: eleven below"
        assert locate_comment(lines, 20, KEYWORDS) is None

        lines[10] = "# TODO: ten above"
        assert locate_comment(lines, 20, KEYWORDS) == "TODO: ten above"

    def test_empty_buffer(self):
        assert locate_comment([], 0, KEYWORDS) is None


class TestCodePreview:
    def test_marks_cursor_line(self):
        lines = [f"line {i}" for i in range(10)]
        preview = code_preview(lines, 5, context_lines=1).splitlines()
        assert preview == ["  5: line 4", "→ 6: line 5", "  7: line 6"]

    def test_clamped_at_start(self):
        preview = code_preview(["a", "b"], 0, context_lines=3).splitlines()
        assert preview == ["→ 1: a", "  2: b"]


SOURCE = textwrap.dedent(
    '''\
    MAX_SIZE = 10


    class Store:
        name = "store"

        def __init__(self):
            self.items = []

        @property
        def size(self):
            return len(self.items)

        def save(self, item):
            def check():
                return True
            self.items.append(item)


    async def main():
        pass
    '''
)


class TestPythonSymbolSource:
    @pytest.fixture
    def symbols(self):
        return PythonSymbolSource().symbols_for("/proj/store.py", SOURCE)

    def test_top_level(self, symbols):
        assert [(s.name, s.kind) for s in symbols] == [
            ("MAX_SIZE", SymbolKind.CONSTANT),
            ("Store", SymbolKind.CLASS),
            ("main", SymbolKind.FUNCTION),
        ]

    def test_class_members(self, symbols):
        store = symbols[1]
        assert [(s.name, s.kind) for s in store.children] == [
            ("name", SymbolKind.VARIABLE),
            ("__init__", SymbolKind.CONSTRUCTOR),
            ("size", SymbolKind.PROPERTY),
            ("save", SymbolKind.METHOD),
        ]

    def test_locate_in_nested_function(self, symbols):
        # line 15 (0-based) is "return True" inside check()
        assert locate_symbol(symbols, 15, 16) == "Function: check()"

    def test_locate_in_method(self, symbols):
        assert locate_symbol(symbols, 16, 12) == "Method: save()"

    def test_decorator_belongs_to_property(self, symbols):
        assert locate_symbol(symbols, 9, 4) == "Property: size"

    def test_non_python_file(self):
        assert PythonSymbolSource().symbols_for("/proj/app.ts", "function a() {}") is None

    def test_syntax_error(self):
        assert PythonSymbolSource().symbols_for("/proj/broken.py", "def (:\n") is None
