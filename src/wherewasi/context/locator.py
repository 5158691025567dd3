"""Locate the enclosing symbol and nearby keyword-tagged comments for a position."""

import re
from collections.abc import Sequence

from wherewasi.context.models import Symbol, SymbolKind

# Lines searched before and after the cursor line for a tagged comment
COMMENT_SEARCH_RANGE = 10

CALLABLE_KINDS = {SymbolKind.FUNCTION, SymbolKind.METHOD}

# {kw} is replaced with the escaped keyword. Group 1 is the message.
COMMENT_PATTERNS = (
    r"//\s*{kw}\s*:?\s*(.+)",
    r"/\*\s*{kw}\s*:?\s*(.+?)\s*\*/",
    r"#\s*{kw}\s*:?\s*(.+)",
    r"<!--\s*{kw}\s*:?\s*(.+?)\s*-->",
)


def find_containing_symbol(symbols: Sequence[Symbol], line: int, column: int) -> Symbol | None:
    """Return the innermost symbol whose range contains the position."""
    best: Symbol | None = None
    for symbol in symbols:
        if not symbol.range.contains(line, column):
            continue
        best = symbol
        if symbol.children:
            child = find_containing_symbol(symbol.children, line, column)
            if child is not None:
                best = child
    return best


def format_symbol(symbol: Symbol) -> str:
    """Format a symbol as ``"<Kind>: <name>"``, adding ``()`` for callables."""
    if symbol.kind in CALLABLE_KINDS:
        return f"{symbol.kind.value}: {symbol.name}()"
    return f"{symbol.kind.value}: {symbol.name}"


def locate_symbol(symbols: Sequence[Symbol] | None, line: int, column: int) -> str | None:
    """Describe the innermost symbol containing the position, if any."""
    if not symbols:
        return None
    symbol = find_containing_symbol(symbols, line, column)
    return format_symbol(symbol) if symbol else None


def _compile_patterns(keyword: str) -> list[re.Pattern]:
    escaped = re.escape(keyword)
    return [re.compile(p.replace("{kw}", escaped), re.IGNORECASE) for p in COMMENT_PATTERNS]


def extract_tagged_comment(line: str, keywords: Sequence[str]) -> str | None:
    """Return ``"<KEYWORD>: <text>"`` if the line holds a tagged comment."""
    stripped = line.strip()
    for keyword in keywords:
        for pattern in _compile_patterns(keyword):
            match = pattern.search(stripped)
            if match and match.group(1).strip():
                return f"{keyword}: {match.group(1).strip()}"
    return None


def locate_comment(lines: Sequence[str], line_number: int, keywords: Sequence[str]) -> str | None:
    """Find the nearest tagged comment around ``line_number``.

    The cursor line and the lines above it are searched first, nearest
    first, then the lines below. The first match wins.
    """
    if not lines or not keywords:
        return None
    last = len(lines) - 1
    line_number = min(max(line_number, 0), last)
    start = max(0, line_number - COMMENT_SEARCH_RANGE)
    end = min(last, line_number + COMMENT_SEARCH_RANGE)

    for i in range(line_number, start - 1, -1):
        found = extract_tagged_comment(lines[i], keywords)
        if found:
            return found

    for i in range(line_number + 1, end + 1):
        found = extract_tagged_comment(lines[i], keywords)
        if found:
            return found

    return None


def code_preview(lines: Sequence[str], line_number: int, context_lines: int = 3) -> str:
    """Numbered lines around ``line_number``, with the cursor line marked."""
    if not lines:
        return ""
    start = max(0, line_number - context_lines)
    end = min(len(lines) - 1, line_number + context_lines)
    out = []
    for i in range(start, end + 1):
        prefix = "→ " if i == line_number else "  "
        out.append(f"{prefix}{i + 1}: {lines[i]}")
    return "\n".join(out)
