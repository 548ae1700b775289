#!/usr/bin/env python3
"""
Patch Store — named block operations on boundaryField-style dictionaries.

Every function takes dictionary text and returns new text. Bytes outside the
block being edited are left exactly as they were.
"""

import re
from typing import List, NamedTuple, Optional, Tuple

from foamdict.brace_scanner import scan_balanced

CONTAINER = "boundaryField"
INDENT = "    "
PATCH_INDENT = INDENT
BODY_INDENT = INDENT * 2


class Block(NamedTuple):
    name: str
    start: int
    open_brace: int
    end: int
    inner: str


def _name_pattern(name: str) -> "re.Pattern":
    # Name must start a line or follow whitespace, so "my_inlet_1" never matches "inlet_1"
    return re.compile(rf"(?<!\S){re.escape(name)}\s*\{{", re.MULTILINE)


def _block_at(text: str, name: str, start: int) -> Optional[Block]:
    span = scan_balanced(text, start, "{")
    if span is None:
        return None
    return Block(name, span.start, span.open_delim, span.end, span.inner(text))


def get_block(text: str, name: str) -> Optional[Block]:
    """Return the first block called ``name``, or None if absent or unbalanced."""
    match = _name_pattern(name).search(text)
    if not match:
        return None
    return _block_at(text, name, match.start())


def find_container(text: str, name: str = CONTAINER) -> Optional[Block]:
    """First *balanced* block called ``name``; unterminated occurrences are skipped."""
    for match in _name_pattern(name).finditer(text):
        block = _block_at(text, name, match.start())
        if block is not None:
            return block
    return None


def ensure_block(text: str, name: str = CONTAINER) -> str:
    """Append an empty top-level ``name`` block when no balanced one exists."""
    if find_container(text, name) is not None:
        return text
    return text.rstrip() + f"\n\n{name}\n{{\n}}\n"


def remove_block(text: str, name: str) -> str:
    """Drop the block and collapse the whitespace before it into one newline."""
    block = get_block(text, name)
    if block is None:
        return text
    return text[:block.start].rstrip() + "\n" + text[block.end:]


def format_patch(name: str, body_lines: List[str]) -> str:
    lines = [f"{PATCH_INDENT}{name}", f"{PATCH_INDENT}{{"]
    lines.extend(f"{BODY_INDENT}{line}" for line in body_lines)
    lines.append(f"{PATCH_INDENT}}}")
    return "\n".join(lines)


def insert_patch(text: str, name: str, body_lines: List[str], container: str = CONTAINER) -> str:
    """Insert a new patch just before the closing brace of ``container``."""
    text = ensure_block(text, container)
    block = find_container(text, container)
    before = text[:block.end - 1].rstrip()
    after = text[block.end - 1:]
    sep = "\n" if before.endswith("{") else "\n\n"
    return before + sep + format_patch(name, body_lines) + "\n" + after


def closing_indent(inner: str) -> Optional[str]:
    if "\n" not in inner:
        return None
    tail = inner[inner.rfind("\n") + 1:]
    return tail if not tail.strip() else ""


def replace_inner(text: str, block: Block, new_inner: str) -> str:
    return text[:block.open_brace + 1] + new_inner + text[block.end - 1:]


def set_body(text: str, name: str, body_lines: List[str]) -> str:
    """Replace the body of ``name`` with ``body_lines``, inserting the patch if absent.

    Body lines are indented one level deeper than the patch's closing brace;
    the closing brace keeps its original indentation.
    """
    block = get_block(text, name)
    if block is None:
        return insert_patch(text, name, body_lines)

    closing = closing_indent(block.inner)
    if closing is None:
        closing, indent = "", BODY_INDENT
    else:
        indent = closing + INDENT
    inner = "\n" + "\n".join(f"{indent}{line}" for line in body_lines) + "\n" + closing
    return replace_inner(text, block, inner)


def upsert_body(text: str, name: str, body_lines: List[str]) -> str:
    """Like set_body, but leaves an existing block untouched."""
    if get_block(text, name) is not None:
        return text
    return insert_patch(text, name, body_lines)


def rename_block(text: str, old_name: str, new_name: str) -> str:
    block = get_block(text, old_name)
    if block is None:
        return text
    return text[:block.start] + new_name + text[block.start + len(old_name):]


def _indexed_pattern(prefix: str) -> "re.Pattern":
    return re.compile(rf"(?<!\S)({re.escape(prefix)}_(\d+))\s*\{{", re.MULTILINE)


def indexed_block_names(text: str, prefix: str) -> List[Tuple[int, str]]:
    """(index, name) for every ``<prefix>_<n>`` block, sorted by index then name."""
    found = {(int(m.group(2)), m.group(1)) for m in _indexed_pattern(prefix).finditer(text)}
    return sorted(found)


def list_indexed_patches(text: str, prefix: str) -> List[int]:
    """Sorted, de-duplicated indices of ``<prefix>_<n>`` blocks."""
    return sorted({index for index, _ in indexed_block_names(text, prefix)})
