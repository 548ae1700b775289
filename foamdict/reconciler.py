#!/usr/bin/env python3
"""
Indexed Group Reconciler — keeps ``<prefix>_1 .. <prefix>_N`` in step with a count.

Groups are never renumbered: shrinking drops the highest indices, growing
appends new ones after the last patch of boundaryField.
"""

from typing import Callable, Iterable, List, Tuple

from foamdict.patch_store import (
    get_block,
    indexed_block_names,
    remove_block,
    rename_block,
    set_body,
    upsert_body,
)

LEGACY_PREFIXES = ("inlet", "object", "wall")
GROUP_PREFIXES = ("inlet", "object", "wall", "outlet")

BodyBuilder = Callable[[int], List[str]]


def normalize_legacy(text: str, prefixes: Iterable[str] = LEGACY_PREFIXES) -> str:
    """Turn a bare ``inlet`` block into ``inlet_1``, or drop it if ``inlet_1`` exists."""
    for prefix in prefixes:
        if get_block(text, prefix) is None:
            continue
        indexed = f"{prefix}_1"
        if get_block(text, indexed) is not None:
            text = remove_block(text, prefix)
        else:
            text = rename_block(text, prefix, indexed)
    return text


def normalize_pair(u_text: str, t_text: str) -> Tuple[str, str]:
    return normalize_legacy(u_text), normalize_legacy(t_text)


def trim_surplus(text: str, prefix: str, desired_count: int) -> str:
    """Remove ``<prefix>_k`` for k > desired_count, plus index 0 and zero-padded names."""
    for index, name in indexed_block_names(text, prefix):
        if 1 <= index <= desired_count and name == f"{prefix}_{index}":
            continue
        while get_block(text, name) is not None:
            text = remove_block(text, name)
    return text


def reconcile(
    text: str,
    prefix: str,
    desired_count: int,
    body_builder: BodyBuilder,
    replace_existing: bool = False,
) -> str:
    """Make the group hold exactly indices 1..desired_count.

    Args:
        text: Dictionary text containing (or about to contain) boundaryField.
        prefix: Group name, e.g. ``"inlet"``.
        desired_count: Target count; negative values count as 0.
        body_builder: Returns the body lines for a given index.
        replace_existing: Rewrite bodies of patches that already exist
            instead of leaving them alone.

    Returns:
        The reconciled text. Running it again with the same arguments
        returns the same text.
    """
    desired_count = max(int(desired_count), 0)
    text = trim_surplus(text, prefix, desired_count)
    write = set_body if replace_existing else upsert_body
    for index in range(1, desired_count + 1):
        text = write(text, f"{prefix}_{index}", body_builder(index))
    return text
