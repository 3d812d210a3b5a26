"""Prefix filtering of a namespace key set.

The remote API has no native prefix or pagination support, so listing
always fetches every key in the namespace and narrows it down here.
"""
from __future__ import annotations
from typing import Iterable, List

SEPARATOR = "/"


def is_direct_child(key: str, prefix: str) -> bool:
    """Return True if `key` is at most one path level below `prefix`.

    `key` must already start with `prefix`. A single leading separator
    in the remainder is ignored, so both ``"a" -> "a/b"`` and
    ``"a/" -> "a/b"`` count as direct children.
    """
    remainder = key[len(prefix):]
    if remainder.startswith(SEPARATOR):
        remainder = remainder[len(SEPARATOR):]
    return SEPARATOR not in remainder


def filter_keys(keys: Iterable[str], prefix: str, recursive: bool) -> List[str]:
    """Return keys starting with `prefix`, preserving their input order.

    Prefix matching is a plain string test: ``"ab"`` matches prefix
    ``"a"``. When `recursive` is false, descendants deeper than one path
    level are dropped.
    """
    out: List[str] = []
    for key in keys:
        if not key.startswith(prefix):
            continue
        if recursive or is_direct_child(key, prefix):
            out.append(key)
    return out
