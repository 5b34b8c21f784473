"""Forgiving id / display-name resolution for scenario entities.

Canonical data is stored by id, but generators (and scenario authors) refer to
things by either id or display name with arbitrary casing. Every handler goes
through `resolve_key` instead of re-implementing the two-pass match.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, TypeVar

T = TypeVar("T")


def norm_key(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip().casefold()


def resolve_key(entries: Mapping[str, T], ref: str | None, *, by_name: bool = True) -> str | None:
    """Return the canonical key in `entries` that `ref` refers to, or None.

    Order: exact id, normalized id, then (if `by_name`) normalized display name.
    First match in mapping order wins.
    """

    if not ref or not ref.strip():
        return None
    if ref in entries:
        return ref

    key = norm_key(ref)
    for k in entries:
        if norm_key(k) == key:
            return k

    if by_name:
        for k, entry in entries.items():
            name: Any = getattr(entry, "name", None)
            if isinstance(name, str) and norm_key(name) == key:
                return k

    return None
