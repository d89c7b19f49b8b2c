"""Collect the using directives generated registrations depend on."""

from __future__ import annotations

from typing import Iterable

from ..models import ImportSet, SourceUnit
from .syntax import iter_using_directives


def unit_imports(unit: SourceUnit) -> ImportSet:
    """Using directives written in one unit; global usings are already project-wide."""
    return ImportSet(directive.text for directive in iter_using_directives(unit) if not directive.is_global)


def collect_imports(units: Iterable[SourceUnit], initial: ImportSet | None = None) -> ImportSet:
    """Union the directives of every unit, keeping first-seen order."""
    imports = initial if initial is not None else ImportSet()
    seen: set[str] = set()
    for unit in units:
        if unit.path in seen:
            continue
        seen.add(unit.path)
        imports = imports.union(unit_imports(unit))
    return imports


__all__ = ["collect_imports", "unit_imports"]
