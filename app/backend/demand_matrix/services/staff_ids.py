"""Canonical staff identifier normalization.

Preferred-staff ids reach the filter layer from form state, legacy numeric
keys and UUID columns. Every comparison goes through ``normalize_staff_id`` so
that ``"ABC-123"``, ``"abc-123 "`` and ``UUID("abc...")`` or ``123``, ``"123"``
and ``123.0`` compare equal. A result of None means the id is unusable.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from demand_matrix.models.matrix import StaffIdentifier

_NULL_LITERALS = {"null", "undefined", "none"}


@dataclass(frozen=True, slots=True)
class StaffIdValidation:
    is_valid: bool
    valid_ids: tuple[StaffIdentifier, ...]
    invalid_ids: tuple[StaffIdentifier, ...]
    duplicates: tuple[str, ...]
    normalized_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class StaffIdMatches:
    matches: tuple[str, ...]
    only_in_first: tuple[str, ...]
    only_in_second: tuple[str, ...]

    @property
    def total_matches(self) -> int:
        return len(self.matches)


def normalize_staff_id(value: StaffIdentifier) -> str | None:
    """Return the canonical lower-case form of a staff id, or None if unusable."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        text = str(int(value)) if value.is_integer() else repr(value)
    elif isinstance(value, UUID):
        text = str(value)
    else:
        text = str(value)

    normalized = text.strip().lower()
    if not normalized or normalized in _NULL_LITERALS:
        return None
    return normalized


def normalize_staff_ids(values: Iterable[StaffIdentifier]) -> frozenset[str]:
    """Normalize a collection, dropping unusable ids."""

    normalized = (normalize_staff_id(value) for value in values)
    return frozenset(value for value in normalized if value is not None)


def compare_staff_ids(first: StaffIdentifier, second: StaffIdentifier) -> bool:
    return normalize_staff_id(first) == normalize_staff_id(second)


def is_staff_id_in_set(candidate: StaffIdentifier, normalized_ids: frozenset[str] | set[str]) -> bool:
    normalized = normalize_staff_id(candidate)
    return normalized is not None and normalized in normalized_ids


def validate_staff_ids(values: Iterable[StaffIdentifier]) -> StaffIdValidation:
    """Split ids into usable and unusable ones and report normalized duplicates."""

    valid: list[StaffIdentifier] = []
    invalid: list[StaffIdentifier] = []
    normalized_ids: list[str] = []
    duplicates: list[str] = []
    seen: set[str] = set()

    for value in values:
        normalized = normalize_staff_id(value)
        if normalized is None:
            invalid.append(value)
            continue
        valid.append(value)
        normalized_ids.append(normalized)
        if normalized in seen and normalized not in duplicates:
            duplicates.append(normalized)
        seen.add(normalized)

    return StaffIdValidation(
        is_valid=not invalid and not duplicates,
        valid_ids=tuple(valid),
        invalid_ids=tuple(invalid),
        duplicates=tuple(duplicates),
        normalized_ids=tuple(normalized_ids),
    )


def find_staff_id_matches(
    first: Iterable[StaffIdentifier],
    second: Iterable[StaffIdentifier],
) -> StaffIdMatches:
    """Normalized intersection of two id collections, for diagnostics."""

    first_ids = normalize_staff_ids(first)
    second_ids = normalize_staff_ids(second)
    return StaffIdMatches(
        matches=tuple(sorted(first_ids & second_ids)),
        only_in_first=tuple(sorted(first_ids - second_ids)),
        only_in_second=tuple(sorted(second_ids - first_ids)),
    )
