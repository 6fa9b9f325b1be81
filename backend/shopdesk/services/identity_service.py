# Overview: Service-layer identity resolution for entity references.

"""
Identity Service - dual-scheme entity references

WHY: Entities live in a document store with opaque native ids, but rows that
were migrated from the old relational store still get referenced by their
integer primary key. Both must keep working without a reindexing pass.

REFERENCE KINDS:
- OPAQUE: 24 hex characters, the native id shape -> match `id`
- LEGACY_NUMERIC: a non-negative integer -> match `legacy_id`
- UNRECOGNIZED: anything else -> literal match on `id` (usually no row)

Raw identifiers are parsed once, at the edge of an operation, into an
EntityRef. Everything below that works with the parsed value.
"""

from __future__ import annotations

import enum
import re
import secrets
import time
from dataclasses import dataclass
from typing import Any, Union

from sqlalchemy.sql.elements import ColumnElement

from ..errors import ValidationError


NATIVE_ID_LENGTH = 24

_NATIVE_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")
_LEGACY_ID_RE = re.compile(r"^\d+$")


class RefKind(str, enum.Enum):
    OPAQUE = "OPAQUE"
    LEGACY_NUMERIC = "LEGACY_NUMERIC"
    UNRECOGNIZED = "UNRECOGNIZED"


@dataclass(frozen=True)
class NativeRef:
    value: str
    kind = RefKind.OPAQUE

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class LegacyRef:
    value: int
    kind = RefKind.LEGACY_NUMERIC

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class RawRef:
    value: str
    kind = RefKind.UNRECOGNIZED

    def __str__(self) -> str:
        return self.value


EntityRef = Union[NativeRef, LegacyRef, RawRef]


@dataclass(frozen=True)
class Resolution:
    kind: RefKind
    filter: ColumnElement


def new_native_id() -> str:
    """Timestamp-prefixed 24-hex id, same shape as the store's native keys."""
    return f"{int(time.time()):08x}{secrets.token_hex(8)}"


def is_native_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_NATIVE_ID_RE.match(value))


def parse_ref(raw: Any) -> EntityRef:
    """
    Classify an incoming identifier.

    Native shape wins over numeric: a 24-digit decimal string is a native id.
    Integers (not booleans) and digit-only strings are legacy keys.
    """
    if isinstance(raw, (NativeRef, LegacyRef, RawRef)):
        return raw

    if raw is None:
        raise ValidationError("Reference is required")

    if isinstance(raw, bool):
        return RawRef(str(raw))

    if isinstance(raw, int):
        if raw >= 0:
            return LegacyRef(raw)
        return RawRef(str(raw))

    text = str(raw).strip()
    if _NATIVE_ID_RE.match(text):
        return NativeRef(text.lower())
    if _LEGACY_ID_RE.match(text):
        return LegacyRef(int(text))
    return RawRef(text)


def parse_optional_ref(raw: Any) -> EntityRef | None:
    if raw is None:
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    return parse_ref(raw)


def ref_filter(ref: EntityRef, native_col, legacy_col) -> ColumnElement:
    """Lookup filter for a reference held in a (native, legacy) column pair."""
    if isinstance(ref, LegacyRef):
        return legacy_col == ref.value
    return native_col == ref.value


def identity_filter(model, ref: EntityRef) -> ColumnElement:
    """Lookup filter against a model's own identity (`id` / `legacy_id`)."""
    return ref_filter(ref, model.id, model.legacy_id)


def resolve(raw: Any, model) -> Resolution:
    """Classify `raw` and build the lookup filter for `model`."""
    ref = parse_ref(raw)
    return Resolution(kind=ref.kind, filter=identity_filter(model, ref))


def split_ref(ref: EntityRef | None) -> tuple[str | None, int | None]:
    """
    Storage form of a reference: (native_or_raw, legacy).

    Exactly one side is set for a present reference.
    """
    if ref is None:
        return None, None
    if isinstance(ref, LegacyRef):
        return None, ref.value
    return ref.value, None


def join_ref(native: str | None, legacy: int | None) -> EntityRef | None:
    """Inverse of split_ref; legacy side wins when both are set."""
    if legacy is not None:
        return LegacyRef(int(legacy))
    if native:
        return parse_ref(native)
    return None


def entity_ref(entity) -> EntityRef:
    """Best reference to an already loaded entity (native id)."""
    return NativeRef(entity.id) if is_native_id(entity.id) else RawRef(entity.id)
