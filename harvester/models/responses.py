"""Parsed response types for the three content backends.

Every backend hands back loosely shaped payloads.  They are parsed exactly
once, at the client boundary, into the frozen dataclasses below so the rest
of the pipeline never has to dig through raw dictionaries.  A field the backend did
not send (or sent with the wrong type) is ``None``; a record the backend does
not know about is represented by the client returning ``None`` instead of an
instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from numbers import Real
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence


def as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    return None


def as_number(value: Any) -> Optional[float | int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Real):
        return value  # type: ignore[return-value]
    return None


def as_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    return None


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    return None


def _id_list(values: Any, key: str | None = None) -> tuple[int, ...]:
    if not isinstance(values, Sequence) or isinstance(values, (str, bytes)):
        return ()
    result: list[int] = []
    for entry in values:
        raw = entry.get(key) if key is not None and isinstance(entry, Mapping) else entry
        parsed = as_int(raw)
        if parsed is not None:
            result.append(parsed)
    return tuple(result)


def _frozen_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return MappingProxyType({str(key): item for key, item in value.items()})
    return MappingProxyType({})


# ---------------------------------------------------------------------------
# Metadata service: maps
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ApiMapSummary:
    """One hit of the map search endpoint."""

    id: int
    name: Optional[str] = None
    street_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["ApiMapSummary"]:
        if not isinstance(payload, Mapping):
            return None
        map_id = as_int(payload.get("id"))
        if map_id is None:
            return None
        return cls(
            id=map_id,
            name=as_str(payload.get("name")),
            street_name=as_str(payload.get("streetName")),
        )


@dataclass(frozen=True, slots=True)
class ApiMapDetail:
    """Full map document; ``monster_ids`` lists one entry per spawn point."""

    id: Optional[int] = None
    name: Optional[str] = None
    street_name: Optional[str] = None
    background_music: Optional[str] = None
    is_town: Optional[bool] = None
    monster_ids: tuple[int, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["ApiMapDetail"]:
        if not isinstance(payload, Mapping):
            return None
        return cls(
            id=as_int(payload.get("id")),
            name=as_str(payload.get("name")),
            street_name=as_str(payload.get("streetName")),
            background_music=as_str(payload.get("backgroundMusic")),
            is_town=as_bool(payload.get("isTown")),
            monster_ids=_id_list(payload.get("mobs"), "id"),
        )


# ---------------------------------------------------------------------------
# Metadata service: monsters
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ApiMonster:
    id: int
    name: Optional[str] = None
    description: Optional[str] = None
    meta: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    frame_books: frozenset[str] = frozenset()
    found_at: tuple[int, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["ApiMonster"]:
        if not isinstance(payload, Mapping):
            return None
        monster_id = as_int(payload.get("id"))
        if monster_id is None:
            return None
        frame_books = payload.get("framebooks")
        return cls(
            id=monster_id,
            name=as_str(payload.get("name")),
            description=as_str(payload.get("description")),
            meta=_frozen_mapping(payload.get("meta")),
            frame_books=frozenset(
                str(key) for key in frame_books
            ) if isinstance(frame_books, Mapping) else frozenset(),
            found_at=_id_list(payload.get("foundAt")),
        )

    def stat(self, key: str) -> Optional[int]:
        return as_int(self.meta.get(key))

    @property
    def is_body_attack(self) -> bool:
        return as_bool(self.meta.get("isBodyAttack")) is True


# ---------------------------------------------------------------------------
# Metadata service: items
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ApiTypeInfo:
    """Classification triplet supplied by the metadata service."""

    overall_category: Optional[str] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["ApiTypeInfo"]:
        if not isinstance(payload, Mapping):
            return None
        return cls(
            overall_category=as_str(payload.get("overallCategory")),
            category=as_str(payload.get("category")),
            sub_category=as_str(payload.get("subCategory")),
        )


@dataclass(frozen=True, slots=True)
class ApiItem:
    id: int
    name: Optional[str] = None
    description: Optional[str] = None
    type_info: Optional[ApiTypeInfo] = None
    meta: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["ApiItem"]:
        if not isinstance(payload, Mapping):
            return None
        item_id = as_int(payload.get("id"))
        if item_id is None:
            return None

        # The service nests name/description under ``description`` for most
        # items but returns them flat for a few older ones.
        name = as_str(payload.get("name"))
        raw_description = payload.get("description")
        description: Optional[str] = None
        if isinstance(raw_description, str):
            description = raw_description
        elif isinstance(raw_description, Mapping):
            if not name:
                name = as_str(raw_description.get("name"))
            description = as_str(raw_description.get("description"))

        return cls(
            id=item_id,
            name=name or None,
            description=description,
            type_info=ApiTypeInfo.from_payload(payload.get("typeInfo")),
            meta=_frozen_mapping(payload.get("metaInfo")),
        )

    def meta_int(self, key: str) -> Optional[int]:
        return as_int(self.meta.get(key))

    def meta_flag(self, key: str) -> bool:
        return as_bool(self.meta.get(key)) is True


# ---------------------------------------------------------------------------
# Tree service
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TreeNode:
    children: tuple[str, ...] = ()
    value: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["TreeNode"]:
        if not isinstance(payload, Mapping):
            return None
        children = payload.get("children")
        if isinstance(children, Sequence) and not isinstance(children, (str, bytes)):
            names = tuple(str(child) for child in children)
        else:
            names = ()
        return cls(children=names, value=payload.get("value"))

    @property
    def numeric_value(self) -> Optional[float | int]:
        return as_number(self.value)


# ---------------------------------------------------------------------------
# Relational backend
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DbItem:
    """Row of the item master table."""

    item_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    slot_max: Optional[int] = None
    whole_price: Optional[int] = None
    karma: Optional[int] = None
    quest_id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DbItem":
        return cls(
            item_id=int(row["itemid"]),
            name=as_str(row.get("name")),
            description=as_str(row.get("desc")),
            slot_max=as_int(row.get("slotMax")),
            whole_price=as_int(row.get("wholePrice")),
            karma=as_int(row.get("karma")),
            quest_id=as_int(row.get("questId")),
        )


@dataclass(frozen=True, slots=True)
class DbGearStat:
    key: str
    value: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional["DbGearStat"]:
        value = as_int(row.get("value"))
        key = as_str(row.get("key"))
        if key is None or value is None:
            return None
        return cls(key=key, value=value)


@dataclass(frozen=True, slots=True)
class DbDropRow:
    item_id: int
    min_quantity: int
    max_quantity: int
    quest_id: int
    chance: int
    item_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DbDropRow":
        return cls(
            item_id=int(row["itemid"]),
            min_quantity=as_int(row.get("minimum_quantity")) or 0,
            max_quantity=as_int(row.get("maximum_quantity")) or 0,
            quest_id=as_int(row.get("questid")) or 0,
            chance=as_int(row.get("chance")) or 0,
            item_name=as_str(row.get("itemName")),
        )


__all__ = [
    "ApiItem",
    "ApiMapDetail",
    "ApiMapSummary",
    "ApiMonster",
    "ApiTypeInfo",
    "DbDropRow",
    "DbGearStat",
    "DbItem",
    "TreeNode",
    "as_bool",
    "as_int",
    "as_number",
    "as_str",
]
