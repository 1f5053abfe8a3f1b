"""Validators for persisted corpus payloads.

Records on disk may have been edited by hand or written by an older version
of the pipeline.  Before a persisted file is trusted (reused as a cache entry,
harvested for dependency IDs, or reported by ``harvester validate``) it is
checked against the validators below.
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Real
from typing import Any, ClassVar, Mapping, Sequence


@dataclass(frozen=True)
class FieldSpec:
    expected: Any
    description: str
    required: bool = True


@dataclass(frozen=True)
class SequenceSpec:
    item: Any
    allow_empty: bool = True


@dataclass(frozen=True)
class MappingSpec:
    key: Any
    value: Any


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def is_percentage(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and 0 <= value <= 100


def _matches(value: Any, expected: Any) -> bool:
    if expected is Any:
        return True
    if isinstance(expected, SequenceSpec):
        if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
            return False
        if not expected.allow_empty and not value:
            return False
        return all(_matches(item, expected.item) for item in value)
    if isinstance(expected, MappingSpec):
        if not isinstance(value, Mapping):
            return False
        return all(
            _matches(key, expected.key) and _matches(item, expected.value)
            for key, item in value.items()
        )
    if isinstance(expected, tuple):
        return any(_matches(value, part) for part in expected)
    if isinstance(expected, type) and issubclass(expected, PayloadValidator):
        return isinstance(value, Mapping) and not expected.errors(value)
    if isinstance(expected, type):
        if expected is int:
            return isinstance(value, int) and not isinstance(value, bool)
        if expected is float:
            return isinstance(value, Real) and not isinstance(value, bool)
        return isinstance(value, expected)
    if callable(expected):
        try:
            return bool(expected(value))
        except (TypeError, ValueError):
            return False
    return True


class PayloadValidator:
    """Base class for record payload validators."""

    record: ClassVar[str]
    fields: ClassVar[Mapping[str, FieldSpec]]

    @classmethod
    def errors(cls, data: Any) -> list[str]:
        if not isinstance(data, Mapping):
            return ["payload must be a JSON object"]

        problems: list[str] = []
        for name, spec in cls.fields.items():
            if name not in data:
                if spec.required:
                    problems.append(f"missing required field '{name}' ({spec.description})")
                continue
            value = data[name]
            if not _matches(value, spec.expected):
                problems.append(
                    f"field '{name}' expected {spec.description}, "
                    f"received {type(value).__name__}"
                )
        return problems


class SpawnValidator(PayloadValidator):
    record = "spawn"
    fields = {
        "mobId": FieldSpec(int, "a monster id"),
        "weight": FieldSpec(is_non_negative_int, "a non-negative integer weight"),
    }


class MapPayloadValidator(PayloadValidator):
    record = "map"
    fields = {
        "id": FieldSpec(int, "an integer map id"),
        "name": FieldSpec(str, "a map name"),
        "nameEn": FieldSpec(str, "an English map name", required=False),
        "streetName": FieldSpec(str, "a region label"),
        "mapMark": FieldSpec(str, "a region label", required=False),
        "isTown": FieldSpec(bool, "a town flag", required=False),
        "bgm": FieldSpec(str, "a background music path", required=False),
        "spawns": FieldSpec(
            MappingSpec(str, MappingSpec(str, SequenceSpec(SpawnValidator))),
            "a spawn table",
            required=False,
        ),
        "recommendedLevel": FieldSpec(
            MappingSpec(str, int), "a level band", required=False
        ),
    }


class DropValidator(PayloadValidator):
    record = "drop"
    fields = {
        "itemId": FieldSpec(int, "an item id"),
        "name": FieldSpec(str, "an item name"),
        "chance": FieldSpec(is_percentage, "a percentage between 0 and 100"),
        "minQuantity": FieldSpec(int, "a minimum quantity", required=False),
        "maxQuantity": FieldSpec(int, "a maximum quantity", required=False),
    }


class MonsterPayloadValidator(PayloadValidator):
    record = "monster"
    fields = {
        "id": FieldSpec(int, "an integer monster id"),
        "name": FieldSpec(str, "a monster name"),
        "nameEn": FieldSpec(str, "an English monster name", required=False),
        "description": FieldSpec(str, "a description", required=False),
        "meta": FieldSpec(MappingSpec(str, (int, bool)), "a stat block"),
        "canJump": FieldSpec(bool, "a jump flag", required=False),
        "meso": FieldSpec(MappingSpec(str, int), "a currency drop", required=False),
        "drops": FieldSpec(SequenceSpec(DropValidator), "a list of drops"),
        "foundAt": FieldSpec(SequenceSpec(int), "a list of map ids", required=False),
    }


class ItemPayloadValidator(PayloadValidator):
    record = "item"
    fields = {
        "id": FieldSpec(int, "an integer item id"),
        "name": FieldSpec(str, "an item name"),
        "nameEn": FieldSpec(str, "an English item name", required=False),
        "description": FieldSpec(str, "a description"),
        "type": FieldSpec(
            lambda value: value in {"equip", "use", "setup", "etc", "cash"},
            "one of equip/use/setup/etc/cash",
        ),
        "category": FieldSpec(is_non_empty_str, "a category"),
        "subCategory": FieldSpec(str, "a subcategory", required=False),
        "slot": FieldSpec(str, "an equip slot", required=False),
        "rarity": FieldSpec(str, "a rarity"),
        "price": FieldSpec(int, "an integer price"),
        "sellable": FieldSpec(bool, "a sellable flag"),
        "tradeable": FieldSpec(bool, "a tradeable flag"),
        "stackSize": FieldSpec(int, "a stack size"),
        "upgradeSlots": FieldSpec(int, "an upgrade slot count", required=False),
        "requiredLevel": FieldSpec(int, "a required level", required=False),
        "requiredJob": FieldSpec(int, "a required job code", required=False),
        "icon": FieldSpec(str, "an icon URL", required=False),
        "stats": FieldSpec(MappingSpec(str, int), "a stat bonus table", required=False),
        "effect": FieldSpec(MappingSpec(str, float), "a consumable effect", required=False),
    }


__all__ = [
    "DropValidator",
    "FieldSpec",
    "ItemPayloadValidator",
    "MapPayloadValidator",
    "MappingSpec",
    "MonsterPayloadValidator",
    "PayloadValidator",
    "SequenceSpec",
    "SpawnValidator",
]
