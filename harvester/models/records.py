"""Canonical corpus records written to disk as one JSON document each."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .responses import as_int

EffectRecord = Dict[str, float]


class ItemType(str, Enum):
    """Closed set of item types; the value doubles as the directory name."""

    EQUIP = "equip"
    USE = "use"
    SETUP = "setup"
    ETC = "etc"
    CASH = "cash"

    @classmethod
    def from_value(cls, value: "ItemType | str") -> "ItemType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown item type: {value!r}") from exc


@dataclass(slots=True)
class SpawnWeight:
    monster_id: int
    weight: int

    def to_payload(self) -> dict[str, Any]:
        return {"mobId": self.monster_id, "weight": self.weight}


@dataclass(slots=True)
class LevelBand:
    min: int
    max: int

    def to_payload(self) -> dict[str, Any]:
        return {"min": self.min, "max": self.max}


@dataclass(slots=True)
class MapRecord:
    id: int
    name: str
    street_name: str
    map_mark: str
    name_en: Optional[str] = None
    is_town: bool = False
    bgm: Optional[str] = None
    spawns: List[SpawnWeight] = field(default_factory=list)
    recommended_level: Optional[LevelBand] = None

    @property
    def monster_ids(self) -> list[int]:
        return [spawn.monster_id for spawn in self.spawns]

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.name_en:
            payload["nameEn"] = self.name_en
        payload["streetName"] = self.street_name
        payload["mapMark"] = self.map_mark
        if self.is_town:
            payload["isTown"] = True
        if self.bgm:
            payload["bgm"] = self.bgm
        if self.spawns:
            payload["spawns"] = {
                "normal": {"mobs": [spawn.to_payload() for spawn in self.spawns]}
            }
        if self.recommended_level is not None:
            payload["recommendedLevel"] = self.recommended_level.to_payload()
        return payload


@dataclass(slots=True)
class DropEntry:
    item_id: int
    name: str
    chance: float
    min_quantity: Optional[int] = None
    max_quantity: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "itemId": self.item_id,
            "name": self.name,
            "chance": self.chance,
        }
        if self.min_quantity is not None and self.max_quantity is not None:
            payload["minQuantity"] = self.min_quantity
            payload["maxQuantity"] = self.max_quantity
        return payload


@dataclass(slots=True)
class CurrencyDrop:
    amount: int
    chance: int

    def to_payload(self) -> dict[str, Any]:
        return {"amount": self.amount, "chance": self.chance}


@dataclass(slots=True)
class MonsterStats:
    level: int = 1
    max_hp: int = 1
    max_mp: int = 0
    exp: int = 0
    speed: int = 0
    physical_damage: int = 0
    physical_defense: int = 0
    magic_damage: int = 0
    magic_defense: int = 0
    accuracy: int = 0
    evasion: int = 0
    is_boss: bool = False
    is_body_attack: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "maxHp": self.max_hp,
            "maxMp": self.max_mp,
            "exp": self.exp,
            "speed": self.speed,
            "physicalDamage": self.physical_damage,
            "physicalDefense": self.physical_defense,
            "magicDamage": self.magic_damage,
            "magicDefense": self.magic_defense,
            "accuracy": self.accuracy,
            "evasion": self.evasion,
            "isBoss": self.is_boss,
            "isBodyAttack": self.is_body_attack,
        }


@dataclass(slots=True)
class MonsterRecord:
    id: int
    name: str
    meta: MonsterStats
    drops: List[DropEntry] = field(default_factory=list)
    name_en: Optional[str] = None
    description: Optional[str] = None
    can_jump: bool = False
    meso: Optional[CurrencyDrop] = None
    found_at: List[int] = field(default_factory=list)

    @property
    def drop_item_ids(self) -> list[int]:
        return [drop.item_id for drop in self.drops]

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.name_en:
            payload["nameEn"] = self.name_en
        if self.description:
            payload["description"] = self.description
        payload["meta"] = self.meta.to_payload()
        if self.can_jump:
            payload["canJump"] = True
        if self.meso is not None:
            payload["meso"] = self.meso.to_payload()
        payload["drops"] = [drop.to_payload() for drop in self.drops]
        if self.found_at:
            payload["foundAt"] = list(self.found_at)
        return payload


@dataclass(slots=True)
class ItemRecord:
    id: int
    name: str
    description: str
    type: ItemType
    category: str
    rarity: str
    price: int
    sellable: bool
    tradeable: bool
    stack_size: int
    icon: str
    name_en: Optional[str] = None
    sub_category: Optional[str] = None
    slot: Optional[str] = None
    upgrade_slots: Optional[int] = None
    only: bool = False
    quest: bool = False
    is_cash: bool = False
    required_level: Optional[int] = None
    required_job: Optional[int] = None
    stats: Optional[Dict[str, int]] = None
    effect: Optional[EffectRecord] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.name_en:
            payload["nameEn"] = self.name_en
        payload["description"] = self.description
        payload["type"] = self.type.value
        payload["category"] = self.category
        if self.sub_category:
            payload["subCategory"] = self.sub_category
        if self.slot:
            payload["slot"] = self.slot
        payload.update(
            {
                "rarity": self.rarity,
                "price": self.price,
                "sellable": self.sellable,
                "tradeable": self.tradeable,
                "stackSize": self.stack_size,
            }
        )
        if self.upgrade_slots is not None:
            payload["upgradeSlots"] = self.upgrade_slots
        if self.only:
            payload["only"] = True
        if self.quest:
            payload["quest"] = True
        if self.is_cash:
            payload["isCash"] = True
        if self.required_level is not None:
            payload["requiredLevel"] = self.required_level
        if self.required_job is not None:
            payload["requiredJob"] = self.required_job
        payload["icon"] = self.icon
        if self.stats:
            payload["stats"] = dict(self.stats)
        if self.effect:
            payload["effect"] = dict(self.effect)
        return payload


# ---------------------------------------------------------------------------
# Helpers for reading dependency IDs back out of persisted payloads
# ---------------------------------------------------------------------------


def _ids_from(entries: Any, key: str) -> list[int]:
    if not isinstance(entries, Sequence) or isinstance(entries, (str, bytes)):
        return []
    result: list[int] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        value = as_int(entry.get(key))
        if value is not None:
            result.append(value)
    return result


def spawn_monster_ids(payload: Mapping[str, Any]) -> list[int]:
    """Return the monster IDs of a persisted map payload's spawn table."""

    spawns = payload.get("spawns")
    if not isinstance(spawns, Mapping):
        return []
    normal = spawns.get("normal")
    if not isinstance(normal, Mapping):
        return []
    return _ids_from(normal.get("mobs"), "mobId")


def drop_item_ids(payload: Mapping[str, Any]) -> list[int]:
    """Return the item IDs listed in a persisted monster payload's drops."""

    return _ids_from(payload.get("drops"), "itemId")


__all__ = [
    "CurrencyDrop",
    "DropEntry",
    "EffectRecord",
    "ItemRecord",
    "ItemType",
    "LevelBand",
    "MapRecord",
    "MonsterRecord",
    "MonsterStats",
    "SpawnWeight",
    "drop_item_ids",
    "spawn_monster_ids",
]
