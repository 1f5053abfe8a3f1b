"""Item classification: type, category, subcategory and equip slot.

Classification prefers the metadata service's ``typeInfo`` triplet and falls
back to numeric ID bands when the service has no record.  Unknown categories
never raise; they resolve to a generic bucket so a record can always be
written.  Every result is tagged with the path that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from .constants import ITEM_TYPE_BANDS
from .models.records import ItemType
from .models.responses import ApiTypeInfo


class ClassificationSource(str, Enum):
    METADATA = "metadata"
    ID_RANGE = "id-range"


@dataclass(frozen=True, slots=True)
class Classification:
    type: ItemType
    category: str
    sub_category: Optional[str] = None
    slot: Optional[str] = None
    source: ClassificationSource = ClassificationSource.METADATA

    @property
    def is_fallback(self) -> bool:
        return self.source is ClassificationSource.ID_RANGE


_OVERALL_TYPES: Mapping[str, ItemType] = MappingProxyType(
    {
        "Equip": ItemType.EQUIP,
        "Use": ItemType.USE,
        "Setup": ItemType.SETUP,
        "Cash": ItemType.CASH,
    }
)

# Armor subcategory -> (category, slot)
_ARMOR_SLOTS: Mapping[str, tuple[str, str]] = MappingProxyType(
    {
        "Hat": ("hat", "hat"),
        "Top": ("armor", "top"),
        "Bottom": ("armor", "bottom"),
        "Overall": ("armor", "overall"),
        "Glove": ("glove", "gloves"),
        "Shoes": ("shoes", "shoes"),
        "Cape": ("cape", "cape"),
        "Shield": ("shield", "shield"),
    }
)

# Accessory subcategory -> category (the slot shares the name)
_ACCESSORY_SLOTS: Mapping[str, str] = MappingProxyType(
    {
        "Ring": "ring",
        "Pendant": "pendant",
        "Belt": "belt",
        "Earring": "earring",
        "Earrings": "earring",
        "Face Accessory": "face",
        "Eye Decoration": "eye",
        "Eye Accessory": "eye",
        "Shoulder Accessory": "shoulder",
        "Medal": "medal",
        "Badge": "badge",
        "Pocket Item": "pocket",
    }
)

_USE_SUBCATEGORIES: Mapping[str, str] = MappingProxyType(
    {
        "Potion": "potion",
        "Food and Drink": "food",
        "Food": "food",
        "Arrow": "projectile",
        "Crossbow Bolt": "projectile",
        "Thrown": "projectile",
        "Bullet": "projectile",
    }
)

_ETC_SUBCATEGORIES: Mapping[str, str] = MappingProxyType(
    {
        "Monster Drop": "monster-drop",
        "Mineral Ore": "ore",
        "Ore": "ore",
        "Rare Ore": "ore",
        "Mineral Processed": "mineral",
        "Rare Processed Ore": "jewel",
        "Herb": "herb",
        "Herb Oil": "oil",
    }
)

_CASH_CATEGORIES: Mapping[str, str] = MappingProxyType(
    {"Pet": "pet", "Appearance": "appearance", "Random Reward": "gacha"}
)

# Gear ID prefix (item_id // 10000) ranges -> (category, slot)
_GEAR_PREFIXES: tuple[tuple[int, int, str, str], ...] = (
    (100, 104, "hat", "hat"),
    (105, 105, "armor", "overall"),
    (106, 106, "armor", "bottom"),
    (107, 107, "shoes", "shoes"),
    (108, 108, "glove", "gloves"),
    (109, 109, "shield", "shield"),
    (110, 110, "cape", "cape"),
    (130, 170, "weapon", "weapon"),
)


# ---------------------------------------------------------------------------
# ID-range fallback
# ---------------------------------------------------------------------------


def item_type_from_id(item_id: int) -> ItemType:
    """Return the item type of the band ``item_id`` falls into."""

    for value, (low, high) in ITEM_TYPE_BANDS.items():
        if low <= item_id < high:
            return ItemType(value)
    if item_id >= ITEM_TYPE_BANDS[ItemType.CASH.value][0]:
        return ItemType.CASH
    return ItemType.ETC


def slot_from_id(item_id: int) -> Optional[str]:
    prefix = item_id // 10000
    for low, high, _category, slot in _GEAR_PREFIXES:
        if low <= prefix <= high:
            return slot
    return None


def category_from_id(item_id: int) -> tuple[str, Optional[str]]:
    """Return ``(category, slot)`` guessed from the ID prefix alone."""

    item_type = item_type_from_id(item_id)
    prefix = item_id // 10000

    if item_type is ItemType.EQUIP:
        for low, high, category, slot in _GEAR_PREFIXES:
            if low <= prefix <= high:
                return category, slot
        return "accessory", "accessory"

    if item_type is ItemType.USE:
        if 200 <= prefix <= 201:
            return "potion", None
        if prefix == 204:
            return "scroll", None
        if prefix in (206, 207):
            return "projectile", None
        return "consumable", None

    if item_type is ItemType.SETUP:
        return ("chair" if prefix == 301 else "setup"), None

    if item_type is ItemType.CASH:
        return "cash", None

    if 4_000_000 <= item_id < 5_000_000:
        etc_prefixes = {400: "monster-drop", 401: "ore", 402: "jewel"}
        return etc_prefixes.get(prefix, "other"), None
    return "other", None


# ---------------------------------------------------------------------------
# Metadata-driven classification
# ---------------------------------------------------------------------------


def item_type_from_overall(overall_category: Optional[str]) -> ItemType:
    return _OVERALL_TYPES.get(overall_category or "", ItemType.ETC)


def _equip_category(
    category: str, sub_category: Optional[str]
) -> tuple[str, Optional[str]]:
    if "Weapon" in category:
        if category == "Secondary Weapon":
            return "secondary", "secondary"
        return "weapon", "weapon"
    if category == "Armor":
        return _ARMOR_SLOTS.get(sub_category or "", ("armor", "armor"))
    if category == "Accessory":
        name = _ACCESSORY_SLOTS.get(sub_category or "", "accessory")
        return name, name
    return "accessory", None


def _use_category(category: str, sub_category: Optional[str]) -> str:
    if sub_category in _USE_SUBCATEGORIES:
        return _USE_SUBCATEGORIES[sub_category]
    if "Scroll" in category:
        return "scroll"
    if sub_category == "Mastery Book":
        return "mastery-book"
    if category == "Recipe":
        return "recipe"
    if category == "Projectile":
        return "projectile"
    return "consumable"


def _setup_category(category: str, sub_category: Optional[str]) -> str:
    if sub_category == "Chair":
        return "chair"
    if sub_category == "Title":
        return "title"
    if category == "Nebulite":
        return "nebulite"
    return "setup"


def _etc_category(category: str, sub_category: Optional[str]) -> str:
    if sub_category in _ETC_SUBCATEGORIES:
        return _ETC_SUBCATEGORIES[sub_category]
    if category == "Crafting":
        return "material"
    if sub_category == "Quest Item":
        return "quest"
    if sub_category == "Coin":
        return "coin"
    return "other"


def classify_type_info(type_info: ApiTypeInfo) -> Classification:
    item_type = item_type_from_overall(type_info.overall_category)
    category = type_info.category or ""
    sub_category = type_info.sub_category or None
    slot: Optional[str] = None

    if item_type is ItemType.EQUIP:
        name, slot = _equip_category(category, sub_category)
    elif item_type is ItemType.USE:
        name = _use_category(category, sub_category)
    elif item_type is ItemType.SETUP:
        name = _setup_category(category, sub_category)
    elif item_type is ItemType.CASH:
        name = _CASH_CATEGORIES.get(category, "cash")
    else:
        name = _etc_category(category, sub_category)

    return Classification(
        type=item_type,
        category=name,
        sub_category=sub_category,
        slot=slot,
        source=ClassificationSource.METADATA,
    )


def classify(item_id: int, type_info: Optional[ApiTypeInfo] = None) -> Classification:
    """Classify an item, preferring backend data over the ID heuristics."""

    if type_info is not None:
        return classify_type_info(type_info)
    category, slot = category_from_id(item_id)
    return Classification(
        type=item_type_from_id(item_id),
        category=category,
        slot=slot,
        source=ClassificationSource.ID_RANGE,
    )


__all__ = [
    "Classification",
    "ClassificationSource",
    "category_from_id",
    "classify",
    "classify_type_info",
    "item_type_from_id",
    "item_type_from_overall",
    "slot_from_id",
]
