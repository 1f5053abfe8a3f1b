from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from harvester.classifier import (
    ClassificationSource,
    category_from_id,
    classify,
    item_type_from_id,
    slot_from_id,
)
from harvester.models.records import ItemType
from harvester.models.responses import ApiTypeInfo


@pytest.mark.parametrize(
    ("item_id", "expected"),
    [
        (1_000_000, ItemType.EQUIP),
        (1_999_999, ItemType.EQUIP),
        (2_000_000, ItemType.USE),
        (3_010_000, ItemType.SETUP),
        (4_000_000, ItemType.ETC),
        (5_000_000, ItemType.CASH),
        (12_000_000, ItemType.CASH),
        (999_999, ItemType.ETC),
    ],
)
def test_item_type_follows_id_bands(item_id: int, expected: ItemType) -> None:
    assert item_type_from_id(item_id) is expected


def test_fallback_classification_is_tagged_and_deterministic() -> None:
    for item_id in range(1_000_000, 2_000_000, 37_001):
        first = classify(item_id)
        second = classify(item_id)
        assert first == second
        assert first.type is ItemType.EQUIP
        assert first.source is ClassificationSource.ID_RANGE
        assert first.is_fallback


def test_gear_prefix_slots() -> None:
    assert category_from_id(1_002_357) == ("hat", "hat")
    assert category_from_id(1_040_002) == ("hat", "hat")
    assert category_from_id(1_050_000) == ("armor", "overall")
    assert category_from_id(1_072_000) == ("shoes", "shoes")
    assert category_from_id(1_302_000) == ("weapon", "weapon")
    assert category_from_id(1_112_000) == ("accessory", "accessory")
    assert slot_from_id(1_082_002) == "gloves"
    assert slot_from_id(2_000_000) is None


def test_non_gear_fallback_categories() -> None:
    assert category_from_id(2_000_000) == ("potion", None)
    assert category_from_id(2_040_000) == ("scroll", None)
    assert category_from_id(2_070_000) == ("projectile", None)
    assert category_from_id(3_010_000) == ("chair", None)
    assert category_from_id(4_000_000) == ("monster-drop", None)
    assert category_from_id(4_310_000) == ("other", None)
    assert category_from_id(5_000_000) == ("cash", None)


def test_metadata_classification_for_armor() -> None:
    result = classify(
        1_002_357,
        ApiTypeInfo(overall_category="Equip", category="Armor", sub_category="Hat"),
    )

    assert result.type is ItemType.EQUIP
    assert result.category == "hat"
    assert result.slot == "hat"
    assert result.sub_category == "Hat"
    assert result.source is ClassificationSource.METADATA
    assert not result.is_fallback


def test_weapon_family_and_secondary_weapon() -> None:
    one_handed = classify(
        1_302_000,
        ApiTypeInfo("Equip", "One-Handed Weapon", "One-Handed Sword"),
    )
    secondary = classify(1_352_000, ApiTypeInfo("Equip", "Secondary Weapon", "Arrowhead"))

    assert (one_handed.category, one_handed.slot) == ("weapon", "weapon")
    assert (secondary.category, secondary.slot) == ("secondary", "secondary")


def test_unknown_categories_never_raise() -> None:
    assert classify(1_000_000, ApiTypeInfo("Equip", "Mystery", None)).category == "accessory"
    assert classify(4_000_000, ApiTypeInfo("Etc", "Mystery", "Thing")).category == "other"
    assert classify(4_000_000, ApiTypeInfo(None, None, None)).type is ItemType.ETC
    assert classify(2_000_000, ApiTypeInfo("Use", "Consumable", "Unknown")).category == "consumable"


def test_metadata_tables_for_use_and_etc() -> None:
    assert classify(2_000_000, ApiTypeInfo("Use", "Consumable", "Potion")).category == "potion"
    assert classify(2_040_000, ApiTypeInfo("Use", "Armor Scroll", "Helmet")).category == "scroll"
    assert classify(2_060_000, ApiTypeInfo("Use", "Projectile", "Arrow")).category == "projectile"
    assert classify(3_010_000, ApiTypeInfo("Setup", "Other", "Chair")).category == "chair"
    assert classify(4_000_000, ApiTypeInfo("Etc", "Other", "Monster Drop")).category == "monster-drop"
    assert classify(4_011_000, ApiTypeInfo("Etc", "Crafting", "Smithing")).category == "material"
    ring = classify(1_112_000, ApiTypeInfo("Equip", "Accessory", "Ring"))
    assert (ring.category, ring.slot) == ("ring", "ring")
