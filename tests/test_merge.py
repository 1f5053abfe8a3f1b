from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from harvester.classifier import classify
from harvester.drops import DropTable
from harvester.merge import (
    DbItemData,
    build_db_item_data,
    build_map_record,
    build_monster_record,
    build_spawn_table,
    clean_monster_description,
    estimate_recommended_level,
    merge_item,
    region_mark,
)
from harvester.models.records import CurrencyDrop, DropEntry, ItemType
from harvester.models.responses import (
    ApiItem,
    ApiMapDetail,
    ApiMapSummary,
    ApiMonster,
    DbGearStat,
    DbItem,
)

ICON = "https://example.invalid/item/1/icon"


def _api_item(item_id: int, **overrides) -> ApiItem:
    payload = {
        "id": item_id,
        "description": {"name": "Blue Sneakers", "description": "Plain\\nshoes"},
        "typeInfo": {"overallCategory": "Equip", "category": "Armor", "subCategory": "Shoes"},
        "metaInfo": {
            "price": 5,
            "slotMax": 1,
            "tuc": 5,
            "reqLevel": 10,
            "reqJob": 0,
            "incDEX": 2,
            "incSpeed": 0,
            "notSale": False,
            "tradeBlock": True,
        },
    }
    payload.update(overrides)
    return ApiItem.from_payload(payload)


def test_db_values_win_over_api_values() -> None:
    api = _api_item(1072001)
    db = DbItemData(
        name="파란 운동화",
        description="평범한 신발",
        price=100,
        stack_size=1,
        tradeable=True,
        upgrade_slots=7,
        required_level=15,
        required_job=1,
        quest_id=0,
        is_cash=False,
        stats={"incSTR": 3},
    )

    record = merge_item(1072001, db, api, classify(1072001, api.type_info), icon=ICON)

    assert record is not None
    assert record.name == "파란 운동화"
    assert record.name_en == "Blue Sneakers"
    assert record.description == "평범한 신발"
    assert record.price == 100
    assert record.tradeable is True
    assert record.upgrade_slots == 7
    assert record.required_level == 15
    assert record.required_job == 1
    assert record.stats == {"incSTR": 3}
    assert (record.type, record.category, record.slot) == (ItemType.EQUIP, "shoes", "shoes")
    assert record.icon == ICON


def test_api_fills_gaps_when_db_absent() -> None:
    api = _api_item(1072001)

    record = merge_item(1072001, None, api, classify(1072001, api.type_info), icon=ICON)

    payload = record.to_payload()
    assert payload["name"] == "Blue Sneakers"
    assert "nameEn" not in payload
    assert payload["description"] == "Plain shoes"
    assert payload["price"] == 5
    assert payload["sellable"] is True
    assert payload["tradeable"] is False
    assert payload["stackSize"] == 1
    assert payload["upgradeSlots"] == 5
    assert payload["requiredLevel"] == 10
    assert payload["requiredJob"] == 0
    assert payload["stats"] == {"incDEX": 2}
    assert payload["rarity"] == "common"


def test_both_sources_absent_cannot_be_merged() -> None:
    assert merge_item(2000000, None, None, classify(2000000), icon=ICON) is None


def test_defaults_without_api() -> None:
    db = DbItemData(name="빨간 포션", description="", price=0, stack_size=100, tradeable=True)

    record = merge_item(2000000, db, None, classify(2000000), icon=ICON)

    assert record.sellable is True
    assert record.name_en is None
    assert record.upgrade_slots is None
    assert record.required_job is None
    assert record.stack_size == 100


def test_zero_values_are_omitted_but_job_zero_is_kept() -> None:
    db = DbItemData(
        name="모자",
        description="",
        price=1,
        stack_size=1,
        tradeable=True,
        upgrade_slots=0,
        required_level=0,
        required_job=0,
    )

    payload = merge_item(1002000, db, None, classify(1002000), icon=ICON).to_payload()

    assert "upgradeSlots" not in payload
    assert "requiredLevel" not in payload
    assert payload["requiredJob"] == 0


def test_flags_combine_db_and_api() -> None:
    api = _api_item(
        1002000,
        metaInfo={"only": True, "quest": False, "cash": True, "notSale": True},
    )
    db = DbItemData(name="모자", description="", price=1, stack_size=1, tradeable=True, quest_id=1000)

    record = merge_item(1002000, db, api, classify(1002000, api.type_info), icon=ICON)

    assert record.only is True
    assert record.quest is True
    assert record.is_cash is True
    assert record.sellable is False


def test_consumable_effect_attached_only_to_use_items() -> None:
    db = DbItemData(name="빨간 포션", description="", price=50, stack_size=100, tradeable=True)

    use = merge_item(2000000, db, None, classify(2000000), icon=ICON, effect={"hp": 50})
    etc = merge_item(4000000, db, None, classify(4000000), icon=ICON, effect={"hp": 50})

    assert use.to_payload()["effect"] == {"hp": 50}
    assert "effect" not in etc.to_payload()


def test_build_db_item_data_normalises_row_and_gear_stats() -> None:
    row = DbItem.from_row(
        {
            "itemid": 1302000,
            "name": "검",
            "desc": "날카로운\\n검\r",
            "slotMax": 1,
            "wholePrice": None,
            "karma": 1,
            "questId": 0,
        }
    )
    stats = [
        DbGearStat("tuc", 7),
        DbGearStat("reqLevel", 0),
        DbGearStat("reqJob", 1),
        DbGearStat("cash", 1),
        DbGearStat("PAD", 17),
        DbGearStat("STR", 0),
        DbGearStat("unrelated", 4),
    ]

    data = build_db_item_data(row, stats, ItemType.EQUIP)

    assert data.description == "날카로운 검"
    assert data.price == 0
    assert data.stack_size == 1
    assert data.tradeable is False
    assert data.upgrade_slots == 7
    assert data.required_level == 0
    assert data.required_job == 1
    assert data.is_cash is True
    assert data.stats == {"incPAD": 17}


def test_build_db_item_data_stack_size_for_non_gear() -> None:
    row = DbItem.from_row({"itemid": 4000000, "name": "달팽이 껍질", "slotMax": None})

    data = build_db_item_data(row, [], ItemType.ETC)

    assert data.stack_size == 100
    assert data.tradeable is True
    assert data.stats is None


def test_spawn_table_weights_and_order() -> None:
    table = build_spawn_table([100101, 100100, 100101, 100101])

    assert [spawn.to_payload() for spawn in table] == [
        {"mobId": 100101, "weight": 75},
        {"mobId": 100100, "weight": 25},
    ]
    assert build_spawn_table([]) == []


@pytest.mark.parametrize(
    ("monster_ids", "expected"),
    [
        ([100100, 2220000], (1, 10)),
        ([210100], (5, 20)),
        ([1210100], (10, 30)),
        ([2230100], (20, 50)),
        ([8800000], (10, 30)),
    ],
)
def test_recommended_level(monster_ids: list[int], expected: tuple[int, int]) -> None:
    band = estimate_recommended_level(monster_ids)
    assert (band.min, band.max) == expected


def test_region_mark_matching() -> None:
    assert region_mark("Henesys") == "헤네시스"
    assert region_mark("Victoria Road") == "빅토리아 아일랜드"
    assert region_mark("Hidden Street: Henesys") == "헤네시스"
    assert region_mark("Nowhere") == "Nowhere"
    assert region_mark("") == ""


def test_map_record_from_summary_and_detail() -> None:
    summary = ApiMapSummary(id=104010001, name="Pig Park", street_name="Victoria Road")
    detail = ApiMapDetail.from_payload(
        {
            "id": 104010001,
            "name": "Ignored",
            "isTown": False,
            "backgroundMusic": "Bgm02/AboveTheTreetops",
            "mobs": [{"id": 1210100}, {"id": 1210100}, {"id": 1210100}, {"id": 1210101}],
        }
    )

    payload = build_map_record(104010001, summary, detail).to_payload()

    assert payload == {
        "id": 104010001,
        "name": "Pig Park",
        "nameEn": "Pig Park",
        "streetName": "빅토리아 아일랜드",
        "mapMark": "빅토리아 아일랜드",
        "bgm": "Bgm02/AboveTheTreetops",
        "spawns": {
            "normal": {
                "mobs": [
                    {"mobId": 1210100, "weight": 75},
                    {"mobId": 1210101, "weight": 25},
                ]
            }
        },
        "recommendedLevel": {"min": 10, "max": 30},
    }


def test_map_record_placeholders() -> None:
    assert build_map_record(1, None, None) is None

    record = build_map_record(100000000, None, ApiMapDetail(is_town=True))
    assert record.name == "Map 100000000"
    assert record.is_town is True
    assert record.spawns == []
    assert record.recommended_level is None


def test_monster_record_defaults_and_cleanup() -> None:
    api = ApiMonster.from_payload(
        {
            "id": 8800000,
            "description": "Lv. : 110\\nForm : Boss\\n\\nThe lord\\nof the mine ",
            "meta": {"level": 0, "exp": 1000, "isBodyAttack": True},
            "framebooks": {"stand": 1, "jump": 2},
            "foundAt": [280030000, 280030000] + list(range(1, 12)),
        }
    )
    table = DropTable(
        drops=[DropEntry(item_id=4000000, name="조각", chance=1.5)],
        meso=CurrencyDrop(amount=500, chance=70),
    )

    record = build_monster_record(api, table)
    payload = record.to_payload()

    assert payload["name"] == "Monster 8800000"
    assert "nameEn" not in payload
    assert payload["description"] == "The lord of the mine"
    assert payload["meta"]["level"] == 1
    assert payload["meta"]["maxHp"] == 1
    assert payload["meta"]["exp"] == 1000
    assert payload["meta"]["isBoss"] is True
    assert payload["meta"]["isBodyAttack"] is True
    assert payload["canJump"] is True
    assert payload["meso"] == {"amount": 500, "chance": 70}
    assert payload["foundAt"] == [280030000] + list(range(1, 10))
    assert record.drop_item_ids == [4000000]


def test_clean_monster_description_without_markers() -> None:
    assert clean_monster_description("  Slow\\nand green ") == "Slow and green"
