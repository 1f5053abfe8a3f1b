from __future__ import annotations

import json
import sqlite3
import sys
from collections import Counter
from pathlib import Path
from typing import Any

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from harvester.config import StageDelays
from harvester.graph import node_key
from harvester.models.responses import (
    ApiItem,
    ApiMapDetail,
    ApiMapSummary,
    ApiMonster,
    DbDropRow,
    DbItem,
    TreeNode,
)
from harvester.pipeline import Harvester, Outcome
from harvester.storage import CorpusStore

MAP_ID = 104010001
MOB_A = 1210100
MOB_B = 1210101
SHELL = 4000000
POTION = 2000000
HAT = 1002000


class FakeMetadata:
    def __init__(self) -> None:
        self.maps: dict[int, dict[str, Any]] = {}
        self.summaries: dict[int, dict[str, Any]] = {}
        self.monsters: dict[int, dict[str, Any]] = {}
        self.items: dict[int, dict[str, Any]] = {}
        self.calls: Counter = Counter()

    def fetch_map(self, map_id: int):
        self.calls[("map", map_id)] += 1
        return ApiMapDetail.from_payload(self.maps.get(map_id))

    def find_map(self, map_id: int):
        self.calls[("find_map", map_id)] += 1
        return ApiMapSummary.from_payload(self.summaries.get(map_id))

    def fetch_monster(self, monster_id: int):
        self.calls[("mob", monster_id)] += 1
        return ApiMonster.from_payload(self.monsters.get(monster_id))

    def fetch_item(self, item_id: int):
        self.calls[("item", item_id)] += 1
        return ApiItem.from_payload(self.items.get(item_id))

    def icon_url(self, item_id: int) -> str:
        return f"https://api.example/item/{item_id}/icon"


class FakeTree:
    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self.values = values or {}

    def node(self, path: str):
        children = [key.rsplit("/", 1)[1] for key in self.values if key.rsplit("/", 1)[0] == path]
        return TreeNode(children=tuple(children)) if children else None

    def value(self, path: str):
        return self.values.get(path)


class FakeDatabase:
    def __init__(self) -> None:
        self.items: dict[int, dict[str, Any]] = {}
        self.gear: dict[int, list] = {}
        self.drops: dict[int, list[DbDropRow]] = {}
        self.broken: set[int] = set()

    def fetch_item(self, item_id: int):
        row = self.items.get(item_id)
        return DbItem.from_row({"itemid": item_id, **row}) if row else None

    def fetch_gear_stats(self, item_id: int):
        return list(self.gear.get(item_id, []))

    def fetch_drops(self, monster_id: int):
        if monster_id in self.broken:
            raise sqlite3.OperationalError("database is locked")
        return list(self.drops.get(monster_id, []))


def _drop(item_id: int, chance: int, low: int = 1, high: int = 1, name: str | None = None) -> DbDropRow:
    return DbDropRow(item_id, low, high, 0, chance, name)


@pytest.fixture
def backends() -> tuple[FakeMetadata, FakeTree, FakeDatabase]:
    metadata = FakeMetadata()
    metadata.maps[MAP_ID] = {
        "id": MAP_ID,
        "name": "Pig Park",
        "streetName": "Victoria Road",
        "mobs": [{"id": MOB_A}, {"id": MOB_A}, {"id": MOB_A}, {"id": MOB_B}],
    }
    metadata.summaries[MAP_ID] = {"id": MAP_ID, "name": "Pig Park", "streetName": "Victoria Road"}
    metadata.monsters[MOB_A] = {"id": MOB_A, "name": "Pig", "meta": {"level": 7}}
    metadata.monsters[MOB_B] = {"id": MOB_B, "name": "Ribbon Pig", "meta": {"level": 10}}
    metadata.items[POTION] = {
        "id": POTION,
        "description": {"name": "Red Potion", "description": "Restores 50 HP."},
        "typeInfo": {"overallCategory": "Use", "category": "Consumable", "subCategory": "Potion"},
        "metaInfo": {"slotMax": 100},
    }
    metadata.items[HAT] = {
        "id": HAT,
        "description": {"name": "Leather Cap"},
        "typeInfo": {"overallCategory": "Equip", "category": "Armor", "subCategory": "Hat"},
        "metaInfo": {"incPDD": 4, "reqLevel": 5},
    }

    database = FakeDatabase()
    database.items[SHELL] = {"name": "돼지의 리본", "desc": "", "slotMax": 200, "wholePrice": 3}
    database.items[POTION] = {"name": "빨간 포션", "desc": "HP 50 회복", "slotMax": 100, "wholePrice": 50}
    database.drops[MOB_A] = [
        _drop(0, 500_000, 10, 10),
        _drop(SHELL, 600_000, name="돼지의 리본"),
        _drop(POTION, 1_000, name="빨간 포션"),
    ]
    database.drops[MOB_B] = [_drop(SHELL, 400_000, name="돼지의 리본"), _drop(HAT, 5_000)]

    tree = FakeTree({"0200.img/02000000/spec/hp": 50})
    return metadata, tree, database


def _harvester(tmp_path: Path, backends, sleeps: list[float] | None = None) -> Harvester:
    metadata, tree, database = backends
    recorded = sleeps if sleeps is not None else []
    return Harvester(
        CorpusStore(tmp_path),
        metadata,
        tree,
        database,
        delays=StageDelays(maps=0.3, monsters=0.3, items=0.1, batch_items=0.3),
        sleep=recorded.append,
    )


def _read(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf8"))


def test_cascade_visits_each_dependency_once(tmp_path: Path, backends) -> None:
    metadata, _, _ = backends
    harvester = _harvester(tmp_path, backends)

    report = harvester.cascade([MAP_ID, MAP_ID])

    assert report.monster_ids == [MOB_A, MOB_B]
    assert sorted(report.item_ids) == sorted([SHELL, POTION, HAT])
    assert metadata.calls[("map", MAP_ID)] == 1
    assert metadata.calls[("mob", MOB_A)] == 1
    assert metadata.calls[("mob", MOB_B)] == 1
    for item_id in (SHELL, POTION, HAT):
        assert metadata.calls[("item", item_id)] == 1

    graph = report.graph
    assert graph.has_edge(node_key("map", MAP_ID), node_key("monster", MOB_A))
    assert graph.has_edge(node_key("monster", MOB_B), node_key("item", HAT))
    assert graph.in_degree(node_key("item", SHELL)) == 2

    assert report.stats.maps.saved == 1
    assert report.stats.monsters.saved == 2
    assert report.stats.items.saved == 3
    assert report.stats.effects == 1
    assert report.stats.fallback_classifications == 1


def test_cascade_writes_expected_records(tmp_path: Path, backends) -> None:
    harvester = _harvester(tmp_path, backends)

    harvester.cascade([MAP_ID])

    map_payload = _read(tmp_path / "data" / "maps" / "104010001_pig-park.json")
    assert map_payload["spawns"]["normal"]["mobs"] == [
        {"mobId": MOB_A, "weight": 75},
        {"mobId": MOB_B, "weight": 25},
    ]
    assert map_payload["mapMark"] == "빅토리아 아일랜드"

    mob_payload = _read(tmp_path / "data" / "mobs" / "1210100_pig.json")
    assert mob_payload["meso"] == {"amount": 10, "chance": 50}
    assert [drop["itemId"] for drop in mob_payload["drops"]] == [SHELL, POTION]
    assert mob_payload["drops"][1]["chance"] == pytest.approx(0.1)

    potion = _read(tmp_path / "data" / "items" / "use" / "2000000_red-potion.json")
    assert potion["name"] == "빨간 포션"
    assert potion["nameEn"] == "Red Potion"
    assert potion["effect"] == {"hp": 50}

    shell = _read(tmp_path / "data" / "items" / "etc" / "4000000_unknown.json")
    assert shell["name"] == "돼지의 리본"
    assert shell["stackSize"] == 200

    hat = _read(tmp_path / "data" / "items" / "equip" / "1002000_leather-cap.json")
    assert hat["stats"] == {"incPDD": 4}
    assert hat["slot"] == "hat"


def test_delays_follow_each_fetch(tmp_path: Path, backends) -> None:
    sleeps: list[float] = []
    harvester = _harvester(tmp_path, backends, sleeps)

    harvester.cascade([MAP_ID])

    assert sleeps == [0.3, 0.3, 0.3, 0.1, 0.1, 0.1]


def test_second_cascade_reuses_maps_and_is_idempotent(tmp_path: Path, backends) -> None:
    metadata, _, _ = backends
    _harvester(tmp_path, backends).cascade([MAP_ID])
    snapshot = {
        path: path.read_bytes() for path in (tmp_path / "data").rglob("*.json")
    }

    second = _harvester(tmp_path, backends)
    report = second.cascade([MAP_ID])

    assert metadata.calls[("map", MAP_ID)] == 1
    assert report.stats.maps.reused == 1
    assert report.monster_ids == [MOB_A, MOB_B]
    after = {path: path.read_bytes() for path in (tmp_path / "data").rglob("*.json")}
    assert after == snapshot


def test_localised_names_survive_refresh(tmp_path: Path, backends) -> None:
    harvester = _harvester(tmp_path, backends)
    harvester.cascade([MAP_ID])
    mob_path = tmp_path / "data" / "mobs" / "1210100_pig.json"
    payload = _read(mob_path)
    payload["name"] = "돼지"
    mob_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf8")

    harvester.process_monster(MOB_A)

    refreshed = _read(mob_path)
    assert refreshed["name"] == "돼지"
    assert refreshed["nameEn"] == "Pig"


def test_skip_existing_still_collects_dependencies(tmp_path: Path, backends) -> None:
    metadata, _, _ = backends
    _harvester(tmp_path, backends).cascade([MAP_ID])
    metadata.calls.clear()

    report = _harvester(tmp_path, backends).cascade([MAP_ID], skip_existing=True)

    assert metadata.calls[("mob", MOB_A)] == 0
    assert metadata.calls[("item", SHELL)] == 0
    assert report.stats.monsters.skipped == 2
    assert report.stats.items.skipped == 3
    assert sorted(report.item_ids) == sorted([SHELL, POTION, HAT])


def test_failures_are_isolated(tmp_path: Path, backends) -> None:
    metadata, _, database = backends
    database.broken.add(MOB_B)
    missing_monster = 9999999

    report = _harvester(tmp_path, backends).cascade([MAP_ID, 1], [missing_monster])

    assert report.stats.maps.failed == 1
    assert report.stats.monsters.saved == 1
    assert report.stats.monsters.failed == 2
    assert sorted(report.item_ids) == sorted([SHELL, POTION])
    assert report.stats.items.saved == 2
    assert not list((tmp_path / "data" / "mobs").glob("1210101_*.json"))


def test_manual_monsters_are_added(tmp_path: Path, backends) -> None:
    metadata, _, _ = backends
    metadata.maps[MAP_ID]["mobs"] = []

    report = _harvester(tmp_path, backends).cascade([MAP_ID], [MOB_B])

    assert report.monster_ids == [MOB_B]
    assert metadata.calls[("mob", MOB_B)] == 1


def test_item_without_any_source_fails(tmp_path: Path, backends) -> None:
    harvester = _harvester(tmp_path, backends)

    result = harvester.process_item(4031999)

    assert result.outcome is Outcome.FAILED
    assert not (tmp_path / "data" / "items").exists()


def test_harvest_maps_filters(tmp_path: Path, backends) -> None:
    metadata, _, _ = backends
    metadata.maps[100000000] = {"id": 100000000, "name": "Henesys", "isTown": True, "mobs": []}
    metadata.maps[100000001] = {"id": 100000001, "name": "Empty Field", "mobs": []}
    harvester = _harvester(tmp_path, backends)

    results = harvester.harvest_maps(
        [ApiMapSummary(id=100000000, name="Henesys", street_name="Henesys"), 100000001, MAP_ID],
        skip_towns=True,
        skip_no_mobs=True,
    )

    assert [result.outcome for result in results] == [
        Outcome.SKIPPED,
        Outcome.SKIPPED,
        Outcome.SAVED,
    ]
    assert metadata.calls[("find_map", 100000000)] == 0


def test_harvest_items_uses_batch_delay(tmp_path: Path, backends) -> None:
    sleeps: list[float] = []
    harvester = _harvester(tmp_path, backends, sleeps)

    results = harvester.harvest_items([POTION, POTION, SHELL])

    assert [result.entity_id for result in results] == [POTION, SHELL]
    assert sleeps == [0.3, 0.3]


def test_skip_existing_refetches_unreadable_records(tmp_path: Path, backends) -> None:
    metadata, _, _ = backends
    _harvester(tmp_path, backends).cascade([MAP_ID])
    mob_path = tmp_path / "data" / "mobs" / "1210100_pig.json"
    mob_path.write_text("{ not json", encoding="utf8")
    metadata.calls.clear()

    report = _harvester(tmp_path, backends).cascade([MAP_ID], skip_existing=True)

    assert metadata.calls[("mob", MOB_A)] == 1
    assert metadata.calls[("mob", MOB_B)] == 0
    assert report.stats.monsters.saved == 1
    assert report.stats.monsters.skipped == 1
    assert sorted(report.item_ids) == sorted([SHELL, POTION, HAT])
    assert _read(mob_path)["drops"][1]["itemId"] == POTION
