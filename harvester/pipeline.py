"""Cascading orchestrator and the per-entity processors it drives.

A cascade walks three stages in order.  Each stage feeds the identifier set
of the next one: maps name the monsters that spawn on them, monsters name
the items they drop.  Identifiers are deduplicated across the whole run so
every entity is fetched at most once.  Whether an existing record file is
refreshed, skipped or reused is decided by the cache policy of its
collection, never by the stage itself.

Failures are per entity: a backend that does not know an entity, or a
database error while resolving it, is logged and counted, and the stage
moves on to the next identifier.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

import networkx as nx

from .backends.database import RelationalBackend
from .backends.metadata import MetadataClient
from .backends.tree import TreeClient
from .classifier import classify
from .config import StageDelays
from .constants import DEFAULT_PROGRESS_INTERVAL
from .drops import fetch_drop_table
from .effects import fetch_consumable_effect
from .graph import ITEM, MAP, MONSTER, add_dependencies, add_entity
from .merge import (
    build_db_item_data,
    build_map_record,
    build_monster_record,
    merge_item,
    record_label,
)
from .models._validation import (
    ItemPayloadValidator,
    MapPayloadValidator,
    MonsterPayloadValidator,
    PayloadValidator,
)
from .models.records import ItemType, drop_item_ids, spawn_monster_ids
from .models.responses import ApiMapSummary
from .storage import CachePolicy, CorpusStore

log = logging.getLogger(__name__)

Sleeper = Callable[[float], None]

COLLECTION_VALIDATORS: Mapping[str, type[PayloadValidator]] = {
    "maps": MapPayloadValidator,
    "mobs": MonsterPayloadValidator,
    "items": ItemPayloadValidator,
}

_DEPENDENCY_READERS: Mapping[str, Callable[[Mapping[str, Any]], list[int]]] = {
    "maps": spawn_monster_ids,
    "mobs": drop_item_ids,
}

_TAGS = {"maps": "Map", "mobs": "Mob", "items": "Item"}


def _is_complete(collection: str, payload: Mapping[str, Any]) -> bool:
    if COLLECTION_VALIDATORS[collection].errors(payload):
        return False
    if collection == "maps":
        return bool(spawn_monster_ids(payload))
    return True


class Outcome(str, Enum):
    SAVED = "saved"
    SKIPPED = "skipped"
    REUSED = "reused"
    FAILED = "failed"


@dataclass(slots=True)
class EntityResult:
    """What happened to one entity, plus the IDs it depends on."""

    entity_id: int
    outcome: Outcome
    path: Optional[Path] = None
    dependencies: list[int] = field(default_factory=list)
    fetched: bool = False


@dataclass(slots=True)
class StageStats:
    saved: int = 0
    skipped: int = 0
    reused: int = 0
    failed: int = 0

    def record(self, outcome: Outcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    @property
    def total(self) -> int:
        return self.saved + self.skipped + self.reused + self.failed

    def describe(self) -> str:
        parts = [f"{self.saved} saved"]
        if self.reused:
            parts.append(f"{self.reused} reused")
        if self.skipped:
            parts.append(f"{self.skipped} skipped")
        if self.failed:
            parts.append(f"{self.failed} failed")
        return ", ".join(parts)


@dataclass(slots=True)
class RunStats:
    maps: StageStats = field(default_factory=StageStats)
    monsters: StageStats = field(default_factory=StageStats)
    items: StageStats = field(default_factory=StageStats)
    effects: int = 0
    fallback_classifications: int = 0

    def stage(self, collection: str) -> StageStats:
        return {"maps": self.maps, "mobs": self.monsters, "items": self.items}[collection]

    @property
    def failed(self) -> int:
        return self.maps.failed + self.monsters.failed + self.items.failed

    def log_summary(self) -> None:
        log.info("Maps: %s", self.maps.describe())
        log.info("Monsters: %s", self.monsters.describe())
        log.info(
            "Items: %s (effects: %d, id-range classifications: %d)",
            self.items.describe(),
            self.effects,
            self.fallback_classifications,
        )


@dataclass(slots=True)
class CascadeReport:
    map_ids: list[int]
    monster_ids: list[int]
    item_ids: list[int]
    graph: nx.DiGraph
    stats: RunStats


class Harvester:
    """Fetch, merge and persist maps, monsters and items."""

    def __init__(
        self,
        store: CorpusStore,
        metadata: MetadataClient,
        tree: TreeClient,
        database: RelationalBackend,
        *,
        delays: StageDelays | None = None,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.store = store
        self.metadata = metadata
        self.tree = tree
        self.database = database
        self.delays = delays or StageDelays()
        self.progress_interval = max(1, int(progress_interval))
        self.stats = RunStats()
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Cache policy
    # ------------------------------------------------------------------

    def _check_cache(
        self, collection: str, entity_id: int, skip_existing: bool
    ) -> Optional[EntityResult]:
        policy = self.store.collection(collection).policy.effective(skip_existing)
        if policy is CachePolicy.REFRESH:
            return None
        path = self.store.find(collection, entity_id)
        if path is None:
            return None

        tag = _TAGS[collection]
        payload = self.store.load(collection, entity_id)
        if payload is None:
            log.info("[%s] %s has an unreadable record at %s, refetching", tag, entity_id, path)
            return None
        reader = _DEPENDENCY_READERS.get(collection)
        dependencies = reader(payload) if reader else []

        if policy is CachePolicy.SKIP_EXISTING:
            log.info("[%s] %s already exists, skipping (%s)", tag, entity_id, path)
            return EntityResult(entity_id, Outcome.SKIPPED, path, dependencies)

        if not _is_complete(collection, payload):
            return None
        log.info("[%s] %s reusing %s (dependencies: %d)", tag, entity_id, path, len(dependencies))
        return EntityResult(entity_id, Outcome.REUSED, path, dependencies)

    # ------------------------------------------------------------------
    # Per-entity processors
    # ------------------------------------------------------------------

    def process_map(
        self,
        map_id: int,
        *,
        skip_existing: bool = False,
        summary: ApiMapSummary | None = None,
        skip_towns: bool = False,
        skip_no_mobs: bool = False,
    ) -> EntityResult:
        cached = self._check_cache("maps", map_id, skip_existing)
        if cached is not None:
            return cached

        detail = self.metadata.fetch_map(map_id)
        if summary is None:
            summary = self.metadata.find_map(map_id)
        record = build_map_record(map_id, summary, detail)
        if record is None:
            log.warning("[Map] %s not found in the metadata service", map_id)
            return EntityResult(map_id, Outcome.FAILED, fetched=True)

        if skip_towns and record.is_town:
            log.info("[Map] %s %s is a town, skipping", map_id, record.name)
            return EntityResult(map_id, Outcome.SKIPPED, fetched=True)
        if skip_no_mobs and not record.spawns:
            log.info("[Map] %s %s has no monsters, skipping", map_id, record.name)
            return EntityResult(map_id, Outcome.SKIPPED, fetched=True)

        path = self.store.save(
            "maps", map_id, record_label(record.name_en, record.name), record.to_payload()
        )
        log.info("[Map] %s -> %s (monsters: %d)", map_id, path, len(record.spawns))
        return EntityResult(map_id, Outcome.SAVED, path, record.monster_ids, fetched=True)

    def process_monster(self, monster_id: int, *, skip_existing: bool = False) -> EntityResult:
        cached = self._check_cache("mobs", monster_id, skip_existing)
        if cached is not None:
            return cached

        api = self.metadata.fetch_monster(monster_id)
        if api is None:
            log.warning("[Mob] %s not found in the metadata service", monster_id)
            return EntityResult(monster_id, Outcome.FAILED, fetched=True)

        record = build_monster_record(api, fetch_drop_table(self.database, monster_id))
        path = self.store.save(
            "mobs", monster_id, record_label(record.name_en, record.name), record.to_payload()
        )
        log.info(
            "[Mob] %s %s -> %s (drops: %d)", monster_id, record.name, path, len(record.drops)
        )
        return EntityResult(
            monster_id, Outcome.SAVED, path, record.drop_item_ids, fetched=True
        )

    def process_item(self, item_id: int, *, skip_existing: bool = False) -> EntityResult:
        cached = self._check_cache("items", item_id, skip_existing)
        if cached is not None:
            return cached

        api = self.metadata.fetch_item(item_id)
        classification = classify(item_id, api.type_info if api is not None else None)
        row = self.database.fetch_item(item_id)
        db = None
        if row is not None:
            gear_stats = (
                self.database.fetch_gear_stats(item_id)
                if classification.type is ItemType.EQUIP
                else []
            )
            db = build_db_item_data(row, gear_stats, classification.type)

        if db is None and api is None:
            log.warning("[Item] %s not found in the database or the metadata service", item_id)
            return EntityResult(item_id, Outcome.FAILED, fetched=True)

        effect = None
        if classification.type is ItemType.USE:
            effect = fetch_consumable_effect(self.tree, item_id)

        record = merge_item(
            item_id,
            db,
            api,
            classification,
            icon=self.metadata.icon_url(item_id),
            effect=effect,
        )
        if record is None:  # pragma: no cover - guarded above
            return EntityResult(item_id, Outcome.FAILED, fetched=True)

        if classification.is_fallback:
            self.stats.fallback_classifications += 1
        if record.effect:
            self.stats.effects += 1

        path = self.store.save(
            "items",
            item_id,
            record_label(record.name_en, record.name),
            record.to_payload(),
            item_type=record.type,
        )
        log.info(
            "[Item] %s %s%s -> %s",
            item_id,
            record.name,
            " [effect]" if record.effect else "",
            path,
        )
        return EntityResult(item_id, Outcome.SAVED, path, fetched=True)

    # ------------------------------------------------------------------
    # Runners
    # ------------------------------------------------------------------

    def _run(
        self,
        collection: str,
        entity_id: int,
        processor: Callable[..., EntityResult],
        delay: float,
        **options: Any,
    ) -> EntityResult:
        try:
            result = processor(entity_id, **options)
        except (sqlite3.Error, OSError) as exc:
            log.error("[%s] %s failed: %s", _TAGS[collection], entity_id, exc)
            result = EntityResult(entity_id, Outcome.FAILED, fetched=True)
        self.stats.stage(collection).record(result.outcome)
        if result.fetched and delay:
            self._sleep(delay)
        return result

    def cascade(
        self,
        map_ids: Iterable[int],
        manual_monster_ids: Iterable[int] = (),
        *,
        skip_existing: bool = False,
    ) -> CascadeReport:
        """Fetch the maps, every monster they spawn and every item those drop."""

        graph = nx.DiGraph()
        maps = list(dict.fromkeys(int(map_id) for map_id in map_ids))
        monsters: dict[int, None] = {}
        items: dict[int, None] = {}

        log.info("--- Maps (%d) ---", len(maps))
        for map_id in maps:
            result = self._run(
                "maps", map_id, self.process_map, self.delays.maps, skip_existing=skip_existing
            )
            add_entity(graph, MAP, map_id)
            add_dependencies(graph, MAP, map_id, MONSTER, result.dependencies)
            monsters.update(dict.fromkeys(result.dependencies))

        manual = list(dict.fromkeys(int(monster_id) for monster_id in manual_monster_ids))
        if manual:
            log.info("Adding %d manually listed monsters", len(manual))
            monsters.update(dict.fromkeys(manual))

        log.info("--- Monsters (%d) ---", len(monsters))
        for monster_id in monsters:
            result = self._run(
                "mobs",
                monster_id,
                self.process_monster,
                self.delays.monsters,
                skip_existing=skip_existing,
            )
            add_entity(graph, MONSTER, monster_id)
            add_dependencies(graph, MONSTER, monster_id, ITEM, result.dependencies)
            items.update(dict.fromkeys(result.dependencies))

        log.info("--- Items (%d) ---", len(items))
        processed = 0
        skipped = 0
        for item_id in items:
            result = self._run(
                "items", item_id, self.process_item, self.delays.items, skip_existing=skip_existing
            )
            if result.outcome is Outcome.SKIPPED:
                skipped += 1
            elif result.outcome is Outcome.SAVED:
                processed += 1
                if processed % self.progress_interval == 0:
                    log.info("  ... %d/%d items processed", processed, len(items) - skipped)

        self.stats.log_summary()
        return CascadeReport(
            map_ids=maps,
            monster_ids=list(monsters),
            item_ids=list(items),
            graph=graph,
            stats=self.stats,
        )

    def harvest_maps(
        self,
        targets: Sequence[int | ApiMapSummary],
        *,
        skip_existing: bool = False,
        skip_towns: bool = False,
        skip_no_mobs: bool = False,
    ) -> list[EntityResult]:
        results = []
        for target in targets:
            summary = target if isinstance(target, ApiMapSummary) else None
            map_id = summary.id if summary is not None else int(target)
            results.append(
                self._run(
                    "maps",
                    map_id,
                    self.process_map,
                    self.delays.maps,
                    skip_existing=skip_existing,
                    summary=summary,
                    skip_towns=skip_towns,
                    skip_no_mobs=skip_no_mobs,
                )
            )
        return results

    def harvest_monsters(
        self, monster_ids: Iterable[int], *, skip_existing: bool = False
    ) -> list[EntityResult]:
        return [
            self._run(
                "mobs",
                monster_id,
                self.process_monster,
                self.delays.monsters,
                skip_existing=skip_existing,
            )
            for monster_id in dict.fromkeys(monster_ids)
        ]

    def harvest_items(
        self, item_ids: Iterable[int], *, skip_existing: bool = False
    ) -> list[EntityResult]:
        return [
            self._run(
                "items",
                item_id,
                self.process_item,
                self.delays.batch_items,
                skip_existing=skip_existing,
            )
            for item_id in dict.fromkeys(item_ids)
        ]


__all__ = [
    "COLLECTION_VALIDATORS",
    "CascadeReport",
    "EntityResult",
    "Harvester",
    "Outcome",
    "RunStats",
    "StageStats",
]
