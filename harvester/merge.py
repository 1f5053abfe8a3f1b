"""Merge engine: turn backend responses into canonical corpus records.

Items are reconciled field by field.  The relational row is authoritative for
everything it carries (localised name, description, price, stack size,
trade flags, gear requirements and stats); the metadata service fills in
whatever the row lacks and always contributes the API-only fields
(classification, English name, icon, ``only``).  Defaults apply last.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .classifier import Classification
from .constants import (
    API_STAT_FIELDS,
    BOSS_IDS,
    DEFAULT_RARITY,
    MAX_FOUND_AT_MAPS,
    REGION_MARKS,
    STAT_MAPPING,
)
from .drops import DropTable, round_half_up
from .models.records import (
    EffectRecord,
    ItemRecord,
    ItemType,
    LevelBand,
    MapRecord,
    MonsterRecord,
    MonsterStats,
    SpawnWeight,
)
from .models.responses import (
    ApiItem,
    ApiMapDetail,
    ApiMapSummary,
    ApiMonster,
    DbGearStat,
    DbItem,
)

DEFAULT_STACK_SIZE = 100
EQUIP_STACK_SIZE = 1

_LEVEL_MARKER = re.compile(r"Lv\. :\s*\d+\\n")
_FORM_MARKER = re.compile(r"Form :\s*\w+\\n\\n")

# Upper bound (exclusive) of the lowest spawned monster ID -> level band.
_LEVEL_BANDS: tuple[tuple[int, int, int], ...] = (
    (200_000, 1, 10),
    (1_000_000, 5, 20),
    (2_000_000, 10, 30),
    (3_000_000, 20, 50),
)
_DEFAULT_LEVEL_BAND = (10, 30)


# ---------------------------------------------------------------------------
# Maps
# ---------------------------------------------------------------------------


def region_mark(street_name: str) -> str:
    """Return the localised region label for ``street_name``.

    Exact keys win, then the first key that contains or is contained in the
    street name.  Unknown streets are returned unchanged.
    """

    if street_name in REGION_MARKS:
        return REGION_MARKS[street_name]
    if not street_name:
        return street_name
    for key, value in REGION_MARKS.items():
        if key in street_name or street_name in key:
            return value
    return street_name


def build_spawn_table(monster_ids: Iterable[int]) -> list[SpawnWeight]:
    """Weight each monster by its share of spawn points, heaviest first."""

    counts = Counter(monster_ids)
    total = sum(counts.values())
    if not total:
        return []
    weights = [
        SpawnWeight(monster_id=monster_id, weight=round_half_up(count / total * 100))
        for monster_id, count in counts.items()
    ]
    weights.sort(key=lambda spawn: spawn.weight, reverse=True)
    return weights


def estimate_recommended_level(monster_ids: Sequence[int]) -> Optional[LevelBand]:
    if not monster_ids:
        return None
    lowest = min(monster_ids)
    for upper, low, high in _LEVEL_BANDS:
        if lowest < upper:
            return LevelBand(min=low, max=high)
    return LevelBand(*_DEFAULT_LEVEL_BAND)


def build_map_record(
    map_id: int,
    summary: Optional[ApiMapSummary],
    detail: Optional[ApiMapDetail],
) -> Optional[MapRecord]:
    if summary is None and detail is None:
        return None

    name = (summary and summary.name) or (detail and detail.name) or f"Map {map_id}"
    street = (summary and summary.street_name) or (detail and detail.street_name) or ""
    mark = region_mark(street)
    record = MapRecord(id=map_id, name=name, street_name=mark, map_mark=mark, name_en=name)

    if detail is not None:
        record.is_town = detail.is_town is True
        record.bgm = detail.background_music or None
        record.spawns = build_spawn_table(detail.monster_ids)
        record.recommended_level = estimate_recommended_level(detail.monster_ids)
    return record


# ---------------------------------------------------------------------------
# Monsters
# ---------------------------------------------------------------------------


def clean_monster_description(text: str) -> str:
    text = _LEVEL_MARKER.sub("", text)
    text = _FORM_MARKER.sub("", text)
    return text.replace("\\n", " ").strip()


def build_monster_stats(api: ApiMonster) -> MonsterStats:
    return MonsterStats(
        level=api.stat("level") or 1,
        max_hp=api.stat("maxHP") or 1,
        max_mp=api.stat("maxMP") or 0,
        exp=api.stat("exp") or 0,
        speed=api.stat("speed") or 0,
        physical_damage=api.stat("physicalDamage") or 0,
        physical_defense=api.stat("physicalDefense") or 0,
        magic_damage=api.stat("magicDamage") or 0,
        magic_defense=api.stat("magicDefense") or 0,
        accuracy=api.stat("accuracy") or 0,
        evasion=api.stat("evasion") or 0,
        is_boss=api.id in BOSS_IDS,
        is_body_attack=api.is_body_attack,
    )


def build_monster_record(api: ApiMonster, drop_table: DropTable) -> MonsterRecord:
    found_at = list(dict.fromkeys(api.found_at))[:MAX_FOUND_AT_MAPS]
    return MonsterRecord(
        id=api.id,
        name=api.name or f"Monster {api.id}",
        meta=build_monster_stats(api),
        drops=list(drop_table.drops),
        name_en=api.name or None,
        description=clean_monster_description(api.description) if api.description else None,
        can_jump="jump" in api.frame_books,
        meso=drop_table.meso,
        found_at=found_at,
    )


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class DbItemData:
    """Relational item fields after normalisation."""

    name: str
    description: str
    price: int
    stack_size: int
    tradeable: bool
    quest_id: int = 0
    upgrade_slots: Optional[int] = None
    required_level: Optional[int] = None
    required_job: Optional[int] = None
    is_cash: bool = False
    stats: Optional[dict[str, int]] = None


def _clean_db_description(text: Optional[str]) -> str:
    return (text or "").replace("\\n", " ").replace("\r", "")


def build_db_item_data(
    row: DbItem, gear_stats: Iterable[DbGearStat], item_type: ItemType
) -> DbItemData:
    is_equip = item_type is ItemType.EQUIP
    data = DbItemData(
        name=row.name or "",
        description=_clean_db_description(row.description),
        price=row.whole_price or 0,
        stack_size=EQUIP_STACK_SIZE if is_equip else (row.slot_max or DEFAULT_STACK_SIZE),
        tradeable=row.karma != 1,
        quest_id=row.quest_id or 0,
    )
    if not is_equip:
        return data

    stats: dict[str, int] = {}
    for stat in gear_stats:
        if stat.key == "tuc":
            data.upgrade_slots = stat.value
        elif stat.key == "reqLevel":
            data.required_level = stat.value
        elif stat.key == "reqJob":
            data.required_job = stat.value
        elif stat.key == "cash":
            data.is_cash = stat.value == 1
        elif stat.key in STAT_MAPPING and stat.value != 0:
            stats[STAT_MAPPING[stat.key]] = stat.value
    data.stats = stats or None
    return data


def api_item_stats(api: ApiItem) -> Optional[dict[str, int]]:
    stats = {}
    for field_name in API_STAT_FIELDS:
        value = api.meta_int(field_name)
        if value:
            stats[field_name] = value
    return stats or None


def _positive(value: Optional[int]) -> Optional[int]:
    if value is not None and value > 0:
        return value
    return None


def merge_item(
    item_id: int,
    db: Optional[DbItemData],
    api: Optional[ApiItem],
    classification: Classification,
    *,
    icon: str,
    effect: Optional[EffectRecord] = None,
) -> Optional[ItemRecord]:
    """Reconcile one item; ``None`` when neither backend knows it."""

    if db is None and api is None:
        return None

    item_type = classification.type
    english_name = (api.name if api is not None else None) or ""
    api_description = ((api.description if api is not None else None) or "").replace(
        "\\n", " "
    )

    def meta_int(key: str) -> Optional[int]:
        return api.meta_int(key) if api is not None else None

    def meta_flag(key: str) -> bool:
        return api.meta_flag(key) if api is not None else False

    if db is not None:
        tradeable = db.tradeable
        stack_size = db.stack_size
        price = db.price
    else:
        tradeable = not meta_flag("tradeBlock")
        if item_type is ItemType.EQUIP:
            stack_size = EQUIP_STACK_SIZE
        else:
            stack_size = meta_int("slotMax") or DEFAULT_STACK_SIZE
        price = meta_int("price") or 0

    name = (db.name if db is not None else "") or english_name
    record = ItemRecord(
        id=item_id,
        name=name,
        description=(db.description if db is not None else "") or api_description,
        type=item_type,
        category=classification.category,
        rarity=DEFAULT_RARITY,
        price=price,
        sellable=not meta_flag("notSale"),
        tradeable=tradeable,
        stack_size=stack_size,
        icon=icon,
        name_en=english_name if english_name and english_name != name else None,
        sub_category=classification.sub_category,
        slot=classification.slot,
    )

    upgrade_slots = db.upgrade_slots if db is not None else None
    if upgrade_slots is None:
        upgrade_slots = meta_int("tuc")
    record.upgrade_slots = _positive(upgrade_slots)

    required_level = db.required_level if db is not None else None
    if required_level is None:
        required_level = meta_int("reqLevel")
    record.required_level = _positive(required_level)

    required_job = db.required_job if db is not None else None
    record.required_job = required_job if required_job is not None else meta_int("reqJob")

    record.only = meta_flag("only")
    record.quest = (db is not None and db.quest_id > 0) or meta_flag("quest")
    record.is_cash = (db is not None and db.is_cash) or meta_flag("cash")

    if item_type is ItemType.EQUIP:
        stats = db.stats if db is not None else None
        if not stats and api is not None:
            stats = api_item_stats(api)
        record.stats = stats
    elif item_type is ItemType.USE and effect:
        record.effect = dict(effect)

    return record


def record_label(name_en: Optional[str], name: str) -> str:
    """Name used to build the record's filename."""

    return name_en or name


__all__ = [
    "DbItemData",
    "api_item_stats",
    "build_db_item_data",
    "build_map_record",
    "build_monster_record",
    "build_monster_stats",
    "build_spawn_table",
    "clean_monster_description",
    "estimate_recommended_level",
    "merge_item",
    "record_label",
    "region_mark",
]
