"""Record and backend response models."""

from .records import (
    CurrencyDrop,
    DropEntry,
    EffectRecord,
    ItemRecord,
    ItemType,
    LevelBand,
    MapRecord,
    MonsterRecord,
    MonsterStats,
    SpawnWeight,
    drop_item_ids,
    spawn_monster_ids,
)
from .responses import (
    ApiItem,
    ApiMapDetail,
    ApiMapSummary,
    ApiMonster,
    ApiTypeInfo,
    DbDropRow,
    DbGearStat,
    DbItem,
    TreeNode,
)

__all__ = [
    "ApiItem",
    "ApiMapDetail",
    "ApiMapSummary",
    "ApiMonster",
    "ApiTypeInfo",
    "CurrencyDrop",
    "DbDropRow",
    "DbGearStat",
    "DbItem",
    "DropEntry",
    "EffectRecord",
    "ItemRecord",
    "ItemType",
    "LevelBand",
    "MapRecord",
    "MonsterRecord",
    "MonsterStats",
    "SpawnWeight",
    "TreeNode",
    "drop_item_ids",
    "spawn_monster_ids",
]
