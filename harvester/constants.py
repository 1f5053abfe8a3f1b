"""Static lookup tables shared by the backends, classifier and merge engine."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

DEFAULT_API_BASE_URL = "https://maplestory.io/api/gms/62"
DEFAULT_TREE_BASE_URL = "https://maplestory.io/api/wz/gms/62/Item/Consume"

# Seconds to wait after each externally visible call, per stage.
DEFAULT_MAP_DELAY = 0.3
DEFAULT_MONSTER_DELAY = 0.3
DEFAULT_ITEM_DELAY = 0.1
DEFAULT_BATCH_ITEM_DELAY = 0.3

DEFAULT_HTTP_TIMEOUT = 10.0

# Log a progress line every N processed items during a cascade.
DEFAULT_PROGRESS_INTERVAL = 20

# Raw drop chances are expressed out of this denominator.
DROP_CHANCE_DENOMINATOR = 1_000_000

# Monsters record at most this many distinct maps they appear on.
MAX_FOUND_AT_MAPS = 10

# Every item carries the same rarity until a rarity source exists.
DEFAULT_RARITY = "common"

# Half-open item ID bands per item type.
ITEM_TYPE_BANDS: Mapping[str, tuple[int, int]] = MappingProxyType(
    {
        "equip": (1_000_000, 2_000_000),
        "use": (2_000_000, 3_000_000),
        "setup": (3_000_000, 4_000_000),
        "etc": (4_000_000, 5_000_000),
        "cash": (5_000_000, 10_000_000),
    }
)

_REGION_MARKS = {
    "Victoria Road": "빅토리아 아일랜드",
    "Henesys": "헤네시스",
    "Perion": "페리온",
    "Ellinia": "엘리니아",
    "Kerning City": "커닝시티",
    "Lith": "리스항구",
    "Sleepywood": "슬리피우드",
    "Ant Tunnel": "개미굴",
    "Ossyria": "오시리아",
    "El Nath": "엘나스",
    "Orbis": "오르비스",
    "Ludibrium": "루디브리움",
    "Omega Sector": "오메가 섹터",
    "Korean Folk Town": "코리아 타운",
    "Aqua Road": "아쿠아리움",
    "Mu Lung": "무릉",
    "Herb Town": "백초마을",
    "Nihal Desert": "니할 사막",
    "Magatia": "마가티아",
}

REGION_MARKS: Mapping[str, str] = MappingProxyType(dict(_REGION_MARKS))

BOSS_IDS = frozenset(
    {
        8800000, 8800001, 8800002,  # Zakum
        8810000, 8810001,  # Horntail
        8820000, 8820001,  # Pink Bean
        9300003, 9300012,  # King Slime
        6130101,  # Zombie Mushmom
        6300005,  # Timer
    }
)

# Relational gear-stat keys -> record stat keys.
STAT_MAPPING: Mapping[str, str] = MappingProxyType(
    {
        "STR": "incSTR",
        "DEX": "incDEX",
        "INT": "incINT",
        "LUK": "incLUK",
        "PAD": "incPAD",
        "MAD": "incMAD",
        "PDD": "incPDD",
        "MDD": "incMDD",
        "ACC": "incACC",
        "EVA": "incEVA",
        "MHP": "incMHP",
        "MMP": "incMMP",
        "Speed": "incSpeed",
        "Jump": "incJump",
    }
)

API_STAT_FIELDS = (
    "incSTR",
    "incDEX",
    "incINT",
    "incLUK",
    "incPAD",
    "incMAD",
    "incPDD",
    "incMDD",
    "incACC",
    "incEVA",
    "incSpeed",
    "incJump",
    "incMHP",
    "incMMP",
)

# Child keys looked up under the ``spec`` subtree (potions and buffs).
SPEC_EFFECT_KEYS = (
    "hp",
    "mp",
    "hpR",
    "mpR",
    "pad",
    "mad",
    "pdd",
    "mdd",
    "acc",
    "eva",
    "speed",
    "jump",
    "time",
)

# Child keys looked up under the ``info`` subtree (scrolls and projectiles).
INFO_EFFECT_KEYS = (
    "success",
    "incSTR",
    "incDEX",
    "incINT",
    "incLUK",
    "incPAD",
    "incMAD",
    "incPDD",
    "incMDD",
    "incACC",
    "incEVA",
    "incMHP",
    "incMMP",
    "incSpeed",
    "incJump",
)

__all__ = [
    "API_STAT_FIELDS",
    "BOSS_IDS",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_BATCH_ITEM_DELAY",
    "DEFAULT_HTTP_TIMEOUT",
    "DEFAULT_ITEM_DELAY",
    "DEFAULT_MAP_DELAY",
    "DEFAULT_MONSTER_DELAY",
    "DEFAULT_PROGRESS_INTERVAL",
    "DEFAULT_RARITY",
    "DEFAULT_TREE_BASE_URL",
    "DROP_CHANCE_DENOMINATOR",
    "INFO_EFFECT_KEYS",
    "ITEM_TYPE_BANDS",
    "MAX_FOUND_AT_MAPS",
    "REGION_MARKS",
    "SPEC_EFFECT_KEYS",
    "STAT_MAPPING",
]
