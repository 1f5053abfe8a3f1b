"""Harvester configuration utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import tomllib

from .constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_BATCH_ITEM_DELAY,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_ITEM_DELAY,
    DEFAULT_MAP_DELAY,
    DEFAULT_MONSTER_DELAY,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_TREE_BASE_URL,
)
from .storage import DEFAULT_COLLECTIONS, CollectionConfig, parse_collections

PROJECT_BASE = Path(__file__).resolve().parent.parent
CONFIG_PATH = PROJECT_BASE / "config" / "harvest.toml"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid numeric value for {name}: {raw!r}") from exc


def _number(table: Mapping[str, Any], key: str, default: float, kind: type = float) -> Any:
    raw = table.get(key, default)
    if isinstance(raw, bool):
        raise RuntimeError(f"Invalid numeric value for {key}: {raw!r}")
    try:
        return kind(raw)
    except (TypeError, ValueError) as exc:
        raise RuntimeError(f"Invalid numeric value for {key}: {raw!r}") from exc


def _table(payload: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = payload.get(name)
    return value if isinstance(value, Mapping) else {}


@dataclass(slots=True)
class StageDelays:
    """Seconds to sleep after each external call, per stage."""

    maps: float = DEFAULT_MAP_DELAY
    monsters: float = DEFAULT_MONSTER_DELAY
    items: float = DEFAULT_ITEM_DELAY
    batch_items: float = DEFAULT_BATCH_ITEM_DELAY

    def __post_init__(self) -> None:
        self.maps = max(0.0, float(self.maps))
        self.monsters = max(0.0, float(self.monsters))
        self.items = max(0.0, float(self.items))
        self.batch_items = max(0.0, float(self.batch_items))


@dataclass(slots=True)
class HarvestConfig:
    api_base_url: str = DEFAULT_API_BASE_URL
    tree_base_url: str = DEFAULT_TREE_BASE_URL
    database_path: Path = PROJECT_BASE / "data" / "maplestory.db"
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL
    delays: StageDelays = field(default_factory=StageDelays)
    collections: dict[str, CollectionConfig] = field(
        default_factory=lambda: dict(DEFAULT_COLLECTIONS)
    )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any], *, base: Path = PROJECT_BASE) -> "HarvestConfig":
        backends = _table(payload, "backends")
        delays = _table(payload, "delays")

        database = backends.get("database")
        database_path = Path(str(database)) if database else Path("data") / "maplestory.db"
        if not database_path.is_absolute():
            database_path = base / database_path

        return cls(
            api_base_url=str(backends.get("api_base", DEFAULT_API_BASE_URL)).rstrip("/"),
            tree_base_url=str(backends.get("tree_base", DEFAULT_TREE_BASE_URL)).rstrip("/"),
            database_path=database_path,
            http_timeout=_number(backends, "http_timeout", DEFAULT_HTTP_TIMEOUT),
            progress_interval=max(
                1, _number(payload, "progress_interval", DEFAULT_PROGRESS_INTERVAL, int)
            ),
            delays=StageDelays(
                maps=_number(delays, "maps", DEFAULT_MAP_DELAY),
                monsters=_number(delays, "monsters", DEFAULT_MONSTER_DELAY),
                items=_number(delays, "items", DEFAULT_ITEM_DELAY),
                batch_items=_number(delays, "batch_items", DEFAULT_BATCH_ITEM_DELAY),
            ),
            collections=parse_collections(payload.get("collections")),
        )

    @classmethod
    def load(cls, path: Path | None = None) -> "HarvestConfig":
        """Load ``config/harvest.toml`` (if present) and apply env overrides."""

        config_path = path or CONFIG_PATH
        try:
            with config_path.open("rb") as handle:
                payload = tomllib.load(handle)
        except FileNotFoundError:
            config = cls()
        except tomllib.TOMLDecodeError as exc:
            raise RuntimeError(f"Invalid configuration at {config_path}: {exc}") from exc
        else:
            config = cls.from_mapping(payload, base=config_path.resolve().parent.parent)
        return config.with_env_overrides()

    def with_env_overrides(self) -> "HarvestConfig":
        api_base = os.getenv("HARVEST_API_BASE")
        if api_base:
            self.api_base_url = api_base.rstrip("/")
        tree_base = os.getenv("HARVEST_TREE_BASE")
        if tree_base:
            self.tree_base_url = tree_base.rstrip("/")
        database = os.getenv("HARVEST_DATABASE")
        if database:
            self.database_path = Path(database).expanduser()
        self.http_timeout = _env_float("HARVEST_HTTP_TIMEOUT", self.http_timeout)
        return self


__all__ = ["CONFIG_PATH", "HarvestConfig", "PROJECT_BASE", "StageDelays"]
