"""On-disk corpus layout driven by the ``[collections]`` table of the config.

Each entity type lives in a *collection*: a directory template relative to
the storage root (``data/items/{type}`` fans items out per item type) plus a
cache policy that tells the pipeline whether an existing file may be reused,
skipped or must be refreshed.  Every record is one JSON document named
``{id}_{sanitised-name}.json``; writes go through a temporary file and
``os.replace`` so a crash never leaves a truncated record behind.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Optional

from .models.records import ItemType

log = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]+")

FILENAME_PATTERN = re.compile(r"^(\d+)_[a-z0-9-]+\.json$")


def _is_site_packages(path: Path) -> bool:
    """Return ``True`` if ``path`` is inside a site/dist-packages directory."""

    normalized = {part.lower() for part in path.parts}
    return "site-packages" in normalized or "dist-packages" in normalized


def resolve_storage_root(package_root: Path) -> Path:
    """Determine where the corpus should be written.

    ``HARVEST_DATA_ROOT`` always wins.  Without it the corpus is kept next to
    the checkout, unless the package was installed into site-packages or the
    checkout is read-only, in which case the working directory is used.
    """

    override = os.getenv("HARVEST_DATA_ROOT")
    if override:
        return Path(override).expanduser().resolve()

    if _is_site_packages(package_root) or not os.access(package_root, os.W_OK):
        return Path.cwd().resolve()

    return package_root.resolve()


# ---------------------------------------------------------------------------
# Filenames
# ---------------------------------------------------------------------------


def sanitize_name(name: str | None) -> str:
    """Lowercase ``name`` and collapse every non-alphanumeric run to ``-``."""

    safe = _UNSAFE_CHARS.sub("-", (name or "").lower()).strip("-")
    return safe or "unknown"


def build_filename(record_id: int, name: str | None) -> str:
    return f"{record_id}_{sanitize_name(name)}.json"


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf8") as handle:
            return json.load(handle)
    except (FileNotFoundError, json.JSONDecodeError, UnicodeDecodeError, OSError):
        return None


def _write_json(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    data = json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf8", dir=path.parent, suffix=".tmp", delete=False
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
        temp_path = None
    finally:
        if temp_path is not None:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass


def save_json(
    path: Path, payload: MutableMapping[str, Any], *, preserve_name: bool = False
) -> None:
    """Write ``payload`` to ``path``, optionally keeping a hand-localised name.

    When ``preserve_name`` is set and a readable record already exists at
    ``path``, its ``name`` is carried forward unless it is just the English
    name of the new payload.
    """

    if preserve_name and path.exists():
        existing = _read_json(path)
        if isinstance(existing, Mapping):
            previous = existing.get("name")
            if isinstance(previous, str) and previous and previous != payload.get("nameEn"):
                payload["name"] = previous
    _write_json(path, payload)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


class CachePolicy(str, Enum):
    """How an existing record file influences the next fetch of that entity."""

    REFRESH = "refresh"
    SKIP_EXISTING = "skip-existing"
    REUSE_COMPLETE = "reuse-complete"

    @classmethod
    def from_value(cls, value: "CachePolicy | str") -> "CachePolicy":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown cache policy: {value!r}") from exc

    def effective(self, skip_existing: bool) -> "CachePolicy":
        if skip_existing and self is CachePolicy.REFRESH:
            return CachePolicy.SKIP_EXISTING
        return self


@dataclass(slots=True)
class CollectionConfig:
    name: str
    path: str
    policy: CachePolicy = CachePolicy.REFRESH
    preserve_name: bool = True

    def requires_type(self) -> bool:
        return "{type}" in self.path

    def build_relative_path(self, *, item_type: ItemType | str | None = None) -> str:
        if not self.requires_type():
            return self.path
        if item_type is None:
            raise ValueError(f"Collection {self.name!r} requires an item type")
        return self.path.format(type=ItemType.from_value(item_type).value)

    def resolve_directory(
        self, base: Path, *, item_type: ItemType | str | None = None
    ) -> Path:
        return base / self.build_relative_path(item_type=item_type)

    def candidate_directories(self, base: Path) -> list[Path]:
        if not self.requires_type():
            return [base / self.path]
        return [self.resolve_directory(base, item_type=kind) for kind in ItemType]


DEFAULT_COLLECTIONS: Mapping[str, CollectionConfig] = {
    "maps": CollectionConfig(
        name="maps",
        path="data/maps",
        policy=CachePolicy.REUSE_COMPLETE,
        preserve_name=False,
    ),
    "mobs": CollectionConfig(name="mobs", path="data/mobs"),
    "items": CollectionConfig(name="items", path="data/items/{type}"),
}


def parse_collections(payload: Any) -> dict[str, CollectionConfig]:
    """Build :class:`CollectionConfig` objects from a ``[collections]`` table."""

    if not isinstance(payload, Mapping):
        raise RuntimeError("configuration must define a [collections] table")

    collections: dict[str, CollectionConfig] = {}
    for name, options in payload.items():
        if not isinstance(options, Mapping):
            continue
        path_value = str(options.get("path", "")).strip()
        if not path_value:
            raise RuntimeError(f"Collection {name!r} is missing a path entry")
        default = DEFAULT_COLLECTIONS.get(str(name))
        try:
            policy = CachePolicy.from_value(
                options.get("policy", default.policy if default else CachePolicy.REFRESH)
            )
        except ValueError as exc:
            raise RuntimeError(f"Collection {name!r}: {exc}") from exc
        preserve_name = options.get(
            "preserve_name", default.preserve_name if default else True
        )
        collections[str(name)] = CollectionConfig(
            name=str(name),
            path=path_value,
            policy=policy,
            preserve_name=bool(preserve_name),
        )

    missing = sorted(set(DEFAULT_COLLECTIONS) - set(collections))
    if missing:
        raise RuntimeError(f"configuration is missing collections: {', '.join(missing)}")
    return collections


# ---------------------------------------------------------------------------
# CorpusStore
# ---------------------------------------------------------------------------


class CorpusStore:
    """Reads and writes corpus records below a storage root."""

    def __init__(
        self,
        root: Path,
        collections: Mapping[str, CollectionConfig] | None = None,
    ) -> None:
        self._root = Path(root)
        self._collections: Dict[str, CollectionConfig] = dict(
            collections if collections is not None else DEFAULT_COLLECTIONS
        )

    @property
    def root(self) -> Path:
        return self._root

    def collection(self, name: str) -> CollectionConfig:
        try:
            return self._collections[name]
        except KeyError as exc:
            raise KeyError(f"Unknown collection: {name}") from exc

    def collection_names(self) -> list[str]:
        return list(self._collections)

    def find(
        self, collection: str, record_id: int, *, item_type: ItemType | str | None = None
    ) -> Optional[Path]:
        """Return the first ``{record_id}_*.json`` file of a collection."""

        config = self.collection(collection)
        if config.requires_type() and item_type is not None:
            directories = [config.resolve_directory(self._root, item_type=item_type)]
        else:
            directories = config.candidate_directories(self._root)
        for directory in directories:
            if not directory.is_dir():
                continue
            matches = sorted(directory.glob(f"{int(record_id)}_*.json"))
            if matches:
                return matches[0]
        return None

    def exists(
        self, collection: str, record_id: int, *, item_type: ItemType | str | None = None
    ) -> bool:
        return self.find(collection, record_id, item_type=item_type) is not None

    def load(
        self, collection: str, record_id: int, *, item_type: ItemType | str | None = None
    ) -> Optional[dict[str, Any]]:
        """Load an existing record; unreadable or non-object files count as absent."""

        path = self.find(collection, record_id, item_type=item_type)
        if path is None:
            return None
        payload = _read_json(path)
        if not isinstance(payload, MutableMapping):
            log.debug("Ignoring unreadable record %s", path)
            return None
        return dict(payload)

    def save(
        self,
        collection: str,
        record_id: int,
        name: str | None,
        payload: MutableMapping[str, Any],
        *,
        item_type: ItemType | str | None = None,
    ) -> Path:
        config = self.collection(collection)
        directory = config.resolve_directory(self._root, item_type=item_type)
        path = directory / build_filename(record_id, name)
        save_json(path, payload, preserve_name=config.preserve_name)
        return path

    def iter_records(self, collection: str) -> Iterator[tuple[Path, Any]]:
        """Yield ``(path, payload)`` for every JSON file of a collection."""

        config = self.collection(collection)
        for directory in config.candidate_directories(self._root):
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob("*.json")):
                yield path, _read_json(path)


__all__ = [
    "CachePolicy",
    "CollectionConfig",
    "CorpusStore",
    "DEFAULT_COLLECTIONS",
    "FILENAME_PATTERN",
    "build_filename",
    "parse_collections",
    "resolve_storage_root",
    "sanitize_name",
    "save_json",
]
