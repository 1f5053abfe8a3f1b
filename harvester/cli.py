"""Command line entry point for harvesting and inspecting the corpus."""

from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from .backends import MetadataClient, RelationalBackend, TreeClient
from .backends.metadata import DEFAULT_SEARCH_COUNT
from .config import PROJECT_BASE, HarvestConfig
from .models.records import ItemType
from .models.responses import as_int
from .pipeline import COLLECTION_VALIDATORS, Harvester, StageStats
from .storage import FILENAME_PATTERN, CorpusStore, resolve_storage_root

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_range(text: str) -> tuple[int, int]:
    start, sep, end = text.partition("-")
    try:
        low, high = int(start), int(end)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START-END, got {text!r}") from None
    if not sep or low > high:
        raise argparse.ArgumentTypeError(f"expected START-END, got {text!r}")
    return low, high


def _collect_ids(tokens: Iterable[str] | None) -> list[int]:
    """Flatten ``["1,2", "3"]`` into ``[1, 2, 3]``."""

    ids: list[int] = []
    for token in tokens or ():
        for part in str(token).split(","):
            part = part.strip()
            if not part:
                continue
            value = as_int(part)
            if value is None:
                raise ValueError(f"Invalid ID: {part!r}")
            ids.append(value)
    return ids


def _load_config(args: argparse.Namespace) -> HarvestConfig:
    return HarvestConfig.load(Path(args.config) if args.config else None)


def _storage_root(args: argparse.Namespace) -> Path:
    if args.data_root:
        return Path(args.data_root).expanduser().resolve()
    return resolve_storage_root(PROJECT_BASE)


def _open_store(args: argparse.Namespace, config: HarvestConfig) -> CorpusStore:
    return CorpusStore(_storage_root(args), config.collections)


@contextmanager
def _harvest_session(
    args: argparse.Namespace, *, open_database: bool = True
) -> Iterator[Harvester]:
    config = _load_config(args)
    store = _open_store(args, config)
    log.debug("Storage root: %s", store.root)

    with ExitStack() as stack:
        database = RelationalBackend(config.database_path)
        if open_database:
            stack.enter_context(database)
        else:
            stack.callback(database.close)
        metadata = stack.enter_context(
            MetadataClient(config.api_base_url, timeout=config.http_timeout)
        )
        tree = stack.enter_context(
            TreeClient(config.tree_base_url, timeout=config.http_timeout)
        )
        yield Harvester(
            store,
            metadata,
            tree,
            database,
            delays=config.delays,
            progress_interval=config.progress_interval,
        )


def _report(label: str, stats: StageStats) -> None:
    log.info("Done: %d %s (%s)", stats.total, label, stats.describe())


# ---------------------------------------------------------------------------
# Harvest commands
# ---------------------------------------------------------------------------


def _command_maps(args: argparse.Namespace) -> int:
    map_ids = _collect_ids(args.ids)
    if not map_ids and not args.search:
        print("Specify map IDs or --search.", file=sys.stderr)
        return 2

    with _harvest_session(args, open_database=False) as harvester:
        targets: list = list(map_ids)
        if args.search:
            targets = list(harvester.metadata.search_maps(args.search, args.count))
            log.info("Search %r matched %d maps", args.search, len(targets))
        if not targets:
            log.info("Nothing to fetch.")
            return 0
        harvester.harvest_maps(
            targets,
            skip_existing=args.skip_existing,
            skip_towns=args.skip_towns,
            skip_no_mobs=args.skip_no_mobs,
        )
        _report("maps", harvester.stats.maps)
    return 0


def _command_mobs(args: argparse.Namespace) -> int:
    monster_ids = _collect_ids(args.ids)
    if args.range:
        low, high = args.range
        monster_ids.extend(range(low, high + 1))
    if not monster_ids and not args.search:
        print("Specify monster IDs, --range or --search.", file=sys.stderr)
        return 2

    with _harvest_session(args) as harvester:
        if args.search:
            found = harvester.metadata.search_monsters(args.search)
            log.info("Search %r matched %d monsters", args.search, len(found))
            monster_ids.extend(monster.id for monster in found)
        if not monster_ids:
            log.info("Nothing to fetch.")
            return 0
        harvester.harvest_monsters(monster_ids, skip_existing=args.skip_existing)
        _report("monsters", harvester.stats.monsters)
    return 0


def _command_items(args: argparse.Namespace) -> int:
    item_ids = _collect_ids(args.ids)
    if not item_ids and not (args.type or args.range or args.all or args.search):
        print("Specify item IDs, --type, --range, --search or --all.", file=sys.stderr)
        return 2

    with _harvest_session(args) as harvester:
        if args.search:
            found = harvester.metadata.search_items(
                args.search, args.limit or DEFAULT_SEARCH_COUNT
            )
            log.info("Search %r matched %d items", args.search, len(found))
            item_ids.extend(item.id for item in found)
        elif not item_ids:
            item_ids = harvester.database.list_item_ids(
                item_type=args.type,
                id_range=args.range,
                limit=None if args.all else args.limit,
            )
        log.info("Target items: %d", len(item_ids))
        if not item_ids:
            return 0
        harvester.harvest_items(item_ids, skip_existing=args.skip_existing)
        stats = harvester.stats
        _report("items", stats.items)
        log.info(
            "Effects: %d, id-range classifications: %d",
            stats.effects,
            stats.fallback_classifications,
        )
    return 0


def _command_cascade(args: argparse.Namespace) -> int:
    map_ids = _collect_ids(args.map)
    if not map_ids:
        print("Specify at least one map ID with --map.", file=sys.stderr)
        return 2
    manual = _collect_ids(args.mobs)

    with _harvest_session(args) as harvester:
        log.info("Target maps: %s", ", ".join(str(map_id) for map_id in map_ids))
        if manual:
            log.info("Manual monsters: %s", ", ".join(str(value) for value in manual))
        report = harvester.cascade(map_ids, manual, skip_existing=args.skip_existing)
        log.info(
            "Dependency graph: %d nodes, %d edges",
            report.graph.number_of_nodes(),
            report.graph.number_of_edges(),
        )
    return 0


# ---------------------------------------------------------------------------
# Corpus inspection
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ValidationIssue:
    """Represents a validation result for a single record file."""

    level: str
    path: Path
    message: str

    def display(self) -> str:
        return f"[{self.level.upper()}] {self.path}: {self.message}"


def validate_corpus(store: CorpusStore) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for collection in store.collection_names():
        validator = COLLECTION_VALIDATORS.get(collection)
        for path, payload in store.iter_records(collection):
            match = FILENAME_PATTERN.match(path.name)
            if match is None:
                issues.append(
                    ValidationIssue("warning", path, "filename does not match {id}_{name}.json")
                )
            if payload is None:
                issues.append(ValidationIssue("error", path, "failed to parse JSON"))
                continue
            if match is not None and isinstance(payload, dict):
                stored_id = as_int(payload.get("id"))
                if stored_id is not None and stored_id != int(match.group(1)):
                    issues.append(
                        ValidationIssue("error", path, "payload id does not match filename")
                    )
            if validator is not None:
                issues.extend(
                    ValidationIssue("error", path, f"{validator.record}: {problem}")
                    for problem in validator.errors(payload)
                )
            if collection == "items" and isinstance(payload, dict):
                stored_type = payload.get("type")
                if stored_type in {kind.value for kind in ItemType} and (
                    stored_type != path.parent.name
                ):
                    issues.append(
                        ValidationIssue(
                            "warning", path, f"type {stored_type!r} stored under {path.parent.name}"
                        )
                    )
    return issues


def count_records(store: CorpusStore) -> dict[str, Counter]:
    """Count record files per collection, keyed by sub-directory."""

    counts: dict[str, Counter] = {}
    for collection in store.collection_names():
        tally: Counter = Counter()
        config = store.collection(collection)
        for path, _payload in store.iter_records(collection):
            key = path.parent.name if config.requires_type() else collection
            tally[key] += 1
        counts[collection] = tally
    return counts


def _command_list(args: argparse.Namespace) -> int:
    store = _open_store(args, _load_config(args))
    print(f"Storage root: {store.root}\n")
    for collection, tally in count_records(store).items():
        total = sum(tally.values())
        print(f"{collection}: {total} record(s)")
        if store.collection(collection).requires_type():
            for kind in ItemType:
                if tally.get(kind.value):
                    print(f"  - {kind.value}: {tally[kind.value]}")
    return 0


def _command_validate(args: argparse.Namespace) -> int:
    store = _open_store(args, _load_config(args))
    issues = validate_corpus(store)
    if not issues:
        print("All corpus records parsed successfully.")
        return 0

    issues.sort(key=lambda issue: (issue.level != "error", str(issue.path)))
    error_count = 0
    warning_count = 0
    for issue in issues:
        print(issue.display())
        if issue.level == "error":
            error_count += 1
        else:
            warning_count += 1

    summary_parts = []
    if error_count:
        summary_parts.append(f"{error_count} error(s)")
    if warning_count:
        summary_parts.append(f"{warning_count} warning(s)")
    print("\nValidation complete: " + ", ".join(summary_parts))
    return 1


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="harvester",
        description="Build the map/monster/item corpus from the content backends.",
    )
    parser.add_argument("--config", help="Path to harvest.toml (default: config/harvest.toml)")
    parser.add_argument("--data-root", help="Directory the corpus is written under")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    def _skip_flag(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--skip-existing",
            action="store_true",
            help="Skip entities that already have a record file",
        )

    maps_parser = subparsers.add_parser("maps", help="Fetch map records")
    maps_parser.add_argument("ids", nargs="*", help="Map IDs (space or comma separated)")
    maps_parser.add_argument("--search", help="Free-text map search")
    maps_parser.add_argument("--count", type=int, default=DEFAULT_SEARCH_COUNT, help="Search result limit")
    maps_parser.add_argument("--skip-towns", action="store_true", help="Ignore town maps")
    maps_parser.add_argument(
        "--skip-no-mobs", action="store_true", help="Ignore maps without monsters"
    )
    _skip_flag(maps_parser)
    maps_parser.set_defaults(func=_command_maps)

    mobs_parser = subparsers.add_parser("mobs", help="Fetch monster records")
    mobs_parser.add_argument("ids", nargs="*", help="Monster IDs (space or comma separated)")
    mobs_parser.add_argument("--range", type=_parse_range, help="Inclusive ID range START-END")
    mobs_parser.add_argument("--search", help="Free-text monster search")
    _skip_flag(mobs_parser)
    mobs_parser.set_defaults(func=_command_mobs)

    items_parser = subparsers.add_parser("items", help="Fetch item records")
    items_parser.add_argument("ids", nargs="*", help="Item IDs (space or comma separated)")
    items_parser.add_argument(
        "--type", choices=[kind.value for kind in ItemType], help="Restrict to one item type"
    )
    items_parser.add_argument("--range", type=_parse_range, help="Inclusive ID range START-END")
    items_parser.add_argument("--search", help="Free-text item search")
    items_parser.add_argument("--limit", type=int, help="Maximum number of items to fetch")
    items_parser.add_argument("--all", action="store_true", help="Fetch every named item")
    _skip_flag(items_parser)
    items_parser.set_defaults(func=_command_items)

    cascade_parser = subparsers.add_parser(
        "cascade", help="Fetch maps, their monsters and every item those drop"
    )
    cascade_parser.add_argument(
        "--map", action="append", required=True, help="Map ID(s), comma separated"
    )
    cascade_parser.add_argument(
        "--mobs", action="append", help="Extra monster IDs to include, comma separated"
    )
    _skip_flag(cascade_parser)
    cascade_parser.set_defaults(func=_command_cascade)

    list_parser = subparsers.add_parser("list", help="Count persisted records")
    list_parser.set_defaults(func=_command_list)

    validate_parser = subparsers.add_parser(
        "validate",
        aliases=["lint"],
        help="Parse every record file and surface structural issues",
    )
    validate_parser.set_defaults(func=_command_validate)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT
    )
    try:
        return args.func(args)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except RuntimeError as exc:
        log.error("%s", exc)
        return 1


__all__ = ["ValidationIssue", "build_parser", "count_records", "main", "validate_corpus"]


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
