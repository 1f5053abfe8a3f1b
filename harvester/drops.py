"""Drop table resolution from relational drop rows."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from .constants import DROP_CHANCE_DENOMINATOR
from .models.records import CurrencyDrop, DropEntry
from .models.responses import DbDropRow

log = logging.getLogger(__name__)

CURRENCY_ITEM_ID = 0


class DropSource(Protocol):
    def fetch_drops(self, monster_id: int) -> list[DbDropRow]: ...


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (``2.5 -> 3``)."""

    return int(math.floor(value + 0.5))


def chance_percent(raw_chance: int) -> float:
    """Convert a raw chance (out of 1,000,000) to a percentage with 3 decimals."""

    percent = round(raw_chance / DROP_CHANCE_DENOMINATOR * 100, 3)
    return min(100.0, max(0.0, percent))


def currency_chance(raw_chance: int) -> int:
    """Convert a raw chance to a whole percentage, rounding the raw value once."""

    percent = round_half_up(raw_chance / DROP_CHANCE_DENOMINATOR * 100)
    return min(100, max(0, percent))


@dataclass(slots=True)
class DropTable:
    drops: list[DropEntry] = field(default_factory=list)
    meso: Optional[CurrencyDrop] = None


def resolve_drops(rows: Iterable[DbDropRow], *, monster_id: int | None = None) -> DropTable:
    """Split raw rows into item drops and a currency descriptor.

    Rows are expected in descending chance order.  Quest-gated rows are
    dropped.  When several currency rows exist only the last one survives.
    """

    table = DropTable()
    currency_rows = 0
    for row in rows:
        if row.item_id == CURRENCY_ITEM_ID:
            currency_rows += 1
            table.meso = CurrencyDrop(
                amount=round_half_up((row.min_quantity + row.max_quantity) / 2),
                chance=currency_chance(row.chance),
            )
            continue

        if row.quest_id > 0:
            continue

        entry = DropEntry(
            item_id=row.item_id,
            name=row.item_name or f"Unknown Item {row.item_id}",
            chance=chance_percent(row.chance),
        )
        if row.min_quantity != 1 or row.max_quantity != 1:
            entry.min_quantity = row.min_quantity
            entry.max_quantity = row.max_quantity
        table.drops.append(entry)

    if currency_rows > 1:
        log.warning(
            "Monster %s has %d currency rows; keeping the last one",
            monster_id if monster_id is not None else "?",
            currency_rows,
        )
    return table


def fetch_drop_table(source: DropSource, monster_id: int) -> DropTable:
    return resolve_drops(source.fetch_drops(monster_id), monster_id=monster_id)


__all__ = [
    "CURRENCY_ITEM_ID",
    "DropSource",
    "DropTable",
    "chance_percent",
    "currency_chance",
    "fetch_drop_table",
    "resolve_drops",
    "round_half_up",
]
