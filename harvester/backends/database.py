"""Relational backend holding localized names, prices, gear stats and drops.

The database is a SQLite export of the ``wz_itemdata``, ``wz_itemequipdata``
and ``drop_data`` tables.  A :class:`RelationalBackend` owns exactly one
connection, opened lazily on first use (or eagerly via :meth:`open`) and
released by :meth:`close`; use it as a context manager so the connection is
closed on every exit path.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Callable, Optional

from ..constants import ITEM_TYPE_BANDS
from ..models.records import ItemType
from ..models.responses import DbDropRow, DbGearStat, DbItem

log = logging.getLogger(__name__)

Connector = Callable[[Path], sqlite3.Connection]

DROP_QUERY = """
    SELECT d.itemid, d.minimum_quantity, d.maximum_quantity, d.questid, d.chance,
           i.name AS itemName
    FROM drop_data d
    LEFT JOIN wz_itemdata i ON d.itemid = i.itemid
    WHERE d.dropperid = ?
    ORDER BY d.chance DESC
"""


class DatabaseUnavailable(RuntimeError):
    """Raised when the relational connection cannot be established."""


def connect_readonly(path: Path) -> sqlite3.Connection:
    uri = Path(path).expanduser().resolve().as_uri() + "?mode=ro"
    return sqlite3.connect(uri, uri=True)


class RelationalBackend:
    def __init__(self, path: Path, *, connector: Connector = connect_readonly) -> None:
        self._path = Path(path)
        self._connector = connector
        self._connection: Optional[sqlite3.Connection] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def open(self) -> sqlite3.Connection:
        if self._connection is None:
            try:
                connection = self._connector(self._path)
            except sqlite3.Error as exc:
                raise DatabaseUnavailable(
                    f"Unable to open database at {self._path}: {exc}"
                ) from exc
            connection.row_factory = sqlite3.Row
            self._connection = connection
            log.debug("Opened database %s", self._path)
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            log.debug("Closed database %s", self._path)

    def __enter__(self) -> "RelationalBackend":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        cursor = self.open().execute(sql, params)
        try:
            return cursor.fetchall()
        finally:
            cursor.close()

    # -- lookups ------------------------------------------------------------

    def fetch_item(self, item_id: int) -> Optional[DbItem]:
        rows = self._query("SELECT * FROM wz_itemdata WHERE itemid = ?", (int(item_id),))
        if not rows:
            return None
        return DbItem.from_row(dict(rows[0]))

    def fetch_gear_stats(self, item_id: int) -> list[DbGearStat]:
        rows = self._query(
            'SELECT "key", value FROM wz_itemequipdata WHERE itemid = ?', (int(item_id),)
        )
        stats = (DbGearStat.from_row(dict(row)) for row in rows)
        return [stat for stat in stats if stat is not None]

    def fetch_drops(self, monster_id: int) -> list[DbDropRow]:
        rows = self._query(DROP_QUERY, (int(monster_id),))
        return [DbDropRow.from_row(dict(row)) for row in rows]

    def list_item_ids(
        self,
        *,
        item_type: ItemType | str | None = None,
        id_range: tuple[int, int] | None = None,
        limit: int | None = None,
    ) -> list[int]:
        """Return named item IDs, optionally filtered by type band and range."""

        sql = "SELECT itemid FROM wz_itemdata WHERE name IS NOT NULL AND name != ''"
        params: list[Any] = []
        if item_type is not None:
            low, high = ITEM_TYPE_BANDS[ItemType.from_value(item_type).value]
            sql += " AND itemid >= ? AND itemid < ?"
            params.extend((low, high))
        if id_range is not None:
            sql += " AND itemid >= ? AND itemid <= ?"
            params.extend((int(id_range[0]), int(id_range[1])))
        sql += " ORDER BY itemid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        return [int(row["itemid"]) for row in self._query(sql, tuple(params))]


__all__ = ["DatabaseUnavailable", "RelationalBackend", "connect_readonly"]
