"""Client for the metadata REST service (classification and English names)."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from ..models.responses import ApiItem, ApiMapDetail, ApiMapSummary, ApiMonster
from .http import JsonHttpClient

DEFAULT_SEARCH_COUNT = 50


def _as_list(payload: Any) -> list[Any]:
    if isinstance(payload, Sequence) and not isinstance(payload, (str, bytes)):
        return list(payload)
    return []


class MetadataClient(JsonHttpClient):
    # -- maps ---------------------------------------------------------------

    def fetch_map(self, map_id: int) -> Optional[ApiMapDetail]:
        return ApiMapDetail.from_payload(self.get_json(f"map/{int(map_id)}"))

    def find_map(self, map_id: int) -> Optional[ApiMapSummary]:
        """Look a map up through the search endpoint, matching the exact ID."""

        payload = self.get_json("map", {"searchFor": str(int(map_id)), "count": 1})
        for entry in _as_list(payload):
            summary = ApiMapSummary.from_payload(entry)
            if summary is not None and summary.id == map_id:
                return summary
        return None

    def search_maps(self, query: str, count: int = DEFAULT_SEARCH_COUNT) -> list[ApiMapSummary]:
        payload = self.get_json("map", {"searchFor": query, "count": count})
        results = (ApiMapSummary.from_payload(entry) for entry in _as_list(payload))
        return [summary for summary in results if summary is not None]

    # -- monsters -----------------------------------------------------------

    def fetch_monster(self, monster_id: int) -> Optional[ApiMonster]:
        return ApiMonster.from_payload(self.get_json(f"mob/{int(monster_id)}"))

    def search_monsters(self, query: str, count: int = DEFAULT_SEARCH_COUNT) -> list[ApiMonster]:
        payload = self.get_json("mob", {"searchFor": query, "count": count})
        results = (ApiMonster.from_payload(entry) for entry in _as_list(payload))
        return [monster for monster in results if monster is not None]

    # -- items --------------------------------------------------------------

    def fetch_item(self, item_id: int) -> Optional[ApiItem]:
        return ApiItem.from_payload(self.get_json(f"item/{int(item_id)}"))

    def search_items(self, query: str, count: int = DEFAULT_SEARCH_COUNT) -> list[ApiItem]:
        payload = self.get_json("item", {"searchFor": query, "count": count})
        results = (ApiItem.from_payload(entry) for entry in _as_list(payload))
        return [item for item in results if item is not None]

    def icon_url(self, item_id: int) -> str:
        return self.url_for(f"item/{int(item_id)}/icon")


__all__ = ["DEFAULT_SEARCH_COUNT", "MetadataClient"]
