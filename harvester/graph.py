"""Map -> monster -> item dependency graph."""

from __future__ import annotations

from typing import Iterable

import networkx as nx

from .models.records import drop_item_ids, spawn_monster_ids
from .models.responses import as_int
from .storage import CorpusStore

MAP = "map"
MONSTER = "monster"
ITEM = "item"

# Persisted collection -> node kind
COLLECTION_KINDS = {"maps": MAP, "mobs": MONSTER, "items": ITEM}


def node_key(kind: str, entity_id: int) -> str:
    return f"{kind}:{int(entity_id)}"


def add_entity(graph: nx.DiGraph, kind: str, entity_id: int, **attributes: object) -> str:
    key = node_key(kind, entity_id)
    if key in graph:
        graph.nodes[key].update(attributes)
    else:
        graph.add_node(key, kind=kind, entity_id=int(entity_id), **attributes)
    return key


def add_dependencies(
    graph: nx.DiGraph,
    parent_kind: str,
    parent_id: int,
    child_kind: str,
    child_ids: Iterable[int],
) -> None:
    parent = add_entity(graph, parent_kind, parent_id)
    for child_id in child_ids:
        graph.add_edge(parent, add_entity(graph, child_kind, child_id))


def nodes_of_kind(graph: nx.DiGraph, kind: str) -> list[int]:
    return sorted(
        data["entity_id"] for _, data in graph.nodes(data=True) if data.get("kind") == kind
    )


def build_corpus_graph(store: CorpusStore) -> nx.DiGraph:
    """Rebuild the dependency graph from the records persisted in ``store``."""

    graph = nx.DiGraph()
    for collection, kind in COLLECTION_KINDS.items():
        for _path, payload in store.iter_records(collection):
            if not isinstance(payload, dict):
                continue
            entity_id = as_int(payload.get("id"))
            if entity_id is None:
                continue
            add_entity(graph, kind, entity_id, label=str(payload.get("name") or entity_id))
            if kind == MAP:
                add_dependencies(graph, MAP, entity_id, MONSTER, spawn_monster_ids(payload))
            elif kind == MONSTER:
                add_dependencies(graph, MONSTER, entity_id, ITEM, drop_item_ids(payload))
    return graph


__all__ = [
    "COLLECTION_KINDS",
    "ITEM",
    "MAP",
    "MONSTER",
    "add_dependencies",
    "add_entity",
    "build_corpus_graph",
    "node_key",
    "nodes_of_kind",
]
