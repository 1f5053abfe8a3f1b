#!/usr/bin/env python3
"""Render the map -> monster -> item dependency graph of the persisted corpus."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

import matplotlib.pyplot as plt
import networkx as nx
from matplotlib.lines import Line2D

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from harvester.config import PROJECT_BASE, HarvestConfig
from harvester.graph import ITEM, MAP, MONSTER, build_corpus_graph
from harvester.storage import CorpusStore, resolve_storage_root

NODE_STYLES = {
    MAP: {"color": "#f5deb3", "size": 520, "label": "Map"},
    MONSTER: {"color": "#d62728", "size": 320, "label": "Monster"},
    ITEM: {"color": "#1f77b4", "size": 140, "label": "Item"},
}

EDGE_COLOUR = "#7f7f7f"


def _layered_positions(graph: nx.DiGraph) -> dict[str, tuple[float, float]]:
    # Maps on the left, monsters in the middle, items on the right.
    columns = {MAP: 0.0, MONSTER: 1.0, ITEM: 2.0}
    positions: dict[str, tuple[float, float]] = {}
    for kind, x in columns.items():
        nodes = sorted(
            (node for node, data in graph.nodes(data=True) if data.get("kind") == kind),
            key=lambda node: graph.nodes[node]["entity_id"],
        )
        count = len(nodes)
        for index, node in enumerate(nodes):
            y = 1.0 - (index + 0.5) / count if count else 0.5
            positions[node] = (x, y)
    return positions


def render_cascade_graph(
    graph: nx.DiGraph,
    output_path: Path,
    *,
    dpi: int = 200,
    seed: int = 42,
    size: float = 18.0,
    layout: str = "layered",
    show_labels: bool = True,
) -> None:
    if layout == "layered":
        pos = _layered_positions(graph)
    elif layout == "spring":
        pos = nx.spring_layout(graph, k=0.5, seed=seed)
    else:
        raise ValueError(f"Unknown layout: {layout}")

    plt.figure(figsize=(size, size * 0.75), dpi=dpi)

    for kind, style in NODE_STYLES.items():
        nodes = [node for node, data in graph.nodes(data=True) if data.get("kind") == kind]
        if not nodes:
            continue
        nx.draw_networkx_nodes(
            graph,
            pos,
            nodelist=nodes,
            node_color=style["color"],
            node_size=style["size"],
            linewidths=0.5,
            edgecolors="#333333",
        )

    nx.draw_networkx_edges(
        graph,
        pos,
        edge_color=EDGE_COLOUR,
        width=0.8,
        arrows=True,
        arrowsize=7,
        alpha=0.6,
    )

    if show_labels:
        labels = {node: graph.nodes[node].get("label", node) for node in graph.nodes}
        nx.draw_networkx_labels(graph, pos, labels=labels, font_size=5)

    legend_handles = [
        Line2D([], [], marker="o", linestyle="", color=style["color"], label=style["label"])
        for style in NODE_STYLES.values()
    ]
    plt.legend(handles=legend_handles, loc="upper left", frameon=False, fontsize=8)
    plt.axis("off")
    plt.tight_layout()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, bbox_inches="tight")
    plt.close()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--data-root",
        type=Path,
        help="Corpus storage root (default: resolved like the harvester CLI).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("img/cascade-graph.png"),
        help="Where to write the rendered graph image.",
    )
    parser.add_argument("--dpi", type=int, default=200, help="Rendering DPI.")
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for the spring layout.",
    )
    parser.add_argument("--size", type=float, default=18.0, help="Figure width in inches.")
    parser.add_argument(
        "--layout",
        choices=("layered", "spring"),
        default="layered",
        help="Column-per-stage layout or a force-directed one.",
    )
    parser.add_argument(
        "--no-labels", action="store_true", help="Omit node labels on large corpora."
    )

    args = parser.parse_args()
    config = HarvestConfig.load()
    root = args.data_root or resolve_storage_root(PROJECT_BASE)
    graph = build_corpus_graph(CorpusStore(root, config.collections))
    print(
        f"Graph: {graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges"
    )
    render_cascade_graph(
        graph,
        args.output,
        dpi=args.dpi,
        seed=args.seed,
        size=args.size,
        layout=args.layout,
        show_labels=not args.no_labels,
    )


if __name__ == "__main__":
    main()
