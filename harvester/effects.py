"""Consumable effect extraction from the tree-structured attribute service.

A consumable's node lives at ``{bucket:04d}.img/{item_id:08d}`` where the
bucket is ``item_id // 10000``.  Two subtrees are inspected: ``spec`` holds
potion/buff values and ``info`` holds scroll deltas, success rates and
projectile attack power.  Only keys that are both listed as children and
resolve to a number make it into the effect record.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Protocol

from .constants import INFO_EFFECT_KEYS, SPEC_EFFECT_KEYS
from .models.records import EffectRecord
from .models.responses import TreeNode

log = logging.getLogger(__name__)


class TreeSource(Protocol):
    def node(self, path: str) -> Optional[TreeNode]: ...

    def value(self, path: str) -> Optional[float | int]: ...


def tree_path(item_id: int) -> str:
    """Return the hierarchical path of an item, e.g. ``0200.img/02000001``."""

    return f"{item_id // 10000:04d}.img/{item_id:08d}"


def _collect(
    tree: TreeSource, base: str, subtree: str, keys: Iterable[str], effect: EffectRecord
) -> None:
    node = tree.node(f"{base}/{subtree}")
    if node is None or not node.children:
        return
    children = set(node.children)
    for key in keys:
        if key not in children:
            continue
        value = tree.value(f"{base}/{subtree}/{key}")
        if value is not None:
            effect[key] = value


def derive_attack_power(effect: EffectRecord) -> EffectRecord:
    """Rename ``incPAD`` to ``attackPower`` for projectiles (no success rate)."""

    if effect.get("incPAD") and "success" not in effect:
        effect["attackPower"] = effect.pop("incPAD")
    return effect


def fetch_consumable_effect(tree: TreeSource, item_id: int) -> Optional[EffectRecord]:
    """Walk the ``spec`` and ``info`` subtrees of ``item_id``.

    Returns ``None`` when no key resolved to a number, which marks an item
    without mechanical effect.  Missing nodes and failed lookups are treated
    as absent fields.
    """

    base = tree_path(item_id)
    effect: EffectRecord = {}
    _collect(tree, base, "spec", SPEC_EFFECT_KEYS, effect)
    _collect(tree, base, "info", INFO_EFFECT_KEYS, effect)
    if not effect:
        log.debug("No consumable effect for %s", item_id)
        return None
    return derive_attack_power(effect)


__all__ = ["TreeSource", "derive_attack_power", "fetch_consumable_effect", "tree_path"]
