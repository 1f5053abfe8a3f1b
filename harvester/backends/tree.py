"""Client for the tree-structured attribute service."""

from __future__ import annotations

from typing import Optional

from ..models.responses import TreeNode
from .http import JsonHttpClient


class TreeClient(JsonHttpClient):
    def node(self, path: str) -> Optional[TreeNode]:
        return TreeNode.from_payload(self.get_json(path))

    def value(self, path: str) -> Optional[float | int]:
        """Return the numeric scalar stored at ``path``, if any."""

        node = self.node(path)
        if node is None:
            return None
        return node.numeric_value


__all__ = ["TreeClient"]
