"""Estado en memoria de los nodos sensores."""

from .node_store import DEFAULT_HISTORY_SIZE, NodeStateStore

__all__ = [
    "DEFAULT_HISTORY_SIZE",
    "NodeStateStore",
]
