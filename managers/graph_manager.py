"""
Editor session management.

This module provides a thread-safe singleton that owns the graph currently
being edited. Every mutation and every replacement of the whole graph (for
example when a description is imported) runs under one lock, so readers
never observe a graph in the middle of a change.
"""

import copy
import logging
import threading
from pathlib import Path
from typing import Optional

from graph import Edge, Graph, Node, Port, PortSide

logger = logging.getLogger("graph_manager")


class GraphManager:
    """
    Thread-safe singleton owning the current editor graph.

    This class implements the singleton pattern using __new__ with
    double-checked locking. Create instances with GraphManager() to get the
    shared singleton instance.
    """

    _instance: Optional["GraphManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "GraphManager":
        if cls._instance is None:
            with cls._lock:
                # Double-checked locking
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        # Protect against multiple initialization
        if hasattr(self, "_initialized"):
            return
        self._initialized = True

        self._graph = Graph()
        self._graph_lock = threading.Lock()

    def get_graph(self) -> Graph:
        """Returns a snapshot copy of the current graph."""
        with self._graph_lock:
            return copy.deepcopy(self._graph)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_node(self, node_type: str, x: int = 0, y: int = 0) -> Node:
        with self._graph_lock:
            node = self._graph.add_node(node_type, x, y)
            return copy.deepcopy(node)

    def add_port(self, node_id: str, side: PortSide) -> Port:
        with self._graph_lock:
            return copy.deepcopy(self._graph.add_port(node_id, side))

    def remove_port(self, port_id: str) -> bool:
        with self._graph_lock:
            return self._graph.remove_port(port_id)

    def remove_node(self, node_id: str) -> bool:
        with self._graph_lock:
            return self._graph.remove_node(node_id)

    def create_edge(self, port_a: str, port_b: str) -> Optional[Edge]:
        """
        Connect two ports of the current graph.

        Returns:
            Edge | None: The created edge, or None if the connection was
                rejected (same side or duplicate pair).

        Raises:
            ValueError: If either port does not exist.
        """
        with self._graph_lock:
            for port_id in (port_a, port_b):
                if self._graph.get_port(port_id) is None:
                    raise ValueError(f"Port '{port_id}' not found")
            return copy.deepcopy(self._graph.create_edge(port_a, port_b))

    def remove_edge(self, edge_id: str) -> bool:
        with self._graph_lock:
            return self._graph.remove_edge(edge_id)

    def move_node(self, node_id: str, x: int, y: int) -> Node:
        with self._graph_lock:
            return copy.deepcopy(self._graph.move_node(node_id, x, y))

    def clear(self) -> None:
        with self._graph_lock:
            self._graph.clear()
        logger.debug("Editor graph cleared")

    # ------------------------------------------------------------------
    # Pipeline descriptions
    # ------------------------------------------------------------------

    def load_description(self, pipeline_description: str) -> Graph:
        """
        Replace the current graph with one parsed from a pipeline description.

        Parsing happens before the lock is taken; the swap itself is atomic.

        Returns:
            Graph: Snapshot copy of the new graph.
        """
        graph = Graph.from_pipeline_description(pipeline_description)
        with self._graph_lock:
            self._graph = graph
            snapshot = copy.deepcopy(graph)
        logger.info(
            f"Loaded graph with {len(snapshot.nodes)} nodes and "
            f"{len(snapshot.edges)} edges"
        )
        return snapshot

    def export_description(self, internal_connections: Optional[str] = None) -> str:
        with self._graph_lock:
            return self._graph.to_pipeline_description(internal_connections)

    def load_file(self, path: str | Path) -> Graph:
        """
        Read a pipeline description file and replace the current graph.

        Raises:
            OSError: If the file cannot be read. The current graph is kept.
            UnicodeDecodeError: If the file is not valid UTF-8. The current
                graph is kept.
        """
        text = Path(path).read_text(encoding="utf-8")
        logger.debug(f"Read pipeline description from {path}")
        return self.load_description(text)

    def save_file(
        self, path: str | Path, internal_connections: Optional[str] = None
    ) -> None:
        """
        Write the current graph as a pipeline description file.

        Raises:
            OSError: If the file cannot be written.
        """
        description = self.export_description(internal_connections)
        Path(path).write_text(description, encoding="utf-8")
        logger.debug(f"Wrote pipeline description to {path}")
