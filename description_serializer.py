"""
Graph -> pipeline description serializer.

Output layout:

    {
    vcap@0 : {
    },
    vproc@0 : {
      0 -> 0
    },
    bind : {
      vcap@0:0 -> vproc@0:0
    }
    }

Nodes appear in canonical (type, index) order and bind lines follow the same
order, so the text depends only on graph structure, never on creation order,
ids or geometry.
"""

import logging
import os
from enum import Enum
from typing import Optional

from graph import Edge, Graph, Node, PortSide, node_sort_key

logger = logging.getLogger(__name__)


class InternalConnections(str, Enum):
    """
    How same-node input -> output connections are written.

    Values:
        DERIVED: Re-derive "i -> min(i, outputs-1)" for every input from the
            port counts, ignoring stored internal edges.
        STORED: Write exactly the internal edges stored in the graph.
    """

    DERIVED = "derived"
    STORED = "stored"


INTERNAL_CONNECTIONS_MODE = os.environ.get(
    "INTERNAL_CONNECTIONS_MODE", InternalConnections.DERIVED.value
)


def serialize(graph: Graph, internal_connections: Optional[str] = None) -> str:
    """
    Convert a Graph into a pipeline description.

    Args:
        graph: Graph to serialize. It is not modified.
        internal_connections: "derived" or "stored"; defaults to the
            INTERNAL_CONNECTIONS_MODE environment setting.

    Returns:
        str: Newline-joined description without a trailing newline.

    Raises:
        ValueError: If internal_connections is not a known mode.
    """
    mode = InternalConnections(internal_connections or INTERNAL_CONNECTIONS_MODE)
    nodes = sorted(graph.nodes, key=node_sort_key)
    logger.debug(f"Serializing {len(nodes)} nodes ({mode.value} internal connections)")

    lines = ["{"]
    for node in nodes:
        lines.append(f"{node.title} : {{")
        if mode == InternalConnections.DERIVED:
            pairs = _derived_internal_pairs(node)
        else:
            pairs = _stored_internal_pairs(graph, node)
        lines.extend(f"  {in_idx} -> {out_idx}" for in_idx, out_idx in pairs)
        lines.append("},")

    order = {node.id: position for position, node in enumerate(nodes)}
    binds = []
    for edge in graph.edges:
        bind = _bind_line(graph, edge, order)
        if bind is not None:
            binds.append(bind)

    lines.append("bind : {")
    lines.extend(f"  {text}" for _, text in sorted(binds))
    lines.append("}")
    lines.append("}")

    description = "\n".join(lines)
    logger.debug(f"Generated pipeline description:\n{description}")
    return description


def _derived_internal_pairs(node: Node) -> list[tuple[int, int]]:
    # Only nodes that have both sides get pass-through lines.
    if not node.inputs or not node.outputs:
        return []
    last_output = len(node.outputs) - 1
    return [(i, min(i, last_output)) for i in range(len(node.inputs))]


def _stored_internal_pairs(graph: Graph, node: Node) -> list[tuple[int, int]]:
    pairs = {
        (graph.port_index(edge.to_port), graph.port_index(edge.from_port))
        for edge in graph.internal_edges(node.id)
    }
    return sorted(pairs)


def _bind_line(
    graph: Graph, edge: Edge, order: dict[str, int]
) -> Optional[tuple[tuple[int, int, int, int], str]]:
    """
    Render one cross-node edge as "src:out -> dst:in" with a sort key.

    Returns None for same-node edges and for edges that do not join one
    output and one input.
    """
    ports = [graph.get_port(edge.from_port), graph.get_port(edge.to_port)]
    outputs = [p for p in ports if p is not None and p.side == PortSide.RIGHT]
    inputs = [p for p in ports if p is not None and p.side == PortSide.LEFT]
    if len(outputs) != 1 or len(inputs) != 1:
        logger.debug(f"Skipping edge {edge.id}: not one output and one input")
        return None

    src_port, dst_port = outputs[0], inputs[0]
    if src_port.node_id == dst_port.node_id:
        return None

    src = graph.get_node(src_port.node_id)
    dst = graph.get_node(dst_port.node_id)
    src_idx = graph.port_index(src_port.id)
    dst_idx = graph.port_index(dst_port.id)
    key = (order[src.id], src_idx, order[dst.id], dst_idx)
    return key, f"{src.title}:{src_idx} -> {dst.title}:{dst_idx}"
