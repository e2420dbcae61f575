import logging
import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Iterator, Optional

import layout

logger = logging.getLogger(__name__)

# Node types may not contain characters that carry meaning in a pipeline
# description title ("type@index : {").
_NODE_TYPE_RE = re.compile(r"[^\s@:{}]+")


class NodeType(str, Enum):
    """
    Known pipeline stage types.

    The declaration order is the canonical order used for sorting nodes in
    pipeline descriptions and for layout columns.
    """

    CAPTURE = "vcap"
    PROCESS = "vproc"
    ENCODER = "venc"
    DECODER = "vdec"
    OUTPUT = "vout"


NODE_TYPE_ORDER: list[str] = [t.value for t in NodeType]


class PortSide(str, Enum):
    """Side of a node a port lives on: LEFT holds inputs, RIGHT holds outputs."""

    LEFT = "left"
    RIGHT = "right"


@dataclass
class Node:
    """
    Single pipeline stage in an editor graph.

    Attributes:
        id: Node identifier, unique within a single graph.
        type: Stage type, normally one of NodeType values. Other types are
            accepted (for example from hand-edited descriptions) and sort
            after the known ones.
        index: Dense 0-based rank among nodes of the same type, in creation
            order. Kept up to date by Graph when nodes are removed.
        inputs: Ordered ids of the input (left side) ports.
        outputs: Ordered ids of the output (right side) ports.
        x, y, width, height: Display geometry, never serialized to text.
    """

    id: str
    type: str
    index: int
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    x: int = 0
    y: int = 0
    width: int = layout.NODE_WIDTH
    height: int = layout.NODE_MIN_HEIGHT

    @property
    def title(self) -> str:
        return f"{self.type}@{self.index}"


@dataclass
class Port:
    id: str
    node_id: str
    side: PortSide


@dataclass
class Edge:
    """
    Connection between two ports of opposite sides.

    from_port is always the output (right side) port and to_port the input
    (left side) port, regardless of the order the ports were picked in.
    """

    id: str
    from_port: str
    to_port: str


def type_index_sort_key(node_type: str, index: int) -> tuple[int, str, int]:
    """
    Canonical ordering key: known types in NodeType order, then unknown
    types by name, then index.
    """
    if node_type in NODE_TYPE_ORDER:
        return NODE_TYPE_ORDER.index(node_type), "", index
    return len(NODE_TYPE_ORDER), node_type, index


def node_sort_key(node: Node) -> tuple[int, str, int]:
    return type_index_sort_key(node.type, node.index)


def _check_node_type(node_type: str) -> None:
    if not isinstance(node_type, str) or not _NODE_TYPE_RE.fullmatch(node_type):
        raise ValueError(f"Invalid node type: '{node_type}'")


class Graph:
    """
    In-memory editor graph of nodes, ports and edges.

    All state changes go through the mutation methods, which keep these
    invariants:
      * every node's index is its dense rank among nodes of the same type,
      * no edge joins two ports of the same side,
      * at most one edge exists per unordered pair of ports,
      * removing a port removes its edges; removing a node removes its ports.

    Ids are allocated from counters owned by this instance, so separate
    graphs never interfere with each other.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._ports: dict[str, Port] = {}
        self._edges: dict[str, Edge] = {}
        # Last id number handed out, per id prefix.
        self._id_counters = {"node": 0, "port": 0, "edge": 0}

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> list[Node]:
        """Nodes in creation order."""
        return list(self._nodes.values())

    @property
    def ports(self) -> list[Port]:
        return list(self._ports.values())

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def get_port(self, port_id: str) -> Optional[Port]:
        return self._ports.get(port_id)

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        return self._edges.get(edge_id)

    def find_node_by_title(self, title: str) -> Optional[Node]:
        for node in self._nodes.values():
            if node.title == title:
                return node
        return None

    def node_ports(self, node_id: str, side: PortSide) -> list[Port]:
        """Return the live input (LEFT) or output (RIGHT) ports of a node, in order."""
        node = self._require_node(node_id)
        port_ids = node.inputs if side == PortSide.LEFT else node.outputs
        return [self._ports[port_id] for port_id in port_ids]

    def port_index(self, port_id: str) -> int:
        """
        Return the position of a port within its node's input or output list.

        Raises:
            ValueError: If the port does not exist.
        """
        port = self._ports.get(port_id)
        if port is None:
            raise ValueError(f"Port '{port_id}' not found")
        node = self._nodes[port.node_id]
        port_ids = node.inputs if port.side == PortSide.LEFT else node.outputs
        return port_ids.index(port_id)

    def port_position(self, port_id: str) -> tuple[int, int]:
        """Return the on-screen anchor of a port, derived from its node geometry."""
        port = self._ports.get(port_id)
        if port is None:
            raise ValueError(f"Port '{port_id}' not found")
        node = self._nodes[port.node_id]
        return layout.port_position(
            node.x,
            node.y,
            node.width,
            port.side == PortSide.LEFT,
            self.port_index(port_id),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_node(self, node_type: str, x: int = 0, y: int = 0) -> Node:
        """
        Append a node of the given type.

        The node's index is the number of nodes of that type already in the
        graph, so titles stay dense without a separate per-type counter.

        Raises:
            ValueError: If the type is empty or contains whitespace, '@',
                ':' or braces.
        """
        if isinstance(node_type, NodeType):
            node_type = node_type.value
        _check_node_type(node_type)

        index = sum(1 for n in self._nodes.values() if n.type == node_type)
        node = Node(
            id=self._new_id("node", self._nodes),
            type=node_type,
            index=index,
            x=x,
            y=y,
            height=layout.node_height(0, 0),
        )
        self._nodes[node.id] = node
        logger.debug(f"Added node {node.id} ({node.title})")
        return node

    def add_port(self, node_id: str, side: PortSide) -> Port:
        """
        Append a port to the input (LEFT) or output (RIGHT) side of a node.

        Raises:
            ValueError: If the node does not exist or side is not a PortSide.
        """
        node = self._require_node(node_id)
        side = PortSide(side)

        port = Port(
            id=self._new_id("port", self._ports),
            node_id=node.id,
            side=side,
        )
        self._ports[port.id] = port
        if side == PortSide.LEFT:
            node.inputs.append(port.id)
        else:
            node.outputs.append(port.id)
        self._refresh_height(node)
        logger.debug(f"Added {side.value} port {port.id} to {node.title}")
        return port

    def remove_port(self, port_id: str) -> bool:
        """Remove a port and every edge touching it. Unknown ids are a no-op."""
        port = self._ports.pop(port_id, None)
        if port is None:
            return False

        node = self._nodes[port.node_id]
        if port.side == PortSide.LEFT:
            node.inputs.remove(port_id)
        else:
            node.outputs.remove(port_id)

        for edge in list(self._edges.values()):
            if port_id in (edge.from_port, edge.to_port):
                del self._edges[edge.id]
                logger.debug(f"Removed edge {edge.id} with port {port_id}")

        self._refresh_height(node)
        logger.debug(f"Removed port {port_id} from {node.title}")
        return True

    def remove_node(self, node_id: str) -> bool:
        """
        Remove a node with its ports and their edges.

        Remaining nodes of the same type with a higher index move down by one
        so indices stay dense; nodes of other types keep their titles.
        """
        node = self._nodes.get(node_id)
        if node is None:
            return False

        for port_id in node.inputs + node.outputs:
            self.remove_port(port_id)
        del self._nodes[node_id]
        logger.debug(f"Removed node {node_id} ({node.title})")

        for other in self._nodes.values():
            if other.type == node.type and other.index > node.index:
                other.index -= 1
                logger.debug(f"Renumbered node {other.id} to {other.title}")
        return True

    def create_edge(self, port_a: str, port_b: str) -> Optional[Edge]:
        """
        Connect two ports.

        The ports may be given in either order; the stored edge always runs
        from the output (RIGHT) port to the input (LEFT) port.

        Returns:
            Edge | None: The new edge, or None when either port is unknown,
                both ports are on the same side, or the pair is already
                connected. In those cases the graph is left unchanged.
        """
        try:
            output, input_ = self._connection_ports(port_a, port_b)
        except ValueError as e:
            logger.debug(f"Edge rejected: {e}")
            return None

        edge = Edge(
            id=self._new_id("edge", self._edges),
            from_port=output.id,
            to_port=input_.id,
        )
        self._edges[edge.id] = edge
        logger.debug(f"Added edge {edge.id}: {edge.from_port} -> {edge.to_port}")
        return edge

    def remove_edge(self, edge_id: str) -> bool:
        return self._edges.pop(edge_id, None) is not None

    def move_node(self, node_id: str, x: int, y: int) -> Node:
        """Change node geometry only; nothing else in the graph is affected."""
        node = self._require_node(node_id)
        node.x = x
        node.y = y
        return node

    def clear(self) -> None:
        self._nodes.clear()
        self._ports.clear()
        self._edges.clear()

    # ------------------------------------------------------------------
    # Edge classification
    # ------------------------------------------------------------------

    def is_internal_edge(self, edge: Edge) -> bool:
        """True when both ports of the edge belong to the same node."""
        return (
            self._ports[edge.from_port].node_id == self._ports[edge.to_port].node_id
        )

    def internal_edges(self, node_id: str) -> Iterator[Edge]:
        for edge in self._edges.values():
            if (
                self.is_internal_edge(edge)
                and self._ports[edge.from_port].node_id == node_id
            ):
                yield edge

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    @staticmethod
    def from_dict(data: dict) -> "Graph":
        """
        Create a Graph from a plain dictionary (for example deserialized JSON).

        Args:
            data: Dictionary with 'nodes', 'ports' and 'edges' keys following
                the structure produced by to_dict().

        Returns:
            Graph: New Graph with the given ids. Node titles are recomputed
                from type and index; ports are attached in the order listed
                in each node's 'inputs'/'outputs'. Edges are stored
                output -> input whatever order their ports are given in.

        Raises:
            ValueError: If a node has a malformed type or lists a port that
                is missing or owned by another node, or an edge references
                an unknown port, joins two ports of the same side or repeats
                an already connected pair.
        """
        graph = Graph()
        ports_by_id = {
            port["id"]: Port(
                id=port["id"], node_id=port["node_id"], side=PortSide(port["side"])
            )
            for port in data.get("ports", [])
        }

        for raw in data.get("nodes", []):
            _check_node_type(raw["type"])
            node = Node(
                id=raw["id"],
                type=raw["type"],
                index=raw["index"],
                inputs=list(raw.get("inputs", [])),
                outputs=list(raw.get("outputs", [])),
                x=raw.get("x", 0),
                y=raw.get("y", 0),
                width=raw.get("width", layout.NODE_WIDTH),
                height=raw.get("height", layout.NODE_MIN_HEIGHT),
            )
            for side, port_ids in (
                (PortSide.LEFT, node.inputs),
                (PortSide.RIGHT, node.outputs),
            ):
                for port_id in port_ids:
                    port = ports_by_id.get(port_id)
                    if port is None or port.node_id != node.id or port.side != side:
                        raise ValueError(
                            f"Node '{node.id}' lists invalid {side.value} port '{port_id}'"
                        )
                    graph._ports[port_id] = port
            graph._nodes[node.id] = node

        for raw in data.get("edges", []):
            try:
                output, input_ = graph._connection_ports(
                    raw["from_port"], raw["to_port"]
                )
            except ValueError as e:
                raise ValueError(f"Edge '{raw['id']}': {e}") from e
            edge = Edge(id=raw["id"], from_port=output.id, to_port=input_.id)
            graph._edges[edge.id] = edge

        graph._renumber_all()
        return graph

    def to_dict(self) -> dict[str, list[dict]]:
        """
        Convert the Graph into a plain dictionary (for example for JSON).

        Node entries carry their derived title next to the stored fields.
        """
        nodes = []
        for node in self._nodes.values():
            entry = asdict(node)
            entry["title"] = node.title
            nodes.append(entry)
        ports = [
            {"id": p.id, "node_id": p.node_id, "side": p.side.value}
            for p in self._ports.values()
        ]
        edges = [asdict(e) for e in self._edges.values()]
        return {"nodes": nodes, "ports": ports, "edges": edges}

    @staticmethod
    def from_pipeline_description(pipeline_description: str) -> "Graph":
        """Parse a pipeline description into a new Graph."""
        from description_parser import parse

        return parse(pipeline_description)

    def to_pipeline_description(self, internal_connections: Optional[str] = None) -> str:
        """Serialize the Graph into a pipeline description."""
        from description_serializer import serialize

        return serialize(self, internal_connections)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_node(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise ValueError(f"Node '{node_id}' not found")
        return node

    def _connection_ports(self, port_a: str, port_b: str) -> tuple[Port, Port]:
        """
        Check that two ports may be connected and return them as
        (output, input).

        Raises:
            ValueError: If a port is unknown, both ports are on the same
                side, or the pair is already connected.
        """
        a = self._ports.get(port_a)
        b = self._ports.get(port_b)
        if a is None or b is None:
            raise ValueError(f"unknown port in ({port_a}, {port_b})")
        if a.side == b.side:
            raise ValueError(f"{port_a} and {port_b} are both {a.side.value}")
        if self._find_edge(port_a, port_b) is not None:
            raise ValueError(f"{port_a} and {port_b} already connected")
        return (a, b) if a.side == PortSide.RIGHT else (b, a)

    def _find_edge(self, port_a: str, port_b: str) -> Optional[Edge]:
        pair = {port_a, port_b}
        for edge in self._edges.values():
            if {edge.from_port, edge.to_port} == pair:
                return edge
        return None

    def _refresh_height(self, node: Node) -> None:
        node.height = layout.node_height(len(node.inputs), len(node.outputs))

    def _renumber_all(self) -> None:
        """Reassign dense per-type indices, keeping the existing relative order."""
        by_type: dict[str, list[Node]] = {}
        for node in self._nodes.values():
            by_type.setdefault(node.type, []).append(node)
        for nodes in by_type.values():
            for rank, node in enumerate(sorted(nodes, key=lambda n: n.index)):
                node.index = rank

    def _new_id(self, prefix: str, existing: dict) -> str:
        while True:
            self._id_counters[prefix] += 1
            candidate = f"{prefix}_{self._id_counters[prefix]}"
            if candidate not in existing:
                return candidate
