"""
Pipeline description -> Graph parser.

The parser is line oriented and tolerant: every line is classified on its
own, and anything it does not understand is logged and skipped instead of
failing the whole document. Port counts are never written explicitly in a
description, so they are inferred from the highest indices referenced by
internal connection lines and bind lines.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Iterator, Optional

import layout
from graph import Graph, Node, PortSide, type_index_sort_key

logger = logging.getLogger(__name__)

# Characters allowed in a title ("type@index") and other identifiers.
_IDENT = r"[^\s:{}]+"

_LINE_SPECIFICATION = [
    # "bind :" optionally followed by the opening brace
    ("BIND_HEADER", r"bind\s*:\s*(?P<bind_open>\{)?"),
    # "<title> :" optionally followed by the opening brace
    ("NODE_HEADER", rf"(?P<title>{_IDENT})\s*:\s*(?P<node_open>\{{)?"),
    # Lone opening brace (completes a header from the previous line)
    ("OPEN", r"\{"),
    # Closing brace, with the separator comma used between blocks
    ("CLOSE", r"\}\s*,?"),
    # "<src>:<idx> -> <dst>:<idx>" inside the bind block
    (
        "BIND",
        rf"(?P<src>{_IDENT})\s*:\s*(?P<src_idx>[^\s:]+?)\s*->\s*"
        rf"(?P<dst>{_IDENT})\s*:\s*(?P<dst_idx>[^\s:]+)",
    ),
    # "<in> -> <out>" inside a node block
    ("INTERNAL", r"(?P<in_idx>[^\s:]+?)\s*->\s*(?P<out_idx>[^\s:]+)"),
    # Blank line
    ("SKIP", r""),
    # Anything else
    ("MISMATCH", r".*"),
]

_LINE_REGEX = re.compile(
    "|".join(f"(?P<{name}>{pattern})" for name, pattern in _LINE_SPECIFICATION),
    re.DOTALL,
)

# Block opened and closed on one line: "vproc@0 : { 0 -> 0, 1 -> 1 },"
_INLINE_BLOCK_REGEX = re.compile(r"(?P<head>[^{}]*\{)\s*(?P<body>[^{}]*?)\s*\}\s*,?")

_INDEX_REGEX = re.compile(r"[0-9]+")

# Port indices at or above this limit are rejected, so one line cannot make
# the parser allocate an arbitrary number of ports.
MAX_PORTS_PER_SIDE = int(os.environ.get("MAX_PORTS_PER_SIDE", "256"))


@dataclass
class _NodeInfo:
    """Node declared by a block, with port counts inferred so far."""

    title: str
    type: str
    index: int
    input_count: int = 0
    output_count: int = 0


@dataclass
class _InternalRecord:
    title: str
    in_idx: int
    out_idx: int


@dataclass
class _BindRecord:
    src: str
    src_idx: int
    dst: str
    dst_idx: int


def parse(pipeline_description: str) -> Graph:
    """
    Parse a pipeline description into a new Graph.

    Args:
        pipeline_description: Text in the pipeline description format,
            possibly hand-edited.

    Returns:
        Graph: A complete new graph. Empty or unparseable text gives an
            empty graph.

    High-level algorithm:
      1. Scan lines once, tracking whether we are inside a node block or
         the bind block, and collect node declarations, internal connection
         records and bind records.
      2. Raise inferred port counts from bind records of declared nodes.
      3. Create nodes in canonical (type, index) order, with exactly the
         inferred number of ports, placed on the type/index grid.
      4. Turn records into edges; records pointing at unknown titles or
         ports are dropped.

    Node indices in the result are dense per type: a document declaring
    vproc@0 and vproc@2 produces vproc@0 and vproc@1, with bind lines
    following the renamed nodes.
    """
    infos, internals, binds = _scan(pipeline_description or "")

    for bind in binds:
        if bind.src in infos:
            src = infos[bind.src]
            src.output_count = max(src.output_count, bind.src_idx + 1)
        if bind.dst in infos:
            dst = infos[bind.dst]
            dst.input_count = max(dst.input_count, bind.dst_idx + 1)

    graph = Graph()
    created: dict[str, Node] = {}
    ordered = sorted(
        infos.values(), key=lambda info: type_index_sort_key(info.type, info.index)
    )
    for info in ordered:
        node = graph.add_node(info.type)
        x, y = layout.grid_position(node.type, node.index)
        graph.move_node(node.id, x, y)
        for _ in range(info.input_count):
            graph.add_port(node.id, PortSide.LEFT)
        for _ in range(info.output_count):
            graph.add_port(node.id, PortSide.RIGHT)
        created[info.title] = node

    for record in internals:
        node = created[record.title]
        output = _port_at(node, PortSide.RIGHT, record.out_idx)
        input_ = _port_at(node, PortSide.LEFT, record.in_idx)
        if output is None or input_ is None:
            logger.debug(f"Dropping internal connection {record}: port not allocated")
            continue
        graph.create_edge(output, input_)

    for record in binds:
        src = created.get(record.src)
        dst = created.get(record.dst)
        output = _port_at(src, PortSide.RIGHT, record.src_idx) if src else None
        input_ = _port_at(dst, PortSide.LEFT, record.dst_idx) if dst else None
        if output is None or input_ is None:
            logger.debug(f"Dropping bind {record}: unknown node or port")
            continue
        graph.create_edge(output, input_)

    logger.debug(
        f"Parsed {len(graph.nodes)} nodes, {len(graph.ports)} ports, "
        f"{len(graph.edges)} edges"
    )
    return graph


def _scan(
    text: str,
) -> tuple[dict[str, _NodeInfo], list[_InternalRecord], list[_BindRecord]]:
    infos: dict[str, _NodeInfo] = {}
    internals: list[_InternalRecord] = []
    binds: list[_BindRecord] = []

    # Block we are inside of: None, "bind" or a node title.
    block: Optional[str] = None
    # Header seen without its opening brace yet.
    pending: Optional[str] = None

    for line_no, line in _logical_lines(text):
        mo = _LINE_REGEX.fullmatch(line)
        kind = mo.lastgroup

        if pending is not None:
            if kind == "OPEN":
                block, pending = pending, None
                continue
            pending = None

        match kind:
            case "BIND_HEADER":
                if mo.group("bind_open"):
                    block = "bind"
                else:
                    pending = "bind"
            case "NODE_HEADER":
                title = mo.group("title")
                info = _node_info(title)
                if info is None:
                    logger.debug(f"Line {line_no}: skipping invalid title '{title}'")
                    continue
                infos.setdefault(title, info)
                if mo.group("node_open"):
                    block = title
                else:
                    pending = title
            case "CLOSE":
                block = None
            case "BIND":
                if block != "bind":
                    logger.debug(f"Line {line_no}: bind line outside bind block")
                    continue
                src_idx = _parse_port_index(mo.group("src_idx"))
                dst_idx = _parse_port_index(mo.group("dst_idx"))
                if src_idx is None or dst_idx is None:
                    logger.debug(f"Line {line_no}: invalid bind index in '{line}'")
                    continue
                binds.append(
                    _BindRecord(mo.group("src"), src_idx, mo.group("dst"), dst_idx)
                )
            case "INTERNAL":
                if block is None or block == "bind":
                    logger.debug(f"Line {line_no}: connection outside node block")
                    continue
                in_idx = _parse_port_index(mo.group("in_idx"))
                out_idx = _parse_port_index(mo.group("out_idx"))
                if in_idx is None or out_idx is None:
                    logger.debug(f"Line {line_no}: invalid index in '{line}'")
                    continue
                info = infos[block]
                info.input_count = max(info.input_count, in_idx + 1)
                info.output_count = max(info.output_count, out_idx + 1)
                internals.append(_InternalRecord(block, in_idx, out_idx))
            case "MISMATCH":
                logger.debug(f"Line {line_no}: ignoring unrecognized '{line}'")
            # OPEN without a pending header and SKIP are ignored.

    return infos, internals, binds


def _node_info(title: str) -> Optional[_NodeInfo]:
    node_type, sep, raw_index = title.partition("@")
    index = _parse_index(raw_index)
    if not sep or not node_type or index is None:
        return None
    return _NodeInfo(title=title, type=node_type, index=index)


def _logical_lines(text: str) -> Iterator[tuple[int, str]]:
    """
    Yield (line number, line) pairs with comments and surrounding whitespace
    removed.

    A block written on one line is expanded into its header, one line per
    comma-separated entry of its body, and the closing brace, so the scanner
    sees it exactly like the multi-line form.
    """
    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.split("//", 1)[0].strip()
        mo = _INLINE_BLOCK_REGEX.fullmatch(line)
        if mo is None:
            yield line_no, line
            continue
        yield line_no, mo.group("head").strip()
        for entry in mo.group("body").split(","):
            yield line_no, entry.strip()
        yield line_no, "}"


def _parse_index(value: str) -> Optional[int]:
    """Return a non-negative integer index, or None when the field is malformed."""
    if not _INDEX_REGEX.fullmatch(value):
        return None
    return int(value)


def _parse_port_index(value: str) -> Optional[int]:
    index = _parse_index(value)
    if index is not None and index >= MAX_PORTS_PER_SIDE:
        logger.debug(f"Port index {index} exceeds limit {MAX_PORTS_PER_SIDE}")
        return None
    return index


def _port_at(node: Node, side: PortSide, index: int) -> Optional[str]:
    port_ids = node.inputs if side == PortSide.LEFT else node.outputs
    return port_ids[index] if index < len(port_ids) else None
