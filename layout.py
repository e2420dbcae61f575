"""
Grid layout and geometry helpers for editor graphs.

Geometry is display-only: it is never written to a pipeline description.
The parser uses these helpers to place nodes it reconstructs from text, and
the graph model uses them to keep node heights in sync with port counts.
"""

import logging
import os

logger = logging.getLogger(__name__)

# Column order of the known node types. Any other type goes to the column
# right after the last known one.
TYPE_COLUMNS: dict[str, int] = {
    "vcap": 0,
    "vproc": 1,
    "venc": 2,
    "vdec": 3,
    "vout": 4,
}
UNKNOWN_TYPE_COLUMN = len(TYPE_COLUMNS)

NODE_WIDTH = 160
NODE_MIN_HEIGHT = 80
# Ports start below the title bar and are stacked with a fixed spacing.
PORT_TOP_OFFSET = 30
PORT_SPACING = 20
PORT_BOTTOM_MARGIN = 10

LAYOUT_ORIGIN_X = int(os.environ.get("LAYOUT_ORIGIN_X", "100"))
LAYOUT_ORIGIN_Y = int(os.environ.get("LAYOUT_ORIGIN_Y", "100"))
LAYOUT_COLUMN_SPACING = int(os.environ.get("LAYOUT_COLUMN_SPACING", "240"))
LAYOUT_ROW_SPACING = int(os.environ.get("LAYOUT_ROW_SPACING", "140"))


def type_column(node_type: str) -> int:
    """Return the layout column for a node type (unknown types are rightmost)."""
    return TYPE_COLUMNS.get(node_type, UNKNOWN_TYPE_COLUMN)


def node_height(input_count: int, output_count: int) -> int:
    """
    Compute the height of a node from its port counts.

    Args:
        input_count: Number of input (left side) ports.
        output_count: Number of output (right side) ports.

    Returns:
        int: NODE_MIN_HEIGHT, or the height needed to fit the longer port
            column with PORT_SPACING between ports, whichever is larger.
    """
    ports = max(input_count, output_count)
    needed = PORT_TOP_OFFSET + ports * PORT_SPACING + PORT_BOTTOM_MARGIN
    return max(NODE_MIN_HEIGHT, needed)


def grid_position(node_type: str, index: int) -> tuple[int, int]:
    """
    Return the top-left corner of a node placed on the type/index grid.

    The column is fixed per type and the row is the node's index among
    nodes of the same type.
    """
    x = LAYOUT_ORIGIN_X + type_column(node_type) * LAYOUT_COLUMN_SPACING
    y = LAYOUT_ORIGIN_Y + index * LAYOUT_ROW_SPACING
    logger.debug(f"Grid position for {node_type}@{index}: ({x}, {y})")
    return x, y


def port_position(
    x: int, y: int, width: int, is_input: bool, index: int
) -> tuple[int, int]:
    """
    Return the on-screen anchor of a port.

    Inputs sit on the left edge of the node, outputs on the right edge,
    stacked downwards from below the title bar.
    """
    port_x = x if is_input else x + width
    port_y = y + PORT_TOP_OFFSET + index * PORT_SPACING
    return port_x, port_y
