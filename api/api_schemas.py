from typing import List

from pydantic import BaseModel, ConfigDict, Field

from graph import NodeType, PortSide


class MessageResponse(BaseModel):
    """
    Generic message payload used as a simple response body.

    This model is used mainly for non-2xx responses to provide a plain
    English description of what happened (error or informational status).

    Attributes:
        message: Description of the error or status.

    Example:
        .. code-block:: json

            {
              "message": "Node node_7 not found"
            }
    """

    message: str = Field(
        ...,
        description="Human-readable error or status message.",
        examples=["Node 'node_7' not found", "Node deleted"],
    )


class Node(BaseModel):
    """
    Single node of the editor graph.

    Attributes:
        id: Node identifier, unique within the graph.
        type: Stage type (vcap, vproc, venc, vdec, vout, or a custom type
            read from a hand-edited description).
        index: Dense 0-based rank among nodes of the same type.
        title: Display and description identifier, "type@index".
        inputs: Ordered ids of input (left side) ports.
        outputs: Ordered ids of output (right side) ports.
        x, y, width, height: Display geometry.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., examples=["node_1"])
    type: str = Field(..., examples=["vproc"])
    index: int = Field(..., ge=0, examples=[0])
    title: str = Field(..., examples=["vproc@0"])
    inputs: List[str] = Field(default_factory=list)
    outputs: List[str] = Field(default_factory=list)
    x: int = 0
    y: int = 0
    width: int
    height: int


class Port(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., examples=["port_1"])
    node_id: str = Field(..., examples=["node_1"])
    side: PortSide


class Edge(BaseModel):
    """
    Connection between an output (from_port) and an input (to_port).
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., examples=["edge_1"])
    from_port: str = Field(..., description="Output (right side) port id.")
    to_port: str = Field(..., description="Input (left side) port id.")


class EditorGraph(BaseModel):
    """
    Request or response body containing a full editor graph.

    Attributes:
        nodes: Graph nodes in creation order.
        ports: All ports of all nodes.
        edges: Connections between ports.
    """

    nodes: List[Node] = Field(..., description="List of graph nodes.")
    ports: List[Port] = Field(..., description="List of node ports.")
    edges: List[Edge] = Field(..., description="List of port connections.")


class PipelineDescription(BaseModel):
    pipeline_description: str = Field(
        ...,
        description="Pipeline graph in the text description format.",
        examples=[
            "{\nvcap@0 : {\n},\nvproc@0 : {\n  0 -> 0\n},\n"
            "bind : {\n  vcap@0:0 -> vproc@0:0\n}\n}"
        ],
    )


class NodeCreate(BaseModel):
    type: NodeType
    x: int = 0
    y: int = 0


class NodeMove(BaseModel):
    x: int
    y: int


class PortCreate(BaseModel):
    side: PortSide = Field(
        ..., description="'left' adds an input port, 'right' an output port."
    )


class EdgeCreate(BaseModel):
    """
    Request body for connecting two ports.

    The ports may be given in either order; the stored edge always runs from
    the output port to the input port.
    """

    port_a: str
    port_b: str
