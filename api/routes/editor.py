import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

import api.api_schemas as schemas
from description_serializer import InternalConnections
from managers.graph_manager import GraphManager

router = APIRouter()
logger = logging.getLogger("api.routes.editor")


def _message(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        content=schemas.MessageResponse(message=message).model_dump(),
        status_code=status_code,
    )


@router.get("", operation_id="get_graph", response_model=schemas.EditorGraph)
def get_graph():
    """
    Return the graph of the current editor session.

    Returns:
        200 OK: EditorGraph with nodes (including their derived titles),
            ports and edges.
    """
    graph = GraphManager().get_graph()
    return schemas.EditorGraph.model_validate(graph.to_dict())


@router.delete(
    "",
    operation_id="clear_graph",
    responses={200: {"description": "Graph cleared", "model": schemas.MessageResponse}},
)
def clear_graph():
    """Remove every node, port and edge from the current editor session."""
    GraphManager().clear()
    return schemas.MessageResponse(message="Graph cleared")


@router.get(
    "/description",
    operation_id="export_description",
    response_model=schemas.PipelineDescription,
)
def export_description(internal_connections: Optional[InternalConnections] = None):
    """
    Serialize the current graph into a pipeline description.

    Query parameters:
        internal_connections: "derived" (default) re-derives pass-through
            lines from port counts; "stored" writes the stored internal edges.

    Successful response example (200):
        .. code-block:: json

            {
              "pipeline_description": "{\\nvcap@0 : {\\n},\\nbind : {\\n}\\n}"
            }
    """
    description = GraphManager().export_description(
        internal_connections.value if internal_connections else None
    )
    return schemas.PipelineDescription(pipeline_description=description)


@router.put(
    "/description",
    operation_id="import_description",
    responses={
        200: {"description": "Graph replaced", "model": schemas.EditorGraph},
        500: {"description": "Internal server error", "model": schemas.MessageResponse},
    },
)
def import_description(body: schemas.PipelineDescription):
    """
    Replace the current graph with one parsed from a pipeline description.

    The previous graph is discarded completely. Lines the parser does not
    understand are skipped, so the request does not fail on malformed text.
    """
    try:
        graph = GraphManager().load_description(body.pipeline_description)
        return schemas.EditorGraph.model_validate(graph.to_dict())
    except Exception:
        logger.error("Failed to import pipeline description", exc_info=True)
        return _message("Unexpected error while importing pipeline description", 500)


@router.post(
    "/nodes",
    operation_id="add_node",
    status_code=201,
    responses={
        201: {"description": "Node created", "model": schemas.Node},
        400: {"description": "Invalid node", "model": schemas.MessageResponse},
    },
)
def add_node(body: schemas.NodeCreate):
    """
    Add a node of the given type.

    The new node's title is "type@N" where N is the number of nodes of that
    type already in the graph.
    """
    try:
        node = GraphManager().add_node(body.type.value, body.x, body.y)
    except ValueError as e:
        logger.warning("Cannot add node: %s", e)
        return _message(str(e), 400)
    return schemas.Node.model_validate(node)


@router.patch(
    "/nodes/{node_id}",
    operation_id="move_node",
    responses={
        200: {"description": "Node moved", "model": schemas.Node},
        404: {"description": "Node not found", "model": schemas.MessageResponse},
    },
)
def move_node(node_id: str, body: schemas.NodeMove):
    """Change the position of a node. The pipeline description is not affected."""
    try:
        node = GraphManager().move_node(node_id, body.x, body.y)
    except ValueError as e:
        logger.warning("Cannot move node %s: %s", node_id, e)
        return _message(str(e), 404)
    return schemas.Node.model_validate(node)


@router.delete(
    "/nodes/{node_id}",
    operation_id="delete_node",
    responses={
        200: {"description": "Node deleted", "model": schemas.MessageResponse},
        404: {"description": "Node not found", "model": schemas.MessageResponse},
    },
)
def delete_node(node_id: str):
    """
    Delete a node together with its ports and their edges.

    Remaining nodes of the same type with a higher index are renumbered so
    titles stay dense.
    """
    if not GraphManager().remove_node(node_id):
        logger.warning("Node %s not found for deletion", node_id)
        return _message(f"Node '{node_id}' not found", 404)
    return schemas.MessageResponse(message="Node deleted")


@router.post(
    "/nodes/{node_id}/ports",
    operation_id="add_port",
    status_code=201,
    responses={
        201: {"description": "Port created", "model": schemas.Port},
        404: {"description": "Node not found", "model": schemas.MessageResponse},
    },
)
def add_port(node_id: str, body: schemas.PortCreate):
    """Append an input ('left') or output ('right') port to a node."""
    try:
        port = GraphManager().add_port(node_id, body.side)
    except ValueError as e:
        logger.warning("Cannot add port to node %s: %s", node_id, e)
        return _message(str(e), 404)
    return schemas.Port.model_validate(port)


@router.delete(
    "/ports/{port_id}",
    operation_id="delete_port",
    responses={
        200: {"description": "Port deleted", "model": schemas.MessageResponse},
        404: {"description": "Port not found", "model": schemas.MessageResponse},
    },
)
def delete_port(port_id: str):
    """Delete a port and every edge connected to it."""
    if not GraphManager().remove_port(port_id):
        logger.warning("Port %s not found for deletion", port_id)
        return _message(f"Port '{port_id}' not found", 404)
    return schemas.MessageResponse(message="Port deleted")


@router.post(
    "/edges",
    operation_id="create_edge",
    status_code=201,
    responses={
        201: {"description": "Edge created", "model": schemas.Edge},
        404: {"description": "Port not found", "model": schemas.MessageResponse},
        409: {
            "description": "Ports are on the same side or already connected",
            "model": schemas.MessageResponse,
        },
    },
)
def create_edge(body: schemas.EdgeCreate):
    """
    Connect two ports.

    Failure conditions:
        * Unknown port → 404
        * Both ports on the same side, or the pair already connected → 409.
          The graph is left unchanged.
    """
    try:
        edge = GraphManager().create_edge(body.port_a, body.port_b)
    except ValueError as e:
        logger.warning("Cannot create edge: %s", e)
        return _message(str(e), 404)
    if edge is None:
        return _message(
            f"Ports '{body.port_a}' and '{body.port_b}' cannot be connected: "
            "same side or already connected",
            409,
        )
    return schemas.Edge.model_validate(edge)


@router.delete(
    "/edges/{edge_id}",
    operation_id="delete_edge",
    responses={
        200: {"description": "Edge deleted", "model": schemas.MessageResponse},
        404: {"description": "Edge not found", "model": schemas.MessageResponse},
    },
)
def delete_edge(edge_id: str):
    if not GraphManager().remove_edge(edge_id):
        logger.warning("Edge %s not found for deletion", edge_id)
        return _message(f"Edge '{edge_id}' not found", 404)
    return schemas.MessageResponse(message="Edge deleted")
