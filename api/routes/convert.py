import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.api_schemas import EditorGraph, MessageResponse, PipelineDescription
from description_serializer import InternalConnections
from graph import Graph

router = APIRouter()
logger = logging.getLogger("api.routes.convert")


@router.post(
    "/to-graph",
    operation_id="to_graph",
    summary="Convert pipeline description to editor graph",
    responses={
        200: {"description": "Conversion successful", "model": EditorGraph},
        500: {"description": "Internal server error", "model": MessageResponse},
    },
)
def to_graph(request: PipelineDescription):
    """
    Convert a pipeline description into an editor graph without touching the
    current editor session.

    The parser skips lines it does not understand, so any text converts; an
    empty or unparseable description gives an empty graph.

    Request example:
        .. code-block:: json

            {
              "pipeline_description": "{\\nvcap@0 : {\\n},\\nbind : {\\n}\\n}"
            }

    Successful response example (200):
        .. code-block:: json

            {
              "nodes": [
                {"id": "node_1", "type": "vcap", "index": 0, "title": "vcap@0",
                 "inputs": [], "outputs": [], "x": 100, "y": 100,
                 "width": 160, "height": 80}
              ],
              "ports": [],
              "edges": []
            }
    """
    try:
        graph = Graph.from_pipeline_description(request.pipeline_description)
        return EditorGraph.model_validate(graph.to_dict())
    except Exception:
        logger.error("Unexpected error while converting description", exc_info=True)
        return JSONResponse(
            content=MessageResponse(
                message="Unexpected error while converting pipeline description"
            ).model_dump(),
            status_code=500,
        )


@router.post(
    "/to-description",
    operation_id="to_description",
    summary="Convert editor graph to pipeline description",
    responses={
        200: {"description": "Conversion successful", "model": PipelineDescription},
        400: {"description": "Inconsistent graph", "model": MessageResponse},
        500: {"description": "Internal server error", "model": MessageResponse},
    },
)
def to_description(
    request: EditorGraph, internal_connections: Optional[InternalConnections] = None
):
    """
    Convert an editor graph into a pipeline description.

    Args:
        request: Full graph (nodes, ports, edges).
        internal_connections: Optional "derived" or "stored" mode for the
            pass-through lines inside node blocks.

    Failure cases:
        * 400 – nodes list ports that do not exist or belong to other nodes,
          or edges reference unknown ports.
        * 500 – unexpected internal error.
    """
    try:
        graph = Graph.from_dict(request.model_dump())
        description = graph.to_pipeline_description(
            internal_connections.value if internal_connections else None
        )
        return PipelineDescription(pipeline_description=description)
    except ValueError as e:
        logger.error("Invalid graph received: %s", e)
        return JSONResponse(
            content=MessageResponse(message=f"Invalid graph: {str(e)}").model_dump(),
            status_code=400,
        )
    except Exception:
        logger.error("Unexpected error while converting graph", exc_info=True)
        return JSONResponse(
            content=MessageResponse(
                message="Unexpected error while converting graph"
            ).model_dump(),
            status_code=500,
        )
