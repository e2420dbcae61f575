"""
Health endpoint for application monitoring.
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter()
logger = logging.getLogger("api.routes.health")


class HealthResponse(BaseModel):
    """
    Response model for health endpoint.

    Attributes:
        healthy: True while the service is able to answer requests.
    """

    healthy: bool


@router.get("/health", operation_id="get_health", response_model=HealthResponse)
def get_health() -> HealthResponse:
    """
    Health check endpoint for container healthchecks.

    Returns:
        200 OK: Health status response.

    Example response:
        .. code-block:: json

            {
              "healthy": true
            }
    """
    return HealthResponse(healthy=True)
