"""
Health check endpoint.
"""

from fastapi import APIRouter, Request

from backend.config import VERSION
from backend.http.envelope import write_json

router = APIRouter()


@router.get("/v1/healthcheck")
def healthcheck(request: Request):
    """
    Report availability and environment.

    background_tasks is an addition to the basic status payload and carries
    the supervisor counters.
    """
    state = request.app.state
    return write_json(
        200,
        {
            "status": "available",
            "system_info": {
                "environment": state.settings.environment,
                "version": VERSION,
            },
            "background_tasks": state.supervisor.stats(),
        },
    )
