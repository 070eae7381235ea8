import logging
from fastapi import APIRouter, Request
from pydantic import BaseModel

system_router = APIRouter()
logger = logging.getLogger(__name__)


class HealthStatus(BaseModel):
    status: str = "ok"
    connections: int
    online_users: int
    rooms: int


@system_router.get("/health", response_model=HealthStatus)
async def health(request: Request) -> HealthStatus:
    """Liveness plus a snapshot of the in-memory realtime state."""
    stats = request.app.state.connection_manager.get_stats()
    return HealthStatus(**stats)
