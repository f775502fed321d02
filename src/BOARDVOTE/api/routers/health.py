# src/BOARDVOTE/api/routers/health.py
import sqlalchemy as sa
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from BOARDVOTE.app_logger import get_logger

router = APIRouter(tags=["health"])
log = get_logger("api.health")


@router.get("/healthz", include_in_schema=False)
def healthz():
    return {"status": "ok"}


@router.get("/readyz", include_in_schema=False)
async def readyz(request: Request):
    """Liveness plus a round trip to the database."""
    try:
        async with request.app.state.async_sessionmaker() as session:
            await session.execute(sa.text("SELECT 1"))
    except Exception as e:
        log.warning("readiness check failed: %s", e)
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": str(e)})
    return {"status": "ok", "database": "ok"}
