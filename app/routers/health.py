from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from core.db import get_db
from realtime.relay import LiveLocationRelay
from routers.dependencies import get_relay

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(
    db: AsyncSession = Depends(get_db),
    relay: LiveLocationRelay = Depends(get_relay),
):
    await db.execute(text("SELECT 1"))
    return {"status": "ok", "database": "ok", "liveObservers": relay.observer_count}
