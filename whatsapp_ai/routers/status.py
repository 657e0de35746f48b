"""Status endpoints: liveness root and aggregated health."""
from fastapi import APIRouter, Request

from whatsapp_ai.core.models import HealthStatus, RootStatus

router = APIRouter(tags=["Status"])


@router.get("/", response_model=RootStatus)
async def root() -> RootStatus:
    return RootStatus()


@router.get("/health", response_model=HealthStatus)
async def health(request: Request) -> HealthStatus:
    """Each flag is False while its component has not been constructed."""
    system = getattr(request.app.state, "system", None)
    bot = getattr(system, "whatsapp_bot", None)
    executor = getattr(system, "supabase_executor", None)
    agent = getattr(system, "ai_agent", None)
    return HealthStatus(
        whatsapp=bool(getattr(bot, "is_ready", False)),
        supabase=bool(getattr(executor, "is_connected", False)),
        ai=bool(getattr(agent, "is_ready", False)),
    )
