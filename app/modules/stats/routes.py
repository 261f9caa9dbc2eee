from fastapi import APIRouter, Depends
from supabase import Client

from app.database.supabase_client import get_supabase
from app.modules.stats.schemas import StatsResponse
from app.modules.stats.service import StatsService

router = APIRouter(prefix="/stats", tags=["stats"])


def get_stats_service(supabase: Client = Depends(get_supabase)) -> StatsService:
    return StatsService(supabase)


# TODO: restrict to an admin role once the identity provider exposes one
@router.get("", response_model=StatsResponse)
async def get_stats(service: StatsService = Depends(get_stats_service)):
    """Circle and membership counts for the dashboard. No auth check."""
    return service.get_stats()
