from fastapi import APIRouter, Depends, Request
from typing import Optional
from supabase import Client

from app.config import settings
from app.core.dependencies import get_membership_set, MembershipSet
from app.core.rate_limit import limiter
from app.database.supabase_client import get_supabase
from app.modules.prompts.completion import CompletionClient, get_completion_client
from app.modules.prompts.schemas import PromptRequest, PromptResponse
from app.modules.prompts.service import PromptService

router = APIRouter(prefix="/prompts", tags=["prompts"])


def get_prompt_service(
    supabase: Client = Depends(get_supabase),
    completion: CompletionClient = Depends(get_completion_client),
) -> PromptService:
    return PromptService(supabase, completion)


@router.post("", response_model=PromptResponse)
@limiter.limit(settings.prompts_rate_limit)
async def generate_prompts(
    request: Request,
    body: Optional[PromptRequest] = None,
    memberships: MembershipSet = Depends(get_membership_set),
    service: PromptService = Depends(get_prompt_service),
):
    """AI conversation prompts; circle members only when a circle is given"""
    body = body or PromptRequest()
    return service.generate(memberships, circle_id=body.target_circle_id, count=body.count)
