from fastapi import APIRouter, Depends

from api.dependencies import get_prompt_rewriter
from schemas.thumbnail import (
    RewritePromptRequest,
    RewritePromptResponse,
    responses_as_prompt_fields,
)
from services.prompt_builder import build_system_prompt
from services.prompt_rewriter import PromptRewriter

router = APIRouter(prefix="/prompts", tags=["prompts"])


@router.post("/rewrite", response_model=RewritePromptResponse)
async def rewrite_prompt(
    body: RewritePromptRequest,
    rewriter: PromptRewriter = Depends(get_prompt_rewriter),
):
    """Build the questionnaire prompt and expand it with the rewrite model."""
    system_prompt = build_system_prompt(
        responses_as_prompt_fields(body.user_responses),
        body.user_responses.placement or "center",
    )
    rewritten = await rewriter.rewrite(system_prompt)
    return RewritePromptResponse(system_prompt=system_prompt, rewritten_prompt=rewritten)
