"""JSON API for the single-call writing tools and the usage balance."""

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.dependencies import get_user_context
from app.models.tools import GrammarRequest, ParaphraseRequest, PlagiarismRequest, SummarizeRequest
from execution.text_tools import (
    GRAMMAR_STYLES,
    PARAPHRASE_STYLES,
    SUMMARY_STYLES,
    ToolError,
    ToolInputError,
    check_grammar,
    check_plagiarism,
    paraphrase,
    summarize,
)
from execution.usage_policy import UserContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


def _usage_payload(request: Request, user: UserContext) -> dict:
    policy = request.app.state.policy
    payload = {
        "user_id": user.user_id,
        "is_guest": user.is_guest,
        "tokens": None if user.is_guest else user.tokens,
        "guest_usage_count": user.guest_usage_count,
    }
    if user.is_guest and policy is not None:
        payload["remaining_guest_uses"] = max(policy.guest_free_uses - user.guest_usage_count, 0)
    return payload


def _precheck(text: str, style: str | None = None, styles: dict | None = None) -> JSONResponse | None:
    """Reject bad input before a use is charged."""
    if not text.strip():
        return JSONResponse(status_code=422, content={"detail": "Please enter some text to process."})
    if styles is not None and style not in styles:
        return JSONResponse(
            status_code=422,
            content={"detail": f"Unknown style: {style}. Must be one of {sorted(styles)}"},
        )
    return None


async def _run_tool(request: Request, tool: str, func, *args) -> JSONResponse:
    user = get_user_context(request)
    policy = request.app.state.policy
    if policy is not None:
        decision = policy.consume(user, f"tools.{tool}")
        if not decision.allowed:
            return JSONResponse(status_code=402, content={"detail": decision.reason})

    try:
        result = await asyncio.to_thread(func, *args, request.app.state.generate)
    except ToolInputError as e:
        return JSONResponse(status_code=422, content={"detail": str(e)})
    except ToolError as e:
        logger.warning("Tool %s failed: %s", tool, e)
        return JSONResponse(status_code=502, content={"detail": str(e)})

    return JSONResponse(content={"result": result.to_dict(), "usage": _usage_payload(request, user)})


@router.post("/tools/paraphrase")
async def paraphrase_text(request: Request, body: ParaphraseRequest):
    rejected = _precheck(body.text, body.style, PARAPHRASE_STYLES)
    if rejected is not None:
        return rejected
    return await _run_tool(request, "paraphrase", paraphrase, body.text, body.style)


@router.post("/tools/summarize")
async def summarize_text(request: Request, body: SummarizeRequest):
    rejected = _precheck(body.text, body.style, SUMMARY_STYLES)
    if rejected is not None:
        return rejected
    return await _run_tool(request, "summarize", summarize, body.text, body.style, body.length_percent)


@router.post("/tools/grammar")
async def grammar_check(request: Request, body: GrammarRequest):
    rejected = _precheck(body.text, body.style, GRAMMAR_STYLES)
    if rejected is not None:
        return rejected
    return await _run_tool(request, "grammar", check_grammar, body.text, body.style)


@router.post("/tools/plagiarism")
async def plagiarism_check(request: Request, body: PlagiarismRequest):
    rejected = _precheck(body.text)
    if rejected is not None:
        return rejected
    return await _run_tool(request, "plagiarism", check_plagiarism, body.text)


@router.get("/usage")
async def get_usage(request: Request):
    """Current balance of the caller."""
    return JSONResponse(content=_usage_payload(request, get_user_context(request)))


@router.post("/usage/reward")
async def reward_ad(request: Request):
    """Credit the ad-watch reward to a signed-in caller."""
    user = get_user_context(request)
    try:
        request.app.state.policy.reward_ad(user)
    except ValueError as e:
        return JSONResponse(status_code=403, content={"detail": str(e)})
    return JSONResponse(content=_usage_payload(request, user))
