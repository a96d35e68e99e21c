# =============================================================================
# app/routers/chat.py - Streaming Chat Endpoint
# =============================================================================
# Server-sent events, one JSON object per event:
#
#   data: {"text": "..."}      zero or more chunks
#   data: {"done": true}       normal end
#   data: {"error": "..."}     the stream failed
#
# One credit is charged before the stream opens. It is refunded if the model
# fails before sending any text; a partial answer is still billed.
# =============================================================================

import json
import logging
from typing import Any, Iterator

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from agents.chat_assistant import ChatAssistant
from agents.models.chat import ChatTurn
from app.dependencies import CurrentUser, LedgerDep
from app.exceptions import VerifloException
from app.middleware.rate_limit import chat_limit
from core.models.plan import CHAT_MESSAGE_COST
from core.services.ledger import CreditLedger
from lib.spreadsheet import SpreadsheetFile, resolve_file_context

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    prompt: str = Field(..., example="What is the average order value?")
    file_context: str | None = Field(default=None, alias="fileContext")
    files: list[SpreadsheetFile] | None = None
    history: list[ChatTurn] = Field(default_factory=list)
    data_mode: bool = Field(default=False, alias="isDataMode")

    model_config = {"populate_by_name": True}


def sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def chat_events(
    assistant: ChatAssistant,
    body: ChatRequest,
    ledger: CreditLedger,
    user_id: str,
    charged: int,
) -> Iterator[str]:
    """SSE events for one answer. Runs in Starlette's threadpool."""
    emitted = False
    try:
        for text in assistant.stream(body.prompt, body.file_context, body.history, body.data_mode):
            emitted = True
            yield sse({"text": text})
        yield sse({"done": True})
    except Exception as e:
        message = e.message if isinstance(e, VerifloException) else "Chat stream failed"
        logger.error(f"Chat stream for {user_id} failed: {e}")
        if not emitted and charged > 0:
            try:
                ledger.refund(user_id, charged)
            except Exception as refund_error:
                logger.error(f"Refund after failed chat for {user_id} failed: {refund_error}")
        yield sse({"error": message})


@router.post("/stream", dependencies=[Depends(chat_limit)])
async def chat_stream(
    body: ChatRequest,
    user: CurrentUser,
    ledger: LedgerDep,
) -> StreamingResponse:
    """
    Stream an answer as server-sent events.

    Raises:
        400: Empty or oversized prompt
        402: Not enough credits (before the stream opens)
    """
    assistant = ChatAssistant()
    body.prompt = assistant.validate(body.prompt)
    body.file_context = await run_in_threadpool(resolve_file_context, body.file_context, body.files)

    change = await run_in_threadpool(ledger.charge, user.id, CHAT_MESSAGE_COST)

    return StreamingResponse(
        chat_events(assistant, body, ledger, change.user_id, change.before - change.after),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
