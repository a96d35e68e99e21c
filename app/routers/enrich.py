# =============================================================================
# app/routers/enrich.py - Entity Enrichment Endpoint
# =============================================================================
# Billed per started batch of 50 unique entities (25 credits each).
# =============================================================================

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from agents.enricher import EnrichmentAgent
from app.dependencies import CurrentUser, LedgerDep
from app.middleware.rate_limit import enrich_limit
from core.models.plan import enrichment_cost
from core.services.metering import metered

router = APIRouter()


class EnrichRequest(BaseModel):
    entities: list[str] = Field(..., example=["Acme Corp", "Globex"])
    prompt: str = Field(..., example="Find the headquarters city and industry")


class EnrichResponse(BaseModel):
    result: dict[str, Any]


@router.post("", response_model=EnrichResponse, dependencies=[Depends(enrich_limit)])
async def enrich(
    body: EnrichRequest,
    user: CurrentUser,
    ledger: LedgerDep,
) -> EnrichResponse:
    """Look entities up with Google Search grounding."""
    agent = EnrichmentAgent()
    entities, prompt = agent.validate(body.entities, body.prompt)

    async with metered(ledger, user.id, enrichment_cost(entities), "enrichment"):
        result = await run_in_threadpool(agent.enrich, entities, prompt)

    return EnrichResponse(result=result)
