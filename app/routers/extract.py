# =============================================================================
# app/routers/extract.py - Document Extraction Endpoint
# =============================================================================
# One extraction costs one document from the monthly quota plus one credit.
# Both are taken before Gemini is called and both are given back if the
# extraction fails.
# =============================================================================

import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from agents.extractor import ExtractionAgent
from agents.models.extraction import ExtractedField
from app.dependencies import CurrentUser, DocumentQuotaDep, LedgerDep
from app.middleware.rate_limit import extract_limit
from core.models.plan import EXTRACTION_COST
from core.services.metering import metered

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================

class ExtractRequest(BaseModel):
    """A base64 document and the fields to pull out of it."""
    file: str = Field(..., min_length=1, description="Base64 document, optionally a data URL")
    fields: list[str] = Field(..., description="Field names to extract (1-50)")
    file_type: str | None = Field(default=None, alias="fileType", example="application/pdf")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "file": "JVBERi0xLjQK...",
                "fields": ["Invoice Number", "Total Amount", "Due Date"],
                "fileType": "application/pdf",
            }
        },
    }


class ExtractResponse(BaseModel):
    fields: list[ExtractedField]


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", response_model=ExtractResponse, dependencies=[Depends(extract_limit)])
async def extract_document(
    body: ExtractRequest,
    user: CurrentUser,
    ledger: LedgerDep,
    documents: DocumentQuotaDep,
) -> ExtractResponse:
    """
    Extract fields from an invoice or receipt.

    Raises:
        400: Bad fields, file type or base64
        402: Document quota or credits used up
        413: Document larger than MAX_UPLOAD_SIZE_MB
        429/502/504: Gemini failures (quota and credit are given back)
    """
    agent = ExtractionAgent()
    agent.validate(body.file, body.fields, body.file_type)

    await run_in_threadpool(documents.consume, user.id)
    try:
        async with metered(ledger, user.id, EXTRACTION_COST, "extraction"):
            fields = await run_in_threadpool(agent.extract, body.file, body.fields, body.file_type)
    except Exception:
        try:
            await run_in_threadpool(documents.release, user.id)
        except Exception as e:
            logger.error(f"Could not release document for {user.id}: {e}")
        raise

    return ExtractResponse(fields=fields)
