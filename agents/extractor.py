# =============================================================================
# agents/extractor.py - Document Extraction Agent
# =============================================================================
# Sends an invoice/receipt (image or PDF) to the Gemini vision model and
# returns the requested fields with confidence scores and bounding boxes.
#
# The model's answer is free text that should contain a JSON array; the
# array is pulled out of any surrounding prose. Unparseable output yields
# an empty list rather than an error, so the user can retry or fill the
# fields by hand.
#
# Usage:
#   from agents.extractor import ExtractionAgent
#   fields = ExtractionAgent().extract(file_b64, ["Invoice Number", "Total"], "application/pdf")
# =============================================================================

from __future__ import annotations

import base64
import binascii
import logging

from google.genai import types
from pydantic import ValidationError

from app.config import settings
from app.exceptions import FileTooLargeError, InvalidRequestError, UnsupportedFileTypeError
from agents.gemini import generate_text, parse_json_array
from agents.models.extraction import ExtractedField
from agents.prompts.extraction import build_extraction_prompt

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp", "application/pdf"]
DEFAULT_MIME_TYPE = "image/jpeg"
MAX_FIELDS = 50


def decode_document(file_b64: str) -> bytes:
    """
    Decode a base64 document, accepting an optional data-URL prefix.

    Raises:
        InvalidRequestError: Not valid base64
    """
    payload = file_b64.split(",", 1)[1] if file_b64.startswith("data:") else file_b64
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise InvalidRequestError(
            "File is not valid base64",
            suggestion="Send the document as a base64 string",
        ) from e


class ExtractionAgent:
    """
    Field extraction from a single document.

    Attributes:
        model: Gemini model ID (default: settings.GEMINI_EXTRACTION_MODEL)
        timeout_seconds: Per-call timeout (default: settings.GEMINI_TIMEOUT_SECONDS)
        max_bytes: Largest decoded document accepted
    """

    def __init__(
        self,
        model: str | None = None,
        timeout_seconds: int | None = None,
        max_bytes: int | None = None,
    ):
        self.model = model or settings.GEMINI_EXTRACTION_MODEL
        self.timeout_seconds = timeout_seconds or settings.GEMINI_TIMEOUT_SECONDS
        self.max_bytes = max_bytes or settings.max_upload_size_bytes

    def validate(self, file_b64: str, fields: list[str], mime_type: str | None) -> tuple[bytes, list[str], str]:
        """
        Check the request before any credits or quota are spent.

        Returns:
            (decoded document, cleaned field names, MIME type)

        Raises:
            InvalidRequestError, UnsupportedFileTypeError, FileTooLargeError
        """
        cleaned = [f.strip() for f in fields if f and f.strip()]
        if not file_b64:
            raise InvalidRequestError("Missing file", suggestion="Attach a document to extract from")
        if not cleaned:
            raise InvalidRequestError("Fields array cannot be empty", suggestion="Choose at least one field")
        if len(cleaned) > MAX_FIELDS:
            raise InvalidRequestError(
                f"Too many fields (max {MAX_FIELDS})",
                suggestion="Split the fields across several extractions",
                details={"fields": len(cleaned), "max": MAX_FIELDS},
            )

        mime_type = mime_type or DEFAULT_MIME_TYPE
        if mime_type not in ALLOWED_MIME_TYPES:
            raise UnsupportedFileTypeError(mime_type, ALLOWED_MIME_TYPES)

        document = decode_document(file_b64)
        if len(document) > self.max_bytes:
            raise FileTooLargeError(len(document) / (1024 * 1024), self.max_bytes // (1024 * 1024))

        return document, cleaned, mime_type

    def extract(self, file_b64: str, fields: list[str], mime_type: str | None = None) -> list[ExtractedField]:
        """
        Extract `fields` from a base64 document.

        Raises:
            InvalidRequestError, UnsupportedFileTypeError, FileTooLargeError:
                The request itself is unusable
            LLMQuotaExceededError, LLMTimeoutError, LLMServiceError:
                The model call failed
        """
        document, fields, mime_type = self.validate(file_b64, fields, mime_type)
        logger.info(f"Extracting {len(fields)} fields from {mime_type} ({len(document)} bytes)")

        text = generate_text(
            self.model,
            [
                types.Part.from_bytes(data=document, mime_type=mime_type),
                build_extraction_prompt(fields),
            ],
            timeout_seconds=self.timeout_seconds,
        )
        return self.parse_fields(text)

    @staticmethod
    def parse_fields(text: str) -> list[ExtractedField]:
        """Model text -> fields; malformed entries are skipped."""
        items = parse_json_array(text)
        if items is None:
            logger.warning("Extraction response contained no JSON array")
            return []

        extracted = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                extracted.append(ExtractedField.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed extracted field: {e.errors()[0]['msg']}")

        logger.debug(f"Parsed {len(extracted)} of {len(items)} extracted fields")
        return extracted
