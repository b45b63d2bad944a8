from __future__ import annotations  # Re-export llm_gateway public API

from .llm_gateway import (
    HttpClient,
    HttpResponse,
    LlmGatewayError,
    LlmValidationError,
    ParseResult,
    chat,
    complete,
    decode_document,
    parse_structured,
    runnable,
    text_runnable,
    validate_document,
)

__all__ = [
    "HttpClient",
    "HttpResponse",
    "LlmGatewayError",
    "LlmValidationError",
    "ParseResult",
    "chat",
    "complete",
    "decode_document",
    "parse_structured",
    "runnable",
    "text_runnable",
    "validate_document",
]
