from __future__ import annotations  # LLM request gateway module

import json
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Protocol, Sequence, Tuple, Type, TypeVar

from langchain_core.messages import BaseMessage
from langchain_core.runnables import RunnableLambda
from pydantic import BaseModel, ValidationError

from config import LlmRoute


logger = logging.getLogger(__name__)  # Module logger setup


_MODEL_LOCKS: Dict[str, threading.Lock] = {}
_MODEL_LOCKS_GUARD = threading.Lock()


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class LlmGatewayError(RuntimeError):  # Transport or upstream failure
    pass


class LlmValidationError(LlmGatewayError):  # Reply could not be decoded or failed validation
    pass


T = TypeVar("T", bound=BaseModel)

Predicate = Callable[[Any], Optional[str]]  # Returns a rejection reason, or None when acceptable


@dataclass(frozen=True)
class ParseResult(Generic[T]):  # Tagged outcome of decoding a structured reply
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None


def _lock_for(cfg: LlmRoute) -> threading.Lock:
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    with _MODEL_LOCKS_GUARD:
        lock = _MODEL_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _MODEL_LOCKS[key] = lock
    return lock


def chat(
    messages: Sequence[Dict[str, str]],
    schema: Type[T],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
    predicate: Optional[Predicate] = None,
) -> T:  # Structured completion validated against ``schema`` and ``predicate``
    def _execute() -> T:
        base_messages: list[Dict[str, str]] = []
        if cfg.enforce_json:
            schema_json = json.dumps(schema.model_json_schema(), indent=2)
            system_prompt = "Reply with a single JSON object matching this schema:\n" + schema_json
            base_messages.append({"role": "system", "content": system_prompt})
        base_messages.extend(_normalize_messages(messages))
        attempts = cfg.max_retries + 1
        last_error_text: Optional[str] = None
        preview = _preview(base_messages)
        logger.info(
            "LLM request start route=%s model=%s attempts=%d preview=%s",
            cfg.name,
            cfg.model,
            attempts,
            preview,
        )
        for attempt in range(attempts):
            attempt_messages = list(base_messages)
            if attempt > 0:
                attempt_messages.append(
                    {
                        "role": "system",
                        "content": _retry_hint(last_error_text, cfg.enforce_json),
                    }
                )
            content = _send(cfg, attempt_messages, options, client, attempt=attempt, attempts=attempts)
            result = parse_structured(schema, content, predicate)
            if result.ok:
                logger.info(
                    "LLM request done route=%s model=%s attempt=%d",
                    cfg.name,
                    cfg.model,
                    attempt + 1,
                )
                return result.value  # type: ignore[return-value]
            logger.warning("LLM output validation failed route=%s: %s", cfg.name, result.error)
            last_error_text = result.error
        raise LlmValidationError(f"LLM output validation failed: {last_error_text}")

    if cfg.sequential:
        with _lock_for(cfg):
            return _execute()
    return _execute()


def complete(
    messages: Sequence[Dict[str, str]],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> str:  # Free-text completion; only an empty reply is rejected
    def _execute() -> str:
        normalized = _normalize_messages(messages)
        logger.info(
            "LLM text request start route=%s model=%s preview=%s",
            cfg.name,
            cfg.model,
            _preview(normalized),
        )
        content = _send(cfg, normalized, options, client, attempt=0, attempts=1, json_mode=False).strip()
        if not content:
            raise LlmValidationError("LLM returned an empty completion")
        return content

    if cfg.sequential:
        with _lock_for(cfg):
            return _execute()
    return _execute()


def parse_structured(schema: Type[T], content: str, predicate: Optional[Predicate] = None) -> ParseResult[T]:  # Decode then validate
    try:
        document = decode_document(content)
    except json.JSONDecodeError as exc:
        return ParseResult(error=f"reply was not JSON: {exc}")
    return validate_document(schema, document, predicate)


def decode_document(content: str) -> Any:  # Phase one: raw text to untyped JSON document
    return json.loads(_strip_code_fences(content))


def validate_document(schema: Type[T], document: Any, predicate: Optional[Predicate] = None) -> ParseResult[T]:  # Phase two: schema and predicate
    if not isinstance(document, dict):
        return ParseResult(error=f"expected a JSON object, got {type(document).__name__}")
    try:
        value = schema.model_validate(document)
    except ValidationError as exc:
        return ParseResult(error=_summarize_errors(exc))
    if predicate is not None:
        reason = predicate(value)
        if reason:
            return ParseResult(error=reason)
    return ParseResult(value=value)


def runnable(
    route: LlmRoute,
    schema: Type[T],
    *,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
    predicate: Optional[Predicate] = None,
) -> RunnableLambda:  # Provide runnable interface for LangChain pipelines
    def _invoke(payload: Any) -> T:
        messages = _coerce_messages(payload)
        return chat(messages, schema, cfg=route, client=client, options=options, predicate=predicate)

    return RunnableLambda(_invoke)


def text_runnable(
    route: LlmRoute,
    *,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> RunnableLambda:  # Runnable returning plain completion text
    def _invoke(payload: Any) -> str:
        messages = _coerce_messages(payload)
        return complete(messages, cfg=route, client=client, options=options)

    return RunnableLambda(_invoke)


def _send(
    cfg: LlmRoute,
    messages: Sequence[Dict[str, str]],
    options: Optional[Dict[str, Any]],
    client: Optional[HttpClient],
    *,
    attempt: int,
    attempts: int,
    json_mode: bool = True,
) -> str:  # POST one completion request and extract the reply text
    payload: Dict[str, Any] = {"model": cfg.model, "messages": list(messages)}
    if options:
        payload.update(options)
    if json_mode and cfg.response_format:
        payload["response_format"] = {"type": cfg.response_format}
    headers = {"Content-Type": "application/json"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    logger.debug(
        "LLM request send route=%s model=%s attempt=%d/%d",
        cfg.name,
        cfg.model,
        attempt + 1,
        attempts,
    )
    try:
        response, close_cb = _post(f"{cfg.base_url}{cfg.endpoint}", payload, headers, cfg.timeout_s, client)
    except LlmGatewayError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.error("LLM transport failure: %s", exc)
        raise LlmGatewayError("LLM transport failed") from exc
    try:
        if response.status_code >= 400:
            logger.error("LLM error status: %s", response.status_code)
            raise LlmGatewayError(f"LLM returned status {response.status_code}")
        try:
            data = response.json()
        except Exception as exc:  # noqa: BLE001
            logger.error("Invalid JSON payload from LLM: %s", exc)
            raise LlmGatewayError("LLM payload was not JSON") from exc
        return _extract_content(data)
    finally:
        _close_safely(close_cb)


def _post(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float, client: Optional[HttpClient]) -> Tuple[HttpResponse, Optional[Callable[[], None]]]:  # Dispatch HTTP request
    if client is not None:
        return client.post(url, json=payload, headers=headers, timeout=timeout), None
    import httpx

    http_client = httpx.Client(timeout=timeout)
    response = http_client.post(url, json=payload, headers=headers)
    return response, http_client.close


def _close_safely(close_cb: Optional[Callable[[], None]]) -> None:  # Close HTTP client callback when provided
    if close_cb is not None:
        close_cb()


def _normalize_messages(messages: Sequence[Dict[str, str]]) -> list[Dict[str, str]]:  # Ensure message payload shape
    normalized: list[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            raise TypeError("Each chat message must be a dict with role/content")
        role = str(item.get("role", "")).strip()
        content = str(item.get("content", ""))
        if not role:
            raise ValueError("Chat message missing role")
        normalized.append({"role": role, "content": content})
    return normalized


def _preview(messages: Sequence[Dict[str, str]]) -> str:  # Build preview string for logging
    for message in messages:
        text = message.get("content", "").strip()
        if text:
            line = text.splitlines()[0]
            return line if len(line) <= 120 else line[:117] + "..."
    return ""


def _extract_content(data: Any) -> str:  # Extract message content from LLM response
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        if isinstance(data.get("content"), str):
            return data["content"]
    raise LlmGatewayError("LLM response missing content")


def _summarize_errors(exc: ValidationError) -> str:  # Compact pydantic errors into one line
    parts = []
    for error in exc.errors()[:5]:
        location = ".".join(str(item) for item in error.get("loc", ())) or "(root)"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts) or str(exc)


def _strip_code_fences(content: str) -> str:  # Remove common markdown fences from LLM output
    text = content.strip()
    if text.startswith("```"):
        lines = text.splitlines()
        if lines:
            lines = lines[1:]
            while lines and lines[0].strip() == "":
                lines = lines[1:]
            while lines and lines[-1].strip() == "":
                lines = lines[:-1]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()
    return text


def _retry_hint(error_text: Optional[str], enforce_json: bool) -> str:  # Compose retry instructions including last error
    base = "The previous reply failed validation."
    if error_text:
        truncated = error_text.splitlines()[0].strip()
        if len(truncated) > 200:
            truncated = truncated[:197] + "..."
        base += f" Reason: {truncated}."
    if enforce_json:
        return base + " Return a single JSON object that matches the schema."
    return base + " Follow the requested format precisely."


def _coerce_messages(payload: Any) -> Sequence[Dict[str, str]]:  # Convert LangChain payloads into dict messages
    if hasattr(payload, "to_messages"):
        payload = payload.to_messages()
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, BaseMessage):
        return [_message_dict(payload)]
    if isinstance(payload, (list, tuple)):
        if all(isinstance(item, dict) for item in payload):
            return list(payload)  # type: ignore[return-value]
        if all(isinstance(item, BaseMessage) for item in payload):
            return [_message_dict(item) for item in payload]
    raise TypeError("Unsupported message payload for LLM runnable")


def _message_dict(message: BaseMessage) -> Dict[str, str]:  # Map LangChain BaseMessage to role/content dict
    role = message.type
    if role == "human":
        role = "user"
    elif role == "ai":
        role = "assistant"
    content = message.content
    if not isinstance(content, str):
        content = json.dumps(content)
    return {"role": role, "content": content}
