"""Simple span helper for recording pipeline stage timings."""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from .logger import log_event


@contextmanager
def span(stage: str, session_id: str | None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    outcome = "error"
    try:
        yield
        outcome = "ok"
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        log_event("span", session_id, stage=stage, ms=elapsed_ms, outcome=outcome, **fields)


__all__ = ["span"]
