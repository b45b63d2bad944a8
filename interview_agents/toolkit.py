from __future__ import annotations  # Shared prompt helpers for interview agents

from contextlib import contextmanager
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence

from llm_gateway import LlmGatewayError, LlmValidationError
from interview_session.errors import UpstreamFailure, ValidationError


def clamp_text(text: str, limit: int = 600) -> str:  # Compact whitespace and clip length
    compact = " ".join(text.split())
    if len(compact) <= limit:
        return compact
    return compact[: limit - 1].rstrip() + "…"


def bullet_list(entries: Iterable[str]) -> str:  # Render entries as markdown bullets
    lines = [item.strip() for item in entries if item and item.strip()]
    if not lines:
        return "None provided."
    return "\n".join(f"- {line}" for line in lines)


def numbered_list(entries: Iterable[str]) -> str:  # Render entries as a 1-based list
    lines = [item.strip() for item in entries if item and item.strip()]
    if not lines:
        return "None provided."
    return "\n".join(f"{index}. {line}" for index, line in enumerate(lines, start=1))


def file_sections(
    paths: Sequence[str],
    contents: Mapping[str, str],
    *,
    per_file: int,
    max_files: Optional[int] = None,
) -> str:  # Concatenate "=== path ===" blocks for cached files, clipped per file
    blocks: List[str] = []
    for path in paths:
        if max_files is not None and len(blocks) >= max_files:
            break
        content = contents.get(path)
        if not content:
            continue
        blocks.append(f"=== {path} ===\n{content[:per_file]}")
    return "\n\n".join(blocks) if blocks else "(no code available)"


def number_lines(code: str, start_line: int) -> str:  # Prefix each line with its absolute file line number
    return "\n".join(f"{start_line + offset}: {line}" for offset, line in enumerate(code.split("\n")))


@contextmanager
def gateway_errors(agent: str) -> Iterator[None]:  # Translate gateway failures into the error taxonomy
    try:
        yield
    except LlmValidationError as exc:
        raise ValidationError(f"{agent} returned unusable output: {exc}") from exc
    except LlmGatewayError as exc:
        raise UpstreamFailure(f"{agent} completion failed: {exc}") from exc


__all__ = [
    "bullet_list",
    "clamp_text",
    "file_sections",
    "gateway_errors",
    "number_lines",
    "numbered_list",
]
