"""Gemini structured-output client used by the analysis calls."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar

from flask import current_app
from google import genai
from google.genai import types
from pydantic import BaseModel, ValidationError

from cv_analyzer.errors import AnalysisCallError, AnalysisError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class TokenUsage:
    input: int = 0
    output: int = 0
    total: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input=self.input + other.input,
            output=self.output + other.output,
            total=self.total + other.total,
        )

    def to_payload(self) -> dict[str, int]:
        return {"input": self.input, "output": self.output, "total": self.total}


@dataclass
class CallResult:
    """Validated output of one model call plus its usage telemetry."""

    data: BaseModel
    usage: TokenUsage
    finish_reason: Optional[str] = None


class GeminiAnalysisClient:
    """Wrapper around the google-genai async API returning pydantic-validated JSON."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timeout_s: float = 90.0,
        client: Optional[genai.Client] = None,
    ) -> None:
        self._model = model
        self._timeout_s = timeout_s
        self._client = client or genai.Client(api_key=api_key)

    @property
    def model(self) -> str:
        return self._model

    async def generate(
        self,
        *,
        call: str,
        system: str,
        prompt: str,
        schema: Type[T],
        temperature: float = 0.7,
    ) -> CallResult:
        config = types.GenerateContentConfig(
            system_instruction=system,
            temperature=temperature,
            response_mime_type="application/json",
        )
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._model,
                    contents=prompt,
                    config=config,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            raise AnalysisCallError(call, f"timed out after {self._timeout_s:g}s", code="timeout")
        except Exception as e:
            raise AnalysisCallError(call, f"model error: {e}", code="llm_error") from e

        try:
            payload = _extract_json(response)
        except ValueError as e:
            raise AnalysisCallError(call, f"malformed output: {e}", code="malformed_output") from e

        try:
            data = schema.model_validate(payload)
        except ValidationError as e:
            logger.warning("Schema validation failed for %s: %s", call, e)
            raise AnalysisCallError(
                call,
                f"output failed schema validation ({e.error_count()} errors)",
                code="schema_invalid",
            ) from e

        return CallResult(data=data, usage=_usage(response), finish_reason=_finish_reason(response))

    async def aclose(self) -> None:
        """Close the SDK's async transport. Must run on the loop that made the calls."""
        await self._client.aio.aclose()


def get_llm_client() -> GeminiAnalysisClient:
    """Build a client from the Flask config (one per worker run)."""
    cfg = current_app.config
    api_key = (cfg.get("GEMINI_API_KEY") or "").strip()
    if not api_key:
        raise AnalysisError("GEMINI_API_KEY is missing")
    return GeminiAnalysisClient(
        api_key=api_key,
        model=cfg.get("LLM_MODEL", "gemini-2.5-flash"),
        timeout_s=float(cfg.get("LLM_TIMEOUT_S", 90.0)),
    )


# ---------------------------
# Response parsing helpers
# ---------------------------

def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _extract_json(response: Any) -> dict[str, Any]:
    parsed = getattr(response, "parsed", None)
    if isinstance(parsed, BaseModel):
        return parsed.model_dump()
    if isinstance(parsed, list) and parsed:
        parsed = parsed[0]
    if isinstance(parsed, dict):
        return parsed

    text = getattr(response, "text", None)
    if not text and getattr(response, "candidates", None):
        texts: list[str] = []
        for candidate in response.candidates:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                if getattr(part, "text", None):
                    texts.append(part.text)
        text = "\n".join(texts).strip() if texts else None
    if not text:
        raise ValueError("response did not include text output")

    try:
        payload = json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON ({e.msg})") from e
    if not isinstance(payload, dict):
        raise ValueError("expected a JSON object")
    return payload


def _usage(response: Any) -> TokenUsage:
    meta = getattr(response, "usage_metadata", None)
    if not meta:
        return TokenUsage()
    prompt = int(getattr(meta, "prompt_token_count", 0) or 0)
    output = int(getattr(meta, "candidates_token_count", 0) or 0)
    total = int(getattr(meta, "total_token_count", 0) or 0) or prompt + output
    return TokenUsage(input=prompt, output=output, total=total)


def _finish_reason(response: Any) -> Optional[str]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return None
    return str(getattr(reason, "name", reason)).lower()
