from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Literal

import requests

from clean_madurai.config import Settings, settings

logger = logging.getLogger(__name__)

FailureReason = Literal["http", "timeout", "invalid_json", "not_configured"]


@dataclass(frozen=True)
class GeminiError(Exception):
    message: str
    model: str
    reason: FailureReason | str
    http_status: int | None = None

    def __str__(self) -> str:  # pragma: no cover
        base = f"{self.reason} model={self.model}: {self.message}"
        if self.http_status:
            base += f" (HTTP {self.http_status})"
        return base


@dataclass(frozen=True)
class GeminiResult:
    ok: bool
    model_used: str
    parsed_json: Any | None
    error: str | None


class GeminiClient:
    """
    Thin Gemini REST wrapper for short JSON answers.
    - primary then fallback model from config
    - retry with exponential backoff per model (transport errors, 429/5xx, invalid JSON)
    - never raises: failures come back as GeminiResult(ok=False)
    """

    def __init__(self, config: Settings = settings, session: requests.Session | None = None) -> None:
        self.config = config
        self.http = session or requests.Session()

    def generate_json(self, *, prompt: str, expect: Literal["dict", "list", "any"] = "any") -> GeminiResult:
        cfg = self.config
        if not cfg.gemini_api_key:
            return GeminiResult(ok=False, model_used=cfg.gemini_model_primary, parsed_json=None, error="GEMINI_API_KEY not configured")

        attempts = max(1, int(cfg.gemini_attempts_per_model))
        last_error: str | None = None
        for model in (cfg.gemini_model_primary, cfg.gemini_model_fallback):
            for attempt in range(attempts):
                try:
                    parsed = self._parse_json(self._call_text(model=model, prompt=prompt), model=model)
                    if expect == "dict" and not isinstance(parsed, dict):
                        raise GeminiError("Expected JSON object", model=model, reason="invalid_json")
                    if expect == "list" and not isinstance(parsed, list):
                        raise GeminiError("Expected JSON array", model=model, reason="invalid_json")
                    return GeminiResult(ok=True, model_used=model, parsed_json=parsed, error=None)
                except (GeminiError, requests.RequestException, ValueError) as e:
                    last_error = f"{type(e).__name__}: {e}"
                    logger.debug("Gemini attempt %d on %s failed: %s", attempt + 1, model, last_error)
                    if isinstance(e, GeminiError) and e.reason == "http" and e.http_status and e.http_status < 500 and e.http_status != 429:
                        # Non-retryable for this model; go straight to the fallback.
                        break
                    if attempt < attempts - 1:
                        time.sleep(0.5 * (2**attempt))

        return GeminiResult(ok=False, model_used=cfg.gemini_model_fallback, parsed_json=None, error=last_error or "Gemini failed")

    def _parse_json(self, text: str, *, model: str) -> Any:
        s = (text or "").strip()
        s = re.sub(r"^```(?:json)?\s*", "", s, flags=re.IGNORECASE)
        s = re.sub(r"\s*```$", "", s)
        try:
            return json.loads(s)
        except ValueError:
            m = re.search(r"\{[\s\S]*\}|\[[\s\S]*\]", s)
            if m:
                try:
                    return json.loads(m.group(0))
                except ValueError:
                    pass
        raise GeminiError("Invalid JSON returned", model=model, reason="invalid_json")

    def _call_text(self, *, model: str, prompt: str) -> str:
        cfg = self.config
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": cfg.gemini_temperature,
                "maxOutputTokens": cfg.gemini_max_output_tokens,
                "responseMimeType": "application/json",
            },
        }
        resp = self.http.post(
            cfg.gemini_endpoint.format(model=model),
            params={"key": cfg.gemini_api_key},
            json=payload,
            timeout=cfg.gemini_timeout_s,
        )
        if resp.status_code >= 400:
            raise GeminiError("Gemini request failed", model=model, reason="http", http_status=resp.status_code)

        try:
            data = resp.json()
        except ValueError:
            raise GeminiError("Response body is not JSON", model=model, reason="invalid_json", http_status=resp.status_code) from None
        if not isinstance(data, dict):
            raise GeminiError("Unexpected response shape", model=model, reason="invalid_json", http_status=resp.status_code)
        out = ""
        try:
            for cand in data.get("candidates") or []:
                for part in (cand.get("content") or {}).get("parts") or []:
                    out += str(part.get("text") or "") + "\n"
        except (AttributeError, TypeError):
            raise GeminiError("Unexpected response shape", model=model, reason="invalid_json", http_status=resp.status_code) from None
        return out.strip()
