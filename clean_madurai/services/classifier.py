"""Complaint pre-verification: does the description look like a sanitation issue?"""
from __future__ import annotations

import logging
from typing import Iterable, Protocol

from clean_madurai.config import Settings, settings
from clean_madurai.services.gemini_client import GeminiClient

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS: tuple[str, ...] = ("garbage", "waste", "sewage", "drain")


class ComplaintClassifier(Protocol):
    def classify(self, text: str) -> bool: ...


class KeywordClassifier:
    """Deterministic lexical check: any keyword appearing case-insensitively in the text."""

    def __init__(self, keywords: Iterable[str] = DEFAULT_KEYWORDS) -> None:
        self.keywords = tuple(k.strip().lower() for k in keywords if k and k.strip())
        if not self.keywords:
            raise ValueError("KeywordClassifier needs at least one keyword")

    def classify(self, text: str) -> bool:
        lowered = (text or "").lower()
        return any(k in lowered for k in self.keywords)


_PROMPT = """You verify citizen complaints for a municipal sanitation department.
Answer with JSON only: {{"sanitation": true}} if the complaint below describes a sanitation problem
(garbage, waste, sewage, drains, polluted water, dead or stray animals), otherwise {{"sanitation": false}}.

Complaint:
{text}
"""


class GeminiClassifier:
    """LLM-backed classifier; any model failure falls back to the lexical check."""

    def __init__(self, client: GeminiClient | None = None, fallback: ComplaintClassifier | None = None) -> None:
        self.client = client or GeminiClient()
        self.fallback = fallback or KeywordClassifier()

    def classify(self, text: str) -> bool:
        if not (text or "").strip():
            return False
        res = self.client.generate_json(prompt=_PROMPT.format(text=text.strip()[:2000]), expect="dict")
        verdict = res.parsed_json.get("sanitation") if res.ok else None
        if isinstance(verdict, bool):
            return verdict
        logger.warning("Gemini classification unavailable (%s); using keyword fallback", res.error or "no verdict")
        return self.fallback.classify(text)


def build_classifier(config: Settings = settings) -> ComplaintClassifier:
    keyword = KeywordClassifier(config.classifier_keywords or DEFAULT_KEYWORDS)
    kind = (config.complaint_classifier or "keyword").strip().lower()
    if kind == "gemini":
        return GeminiClassifier(GeminiClient(config), fallback=keyword)
    if kind != "keyword":
        logger.warning("Unknown COMPLAINT_CLASSIFIER=%r; using keyword classifier", kind)
    return keyword


def get_classifier() -> ComplaintClassifier:
    return build_classifier(settings)
