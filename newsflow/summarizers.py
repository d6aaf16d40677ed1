from __future__ import annotations

import concurrent.futures as _fut
import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Protocol

from .models import Article, Enrichment

logger = logging.getLogger(__name__)

_SENTIMENTS = {"positive", "neutral", "negative"}

SYSTEM_PROMPT = (
    "You are a concise news summarizer. Produce neutral, factual summaries and extract key topics."
)


class Summarizer(Protocol):
    def summarize(self, *, title: str, text: str, max_words: int = 160) -> Optional[Enrichment]:  # pragma: no cover - interface
        ...


@dataclass
class SummarizeOptions:
    provider: str = "openai"  # "openai" | "gemini"
    model: Optional[str] = None
    api_key: Optional[str] = None
    max_input_chars: int = 4000
    max_words: int = 160
    max_workers: int = 4
    timeout_sec: float = 15.0


def build_prompt(title: str, text: str, max_words: int) -> str:
    return "\n".join([
        f"Title: {title or '(untitled)'}",
        "",
        "Task:",
        f"1) Write a concise summary (<= {max_words} words).",
        "2) Provide 3-6 bullet points with the most important facts.",
        "3) Provide 3-8 keywords (lowercase, no #).",
        "4) Estimate sentiment as positive | neutral | negative.",
        "5) Give confidence 0-1 for summary accuracy.",
        "",
        "Output strict JSON with keys:",
        '{ "summary": string, "bullets": string[], "keywords": string[], '
        '"sentiment": "positive"|"neutral"|"negative", "confidence": number }',
        "",
        "Article text:",
        text,
    ])


def _strings(val: Any) -> tuple:
    if not isinstance(val, list):
        return ()
    return tuple(str(v).strip() for v in val if str(v).strip())


def parse_enrichment(content: Optional[str]) -> Optional[Enrichment]:
    """
    Read the model's JSON reply. Non-JSON text is kept as a bare summary with
    neutral sentiment and 0.5 confidence.
    """
    if not content or not content.strip():
        return None
    try:
        data = json.loads(content)
    except ValueError:
        return Enrichment(summary=content.strip())
    if not isinstance(data, dict):
        return Enrichment(summary=content.strip())

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        return None
    sentiment = str(data.get("sentiment") or "neutral").lower()
    if sentiment not in _SENTIMENTS:
        sentiment = "neutral"
    try:
        confidence = float(data.get("confidence", 0.5))
    except (TypeError, ValueError):
        confidence = 0.5
    confidence = min(max(confidence, 0.0), 1.0)
    return Enrichment(
        summary=summary.strip(),
        bullets=_strings(data.get("bullets")),
        keywords=tuple(k.lower() for k in _strings(data.get("keywords"))),
        sentiment=sentiment,
        confidence=confidence,
    )


class NullSummarizer:
    def summarize(self, *, title: str, text: str, max_words: int = 160) -> Optional[Enrichment]:
        return None


class OpenAISummarizer:
    def __init__(self, *, api_key: Optional[str], model: Optional[str], timeout_sec: float) -> None:
        try:
            from openai import OpenAI  # type: ignore
        except Exception as e:  # pragma: no cover - optional dep
            raise RuntimeError("openai package is required for OpenAI summarization. Install with `pip install openai`. ") from e
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY not set.")
        self._client = OpenAI(api_key=api_key)
        self._model = model or "gpt-4.1-nano"
        self._timeout = timeout_sec

    def summarize(self, *, title: str, text: str, max_words: int = 160) -> Optional[Enrichment]:
        resp = self._client.chat.completions.create(
            model=self._model,
            temperature=0.2,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(title, text, max_words)},
            ],
            timeout=self._timeout,
        )
        content = resp.choices[0].message.content if resp and resp.choices else None
        return parse_enrichment(content)


class GeminiSummarizer:
    def __init__(self, *, api_key: Optional[str], model: Optional[str], timeout_sec: float) -> None:
        try:
            import google.generativeai as genai  # type: ignore
        except Exception as e:  # pragma: no cover - optional dep
            raise RuntimeError("google-generativeai package is required for Gemini summarization. Install with `pip install google-generativeai`.") from e
        if not api_key:
            raise RuntimeError("GOOGLE_API_KEY (or GEMINI_API_KEY) not set.")
        genai.configure(api_key=api_key)
        self._model_name = model or "gemini-1.5-flash"
        self._timeout = timeout_sec
        self._genai = genai

    def summarize(self, *, title: str, text: str, max_words: int = 160) -> Optional[Enrichment]:
        model = self._genai.GenerativeModel(
            self._model_name,
            system_instruction=SYSTEM_PROMPT,
            generation_config={"response_mime_type": "application/json", "temperature": 0.2},
        )
        resp = model.generate_content(
            build_prompt(title, text, max_words),
            request_options={"timeout": self._timeout},
        )
        return parse_enrichment(getattr(resp, "text", None))


def build_summarizer(options: Optional[SummarizeOptions]) -> Summarizer:
    if not options:
        return NullSummarizer()
    provider = (options.provider or "").lower()
    if provider == "openai":
        return OpenAISummarizer(api_key=options.api_key, model=options.model, timeout_sec=options.timeout_sec)
    if provider in {"gemini", "google", "googleai"}:
        return GeminiSummarizer(api_key=options.api_key, model=options.model, timeout_sec=options.timeout_sec)
    # Unknown provider → no-op
    return NullSummarizer()


def _truncate(s: str, limit: int) -> str:
    if limit <= 0 or len(s) <= limit:
        return s
    return s[:limit]


def enrich_articles(
    items: Iterable[Article],
    summarizer: Summarizer,
    *,
    options: Optional[SummarizeOptions] = None,
) -> List[Article]:
    """Merge summaries into articles, preserving order.

    Any failure for an article leaves that article as it was; enrichment never
    blocks serving.
    """
    opts = options or SummarizeOptions()
    items = list(items)

    def _one(item: Article) -> Article:
        text = _truncate(item.description, opts.max_input_chars)
        if not text:
            return item
        try:
            enrichment = summarizer.summarize(title=item.title, text=text, max_words=opts.max_words)
        except Exception as e:
            logger.warning("Summarization failed for %s: %s", item.id, e)
            return item
        if enrichment is None:
            return item
        return item.with_enrichment(enrichment)

    max_workers = max(1, int(opts.max_workers or 1))
    if max_workers == 1 or len(items) <= 1:
        return [_one(it) for it in items]

    with _fut.ThreadPoolExecutor(max_workers=max_workers) as ex:
        # map() yields in submission order
        return list(ex.map(_one, items))
