"""
Extracted Content Entities

One ``ExtractedContent`` is the normalized form of a user's source material
(an idea card or a draft document) together with the keywords, key phrases
and topics derived from it. Query generation reads it; nothing downstream
mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class SourceType(Enum):
    """Origins that content can be extracted from."""

    IDEAS = "ideas"
    BUILDER = "builder"


@dataclass(frozen=True, slots=True)
class ContentReference:
    """Pointer to a piece of source material (``{source, id}`` in requests)."""

    source: SourceType
    id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentReference:
        return cls(source=SourceType(data["source"]), id=str(data.get("id", "")))


@dataclass(frozen=True)
class ExtractedContent:
    """Normalized text plus derived keywords/topics from one source."""

    source_type: SourceType
    source_id: str
    title: str = ""
    content: str = ""
    keywords: tuple[str, ...] = ()
    key_phrases: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    confidence: float = 0.5
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        # Accept lists from callers but store tuples, keywords de-duplicated in order
        object.__setattr__(self, "keywords", _dedupe(self.keywords))
        object.__setattr__(self, "key_phrases", tuple(self.key_phrases))
        object.__setattr__(self, "topics", tuple(self.topics))
        object.__setattr__(self, "confidence", max(0.0, min(1.0, float(self.confidence))))

    @property
    def has_terms(self) -> bool:
        return bool(self.keywords or self.topics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source_type.value,
            "id": self.source_id,
            "title": self.title,
            "content": self.content,
            "keywords": list(self.keywords),
            "keyPhrases": list(self.key_phrases),
            "topics": list(self.topics),
            "confidence": self.confidence,
            "extractedAt": self.extracted_at.isoformat(),
        }


def _dedupe(terms: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    unique: list[str] = []
    for term in terms:
        key = term.strip().lower()
        if key and key not in seen:
            seen.add(key)
            unique.append(term.strip())
    return tuple(unique)
