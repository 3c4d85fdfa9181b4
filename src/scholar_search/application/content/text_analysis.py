"""
Text Analysis - keyword, key phrase and topic extraction

Purely local heuristics used to turn free text (idea notes, draft documents)
into the terms query generation works from. No NLP models, no I/O.

Example:
    >>> analysis = analyze_text("Machine learning improves text analysis.")
    >>> analysis.keywords[:2]
    ['machine', 'learning']
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "is", "are", "was", "were", "be", "been", "being", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "must", "can",
    }
)

TOPIC_TERMS = frozenset(
    {
        "research", "study", "analysis", "methodology", "results", "conclusion",
        "theory", "model", "framework", "approach", "system", "process",
        "development", "implementation", "evaluation", "assessment",
    }
)

COMMON_NOUNS = frozenset(
    {
        "research", "study", "analysis", "method", "system", "model", "theory",
        "process", "development", "implementation", "evaluation", "assessment",
        "approach", "framework", "result", "conclusion", "data", "information",
    }
)

MAX_KEYWORDS = 20
MAX_KEY_PHRASES = 15
MAX_TOPICS = 10

_WHITESPACE = re.compile(r"\s+")
_SPECIAL_CHARS = re.compile(r"[^\w\s.,!?-]")
_NON_WORD = re.compile(r"[^\w]")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


@dataclass
class TextAnalysis:
    """Terms and statistics derived from one piece of text."""

    content: str
    keywords: list[str] = field(default_factory=list)
    key_phrases: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    readability_score: float = 0.0
    word_count: int = 0
    sentence_count: int = 0


def analyze_text(content: str) -> TextAnalysis:
    """Clean ``content`` and extract keywords, key phrases and topics."""
    cleaned = clean_text(content)
    tokens = tokenize(cleaned)
    sentences = _split_sentences(cleaned)

    return TextAnalysis(
        content=cleaned,
        keywords=extract_keywords(tokens),
        key_phrases=extract_key_phrases(tokens),
        topics=extract_topics(tokens),
        readability_score=calculate_readability(tokens, sentences),
        word_count=len(tokens),
        sentence_count=len(sentences),
    )


def clean_text(content: str) -> str:
    collapsed = _WHITESPACE.sub(" ", content)
    return _SPECIAL_CHARS.sub(" ", collapsed).strip()


def tokenize(content: str) -> list[str]:
    tokens = []
    for word in content.split():
        stripped = _NON_WORD.sub("", word)
        if stripped:
            tokens.append(stripped)
    return tokens


def extract_keywords(tokens: list[str]) -> list[str]:
    """Most frequent non-stop-word tokens, lowercased."""
    frequencies = Counter(t.lower() for t in tokens if t.lower() not in STOP_WORDS)
    # most_common keeps first-seen order for equal counts
    return [term for term, _ in frequencies.most_common(MAX_KEYWORDS)]


def extract_key_phrases(tokens: list[str]) -> list[str]:
    """Bigrams then trigrams that neither start nor end with a stop word."""
    phrases: list[str] = []
    for size in (2, 3):
        for i in range(len(tokens) - size + 1):
            window = tokens[i : i + size]
            if _is_meaningful_phrase(window):
                phrases.append(" ".join(window))
    return phrases[:MAX_KEY_PHRASES]


def extract_topics(tokens: list[str]) -> list[str]:
    topics: dict[str, None] = {}
    for index, token in enumerate(tokens):
        if token.lower() in TOPIC_TERMS:
            topics.setdefault(token)
        if index < len(tokens) - 1:
            following = tokens[index + 1]
            if _is_noun(token) and _is_noun(following):
                topics.setdefault(f"{token} {following}")
    return list(topics)[:MAX_TOPICS]


def calculate_readability(tokens: list[str], sentences: list[str]) -> float:
    """Shorter sentences score higher; 15 words per sentence scores 1.0."""
    if not sentences:
        return 0.0
    avg_words = len(tokens) / len(sentences)
    return max(0.0, min(1.0, 1 - (avg_words - 15) / 20))


def _split_sentences(content: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT.split(content) if s.strip()]


def _is_meaningful_phrase(words: list[str]) -> bool:
    if len(words) < 2:
        return False
    return words[0].lower() not in STOP_WORDS and words[-1].lower() not in STOP_WORDS


def _is_noun(word: str) -> bool:
    # Rough heuristic: known nouns, or anything longer than 3 chars
    return word.lower() in COMMON_NOUNS or len(word) > 3
