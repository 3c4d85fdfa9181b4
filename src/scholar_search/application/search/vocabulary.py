"""
Scholarly vocabulary shared by query generation and refinement.

Term maps are small hand-curated thesaurus entries keyed by lowercase term.
"""

from __future__ import annotations

ACADEMIC_TERMS = frozenset(
    {
        "research", "study", "analysis", "methodology", "framework", "approach",
        "theory", "model", "system", "process", "development", "implementation",
        "evaluation", "assessment", "investigation", "examination", "exploration",
        "findings", "results", "conclusion", "evidence", "data", "empirical",
        "systematic", "comprehensive", "comparative", "experimental", "qualitative",
        "quantitative", "statistical", "analytical", "theoretical", "practical",
    }
)

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "is", "are", "was", "were", "be", "been", "being", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "must", "can", "this", "that", "these", "those", "i",
        "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
    }
)

SYNONYMS: dict[str, tuple[str, ...]] = {
    "research": ("study", "investigation", "inquiry", "examination"),
    "analysis": ("evaluation", "assessment", "review", "examination"),
    "method": ("approach", "technique", "procedure", "methodology"),
    "framework": ("model", "structure", "system", "architecture"),
    "development": ("creation", "construction", "building", "formation"),
    "implementation": ("execution", "deployment", "application", "realization"),
    "evaluation": ("assessment", "analysis", "appraisal", "review"),
    "system": ("framework", "structure", "platform", "architecture"),
}

BROADER_TERMS: dict[str, tuple[str, ...]] = {
    "algorithm": ("computation", "method", "approach"),
    "database": ("system", "technology", "storage"),
    "neural network": ("machine learning", "artificial intelligence", "computation"),
    "regression": ("statistics", "analysis", "modeling"),
    "optimization": ("improvement", "enhancement", "method"),
}

NARROWER_TERMS: dict[str, tuple[str, ...]] = {
    "machine learning": ("neural networks", "deep learning", "supervised learning"),
    "analysis": ("statistical analysis", "data analysis", "regression analysis"),
    "system": ("database system", "operating system", "information system"),
    "method": ("algorithm", "technique", "procedure"),
    "learning": ("supervised learning", "unsupervised learning", "reinforcement learning"),
    "research": ("empirical research", "experimental research", "qualitative research"),
    "study": ("case study", "longitudinal study", "cross-sectional study"),
}

ACADEMIC_VARIANTS: dict[str, tuple[str, ...]] = {
    "study": ("research", "investigation", "empirical study"),
    "method": ("methodology", "approach", "technique"),
    "result": ("findings", "outcomes", "conclusions"),
    "problem": ("challenge", "issue", "research question"),
    "solution": ("approach", "methodology", "framework"),
}


def is_academic(term: str) -> bool:
    return term.lower() in ACADEMIC_TERMS


def is_stop_word(term: str) -> bool:
    return term.lower() in STOP_WORDS


def contains_academic_term(text: str) -> bool:
    """Substring check, so "studying" counts as containing "study"."""
    lowered = text.lower()
    return any(term in lowered for term in ACADEMIC_TERMS)
