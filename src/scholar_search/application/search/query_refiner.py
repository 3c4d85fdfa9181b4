"""
QueryRefiner - Breadth Analysis and Refined Variants for a Query

Given an existing query string and the content it came from, produces:
1. Breadth analysis (score, classification, specificity level, suggestions)
2. Alternative terms in five pools (synonym, related, broader, narrower,
   academic variant)
3. Validation (length, academic vocabulary, boolean operators)
4. Prioritized optimization recommendations with before/after queries
5. Up to five refined query variants

Breadth score semantics: 0 = very narrow, 1 = very broad, 0.5 = balanced.
Classification thresholds: < 0.4 too narrow, > 0.6 too broad.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from scholar_search.domain.entities import (
    AlternativeTerms,
    BreadthAnalysis,
    BreadthClassification,
    BreadthSuggestion,
    ChangeType,
    ExpectedResults,
    ExtractedContent,
    Impact,
    OptimizationRecommendation,
    QueryChange,
    QueryRefinement,
    RecommendationType,
    RefinedQuery,
    RefinementType,
    SpecificityLevel,
    TermCategory,
    TermSuggestion,
    ValidationResult,
)

from .vocabulary import (
    ACADEMIC_VARIANTS,
    BROADER_TERMS,
    NARROWER_TERMS,
    SYNONYMS,
    contains_academic_term,
    is_academic,
    is_stop_word,
)

NARROW_THRESHOLD = 0.4
BROAD_THRESHOLD = 0.6
MIN_QUERY_LENGTH = 3
MAX_QUERY_LENGTH = 200
MAX_REFINED_QUERIES = 5

_PARENS = re.compile(r"[()]")
_OPERATOR_BETWEEN = re.compile(r"\s+(AND|OR)\s+", re.IGNORECASE)
_AND = re.compile(r"\bAND\b")
_OR = re.compile(r"\bOR\b")
_WORD = re.compile(r"\b\w+\b")

# (pool cap, confidence) per category
_POOLS: dict[TermCategory, tuple[int, float]] = {
    TermCategory.SYNONYM: (10, 0.8),
    TermCategory.RELATED: (10, 0.7),
    TermCategory.BROADER: (8, 0.6),
    TermCategory.NARROWER: (8, 0.7),
    TermCategory.ACADEMIC: (6, 0.9),
}

_REASONING = {
    TermCategory.SYNONYM: 'Synonym for "{term}"',
    TermCategory.RELATED: 'Related to "{term}" based on content context',
    TermCategory.BROADER: 'Broader concept encompassing "{term}"',
    TermCategory.NARROWER: 'More specific aspect of "{term}"',
    TermCategory.ACADEMIC: 'Academic terminology for "{term}"',
}


def extract_query_terms(query: str) -> list[str]:
    """Lowercased, de-duplicated content words of a query (operators and quotes removed)."""
    text = _PARENS.sub(" ", query)
    text = _OPERATOR_BETWEEN.sub(" ", text)
    text = text.replace('"', "")
    terms: list[str] = []
    for token in text.split():
        if len(token) > 2 and not is_stop_word(token):
            lowered = token.lower()
            if lowered not in terms:
                terms.append(lowered)
    return terms


def validate_query(query: str) -> ValidationResult:
    issues: list[str] = []
    suggestions: list[str] = []
    confidence = 1.0

    if len(query) < MIN_QUERY_LENGTH:
        issues.append("Query is too short and may not be specific enough")
        suggestions.append("Add more specific terms or phrases")
        confidence -= 0.3
    if len(query) > MAX_QUERY_LENGTH:
        issues.append("Query is too long and may be overly restrictive")
        suggestions.append("Remove less important terms or use broader concepts")
        confidence -= 0.2

    if not contains_academic_term(query):
        suggestions.append('Consider adding academic terms like "research", "study", or "analysis"')
        confidence -= 0.1
    if "AND" not in query and "OR" not in query and '"' not in query:
        suggestions.append("Consider using search operators (AND, OR) or quoted phrases for better results")
        confidence -= 0.1

    return ValidationResult(
        is_valid=not issues,
        issues=tuple(issues),
        suggestions=tuple(suggestions),
        confidence=max(0.0, confidence),
    )


class QueryRefiner:
    """
    Analyze and refine an existing query.

    Usage:
        refiner = QueryRefiner()
        refinement = refiner.refine_query('"machine learning"', contents)
        refinement.breadth_analysis.classification   # BreadthClassification.TOO_NARROW
    """

    def refine_query(self, query: str, contents: Sequence[ExtractedContent] = ()) -> QueryRefinement:
        breadth = self.analyze_breadth(query)
        alternatives = self.generate_alternative_terms(query, contents)
        return QueryRefinement(
            breadth_analysis=breadth,
            alternative_terms=alternatives,
            validation_results=validate_query(query),
            optimization_recommendations=tuple(self.generate_recommendations(query, breadth)),
            refined_queries=tuple(self.generate_refined_queries(query, breadth, alternatives)),
        )

    # =========================================================================
    # Breadth
    # =========================================================================

    def analyze_breadth(self, query: str) -> BreadthAnalysis:
        terms = extract_query_terms(query)
        term_count = len(terms)
        has_quotes = '"' in query
        and_count = len(_AND.findall(query))
        or_count = len(_OR.findall(query))

        score = 0.5
        if term_count <= 1:
            score -= 0.4
        elif term_count <= 2:
            score -= 0.2
        elif term_count >= 8:
            score += 0.3

        if and_count > or_count:
            score -= 0.1
        elif or_count > and_count:
            score += 0.1

        if has_quotes:
            score -= 0.2

        academic_count = sum(1 for t in terms if is_academic(t))
        if term_count and academic_count / term_count > 0.5:
            score -= 0.1

        # Round away float noise so 0.5 - 0.4 lands on 0.1
        score = round(max(0.0, min(1.0, score)), 4)
        classification = self.classify(score)

        reasoning = f"Query has {term_count} terms with breadth score of {score:.2f}. "
        if classification is BreadthClassification.TOO_NARROW:
            reasoning += "This query may be too restrictive and could miss relevant results."
        elif classification is BreadthClassification.TOO_BROAD:
            reasoning += "This query may return too many irrelevant results."
        else:
            reasoning += "This query appears to have good balance between specificity and breadth."

        return BreadthAnalysis(
            breadth_score=score,
            classification=classification,
            reasoning=reasoning,
            term_count=term_count,
            specificity_level=self.specificity_level(score),
            suggestions=tuple(self._breadth_suggestions(classification, term_count, has_quotes, and_count, or_count)),
        )

    @staticmethod
    def classify(score: float) -> BreadthClassification:
        if score < NARROW_THRESHOLD:
            return BreadthClassification.TOO_NARROW
        if score > BROAD_THRESHOLD:
            return BreadthClassification.TOO_BROAD
        return BreadthClassification.OPTIMAL

    @staticmethod
    def specificity_level(score: float) -> SpecificityLevel:
        if score < 0.2:
            return SpecificityLevel.VERY_SPECIFIC
        if score < 0.4:
            return SpecificityLevel.SPECIFIC
        if score < 0.6:
            return SpecificityLevel.MODERATE
        if score < 0.8:
            return SpecificityLevel.BROAD
        return SpecificityLevel.VERY_BROAD

    @staticmethod
    def _breadth_suggestions(
        classification: BreadthClassification,
        term_count: int,
        has_quotes: bool,
        and_count: int,
        or_count: int,
    ) -> list[BreadthSuggestion]:
        suggestions: list[BreadthSuggestion] = []
        if classification is BreadthClassification.TOO_NARROW:
            if term_count <= 2:
                suggestions.append(
                    BreadthSuggestion(
                        "broaden",
                        "Add related terms or synonyms to capture more relevant results",
                        "Query has very few terms which may be overly restrictive",
                        Impact.HIGH,
                    )
                )
            if and_count > 2:
                suggestions.append(
                    BreadthSuggestion(
                        "broaden",
                        "Replace some AND operators with OR to include alternative terms",
                        "Multiple AND operators create very restrictive conditions",
                        Impact.MEDIUM,
                    )
                )
            if has_quotes:
                suggestions.append(
                    BreadthSuggestion(
                        "broaden",
                        "Remove quotes from some phrases to allow for variations",
                        "Quoted phrases require exact matches which may be too restrictive",
                        Impact.MEDIUM,
                    )
                )
        elif classification is BreadthClassification.TOO_BROAD:
            if term_count >= 8:
                suggestions.append(
                    BreadthSuggestion(
                        "narrow",
                        "Focus on the most important 3-5 terms to improve precision",
                        "Too many terms can dilute search focus",
                        Impact.HIGH,
                    )
                )
            if or_count > and_count:
                suggestions.append(
                    BreadthSuggestion(
                        "narrow",
                        "Use AND operators to require multiple concepts simultaneously",
                        "OR operators create broad conditions that may include irrelevant results",
                        Impact.MEDIUM,
                    )
                )
            suggestions.append(
                BreadthSuggestion(
                    "narrow",
                    "Add specific academic terms or methodological keywords",
                    "More specific terminology will help filter results",
                    Impact.MEDIUM,
                )
            )
        else:
            suggestions.append(
                BreadthSuggestion(
                    "refocus",
                    "Query appears well-balanced, consider minor adjustments based on initial results",
                    "Current breadth seems appropriate for academic search",
                    Impact.LOW,
                )
            )
        return suggestions

    # =========================================================================
    # Alternative terms
    # =========================================================================

    def generate_alternative_terms(
        self,
        query: str,
        contents: Sequence[ExtractedContent] = (),
    ) -> AlternativeTerms:
        terms = extract_query_terms(query)
        content_terms = [t for c in contents for t in (*c.keywords, *c.topics)]

        pools: dict[TermCategory, list[TermSuggestion]] = {category: [] for category in _POOLS}
        for term in terms:
            candidates = {
                TermCategory.SYNONYM: SYNONYMS.get(term, ()),
                TermCategory.RELATED: self._related_terms(term, content_terms),
                TermCategory.BROADER: BROADER_TERMS.get(term, ()),
                TermCategory.NARROWER: NARROWER_TERMS.get(term, ()),
                TermCategory.ACADEMIC: ACADEMIC_VARIANTS.get(term, ()),
            }
            for category, found in candidates.items():
                confidence = _POOLS[category][1]
                reasoning = _REASONING[category].format(term=term)
                pools[category].extend(
                    TermSuggestion(word, confidence, reasoning, category, original_term=term) for word in found
                )

        def capped(category: TermCategory) -> tuple[TermSuggestion, ...]:
            return tuple(_dedupe_suggestions(pools[category])[: _POOLS[category][0]])

        return AlternativeTerms(
            synonyms=capped(TermCategory.SYNONYM),
            related_terms=capped(TermCategory.RELATED),
            broader_terms=capped(TermCategory.BROADER),
            narrower_terms=capped(TermCategory.NARROWER),
            academic_variants=capped(TermCategory.ACADEMIC),
        )

    @staticmethod
    def _related_terms(term: str, content_terms: Sequence[str]) -> list[str]:
        related = [
            t for t in content_terms if t.lower() != term.lower() and len(t) > 2 and not is_stop_word(t)
        ]
        return related[:5]

    # =========================================================================
    # Recommendations
    # =========================================================================

    def generate_recommendations(self, query: str, breadth: BreadthAnalysis) -> list[OptimizationRecommendation]:
        terms = extract_query_terms(query)
        recommendations: list[OptimizationRecommendation] = []

        if breadth.classification is BreadthClassification.TOO_NARROW:
            recommendations.append(
                OptimizationRecommendation(
                    type=RecommendationType.ADD_TERM,
                    description="Add broader or alternative terms to increase result coverage",
                    impact=Impact.HIGH,
                    priority=1,
                    before_query=query,
                    after_query=f"{query} OR (related terms)",
                    reasoning="Query is too restrictive and may miss relevant results",
                )
            )
            if "AND" in query:
                recommendations.append(
                    OptimizationRecommendation(
                        type=RecommendationType.REPLACE_TERM,
                        description="Replace some AND operators with OR to broaden search",
                        impact=Impact.MEDIUM,
                        priority=2,
                        before_query=query,
                        after_query=_AND.sub("OR", query),
                        reasoning="Multiple AND conditions create overly restrictive search",
                    )
                )

        if breadth.classification is BreadthClassification.TOO_BROAD:
            recommendations.append(
                OptimizationRecommendation(
                    type=RecommendationType.ADD_TERM,
                    description="Add more specific academic or methodological terms",
                    impact=Impact.HIGH,
                    priority=1,
                    before_query=query,
                    after_query=f"{query} AND (methodology OR framework)",
                    reasoning="Query needs more specificity to filter irrelevant results",
                )
            )
            if len(terms) > 6:
                recommendations.append(
                    OptimizationRecommendation(
                        type=RecommendationType.REMOVE_TERM,
                        description="Remove less important terms to focus the search",
                        impact=Impact.MEDIUM,
                        priority=2,
                        before_query=query,
                        after_query=" ".join(terms[:5]),
                        reasoning="Too many terms can dilute search effectiveness",
                    )
                )

        if not any(is_academic(t) for t in terms):
            recommendations.append(
                OptimizationRecommendation(
                    type=RecommendationType.ADD_TERM,
                    description="Add academic context terms for scholarly relevance",
                    impact=Impact.MEDIUM,
                    priority=3,
                    before_query=query,
                    after_query=f"({query}) AND (research OR study OR analysis)",
                    reasoning="Academic terms improve relevance for scholarly search",
                )
            )

        if "AND" not in query and "OR" not in query and len(terms) > 1:
            recommendations.append(
                OptimizationRecommendation(
                    type=RecommendationType.ADD_OPERATOR,
                    description="Add search operators to clarify term relationships",
                    impact=Impact.MEDIUM,
                    priority=4,
                    before_query=query,
                    after_query=_quoted(terms, "AND"),
                    reasoning="Search operators improve query precision and control",
                )
            )

        if len(query) > 150:
            recommendations.append(
                OptimizationRecommendation(
                    type=RecommendationType.RESTRUCTURE,
                    description="Simplify query structure for better search engine compatibility",
                    impact=Impact.LOW,
                    priority=5,
                    before_query=query,
                    after_query=self._operator_optimized(query),
                    reasoning="Very long queries may not be processed effectively by search engines",
                )
            )

        return sorted(recommendations, key=lambda r: r.priority)

    # =========================================================================
    # Refined variants
    # =========================================================================

    def generate_refined_queries(
        self,
        query: str,
        breadth: BreadthAnalysis,
        alternatives: AlternativeTerms,
    ) -> list[RefinedQuery]:
        refined: list[RefinedQuery] = []
        classification = breadth.classification

        if classification in (BreadthClassification.TOO_NARROW, BreadthClassification.OPTIMAL):
            refined.append(
                RefinedQuery(
                    query=self._broadened(query, alternatives),
                    refinement_type=RefinementType.BROADENED,
                    confidence=0.8,
                    expected_results=ExpectedResults.MORE,
                    description="Broadened version using synonyms and related terms",
                    changes=(
                        QueryChange(
                            ChangeType.ADDED,
                            "alternative terms",
                            "Added synonyms and related terms to capture more results",
                        ),
                    ),
                )
            )

        if classification in (BreadthClassification.TOO_BROAD, BreadthClassification.OPTIMAL):
            refined.append(
                RefinedQuery(
                    query=self._narrowed(query, alternatives),
                    refinement_type=RefinementType.NARROWED,
                    confidence=0.9,
                    expected_results=ExpectedResults.FEWER,
                    description="Narrowed version with more specific terms",
                    changes=(
                        QueryChange(
                            ChangeType.ADDED,
                            "specific terms",
                            "Added more specific academic terms for precision",
                        ),
                    ),
                )
            )

        refined.append(
            RefinedQuery(
                query=self._academic_enhanced(query, alternatives),
                refinement_type=RefinementType.ACADEMIC_ENHANCED,
                confidence=0.85,
                expected_results=ExpectedResults.SIMILAR,
                description="Enhanced with academic terminology",
                changes=(
                    QueryChange(
                        ChangeType.ADDED,
                        "academic terms",
                        "Added academic variants to improve scholarly relevance",
                    ),
                ),
            )
        )

        refined.append(
            RefinedQuery(
                query=self._operator_optimized(query),
                refinement_type=RefinementType.OPERATOR_OPTIMIZED,
                confidence=0.75,
                expected_results=ExpectedResults.SIMILAR,
                description="Optimized search operators and structure",
                changes=(
                    QueryChange(
                        ChangeType.REPLACED,
                        "search operators",
                        "Optimized operator usage for better search control",
                    ),
                ),
            )
        )
        return refined[:MAX_REFINED_QUERIES]

    @staticmethod
    def _broadened(query: str, alternatives: AlternativeTerms) -> str:
        synonyms = [s.term for s in alternatives.synonyms[:3]]
        if not synonyms:
            return query
        return f"({query}) OR ({_quoted(synonyms, 'OR')})"

    @staticmethod
    def _narrowed(query: str, alternatives: AlternativeTerms) -> str:
        academic = [a.term for a in alternatives.academic_variants[:2]]
        if not academic:
            return f"({query}) AND (methodology OR framework)"
        return f"({query}) AND ({_quoted(academic, 'OR')})"

    @staticmethod
    def _academic_enhanced(query: str, alternatives: AlternativeTerms) -> str:
        variants = [a.term for a in alternatives.academic_variants[:2]]
        if not variants:
            return f"({query}) AND (research OR study)"

        def replace(match: re.Match[str]) -> str:
            word = match.group(0).lower()
            for variant in variants:
                if word in variant.lower().split():
                    return f'"{variant}"'
            return match.group(0)

        return _WORD.sub(replace, query)

    @staticmethod
    def _operator_optimized(query: str) -> str:
        terms = extract_query_terms(query)
        if len(terms) <= 1:
            return query
        optimized = _quoted(terms[:2], "AND")
        secondary = terms[2:4]
        if secondary:
            optimized += f" AND ({_quoted(secondary, 'OR')})"
        return optimized


def _dedupe_suggestions(suggestions: list[TermSuggestion]) -> list[TermSuggestion]:
    seen: set[str] = set()
    unique: list[TermSuggestion] = []
    for suggestion in suggestions:
        key = suggestion.term.lower()
        if key not in seen:
            seen.add(key)
            unique.append(suggestion)
    return unique


def _quoted(terms: Sequence[str], operator: str) -> str:
    return f" {operator} ".join(f'"{t}"' for t in terms)
