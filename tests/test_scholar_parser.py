"""
Tests for the result-page parser.
"""

import pytest
from conftest import result_block, results_page

from scholar_search.infrastructure.scholar import ScholarResultParser, has_no_results, parse_byline
from scholar_search.infrastructure.scholar.parser import (
    extract_citations,
    extract_doi,
    extract_year,
    is_valid_abstract,
    is_valid_author_name,
    resolve_url,
    result_confidence,
    split_author_names,
)


@pytest.fixture
def parser():
    return ScholarResultParser(current_year=2024)


# =============================================================================
# Full pages
# =============================================================================


class TestParsePage:
    def test_three_papers(self, parser, scholar_page):
        results = parser.parse(scholar_page)
        assert [r.title for r in results] == [
            "Attention is all you need",
            "BERT: Pre-training of deep bidirectional transformers for language understanding",
            "Machine learning for natural language processing: a survey",
        ]

    def test_fields(self, parser, scholar_page):
        attention, bert, survey = parser.parse(scholar_page)

        assert attention.authors == ("A Vaswani", "N Shazeer")
        assert attention.journal == "Advances in neural information processing systems"
        assert attention.year == 2017
        assert attention.citations == 100000
        assert attention.url == "https://proceedings.neurips.cc/paper/7181"
        assert attention.abstract.startswith("The dominant sequence transduction models")

        assert bert.authors == ("J Devlin", "MW Chang", "K Lee")
        assert bert.journal == "arXiv preprint arXiv:1810.04805"
        assert bert.year == 2018
        assert bert.doi is None

        assert survey.journal == "IEEE Computational Intelligence Magazine"
        assert survey.citations == 3000

    def test_confidence(self, parser, scholar_page):
        attention = parser.parse(scholar_page)[0]
        assert attention.confidence == pytest.approx(1.0)

    def test_empty_input(self, parser):
        assert parser.parse("") == []
        assert parser.parse("   ") == []

    def test_no_results_page(self, parser):
        html = "<html><body>Your search - xyzzy - did not match any articles.</body></html>"
        assert has_no_results(html)
        assert parser.parse(html) == []

    def test_page_without_blocks(self, parser):
        assert parser.parse("<html><body><p>Nothing here</p></body></html>") == []

    def test_block_without_authors_skipped(self, parser):
        html = results_page(
            result_block("Orphan title", ""),
            result_block("Kept title about graphs", "B Smith - Graph Journal, 2020 - example.org"),
        )
        assert [r.title for r in parser.parse(html)] == ["Kept title about graphs"]

    def test_block_without_heading_skipped(self, parser):
        html = results_page('<div class="gs_r"><div class="gs_a">B Smith - Journal, 2020</div></div>')
        assert parser.parse(html) == []

    def test_markers_removed_from_title(self, parser):
        block = (
            '<div class="gs_r"><h3 class="gs_rt"><span class="gs_ctg2">[PDF]</span>'
            '<a href="https://x.org/p.pdf">Graph neural networks</a></h3>'
            '<div class="gs_a">B Smith - Graph Journal, 2020</div></div>'
        )
        [result] = parser.parse(results_page(block))
        assert result.title == "Graph neural networks"

    def test_heading_without_link(self, parser):
        block = (
            '<div class="gs_r"><h3 class="gs_rt">Citation only entry</h3>'
            '<div class="gs_a">B Smith - Graph Journal, 2020</div></div>'
        )
        [result] = parser.parse(results_page(block))
        assert result.title == "Citation only entry"
        assert result.url is None

    def test_short_snippet_not_abstract(self, parser):
        html = results_page(result_block("A long enough title", "B Smith - Journal X, 2020", snippet="PDF"))
        assert parser.parse(html)[0].abstract is None


# =============================================================================
# Field helpers
# =============================================================================


class TestParseByline:
    def test_authors_journal(self):
        authors, journal = parse_byline("Smith, J., Doe, A. - Nature, 2020 - nature.com")
        assert authors == ["Smith, J.", "Doe, A"]
        assert journal == "Nature"

    def test_truncated_author_list(self):
        authors, _ = parse_byline("A Author, B Author… - Some Journal, 2020 - x.org")
        assert authors == ["A Author", "B Author"]

    def test_no_journal(self):
        authors, journal = parse_byline("A Author")
        assert authors == ["A Author"]
        assert journal is None

    def test_year_only_venue_rejected(self):
        _, journal = parse_byline("A Author - 2020 - x.org")
        assert journal is None

    def test_semicolon_separator(self):
        assert split_author_names("Smith J; Doe A") == ["Smith J", "Doe A"]

    def test_invalid_author_names(self):
        assert not is_valid_author_name("et")
        assert not is_valid_author_name("1234")
        assert not is_valid_author_name("doi:10.1/x")
        assert is_valid_author_name("MW Chang")


class TestExtractors:
    def test_year(self):
        assert extract_year("Published 1850 and 2019", 2024) == 2019
        assert extract_year("Due 2099", 2024) is None

    def test_citations(self):
        assert extract_citations("Cited by 42 Related articles") == 42
        assert extract_citations("Related articles") is None

    def test_doi(self):
        assert extract_doi("see https://doi.org/10.1038/nature14539.") == "10.1038/nature14539"
        assert extract_doi("no identifier here") is None

    def test_resolve_url(self):
        assert resolve_url("/scholar_url?url=https://example.org/p&hl=en") == "https://example.org/p"
        assert resolve_url("https://example.org/direct") == "https://example.org/direct"
        assert resolve_url(None) is None

    def test_abstract_validation(self):
        assert is_valid_abstract("We propose a new method for parsing.")
        assert not is_valid_abstract("Full text")
        assert not is_valid_abstract("12 pages of tables")

    def test_confidence_floor(self):
        assert result_confidence("short", [], None, None) == pytest.approx(0.3)
