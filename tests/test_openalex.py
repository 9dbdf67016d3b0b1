"""
Tests for the OpenAlex adapter.
"""

from med_research.domain.entities import SourceName
from med_research.infrastructure.sources.openalex import MAX_AUTHORS, OpenAlexAdapter, rebuild_abstract

OPENALEX_RESPONSE = {
    "meta": {"count": 1},
    "results": [
        {
            "id": "https://openalex.org/W123",
            "doi": "https://doi.org/10.1001/jama.2019.1234",
            "title": "Rimegepant for acute migraine treatment",
            "publication_year": 2019,
            "type": "article",
            "ids": {
                "openalex": "https://openalex.org/W123",
                "doi": "https://doi.org/10.1001/jama.2019.1234",
                "pmid": "https://pubmed.ncbi.nlm.nih.gov/31300000",
                "pmcid": "https://www.ncbi.nlm.nih.gov/pmc/articles/6700000/",
            },
            "primary_location": {
                "landing_page_url": "https://jamanetwork.com/x",
                "source": {"display_name": "JAMA"},
            },
            "authorships": [{"author": {"display_name": f"Author {i}"}} for i in range(15)],
            "abstract_inverted_index": {"Rimegepant": [0], "was": [1], "effective": [2], "in": [3], "trials.": [4]},
        }
    ],
}


class TestRebuildAbstract:
    """Inverted index reconstruction."""

    def test_order_by_position(self):
        index = {"pain": [2], "Acute": [0], "migraine": [1, 3]}
        assert rebuild_abstract(index) == "Acute migraine pain migraine"

    def test_missing_or_broken(self):
        assert rebuild_abstract(None) == ""
        assert rebuild_abstract({}) == ""
        assert rebuild_abstract({"word": "notalist", "ok": [0]}) == "ok"


class TestOpenAlexSearch:
    """Field mapping."""

    async def test_candidate(self, json_transport):
        adapter = OpenAlexAdapter(transport=json_transport(OPENALEX_RESPONSE))
        outcome = await adapter.search("rimegepant", 10)
        await adapter.close()

        (candidate,) = outcome.candidates
        assert candidate.source == SourceName.OPENALEX
        assert candidate.doi == "10.1001/jama.2019.1234"
        assert candidate.pmid == "31300000"
        assert candidate.external_ids == (("pmcid", "PMC6700000"),)
        assert candidate.journal == "JAMA"
        assert candidate.year == 2019
        assert candidate.abstract == "Rimegepant was effective in trials."
        assert len(candidate.authors) == MAX_AUTHORS
        assert candidate.url == "https://jamanetwork.com/x"

    async def test_request(self, json_transport):
        transport = json_transport(OPENALEX_RESPONSE)
        adapter = OpenAlexAdapter(email="team@example.org", transport=transport)
        await adapter.search("rimegepant", 500)
        await adapter.close()

        assert transport.last_params["search"] == "rimegepant"
        assert transport.last_params["per_page"] == "200"
        assert transport.last_params["mailto"] == "team@example.org"
