"""
Cochrane Library adapter - Cochrane systematic reviews through Europe PMC.

The Cochrane Library has no open search API; its reviews are indexed by
Europe PMC under the journal "Cochrane Database Syst Rev".
"""

from __future__ import annotations

from med_research.domain.entities import SourceName

from .europe_pmc import EuropePMCAdapter

COCHRANE_JOURNAL_FILTER = 'JOURNAL:"Cochrane Database Syst Rev"'


class CochraneAdapter(EuropePMCAdapter):
    """Cochrane Database of Systematic Reviews."""

    source = SourceName.COCHRANE
    _service_name = "Cochrane Library"

    def prepare_query(self, query: str) -> str:
        return f"({query}) AND {COCHRANE_JOURNAL_FILTER}"
