"""
Deduplicator - Merge candidates that describe the same work.

Algorithm:
1. Union candidates sharing a normalized DOI
2. Union candidates sharing a PMID or another strong id (NCT, PMCID)
3. Fuzzy pass over the resulting groups: union two groups when their
   representatives have near-identical normalized titles and similar
   first-author surnames (no conflicting DOI/PMID)
4. Build one MergedCandidate per group from the member with the lowest
   source priority rank

The fuzzy pass compares group representatives, and a representative is
exactly the record that ends up in the output, so running the deduplicator
again on its own output finds nothing new to merge.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Any

from med_research.domain.entities import (
    Candidate,
    MergedCandidate,
    SourceName,
    build_priority_ranks,
)

logger = logging.getLogger(__name__)

TITLE_SIMILARITY_THRESHOLD = 0.92
TITLE_ONLY_SIMILARITY_THRESHOLD = 0.97
AUTHOR_SIMILARITY_THRESHOLD = 0.8
MIN_FUZZY_TITLE_LENGTH = 15


class UnionFind:
    """
    Union-Find (Disjoint Set Union) data structure for efficient deduplication.

    Time Complexity:
    - find: O(α(n)) amortized
    - union: O(α(n)) amortized
    """

    def __init__(self, n: int):
        """Initialize with n elements (0 to n-1)."""
        self.parent = list(range(n))
        self.rank = [0] * n

    def find(self, x: int) -> int:
        """Find root with path compression."""
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> bool:
        """Union by rank. Returns True if x and y were in different sets."""
        px, py = self.find(x), self.find(y)
        if px == py:
            return False
        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True

    def get_groups(self) -> dict[int, list[int]]:
        """Get all groups as {root: [members]} with members in input order."""
        groups: dict[int, list[int]] = {}
        for i in range(len(self.parent)):
            groups.setdefault(self.find(i), []).append(i)
        return groups


@dataclass
class DeduplicationStats:
    """Counters for one deduplication run."""

    input_count: int = 0
    output_count: int = 0
    merged_by_doi: int = 0
    merged_by_pmid: int = 0
    merged_by_external_id: int = 0
    merged_by_title: int = 0

    @property
    def duplicates_removed(self) -> int:
        return self.input_count - self.output_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "input": self.input_count,
            "output": self.output_count,
            "duplicates_removed": self.duplicates_removed,
            "by_doi": self.merged_by_doi,
            "by_pmid": self.merged_by_pmid,
            "by_external_id": self.merged_by_external_id,
            "by_title": self.merged_by_title,
        }


def normalize_title(title: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    if not title:
        return ""
    title = title.lower()
    title = re.sub(r"<[^>]+>", " ", title)
    title = re.sub(r"[^\w\s]", " ", title)
    return re.sub(r"\s+", " ", title).strip()


def similarity(a: str, b: str, threshold: float = TITLE_SIMILARITY_THRESHOLD) -> float:
    """
    Ratio in [0, 1].

    Cheap upper bounds are checked first; when one already falls below
    ``threshold`` that bound is returned instead of the exact ratio.
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    matcher = SequenceMatcher(None, a, b, autojunk=False)
    if matcher.real_quick_ratio() < threshold:
        return matcher.real_quick_ratio()
    if matcher.quick_ratio() < threshold:
        return matcher.quick_ratio()
    return matcher.ratio()


class Deduplicator:
    """
    Merges duplicate candidates across sources.

    Args:
        source_priority: Ordered source list, most preferred first. Sources not
            listed keep their default relative order after the listed ones.
    """

    def __init__(self, source_priority: Sequence[SourceName] | None = None) -> None:
        self._ranks = build_priority_ranks(list(source_priority) if source_priority else None)
        self.last_stats = DeduplicationStats()

    def rank_of(self, source: SourceName) -> int:
        return self._ranks[source]

    def deduplicate(self, candidates: Iterable[Candidate]) -> list[MergedCandidate]:
        """Return one MergedCandidate per distinct work, best-ranked first."""
        items = list(candidates)
        stats = DeduplicationStats(input_count=len(items))
        if not items:
            self.last_stats = stats
            return []

        uf = UnionFind(len(items))
        self._union_strong_ids(items, uf, stats)
        self._union_fuzzy(items, uf, stats)

        merged = [self._merge_group([items[i] for i in members]) for members in uf.get_groups().values()]
        merged.sort(key=lambda m: (m.source_priority_rank, m.source_position, m.title.lower()))

        stats.output_count = len(merged)
        self.last_stats = stats
        logger.debug(f"Deduplication: {stats.to_dict()}")
        return merged

    # =========================================================================
    # Matching
    # =========================================================================

    def _union_strong_ids(self, items: list[Candidate], uf: UnionFind, stats: DeduplicationStats) -> None:
        doi_to_idx: dict[str, int] = {}
        pmid_to_idx: dict[str, int] = {}
        ext_to_idx: dict[tuple[str, str], int] = {}

        # Step 1: DOI
        for i, item in enumerate(items):
            if not item.doi:
                continue
            if item.doi in doi_to_idx:
                if uf.union(i, doi_to_idx[item.doi]):
                    stats.merged_by_doi += 1
            else:
                doi_to_idx[item.doi] = i

        # Step 2: PMID and other strong ids
        for i, item in enumerate(items):
            if item.pmid:
                if item.pmid in pmid_to_idx:
                    if uf.union(i, pmid_to_idx[item.pmid]):
                        stats.merged_by_pmid += 1
                else:
                    pmid_to_idx[item.pmid] = i
            for key, value in item.external_ids:
                ext_key = (key, value.upper())
                if ext_key in ext_to_idx:
                    if uf.union(i, ext_to_idx[ext_key]):
                        stats.merged_by_external_id += 1
                else:
                    ext_to_idx[ext_key] = i

    def _union_fuzzy(self, items: list[Candidate], uf: UnionFind, stats: DeduplicationStats) -> None:
        reps = [
            (min(members, key=lambda i: self._member_key(items[i], i)))
            for members in uf.get_groups().values()
        ]
        titles = {i: normalize_title(items[i].title) for i in reps}

        for a_pos, a in enumerate(reps):
            for b in reps[a_pos + 1:]:
                if uf.find(a) == uf.find(b):
                    continue
                if self._is_fuzzy_match(items[a], items[b], titles[a], titles[b]):
                    uf.union(a, b)
                    stats.merged_by_title += 1

    @staticmethod
    def _is_fuzzy_match(a: Candidate, b: Candidate, title_a: str, title_b: str) -> bool:
        if len(title_a) < MIN_FUZZY_TITLE_LENGTH or len(title_b) < MIN_FUZZY_TITLE_LENGTH:
            return False
        # Distinct strong ids mean distinct works, however similar the titles
        if a.doi and b.doi and a.doi != b.doi:
            return False
        if a.pmid and b.pmid and a.pmid != b.pmid:
            return False

        surname_a, surname_b = a.first_author_surname, b.first_author_surname
        if surname_a and surname_b:
            if similarity(surname_a, surname_b, AUTHOR_SIMILARITY_THRESHOLD) < AUTHOR_SIMILARITY_THRESHOLD:
                return False
            return similarity(title_a, title_b) >= TITLE_SIMILARITY_THRESHOLD
        return similarity(title_a, title_b, TITLE_ONLY_SIMILARITY_THRESHOLD) >= TITLE_ONLY_SIMILARITY_THRESHOLD

    # =========================================================================
    # Merging
    # =========================================================================

    def _member_key(self, item: Candidate, index: int) -> tuple[int, int, int]:
        return (self._ranks[item.source], item.source_position, index)

    def _merge_group(self, members: list[Candidate]) -> MergedCandidate:
        indexed = list(enumerate(members))
        _, primary = min(indexed, key=lambda pair: self._member_key(pair[1], pair[0]))

        sources: set[SourceName] = set()
        merged_count = 0
        for member in members:
            sources.update(getattr(member, "contributing_sources", None) or {member.source})
            merged_count += getattr(member, "merged_count", 1)

        return MergedCandidate(
            title=primary.title,
            source=primary.source,
            abstract=primary.abstract,
            authors=primary.authors,
            journal=primary.journal,
            year=primary.year,
            doi=primary.doi,
            pmid=primary.pmid,
            external_ids=primary.external_ids,
            url=primary.url,
            publication_types=primary.publication_types,
            source_position=primary.source_position,
            contributing_sources=frozenset(sources),
            source_priority_rank=self._ranks[primary.source],
            merged_count=merged_count,
        )


def deduplicate_candidates(
    candidates: Iterable[Candidate],
    source_priority: Sequence[SourceName] | None = None,
) -> list[MergedCandidate]:
    """Deduplicate candidates (convenience function)."""
    return Deduplicator(source_priority).deduplicate(candidates)
