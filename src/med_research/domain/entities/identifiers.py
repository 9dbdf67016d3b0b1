"""
Identifier normalization for strong identity keys (DOI, PMID, NCT, PMCID).

All helpers return None for values that do not validate, so a garbage id from
an upstream payload never becomes a merge key.
"""

from __future__ import annotations

import re

_DOI_PREFIXES = (
    "https://doi.org/",
    "http://doi.org/",
    "https://dx.doi.org/",
    "http://dx.doi.org/",
    "doi.org/",
    "doi:",
)
_DOI_PATTERN = re.compile(r"^10\.\d{4,9}/\S+$")
_PMID_PATTERN = re.compile(r"^\d{1,9}$")
_NCT_PATTERN = re.compile(r"^NCT\d{8}$")
_PMCID_PATTERN = re.compile(r"^PMC\d+$")


def normalize_doi(value: object) -> str | None:
    """Strip resolver prefixes, lowercase and validate a DOI."""
    if not isinstance(value, str):
        return None
    doi = value.strip()
    lowered = doi.lower()
    for prefix in _DOI_PREFIXES:
        if lowered.startswith(prefix):
            doi = doi[len(prefix):]
            break
    doi = doi.strip().rstrip(".").lower()
    if not _DOI_PATTERN.match(doi):
        return None
    return doi


def normalize_pmid(value: object) -> str | None:
    """Return a PMID as a digit string, or None."""
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    pmid = value.strip()
    if pmid.lower().startswith("https://pubmed.ncbi.nlm.nih.gov/"):
        pmid = pmid[len("https://pubmed.ncbi.nlm.nih.gov/"):].rstrip("/")
    pmid = pmid.removeprefix("PMID:").strip()
    if not _PMID_PATTERN.match(pmid) or int(pmid) == 0:
        return None
    return pmid


def normalize_nct_id(value: object) -> str | None:
    """Validate a ClinicalTrials.gov registry id (NCT + 8 digits)."""
    if not isinstance(value, str):
        return None
    nct = value.strip().upper()
    return nct if _NCT_PATTERN.match(nct) else None


def normalize_pmcid(value: object) -> str | None:
    """Validate a PubMed Central id, adding the PMC prefix if missing."""
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    pmcid = value.strip().upper()
    if pmcid.isdigit():
        pmcid = f"PMC{pmcid}"
    return pmcid if _PMCID_PATTERN.match(pmcid) else None
