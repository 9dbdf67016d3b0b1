"""
Normalization helpers shared by the source adapters.

Every upstream API names and nests the same bibliographic fields differently.
These helpers turn the common shapes into plain values for Candidate.
"""

from __future__ import annotations

import html
import re
from collections.abc import Iterable
from typing import Any

# Stringified structures that must never reach a citation
_OBJECT_ARTIFACT = re.compile(r"^\[object \w+\]$|^\{.*\}$|^\[.*\]$|^<.*object at 0x[0-9a-f]+>$", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")
_YEAR = re.compile(r"(1[89]\d{2}|2[01]\d{2})")

MIN_YEAR = 1800
MAX_YEAR = 2100


def clean_text(value: Any) -> str:
    """
    Plain text from a possibly marked-up string.

    Strips JATS/HTML tags (CrossRef, Europe PMC), unescapes entities and
    collapses whitespace. Non-strings become "".
    """
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return clean_text(" ".join(str(part) for part in value if part is not None))
    if not isinstance(value, str):
        value = str(value)
    text = _TAG.sub(" ", value)
    text = html.unescape(text)
    return _WHITESPACE.sub(" ", text).strip()


def first_text(value: Any) -> str:
    """First non-empty string of a list (CrossRef titles are lists), or the value itself."""
    if isinstance(value, (list, tuple)):
        for item in value:
            text = clean_text(item)
            if text:
                return text
        return ""
    return clean_text(value)


def _valid_name(name: str) -> str | None:
    name = clean_text(name).strip(" ,;")
    if not name or _OBJECT_ARTIFACT.match(name):
        return None
    return name


def flatten_author(author: Any) -> str | None:
    """
    Display name from one author entry, or None when it cannot be flattened.

    Accepted shapes:
        "Jane Smith"
        {"name": ...} / {"fullName": ...} / {"display_name": ...}
        {"given": ..., "family": ...}                     (CrossRef)
        {"first_name": ..., "last_name": ...}
        {"firstName": ..., "lastName": ...}               (Europe PMC)
        {"author": {"display_name": ...}}                 (OpenAlex authorships)
        {"LastName": ..., "ForeName": ...} / {"CollectiveName": ...}  (PubMed)
    """
    if isinstance(author, str):
        return _valid_name(author)
    if not isinstance(author, dict):
        return None

    nested = author.get("author")
    if isinstance(nested, dict):
        return flatten_author(nested)

    for key in ("name", "fullName", "display_name", "CollectiveName"):
        value = author.get(key)
        if isinstance(value, str) and value.strip():
            return _valid_name(value)

    # PubMed style "Smith JA" when initials are known
    last_name, initials = author.get("LastName"), author.get("Initials")
    if isinstance(last_name, str) and last_name.strip() and isinstance(initials, str) and initials.strip():
        return _valid_name(f"{last_name} {initials}")

    for given_key, family_key in (
        ("ForeName", "LastName"),
        ("given", "family"),
        ("first_name", "last_name"),
        ("firstName", "lastName"),
    ):
        family = author.get(family_key)
        if not isinstance(family, str) or not family.strip():
            continue
        given = author.get(given_key)
        given = given if isinstance(given, str) else ""
        return _valid_name(f"{given} {family}")
    return None


def flatten_authors(authors: Any, limit: int | None = None) -> tuple[str, ...]:
    """Flatten an author list, dropping entries that are not names."""
    if authors is None:
        return ()
    if isinstance(authors, (str, dict)):
        authors = [authors]
    if not isinstance(authors, Iterable):
        return ()
    names: list[str] = []
    for author in authors:
        name = flatten_author(author)
        if name and name not in names:
            names.append(name)
        if limit is not None and len(names) >= limit:
            break
    return tuple(names)


def split_author_string(value: Any) -> tuple[str, ...]:
    """Split "Smith J, Doe A, Roe B." (Europe PMC authorString) into names."""
    if not isinstance(value, str):
        return ()
    return flatten_authors([part for part in value.rstrip(".").split(",")])


def parse_year(value: Any) -> int | None:
    """Year from an int, "2021", "2021-03-04", "20210304" or CrossRef date-parts."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, dict):
        parts = value.get("date-parts")
        if isinstance(parts, list) and parts and isinstance(parts[0], list) and parts[0]:
            return parse_year(parts[0][0])
        return None
    if isinstance(value, int):
        return value if MIN_YEAR <= value <= MAX_YEAR else None
    if isinstance(value, str):
        match = _YEAR.search(value)
        if match:
            return parse_year(int(match.group(1)))
    return None


def as_list(value: Any) -> list[Any]:
    """Treat None as [] and a scalar as a one-item list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
