"""
Slug helpers for product URLs.

``slugify`` turns a title into a lowercase, URL-safe token. ``next_free_slug``
picks the first free candidate in the ``base``, ``base-1``, ``base-2`` ...
sequence given the slugs already taken.
"""

import re
import unicodedata
from typing import Iterable
from uuid import uuid4

# Symbols spelled out as words; every other non-alphanumeric is dropped
_CHAR_WORDS = {
    "&": "and",
    "%": "percent",
    "$": "dollar",
    "<": "less",
    ">": "greater",
    "|": "or",
    "€": "euro",
    "£": "pound",
    "ß": "ss",
    "æ": "ae",
    "ø": "o",
}
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def slugify(value: str) -> str:
    """
    Build a slug from ``value``.

    >>> slugify("Old Chair")
    'old-chair'
    >>> slugify("Don't Panic!")
    'dont-panic'
    >>> slugify("Tom & Jerry")
    'tom-and-jerry'
    """
    # A dash separates words like whitespace does
    lowered = str(value or "").lower().replace("-", " ")
    spelled = "".join(_CHAR_WORDS.get(char, char) for char in lowered)
    ascii_value = (
        unicodedata.normalize("NFKD", spelled)
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    slug = "-".join(_NON_ALNUM.sub("", ascii_value).split())
    if not slug:
        slug = uuid4().hex
    return slug


def next_free_slug(base: str, taken: Iterable[str]) -> str:
    taken = set(taken)
    if base not in taken:
        return base

    suffix = 1
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"
