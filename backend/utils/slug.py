"""
backend/utils/slug.py
URL slugs for course titles
"""
import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase, collapse every run of non-alphanumerics to '-', trim dashes."""
    return _NON_ALNUM.sub("-", (text or "").lower()).strip("-")
