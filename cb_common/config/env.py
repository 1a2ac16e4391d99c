"""Parsers for ``CB_*`` environment overrides.

Malformed values are treated as unset so a typo in the environment never
replaces a validated setting with garbage.
"""

from __future__ import annotations

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def parse_bool_env(value: str | None) -> bool | None:
    """``"1"``, ``"true"``, ``"yes"`` and ``"on"`` are true; None when unset."""
    if value is None:
        return None
    return value.strip().lower() in _TRUTHY


def parse_int_env(value: str | None, *, minimum: int | None = None) -> int | None:
    """Parse an integer override, ignoring values below ``minimum``."""
    if value is None:
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return None
    if minimum is not None and parsed < minimum:
        return None
    return parsed


def parse_tags_env(value: str | None) -> dict[str, str]:
    """Parse ``CB_TAGS`` style ``key=value`` pairs separated by commas.

    Example: "team=perf,owner=ci" -> {"team": "perf", "owner": "ci"}
    Pairs without a key or without ``=`` are skipped.
    """
    tags: dict[str, str] = {}
    for pair in (value or "").split(","):
        key, sep, tag_value = pair.partition("=")
        key = key.strip()
        if sep and key:
            tags[key] = tag_value.strip()
    return tags
