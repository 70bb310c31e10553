"""Post-pass that marks denylisted APIs in the usage buckets."""

from __future__ import annotations

from typing import Iterable, Optional

from .aggregator import UsageBuckets


def true_name(api_name: str, origin: Optional[str]) -> str:
    """Rewrite the local alias at the head of ``api_name`` to the imported name.

    ``import { foo as bar }`` records ``bar.baz``; its true name is ``foo.baz``.
    Namespace imports (origin ``*``) and default imports keep the local name.
    """
    if not origin or origin == "*":
        return api_name
    _, dot, rest = api_name.partition(".")
    return f"{origin}{dot}{rest}"


def tag_blacklist(buckets: UsageBuckets, black_list: Iterable[str]) -> int:
    """Set ``isBlack`` on every entry whose true name is denylisted; return the hit count."""
    denied = set(black_list)
    hits = 0
    for usage_map in buckets.usage_maps().values():
        for apis in usage_map.values():
            for api_name, entry in apis.items():
                is_black = true_name(api_name, entry.get("callOrigin")) in denied
                entry["isBlack"] = is_black
                if is_black:
                    hits += 1
    return hits


__all__ = ["tag_blacklist", "true_name"]
