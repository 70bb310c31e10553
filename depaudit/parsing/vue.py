"""Extraction of the script block from Vue single-file components."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_SCRIPT_BLOCK = re.compile(
    r"<script\b(?P<attrs>[^>]*)>(?P<content>.*?)</script\s*>", re.IGNORECASE | re.DOTALL
)
_LANG_ATTR = re.compile(r"""\blang\s*=\s*["']?(?P<lang>[\w-]+)""", re.IGNORECASE)
_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)


@dataclass(frozen=True)
class ScriptBlock:
    content: str
    lang: Optional[str]
    line_offset: int


def extract_script(text: str) -> Optional[ScriptBlock]:
    """Return the first non-empty ``<script>`` block of a component.

    ``line_offset`` is the number of lines before the opening tag, so a node on
    row ``r`` of the block sits on line ``r + 1 + line_offset`` of the file.
    """
    # Blank out comments without changing offsets so line numbers stay exact.
    masked = _HTML_COMMENT.sub(lambda match: re.sub(r"[^\n]", " ", match.group(0)), text)
    for match in _SCRIPT_BLOCK.finditer(masked):
        content = text[match.start("content") : match.end("content")]
        if not content.strip():
            continue
        lang_match = _LANG_ATTR.search(match.group("attrs"))
        return ScriptBlock(
            content=content,
            lang=lang_match.group("lang") if lang_match else None,
            line_offset=text.count("\n", 0, match.start()),
        )
    return None


__all__ = ["ScriptBlock", "extract_script"]
