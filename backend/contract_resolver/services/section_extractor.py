from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)


_ITEM_RE = re.compile(
    r"^[ \t]*(?:[-•*]|\d+\.)[ \t]*(.+?)(?=\n[ \t]*(?:[-•*]|\d+\.)|\Z)",
    re.MULTILINE | re.DOTALL,
)


# "2. Potential Risks:" style headings; case-sensitive so numbered list items stay items.
_NUMBERED_HEADING = r"(?-i:\d+\.[ \t]*(?:\*\*)?(?:[A-Z][a-z]+[ \t]+){0,3}[A-Z][a-z]+(?:\*\*)?[ \t]*:)"


def _section_re(section_name: str) -> re.Pattern[str]:
    name = r"\s+".join(re.escape(part) for part in str(section_name).split())
    # The section runs until the next line that starts like a heading
    # (optional "#" or "**" markers, then a letter or a numbered heading) or the end of the text.
    return re.compile(
        r"(?:^|\n)[ \t]*(?:#+[ \t]*)?(?:\*\*)?(?:\d+\.[ \t]*(?:\*\*)?)?"
        + name
        + r"(?:\*\*)?[ \t]*(?::|\n)(?:\*\*)?\s*"
        r"([\s\S]*?)"
        r"(?=\n[ \t]*(?:#+[ \t]*)?(?:\*\*)?(?:[A-Za-z]|" + _NUMBERED_HEADING + r")|\Z)",
        re.IGNORECASE,
    )


def extract_section(text: str, section_name: str) -> str | None:
    t = str(text or "")
    name = str(section_name or "").strip()
    if not t.strip() or not name:
        return None
    try:
        m = _section_re(name).search(t)
    except re.error:
        logger.debug("section_extractor bad_section_name name=%s", name, exc_info=True)
        return None
    if m is None:
        return None
    body = m.group(1).strip()
    return body or None


def _collapse(item: str) -> str:
    return " ".join(str(item or "").split())


def extract_array_items(text: str, section_name: str) -> list[str] | None:
    section = extract_section(text, section_name)
    if section is None:
        return None

    items = [_collapse(m.group(1)) for m in _ITEM_RE.finditer(section)]
    items = [x for x in items if x]
    if items:
        return items

    lines = [ln.strip() for ln in re.split(r"\n+", section)]
    lines = [ln for ln in lines if ln]
    return lines if lines else [section.strip()]


def first_section(text: str, names: list[str]) -> str | None:
    for name in names:
        found = extract_section(text, name)
        if found:
            return found
    return None


def first_array_items(text: str, names: list[str]) -> list[str] | None:
    for name in names:
        found = extract_array_items(text, name)
        if found:
            return found
    return None
