"""
@-mention parsing for comment text.

Comments reference members by display name (``@Jane Doe``). The web client
may also send markup of the form ``@[Jane Doe](user-id)``, which is reduced to
the plain form before display.
"""

import re
from typing import Iterable, List

from storage.models import Member

_MENTION_MARKUP = re.compile(r"@\[([^\]]+)\]\([^)]+\)")


def strip_mention_syntax(text: str) -> str:
    if not text:
        return text or ""
    return _MENTION_MARKUP.sub(r"@\1", text)


def _is_name_boundary(text: str, end: int) -> bool:
    # The match must not run into a longer word ("@Ann" vs "@Anna")
    if end >= len(text):
        return True
    ch = text[end]
    return not (ch.isascii() and ch.isalnum())


def extract_mentions(text: str, members: Iterable[Member]) -> List[str]:
    """
    Return ids of members mentioned in ``text``, in order of first mention.

    Longer names are tried first so "@Ann Lee" wins over "@Ann". Matching is
    case-insensitive; an ``@`` that matches nobody is ignored.
    """
    if not text:
        return []

    candidates = sorted(
        (m for m in members if m.name),
        key=lambda m: len(m.name),
        reverse=True,
    )
    lowered = text.lower()
    mentioned: List[str] = []

    start = lowered.find("@")
    while start != -1:
        rest = lowered[start + 1:]
        for member in candidates:
            name = member.name.lower()
            if rest.startswith(name) and _is_name_boundary(lowered, start + 1 + len(name)):
                if member.id not in mentioned:
                    mentioned.append(member.id)
                break
        start = lowered.find("@", start + 1)

    return mentioned
