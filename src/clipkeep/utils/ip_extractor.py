"""Detection of IPv4 dotted quads inside copied text.

The pattern only finds digit groups; every octet is range checked afterwards
so that strings like ``999.999.999.999`` are never reported.
"""

import re
from typing import List

_IPV4_CANDIDATE = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b", re.ASCII)


def is_valid_ip(value: str) -> bool:
    parts = value.split(".")
    if len(parts) != 4:
        return False
    for part in parts:
        if not part.isdigit() or not part.isascii() or len(part) > 3:
            return False
        if int(part) > 255:
            return False
    return True


def extract_ip_addresses(text: str) -> List[str]:
    """Return the distinct valid addresses in ``text`` in first-seen order.

    An address repeated inside one text is reported once: counts are kept per
    paste event, not per occurrence.
    """
    found: List[str] = []
    for match in _IPV4_CANDIDATE.finditer(text):
        candidate = match.group(0)
        if is_valid_ip(candidate) and candidate not in found:
            found.append(candidate)
    return found
