# Content rules for landlord-side messages: rent bidding (asking renters to offer above the
# advertised rent) is banned, so vendor and agency messages are screened before they are stored.
from __future__ import annotations

import re
from typing import List

RENT_BIDDING_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"offer\s+(more|above|higher|extra)",
        r"willing\s+to\s+pay\s+(more|extra|higher)",
        r"can\s+you\s+pay\s+(more|extra|higher)",
        r"increase\s+(your|the)\s+offer",
        r"bid\s+higher",
        r"outbid",
        r"pay\s+more\s+than\s+£?\d+",
        r"above\s+the\s+(asking|advertised|listed)\s+(rent|price)",
        r"more\s+than\s+(asking|advertised|listed)",
        r"best\s+offer",
        r"highest\s+(bidder|offer)",
        r"bidding\s+war",
        r"rent\s+auction",
        r"pay\s+£?\d+\s+more",
        r"if\s+you\s+pay\s+(more|extra)",
    )
]

# Phrases that mention paying more but refuse to
ALLOWED_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"not\s+(willing|able)\s+to\s+pay\s+more",
        r"cannot\s+pay\s+more",
        r"won'?t\s+pay\s+more",
    )
]


def find_rent_bidding_phrases(content: str) -> List[str]:
    """Return the offending phrases in `content`, or [] when the message is acceptable."""
    if any(p.search(content) for p in ALLOWED_PATTERNS):
        return []
    found: List[str] = []
    for pattern in RENT_BIDDING_PATTERNS:
        m = pattern.search(content)
        if m:
            found.append(m.group(0))
    return found
