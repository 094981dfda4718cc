"""Accept-Language header parsing."""
from typing import List, Optional, Tuple


def parse_accept_language(header: Optional[str]) -> List[str]:
    """
    Language tags from an Accept-Language header, most preferred first.

    Ties keep header order, "q=0" entries and "*" are dropped, malformed
    quality values count as 1.0.

    >>> parse_accept_language("en;q=0.5, zh-TW, ja;q=0.8")
    ['zh-TW', 'ja', 'en']
    """
    if not header:
        return []

    weighted: List[Tuple[float, int, str]] = []
    for position, part in enumerate(header.split(",")):
        tag, _, params = part.strip().partition(";")
        tag = tag.strip()
        if not tag or tag == "*":
            continue
        quality = 1.0
        for param in params.split(";"):
            name, _, value = param.strip().partition("=")
            if name.strip().lower() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 1.0
        if quality <= 0:
            continue
        weighted.append((-quality, position, tag))

    return [tag for _, _, tag in sorted(weighted)]
