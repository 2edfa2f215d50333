"""
scan.py - Permissive Numscript scan for flow diagrams

These functions never raise and never validate structure. They pull out
whatever postings and metadata keys can be recognised, so a diagram can
be drawn for scripts that are incomplete or that parse_numscript() would
partly reject.

Amounts are returned as text: a plain send yields "USD/2 10000", a split
destination yields "2.5% of USD/2 10000". Addresses lose their "@".
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import List, Tuple

from .core import strip_sigil


_ACCOUNT = r"@[\w:{}\-]+"

# send [X] ( source = @a [allowing ...] destination = @b )
_SIMPLE_SEND_RE = re.compile(
    r"send\s+\[([^\]]+)\]\s*\(\s*source\s*=\s*(" + _ACCOUNT + r")"
    r"(?:\s+allowing[^)]+?)?\s+destination\s*=\s*(" + _ACCOUNT + r")\s*\)"
)
# send [X] ( source = @a [allowing ...] destination = { ... } )
_SPLIT_SEND_RE = re.compile(
    r"send\s+\[([^\]]+)\]\s*\(\s*source\s*=\s*(" + _ACCOUNT + r")"
    r"(?:\s+allowing[^)]+?)?\s+destination\s*=\s*\{\s*([^}]+)\s*\}\s*\)"
)
_SPLIT_ITEM_RE = re.compile(r"(?:([\d.]+%|\d+/\d+|remaining)\s+to\s+)?(" + _ACCOUNT + r")")

# Last resort: first source account and first destination account of any send
_LOOSE_SEND_RE = re.compile(
    r"send\s+\[([^\]]+)\][^)]*?source\s*=\s*[{\s]*(?:max\s+\[[^\]]+\]\s+from\s+)?(" + _ACCOUNT + r")"
    r"[^)]*?destination\s*=\s*[{\s]*(?:(?:[\d./%]+|remaining)\s+(?:to\s+)?)?(" + _ACCOUNT + r")"
)

_TX_META_KEY_RE = re.compile(r"set_tx_meta\s*\(\s*\"([^\"]+)\"")
_ACCOUNT_META_KEY_RE = re.compile(r"set_account_meta\s*\([^,]+,\s*\"([^\"]+)\"")


@dataclass(frozen=True, slots=True)
class ExtractedPosting:
    amount: str
    source: str
    destination: str


@dataclass(slots=True)
class MetadataKeys:
    """Metadata keys in call order, duplicates included."""
    tx_meta: List[str] = field(default_factory=list)
    account_meta: List[str] = field(default_factory=list)


def parse_postings_from_numscript(script: str) -> List[ExtractedPosting]:
    """
    Extract (amount, source, destination) triples for display.

    Single-destination and split sends are recognised first. When neither
    form matches anything, a looser scan picks the first source and first
    destination of each send (waterfalls, max caps, partial scripts).
    Results are ordered by position in the script.
    """
    found: List[Tuple[int, ExtractedPosting]] = []

    for match in _SIMPLE_SEND_RE.finditer(script):
        amount, source, destination = match.groups()
        found.append((match.start(), ExtractedPosting(
            amount.strip(), strip_sigil(source), strip_sigil(destination))))

    for match in _SPLIT_SEND_RE.finditer(script):
        amount, source, block = match.groups()
        amount = amount.strip()
        for item in _SPLIT_ITEM_RE.finditer(block):
            portion, destination = item.groups()
            found.append((match.start(), ExtractedPosting(
                f"{portion} of {amount}" if portion else amount,
                strip_sigil(source),
                strip_sigil(destination),
            )))

    if not found:
        for match in _LOOSE_SEND_RE.finditer(script):
            amount, source, destination = match.groups()
            found.append((match.start(), ExtractedPosting(
                amount.strip(), strip_sigil(source), strip_sigil(destination))))

    # stable: split entries of one send keep their order
    found.sort(key=lambda item: item[0])
    return [posting for _, posting in found]


def parse_metadata_from_numscript(script: str) -> MetadataKeys:
    """Collect the keys used by set_tx_meta and set_account_meta calls."""
    return MetadataKeys(
        tx_meta=_TX_META_KEY_RE.findall(script),
        account_meta=_ACCOUNT_META_KEY_RE.findall(script),
    )
