"""
parser.py - Strict structural parser for Numscript

Converts script text into variables, send statements and metadata
statements. The parser is regex based and whitespace-insensitive inside
statements. It understands:

    vars { monetary $amount  account $user ... }

    send [USD/2 1000] (
        source = @a allowing unbounded overdraft
               | @a allowing overdraft up to [USD/2 500]
               | { max [USD/2 100] from @a  @b  @world }
        destination = @b
                    | { 2.5% to @fees  1/10 to @tax  remaining to @b  kept }
    )

    set_tx_meta("key", "value" | $var | [USD/2 100])
    set_account_meta(@account | $var, "key", "value" | $var | [USD/2 100])

A metadata value may also be a bare token (@account, 42), which is what a
$var value becomes once variables are substituted into the text.

Each send statement is parsed independently. A send statement that fails
to parse is skipped and recorded as a ParseFailure; the rest of the script
still parses. parse_monetary() on its own raises on malformed input.

For best-effort extraction that never fails (flow diagrams), see scan.py.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .core import Asset, LedgerErrorCode, Monetary, NumscriptParseError, SEND_ALL


logger = logging.getLogger(__name__)


# ============================================================================
# GRAMMAR FRAGMENTS
# ============================================================================

# Account reference: @segment:segment... ({NAME} placeholders allowed) or $var
ACCOUNT = r"(?:@[\w:{}\-]+|\$\w+)"
MONETARY_LITERAL = r"\[[^\]]+\]"
OVERDRAFT = (
    r"allowing\s+(?P<unbounded>unbounded\s+)?overdraft"
    r"(?:\s+up\s+to\s+(?P<limit>" + MONETARY_LITERAL + r"))?"
)
PORTION = r"[\d.]+%|\d+/\d+|remaining"

VARIABLE_TYPES = ("monetary", "account", "asset", "portion", "number", "string")

_MONETARY_RE = re.compile(r"\[([^\s\]]+)\s+(\d+|\*)\]")
_SEND_RE = re.compile(r"\bsend\s+(?P<monetary>\[[^\]]*\]|\S+?)\s*\((?P<body>[^)]*)\)")
_SOURCE_RE = re.compile(
    r"source\s*=\s*(?P<block>\{[^}]*\}|(?P<account>" + ACCOUNT + r")(?:\s+" + OVERDRAFT + r")?)"
)
_SOURCE_ITEM_RE = re.compile(
    r"(?:max\s+(?P<max>" + MONETARY_LITERAL + r")\s+from\s+)?"
    r"(?P<account>" + ACCOUNT + r")(?:\s+" + OVERDRAFT + r")?"
)
_DESTINATION_RE = re.compile(
    r"destination\s*=\s*(?P<block>\{[^}]*\}|" + ACCOUNT + r")"
)
_DESTINATION_ITEM_RE = re.compile(
    r"(?:(?P<portion>" + PORTION + r")\s+(?:to\s+)?)?(?P<account>" + ACCOUNT + r"|kept)"
)
_META_VALUE = (
    r"(?:\"(?P<string>[^\"]*)\"|(?P<var>\$\w+)|\[(?P<monetary>[^\]]+)\]"
    r"|(?P<bare>[@\w:{}.\-]+))"
)
_TX_META_RE = re.compile(
    r"set_tx_meta\s*\(\s*\"(?P<key>[^\"]+)\"\s*,\s*" + _META_VALUE + r"\s*\)"
)
_ACCOUNT_META_RE = re.compile(
    r"set_account_meta\s*\(\s*(?P<account>" + ACCOUNT + r")\s*,\s*"
    r"\"(?P<key>[^\"]+)\"\s*,\s*" + _META_VALUE + r"\s*\)"
)
_VARS_BLOCK_RE = re.compile(r"\bvars\s*\{([^}]+)\}")
_VAR_DECL_RE = re.compile(r"(" + "|".join(VARIABLE_TYPES) + r")\s+\$(\w+)")


# ============================================================================
# PARSED STRUCTURES
# ============================================================================

METADATA_TX = "tx"
METADATA_ACCOUNT = "account"

PORTION_REMAINING = "remaining"
KEPT = "kept"


@dataclass(frozen=True, slots=True)
class ParsedSource:
    """
    One funding account of a send statement.

    Attributes:
        account: Account reference as written (after variable substitution)
        max_amount: Cap from "max [ASSET N] from"
        allow_overdraft: Any "allowing ... overdraft" modifier was present
        unbounded_overdraft: "allowing unbounded overdraft" was present
        overdraft_limit: Bound from "allowing overdraft up to [ASSET N]"
    """
    account: str
    max_amount: Optional[Monetary] = None
    allow_overdraft: bool = False
    unbounded_overdraft: bool = False
    overdraft_limit: Optional[Monetary] = None

    @property
    def has_overdraft(self) -> bool:
        return self.allow_overdraft or self.unbounded_overdraft


@dataclass(frozen=True, slots=True)
class ParsedDestination:
    """
    One receiving entry of a send statement.

    portion is "N.N%", "p/q", "remaining" or None. A kept entry retains
    funds instead of forwarding them and never produces a posting.
    """
    account: str
    portion: Optional[str] = None
    kept: bool = False


@dataclass(frozen=True, slots=True)
class ParsedSend:
    monetary: Monetary
    sources: Tuple[ParsedSource, ...]
    destinations: Tuple[ParsedDestination, ...]


@dataclass(frozen=True, slots=True)
class ParsedMetadata:
    """
    A set_tx_meta (kind "tx") or set_account_meta (kind "account") call.

    Monetary values keep their inner text without brackets ("USD/2 100").
    """
    kind: str
    key: str
    value: str
    account: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ParsedVariable:
    var_type: str
    name: str


@dataclass(frozen=True, slots=True)
class ParseFailure:
    """A send statement that was skipped, with its span in the script."""
    start: int
    end: int
    text: str
    reason: str


@dataclass(frozen=True, slots=True)
class ParsedNumscript:
    variables: Tuple[ParsedVariable, ...] = ()
    sends: Tuple[ParsedSend, ...] = ()
    metadata: Tuple[ParsedMetadata, ...] = ()
    failures: Tuple[ParseFailure, ...] = field(default_factory=tuple)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


# ============================================================================
# LITERALS
# ============================================================================

def parse_asset(asset: str) -> Asset:
    """
    Split an asset identifier into code and precision.

    "USD/2" -> Asset("USD", 2); "COIN" -> Asset("COIN", 0).

    Raises:
        NumscriptParseError: If the precision is not a non-negative integer
    """
    parts = asset.split('/')
    if len(parts) == 2:
        code, precision = parts
        try:
            if not precision.isdecimal():
                raise ValueError(precision)
            return Asset(code, int(precision))
        except ValueError as e:
            raise NumscriptParseError(
                f"Invalid asset precision: {asset}",
                code=LedgerErrorCode.INVALID_ASSET,
                details={"asset": asset},
            ) from e
    return Asset(asset, 0)


def parse_monetary(text: str) -> Monetary:
    """
    Parse a bracketed monetary literal "[ASSET AMOUNT]" or "[ASSET *]".

    The "*" form is returned with amount SEND_ALL (-1).

    Raises:
        NumscriptParseError: If the text holds no valid literal
    """
    match = _MONETARY_RE.search(text)
    if not match:
        raise NumscriptParseError(f"Invalid monetary format: {text}")
    asset, amount = match.groups()
    if amount == '*':
        return Monetary(asset=asset, amount=SEND_ALL)
    try:
        value = int(amount)
    except ValueError as e:
        # int() refuses digit strings past sys.get_int_max_str_digits()
        raise NumscriptParseError(
            f"Invalid monetary amount for {asset}: {len(amount)} digits",
            details={"asset": asset, "digits": str(len(amount))},
        ) from e
    return Monetary(asset=asset, amount=value)


# ============================================================================
# SEND STATEMENTS
# ============================================================================

def _parse_source(match: re.Match) -> ParsedSource:
    max_amount = match.group('max')
    limit = match.group('limit')
    unbounded = bool(match.group('unbounded'))
    has_modifier = 'allowing' in match.group(0)
    return ParsedSource(
        account=match.group('account'),
        max_amount=parse_monetary(max_amount) if max_amount else None,
        allow_overdraft=has_modifier,
        unbounded_overdraft=unbounded,
        overdraft_limit=parse_monetary(limit) if limit else None,
    )


def parse_source_block(text: str) -> Tuple[ParsedSource, ...]:
    """
    Parse the right-hand side of "source =".

    A brace block yields the waterfall in listed order; anything else is a
    single account with an optional overdraft modifier.
    """
    text = text.strip()
    if text.startswith('{'):
        body = text[1:-1]
        return tuple(_parse_source(m) for m in _SOURCE_ITEM_RE.finditer(body))
    match = _SOURCE_ITEM_RE.match(text)
    if not match or match.group('max'):
        return ()
    return (_parse_source(match),)


def parse_destination_block(text: str) -> Tuple[ParsedDestination, ...]:
    """Parse the right-hand side of "destination =" (account or brace block)."""
    text = text.strip()
    if not text.startswith('{'):
        return (ParsedDestination(account=text),)

    destinations = []
    for match in _DESTINATION_ITEM_RE.finditer(text[1:-1]):
        account = match.group('account')
        destinations.append(ParsedDestination(
            account=account,
            portion=match.group('portion'),
            kept=account == KEPT,
        ))
    return tuple(destinations)


def parse_send(statement: str) -> ParsedSend:
    """
    Parse one "send [MONETARY] ( source = ... destination = ... )" statement.

    Raises:
        NumscriptParseError: If the monetary literal, the source or the
                             destination cannot be found
    """
    match = _SEND_RE.search(statement)
    if not match:
        raise NumscriptParseError("Invalid send statement: missing monetary value")
    literal = match.group('monetary')
    if not literal.startswith('['):
        raise NumscriptParseError(f"Invalid send statement: unresolved monetary value {literal}")
    monetary = parse_monetary(literal)
    body = match.group('body')

    source_match = _SOURCE_RE.search(body)
    if not source_match:
        raise NumscriptParseError("Invalid send statement: missing source")

    destination_match = _DESTINATION_RE.search(body)
    if not destination_match:
        raise NumscriptParseError("Invalid send statement: missing destination")

    return ParsedSend(
        monetary=monetary,
        sources=parse_source_block(source_match.group('block')),
        destinations=parse_destination_block(destination_match.group('block')),
    )


# ============================================================================
# METADATA AND VARIABLES
# ============================================================================

def _meta_value(match: re.Match) -> str:
    for group in ('string', 'var', 'monetary', 'bare'):
        value = match.group(group)
        if value is not None:
            return value
    return ''


def parse_metadata(script: str) -> Tuple[ParsedMetadata, ...]:
    """Collect set_tx_meta and set_account_meta calls in script order."""
    found = []
    for match in _TX_META_RE.finditer(script):
        found.append((match.start(), ParsedMetadata(
            kind=METADATA_TX,
            key=match.group('key'),
            value=_meta_value(match),
        )))
    for match in _ACCOUNT_META_RE.finditer(script):
        found.append((match.start(), ParsedMetadata(
            kind=METADATA_ACCOUNT,
            key=match.group('key'),
            value=_meta_value(match),
            account=match.group('account'),
        )))
    found.sort(key=lambda item: item[0])
    return tuple(meta for _, meta in found)


def parse_variables(script: str) -> Tuple[ParsedVariable, ...]:
    """Collect declarations from the vars { ... } block, if any."""
    block = _VARS_BLOCK_RE.search(script)
    if not block:
        return ()
    return tuple(
        ParsedVariable(var_type=m.group(1), name=m.group(2))
        for m in _VAR_DECL_RE.finditer(block.group(1))
    )


# ============================================================================
# FULL SCRIPT
# ============================================================================

def parse_numscript(script: str) -> ParsedNumscript:
    """
    Parse a complete script.

    Send statements that fail to parse are skipped with a warning and
    reported in ParsedNumscript.failures.
    """
    sends: List[ParsedSend] = []
    failures: List[ParseFailure] = []

    for match in _SEND_RE.finditer(script):
        statement = match.group(0)
        try:
            sends.append(parse_send(statement))
        except NumscriptParseError as e:
            logger.warning("Skipping send statement at %d-%d: %s", match.start(), match.end(), e)
            failures.append(ParseFailure(match.start(), match.end(), statement, str(e)))

    return ParsedNumscript(
        variables=parse_variables(script),
        sends=tuple(sends),
        metadata=parse_metadata(script),
        failures=tuple(failures),
    )
