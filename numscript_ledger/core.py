"""
Core types and pure functions for the Numscript ledger.

This module provides the foundational data structures used by the ledger,
the parser and the executor:
1. Constants: the world account and the address sigil
2. Exceptions: LedgerError and the domain-specific error types
3. Immutable data structures: Monetary, Asset, Posting, Transaction
4. Query types: BalanceResult, AggregatedBalance, TransactionFilter, AccountFilter
5. Address helpers: normalisation and pattern matching

All amounts are Python ints expressed in the smallest unit of their asset
(cents for USD/2). Floating point is never used for balances.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


# ============================================================================
# CONSTANTS
# ============================================================================

# Every account address starts with this sigil once normalised.
ACCOUNT_SIGIL = "@"

# Source and sink of all value entering or leaving the ledger.
# The world account is exempt from funds checks and can hold any balance.
WORLD_ACCOUNT = "@world"

# Amount used by a parsed `[ASSET *]` literal ("send everything available").
SEND_ALL = -1

# Segment separator for hierarchical addresses (users:alice:wallet).
SEGMENT_SEPARATOR = ":"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerErrorCode(Enum):
    """Machine-readable classification carried by every LedgerError."""
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INVALID_ASSET = "INVALID_ASSET"
    PARSE_ERROR = "PARSE_ERROR"
    EXECUTION_ERROR = "EXECUTION_ERROR"


class LedgerError(Exception):
    """Base exception for all ledger, parser and executor errors."""

    default_code = LedgerErrorCode.EXECUTION_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[LedgerErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code or self.default_code
        self.details = dict(details or {})


class InsufficientFunds(LedgerError):
    """Raised when a source cannot cover a debit and has no overdraft permission."""

    default_code = LedgerErrorCode.INSUFFICIENT_FUNDS

    def __init__(
        self,
        message: str,
        account: Optional[str] = None,
        asset: Optional[str] = None,
        available: Optional[int] = None,
        required: Optional[int] = None,
    ):
        details = {
            key: str(value) if isinstance(value, int) else value
            for key, value in (
                ("account", account),
                ("asset", asset),
                ("available", available),
                ("required", required),
            )
            if value is not None
        }
        super().__init__(message, details=details)
        self.account = account
        self.asset = asset
        self.available = available
        self.required = required


class NumscriptParseError(LedgerError):
    """Raised when a monetary literal or a send statement cannot be parsed."""

    default_code = LedgerErrorCode.PARSE_ERROR


class ExecutionError(LedgerError):
    """Raised when a parsed script cannot be turned into postings."""

    default_code = LedgerErrorCode.EXECUTION_ERROR


class UnsupportedOperation(ExecutionError):
    """Raised for script constructs the executor deliberately does not resolve (send all)."""
    pass


class DemoConfigError(LedgerError):
    """Raised when demo configuration data is malformed."""

    default_code = LedgerErrorCode.PARSE_ERROR


# ============================================================================
# ADDRESSES AND PATTERNS
# ============================================================================

def normalize_address(address: str) -> str:
    """Return the address with the account sigil prepended if it is missing."""
    if address.startswith(ACCOUNT_SIGIL):
        return address
    return f"{ACCOUNT_SIGIL}{address}"


def strip_sigil(address: str) -> str:
    """Remove a single leading sigil, if present."""
    if address.startswith(ACCOUNT_SIGIL):
        return address[len(ACCOUNT_SIGIL):]
    return address


def matches_pattern(address: str, pattern: str) -> bool:
    """
    Check whether an account address matches a query pattern.

    Both sides are compared without their leading sigil. Exactly one rule
    applies, checked in this order:

    1. Trailing colon ("customers:"): prefix match on the pattern without
       its trailing colon.
    2. Empty segment ("customers::available"): segment-wise match, segment
       counts must be equal, empty pattern segments match anything.
    3. Otherwise: exact equality.

    Examples:
        matches_pattern("@customers:1:available", "customers:")            -> True
        matches_pattern("@customers:1:available", "customers::available")  -> True
        matches_pattern("@customers:1:x:available", "customers::available") -> False
    """
    bare_address = strip_sigil(address)
    bare_pattern = strip_sigil(pattern)

    if bare_pattern.endswith(SEGMENT_SEPARATOR):
        return bare_address.startswith(bare_pattern[:-1])

    if SEGMENT_SEPARATOR * 2 in bare_pattern:
        pattern_parts = bare_pattern.split(SEGMENT_SEPARATOR)
        address_parts = bare_address.split(SEGMENT_SEPARATOR)
        if len(pattern_parts) != len(address_parts):
            return False
        return all(
            expected == "" or expected == actual
            for expected, actual in zip(pattern_parts, address_parts)
        )

    return bare_address == bare_pattern


def is_wildcard_pattern(pattern: str) -> bool:
    """True for prefix ("a:") or segment-wildcard ("a::b") patterns."""
    bare = strip_sigil(pattern)
    return bare.endswith(SEGMENT_SEPARATOR) or SEGMENT_SEPARATOR * 2 in bare


# ============================================================================
# VALUE TYPES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Asset:
    """
    Asset identifier split into its code and precision.

    "USD/2" is code "USD" with 2 fractional digits: balances are in cents.
    """
    code: str
    precision: int = 0

    def __str__(self) -> str:
        if self.precision:
            return f"{self.code}/{self.precision}"
        return self.code


@dataclass(frozen=True, slots=True)
class Monetary:
    """
    A monetary literal: asset identifier plus integer amount.

    An amount of SEND_ALL (-1) represents the `[ASSET *]` form.
    """
    asset: str
    amount: int

    @property
    def is_send_all(self) -> bool:
        return self.amount == SEND_ALL

    def __str__(self) -> str:
        amount = "*" if self.is_send_all else str(self.amount)
        return f"[{self.asset} {amount}]"


@dataclass(frozen=True, slots=True)
class Posting:
    """
    A single movement of one asset amount from a source to a destination.

    Attributes:
        source: Debited account address.
        destination: Credited account address.
        asset: Asset identifier, e.g. "USD/2".
        amount: Non-negative integer in the asset's smallest unit.
    """
    source: str
    destination: str
    asset: str
    amount: int

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Posting source cannot be empty")
        if not self.destination or not self.destination.strip():
            raise ValueError("Posting destination cannot be empty")
        if not self.asset or not self.asset.strip():
            raise ValueError("Posting asset cannot be empty")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"Posting amount must be int, got {type(self.amount)}")
        if self.amount < 0:
            raise ValueError(f"Posting amount cannot be negative, got {self.amount}")

    def __repr__(self) -> str:
        return f"Posting({self.amount} {self.asset}: {self.source}→{self.destination})"


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    A committed, immutable ledger record.

    Attributes:
        id: Sequential identifier, starting at 1 per ledger instance.
        postings: Postings applied together or not at all.
        metadata: Flat string-to-string map (read-only view).
        timestamp: When the transaction was committed.
        reference: Optional external reference.
    """
    id: int
    postings: Tuple[Posting, ...]
    metadata: Mapping[str, str]
    timestamp: datetime
    reference: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'postings', tuple(self.postings))
        object.__setattr__(self, 'metadata', MappingProxyType(dict(self.metadata)))

    def __repr__(self) -> str:
        w = 80  # Inner content width
        bar = "─" * w

        def pad(text: str) -> str:
            """Pad or truncate text to exactly w characters."""
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction #' + str(self.id))}│",
            f"├{bar}┤",
            f"│{pad('   timestamp : ' + str(self.timestamp))}│",
        ]
        if self.reference:
            lines.append(f"│{pad('   reference : ' + self.reference)}│")
        lines.append(f"├{bar}┤")
        lines.append(f"│{pad(' Postings (' + str(len(self.postings)) + '):')}│")
        for i, posting in enumerate(self.postings):
            text = f"   [{i}] {posting.amount} {posting.asset}: {posting.source} → {posting.destination}"
            lines.append(f"│{pad(text)}│")
        if self.metadata:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Metadata (' + str(len(self.metadata)) + '):')}│")
            for key, value in self.metadata.items():
                lines.append(f"│{pad(f'   {key}: {value!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


@dataclass(slots=True)
class Account:
    """
    Mutable account record owned by a Ledger.

    Accounts are created lazily on first reference. Balances map asset
    identifiers to signed ints.
    """
    address: str
    balances: Dict[str, int] = field(default_factory=dict)
    metadata: Dict[str, str] = field(default_factory=dict)
    first_usage: Optional[datetime] = None

    def get_balance(self, asset: str) -> int:
        return self.balances.get(asset, 0)


# ============================================================================
# QUERY TYPES
# ============================================================================

@dataclass(frozen=True, slots=True)
class BalanceResult:
    """Balance of one asset held by one account."""
    address: str
    asset: str
    balance: int


@dataclass(frozen=True, slots=True)
class AggregatedBalance:
    """Balance of one asset summed across every account matched by a query."""
    asset: str
    balance: int
    accounts: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TransactionFilter:
    """
    Filter for Ledger.list_transactions().

    Attributes:
        account: Pattern matched against every posting's source and destination.
        metadata: Exact key/value pairs; all must match.
        start_date: Inclusive lower bound on the transaction timestamp.
        end_date: Inclusive upper bound on the transaction timestamp.
    """
    account: Optional[str] = None
    metadata: Optional[Mapping[str, str]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class AccountFilter:
    """Filter for Ledger.list_accounts(): address pattern and exact metadata pairs."""
    address: Optional[str] = None
    metadata: Optional[Mapping[str, str]] = None
