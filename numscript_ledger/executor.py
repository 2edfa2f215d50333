"""
executor.py - Run Numscript against a Ledger

execute_numscript() turns one script into exactly one committed
Transaction:

1. Substitute variables into the raw text
2. Parse it (parser.parse_numscript)
3. Resolve every send, in script order, into postings. Sources are read
   through a PendingBalances overlay so a later send sees what earlier
   sends of the same script moved.
4. Commit all postings with one Ledger.create_transaction() call, so the
   whole script succeeds or nothing changes
5. Apply set_account_meta calls to the accounts

Nothing touches the ledger before step 4. Any error raised during step 3
leaves the ledger exactly as it was.
"""

from __future__ import annotations
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .core import (
    ExecutionError,
    InsufficientFunds,
    LedgerError,
    Posting,
    Transaction,
    UnsupportedOperation,
    WORLD_ACCOUNT,
    normalize_address,
)
from .ledger import Ledger
from .parser import (
    METADATA_ACCOUNT,
    METADATA_TX,
    PORTION_REMAINING,
    ParsedDestination,
    ParsedSend,
    ParsedSource,
    parse_numscript,
)
from .variables import Bindings, bind_variables, substitute_variables


logger = logging.getLogger(__name__)


# ============================================================================
# PENDING BALANCES
# ============================================================================

class PendingBalances:
    """
    Uncommitted balance deltas accumulated while resolving one script.

    effective_balance() = committed ledger balance + pending delta.
    """

    def __init__(self):
        self._changes: Dict[Tuple[str, str], int] = defaultdict(int)

    def effective_balance(self, ledger: Ledger, account: str, asset: str) -> int:
        address = normalize_address(account)
        return ledger.get_balance(address, asset) + self._changes.get((address, asset), 0)

    def debit(self, account: str, asset: str, amount: int) -> None:
        self._changes[(normalize_address(account), asset)] -= amount

    def credit(self, account: str, asset: str, amount: int) -> None:
        self._changes[(normalize_address(account), asset)] += amount


# ============================================================================
# SOURCE RESOLUTION
# ============================================================================

@dataclass(frozen=True, slots=True)
class ResolvedSource:
    account: str
    amount: int
    allow_overdraft: bool


def _resolve_account(reference: str, bindings: Bindings) -> str:
    account = substitute_variables(reference, bindings)
    if account.startswith('$'):
        raise ExecutionError(
            f"Unbound variable {account}",
            details={"variable": account[1:]},
        )
    return normalize_address(account)


def resolve_sources(
    sources: Sequence[ParsedSource],
    asset: str,
    amount_needed: int,
    ledger: Ledger,
    pending: PendingBalances,
    bindings: Optional[Bindings] = None,
) -> List[ResolvedSource]:
    """
    Draw amount_needed from the sources in listed order (waterfall).

    A source with a max cap gives min(remaining, cap), further limited to
    its effective balance unless it may overdraw. A source that may
    overdraw (any overdraft modifier, or @world) gives everything still
    needed. Any other source gives what it holds, never a negative amount.

    Raises:
        InsufficientFunds: If need remains after the last source and no
                           source was @world or unbounded overdraft
    """
    bindings = bindings or {}
    resolved: List[ResolvedSource] = []
    remaining = amount_needed

    for source in sources:
        if remaining <= 0:
            break

        account = _resolve_account(source.account, bindings)
        can_overdraw = source.has_overdraft or account == WORLD_ACCOUNT
        available = pending.effective_balance(ledger, account, asset)

        if source.max_amount is not None:
            amount = min(remaining, source.max_amount.amount)
            if not can_overdraw and available < amount:
                amount = max(available, 0)
        elif can_overdraw:
            amount = remaining
        else:
            amount = max(min(available, remaining), 0)

        if amount > 0:
            resolved.append(ResolvedSource(account, amount, can_overdraw))
            remaining -= amount

    if remaining > 0 and not any(
        s.unbounded_overdraft or _resolve_account(s.account, bindings) == WORLD_ACCOUNT
        for s in sources
    ):
        raise InsufficientFunds(
            f"Insufficient funds: need {remaining} more {asset}",
            asset=asset,
            required=remaining,
        )

    return resolved


# ============================================================================
# DESTINATION SPLIT
# ============================================================================

def calculate_portion(portion: str, total: int) -> int:
    """
    Amount of total owed to one portion specifier, rounded down.

    "2.5%" -> floor(total * 2.5 / 100); "1/3" -> floor(total / 3);
    "remaining" -> total.

    Raises:
        ExecutionError: If the specifier is not a valid number
    """
    if portion == PORTION_REMAINING:
        return total
    try:
        if portion.endswith('%'):
            share = Fraction(portion[:-1]) / 100
        elif '/' in portion:
            share = Fraction(portion)
        else:
            return total
    except (ValueError, ZeroDivisionError):
        raise ExecutionError(f"Invalid portion: {portion}") from None
    return (total * share.numerator) // share.denominator


def allocate_destinations(
    destinations: Sequence[ParsedDestination],
    total: int,
    bindings: Optional[Bindings] = None,
) -> List[Tuple[str, int]]:
    """
    Split total across the non-kept destinations, in order.

    Portions are computed against the full total. The last destination, or
    one marked "remaining", takes whatever is left at that point.

    Raises:
        ExecutionError: If the portions add up to more than total
    """
    bindings = bindings or {}
    live = [d for d in destinations if not d.kept]
    allocations: List[Tuple[str, int]] = []
    remaining = total

    for i, destination in enumerate(live):
        account = _resolve_account(destination.account, bindings)
        if destination.portion and destination.portion != PORTION_REMAINING and i < len(live) - 1:
            amount = calculate_portion(destination.portion, total)
        else:
            amount = remaining
        remaining -= amount
        if remaining < 0:
            raise ExecutionError(
                f"Destination portions exceed send amount {total}",
                details={"total": str(total), "excess": str(-remaining)},
            )
        allocations.append((account, amount))

    return allocations


# ============================================================================
# SEND EXECUTION
# ============================================================================

def execute_send(
    send: ParsedSend,
    ledger: Ledger,
    pending: PendingBalances,
    bindings: Optional[Bindings] = None,
) -> List[Posting]:
    """
    Resolve one send statement into postings and record them as pending.

    Sources are paired with destination allocations in order; a source
    spills into the next destination once the current one is filled.

    Raises:
        UnsupportedOperation: For the [ASSET *] send-all form
        InsufficientFunds: If the sources cannot cover the amount
        ExecutionError: If the destination portions are invalid
    """
    if send.monetary.is_send_all:
        raise UnsupportedOperation(
            "Send all (*) is not supported by the executor",
            details={"asset": send.monetary.asset},
        )

    asset = send.monetary.asset
    total = send.monetary.amount
    sources = resolve_sources(send.sources, asset, total, ledger, pending, bindings)
    allocations = allocate_destinations(send.destinations, total, bindings)

    postings: List[Posting] = []
    slot = 0
    slot_left = allocations[0][1] if allocations else 0

    for source in sources:
        source_left = source.amount
        while source_left > 0 and slot < len(allocations):
            if slot_left == 0:
                slot += 1
                if slot < len(allocations):
                    slot_left = allocations[slot][1]
                continue
            destination = allocations[slot][0]
            amount = min(source_left, slot_left)
            postings.append(Posting(source.account, destination, asset, amount))
            pending.debit(source.account, asset, amount)
            pending.credit(destination, asset, amount)
            source_left -= amount
            slot_left -= amount

    logger.debug(
        "Resolved send %s: %d source(s), %d destination(s), %d posting(s)",
        send.monetary, len(sources), len(allocations), len(postings),
    )
    return postings


# ============================================================================
# SCRIPT EXECUTION
# ============================================================================

def execute_numscript(
    script: str,
    ledger: Ledger,
    variables: Optional[Mapping[str, Any]] = None,
) -> Transaction:
    """
    Execute a script and commit its postings as a single transaction.

    Args:
        script: Numscript text, possibly with {NAME} / $name placeholders
        ledger: Ledger to commit to
        variables: Placeholder values (str, int, Monetary or
                   {"asset": ..., "amount": ...})

    Returns:
        The committed Transaction

    Raises:
        InsufficientFunds: A source cannot cover its debit
        UnsupportedOperation: The script uses [ASSET *]
        ExecutionError: Invalid portions or unbound account variables

    Example:
        ledger = Ledger()
        tx = execute_numscript(
            "send [USD/2 10000] ( source = @world destination = $user )",
            ledger,
            {"user": "@users:alice:wallet"},
        )
        ledger.get_balance("@users:alice:wallet", "USD/2")  # 10000
    """
    # Placeholders are expanded once, here; values are never re-expanded
    parsed = parse_numscript(substitute_variables(script, bind_variables(variables)))
    pending = PendingBalances()

    postings: List[Posting] = []
    for send in parsed.sends:
        postings.extend(execute_send(send, ledger, pending))

    metadata: Dict[str, str] = {}
    for meta in parsed.metadata:
        if meta.kind == METADATA_TX:
            metadata[meta.key] = meta.value

    allow_overdraft: Dict[str, bool] = {WORLD_ACCOUNT: True}
    for send in parsed.sends:
        for source in send.sources:
            if source.has_overdraft:
                allow_overdraft[_resolve_account(source.account, {})] = True

    tx = ledger.create_transaction(postings, metadata, allow_overdraft=allow_overdraft)

    for meta in parsed.metadata:
        if meta.kind == METADATA_ACCOUNT and meta.account:
            ledger.set_account_metadata(
                _resolve_account(meta.account, {}),
                meta.key,
                meta.value,
            )

    logger.info(
        "Committed transaction #%d on ledger %r: %d posting(s) from %d send(s)",
        tx.id, ledger.name, len(tx.postings), len(parsed.sends),
    )
    return tx


# ============================================================================
# VALIDATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    errors: Tuple[str, ...] = field(default_factory=tuple)


def validate_numscript(script: str) -> ValidationResult:
    """
    Check a script's structure without executing it. Never raises.

    Reported problems: no send statements, a send with no source, a send
    with no destination, and every send statement the parser skipped.
    """
    errors: List[str] = []
    try:
        parsed = parse_numscript(script)
    except LedgerError as e:
        errors.append(f"Parse error: {e}")
    else:
        for failure in parsed.failures:
            errors.append(f"Parse error: {failure.reason}")
        if not parsed.sends and not parsed.failures:
            errors.append("No send statements found")
        for send in parsed.sends:
            if not send.sources:
                errors.append("Send statement has no source")
            if not send.destinations:
                errors.append("Send statement has no destination")
    return ValidationResult(valid=not errors, errors=tuple(errors))
