"""
ledger.py - Stateful In-Memory Ledger

The Ledger class is the central state manager for Numscript execution.
It is the only module that mutates balances, ensuring controlled changes.

Key responsibilities:
    - Lazily creates accounts (address -> per-asset balances + metadata)
    - Commits transactions atomically (all postings succeed or none do)
    - Enforces the funds invariant, with @world and explicit overdraft exempt
    - Answers pattern-matched balance, account and transaction queries
    - Keeps an immutable, sequentially numbered transaction log
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .core import (
    # Types
    Account, Posting, Transaction,
    BalanceResult, AggregatedBalance,
    TransactionFilter, AccountFilter,
    # Constants
    WORLD_ACCOUNT,
    # Exceptions
    InsufficientFunds,
    # Helper functions
    normalize_address, matches_pattern,
)


class Ledger:
    """
    In-memory double-entry ledger for Numscript simulations.

    Design Principles:
        - Atomic: create_transaction() stages every posting against a running
          balance view before anything is written. A rejected transaction
          leaves balances, the account store and the id counter untouched.
        - Ordered: postings are checked in submission order, so a later
          posting can spend funds credited by an earlier one in the same call.
        - Exact: balances are Python ints in the asset's smallest unit.

    Thread Safety:
        Not thread-safe. Each session should own its own Ledger instance.

    Example:
        ledger = Ledger("demo")
        ledger.create_transaction([
            Posting("@world", "@users:alice:wallet", "USD/2", 10000)
        ])
        ledger.get_balance("@users:alice:wallet", "USD/2")  # 10000
    """

    def __init__(
        self,
        name: str = "main",
        initial_time: Optional[datetime] = None,
        verbose: bool = False,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier (used in verbose output and exports)
            initial_time: Start a logical clock at this time. Without it,
                          timestamps come from the UTC wall clock.
            verbose: Print every committed or rejected transaction
        """
        self.name = name
        self.verbose = verbose
        self.accounts: Dict[str, Account] = {}
        self.transaction_log: List[Transaction] = []
        self._next_id: int = 1
        self._logical_time: Optional[datetime] = initial_time

        # The world account always exists
        self.get_or_create_account(WORLD_ACCOUNT)

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Logical time if a clock was started, otherwise the UTC wall clock."""
        if self._logical_time is not None:
            return self._logical_time
        return datetime.now(timezone.utc)

    def advance_time(self, new_time: datetime) -> None:
        """
        Move the logical clock forward.

        Calling this on a wall-clock ledger switches it to a logical clock.

        Raises:
            ValueError: If new_time is before the current time
        """
        if self._logical_time is not None and new_time < self._logical_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._logical_time}"
            )
        self._logical_time = new_time

    # ========================================================================
    # ACCOUNTS
    # ========================================================================

    def get_or_create_account(self, address: str) -> Account:
        """
        Return the account for an address, creating it on first reference.

        The address is normalised to start with "@".
        """
        address = normalize_address(address)
        account = self.accounts.get(address)
        if account is None:
            account = Account(address=address, first_usage=self.current_time)
            self.accounts[address] = account
        return account

    def get_account(self, address: str) -> Optional[Account]:
        """Look up an account without creating it."""
        return self.accounts.get(normalize_address(address))

    def get_balance(self, address: str, asset: str) -> int:
        """
        Get the balance of an asset in an account.

        Returns 0 if the account or the asset entry does not exist.
        """
        account = self.get_account(address)
        if account is None:
            return 0
        return account.get_balance(asset)

    def get_account_balances(self, address: str) -> Dict[str, int]:
        """All balances of an account (empty dict if the account does not exist)."""
        account = self.get_account(address)
        if account is None:
            return {}
        return dict(account.balances)

    def set_account_metadata(self, address: str, key: str, value: str) -> None:
        """Set a metadata entry on an account, creating the account if needed."""
        account = self.get_or_create_account(address)
        account.metadata[key] = value

    def get_account_metadata(self, address: str, key: str) -> Optional[str]:
        account = self.get_account(address)
        if account is None:
            return None
        return account.metadata.get(key)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def create_transaction(
        self,
        postings: Iterable[Posting],
        metadata: Optional[Mapping[str, str]] = None,
        allow_overdraft: Optional[Mapping[str, bool]] = None,
        reference: Optional[str] = None,
    ) -> Transaction:
        """
        Commit postings as a single atomic transaction.

        Postings are staged in order against a running balance view. Before
        each debit, a source that is not @world and has no overdraft grant
        in allow_overdraft must hold at least the posting amount in the
        running view. If any posting fails, nothing is written.

        Args:
            postings: Postings to apply, in order
            metadata: Flat string-to-string transaction metadata
            allow_overdraft: Per-address overdraft grants for this call
            reference: Optional external reference

        Returns:
            The committed Transaction

        Raises:
            InsufficientFunds: If a posting would overdraw its source
        """
        postings = tuple(self._normalize_posting(p) for p in postings)
        granted = self._overdraft_grants(allow_overdraft)

        staged = self._stage_postings(postings, granted)

        # Validation passed - commit staged balances
        for posting in postings:
            self.get_or_create_account(posting.source)
            self.get_or_create_account(posting.destination)
        for (address, asset), balance in staged.items():
            self.accounts[address].balances[asset] = balance

        tx = Transaction(
            id=self._next_id,
            postings=postings,
            metadata=metadata or {},
            timestamp=self.current_time,
            reference=reference,
        )
        self._next_id += 1
        self.transaction_log.append(tx)

        if self.verbose:
            self._print_tx_result(tx, "COMMITTED", "✓")
        return tx

    @staticmethod
    def _normalize_posting(posting: Posting) -> Posting:
        source = normalize_address(posting.source)
        destination = normalize_address(posting.destination)
        if source == posting.source and destination == posting.destination:
            return posting
        return replace(posting, source=source, destination=destination)

    @staticmethod
    def _overdraft_grants(allow_overdraft: Optional[Mapping[str, bool]]) -> Set[str]:
        grants = {WORLD_ACCOUNT}
        if allow_overdraft:
            grants.update(
                normalize_address(address)
                for address, allowed in allow_overdraft.items()
                if allowed
            )
        return grants

    def _stage_postings(
        self,
        postings: Tuple[Posting, ...],
        granted: Set[str],
    ) -> Dict[Tuple[str, str], int]:
        """
        Simulate postings in order and return the resulting balances.

        Nothing on the ledger is modified.

        Returns:
            Mapping of (address, asset) to the balance after all postings

        Raises:
            InsufficientFunds: On the first posting that overdraws its source
        """
        staged: Dict[Tuple[str, str], int] = {}

        def running(address: str, asset: str) -> int:
            key = (address, asset)
            if key not in staged:
                staged[key] = self.get_balance(address, asset)
            return staged[key]

        for posting in postings:
            available = running(posting.source, posting.asset)
            if posting.source not in granted and available < posting.amount:
                if self.verbose:
                    print(f"✗ REJECTED: {posting.source} {posting.asset}: "
                          f"has {available}, needs {posting.amount}")
                raise InsufficientFunds(
                    f"Insufficient funds in {posting.source}: "
                    f"has {available}, needs {posting.amount}",
                    account=posting.source,
                    asset=posting.asset,
                    available=available,
                    required=posting.amount,
                )
            staged[(posting.source, posting.asset)] = available - posting.amount
            credited = running(posting.destination, posting.asset)
            staged[(posting.destination, posting.asset)] = credited + posting.amount

        return staged

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """
        Print transaction details and result.

        Uses Transaction.__repr__ and appends a result line.
        """
        lines = repr(tx).split('\n')
        w = 80
        bar = "─" * w
        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))
        # Replace the closing line with a result section
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{pad(' ' + icon + ' ' + result + ' on ' + self.name)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_balances(self, pattern: str) -> List[BalanceResult]:
        """
        Non-zero balances of every account whose address matches the pattern.

        See core.matches_pattern() for the pattern rules.
        """
        results = []
        for address, account in self.accounts.items():
            if not matches_pattern(address, pattern):
                continue
            for asset, balance in account.balances.items():
                if balance != 0:
                    results.append(BalanceResult(address, asset, balance))
        return results

    def get_aggregated_balances(self, patterns: Iterable[str]) -> List[AggregatedBalance]:
        """
        Sum balances per asset across the union of several patterns.

        An account matched by more than one pattern is only listed once in
        the contributing accounts.
        """
        totals: Dict[str, int] = defaultdict(int)
        contributors: Dict[str, Dict[str, None]] = defaultdict(dict)
        seen: Set[Tuple[str, str]] = set()

        for pattern in patterns:
            for result in self.get_balances(pattern):
                key = (result.address, result.asset)
                if key in seen:
                    continue
                seen.add(key)
                totals[result.asset] += result.balance
                contributors[result.asset][result.address] = None

        return [
            AggregatedBalance(asset, balance, tuple(contributors[asset]))
            for asset, balance in totals.items()
        ]

    def list_transactions(self, tx_filter: Optional[TransactionFilter] = None) -> List[Transaction]:
        """List committed transactions in id order, optionally filtered."""
        if tx_filter is None:
            return list(self.transaction_log)
        return [tx for tx in self.transaction_log if self._transaction_matches(tx, tx_filter)]

    @staticmethod
    def _transaction_matches(tx: Transaction, tx_filter: TransactionFilter) -> bool:
        if tx_filter.account:
            touched = any(
                matches_pattern(p.source, tx_filter.account)
                or matches_pattern(p.destination, tx_filter.account)
                for p in tx.postings
            )
            if not touched:
                return False
        if tx_filter.metadata:
            for key, value in tx_filter.metadata.items():
                if tx.metadata.get(key) != value:
                    return False
        if tx_filter.start_date and tx.timestamp < tx_filter.start_date:
            return False
        if tx_filter.end_date and tx.timestamp > tx_filter.end_date:
            return False
        return True

    def list_accounts(self, account_filter: Optional[AccountFilter] = None) -> List[Account]:
        """List accounts (including @world) in creation order, optionally filtered."""
        accounts = list(self.accounts.values())
        if account_filter is None:
            return accounts

        def keep(account: Account) -> bool:
            if account_filter.address and not matches_pattern(account.address, account_filter.address):
                return False
            if account_filter.metadata:
                for key, value in account_filter.metadata.items():
                    if account.metadata.get(key) != value:
                        return False
            return True

        return [account for account in accounts if keep(account)]

    def get_transaction(self, tx_id: int) -> Optional[Transaction]:
        """Look up a transaction by id."""
        if 1 <= tx_id <= len(self.transaction_log):
            return self.transaction_log[tx_id - 1]
        return None

    def get_transaction_count(self) -> int:
        return len(self.transaction_log)

    def get_account_count(self) -> int:
        """Number of accounts, excluding @world."""
        return len(self.accounts) - 1

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def reset(self) -> None:
        """
        Clear all accounts and transactions.

        The id counter restarts at 1 and a fresh @world is created.
        """
        self.accounts.clear()
        self.transaction_log = []
        self._next_id = 1
        self.get_or_create_account(WORLD_ACCOUNT)

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that every asset's balances sum to zero across all accounts.

        Each posting debits exactly what it credits, and @world is the
        counterpart of all issued value, so any non-zero total is a bug.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all assets sum to zero
            - 'supplies': Dict[str, int] - Sum of balances per asset
            - 'discrepancies': List[Dict] - asset and actual sum for violations
        """
        supplies: Dict[str, int] = defaultdict(int)
        for address in sorted(self.accounts):
            for asset, balance in self.accounts[address].balances.items():
                supplies[asset] += balance

        discrepancies = [
            {'asset': asset, 'expected': 0, 'actual': total}
            for asset, total in supplies.items()
            if total != 0
        ]
        return {
            'valid': len(discrepancies) == 0,
            'supplies': dict(supplies),
            'discrepancies': discrepancies,
        }

    def export_state(self) -> Dict[str, Any]:
        """
        JSON-ready snapshot of accounts and transactions.

        Amounts are rendered as strings so arbitrarily large values survive
        JSON round-trips.
        """
        return {
            'name': self.name,
            'accounts': [
                {
                    'address': account.address,
                    'balances': {asset: str(balance) for asset, balance in account.balances.items()},
                    'metadata': dict(account.metadata),
                }
                for account in self.accounts.values()
            ],
            'transactions': [
                {
                    'id': tx.id,
                    'postings': [
                        {
                            'source': p.source,
                            'destination': p.destination,
                            'asset': p.asset,
                            'amount': str(p.amount),
                        }
                        for p in tx.postings
                    ],
                    'metadata': dict(tx.metadata),
                    'timestamp': tx.timestamp.isoformat(),
                }
                for tx in self.transaction_log
            ],
        }

    def __repr__(self) -> str:
        return (f"Ledger({self.name!r}, {self.get_account_count()} accounts, "
                f"{self.get_transaction_count()} transactions)")
