"""
session.py - One demo walkthrough over one Ledger

DemoSession is the explicit owner of a Ledger for a single demo. It runs
the configuration's steps, translates the configuration's queries into
ledger queries, and keeps the state a UI needs between actions: executed
steps, their transactions, cached query results and the last error.

Switching to another demo replaces the ledger; reset() empties it.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from .core import (
    BalanceResult, LedgerError, Transaction, TransactionFilter, AccountFilter,
    WORLD_ACCOUNT, is_wildcard_pattern,
)
from .demo_config import (
    AccountQuery, BalanceQuery, DemoConfig, Query, TransactionQuery,
)
from .executor import execute_numscript
from .formatting import format_amount
from .ledger import Ledger
from .variables import substitute_variables


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QueryResult:
    """
    Outcome of DemoSession.run_query().

    data holds BalanceResult / AggregatedBalance, Transaction or Account
    records depending on query_type.
    """
    query_type: str
    data: Tuple[Any, ...]
    timestamp: datetime


class DemoSession:
    """
    Runs a DemoConfig against its own Ledger.

    Example:
        session = DemoSession(DemoConfig.from_dict(data))
        session.execute_step(0)
        session.get_formatted_balance("@users:{USER_ID}:wallet")  # "$100.00"
    """

    def __init__(
        self,
        config: DemoConfig,
        verbose: bool = False,
        initial_time: Optional[datetime] = None,
    ):
        self.verbose = verbose
        self._initial_time = initial_time
        self._load(config)

    def _load(self, config: DemoConfig) -> None:
        self.config = config
        self.ledger = Ledger(name=config.id, initial_time=self._initial_time, verbose=self.verbose)
        self._clear_state()

    def _clear_state(self) -> None:
        self.current_step: int = -1
        self.executed_steps: Set[int] = set()
        self.transactions: Dict[int, Transaction] = {}
        self.query_results: Dict[str, QueryResult] = {}
        self.error: Optional[str] = None

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def switch_demo(self, config: DemoConfig) -> None:
        """Start a different demo on a fresh ledger."""
        self._load(config)

    def reset(self) -> None:
        """Empty the ledger and forget every executed step and query."""
        self.ledger.reset()
        self._clear_state()

    # ========================================================================
    # STEPS
    # ========================================================================

    def substitute_variables(self, text: str) -> str:
        return substitute_variables(text, self.config.variables)

    def execute_step(self, index: int) -> Optional[Transaction]:
        """
        Execute one transaction step.

        On success the transaction is recorded against the step index and
        error is cleared. On a LedgerError (insufficient funds, unsupported
        operation, ...) the message is stored in error, the ledger is left
        unchanged and None is returned.

        Raises:
            IndexError: If the configuration has no such step
        """
        step = self.config.get_step(index)
        try:
            tx = execute_numscript(step.numscript, self.ledger, self.config.variables)
        except LedgerError as e:
            self.error = str(e)
            logger.warning("Step %d (%s) of demo %r failed: %s", index, step.label, self.config.id, e)
            return None

        self.executed_steps.add(index)
        self.transactions[index] = tx
        self.current_step = index
        self.error = None
        return tx

    def execute_all_steps(self) -> List[Transaction]:
        """Execute every step in order, stopping at the first failure."""
        committed = []
        for index in range(len(self.config.transaction_steps)):
            tx = self.execute_step(index)
            if tx is None:
                break
            committed.append(tx)
        return committed

    # ========================================================================
    # QUERIES
    # ========================================================================

    def run_query(self, query: Query) -> QueryResult:
        """
        Run a configured query and cache the result under its title.

        Balance queries with several patterns, or with one prefix or
        wildcard pattern, return per-asset AggregatedBalance totals. A
        single exact pattern returns per-account BalanceResult rows.
        """
        if isinstance(query, BalanceQuery):
            data = self._run_balance_query(query)
        elif isinstance(query, TransactionQuery):
            metadata = None
            if query.metadata:
                metadata = {k: self.substitute_variables(v) for k, v in query.metadata.items()}
            tx_filter = TransactionFilter(
                account=self.substitute_variables(query.account) if query.account else None,
                metadata=metadata,
            )
            data = self.ledger.list_transactions(tx_filter)
        elif isinstance(query, AccountQuery):
            address = self.substitute_variables(query.account_address)
            data = self.ledger.list_accounts(AccountFilter(address=address))
        else:
            raise TypeError(f"Unsupported query: {query!r}")

        result = QueryResult(query.query_type, tuple(data), self.ledger.current_time)
        self.query_results[query.title] = result
        return result

    def _run_balance_query(self, query: BalanceQuery) -> List[Any]:
        if query.address_filters:
            patterns = [self.substitute_variables(p) for p in query.address_filters]
            return self.ledger.get_aggregated_balances(patterns)
        if query.address_filter:
            pattern = self.substitute_variables(query.address_filter)
            if is_wildcard_pattern(pattern):
                return self.ledger.get_aggregated_balances([pattern])
            return self.ledger.get_balances(pattern)
        return []

    # ========================================================================
    # BALANCES
    # ========================================================================

    def get_balance(self, pattern: str) -> List[BalanceResult]:
        return self.ledger.get_balances(self.substitute_variables(pattern))

    def get_formatted_balance(self, pattern: str) -> str:
        """Formatted non-zero balances matching pattern, or "0" if none."""
        balances = self.get_balance(pattern)
        if not balances:
            return "0"
        return ", ".join(format_amount(b.balance, b.asset) for b in balances)

    def get_all_balances(self) -> List[BalanceResult]:
        """Every balance entry of every account except @world, zeros included."""
        return [
            BalanceResult(account.address, asset, balance)
            for account in self.ledger.list_accounts()
            if account.address != WORLD_ACCOUNT
            for asset, balance in account.balances.items()
        ]

    def __repr__(self) -> str:
        return (
            f"DemoSession(demo={self.config.id!r}, "
            f"steps={len(self.executed_steps)}/{len(self.config.transaction_steps)}, "
            f"transactions={self.ledger.get_transaction_count()})"
        )
