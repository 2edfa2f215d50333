"""
numscript_ledger - Numscript Engine over an In-Memory Ledger

Parses and executes Numscript, a scripting language for double-entry money
movements, against an in-memory ledger that enforces the funds invariant.

Usage:
    from numscript_ledger import Ledger, execute_numscript, format_amount

    ledger = Ledger("main")

    # Fund a wallet from @world (the only account that may always go negative)
    execute_numscript('''
        send [USD/2 10000] (
            source = @world
            destination = @users:alice:wallet
        )
    ''', ledger)

    # Split a payment with a fee, all postings committed together
    tx = execute_numscript('''
        send [USD/2 10000] (
            source = @users:alice:wallet
            destination = {
                2.5% to @platform:fees
                remaining to $merchant
            }
        )
        set_tx_meta("type", "PAYMENT")
    ''', ledger, {"merchant": "@merchants:acme"})

    format_amount(ledger.get_balance("@merchants:acme", "USD/2"), "USD/2")  # "$97.50"
"""

# Core types
from .core import (
    Asset,
    Monetary,
    Posting,
    Transaction,
    Account,
    BalanceResult,
    AggregatedBalance,
    TransactionFilter,
    AccountFilter,
    LedgerErrorCode,
    LedgerError,
    InsufficientFunds,
    NumscriptParseError,
    ExecutionError,
    UnsupportedOperation,
    DemoConfigError,
    ACCOUNT_SIGIL,
    WORLD_ACCOUNT,
    SEND_ALL,
    normalize_address,
    strip_sigil,
    matches_pattern,
    is_wildcard_pattern,
)

# Ledger
from .ledger import Ledger

# Variables
from .variables import (
    VariableValue,
    bind_variable,
    bind_variables,
    substitute_variables,
)

# Parsing
from .parser import (
    ParsedSource,
    ParsedDestination,
    ParsedSend,
    ParsedMetadata,
    ParsedVariable,
    ParseFailure,
    ParsedNumscript,
    parse_asset,
    parse_monetary,
    parse_send,
    parse_numscript,
)
from .scan import (
    ExtractedPosting,
    MetadataKeys,
    parse_postings_from_numscript,
    parse_metadata_from_numscript,
)

# Execution
from .executor import (
    PendingBalances,
    ResolvedSource,
    ValidationResult,
    resolve_sources,
    calculate_portion,
    allocate_destinations,
    execute_send,
    execute_numscript,
    validate_numscript,
)

# Formatting
from .formatting import format_amount

# Demo sessions
from .demo_config import (
    AccountDefinition,
    BalanceQuery,
    TransactionQuery,
    AccountQuery,
    TransactionStep,
    DemoConfig,
    query_from_dict,
)
from .session import DemoSession, QueryResult


__all__ = [
    # Core types
    'Asset',
    'Monetary',
    'Posting',
    'Transaction',
    'Account',
    'BalanceResult',
    'AggregatedBalance',
    'TransactionFilter',
    'AccountFilter',
    'LedgerErrorCode',
    'LedgerError',
    'InsufficientFunds',
    'NumscriptParseError',
    'ExecutionError',
    'UnsupportedOperation',
    'DemoConfigError',
    'ACCOUNT_SIGIL',
    'WORLD_ACCOUNT',
    'SEND_ALL',
    'normalize_address',
    'strip_sigil',
    'matches_pattern',
    'is_wildcard_pattern',
    # Ledger
    'Ledger',
    # Variables
    'VariableValue',
    'bind_variable',
    'bind_variables',
    'substitute_variables',
    # Parsing
    'ParsedSource',
    'ParsedDestination',
    'ParsedSend',
    'ParsedMetadata',
    'ParsedVariable',
    'ParseFailure',
    'ParsedNumscript',
    'parse_asset',
    'parse_monetary',
    'parse_send',
    'parse_numscript',
    'ExtractedPosting',
    'MetadataKeys',
    'parse_postings_from_numscript',
    'parse_metadata_from_numscript',
    # Execution
    'PendingBalances',
    'ResolvedSource',
    'ValidationResult',
    'resolve_sources',
    'calculate_portion',
    'allocate_destinations',
    'execute_send',
    'execute_numscript',
    'validate_numscript',
    # Formatting
    'format_amount',
    # Demo sessions
    'AccountDefinition',
    'BalanceQuery',
    'TransactionQuery',
    'AccountQuery',
    'TransactionStep',
    'DemoConfig',
    'query_from_dict',
    'DemoSession',
    'QueryResult',
]

__version__ = '1.0.0'
