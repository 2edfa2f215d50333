"""
demo_config.py - Demo configuration types

A demo configuration describes one scripted walkthrough: the accounts to
show, the variables substituted into every script and query, the ordered
transaction steps, and the queries worth running along the way.

Configurations arrive as plain dicts in the JSON shape (camelCase keys)
used by hand-written and generated demos:

    {
        "id": "remittance",
        "name": "Cross-border remittance",
        "description": "...",
        "accounts": [{"address": "@world", "name": "World",
                      "description": "...", "color": "slate"}],
        "variables": {"SENDER_ID": "s-1"},
        "transactionSteps": [{"txType": "DEPOSIT", "label": "Fund",
                              "description": "...", "numscript": "send ..."}],
        "usefulQueries": [{"queryType": "balance", "title": "...",
                           "description": "...", "addressFilter": "users:"}]
    }

DemoConfig.from_dict() validates that shape and raises DemoConfigError
on anything malformed.
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

from .core import DemoConfigError


# Display colours accepted for accounts
ACCOUNT_COLORS = frozenset({
    'slate', 'gray', 'zinc', 'red', 'orange', 'amber', 'yellow', 'lime',
    'green', 'emerald', 'teal', 'cyan', 'sky', 'blue', 'indigo', 'violet',
    'purple', 'fuchsia', 'pink', 'rose',
})

QUERY_BALANCE = "balance"
QUERY_TRANSACTIONS = "transactions"
QUERY_ACCOUNTS = "accounts"


def _require(data: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise DemoConfigError(f"{where}: missing '{key}'", details={"field": key})
    return data[key]


def _require_str(data: Mapping[str, Any], key: str, where: str) -> str:
    value = _require(data, key, where)
    if not isinstance(value, str):
        raise DemoConfigError(f"{where}: '{key}' must be a string", details={"field": key})
    return value


# ============================================================================
# ACCOUNTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class AccountDefinition:
    """An account shown in a demo. address may contain {NAME} placeholders."""
    address: str
    name: str
    description: str = ""
    color: str = "slate"

    def __post_init__(self):
        if not self.address:
            raise ValueError("Account address cannot be empty")
        if self.color not in ACCOUNT_COLORS:
            raise ValueError(f"Unknown account color: {self.color}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AccountDefinition:
        where = "account"
        try:
            return cls(
                address=_require_str(data, 'address', where),
                name=_require_str(data, 'name', where),
                description=data.get('description', ""),
                color=data.get('color', "slate"),
            )
        except ValueError as e:
            raise DemoConfigError(f"{where}: {e}") from e


# ============================================================================
# QUERIES
# ============================================================================

@dataclass(frozen=True, slots=True)
class BalanceQuery:
    """
    Balance lookup by one pattern (address_filter) or several
    (address_filters, summed per asset).
    """
    query_type: ClassVar[str] = QUERY_BALANCE

    title: str
    description: str = ""
    address_filter: Optional[str] = None
    address_filters: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TransactionQuery:
    """Transaction listing filtered by account pattern and/or exact metadata."""
    query_type: ClassVar[str] = QUERY_TRANSACTIONS

    title: str
    description: str = ""
    account: Optional[str] = None
    metadata: Optional[Mapping[str, str]] = None


@dataclass(frozen=True, slots=True)
class AccountQuery:
    query_type: ClassVar[str] = QUERY_ACCOUNTS

    title: str
    description: str = ""
    account_address: str = ""


Query = Union[BalanceQuery, TransactionQuery, AccountQuery]


def query_from_dict(data: Mapping[str, Any]) -> Query:
    """
    Build a query from its JSON shape, dispatching on "queryType".

    Raises:
        DemoConfigError: Unknown query type or missing fields
    """
    query_type = _require_str(data, 'queryType', "query")
    title = _require_str(data, 'title', "query")
    description = data.get('description', "")

    if query_type == QUERY_BALANCE:
        filters = data.get('addressFilters') or ()
        return BalanceQuery(
            title=title,
            description=description,
            address_filter=data.get('addressFilter'),
            address_filters=tuple(filters),
        )
    if query_type == QUERY_TRANSACTIONS:
        tx_filter = data.get('transactionFilter') or {}
        metadata = tx_filter.get('metadata')
        return TransactionQuery(
            title=title,
            description=description,
            account=tx_filter.get('account'),
            metadata=dict(metadata) if metadata else None,
        )
    if query_type == QUERY_ACCOUNTS:
        return AccountQuery(
            title=title,
            description=description,
            account_address=_require_str(data, 'accountAddress', f"query '{title}'"),
        )
    raise DemoConfigError(
        f"query '{title}': unknown queryType '{query_type}'",
        details={"queryType": query_type},
    )


# ============================================================================
# STEPS AND CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionStep:
    tx_type: str
    label: str
    description: str
    numscript: str
    queries: Tuple[Query, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TransactionStep:
        where = f"step '{data.get('label', '?')}'"
        return cls(
            tx_type=_require_str(data, 'txType', where),
            label=_require_str(data, 'label', where),
            description=data.get('description', ""),
            numscript=_require_str(data, 'numscript', where),
            queries=tuple(query_from_dict(q) for q in data.get('queries') or ()),
        )


@dataclass(frozen=True, slots=True)
class DemoConfig:
    """
    A complete demo.

    Attributes:
        id: Stable identifier (also names the session's ledger)
        name: Display name
        description: One-paragraph summary
        accounts: Accounts to display, in order
        variables: Values for {NAME} / $name placeholders
        transaction_steps: Steps executed in order
        useful_queries: Queries offered outside any particular step
    """
    id: str
    name: str
    description: str = ""
    accounts: Tuple[AccountDefinition, ...] = ()
    variables: Dict[str, Any] = field(default_factory=dict)
    transaction_steps: Tuple[TransactionStep, ...] = ()
    useful_queries: Tuple[Query, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DemoConfig:
        """
        Build a configuration from its JSON shape.

        Raises:
            DemoConfigError: If a required field is missing or malformed
        """
        if not isinstance(data, Mapping):
            raise DemoConfigError("Demo configuration must be an object")
        variables = data.get('variables') or {}
        if not isinstance(variables, Mapping):
            raise DemoConfigError("demo: 'variables' must be an object", details={"field": "variables"})
        return cls(
            id=_require_str(data, 'id', "demo"),
            name=_require_str(data, 'name', "demo"),
            description=data.get('description', ""),
            accounts=tuple(AccountDefinition.from_dict(a) for a in data.get('accounts') or ()),
            variables=dict(variables),
            transaction_steps=tuple(
                TransactionStep.from_dict(s) for s in data.get('transactionSteps') or ()
            ),
            useful_queries=tuple(query_from_dict(q) for q in data.get('usefulQueries') or ()),
        )

    @classmethod
    def from_json(cls, text: str) -> DemoConfig:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DemoConfigError(f"Invalid demo configuration JSON: {e}") from e
        return cls.from_dict(data)

    def get_step(self, index: int) -> TransactionStep:
        return self.transaction_steps[index]
