"""
conftest.py - Shared pytest fixtures for Numscript ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Ledgers (empty, funded, on a logical clock)
- A small demo configuration in its JSON shape
- Helper for funding accounts from @world
"""

import pytest
from datetime import datetime
from typing import Any, Dict

from numscript_ledger import Ledger, Posting, DemoConfig, WORLD_ACCOUNT


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def fund_account(ledger: Ledger, address: str, amount: int, asset: str = "USD/2") -> None:
    """Credit an account from @world with a single-posting transaction."""
    ledger.create_transaction([Posting(WORLD_ACCOUNT, address, asset, amount)])


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def fund():
    """The fund_account helper, for tests that seed balances."""
    return fund_account


@pytest.fixture
def empty_ledger():
    """Fresh ledger holding only @world."""
    return Ledger("test", verbose=False)


@pytest.fixture
def clocked_ledger():
    """Ledger on a logical clock starting 2025-01-01."""
    return Ledger("test", initial_time=datetime(2025, 1, 1), verbose=False)


@pytest.fixture
def funded_ledger():
    """Ledger with alice holding $100.00 (10000 USD/2)."""
    ledger = Ledger("test", initial_time=datetime(2025, 1, 1), verbose=False)
    fund_account(ledger, "@users:alice:wallet", 10000)
    return ledger


# =============================================================================
# DEMO FIXTURES
# =============================================================================

@pytest.fixture
def remittance_config_data() -> Dict[str, Any]:
    """JSON-shaped configuration for a three-step remittance demo."""
    return {
        "id": "remittance",
        "name": "Cross-border remittance",
        "description": "Fund a sender, pay a recipient abroad, take a fee",
        "accounts": [
            {"address": "@world", "name": "World", "description": "Outside", "color": "slate"},
            {"address": "@senders:{SENDER_ID}:wallet", "name": "Sender", "description": "", "color": "blue"},
            {"address": "@recipients:{RECIPIENT_ID}:wallet", "name": "Recipient", "description": "", "color": "green"},
            {"address": "@platform:fees", "name": "Fees", "description": "", "color": "amber"},
        ],
        "variables": {
            "SENDER_ID": "s-001",
            "RECIPIENT_ID": "r-001",
            "DEPOSIT": "100000",
            "TRANSFER": "40000",
        },
        "transactionSteps": [
            {
                "txType": "DEPOSIT",
                "label": "Sender deposits $1,000",
                "description": "Card top-up",
                "numscript": (
                    "send [USD/2 {DEPOSIT}] (\n"
                    "  source = @world\n"
                    "  destination = @senders:{SENDER_ID}:wallet\n"
                    ")\n"
                    'set_tx_meta("type", "DEPOSIT")'
                ),
            },
            {
                "txType": "TRANSFER",
                "label": "Send $400 with a 1% fee",
                "description": "Fee goes to the platform",
                "numscript": (
                    "send [USD/2 {TRANSFER}] (\n"
                    "  source = @senders:{SENDER_ID}:wallet\n"
                    "  destination = {\n"
                    "    1% to @platform:fees\n"
                    "    remaining to @recipients:{RECIPIENT_ID}:wallet\n"
                    "  }\n"
                    ")\n"
                    'set_tx_meta("type", "TRANSFER")\n'
                    'set_account_meta(@recipients:{RECIPIENT_ID}:wallet, "kyc", "verified")'
                ),
                "queries": [
                    {
                        "queryType": "balance",
                        "title": "Recipient balance",
                        "description": "",
                        "addressFilter": "recipients:{RECIPIENT_ID}:wallet",
                    }
                ],
            },
            {
                "txType": "TRANSFER",
                "label": "Overspend",
                "description": "Fails: only $600 left",
                "numscript": (
                    "send [USD/2 100000] (\n"
                    "  source = @senders:{SENDER_ID}:wallet\n"
                    "  destination = @recipients:{RECIPIENT_ID}:wallet\n"
                    ")"
                ),
            },
        ],
        "usefulQueries": [
            {
                "queryType": "balance",
                "title": "All wallets",
                "description": "",
                "addressFilters": ["senders:", "recipients:"],
            },
            {
                "queryType": "transactions",
                "title": "Transfers",
                "description": "",
                "transactionFilter": {"metadata": {"type": "TRANSFER"}},
            },
            {
                "queryType": "accounts",
                "title": "Platform accounts",
                "description": "",
                "accountAddress": "platform:",
            },
        ],
    }


@pytest.fixture
def remittance_config(remittance_config_data) -> DemoConfig:
    return DemoConfig.from_dict(remittance_config_data)
