"""
test_demo_config.py - Unit tests for demo configuration loading
"""

import json

import pytest

from numscript_ledger import (
    AccountDefinition, AccountQuery, BalanceQuery, DemoConfig, DemoConfigError,
    TransactionQuery, query_from_dict,
)


class TestDemoConfigLoading:

    def test_from_dict(self, remittance_config):
        assert remittance_config.id == "remittance"
        assert len(remittance_config.accounts) == 4
        assert remittance_config.accounts[1].address == "@senders:{SENDER_ID}:wallet"
        assert remittance_config.variables["SENDER_ID"] == "s-001"
        assert [s.tx_type for s in remittance_config.transaction_steps] == [
            "DEPOSIT", "TRANSFER", "TRANSFER",
        ]

    def test_step_queries(self, remittance_config):
        [query] = remittance_config.transaction_steps[1].queries
        assert isinstance(query, BalanceQuery)
        assert query.address_filter == "recipients:{RECIPIENT_ID}:wallet"

    def test_useful_queries(self, remittance_config):
        balance, transactions, accounts = remittance_config.useful_queries
        assert balance.address_filters == ("senders:", "recipients:")
        assert isinstance(transactions, TransactionQuery)
        assert transactions.metadata == {"type": "TRANSFER"}
        assert transactions.account is None
        assert isinstance(accounts, AccountQuery)
        assert accounts.account_address == "platform:"

    def test_from_json(self, remittance_config_data):
        config = DemoConfig.from_json(json.dumps(remittance_config_data))
        assert config.name == "Cross-border remittance"

    def test_invalid_json(self):
        with pytest.raises(DemoConfigError, match="JSON"):
            DemoConfig.from_json("{not json")

    def test_optional_sections(self):
        config = DemoConfig.from_dict({"id": "x", "name": "X"})
        assert config.accounts == ()
        assert config.transaction_steps == ()
        assert config.variables == {}

    @pytest.mark.parametrize("field", ["id", "name"])
    def test_missing_required(self, remittance_config_data, field):
        del remittance_config_data[field]
        with pytest.raises(DemoConfigError, match=field):
            DemoConfig.from_dict(remittance_config_data)

    def test_missing_numscript(self, remittance_config_data):
        del remittance_config_data["transactionSteps"][0]["numscript"]
        with pytest.raises(DemoConfigError, match="numscript"):
            DemoConfig.from_dict(remittance_config_data)

    def test_not_an_object(self):
        with pytest.raises(DemoConfigError):
            DemoConfig.from_dict(["id"])


class TestAccountDefinition:

    def test_unknown_color(self):
        with pytest.raises(ValueError, match="color"):
            AccountDefinition("@a", "A", color="mauve")

    def test_unknown_color_from_dict(self):
        with pytest.raises(DemoConfigError, match="color"):
            AccountDefinition.from_dict({"address": "@a", "name": "A", "color": "mauve"})

    def test_default_color(self):
        assert AccountDefinition.from_dict({"address": "@a", "name": "A"}).color == "slate"


class TestQueryFromDict:

    def test_unknown_type(self):
        with pytest.raises(DemoConfigError, match="unknown queryType"):
            query_from_dict({"queryType": "charts", "title": "t"})

    def test_account_query_requires_address(self):
        with pytest.raises(DemoConfigError, match="accountAddress"):
            query_from_dict({"queryType": "accounts", "title": "t"})

    def test_query_type_attribute(self):
        assert query_from_dict({"queryType": "balance", "title": "t"}).query_type == "balance"
