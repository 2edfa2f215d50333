"""
test_session.py - Unit tests for DemoSession

Tests:
- Step execution, recording and failure handling
- Query translation and caching
- Balance helpers
- Reset and demo switching
"""

import logging
from datetime import datetime

import pytest

from numscript_ledger import (
    AggregatedBalance, BalanceQuery, BalanceResult, DemoConfig, DemoSession,
    execute_numscript,
)


@pytest.fixture
def session(remittance_config):
    return DemoSession(remittance_config, initial_time=datetime(2025, 6, 1))


class TestSteps:

    def test_execute_step(self, session):
        tx = session.execute_step(0)
        assert tx.id == 1
        assert tx.metadata["type"] == "DEPOSIT"
        assert session.executed_steps == {0}
        assert session.transactions[0] is tx
        assert session.current_step == 0
        assert session.error is None
        assert session.ledger.get_balance("@senders:s-001:wallet", "USD/2") == 100000

    def test_split_step_and_account_metadata(self, session):
        session.execute_step(0)
        session.execute_step(1)
        ledger = session.ledger
        assert ledger.get_balance("@platform:fees", "USD/2") == 400
        assert ledger.get_balance("@recipients:r-001:wallet", "USD/2") == 39600
        assert ledger.get_account_metadata("@recipients:r-001:wallet", "kyc") == "verified"

    def test_failed_step_records_error(self, session, caplog):
        session.execute_all_steps()
        assert session.executed_steps == {0, 1}
        assert "Insufficient funds" in session.error
        assert session.ledger.get_transaction_count() == 2
        assert any("Overspend" in r.getMessage() for r in caplog.records
                   if r.levelno == logging.WARNING)

    def test_success_clears_error(self, session):
        session.execute_step(2)
        assert session.error is not None
        session.execute_step(0)
        assert session.error is None

    def test_missing_step(self, session):
        with pytest.raises(IndexError):
            session.execute_step(10)

    def test_execute_all_stops_at_failure(self, session):
        committed = session.execute_all_steps()
        assert [tx.id for tx in committed] == [1, 2]

    def test_substitute_variables(self, session):
        assert session.substitute_variables("@senders:{SENDER_ID}:wallet") == "@senders:s-001:wallet"

    def test_step_variables_expanded_once(self, remittance_config_data):
        remittance_config_data["variables"]["MEMO"] = "for {RECIPIENT_ID}"
        remittance_config_data["transactionSteps"][0]["numscript"] += '\nset_tx_meta("memo", "{MEMO}")'
        session = DemoSession(DemoConfig.from_dict(remittance_config_data))
        tx = session.execute_step(0)
        assert tx.metadata["memo"] == "for {RECIPIENT_ID}"


class TestQueries:

    def test_exact_balance_query(self, session):
        session.execute_all_steps()
        query = session.config.transaction_steps[1].queries[0]
        result = session.run_query(query)
        assert result.query_type == "balance"
        assert result.data == (BalanceResult("@recipients:r-001:wallet", "USD/2", 39600),)
        assert result.timestamp == datetime(2025, 6, 1)

    def test_multi_pattern_query_aggregates(self, session):
        session.execute_all_steps()
        result = session.run_query(session.config.useful_queries[0])
        [total] = result.data
        assert isinstance(total, AggregatedBalance)
        assert total.balance == 60000 + 39600
        assert set(total.accounts) == {"@senders:s-001:wallet", "@recipients:r-001:wallet"}

    def test_prefix_pattern_aggregates(self, session):
        session.execute_all_steps()
        result = session.run_query(BalanceQuery(title="senders", address_filter="senders:"))
        assert result.data == (AggregatedBalance("USD/2", 60000, ("@senders:s-001:wallet",)),)

    def test_empty_balance_query(self, session):
        assert session.run_query(BalanceQuery(title="nothing")).data == ()

    def test_transaction_query(self, session):
        session.execute_all_steps()
        result = session.run_query(session.config.useful_queries[1])
        assert result.query_type == "transactions"
        assert [tx.id for tx in result.data] == [2]

    def test_account_query(self, session):
        session.execute_all_steps()
        result = session.run_query(session.config.useful_queries[2])
        assert [a.address for a in result.data] == ["@platform:fees"]

    def test_results_cached_by_title(self, session):
        query = session.config.useful_queries[0]
        result = session.run_query(query)
        assert session.query_results[query.title] is result


class TestBalances:

    def test_formatted_balance(self, session):
        session.execute_step(0)
        assert session.get_formatted_balance("@senders:{SENDER_ID}:wallet") == "$1000.00"

    def test_formatted_balance_none(self, session):
        assert session.get_formatted_balance("@nobody") == "0"

    def test_all_balances_exclude_world(self, session):
        session.execute_step(0)
        session.execute_step(1)
        balances = {(b.address, b.balance) for b in session.get_all_balances()}
        assert ("@senders:s-001:wallet", 60000) in balances
        assert not any(address == "@world" for address, _ in balances)

    def test_all_balances_keep_zero_entries(self, session):
        session.execute_step(0)
        session.execute_step(1)
        execute_numscript(
            "send [USD/2 39600] ( source = @recipients:r-001:wallet destination = @world )",
            session.ledger)
        balances = {(b.address, b.balance) for b in session.get_all_balances()}
        assert ("@recipients:r-001:wallet", 0) in balances


class TestLifecycle:

    def test_reset(self, session):
        session.execute_all_steps()
        session.run_query(session.config.useful_queries[0])
        session.reset()
        assert session.ledger.get_transaction_count() == 0
        assert session.executed_steps == set()
        assert session.transactions == {}
        assert session.query_results == {}
        assert session.error is None
        assert session.current_step == -1

    def test_switch_demo(self, session):
        session.execute_step(0)
        old_ledger = session.ledger
        other = DemoConfig.from_dict({"id": "other", "name": "Other"})
        session.switch_demo(other)
        assert session.ledger is not old_ledger
        assert session.ledger.name == "other"
        assert session.ledger.get_transaction_count() == 0
        assert session.config is other

    def test_repr(self, session):
        session.execute_step(0)
        assert repr(session) == "DemoSession(demo='remittance', steps=1/3, transactions=1)"
