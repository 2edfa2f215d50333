"""
test_scan.py - Unit tests for the permissive flow-diagram scan
"""

from numscript_ledger import ExtractedPosting, parse_postings_from_numscript, parse_metadata_from_numscript


class TestPostingScan:

    def test_simple_send(self):
        script = "send [USD/2 10000] ( source = @world destination = @users:alice:wallet )"
        assert parse_postings_from_numscript(script) == [
            ExtractedPosting("USD/2 10000", "world", "users:alice:wallet"),
        ]

    def test_overdraft_modifier_skipped(self):
        script = """
        send [USD/2 500] (
            source = @fx:usd allowing unbounded overdraft
            destination = @users:bob
        )
        """
        [posting] = parse_postings_from_numscript(script)
        assert posting.source == "fx:usd"
        assert posting.destination == "users:bob"

    def test_split_destinations(self):
        script = """
        send [USD/2 10000] (
            source = @users:alice
            destination = {
                2.5% to @platform:fees
                remaining to @merchants:acme
            }
        )
        """
        assert parse_postings_from_numscript(script) == [
            ExtractedPosting("2.5% of USD/2 10000", "users:alice", "platform:fees"),
            ExtractedPosting("remaining of USD/2 10000", "users:alice", "merchants:acme"),
        ]

    def test_results_in_script_order(self):
        script = """
        send [USD/2 1] ( source = @a destination = { 50% to @b remaining to @c } )
        send [USD/2 2] ( source = @c destination = @d )
        """
        assert [p.destination for p in parse_postings_from_numscript(script)] == ["b", "c", "d"]

    def test_loose_fallback_for_waterfall(self):
        script = """
        send [USD/2 300] (
            source = { max [USD/2 100] from @promo @wallet }
            destination = @merchant
        )
        """
        assert parse_postings_from_numscript(script) == [
            ExtractedPosting("USD/2 300", "promo", "merchant"),
        ]

    def test_unsubstituted_placeholders_tolerated(self):
        script = "send [USD/2 {AMOUNT}] ( source = @users:{ID} destination = @world )"
        [posting] = parse_postings_from_numscript(script)
        assert posting.amount == "USD/2 {AMOUNT}"
        assert posting.source == "users:{ID}"

    def test_garbage_yields_nothing(self):
        assert parse_postings_from_numscript("send [USD/2 (") == []
        assert parse_postings_from_numscript("") == []


class TestMetadataScan:

    def test_keys_in_order_with_duplicates(self):
        script = """
        set_tx_meta("type", "A")
        set_account_meta(@a, "kyc", "ok")
        set_tx_meta("ref", $ref)
        set_tx_meta("type", "B")
        set_account_meta($user, "tier", [USD/2 5])
        """
        keys = parse_metadata_from_numscript(script)
        assert keys.tx_meta == ["type", "ref", "type"]
        assert keys.account_meta == ["kyc", "tier"]

    def test_incomplete_calls_still_scanned(self):
        keys = parse_metadata_from_numscript('set_tx_meta("half"')
        assert keys.tx_meta == ["half"]
        assert keys.account_meta == []
