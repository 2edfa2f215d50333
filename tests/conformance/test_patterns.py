"""
Pattern Matching Conformance Tests

INVARIANT: Exactly one matching rule applies to a pattern.
    - trailing ":"      prefix match on the pattern without its colon
    - contains "::"     segment-wise match, equal segment counts,
                        empty pattern segments match anything
    - otherwise         exact match
The leading "@" is ignored on both sides.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from numscript_ledger import Ledger, Posting, matches_pattern


segments = st.text(alphabet="abcdefgh0123456789", min_size=1, max_size=6)
addresses = st.lists(segments, min_size=1, max_size=5).map(":".join)


class TestPatternProperties:

    @given(addresses)
    @settings(max_examples=50)
    def test_exact_match_with_or_without_sigil(self, address):
        assert matches_pattern("@" + address, address)
        assert matches_pattern("@" + address, "@" + address)

    @given(addresses, addresses)
    @settings(max_examples=50)
    def test_prefix_matches_descendants(self, parent, child):
        assert matches_pattern(f"@{parent}:{child}", f"{parent}:")

    @given(st.lists(segments, min_size=2, max_size=5), st.data())
    @settings(max_examples=50)
    def test_wildcard_segment(self, parts, data):
        """
        PROPERTY: Blanking any one segment except the last still matches;
        adding a segment to the address never does.
        """
        hole = data.draw(st.integers(min_value=0, max_value=len(parts) - 2))
        pattern_parts = list(parts)
        pattern_parts[hole] = ""
        # Pattern must contain "::" for the wildcard rule
        pattern = ":".join(pattern_parts)
        if "::" not in pattern:
            return
        address = "@" + ":".join(parts)
        assert matches_pattern(address, pattern)
        assert not matches_pattern(address + ":extra", pattern)

    @given(st.lists(addresses, min_size=1, max_size=8, unique=True))
    @settings(max_examples=50)
    def test_get_balances_is_exactly_the_matching_set(self, names):
        ledger = Ledger("test")
        for i, name in enumerate(names):
            ledger.create_transaction([Posting("@world", f"@customers:{name}", "USD/2", i + 1)])
        found = {b.address for b in ledger.get_balances("customers:")}
        assert found == {f"@customers:{name}" for name in names}


class TestPatternExamples:

    def test_wildcard_examples(self):
        ledger = Ledger("test")
        for address in ("@customers:111:available", "@customers:222:available",
                        "@customers:111:pending", "@customers:111:sub:available"):
            ledger.create_transaction([Posting("@world", address, "USD/2", 1)])
        found = {b.address for b in ledger.get_balances("customers::available")}
        assert found == {"@customers:111:available", "@customers:222:available"}
