"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the Numscript ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Every asset sums to zero across all accounts
2. atomicity.py - All-or-nothing transaction and script semantics
3. overdraft.py - Only @world and granted accounts may go negative
4. patterns.py - Prefix, segment-wildcard and exact address matching
5. portions.py - Destination splits never create or lose value

These tests use hypothesis for property-based testing.
"""
