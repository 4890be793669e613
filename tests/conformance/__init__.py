"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the liquidity ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Share, asset and split conservation
2. atomicity.py - All-or-nothing operations, reentrancy rejection
3. idempotency.py - Materialization is idempotent and matches the virtual view
4. allocation_bounds.py - Layer claims never exceed backing
5. determinism.py - Reproducible behavior

These tests use hypothesis for property-based testing.
"""
