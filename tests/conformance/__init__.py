"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending pool.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Token and share conservation across pool operations
2. atomicity.py - All-or-nothing operation semantics
3. idempotency.py - Duplicate execution handling and operation nonces
4. arithmetic.py - Fixed-point rounding, rate curve and accrual bounds

These tests use hypothesis for property-based testing.
"""
