"""
Test Suite for the Trade Ledger

This package contains unit tests for the ledger, pricing and curve
modules, organized by module.

Test modules:
    - test_transactions: Transaction records and dictionary conversion
    - test_pricing: Zelen-Severo normal CDF and Black-Scholes valuation
    - test_ledger: Transaction replay, cost basis and realized P/L
    - test_curves: Price sweeps, crossovers and breakevens
    - test_performance: Realized performance metrics
    - test_cli: Configuration, environment and CLI commands

Run all tests:
    pytest tests/ -v

Run specific test file:
    pytest tests/test_ledger.py -v

Run with coverage:
    pytest tests/ --cov=tradeledger --cov-report=term-missing
"""
