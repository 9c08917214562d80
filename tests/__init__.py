"""
Checkout Service Test Suite

This package contains all tests for the checkout service including:
- Unit tests for gateway adapters
- Deposit store tests
- Session creation and webhook reconciliation tests
- HTTP API tests
"""
