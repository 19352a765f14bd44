"""
Test Suite for Bookcrossing

Test Organization:
- conftest.py: Shared fixtures (database, the three apps, sample users)
- test_config.py: Settings validation
- test_auth.py: Identity service (register, login, validate, users)
- test_verifier.py: Local and remote credential verifiers
- test_books.py: Catalog service
- test_exchange_requests.py: Exchange negotiation lifecycle
- test_events.py: Broadcast channel, durable queue, book event consumer
- test_websocket.py: Live notifications

Running Tests:
    # Run all tests
    pytest

    # Run specific file
    pytest tests/test_exchange_requests.py

    # Run with verbose output
    pytest -v
"""
