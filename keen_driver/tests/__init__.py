"""
Test suite for Keen driver.

Tests are organized into:
- test_client.py - Main driver functionality tests
- test_exceptions.py - Exception handling tests
- test_integration.py - Integration and workflow tests
- conftest.py - Pytest fixtures and configuration

Run tests with:
    pytest keen_driver/tests/
    pytest keen_driver/tests/ -v
    pytest keen_driver/tests/ --cov=keen_driver

Test coverage includes:
- Driver initialization and configuration
- Request construction (URLs, headers, bodies)
- Response decoding and result projections
- Error handling
- Diagnostics and credential redaction
"""
