"""FitCoach Notifications Test Suite

Tests for the smart notification scheduler.

Test organization:
- unit/notifications/: Unit tests per module (models, trigger calculator,
  reconciler, preference and committed stores, messages, config, CLI,
  logging context, scheduler orchestration)
- integration/: Settings API tests against a real scheduler

The shared FrozenClock starts at Monday 2026-10-19 07:00 UTC.

Running tests:
    # All tests
    pytest

    # Scheduler only
    pytest tests/unit/notifications/test_scheduler.py

    # With coverage
    pytest --cov=fitcoach --cov-report=term-missing
"""
