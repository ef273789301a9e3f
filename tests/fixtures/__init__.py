"""Test fixtures for pointcloth unit and integration tests.

Fixtures:
    - small_trial.yml: Minimal trial configuration used by the CLI tests
"""
