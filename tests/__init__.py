# Flowcast Tests Package

"""
Test suite for the forecast engine, forecast cache, refresh orchestrator
and background refresh scheduler.

Run tests:
    pytest
"""
