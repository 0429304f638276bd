"""Exceptions raised by a network test run."""

from __future__ import annotations


class NetworkTestError(RuntimeError):
    """A test run failed as a whole and produced no result."""


class TestCancelled(NetworkTestError):
    """The run was cancelled or exceeded its hard time ceiling."""

    __test__ = False  # not a pytest test class


class TestInProgressError(NetworkTestError):
    """A second run was requested while one is still active."""

    __test__ = False
