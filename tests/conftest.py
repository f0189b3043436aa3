"""Shared fixtures for the inventory tests."""

import logging

import pytest


@pytest.fixture
def sleeps():
    """Collects requested back-off delays instead of sleeping."""
    return []


@pytest.fixture(autouse=True)
def reset_inventory_logger():
    """configure_logging() binds a handler to the current stderr; undo it."""
    yield
    logger = logging.getLogger("inventory")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
