"""Pytest configuration and shared fixtures."""

import pytest

# Load environment variables from .env file at test startup
# This ensures EZSUB_* settings are available before fixtures are created
from dotenv import load_dotenv
load_dotenv()

# Import all fixtures from fixture modules
pytest_plugins = [
    "tests.fixtures.state",
    "tests.fixtures.backend",
]
