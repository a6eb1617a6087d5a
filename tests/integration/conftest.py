"""Pytest configuration and fixtures for integration tests.

Ensures environment variables are loaded and skips live tests when no
Gemini API key is configured.
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv


def pytest_configure(config):
    """Load .env from the project root before test collection."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    print("\n" + "=" * 70)
    print("Note: Integration tests call the live Gemini API and require GEMINI_API_KEY")
    print(f"Environment loaded from: {env_path}")
    print("=" * 70 + "\n")


@pytest.fixture(autouse=True)
def check_api_keys():
    """Skip live tests if GEMINI_API_KEY is not configured in the environment or .env."""
    if not os.getenv("GEMINI_API_KEY"):
        pytest.skip("Integration tests skipped. Missing API key: GEMINI_API_KEY. Please set it in your .env file.")
