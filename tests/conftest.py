import pytest

from tryon.config import Settings


@pytest.fixture
def settings():
    return Settings(scraper_api_key="scraper-key", genai_api_key="genai-key")


@pytest.fixture
def bare_settings():
    return Settings()
