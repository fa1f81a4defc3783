# tests/conftest.py
import pytest

from src.agents.copywriter_agent import CopywriterAgent
from src.specs.agents.image import ImageResult

from helpers import FakeChatClient


@pytest.fixture
def fake_chat_client():
    def _make(*replies):
        return FakeChatClient(list(replies))
    return _make


@pytest.fixture
def make_copywriter(fake_chat_client):
    def _make(*replies):
        client = fake_chat_client(*replies)
        return CopywriterAgent(client, model="gpt-4o-mini"), client
    return _make


@pytest.fixture
def sample_image():
    return ImageResult(url="https://img/x.jpg", altText="coffee shop")
