"""
Configuration for pytest to set up the proper import paths and shared fixtures.
"""

import sys
from pathlib import Path
import pytest
from fastapi.testclient import TestClient

# Add the parent directory to Python path so we can import enumerable, utils, app
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import app
from utils import clear_performance_metrics


class RecordingSource:
    """Infinite ascending integers that record every pull made on them."""

    def __init__(self, start=0, limit=None):
        self.next_value = start
        self.limit = limit
        self.pulls = 0

    def __iter__(self):
        return self

    def __next__(self):
        if self.limit is not None and self.pulls >= self.limit:
            raise StopIteration
        self.pulls += 1
        value = self.next_value
        self.next_value += 1
        return value


@pytest.fixture
def recording_source():
    """Factory for pull-recording sources."""
    return RecordingSource


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def fresh_metrics():
    clear_performance_metrics()
    yield
    clear_performance_metrics()
