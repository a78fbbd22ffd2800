"""Generic fixtures for RethinkSync tests."""

import logging

import pytest

from rethinksync.mapping import Mapping
from rethinksync.progress import ProgressRecorder

from .testing_utils import (
    FakeSearchClient,
    FakeSource,
    FakeTable,
    RecordingEvent,
)

logging.getLogger("elasticsearch").setLevel(logging.ERROR)


@pytest.fixture(scope="function")
def posts():
    return [
        {"id": 1, "title": "Hello"},
        {"id": 2, "title": "World"},
        {"id": 3, "title": "Again"},
    ]


@pytest.fixture(scope="function")
def mapping():
    return Mapping("blog", "posts")


@pytest.fixture(scope="function")
def table(posts):
    return FakeTable(rows=posts)


@pytest.fixture(scope="function")
def source(table):
    return FakeSource({("blog", "posts"): table})


@pytest.fixture(scope="function")
def search_client():
    return FakeSearchClient()


@pytest.fixture(scope="function")
def recorder(search_client):
    return ProgressRecorder(search_client, 1, index="river", name="_meta")


@pytest.fixture(scope="function")
def shutdown():
    return RecordingEvent()
