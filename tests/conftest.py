"""Pytest configuration and shared fixtures."""

import logging

import pytest

from services.search_index.SearchManager import SearchManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.search.sources.SearchSourceManager import SearchSourceManager
from shared.stores.ResultCache import ResultCache
from shared.stores.memory.ConfigStoreMemory import ConfigStoreMemory
from tests.fakes import FakeHostClient, RecordingEngine


@pytest.fixture
def helper_config() -> HelperConfig:
    """Configuration helper with a plain test logger."""
    return HelperConfig(logger=ColorLogger(logging.getLogger("globalsearch.tests")))


@pytest.fixture
def host() -> FakeHostClient:
    """Host with one course holding a forum (context 501) and a url (context 601)."""
    host = FakeHostClient()
    host.add_course(courseid=5, contextid=50, fullname="Physics 101")
    host.add_user(userid=2)
    host.add_forum(forumid=10, courseid=5, cmid=30, contextid=501)
    return host


@pytest.fixture
def config_store(helper_config) -> ConfigStoreMemory:
    return ConfigStoreMemory(helper_config=helper_config)


@pytest.fixture
def engine(helper_config) -> RecordingEngine:
    return RecordingEngine(helper_config=helper_config)


@pytest.fixture
def registry(helper_config, host, config_store, engine) -> SearchSourceManager:
    return SearchSourceManager(
        helper_config=helper_config,
        host_client=host,
        config_store=config_store,
        document_class=engine.get_document_class(),
    )


@pytest.fixture
def manager(helper_config, engine, registry, config_store) -> SearchManager:
    return SearchManager(
        helper_config=helper_config,
        engine=engine,
        registry=registry,
        config_store=config_store,
        cache=ResultCache(ttl=300),
    )
