import logging
import os

import pytest

from erisdb import config

logger = logging.getLogger(__name__)

ENV_VARS = ("ERISDB_URL", "ERISDB_NAMESPACE", "ERISDB_HTTP_TIMEOUT", "ERISDB_LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """
    Start every test from default configuration with no ERISDB_* overrides.
    """
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config.reset_config()
    yield
    config.reset_config()


@pytest.fixture
def account_params():
    """Named parameters for getAccount."""
    return {"address": "0xabc"}


@pytest.fixture
def node_url():
    return os.environ.get("ERISDB_TEST_NODE_URL", "http://node.example:1337/rpc")
