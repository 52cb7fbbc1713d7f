"""Test fixtures and utilities."""

import json
import uuid
from pathlib import Path

import pytest

from results_aggregator.migration import init_info_table
from results_aggregator.storage import connect

ORG_ID = 1
OTHER_ORG_ID = 2
ACCOUNT_NUMBER = "1234"
CLUSTER_NAME = "34c3ecc5-624a-49a5-bab8-4fdc5e51a266"
OTHER_CLUSTER_NAME = str(uuid.UUID(int=0xDEADBEEF))

SAMPLE_REPORT = {
    "system": {"metadata": {}, "hostname": None},
    "reports": [
        {
            "component": "ccx_rules_ocp.external.rules.nodes_kubelet_version_check.report",
            "key": "NODE_KUBELET_VERSION",
            "details": {"nodes": ["master-0"]},
        }
    ],
    "skips": [],
}


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_aggregator.db"


@pytest.fixture
def db():
    """In-memory database connection in autocommit mode."""
    conn = connect(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def db_with_info(db):
    """In-memory database with an initialized migration info table."""
    init_info_table(db)
    return db


@pytest.fixture
def sample_report() -> str:
    """Sample report document as received from the analysis pipeline."""
    return json.dumps(SAMPLE_REPORT)
