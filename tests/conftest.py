import os

import pytest

from shardmerge.core.config.merge_config import MergeConfig
from shardmerge.core.models.shard import Shard, ShardState
from shardmerge.services.merge_context import MergeContext
from shardmerge.services.merge_orchestrator import MergeOrchestrator
from tests.fixtures.fake_cluster import (
    FakeAggregateNode,
    FakeCluster,
    FakeFileTransfer,
    FakeNode,
    FakeTable,
    FakeTableProvider,
    make_rows,
)


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests",
    )


def pytest_collection_modifyitems(config, items):
    run_slow = (
        config.getoption("--run-slow")
        or os.getenv("SHARDMERGE_RUN_SLOW_TESTS") == "1"
    )
    if not run_slow:
        skip_slow = pytest.mark.skip(
            reason="slow tests skipped (use --run-slow or SHARDMERGE_RUN_SLOW_TESTS=1)"
        )
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture
def clean_environment(monkeypatch):
    """Unset SHARDMERGE_* variables that alter configuration loading."""
    for key in [k for k in os.environ if k.startswith("SHARDMERGE_")]:
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def tables():
    return [FakeTable("users"), FakeTable("posts", ("id", "user_id"))]


@pytest.fixture
def table_provider(tables):
    return FakeTableProvider(tables)


@pytest.fixture
def shard_pair(cluster):
    """Two live shards [1,1000] and [1001,2000], each with a standby slave.

    Each standby slave holds only rows inside its shard's range. Shard A
    lists an older standby first; merges and validation must use the last one.
    """
    shard_a = Shard(min_id=1, max_id=1000, state=ShardState.READY)
    shard_b = Shard(min_id=1001, max_id=2000, state=ShardState.READY)
    replica_a = FakeNode(
        "replica-a",
        cluster,
        tables={
            "users": make_rows(range(1, 11)),
            "posts": make_rows(range(1, 21), user_id=lambda i: i % 10 + 1),
        },
        pool=shard_a,
        binlog=("mysql-bin.000007", 1234),
    )
    replica_b = FakeNode(
        "replica-b",
        cluster,
        tables={
            "users": make_rows(range(1001, 1006)),
            "posts": make_rows(range(1001, 1008), user_id=lambda i: 1001),
        },
        pool=shard_b,
        binlog=("mysql-bin.000012", 98765),
    )
    shard_a.standby_slaves = [FakeNode("standby-a-old", cluster, pool=shard_a), replica_a]
    shard_b.standby_slaves = [replica_b]
    return shard_a, shard_b


@pytest.fixture
def aggregate_node(cluster):
    return FakeAggregateNode("aggregate", cluster)


@pytest.fixture
def new_master(cluster):
    return FakeNode("new-master", cluster)


@pytest.fixture
def file_transfer(cluster):
    return FakeFileTransfer(cluster)


@pytest.fixture
def merge_config(cluster):
    return MergeConfig(export_location=cluster.export_location, poll_interval_seconds=0.01)


@pytest.fixture
def orchestrator(file_transfer, table_provider, merge_config):
    context = MergeContext(
        file_transfer=file_transfer,
        table_provider=table_provider,
        config=merge_config,
    )
    return MergeOrchestrator(context)
