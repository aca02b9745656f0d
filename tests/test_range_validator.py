"""Tests for sharding-key range validation."""

import threading
import time

import pytest

from shardmerge.core.exceptions.merge import MergeOperationalError, PreconditionError
from shardmerge.core.models.shard import Shard, TableStatus
from shardmerge.services.phase_executor import PhaseExecutor
from shardmerge.services.range_validator import RangeValidator
from tests.fixtures.fake_cluster import FakeNode, FakeTable, FakeTableProvider, make_rows


@pytest.fixture
def shard(cluster):
    shard = Shard(min_id=1, max_id=1000)
    shard.standby_slaves = [FakeNode("standby", cluster, pool=shard)]
    return shard


def validator_for(tables, **kwargs):
    kwargs.setdefault("executor", PhaseExecutor(poll_interval=0.01))
    return RangeValidator(FakeTableProvider(tables), **kwargs)


class TestRangeValidator:
    def test_all_tables_valid(self, shard):
        shard.standby_slaves[-1].tables = {
            "users": make_rows(range(1, 11)),
            "posts": make_rows(range(1, 6), user_id=lambda i: i),
        }
        tables = [FakeTable("users"), FakeTable("posts", ("id", "user_id"))]

        result = validator_for(tables).validate(shard)

        assert result == {"users": TableStatus.VALID, "posts": TableStatus.VALID}

    def test_out_of_range_row_invalidates_table(self, shard):
        shard.standby_slaves[-1].tables = {
            "users": make_rows([1, 2, 1001]),
            "posts": make_rows([1, 2]),
        }

        result = validator_for([FakeTable("users"), FakeTable("posts")]).validate(shard)

        assert result == {"users": TableStatus.INVALID, "posts": TableStatus.VALID}

    @pytest.mark.parametrize("keys", [("id", "user_id"), ("user_id", "id")])
    def test_any_failing_column_invalidates_table(self, shard, keys):
        # id is in range, user_id is not
        shard.standby_slaves[-1].tables = {"posts": make_rows([5], user_id=lambda i: 5000)}

        result = validator_for([FakeTable("posts", keys)]).validate(shard)

        assert result == {"posts": TableStatus.INVALID}

    def test_table_without_sharding_keys_is_valid(self, shard):
        result = validator_for([FakeTable("settings", ())]).validate(shard)

        assert result == {"settings": TableStatus.VALID}

    def test_unbounded_shard_checks_lower_bound_only(self, cluster):
        shard = Shard(min_id=2001, max_id="INFINITY")
        replica = FakeNode("standby-last", cluster, pool=shard)
        replica.tables = {"users": make_rows([2001, 10**9]), "posts": make_rows([5])}
        shard.standby_slaves = [replica]

        result = validator_for([FakeTable("users"), FakeTable("posts")]).validate(shard)

        assert result == {"users": TableStatus.VALID, "posts": TableStatus.INVALID}

    def test_only_last_standby_is_queried(self, shard, cluster):
        shard.standby_slaves.insert(0, FakeNode("older", cluster, pool=shard))
        shard.standby_slaves[-1].tables = {"users": make_rows([1])}

        validator_for([FakeTable("users")]).validate(shard)

        assert cluster.actions("older") == []
        assert cluster.actions("standby") == ["query_return_array"]

    def test_range_check_sql_uses_shard_bounds(self, shard, cluster):
        validator_for([FakeTable("users")]).validate(shard)

        queries = [detail for _, action, detail in cluster.events if action == "query_return_array"]
        assert queries == ["SELECT COUNT(*) FROM users WHERE id < 1 OR id > 1000"]

    def test_no_standby_slave(self):
        with pytest.raises(PreconditionError, match="no standby slave"):
            validator_for([FakeTable("users")]).validate(Shard(min_id=1, max_id=1000))

    def test_query_failure_is_wrapped(self, shard):
        shard.standby_slaves[-1].fail_on["query_return_array"] = ConnectionError("gone away")

        with pytest.raises(MergeOperationalError) as excinfo:
            validator_for([FakeTable("users")]).validate(shard)

        assert excinfo.value.phase == "validation"
        assert excinfo.value.node == "standby:users.id"
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_validator_reusable_after_failure(self, shard):
        replica = shard.standby_slaves[-1]
        replica.tables = {"users": make_rows([1, 2])}
        validator = validator_for([FakeTable("users")])
        replica.fail_on["query_return_array"] = ConnectionError("gone away")

        with pytest.raises(MergeOperationalError):
            validator.validate(shard)

        del replica.fail_on["query_return_array"]
        assert validator.validate(shard) == {"users": TableStatus.VALID}

    def test_empty_result_is_an_error(self, shard):
        shard.standby_slaves[-1].query_return_array = lambda sql: []

        with pytest.raises(MergeOperationalError, match="no rows"):
            validator_for([FakeTable("users")]).validate(shard)

    def test_concurrency_bound(self, shard):
        lock = threading.Lock()
        running = 0
        peak = 0

        def counting_query(sql):
            nonlocal running, peak
            with lock:
                running += 1
                peak = max(peak, running)
            time.sleep(0.02)
            with lock:
                running -= 1
            return [{"COUNT(*)": 0}]

        shard.standby_slaves[-1].query_return_array = counting_query
        tables = [FakeTable(f"t{i}", ("id", "owner_id")) for i in range(6)]

        result = validator_for(tables, max_concurrency=3).validate(shard)

        assert peak <= 3
        assert len(result) == 6

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            RangeValidator(FakeTableProvider([]), max_concurrency=0)
