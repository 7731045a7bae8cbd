"""Tests for Query execution and hydration modes."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from unittest.mock import MagicMock

import pytest
from conftest import User, search_response

from essync.core.errors import ConfigurationError, NoResultError, UnexpectedResultTypeError
from essync.core.types import HydrationMode, ObjectState, ResultSet
from essync.search import Query
from essync.unit_of_work import UnitOfWork

CRITERIA = {"query": {"match": {"name": "kim"}}}


class FakeHydrationQuery:
    """primary store 쿼리 대역. 바인딩된 id 순서를 뒤집어 반환."""

    def __init__(self, rows: dict[str, Any]):
        self.rows = rows
        self.parameters: dict[str, Any] = {}
        self.cache: tuple[bool, int | None] | None = None
        self.executions = 0

    def set_parameter(self, name: str, value: Sequence[str]) -> FakeHydrationQuery:
        self.parameters[name] = value
        return self

    def use_result_cache(self, enabled: bool, ttl: int | None = None) -> FakeHydrationQuery:
        self.cache = (enabled, ttl)
        return self

    def get_result(self) -> list[Any]:
        self.executions += 1
        ids = self.parameters.get("ids", self.parameters.get("user_ids", []))
        return [self.rows[i] for i in reversed(ids) if i in self.rows]


@pytest.fixture
def two_hits(gateway: MagicMock) -> ResultSet:
    result_set = ResultSet.from_response(
        search_response(("1", {"name": "kim"}), ("2", {"name": "kimchi"}), total=42)
    )
    gateway.search.return_value = result_set
    return result_set


@pytest.fixture
def query(uow: UnitOfWork) -> Query:
    return Query(uow).from_("user").search_with(CRITERIA)


class TestHydrationModes:
    def test_bypass_returns_untouched_result_set(self, query: Query, two_hits: ResultSet) -> None:
        result = query.set_hydration_mode(HydrationMode.BYPASS).get_result()

        assert result is two_hits
        assert query.count == 2
        assert query.total == 42

    def test_internal_hydrates_same_cardinality(self, query: Query, uow: UnitOfWork, two_hits: ResultSet) -> None:
        users = query.get_result(HydrationMode.INTERNAL)

        assert users == [User(id="1", name="kim"), User(id="2", name="kimchi")]
        assert len(users) == len(two_hits.hits)
        assert all(uow.state_of(u) is ObjectState.MANAGED for u in users)

    def test_delegated_binds_hit_ids_and_cache_policy(self, query: Query, two_hits: ResultSet) -> None:
        rows = {"1": "row-1", "2": "row-2"}
        delegate = FakeHydrationQuery(rows)

        result = query.hydrate_with(delegate).use_result_cache(True, 60).get_result()

        assert delegate.parameters == {"ids": ["1", "2"]}
        assert delegate.cache == (True, 60)
        assert result == ["row-2", "row-1"]

    def test_delegated_with_preserve_order_follows_relevance(
        self, uow: UnitOfWork, two_hits: ResultSet
    ) -> None:
        rows = {"1": User(id="1"), "2": User(id="2")}
        delegate = FakeHydrationQuery(rows)

        result = (
            Query(uow)
            .from_("user")
            .search_with(CRITERIA)
            .hydrate_with(delegate, "user_ids")
            .preserve_order()
            .get_result()
        )

        assert delegate.parameters == {"user_ids": ["1", "2"]}
        assert [u.id for u in result] == ["1", "2"]

    def test_delegated_without_hits_passes_explicit_empty_list(
        self, query: Query, gateway: MagicMock
    ) -> None:
        gateway.search.return_value = ResultSet.from_response(search_response())
        delegate = FakeHydrationQuery({})

        result = query.hydrate_with(delegate).get_result()

        assert result == []
        assert delegate.parameters["ids"] == []
        assert delegate.parameters["ids"] is not None


class TestSingleResult:
    def test_zero_hits_raise_no_result(self, query: Query, gateway: MagicMock) -> None:
        gateway.search.return_value = ResultSet.from_response(search_response(total=5))

        with pytest.raises(NoResultError):
            query.get_single_result(HydrationMode.INTERNAL)

    def test_returns_first_hit_and_requests_size_one(
        self, query: Query, gateway: MagicMock, two_hits: ResultSet
    ) -> None:
        hit = query.get_single_result(HydrationMode.BYPASS)

        assert hit.id == "1"
        args, kwargs = gateway.search.call_args
        assert kwargs == {"size": 1}
        assert args[1] == CRITERIA
        assert "size" not in CRITERIA


class TestValidation:
    def test_missing_target(self, uow: UnitOfWork) -> None:
        with pytest.raises(ConfigurationError):
            Query(uow).search_with(CRITERIA).get_result(HydrationMode.BYPASS)

    def test_missing_criteria(self, uow: UnitOfWork) -> None:
        with pytest.raises(ConfigurationError):
            Query(uow).from_("user").get_result(HydrationMode.BYPASS)

    def test_delegated_without_hydration_query(self, query: Query, gateway: MagicMock) -> None:
        with pytest.raises(ConfigurationError):
            query.get_result()

        gateway.search.assert_not_called()

    def test_unknown_type(self, uow: UnitOfWork) -> None:
        with pytest.raises(ConfigurationError):
            Query(uow).from_("nope")

    def test_unexpected_result_type(self, query: Query, gateway: MagicMock) -> None:
        gateway.search.return_value = {"hits": {"hits": []}}

        with pytest.raises(UnexpectedResultTypeError) as exc_info:
            query.get_result(HydrationMode.BYPASS)

        assert exc_info.value.actual_type == "dict"

    def test_consumed_query_must_be_rearmed(self, query: Query, gateway: MagicMock, two_hits: ResultSet) -> None:
        query.get_result(HydrationMode.BYPASS)

        with pytest.raises(ConfigurationError):
            query.get_result(HydrationMode.BYPASS)

        assert query.rearm().get_result(HydrationMode.BYPASS) is two_hits
        assert gateway.search.call_count == 2
