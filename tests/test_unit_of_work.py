"""Tests for UnitOfWork state tracking and commit."""

from unittest.mock import MagicMock

import pytest
from conftest import Post, Unmapped, User, bulk_actions, bulk_failing, search_response
from elasticsearch import ConnectionTimeout

from essync.core.errors import (
    AmbiguousWriteError,
    BulkPartialFailureError,
    InvalidArgumentError,
    NoResultError,
    ReschedulableError,
    UnknownFieldError,
)
from essync.core.types import ObjectState, ResultSet
from essync.mapping import EntityDescriptor
from essync.unit_of_work import UnitOfWork


class TestRegistration:
    def test_given_unmapped_object_when_persist_then_invalid_argument(self, uow: UnitOfWork) -> None:
        with pytest.raises(InvalidArgumentError):
            uow.persist(Unmapped())

    def test_given_missing_identifier_when_persist_then_invalid_argument(self, uow: UnitOfWork) -> None:
        with pytest.raises(InvalidArgumentError):
            uow.persist(User(name="no id"))

    def test_given_pending_removal_when_persist_then_ambiguous_write(self, uow: UnitOfWork) -> None:
        user = User(id="1", name="kim")
        uow.remove(user)

        with pytest.raises(AmbiguousWriteError):
            uow.persist(user)

        assert uow.state_of(user) is ObjectState.REMOVED

    def test_ambiguous_write_is_an_invalid_argument(self) -> None:
        assert issubclass(AmbiguousWriteError, InvalidArgumentError)
        assert issubclass(InvalidArgumentError, ValueError)


class TestCommit:
    """commit() 쓰기 집합 계산."""

    def test_given_repeated_persist_when_commit_then_one_upsert_per_identity(
        self, uow: UnitOfWork, gateway: MagicMock
    ) -> None:
        first = User(id="1", name="kim")
        uow.persist(first)
        uow.persist(first)
        uow.persist(User(id="1", name="kim2"))

        uow.commit()

        assert bulk_actions(gateway) == [("update", "1")]
        lines = gateway.bulk.call_args.args[0]
        assert lines[1] == {"doc": {"name": "kim2", "email_address": None}, "doc_as_upsert": True}

    def test_persist_then_remove_scenario(self, uow: UnitOfWork, gateway: MagicMock) -> None:
        user1 = User(id="1", name="kim")
        user2 = User(id="2", name="lee")

        uow.persist(user1)
        uow.persist(user2)
        uow.commit()

        assert gateway.bulk.call_count == 1
        assert bulk_actions(gateway) == [("update", "1"), ("update", "2")]

        uow.remove(user1)
        uow.commit()

        assert gateway.bulk.call_count == 2
        assert bulk_actions(gateway) == [("delete", "1")]
        assert [(e.identifier, e.state) for e in uow.tracked()] == [("2", ObjectState.MANAGED)]

    def test_given_nothing_pending_when_commit_then_no_network_call(
        self, uow: UnitOfWork, gateway: MagicMock
    ) -> None:
        uow.persist(User(id="1", name="kim"))
        uow.commit()

        result = uow.commit()

        assert gateway.bulk.call_count == 1
        assert result.outcomes == ()

    def test_given_unchanged_dirty_object_when_commit_then_no_write(
        self, uow: UnitOfWork, gateway: MagicMock
    ) -> None:
        user = User(id="1", name="kim")
        uow.persist(user)
        uow.commit()

        uow.persist(user)
        uow.commit()

        assert gateway.bulk.call_count == 1

    def test_given_modified_managed_object_when_commit_then_upserts_again(
        self, uow: UnitOfWork, gateway: MagicMock
    ) -> None:
        user = User(id="1", name="kim")
        uow.persist(user)
        uow.commit()

        user.name = "park"
        uow.persist(user)
        uow.commit()

        assert gateway.bulk.call_count == 2
        assert gateway.bulk.call_args.args[0][1]["doc"]["name"] == "park"

    def test_remove_of_untracked_object_schedules_delete(self, uow: UnitOfWork, gateway: MagicMock) -> None:
        uow.remove(User(id="9"))

        uow.commit()

        assert bulk_actions(gateway) == [("delete", "9")]
        assert len(uow) == 0

    def test_given_committed_removal_when_persist_again_then_new_and_upserted(
        self, uow: UnitOfWork, gateway: MagicMock
    ) -> None:
        user = User(id="1", name="kim")
        uow.remove(user)
        uow.commit()

        uow.persist(user)

        assert uow.state_of(user) is ObjectState.NEW
        uow.commit()

        assert gateway.bulk.call_count == 2
        assert bulk_actions(gateway, 0) == [("delete", "1")]
        assert bulk_actions(gateway, 1) == [("update", "1")]
        assert uow.state_of(user) is ObjectState.MANAGED

    def test_one_bulk_request_spans_all_entity_types(self, uow: UnitOfWork, gateway: MagicMock) -> None:
        uow.persist(User(id="1", name="kim"))
        uow.persist(Post(id="p1", title="hello"))

        uow.commit()

        lines = gateway.bulk.call_args.args[0]
        assert gateway.bulk.call_count == 1
        assert [line["update"]["_index"] for line in lines[::2]] == ["users", "posts"]

    def test_commit_of_single_object_leaves_others_pending(self, uow: UnitOfWork, gateway: MagicMock) -> None:
        user1 = User(id="1", name="kim")
        user2 = User(id="2", name="lee")
        uow.persist(user1)
        uow.persist(user2)

        uow.commit(user1)

        assert bulk_actions(gateway) == [("update", "1")]
        assert uow.state_of(user1) is ObjectState.MANAGED
        assert uow.state_of(user2) is ObjectState.NEW

    def test_given_partial_failure_when_commit_then_failed_identity_stays_pending(
        self, uow: UnitOfWork, gateway: MagicMock
    ) -> None:
        gateway.bulk.side_effect = bulk_failing("2")
        user1 = User(id="1", name="kim")
        user2 = User(id="2", name="lee")
        uow.persist(user1)
        uow.persist(user2)

        with pytest.raises(BulkPartialFailureError) as exc_info:
            uow.commit()

        assert exc_info.value.failed_identities == [("users", "user", "2")]
        assert uow.state_of(user1) is ObjectState.MANAGED
        assert uow.state_of(user2) is ObjectState.NEW

        # 재시도 시 실패한 identity만 다시 전송
        gateway.bulk.side_effect = None
        gateway.bulk.return_value = {
            "errors": False,
            "items": [{"update": {"_id": "2", "status": 201, "result": "created"}}],
        }
        uow.commit()

        assert bulk_actions(gateway) == [("update", "2")]
        assert uow.state_of(user2) is ObjectState.MANAGED

    def test_given_reschedulable_error_when_commit_then_nothing_applied(
        self, uow: UnitOfWork, gateway: MagicMock
    ) -> None:
        gateway.bulk.side_effect = ConnectionTimeout("timed out")
        user = User(id="1", name="kim")
        uow.persist(user)

        with pytest.raises(ReschedulableError):
            uow.commit()

        assert uow.state_of(user) is ObjectState.NEW


class TestLoad:
    def test_load_by_id_registers_managed_object(
        self, uow: UnitOfWork, gateway: MagicMock, user_descriptor: EntityDescriptor
    ) -> None:
        gateway.get_document.return_value = {"_id": "1", "_source": {"name": "kim", "email_address": "k@x"}}

        user = uow.load(user_descriptor, "1")

        gateway.get_document.assert_called_once_with(user_descriptor, "1")
        assert user == User(id="1", name="kim", email="k@x")
        assert uow.state_of(user) is ObjectState.MANAGED

    def test_given_loaded_object_unchanged_when_persist_then_commit_writes_nothing(
        self, uow: UnitOfWork, gateway: MagicMock, user_descriptor: EntityDescriptor
    ) -> None:
        gateway.get_document.return_value = {"_id": "1", "_source": {"name": "kim", "email_address": "k@x"}}
        user = uow.load(user_descriptor, "1")

        uow.persist(user)
        result = uow.commit()

        gateway.bulk.assert_not_called()
        assert result.outcomes == ()
        assert uow.state_of(user) is ObjectState.MANAGED

    def test_given_loaded_object_changed_when_persist_then_single_upsert(
        self, uow: UnitOfWork, gateway: MagicMock, user_descriptor: EntityDescriptor
    ) -> None:
        gateway.get_document.return_value = {"_id": "1", "_source": {"name": "kim", "email_address": "k@x"}}
        user = uow.load(user_descriptor, "1")

        user.name = "lee"
        uow.persist(user)
        uow.commit()

        assert gateway.bulk.call_count == 1
        assert bulk_actions(gateway) == [("update", "1")]
        assert gateway.bulk.call_args.args[0][1]["doc"] == {"name": "lee", "email_address": "k@x"}

    def test_load_returns_tracked_instance(
        self, uow: UnitOfWork, gateway: MagicMock, user_descriptor: EntityDescriptor
    ) -> None:
        gateway.get_document.return_value = {"_id": "1", "_source": {"name": "kim"}}

        first = uow.load(user_descriptor, "1")
        second = uow.load(user_descriptor, 1)

        assert first is second

    def test_load_by_criteria_searches_with_size_one(
        self, uow: UnitOfWork, gateway: MagicMock, user_descriptor: EntityDescriptor
    ) -> None:
        gateway.search.return_value = ResultSet.from_response(search_response(("5", {"name": "kim"})))

        user = uow.load(user_descriptor, {"name": "kim"})

        args, kwargs = gateway.search.call_args
        assert args == (user_descriptor, {"query": {"bool": {"must": [{"match": {"name": "kim"}}]}}})
        assert kwargs == {"size": 1}
        assert user.id == "5"

    def test_given_unknown_criteria_field_when_load_then_fails_before_network(
        self, uow: UnitOfWork, gateway: MagicMock, user_descriptor: EntityDescriptor
    ) -> None:
        with pytest.raises(UnknownFieldError) as exc_info:
            uow.load(user_descriptor, {"nickname": "kim"})

        assert exc_info.value.field == "nickname"
        gateway.search.assert_not_called()

    def test_given_no_hits_when_load_by_criteria_then_no_result(
        self, uow: UnitOfWork, gateway: MagicMock, user_descriptor: EntityDescriptor
    ) -> None:
        gateway.search.return_value = ResultSet.from_response(search_response())

        with pytest.raises(NoResultError):
            uow.load(user_descriptor, {"name": "nobody"})

    def test_given_pending_removal_when_load_then_no_result(
        self, uow: UnitOfWork, gateway: MagicMock, user_descriptor: EntityDescriptor
    ) -> None:
        uow.remove(User(id="1"))
        gateway.get_document.return_value = {"_id": "1", "_source": {"name": "kim"}}

        with pytest.raises(NoResultError):
            uow.load(user_descriptor, "1")

    def test_load_collection_skips_pending_removals(
        self, uow: UnitOfWork, gateway: MagicMock, user_descriptor: EntityDescriptor
    ) -> None:
        uow.remove(User(id="2"))
        gateway.search.return_value = ResultSet.from_response(
            search_response(("1", {"name": "kim"}), ("2", {"name": "lee"}))
        )

        users = uow.load_collection(user_descriptor, {"query": {"match_all": {}}})

        assert [u.id for u in users] == ["1"]


class TestClearAndDetach:
    def test_clear_by_type_keeps_other_types(self, uow: UnitOfWork) -> None:
        user = User(id="1")
        post = Post(id="p1")
        uow.persist(user)
        uow.persist(post)

        uow.clear("user")

        assert not uow.contains(user)
        assert uow.contains(post)

    def test_full_clear_discards_everything(self, uow: UnitOfWork, gateway: MagicMock) -> None:
        uow.persist(User(id="1"))

        uow.clear()
        uow.commit()

        assert len(uow) == 0
        gateway.bulk.assert_not_called()

    def test_detach_stops_tracking(self, uow: UnitOfWork) -> None:
        user = User(id="1")
        uow.persist(user)

        uow.detach(user)

        assert uow.state_of(user) is None
        assert uow.contains(Unmapped()) is False
