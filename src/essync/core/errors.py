"""essync 예외 계층.

이 모듈은 인프라에 의존하지 않습니다.

분류:
    - 로컬 검증 실패 (네트워크 호출 전 발생): ConfigurationError, InvalidArgumentError,
      UnknownFieldError
    - 정상 분기로 취급되는 부재 신호: NoResultError
    - 쓰기 실패 (BulkOperationQueue 경계에서 한 번만 분류): BulkPartialFailureError,
      ReschedulableError
    - 방어적 검사: UnexpectedResultTypeError
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class SearchSyncError(Exception):
    """essync 예외의 공통 부모."""


class ConfigurationError(SearchSyncError):
    """작업 전에 필요한 설정이 누락된 경우. 재시도 대상이 아님."""


class InvalidArgumentError(SearchSyncError, ValueError):
    """도메인 객체로 인식할 수 없는 인자."""


class AmbiguousWriteError(InvalidArgumentError):
    """같은 identity에 대해 삭제와 저장이 한 commit 안에 동시에 요청된 경우."""


class NoResultError(SearchSyncError):
    """조회 결과 없음."""

    def __init__(self, message: str = "No results found"):
        super().__init__(message)


class UnknownFieldError(SearchSyncError):
    """조건에 descriptor가 모르는 필드가 포함된 경우."""

    def __init__(self, index: str, type_name: str, field: str):
        self.index = index
        self.type_name = type_name
        self.field = field
        super().__init__(f"Unknown field '{field}' for index '{index}' and type '{type_name}'")


class UnexpectedResultTypeError(SearchSyncError):
    """Gateway가 hydration할 수 없는 결과 타입을 반환한 경우."""

    def __init__(self, actual: Any, message: str | None = None):
        self.actual_type = type(actual).__name__
        super().__init__(message or f"Unexpected result set class '{self.actual_type}'")


class BulkPartialFailureError(SearchSyncError):
    """Bulk 요청은 성공했지만 일부 item이 실패한 경우.

    Attributes:
        response: ES가 반환한 raw bulk 응답
        failed: 실패한 BulkOperation 목록 (제출 순서 유지)
        failed_identities: 실패한 (index, type, id) 목록
    """

    def __init__(self, response: dict[str, Any], failed: Sequence[Any]):
        self.response = response
        self.failed = list(failed)
        self.failed_identities = [(op.index, op.type_name, op.id) for op in self.failed]
        ids = ", ".join(f"{index}/{type_name}/{id_}" for index, type_name, id_ in self.failed_identities)
        super().__init__(f"Bulk request reported {len(self.failed)} failed item(s): {ids}")


class ReschedulableError(SearchSyncError):
    """재시도 가능한 전송 오류. 원인 예외는 __cause__로 연결됨."""

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__
