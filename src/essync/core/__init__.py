"""Core 타입, 프로토콜, 예외.

이 모듈은 인프라에 의존하지 않습니다.
gateway, unit_of_work, search 등 어디서든 import할 수 있습니다.
"""

from essync.core.errors import (
    AmbiguousWriteError,
    BulkPartialFailureError,
    ConfigurationError,
    InvalidArgumentError,
    NoResultError,
    ReschedulableError,
    SearchSyncError,
    UnexpectedResultTypeError,
    UnknownFieldError,
)
from essync.core.protocols import (
    HydrationQueryProtocol,
    IndexGatewayProtocol,
    MetadataResolverProtocol,
)
from essync.core.types import Hit, HydrationMode, ObjectState, ResultSet

__all__ = [
    # Types
    "Hit",
    "ResultSet",
    "HydrationMode",
    "ObjectState",
    # Protocols
    "MetadataResolverProtocol",
    "HydrationQueryProtocol",
    "IndexGatewayProtocol",
    # Errors
    "SearchSyncError",
    "ConfigurationError",
    "InvalidArgumentError",
    "AmbiguousWriteError",
    "NoResultError",
    "UnknownFieldError",
    "UnexpectedResultTypeError",
    "BulkPartialFailureError",
    "ReschedulableError",
]
