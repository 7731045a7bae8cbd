"""Query & Hydration pipeline."""

from .query import HYDRATION_PARAMETER, Query

__all__ = [
    "HYDRATION_PARAMETER",
    "Query",
]
