"""Explicit outcome of an OpenMRS call.

Public operations stay fail-soft (``None`` / ``[]``) by unwrapping with a
default; callers that need to tell "confirmed empty" from "lookup failed"
use the ``*_result`` variants and inspect :class:`Err`.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(str, Enum):
    AUTH = "auth"            # no usable session credential, or 401/403
    NOT_FOUND = "not_found"  # 404 from the remote resource
    REJECTED = "rejected"    # any other non-2xx
    TRANSPORT = "transport"  # connection, timeout, protocol errors
    PARSE = "parse"          # body was not the JSON shape we expected


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap_or(self, default: Any) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    status: int | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False

    def unwrap_or(self, default: U) -> U:
        return default


Result = Union[Ok[T], Err]
