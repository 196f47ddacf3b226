"""
Result values returned by every core order operation.

Expected failures (missing order, permission denied, invalid transition,
bad payload, store outage) come back as ``Err``; exceptions are left for
programming errors.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    DEPENDENCY = "dependency"


@dataclass(frozen=True)
class OrderError:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: OrderError

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def not_found(message: str) -> Err:
    return Err(OrderError(ErrorKind.NOT_FOUND, message))


def unauthorized(message: str) -> Err:
    return Err(OrderError(ErrorKind.UNAUTHORIZED, message))


def forbidden(message: str) -> Err:
    return Err(OrderError(ErrorKind.FORBIDDEN, message))


def conflict(message: str) -> Err:
    return Err(OrderError(ErrorKind.CONFLICT, message))


def validation_error(message: str) -> Err:
    return Err(OrderError(ErrorKind.VALIDATION, message))


def dependency_error(message: str) -> Err:
    return Err(OrderError(ErrorKind.DEPENDENCY, message))
