# ftl_engine/results.py
"""
Explicit success / failure results returned by every fallible engine and store call.

Callers branch on `result.success` (or isinstance Ok / Err) before touching `value`.
Nothing in the engines raises for bad input.
"""

from enum import Enum
from typing import Any, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class ErrorKind(str, Enum):
    INPUT_VALIDATION = "input_validation"
    STATE_CONFLICT = "state_conflict"
    NOT_FOUND = "not_found"


class Ok(BaseModel, Generic[T]):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: Literal[True] = True
    value: T


class Err(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[False] = False
    kind: ErrorKind
    error: str


Result = Union[Ok[Any], Err]


def ok(value: Any) -> Ok[Any]:
    return Ok(value=value)


def invalid(message: str) -> Err:
    return Err(kind=ErrorKind.INPUT_VALIDATION, error=message)


def conflict(message: str) -> Err:
    return Err(kind=ErrorKind.STATE_CONFLICT, error=message)


def not_found(message: str) -> Err:
    return Err(kind=ErrorKind.NOT_FOUND, error=message)
