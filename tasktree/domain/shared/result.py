"""Result type for operations with expected failure modes.

Service calls that can be rejected for ordinary reasons (a priority that is
too low, a task id that no longer exists) return ``Ok(value)`` or
``Err(message)`` instead of raising, so callers such as an HTTP controller
can turn the message into a normal response.

Example usage:
    >>> result = service.set_status("acme", 7, TaskStatus.COMPLETED)
    >>> if is_ok(result):
    ...     print(result.value.status)
    ... else:
    ...     print(result.error)
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome carrying ``value``."""

    value: T


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Rejected outcome carrying ``error``."""

    error: E


# Union instead of | because TypeVar aliases are evaluated at runtime
Result = Union[Ok[T], Err[E]]  # noqa: UP007


def is_ok(result: Ok[T] | Err[E]) -> bool:
    """Return True if ``result`` is an ``Ok``."""
    return isinstance(result, Ok)


def is_err(result: Ok[T] | Err[E]) -> bool:
    """Return True if ``result`` is an ``Err``."""
    return isinstance(result, Err)


def map_result(result: Ok[T] | Err[E], fn: Callable[[T], U]) -> Ok[U] | Err[E]:
    """Transform the value of an ``Ok``; pass an ``Err`` through untouched."""
    if isinstance(result, Ok):
        return Ok(fn(result.value))
    return result


def flat_map(result: Ok[T] | Err[E], fn: Callable[[T], Ok[U] | Err[E]]) -> Ok[U] | Err[E]:
    """Chain a step that itself returns a Result.

    Args:
        result: The result to chain from.
        fn: Step applied to the Ok value.

    Returns:
        The step's Result, or the original Err.
    """
    if isinstance(result, Ok):
        return fn(result.value)
    return result


def unwrap_or(result: Ok[T] | Err[E], default: T) -> T:
    """Return the Ok value, or ``default`` for an Err."""
    if isinstance(result, Ok):
        return result.value
    return default
