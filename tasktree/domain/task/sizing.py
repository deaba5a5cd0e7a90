"""Size-to-story-point policy.

Pure lookup: maps an ordinal task size to the largest story-point value a
descendant of that task may carry, and holds the canonical Fibonacci point
scale. No I/O, no state beyond the table.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

from tasktree.domain.shared.errors import InvalidSizeError
from tasktree.domain.task.models import TaskSize

# =============================================================================
# Constants
# =============================================================================

FIBONACCI_POINTS: tuple[int, ...] = (1, 2, 3, 5, 8, 13, 21, 34, 55, 89)

SIZE_TO_MAX_STORY_POINTS: dict[TaskSize, int] = {
    TaskSize.XS: 2,
    TaskSize.S: 3,
    TaskSize.M: 5,
    TaskSize.L: 8,
    TaskSize.XL: 13,
}


def parse_size(value: "str | TaskSize") -> TaskSize:
    """Parse a size name case-insensitively ("XL", "xl", TaskSize.XL).

    Raises:
        InvalidSizeError: If the value is not a known size.
    """
    if isinstance(value, TaskSize):
        return value
    try:
        return TaskSize(str(value).strip().lower())
    except ValueError:
        known = ", ".join(s.value for s in TaskSize)
        raise InvalidSizeError(f"Unknown task size '{value}' (expected one of: {known})") from None


def is_fibonacci(points: int) -> bool:
    return points in FIBONACCI_POINTS


@dataclass(frozen=True)
class SizePolicy:
    """Story-point ceilings per task size.

    The ceilings must not decrease as size grows, and every ceiling must be
    on the Fibonacci scale.

    Example:
        policy = SizePolicy()
        policy.max_points(TaskSize.S)  # 3
        policy.max_points("xl")        # 13
    """

    ceilings: Mapping[TaskSize, int] = field(
        default_factory=lambda: dict(SIZE_TO_MAX_STORY_POINTS)
    )
    fibonacci: tuple[int, ...] = FIBONACCI_POINTS

    def __post_init__(self) -> None:
        ordered = sorted(self.ceilings.items(), key=lambda item: item[0].rank)
        previous = 0
        for size, ceiling in ordered:
            if ceiling not in self.fibonacci:
                raise InvalidSizeError(
                    f"Ceiling {ceiling} for size '{size.value}' is not a Fibonacci number"
                )
            if ceiling < previous:
                raise InvalidSizeError(
                    f"Ceiling for size '{size.value}' ({ceiling}) is lower than "
                    f"the ceiling of a smaller size ({previous})"
                )
            previous = ceiling

    @classmethod
    def from_table(cls, table: Mapping[str, int]) -> "SizePolicy":
        """Build a policy from a ``{"xs": 2, ...}`` style mapping."""
        return cls(ceilings={parse_size(name): int(points) for name, points in table.items()})

    def max_points(self, size: "TaskSize | str") -> int:
        """Largest story-point value allowed under a task of ``size``.

        Raises:
            InvalidSizeError: If the size is unknown or missing from the table.
        """
        parsed = parse_size(size)
        try:
            return self.ceilings[parsed]
        except KeyError:
            raise InvalidSizeError(f"No story-point ceiling configured for size '{parsed.value}'") from None

    def is_fibonacci(self, points: int) -> bool:
        return points in self.fibonacci
