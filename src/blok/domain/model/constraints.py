"""Numeric constraints used for link cardinality and array lengths."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


class InvalidConstraintError(ValueError):
    """Raised when a numeric constraint is malformed or has ``min > max``."""


@dataclass(frozen=True, slots=True)
class NumericConstraint:
    """Inclusive ``[min, max]`` bounds; ``None`` leaves that side unbounded."""

    min: int | None = None
    max: int | None = None

    def __post_init__(self) -> None:
        for name, bound in (("min", self.min), ("max", self.max)):
            if bound is not None and (isinstance(bound, bool) or not isinstance(bound, int)):
                raise InvalidConstraintError(f"Constraint {name} must be an integer: {bound!r}")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise InvalidConstraintError(f"Constraint min {self.min} exceeds max {self.max}")

    def __str__(self) -> str:
        lower = "" if self.min is None else str(self.min)
        upper = "" if self.max is None else str(self.max)
        return f"[{lower}..{upper}]"

    @property
    def is_unbounded(self) -> bool:
        return self.min is None and self.max is None

    def contains(self, value: int) -> bool:
        if self.min is not None and value < self.min:
            return False
        return self.max is None or value <= self.max

    @classmethod
    def greater_than(cls, value: int) -> NumericConstraint:
        # exclusive bound over integer counts
        return cls(min=value + 1)

    @classmethod
    def less_than(cls, value: int) -> NumericConstraint:
        return cls(max=value - 1)

    @classmethod
    def equal_to(cls, value: int) -> NumericConstraint:
        return cls(min=value, max=value)

    @classmethod
    def greater_than_or_equal_to(cls, value: int) -> NumericConstraint:
        return cls(min=value)

    @classmethod
    def less_than_or_equal_to(cls, value: int) -> NumericConstraint:
        return cls(max=value)

    @classmethod
    def parse(cls, value: Mapping[str, object] | None) -> NumericConstraint:
        """Build a constraint from ``{min?, max?}`` or a single sugar key.

        Sugar keys are ``greaterThan``, ``lessThan``, ``equalTo``,
        ``greaterThanOrEqualTo`` and ``lessThanOrEqualTo``.
        """

        if value is None:
            return cls()
        sugar = [key for key in value if key in _SUGAR]
        if sugar:
            if len(value) != 1:
                raise InvalidConstraintError(
                    f"Constraint sugar must be the only key, got: {', '.join(sorted(value))}"
                )
            key = sugar[0]
            return _SUGAR[key](_as_int(value[key], key))

        unknown = set(value) - {"min", "max"}
        if unknown:
            raise InvalidConstraintError(
                f"Unknown constraint keys: {', '.join(sorted(unknown))}"
            )
        lower = value.get("min")
        upper = value.get("max")
        return cls(
            min=None if lower is None else _as_int(lower, "min"),
            max=None if upper is None else _as_int(upper, "max"),
        )

    def to_payload(self) -> dict[str, int]:
        payload: dict[str, int] = {}
        if self.min is not None:
            payload["min"] = self.min
        if self.max is not None:
            payload["max"] = self.max
        return payload


def _as_int(value: object, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConstraintError(f"Constraint {key} must be an integer: {value!r}")
    return value


_SUGAR: Final[dict[str, Callable[[int], NumericConstraint]]] = {
    "greaterThan": NumericConstraint.greater_than,
    "lessThan": NumericConstraint.less_than,
    "equalTo": NumericConstraint.equal_to,
    "greaterThanOrEqualTo": NumericConstraint.greater_than_or_equal_to,
    "lessThanOrEqualTo": NumericConstraint.less_than_or_equal_to,
}
