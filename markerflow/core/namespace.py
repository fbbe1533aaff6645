"""
Project namespace — the (user, project) scope every artifact lives under.

Segments are used verbatim as directory names, so anything that could escape
the storage root is rejected here, before a path is ever built.
"""

from __future__ import annotations

from dataclasses import dataclass

from markerflow.core.errors import ValidationError

_FORBIDDEN_SUBSTRINGS = ("..", "/", "\\", "\x00")


def is_safe_segment(value: object) -> bool:
    """True for a non-empty string that cannot traverse out of its parent dir."""
    return (
        isinstance(value, str)
        and len(value) > 0
        and not any(bad in value for bad in _FORBIDDEN_SUBSTRINGS)
    )


def require_safe_segment(value: object, field: str) -> str:
    if not is_safe_segment(value):
        raise ValidationError(
            f"Invalid {field}.",
            details=[f"{field} must be non-empty and contain no path separators or '..'"],
        )
    return value  # type: ignore[return-value]


@dataclass(frozen=True)
class Namespace:
    user:    str
    project: str

    @classmethod
    def of(cls, user: str | None, project: str | None) -> "Namespace":
        """Trim and validate both segments."""
        u = (user or "").strip()
        p = (project or "").strip()
        require_safe_segment(u, "username")
        require_safe_segment(p, "projectName")
        return cls(user=u, project=p)

    def __str__(self) -> str:
        return f"{self.user}/{self.project}"
