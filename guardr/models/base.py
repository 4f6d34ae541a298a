"""Shared pydantic base for wire-facing models.

Wire payloads use camelCase keys; Python code keeps snake_case
attribute names.  Both spellings are accepted on input.
"""

from __future__ import annotations

import pydantic


def snake_to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase.

    Args:
        name: A snake_case identifier such as ``"toggles_seen"``.

    Returns:
        The camelCase equivalent, e.g. ``"togglesSeen"``.
    """
    head, *rest = name.split("_")
    return head + "".join(w.capitalize() for w in rest)


class CamelModel(pydantic.BaseModel):
    """Base model serialising with camelCase aliases."""

    model_config = pydantic.ConfigDict(
        alias_generator=snake_to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, object]:
        """Dump as a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
