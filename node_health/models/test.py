"""Models for discovered diagnostic tests."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypeAlias

InvocationMode: TypeAlias = Literal["normal", "sanity", "describe", "emit-config"]

MODE_ARGUMENTS: Mapping[InvocationMode, Sequence[str]] = {
    "normal": (),
    "sanity": ("--sanity",),
    "describe": ("--describe",),
    "emit-config": ("--emit-config",),
}


@dataclass(frozen=True, kw_only=True)
class Test:
    """A diagnostic executable resolved by discovery.

    ``index`` is the position in discovery order and is what reports are
    sorted by, whatever order the tests finish in.
    """

    __test__ = False

    name: str
    path: Path
    index: int
    mode: InvocationMode = "normal"

    @property
    def arguments(self) -> Sequence[str]:
        """Command-line arguments for this test's invocation mode."""
        return MODE_ARGUMENTS[self.mode]
