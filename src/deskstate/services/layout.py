"""Portable layout definitions used to seed a tab with blocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ..core.errors import InvariantViolationError
from ..store.objects import BlockDef, MetaKey

__all__ = ["LayoutStep", "PortableLayout", "STARTER_LAYOUT", "validate_layout_order"]


@dataclass(slots=True, frozen=True)
class LayoutStep:
    """One block to create and where to place it.

    Attributes:
        index_path: Path into the layout tree, root first.
        block_def: Definition of the block to create.
        size: Optional relative node size, ``None`` for the layout default.
    """

    index_path: tuple[int, ...]
    block_def: BlockDef = field(default_factory=BlockDef)
    size: int | None = None


PortableLayout = Sequence[LayoutStep]


def validate_layout_order(steps: Iterable[LayoutStep]) -> None:
    """Check that ``steps`` is a valid tree-construction order.

    Every path's parent path must have been placed by an earlier step;
    top-level paths hang off the root and are always placeable.

    Raises:
        InvariantViolationError: a step's parent has not been placed yet.
    """
    placed: set[tuple[int, ...]] = set()
    for position, step in enumerate(steps):
        path = tuple(step.index_path)
        if not path:
            raise InvariantViolationError(
                message=f"layout step {position} has an empty index path"
            )
        parent = path[:-1]
        if parent and parent not in placed:
            raise InvariantViolationError(
                message=(
                    f"layout step {position} places {list(path)} before its parent "
                    f"{list(parent)}"
                ),
                details={"step": position, "index_path": list(path)},
            )
        placed.add(path)


STARTER_LAYOUT: tuple[LayoutStep, ...] = (
    LayoutStep(
        index_path=(0,),
        block_def=BlockDef(meta={MetaKey.VIEW: "term", MetaKey.CONTROLLER: "shell"}),
    ),
    LayoutStep(
        index_path=(1,),
        block_def=BlockDef(meta={MetaKey.VIEW: "cpuplot"}),
    ),
    LayoutStep(
        index_path=(1, 1),
        block_def=BlockDef(
            meta={MetaKey.VIEW: "web", MetaKey.URL: "https://github.com/wavetermdev/waveterm"}
        ),
    ),
    LayoutStep(
        index_path=(1, 2),
        block_def=BlockDef(meta={MetaKey.VIEW: "preview", MetaKey.FILE: "~"}),
    ),
    LayoutStep(
        index_path=(2,),
        block_def=BlockDef(meta={MetaKey.VIEW: "term", MetaKey.CONTROLLER: "shell"}),
    ),
    LayoutStep(
        index_path=(2, 1),
        block_def=BlockDef(meta={MetaKey.VIEW: "waveai"}),
    ),
    LayoutStep(
        index_path=(2, 2),
        block_def=BlockDef(
            meta={MetaKey.VIEW: "web", MetaKey.URL: "https://www.youtube.com/embed/cKqsw_sAsU8"}
        ),
    ),
)
