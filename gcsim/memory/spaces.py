"""
Space Model for gcsim

Spaces partition a flat cell array by tag for the non-moving, copying and
generational collectors. Layouts are deterministic functions of the grid
size, so two initializations of the same configuration always produce the
same partition.
"""

from typing import Dict, List, Sequence, Tuple

from .cells import CellGroup, MemoryCell, SpaceTag, make_cells


class Space(CellGroup):
    """The cells of a heap that carry one space tag, in index order"""

    def __init__(self, tag: SpaceTag, cells: Sequence[MemoryCell]):
        super().__init__(cells)
        self.tag = tag

    def __repr__(self) -> str:
        return f"Space({self.tag.value}, cells={len(self.cells)}, free={self.free_count})"


def group_spaces(cells: Sequence[MemoryCell]) -> Dict[SpaceTag, Space]:
    """Build the space views of a tagged cell array"""
    members: Dict[SpaceTag, List[MemoryCell]] = {}
    for cell in cells:
        members.setdefault(cell.space, []).append(cell)
    return {tag: Space(tag, group) for tag, group in members.items()}


def build_single_space(grid_size: int) -> List[MemoryCell]:
    """Non-moving layout: one undivided heap"""
    return make_cells(grid_size * grid_size, SpaceTag.HEAP)


def build_semispaces(grid_size: int) -> List[MemoryCell]:
    """Two-space layout: first half FROM, second half TO"""
    total = grid_size * grid_size
    cells = make_cells(total)
    for cell in cells:
        cell.space = SpaceTag.FROM if cell.id < total / 2 else SpaceTag.TO
    return cells


def generational_columns(grid_size: int, eden_fraction: float,
                         tenured_fraction: float) -> Tuple[int, int, int]:
    """Column counts (eden, survivor, tenured) for a generational grid"""
    eden_cols = int(grid_size * eden_fraction)
    tenured_cols = int(grid_size * tenured_fraction)
    survivor_cols = grid_size - eden_cols - tenured_cols
    return eden_cols, survivor_cols, tenured_cols


def build_generational(grid_size: int, eden_fraction: float = 0.2,
                       tenured_fraction: float = 0.5) -> List[MemoryCell]:
    """
    Generational layout, assigned by column.

    Eden takes the leftmost columns and tenured the rightmost ones. The
    survivor columns in between are split by row: the top half of the rows
    is survivor-from and the bottom half survivor-to.
    """
    eden_cols, survivor_cols, _ = generational_columns(
        grid_size, eden_fraction, tenured_fraction
    )
    survivor_rows = grid_size // 2
    cells = make_cells(grid_size * grid_size)

    for row in range(grid_size):
        for col in range(grid_size):
            cell = cells[row * grid_size + col]
            if col < eden_cols:
                cell.space = SpaceTag.EDEN
            elif col < eden_cols + survivor_cols:
                cell.space = SpaceTag.SURVIVOR_FROM if row < survivor_rows else SpaceTag.SURVIVOR_TO
            else:
                cell.space = SpaceTag.TENURED

    return cells
