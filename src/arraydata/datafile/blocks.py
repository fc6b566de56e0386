"""Block-grid layout inference for GenePix and ScanAlyze style arrays.

Block-addressed vendors number spotting blocks 1..N but never say where a
block sits in the grid of blocks. The layout is reconstructed from the
bounding box of each block's feature coordinates: walking the blocks in
number order, a block whose right edge falls back to the left starts a new
MetaRow, otherwise it is the next MetaColumn on the current row.

Average block width and height give the tolerance margin. Blocks whose
extent is at or below ``min_extent`` are left out of the averages since
they usually come from mis-scanned rows.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

__all__ = [
    'Block',
    'parse_block_number',
    'parse_coordinate',
    'is_trailer_line',
    'get_blocks',
    'average_block_dimension',
    'average_block_width',
    'average_block_height',
    'assign_genepix_layout',
    'assign_scanalyze_layout',
]

_LEADING_INT = re.compile(r'\A\s*[-+]?(\d+)')
_LEADING_NUMBER = re.compile(r'\A\s*([-+]?(?:\d+\.?\d*(?:[eE][-+]?\d+)?|\.\d+(?:[eE][-+]?\d+)?))')
_SKIP_LINE = re.compile(r'(?i)\A(End Raw Data|End of File)')


@dataclass
class Block:
    """Bounding box and grid position of one spotting block."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    metacolumn: Optional[int] = None
    metarow: Optional[int] = None

    def update(self, x: float, y: float) -> None:
        self.min_x = min(self.min_x, x)
        self.max_x = max(self.max_x, x)
        self.min_y = min(self.min_y, y)
        self.max_y = max(self.max_y, y)


def parse_block_number(value) -> int:
    """Block number with any literal ``Block`` text removed; 0 if absent."""
    if value is None:
        return 0
    match = _LEADING_INT.match(re.sub(r'(?i)block', '', value))
    return int(match.group(1)) if match else 0


def parse_coordinate(value) -> float:
    """Leading numeric part of a coordinate field; 0 if there is none."""
    if value is None:
        return 0.0
    match = _LEADING_NUMBER.match(value)
    return float(match.group(1)) if match else 0.0


def is_trailer_line(line: str) -> bool:
    """ImaGene exports end their data with marker lines."""
    return bool(_SKIP_LINE.match(line))


def get_blocks(rows: Iterable[List[str]], index_columns: List[int]) -> Dict[int, Block]:
    """Collect per-block bounding boxes.

    Parameters
    ----------
    rows : iterable of list of str
        Tab-split data rows.
    index_columns : list of int
        Positions of block, column, row, x and y (in that order).

    Returns
    -------
    dict
        Block number -> Block. Rows without a usable block number collect
        under block 0, which takes no part in the layout.
    """
    block_col, x_col, y_col = index_columns[0], index_columns[3], index_columns[4]
    blocks = {}
    for fields in rows:
        num = parse_block_number(fields[block_col] if block_col < len(fields) else None)
        x = parse_coordinate(fields[x_col] if x_col < len(fields) else None)
        y = parse_coordinate(fields[y_col] if y_col < len(fields) else None)
        block = blocks.get(num)
        if block is None:
            blocks[num] = Block(x, x, y, y)
        else:
            block.update(x, y)
    logger.debug("Found %s blocks", len([n for n in blocks if n > 0]))
    return blocks


def _numbered(blocks: Dict[int, Block]):
    return [blocks[n] for n in sorted(blocks) if n > 0]


def average_block_dimension(blocks: Dict[int, Block], axis: str, min_extent: float = 10) -> float:
    """Mean block extent along ``axis`` ('x' or 'y'), 0 when nothing counts."""
    deltas = []
    for block in _numbered(blocks):
        delta = getattr(block, f"max_{axis}") - getattr(block, f"min_{axis}")
        if delta > min_extent:
            deltas.append(delta)
    return sum(deltas) / len(deltas) if deltas else 0


def average_block_width(blocks, min_extent=10):
    return average_block_dimension(blocks, "x", min_extent)


def average_block_height(blocks, min_extent=10):
    return average_block_dimension(blocks, "y", min_extent)


def assign_genepix_layout(blocks: Dict[int, Block], min_extent: float = 10) -> Dict[int, Block]:
    """Assign MetaColumn/MetaRow by carriage return on falling ``max_x``.

    A block starts a new MetaRow unless its ``max_x`` exceeds the previous
    block's ``max_x`` by at least half the average block width.

    Examples
    --------
    Two side-by-side blocks spanning x 0-100 and x 150-250 end up on
    MetaRow 1 as MetaColumns 1 and 2.
    """
    half_width = average_block_width(blocks, min_extent) / 2
    last_max_x = 0
    metacolumn = 0
    metarow = 1
    for block in _numbered(blocks):
        if block.max_x < last_max_x + half_width:
            metarow += 1
            metacolumn = 0
        metacolumn += 1
        block.metacolumn = metacolumn
        block.metarow = metarow
        last_max_x = block.max_x

    # A narrow first block can trip the carriage return; MetaRow starts at 1
    rows = sorted({b.metarow for b in _numbered(blocks)})
    if rows and rows[0] != 1:
        shift = rows[0] - 1
        for block in _numbered(blocks):
            block.metarow -= shift
    return blocks


def assign_scanalyze_layout(blocks: Dict[int, Block], min_extent: float = 10) -> List[str]:
    """Assign MetaColumn/MetaRow for ScanAlyze grids.

    ScanAlyze may fill a metablock of several block rows before moving
    right, so besides the current position this tracks the last completed
    metablock column (grid index and x coordinate) and row.

    Returns
    -------
    list of str
        Overlap problems found; the layout is still assigned.
    """
    margin = average_block_height(blocks, min_extent) / 2
    problems = []
    last_max_x = 0
    last_max_y = 0
    metacolumn = 0
    metarow = 1
    populated_x_grid = 0
    populated_y_grid = 0
    populated_x_coordinate = 0

    for block in _numbered(blocks):
        moved_up = block.max_y < last_max_y - margin

        if block.max_x < last_max_x:
            if moved_up:
                problems.append("Error: Overlapping blocks in ScanAlyze array.")
            else:
                # Left of the previous block but not above it
                if block.max_x < populated_x_coordinate - margin:
                    populated_x_grid = 0
                    populated_x_coordinate = 0
                    populated_y_grid = metarow
                metacolumn = populated_x_grid + 1
                metarow += 1
        elif not moved_up:
            metacolumn += 1

        if moved_up:
            if block.max_x < last_max_x:
                problems.append("Error: Overlapping blocks in ScanAlyze array.")
            else:
                # Above the previous block: start the next metablock column
                populated_x_grid = metacolumn
                populated_x_coordinate = block.max_x
                metarow = populated_y_grid + 1
                metacolumn += 1

        block.metarow = metarow
        block.metacolumn = metacolumn
        last_max_x = block.max_x
        last_max_y = block.max_y

    return problems
