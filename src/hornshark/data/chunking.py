"""Contiguous row-block generation for data-parallel evaluation.

Splits an observation matrix into ordered, non-overlapping row blocks so
each worker owns a disjoint slice of the output.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RowBlock:
    """A contiguous run of observation rows."""
    row_off: int
    n_rows: int
    block_id: int

    @property
    def stop(self) -> int:
        return self.row_off + self.n_rows

    @property
    def slice(self) -> slice:
        return slice(self.row_off, self.stop)


def generate_row_blocks(
    total_rows: int,
    n_blocks: int,
    min_rows_per_block: int = 1,
) -> list[RowBlock]:
    """Generate row blocks covering ``[0, total_rows)`` in order.

    Block sizes differ by at most one row. Fewer than ``n_blocks`` are
    returned when there are not enough rows to give each block at least
    ``min_rows_per_block``.

    Args:
        total_rows: Number of observation rows.
        n_blocks: Requested number of blocks (one per worker).
        min_rows_per_block: Lower bound on rows per block.

    Returns:
        List of RowBlock objects, ordered by row offset.
    """
    if n_blocks < 1:
        raise ValueError(f"n_blocks must be >= 1, got {n_blocks}")
    if min_rows_per_block < 1:
        raise ValueError(
            f"min_rows_per_block must be >= 1, got {min_rows_per_block}"
        )
    if total_rows <= 0:
        return []

    n_blocks = min(n_blocks, max(1, total_rows // min_rows_per_block))
    base, extra = divmod(total_rows, n_blocks)

    blocks = []
    row_off = 0
    for block_id in range(n_blocks):
        n_rows = base + (1 if block_id < extra else 0)
        blocks.append(RowBlock(row_off=row_off, n_rows=n_rows, block_id=block_id))
        row_off += n_rows

    return blocks
