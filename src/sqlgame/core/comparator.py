"""Result comparison for judging learner queries.

Two result tables are equal when they hold the same data, modulo what the
scene declares irrelevant:
- row order (rows compared as a multiset)
- column order (columns matched up by name)
- exact column-name spelling (names always match case-insensitively;
  when names are relevant they must also match exactly)

Columns are matched by searching the permutations that align one table's
column names with the other's. Duplicate names yield several candidates;
the tables are equal if any candidate makes all rows equal.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator, Sequence
from typing import Any

from sqlgame.db.database import ResultSet

# =============================================================================
# PERMUTATIONS
# =============================================================================


def compute_permutations(source: Sequence[str], target: Sequence[str]) -> Iterator[list[int]]:
    """Yield every permutation p with [source[i] for i in p] == list(target).

    source and target must hold the same elements; duplicates produce one
    permutation per way of pairing them up. Permutations are produced lazily
    so callers can stop at the first one that fits.
    """

    def rec(available: list[int], position: int) -> Iterator[list[int]]:
        if position == len(target):
            yield []
            return
        wanted = target[position]
        for candidate in available:
            if source[candidate] != wanted:
                continue
            rest = [i for i in available if i != candidate]
            for tail in rec(rest, position + 1):
                yield [candidate, *tail]

    if Counter(source) != Counter(target):
        return iter(())

    return rec(list(range(len(source))), 0)


def _permute(values: Sequence[Any], permutation: Sequence[int]) -> tuple[Any, ...]:
    return tuple(values[i] for i in permutation)


# =============================================================================
# ROW ORDERING
# =============================================================================


def _value_key(value: Any) -> tuple[int, Any]:
    # NULL < numbers < text < blobs, mirroring SQLite's own ordering
    if value is None:
        return (0, 0)
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return (3, bytes(value))
    return (4, repr(value))


def _row_key(row: Sequence[Any]) -> tuple[tuple[int, Any], ...]:
    return tuple(_value_key(v) for v in row)


# =============================================================================
# EQUALITY
# =============================================================================


def are_results_equal(
    a: ResultSet,
    b: ResultSet,
    *,
    row_order_relevant: bool,
    col_order_relevant: bool,
    col_names_relevant: bool,
    max_permutations: int = 0,
) -> bool:
    """Decide whether two result tables are semantically equal.

    Args:
        a: First table
        b: Second table
        row_order_relevant: Rows must appear in the same order
        col_order_relevant: Columns must appear in the same order
        col_names_relevant: Column names must match exactly (case-sensitive)
        max_permutations: Stop after trying this many column permutations
            (0 = try all)

    Returns:
        True if the tables are equal under the given sensitivity. The relation
        is symmetric.
    """
    # Row and column counts must match
    if len(a.rows) != len(b.rows) or len(a.columns) != len(b.columns):
        return False

    a_folded = [c.casefold() for c in a.columns]
    b_folded = [c.casefold() for c in b.columns]

    # Column names must match as a multiset, ignoring case
    if Counter(a_folded) != Counter(b_folded):
        return False

    if col_order_relevant:
        if a_folded != b_folded:
            return False
        permutations: Iterator[list[int]] = iter([list(range(len(a.columns)))])
    else:
        permutations = compute_permutations(a_folded, b_folded)

    b_rows = [tuple(row) for row in b.rows]
    if not row_order_relevant:
        b_rows.sort(key=_row_key)

    for tried, permutation in enumerate(permutations, start=1):
        if max_permutations and tried > max_permutations:
            break

        if col_names_relevant and list(_permute(a.columns, permutation)) != list(b.columns):
            continue

        a_rows = [_permute(row, permutation) for row in a.rows]
        if not row_order_relevant:
            a_rows.sort(key=_row_key)

        if a_rows == b_rows:
            return True

    return False


def are_result_lists_equal(
    a: Sequence[ResultSet],
    b: Sequence[ResultSet],
    *,
    row_order_relevant: bool,
    col_order_relevant: bool,
    col_names_relevant: bool,
    max_permutations: int = 0,
) -> bool:
    """Compare the result sets of two multi-statement scripts positionally."""
    if len(a) != len(b):
        return False

    return all(
        are_results_equal(
            x,
            y,
            row_order_relevant=row_order_relevant,
            col_order_relevant=col_order_relevant,
            col_names_relevant=col_names_relevant,
            max_permutations=max_permutations,
        )
        for x, y in zip(a, b)
    )
