"""Minimum-cost assignment between the rows and columns of a cost matrix."""

from __future__ import annotations

import numpy as np
from scipy.optimize import linear_sum_assignment


def hungarian_assignment(cost_matrix) -> list[int]:
    """Return, for each row, the column assigned to it, or -1 if it stays unassigned."""
    cost = np.asarray(cost_matrix, dtype=float)
    if cost.ndim != 2:
        raise ValueError("cost matrix must be two-dimensional")
    assignment = [-1] * cost.shape[0]
    if cost.size == 0:
        return assignment
    rows, cols = linear_sum_assignment(cost)
    for row, col in zip(rows, cols):
        assignment[int(row)] = int(col)
    return assignment