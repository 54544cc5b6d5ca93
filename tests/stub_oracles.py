"""
Deterministic oracles for tests.

They stand in for the external optimization backend: one replays fixed
samples, one always fails.
"""

import numpy as np
from typing import List, Sequence

from planning.oracle import CombinatorialOracle, OracleError, OracleState


class ReplayOracle(CombinatorialOracle):
    """Returns the same fixed bit vectors on every measurement."""

    def __init__(self, samples: Sequence[Sequence[int]]):
        self.samples = [np.asarray(s, dtype=int) for s in samples]
        self.executed = 0

    def execute(self, model) -> OracleState:
        self.executed += 1
        return OracleState(model=model)

    def measure(self, state: OracleState, shots: int) -> List[np.ndarray]:
        return list(self.samples)


class FailingOracle(CombinatorialOracle):
    """Raises OracleError on execute."""

    def __init__(self):
        self.executed = 0

    def execute(self, model) -> OracleState:
        self.executed += 1
        raise OracleError("backend unavailable")

    def measure(self, state: OracleState, shots: int) -> List[np.ndarray]:
        raise OracleError("backend unavailable")


def one_hot(assignment: dict, rows: int, cols: int) -> List[int]:
    """Bit vector of a {row: column} assignment."""
    bits = [0] * (rows * cols)
    for row, col in assignment.items():
        bits[row * cols + col] = 1
    return bits
