"""
Combinatorial optimization oracle interface.

The planner treats the optimization backend as an injected black box: it
submits a quadratic model, then draws candidate bit vectors from the
resulting state. LocalSamplingOracle is a classical stand-in for running
without the real backend (a simulated annealing sampler).
"""

import numpy as np
import logging
import time
from abc import ABC, abstractmethod
from typing import List, Optional
from dataclasses import dataclass, field

from .qubo import QuadraticModel


class OracleError(Exception):
    """Raised by an oracle when a model cannot be executed or measured."""


@dataclass(frozen=True)
class OracleState:
    """Handle returned by execute() and consumed by measure()."""
    model: QuadraticModel
    created_at: float = field(default_factory=time.time)


class CombinatorialOracle(ABC):
    """Backend that samples low-cost bit vectors for a quadratic model."""

    @abstractmethod
    def execute(self, model: QuadraticModel) -> OracleState:
        """
        Prepare a model for sampling.

        Raises:
            OracleError: If the backend cannot run the model
        """

    @abstractmethod
    def measure(self, state: OracleState, shots: int) -> List[np.ndarray]:
        """
        Draw independent 0/1 candidate vectors from a prepared state.

        Raises:
            OracleError: If sampling fails
        """


class LocalSamplingOracle(CombinatorialOracle):
    """
    Local sampler for quadratic models.

    Runs a batch of independent simulated annealing chains (one per shot)
    with single bit flip Metropolis updates. Like a small local backend it
    refuses models above max_variables.
    """

    def __init__(
        self,
        max_variables: int = 20,
        sweeps: int = 60,
        seed: Optional[int] = None
    ):
        """
        Initialize the sampler.

        Args:
            max_variables: Largest model accepted
            sweeps: Annealing sweeps per sample
            seed: Random seed for reproducible samples
        """
        self.max_variables = max_variables
        self.sweeps = max(1, sweeps)
        self.rng = np.random.default_rng(seed)
        self.logger = logging.getLogger("LocalSamplingOracle")

    def execute(self, model: QuadraticModel) -> OracleState:
        if model.num_variables == 0:
            raise OracleError("Model has no variables")
        if model.num_variables > self.max_variables:
            raise OracleError(
                f"Model needs {model.num_variables} variables, "
                f"local sampler supports {self.max_variables}"
            )
        if not np.all(np.isfinite(model.matrix)):
            raise OracleError("Model contains non-finite coefficients")
        return OracleState(model=model)

    def measure(self, state: OracleState, shots: int) -> List[np.ndarray]:
        if shots <= 0:
            return []

        q = state.model.matrix
        n = state.model.num_variables
        x = self.rng.integers(0, 2, size=(shots, n)).astype(float)

        scale = float(np.max(np.abs(q))) or 1.0
        temperatures = np.geomspace(scale, scale * 1e-3, self.sweeps)
        diagonal = np.diag(q)

        for temperature in temperatures:
            for i in self.rng.permutation(n):
                flip = 1.0 - 2.0 * x[:, i]
                local_field = x @ q[:, i]
                delta = flip * (2.0 * local_field + flip * diagonal[i])
                accept = delta <= 0.0
                uphill = ~accept
                if np.any(uphill):
                    threshold = np.exp(-delta[uphill] / temperature)
                    accept[uphill] = self.rng.random(int(uphill.sum())) < threshold
                x[accept, i] += flip[accept]

        self.logger.debug(f"Drew {shots} samples for {n}-variable model")
        return [row.astype(int) for row in x]
