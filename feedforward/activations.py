"""
activations.py
~~~~~~~~~~~~~~

Activation functions applied elementwise after each layer.

Each activation exposes ``apply(x)`` and ``derivative_of(y)``. The
derivative takes the *activated* value ``y = apply(x)``, not the raw
weighted sum, because the network only keeps activated layer outputs.
"""

import math
from abc import ABC, abstractmethod
from typing import Dict


class Activation(ABC):
    """Scalar nonlinearity paired with its derivative."""

    name: str = ''

    @abstractmethod
    def apply(self, x: float) -> float:
        """Return the activation of the weighted sum ``x``."""

    @abstractmethod
    def derivative_of(self, y: float) -> float:
        """Return the derivative, given the activated output ``y``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Sigmoid(Activation):
    """Logistic function: squashes values into (0, 1)."""

    name = 'sigmoid'

    def apply(self, x: float) -> float:
        # Split on sign so math.exp never overflows
        if x >= 0:
            return 1.0 / (1.0 + math.exp(-x))
        z = math.exp(x)
        return z / (1.0 + z)

    def derivative_of(self, y: float) -> float:
        return y * (1.0 - y)


class Tanh(Activation):
    """Hyperbolic tangent: squashes values into (-1, 1)."""

    name = 'tanh'

    def apply(self, x: float) -> float:
        return math.tanh(x)

    def derivative_of(self, y: float) -> float:
        return 1.0 - y * y


SIGMOID = Sigmoid()
TANH = Tanh()

# Activations selectable by name from the CLI and the API server
ACTIVATIONS: Dict[str, Activation] = {
    SIGMOID.name: SIGMOID,
    TANH.name: TANH,
}


def get_activation(name: str) -> Activation:
    """
    Look up an activation by name.

    Args:
        name: Registered activation name (case-insensitive)

    Returns:
        Activation: The shared activation instance

    Raises:
        ValueError: If no activation is registered under ``name``
    """
    try:
        return ACTIVATIONS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown activation '{name}'. "
            f"Choose one of: {', '.join(sorted(ACTIVATIONS))}"
        ) from None
