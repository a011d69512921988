"""
network.py
~~~~~~~~~~

A fully-connected feed-forward neural network trained with single-example
backpropagation. All arithmetic goes through ``feedforward.matrix.Matrix``.

Weights and biases start as uniform random values in [0, 1) and are
replaced (never mutated in place) on every backward pass.
"""

import time
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from feedforward.activations import Activation, SIGMOID
from feedforward.data_loader import to_matrices
from feedforward.matrix import DimensionMismatchError, Matrix, SeedLike

logger = logging.getLogger(__name__)


class ForwardTrace:
    """
    Per-layer activations recorded during one forward pass.

    ``activations[0]`` is the input and ``activations[-1]`` the prediction.
    A trace is what ``Network.back_propagate`` needs to update the layers.
    """

    __slots__ = ('activations',)

    def __init__(self, activations: List[Matrix]):
        self.activations = activations

    @property
    def output(self) -> Matrix:
        """The network's prediction for the traced input."""
        return self.activations[-1]

    def __len__(self) -> int:
        return len(self.activations)


class Network:
    """
    Feed-forward network with one activation shared by every layer.

    Attributes:
        layers: Neuron count per layer, input first, output last
        weights: ``weights[i]`` has shape (layers[i+1], layers[i])
        biases: ``biases[i]`` has shape (layers[i+1], 1)
        activation: Activation applied after every layer
        learning_rate: Scale applied to every gradient
    """

    def __init__(
        self,
        layers: Sequence[int],
        activation: Activation = SIGMOID,
        learning_rate: float = 0.5,
        rng: SeedLike = None
    ):
        """
        Create a network with randomly initialized weights and biases.

        Args:
            layers: Neuron count per layer (at least input and output)
            activation: Activation applied after every layer
            learning_rate: Gradient scale, used exactly as given
            rng: numpy Generator or seed for reproducible initialization

        Raises:
            ValueError: If fewer than two layers are given or a layer
                size is not a positive integer
        """
        layers = list(layers)
        if len(layers) < 2:
            raise ValueError(
                f"A network needs at least 2 layers, got {len(layers)}"
            )
        if any(int(size) != size or size < 1 for size in layers):
            raise ValueError(
                f"Layer sizes must be positive integers, got {layers}"
            )

        self.layers: List[int] = [int(size) for size in layers]
        self.activation = activation
        self.learning_rate = learning_rate

        generator = np.random.default_rng(rng)
        self.weights: List[Matrix] = []
        self.biases: List[Matrix] = []
        for n_in, n_out in zip(self.layers[:-1], self.layers[1:]):
            self.weights.append(Matrix.random(n_out, n_in, generator))
            self.biases.append(Matrix.random(n_out, 1, generator))

        self._last_trace: Optional[ForwardTrace] = None

        logger.debug(
            f"Created network {self.layers} with {activation!r}, "
            f"learning_rate={learning_rate}"
        )

    @property
    def sizes(self) -> List[int]:
        return self.layers

    @property
    def num_layers(self) -> int:
        return len(self.layers)

    @property
    def cached_activations(self) -> List[Matrix]:
        """Activations cached by the most recent ``feed_forward`` call."""
        if self._last_trace is None:
            return []
        return list(self._last_trace.activations)

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------

    def trace(self, inputs: Matrix) -> ForwardTrace:
        """
        Run a forward pass and return every layer's activation.

        Does not touch the network's cached activations.

        Args:
            inputs: Single-column matrix with ``layers[0]`` rows

        Returns:
            ForwardTrace: Input followed by each layer's output

        Raises:
            ValueError: If ``inputs`` is not a column of the input width
        """
        if inputs.cols != 1 or inputs.rows != self.layers[0]:
            raise ValueError(
                f"Invalid number of inputs: expected a {self.layers[0]}x1 "
                f"column, got {inputs.rows}x{inputs.cols}"
            )

        current = inputs
        activations = [current]
        for weight, bias in zip(self.weights, self.biases):
            current = bias.add(weight.dot_multiply(current)).map(
                self.activation.apply
            )
            activations.append(current)
        return ForwardTrace(activations)

    def feed_forward(self, inputs: Matrix) -> Matrix:
        """
        Predict the output for ``inputs`` and cache the layer activations.

        The cached activations are replaced on every call and are what a
        following ``back_propagate`` call without an explicit trace uses.

        Args:
            inputs: Single-column matrix with ``layers[0]`` rows

        Returns:
            Matrix: Output column with ``layers[-1]`` rows
        """
        self._last_trace = self.trace(inputs)
        return self._last_trace.output

    def predict(self, inputs: Matrix) -> Matrix:
        """Predict the output for ``inputs`` without caching anything."""
        return self.trace(inputs).output

    # ------------------------------------------------------------------
    # Backward pass
    # ------------------------------------------------------------------

    def back_propagate(
        self,
        predicted: Matrix,
        targets: Matrix,
        trace: Optional[ForwardTrace] = None
    ) -> None:
        """
        Update weights and biases from one example's prediction error.

        ``predicted`` must come from the forward pass that produced
        ``trace``. When ``trace`` is omitted, the activations cached by the
        most recent ``feed_forward`` call are used; pairing them with the
        right prediction is the caller's responsibility.

        Args:
            predicted: Output of the matching forward pass
            targets: Expected output, same shape as ``predicted``
            trace: Activations of the matching forward pass

        Raises:
            RuntimeError: If no trace is given and nothing was cached
            DimensionMismatchError: If ``targets`` and ``predicted`` differ
                in shape
        """
        if trace is None:
            trace = self._last_trace
        if trace is None:
            raise RuntimeError(
                "back_propagate called before feed_forward: "
                "no layer activations available"
            )
        if len(trace) != len(self.layers):
            raise ValueError(
                f"Trace has {len(trace)} activations, "
                f"network has {len(self.layers)} layers"
            )

        derivative = self.activation.derivative_of
        learning_rate = self.learning_rate

        errors = targets.subtract(predicted)
        reference = predicted
        for i in reversed(range(len(self.weights))):
            gradients = errors.elementwise_multiply(
                reference.map(derivative)
            ).map(lambda value: value * learning_rate)

            self.weights[i] = self.weights[i].add(
                gradients.dot_multiply(trace.activations[i].transpose())
            )
            self.biases[i] = self.biases[i].add(gradients)

            errors = self.weights[i].transpose().dot_multiply(errors)
            reference = trace.activations[i]

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(
        self,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[Sequence[float]],
        epochs: int,
        callback: Optional[Callable[[Dict[str, Any]], None]] = None,
        yield_func: Optional[Callable[[], None]] = None
    ) -> None:
        """
        Train on every example, in order, for ``epochs`` epochs.

        Each example gets its own forward pass and weight update; nothing
        is shuffled or accumulated.

        Args:
            inputs: Input vectors, one per example
            targets: Target vectors, one per example
            epochs: Number of passes over the examples
            callback: Called with ``epoch``, ``total_epochs`` and
                ``elapsed_time`` about a hundred times per run and after
                the last epoch
            yield_func: Called after every epoch, e.g. to let other
                greenlets run

        Raises:
            ValueError: If the example counts differ or ``epochs`` is
                negative
        """
        if len(inputs) != len(targets):
            raise ValueError(
                f"Got {len(inputs)} inputs but {len(targets)} targets"
            )
        if epochs < 0:
            raise ValueError(f"epochs must be non-negative, got {epochs}")

        examples = list(zip(to_matrices(inputs), to_matrices(targets)))
        report_every = max(1, epochs // 100)
        start_time = time.time()

        logger.info(
            f"Training network {self.layers} on {len(examples)} examples "
            f"for {epochs} epochs"
        )

        for epoch in range(1, epochs + 1):
            for x, y in examples:
                outputs = self.feed_forward(x)
                self.back_propagate(outputs, y)

            if callback and (epoch % report_every == 0 or epoch == epochs):
                callback({
                    'epoch': epoch,
                    'total_epochs': epochs,
                    'elapsed_time': time.time() - start_time
                })

            if yield_func:
                yield_func()

        logger.info(
            f"Training finished after {epochs} epochs "
            f"in {time.time() - start_time:.2f}s"
        )

    def mean_squared_error(
        self,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[Sequence[float]]
    ) -> float:
        """
        Return the mean squared error of the predictions.

        Squared errors are averaged over the outputs of each example, then
        over the examples. Does not touch the cached activations.

        Raises:
            ValueError: If the example counts differ or there are none
        """
        if len(inputs) != len(targets):
            raise ValueError(
                f"Got {len(inputs)} inputs but {len(targets)} targets"
            )
        if not inputs:
            raise ValueError("Cannot compute the error of an empty dataset")

        total = 0.0
        for x, y in zip(inputs, targets):
            predicted = self.predict(Matrix.from_vector(x))
            expected = Matrix.from_vector(y)
            if expected.shape != predicted.shape:
                raise DimensionMismatchError(
                    f"Target has {expected.rows} values, "
                    f"network outputs {predicted.rows}"
                )
            errors = expected.subtract(predicted)
            # (errors^T . errors) is the 1x1 sum of squared errors
            sum_squared = errors.transpose().dot_multiply(errors).to_vector()[0]
            total += sum_squared / errors.rows
        return total / len(inputs)

    def __repr__(self) -> str:
        return (
            f"Network({self.layers}, activation={self.activation!r}, "
            f"learning_rate={self.learning_rate})"
        )
