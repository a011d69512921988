"""
test_network.py
~~~~~~~~~~~~~~~

Unit and integration tests for the feed-forward network.
"""

import pytest

from feedforward.activations import Activation, SIGMOID, TANH
from feedforward.data_loader import load_sample_data
from feedforward.matrix import DimensionMismatchError, Matrix
from feedforward.network import ForwardTrace, Network


class Identity(Activation):
    """Linear activation, so updates can be checked by hand."""

    name = 'identity'

    def apply(self, x):
        return x

    def derivative_of(self, y):
        return 1.0


@pytest.fixture
def simple_network():
    """Create a seeded [2, 3, 1] sigmoid network."""
    return Network([2, 3, 1], SIGMOID, 0.5, rng=42)


@pytest.fixture
def sample_data():
    """The four two-bit examples and their targets."""
    return load_sample_data()


def linear_network(weights, learning_rate=0.1):
    """Build an identity-activation network with 1x1 layers and given weights."""
    net = Network([1] * (len(weights) + 1), Identity(), learning_rate)
    net.weights = [Matrix(1, 1, [w]) for w in weights]
    net.biases = [Matrix.zeros(1, 1) for _ in weights]
    return net


@pytest.mark.unit
class TestConstruction:
    """Test network construction."""

    def test_weight_and_bias_shapes(self):
        """Test that every layer transition gets correctly shaped matrices."""
        net = Network([3, 4, 2, 5])
        assert [w.shape for w in net.weights] == [(4, 3), (2, 4), (5, 2)]
        assert [b.shape for b in net.biases] == [(4, 1), (2, 1), (5, 1)]

    def test_initial_values_in_unit_interval(self, simple_network):
        """Test that weights and biases start in [0, 1)."""
        for m in simple_network.weights + simple_network.biases:
            assert all(0.0 <= value < 1.0 for value in m.data)

    def test_seed_makes_initialization_reproducible(self):
        """Test that two networks with one seed start identical."""
        a = Network([2, 3, 1], rng=5)
        b = Network([2, 3, 1], rng=5)
        assert a.weights == b.weights
        assert a.biases == b.biases

    def test_layers_are_independent(self, simple_network):
        """Test that no two parameter matrices share storage."""
        params = simple_network.weights + simple_network.biases
        assert len({id(m.data) for m in params}) == len(params)

    def test_too_few_layers(self):
        """Test that a single layer is rejected."""
        with pytest.raises(ValueError) as exc_info:
            Network([2])
        assert "at least 2 layers" in str(exc_info.value)

    def test_empty_topology(self):
        with pytest.raises(ValueError):
            Network([])

    def test_non_positive_layer_size(self):
        with pytest.raises(ValueError):
            Network([2, 0, 1])

    def test_learning_rate_stored_verbatim(self):
        """Test that any learning rate, including 0.0, is kept."""
        assert Network([2, 1], learning_rate=0.0).learning_rate == 0.0
        assert Network([2, 1], learning_rate=0.5).learning_rate == 0.5
        assert Network([2, 1], learning_rate=3.0).learning_rate == 3.0

    def test_default_activation_is_sigmoid(self):
        assert Network([2, 1]).activation is SIGMOID

    def test_sizes_alias(self, simple_network):
        assert simple_network.sizes == [2, 3, 1]
        assert simple_network.num_layers == 3


@pytest.mark.unit
class TestFeedForward:
    """Test the forward pass."""

    def test_output_shape(self):
        """Test that a [2, 3, 1] network maps a 2x1 input to a 1x1 output."""
        for seed in range(5):
            net = Network([2, 3, 1], rng=seed)
            output = net.feed_forward(Matrix.from_vector([0.3, 0.9]))
            assert output.shape == (1, 1)

    def test_matches_manual_computation(self, simple_network):
        """Test the output against sigmoid(W x + b) layer by layer."""
        x = Matrix.from_vector([1.0, 0.0])
        expected = x
        for w, b in zip(simple_network.weights, simple_network.biases):
            expected = b.add(w.dot_multiply(expected)).map(SIGMOID.apply)
        assert simple_network.feed_forward(x) == expected

    def test_wrong_input_width(self, simple_network):
        """Test that the input must match the first layer."""
        with pytest.raises(ValueError) as exc_info:
            simple_network.feed_forward(Matrix.from_vector([1.0, 2.0, 3.0]))
        assert "Invalid number of inputs" in str(exc_info.value)

    def test_row_vector_rejected(self, simple_network):
        """Test that the input must be a single column."""
        with pytest.raises(ValueError):
            simple_network.feed_forward(Matrix(1, 2, [1.0, 0.0]))

    def test_caches_every_layer(self, simple_network):
        """Test that the cache holds the input and each layer output."""
        x = Matrix.from_vector([0.0, 1.0])
        output = simple_network.feed_forward(x)
        cached = simple_network.cached_activations
        assert len(cached) == 3
        assert cached[0] == x
        assert cached[1].shape == (3, 1)
        assert cached[-1] == output

    def test_cache_rebuilt_on_every_call(self, simple_network):
        """Test that a new forward pass replaces the cache."""
        simple_network.feed_forward(Matrix.from_vector([0.0, 1.0]))
        second = Matrix.from_vector([1.0, 1.0])
        simple_network.feed_forward(second)
        cached = simple_network.cached_activations
        assert len(cached) == 3
        assert cached[0] == second

    def test_predict_leaves_cache_alone(self, simple_network):
        """Test that predict does not replace the cached activations."""
        x = Matrix.from_vector([0.0, 1.0])
        simple_network.feed_forward(x)
        prediction = simple_network.predict(Matrix.from_vector([1.0, 0.0]))
        assert simple_network.cached_activations[0] == x
        assert prediction.shape == (1, 1)

    def test_trace(self, simple_network):
        """Test that a trace matches feed_forward without caching."""
        x = Matrix.from_vector([1.0, 1.0])
        trace = simple_network.trace(x)
        assert isinstance(trace, ForwardTrace)
        assert len(trace) == 3
        assert simple_network.cached_activations == []
        assert trace.output == simple_network.feed_forward(x)


@pytest.mark.unit
class TestBackPropagate:
    """Test weight and bias updates."""

    def test_single_layer_update(self):
        """Test one update of a 1-1 linear network by hand."""
        net = linear_network([0.5], learning_rate=0.1)
        predicted = net.feed_forward(Matrix.from_vector([2.0]))
        assert predicted.data == [1.0]

        net.back_propagate(predicted, Matrix.from_vector([3.0]))

        # error 2.0, gradient 0.2, weight += 0.2 * input 2.0
        assert net.weights[0].data[0] == pytest.approx(0.9)
        assert net.biases[0].data[0] == pytest.approx(0.2)

    def test_error_flows_through_updated_weights(self):
        """Test that earlier layers see the error through the new weights."""
        net = linear_network([0.5, 2.0], learning_rate=0.1)
        predicted = net.feed_forward(Matrix.from_vector([1.0]))
        assert predicted.data == [1.0]

        net.back_propagate(predicted, Matrix.from_vector([2.0]))

        # Output layer: gradient 0.1, weight 2.0 + 0.1 * 0.5
        assert net.weights[1].data[0] == pytest.approx(2.05)
        assert net.biases[1].data[0] == pytest.approx(0.1)
        # Hidden layer: error 2.05 * 1.0, gradient 0.205
        assert net.weights[0].data[0] == pytest.approx(0.705)
        assert net.biases[0].data[0] == pytest.approx(0.205)

    def test_sigmoid_output_layer_update(self):
        """Test that the derivative is taken of the activated output."""
        net = Network([1, 1], SIGMOID, 1.0)
        net.weights = [Matrix(1, 1, [0.0])]
        net.biases = [Matrix(1, 1, [0.0])]
        predicted = net.feed_forward(Matrix.from_vector([1.0]))
        assert predicted.data == [0.5]

        net.back_propagate(predicted, Matrix.from_vector([1.0]))

        # error 0.5 * derivative 0.25 * learning rate 1.0
        assert net.weights[0].data[0] == pytest.approx(0.125)
        assert net.biases[0].data[0] == pytest.approx(0.125)

    def test_parameters_are_replaced(self, simple_network):
        """Test that old weight matrices are left untouched."""
        old_weights = simple_network.weights[0]
        old_values = old_weights.to_vector()
        predicted = simple_network.feed_forward(Matrix.from_vector([1.0, 0.0]))
        simple_network.back_propagate(predicted, Matrix.from_vector([0.0]))
        assert old_weights.to_vector() == old_values
        assert simple_network.weights[0] is not old_weights
        assert simple_network.weights[0] != old_weights

    def test_shapes_preserved(self, simple_network):
        predicted = simple_network.feed_forward(Matrix.from_vector([1.0, 0.0]))
        simple_network.back_propagate(predicted, Matrix.from_vector([0.0]))
        assert [w.shape for w in simple_network.weights] == [(3, 2), (1, 3)]
        assert [b.shape for b in simple_network.biases] == [(3, 1), (1, 1)]

    def test_zero_learning_rate_changes_nothing(self):
        """Test that a learning rate of 0.0 leaves the parameters as they were."""
        net = Network([2, 3, 1], learning_rate=0.0, rng=1)
        weights = [w.to_vector() for w in net.weights]
        predicted = net.feed_forward(Matrix.from_vector([1.0, 1.0]))
        net.back_propagate(predicted, Matrix.from_vector([0.0]))
        assert [w.to_vector() for w in net.weights] == weights

    def test_explicit_trace_matches_cached(self):
        """Test that passing a trace gives the same update as the cache."""
        cached = Network([2, 3, 1], rng=9)
        explicit = Network([2, 3, 1], rng=9)
        x = Matrix.from_vector([0.0, 1.0])
        y = Matrix.from_vector([1.0])

        cached.back_propagate(cached.feed_forward(x), y)
        trace = explicit.trace(x)
        explicit.back_propagate(trace.output, y, trace=trace)

        assert cached.weights == explicit.weights
        assert cached.biases == explicit.biases

    def test_without_forward_pass(self, simple_network):
        """Test that a backward pass needs a forward pass first."""
        with pytest.raises(RuntimeError) as exc_info:
            simple_network.back_propagate(
                Matrix.from_vector([0.5]), Matrix.from_vector([1.0])
            )
        assert "before feed_forward" in str(exc_info.value)

    def test_target_shape_mismatch(self, simple_network):
        """Test that the target must match the prediction's shape."""
        predicted = simple_network.feed_forward(Matrix.from_vector([1.0, 0.0]))
        with pytest.raises(DimensionMismatchError):
            simple_network.back_propagate(
                predicted, Matrix.from_vector([1.0, 0.0])
            )

    def test_trace_from_other_topology(self, simple_network):
        """Test that a trace with the wrong number of layers is rejected."""
        other = Network([2, 1]).trace(Matrix.from_vector([0.0, 0.0]))
        with pytest.raises(ValueError):
            simple_network.back_propagate(
                other.output, Matrix.from_vector([1.0]), trace=other
            )


@pytest.mark.unit
class TestTrain:
    """Test the training loop."""

    def test_mismatched_example_counts(self, simple_network, sample_data):
        inputs, targets = sample_data
        with pytest.raises(ValueError):
            simple_network.train(inputs, targets[:3], epochs=1)

    def test_negative_epochs(self, simple_network, sample_data):
        inputs, targets = sample_data
        with pytest.raises(ValueError):
            simple_network.train(inputs, targets, epochs=-1)

    def test_zero_epochs_changes_nothing(self, simple_network, sample_data):
        inputs, targets = sample_data
        weights = list(simple_network.weights)
        simple_network.train(inputs, targets, epochs=0)
        assert simple_network.weights == weights

    def test_same_as_manual_loop(self, sample_data):
        """Test that train runs feed_forward then back_propagate in order."""
        inputs, targets = sample_data
        trained = Network([2, 3, 1], rng=3)
        manual = Network([2, 3, 1], rng=3)

        trained.train(inputs, targets, epochs=3)
        for _ in range(3):
            for x, y in zip(inputs, targets):
                output = manual.feed_forward(Matrix.from_vector(x))
                manual.back_propagate(output, Matrix.from_vector(y))

        assert trained.weights == manual.weights
        assert trained.biases == manual.biases

    def test_deterministic_given_seed(self, sample_data):
        inputs, targets = sample_data
        a = Network([2, 3, 1], rng=11)
        b = Network([2, 3, 1], rng=11)
        a.train(inputs, targets, epochs=20)
        b.train(inputs, targets, epochs=20)
        assert a.weights == b.weights

    def test_callback_reports_progress(self, simple_network, sample_data):
        """Test that the callback fires periodically and on the last epoch."""
        inputs, targets = sample_data
        reports = []
        simple_network.train(inputs, targets, epochs=250, callback=reports.append)

        epochs = [report['epoch'] for report in reports]
        assert epochs[-1] == 250
        assert epochs[:3] == [2, 4, 6]
        assert len(epochs) == 125
        assert all(report['total_epochs'] == 250 for report in reports)
        assert all(report['elapsed_time'] >= 0 for report in reports)

    def test_callback_every_epoch_for_short_runs(self, simple_network, sample_data):
        inputs, targets = sample_data
        reports = []
        simple_network.train(inputs, targets, epochs=5, callback=reports.append)
        assert [report['epoch'] for report in reports] == [1, 2, 3, 4, 5]

    def test_yield_func_called_every_epoch(self, simple_network, sample_data):
        inputs, targets = sample_data
        calls = []
        simple_network.train(
            inputs, targets, epochs=7, yield_func=lambda: calls.append(1)
        )
        assert len(calls) == 7


@pytest.mark.unit
class TestMeanSquaredError:
    """Test the error measure."""

    def test_known_value(self):
        """Test the error of a linear network by hand."""
        net = linear_network([1.0])
        # errors 0 and 2 -> (0 + 4) / 2
        assert net.mean_squared_error([[1.0], [2.0]], [[1.0], [4.0]]) == 2.0

    def test_averages_over_outputs(self):
        net = Network([1, 2], Identity())
        net.weights = [Matrix(2, 1, [1.0, 1.0])]
        net.biases = [Matrix.zeros(2, 1)]
        # errors 1 and 3 -> (1 + 9) / 2
        assert net.mean_squared_error([[1.0]], [[2.0, 4.0]]) == 5.0

    def test_does_not_touch_cache(self, simple_network, sample_data):
        inputs, targets = sample_data
        simple_network.mean_squared_error(inputs, targets)
        assert simple_network.cached_activations == []

    def test_empty_dataset(self, simple_network):
        with pytest.raises(ValueError):
            simple_network.mean_squared_error([], [])

    def test_target_width_mismatch(self, simple_network):
        with pytest.raises(DimensionMismatchError):
            simple_network.mean_squared_error([[0.0, 1.0]], [[1.0, 0.0]])


@pytest.mark.integration
class TestConvergence:
    """Test that training reduces the error on the sample data."""

    def test_training_reduces_error(self, sample_data):
        inputs, targets = sample_data
        net = Network([2, 3, 1], SIGMOID, 0.5, rng=0)
        initial_error = net.mean_squared_error(inputs, targets)

        net.train(inputs, targets, epochs=2000)

        assert net.mean_squared_error(inputs, targets) < initial_error

    def test_tanh_network_reduces_error(self, sample_data):
        inputs, targets = sample_data
        net = Network([2, 3, 1], TANH, 0.05, rng=0)
        initial_error = net.mean_squared_error(inputs, targets)

        net.train(inputs, targets, epochs=300)

        assert net.mean_squared_error(inputs, targets) < initial_error

    @pytest.mark.slow
    def test_long_training_reduces_error(self, sample_data):
        """Test the full 100,000-epoch run with an unseeded network."""
        inputs, targets = sample_data
        net = Network([2, 3, 1], SIGMOID, 0.5)
        initial_error = net.mean_squared_error(inputs, targets)

        net.train(inputs, targets, epochs=100000)

        assert net.mean_squared_error(inputs, targets) < initial_error
