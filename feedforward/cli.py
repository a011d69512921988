"""
cli.py
~~~~~~

Command-line trainer: trains a network on the sample data (or on vectors
given with ``--inputs``/``--targets``) and prints forward-pass results.

Usage:
    feedforward --train --forward
    feedforward -t -f -i "0,0 1,1" --targets "0 1" --epochs 5000
"""

import logging
from typing import List, Optional

import click
from tqdm import tqdm

from feedforward import __version__
from feedforward.activations import ACTIVATIONS, get_activation
from feedforward.data_loader import load_sample_data, split_inputs
from feedforward.logging_config import configure_logging
from feedforward.matrix import Matrix
from feedforward.network import Network

logger = logging.getLogger(__name__)

DEFAULT_LAYERS = '2,3,1'
DEFAULT_EPOCHS = 100000
DEFAULT_LEARNING_RATE = 0.5
LOOPED_FORWARD_PASSES = 100


def parse_layers(text: str) -> List[int]:
    """Parse a layer topology such as ``"2,3,1"``."""
    try:
        layers = [int(part) for part in text.replace(' ', '').split(',') if part]
    except ValueError:
        raise click.BadParameter(
            f"expected comma-separated integers, got '{text}'",
            param_hint='--layers'
        ) from None
    if len(layers) < 2 or any(size < 1 for size in layers):
        raise click.BadParameter(
            "need at least 2 positive layer sizes", param_hint='--layers'
        )
    return layers


def _parse_vectors(text: str, width: int, option: str) -> List[List[float]]:
    try:
        return split_inputs(text, width)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=option) from None


def training(network: Network, inputs: List[List[float]],
             targets: List[List[float]], epochs: int) -> None:
    """Train ``network`` with a progress bar and report the final error."""
    click.echo(f"Training {epochs} epochs")
    with tqdm(total=epochs, desc="Progress") as bar:
        def on_progress(data):
            bar.update(data['epoch'] - bar.n)

        network.train(inputs, targets, epochs, callback=on_progress)

    error = network.mean_squared_error(inputs, targets)
    click.echo(f"Mean squared error: {error:.6f}")


def forward_pass(network: Network, inputs: List[List[float]]) -> None:
    """Print the network's prediction for every input."""
    click.echo("Forward processing...")
    for vector in inputs:
        result = network.feed_forward(Matrix.from_vector(vector))
        click.echo(f"Input {vector}:  {result.to_vector()}")


@click.command(context_settings={'help_option_names': ['-h', '--help']})
@click.option('-t', '--train', 'do_train', is_flag=True,
              help='Train the network')
@click.option('-f', '--forward', 'do_forward', is_flag=True,
              help='Forward process the network')
@click.option('-l', '--looped-forward', is_flag=True,
              help=f'Repeat the forward pass {LOOPED_FORWARD_PASSES} times')
@click.option('-i', '--inputs', 'inputs_text', type=str, default=None,
              help='Input vectors, e.g. "0,0 0,1 1,0 1,1"')
@click.option('--targets', 'targets_text', type=str, default=None,
              help='Target vectors for --inputs, e.g. "0 1 0 1"')
@click.option('-e', '--epochs', type=click.IntRange(min=1),
              default=DEFAULT_EPOCHS, show_default=True,
              help='Number of training epochs')
@click.option('--layers', 'layers_text', default=DEFAULT_LAYERS,
              show_default=True, help='Neurons per layer, input first')
@click.option('--learning-rate', type=float, default=DEFAULT_LEARNING_RATE,
              show_default=True)
@click.option('--activation', type=click.Choice(sorted(ACTIVATIONS)),
              default='sigmoid', show_default=True)
@click.option('--seed', type=int, default=None,
              help='Seed for weight initialization')
@click.option('--log-level', default=None,
              help='Log level (defaults to LOG_LEVEL or INFO)')
@click.version_option(__version__, prog_name='feedforward')
@click.pass_context
def cli(
    ctx: click.Context,
    do_train: bool,
    do_forward: bool,
    looped_forward: bool,
    inputs_text: Optional[str],
    targets_text: Optional[str],
    epochs: int,
    layers_text: str,
    learning_rate: float,
    activation: str,
    seed: Optional[int],
    log_level: Optional[str]
) -> None:
    """Train a feed-forward neural network and run forward passes."""
    configure_logging(log_level)

    if not do_train and not do_forward:
        click.echo(ctx.get_help())
        return

    layers = parse_layers(layers_text)

    if inputs_text is not None:
        inputs = _parse_vectors(inputs_text, layers[0], '--inputs')
        if targets_text is not None:
            targets = _parse_vectors(targets_text, layers[-1], '--targets')
        elif do_train:
            raise click.UsageError('--targets is required with --inputs')
        else:
            targets = []
    else:
        inputs, targets = load_sample_data()
        if targets_text is not None:
            targets = _parse_vectors(targets_text, layers[-1], '--targets')

    if do_train and len(inputs) != len(targets):
        raise click.UsageError(
            f"got {len(inputs)} input(s) but {len(targets)} target(s)"
        )

    try:
        network = Network(
            layers, get_activation(activation), learning_rate, rng=seed
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from None

    if do_train:
        try:
            training(network, inputs, targets, epochs)
        except ValueError as e:
            raise click.UsageError(str(e)) from None

    if do_forward:
        passes = LOOPED_FORWARD_PASSES if looped_forward else 1
        try:
            for _ in range(passes):
                forward_pass(network, inputs)
        except ValueError as e:
            raise click.UsageError(str(e)) from None


def main() -> None:
    cli()


if __name__ == '__main__':
    main()
