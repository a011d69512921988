"""
data_loader.py
~~~~~~~~~~~~~~

Sample training data and parsing of example vectors from text.

The sample dataset maps each two-bit input to its second bit:
``[0,0]→[0]``, ``[0,1]→[1]``, ``[1,0]→[0]``, ``[1,1]→[1]``.
"""

import re
import logging
from typing import Iterable, List, Sequence, Tuple

from feedforward.matrix import Matrix

logger = logging.getLogger(__name__)

Vector = List[float]

SAMPLE_INPUTS: Tuple[Tuple[float, ...], ...] = (
    (0.0, 0.0),
    (0.0, 1.0),
    (1.0, 0.0),
    (1.0, 1.0),
)

SAMPLE_TARGETS: Tuple[Tuple[float, ...], ...] = (
    (0.0,),
    (1.0,),
    (0.0,),
    (1.0,),
)

_SEPARATORS = re.compile(r'[,\s]+')


def load_sample_data() -> Tuple[List[Vector], List[Vector]]:
    """
    Return fresh copies of the sample inputs and targets.

    Returns:
        tuple: (inputs, targets), each a list of vectors
    """
    inputs = [list(vector) for vector in SAMPLE_INPUTS]
    targets = [list(vector) for vector in SAMPLE_TARGETS]
    return inputs, targets


def split_inputs(text: str, width: int = 2) -> List[Vector]:
    """
    Parse numbers separated by commas and/or whitespace into vectors.

    Consecutive numbers are grouped ``width`` at a time, so with the
    default width ``"0,0 0,1 1,0"`` gives three two-element vectors.

    Args:
        text: Numbers separated by commas and/or whitespace
        width: Number of values per vector

    Returns:
        list: Parsed vectors, in order

    Raises:
        ValueError: If a token is not a number, ``width`` is not positive,
            or the count of numbers is not a multiple of ``width``

    Example:
        >>> split_inputs("0, 0, 0, 1")
        [[0.0, 0.0], [0.0, 1.0]]
    """
    if width < 1:
        raise ValueError(f"width must be a positive integer, got {width}")

    values: Vector = []
    for token in _SEPARATORS.split(text.strip()):
        if not token:
            continue
        try:
            values.append(float(token))
        except ValueError:
            raise ValueError(f"Error parsing number: '{token}'") from None

    if len(values) % width:
        raise ValueError(
            f"Expected a multiple of {width} numbers, got {len(values)}"
        )

    vectors = [values[i:i + width] for i in range(0, len(values), width)]
    logger.debug(f"Parsed {len(vectors)} vector(s) of width {width}")
    return vectors


def to_matrices(vectors: Iterable[Sequence[float]]) -> List[Matrix]:
    """Wrap each vector as a single-column matrix."""
    return [Matrix.from_vector(vector) for vector in vectors]
