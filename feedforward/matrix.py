"""
matrix.py
~~~~~~~~~

Dense, row-major matrix of floats with the arithmetic the network needs.

Every operation returns a new matrix; inputs are never modified. Shape
mismatches raise ``DimensionMismatchError`` instead of broadcasting.
"""

from typing import Callable, Iterable, List, Sequence, Tuple, Union

import numpy as np

SeedLike = Union[None, int, np.random.Generator]


class DimensionMismatchError(ValueError):
    """Raised when an operation receives matrices of incompatible shapes."""


class Matrix:
    """
    A 2-D matrix stored as a flat list in row-major order.

    The element at row ``r``, column ``c`` lives at ``data[r * cols + c]``.
    ``len(data) == rows * cols`` holds for every matrix.
    """

    __slots__ = ('rows', 'cols', 'data')

    def __init__(self, rows: int, cols: int, data: Iterable[float]):
        """
        Create a matrix from a flat row-major buffer.

        Args:
            rows: Number of rows
            cols: Number of columns
            data: Exactly ``rows * cols`` values, copied into the matrix

        Raises:
            ValueError: If a dimension is negative or the buffer length
                does not match ``rows * cols``
        """
        _check_dimensions(rows, cols)
        buffer = [float(value) for value in data]
        if len(buffer) != rows * cols:
            raise ValueError(
                f"Invalid size: expected {rows * cols} values for a "
                f"{rows}x{cols} matrix, got {len(buffer)}"
            )
        self.rows = rows
        self.cols = cols
        self.data = buffer

    @classmethod
    def _wrap(cls, rows: int, cols: int, data: List[float]) -> 'Matrix':
        # Internal constructor for buffers built by this module.
        matrix = cls.__new__(cls)
        matrix.rows = rows
        matrix.cols = cols
        matrix.data = data
        return matrix

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def zeros(cls, rows: int, cols: int) -> 'Matrix':
        """Create a ``rows`` x ``cols`` matrix filled with 0.0."""
        _check_dimensions(rows, cols)
        return cls._wrap(rows, cols, [0.0] * (rows * cols))

    @classmethod
    def random(cls, rows: int, cols: int, rng: SeedLike = None) -> 'Matrix':
        """
        Create a matrix of independent uniform values in [0.0, 1.0).

        Args:
            rows: Number of rows
            cols: Number of columns
            rng: numpy Generator or seed; a fresh unseeded generator is
                used when omitted

        Returns:
            Matrix: Randomly initialized matrix
        """
        _check_dimensions(rows, cols)
        generator = np.random.default_rng(rng)
        return cls._wrap(rows, cols, generator.random(rows * cols).tolist())

    @classmethod
    def from_buffer(cls, rows: int, cols: int,
                    data: Sequence[float]) -> 'Matrix':
        """Wrap a flat row-major buffer; see ``Matrix.__init__``."""
        return cls(rows, cols, data)

    @classmethod
    def from_vector(cls, values: Iterable[float]) -> 'Matrix':
        """Create a single-column matrix from a sequence of values."""
        buffer = [float(value) for value in values]
        return cls._wrap(len(buffer), 1, buffer)

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]]) -> 'Matrix':
        """
        Create a matrix from nested rows.

        Args:
            rows: Sequence of equally sized rows

        Returns:
            Matrix: Matrix with one row per entry of ``rows``

        Raises:
            ValueError: If the rows have different lengths
        """
        data: List[float] = []
        cols = len(rows[0]) if rows else 0
        for row in rows:
            if len(row) != cols:
                raise ValueError(
                    "Inconsistent number of elements in the matrix rows"
                )
            data.extend(float(value) for value in row)
        return cls._wrap(len(rows), cols, data)

    @classmethod
    def from_numpy(cls, array: np.ndarray) -> 'Matrix':
        """
        Convert a numpy array into a matrix.

        One-dimensional arrays become single-column matrices.

        Raises:
            ValueError: If the array has more than two dimensions
        """
        array = np.asarray(array, dtype=float)
        if array.ndim == 1:
            return cls.from_vector(array.tolist())
        if array.ndim != 2:
            raise ValueError(
                f"Expected a 1-D or 2-D array, got {array.ndim} dimensions"
            )
        rows, cols = array.shape
        return cls._wrap(rows, cols, array.reshape(-1).tolist())

    # ------------------------------------------------------------------
    # Elementwise operations
    # ------------------------------------------------------------------

    def add(self, other: 'Matrix') -> 'Matrix':
        """
        Add two matrices elementwise.

        Raises:
            DimensionMismatchError: If the shapes differ
        """
        self._require_same_shape(other, 'add')
        return Matrix._wrap(
            self.rows, self.cols,
            [a + b for a, b in zip(self.data, other.data)]
        )

    def subtract(self, other: 'Matrix') -> 'Matrix':
        """
        Subtract ``other`` from this matrix elementwise.

        Raises:
            DimensionMismatchError: If the shapes differ
        """
        self._require_same_shape(other, 'subtract')
        return Matrix._wrap(
            self.rows, self.cols,
            [a - b for a, b in zip(self.data, other.data)]
        )

    def elementwise_multiply(self, other: 'Matrix') -> 'Matrix':
        """
        Multiply two matrices elementwise (Hadamard product).

        Raises:
            DimensionMismatchError: If the shapes differ
        """
        self._require_same_shape(other, 'elementwise multiply')
        return Matrix._wrap(
            self.rows, self.cols,
            [a * b for a, b in zip(self.data, other.data)]
        )

    def map(self, func: Callable[[float], float]) -> 'Matrix':
        """Apply ``func`` to every element, returning a new matrix."""
        return Matrix._wrap(
            self.rows, self.cols, [func(value) for value in self.data]
        )

    # ------------------------------------------------------------------
    # Linear algebra
    # ------------------------------------------------------------------

    def dot_multiply(self, other: 'Matrix') -> 'Matrix':
        """
        Compute the matrix product ``self · other``.

        Sums are accumulated with ``k`` ascending so results are
        reproducible to the last bit.

        Args:
            other: Matrix with as many rows as this matrix has columns

        Returns:
            Matrix: Product of shape (self.rows, other.cols)

        Raises:
            DimensionMismatchError: If ``self.cols != other.rows``
        """
        if self.cols != other.rows:
            raise DimensionMismatchError(
                f"Cannot dot multiply matrices: {self._dims()} and "
                f"{other._dims()} (columns {self.cols} != rows {other.rows})"
            )
        n, m, p = self.rows, self.cols, other.cols
        a, b = self.data, other.data
        result = [0.0] * (n * p)
        for i in range(n):
            row_offset = i * m
            for j in range(p):
                total = 0.0
                for k in range(m):
                    total += a[row_offset + k] * b[k * p + j]
                result[i * p + j] = total
        return Matrix._wrap(n, p, result)

    def transpose(self) -> 'Matrix':
        """Return the (cols, rows) transpose of this matrix."""
        rows, cols = self.rows, self.cols
        result = [0.0] * (rows * cols)
        for i in range(rows):
            for j in range(cols):
                result[j * rows + i] = self.data[i * cols + j]
        return Matrix._wrap(cols, rows, result)

    # ------------------------------------------------------------------
    # Comparison and conversion
    # ------------------------------------------------------------------

    def equals(self, other: 'Matrix') -> bool:
        """True if shapes match and every element is exactly equal."""
        return (
            self.rows == other.rows
            and self.cols == other.cols
            and self.data == other.data
        )

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    def to_list(self) -> List[List[float]]:
        """Return the matrix as nested rows."""
        return [
            self.data[r * self.cols:(r + 1) * self.cols]
            for r in range(self.rows)
        ]

    def to_vector(self) -> List[float]:
        """Return a copy of the elements in row-major order."""
        return list(self.data)

    def to_numpy(self) -> np.ndarray:
        return np.array(self.data, dtype=float).reshape(self.rows, self.cols)

    def _require_same_shape(self, other: 'Matrix', operation: str) -> None:
        if self.rows != other.rows or self.cols != other.cols:
            raise DimensionMismatchError(
                f"Cannot {operation} matrices with different dimensions: "
                f"{self._dims()} and {other._dims()}"
            )

    def _dims(self) -> str:
        return f"{self.rows}x{self.cols}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.equals(other)

    __hash__ = None  # type: ignore[assignment]

    def __add__(self, other: 'Matrix') -> 'Matrix':
        return self.add(other)

    def __sub__(self, other: 'Matrix') -> 'Matrix':
        return self.subtract(other)

    def __mul__(self, other: 'Matrix') -> 'Matrix':
        return self.elementwise_multiply(other)

    def __matmul__(self, other: 'Matrix') -> 'Matrix':
        return self.dot_multiply(other)

    def __repr__(self) -> str:
        return f"Matrix({self.rows}, {self.cols}, {self.data!r})"

    def __str__(self) -> str:
        # One line per row, columns separated by tabs
        return ''.join(
            '\t'.join(repr(value) for value in row) + '\n'
            for row in self.to_list()
        )


def _check_dimensions(rows: int, cols: int) -> None:
    if rows < 0 or cols < 0:
        raise ValueError(
            f"Matrix dimensions must be non-negative, got {rows}x{cols}"
        )


def ones_like(matrix: Matrix) -> Matrix:
    """Create a matrix of 1.0 with the same shape as ``matrix``."""
    return Matrix._wrap(matrix.rows, matrix.cols, [1.0] * len(matrix.data))

