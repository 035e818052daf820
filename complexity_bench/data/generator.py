"""
Synthetic input generation for algorithm operations.

Arguments are produced per parameter kind and scaled by the input size N.
Arrays and collections carry the size; scalars are auxiliary.
"""

import logging
import random
import string
from collections import deque
from typing import Any, Callable, Dict, Optional, Tuple

from ..providers.base import OperationSignature, ParameterKind, UnsupportedParameterError

logger = logging.getLogger(__name__)

# Value ranges for generated integers
ARRAY_VALUE_BOUND = 100_000
COLLECTION_VALUE_BOUND = 10_000

GeneratedArgs = Tuple[Any, ...]


class InputGenerator:
    """
    Generate argument tuples for an OperationSignature.

    Policy per kind:
        - int array: N random ints, sorted ascending so search-style
          algorithms find their targets
        - float array: N random floats in [0, 1), unsorted
        - string array: N distinct strings "Str0" .. "Str{N-1}"
        - int collection: deque of N random ints
        - int: random int in [0, N)
        - float: random float in [0, 1)
        - bool: False
        - string: N random lowercase letters

    Example:
        generator = InputGenerator(seed=42)
        args = generator.generate(signature, 1000)
        fresh = generator.copy_args(args)
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize generator.

        Args:
            seed: Seed for the private random source (None for OS entropy)
        """
        self._random = random.Random(seed)
        self._factories: Dict[ParameterKind, Callable[[int], Any]] = {
            ParameterKind.INT_ARRAY: self._int_array,
            ParameterKind.FLOAT_ARRAY: self._float_array,
            ParameterKind.STRING_ARRAY: self._string_array,
            ParameterKind.INT_COLLECTION: self._int_collection,
            ParameterKind.INT: self._int,
            ParameterKind.FLOAT: self._float,
            ParameterKind.BOOL: self._bool,
            ParameterKind.STRING: self._string,
        }

    def generate(self, signature: OperationSignature, n: int) -> GeneratedArgs:
        """
        Generate one argument tuple of size N.

        Args:
            signature: Parameter kinds of the target operation
            n: Input size

        Returns:
            Tuple of arguments, one per parameter

        Raises:
            UnsupportedParameterError: If a kind has no generation policy
            ValueError: If n is negative
        """
        if n < 0:
            raise ValueError(f"Input size must be non-negative, got {n}")

        return tuple(self.create_value(kind, n) for kind in signature)

    def create_value(self, kind: Any, n: int) -> Any:
        factory = self._factories.get(kind)
        if factory is None:
            raise UnsupportedParameterError(f"No input generation policy for parameter kind {kind!r}")
        return factory(n)

    @staticmethod
    def copy_args(args: GeneratedArgs) -> GeneratedArgs:
        """
        Independent copy of an argument tuple.

        Lists and deques are copied; ints, floats, bools and strings are
        immutable and shared.
        """
        copied = []
        for value in args:
            if isinstance(value, list):
                copied.append(list(value))
            elif isinstance(value, deque):
                copied.append(deque(value))
            else:
                copied.append(value)
        return tuple(copied)

    # --- Data Generators ---

    def _int_array(self, n: int) -> list:
        values = [self._random.randrange(ARRAY_VALUE_BOUND) for _ in range(n)]
        values.sort()
        return values

    def _float_array(self, n: int) -> list:
        return [self._random.random() for _ in range(n)]

    def _string_array(self, n: int) -> list:
        return [f"Str{i}" for i in range(n)]

    def _int_collection(self, n: int) -> deque:
        return deque(self._random.randrange(COLLECTION_VALUE_BOUND) for _ in range(n))

    def _int(self, n: int) -> int:
        return self._random.randrange(n) if n > 0 else 0

    def _float(self, n: int) -> float:
        return self._random.random()

    def _bool(self, n: int) -> bool:
        return False

    def _string(self, n: int) -> str:
        return "".join(self._random.choices(string.ascii_lowercase, k=n))


_default_generator = InputGenerator()


def generate(signature: OperationSignature, n: int) -> GeneratedArgs:
    """Generate arguments with the module-level generator."""
    return _default_generator.generate(signature, n)
