"""
Input data generation package.
Produces sized synthetic arguments for algorithm operations.
"""

from .generator import (
    InputGenerator,
    GeneratedArgs,
    generate,
    ARRAY_VALUE_BOUND,
    COLLECTION_VALUE_BOUND,
)

__all__ = [
    "InputGenerator",
    "GeneratedArgs",
    "generate",
    "ARRAY_VALUE_BOUND",
    "COLLECTION_VALUE_BOUND",
]
