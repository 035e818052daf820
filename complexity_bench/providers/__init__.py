"""
Algorithm providers package.
Each provider implements the BaseProvider interface.
"""

from .base import (
    BaseProvider,
    AlgorithmHandle,
    Operation,
    OperationSignature,
    ParameterKind,
)
from .python_module import PythonModuleProvider

# Registry of available providers
PROVIDERS = {
    "python": PythonModuleProvider,
}


def get_provider(name: str = "python", **overrides) -> BaseProvider:
    """
    Get a provider instance by name.

    Args:
        name: Provider name (e.g., 'python')
        **overrides: Configuration values passed to the provider

    Returns:
        Provider instance

    Raises:
        ValueError: If provider is not found
    """
    provider_class = PROVIDERS.get(name.lower())
    if not provider_class:
        available = ", ".join(PROVIDERS.keys())
        raise ValueError(f"Unknown provider: {name}. Available: {available}")

    return provider_class(**overrides)


__all__ = [
    "BaseProvider",
    "AlgorithmHandle",
    "Operation",
    "OperationSignature",
    "ParameterKind",
    "PythonModuleProvider",
    "get_provider",
    "PROVIDERS",
]
