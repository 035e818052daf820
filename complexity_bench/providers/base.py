"""
Base provider interface for algorithm providers.
All providers must implement this interface.
"""

import collections
import collections.abc
import threading
import typing
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List, Optional, Sequence, Tuple


class ParameterKind(Enum):
    """Parameter kinds that the input generator knows how to produce."""
    INT_ARRAY = "int_array"
    FLOAT_ARRAY = "float_array"
    STRING_ARRAY = "string_array"
    INT_COLLECTION = "int_collection"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"

    @property
    def is_sized(self) -> bool:
        """True for kinds whose length is driven by N."""
        return self in (
            ParameterKind.INT_ARRAY,
            ParameterKind.FLOAT_ARRAY,
            ParameterKind.STRING_ARRAY,
            ParameterKind.INT_COLLECTION,
        )


_SCALAR_KINDS = {
    bool: ParameterKind.BOOL,
    int: ParameterKind.INT,
    float: ParameterKind.FLOAT,
    str: ParameterKind.STRING,
}

_ARRAY_KINDS = {
    int: ParameterKind.INT_ARRAY,
    float: ParameterKind.FLOAT_ARRAY,
    str: ParameterKind.STRING_ARRAY,
}

# Generic origins accepted as an "ordered integer collection"
_COLLECTION_ORIGINS = (
    collections.deque,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Collection,
    collections.abc.Iterable,
)


def kind_for_annotation(annotation: Any) -> Optional[ParameterKind]:
    """
    Map a type annotation to a ParameterKind.

    Args:
        annotation: Resolved annotation object (not a string)

    Returns:
        The matching kind, or None when the annotation is not supported
    """
    if isinstance(annotation, type) and annotation in _SCALAR_KINDS:
        return _SCALAR_KINDS[annotation]

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if len(args) != 1:
        return None

    if origin is list:
        return _ARRAY_KINDS.get(args[0])
    if origin in _COLLECTION_ORIGINS and args[0] is int:
        return ParameterKind.INT_COLLECTION
    return None


@dataclass(frozen=True)
class OperationSignature:
    """Ordered parameter kinds of one operation."""
    kinds: Tuple[ParameterKind, ...] = ()

    def __len__(self) -> int:
        return len(self.kinds)

    def __iter__(self):
        return iter(self.kinds)

    def describe(self) -> str:
        return "(" + ", ".join(k.value for k in self.kinds) + ")"


def _annotation_name(annotation: Any) -> str:
    if annotation is None or annotation is type(None):
        return "None"
    if isinstance(annotation, type) and not typing.get_args(annotation):
        return annotation.__name__
    return str(annotation).replace("typing.", "")


@dataclass(frozen=True)
class OperationParameter:
    """A single declared parameter of an operation."""
    name: str
    annotation: Any = None
    kind: Optional[ParameterKind] = None

    def describe(self) -> str:
        if self.annotation is None:
            return self.name
        return f"{self.name}: {_annotation_name(self.annotation)}"


@dataclass(frozen=True)
class Operation:
    """
    A callable operation declared on a loaded algorithm unit.

    The signature is None when at least one parameter has no
    supported kind; such operations are listed but cannot be selected.
    """
    name: str
    parameters: Tuple[OperationParameter, ...] = ()
    return_type: Any = None
    signature: Optional[OperationSignature] = None

    @property
    def supported(self) -> bool:
        return self.signature is not None

    @property
    def unsupported_parameters(self) -> List[str]:
        return [p.name for p in self.parameters if p.kind is None]

    @property
    def display_name(self) -> str:
        """Readable form, e.g. ``search(arr: list[int], target: int) -> int``."""
        params = ", ".join(p.describe() for p in self.parameters)
        text = f"{self.name}({params})"
        if self.return_type is not None:
            text += f" -> {_annotation_name(self.return_type)}"
        return text

    def require_signature(self) -> OperationSignature:
        """
        Return the signature or fail the selection.

        Raises:
            UnsupportedParameterError: If any parameter kind is unsupported
        """
        if self.signature is None:
            raise UnsupportedParameterError(
                f"Operation '{self.name}' has unsupported parameters: "
                f"{', '.join(self.unsupported_parameters)}",
                parameters=self.unsupported_parameters,
            )
        return self.signature


@dataclass(eq=False)
class AlgorithmHandle:
    """
    One loaded algorithm unit and its operations.

    A handle is owned by a single caller. Measurements against it are
    serialized through ``lock``. After a timeout the handle is invalidated
    and must be replaced with ``provider.reload(handle)``.
    """
    locator: str
    unit: type
    instance: Any
    module: ModuleType
    module_name: str
    search_root: Path
    operations: Tuple[Operation, ...] = ()
    # Package modules the unit's code imports from at call time
    namespace: Dict[str, ModuleType] = field(default_factory=dict, repr=False)
    lock: Any = field(default_factory=threading.Lock, repr=False)
    invalid_reason: Optional[str] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.unit.__name__

    @property
    def usable(self) -> bool:
        return self.invalid_reason is None

    def invalidate(self, reason: str) -> None:
        self.invalid_reason = reason

    def ensure_usable(self) -> None:
        if self.invalid_reason is not None:
            raise StaleHandleError(
                f"Handle for {self.name} is no longer usable ({self.invalid_reason}); "
                f"reload it before measuring again"
            )

    def operation(self, name: str) -> Operation:
        for op in self.operations:
            if op.name == name:
                return op
        available = ", ".join(op.name for op in self.operations) or "none"
        raise OperationNotFoundError(
            f"Unknown operation: {name}. Available: {available}"
        )

    def __repr__(self) -> str:
        return f"<AlgorithmHandle(unit={self.name}, module={self.module_name})>"


class BaseProvider(ABC):
    """
    Abstract base class for algorithm providers.

    A provider turns a locator into an AlgorithmHandle, enumerates the
    handle's operations and invokes them. Concrete providers decide what a
    locator means (a source file, a registry key, ...).

    Example:
        class MyProvider(BaseProvider):
            name = "mine"

            def load(self, locator):
                ...
    """

    # Provider identification
    name: str = "base"
    display_name: str = "Base Provider"

    def __init__(self, **overrides: Any):
        """
        Initialize provider with configuration.

        Args:
            **overrides: Values that replace entries of the loaded configuration
        """
        self.config = self._load_config()
        self.config.update(overrides)
        self._validate_config()

    @abstractmethod
    def _load_config(self) -> Dict[str, Any]:
        """
        Load provider-specific configuration.

        Returns:
            Dictionary containing provider configuration
        """
        pass

    def _validate_config(self) -> None:
        """
        Validate that required configuration is present.
        Raises ConfigurationError if validation fails.
        """
        pass

    @abstractmethod
    def load(self, locator: str) -> AlgorithmHandle:
        """
        Resolve a locator into a loaded, instantiated algorithm unit.

        Args:
            locator: Provider-specific identifier of the unit

        Returns:
            AlgorithmHandle for the unit

        Raises:
            LoadError: If the unit cannot be resolved or constructed
            AlgorithmFault: If the unit's own code fails while loading
        """
        pass

    @abstractmethod
    def invoke(self, handle: AlgorithmHandle, operation: Operation, args: Sequence[Any]) -> Any:
        """
        Execute an operation against the handle's instance.

        Raises:
            AlgorithmFault: Wrapping anything the loaded code raised
        """
        pass

    def activate(self, handle: AlgorithmHandle) -> None:
        """
        Make the handle's own code resolvable before it runs.

        Called once per measurement, outside the timed interval. Providers
        whose units need no interpreter state keep this no-op.
        """
        pass

    def list_operations(self, handle: AlgorithmHandle) -> List[Operation]:
        """List operations declared directly on the unit, in declaration order."""
        return list(handle.operations)

    def select_operation(self, handle: AlgorithmHandle, name: str) -> Operation:
        """
        Pick an operation by name and check its signature is supported.

        Raises:
            OperationNotFoundError: If the unit has no such operation
            UnsupportedParameterError: If its parameters cannot be generated
        """
        operation = handle.operation(name)
        operation.require_signature()
        return operation

    def reload(self, handle: AlgorithmHandle) -> AlgorithmHandle:
        """Load a fresh handle from the same locator."""
        return self.load(handle.locator)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"


class BenchmarkError(Exception):
    """Base exception for benchmark errors."""
    pass


class ConfigurationError(BenchmarkError):
    """Raised when provider configuration is invalid."""
    pass


class LoadError(BenchmarkError):
    """Raised when an algorithm unit cannot be loaded."""

    def __init__(self, message: str, locator: Optional[str] = None):
        super().__init__(message)
        self.locator = locator


class UnitNotFoundError(LoadError):
    """Raised when the locator does not resolve to exactly one unit."""
    pass


class AmbiguousNamespaceError(LoadError):
    """Raised when no candidate namespace within the walk bound resolves."""
    pass


class NoDefaultConstructorError(LoadError):
    """Raised when the unit cannot be constructed without arguments."""
    pass


class OperationNotFoundError(BenchmarkError):
    """Raised when a unit has no operation with the requested name."""
    pass


class UnsupportedParameterError(BenchmarkError):
    """Raised when an operation's parameters cannot be generated."""

    def __init__(self, message: str, parameters: Optional[List[str]] = None):
        super().__init__(message)
        self.parameters = parameters or []


class AlgorithmFault(BenchmarkError):
    """Raised when loaded code raises; the original is kept as ``cause``."""

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(f"{operation} raised {type(cause).__name__}: {cause}")
        self.operation = operation
        self.cause = cause


class TimeoutFault(BenchmarkError):
    """Raised when a single invocation exceeds the cancellation bound."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(f"{operation} did not finish within {timeout:.1f}s and was cancelled")
        self.operation = operation
        self.timeout = timeout


class ResourceError(BenchmarkError):
    """Raised when the measurement subsystem (e.g. memory query) is unavailable."""
    pass


class StaleHandleError(BenchmarkError):
    """Raised when measuring a handle that a timeout has invalidated."""
    pass


class InvocationCancelled(BaseException):
    """
    Injected into a stuck worker thread to unwind it.

    Derives from BaseException so ``except Exception`` blocks in loaded
    code do not swallow it.
    """
    pass


__all__ = [
    "ParameterKind",
    "OperationSignature",
    "OperationParameter",
    "Operation",
    "AlgorithmHandle",
    "BaseProvider",
    "BenchmarkError",
    "ConfigurationError",
    "LoadError",
    "UnitNotFoundError",
    "AmbiguousNamespaceError",
    "NoDefaultConstructorError",
    "OperationNotFoundError",
    "UnsupportedParameterError",
    "AlgorithmFault",
    "TimeoutFault",
    "ResourceError",
    "StaleHandleError",
    "InvocationCancelled",
    "kind_for_annotation",
]
