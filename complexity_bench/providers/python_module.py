"""
Python source-file algorithm provider.

Loads a class from a ``.py`` file. The package a file belongs to is not
known from its path alone: a module using relative imports (or absolute
imports of its own package) only imports under its declared dotted name.
The provider first imports the file as a top-level module and, if the
import system rejects that identity, walks up one directory at a time,
prepending each directory name to the module name, until the import
succeeds or the depth bound is reached.
"""

import importlib
import importlib.util
import inspect
import logging
import os
import re
import sys
import threading
import typing
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import (
    BaseProvider,
    AlgorithmHandle,
    Operation,
    OperationParameter,
    OperationSignature,
    AlgorithmFault,
    AmbiguousNamespaceError,
    ConfigurationError,
    NoDefaultConstructorError,
    UnitNotFoundError,
    kind_for_annotation,
)
from ..config import Config

logger = logging.getLogger(__name__)

# sys.path and sys.modules are process-wide; trial imports must not interleave.
_IMPORT_LOCK = threading.RLock()

_VARIADIC = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


def parse_locator(locator: str) -> Tuple[Path, Optional[str]]:
    """
    Split a locator into file path and optional class name.

    ``algos/sort.py:BubbleSort`` selects a class explicitly; a bare path lets
    the provider pick the unit.
    """
    path_part, sep, class_name = locator.rpartition(":")
    if sep and path_part and class_name.isidentifier():
        return Path(path_part), class_name
    return Path(locator), None


def namespace_candidates(path: Path, max_depth: int) -> List[Tuple[Path, str]]:
    """
    Candidate (search root, module name) pairs, innermost first.

    The first candidate treats the file as a top-level module. Each further
    candidate moves the search root one directory up and prepends that
    directory's name, for at most ``max_depth`` levels.
    """
    root = path.parent
    package: List[str] = []
    candidates = [(root, path.stem)]

    for _ in range(max_depth):
        if root.parent == root:
            break
        package.insert(0, root.name)
        root = root.parent
        candidates.append((root, ".".join(package + [path.stem])))

    return candidates


def _module_locations(module: Any) -> List[str]:
    locations = []
    file = getattr(module, "__file__", None)
    if file:
        locations.append(file)
    locations.extend(getattr(module, "__path__", None) or [])
    return locations


def _dir_prefix(path: str) -> str:
    return os.path.join(os.path.abspath(path), "")


def _is_under(module: Any, root_prefix: str, nested: List[str]) -> bool:
    """
    True when the module was loaded from the search root itself.

    Locations below a deeper search path entry (``nested``, e.g. a virtualenv
    inside the root) belong to that entry, not to the root.
    """
    for location in _module_locations(module):
        location = os.path.abspath(location)
        if location.startswith(root_prefix) and not any(location.startswith(p) for p in nested):
            return True
    return False


def _in_package(name: str, top: str) -> bool:
    return name == top or name.startswith(top + ".")


def _pop_package(top: str) -> Dict[str, ModuleType]:
    return {name: sys.modules.pop(name) for name in list(sys.modules) if _in_package(name, top)}


def _name_is_free(top: str, root_prefix: str) -> bool:
    """True when ``top`` means nothing on sys.path except what lives under the root."""
    try:
        spec = importlib.util.find_spec(top)
    except (ImportError, ValueError):
        return True
    if spec is None:
        return True

    locations = list(spec.submodule_search_locations or [])
    if spec.has_location and spec.origin:
        locations.append(spec.origin)
    if not locations:
        # Built-in or frozen
        return False
    return all(os.path.abspath(location).startswith(root_prefix) for location in locations)


# Top-level package name -> namespace of the handle currently registered under it
_REGISTERED: Dict[str, Dict[str, ModuleType]] = {}


def _register(top: str, namespace: Dict[str, ModuleType]) -> None:
    """
    Put a unit's package modules into sys.modules under ``top``.

    Submodules the previous owner imported lazily are saved back into its
    namespace so they come back with it. A name held by anything that was
    not registered here is left alone.
    """
    with _IMPORT_LOCK:
        owner = _REGISTERED.get(top)
        present = sys.modules.get(top)
        if present is not None and (owner is None or present is not owner.get(top)):
            logger.debug(f"'{top}' is taken by {present!r}; not registering")
            return
        if owner is namespace and present is not None:
            return

        if owner is not None:
            owner.update(_pop_package(top))
        sys.modules.update(namespace)
        _REGISTERED[top] = namespace


def _import_isolated(root: Path, module_name: str, expected: Path) -> Tuple[ModuleType, Dict[str, ModuleType]]:
    """
    Import ``module_name`` with ``root`` as the first search path entry.

    sys.path is restored afterwards and every module that came from ``root``
    is dropped from sys.modules again, so units with equal names in other
    directories never see each other. Modules already registered under the
    same top-level name are parked for the duration and put back.

    A module that resolved inside a package keeps that package registered
    (see ``_register``) so its methods can import from it at call time. The
    package modules are returned alongside the module; the mapping is empty
    for top-level modules and for package names that already mean something
    else in this interpreter.

    Raises:
        ImportError: If the import fails or resolves to a file other than ``expected``
    """
    top = module_name.split(".")[0]

    with _IMPORT_LOCK:
        owner = _REGISTERED.get(top)
        shadowed = _pop_package(top)
        before = set(sys.modules)
        saved_path = list(sys.path)
        root_prefix = _dir_prefix(str(root))
        nested = [
            prefix for prefix in (_dir_prefix(entry) for entry in saved_path if entry)
            if prefix.startswith(root_prefix) and prefix != root_prefix
        ]
        claim = (
            "." in module_name
            and (not shadowed or (owner is not None and shadowed.get(top) is owner.get(top)))
            and _name_is_free(top, root_prefix)
        )

        namespace: Dict[str, ModuleType] = {}
        sys.path.insert(0, str(root))
        importlib.invalidate_caches()
        try:
            module = importlib.import_module(module_name)

            origin = getattr(module, "__file__", None)
            if origin is None or Path(origin).resolve() != expected:
                raise ImportError(f"'{module_name}' resolved to {origin}, not {expected}")

            if claim:
                namespace = {
                    name: sys.modules[name]
                    for name in set(sys.modules) - before
                    if _in_package(name, top)
                }
            return module, namespace
        finally:
            sys.path[:] = saved_path
            for name in set(sys.modules) - before:
                if name in namespace:
                    continue
                loaded = sys.modules.get(name)
                if _in_package(name, top) or _is_under(loaded, root_prefix, nested):
                    del sys.modules[name]

            if namespace:
                if owner is not None:
                    owner.update(shadowed)
                _REGISTERED[top] = namespace
            else:
                sys.modules.update(shadowed)


def _normalize(name: str) -> str:
    return re.sub(r"[^0-9a-z]", "", name.lower())


def _describe_operation(name: str, func: Any, bound: Any) -> Operation:
    try:
        hints = typing.get_type_hints(func)
    except Exception as e:
        # Unresolvable forward references leave the parameters unannotated
        logger.debug(f"Could not resolve annotations of {name}: {e}")
        hints = {}

    try:
        parameters = inspect.signature(bound).parameters.values()
    except (TypeError, ValueError):
        return Operation(name=name)

    described = []
    for param in parameters:
        if param.kind in _VARIADIC:
            continue
        if param.kind == param.KEYWORD_ONLY and param.default is not param.empty:
            continue

        annotation = hints.get(param.name)
        kind = kind_for_annotation(annotation) if annotation is not None else None
        if param.kind == param.KEYWORD_ONLY:
            # Generated arguments are passed positionally
            kind = None
        described.append(OperationParameter(name=param.name, annotation=annotation, kind=kind))

    signature = None
    if all(p.kind is not None for p in described):
        signature = OperationSignature(tuple(p.kind for p in described))

    return Operation(
        name=name,
        parameters=tuple(described),
        return_type=hints.get("return"),
        signature=signature,
    )


class PythonModuleProvider(BaseProvider):
    """
    Loads algorithm classes from Python source files.

    Locator format:
        - ``path/to/file.py``: the class named like the file, or the only class
        - ``path/to/file.py:ClassName``: an explicit class

    Configuration (via environment variables):
        - MAX_NAMESPACE_DEPTH: directories walked up during namespace inference

    Example:
        provider = PythonModuleProvider()
        handle = provider.load("algos/search/binary_search.py")
        op = provider.select_operation(handle, "search")
    """

    name = "python"
    display_name = "Python source file"

    def _load_config(self) -> Dict[str, Any]:
        """Load provider configuration from environment."""
        return Config.get_python_config()

    def _validate_config(self) -> None:
        depth = self.config.get("max_namespace_depth")
        if not isinstance(depth, int) or depth < 0:
            raise ConfigurationError(
                f"max_namespace_depth must be a non-negative integer, got {depth!r}"
            )

    @property
    def max_depth(self) -> int:
        return self.config["max_namespace_depth"]

    def load(self, locator: str) -> AlgorithmHandle:
        """
        Load and instantiate the algorithm class a locator points to.

        The module body and the constructor run on the calling thread with
        no deadline; a unit that blocks while being imported (a module-level
        ``input()`` on an open terminal) blocks the load with it.

        Args:
            locator: ``path.py`` or ``path.py:ClassName``

        Returns:
            AlgorithmHandle with the instance and its declared operations

        Raises:
            UnitNotFoundError: Missing file, non-Python file, or no unique class
            AmbiguousNamespaceError: No namespace within the depth bound imports
            NoDefaultConstructorError: The class needs constructor arguments
            AlgorithmFault: The module body or the constructor raised
        """
        path, class_name = parse_locator(locator)
        path = path.expanduser()

        if not path.is_file():
            raise UnitNotFoundError(f"Algorithm file not found: {path}", locator)
        if path.suffix != ".py":
            raise UnitNotFoundError(f"Not a Python source file: {path}", locator)

        path = path.resolve()
        module, module_name, root, namespace = self._resolve_module(path, locator)
        unit = self._select_unit(module, path, class_name, locator)
        instance = self._instantiate(unit, locator)
        operations = self._declared_operations(unit, instance)

        logger.info(
            f"Loaded {unit.__name__} from {path} as '{module_name}' "
            f"({len(operations)} operations)"
        )

        return AlgorithmHandle(
            locator=locator,
            unit=unit,
            instance=instance,
            module=module,
            module_name=module_name,
            search_root=root,
            operations=operations,
            namespace=namespace,
        )

    def activate(self, handle: AlgorithmHandle) -> None:
        """Register the handle's package again if a later load took its name."""
        if handle.namespace:
            _register(handle.module_name.split(".")[0], handle.namespace)

    def _resolve_module(
        self, path: Path, locator: str
    ) -> Tuple[ModuleType, str, Path, Dict[str, ModuleType]]:
        """Try each namespace candidate in order; the first import that works wins."""
        last_error: Optional[ImportError] = None

        for depth, (root, module_name) in enumerate(namespace_candidates(path, self.max_depth)):
            try:
                module, namespace = _import_isolated(root, module_name, path)
            except ImportError as e:
                logger.debug(f"Namespace trial {depth}: '{module_name}' from {root} failed: {e}")
                last_error = e
                continue
            except (Exception, SystemExit) as e:
                raise AlgorithmFault(f"import {module_name}", e) from e

            logger.debug(
                f"Namespace trial {depth}: '{module_name}' from {root} succeeded "
                f"({len(namespace)} package modules registered)"
            )
            return module, module_name, root, namespace

        raise AmbiguousNamespaceError(
            f"Could not determine the package of {path} within {self.max_depth} "
            f"directory levels. Last import error: {last_error}",
            locator,
        ) from last_error

    def _select_unit(
        self,
        module: ModuleType,
        path: Path,
        class_name: Optional[str],
        locator: str,
    ) -> type:
        """Pick the algorithm class from the module."""
        if class_name:
            unit = getattr(module, class_name, None)
            if not inspect.isclass(unit):
                raise UnitNotFoundError(f"{path} has no class named {class_name}", locator)
            return unit

        defined = [
            obj for obj in vars(module).values()
            if inspect.isclass(obj) and obj.__module__ == module.__name__
        ]

        wanted = _normalize(path.stem)
        for cls in defined:
            if _normalize(cls.__name__) == wanted:
                return cls

        if len(defined) == 1:
            return defined[0]
        if not defined:
            raise UnitNotFoundError(f"No class is defined in {path}", locator)

        names = ", ".join(cls.__name__ for cls in defined)
        raise UnitNotFoundError(
            f"{path} defines several classes ({names}); use {path}:ClassName",
            locator,
        )

    def _instantiate(self, unit: type, locator: str) -> Any:
        if inspect.isabstract(unit):
            raise NoDefaultConstructorError(f"{unit.__name__} is abstract and cannot be constructed", locator)

        try:
            signature = inspect.signature(unit)
        except (TypeError, ValueError):
            signature = None

        if signature is not None:
            required = [
                p.name for p in signature.parameters.values()
                if p.default is p.empty and p.kind not in _VARIADIC
            ]
            if required:
                raise NoDefaultConstructorError(
                    f"{unit.__name__} must be constructible without arguments "
                    f"(required: {', '.join(required)})",
                    locator,
                )

        try:
            return unit()
        except (Exception, SystemExit) as e:
            raise AlgorithmFault(f"{unit.__name__}()", e) from e

    def _declared_operations(self, unit: type, instance: Any) -> Tuple[Operation, ...]:
        """
        Functions declared directly on the class body, in declaration order.

        Inherited members, dunder methods and name-mangled private methods
        (``_Class__name``) are skipped.
        """
        mangled_prefix = f"_{unit.__name__.lstrip('_')}__"
        operations = []

        for name, member in vars(unit).items():
            if name.startswith("__") and name.endswith("__"):
                continue
            if name.startswith(mangled_prefix):
                continue

            func = member.__func__ if isinstance(member, (staticmethod, classmethod)) else member
            if not inspect.isfunction(func):
                continue

            operations.append(_describe_operation(name, func, getattr(instance, name)))

        return tuple(operations)

    def invoke(self, handle: AlgorithmHandle, operation: Operation, args: Sequence[Any]) -> Any:
        """
        Call an operation on the handle's instance.

        Args:
            handle: Loaded algorithm
            operation: Operation to call
            args: Positional arguments

        Returns:
            Whatever the operation returns

        Raises:
            AlgorithmFault: If the operation raises (SystemExit included)
        """
        try:
            method = getattr(handle.instance, operation.name)
            return method(*args)
        except (Exception, SystemExit) as e:
            raise AlgorithmFault(operation.name, e) from e
