"""
Operation Registry
------------------
Schema-described operation definitions and the immutable catalog.

The catalog is built once per session by CatalogBuilder and never
mutated afterwards; every dispatch reads it concurrently.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple
import logging

from elevenlabs_cli.core.errors import CatalogError, DuplicateOperationError


class OperationCategory(str, Enum):
    """Risk classification. DESTRUCTIVE is treated as a subset of ADMIN."""
    SAFE = "safe"                # Reads and pure generation
    ADMIN = "admin"              # Creates or modifies remote resources
    DESTRUCTIVE = "destructive"  # Deletes or revokes remote resources

    @property
    def is_admin(self) -> bool:
        return self in (OperationCategory.ADMIN, OperationCategory.DESTRUCTIVE)


class ParameterType(str, Enum):
    """Supported parameter types."""
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


_TYPE_CHECKS: Dict[ParameterType, Callable[[Any], bool]] = {
    ParameterType.STRING: lambda v: isinstance(v, str),
    # bool is an int subclass; JSON true is not a valid integer
    ParameterType.INTEGER: lambda v: isinstance(v, int) and not isinstance(v, bool),
    ParameterType.NUMBER: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    ParameterType.BOOLEAN: lambda v: isinstance(v, bool),
    ParameterType.ARRAY: lambda v: isinstance(v, list),
    ParameterType.OBJECT: lambda v: isinstance(v, dict),
}


@dataclass(frozen=True)
class ToolParameter:
    """Definition of an operation parameter."""
    name: str
    type: ParameterType
    description: str
    required: bool = True
    default: Optional[Any] = None
    enum: Optional[Tuple[Any, ...]] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    items: Optional[ParameterType] = None  # Element type for arrays
    local_file: bool = False  # Path to an existing local file to upload

    def to_json_schema(self) -> Dict:
        schema: Dict[str, Any] = {
            "type": self.type.value,
            "description": self.description
        }
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.min_value is not None:
            schema["minimum"] = self.min_value
        if self.max_value is not None:
            schema["maximum"] = self.max_value
        if self.default is not None:
            schema["default"] = self.default
        if self.items is not None:
            schema["items"] = {"type": self.items.value}
        return schema

    def expected_shape(self) -> str:
        if self.enum:
            return f"one of {list(self.enum)}"
        if self.items is not None:
            return f"{self.type.value} of {self.items.value}"
        return self.type.value


@dataclass(frozen=True)
class ArgumentProblem:
    """A schema violation, naming the offending parameter."""
    parameter: str
    message: str


@dataclass(frozen=True)
class ToolSchema:
    """Ordered parameter list for an operation."""
    parameters: Tuple[ToolParameter, ...] = ()

    def to_json_schema(self) -> Dict:
        properties = {}
        required = []
        for param in self.parameters:
            properties[param.name] = param.to_json_schema()
            if param.required:
                required.append(param.name)
        return {
            "type": "object",
            "properties": properties,
            "required": required,
            "additionalProperties": False
        }

    def validate(self, args: Mapping[str, Any]) -> Optional[ArgumentProblem]:
        """
        Check required presence, types and constraints.
        Returns the first problem found, or None.
        """
        known = {p.name for p in self.parameters}
        for arg_name in args:
            if arg_name not in known:
                return ArgumentProblem(arg_name, f"Unknown parameter: {arg_name}")

        for param in self.parameters:
            if param.name not in args or args[param.name] is None:
                if param.required:
                    return ArgumentProblem(
                        param.name,
                        f"Missing required parameter: {param.name} (expected {param.expected_shape()})"
                    )
                continue

            value = args[param.name]

            if not _TYPE_CHECKS[param.type](value):
                return ArgumentProblem(
                    param.name,
                    f"Invalid type for {param.name}: expected {param.type.value}, "
                    f"got {type(value).__name__}"
                )

            if param.items is not None:
                check = _TYPE_CHECKS[param.items]
                if not all(check(v) for v in value):
                    return ArgumentProblem(
                        param.name,
                        f"Invalid element type for {param.name}: expected {param.items.value}"
                    )

            if param.enum and value not in param.enum:
                return ArgumentProblem(
                    param.name,
                    f"Invalid value for {param.name}: must be one of {list(param.enum)}"
                )

            if param.type in (ParameterType.INTEGER, ParameterType.NUMBER):
                if param.min_value is not None and value < param.min_value:
                    return ArgumentProblem(param.name, f"{param.name} must be >= {param.min_value}")
                if param.max_value is not None and value > param.max_value:
                    return ArgumentProblem(param.name, f"{param.name} must be <= {param.max_value}")

            if param.type == ParameterType.STRING and param.required and not value.strip():
                return ArgumentProblem(param.name, f"{param.name} must not be empty")

            if param.local_file:
                paths = value if isinstance(value, list) else [value]
                missing = [p for p in paths if not Path(p).expanduser().is_file()]
                if missing:
                    return ArgumentProblem(param.name, f"File not found for {param.name}: {missing[0]}")

        return None

    def with_defaults(self, args: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a copy of args with defaults filled in for absent optionals."""
        merged = dict(args)
        for param in self.parameters:
            if merged.get(param.name) is None and param.default is not None:
                merged[param.name] = param.default
        return merged


Handler = Callable[[Any, Dict[str, Any]], Any]


@dataclass(frozen=True)
class OperationDescriptor:
    """
    One callable operation.

    `invoke(client, args)` performs exactly one remote call and raises
    RemoteError on failure. `idempotent` tells the retry layer whether a
    timeout or 5xx may be retried.
    """
    name: str
    description: str
    category: OperationCategory
    schema: ToolSchema
    invoke: Handler
    idempotent: bool = True
    group: str = "general"

    def to_listing(self) -> Dict[str, Any]:
        """Introspection entry for agent clients."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.schema.to_json_schema(),
        }

    def __repr__(self) -> str:
        return f"OperationDescriptor(name={self.name}, category={self.category.value})"


class OperationCatalog:
    """
    Immutable registry of operations, in registration order.

    Only CatalogBuilder should construct one.
    """

    def __init__(self, descriptors: List[OperationDescriptor]):
        self._ordered: Tuple[OperationDescriptor, ...] = tuple(descriptors)
        self._by_name: Mapping[str, OperationDescriptor] = MappingProxyType(
            {d.name: d for d in descriptors}
        )

    def lookup(self, name: str) -> Optional[OperationDescriptor]:
        """Get an operation by name, or None if absent."""
        return self._by_name.get(name)

    def list(self) -> Tuple[OperationDescriptor, ...]:
        """All operations in registration order."""
        return self._ordered

    def names(self) -> List[str]:
        return [d.name for d in self._ordered]

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self._ordered)


class CatalogBuilder:
    """
    Collects operation definitions and produces an OperationCatalog.

    Any duplicate or malformed definition aborts the build.
    """

    def __init__(self):
        self._descriptors: List[OperationDescriptor] = []
        self._names: set = set()
        self._logger = logging.getLogger("elevenlabs.tools.registry")

    def register(self, descriptor: OperationDescriptor) -> "CatalogBuilder":
        if descriptor.name in self._names:
            raise DuplicateOperationError(descriptor.name)
        self._check(descriptor)
        self._names.add(descriptor.name)
        self._descriptors.append(descriptor)
        self._logger.debug(f"Registered operation: {descriptor.name} ({descriptor.category.value})")
        return self

    def add(
        self,
        name: str,
        description: str,
        category: OperationCategory,
        invoke: Handler,
        parameters: Optional[List[ToolParameter]] = None,
        idempotent: bool = True,
        group: str = "general",
    ) -> "CatalogBuilder":
        """Shorthand for register(OperationDescriptor(...))."""
        return self.register(OperationDescriptor(
            name=name,
            description=description,
            category=category,
            schema=ToolSchema(parameters=tuple(parameters or ())),
            invoke=invoke,
            idempotent=idempotent,
            group=group,
        ))

    def _check(self, descriptor: OperationDescriptor) -> None:
        if not descriptor.name:
            raise CatalogError("Operation name must not be empty")
        if not callable(descriptor.invoke):
            raise CatalogError(f"Operation {descriptor.name} has no callable handler")
        if not isinstance(descriptor.category, OperationCategory):
            raise CatalogError(f"Operation {descriptor.name} has invalid category: {descriptor.category!r}")
        seen = set()
        for param in descriptor.schema.parameters:
            if param.name in seen:
                raise CatalogError(f"Operation {descriptor.name} repeats parameter {param.name}")
            seen.add(param.name)

    def build(self) -> OperationCatalog:
        catalog = OperationCatalog(self._descriptors)
        self._logger.info(f"Operation catalog built with {len(catalog)} operations")
        return catalog

    def __len__(self) -> int:
        return len(self._descriptors)
