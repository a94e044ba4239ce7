# Tools module - Operation catalog, policy gate and dispatch
# Each operation: name, JSON schema, category, one remote call
# Nothing reaches the API without passing the policy gate

from .registry import (
    OperationCatalog, OperationDescriptor, OperationCategory, CatalogBuilder,
    ToolSchema, ToolParameter, ParameterType, ArgumentProblem,
)
from .policy import PolicyConfig, PolicyEngine, PolicyDecision, PolicyRule, resolve, is_allowed
from .catalog import build_default_catalog, register_default_operations
from .dispatcher import Dispatcher, DispatchResult, Invocation

__all__ = [
    "OperationCatalog",
    "OperationDescriptor",
    "OperationCategory",
    "CatalogBuilder",
    "ToolSchema",
    "ToolParameter",
    "ParameterType",
    "ArgumentProblem",
    "PolicyConfig",
    "PolicyEngine",
    "PolicyDecision",
    "PolicyRule",
    "resolve",
    "is_allowed",
    "build_default_catalog",
    "register_default_operations",
    "Dispatcher",
    "DispatchResult",
    "Invocation",
]
