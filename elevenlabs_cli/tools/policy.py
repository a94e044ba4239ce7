"""
Policy Engine
-------------
Decides which operations a session may call.

Rules, evaluated per operation name (first match wins):
1. name in disabled_names                          → denied (explicit deny)
2. disable_destructive/read_only and destructive   → denied (category block)
3. disable_admin/read_only and admin|destructive   → denied (category block)
4. enabled_names non-empty and name not in it      → denied (allow-list miss)
5. otherwise                                       → allowed

Steps 1-3 are pure denials, so deny always wins over the allow-list.
An empty enabled_names means allow-list mode is off, not "allow nothing".
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Set, Union
import logging

from .registry import OperationCatalog, OperationCategory


class PolicyRule(str, Enum):
    """Rule responsible for a decision."""
    EXPLICIT_DENY = "explicit_deny"
    DESTRUCTIVE_BLOCKED = "destructive_blocked"
    ADMIN_BLOCKED = "admin_blocked"
    ALLOW_LIST_MISS = "allow_list_miss"
    ALLOWED = "allowed"


def parse_name_list(value: Union[None, str, Iterable[str]]) -> FrozenSet[str]:
    """Parse 'a, b,c' or an iterable of names into a set; blanks are dropped."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = value.split(",")
    return frozenset(name.strip() for name in value if name and name.strip())


@dataclass(frozen=True)
class PolicyConfig:
    """Immutable per-session policy snapshot."""
    enabled_names: FrozenSet[str] = frozenset()
    disabled_names: FrozenSet[str] = frozenset()
    disable_admin: bool = False
    disable_destructive: bool = False
    read_only: bool = False

    @classmethod
    def from_options(
        cls,
        enable_tools: Union[None, str, Iterable[str]] = None,
        disable_tools: Union[None, str, Iterable[str]] = None,
        disable_admin: bool = False,
        disable_destructive: bool = False,
        read_only: bool = False,
    ) -> "PolicyConfig":
        return cls(
            enabled_names=parse_name_list(enable_tools),
            disabled_names=parse_name_list(disable_tools),
            disable_admin=bool(disable_admin),
            disable_destructive=bool(disable_destructive),
            read_only=bool(read_only),
        )

    @property
    def allow_list_active(self) -> bool:
        return bool(self.enabled_names)

    @property
    def blocks_admin(self) -> bool:
        return self.disable_admin or self.read_only

    @property
    def blocks_destructive(self) -> bool:
        return self.disable_destructive or self.read_only

    def describe(self) -> str:
        parts = []
        if self.enabled_names:
            parts.append(f"enabled={sorted(self.enabled_names)}")
        if self.disabled_names:
            parts.append(f"disabled={sorted(self.disabled_names)}")
        for flag in ("disable_admin", "disable_destructive", "read_only"):
            if getattr(self, flag):
                parts.append(flag)
        return ", ".join(parts) or "unrestricted"


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of a policy check for one operation."""
    name: str
    allowed: bool
    rule: PolicyRule
    category: Optional[OperationCategory] = None

    @property
    def reason(self) -> str:
        category = self.category.value if self.category else "unknown"
        if self.rule == PolicyRule.EXPLICIT_DENY:
            return f"Operation '{self.name}' is explicitly disabled"
        if self.rule == PolicyRule.DESTRUCTIVE_BLOCKED:
            return f"Operation '{self.name}' is {category}; destructive operations are disabled"
        if self.rule == PolicyRule.ADMIN_BLOCKED:
            return f"Operation '{self.name}' is {category}; administrative operations are disabled"
        if self.rule == PolicyRule.ALLOW_LIST_MISS:
            return f"Operation '{self.name}' is not in the enabled tool list"
        return "Allowed"


def evaluate(name: str, category: OperationCategory, config: PolicyConfig) -> PolicyDecision:
    """Apply the rules to one (name, category) pair."""
    if name in config.disabled_names:
        rule = PolicyRule.EXPLICIT_DENY
    elif config.blocks_destructive and category == OperationCategory.DESTRUCTIVE:
        rule = PolicyRule.DESTRUCTIVE_BLOCKED
    elif config.blocks_admin and category.is_admin:
        rule = PolicyRule.ADMIN_BLOCKED
    elif config.allow_list_active and name not in config.enabled_names:
        rule = PolicyRule.ALLOW_LIST_MISS
    else:
        rule = PolicyRule.ALLOWED
    return PolicyDecision(name=name, allowed=rule == PolicyRule.ALLOWED, rule=rule, category=category)


def resolve(config: PolicyConfig, catalog: OperationCatalog) -> Set[str]:
    """The full set of callable operation names."""
    return {
        descriptor.name
        for descriptor in catalog
        if evaluate(descriptor.name, descriptor.category, config).allowed
    }


def is_allowed(name: str, config: PolicyConfig, catalog: OperationCatalog) -> bool:
    """Single-name check; equivalent to `name in resolve(config, catalog)`."""
    descriptor = catalog.lookup(name)
    if descriptor is None:
        return False
    return evaluate(name, descriptor.category, config).allowed


class PolicyEngine:
    """
    Session-bound policy gate.

    Config and catalog are immutable for the session, so the resolved set
    is computed once and reused by every dispatch.
    """

    def __init__(self, config: PolicyConfig, catalog: OperationCatalog):
        self.config = config
        self.catalog = catalog
        self._allowed = frozenset(resolve(config, catalog))
        self._logger = logging.getLogger("elevenlabs.tools.policy")

        unknown = (config.enabled_names | config.disabled_names) - set(catalog.names())
        if unknown:
            self._logger.warning(f"Policy names unknown operations: {sorted(unknown)}")

        self._logger.info(
            f"Policy resolved: {len(self._allowed)}/{len(catalog)} operations allowed "
            f"({config.describe()})"
        )

    @property
    def allowed_names(self) -> FrozenSet[str]:
        return self._allowed

    def is_allowed(self, name: str) -> bool:
        return name in self._allowed

    def check(self, name: str) -> PolicyDecision:
        """
        Decision for a known operation. Callers must look the name up in
        the catalog first; unknown names are a NotFound, not a denial.
        """
        descriptor = self.catalog.lookup(name)
        if descriptor is None:
            raise KeyError(name)
        decision = evaluate(name, descriptor.category, self.config)
        if not decision.allowed:
            self._logger.warning(f"Policy denied {name}: {decision.rule.value}")
        return decision

    def allowed_operations(self):
        """Allowed descriptors in catalog order."""
        return [d for d in self.catalog if d.name in self._allowed]
