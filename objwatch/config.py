"""
WatchConfig: the per-session hook and behavior set.

Two input shapes normalize into the same WatchConfig:

1. Rich shape (flat options):
     {"log": True, "onBefore": fn, "interceptGet": fn, "modifyDeleteResult": fn, ...}
   Both snake_case and camelCase option names are accepted.

2. Reduced shape (per-kind profiles, backward compatible):
     {"get": {"log": True, "debugger": False, "onModResult": fn},
      "ownKeys": None}
   A kind mapped to None is not watched at all (strict pass-through).

The engine only ever reads a WatchConfig. Per-kind profile values win over
flat options, flat options win over engine-wide defaults.

Environment:
- OBJWATCH_LOG_LEVEL: default severity threshold (debug|info|warning|error)
"""

import logging
import os
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError
from .models import OperationKind

logger = logging.getLogger(__name__)

ENV_LOG_LEVEL = "OBJWATCH_LOG_LEVEL"

Hook = Callable[..., Any]
Toggle = Union[bool, Callable[..., Any]]


class LogLevel(str, Enum):
    """Severity threshold for per-session log lines."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def parse(cls, value: Any) -> "LogLevel":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text == "warn":
            text = "warning"
        return cls(text)

    def as_logging(self) -> int:
        return _LOGGING_LEVELS[self]


_LOGGING_LEVELS: Dict[LogLevel, int] = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def _default_log_level() -> LogLevel:
    override = os.environ.get(ENV_LOG_LEVEL)
    if override:
        try:
            return LogLevel.parse(override)
        except ValueError:
            logger.warning(f"Ignoring invalid {ENV_LOG_LEVEL}={override!r}, using 'info'")
    return LogLevel.INFO


# Kind keys as spelled by the reduced configuration shape
_JS_KIND_NAMES: Dict[str, OperationKind] = {
    "get": OperationKind.GET,
    "set": OperationKind.SET,
    "has": OperationKind.HAS,
    "deleteProperty": OperationKind.DELETE_PROPERTY,
    "defineProperty": OperationKind.DEFINE_PROPERTY,
    "getOwnPropertyDescriptor": OperationKind.GET_OWN_PROPERTY_DESCRIPTOR,
    "ownKeys": OperationKind.OWN_KEYS,
    "getPrototypeOf": OperationKind.GET_PROTOTYPE_OF,
    "setPrototypeOf": OperationKind.SET_PROTOTYPE_OF,
    "isExtensible": OperationKind.IS_EXTENSIBLE,
    "preventExtensions": OperationKind.PREVENT_EXTENSIONS,
    "apply": OperationKind.APPLY,
    "construct": OperationKind.CONSTRUCT,
}


def parse_kind(key: Any) -> Optional[OperationKind]:
    """Map an OperationKind, snake_case value or JS-style kind name to a kind."""
    if isinstance(key, OperationKind):
        return key
    if not isinstance(key, str):
        return None
    if key in _JS_KIND_NAMES:
        return _JS_KIND_NAMES[key]
    try:
        return OperationKind(key)
    except ValueError:
        return None


class KindProfile(BaseModel):
    """
    Per-kind overrides.

    Unset (None) fields fall back to the flat rich options and then to the
    engine-wide defaults.
    """

    model_config = ConfigDict(
        extra="forbid",
        arbitrary_types_allowed=True,
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    log: Optional[Toggle] = None
    debug: Optional[Toggle] = Field(default=None, validation_alias=AliasChoices("debug", "debugger"))
    on_before: Optional[Hook] = None
    on_after: Optional[Hook] = None
    intercept: Optional[Hook] = None
    modify_result: Optional[Hook] = Field(
        default=None,
        validation_alias=AliasChoices("modify_result", "modifyResult", "onModResult", "on_mod_result"),
    )


# (kind, profile slot) -> flat WatchConfig option
_FLAT_OPTIONS: Dict[Tuple[OperationKind, str], str] = {
    (OperationKind.GET, "on_before"): "on_get",
    (OperationKind.SET, "on_before"): "on_set",
    (OperationKind.HAS, "on_before"): "on_has",
    (OperationKind.DELETE_PROPERTY, "on_before"): "on_delete",
    (OperationKind.DEFINE_PROPERTY, "on_before"): "on_define",
    (OperationKind.APPLY, "on_before"): "on_call",
    (OperationKind.CONSTRUCT, "on_before"): "on_construct",
    (OperationKind.GET, "intercept"): "intercept_get",
    (OperationKind.SET, "intercept"): "intercept_set",
    (OperationKind.APPLY, "intercept"): "intercept_call",
    (OperationKind.CONSTRUCT, "intercept"): "intercept_construct",
    (OperationKind.GET, "modify_result"): "modify_get_result",
    (OperationKind.SET, "modify_result"): "modify_set_result",
    (OperationKind.HAS, "modify_result"): "modify_has_result",
    (OperationKind.DELETE_PROPERTY, "modify_result"): "modify_delete_result",
    (OperationKind.DEFINE_PROPERTY, "modify_result"): "modify_define_result",
    (OperationKind.GET_OWN_PROPERTY_DESCRIPTOR, "modify_result"): "modify_descriptor_result",
    (OperationKind.OWN_KEYS, "modify_result"): "modify_own_keys_result",
    (OperationKind.GET_PROTOTYPE_OF, "modify_result"): "modify_prototype_result",
    (OperationKind.APPLY, "modify_result"): "modify_result",
}


class WatchConfig(BaseModel):
    """
    Complete configuration for one watch session.

    Mutable on purpose: edits made through WatchManager.get_config() apply
    from the next intercepted operation.
    """

    model_config = ConfigDict(
        extra="forbid",
        arbitrary_types_allowed=True,
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    # ==================== LOGGING & DEBUG ====================
    log: Toggle = True
    log_level: LogLevel = Field(default_factory=_default_log_level)
    debug: Toggle = False

    # ==================== ENGINE-WIDE HOOKS ====================
    on_before: Optional[Hook] = None
    on_after: Optional[Hook] = None
    on_error: Optional[Hook] = None

    # ==================== PER-KIND BEFORE HOOKS ====================
    on_get: Optional[Hook] = None
    on_set: Optional[Hook] = None
    on_call: Optional[Hook] = None
    on_construct: Optional[Hook] = None
    on_define: Optional[Hook] = None
    on_delete: Optional[Hook] = None
    on_has: Optional[Hook] = None

    # ==================== FULL OVERRIDES ====================
    intercept_get: Optional[Hook] = None
    intercept_set: Optional[Hook] = None
    intercept_call: Optional[Hook] = None
    intercept_construct: Optional[Hook] = None

    # ==================== ARGUMENT & RESULT MODIFIERS ====================
    modify_args: Optional[Hook] = None
    modify_result: Optional[Hook] = None
    modify_get_result: Optional[Hook] = None
    modify_set_result: Optional[Hook] = None
    modify_has_result: Optional[Hook] = None
    modify_own_keys_result: Optional[Hook] = None
    modify_descriptor_result: Optional[Hook] = None
    modify_prototype_result: Optional[Hook] = None
    modify_delete_result: Optional[Hook] = None
    modify_define_result: Optional[Hook] = None

    # ==================== CONTROL ====================
    replace_function: Optional[Hook] = None
    should_intercept: Optional[Hook] = None
    enable_timing: bool = False
    enable_stack_trace: bool = False

    # ==================== PER-KIND PROFILES ====================
    # Absent kind: defaults. Kind mapped to None: not watched.
    kinds: Dict[OperationKind, Optional[KindProfile]] = Field(default_factory=dict)

    @field_validator("log_level", mode="before")
    @classmethod
    def _parse_log_level(cls, value: Any) -> LogLevel:
        return LogLevel.parse(value)

    @field_validator("kinds", mode="before")
    @classmethod
    def _parse_kind_keys(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        parsed = {}
        for key, profile in value.items():
            kind = parse_kind(key)
            if kind is None:
                raise ValueError(f"Unknown operation kind: {key!r}")
            parsed[kind] = profile
        return parsed

    def is_enabled(self, kind: OperationKind) -> bool:
        """A kind explicitly mapped to None is not watched."""
        return not (kind in self.kinds and self.kinds[kind] is None)

    def resolve(self, kind: OperationKind, slot: str) -> Optional[Hook]:
        """Resolve a hook slot: per-kind profile, then the flat rich option."""
        profile = self.kinds.get(kind)
        if profile is not None:
            value = getattr(profile, slot)
            if value is not None:
                return value
        option = _FLAT_OPTIONS.get((kind, slot))
        return getattr(self, option) if option else None

    def resolve_toggle(self, kind: OperationKind, slot: str) -> Toggle:
        """Resolve log/debug: per-kind profile, then the engine-wide value."""
        profile = self.kinds.get(kind)
        if profile is not None:
            value = getattr(profile, slot)
            if value is not None:
                return value
        return getattr(self, slot)

    def profile(self, kind: OperationKind) -> Optional[KindProfile]:
        """
        Live profile for a kind, created on demand.

        Returns None for kinds that are disabled.
        """
        if not self.is_enabled(kind):
            return None
        if kind not in self.kinds:
            self.kinds[kind] = KindProfile()
        return self.kinds[kind]


def is_reduced_shape(options: Mapping) -> bool:
    """True when every key of a non-empty mapping names an operation kind."""
    return bool(options) and all(parse_kind(key) is not None for key in options)


def normalize_config(options: Any = None) -> WatchConfig:
    """
    Normalize any accepted configuration shape into a WatchConfig.

    Args:
        options: None, WatchConfig, bool (debug toggle), rich mapping, or
            reduced per-kind mapping

    Returns:
        The WatchConfig the engine will read

    Raises:
        ConfigurationError: If the options cannot be validated
    """
    if options is None:
        return WatchConfig()
    if isinstance(options, WatchConfig):
        return options
    if isinstance(options, bool):
        return WatchConfig(debug=options)
    if not isinstance(options, Mapping):
        raise ConfigurationError(f"expected a mapping, got {type(options).__name__}")

    try:
        if is_reduced_shape(options):
            return WatchConfig(kinds=dict(options))
        return WatchConfig.model_validate(dict(options))
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
