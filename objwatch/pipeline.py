"""
Interceptor pipeline: one KindPipeline per session per operation kind.

Execution order for one invocation:
 1. Gate        - should_intercept false (or kind disabled): delegate directly,
                  nothing else runs
 2. Context     - prior value, optional stack capture
 3. Before      - engine-wide on_before, then the kind's on_before (contained)
 4. Broadcast   - observers, phase "before"
 5. Debug       - breakpoint() if the debug toggle is true; side effect only
 6. Override    - kind intercept hook; a usable value skips delegation
 7. Replace     - apply only: replace_function may supply a stand-in callable
 8. Arguments   - apply/construct: modify_args may rewrite the argument list
 9. Delegate    - the real operation on the target, timed if enabled
10. Modify      - result modifier; for set/delete_property/define_property it
                  is asked BEFORE delegation with success=True and a False
                  verdict vetoes the attempt
11. After       - kind on_after, engine-wide on_after, observers "after"
12. Log         - one line at DEBUG if the log toggle and threshold allow
13. Fault       - on_error hook, then the original exception is re-raised

Contained (logged, never raised): on_before/on_after/on_error hooks, the
gate, log/debug predicates and global observers. Transformers (intercept,
modify_*, modify_args, replace_function) are part of the operation: their
faults take step 13.

Containment and broadcast cover every kind when uniform_containment is on.
With it off, only RICH_KINDS get steps 4, 11 (observers) and 13; faults in
the other kinds propagate without the error hook.
"""

import logging
import time
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from . import reflect
from .config import LogLevel, WatchConfig
from .models import RICH_KINDS, ObserverPhase, OperationContext, OperationKind
from .observers import GlobalObserverChain

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class KindSpec:
    """Static description of how one kind flows through the pipeline."""

    kind: OperationKind
    result_field: str
    log_message: str
    delegate: Callable[[Any, OperationContext], Any]
    boolean_result: bool = False  # Override short-circuits only on a bool
    veto: bool = False  # Modifier is asked before delegation
    prior_field: Optional[str] = None  # Context field for the value before the change
    takes_arguments: bool = False
    replaceable: bool = False

    def accepts_override(self, value: Any) -> bool:
        if self.boolean_result:
            return isinstance(value, bool)
        return value is not None


KIND_SPECS: Dict[OperationKind, KindSpec] = {
    spec.kind: spec
    for spec in (
        KindSpec(
            OperationKind.GET, "value", "Property accessed",
            lambda target, ctx: reflect.get(target, ctx.property, ctx.namespace),
        ),
        KindSpec(
            OperationKind.SET, "success", "Property set",
            lambda target, ctx: reflect.set(target, ctx.property, ctx.new_value, ctx.namespace),
            boolean_result=True, veto=True, prior_field="old_value",
        ),
        KindSpec(
            OperationKind.HAS, "exists", "Property existence checked",
            lambda target, ctx: reflect.has(target, ctx.property, ctx.namespace),
        ),
        KindSpec(
            OperationKind.DELETE_PROPERTY, "success", "Property deleted",
            lambda target, ctx: reflect.delete_property(target, ctx.property, ctx.namespace),
            boolean_result=True, veto=True, prior_field="deleted_value",
        ),
        KindSpec(
            OperationKind.DEFINE_PROPERTY, "success", "Property defined",
            lambda target, ctx: reflect.define_property(target, ctx.property, ctx.descriptor, ctx.namespace),
            boolean_result=True, veto=True,
        ),
        KindSpec(
            OperationKind.GET_OWN_PROPERTY_DESCRIPTOR, "descriptor", "Property descriptor accessed",
            lambda target, ctx: reflect.get_own_property_descriptor(target, ctx.property, ctx.namespace),
        ),
        KindSpec(
            OperationKind.OWN_KEYS, "keys", "Own keys accessed",
            lambda target, ctx: reflect.own_keys(target, ctx.namespace),
        ),
        KindSpec(
            OperationKind.GET_PROTOTYPE_OF, "prototype", "Prototype accessed",
            lambda target, ctx: reflect.get_prototype_of(target),
        ),
        KindSpec(
            OperationKind.SET_PROTOTYPE_OF, "success", "Prototype set",
            lambda target, ctx: reflect.set_prototype_of(target, ctx.prototype),
            boolean_result=True,
        ),
        KindSpec(
            OperationKind.IS_EXTENSIBLE, "extensible", "Extensibility checked",
            lambda target, ctx: reflect.is_extensible(target),
        ),
        KindSpec(
            OperationKind.PREVENT_EXTENSIONS, "success", "Extensions prevented",
            lambda target, ctx: reflect.prevent_extensions(target),
            boolean_result=True,
        ),
        KindSpec(
            OperationKind.APPLY, "result", "Function called",
            lambda target, ctx: reflect.apply(target, ctx.receiver, ctx.arguments, ctx.kwargs),
            takes_arguments=True, replaceable=True,
        ),
        KindSpec(
            OperationKind.CONSTRUCT, "instance", "Constructor called",
            lambda target, ctx: reflect.construct(target, ctx.arguments, ctx.kwargs, ctx.new_target),
            takes_arguments=True,
        ),
    )
}


class KindPipeline:
    """
    The interceptor for one kind of one session.

    Reads the session's config on every call so live edits apply
    immediately.
    """

    def __init__(
        self,
        spec: KindSpec,
        session: Any,
        observers: GlobalObserverChain,
        uniform_containment: bool = True,
    ):
        self.spec = spec
        self._session = session
        self._observers = observers
        self._rich = uniform_containment or spec.kind in RICH_KINDS

    # =========================================================================
    # Entry point
    # =========================================================================

    def __call__(self, **payload: Any) -> Any:
        session = self._session
        config: WatchConfig = session.config
        target = session.target
        spec = self.spec

        if spec.takes_arguments and "property" not in payload:
            payload["property"] = getattr(target, "__name__", "anonymous")
        context = OperationContext(
            kind=spec.kind,
            target=target,
            session_name=session.name,
            **payload,
        )

        if not self._should_intercept(config, context):
            return spec.delegate(target, context)

        context = self._prepare(config, context)
        if not self._rich:
            return self._execute(config, context)
        try:
            return self._execute(config, context)
        except Exception as e:
            self._handle_fault(config, context, e)
            raise

    # =========================================================================
    # Stages
    # =========================================================================

    def _should_intercept(self, config: WatchConfig, context: OperationContext) -> bool:
        if not config.is_enabled(self.spec.kind):
            return False
        gate = config.should_intercept
        if gate is None:
            return True
        try:
            return bool(gate(context))
        except Exception as e:
            logger.error(
                f"[HOOK] should_intercept failed for {self.spec.kind.value} "
                f"on {self._session.label}, intercepting: {e!r}"
            )
            return True

    def _prepare(self, config: WatchConfig, context: OperationContext) -> OperationContext:
        updates: Dict[str, Any] = {}
        if self.spec.prior_field:
            updates[self.spec.prior_field] = reflect.peek(
                self._session.target, context.property, context.namespace
            )
        if config.enable_stack_trace:
            updates["stack"] = "".join(traceback.format_stack()[:-2])
        return context.enriched(**updates)

    def _execute(self, config: WatchConfig, context: OperationContext) -> Any:
        spec = self.spec
        kind = spec.kind

        self._run_hook("on_before", config.on_before, context)
        self._run_hook(f"{kind.value}.on_before", config.resolve(kind, "on_before"), context)
        self._broadcast(ObserverPhase.BEFORE, context)
        self._maybe_break(config, context)

        produced = _UNSET
        replaced = False
        duration = None
        modifier = config.resolve(kind, "modify_result")

        override = config.resolve(kind, "intercept")
        if override is not None:
            candidate = override(context)
            if spec.accepts_override(candidate):
                produced = candidate

        if produced is _UNSET and spec.replaceable and config.replace_function is not None:
            replacement = config.replace_function(context)
            if callable(replacement):
                produced = reflect.apply(replacement, context.receiver, context.arguments, context.kwargs)
                replaced = True

        if produced is _UNSET:
            if spec.takes_arguments and config.modify_args is not None:
                new_arguments = config.modify_args(context)
                if new_arguments:
                    context = context.enriched(arguments=list(new_arguments))

            if spec.veto and modifier is not None and modifier(context.enriched(success=True)) is False:
                logger.debug(f"[WATCH] {self._session.label}: {kind.value} {context.property!r} vetoed")
                produced = False
            else:
                start = time.perf_counter() if config.enable_timing else None
                produced = spec.delegate(self._session.target, context)
                if start is not None:
                    duration = (time.perf_counter() - start) * 1000.0

        if not spec.veto and modifier is not None:
            modified = modifier(context.enriched(**{spec.result_field: produced, "result": produced}))
            if modified is not None:
                produced = modified

        after = context.enriched(**{
            spec.result_field: produced,
            "result": produced,
            "duration": duration,
            "replaced": replaced,
        })
        self._run_hook(f"{kind.value}.on_after", config.resolve(kind, "on_after"), after)
        self._run_hook("on_after", config.on_after, after)
        self._broadcast(ObserverPhase.AFTER, after)
        self._log(config, LogLevel.DEBUG, spec.log_message, after)
        return produced

    def _handle_fault(self, config: WatchConfig, context: OperationContext, error: Exception) -> None:
        failed = context.enriched(error=error)
        self._run_hook("on_error", config.on_error, failed)
        self._log(config, LogLevel.ERROR, f"{self.spec.log_message} failed", failed)

    # =========================================================================
    # Contained helpers
    # =========================================================================

    def _run_hook(self, label: str, hook: Optional[Callable], context: OperationContext) -> None:
        if hook is None:
            return
        try:
            hook(context)
        except Exception as e:
            logger.error(
                f"[HOOK] {label} hook failed during {context.kind.value} "
                f"on {self._session.label}: {e!r}"
            )

    def _broadcast(self, phase: ObserverPhase, context: OperationContext) -> None:
        if self._rich:
            self._observers.broadcast(phase, context)

    def _toggle(self, name: str, toggle: Any, context: OperationContext) -> bool:
        if not callable(toggle):
            return bool(toggle)
        try:
            return bool(toggle(context))
        except Exception as e:
            logger.error(f"[HOOK] {name} predicate failed during {context.kind.value}: {e!r}")
            return False

    def _maybe_break(self, config: WatchConfig, context: OperationContext) -> None:
        if self._toggle("debug", config.resolve_toggle(self.spec.kind, "debug"), context):
            breakpoint()

    def _log(self, config: WatchConfig, level: LogLevel, message: str, context: OperationContext) -> None:
        if level.as_logging() < config.log_level.as_logging():
            return
        if not self._toggle("log", config.resolve_toggle(self.spec.kind, "log"), context):
            return
        details = []
        if context.property is not None:
            details.append(f"property={context.property!r}")
        if context.error is not None:
            details.append(f"error={context.error!r}")
        elif context.result is not None:
            details.append(f"result={context.result!r}")
        if context.duration is not None:
            details.append(f"duration={context.duration:.3f}ms")
        suffix = f" ({', '.join(details)})" if details else ""
        logger.log(level.as_logging(), f"[WATCH] {self._session.label}: {message}{suffix}")


def build_pipelines(
    session: Any,
    observers: GlobalObserverChain,
    uniform_containment: bool = True,
) -> Dict[OperationKind, KindPipeline]:
    """Build one pipeline per kind for a session."""
    return {
        kind: KindPipeline(spec, session, observers, uniform_containment)
        for kind, spec in KIND_SPECS.items()
    }
