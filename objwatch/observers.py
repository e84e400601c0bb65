"""
Global observer chain.

A cross-session broadcast list: every registered observer hears about
intercepted operations from every session of the owning manager.

Design rules:
- Observers run in registration order
- A failing observer is logged and skipped; the rest still run
- Observers may add or remove observers while being notified; the change
  applies from the next broadcast
- No internal locking: mutate from one thread, or synchronize externally
"""

import logging
from typing import Any, Callable, List

from .models import ObserverPhase, OperationContext

logger = logging.getLogger(__name__)

Observer = Callable[[ObserverPhase, OperationContext], Any]


class GlobalObserverChain:
    """Ordered, phase-tagged observer callbacks shared across sessions."""

    def __init__(self):
        self._observers: List[Observer] = []

    def add(self, observer: Observer) -> None:
        """
        Register an observer.

        Raises:
            TypeError: If observer is not callable
        """
        if not callable(observer):
            raise TypeError(f"Global observer must be callable, got {type(observer).__name__}")
        self._observers.append(observer)

    def remove(self, observer: Observer) -> None:
        """Remove the first registration of observer; unknown observers are ignored."""
        try:
            self._observers.remove(observer)
        except ValueError:
            logger.debug(f"[OBSERVER] remove() ignored unregistered observer {observer!r}")

    def clear(self) -> None:
        self._observers.clear()

    def broadcast(self, phase: ObserverPhase, context: OperationContext) -> None:
        """Notify every observer; faults are contained per observer."""
        for observer in list(self._observers):
            try:
                observer(phase, context)
            except Exception as e:
                logger.error(
                    f"[OBSERVER] Global observer {_describe(observer)} failed during "
                    f"{phase.value} {context.kind.value}: {e!r}"
                )

    def __len__(self) -> int:
        return len(self._observers)

    def __contains__(self, observer: Observer) -> bool:
        return observer in self._observers


def _describe(callback: Callable) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)
