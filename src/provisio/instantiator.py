"""Building service instances from their definitions.

The :class:`Instantiator` walks a service's references depth first, building
each dependency before the service that needs it. Shared instances are cached.
Each thread keeps its own resolution stack, so a service that is
reached again while it is still being resolved is reported as a cycle rather
than recursing forever.
"""

import logging
import threading
from typing import Any, Callable, Optional, Sequence

from provisio.definition import ServiceDefinition
from provisio.domain import MethodCall
from provisio.errors import (
    CircularReferenceDetected,
    ConstructionFailed,
    ContainerError,
    MethodCallFailed,
)
from provisio.parameters import ParameterStore
from provisio.registry import DefinitionRegistry
from provisio.resolver import ReferenceResolver

__all__ = ["Instantiator", "Constructor", "Invoker", "construct", "invoke"]

logger = logging.getLogger(__name__)

Constructor = Callable[[Callable, Sequence[Any]], Any]
"""Builds an instance from a factory and its resolved positional arguments."""

Invoker = Callable[[Any, str, Sequence[Any]], Any]
"""Calls a named method on an instance with resolved positional arguments."""


def construct(factory: Callable, arguments: Sequence[Any]) -> Any:
    return factory(*arguments)


def invoke(instance: Any, method: str, arguments: Sequence[Any]) -> Any:
    return getattr(instance, method)(*arguments)


class Instantiator:
    """Build services on demand and cache the shared ones.

    Args:
        registry: Where definitions are looked up.
        parameters: Used to resolve parameters and placeholders in arguments.
        constructor: How a factory is called. Defaults to ``factory(*arguments)``.
        invoker: How method calls are made. Defaults to
            ``getattr(instance, method)(*arguments)``.
    """

    def __init__(
        self,
        registry: DefinitionRegistry,
        parameters: ParameterStore,
        constructor: Optional[Constructor] = None,
        invoker: Optional[Invoker] = None,
    ):
        self._registry = registry
        self._resolver = ReferenceResolver(parameters, registry, self.get_or_build)
        self._constructor = constructor or construct
        self._invoker = invoker or invoke

        self._instances: dict[str, Any] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._acyclic: set[str] = set()
        self._local = threading.local()

    def get_or_build(self, service_id: str) -> Any:
        """Return the instance for ``service_id``, building it if needed.

        Raises:
            ServiceNotFound: If ``service_id``, or a service it references, is
                not registered.
            CircularReferenceDetected: If the service depends on itself.
            ConstructionFailed: If a factory raised.
            MethodCallFailed: If a configured method call raised.
        """
        definition = self._registry.get(service_id)
        if definition.shared and service_id in self._instances:
            logger.debug("Using cached instance of %s", service_id)
            return self._instances[service_id]

        stack = self._resolution_stack()
        # static cycles are rejected by _check_acyclic; this catches lookups
        # made from inside a factory or method call
        if service_id in stack:
            raise CircularReferenceDetected(stack[stack.index(service_id):] + [service_id])
        if not stack:
            self._check_acyclic(service_id)

        if not definition.shared:
            return self._build(definition, stack)

        with self._lock_for(service_id):
            # another thread may have finished building while we waited
            if service_id in self._instances:
                return self._instances[service_id]
            instance = self._build(definition, stack)
            self._instances[service_id] = instance
            return instance

    def cached(self, service_id: str) -> bool:
        return service_id in self._instances

    def instances(self) -> dict[str, Any]:
        """A copy of the shared instance cache."""
        with self._locks_guard:
            return dict(self._instances)

    def reset(self) -> None:
        """Forget every cached instance. Definitions and parameters are untouched."""
        with self._locks_guard:
            count = len(self._instances)
            self._instances.clear()
        logger.debug("Cleared %d cached instances", count)

    def _build(self, definition: ServiceDefinition, stack: list[str]) -> Any:
        service_id = definition.id
        stack.append(service_id)
        try:
            arguments = self._resolver.resolve_all(definition.arguments, service_id)
            instance = self._construct(definition, arguments)
            for call in definition.method_calls:
                call_arguments = self._resolver.resolve_all(call.arguments, service_id)
                self._invoke(definition, instance, call, call_arguments)
        except ContainerError as error:
            error.annotate(stack[0], stack)
            raise
        finally:
            stack.pop()

        logger.debug(
            "Built %s service %s with %d arguments and %d method calls",
            definition.lifecycle.value,
            service_id,
            len(arguments),
            len(definition.method_calls),
        )
        return instance

    def _construct(self, definition: ServiceDefinition, arguments: list[Any]) -> Any:
        try:
            return self._constructor(definition.factory, arguments)
        except ContainerError:
            raise
        except Exception as exc:
            raise ConstructionFailed(definition.id, arguments, exc) from exc

    def _invoke(
        self,
        definition: ServiceDefinition,
        instance: Any,
        call: MethodCall,
        arguments: list[Any],
    ) -> None:
        try:
            self._invoker(instance, call.method, arguments)
        except ContainerError:
            raise
        except Exception as exc:
            raise MethodCallFailed(definition.id, call.method, arguments, exc) from exc

    def _check_acyclic(self, service_id: str) -> None:
        """Reject cycles reachable from a top-level id before any lock is taken.

        Threads entering a cycle at different services would otherwise each
        hold one service lock and wait on the other's.
        """
        if service_id in self._acyclic:
            return
        cycle = self._registry.find_cycle(service_id)
        if cycle:
            error = CircularReferenceDetected(cycle)
            error.annotate(service_id, (service_id,))
            raise error
        if self._registry.frozen:
            self._acyclic.add(service_id)

    def _lock_for(self, service_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(service_id)
            if lock is None:
                lock = self._locks[service_id] = threading.Lock()
            return lock

    def _resolution_stack(self) -> list[str]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack
