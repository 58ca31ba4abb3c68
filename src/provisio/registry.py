"""Registration and lookup of service definitions."""

import inspect
import logging
from typing import Any, Iterator, Optional

from provisio.definition import ServiceDefinition
from provisio.errors import (
    ContainerFrozen,
    DuplicateServiceId,
    InvalidDefinition,
    ServiceNotFound,
)

__all__ = ["DefinitionRegistry", "inferred_name"]

logger = logging.getLogger(__name__)


def inferred_name(target: Any) -> str:
    """Derive a service id from a class or function name, removing any 'make_' prefix.

    Example:
        >>> inferred_name(Mailer)       # Returns "Mailer"
        >>> inferred_name(make_mailer)  # Returns "mailer"
    """
    if inspect.isclass(target):
        return target.__name__

    name = getattr(target, "__name__", None)
    if not name or name == "<lambda>":
        raise InvalidDefinition(f"Cannot infer a service id for {target!r}")
    if name.startswith("make_"):
        return name[5:]
    return name


class DefinitionRegistry:
    """Service definitions keyed by id, in registration order.

    The registry is open for registration until :meth:`freeze` is called.
    Freezing also freezes every definition it holds, so nothing changes shape
    once instances built from the definitions may have been cached.
    """

    def __init__(self):
        self._definitions: dict[str, ServiceDefinition] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        if self._frozen:
            return
        for definition in self._definitions.values():
            definition.freeze()
        self._frozen = True
        logger.debug("Froze registry with %d definitions", len(self._definitions))

    def register(self, definition: ServiceDefinition, override: bool = False) -> ServiceDefinition:
        """Add a definition to the registry.

        Args:
            definition: The definition to add.
            override: Replace an existing definition with the same id instead of failing.

        Returns:
            The registered definition, for further chaining.

        Raises:
            InvalidDefinition: If ``definition`` is not a :class:`ServiceDefinition`.
            DuplicateServiceId: If the id is taken and ``override`` is False.
            ContainerFrozen: If the registry is frozen.
        """
        if not isinstance(definition, ServiceDefinition):
            raise InvalidDefinition(f"{definition!r} is not a ServiceDefinition")
        if self._frozen:
            raise ContainerFrozen(f"registry (registering '{definition.id}')")
        if definition.id in self._definitions and not override:
            raise DuplicateServiceId(definition.id)

        self._definitions[definition.id] = definition
        logger.debug("Registered service %s -> %r", definition.id, definition.factory)
        return definition

    def has(self, service_id: str) -> bool:
        return service_id in self._definitions

    def __contains__(self, service_id: str) -> bool:
        return self.has(service_id)

    def __len__(self) -> int:
        return len(self._definitions)

    def get(self, service_id: str) -> ServiceDefinition:
        try:
            return self._definitions[service_id]
        except KeyError:
            raise ServiceNotFound(service_id) from None

    def ids(self) -> list[str]:
        return list(self._definitions)

    def definitions(self) -> list[ServiceDefinition]:
        return list(self._definitions.values())

    def tagged(self, tag: str) -> dict[str, list[dict[str, Any]]]:
        """Find services carrying ``tag``.

        Returns:
            Mapping of service id to the attribute dicts of each occurrence
            of the tag, in registration order.
        """
        found: dict[str, list[dict[str, Any]]] = {}
        for service_id, definition in self._definitions.items():
            for name, attributes in definition.tags:
                if name == tag:
                    found.setdefault(service_id, []).append(attributes)
        return found

    def dependencies_of(self, service_id: str) -> list[str]:
        """Ids of registered services referenced by a definition, without duplicates.

        Nullable references to unregistered services are left out: they resolve
        to ``None`` and create no edge.
        """
        dependencies: dict[str, None] = {}
        for reference in self.get(service_id).references():
            if reference.id in self._definitions or not reference.nullable_if_missing:
                dependencies[reference.id] = None
        return list(dependencies)

    def find_cycle(self, service_id: str) -> Optional[list[str]]:
        """Look for a reference cycle reachable from ``service_id``.

        Walks constructor and method-call references depth first. Unregistered
        references are skipped here; they fail when resolved.

        Returns:
            The cycle as a list of ids starting and ending with the same id,
            or None if every service reachable from ``service_id`` is acyclic.
        """
        finished: set[str] = set()
        path: list[str] = []
        on_path: set[str] = set()

        def visit(current: str) -> Optional[list[str]]:
            path.append(current)
            on_path.add(current)
            for dependency in self.dependencies_of(current):
                if dependency not in self._definitions or dependency in finished:
                    continue
                if dependency in on_path:
                    return path[path.index(dependency):] + [dependency]
                cycle = visit(dependency)
                if cycle:
                    return cycle
            path.pop()
            on_path.discard(current)
            finished.add(current)
            return None

        return visit(service_id) if service_id in self._definitions else None

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._definitions))
