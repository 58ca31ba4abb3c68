"""Turning argument specs into the values passed to factories and methods."""

from typing import Any, Callable, Iterable, Optional

from provisio.domain import ArgumentSpec, Literal, Parameter, ServiceReference
from provisio.errors import InvalidDefinition, ServiceNotFound
from provisio.parameters import ParameterStore
from provisio.registry import DefinitionRegistry

__all__ = ["ReferenceResolver"]


class ReferenceResolver:
    """Resolve :data:`~provisio.domain.ArgumentSpec` values.

    Service references are handed to ``build``, which is the instantiator's
    ``get_or_build``; the resolver itself holds no instances.
    """

    def __init__(
        self,
        parameters: ParameterStore,
        registry: DefinitionRegistry,
        build: Callable[[str], Any],
    ):
        self._parameters = parameters
        self._registry = registry
        self._build = build

    def resolve(self, spec: ArgumentSpec, referenced_by: Optional[str] = None) -> Any:
        """Resolve a single argument spec.

        Args:
            spec: The argument to resolve.
            referenced_by: Id of the service whose argument this is, used in
                error messages.

        Raises:
            ServiceNotFound: If a non-nullable reference names an unregistered service.
            ParameterNotFound: If a parameter or placeholder is not set.
        """
        if isinstance(spec, Literal):
            return self._parameters.resolve_value(spec.value)
        if isinstance(spec, Parameter):
            return self._parameters.get(spec.name)
        if isinstance(spec, ServiceReference):
            if not self._registry.has(spec.id):
                if spec.nullable_if_missing:
                    return None
                raise ServiceNotFound(spec.id, referenced_by)
            return self._build(spec.id)
        raise InvalidDefinition(f"Unknown argument spec {spec!r}", referenced_by)

    def resolve_all(
        self, specs: Iterable[ArgumentSpec], referenced_by: Optional[str] = None
    ) -> list[Any]:
        return [self.resolve(spec, referenced_by) for spec in specs]
