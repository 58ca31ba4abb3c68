"""The recipe for building a service."""

from typing import Any, Callable, Iterable, Iterator, Optional, Union

from provisio.domain import (
    ArgumentSpec,
    Lifecycle,
    MethodCall,
    Parameter,
    ServiceReference,
    as_argument,
)
from provisio.errors import ContainerFrozen, InvalidDefinition

__all__ = ["ServiceDefinition", "to_lifecycle"]


def to_lifecycle(value: Union[Lifecycle, str], service_id: Optional[str] = None) -> Lifecycle:
    """Accept a :class:`Lifecycle` or its string value (``"shared"``/``"transient"``)."""
    if isinstance(value, Lifecycle):
        return value
    try:
        return Lifecycle(value)
    except ValueError:
        raise InvalidDefinition(
            f"Unknown lifecycle {value!r} - expected one of "
            f"{[lifecycle.value for lifecycle in Lifecycle]}",
            service_id,
        ) from None


class ServiceDefinition:
    """Declarative description of a service: factory, arguments, method calls, lifecycle.

    Definitions are built fluently and become read-only once the registry
    holding them is frozen:

        >>> definition = ServiceDefinition("newsletter_manager", NewsletterManager)
        >>> definition.add_method_call("setMailer", ref("mailer"))

    Attributes:
        id: The unique service id.
        factory: Callable producing the instance - usually a class, but any
            function works. It receives the resolved constructor arguments
            positionally.
    """

    def __init__(
        self,
        service_id: str,
        factory: Callable,
        arguments: Iterable[Any] = (),
        method_calls: Iterable[MethodCall] = (),
        lifecycle: Union[Lifecycle, str] = Lifecycle.SHARED,
    ):
        if not isinstance(service_id, str) or not service_id.strip():
            raise InvalidDefinition(f"Invalid service id {service_id!r}")
        if not callable(factory):
            raise InvalidDefinition(
                f"Factory {factory!r} for service '{service_id}' is not callable",
                service_id,
            )
        self.id = service_id
        self.factory = factory
        self._lifecycle = to_lifecycle(lifecycle, service_id)
        self._arguments: list[ArgumentSpec] = []
        self._method_calls: list[MethodCall] = []
        self._tags: list[tuple[str, dict[str, Any]]] = []
        self._frozen = False

        self.add_arguments(*arguments)
        for call in method_calls:
            self.add_method_call(call.method, *call.arguments)

    def __repr__(self) -> str:
        return (
            f"ServiceDefinition({self.id!r}, {self.factory!r}, "
            f"lifecycle={self._lifecycle.value})"
        )

    @property
    def arguments(self) -> tuple[ArgumentSpec, ...]:
        return tuple(self._arguments)

    @property
    def method_calls(self) -> tuple[MethodCall, ...]:
        return tuple(self._method_calls)

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    @property
    def shared(self) -> bool:
        return self._lifecycle is Lifecycle.SHARED

    @property
    def tags(self) -> tuple[tuple[str, dict[str, Any]], ...]:
        """``(tag name, attributes)`` pairs in the order they were added."""
        return tuple((name, dict(attributes)) for name, attributes in self._tags)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def add_argument(self, argument: Any) -> "ServiceDefinition":
        """Append a constructor argument. Plain values are wrapped in :class:`Literal`."""
        self._check_not_frozen()
        self._arguments.append(self._validated(argument))
        return self

    def add_arguments(self, *arguments: Any) -> "ServiceDefinition":
        for argument in arguments:
            self.add_argument(argument)
        return self

    def add_method_call(self, method: str, *arguments: Any) -> "ServiceDefinition":
        """Append a call of ``method`` on the instance after construction."""
        self._check_not_frozen()
        if not isinstance(method, str) or not method.isidentifier():
            raise InvalidDefinition(
                f"Invalid method name {method!r} for service '{self.id}'", self.id
            )
        self._method_calls.append(
            MethodCall(method, tuple(self._validated(argument) for argument in arguments))
        )
        return self

    def add_tag(self, name: str, **attributes: Any) -> "ServiceDefinition":
        """Tag the service so it can be found with :meth:`DefinitionRegistry.tagged`."""
        self._check_not_frozen()
        if not isinstance(name, str) or not name.strip():
            raise InvalidDefinition(f"Invalid tag {name!r} for service '{self.id}'", self.id)
        self._tags.append((name, attributes))
        return self

    def set_lifecycle(self, lifecycle: Union[Lifecycle, str]) -> "ServiceDefinition":
        self._check_not_frozen()
        self._lifecycle = to_lifecycle(lifecycle, self.id)
        return self

    def references(self) -> Iterator[ServiceReference]:
        """Yield every service reference in constructor and method-call arguments."""
        for argument in self._arguments:
            if isinstance(argument, ServiceReference):
                yield argument
        for call in self._method_calls:
            for argument in call.arguments:
                if isinstance(argument, ServiceReference):
                    yield argument

    def _validated(self, argument: Any) -> ArgumentSpec:
        spec = as_argument(argument)
        if isinstance(spec, ServiceReference) and (
            not isinstance(spec.id, str) or not spec.id.strip()
        ):
            raise InvalidDefinition(
                f"Invalid service reference {spec.id!r} in service '{self.id}'", self.id
            )
        if isinstance(spec, Parameter) and (
            not isinstance(spec.name, str) or not spec.name.strip()
        ):
            raise InvalidDefinition(
                f"Invalid parameter reference {spec.name!r} in service '{self.id}'", self.id
            )
        return spec

    def _check_not_frozen(self) -> None:
        if self._frozen:
            raise ContainerFrozen(f"definition of service '{self.id}'")
