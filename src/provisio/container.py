"""The public entry point: parameters, definitions and lazily built services.

A :class:`Container` is configured once, at the application's composition
root, and then asked for services. The first :meth:`Container.get` freezes
the configuration: after that, parameters and definitions can no longer
change, and only :meth:`Container.reset` (which drops cached instances) is
allowed.

Example:
    >>> container = Container()
    >>> container.set_parameter("mailer.transport", "sendmail")
    >>> container.register("mailer", Mailer).add_argument("%mailer.transport%")
    >>> container.register("newsletter_manager", NewsletterManager).add_method_call(
    ...     "setMailer", ref("mailer")
    ... )
    >>> container.get("newsletter_manager").mailer.transport
    'sendmail'
"""

import inspect
import logging
from typing import Any, Callable, Iterable, Optional, Union

from provisio.definition import ServiceDefinition
from provisio.domain import Lifecycle
from provisio.errors import ContainerError, InvalidDefinition
from provisio.instantiator import Constructor, Instantiator, Invoker
from provisio.parameters import ParameterStore
from provisio.registry import DefinitionRegistry, inferred_name

__all__ = ["Container"]

logger = logging.getLogger(__name__)


class Container:
    """Dependency-injection container.

    Args:
        parameters: Initial parameter values.
        constructor: Optional replacement for how factories are called.
        invoker: Optional replacement for how method calls are made.
    """

    def __init__(
        self,
        parameters: Optional[dict[str, Any]] = None,
        constructor: Optional[Constructor] = None,
        invoker: Optional[Invoker] = None,
    ):
        self.parameters = ParameterStore(parameters)
        self.registry = DefinitionRegistry()
        self._instantiator = Instantiator(
            self.registry, self.parameters, constructor, invoker
        )

    def set_parameter(self, name: str, value: Any) -> None:
        self.parameters.set(name, value)

    def get_parameter(self, name: str) -> Any:
        return self.parameters.get(name)

    def has_parameter(self, name: str) -> bool:
        return name in self.parameters

    def register(
        self,
        service_id: str,
        factory: Callable,
        lifecycle: Union[Lifecycle, str] = Lifecycle.SHARED,
        override: bool = False,
    ) -> ServiceDefinition:
        """Register a service and return its definition for further configuration.

        Args:
            service_id: Unique id of the service.
            factory: Class or function building the instance.
            lifecycle: ``Lifecycle.SHARED`` (the default) or ``Lifecycle.TRANSIENT``.
            override: Replace an existing definition with the same id.

        Raises:
            DuplicateServiceId: If the id is taken and ``override`` is False.
            ContainerFrozen: If the container is already in use.
            InvalidDefinition: If the id or factory is not valid.
        """
        definition = ServiceDefinition(service_id, factory, lifecycle=lifecycle)
        return self.registry.register(definition, override)

    def provides(
        self,
        service_id: Optional[str] = None,
        lifecycle: Union[Lifecycle, str] = Lifecycle.SHARED,
        arguments: Iterable[Any] = (),
        calls: Iterable[tuple[str, Iterable[Any]]] = (),
        tags: Iterable[str] = (),
    ) -> Callable:
        """Decorator registering a class or function as a service.

        Args:
            service_id: Optional id; defaults to the class name, or the function
                name with any 'make_' prefix removed.
            lifecycle: The service lifecycle.
            arguments: Constructor arguments.
            calls: ``(method, arguments)`` pairs to call after construction.
            tags: Tag names to attach.

        Example:
            @container.provides(arguments=[ref("mailer")])
            def make_newsletter_manager(mailer):
                return NewsletterManager(mailer)
        """

        def decorator(obj):
            if not (inspect.isclass(obj) or inspect.isfunction(obj)):
                raise InvalidDefinition(f"{obj} is not a class or function")
            definition = self.register(service_id or inferred_name(obj), obj, lifecycle)
            definition.add_arguments(*arguments)
            for method, method_arguments in calls:
                definition.add_method_call(method, *method_arguments)
            for tag in tags:
                definition.add_tag(tag)
            return obj

        return decorator

    def has(self, service_id: str) -> bool:
        return self.registry.has(service_id)

    def __contains__(self, service_id: str) -> bool:
        return self.has(service_id)

    def get(self, service_id: str) -> Any:
        """Return the service registered as ``service_id``, building it if needed.

        The first call freezes the container.

        Raises:
            ContainerError: Any of the errors described in :mod:`provisio.errors`.
                Errors raised while building a dependency carry the requested id
                in ``requested_id``.
        """
        self.freeze()
        try:
            return self._instantiator.get_or_build(service_id)
        except ContainerError as error:
            error.annotate(service_id, (service_id,))
            raise

    def tagged(self, tag: str) -> dict[str, list[dict[str, Any]]]:
        return self.registry.tagged(tag)

    def get_tagged(self, tag: str) -> list[Any]:
        """Build every service carrying ``tag``, in registration order."""
        return [self.get(service_id) for service_id in self.registry.tagged(tag)]

    @property
    def frozen(self) -> bool:
        return self.registry.frozen

    def freeze(self) -> None:
        """End the configuration phase. Called implicitly by :meth:`get`."""
        if self.registry.frozen:
            return
        self.parameters.freeze()
        self.registry.freeze()
        logger.debug("Container frozen")

    def reset(self) -> None:
        """Drop all cached shared instances; they are rebuilt on the next :meth:`get`."""
        self._instantiator.reset()

    def initialized(self, service_id: str) -> bool:
        """True if a shared instance of ``service_id`` is currently cached."""
        return self._instantiator.cached(service_id)
