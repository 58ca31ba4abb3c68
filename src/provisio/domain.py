"""Domain models used throughout the container."""

import enum
from dataclasses import dataclass
from typing import Any, Union

__all__ = [
    "Lifecycle",
    "Literal",
    "Parameter",
    "ServiceReference",
    "ArgumentSpec",
    "MethodCall",
    "as_argument",
    "ref",
    "param",
]


class Lifecycle(enum.Enum):
    """How long a built service lives.

    ``SHARED`` services are built once and cached for the lifetime of the
    container (or until :meth:`~provisio.container.Container.reset`).
    ``TRANSIENT`` services are built afresh on every request.
    """

    SHARED = "shared"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class Literal:
    """A value passed as-is, after placeholder substitution in any strings it contains."""

    value: Any


@dataclass(frozen=True)
class Parameter:
    """The value of a named parameter, with its original type."""

    name: str


@dataclass(frozen=True)
class ServiceReference:
    """Another service, looked up by id when the argument is resolved.

    Attributes:
        id: The referenced service id.
        nullable_if_missing: If True, an unregistered id resolves to ``None``
            instead of raising :class:`~provisio.errors.ServiceNotFound`.
    """

    id: str
    nullable_if_missing: bool = False


ArgumentSpec = Union[Literal, Parameter, ServiceReference]
"""A positional argument of a constructor or method call."""


@dataclass(frozen=True)
class MethodCall:
    """A method to invoke on a freshly built instance (setter injection)."""

    method: str
    arguments: tuple[ArgumentSpec, ...] = ()


def as_argument(value: Any) -> ArgumentSpec:
    """Wrap a plain value in :class:`Literal`; argument specs are returned unchanged.

    Example:
        >>> as_argument("%mailer.transport%")
        Literal(value='%mailer.transport%')
        >>> as_argument(ref("mailer"))
        ServiceReference(id='mailer', nullable_if_missing=False)
    """
    if isinstance(value, (Literal, Parameter, ServiceReference)):
        return value
    return Literal(value)


def ref(service_id: str, nullable: bool = False) -> ServiceReference:
    return ServiceReference(service_id, nullable)


def param(name: str) -> Parameter:
    return Parameter(name)
