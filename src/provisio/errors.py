"""Exceptions raised by the container.

Every error derives from :class:`ContainerError`. Errors raised while a
:meth:`~provisio.container.Container.get` call is in progress are annotated
with the id that was originally requested and the resolution path at the
point of failure, so a caller can tell whether the service it asked for
failed or one of its dependencies did.
"""

from typing import Any, Optional, Sequence

__all__ = [
    "ContainerError",
    "ParameterNotFound",
    "MalformedPlaceholder",
    "InvalidParameterName",
    "CircularParameterReference",
    "DuplicateServiceId",
    "ServiceNotFound",
    "ContainerFrozen",
    "CircularReferenceDetected",
    "ConstructionFailed",
    "MethodCallFailed",
    "InvalidDefinition",
]


class ContainerError(Exception):
    """Base class for all container errors.

    Attributes:
        service_id: The service whose definition or construction failed, if any.
        requested_id: The id passed to the ``get`` call during which the error
            was raised. ``None`` outside of a ``get`` call.
        resolution_path: Service ids being resolved when the error was raised,
            outermost first.
    """

    def __init__(self, message: str, service_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.service_id = service_id
        self.requested_id: Optional[str] = None
        self.resolution_path: tuple[str, ...] = ()

    def annotate(self, requested_id: str, resolution_path: Sequence[str]) -> None:
        """Record the top-level request this error belongs to.

        The first annotation wins: it is made closest to the failure, where the
        resolution path is longest.
        """
        if self.requested_id is None:
            self.requested_id = requested_id
            self.resolution_path = tuple(resolution_path)

    @property
    def from_dependency(self) -> bool:
        """True if the error was raised by a dependency of the requested service."""
        return (
            self.requested_id is not None
            and self.service_id is not None
            and self.service_id != self.requested_id
        )

    def __str__(self) -> str:
        if self.from_dependency:
            return f"{self.message} (while resolving '{self.requested_id}')"
        return self.message


class ParameterNotFound(ContainerError):
    """Raised when a parameter is read or referenced but was never set."""

    def __init__(self, parameter_name: str):
        super().__init__(f"Parameter '{parameter_name}' is not defined")
        self.parameter_name = parameter_name


class MalformedPlaceholder(ContainerError):
    """Raised when a string contains an unmatched delimiter or cannot be interpolated."""

    def __init__(self, text: str, reason: str):
        super().__init__(f"Malformed placeholder in {text!r}: {reason}")
        self.text = text


class InvalidParameterName(ContainerError):
    def __init__(self, parameter_name: Any):
        super().__init__(f"Invalid parameter name {parameter_name!r}")
        self.parameter_name = parameter_name


class CircularParameterReference(ContainerError):
    """Raised when a parameter's value refers back to itself through placeholders."""

    def __init__(self, path: Sequence[str]):
        super().__init__(f"Circular parameter reference: {' -> '.join(path)}")
        self.path = tuple(path)


class DuplicateServiceId(ContainerError):
    def __init__(self, service_id: str):
        super().__init__(
            f"Service '{service_id}' is already registered - "
            "pass override=True to replace its definition.",
            service_id,
        )


class ServiceNotFound(ContainerError):
    def __init__(self, service_id: str, referenced_by: Optional[str] = None):
        message = f"Service '{service_id}' is not registered"
        if referenced_by is not None:
            message += f" (referenced by '{referenced_by}')"
        super().__init__(message, service_id)
        self.referenced_by = referenced_by


class ContainerFrozen(ContainerError):
    """Raised on any attempt to change configuration once the container is in use."""

    def __init__(self, what: str):
        super().__init__(f"Cannot modify {what}: the container is frozen")


class CircularReferenceDetected(ContainerError):
    """Raised when a service depends on itself, directly or through other services.

    Attributes:
        path: The ids forming the cycle, starting and ending with the same id.
    """

    def __init__(self, path: Sequence[str]):
        super().__init__(
            f"Circular reference detected: {' -> '.join(path)}", path[-1]
        )
        self.path = tuple(path)


class ConstructionFailed(ContainerError):
    """Raised when a service factory raises. The original error is the ``__cause__``."""

    def __init__(self, service_id: str, arguments: Sequence[Any], cause: BaseException):
        super().__init__(
            f"Failed to construct service '{service_id}' "
            f"with arguments {list(arguments)!r}: {cause!r}",
            service_id,
        )
        self.arguments = tuple(arguments)


class MethodCallFailed(ContainerError):
    """Raised when a configured method call on a new instance raises.

    Method calls made before the failing one are not undone.
    """

    def __init__(
        self, service_id: str, method: str, arguments: Sequence[Any], cause: BaseException
    ):
        super().__init__(
            f"Call to {method}() on service '{service_id}' "
            f"with arguments {list(arguments)!r} failed: {cause!r}",
            service_id,
        )
        self.method = method
        self.arguments = tuple(arguments)


class InvalidDefinition(ContainerError):
    """Raised when a service definition or definition record is malformed."""

    pass
