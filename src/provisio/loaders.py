"""Load parameters and service definitions from plain, already-parsed data.

These functions accept the kind of structure a YAML or JSON library produces
(mappings, lists, strings, numbers), with factories given as callables:

    >>> load_definitions(container, {
    ...     "mailer": {"factory": Mailer, "arguments": ["%mailer.transport%"]},
    ...     "newsletter_manager": {
    ...         "factory": NewsletterManager,
    ...         "calls": [["setMailer", ["@mailer"]]],
    ...     },
    ... })

In argument lists, ``"@id"`` refers to a service, ``"@?id"`` to a service
that may be missing (it resolves to ``None``), and ``"@@text"`` is the literal
string ``"@text"``. Any other value is a literal, so ``"%name%"`` is
substituted from the parameters.
"""

import logging
from collections.abc import Mapping
from typing import Any, Iterable, Optional, Union

from provisio.container import Container
from provisio.definition import ServiceDefinition
from provisio.domain import ArgumentSpec, Lifecycle, Literal, MethodCall, ServiceReference
from provisio.errors import InvalidDefinition

__all__ = ["load_parameters", "load_definitions", "parse_argument", "parse_definition"]

logger = logging.getLogger(__name__)

_RECORD_KEYS = frozenset(
    {"id", "factory", "arguments", "calls", "lifecycle", "shared", "tags", "override"}
)

DefinitionRecords = Union[Mapping[str, Mapping[str, Any]], Iterable[Mapping[str, Any]]]


def load_parameters(container: Container, parameters: Mapping[str, Any]) -> None:
    """Set every ``name: value`` pair of ``parameters`` on the container."""
    if not isinstance(parameters, Mapping):
        raise InvalidDefinition(f"Parameters must be a mapping, not {type(parameters).__name__}")
    for name, value in parameters.items():
        container.set_parameter(name, value)
    logger.debug("Loaded %d parameters", len(parameters))


def load_definitions(container: Container, records: DefinitionRecords) -> list[ServiceDefinition]:
    """Register a service for each record.

    Args:
        container: The container to register services in.
        records: Either a mapping from service id to record, or an iterable of
            records each carrying an ``id`` key.

    Returns:
        The registered definitions, in order.

    Raises:
        InvalidDefinition: If a record is malformed. Records before it stay
            registered; nothing from the malformed record is.
        DuplicateServiceId: If an id is already registered and the record does
            not set ``override``.
    """
    registered = []
    for service_id, record in _iter_records(records):
        definition = parse_definition(service_id, record)
        override = record.get("override", False)
        if not isinstance(override, bool):
            raise InvalidDefinition(f"'override' of '{service_id}' must be a boolean", service_id)
        registered.append(container.registry.register(definition, override))
    logger.debug("Loaded %d service definitions", len(registered))
    return registered


def parse_definition(service_id: str, record: Mapping[str, Any]) -> ServiceDefinition:
    """Build a :class:`ServiceDefinition` from a single record without registering it."""
    if not isinstance(record, Mapping):
        raise InvalidDefinition(
            f"Definition of '{service_id}' must be a mapping, not {type(record).__name__}",
            service_id,
        )
    unknown = set(record) - _RECORD_KEYS
    if unknown:
        raise InvalidDefinition(
            f"Unknown keys {sorted(unknown)} in definition of '{service_id}'", service_id
        )
    if "factory" not in record:
        raise InvalidDefinition(f"Definition of '{service_id}' has no factory", service_id)

    definition = ServiceDefinition(
        service_id,
        record["factory"],
        [parse_argument(argument, service_id) for argument in _list(record, "arguments", service_id)],
        [_parse_call(call, service_id) for call in _list(record, "calls", service_id)],
        _lifecycle(record, service_id),
    )
    for tag in _list(record, "tags", service_id):
        if isinstance(tag, Mapping):
            attributes = {str(key): value for key, value in tag.items() if key != "name"}
            definition.add_tag(tag.get("name"), **attributes)
        else:
            definition.add_tag(tag)
    return definition


def parse_argument(value: Any, service_id: Optional[str] = None) -> ArgumentSpec:
    """Interpret a single argument value.

    Example:
        >>> parse_argument("@mailer")
        ServiceReference(id='mailer', nullable_if_missing=False)
        >>> parse_argument("@?logger")
        ServiceReference(id='logger', nullable_if_missing=True)
        >>> parse_argument("@@home")
        Literal(value='@home')
    """
    if not isinstance(value, str) or not value.startswith("@"):
        return Literal(value)
    if value.startswith("@@"):
        return Literal(value[1:])
    if value.startswith("@?"):
        return ServiceReference(_reference_id(value[2:], value, service_id), True)
    return ServiceReference(_reference_id(value[1:], value, service_id))


def _reference_id(reference: str, value: str, service_id: Optional[str]) -> str:
    if not reference.strip():
        raise InvalidDefinition(
            f"Empty service reference {value!r} in definition of '{service_id}'", service_id
        )
    return reference


def _parse_call(call: Any, service_id: str) -> MethodCall:
    if isinstance(call, Mapping):
        if set(call) - {"method", "arguments"} or "method" not in call:
            raise InvalidDefinition(
                f"Method call {dict(call)!r} in definition of '{service_id}' "
                "must have a 'method' and optional 'arguments'",
                service_id,
            )
        method, arguments = call["method"], call.get("arguments", [])
    elif isinstance(call, (list, tuple)) and 1 <= len(call) <= 2:
        method, arguments = call[0], (call[1] if len(call) == 2 else [])
    else:
        raise InvalidDefinition(
            f"Invalid method call {call!r} in definition of '{service_id}'", service_id
        )

    if not isinstance(arguments, (list, tuple)):
        raise InvalidDefinition(
            f"Arguments of {method}() in definition of '{service_id}' must be a list",
            service_id,
        )
    return MethodCall(method, tuple(parse_argument(argument, service_id) for argument in arguments))


def _lifecycle(record: Mapping[str, Any], service_id: str) -> Union[Lifecycle, str]:
    if "shared" in record:
        if "lifecycle" in record:
            raise InvalidDefinition(
                f"Definition of '{service_id}' sets both 'shared' and 'lifecycle'", service_id
            )
        if not isinstance(record["shared"], bool):
            raise InvalidDefinition(f"'shared' of '{service_id}' must be a boolean", service_id)
        return Lifecycle.SHARED if record["shared"] else Lifecycle.TRANSIENT
    return record.get("lifecycle", Lifecycle.SHARED)


def _list(record: Mapping[str, Any], key: str, service_id: str) -> list[Any]:
    value = record.get(key, [])
    if not isinstance(value, (list, tuple)):
        raise InvalidDefinition(f"'{key}' of '{service_id}' must be a list", service_id)
    return list(value)


def _iter_records(records: DefinitionRecords) -> Iterable[tuple[str, Mapping[str, Any]]]:
    if isinstance(records, Mapping):
        for service_id, record in records.items():
            if isinstance(record, Mapping) and "id" in record and record["id"] != service_id:
                raise InvalidDefinition(
                    f"Record keyed '{service_id}' declares id {record['id']!r}", service_id
                )
            yield service_id, record
        return

    if isinstance(records, (str, bytes)):
        raise InvalidDefinition("Definition records must be a mapping or a list of mappings")

    for record in records:
        if not isinstance(record, Mapping) or "id" not in record:
            raise InvalidDefinition(f"Definition record {record!r} has no 'id'")
        yield record["id"], record
