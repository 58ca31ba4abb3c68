"""Named configuration values and ``%placeholder%`` substitution.

Parameter names are case-insensitive: they are stored in lower case. String
values may embed other parameters as ``%name%``; ``%%`` stands for a literal
percent sign. A string consisting of a single placeholder resolves to the
referenced value with its original type, so ``"%ports%"`` can produce a list.
"""

import copy
import logging
import re
from typing import Any, Optional

from provisio.errors import (
    CircularParameterReference,
    ContainerFrozen,
    InvalidParameterName,
    MalformedPlaceholder,
    ParameterNotFound,
)

__all__ = ["ParameterStore", "normalize_name"]

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"%%|%([^%\s]+)%")
_WHOLE_TOKEN = re.compile(r"%([^%\s]+)%")


def normalize_name(name: Any) -> str:
    """Return the canonical form of a parameter name.

    Raises:
        InvalidParameterName: If the name is not a string or is blank.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidParameterName(name)
    return name.strip().lower()


def _stringify(name: str, value: Any, text: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    raise MalformedPlaceholder(
        text,
        f"parameter '{name}' holds a {type(value).__name__} "
        "and cannot be embedded in a string",
    )


class ParameterStore:
    """Mapping of parameter names to values.

    The store is writable until :meth:`freeze` is called; the container
    freezes it on the first service lookup.
    """

    def __init__(self, parameters: Optional[dict[str, Any]] = None):
        self._values: dict[str, Any] = {}
        self._frozen = False
        for name, value in (parameters or {}).items():
            self.set(name, value)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def set(self, name: str, value: Any) -> None:
        key = normalize_name(name)
        if self._frozen:
            raise ContainerFrozen(f"parameter '{key}'")
        self._values[key] = value
        logger.debug("Set parameter %s", key)

    def remove(self, name: str) -> None:
        key = normalize_name(name)
        if self._frozen:
            raise ContainerFrozen(f"parameter '{key}'")
        if key not in self._values:
            raise ParameterNotFound(key)
        del self._values[key]

    def has(self, name: str) -> bool:
        return normalize_name(name) in self._values

    def __contains__(self, name: str) -> bool:
        return isinstance(name, str) and bool(name.strip()) and self.has(name)

    def get(self, name: str) -> Any:
        """Return a parameter's value with any placeholders inside it resolved.

        Raises:
            ParameterNotFound: If the parameter, or one it refers to, is not set.
            CircularParameterReference: If the value refers back to itself.
        """
        return self._get(normalize_name(name), [])

    def all(self) -> dict[str, Any]:
        """Return every parameter, resolved."""
        return {name: self._get(name, []) for name in self._values}

    def resolve_placeholders(self, text: str) -> Any:
        """Substitute ``%name%`` tokens in ``text`` with parameter values.

        Substitution is a single pass: text inserted for a placeholder is not
        scanned again. If ``text`` is a single placeholder the value is
        returned with its own type.

        Raises:
            ParameterNotFound: If a referenced parameter is not set.
            MalformedPlaceholder: On an unmatched ``%`` or when a list or
                mapping would have to be embedded in surrounding text.

        Example:
            >>> store = ParameterStore({"mailer.transport": "sendmail", "port": 25})
            >>> store.resolve_placeholders("%mailer.transport%://localhost:%port%")
            'sendmail://localhost:25'
            >>> store.resolve_placeholders("%port%")
            25
        """
        return self._resolve_text(text, [])

    def resolve_value(self, value: Any) -> Any:
        """Resolve placeholders in every string found in ``value``.

        Lists, tuples and dicts are walked recursively; other values are
        returned unchanged.
        """
        return self._resolve_value(value, [])

    def _get(self, key: str, resolving: list[str]) -> Any:
        if key in resolving:
            raise CircularParameterReference(resolving[resolving.index(key):] + [key])
        if key not in self._values:
            raise ParameterNotFound(key)
        resolving.append(key)
        try:
            return self._resolve_value(self._values[key], resolving)
        finally:
            resolving.pop()

    def _resolve_value(self, value: Any, resolving: list[str]) -> Any:
        """Resolve strings inside ``value``.

        A container is only rebuilt if something inside it changed, and then
        with its own type; otherwise the original object is returned.
        """
        if isinstance(value, str):
            return self._resolve_text(value, resolving)
        if isinstance(value, list):
            items = [self._resolve_value(item, resolving) for item in value]
            if _unchanged(value, items):
                return value
            rebuilt = copy.copy(value)
            rebuilt[:] = items
            return rebuilt
        if isinstance(value, tuple):
            items = [self._resolve_value(item, resolving) for item in value]
            if _unchanged(value, items):
                return value
            if hasattr(value, "_make"):
                return type(value)._make(items)
            return type(value)(items)
        if isinstance(value, dict):
            pairs = [
                (self._resolve_value(k, resolving), self._resolve_value(v, resolving))
                for k, v in value.items()
            ]
            if all(k is old_k and v is old_v for (k, v), (old_k, old_v) in zip(pairs, value.items())):
                return value
            rebuilt = copy.copy(value)
            rebuilt.clear()
            rebuilt.update(pairs)
            return rebuilt
        return value

    def _resolve_text(self, text: str, resolving: list[str]) -> Any:
        if "%" not in text:
            return text

        whole = _WHOLE_TOKEN.fullmatch(text)
        if whole:
            return self._get(normalize_name(whole.group(1)), resolving)

        parts = []
        position = 0
        for match in _TOKEN.finditer(text):
            _check_no_stray_delimiter(text, text[position:match.start()])
            parts.append(text[position:match.start()])
            name = match.group(1)
            if name is None:
                parts.append("%")
            else:
                key = normalize_name(name)
                parts.append(_stringify(key, self._get(key, resolving), text))
            position = match.end()

        _check_no_stray_delimiter(text, text[position:])
        parts.append(text[position:])
        return "".join(parts)


def _unchanged(original: Any, items: list[Any]) -> bool:
    return all(new is old for new, old in zip(items, original))


def _check_no_stray_delimiter(text: str, segment: str) -> None:
    if "%" in segment:
        raise MalformedPlaceholder(
            text, "unmatched '%' (write '%%' for a literal percent sign)"
        )
