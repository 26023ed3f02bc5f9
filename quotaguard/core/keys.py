"""Counting-key derivation.

A counting key identifies the quota bucket a request belongs to. The default
layout is::

    ratelimit:<resource>:<method>:<lookup path>:<value>[:<lookup path>:<value>...]

e.g. ``ratelimit:/v1/ping:get:client.host:10.0.0.7``. Resource and values are
escaped so a ``:`` inside them cannot shift segments into another client's key.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from fastapi.requests import HTTPConnection

KEY_PREFIX: Final = "ratelimit"
KEY_DELIMITER: Final = ":"

# Rendered for lookup paths that do not resolve against the request.
MISSING_SEGMENT: Final = "undefined"


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()

# Raised by Starlette properties (request.session, request.auth, ...) when the
# backing middleware is not installed, or by walking into a non-container.
_LOOKUP_ERRORS = (AttributeError, AssertionError, KeyError, TypeError)

# Values rendered into a key; anything else renders as MISSING_SEGMENT.
_SCALARS = (str, int, float, type(None))


def escape_segment(value: str) -> str:
    """Percent-escape the escape character and the key delimiter.

    Examples:
        >>> escape_segment("10.0.0.7")
        '10.0.0.7'
        >>> escape_segment("::1")
        '%3A%3A1'
    """
    return value.replace("%", "%25").replace(KEY_DELIMITER, "%3A")


@dataclass(frozen=True)
class LookupPath:
    """Dotted accessor into a request, e.g. ``headers.x-api-key``.

    Segments index into mapping-like values (headers, query params, dicts) and
    are read as attributes on everything else, the request included. Methods
    and compound values never resolve to a key segment.
    """

    dotted: str

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(self.dotted.split("."))

    def resolve(self, request: Any) -> Any:
        """Walk the path into ``request``; return ``MISSING`` if any hop fails."""
        current = request
        for segment in self.segments:
            if not segment:
                return MISSING
            current = self._step(current, segment)
            if current is MISSING:
                return MISSING
        return current

    @staticmethod
    def _step(current: Any, segment: str) -> Any:
        # Requests are mappings over the ASGI scope; walk them by attribute.
        if isinstance(current, Mapping) and not isinstance(current, HTTPConnection):
            try:
                value = current[segment]
            except _LOOKUP_ERRORS:
                return MISSING
        else:
            try:
                value = getattr(current, segment)
            except _LOOKUP_ERRORS:
                return MISSING
        if callable(value):
            return MISSING
        return value

    def render(self, request: Any) -> str:
        value = self.resolve(request)
        if value is MISSING or not isinstance(value, _SCALARS):
            return MISSING_SEGMENT
        return escape_segment(str(value))


def normalize_lookup(lookup: str | LookupPath | Sequence[str | LookupPath] | None) -> tuple[LookupPath, ...]:
    """Coerce a lookup option into an ordered tuple of ``LookupPath``.

    A single string is treated as a one-element list.
    """
    if lookup is None:
        return ()
    if isinstance(lookup, (str, LookupPath)):
        lookup = [lookup]
    return tuple(item if isinstance(item, LookupPath) else LookupPath(item) for item in lookup)


def default_key_generator(
    request: Any,
    resource: str,
    method: str,
    lookup: Sequence[LookupPath],
) -> str:
    """Build the counting key for ``request``.

    Pure function of its arguments.

    Args:
        request: Request object (or any attribute/mapping tree).
        resource: Resource identifier, usually the request path.
        method: HTTP method; lowercased in the key.
        lookup: Ordered lookup paths identifying the client.

    Returns:
        The counting key string.
    """
    parts = [KEY_PREFIX, escape_segment(resource), method.lower()]
    for path in lookup:
        parts.append(path.dotted)
        parts.append(path.render(request))
    return KEY_DELIMITER.join(parts)
