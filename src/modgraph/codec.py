# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Encode and decode the virtual module ids handed to the bundler.

A virtual id starts with a NUL-led sentinel no filesystem path can produce,
followed by the media type, canonical specifier and local path joined by
``::``. Each field is percent-encoded, so delimiters (and ``%`` itself) that
occur inside specifiers or paths survive the round trip.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final
from urllib.parse import quote, unquote

from .errors import MalformedVirtualIdError
from .models import MediaType

VIRTUAL_ID_SENTINEL: Final[str] = "\0modgraph::"
FIELD_DELIMITER: Final[str] = "::"
_SAFE_CHARACTERS: Final[str] = "/"
_FIELD_COUNT: Final[int] = 3


@dataclass(frozen=True, slots=True)
class VirtualModuleId:
    """Decoded payload of a virtual module id."""

    media_type: MediaType
    canonical_specifier: str
    local_path: str


def is_virtual_id(value: str) -> bool:
    """Return ``True`` when ``value`` carries the virtual id sentinel."""

    return value.startswith(VIRTUAL_ID_SENTINEL)


def to_virtual_id(media_type: MediaType, canonical_specifier: str, local_path: str) -> str:
    """Return the opaque virtual id for a resolved module.

    Args:
        media_type: Media type used to choose the bundler loader.
        canonical_specifier: Redirect-terminal specifier of the module.
        local_path: Filesystem location of the module's source.

    Returns:
        str: Sentinel-prefixed virtual id.
    """

    fields = (
        MediaType(media_type).value,
        quote(canonical_specifier, safe=_SAFE_CHARACTERS),
        quote(local_path, safe=_SAFE_CHARACTERS),
    )
    return VIRTUAL_ID_SENTINEL + FIELD_DELIMITER.join(fields)


def parse_virtual_id(value: str) -> VirtualModuleId | None:
    """Decode ``value`` produced by :func:`to_virtual_id`.

    Args:
        value: Candidate id seen by the bundler.

    Returns:
        VirtualModuleId | None: Decoded fields, or ``None`` when ``value`` is
        not a virtual id.

    Raises:
        MalformedVirtualIdError: If ``value`` has the sentinel but cannot be decoded.
    """

    if not is_virtual_id(value):
        return None
    fields = value[len(VIRTUAL_ID_SENTINEL) :].split(FIELD_DELIMITER)
    if len(fields) != _FIELD_COUNT:
        raise MalformedVirtualIdError(f"Expected {_FIELD_COUNT} fields in virtual id {value!r}")
    raw_media, raw_specifier, raw_path = fields
    try:
        media_type = MediaType(raw_media)
    except ValueError as exc:
        raise MalformedVirtualIdError(f"Unknown media type {raw_media!r} in virtual id") from exc
    return VirtualModuleId(
        media_type=media_type,
        canonical_specifier=unquote(raw_specifier),
        local_path=unquote(raw_path),
    )


__all__ = [
    "FIELD_DELIMITER",
    "VIRTUAL_ID_SENTINEL",
    "VirtualModuleId",
    "is_virtual_id",
    "parse_virtual_id",
    "to_virtual_id",
]
