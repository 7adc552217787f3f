# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Translate foreign-package specifiers into the bundler's native namespace."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Final

FOREIGN_PACKAGE_PREFIX: Final[str] = "pkg:"


@lru_cache(maxsize=8)
def _foreign_pattern(prefix: str) -> re.Pattern[str]:
    # name is either ``@scope/name`` or a bare name; the version runs to the next slash.
    return re.compile(
        rf"^{re.escape(prefix)}/?(?P<name>@[^/@]+/[^/@]+|[^/@]+)(?:@(?P<version>[^/]*))?(?P<subpath>/.*)?$",
    )


def is_foreign_package(specifier: str, *, prefix: str = FOREIGN_PACKAGE_PREFIX) -> bool:
    """Return ``True`` when ``specifier`` carries the foreign-registry marker."""

    return specifier.startswith(prefix)


def unprefix_foreign_specifier(specifier: str, *, prefix: str = FOREIGN_PACKAGE_PREFIX) -> str | None:
    """Return the native id for ``specifier`` or ``None`` when it is not foreign.

    Both the canonical form emitted by the inspection tool (``pkg:/react@18``)
    and the import-site form (``pkg:react@18/jsx-runtime``) are accepted.

    Args:
        specifier: Import string to translate.
        prefix: Registry marker, ``pkg:`` unless the tool uses another one.

    Returns:
        str | None: Package name plus sub-path with the version pin removed,
        or ``None`` for non-prefixed or malformed specifiers.
    """

    if not is_foreign_package(specifier, prefix=prefix):
        return None
    match = _foreign_pattern(prefix).match(specifier)
    if match is None:
        return None
    return match.group("name") + (match.group("subpath") or "")


def translate_foreign_package(specifier: str, *, prefix: str = FOREIGN_PACKAGE_PREFIX) -> str:
    """Strip the registry marker and version pin from a foreign-package specifier.

    Args:
        specifier: Specifier such as ``pkg:/@scope/name@7.22.0/lib/index.js``.
        prefix: Registry marker, ``pkg:`` unless the tool uses another one.

    Returns:
        str: Native lookup id such as ``@scope/name/lib/index.js``.

    Raises:
        ValueError: If ``specifier`` is not a well-formed foreign-package specifier.
    """

    native = unprefix_foreign_specifier(specifier, prefix=prefix)
    if native is None:
        raise ValueError(f"Not a foreign-package specifier: {specifier!r}")
    return native


__all__ = [
    "FOREIGN_PACKAGE_PREFIX",
    "is_foreign_package",
    "translate_foreign_package",
    "unprefix_foreign_specifier",
]
