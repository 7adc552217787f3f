# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Decision logic behind the bundler's resolve hook.

The bundler plugin itself (hook registration, loading, transforms) lives
outside this package. :class:`BundlerBridge` turns a resolver answer into the
action the hook should take, and :class:`SessionModuleRegistry` hands natively
imported modules to the server-side loader of one build session.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .codec import is_virtual_id, parse_virtual_id, to_virtual_id
from .errors import UnresolvedSpecifierError
from .models import EsmModule, ErrorModule, ForeignPackageModule, NativeModule
from .resolver import Resolver

PROJECT_SOURCE_SUFFIXES: Final[frozenset[str]] = frozenset({".js", ".ts", ".jsx", ".tsx"})
IGNORED_ROOT_PREFIXES: Final[tuple[str, ...]] = ("\0", "/", ".", "virtual:")
VENDOR_DIRECTORY: Final[str] = "node_modules"
_GLOB_CHARACTERS: Final[frozenset[str]] = frozenset("*?[")


@dataclass(frozen=True, slots=True)
class BridgeResolution:
    """What the bundler should do with an id.

    When ``native_id`` is set the bundler resolves that id itself. Otherwise
    ``id`` is either a virtual id loaded through the resolver or, with
    ``external`` set, an id left to the runtime.
    """

    id: str
    external: bool = False
    native_id: str | None = None


class SessionModuleRegistry:
    """Modules imported natively during one build session, keyed by specifier."""

    def __init__(self) -> None:
        self._modules: dict[str, Mapping[str, object]] = {}

    def __contains__(self, specifier: object) -> bool:
        return specifier in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def register(self, specifier: str, namespace: Mapping[str, object]) -> None:
        self._modules[specifier] = namespace

    def get(self, specifier: str) -> Mapping[str, object] | None:
        return self._modules.get(specifier)

    def clear(self) -> None:
        self._modules.clear()

    def render_reexport_stub(self, specifier: str, *, registry_name: str = "__modgraphSession") -> str:
        """Return module source re-exporting the registered namespace of ``specifier``.

        Args:
            specifier: Specifier previously passed to :meth:`register`.
            registry_name: Name under which the loader exposes this registry.

        Returns:
            str: JavaScript module source with one named export per member
            plus a default export when the namespace has one.

        Raises:
            KeyError: If ``specifier`` has not been registered.
        """

        namespace = self._modules[specifier]
        lines = [f"const module = {registry_name}.get({_js_string(specifier)});", ""]
        lines.extend(f"export const {name} = module.{name};" for name in namespace if name != "default")
        if "default" in namespace:
            lines.append("export default module.default;")
        return "\n".join(lines) + "\n"


def _js_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


class BundlerBridge:
    """Map bundler resolve requests onto resolver answers."""

    def __init__(self, resolver: Resolver, root: Path, *, ssr_externals: Iterable[str] = ()) -> None:
        """Initialise the bridge.

        Args:
            resolver: Resolver answering module lookups.
            root: Project root; importers below it are project sources.
            ssr_externals: Exact ids or glob patterns kept external in SSR builds.
        """

        self._resolver = resolver
        self._root = root
        self._ssr_externals = tuple(ssr_externals)
        self.registry = SessionModuleRegistry()

    def resolve_id(self, requested_id: str, importer: str | None = None, *, ssr: bool = False) -> BridgeResolution | None:
        """Decide how the bundler should resolve ``requested_id``.

        Args:
            requested_id: Import string seen by the bundler.
            importer: Id of the importing module as the bundler knows it.
            ssr: ``True`` for server-side builds.

        Returns:
            BridgeResolution | None: Resolution to apply, or ``None`` when the
            id is not handled here.

        Raises:
            UnresolvedSpecifierError: If the tool reported the target as an error.
        """

        importer_specifier = self._importer_specifier(importer)
        if importer is not None and importer_specifier is None:
            return None
        if importer_specifier is None and requested_id.startswith(IGNORED_ROOT_PREFIXES):
            return None

        target = self._resolver.resolve(requested_id, importer_specifier)
        if target is None:
            return None

        record = self._resolver.retrieve_module(target)
        match record:
            case ErrorModule():
                raise UnresolvedSpecifierError(requested_id, record.message)
            case ForeignPackageModule():
                return BridgeResolution(id=requested_id, native_id=record.native_id)
            case NativeModule():
                return BridgeResolution(id=requested_id, external=True)
            case EsmModule():
                virtual_id = to_virtual_id(record.media_type, record.specifier, record.local_path)
                return BridgeResolution(id=virtual_id, external=ssr and self.is_ssr_external(requested_id))
        raise UnresolvedSpecifierError(requested_id)

    def is_ssr_external(self, requested_id: str) -> bool:
        """Return ``True`` when ``requested_id`` matches a configured SSR external."""

        for pattern in self._ssr_externals:
            if _GLOB_CHARACTERS.intersection(pattern):
                if fnmatch.fnmatchcase(requested_id, pattern):
                    return True
            elif requested_id == pattern:
                return True
        return False

    def _importer_specifier(self, importer: str | None) -> str | None:
        if importer is None:
            return None
        if is_virtual_id(importer):
            decoded = parse_virtual_id(importer)
            return decoded.canonical_specifier if decoded is not None else None
        path = Path(importer)
        if not path.is_relative_to(self._root) or VENDOR_DIRECTORY in path.parts:
            return None
        if path.suffix not in PROJECT_SOURCE_SUFFIXES:
            return None
        return self._resolver.resolve(importer)


__all__ = ["BridgeResolution", "BundlerBridge", "SessionModuleRegistry"]
