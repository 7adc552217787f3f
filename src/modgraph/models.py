# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Typed module records and the wire models of ``<tool> info --json`` output.

Two families of models live here. The ``Snapshot*`` models mirror the JSON
emitted by the inspection command and tolerate unknown fields. The record
models (:class:`EsmModule`, :class:`ForeignPackageModule`,
:class:`NativeModule`, :class:`ErrorModule`) are what the resolution cache
stores; they form the :data:`ModuleRecord` sum type discriminated by ``kind``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Final, Literal, TypeAlias

from pydantic import AliasChoices, BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter


class MediaType(str, Enum):
    """Enumerate media types the bundler is able to load."""

    TYPESCRIPT = "TypeScript"
    TSX = "TSX"
    JAVASCRIPT = "JavaScript"
    JSX = "JSX"
    JSON = "Json"

    @property
    def loader(self) -> str:
        """Return the bundler loader name used to transform this media type."""

        return _LOADERS[self]

    @classmethod
    def from_wire(cls, raw: str) -> MediaType | None:
        """Return the media type matching ``raw`` or ``None`` when unsupported.

        Module-flavoured variants reported by the tool (``Mjs``, ``Cts`` and
        friends) fold onto their base language.

        Args:
            raw: Media type string reported by the inspection command.

        Returns:
            MediaType | None: Matching member, or ``None`` for declaration
            files, wasm and other media the bundler cannot load.
        """

        try:
            return cls(raw)
        except ValueError:
            return _WIRE_ALIASES.get(raw)


_LOADERS: Final[dict[MediaType, str]] = {
    MediaType.TYPESCRIPT: "ts",
    MediaType.TSX: "tsx",
    MediaType.JAVASCRIPT: "js",
    MediaType.JSX: "jsx",
    MediaType.JSON: "json",
}

_WIRE_ALIASES: Final[dict[str, MediaType]] = {
    "Mjs": MediaType.JAVASCRIPT,
    "Cjs": MediaType.JAVASCRIPT,
    "Mts": MediaType.TYPESCRIPT,
    "Cts": MediaType.TYPESCRIPT,
}


# --- stored records -----------------------------------------------------------


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class DependencyEdge(_Record):
    """One import of an ESM module: the text as written and where it resolves."""

    relative_path: str
    resolved_specifier: str


class EsmModule(_Record):
    """An ECMAScript module with a local copy the bundler can load."""

    kind: Literal["esm"] = "esm"
    specifier: str
    local_path: str
    media_type: MediaType
    byte_size: int = 0
    dependencies: tuple[DependencyEdge, ...] = ()

    def dependency_for(self, relative_path: str) -> str | None:
        """Return the resolved specifier imported as ``relative_path``."""

        for edge in self.dependencies:
            if edge.relative_path == relative_path:
                return edge.resolved_specifier
        return None


class ForeignPackageModule(_Record):
    """A module provided by a package from the foreign registry."""

    kind: Literal["pkg"] = "pkg"
    specifier: str
    package_id: str
    native_id: str


class NativeModule(_Record):
    """A runtime built-in module (``node:fs`` and the like)."""

    kind: Literal["native"] = "native"
    specifier: str
    module_name: str


class ErrorModule(_Record):
    """A module the inspection command reported as unresolvable."""

    kind: Literal["error"] = "error"
    specifier: str
    message: str


ModuleRecord: TypeAlias = Annotated[
    EsmModule | ForeignPackageModule | NativeModule | ErrorModule,
    Field(discriminator="kind"),
]

MODULE_RECORD_ADAPTER: Final[TypeAdapter[ModuleRecord]] = TypeAdapter(ModuleRecord)


# --- wire models --------------------------------------------------------------


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class DependencyTarget(_WireModel):
    """Target of one side (code or type) of a dependency.

    Imports the tool could not resolve carry ``error`` instead of ``specifier``.
    """

    specifier: str | None = None
    error: str | None = None


class SnapshotDependency(_WireModel):
    """Dependency entry as emitted by the inspection command."""

    specifier: str
    code: DependencyTarget | None = None
    type_target: DependencyTarget | None = Field(default=None, alias="type")

    @property
    def target(self) -> str | None:
        """Return the code target, falling back to the type-only target."""

        for side in (self.code, self.type_target):
            if side is not None and side.specifier is not None:
                return side.specifier
        return None


class SnapshotEsmEntry(_WireModel):
    kind: Literal["esm"]
    specifier: str
    local: str
    media_type: str = Field(alias="mediaType")
    size: int = 0
    dependencies: list[SnapshotDependency] = Field(default_factory=list)


class SnapshotPackageEntry(_WireModel):
    kind: Literal["npm", "pkg"]
    specifier: str
    package_id: str = Field(validation_alias=AliasChoices("packageId", "npmPackage", "package_id"))


class SnapshotNativeEntry(_WireModel):
    kind: Literal["node", "native"]
    specifier: str
    module_name: str = Field(validation_alias=AliasChoices("moduleName", "module_name"))


class SnapshotErrorEntry(_WireModel):
    specifier: str
    error: str


class SnapshotOtherEntry(_WireModel):
    """Entry of a kind the resolver does not track (``external`` URLs, for example)."""

    kind: str | None = None
    specifier: str


_ENTRY_TAGS: Final[dict[str, str]] = {
    "esm": "esm",
    "npm": "pkg",
    "pkg": "pkg",
    "node": "native",
    "native": "native",
}


def _entry_tag(value: Any) -> str:
    if isinstance(value, dict):
        if "error" in value:
            return "error"
        kind = value.get("kind")
    else:
        if isinstance(value, SnapshotErrorEntry):
            return "error"
        kind = getattr(value, "kind", None)
    return _ENTRY_TAGS.get(kind, "other") if isinstance(kind, str) else "other"


SnapshotEntry: TypeAlias = Annotated[
    Annotated[SnapshotEsmEntry, Tag("esm")]
    | Annotated[SnapshotPackageEntry, Tag("pkg")]
    | Annotated[SnapshotNativeEntry, Tag("native")]
    | Annotated[SnapshotErrorEntry, Tag("error")]
    | Annotated[SnapshotOtherEntry, Tag("other")],
    Discriminator(_entry_tag),
]


class DependencyGraphSnapshot(_WireModel):
    """One inspection result: the closure reachable from the requested root."""

    version: int = 1
    roots: list[str] = Field(min_length=1)
    redirects: dict[str, str] = Field(default_factory=dict)
    modules: list[SnapshotEntry] = Field(default_factory=list)

    def redirect(self, specifier: str) -> str:
        """Return the redirect target of ``specifier``, or ``specifier`` itself."""

        return self.redirects.get(specifier, specifier)

    def canonical_root(self) -> str:
        """Return the canonical specifier of the requested entry point."""

        return self.redirect(self.roots[0])


__all__ = [
    "MODULE_RECORD_ADAPTER",
    "DependencyEdge",
    "DependencyGraphSnapshot",
    "DependencyTarget",
    "EsmModule",
    "ErrorModule",
    "ForeignPackageModule",
    "MediaType",
    "ModuleRecord",
    "NativeModule",
    "SnapshotDependency",
    "SnapshotEntry",
    "SnapshotErrorEntry",
    "SnapshotEsmEntry",
    "SnapshotNativeEntry",
    "SnapshotOtherEntry",
    "SnapshotPackageEntry",
]
