# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""In-memory store of module records produced by graph inspection."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from .models import (
    DependencyEdge,
    DependencyGraphSnapshot,
    EsmModule,
    ErrorModule,
    ForeignPackageModule,
    MediaType,
    ModuleRecord,
    NativeModule,
    SnapshotEntry,
    SnapshotErrorEntry,
    SnapshotEsmEntry,
    SnapshotNativeEntry,
    SnapshotPackageEntry,
)
from .namespace import FOREIGN_PACKAGE_PREFIX, unprefix_foreign_specifier

LOGGER = logging.getLogger(__name__)


class ResolutionCache:
    """Hold the three resolution maps owned by a resolver.

    ``records`` maps canonical specifiers to module records, ``memo`` maps ids
    requested at the root to their canonical specifier, and ``paths`` indexes
    the local file of every ESM record. The cache only grows; nothing is
    evicted during a session.
    """

    def __init__(
        self,
        records: Mapping[str, ModuleRecord] | None = None,
        memo: Mapping[str, str] | None = None,
        paths: Mapping[str, str] | None = None,
        *,
        foreign_prefix: str = FOREIGN_PACKAGE_PREFIX,
    ) -> None:
        self.records: dict[str, ModuleRecord] = dict(records or {})
        self.memo: dict[str, str] = dict(memo or {})
        self.paths: dict[str, str] = dict(paths or {})
        self.foreign_prefix = foreign_prefix

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, specifier: object) -> bool:
        return specifier in self.records

    def __iter__(self) -> Iterator[str]:
        return iter(self.records)

    def get(self, specifier: str) -> ModuleRecord | None:
        return self.records.get(specifier)

    def memoized(self, requested_id: str) -> str | None:
        """Return the memoized canonical specifier when its record is still cached."""

        canonical = self.memo.get(requested_id)
        if canonical is None or canonical not in self.records:
            return None
        return canonical

    def remember(self, requested_id: str, canonical: str) -> None:
        self.memo[requested_id] = canonical

    def store(self, record: ModuleRecord) -> bool:
        """Insert ``record`` unless a record for its specifier is already kept.

        An existing record is only replaced when it is an :class:`ErrorModule`
        and the newcomer is not.

        Args:
            record: Record to insert.

        Returns:
            bool: ``True`` when the cache changed.
        """

        existing = self.records.get(record.specifier)
        if existing is not None and not (isinstance(existing, ErrorModule) and not isinstance(record, ErrorModule)):
            return False
        self.records[record.specifier] = record
        if isinstance(record, EsmModule):
            self.paths[record.specifier] = record.local_path
        return True

    def ingest(self, snapshot: DependencyGraphSnapshot) -> int:
        """Store every module of ``snapshot`` and return how many were new.

        Args:
            snapshot: Inspection result to ingest.

        Returns:
            int: Number of records added or upgraded.
        """

        added = 0
        for entry in snapshot.modules:
            record = self.record_from_entry(entry, snapshot.redirects)
            if record is not None and self.store(record):
                added += 1
        return added

    def record_from_entry(self, entry: SnapshotEntry, redirects: Mapping[str, str]) -> ModuleRecord | None:
        """Convert one snapshot entry into the record stored for it.

        ESM dependency targets are rewritten through ``redirects`` so lookups
        always land on canonical specifiers.

        Args:
            entry: Entry taken from the snapshot's ``modules`` list.
            redirects: Redirect map of the same snapshot.

        Returns:
            ModuleRecord | None: Record to store, or ``None`` for entries the
            cache does not track.
        """

        match entry:
            case SnapshotEsmEntry():
                media_type = MediaType.from_wire(entry.media_type)
                if media_type is None:
                    return ErrorModule(
                        specifier=entry.specifier,
                        message=f"Unsupported media type: {entry.media_type}",
                    )
                edges = tuple(
                    DependencyEdge(
                        relative_path=dependency.specifier,
                        resolved_specifier=redirects.get(target, target),
                    )
                    for dependency in entry.dependencies
                    if (target := dependency.target) is not None
                )
                return EsmModule(
                    specifier=entry.specifier,
                    local_path=entry.local,
                    media_type=media_type,
                    byte_size=entry.size,
                    dependencies=edges,
                )
            case SnapshotPackageEntry():
                native_id = unprefix_foreign_specifier(entry.specifier, prefix=self.foreign_prefix)
                if native_id is None:
                    return ErrorModule(
                        specifier=entry.specifier,
                        message=f"Unrecognised foreign-package specifier: {entry.specifier}",
                    )
                return ForeignPackageModule(
                    specifier=entry.specifier,
                    package_id=entry.package_id,
                    native_id=native_id,
                )
            case SnapshotNativeEntry():
                return NativeModule(specifier=entry.specifier, module_name=entry.module_name)
            case SnapshotErrorEntry():
                return ErrorModule(specifier=entry.specifier, message=entry.error)
            case _:
                LOGGER.debug("Ignoring untracked module entry %s", entry.specifier)
                return None


__all__ = ["ResolutionCache"]
