# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Public resolution API backed by graph inspection and the resolution cache.

One inspection call returns the whole closure reachable from the requested
entry point. Ingesting it once means the tool runs once per distinct root id
the bundler asks about, while every nested import is answered from the
importer's recorded dependency list.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from threading import RLock
from types import TracebackType
from typing import Any, Final

from .codec import to_virtual_id
from .config import ResolverSettings, load_settings
from .console import render_summary
from .errors import InternalConsistencyError, InvocationError, ModGraphError, ModuleNotCachedError
from .graph_cache import ResolutionCache
from .invoker import GraphInspector, GraphInvoker
from .models import DependencyGraphSnapshot, EsmModule, ModuleRecord
from .persistence import CacheStore

LOGGER = logging.getLogger(__name__)

_MS_PER_SECOND: Final[int] = 1000


@dataclass(frozen=True, slots=True)
class ResolverSummary:
    """Counters describing one resolver session."""

    cached_modules: int
    root_lookups: int
    unknown_ids: int
    invocations: int
    invocation_seconds: float


class Resolver:
    """Resolve module specifiers through the external inspection tool.

    Every operation that can reach the inspection tool or mutate the cache runs
    under a single re-entrant lock, so concurrent callers observe at most one
    inspection in flight per resolver.
    """

    def __init__(
        self,
        settings: ResolverSettings,
        *,
        inspector: GraphInspector | None = None,
        store: CacheStore | None = None,
    ) -> None:
        """Initialise the resolver.

        Args:
            settings: Resolver configuration.
            inspector: Graph inspector to use instead of a :class:`GraphInvoker`.
            store: Cache store to use instead of the one derived from ``settings``.
        """

        self._settings = settings
        self._inspector = inspector or GraphInvoker(settings.tool, timeout=settings.invocation_timeout)
        if store is None and settings.persist:
            store = CacheStore(
                settings.resolved_cache_file,
                check_staleness=settings.check_staleness,
                foreign_prefix=settings.foreign_prefix,
            )
        self._store = store
        self._cache = ResolutionCache(foreign_prefix=settings.foreign_prefix)
        self._unknown: set[str] = set()
        self._lock = RLock()
        self._invocations = 0
        self._invocation_seconds = 0.0

    @classmethod
    def for_project(cls, root: Path, **overrides: Any) -> Resolver:
        """Return a resolver configured from ``root``'s settings layers."""

        return cls(load_settings(root, overrides=overrides))

    @property
    def settings(self) -> ResolverSettings:
        return self._settings

    @property
    def cache(self) -> ResolutionCache:
        return self._cache

    @property
    def unknown_ids(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._unknown)

    def resolve(self, requested_id: str, importer: str | None = None) -> str | None:
        """Return the canonical specifier ``requested_id`` resolves to.

        Args:
            requested_id: Import string as written, or a root entry id.
            importer: Canonical specifier of the importing module, ``None`` for
                root resolution.

        Returns:
            str | None: Canonical specifier, or ``None`` when the id cannot be
            resolved and the bundler should fall back to its own resolution.

        Raises:
            InternalConsistencyError: If ``importer`` is not a cached ESM module.
            InvocationError: If the inspection tool fails for a new root id.
        """

        with self._lock:
            if importer is not None:
                return self._resolve_nested(requested_id, importer)
            return self._resolve_root(requested_id)

    def resolve_virtual_id(self, requested_id: str, importer: str | None = None) -> str | None:
        """Resolve ``requested_id`` and return the virtual id of an ESM target."""

        with self._lock:
            canonical = self.resolve(requested_id, importer)
            if canonical is None:
                return None
            record = self._cache.get(canonical)
            if not isinstance(record, EsmModule):
                return None
            return to_virtual_id(record.media_type, record.specifier, record.local_path)

    def retrieve_module(self, canonical: str) -> ModuleRecord:
        """Return the cached record for ``canonical``.

        Raises:
            ModuleNotCachedError: If ``canonical`` was never resolved.
        """

        with self._lock:
            record = self._cache.get(canonical)
        if record is None:
            raise ModuleNotCachedError(canonical)
        return record

    def collect_transitive_deps(self, entry: str) -> set[str]:
        """Return every specifier reachable from ``entry``, ``entry`` included.

        Specifiers missing from the cache are resolved on demand; those that
        cannot be resolved are skipped so a partially broken graph still
        yields everything reachable around the breakage.

        Args:
            entry: Specifier to start the walk from.

        Returns:
            set[str]: Canonical specifiers visited by the walk. An ``entry``
            that redirects elsewhere is replaced by its canonical specifier.
        """

        with self._lock:
            seen: set[str] = set()
            redirected: set[str] = set()
            pending = [entry]
            while pending:
                specifier = pending.pop()
                if specifier in seen:
                    continue
                seen.add(specifier)
                if specifier not in self._cache:
                    try:
                        canonical = self._resolve_root(specifier)
                    except ModGraphError as exc:
                        LOGGER.debug("Skipping unresolvable module %s: %s", specifier, exc)
                        continue
                    if canonical is None:
                        continue
                    if canonical != specifier:
                        redirected.add(specifier)
                        pending.append(canonical)
                        continue
                record = self._cache.get(specifier)
                if isinstance(record, EsmModule):
                    pending.extend(edge.resolved_specifier for edge in reversed(record.dependencies))
            return seen - redirected

    def read_cache(self) -> None:
        """Merge the persisted cache into this resolver, if persistence is enabled."""

        if self._store is None:
            return
        loaded = self._store.load()
        with self._lock:
            for record in loaded.records.values():
                self._cache.store(record)
            for requested, canonical in loaded.memo.items():
                self._cache.memo.setdefault(requested, canonical)

    def save_cache(self) -> None:
        """Write the cache to disk, if persistence is enabled."""

        if self._store is None:
            return
        with self._lock:
            self._store.save(self._cache)

    def finalize(self) -> None:
        """Flush the cache and print the session summary when configured to."""

        self.save_cache()
        if self._settings.report_summary:
            render_summary(self.summary())

    def summary(self) -> ResolverSummary:
        with self._lock:
            return ResolverSummary(
                cached_modules=len(self._cache),
                root_lookups=len(self._cache.memo),
                unknown_ids=len(self._unknown),
                invocations=self._invocations,
                invocation_seconds=self._invocation_seconds,
            )

    def __enter__(self) -> Resolver:
        self.read_cache()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.finalize()

    def _resolve_nested(self, requested_id: str, importer: str) -> str | None:
        record = self._cache.get(importer)
        if record is None:
            raise InternalConsistencyError(f"Importer module not found: {importer}")
        if not isinstance(record, EsmModule):
            raise InternalConsistencyError(f"Importer is not an ESM module: {importer}")
        return record.dependency_for(requested_id)

    def _resolve_root(self, requested_id: str) -> str | None:
        if requested_id in self._unknown:
            return None
        memoized = self._cache.memoized(requested_id)
        if memoized is not None:
            return memoized

        snapshot = self._inspect(requested_id)
        self._cache.ingest(snapshot)
        canonical = snapshot.canonical_root()
        if canonical not in self._cache:
            LOGGER.debug("No module record for %s (requested as %s)", canonical, requested_id)
            self._unknown.add(requested_id)
            return None
        self._cache.remember(requested_id, canonical)
        self._persist()
        return canonical

    def _inspect(self, requested_id: str) -> DependencyGraphSnapshot:
        started = time.perf_counter()
        try:
            snapshot = self._inspector.resolve_graph(requested_id, self._settings.root)
        except InvocationError:
            self._unknown.add(requested_id)
            raise
        finally:
            elapsed = time.perf_counter() - started
            self._invocations += 1
            self._invocation_seconds += elapsed
        LOGGER.info(
            '"%s info" %d ms -> %s',
            self._settings.tool,
            round(elapsed * _MS_PER_SECOND),
            requested_id,
        )
        return snapshot

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save(self._cache)
        except OSError as exc:
            LOGGER.warning("Unable to write resolver cache to %s: %s", self._store.path, exc)


__all__ = ["Resolver", "ResolverSummary"]
