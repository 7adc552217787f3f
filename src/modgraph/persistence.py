# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Persist the resolution cache between bundler sessions.

The cache file is advisory: a missing, unreadable or malformed document loads
as an empty cache, and losing it only costs fresh inspection calls. ESM
records carry a file stamp (``mtime_ns`` and ``size`` of the local source);
records whose source changed since the stamp are dropped on load together
with the memo entries that point at them.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Final, TypedDict, cast

from pydantic import BaseModel, ConfigDict, ValidationError

from .graph_cache import ResolutionCache
from .models import MODULE_RECORD_ADAPTER, EsmModule, ModuleRecord
from .namespace import FOREIGN_PACKAGE_PREFIX

LOGGER = logging.getLogger(__name__)

CACHE_FORMAT_VERSION: Final[int] = 1
VERSION_FIELD: Final[str] = "version"
RECORDS_FIELD: Final[str] = "records"
MEMO_FIELD: Final[str] = "memo"
PATHS_FIELD: Final[str] = "paths"
STAMPS_FIELD: Final[str] = "stamps"


class StampPayload(TypedDict):
    """Serialized file stamp of one ESM record."""

    mtime_ns: int
    size: int


class FileStamp(BaseModel):
    """Filesystem metadata used to detect edited sources."""

    model_config = ConfigDict(frozen=True)

    mtime_ns: int
    size: int

    @classmethod
    def of(cls, path: Path) -> FileStamp | None:
        try:
            stat = path.stat()
        except OSError:
            return None
        return cls(mtime_ns=stat.st_mtime_ns, size=stat.st_size)


class _MalformedCache(Exception):
    """Raised internally when the cache document cannot be used."""


class CacheStore:
    """Read and write a :class:`ResolutionCache` at a fixed location."""

    def __init__(
        self,
        path: Path,
        *,
        check_staleness: bool = True,
        foreign_prefix: str = FOREIGN_PACKAGE_PREFIX,
    ) -> None:
        """Initialise the store.

        Args:
            path: Location of the JSON cache document.
            check_staleness: Drop ESM records whose sources changed on load.
            foreign_prefix: Registry marker handed to loaded caches.
        """

        self._path = path
        self._check_staleness = check_staleness
        self._foreign_prefix = foreign_prefix

    @property
    def path(self) -> Path:
        return self._path

    def save(self, cache: ResolutionCache) -> None:
        """Write ``cache`` atomically, creating parent directories as needed."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            VERSION_FIELD: CACHE_FORMAT_VERSION,
            RECORDS_FIELD: [
                [specifier, MODULE_RECORD_ADAPTER.dump_python(record, mode="json")]
                for specifier, record in cache.records.items()
            ],
            MEMO_FIELD: [[requested, canonical] for requested, canonical in cache.memo.items()],
            PATHS_FIELD: [[specifier, local] for specifier, local in cache.paths.items()],
            STAMPS_FIELD: _collect_stamps(cache.records),
        }
        handle, temp_name = tempfile.mkstemp(prefix=".modgraph-", suffix=".json", dir=self._path.parent)
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                json.dump(document, stream, indent=2)
            os.replace(temp_name, self._path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def load(self) -> ResolutionCache:
        """Return the persisted cache, or an empty one when none is usable."""

        empty = ResolutionCache(foreign_prefix=self._foreign_prefix)
        if not self._path.is_file():
            return empty
        try:
            cache, stamps = self._read()
        except _MalformedCache as exc:
            LOGGER.debug("Ignoring unusable resolver cache at %s: %s", self._path, exc.__cause__ or exc)
            return empty
        if self._check_staleness:
            _drop_stale(cache, stamps)
        LOGGER.info("Cache loaded from %s", self._path)
        return cache

    def _read(self) -> tuple[ResolutionCache, dict[str, FileStamp]]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
            raise _MalformedCache from exc
        if not isinstance(raw, dict) or raw.get(VERSION_FIELD) != CACHE_FORMAT_VERSION:
            raise _MalformedCache("unexpected document shape or version")
        try:
            records = {
                str(key): MODULE_RECORD_ADAPTER.validate_python(value)
                for key, value in _pairs(raw.get(RECORDS_FIELD))
            }
            stamps = {str(key): FileStamp.model_validate(value) for key, value in _pairs(raw.get(STAMPS_FIELD, []))}
        except ValidationError as exc:
            raise _MalformedCache from exc
        memo = {str(key): str(value) for key, value in _pairs(raw.get(MEMO_FIELD))}
        paths = {str(key): str(value) for key, value in _pairs(raw.get(PATHS_FIELD))}
        cache = ResolutionCache(records, memo, paths, foreign_prefix=self._foreign_prefix)
        return cache, stamps


def _pairs(value: object) -> list[tuple[object, object]]:
    if not isinstance(value, list):
        raise _MalformedCache("expected an array of pairs")
    pairs: list[tuple[object, object]] = []
    for item in value:
        if not isinstance(item, list) or len(item) != 2:
            raise _MalformedCache("expected an array of pairs")
        pairs.append((item[0], item[1]))
    return pairs


def _collect_stamps(records: Mapping[str, ModuleRecord]) -> list[list[str | StampPayload]]:
    entries: list[list[str | StampPayload]] = []
    for specifier, record in records.items():
        if not isinstance(record, EsmModule):
            continue
        stamp = FileStamp.of(Path(record.local_path))
        if stamp is not None:
            entries.append([specifier, cast(StampPayload, stamp.model_dump())])
    return entries


def _drop_stale(cache: ResolutionCache, stamps: Mapping[str, FileStamp]) -> None:
    stale = {
        specifier
        for specifier, record in cache.records.items()
        if isinstance(record, EsmModule) and FileStamp.of(Path(record.local_path)) != stamps.get(specifier)
    }
    if not stale:
        return
    # Importers of dropped modules go too, transitively: no cached edge may
    # point at a specifier without a record.
    changed = True
    while changed:
        changed = False
        for specifier, record in cache.records.items():
            if specifier in stale or not isinstance(record, EsmModule):
                continue
            if any(edge.resolved_specifier in stale for edge in record.dependencies):
                stale.add(specifier)
                changed = True
    LOGGER.debug("Dropping %d stale cached module(s)", len(stale))
    for specifier in stale:
        del cache.records[specifier]
        cache.paths.pop(specifier, None)
    for requested in [key for key, canonical in cache.memo.items() if canonical in stale]:
        del cache.memo[requested]


__all__ = ["CACHE_FORMAT_VERSION", "CacheStore", "FileStamp"]
