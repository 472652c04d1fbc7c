# src/pipeline/session.py — v2
"""Cache session: restore every class, then save on miss.

Cache classes are independent, so restore and save run them concurrently.
Store faults are soft: a class whose store fails is treated as a cold cache
and the job carries on.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from cacheplan.cache.archive import pack_directory, resolve_storage_path, unpack_archive
from cacheplan.cache.base_cache_store import BaseCacheStore, CacheStoreError
from cacheplan.cache.models import CacheEntry, RestoreOutcome, SaveOutcome
from cacheplan.core.models import CachePlan
from cacheplan.logging.context import set_cache_class_context

logger = logging.getLogger(__name__)


class CacheSession:
    """Restore and save cache classes against one store.

    Args:
        store: Cache store collaborator.
        workdir: Anchor for relative storage paths (project root).
        platform: Recorded on saved entries.
    """

    def __init__(
        self,
        store: BaseCacheStore,
        workdir: Path | None = None,
        platform: str = "",
    ) -> None:
        self._store = store
        self._workdir = workdir
        self._platform = platform

    async def restore_all(self, plans: Sequence[CachePlan]) -> list[RestoreOutcome]:
        """Restore every class concurrently; results keep plan order."""
        return list(await asyncio.gather(*(self._restore_one(p) for p in plans)))

    async def save_all(
        self,
        plans: Sequence[CachePlan],
        outcomes: Sequence[RestoreOutcome],
    ) -> list[SaveOutcome]:
        """Save each class under its exact key unless the exact key already hit."""
        exact_hits = {o.key for o in outcomes if o.exact_hit}
        return list(
            await asyncio.gather(
                *(self._save_one(p, p.key in exact_hits) for p in plans)
            )
        )

    async def _restore_one(self, plan: CachePlan) -> RestoreOutcome:
        name = plan.cache_class.name
        set_cache_class_context(name)
        outcome = RestoreOutcome(cache_class=name, key=plan.key)
        try:
            result = await self._store.lookup(plan.key, plan.restore_keys)
        except CacheStoreError as e:
            logger.warning("Cache store unavailable for %s: %s", plan.key, e)
            return outcome.model_copy(update={"error": str(e)})
        except Exception as e:
            logger.warning("Cache lookup failed for %s: %s", plan.key, e)
            return outcome.model_copy(update={"error": str(e)})

        if result.hit_level is None or result.matched_key is None:
            logger.info("Cache miss for %s, building cold", plan.key)
            return outcome

        # An existing exact key counts as a hit even if its archive is unusable.
        outcome = outcome.model_copy(
            update={"hit_level": result.hit_level, "matched_key": result.matched_key}
        )
        try:
            payload = await self._store.read_payload(result.matched_key)
            if payload is None:
                logger.warning("Entry %s has no payload", result.matched_key)
                return outcome.model_copy(
                    update={"error": f"payload missing for {result.matched_key}"}
                )

            dest = resolve_storage_path(plan.cache_class.path, self._workdir)
            await asyncio.to_thread(unpack_archive, payload, dest)
        except Exception as e:
            logger.warning("Cache restore failed for %s: %s", plan.key, e)
            return outcome.model_copy(update={"error": str(e)})

        logger.info(
            "Restored %s from %s (%s hit)",
            dest, result.matched_key, result.hit_level,
            extra={"data": {"matched_key": result.matched_key, "bytes": len(payload)}},
        )
        return outcome.model_copy(update={"restored_bytes": len(payload)})

    async def _save_one(self, plan: CachePlan, exact_hit: bool) -> SaveOutcome:
        name = plan.cache_class.name
        set_cache_class_context(name)
        outcome = SaveOutcome(cache_class=name, key=plan.key)
        if exact_hit:
            logger.info("Exact hit on %s, not saving", plan.key)
            return outcome.model_copy(update={"skipped": "exact_hit"})

        path = resolve_storage_path(plan.cache_class.path, self._workdir)
        try:
            if not path.is_dir():
                logger.warning("Storage path %s does not exist, not saving", path)
                return outcome.model_copy(update={"skipped": "missing_path"})
            if not any(path.iterdir()):
                logger.info("Storage path %s is empty, not saving", path)
                return outcome.model_copy(update={"skipped": "empty"})

            payload = await asyncio.to_thread(pack_directory, path)
            if payload is None:
                return outcome.model_copy(update={"skipped": "missing_path"})
            entry = CacheEntry(
                key=plan.key,
                cache_class=name,
                path=plan.cache_class.path,
                created_at=datetime.now(timezone.utc),
                size_bytes=len(payload),
                platform=self._platform,
            )
            await self._store.put(plan.key, entry, payload)
        except CacheStoreError as e:
            logger.warning("Cache store unavailable, %s not saved: %s", plan.key, e)
            return outcome.model_copy(update={"error": str(e)})
        except Exception as e:
            logger.warning("Cache save failed for %s: %s", plan.key, e)
            return outcome.model_copy(update={"error": str(e)})

        logger.info(
            "Saved %s as %s",
            path, plan.key,
            extra={"data": {"key": plan.key, "size_bytes": len(payload)}},
        )
        return outcome.model_copy(update={"saved": True, "size_bytes": len(payload)})
