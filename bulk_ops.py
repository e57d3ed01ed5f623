"""Concurrent multi-record operations with per-record failure attribution."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List


_logger = logging.getLogger("crmforms.bulk")


def _failure(record_id: Any, exc: BaseException) -> dict:
    return {
        "id": record_id,
        "code": getattr(exc, "code", None) or type(exc).__name__,
        "message": getattr(exc, "message", None) or str(exc) or type(exc).__name__,
    }


async def bulk_remove(store, module: str, ids: List[Any]) -> Dict[str, Any]:
    """Remove every id concurrently; successes stand even when others fail."""
    unique_ids = list(dict.fromkeys(ids))
    results = await asyncio.gather(
        *(store.remove(module, record_id) for record_id in unique_ids),
        return_exceptions=True,
    )
    removed: List[Any] = []
    failed: List[dict] = []
    for record_id, result in zip(unique_ids, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            failed.append(_failure(record_id, result))
        else:
            removed.append(record_id)
    if failed:
        _logger.warning("bulk_remove_partial module=%s removed=%s failed=%s", module, len(removed), len(failed))
    return {"ok": not failed, "removed": removed, "failed": failed}
