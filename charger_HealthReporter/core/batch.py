# charger_HealthReporter/core/batch.py
from __future__ import annotations
import asyncio
import inspect
import logging
from typing import Any, Callable, Mapping

_LOG = logging.getLogger(__name__)

Processor = Callable[[str, Any], Any]


class BatchFailedError(RuntimeError):
    """No file of a batch could be processed."""

    def __init__(self, errors: Mapping[str, str]):
        self.errors = dict(errors)
        detail = "; ".join(f"{k}: {v}" for k, v in sorted(self.errors.items()))
        super().__init__(
            f"None of the {len(self.errors)} file(s) could be processed. "
            f"Check the files and upload them again. ({detail})"
        )


async def _call(processor: Processor, name: str, payload: Any):
    if inspect.iscoroutinefunction(processor):
        return await processor(name, payload)
    result = await asyncio.to_thread(processor, name, payload)
    if inspect.isawaitable(result):
        result = await result
    return result


async def process_batch_async(entries: Mapping[str, Any], processor: Processor,
                              max_concurrency: int | None = None) -> dict[str, dict]:
    """
    Submit every entry to ``processor`` concurrently and wait for all of them.

    Each file writes only its own pre-allocated slot. Files that fail are
    logged and left out; if none succeeds, BatchFailedError is raised and no
    partial result is returned.
    """
    names = list(entries)
    slots: dict[str, dict | None] = dict.fromkeys(names)
    errors: dict[str, str] = {}
    gate = asyncio.Semaphore(max_concurrency) if max_concurrency and max_concurrency > 0 else None

    async def one(name: str) -> None:
        try:
            if gate is None:
                result = await _call(processor, name, entries[name])
            else:
                async with gate:
                    result = await _call(processor, name, entries[name])
        except Exception as e:
            _LOG.warning("processing failed for %s: %s", name, e)
            errors[name] = str(e) or type(e).__name__
            return
        if not isinstance(result, dict):
            _LOG.warning("processing returned no result for %s", name)
            errors[name] = "empty result"
            return
        slots[name] = result

    await asyncio.gather(*(one(n) for n in names))

    done = {n: r for n, r in slots.items() if r is not None}
    if names and not done:
        _LOG.error("batch failed: 0 of %d file(s) processed", len(names))
        raise BatchFailedError(errors)
    _LOG.info("batch processed %d of %d file(s)", len(done), len(names))
    return done


def process_batch(entries: Mapping[str, Any], processor: Processor,
                  max_concurrency: int | None = None) -> dict[str, dict]:
    return asyncio.run(process_batch_async(entries, processor, max_concurrency))
