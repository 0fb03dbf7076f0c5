"""
Background worker for layout transforms.

Requests are plain dict messages ({id, type, payload}) handled by a single
worker thread; each caller awaits a future keyed by the request's
correlation id. There is no queue limit and no cancellation: a dispatched
request always runs to completion, and responses may arrive out of order.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Iterable, Mapping

from smart_format.engine.presets import PresetRegistry
from smart_format.engine.transform import TransformOptions, transform_elements
from smart_format.engine.validate import validate_elements
from smart_format.models import Element, LayoutContext

logger = logging.getLogger(__name__)

TRANSFORM_LAYOUT = "TRANSFORM_LAYOUT"
BATCH_TRANSFORM = "BATCH_TRANSFORM"
VALIDATE_LAYOUT = "VALIDATE_LAYOUT"


class OffloadUnavailable(RuntimeError):
    """The worker cannot accept requests (closed, or never started)."""


class OffloadError(RuntimeError):
    """The worker accepted a request but answered with an error."""


def transform_payload(
    elements: Iterable[Element],
    from_context: LayoutContext,
    to_context: LayoutContext,
    options: TransformOptions,
) -> dict[str, Any]:
    return {
        "elements": [el.to_dict() for el in elements],
        "fromContext": from_context.to_dict(),
        "toContext": to_context.to_dict(),
        "options": options.to_dict(),
    }


def _run_transform(payload: Mapping[str, Any], registry: PresetRegistry) -> list[dict[str, Any]]:
    result = transform_elements(
        [Element.from_dict(el) for el in payload["elements"]],
        LayoutContext.from_dict(payload["fromContext"]),
        LayoutContext.from_dict(payload["toContext"]),
        TransformOptions.from_dict(payload.get("options")),
        registry,
    )
    return [el.to_dict() for el in result]


def handle_message(message: Mapping[str, Any], registry: PresetRegistry) -> dict[str, Any]:
    """Worker side: answer one request. Errors are reported in the response, not raised."""
    msg_id = message.get("id")
    try:
        kind = message["type"]
        payload = message["payload"]
        if kind == TRANSFORM_LAYOUT:
            result: Any = _run_transform(payload, registry)
        elif kind == BATCH_TRANSFORM:
            result = [_run_transform(batch, registry) for batch in payload["batches"]]
        elif kind == VALIDATE_LAYOUT:
            result = validate_elements(
                [Element.from_dict(el) for el in payload["elements"]],
                LayoutContext.from_dict(payload["context"]),
                min_element_size=payload.get("minElementSize", 10),
                min_font_size=payload.get("minFontSize", 12),
            ).to_dict()
        else:
            raise ValueError(f"Unknown message type: {kind}")
    except Exception as exc:
        logger.debug("Worker request %s failed", msg_id, exc_info=True)
        return {"id": msg_id, "error": str(exc) or exc.__class__.__name__}
    return {"id": msg_id, "result": result}


class OffloadChannel:
    """
    Async request/response channel to a single worker thread.

    Usage:
        channel = OffloadChannel()
        try:
            elements = await channel.transform(elements, src, dst, options)
        finally:
            channel.close()
    """

    def __init__(self, registry: PresetRegistry | None = None) -> None:
        self._registry = registry or PresetRegistry.default()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="format-worker")
        self._pending: dict[str, asyncio.Future] = {}
        self._closed = False

    @property
    def available(self) -> bool:
        return not self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def request(self, kind: str, payload: Mapping[str, Any]) -> Any:
        if self._closed:
            raise OffloadUnavailable("offload channel is closed")

        loop = asyncio.get_running_loop()
        msg_id = uuid.uuid4().hex
        waiter = loop.create_future()
        self._pending[msg_id] = waiter

        def _on_done(work: Future) -> None:
            try:
                loop.call_soon_threadsafe(self._deliver, msg_id, work)
            except RuntimeError:
                # Event loop already closed; nobody is waiting any more.
                logger.debug("Dropped worker response %s", msg_id)

        try:
            work = self._executor.submit(handle_message, {"id": msg_id, "type": kind, "payload": payload}, self._registry)
        except RuntimeError as exc:
            self._pending.pop(msg_id, None)
            raise OffloadUnavailable(str(exc)) from exc
        work.add_done_callback(_on_done)

        try:
            response = await waiter
        finally:
            self._pending.pop(msg_id, None)

        if "error" in response:
            raise OffloadError(response["error"])
        return response["result"]

    def _deliver(self, msg_id: str, work: Future) -> None:
        waiter = self._pending.get(msg_id)
        if waiter is None or waiter.done():
            return
        if work.cancelled():
            waiter.set_exception(OffloadUnavailable(f"request {msg_id} was dropped"))
            return
        exc = work.exception()
        if exc is not None:
            waiter.set_exception(OffloadError(str(exc)))
            return
        response = work.result()
        if response.get("id") != msg_id:
            waiter.set_exception(OffloadError(f"mismatched correlation id for request {msg_id}"))
            return
        waiter.set_result(response)

    async def transform(
        self,
        elements: Iterable[Element],
        from_context: LayoutContext,
        to_context: LayoutContext,
        options: TransformOptions,
    ) -> list[Element]:
        result = await self.request(TRANSFORM_LAYOUT, transform_payload(elements, from_context, to_context, options))
        return [Element.from_dict(el) for el in result]

    async def transform_batch(
        self,
        batches: Iterable[tuple[Iterable[Element], LayoutContext, LayoutContext, TransformOptions]],
    ) -> list[list[Element]]:
        payload = {"batches": [transform_payload(*batch) for batch in batches]}
        result = await self.request(BATCH_TRANSFORM, payload)
        return [[Element.from_dict(el) for el in items] for items in result]

    async def validate(
        self,
        elements: Iterable[Element],
        context: LayoutContext,
        min_element_size: float = 10,
        min_font_size: float = 12,
    ) -> dict[str, Any]:
        payload = {
            "elements": [el.to_dict() for el in elements],
            "context": context.to_dict(),
            "minElementSize": min_element_size,
            "minFontSize": min_font_size,
        }
        return await self.request(VALIDATE_LAYOUT, payload)

    def close(self) -> None:
        self._closed = True
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "OffloadChannel":
        return self

    def __exit__(self, *args) -> None:
        self.close()
