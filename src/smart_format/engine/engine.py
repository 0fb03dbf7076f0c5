from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Mapping, Sequence

from smart_format.config import settings
from smart_format.engine.offload import OffloadChannel, OffloadError, OffloadUnavailable
from smart_format.engine.presets import PresetRegistry
from smart_format.engine.transform import TransformOptions, fallback_transform, transform_elements
from smart_format.engine.validate import ValidationResult, validate_elements
from smart_format.models import Element, FormatOverride, LayoutContext, apply_overrides

logger = logging.getLogger(__name__)

Batch = tuple[Sequence[Element], LayoutContext, LayoutContext, TransformOptions]


class SmartFormatEngine:
    """
    Converts a layout between canvas formats.

    A transform always returns a usable layout: when the offload worker is
    unavailable the work runs inline, and when the smart transform itself
    fails the elements get a plain proportional resize instead.
    """

    def __init__(
        self,
        registry: PresetRegistry | None = None,
        offload: OffloadChannel | None = None,
        gutter: int | None = None,
        reference_width: int | None = None,
        min_font_size: float | None = None,
        min_element_size: float | None = None,
    ) -> None:
        self.registry = registry or PresetRegistry.default(settings.preset_ratio_tolerance)
        self.offload = offload
        self.gutter = settings.collision_gutter if gutter is None else gutter
        self.reference_width = settings.reference_width if reference_width is None else reference_width
        self.min_font_size = settings.min_font_size if min_font_size is None else min_font_size
        self.min_element_size = settings.min_element_size if min_element_size is None else min_element_size

    @classmethod
    def with_offload(cls, registry: PresetRegistry | None = None, **kwargs) -> "SmartFormatEngine":
        """Engine plus a worker channel that share one preset registry."""
        registry = registry or PresetRegistry.default(settings.preset_ratio_tolerance)
        return cls(registry=registry, offload=OffloadChannel(registry), **kwargs)

    def close(self) -> None:
        if self.offload is not None:
            self.offload.close()

    def options(self, **changes) -> TransformOptions:
        base = TransformOptions(gutter=self.gutter, reference_width=self.reference_width)
        return replace(base, **changes) if changes else base

    async def transform(
        self,
        elements: Sequence[Element],
        from_context: LayoutContext,
        to_context: LayoutContext,
        options: TransformOptions | None = None,
        overrides: Mapping[str, FormatOverride] | None = None,
    ) -> list[Element]:
        options = options or self.options()
        logger.info("Smart transform: %s -> %s", from_context.format_name, to_context.format_name)
        try:
            if options.use_offload and self.offload is not None:
                try:
                    result = await self.offload.transform(elements, from_context, to_context, options)
                except (OffloadUnavailable, OffloadError) as exc:
                    logger.warning("Offloaded transform failed, running inline: %s", exc)
                    result = transform_elements(elements, from_context, to_context, options, self.registry)
            else:
                result = transform_elements(elements, from_context, to_context, options, self.registry)
            return self._layer_overrides(result, options, overrides)
        except Exception:
            logger.exception("Smart transform failed, falling back to proportional resize")
            return self._fallback(elements, from_context, to_context)

    def transform_sync(
        self,
        elements: Sequence[Element],
        from_context: LayoutContext,
        to_context: LayoutContext,
        options: TransformOptions | None = None,
        overrides: Mapping[str, FormatOverride] | None = None,
    ) -> list[Element]:
        """Same algorithm as `transform`, always on the calling thread."""
        options = options or self.options()
        try:
            result = transform_elements(elements, from_context, to_context, options, self.registry)
            return self._layer_overrides(result, options, overrides)
        except Exception:
            logger.exception("Smart transform failed, falling back to proportional resize")
            return self._fallback(elements, from_context, to_context)

    async def transform_batch(self, batches: Iterable[Batch]) -> list[list[Element]]:
        batches = list(batches)
        if self.offload is not None and all(batch[3].use_offload for batch in batches):
            try:
                return await self.offload.transform_batch(batches)
            except (OffloadUnavailable, OffloadError) as exc:
                logger.warning("Offloaded batch failed, running inline: %s", exc)
        return [self.transform_sync(*batch) for batch in batches]

    def validate(self, elements: Iterable[Element], context: LayoutContext) -> ValidationResult:
        return validate_elements(
            elements,
            context,
            min_element_size=self.min_element_size,
            min_font_size=self.min_font_size,
        )

    @staticmethod
    def _layer_overrides(
        elements: list[Element],
        options: TransformOptions,
        overrides: Mapping[str, FormatOverride] | None,
    ) -> list[Element]:
        if options.preserve_overrides and overrides:
            return apply_overrides(elements, overrides)
        return elements

    @staticmethod
    def _fallback(
        elements: Sequence[Element],
        from_context: LayoutContext,
        to_context: LayoutContext,
    ) -> list[Element]:
        try:
            return fallback_transform(elements, from_context, to_context)
        except Exception:
            logger.exception("Fallback resize failed; returning elements unchanged")
            return list(elements)
