"""Color variation workflow for the open garment.

The controller owns the variant list of one garment detail view. A batch asks
the generation client for harmonic colors, appends one ``generating`` variant
per color and then recolors them one at a time, publishing a snapshot after
every transition so pollers and subscribers see partial progress.

Every ``initialize``/``close`` bumps the epoch. A batch remembers the epoch it
started in and the exact entries it appended; once the epoch moves on, the
batch stops issuing requests and drops whatever results are still in flight.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from swatch.models.garment import AppliedGarment, Garment
from swatch.models.variation import ORIGINAL_KEY, Variant, VariantStatus, VariantView, VariationState

logger = logging.getLogger(__name__)

LOAD_ERROR = "Could not load original garment image."
SUGGESTION_ERROR = "Failed to get color suggestions."

Materialize = Callable[[str], Awaitable[bytes]]
ApplyCallback = Callable[[bytes, AppliedGarment], None]
Listener = Callable[[VariationState], None]


class ColorGenerator(Protocol):
    async def suggest_harmonic_colors(self, image: bytes) -> list[str]: ...

    async def recolor(self, image: bytes, color_hex: str) -> str: ...


@dataclass
class Batch:
    id: int
    epoch: int
    original: bytes
    entries: list[Variant] = field(default_factory=list)


class VariationController:
    def __init__(
        self,
        generator: ColorGenerator | None,
        materialize: Materialize,
        on_apply: ApplyCallback | None = None,
    ):
        self.generator = generator
        self.materialize = materialize
        self.on_apply = on_apply

        self.garment: Garment | None = None
        self.variants: list[Variant] = []
        self.selected_index = 0
        self.is_generating = False
        self.error: str | None = None

        self._epoch = 0
        self._batch_counter = 0
        self._revision = 0
        self._listeners: list[Listener] = []

    # -- observation -------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a fresh snapshot after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self, host_loading: bool = False) -> VariationState:
        return VariationState(
            garment=self.garment,
            variants=[
                VariantView(
                    index=i,
                    color_key=v.color_key,
                    preview_url=v.preview_url,
                    status=v.status,
                    has_content=bool(v.content),
                    error=v.error,
                )
                for i, v in enumerate(self.variants)
            ],
            selected_index=self.selected_index,
            is_generating=self.is_generating,
            error=self.error,
            can_generate=self.can_generate(host_loading),
            can_apply=self.can_apply(host_loading),
            revision=self._revision,
        )

    def _publish(self) -> None:
        self._revision += 1
        if not self._listeners:
            return
        state = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Variation listener failed: {e}")

    # -- garment lifecycle -------------------------------------------------

    @property
    def original(self) -> Variant | None:
        if self.variants and self.variants[0].status == VariantStatus.ORIGINAL:
            return self.variants[0]
        return None

    def _reset(self, garment: Garment | None) -> int:
        self._epoch += 1
        self.garment = garment
        self.variants = []
        self.selected_index = 0
        self.is_generating = False
        self.error = None
        return self._epoch

    async def initialize(self, garment: Garment) -> bool:
        """Open ``garment``, discarding any previous variants and batch.

        Returns False if the original image could not be loaded.
        """
        epoch = self._reset(garment)
        self._publish()

        try:
            content = await self.materialize(garment.url)
        except OSError as e:
            if epoch != self._epoch:
                return False
            logger.error(f"Could not load original image for garment {garment.id}: {e}")
            self.error = LOAD_ERROR
            self._publish()
            return False

        if epoch != self._epoch:
            logger.info(f"Dropping stale load of garment {garment.id}")
            return False

        self.variants = [
            Variant(
                color_key=ORIGINAL_KEY,
                preview_url=garment.url,
                content=content,
                status=VariantStatus.ORIGINAL,
            )
        ]
        self._publish()
        return True

    def close(self) -> None:
        """Discard the open garment and all of its variants."""
        self._reset(None)
        self._publish()

    # -- generation --------------------------------------------------------

    def begin_batch(self) -> Batch | None:
        """Mark a batch as started, or return None if generation is not possible now."""
        original = self.original
        if self.generator is None or self.is_generating or original is None or not original.content:
            return None

        self._batch_counter += 1
        self.is_generating = True
        self.error = None
        self._publish()
        return Batch(id=self._batch_counter, epoch=self._epoch, original=original.content)

    async def run_batch(self, batch: Batch) -> None:
        """Suggest colors and recolor them sequentially into the variant list."""
        try:
            try:
                colors = await self.generator.suggest_harmonic_colors(batch.original)
            except Exception as e:
                if self._is_current(batch):
                    logger.error(f"Color suggestion failed: {e}")
                    self.error = SUGGESTION_ERROR
                return

            if not self._is_current(batch):
                return

            batch.entries = [
                Variant(color_key=color, status=VariantStatus.GENERATING, batch_id=batch.id) for color in colors
            ]
            self.variants.extend(batch.entries)
            self._publish()

            for entry in batch.entries:
                if not self._is_current(batch):
                    logger.info(f"Abandoning stale variation batch {batch.id}")
                    return
                await self._generate_one(batch, entry)
        finally:
            if self._is_current(batch):
                self.is_generating = False
                self._publish()

    async def _generate_one(self, batch: Batch, entry: Variant) -> None:
        try:
            url = await self.generator.recolor(batch.original, entry.color_key)
            content = await self.materialize(url)
        except Exception as e:
            if not self._is_current(batch):
                return
            logger.warning(f"Failed to generate variation for color {entry.color_key}: {e}")
            entry.status = VariantStatus.ERROR
            entry.error = str(e)
        else:
            if not self._is_current(batch):
                return
            entry.preview_url = url
            entry.content = content
            entry.status = VariantStatus.DONE
        self._publish()

    async def generate_variations(self) -> bool:
        """Run a whole batch. Returns False without doing anything if one cannot start."""
        batch = self.begin_batch()
        if batch is None:
            return False
        await self.run_batch(batch)
        return True

    def _is_current(self, batch: Batch) -> bool:
        return batch.epoch == self._epoch

    # -- selection ---------------------------------------------------------

    def select_variation(self, index: int) -> None:
        if not 0 <= index < len(self.variants):
            raise IndexError(f"Variation index {index} out of range")
        self.selected_index = index
        self._publish()

    @property
    def selected(self) -> Variant | None:
        if 0 <= self.selected_index < len(self.variants):
            return self.variants[self.selected_index]
        return None

    def can_generate(self, host_loading: bool = False) -> bool:
        original = self.original
        if self.generator is None or original is None:
            return False
        return not (host_loading or self.is_generating) and bool(original.content)

    def can_apply(self, host_loading: bool = False) -> bool:
        selected = self.selected
        return not (host_loading or self.is_generating) and selected is not None and bool(selected.content)

    def apply(self) -> tuple[bytes, AppliedGarment] | None:
        """Hand the selected variant to the host, if it is the original or finished."""
        selected = self.selected
        if self.garment is None or selected is None or not selected.applicable:
            return None

        if selected.status == VariantStatus.ORIGINAL:
            name = self.garment.name
        else:
            name = f"{self.garment.name} ({selected.color_key})"
        applied = AppliedGarment(
            **self.garment.model_dump(exclude={"id", "name", "url"}),
            id=f"{self.garment.id}-{selected.color_key}",
            name=name,
            url=selected.preview_url,
            color_key=selected.color_key,
        )
        if self.on_apply is not None:
            self.on_apply(selected.content, applied)
        return selected.content, applied
