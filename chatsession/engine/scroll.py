from dataclasses import dataclass
from typing import Callable, List, Sequence, TypeVar
from .timers import Scheduler, TimerHandle
from ..utils.logger import setup_logger

logger = setup_logger('chatsession.scroll')

T = TypeVar("T")


@dataclass(frozen=True)
class ViewportMetrics:
    scroll_offset: float
    content_height: float
    client_height: float

    @property
    def distance_from_bottom(self) -> float:
        return self.content_height - self.scroll_offset - self.client_height


@dataclass(frozen=True)
class ScrollSnapshot:
    """Scroll position captured before a content mutation."""
    scroll_offset: float
    content_height: float


class Viewport:
    """Measurement and scrolling surface provided by the renderer.

    The engine never inspects the rendering environment directly; it asks
    the viewport for its metrics and requests scroll changes through it.
    """

    def measure(self) -> ViewportMetrics:
        raise NotImplementedError

    def set_offset(self, offset: float):
        raise NotImplementedError

    def scroll_to_end(self, smooth: bool = True):
        raise NotImplementedError

    def reveal(self, message_id: str):
        """Bring a message into view (used for search matches)."""
        raise NotImplementedError


class NullViewport(Viewport):
    """Viewport used when no renderer is attached."""

    def measure(self) -> ViewportMetrics:
        return ViewportMetrics(0, 0, 0)

    def set_offset(self, offset: float):
        pass

    def scroll_to_end(self, smooth: bool = True):
        pass

    def reveal(self, message_id: str):
        pass


class ScrollAnchorController:
    """Keeps the visible region steady across content mutations.

    Mutations the user did not scroll for are wrapped in preserve(), which
    restores the offset shifted by the change in content height. A local
    compose send is wrapped in pin_to_bottom() instead.
    """

    def __init__(self, viewport: Viewport, scheduler: Scheduler, has_messages: Callable[[], bool],
                 bottom_threshold: float = 150, restore_delays_ms: Sequence[int] = (10, 50, 100)):
        """Initialize scroll-anchor controller.

        Args:
            viewport (Viewport): Renderer's scroll surface
            scheduler (Scheduler): Clock for the delayed restore retries
            has_messages (Callable): Reports whether the log is non-empty
            bottom_threshold (float): Distance from bottom under which the
                viewport counts as at the bottom
            restore_delays_ms (Sequence[int]): Delays of the restore retries
                that follow the immediate restore
        """
        self.viewport = viewport
        self.scheduler = scheduler
        self.has_messages = has_messages
        self.bottom_threshold = bottom_threshold
        self.restore_delays_ms = tuple(restore_delays_ms)
        self.is_at_bottom = True
        self.show_jump_to_bottom = False
        self.snapshot = ScrollSnapshot(0, 0)
        self._restores: List[TimerHandle] = []

    def on_scroll(self):
        """Recompute bottom tracking from the viewport (user scrolled)."""
        metrics = self.viewport.measure()
        self.is_at_bottom = metrics.distance_from_bottom < self.bottom_threshold
        self.show_jump_to_bottom = not self.is_at_bottom and self.has_messages()

    def preserve(self, mutation: Callable[[], T]) -> T:
        """Apply a mutation without moving the visible content.

        The corrected offset is applied right after the mutation and again
        after each retry delay, since content height can settle after
        layout.
        """
        before = self.viewport.measure()
        snapshot = ScrollSnapshot(before.scroll_offset, before.content_height)
        result = mutation()
        self._cancel_restores()
        self.snapshot = snapshot
        self._restore(snapshot)
        for delay in self.restore_delays_ms:
            self._restores.append(
                self.scheduler.call_later(delay, self._restore, snapshot, label="scroll-restore"))
        return result

    def _restore(self, snapshot: ScrollSnapshot):
        metrics = self.viewport.measure()
        delta = metrics.content_height - snapshot.content_height
        offset = snapshot.scroll_offset + delta
        if offset != metrics.scroll_offset:
            self.viewport.set_offset(offset)
            logger.debug(f"Scroll offset restored to {offset} (content delta {delta})")
        self.on_scroll()

    def pin_to_bottom(self, mutation: Callable[[], T]) -> T:
        """Apply a mutation, then follow the content to the end."""
        result = mutation()
        self.jump_to_bottom()
        return result

    def jump_to_bottom(self):
        self._cancel_restores()
        self.is_at_bottom = True
        self.show_jump_to_bottom = False
        self.viewport.scroll_to_end(smooth=True)

    def reveal(self, message_id: str):
        self.viewport.reveal(message_id)

    def _cancel_restores(self):
        for handle in self._restores:
            handle.cancel()
        self._restores = []

    @property
    def restore_pending(self) -> bool:
        return any(h.active for h in self._restores)

    def cancel(self):
        self._cancel_restores()
