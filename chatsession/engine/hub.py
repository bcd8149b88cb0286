import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict
from ..utils.logger import setup_logger

logger = setup_logger('chatsession.hub')


@dataclass(frozen=True)
class SessionEvent:
    """A state change reported to rendering surfaces.

    Attributes:
        kind (str): Event name, e.g. "message", "reaction", "status"
        payload (dict): Event details
    """
    kind: str
    payload: dict = field(default_factory=dict)


class Hub:
    """Event fan-out hub for session subscribers.

    Subscribers either register a callback, called synchronously on
    publish, or a dedicated asyncio Queue that receives every event.
    """

    def __init__(self):
        """Initialize event hub.

        Attributes:
            listeners (Dict[int, Callable]): Maps subscription IDs to callbacks
            queues (Dict[str, asyncio.Queue]): Maps subscriber names to queues
        """
        self.listeners: Dict[int, Callable[[SessionEvent], None]] = {}
        self.queues: Dict[str, asyncio.Queue] = {}
        self._ids = itertools.count(1)
        logger.debug("Event Hub initialized")

    def subscribe(self, listener: Callable[[SessionEvent], None]) -> Callable[[], None]:
        """Register a callback for every published event.

        Returns:
            Callable[[], None]: Call to unsubscribe
        """
        sub_id = next(self._ids)
        self.listeners[sub_id] = listener

        def unsubscribe():
            self.listeners.pop(sub_id, None)

        return unsubscribe

    def register_queue(self, name: str) -> asyncio.Queue:
        """Register a new event queue for an asynchronous subscriber.

        Args:
            name (str): Subscriber name; an existing queue is replaced

        Returns:
            asyncio.Queue: Queue receiving every published event
        """
        q = asyncio.Queue()
        self.queues[name] = q
        logger.debug(f"Registered queue for subscriber {name}")
        return q

    def remove_queue(self, name: str):
        self.queues.pop(name, None)
        logger.debug(f"Removed queue for subscriber {name}")

    def publish(self, event: SessionEvent):
        """Deliver an event to every subscriber.

        A failing listener is logged and skipped; the others still
        receive the event.
        """
        for listener in list(self.listeners.values()):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener failed on {event.kind} event")
        for q in self.queues.values():
            q.put_nowait(event)
