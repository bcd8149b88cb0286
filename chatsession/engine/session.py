import dataclasses
from dataclasses import dataclass
from typing import Callable, Optional, Tuple
from .config import SessionConfig
from .hub import Hub, SessionEvent
from .messages import MessageStore
from .models import Message, Participant, Status, ValidationError
from .roster import RosterStore
from .scroll import NullViewport, ScrollAnchorController, ScrollSnapshot, Viewport
from .search import Direction, SearchIndex, SearchResult
from .seed import demo_messages, demo_participants
from .simulator import ResponseSimulator
from .timers import Debouncer, Scheduler
from ..utils.logger import setup_logger

logger = setup_logger('chatsession.session')


@dataclass(frozen=True)
class SessionState:
    """Read-only snapshot of everything a renderer needs."""
    local_participant: Optional[Participant]
    participants: Tuple[Participant, ...]
    messages: Tuple[Message, ...]
    search: SearchResult
    is_at_bottom: bool
    show_jump_to_bottom: bool
    scroll_snapshot: ScrollSnapshot


class ChatSession:
    """Chat session state engine.

    Owns the roster, the message log, search, scroll anchoring and the
    simulated peer. Rendering surfaces subscribe for SessionEvents and call
    the operations below in response to user input.
    """

    def __init__(self, scheduler: Scheduler, viewport: Optional[Viewport] = None,
                 config: Optional[SessionConfig] = None):
        """Initialize a chat session.

        Args:
            scheduler (Scheduler): Clock and timer facility
            viewport (Viewport, optional): Renderer scroll surface
            config (SessionConfig, optional): Timing and policy settings

        Side Effects:
            - Loads the demo roster and history when config.seed_demo_data
        """
        self.config = config or SessionConfig()
        self.scheduler = scheduler
        self.hub = Hub()
        self.roster = RosterStore(scheduler, self.config.status_throttle_ms, notify=self._notify)
        self.messages = MessageStore(scheduler)
        self.scroll = ScrollAnchorController(
            viewport or NullViewport(), scheduler,
            has_messages=lambda: self.messages.count() > 0,
            bottom_threshold=self.config.bottom_threshold,
            restore_delays_ms=self.config.restore_delays_ms,
        )
        self.index = SearchIndex(self.messages, scheduler, self.config.search_debounce_ms,
                                 on_result=self._on_search)
        self.simulator = ResponseSimulator(self.roster, self.messages, self.scroll, scheduler,
                                           self.config, notify=self._notify)
        self._compose_typing = Debouncer(scheduler, self.config.typing_idle_ms, self._typing_idle,
                                         label="compose-typing")
        if self.config.seed_demo_data:
            self._seed()

    def _seed(self):
        now_ts = self.scheduler.timestamp_ms()
        for participant in demo_participants(now_ts):
            self.roster.add(participant)
        for message in demo_messages(now_ts, self.messages.next_id):
            self.messages.load(message)
        logger.info(f"Session seeded with {len(self.roster.participants_by_id)} participants "
                    f"and {self.messages.count()} messages")

    def subscribe(self, listener: Callable[[SessionEvent], None]) -> Callable[[], None]:
        return self.hub.subscribe(listener)

    def _notify(self, kind: str, payload: dict):
        self.hub.publish(SessionEvent(kind, payload))

    @property
    def local(self) -> Optional[Participant]:
        return self.roster.local

    def login(self, name: str) -> Participant:
        """Log in as a new local participant.

        Raises:
            ValidationError: If name is empty after trimming
        """
        if self.roster.local_id is not None and (name or "").strip():
            self.logout()
        participant = self.roster.login(name)
        self._notify("login", {"participant": participant})
        return participant

    def logout(self) -> Optional[Participant]:
        """End the local session and cancel everything pending for it."""
        if self.roster.local_id is None:
            return None
        self.simulator.cancel_all()
        self._compose_typing.cancel()
        self.set_typing(self.roster.local_id, False)
        participant = self.roster.logout()
        self._notify("logout", {"participant": participant})
        return participant

    def set_status(self, status: Status, participant_id: Optional[str] = None) -> bool:
        """Request a status change (local participant by default).

        Returns:
            bool: True if accepted; the change lands on the next frame
        """
        participant_id = participant_id or self.roster.local_id
        if participant_id is None:
            return False
        return self.roster.set_status(participant_id, status)

    def set_typing(self, participant_id: str, is_typing: bool) -> bool:
        changed = self.roster.set_typing(participant_id, is_typing)
        if changed:
            self._notify("typing", {"participant_id": participant_id, "is_typing": is_typing})
        return changed

    def note_typing(self):
        """Compose box activity: show typing until input goes quiet."""
        local_id = self.roster.local_id
        if local_id is None:
            return
        self.set_typing(local_id, True)
        self._compose_typing.trigger()

    def _typing_idle(self):
        if self.roster.local_id is not None:
            self.set_typing(self.roster.local_id, False)

    def send(self, text: str, sender_id: Optional[str] = None) -> Message:
        """Send a message.

        A send from the local participant pins the viewport to the bottom
        and may provoke a simulated reply.

        Raises:
            ValidationError: If nobody is logged in, the sender is unknown,
                or text is empty after trimming
        """
        local_id = self.roster.local_id
        if local_id is None:
            logger.warning("Send rejected: no local participant")
            raise ValidationError("Log in before sending messages")
        sender_id = sender_id or local_id
        if self.roster.get(sender_id) is None:
            raise ValidationError(f"Unknown sender {sender_id}")
        if not (text or "").strip():
            logger.warning(f"Send rejected: empty text from {sender_id}")
            raise ValidationError("Message text must not be empty")

        if sender_id != local_id:
            message = self.scroll.preserve(lambda: self.messages.append(sender_id, text))
            self._notify("message", {"message": message})
            return message

        message = self.scroll.pin_to_bottom(lambda: self.messages.append(sender_id, text))
        self._compose_typing.cancel()
        self.set_typing(sender_id, False)
        self._notify("message", {"message": message})
        self.simulator.on_send(message)
        return message

    def toggle_reaction(self, message_id: str, emoji: str,
                        participant_id: Optional[str] = None) -> Optional[Message]:
        """Toggle a reaction (local participant by default).

        Unknown messages or participants, or no session, are ignored.
        """
        if self.roster.local_id is None:
            logger.debug("Reaction ignored: no local participant")
            return None
        participant_id = participant_id or self.roster.local_id
        if self.roster.get(participant_id) is None or self.messages.get(message_id) is None:
            logger.debug(f"Reaction ignored: {participant_id} on {message_id}")
            return None
        message = self.scroll.preserve(
            lambda: self.messages.toggle_reaction(message_id, participant_id, emoji))
        self._notify("reaction", {"message_id": message_id, "participant_id": participant_id,
                                  "emoji": message.reactions.get(participant_id)})
        return message

    def search(self, query: str) -> SearchResult:
        return self.index.search(query)

    def navigate(self, direction: Direction) -> Optional[int]:
        return self.index.navigate(direction)

    def type_query(self, text: str):
        self.index.type_query(text)

    def submit_query(self) -> SearchResult:
        return self.index.submit_query()

    def _on_search(self, result: SearchResult):
        self._notify("search", {"result": result})
        current = result.current
        if current is not None:
            self.scroll.reveal(current.id)
            self._notify("reveal", {"message_id": current.id})

    def on_scroll(self):
        """Renderer reports a user scroll."""
        before = (self.scroll.is_at_bottom, self.scroll.show_jump_to_bottom)
        self.scroll.on_scroll()
        if before != (self.scroll.is_at_bottom, self.scroll.show_jump_to_bottom):
            self._notify("scroll", {"is_at_bottom": self.scroll.is_at_bottom,
                                    "show_jump_to_bottom": self.scroll.show_jump_to_bottom})

    def jump_to_bottom(self):
        self.scroll.jump_to_bottom()
        self._notify("scroll", {"is_at_bottom": True, "show_jump_to_bottom": False})

    def state(self) -> SessionState:
        local = self.roster.local
        messages = tuple(dataclasses.replace(m, reactions=dict(m.reactions))
                         for m in self.messages.all())
        by_id = {m.id: m for m in messages}
        result = self.index.result
        return SessionState(
            local_participant=dataclasses.replace(local) if local else None,
            participants=tuple(dataclasses.replace(p) for p in self.roster.all()),
            messages=messages,
            search=dataclasses.replace(result, matches=tuple(by_id[m.id] for m in result.matches)),
            is_at_bottom=self.scroll.is_at_bottom,
            show_jump_to_bottom=self.scroll.show_jump_to_bottom,
            scroll_snapshot=self.scroll.snapshot,
        )

    def close(self):
        """Log out and drop every pending timer."""
        self.logout()
        self.index.cancel()
        self.scroll.cancel()
