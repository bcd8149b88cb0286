"""Simulated remote peer.

Replies are driven by clock arithmetic instead of a random generator so a
run is reproducible for a given start time.
"""
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple
from .config import SessionConfig
from .messages import MessageStore
from .models import DeliveryState, Message, Participant, Status
from .roster import RosterStore
from .scroll import ScrollAnchorController
from .timers import Scheduler, TimerSlot
from ..utils.logger import setup_logger

logger = setup_logger('chatsession.simulator')

PHRASES = (
    "That's interesting! Tell me more.",
    "I agree with your point.",
    "I'm not sure I follow. Can you explain?",
    "Great idea!",
    "Let's discuss this further in the meeting tomorrow.",
    "I'll check with the team and get back to you.",
    "Thanks for the update!",
    "Could you share the documentation?",
)

EMOJIS = ("👍", "❤️", "😂", "😮", "😢", "😡")


class ReplyState(str, Enum):
    IDLE = "idle"
    TYPING_PENDING = "typing_pending"
    TYPING = "typing"
    REPLIED = "replied"
    REACTED = "reacted"


def should_respond(now: datetime) -> bool:
    return now.second % 3 == 0


def minute_of_day(now: datetime) -> int:
    return now.hour * 60 + now.minute


class ResponseSimulator:
    """Schedules typing, replies and reactions from simulated participants.

    Each candidate owns one timer slot; the stages of a reply cycle are
    chained through it, so a new cycle for the same candidate replaces the
    old one and logout cancels everything.
    """

    def __init__(self, roster: RosterStore, messages: MessageStore, scroll: ScrollAnchorController,
                 scheduler: Scheduler, config: SessionConfig,
                 notify: Callable[[str, dict], None]):
        self.roster = roster
        self.messages = messages
        self.scroll = scroll
        self.scheduler = scheduler
        self.config = config
        self.notify = notify
        self.states: Dict[str, ReplyState] = {}
        self.transitions: List[Tuple[str, ReplyState]] = []
        self._slots: Dict[str, TimerSlot] = {}

    def candidates(self) -> List[Participant]:
        """Online participants other than the local one, in roster order."""
        return [p for p in self.roster.all()
                if p.id != self.roster.local_id and p.status == Status.ONLINE]

    def on_send(self, message: Message) -> Optional[Participant]:
        """Start a reply cycle for a local send, if the clock says so.

        Returns:
            Optional[Participant]: The participant who will reply, or None
        """
        if self.roster.local_id is None:
            return None
        now = self.scheduler.wall_clock()
        if not should_respond(now):
            logger.debug(f"No reply to {message.id}: second={now.second}")
            return None
        candidates = self.candidates()
        if not candidates:
            logger.debug(f"No reply to {message.id}: nobody online")
            return None

        candidate = candidates[minute_of_day(now) % len(candidates)]
        self._set_state(candidate.id, ReplyState.TYPING_PENDING)
        self._slot(candidate.id).schedule(
            self.config.reply_typing_delay_ms, self._start_typing, candidate.id, message.id)
        logger.info(f"{candidate.name} will reply to {message.id}")
        return candidate

    def _slot(self, participant_id: str) -> TimerSlot:
        slot = self._slots.get(participant_id)
        if slot is None:
            slot = self._slots[participant_id] = TimerSlot(self.scheduler, f"reply:{participant_id}")
        return slot

    def _set_state(self, participant_id: str, state: ReplyState):
        self.states[participant_id] = state
        self.transitions.append((participant_id, state))

    def _still_active(self, participant_id: str) -> bool:
        if self.roster.local_id is None or self.roster.get(participant_id) is None:
            logger.debug(f"Reply cycle for {participant_id} dropped: session gone")
            self._set_state(participant_id, ReplyState.IDLE)
            return False
        return True

    def _start_typing(self, participant_id: str, trigger_id: str):
        if not self._still_active(participant_id):
            return
        if self.roster.set_typing(participant_id, True):
            self.notify("typing", {"participant_id": participant_id, "is_typing": True})
        self._mark(trigger_id, DeliveryState.DELIVERED)
        self._set_state(participant_id, ReplyState.TYPING)
        self._slot(participant_id).schedule(
            self.config.reply_delay_ms - self.config.reply_typing_delay_ms,
            self._reply, participant_id, trigger_id)

    def _reply(self, participant_id: str, trigger_id: str):
        if not self._still_active(participant_id):
            return
        if self.roster.set_typing(participant_id, False):
            self.notify("typing", {"participant_id": participant_id, "is_typing": False})

        count = self.messages.count()
        text = PHRASES[count % len(PHRASES)]
        reply = self.scroll.preserve(lambda: self.messages.append(participant_id, text))
        self.notify("message", {"message": reply})
        self._mark(trigger_id, DeliveryState.READ)
        self._set_state(participant_id, ReplyState.REPLIED)

        if count % 3 == 0:
            self._slot(participant_id).schedule(
                self.config.reaction_delay_ms, self._react, participant_id)
        else:
            self._set_state(participant_id, ReplyState.IDLE)

    def _react(self, participant_id: str):
        if not self._still_active(participant_id):
            return
        target = self.messages.last_from(self.roster.local_id)
        if target is not None:
            emoji = EMOJIS[len(target.text) % len(EMOJIS)]
            self.scroll.preserve(lambda: self.messages.set_reaction(target.id, participant_id, emoji))
            self.notify("reaction", {"message_id": target.id, "participant_id": participant_id,
                                     "emoji": emoji})
            self._set_state(participant_id, ReplyState.REACTED)
        self._set_state(participant_id, ReplyState.IDLE)

    def _mark(self, message_id: str, state: DeliveryState):
        if self.scroll.preserve(lambda: self.messages.mark_delivery(message_id, state)):
            self.notify("delivery", {"message_id": message_id, "state": state})

    def cancel_all(self):
        """Abandon every pending reply cycle (logout)."""
        for participant_id, slot in self._slots.items():
            slot.cancel()
            if self.states.get(participant_id, ReplyState.IDLE) != ReplyState.IDLE:
                if self.roster.set_typing(participant_id, False):
                    self.notify("typing", {"participant_id": participant_id, "is_typing": False})
                self._set_state(participant_id, ReplyState.IDLE)

    @property
    def pending(self) -> bool:
        return any(slot.pending for slot in self._slots.values())
