import itertools
from typing import Dict, List, Optional
from .models import Message, DeliveryState, ValidationError
from .timers import Scheduler
from ..utils.logger import setup_logger

logger = setup_logger('chatsession.messages')

# Fixed width keeps lexical order equal to creation order.
MESSAGE_ID = "msg-{seq:08d}"


class MessageStore:
    """Append-only message log with per-message reaction maps."""

    def __init__(self, scheduler: Scheduler):
        """Initialize message store.

        Args:
            scheduler (Scheduler): Clock used for message timestamps
        """
        self.scheduler = scheduler
        self._messages: List[Message] = []
        self._by_id: Dict[str, Message] = {}
        self._seq = itertools.count(1)

    def load(self, message: Message):
        """Append an existing message (seed history) without validation.

        Raises:
            ValueError: If the message ID is already in the log
        """
        if message.id in self._by_id:
            raise ValueError(f"Message {message.id} already exists")
        self._messages.append(message)
        self._by_id[message.id] = message

    def next_id(self) -> str:
        """Allocate the next message ID from the session-wide sequence."""
        return MESSAGE_ID.format(seq=next(self._seq))

    def append(self, sender_id: str, text: str) -> Message:
        """Create a new message and append it to the log.

        Args:
            sender_id (str): ID of the sending participant
            text (str): Message content

        Returns:
            Message: New message with delivery state SENT and no reactions

        Raises:
            ValidationError: If text is empty after trimming
        """
        if not (text or "").strip():
            logger.warning(f"Message from {sender_id} rejected: empty text")
            raise ValidationError("Message text must not be empty")
        sent_ts = self.scheduler.timestamp_ms()
        message = Message(
            id=self.next_id(),
            sender_id=sender_id,
            text=text,
            sent_ts=sent_ts,
        )
        self._messages.append(message)
        self._by_id[message.id] = message
        logger.info(f"New message saved: {message.id} from {sender_id}")
        return message

    def toggle_reaction(self, message_id: str, participant_id: str, emoji: str) -> Optional[Message]:
        """Toggle a participant's reaction on a message.

        Reacting again with the same emoji removes the reaction; a
        different emoji replaces it.

        Returns:
            Optional[Message]: The updated message, or None if unknown
        """
        message = self._by_id.get(message_id)
        if message is None:
            logger.debug(f"Reaction ignored: unknown message {message_id}")
            return None
        if message.reactions.get(participant_id) == emoji:
            del message.reactions[participant_id]
            logger.info(f"Reaction {emoji} removed from {message_id} by {participant_id}")
        else:
            message.reactions[participant_id] = emoji
            logger.info(f"Reaction {emoji} added to {message_id} by {participant_id}")
        return message

    def set_reaction(self, message_id: str, participant_id: str, emoji: str) -> Optional[Message]:
        """Set a participant's reaction without toggling it off."""
        message = self._by_id.get(message_id)
        if message is None:
            return None
        message.reactions[participant_id] = emoji
        logger.info(f"Reaction {emoji} set on {message_id} by {participant_id}")
        return message

    def mark_delivery(self, message_id: str, state: DeliveryState) -> bool:
        """Advance a message's delivery state.

        Delivery state never moves backwards.

        Returns:
            bool: True if the state changed
        """
        message = self._by_id.get(message_id)
        state = DeliveryState(state)
        if message is None or state.rank <= message.delivery_state.rank:
            return False
        message.delivery_state = state
        logger.info(f"Message {message_id} marked as {state.value}")
        return True

    def get(self, message_id: str) -> Optional[Message]:
        return self._by_id.get(message_id)

    def all(self) -> List[Message]:
        """Snapshot of the log, oldest first."""
        return list(self._messages)

    def last_from(self, participant_id: str) -> Optional[Message]:
        """Most recent message sent by a participant."""
        for message in reversed(self._messages):
            if message.sender_id == participant_id:
                return message
        return None

    def count(self) -> int:
        return len(self._messages)

    def __len__(self):
        return len(self._messages)
