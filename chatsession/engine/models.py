from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class ValidationError(ValueError):
    """Raised synchronously when an operation is given unusable input.

    Empty login name, empty message text, or sending without a local
    participant. No state is changed when it is raised.
    """


class Status(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BRB = "brb"
    BUSY = "busy"


class DeliveryState(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _DELIVERY_ORDER.index(self)


_DELIVERY_ORDER = [DeliveryState.SENT, DeliveryState.DELIVERED, DeliveryState.READ]


@dataclass
class Participant:
    """Represents a member of the chat session, local or simulated.
    
    Attributes:
        id (str): Unique identifier for the participant
        name (str): Display name
        avatar_ref (str): Reference to the avatar image
        status (Status): Presence status
        last_seen_ts (Optional[int]): Unix timestamp in milliseconds the
            participant was last seen, set when they go offline
        is_typing (bool): True while a typing indicator should be shown
    """
    id: str
    name: str
    avatar_ref: str
    status: Status = Status.ONLINE
    last_seen_ts: Optional[int] = None
    is_typing: bool = False


@dataclass
class Message:
    """Represents a chat message in the session log.
    
    Only reactions and delivery_state change after creation.
    
    Attributes:
        id (str): Unique identifier for the message
        sender_id (str): ID of the participant who sent the message
        text (str): Content of the message
        sent_ts (int): Unix timestamp in milliseconds when message was sent
        reactions (Dict[str, str]): Maps participant ID to the single emoji
            that participant attached
        delivery_state (DeliveryState): Coarse delivery marker
    """
    id: str
    sender_id: str
    text: str
    sent_ts: int
    reactions: Dict[str, str] = field(default_factory=dict)
    delivery_state: DeliveryState = DeliveryState.SENT
