import re
from typing import Callable, Dict, Iterable, List, Optional
from .models import Participant, Status, ValidationError
from .timers import Scheduler, Throttle, TimerSlot
from ..utils.logger import setup_logger

logger = setup_logger('chatsession.roster')

AVATAR_URL = "https://randomuser.me/api/portraits/men/{index}.jpg"


def _noop(kind, payload):
    pass


class RosterStore:
    """In-memory roster of participants with presence and typing state.

    Holds every participant seen in the session (records are never
    removed) and which of them, if any, is the local participant.
    """

    def __init__(self, scheduler: Scheduler, status_throttle_ms: int = 300,
                 notify: Callable[[str, dict], None] = _noop):
        """Initialize roster store.

        Args:
            scheduler (Scheduler): Clock used for ids, throttling and the
                deferred status commit
            status_throttle_ms (int): Minimum gap between accepted status
                changes, across all participants
            notify (Callable): Called as notify(kind, payload) after a
                deferred change is committed

        Attributes:
            participants_by_id (Dict[str, Participant]): Roster in join order
            local_id (Optional[str]): ID of the local participant, if logged in
        """
        self.scheduler = scheduler
        self.notify = notify
        self.participants_by_id: Dict[str, Participant] = {}
        self.local_id: Optional[str] = None
        self._status_throttle = Throttle(scheduler, status_throttle_ms)
        self._status_commit = TimerSlot(scheduler, "status-commit")

    def add(self, participant: Participant):
        """Add a simulated participant to the roster.

        Raises:
            ValueError: If a participant with the same ID already exists
        """
        if participant.id in self.participants_by_id:
            raise ValueError(f"Participant {participant.id} already exists")
        self.participants_by_id[participant.id] = participant
        logger.debug(f"Participant added: {participant.name} (ID: {participant.id})")

    def login(self, name: str) -> Participant:
        """Create the local participant and make it the session owner.

        Args:
            name (str): Display name; surrounding whitespace is dropped

        Returns:
            Participant: The new local participant, status ONLINE

        Raises:
            ValidationError: If name is empty after trimming

        Side Effects:
            - Logs out the current local participant, if any
            - Appends the participant to the roster
        """
        name = (name or "").strip()
        if not name:
            logger.warning("Login rejected: empty name")
            raise ValidationError("Name must not be empty")
        if self.local_id is not None:
            self.logout()

        slug = re.sub(r"\s+", "-", name.lower())
        base_id = f"user-{slug}-{self.scheduler.timestamp_ms()}"
        participant_id, n = base_id, 1
        while participant_id in self.participants_by_id:
            n += 1
            participant_id = f"{base_id}-{n}"

        participant = Participant(
            id=participant_id,
            name=name,
            avatar_ref=AVATAR_URL.format(index=len(name) % 60),
            status=Status.ONLINE,
        )
        self.participants_by_id[participant_id] = participant
        self.local_id = participant_id
        logger.info(f"Logged in: {name} (ID: {participant_id})")
        return participant

    def logout(self) -> Optional[Participant]:
        """Clear the local participant.

        The participant record stays in the roster so messages already
        sent remain attributed.

        Returns:
            Optional[Participant]: The participant that was logged out
        """
        if self.local_id is None:
            return None
        participant = self.participants_by_id.get(self.local_id)
        self._status_commit.cancel()
        if participant is not None:
            participant.is_typing = False
        self.local_id = None
        logger.info(f"Logged out: {participant.name if participant else '?'}")
        return participant

    @property
    def local(self) -> Optional[Participant]:
        if self.local_id is None:
            return None
        return self.participants_by_id.get(self.local_id)

    def set_status(self, participant_id: str, status: Status) -> bool:
        """Request a presence change, committed on the next paint frame.

        Requests are dropped without notice when nobody is logged in, the
        participant is unknown, the status is unchanged, or another change
        was accepted less than the throttle window ago.

        Returns:
            bool: True if the request was accepted for commit
        """
        status = Status(status)
        if self.local_id is None:
            logger.debug(f"Status change to {status.value} ignored: no local participant")
            return False
        participant = self.participants_by_id.get(participant_id)
        if participant is None:
            logger.debug(f"Status change ignored: unknown participant {participant_id}")
            return False
        if participant.status == status:
            return False
        if not self._status_throttle.try_acquire():
            logger.debug(f"Status change to {status.value} for {participant_id} dropped by throttle")
            return False

        self._status_commit.schedule_frame(self._commit_status, participant_id, status)
        return True

    def _commit_status(self, participant_id: str, status: Status):
        participant = self.participants_by_id.get(participant_id)
        if self.local_id is None or participant is None:
            logger.debug(f"Stale status commit for {participant_id} skipped")
            return
        participant.status = status
        if status == Status.OFFLINE:
            participant.last_seen_ts = self.scheduler.timestamp_ms()
        logger.info(f"Status of {participant.name} changed to {status.value}")
        self.notify("status", {"participant_id": participant_id, "status": status})

    @property
    def status_commit_pending(self) -> bool:
        return self._status_commit.pending

    def set_typing(self, participant_id: str, is_typing: bool) -> bool:
        """Set a participant's typing flag.

        Returns:
            bool: True if the flag changed
        """
        participant = self.participants_by_id.get(participant_id)
        if participant is None or participant.is_typing == is_typing:
            return False
        participant.is_typing = is_typing
        logger.debug(f"{participant.name} typing={is_typing}")
        return True

    def get(self, participant_id: str) -> Optional[Participant]:
        return self.participants_by_id.get(participant_id)

    def all(self) -> Iterable[Participant]:
        return self.participants_by_id.values()

    def by_status(self, status: Status) -> List[Participant]:
        return [p for p in self.participants_by_id.values() if p.status == status]

    def online(self) -> List[Participant]:
        return self.by_status(Status.ONLINE)

    def online_count(self) -> int:
        return len(self.online())

    def find_by_name(self, name: str) -> Optional[Participant]:
        """Find participant by display name (case sensitive)."""
        for participant in self.participants_by_id.values():
            if participant.name == name:
                return participant
        return None
