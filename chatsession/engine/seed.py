"""Demo roster and history loaded at session start.

Simulated participants and a short conversation so a fresh session has
someone to talk to. Timestamps are relative to the session clock.
"""
from typing import Callable, List
from .models import Participant, Message, Status

HOUR_MS = 3_600_000

AVATAR_BASE = "https://randomuser.me/api/portraits"


def demo_participants(now_ts: int) -> List[Participant]:
    return [
        Participant(id="user1", name="Alex Johnson", avatar_ref=f"{AVATAR_BASE}/men/32.jpg",
                    status=Status.ONLINE),
        Participant(id="user2", name="Samantha Lee", avatar_ref=f"{AVATAR_BASE}/women/44.jpg",
                    status=Status.ONLINE),
        Participant(id="user3", name="Michael Chen", avatar_ref=f"{AVATAR_BASE}/men/59.jpg",
                    status=Status.BRB),
        Participant(id="user4", name="Jessica Taylor", avatar_ref=f"{AVATAR_BASE}/women/16.jpg",
                    status=Status.BUSY),
        Participant(id="user5", name="David Wilson", avatar_ref=f"{AVATAR_BASE}/men/7.jpg",
                    status=Status.OFFLINE, last_seen_ts=now_ts - HOUR_MS),
    ]


def demo_messages(now_ts: int, next_id: Callable[[], str]) -> List[Message]:
    def ago(hours):
        return now_ts - int(HOUR_MS * hours)

    return [
        Message(id=next_id(), sender_id="user1", text="Hey everyone! How's it going?",
                sent_ts=ago(3), reactions={"user2": "👍", "user4": "❤️"}),
        Message(id=next_id(), sender_id="user2",
                text="Pretty good! Working on that new project. What about you?",
                sent_ts=ago(2.5)),
        Message(id=next_id(), sender_id="user3", text="I'm just taking a quick break. brb in 10 minutes!",
                sent_ts=ago(2), reactions={"user1": "👍"}),
        Message(id=next_id(), sender_id="user1", text="No worries, take your time!", sent_ts=ago(1.8)),
        Message(id=next_id(), sender_id="user4", text="Hey can someone help me with the new API documentation?",
                sent_ts=ago(1.5)),
        Message(id=next_id(), sender_id="user2", text="I can help! Give me a sec to find my notes.",
                sent_ts=ago(1.2), reactions={"user4": "🙏"}),
        Message(id=next_id(), sender_id="user1",
                text="Has anyone seen the latest deployment? Looks like there might be an issue "
                     "with the authentication module.",
                sent_ts=ago(1), reactions={"user2": "😮"}),
        Message(id=next_id(), sender_id="user4",
                text="I'm checking it now. Will update everyone in a few minutes when I know more.",
                sent_ts=ago(0.5), reactions={"user1": "👍", "user2": "👍"}),
    ]
