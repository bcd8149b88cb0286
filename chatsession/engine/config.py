from dataclasses import dataclass
from typing import Tuple


@dataclass
class SessionConfig:
    """Timing and policy knobs for a chat session.

    All durations are in milliseconds.
    """
    status_throttle_ms: int = 300
    frame_ms: int = 16
    typing_idle_ms: int = 3000
    search_debounce_ms: int = 1000
    bottom_threshold: int = 150
    restore_delays_ms: Tuple[int, ...] = (10, 50, 100)
    reply_typing_delay_ms: int = 1000
    reply_delay_ms: int = 3000
    reaction_delay_ms: int = 1500
    seed_demo_data: bool = True
