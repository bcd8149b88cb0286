from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple
from .models import Message
from .messages import MessageStore
from .timers import Scheduler, Debouncer
from ..utils.logger import setup_logger

logger = setup_logger('chatsession.search')


class Direction(str, Enum):
    NEXT = "next"
    PREV = "prev"


@dataclass(frozen=True)
class SearchResult:
    """Outcome of a search.

    Attributes:
        query (str): Query as entered
        matches (Tuple[Message, ...]): Matching messages in log order
        cursor (Optional[int]): Index of the current match, None when
            there are no matches
    """
    query: str
    matches: Tuple[Message, ...] = ()
    cursor: Optional[int] = None

    @property
    def current(self) -> Optional[Message]:
        if self.cursor is None:
            return None
        return self.matches[self.cursor]


def _ignore(result):
    pass


class SearchIndex:
    """Substring search over the message log with a stateful cursor.

    Results are a snapshot of the log at the time of the search; they are
    replaced only by the next search.
    """

    def __init__(self, messages: MessageStore, scheduler: Scheduler, debounce_ms: int = 1000,
                 on_result: Callable[[SearchResult], None] = _ignore):
        """Initialize search index.

        Args:
            messages (MessageStore): Log to search
            scheduler (Scheduler): Clock for the query input debounce
            debounce_ms (int): Quiet period before typed input is searched
            on_result (Callable): Called with the result of every search or
                cursor move that changed the current match
        """
        self.messages = messages
        self.on_result = on_result
        self.result = SearchResult(query="")
        self._draft = ""
        self._debounce = Debouncer(scheduler, debounce_ms, self._run_draft, label="search-input")

    def search(self, query: str) -> SearchResult:
        """Search message text, case-insensitively.

        An empty or whitespace-only query clears the results and sets the
        cursor to None. Otherwise the cursor starts on the first match.
        """
        query = query or ""
        self._draft = query
        self._debounce.cancel()
        if not query.strip():
            self.result = SearchResult(query=query)
            logger.debug("Search cleared")
            self.on_result(self.result)
            return self.result

        needle = query.lower()
        matches: List[Message] = [m for m in self.messages.all() if needle in m.text.lower()]
        self.result = SearchResult(
            query=query,
            matches=tuple(matches),
            cursor=0 if matches else None,
        )
        logger.info(f"Search '{query}' matched {len(matches)} messages")
        self.on_result(self.result)
        return self.result

    def navigate(self, direction: Direction) -> Optional[int]:
        """Move the cursor to the next or previous match, wrapping around.

        Returns:
            Optional[int]: The new cursor, or None when there are no matches
        """
        direction = Direction(direction)
        matches = self.result.matches
        if not matches:
            return None
        cursor = self.result.cursor or 0
        if direction == Direction.NEXT:
            cursor = (cursor + 1) % len(matches)
        else:
            cursor = cursor - 1 if cursor > 0 else len(matches) - 1
        self.result = SearchResult(query=self.result.query, matches=matches, cursor=cursor)
        self.on_result(self.result)
        return cursor

    def type_query(self, text: str):
        """Record search box input; search once typing pauses."""
        self._draft = text
        self._debounce.trigger()

    def submit_query(self) -> SearchResult:
        """Search the current input right away (Enter)."""
        return self.search(self._draft)

    def _run_draft(self):
        self.search(self._draft)

    @property
    def query_pending(self) -> bool:
        return self._debounce.pending

    def cancel(self):
        self._debounce.cancel()
