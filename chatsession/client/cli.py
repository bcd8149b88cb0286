import asyncio, logging, re, typer
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional
from ..engine.config import SessionConfig
from ..engine.hub import SessionEvent
from ..engine.models import Message, Status, ValidationError
from ..engine.scroll import Viewport, ViewportMetrics
from ..engine.search import Direction
from ..engine.session import ChatSession
from ..engine.simulator import EMOJIS
from ..engine.timers import AsyncioScheduler, ManualScheduler
from ..utils.logger import set_console_level

app = typer.Typer(help="Simulated chat session in the terminal")

HELP = ("Commands:\n"
        "  <text>                 send a message\n"
        "  /login <name>          log in\n"
        "  /logout\n"
        "  /status online|brb|busy|offline\n"
        "  /typing                show your typing indicator\n"
        "  /react <n> <emoji|1-6> toggle a reaction on message #n\n"
        "  /search <query>        search now\n"
        "  /find <query>          search once you stop typing\n"
        "  /next, /prev           move between matches\n"
        "  /up, /down             scroll one page\n"
        "  /bottom                jump to the newest message\n"
        "  /history               show the visible messages\n"
        "  /who                   list participants\n"
        "  /help\n"
        "  /quit")


def format_time(ts: int) -> str:
    return datetime.fromtimestamp(ts / 1000).strftime("%I:%M %p").lstrip("0")


class TerminalView(Viewport):
    """Line-based viewport over the message log.

    Each message renders as one line, plus one line for its reactions.
    The offset is kept as the first visible line; measurements are
    reported in LINE_HEIGHT units so the engine's bottom threshold maps to
    a few lines.
    """

    LINE_HEIGHT = 24

    def __init__(self, rows: int = 20, out: Callable[[str], None] = typer.echo):
        self.rows = rows
        self.out = out
        self.offset = 0
        self.session: Optional[ChatSession] = None

    def attach(self, session: ChatSession):
        self.session = session
        self.scroll_to_end(smooth=False)

    def name_of(self, participant_id: str) -> str:
        participant = self.session.roster.get(participant_id) if self.session else None
        return participant.name if participant else participant_id

    def message_lines(self, index: int, message: Message) -> List[str]:
        lines = [f"#{index} [{format_time(message.sent_ts)}] {self.name_of(message.sender_id)}: {message.text}"]
        if message.reactions:
            counts = {}
            for emoji in message.reactions.values():
                counts[emoji] = counts.get(emoji, 0) + 1
            lines.append("     " + " ".join(f"{e}{c if c > 1 else ''}" for e, c in counts.items()))
        return lines

    def lines(self) -> List[str]:
        if self.session is None:
            return []
        out = []
        for i, message in enumerate(self.session.messages.all(), start=1):
            out.extend(self.message_lines(i, message))
        return out

    def measure(self) -> ViewportMetrics:
        h = self.LINE_HEIGHT
        return ViewportMetrics(self.offset * h, len(self.lines()) * h, self.rows * h)

    def _clamp(self, offset: float) -> int:
        return int(max(0, min(offset, len(self.lines()) - self.rows)))

    def set_offset(self, offset: float):
        self.offset = self._clamp(round(offset / self.LINE_HEIGHT))

    def scroll_to_end(self, smooth: bool = True):
        self.offset = self._clamp(len(self.lines()))

    def reveal(self, message_id: str):
        for i, line in enumerate(self.lines()):
            if line.startswith("#") and self._line_id(line) == message_id:
                self.offset = self._clamp(i - self.rows // 2)
                return

    def _line_id(self, line: str) -> Optional[str]:
        n = int(line[1:line.index(" ")])
        messages = self.session.messages.all()
        return messages[n - 1].id if 0 < n <= len(messages) else None

    def scroll_by(self, rows: int):
        self.offset = self._clamp(self.offset + rows)
        self.session.on_scroll()

    def show(self):
        lines = self.lines()
        if not lines:
            self.out("[history] No messages")
            return
        for line in lines[self.offset:self.offset + self.rows]:
            self.out(line)

    def render(self, event: SessionEvent):
        """Print a one-line summary of a session event."""
        p = event.payload
        if event.kind == "message":
            message = p["message"]
            index = [m.id for m in self.session.messages.all()].index(message.id) + 1
            self.out(self.message_lines(index, message)[0])
        elif event.kind == "reaction":
            who = self.name_of(p["participant_id"])
            if p["emoji"]:
                self.out(f"[react] {who} reacted {p['emoji']} to {p['message_id']}")
            else:
                self.out(f"[react] {who} removed a reaction from {p['message_id']}")
        elif event.kind == "typing":
            if p["is_typing"]:
                self.out(f"[typing] {self.name_of(p['participant_id'])} is typing...")
        elif event.kind == "status":
            self.out(f"[status] {self.name_of(p['participant_id'])} is now {p['status'].value}")
        elif event.kind == "delivery":
            self.out(f"[ACK] {p['message_id']} {p['state'].value}")
        elif event.kind == "login":
            self.out(f"Logged in as {p['participant'].name} ({p['participant'].id})")
        elif event.kind == "logout":
            self.out(f"Logged out {p['participant'].name}")
        elif event.kind == "search":
            result = p["result"]
            if result.query.strip():
                self.out(f"[search] {len(result.matches)} matches for '{result.query}'")
        elif event.kind == "reveal":
            result = self.session.index.result
            current = result.current
            self.out(f"[search] ({result.cursor + 1}/{len(result.matches)}) "
                     f"{self.name_of(current.sender_id)}: {current.text}")
        elif event.kind == "scroll":
            if p["show_jump_to_bottom"]:
                self.out("[scroll] More messages below - /bottom to jump")


class CommandDispatcher:
    """Turns input lines into session operations."""

    def __init__(self, session: ChatSession, view: TerminalView):
        self.session = session
        self.view = view
        self.out = view.out

    def handle(self, line: str) -> bool:
        """Run one input line.

        Returns:
            bool: False when the user asked to quit
        """
        line = line.strip()
        if not line:
            return True
        try:
            return self._dispatch(line)
        except ValidationError as e:
            self.out(f"[error] {e}")
            return True

    def _dispatch(self, line: str) -> bool:
        session = self.session
        if not line.startswith("/"):
            session.send(line)
            return True

        command, _, arg = line.partition(" ")
        arg = arg.strip()

        if command == "/quit":
            return False
        if command == "/login":
            session.login(arg)
        elif command == "/logout":
            if session.logout() is None:
                self.out("[error] Not logged in")
        elif command == "/status":
            try:
                status = Status(arg.lower())
            except ValueError:
                self.out("[error] Status must be one of online, brb, busy, offline")
                return True
            if not session.set_status(status):
                self.out("[status] unchanged")
        elif command == "/typing":
            session.note_typing()
        elif command == "/react":
            self._react(arg)
        elif command == "/search":
            session.search(arg)
        elif command == "/find":
            session.type_query(arg)
        elif command == "/next":
            session.navigate(Direction.NEXT)
        elif command == "/prev":
            session.navigate(Direction.PREV)
        elif command == "/up":
            self.view.scroll_by(-self.view.rows)
        elif command == "/down":
            self.view.scroll_by(self.view.rows)
        elif command == "/bottom":
            session.jump_to_bottom()
        elif command == "/history":
            self.view.show()
        elif command == "/who":
            self._who()
        elif command in {"/help", "/?"}:
            self.out(HELP)
        else:
            self.out('Type "/help" for commands.')
        return True

    def _react(self, arg: str):
        m = re.match(r"^#?(\d+)\s+(\S+)$", arg)
        if not m:
            self.out("[error] Usage: /react <n> <emoji|1-6>")
            return
        messages = self.session.messages.all()
        n, emoji = int(m.group(1)), m.group(2)
        if emoji.isdigit() and 1 <= int(emoji) <= len(EMOJIS):
            emoji = EMOJIS[int(emoji) - 1]
        if not 1 <= n <= len(messages):
            self.out(f"[error] No message #{n}")
            return
        if self.session.toggle_reaction(messages[n - 1].id, emoji) is None:
            self.out("[error] Log in to react")

    def _who(self):
        roster = self.session.roster
        self.out(f"[who] {roster.online_count()} online")
        for p in roster.all():
            flags = []
            if p.id == roster.local_id:
                flags.append("you")
            if p.is_typing:
                flags.append("typing")
            suffix = f" ({', '.join(flags)})" if flags else ""
            self.out(f" - {p.name} [{p.status.value}]{suffix}")


def _make_config(seed: bool) -> SessionConfig:
    return SessionConfig(seed_demo_data=seed)


async def _run(name: str, seed: bool, rows: int):
    """Interactive session loop.

    Events are rendered from a hub queue while input lines are read in an
    executor, so simulated replies show up while the prompt waits.
    """
    config = _make_config(seed)
    scheduler = AsyncioScheduler(frame_ms=config.frame_ms)
    view = TerminalView(rows=rows)
    session = ChatSession(scheduler, view, config)
    view.attach(session)
    q = session.hub.register_queue("terminal")

    async def reader():
        while True:
            event = await q.get()
            view.render(event)

    reader_task = asyncio.create_task(reader())
    dispatcher = CommandDispatcher(session, view)
    typer.echo('Type "/help" for commands.')
    if name:
        dispatcher.handle(f"/login {name}")
    else:
        typer.echo("Log in with /login <name>")

    loop = asyncio.get_running_loop()
    try:
        while True:
            try:
                line = await loop.run_in_executor(None, input, "")
            except EOFError:
                break
            if not dispatcher.handle(line):
                break
            await asyncio.sleep(0)
    finally:
        session.close()
        reader_task.cancel()
        try:
            await reader_task
        except asyncio.CancelledError:
            pass
        session.hub.remove_queue("terminal")


@app.command("run")
def run_cmd(
    name: str = "",
    seed: bool = True,
    rows: int = 20,
    verbose: bool = False,
):
    """
    Run an interactive chat session.

    Args:
        name: Display name to log in with (prompted with /login if empty)
        seed: Start with the demo participants and history
        rows: Height of the message viewport in lines
        verbose: Show engine log output on the console
    """
    set_console_level(logging.INFO if verbose else logging.WARNING)
    asyncio.run(_run(name, seed, rows))


@app.command("replay")
def replay_cmd(
    script: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    at: Optional[datetime] = typer.Option(None, help="Wall clock at the start of the replay"),
    seed: bool = True,
    rows: int = 20,
    verbose: bool = False,
):
    """
    Replay a command script on a virtual clock.

    Each line is a client command or a message to send; a line "+<ms>"
    advances the clock. Lines starting with "# " are comments. Pending
    timers are run to completion at the end of the script.
    """
    set_console_level(logging.INFO if verbose else logging.WARNING)
    config = _make_config(seed)
    scheduler = ManualScheduler(start=at, frame_ms=config.frame_ms)
    view = TerminalView(rows=rows)
    session = ChatSession(scheduler, view, config)
    view.attach(session)
    session.subscribe(view.render)
    dispatcher = CommandDispatcher(session, view)

    for raw in script.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("# "):
            continue
        m = re.match(r"^\+(\d+)$", line)
        if m:
            scheduler.advance(int(m.group(1)))
            continue
        if not dispatcher.handle(line):
            break
    scheduler.run_until_idle()
    session.close()


if __name__ == "__main__":
    app()
