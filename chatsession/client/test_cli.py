import os
import shutil
import tempfile
import unittest
from datetime import datetime
from typer.testing import CliRunner
from chatsession.client.cli import app, CommandDispatcher, TerminalView
from chatsession.engine.session import ChatSession
from chatsession.engine.timers import ManualScheduler


class TestCommandDispatcher(unittest.TestCase):
    def setUp(self):
        self.scheduler = ManualScheduler(start=datetime(2024, 1, 1, 10, 0, 4))
        self.output = []
        self.view = TerminalView(rows=3, out=self.output.append)
        self.session = ChatSession(self.scheduler, self.view)
        self.view.attach(self.session)
        self.session.subscribe(self.view.render)
        self.dispatcher = CommandDispatcher(self.session, self.view)

    def run_lines(self, *lines):
        for line in lines:
            self.assertTrue(self.dispatcher.handle(line))

    def test_send_before_login_reports_error(self):
        self.run_lines("hello")
        self.assertEqual(self.output, ["[error] Log in before sending messages"])

    def test_login_and_send(self):
        self.run_lines("/login Dana", "hello all")
        self.assertTrue(self.output[0].startswith("Logged in as Dana (user-dana-"))
        self.assertIn("#9 [10:00 AM] Dana: hello all", self.output)

    def test_react_by_index(self):
        self.run_lines("/login Dana", "/react 2 1")
        dana = self.session.local
        self.assertEqual(self.session.messages.get("msg-00000002").reactions, {dana.id: "👍"})
        self.assertEqual(self.output[-1], "[react] Dana reacted 👍 to msg-00000002")
        self.run_lines("/react #2 👍")
        self.assertEqual(self.session.messages.get("msg-00000002").reactions, {})
        self.assertEqual(self.output[-1], "[react] Dana removed a reaction from msg-00000002")

    def test_react_errors(self):
        self.run_lines("/react 2 1", "/login Dana", "/react 99 1", "/react x")
        self.assertEqual(self.output[0], "[error] Log in to react")
        self.assertIn("[error] No message #99", self.output)
        self.assertEqual(self.output[-1], "[error] Usage: /react <n> <emoji|1-6>")

    def test_status_commits_on_next_frame(self):
        self.run_lines("/login Dana", "/status busy")
        self.assertFalse(any(line.startswith("[status]") for line in self.output))
        self.scheduler.advance(16)
        self.assertEqual(self.output[-1], "[status] Dana is now busy")
        self.run_lines("/status brb")
        self.assertEqual(self.output[-1], "[status] unchanged")
        self.run_lines("/status purple")
        self.assertEqual(self.output[-1], "[error] Status must be one of online, brb, busy, offline")

    def test_search_and_navigate(self):
        self.run_lines("/search help")
        self.assertIn("[search] 2 matches for 'help'", self.output)
        self.assertEqual(self.output[-1],
                         "[search] (1/2) Jessica Taylor: Hey can someone help me with the new API documentation?")
        self.run_lines("/next")
        self.assertTrue(self.output[-1].startswith("[search] (2/2) Samantha Lee:"))
        self.run_lines("/prev")
        self.assertTrue(self.output[-1].startswith("[search] (1/2) Jessica Taylor:"))

    def test_find_waits_for_quiet(self):
        self.run_lines("/find deployment")
        self.assertEqual(self.output, [])
        self.scheduler.advance(1000)
        self.assertIn("[search] 1 matches for 'deployment'", self.output)

    def test_scrolling_up_shows_affordance(self):
        self.view.scroll_by(-10)
        self.assertEqual(self.output[-1], "[scroll] More messages below - /bottom to jump")
        self.assertTrue(self.session.state().show_jump_to_bottom)
        self.run_lines("/bottom")
        self.assertFalse(self.session.state().show_jump_to_bottom)
        self.assertEqual(self.view.offset, len(self.view.lines()) - 3)

    def test_history_shows_visible_window(self):
        self.run_lines("/history")
        self.assertEqual(len(self.output), 3)
        self.assertTrue(self.output[-1].startswith("     "))

    def test_who(self):
        self.run_lines("/login Dana", "/typing", "/who")
        self.assertIn("[who] 3 online", self.output)
        self.assertIn(" - Dana [online] (you, typing)", self.output)
        self.assertIn(" - David Wilson [offline]", self.output)

    def test_unknown_command_and_quit(self):
        self.run_lines("/dance")
        self.assertEqual(self.output[-1], 'Type "/help" for commands.')
        self.assertFalse(self.dispatcher.handle("/quit"))
        self.assertTrue(self.dispatcher.handle("   "))


class TestReplayCommand(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.script = os.path.join(self.temp_dir, "session.txt")
        with open(self.script, "w", encoding="utf-8") as f:
            f.write("# Dana says hi and waits for an answer\n"
                    "/login Dana\n"
                    "hi\n"
                    "+3000\n"
                    "/who\n")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def replay(self):
        runner = CliRunner()
        return runner.invoke(app, ["replay", self.script, "--at", "2024-01-01T10:00:03"])

    def test_replay_produces_simulated_reply(self):
        result = self.replay()
        self.assertEqual(result.exit_code, 0, result.output)
        out = result.output
        self.assertIn("#9 [10:00 AM] Dana: hi", out)
        self.assertIn("[typing] Alex Johnson is typing...", out)
        self.assertIn("#10 [10:00 AM] Alex Johnson: I agree with your point.", out)
        self.assertIn("[who] 3 online", out)
        self.assertIn("[react] Alex Johnson reacted 😂 to msg-", out)
        self.assertTrue(out.rstrip().endswith("Logged out Dana"))
        self.assertLess(out.index("Alex Johnson: I agree"), out.index("[who]"))

    def test_replay_is_deterministic(self):
        self.assertEqual(self.replay().output, self.replay().output)


if __name__ == '__main__':
    unittest.main()
