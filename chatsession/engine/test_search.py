import unittest
from chatsession.engine.messages import MessageStore
from chatsession.engine.search import Direction, SearchIndex
from chatsession.engine.timers import ManualScheduler


class TestSearchIndex(unittest.TestCase):
    def setUp(self):
        self.scheduler = ManualScheduler()
        self.store = MessageStore(self.scheduler)
        self.results = []
        self.index = SearchIndex(self.store, self.scheduler, 1000, on_result=self.results.append)
        self.first = self.store.append("u1", "Can someone HELP me?")
        self.store.append("u2", "Sure thing")
        self.second = self.store.append("u1", "thanks for the help")

    def test_case_insensitive_matches_start_at_first(self):
        result = self.index.search("help")
        self.assertEqual([m.id for m in result.matches], [self.first.id, self.second.id])
        self.assertEqual(result.cursor, 0)
        self.assertIs(result.current, self.first)

    def test_navigate_next_wraps(self):
        self.index.search("help")
        self.assertEqual(self.index.navigate(Direction.NEXT), 1)
        self.assertEqual(self.index.navigate(Direction.NEXT), 0)

    def test_navigate_prev_wraps_to_last(self):
        self.index.search("help")
        self.assertEqual(self.index.navigate(Direction.PREV), 1)
        self.assertEqual(self.index.navigate("prev"), 0)

    def test_empty_query_clears_results(self):
        self.index.search("help")
        for query in ("", "   "):
            result = self.index.search(query)
            self.assertEqual(result.matches, ())
            self.assertIsNone(result.cursor)
            self.assertIsNone(result.current)

    def test_no_match_has_no_cursor(self):
        result = self.index.search("zebra")
        self.assertEqual(result.matches, ())
        self.assertIsNone(result.cursor)

    def test_navigate_on_empty_results_is_noop(self):
        self.index.search("zebra")
        calls = len(self.results)
        self.assertIsNone(self.index.navigate(Direction.NEXT))
        self.assertEqual(len(self.results), calls)

    def test_new_search_replaces_results_and_cursor(self):
        self.index.search("help")
        self.index.navigate(Direction.NEXT)
        result = self.index.search("sure")
        self.assertEqual(len(result.matches), 1)
        self.assertEqual(result.cursor, 0)

    def test_results_are_a_snapshot(self):
        self.index.search("help")
        self.store.append("u2", "more help")
        self.assertEqual(len(self.index.result.matches), 2)

    def test_typed_query_waits_for_quiet(self):
        self.index.type_query("he")
        self.scheduler.advance(500)
        self.index.type_query("help")
        self.scheduler.advance(999)
        self.assertEqual(self.results, [])
        self.scheduler.advance(1)
        self.assertEqual(len(self.results), 1)
        self.assertEqual(self.results[0].query, "help")
        self.assertEqual(len(self.results[0].matches), 2)

    def test_submit_searches_immediately_and_cancels_debounce(self):
        self.index.type_query("thanks")
        result = self.index.submit_query()
        self.assertEqual(len(result.matches), 1)
        self.assertFalse(self.index.query_pending)
        self.scheduler.advance(2000)
        self.assertEqual(len(self.results), 1)


if __name__ == '__main__':
    unittest.main()
