import unittest
from chatsession.engine.scroll import ScrollAnchorController, Viewport, ViewportMetrics
from chatsession.engine.timers import ManualScheduler


class FakeViewport(Viewport):
    def __init__(self, offset=600, content_height=2000, client_height=500):
        self.offset = offset
        self.content_height = content_height
        self.client_height = client_height
        self.scrolled_to_end = 0
        self.revealed = []

    def measure(self):
        return ViewportMetrics(self.offset, self.content_height, self.client_height)

    def set_offset(self, offset):
        self.offset = offset

    def scroll_to_end(self, smooth=True):
        self.scrolled_to_end += 1
        self.offset = self.content_height - self.client_height

    def reveal(self, message_id):
        self.revealed.append(message_id)


class TestScrollAnchorController(unittest.TestCase):
    def setUp(self):
        self.scheduler = ManualScheduler()
        self.viewport = FakeViewport()
        self.has_messages = True
        self.scroll = ScrollAnchorController(self.viewport, self.scheduler,
                                             has_messages=lambda: self.has_messages)

    def grow(self, delta):
        self.viewport.content_height += delta

    def test_preserve_shifts_offset_by_height_change(self):
        result = self.scroll.preserve(lambda: self.grow(40) or "done")
        self.assertEqual(result, "done")
        self.assertEqual(self.viewport.offset, 640)
        self.scheduler.advance(200)
        self.assertEqual(self.viewport.offset, 640)
        self.assertEqual(self.scroll.snapshot.scroll_offset, 600)
        self.assertEqual(self.scroll.snapshot.content_height, 2000)

    def test_preserve_catches_height_that_settles_late(self):
        def mutation():
            self.grow(20)
            self.scheduler.call_later(30, self.grow, 25)

        self.scroll.preserve(mutation)
        self.assertEqual(self.viewport.offset, 620)
        self.scheduler.advance(200)
        self.assertEqual(self.viewport.offset, 645)
        self.assertFalse(self.scroll.restore_pending)

    def test_shrinking_content_moves_offset_up(self):
        self.scroll.preserve(lambda: self.grow(-30))
        self.assertEqual(self.viewport.offset, 570)

    def test_new_preserve_cancels_previous_retries(self):
        self.scroll.preserve(lambda: self.grow(10))
        self.scheduler.advance(20)
        self.scroll.preserve(lambda: self.grow(10))
        self.assertEqual(self.viewport.offset, 620)
        self.assertEqual(len(self.scheduler.pending()), 3)
        self.scheduler.advance(200)
        self.assertEqual(self.viewport.offset, 620)

    def test_pin_to_bottom_forces_bottom(self):
        self.scroll.on_scroll()
        self.assertFalse(self.scroll.is_at_bottom)
        self.assertTrue(self.scroll.show_jump_to_bottom)
        self.scroll.pin_to_bottom(lambda: self.grow(40))
        self.assertTrue(self.scroll.is_at_bottom)
        self.assertFalse(self.scroll.show_jump_to_bottom)
        self.assertEqual(self.viewport.scrolled_to_end, 1)
        self.assertEqual(self.viewport.offset, 1540)

    def test_failed_mutation_keeps_pending_retries(self):
        def fail():
            raise ValueError("rejected")

        self.scroll.preserve(lambda: self.grow(10))
        snapshot = self.scroll.snapshot
        with self.assertRaises(ValueError):
            self.scroll.pin_to_bottom(fail)
        with self.assertRaises(ValueError):
            self.scroll.preserve(fail)
        self.assertTrue(self.scroll.restore_pending)
        self.assertEqual(len(self.scheduler.pending()), 3)
        self.assertIs(self.scroll.snapshot, snapshot)
        self.assertEqual(self.viewport.scrolled_to_end, 0)
        self.assertEqual(self.viewport.offset, 610)

    def test_on_scroll_threshold(self):
        self.viewport.offset = 1351  # 149 from bottom
        self.scroll.on_scroll()
        self.assertTrue(self.scroll.is_at_bottom)
        self.viewport.offset = 1350
        self.scroll.on_scroll()
        self.assertFalse(self.scroll.is_at_bottom)

    def test_no_affordance_for_empty_log(self):
        self.has_messages = False
        self.scroll.on_scroll()
        self.assertFalse(self.scroll.is_at_bottom)
        self.assertFalse(self.scroll.show_jump_to_bottom)

    def test_jump_to_bottom(self):
        self.scroll.on_scroll()
        self.scroll.jump_to_bottom()
        self.assertTrue(self.scroll.is_at_bottom)
        self.assertFalse(self.scroll.show_jump_to_bottom)
        self.assertEqual(self.viewport.scrolled_to_end, 1)

    def test_reveal_is_forwarded(self):
        self.scroll.reveal("msg1")
        self.assertEqual(self.viewport.revealed, ["msg1"])


if __name__ == '__main__':
    unittest.main()
