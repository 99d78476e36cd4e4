from __future__ import annotations

import unittest

from treedeck.notifications import AUTO_DISMISS_SECONDS, HISTORY_LIMIT, NotificationCenter


class NotificationCenterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.now = 100.0
        self.center = NotificationCenter(monotonic=lambda: self.now)

    def test_success_auto_dismisses(self) -> None:
        self.center.push("success", "Switched to feature")

        self.assertFalse(self.center.expire(self.now + AUTO_DISMISS_SECONDS - 0.1))
        self.assertTrue(self.center.expire(self.now + AUTO_DISMISS_SECONDS))
        self.assertIsNone(self.center.current)

    def test_errors_persist_until_dismissed(self) -> None:
        self.center.push("error", "Worktree gone")

        self.assertFalse(self.center.expire(self.now + 3600))
        self.assertEqual(self.center.current.message, "Worktree gone")
        self.center.dismiss()
        self.assertIsNone(self.center.current)

    def test_newer_notification_replaces_current_and_history_keeps_both(self) -> None:
        self.center.push("info", "one")
        self.center.push("warning", "two")

        self.assertEqual(self.center.current.severity, "warning")
        self.assertEqual([n.message for n in self.center.history], ["one", "two"])
        self.assertIsNone(self.center.current.auto_dismiss_seconds)

    def test_history_keeps_only_the_most_recent_entries(self) -> None:
        center = NotificationCenter(monotonic=lambda: self.now, history_limit=3)
        for number in range(10):
            center.push("warning", f"watch failed {number}")

        self.assertEqual([n.message for n in center.history], ["watch failed 7", "watch failed 8", "watch failed 9"])
        self.assertEqual(center.current.message, "watch failed 9")

    def test_default_history_is_bounded(self) -> None:
        for number in range(HISTORY_LIMIT + 5):
            self.center.push("info", str(number))
        self.assertEqual(len(self.center.history), HISTORY_LIMIT)

    def test_expire_uses_clock_when_now_omitted(self) -> None:
        self.center.push("info", "hello")
        self.now += 5
        self.assertTrue(self.center.expire())
        self.assertFalse(self.center.expire())


if __name__ == "__main__":
    unittest.main()
