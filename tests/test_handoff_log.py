import unittest

from plantwise.agents import HandoffLog
from plantwise.models import HandoffRecord


def record(i: int, agent: str = "chat") -> HandoffRecord:
    return HandoffRecord(
        timestamp=f"2025-01-01T00:00:{i:02d}",
        user_id="u",
        input_length=i,
        agent=agent,
        reason="General conversation",
    )


class HandoffLogTests(unittest.TestCase):
    def test_capacity_reached_without_trim(self) -> None:
        log = HandoffLog()
        for i in range(100):
            log.append(record(i))
        self.assertEqual(100, len(log))

    def test_101st_append_trims_to_last_50(self) -> None:
        log = HandoffLog()
        for i in range(101):
            log.append(record(i))

        self.assertEqual(50, len(log))
        self.assertEqual(51, log.records[0].input_length)
        self.assertEqual(100, log.records[-1].input_length)

    def test_stats(self) -> None:
        log = HandoffLog()
        for i in range(12):
            log.append(record(i, "nutrition" if i % 3 == 0 else "chat"))

        stats = log.stats()

        self.assertEqual(12, stats["total_handoffs"])
        self.assertEqual({"nutrition": 4, "chat": 8}, stats["agent_usage"])
        self.assertEqual(10, len(stats["recent_handoffs"]))
        self.assertEqual(11, stats["recent_handoffs"][-1]["inputLength"])

    def test_reset(self) -> None:
        log = HandoffLog()
        log.append(record(1))

        result = log.reset()

        self.assertEqual(0, len(log))
        self.assertEqual("Handoff history cleared", result["message"])

    def test_records_is_a_copy(self) -> None:
        log = HandoffLog()
        log.append(record(1))
        log.records.clear()
        self.assertEqual(1, len(log))

    def test_invalid_bounds(self) -> None:
        with self.assertRaises(ValueError):
            HandoffLog(capacity=10, trim_to=20)
