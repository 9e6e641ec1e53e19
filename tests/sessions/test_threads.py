import unittest

from chat_context.models import Session, SessionThread, create_message
from chat_context.sessions import get_all_message_list, get_current_thread_history_hash


class ThreadHistoryTests(unittest.TestCase):
    def test_no_threads_yields_empty_index(self) -> None:
        session = Session(id="s", name="n", messages=[create_message("user", "hi")])
        self.assertEqual({}, get_current_thread_history_hash(session))

    def test_index_covers_archived_and_live_threads(self) -> None:
        old = [create_message("user", "old q"), create_message("assistant", "old a")]
        live = [create_message("user", "new q")]
        session = Session(
            id="s",
            name="n",
            messages=live,
            threads=[SessionThread(id="t1", name="first", messages=old, created_at=1_700_000_000_000)],
            thread_name="current",
        )

        briefs = get_current_thread_history_hash(session)

        self.assertEqual({old[0].id, live[0].id}, set(briefs))
        archived = briefs[old[0].id]
        self.assertEqual("t1", archived.id)
        self.assertEqual(2, archived.message_count)
        self.assertRegex(archived.created_at_label, r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")
        current = briefs[live[0].id]
        self.assertEqual("current", current.name)
        self.assertIsNone(current.created_at)

    def test_empty_threads_are_skipped(self) -> None:
        session = Session(id="s", name="n", threads=[SessionThread(id="t", name="empty")])
        self.assertEqual({}, get_current_thread_history_hash(session))

    def test_all_messages_are_in_chronological_order(self) -> None:
        a, b, c = (create_message("user", t) for t in "abc")
        session = Session(
            id="s",
            name="n",
            messages=[c],
            threads=[SessionThread(id="t1", name="1", messages=[a]), SessionThread(id="t2", name="2", messages=[b])],
        )
        self.assertEqual([a.id, b.id, c.id], [m.id for m in get_all_message_list(session)])


if __name__ == "__main__":
    unittest.main()
