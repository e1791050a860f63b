import unittest
from datetime import date

from taskboard import auth, boards, tasks, users
from taskboard.auth import Principal
from taskboard.db import PostgresDbClient
from taskboard.errors import Conflict, PersistenceError
from taskboard.records import BoardRecord, TaskStatus, UserRecord
from taskboard.storage import InMemoryStorageClient


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def add_user(self, name, email):
        user = UserRecord(name=name, email=email, password="hash")
        with self.db.unit_of_work() as uow:
            uow.add_user(user)
        return Principal.from_user(user)

    def test_user_roundtrip_keeps_links_in_order(self):
        ana = self.add_user("Ana", "ana@example.com")
        ben = self.add_user("Ben", "ben@example.com")
        cid = self.add_user("Cid", "cid@example.com")

        users.send_friend_request(self.db, ben, "ana@example.com")
        users.send_friend_request(self.db, cid, "ana@example.com")

        with self.db.unit_of_work() as uow:
            loaded = uow.get_user(ana.id)
            self.assertEqual([r.user for r in loaded.pending_requests], [ben.id, cid.id])
            self.assertIsNotNone(uow.get_user_by_email("cid@example.com"))
            self.assertEqual(
                [u.id for u in uow.get_users([cid.id, "missing", ana.id])],
                [cid.id, ana.id],
            )

        first = loaded.pending_requests[0]
        contact = users.accept_friend_request(self.db, ana, first.id)
        self.assertEqual(contact.id, ben.id)

        with self.db.unit_of_work() as uow:
            self.assertEqual(uow.get_user(ana.id).contacts, [ben.id])
            self.assertEqual(uow.get_user(ben.id).contacts, [ana.id])
            remaining = uow.get_user(ana.id).pending_requests
            self.assertEqual([r.user for r in remaining], [cid.id])

    def test_duplicate_email_raises_conflict(self):
        self.add_user("Ana", "ana@example.com")
        with self.assertRaises(Conflict):
            self.add_user("Other", "ana@example.com")
        with self.db.unit_of_work() as uow:
            self.assertEqual(len(uow.list_users()), 1)

    def test_register_rejects_existing_email(self):
        auth.register(self.db, "Ana", "ana@example.com", "pw")
        with self.assertRaises(Conflict):
            auth.register(self.db, "Ana", "ana@example.com", "pw")

    def test_exception_rolls_back_every_write(self):
        with self.assertRaises(RuntimeError):
            with self.db.unit_of_work() as uow:
                uow.add_user(UserRecord(name="Ana", email="ana@example.com", password="x"))
                raise RuntimeError("boom")
        with self.db.unit_of_work() as uow:
            self.assertIsNone(uow.get_user_by_email("ana@example.com"))

    def test_board_members_and_task_updates(self):
        ana = self.add_user("Ana", "ana@example.com")
        ben = self.add_user("Ben", "ben@example.com")
        board = boards.create_board(self.db, ana, "Sprint 1", members=[ben.id])
        self.assertEqual(board.members, [ben.id, ana.id])

        task = tasks.create_task(
            self.db, ben, board.id, "Fix bug", due_date=date(2030, 1, 15)
        )
        updated = tasks.update_task(
            self.db, ana, task.id, {"status": "done", "due_date": None}
        )
        self.assertEqual(updated.status, TaskStatus.DONE)

        detail = tasks.get_task(self.db, ana, task.id)
        self.assertEqual(detail.task.status, TaskStatus.DONE)
        self.assertIsNone(detail.task.due_date)
        self.assertEqual(detail.author.id, ben.id)

        summaries = boards.list_boards(self.db, ben)
        self.assertEqual(len(summaries), 1)
        self.assertEqual(summaries[0].owner.id, ana.id)
        self.assertEqual(summaries[0].task_count, 1)

        boards.update_board(self.db, ana, board.id, members=[])
        with self.db.unit_of_work() as uow:
            self.assertEqual(uow.get_board(board.id).members, [ana.id])
            self.assertEqual(uow.list_boards_for_member(ben.id), [])

    def test_delete_board_cascades_to_tasks(self):
        ana = self.add_user("Ana", "ana@example.com")
        board = boards.create_board(self.db, ana, "Sprint 1")
        tasks.create_task(self.db, ana, board.id, "One")
        tasks.create_task(self.db, ana, board.id, "Two")

        removed = boards.delete_board(self.db, ana, board.id)
        self.assertEqual(removed, 2)
        with self.db.unit_of_work() as uow:
            self.assertIsNone(uow.get_board(board.id))
            self.assertEqual(uow.count_tasks_for_board(board.id), 0)

    def test_delete_user_removes_every_reference(self):
        admin = self.add_user("Root", "root@example.com")
        ana = self.add_user("Ana", "ana@example.com")
        gus = self.add_user("Gus", "gus@example.com")
        own = boards.create_board(self.db, gus, "Gus board")
        tasks.create_task(self.db, gus, own.id, "Own task")
        shared = boards.create_board(self.db, ana, "Shared", members=[gus.id])
        tasks.create_task(self.db, gus, shared.id, "By Gus")
        kept = tasks.create_task(self.db, ana, shared.id, "By Ana")
        users.send_friend_request(self.db, gus, "ana@example.com")

        users.delete_user(self.db, InMemoryStorageClient(), admin, gus.id)

        with self.db.unit_of_work() as uow:
            self.assertIsNone(uow.get_user(gus.id))
            self.assertIsNone(uow.get_board(own.id))
            self.assertEqual(uow.get_board(shared.id).members, [ana.id])
            self.assertEqual(
                [t.id for t in uow.list_tasks_for_board(shared.id)], [kept.id]
            )
            self.assertEqual(uow.get_user(ana.id).pending_requests, [])

    def test_save_board_after_delete_is_rejected(self):
        ana = self.add_user("Ana", "ana@example.com")
        board = BoardRecord(title="Gone", owner=ana.id, members=[ana.id])
        with self.assertRaises(PersistenceError):
            with self.db.unit_of_work() as uow:
                uow.save_board(board)


if __name__ == "__main__":
    unittest.main()
