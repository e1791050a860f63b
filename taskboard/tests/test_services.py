import base64
import unittest

from taskboard import boards, tasks, users
from taskboard.auth import Principal, register
from taskboard.db import InMemoryDbClient, InMemoryUnitOfWork
from taskboard.errors import (
    Conflict,
    NotFound,
    PermissionDenied,
    PersistenceError,
    ValidationFailed,
)
from taskboard.records import TaskPriority, TaskStatus
from taskboard.storage import InMemoryStorageClient

PNG_DATA_URI = "data:image/png;base64," + base64.b64encode(b"\x89PNG avatar").decode()


class FailingDeleteUnitOfWork(InMemoryUnitOfWork):
    def delete_board(self, board_id: str) -> None:
        raise PersistenceError("disk full")


class FailingDeleteDbClient(InMemoryDbClient):
    unit_of_work_class = FailingDeleteUnitOfWork


class FailingSaveUnitOfWork(InMemoryUnitOfWork):
    allowed_saves = 1

    def save_user(self, user) -> None:
        self.saves = getattr(self, "saves", 0) + 1
        if self.saves > self.allowed_saves:
            raise PersistenceError("connection lost")
        super().save_user(user)


class FailingSecondSaveDbClient(InMemoryDbClient):
    unit_of_work_class = FailingSaveUnitOfWork


class NoSaveUnitOfWork(FailingSaveUnitOfWork):
    allowed_saves = 0


class FailingProfileSaveDbClient(InMemoryDbClient):
    unit_of_work_class = NoSaveUnitOfWork


class FailingPullContactUnitOfWork(InMemoryUnitOfWork):
    def pull_contact(self, user_id: str) -> int:
        raise PersistenceError("connection lost")


class FailingPullContactDbClient(InMemoryDbClient):
    unit_of_work_class = FailingPullContactUnitOfWork


class FlakyStorageClient(InMemoryStorageClient):
    fail_uploads = False
    fail_deletes = False

    def upload_image(self, data, content_type):
        if self.fail_uploads:
            raise RuntimeError("storage unavailable")
        return super().upload_image(data, content_type)

    def delete_object(self, key):
        if self.fail_deletes:
            raise RuntimeError("storage unavailable")
        super().delete_object(key)


class ServiceTestCase(unittest.TestCase):
    db_class = InMemoryDbClient

    def setUp(self):
        self.db = self.db_class()
        self.ana = Principal.from_user(
            register(self.db, "Ana", "ana@example.com", "pw")
        )
        self.ben = Principal.from_user(
            register(self.db, "Ben", "ben@example.com", "pw")
        )


class BoardServiceTests(ServiceTestCase):
    def test_owner_appended_once(self):
        board = boards.create_board(
            self.db, self.ana, "Sprint", members=[self.ben.id, self.ana.id, self.ben.id]
        )
        self.assertEqual(board.members, [self.ben.id, self.ana.id])

    def test_unknown_member_is_rejected(self):
        with self.assertRaises(ValidationFailed) as ctx:
            boards.create_board(self.db, self.ana, "Sprint", members=["ghost"])
        self.assertEqual(ctx.exception.extra, {"missing": ["ghost"]})
        with self.db.unit_of_work() as uow:
            self.assertEqual(uow.list_boards_owned_by(self.ana.id), [])

    def test_blank_title_is_rejected(self):
        with self.assertRaises(ValidationFailed):
            boards.create_board(self.db, self.ana, "   ")

    def test_update_missing_board(self):
        with self.assertRaises(NotFound):
            boards.update_board(self.db, self.ana, "missing", title="New")

    def test_detail_lists_members_without_owner(self):
        board = boards.create_board(self.db, self.ana, "Sprint", members=[self.ben.id])
        detail = boards.get_board(self.db, self.ben, board.id)
        self.assertEqual(detail.owner.id, self.ana.id)
        self.assertEqual([m.id for m in detail.members], [self.ben.id])


class UnitOfWorkRollbackTests(ServiceTestCase):
    db_class = FailingDeleteDbClient

    def test_failed_board_delete_keeps_board_and_tasks(self):
        board = boards.create_board(self.db, self.ana, "Sprint")
        task = tasks.create_task(self.db, self.ana, board.id, "Keep me")

        with self.assertRaises(PersistenceError):
            boards.delete_board(self.db, self.ana, board.id)

        with self.db.unit_of_work() as uow:
            self.assertIsNotNone(uow.get_board(board.id))
            self.assertEqual([t.id for t in uow.list_tasks_for_board(board.id)], [task.id])

    def test_records_returned_are_detached_copies(self):
        board = boards.create_board(self.db, self.ana, "Sprint")
        board.title = "Changed locally"
        detail = boards.get_board(self.db, self.ana, board.id)
        self.assertEqual(detail.board.title, "Sprint")


class TaskServiceTests(ServiceTestCase):
    def setUp(self):
        super().setUp()
        self.board = boards.create_board(
            self.db, self.ana, "Sprint", members=[self.ben.id]
        )

    def test_defaults_and_invalid_values(self):
        task = tasks.create_task(self.db, self.ben, self.board.id, "Write docs")
        self.assertEqual(task.status, TaskStatus.TODO)
        self.assertEqual(task.priority, TaskPriority.MEDIUM)
        self.assertEqual(task.author, self.ben.id)

        with self.assertRaises(ValidationFailed):
            tasks.create_task(self.db, self.ben, self.board.id, "x" * 41)
        with self.assertRaises(ValidationFailed):
            tasks.create_task(self.db, self.ben, self.board.id, "Ok", status="blocked")
        with self.assertRaises(ValidationFailed):
            tasks.create_task(
                self.db, self.ben, self.board.id, "Ok", description="d" * 151
            )

    def test_update_ignores_nulls_and_unknown_keys(self):
        task = tasks.create_task(
            self.db, self.ben, self.board.id, "Write docs", priority="high"
        )
        updated = tasks.update_task(
            self.db,
            self.ana,
            task.id,
            {"title": None, "priority": None, "author": "someone", "status": "done"},
        )
        self.assertEqual(updated.title, "Write docs")
        self.assertEqual(updated.priority, TaskPriority.HIGH)
        self.assertEqual(updated.status, TaskStatus.DONE)
        self.assertEqual(updated.author, self.ben.id)

    def test_update_with_empty_status_keeps_current_values(self):
        task = tasks.create_task(
            self.db, self.ben, self.board.id, "Ship it", status="done", priority="high"
        )
        updated = tasks.update_task(
            self.db, self.ben, task.id, {"status": "", "priority": ""}
        )
        self.assertEqual(updated.status, TaskStatus.DONE)
        self.assertEqual(updated.priority, TaskPriority.HIGH)
        detail = tasks.get_task(self.db, self.ana, task.id)
        self.assertEqual(detail.task.status, TaskStatus.DONE)
        self.assertEqual(detail.task.priority, TaskPriority.HIGH)

    def test_outsider_cannot_read_tasks(self):
        outsider = Principal.from_user(
            register(self.db, "Cid", "cid@example.com", "pw")
        )
        task = tasks.create_task(self.db, self.ben, self.board.id, "Secret")
        with self.assertRaises(PermissionDenied):
            tasks.get_task(self.db, outsider, task.id)
        with self.assertRaises(PermissionDenied):
            tasks.list_tasks(self.db, outsider, self.board.id)
        with self.assertRaises(NotFound):
            tasks.list_tasks(self.db, self.ana, "missing")


class UserServiceTests(ServiceTestCase):
    def test_duplicate_registration(self):
        with self.assertRaises(Conflict):
            register(self.db, "Ana again", "ana@example.com", "pw")

    def test_accepting_twice_fails(self):
        request = users.send_friend_request(self.db, self.ana, "ben@example.com")
        users.accept_friend_request(self.db, self.ben, request.id)
        with self.assertRaises(NotFound):
            users.accept_friend_request(self.db, self.ben, request.id)

    def test_find_by_emails_requires_list_of_strings(self):
        with self.assertRaises(ValidationFailed):
            users.find_by_emails(self.db, "ana@example.com")
        with self.assertRaises(ValidationFailed):
            users.find_by_emails(self.db, ["ana@example.com", 3])
        found = users.find_by_emails(self.db, ["ben@example.com"])
        self.assertEqual([u.id for u in found], [self.ben.id])

    def test_profile_resolves_senders(self):
        users.send_friend_request(self.db, self.ana, "ben@example.com")
        profile = users.get_profile(self.db, self.ben)
        self.assertEqual(len(profile.requests), 1)
        self.assertEqual(profile.requests[0].sender.id, self.ana.id)
        self.assertEqual(profile.contacts, [])

    def test_delete_unknown_user(self):
        with self.assertRaises(NotFound):
            users.delete_user(self.db, InMemoryStorageClient(), self.ana, "missing")


class AcceptRollbackTests(ServiceTestCase):
    db_class = FailingSecondSaveDbClient

    def test_failed_accept_leaves_both_users_unchanged(self):
        request = users.send_friend_request(self.db, self.ana, "ben@example.com")

        with self.assertRaises(PersistenceError):
            users.accept_friend_request(self.db, self.ben, request.id)

        with self.db.unit_of_work() as uow:
            ana = uow.get_user(self.ana.id)
            ben = uow.get_user(self.ben.id)
        self.assertEqual(ana.contacts, [])
        self.assertEqual(ben.contacts, [])
        self.assertEqual(ana.pending_requests, [])
        self.assertEqual([r.id for r in ben.pending_requests], [request.id])
        self.assertEqual(ben.pending_requests[0].user, self.ana.id)


class DeleteUserRollbackTests(ServiceTestCase):
    db_class = FailingPullContactDbClient

    def test_failed_delete_keeps_every_reference(self):
        storage = InMemoryStorageClient()
        cid = Principal.from_user(register(self.db, "Cid", "cid@example.com", "pw"))
        users.update_profile(
            self.db, storage, self.ben, profile_image=PNG_DATA_URI, max_image_bytes=1024
        )
        own = boards.create_board(self.db, self.ben, "Ben board")
        own_task = tasks.create_task(self.db, self.ben, own.id, "Own task")
        shared = boards.create_board(self.db, self.ana, "Shared", members=[self.ben.id])
        shared_task = tasks.create_task(self.db, self.ben, shared.id, "By Ben")
        request = users.send_friend_request(self.db, self.ana, "ben@example.com")
        users.accept_friend_request(self.db, self.ben, request.id)
        pending = users.send_friend_request(self.db, self.ben, "cid@example.com")

        with self.assertRaises(PersistenceError):
            users.delete_user(self.db, storage, self.ana, self.ben.id)

        with self.db.unit_of_work() as uow:
            ben = uow.get_user(self.ben.id)
            self.assertIsNotNone(ben)
            self.assertEqual(ben.contacts, [self.ana.id])
            self.assertEqual(uow.get_user(self.ana.id).contacts, [self.ben.id])
            self.assertEqual(
                [r.id for r in uow.get_user(cid.id).pending_requests], [pending.id]
            )
            self.assertIsNotNone(uow.get_board(own.id))
            self.assertEqual(uow.get_board(shared.id).members, [self.ben.id, self.ana.id])
            self.assertIsNotNone(uow.get_task(own_task.id))
            self.assertIsNotNone(uow.get_task(shared_task.id))
        self.assertIn(ben.profile_image_key, storage.stored_objects)


class ProfileImageTests(ServiceTestCase):
    def setUp(self):
        super().setUp()
        self.storage = FlakyStorageClient()

    def update_image(self, db=None):
        return users.update_profile(
            db or self.db,
            self.storage,
            self.ana,
            profile_image=PNG_DATA_URI,
            max_image_bytes=1024,
        )

    def stored_key(self):
        with self.db.unit_of_work() as uow:
            return uow.get_user(self.ana.id).profile_image_key

    def test_replacing_image_deletes_old_object(self):
        first = self.update_image()
        second = self.update_image()
        self.assertEqual(list(self.storage.stored_objects), [second.profile_image_key])
        self.assertNotEqual(first.profile_image_key, second.profile_image_key)

    def test_failed_upload_keeps_old_image(self):
        first = self.update_image()
        self.storage.fail_uploads = True

        with self.assertRaises(RuntimeError):
            self.update_image()

        self.assertEqual(self.stored_key(), first.profile_image_key)
        self.assertIn(first.profile_image_key, self.storage.stored_objects)

    def test_failed_write_discards_new_upload(self):
        db = FailingProfileSaveDbClient()
        self.ana = Principal.from_user(register(db, "Ana", "ana@example.com", "pw"))

        with self.assertRaises(PersistenceError):
            self.update_image(db)

        self.assertEqual(self.storage.stored_objects, {})

    def test_failed_cleanup_is_logged_not_raised(self):
        first = self.update_image()
        self.storage.fail_deletes = True

        with self.assertLogs("taskboard.users", level="ERROR"):
            second = self.update_image()

        self.assertEqual(self.stored_key(), second.profile_image_key)
        self.assertIn(first.profile_image_key, self.storage.stored_objects)

    def test_user_delete_removes_image_after_commit(self):
        self.update_image()
        users.delete_user(self.db, self.storage, self.ben, self.ana.id)
        self.assertEqual(self.storage.stored_objects, {})


if __name__ == "__main__":
    unittest.main()
