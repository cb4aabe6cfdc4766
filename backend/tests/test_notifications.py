"""Notification ledger: fire-and-forget writes, recipient-only reads and updates."""
import pytest

from app.errors import Forbidden, NotFound
from app.models.notification import Notification
from app.services import notifications


def test_notify_dedups_recipients(db, make_user):
    alice, bob = make_user(), make_user()
    written = notifications.notify(db, [alice.id, bob.id, alice.id], "Hi", "hello", "project", 7)
    assert written == 2
    assert db.query(Notification).count() == 2
    assert notifications.notify(db, [], "Hi", "hello", "project") == 0


def test_failed_write_is_dropped(db, make_user):
    alice = make_user()
    # Unknown recipient violates the users FK; the write is rolled back and reported as 0
    assert notifications.notify(db, [alice.id, 9999], "Hi", "hello", "project") == 0
    assert db.query(Notification).count() == 0
    # The session is still usable afterwards
    assert notifications.notify(db, [alice.id], "Hi", "hello", "project") == 1


def test_list_and_unread(db, make_user):
    alice, bob = make_user(), make_user()
    for i in range(3):
        notifications.notify(db, [alice.id], f"n{i}", "m", "submission", i)
    notifications.notify(db, [bob.id], "other", "m", "comment")

    items, total = notifications.list_notifications(db, alice.id)
    assert total == 3
    assert [n.title for n in items] == ["n2", "n1", "n0"]
    assert notifications.unread_count(db, alice.id) == 3

    notifications.mark_read(db, items[0].id, alice.id)
    items, total = notifications.list_notifications(db, alice.id, unread_only=True)
    assert total == 2
    assert all(not n.read for n in items)
    assert notifications.unread_count(db, alice.id) == 2

    items, total = notifications.list_notifications(db, alice.id, limit=1, offset=2)
    assert total == 3
    assert [n.title for n in items] == ["n0"]


def test_mark_all_read(db, make_user):
    alice, bob = make_user(), make_user()
    notifications.notify(db, [alice.id, bob.id], "t", "m", "review")
    notifications.notify(db, [alice.id], "t2", "m", "review")
    assert notifications.mark_all_read(db, alice.id) == 2
    assert notifications.mark_all_read(db, alice.id) == 0
    assert notifications.unread_count(db, alice.id) == 0
    assert notifications.unread_count(db, bob.id) == 1


def test_recipient_only(db, make_user):
    alice, bob = make_user(), make_user()
    notifications.notify(db, [alice.id], "t", "m", "project")
    note = db.query(Notification).one()
    with pytest.raises(Forbidden):
        notifications.mark_read(db, note.id, bob.id)
    with pytest.raises(Forbidden):
        notifications.delete_notification(db, note.id, bob.id)
    with pytest.raises(NotFound):
        notifications.mark_read(db, 9999, alice.id)

    assert notifications.mark_read(db, note.id, alice.id).read is True
    notifications.delete_notification(db, note.id, alice.id)
    assert db.query(Notification).count() == 0


def test_project_audience(db, make_user, make_project):
    alice, bob, carol = make_user(), make_user(), make_user()
    project = make_project(alice, members=(bob,))
    assert notifications.project_audience(db, project.id) == {alice.id, bob.id}
    assert carol.id not in notifications.project_audience(db, project.id)
