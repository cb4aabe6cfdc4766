"""Comment thread engine: tree building, parent validation, thread/replies reads, author-only edits."""
import pytest

from app.errors import Forbidden, InvalidInput, NotFound
from app.models.comment import Comment
from app.models.notification import Notification
from app.services import comments


@pytest.fixture
def setup(db, make_user, make_project, make_submission):
    alice, bob = make_user("alice"), make_user("bob")
    project = make_project(alice, members=(bob,))
    submission = make_submission(project, bob)
    return alice, bob, project, submission


def _shape(nodes):
    return [(n.comment.content, _shape(n.replies)) for n in nodes]


def test_build_comment_tree_without_store():
    rows = [
        Comment(id=1, content="c1", submission_id=1, user_id=1, parent_id=None),
        Comment(id=2, content="c2", submission_id=1, user_id=1, parent_id=1),
        Comment(id=3, content="c3", submission_id=1, user_id=1, parent_id=2),
        Comment(id=4, content="c4", submission_id=1, user_id=1, parent_id=None),
        Comment(id=5, content="c5", submission_id=1, user_id=1, parent_id=1),
        Comment(id=6, content="orphan", submission_id=1, user_id=1, parent_id=99),
    ]
    roots = comments.build_comment_tree(rows)
    assert _shape(roots) == [
        ("c1", [("c2", [("c3", [])]), ("c5", [])]),
        ("c4", []),
        ("orphan", []),
    ]
    assert roots[0].size == 4
    assert comments.build_comment_tree([]) == []


def test_comment_tree_integrity(db, setup):
    alice, bob, _, s = setup
    c1 = comments.create_comment(db, alice.id, s.id, "C1")
    c2 = comments.create_comment(db, bob.id, s.id, "C2", parent_id=c1.id)
    comments.create_comment(db, alice.id, s.id, "C3", parent_id=c2.id)
    comments.create_comment(db, bob.id, s.id, "C4")
    comments.create_comment(db, alice.id, s.id, "C2b", parent_id=c1.id)

    roots = comments.get_comment_tree(db, s.id, alice.id)
    assert _shape(roots) == [
        ("C1", [("C2", [("C3", [])]), ("C2b", [])]),
        ("C4", []),
    ]
    flat = comments.get_comments_by_submission(db, s.id, bob.id)
    assert [c.content for c in flat] == ["C1", "C2", "C3", "C4", "C2b"]


def test_parent_must_exist_on_same_submission(db, setup, make_submission):
    alice, bob, project, s = setup
    other = make_submission(project, alice, "other")
    elsewhere = comments.create_comment(db, alice.id, other.id, "elsewhere")
    with pytest.raises(InvalidInput):
        comments.create_comment(db, alice.id, s.id, "reply", parent_id=elsewhere.id)
    with pytest.raises(NotFound):
        comments.create_comment(db, alice.id, s.id, "reply", parent_id=9999)
    assert db.query(Comment).filter(Comment.submission_id == s.id).count() == 0


def test_create_comment_gates(db, setup, make_user):
    _, bob, _, s = setup
    outsider = make_user()
    with pytest.raises(NotFound):
        comments.create_comment(db, bob.id, 9999, "hello")
    with pytest.raises(Forbidden):
        comments.create_comment(db, outsider.id, s.id, "hello")
    with pytest.raises(InvalidInput):
        comments.create_comment(db, bob.id, s.id, "   ")


def test_comment_notifies_submitter(db, setup):
    alice, bob, _, s = setup
    comments.create_comment(db, alice.id, s.id, "why?")
    comments.create_comment(db, bob.id, s.id, "because")
    notes = db.query(Notification).filter(Notification.type == "comment").all()
    assert [(n.user_id, n.related_id) for n in notes] == [(bob.id, s.id)]


def test_get_thread_and_replies(db, setup):
    alice, bob, _, s = setup
    c1 = comments.create_comment(db, alice.id, s.id, "C1")
    c2 = comments.create_comment(db, bob.id, s.id, "C2", parent_id=c1.id)
    comments.create_comment(db, alice.id, s.id, "C3", parent_id=c2.id)
    comments.create_comment(db, alice.id, s.id, "unrelated")

    thread = comments.get_thread(db, c2.id, alice.id)
    assert _shape([thread]) == [("C2", [("C3", [])])]
    assert [c.content for c in comments.get_replies(db, c1.id, bob.id)] == ["C2"]


def test_reads_member_gated(db, setup, make_user):
    alice, _, _, s = setup
    outsider = make_user()
    c1 = comments.create_comment(db, alice.id, s.id, "C1")
    for read in (
        lambda: comments.get_comment(db, c1.id, outsider.id),
        lambda: comments.get_replies(db, c1.id, outsider.id),
        lambda: comments.get_thread(db, c1.id, outsider.id),
        lambda: comments.get_comment_tree(db, s.id, outsider.id),
    ):
        with pytest.raises(Forbidden):
            read()
    with pytest.raises(NotFound):
        comments.get_comment(db, 9999, alice.id)


def test_update_and_delete_author_only(db, setup):
    alice, bob, _, s = setup
    c1 = comments.create_comment(db, bob.id, s.id, "typo")
    # Project admin is not the author
    with pytest.raises(Forbidden):
        comments.update_comment(db, c1.id, alice.id, "fixed")
    with pytest.raises(Forbidden):
        comments.delete_comment(db, c1.id, alice.id)
    assert comments.update_comment(db, c1.id, bob.id, "fixed").content == "fixed"
    with pytest.raises(InvalidInput):
        comments.update_comment(db, c1.id, bob.id, "")


def test_delete_comment_removes_replies(db, setup):
    alice, bob, _, s = setup
    c1 = comments.create_comment(db, alice.id, s.id, "C1")
    c2 = comments.create_comment(db, bob.id, s.id, "C2", parent_id=c1.id)
    comments.create_comment(db, alice.id, s.id, "C3", parent_id=c2.id)
    keep = comments.create_comment(db, bob.id, s.id, "keep")
    comments.delete_comment(db, c1.id, alice.id)
    assert [c.id for c in db.query(Comment).all()] == [keep.id]


def test_list_comments_by_user(db, setup):
    alice, bob, _, s = setup
    first = comments.create_comment(db, alice.id, s.id, "one")
    comments.create_comment(db, bob.id, s.id, "theirs")
    second = comments.create_comment(db, alice.id, s.id, "two")
    items, total = comments.list_comments_by_user(db, alice.id)
    assert total == 2
    assert [c.id for c in items] == [second.id, first.id]
