"""Review engine: one review per (submission, reviewer), stats on read, approve/reject independent of reviews."""
import logging

import pytest

from app.errors import AlreadyReviewed, Forbidden, InvalidInput, NotFound
from app.models.notification import Notification
from app.models.review import Review
from app.schemas.review import ReviewUpdateRequest
from app.services import reviews


@pytest.fixture
def setup(db, make_user, make_project, make_submission):
    """A (admin) and B (member) in a project; B has submitted S."""
    alice, bob = make_user("alice"), make_user("bob")
    project = make_project(alice, members=(bob,))
    submission = make_submission(project, bob)
    return alice, bob, project, submission


def test_submission_lifecycle_stats(db, setup):
    alice, bob, _, s = setup
    assert s.status == "pending"
    reviews.create_review(db, alice.id, s.id, "approved", "LGTM")
    stats = reviews.get_review_stats(db, s.id, bob.id)
    assert stats == {"approved": 1, "changes_requested": 0, "pending": 0, "total": 1}


def test_duplicate_review_supersedes(db, setup):
    alice, bob, _, s = setup
    first = reviews.record_review(db, bob.id, s.id, "changes_requested", "needs tests")
    second = reviews.record_review(db, bob.id, s.id, "approved", None)
    assert second.id == first.id
    rows = db.query(Review).filter(Review.submission_id == s.id, Review.reviewer_id == bob.id).all()
    assert len(rows) == 1
    assert rows[0].status == "approved"
    assert rows[0].feedback is None

    with pytest.raises(AlreadyReviewed):
        reviews.create_review(db, bob.id, s.id, "pending")
    assert db.query(Review).count() == 1


def test_create_review_requires_membership(db, setup, make_user):
    _, _, _, s = setup
    outsider = make_user()
    with pytest.raises(Forbidden):
        reviews.create_review(db, outsider.id, s.id, "approved")
    with pytest.raises(NotFound):
        reviews.create_review(db, outsider.id, 9999, "approved")


def test_create_review_rejects_unknown_status(db, setup):
    alice, _, _, s = setup
    with pytest.raises(InvalidInput):
        reviews.create_review(db, alice.id, s.id, "rejected")
    assert db.query(Review).count() == 0


def test_review_notifies_submitter_not_self(db, setup):
    alice, bob, _, s = setup
    reviews.create_review(db, alice.id, s.id, "changes_requested", "rename vars")
    notes = db.query(Notification).filter(Notification.user_id == bob.id, Notification.type == "review").all()
    assert len(notes) == 1
    assert notes[0].title == "Changes requested"
    assert notes[0].related_id == s.id

    reviews.create_review(db, bob.id, s.id, "approved")
    assert db.query(Notification).filter(Notification.type == "review").count() == 1


def test_update_review_reviewer_only(db, setup):
    alice, bob, _, s = setup
    review = reviews.create_review(db, alice.id, s.id, "pending", "looking")
    with pytest.raises(Forbidden):
        reviews.update_review(db, review.id, bob.id, ReviewUpdateRequest(status="approved"))
    with pytest.raises(InvalidInput):
        reviews.update_review(db, review.id, alice.id, ReviewUpdateRequest())
    with pytest.raises(InvalidInput):
        reviews.update_review(db, review.id, alice.id, ReviewUpdateRequest(status="done"))

    updated = reviews.update_review(db, review.id, alice.id, ReviewUpdateRequest(feedback=None))
    assert updated.status == "pending"
    assert updated.feedback is None
    updated = reviews.update_review(db, review.id, alice.id, ReviewUpdateRequest(status="approved"))
    assert updated.status == "approved"


def test_delete_review_reviewer_only(db, setup):
    alice, bob, _, s = setup
    review = reviews.create_review(db, alice.id, s.id, "approved")
    with pytest.raises(Forbidden):
        reviews.delete_review(db, review.id, bob.id)
    reviews.delete_review(db, review.id, alice.id)
    assert db.query(Review).count() == 0
    with pytest.raises(NotFound):
        reviews.delete_review(db, review.id, alice.id)


def test_review_reads_member_gated(db, setup, make_user):
    alice, bob, _, s = setup
    outsider = make_user()
    review = reviews.create_review(db, alice.id, s.id, "approved")
    assert reviews.get_review(db, review.id, bob.id).id == review.id
    assert [r.id for r in reviews.list_reviews_for_submission(db, s.id, bob.id)] == [review.id]
    with pytest.raises(Forbidden):
        reviews.get_review(db, review.id, outsider.id)
    with pytest.raises(Forbidden):
        reviews.list_reviews_for_submission(db, s.id, outsider.id)
    with pytest.raises(Forbidden):
        reviews.get_review_stats(db, s.id, outsider.id)


def test_list_reviews_by_user_is_self_only(db, setup, make_submission):
    alice, bob, project, s = setup
    other = make_submission(project, bob, "second")
    reviews.create_review(db, alice.id, s.id, "approved")
    reviews.create_review(db, alice.id, other.id, "pending")
    items, total = reviews.list_reviews_by_user(db, alice.id, alice.id)
    assert total == 2
    assert {r.submission_id for r in items} == {s.id, other.id}
    with pytest.raises(Forbidden):
        reviews.list_reviews_by_user(db, bob.id, alice.id)


def test_list_pending_reviews(db, setup, make_submission):
    alice, bob, project, s = setup
    other = make_submission(project, bob, "second")
    reviews.create_review(db, alice.id, s.id, "approved")
    waiting = reviews.create_review(db, alice.id, other.id, "pending")
    reviews.create_review(db, bob.id, other.id, "pending")
    assert [r.id for r in reviews.list_pending_reviews(db, alice.id)] == [waiting.id]


def test_stats_count_each_status(db, setup, make_user):
    alice, bob, project, s = setup
    carol = make_user()
    db.add_all([
        Review(submission_id=s.id, reviewer_id=alice.id, status="approved"),
        Review(submission_id=s.id, reviewer_id=bob.id, status="changes_requested"),
        Review(submission_id=s.id, reviewer_id=carol.id, status="pending"),
    ])
    db.commit()
    assert reviews.get_review_stats(db, s.id, alice.id) == {
        "approved": 1, "changes_requested": 1, "pending": 1, "total": 3,
    }


def test_approve_and_reject_set_status_only(db, setup, make_user):
    alice, bob, _, s = setup
    outsider = make_user()
    assert reviews.approve_submission(db, s.id, bob.id).status == "approved"
    assert db.query(Review).count() == 0
    assert reviews.reject_submission(db, s.id, alice.id).status == "rejected"
    with pytest.raises(Forbidden):
        reviews.approve_submission(db, s.id, outsider.id)
    with pytest.raises(NotFound):
        reviews.reject_submission(db, 9999, alice.id)


def test_decision_reason_is_logged(db, setup, caplog):
    alice, _, _, s = setup
    with caplog.at_level(logging.INFO, logger="app.services.reviews"):
        reviews.reject_submission(db, s.id, alice.id, reason="missing tests")
        reviews.approve_submission(db, s.id, alice.id)
    messages = [r.getMessage() for r in caplog.records if r.name == "app.services.reviews"]
    assert any("Rejecting" in m and "missing tests" in m for m in messages)
    assert any("Approving" in m and "reason=None" in m for m in messages)
