"""
Unit tests for the learning session lifecycle and write-time slot checks.
"""

from datetime import time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from learnplan.crud import (
    complete_session,
    create_child,
    create_subject,
    create_topic,
    delete_child,
    get_session,
    get_sessions,
    plan_session,
    SqlSessionStore,
    schedule_session,
    unschedule_session,
)
from learnplan.database import Base, transaction
from learnplan.errors import ConflictError, NotFoundError, ValidationError
from learnplan.models import CatchUpSession, Flashcard, LearningSession, Review, Subject, Topic
from learnplan.models.enums import SessionStatus
from learnplan.schemas import ChildCreate

from tests.factories import MONDAY, NOW, add_scheduled_session, add_session


class TestTransitions:
    """Tests for the backlog -> planned -> scheduled -> done lifecycle."""

    def test_full_lifecycle(self, db, child, topic):
        session = add_session(db, child, topic, 30, planned=False)
        assert session.status == SessionStatus.BACKLOG

        session = plan_session(db, session.id)
        assert session.status == SessionStatus.PLANNED

        session = schedule_session(db, session.id, 1, time(9, 0), time(9, 30), MONDAY)
        assert session.status == SessionStatus.SCHEDULED
        assert session.scheduled_date == MONDAY

        session = complete_session(db, session.id, now=NOW)
        assert session.status == SessionStatus.DONE
        assert session.completed_at == NOW

    def test_backlog_cannot_be_scheduled(self, db, child, topic):
        session = add_session(db, child, topic, 30, planned=False)
        with pytest.raises(ValidationError):
            schedule_session(db, session.id, 1, time(9, 0), time(9, 30), MONDAY)
        assert get_session(db, session.id).status == SessionStatus.BACKLOG

    def test_planned_cannot_be_completed(self, db, child, topic):
        session = add_session(db, child, topic, 30)
        with pytest.raises(ValidationError):
            complete_session(db, session.id, now=NOW)

    def test_done_is_final(self, db, child, topic):
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")
        complete_session(db, session.id, now=NOW)
        with pytest.raises(ValidationError):
            plan_session(db, session.id)
        with pytest.raises(ValidationError):
            get_session(db, session.id).reset_to_backlog(MONDAY)

    def test_unschedule_clears_slot(self, db, child, topic):
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")

        session = unschedule_session(db, session.id)

        assert session.status == SessionStatus.PLANNED
        assert session.scheduled_day_of_week is None
        assert session.scheduled_start_time is None
        assert session.scheduled_date is None
        assert not session.occupies_capacity

    def test_only_scheduled_sessions_unschedule(self, db, child, topic):
        session = add_session(db, child, topic, 30)
        with pytest.raises(ValidationError):
            unschedule_session(db, session.id)

    def test_date_must_match_weekday(self, db, child, topic):
        session = add_session(db, child, topic, 30)
        with pytest.raises(ValidationError):
            schedule_session(db, session.id, 2, time(9, 0), time(9, 30), MONDAY)

    def test_end_must_follow_start(self, db, child, topic):
        session = add_session(db, child, topic, 30)
        with pytest.raises(ValidationError):
            schedule_session(db, session.id, 1, time(9, 30), time(9, 0), MONDAY)

    def test_unknown_session(self, db):
        with pytest.raises(NotFoundError):
            plan_session(db, 404)

    def test_get_sessions_by_status(self, db, child, topic):
        add_session(db, child, topic, 30, planned=False)
        planned = add_session(db, child, topic, 30)

        assert [s.id for s in get_sessions(db, child.id, SessionStatus.PLANNED)] == [planned.id]
        assert len(get_sessions(db, child.id)) == 2


class TestFallsOn:

    def test_dated_session(self, db, child, topic):
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")
        assert session.falls_on(MONDAY)
        assert not session.falls_on(MONDAY + timedelta(days=7))

    def test_weekly_session(self, db, child, topic):
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00", weekly=True)
        assert session.falls_on(MONDAY)
        assert session.falls_on(MONDAY + timedelta(days=7))
        assert not session.falls_on(MONDAY + timedelta(days=1))


class TestSlotConflicts:
    """Tests for re-validating a slot at write time."""

    def test_version_bumps_on_every_write(self, db, child, topic):
        session = add_session(db, child, topic, 30, planned=False)
        created = session.version

        session = plan_session(db, session.id)

        assert session.version == created + 1

    def test_double_booking_is_a_conflict(self, db, child, topic):
        add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")
        late = add_session(db, child, topic, 30)

        with pytest.raises(ConflictError) as excinfo:
            schedule_session(db, late.id, 1, time(9, 15), time(9, 45), MONDAY)

        assert excinfo.value.retryable
        assert get_session(db, late.id).status == SessionStatus.PLANNED

    def test_adjacent_slots_do_not_conflict(self, db, child, topic):
        add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")
        follower = add_scheduled_session(db, child, topic, 30, MONDAY, "09:30")
        assert follower.status == SessionStatus.SCHEDULED

    def test_weekly_placement_blocks_dated_one(self, db, child, topic):
        add_scheduled_session(db, child, topic, 30, MONDAY, "09:00", weekly=True)
        dated = add_session(db, child, topic, 30)

        with pytest.raises(ConflictError):
            schedule_session(db, dated.id, 1, time(9, 15), time(9, 45), MONDAY + timedelta(days=14))

    def test_other_dates_do_not_conflict(self, db, child, topic):
        add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")
        other = add_scheduled_session(db, child, topic, 30, MONDAY + timedelta(days=7), "09:00")
        assert other.status == SessionStatus.SCHEDULED

    def test_other_children_do_not_conflict(self, db, child, topic):
        add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")
        sibling = create_child(db, ChildCreate(name="Ravi"))
        sibling_topic = create_topic(db, create_subject(db, sibling.id, "Reading").id, "Phonics")

        session = add_scheduled_session(db, sibling, sibling_topic, 30, MONDAY, "09:00")
        assert session.status == SessionStatus.SCHEDULED

    def test_stale_expected_version(self, db, child, topic):
        session = add_session(db, child, topic, 30)

        with pytest.raises(ConflictError):
            schedule_session(db, session.id, 1, time(9, 0), time(9, 30), MONDAY,
                             expected_version=session.version - 1)
        assert get_session(db, session.id).status == SessionStatus.PLANNED

    def test_concurrent_writer_is_detected(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}")
        Base.metadata.create_all(bind=engine)
        Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        setup = Session()
        child = create_child(setup, ChildCreate(name="Asha"))
        topic = create_topic(setup, create_subject(setup, child.id, "Math").id, "Fractions")
        session_id = add_session(setup, child, topic, 30, planned=False).id
        setup.close()

        first, second = Session(), Session()
        try:
            mine = get_session(first, session_id)
            theirs = get_session(second, session_id)

            plan_session(second, theirs.id)

            with pytest.raises(ConflictError) as excinfo:
                with transaction(first):
                    version = mine.version
                    mine.plan()
                    SqlSessionStore(first).commit(mine, version)

            assert excinfo.value.retryable
            assert f"Session {session_id}" in str(excinfo.value)
            # The losing session can read again after the conflict
            assert get_session(first, session_id).status == SessionStatus.PLANNED
        finally:
            first.close()
            second.close()
            engine.dispose()


class TestDeleteChild:

    def test_cascades_to_everything_the_child_owns(self, db, planner, child, topic, flashcard):
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")
        planner.catch_up.record_missed(session.id, MONDAY, today=MONDAY)
        planner.reviews.start_review(child.id, flashcard, now=NOW)

        assert delete_child(db, child.id)

        for model in (Subject, Topic, Flashcard, LearningSession, CatchUpSession, Review):
            assert db.query(model).count() == 0

    def test_unknown_child(self, db):
        assert not delete_child(db, 404)
