"""
Unit tests for the catch-up lane.

Covers recording missed occurrences, priority escalation, redistribution
into free capacity, manual overrides and conflict handling.
"""

from datetime import datetime, time, timedelta
from itertools import combinations

import pytest

from learnplan.capacity import CapacityAnalyzer
from learnplan.catch_up import CatchUpManager, validate_priority
from learnplan.crud import SqlSessionStore, SqlStores, get_catch_ups, get_session
from learnplan.errors import ConflictError, NotFoundError, ValidationError
from learnplan.models import LearningSession
from learnplan.models.enums import CatchUpStatus, CommitmentType, SessionStatus
from learnplan.slot_finder import SlotFinder

from tests.factories import MONDAY, NOW, SUNDAY_BEFORE, add_block, add_scheduled_session, add_session

SATURDAY_BEFORE = SUNDAY_BEFORE - timedelta(days=1)


def missed_entries(db, planner, child, topic, count, minutes=30, missed=SATURDAY_BEFORE, today=SUNDAY_BEFORE):
    entries = []
    for _ in range(count):
        session = add_session(db, child, topic, minutes, CommitmentType.FLEXIBLE)
        entries.append(planner.catch_up.record_missed(session.id, missed, today=today))
    return entries


class RacingSessionStore(SqlSessionStore):
    """Another writer takes the chosen slot just before the nth new placement commits"""

    def __init__(self, db, race_on):
        super().__init__(db)
        self.race_on = race_on
        self.new_commits = 0

    def commit(self, session, expected_version):
        if session.id is None:
            self.new_commits += 1
            if self.new_commits == self.race_on:
                rival = LearningSession(
                    topic_id=session.topic_id,
                    child_id=session.child_id,
                    estimated_minutes=session.estimated_minutes,
                    status=SessionStatus.PLANNED,
                )
                rival.schedule_to(
                    session.scheduled_day_of_week,
                    session.scheduled_start_time,
                    session.scheduled_end_time,
                    session.scheduled_date,
                )
                self.db.add(rival)
                self.db.flush()
        return super().commit(session, expected_version)


class TestPriority:
    """Tests for commitment-based priority and escalation."""

    @pytest.mark.parametrize("commitment,priority", [
        (CommitmentType.FIXED, 1),
        (CommitmentType.PREFERRED, 2),
        (CommitmentType.FLEXIBLE, 3),
    ])
    def test_base_priority(self, planner, commitment, priority):
        assert planner.catch_up.priority_for(commitment, MONDAY, MONDAY) == priority

    @pytest.mark.parametrize("days_ago,priority", [
        (6, 3),
        (7, 2),
        (14, 1),
        (60, 1),
    ])
    def test_escalates_one_level_per_week(self, planner, days_ago, priority):
        missed = MONDAY - timedelta(days=days_ago)
        assert planner.catch_up.priority_for(CommitmentType.FLEXIBLE, missed, MONDAY) == priority

    def test_custom_escalation_period(self, planner):
        manager = CatchUpManager(
            planner.stores.catch_ups, planner.stores.sessions, planner.slots, planner.capacity,
            escalation_days=3
        )
        missed = MONDAY - timedelta(days=6)
        assert manager.priority_for(CommitmentType.FLEXIBLE, missed, MONDAY) == 1

    @pytest.mark.parametrize("kwargs", [{"escalation_days": 0}, {"horizon_days": 0}])
    def test_explicit_zero_is_rejected_not_defaulted(self, planner, kwargs):
        with pytest.raises(ValueError):
            CatchUpManager(
                planner.stores.catch_ups, planner.stores.sessions, planner.slots, planner.capacity,
                **kwargs
            )

    @pytest.mark.parametrize("value", [0, 6, -1, "3", 2.0, True, None])
    def test_validate_priority_rejects(self, value):
        with pytest.raises(ValidationError):
            validate_priority(value)

    def test_validate_priority_accepts_range(self):
        assert [validate_priority(p) for p in range(1, 6)] == [1, 2, 3, 4, 5]


class TestRecordMissed:
    """Tests for moving a missed occurrence into the lane."""

    def test_creates_pending_entry_and_resets_session(self, db, planner, child, topic):
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00", CommitmentType.FIXED)

        entry = planner.catch_up.record_missed(session.id, MONDAY, reason="sick", today=MONDAY)

        assert entry.status == CatchUpStatus.PENDING
        assert entry.priority == 1
        assert entry.priority_label == "Critical"
        assert entry.estimated_minutes == 30
        assert entry.reason == "sick"
        assert entry.child_id == child.id

        session = get_session(db, session.id)
        assert session.status == SessionStatus.BACKLOG
        assert session.skipped_from_date == MONDAY
        assert session.scheduled_date is None
        assert session.scheduled_start_time is None

    def test_same_occurrence_twice_returns_first_entry(self, db, planner, child, topic):
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")

        first = planner.catch_up.record_missed(session.id, MONDAY, today=MONDAY)
        second = planner.catch_up.record_missed(session.id, MONDAY, today=MONDAY)

        assert first.id == second.id
        assert len(get_catch_ups(db, child.id)) == 1

    def test_future_date_is_rejected(self, db, planner, child, topic):
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")
        with pytest.raises(ValidationError):
            planner.catch_up.record_missed(session.id, MONDAY + timedelta(days=1), today=MONDAY)

    def test_done_session_cannot_be_missed(self, db, planner, child, topic):
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")
        planner.finish_session(session.id, now=NOW)
        with pytest.raises(ValidationError):
            planner.catch_up.record_missed(session.id, MONDAY, today=MONDAY)

    def test_unknown_session(self, planner):
        with pytest.raises(NotFoundError):
            planner.catch_up.record_missed(404, MONDAY, today=MONDAY)

    def test_old_miss_is_escalated(self, db, planner, child, topic):
        session = add_session(db, child, topic, 30, CommitmentType.FLEXIBLE)
        entry = planner.catch_up.record_missed(session.id, MONDAY - timedelta(days=15), today=MONDAY)
        assert entry.priority == 1

    def test_skip_session_day_returns_suggestions(self, db, planner, child, topic):
        add_block(db, child, 2, "09:00", "10:00")
        session = add_scheduled_session(db, child, topic, 30, MONDAY, "09:00")

        result = planner.skip_session_day(session.id, MONDAY, "holiday", today=MONDAY)

        assert result["catch_up_session"].missed_date == MONDAY
        suggestions = result["reschedule_suggestions"]
        assert suggestions[0].date == MONDAY + timedelta(days=1)
        assert suggestions[0].recommended


class TestPending:

    def test_lane_order(self, db, planner, child, topic):
        late = add_session(db, child, topic, 30, CommitmentType.FLEXIBLE)
        early = add_session(db, child, topic, 30, CommitmentType.FLEXIBLE)
        urgent = add_session(db, child, topic, 30, CommitmentType.FIXED)
        planner.catch_up.record_missed(late.id, MONDAY - timedelta(days=1), today=MONDAY)
        planner.catch_up.record_missed(early.id, MONDAY - timedelta(days=3), today=MONDAY)
        planner.catch_up.record_missed(urgent.id, MONDAY, today=MONDAY)

        lane = planner.catch_up.pending(child.id)

        assert [e.original_session_id for e in lane] == [urgent.id, early.id, late.id]


class TestRedistribute:
    """Tests for placing pending entries into free slots."""

    def test_only_most_urgent_entry_is_placed(self, db, planner, child, topic):
        for day in range(1, 8):
            add_block(db, child, day, "16:00", "17:00")
        fixed = add_session(db, child, topic, 30, CommitmentType.FIXED)
        flexible = add_session(db, child, topic, 30, CommitmentType.FLEXIBLE)
        urgent = planner.catch_up.record_missed(fixed.id, MONDAY - timedelta(days=10), today=MONDAY)
        relaxed = planner.catch_up.record_missed(flexible.id, MONDAY - timedelta(days=2), today=MONDAY)
        assert (urgent.priority, relaxed.priority) == (1, 3)

        summary = planner.catch_up.redistribute(child.id, 1, today=MONDAY)

        assert summary.reassigned_count == 1
        assert summary.unresolved_count == 0
        assert [d.catch_up_id for d in summary.details] == [urgent.id]

        statuses = {e.id: e.status for e in get_catch_ups(db, child.id)}
        assert statuses == {urgent.id: CatchUpStatus.REASSIGNED, relaxed.id: CatchUpStatus.PENDING}

    def test_new_session_is_scheduled_and_linked(self, db, planner, child, topic):
        add_block(db, child, 1, "09:00", "10:00")
        entry, = missed_entries(db, planner, child, topic, 1)

        summary = planner.catch_up.redistribute(child.id, 1, today=SUNDAY_BEFORE)

        detail = summary.details[0]
        new_session = get_session(db, detail.new_session_id)
        assert new_session.status == SessionStatus.SCHEDULED
        assert new_session.commitment_type == CommitmentType.FLEXIBLE
        assert new_session.scheduled_date == MONDAY
        assert new_session.scheduled_start_time == detail.slot.start_time
        assert new_session.topic_id == topic.id
        db.refresh(entry)
        assert entry.reassigned_to_session_id == new_session.id

    def test_never_places_before_now(self, db, planner, child, topic):
        add_block(db, child, 1, "00:00", "00:30")
        missed_entries(db, planner, child, topic, 1, minutes=20,
                       missed=MONDAY - timedelta(days=3), today=MONDAY)
        late_evening = datetime(2026, 10, 19, 23, 33, 2)

        summary = planner.catch_up.redistribute(child.id, 1, now=late_evening)

        slot = summary.details[0].slot
        assert slot.date == MONDAY + timedelta(days=7)
        assert slot.start_time == time(0, 0)

    def test_same_day_slot_starts_after_now(self, db, planner, child, topic):
        add_block(db, child, 1, "09:00", "12:00")
        missed_entries(db, planner, child, topic, 1, missed=MONDAY - timedelta(days=2), today=MONDAY)
        mid_morning = datetime(2026, 10, 19, 10, 4, 30)

        summary = planner.catch_up.redistribute(child.id, 1, now=mid_morning)

        slot = summary.details[0].slot
        assert slot.date == MONDAY
        assert slot.start_time == time(10, 5)
        assert datetime.combine(slot.date, slot.start_time) >= mid_morning

    def test_capacity_is_recomputed_between_placements(self, db, planner, child, topic):
        add_block(db, child, 1, "09:00", "10:00")
        missed_entries(db, planner, child, topic, 5)

        summary = planner.catch_up.redistribute(child.id, 5, today=SUNDAY_BEFORE)

        assert summary.reassigned_count == 4
        assert summary.unresolved_count == 1
        assert not summary.details[-1].resolved

        placed = [get_session(db, d.new_session_id) for d in summary.details if d.resolved]
        assert sorted((s.scheduled_date, s.scheduled_start_time) for s in placed) == [
            (MONDAY, time(9, 0)),
            (MONDAY, time(9, 30)),
            (MONDAY + timedelta(days=7), time(9, 0)),
            (MONDAY + timedelta(days=7), time(9, 30)),
        ]
        for a, b in combinations(placed, 2):
            if a.scheduled_date == b.scheduled_date:
                (a_start, a_end), (b_start, b_end) = a.minute_range, b.minute_range
                assert a_end <= b_start or b_end <= a_start

        for day in planner.capacity.analyze(child.id, (MONDAY, MONDAY + timedelta(days=13))):
            assert day.scheduled_minutes <= day.available_minutes

    def test_respects_max_sessions(self, db, planner, child, topic):
        for day in range(1, 8):
            add_block(db, child, day, "09:00", "12:00")
        missed_entries(db, planner, child, topic, 3)

        summary = planner.catch_up.redistribute(child.id, 2, today=SUNDAY_BEFORE)

        assert len(summary.details) == 2
        assert len(planner.catch_up.pending(child.id)) == 1

    def test_zero_max_is_a_no_op(self, db, planner, child, topic):
        add_block(db, child, 1, "09:00", "10:00")
        missed_entries(db, planner, child, topic, 1)

        summary = planner.catch_up.redistribute(child.id, 0, today=SUNDAY_BEFORE)

        assert summary.reassigned_count == 0
        assert summary.details == []

    def test_negative_max_is_rejected(self, planner, child):
        with pytest.raises(ValidationError):
            planner.catch_up.redistribute(child.id, -1, today=MONDAY)

    def test_no_capacity_leaves_entries_pending(self, db, planner, child, topic):
        missed_entries(db, planner, child, topic, 2)

        summary = planner.catch_up.redistribute(child.id, 5, today=SUNDAY_BEFORE)

        assert summary.reassigned_count == 0
        assert summary.unresolved_count == 2
        assert len(planner.catch_up.pending(child.id)) == 2

    def test_conflict_stops_with_partial_summary(self, db, planner, child, topic):
        for day in range(1, 8):
            add_block(db, child, day, "09:00", "12:00")
        first, second, third = missed_entries(db, planner, child, topic, 3)

        stores = SqlStores(db)
        sessions = RacingSessionStore(db, race_on=2)
        analyzer = CapacityAnalyzer(stores.time_blocks, sessions)
        manager = CatchUpManager(
            stores.catch_ups, sessions, SlotFinder(analyzer, sessions), analyzer,
            unit_of_work=stores.transaction
        )

        with pytest.raises(ConflictError) as excinfo:
            manager.redistribute(child.id, 3, today=SUNDAY_BEFORE)

        assert excinfo.value.retryable
        assert excinfo.value.summary.reassigned_count == 1
        assert [d.catch_up_id for d in excinfo.value.summary.details] == [first.id]

        statuses = {e.id: e.status for e in get_catch_ups(db, child.id)}
        assert statuses[first.id] == CatchUpStatus.REASSIGNED
        assert statuses[second.id] == CatchUpStatus.PENDING
        assert statuses[third.id] == CatchUpStatus.PENDING


class TestOverrides:
    """Tests for set_priority, cancel and complete."""

    def test_set_priority(self, db, planner, child, topic):
        entry, = missed_entries(db, planner, child, topic, 1)

        assert planner.catch_up.set_priority(entry.id, 3).priority == 3
        for bad in (0, 6):
            with pytest.raises(ValidationError):
                planner.catch_up.set_priority(entry.id, bad)
        db.refresh(entry)
        assert entry.priority == 3

    def test_set_priority_unknown_entry(self, planner):
        with pytest.raises(NotFoundError):
            planner.catch_up.set_priority(404, 2)

    def test_cancel_pending(self, db, planner, child, topic):
        entry, = missed_entries(db, planner, child, topic, 1)

        cancelled = planner.catch_up.cancel(entry.id, "covered at school")

        assert cancelled.status == CatchUpStatus.CANCELLED
        assert cancelled.reason == "covered at school"
        assert planner.catch_up.pending(child.id) == []

    def test_cancel_reassigned_is_rejected(self, db, planner, child, topic):
        add_block(db, child, 1, "09:00", "10:00")
        entry, = missed_entries(db, planner, child, topic, 1)
        planner.catch_up.redistribute(child.id, 1, today=SUNDAY_BEFORE)

        with pytest.raises(ValidationError):
            planner.catch_up.cancel(entry.id)

    def test_cancel_twice_is_rejected(self, db, planner, child, topic):
        entry, = missed_entries(db, planner, child, topic, 1)
        planner.catch_up.cancel(entry.id)
        with pytest.raises(ValidationError):
            planner.catch_up.cancel(entry.id)

    def test_complete(self, db, planner, child, topic):
        entry, = missed_entries(db, planner, child, topic, 1)

        assert planner.catch_up.complete(entry.id).status == CatchUpStatus.COMPLETED
        with pytest.raises(ValidationError):
            planner.catch_up.complete(entry.id)
