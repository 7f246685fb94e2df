import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from assignment_engine.core.exceptions import (
    AssignmentNotFound,
    AttemptNotActive,
    AttemptNotFound,
    AttemptNotAllowed,
    QuestionBankInconsistent,
)
from assignment_engine.models import Attempt, AttemptStatus, Submission
from assignment_engine.schemas.attempt import SaveProgressRequest
from assignment_engine.services.attempt_service import (
    REASON_ACTIVE_ATTEMPT,
    REASON_CLOSED,
    REASON_INACTIVE,
    REASON_MAX_ATTEMPTS,
    REASON_NOT_OPEN,
    REASON_WINDOW_CLOSED,
    AttemptService,
)
from assignment_engine.services.submission_service import SubmissionService
from assignment_engine.utils.datetime_utils import utcnow

from conftest import answers_for, single_question


async def start(session_factory, student_id, assignment_id):
    async with session_factory() as session:
        return await AttemptService(session).start_attempt(student_id, assignment_id)


async def submit(session_factory, student_id, attempt_id, answers):
    async with session_factory() as session:
        return await SubmissionService(session).submit(student_id, attempt_id, answers)


async def can_attempt(session_factory, student_id, assignment_id):
    async with session_factory() as session:
        return await AttemptService(session).can_attempt(student_id, assignment_id)


class TestAttemptLimits:
    async def test_scenario_two_attempts_then_blocked(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(max_attempts=2, time_limit_minutes=30)
        questions = assignment.question_data

        first = await start(session_factory, student_id, assignment.id)
        assert first.attempt.attempt_number == 1
        assert first.attempt.status == "in_progress"
        assert 0 < first.attempt.remaining_seconds <= 30 * 60
        await submit(session_factory, student_id, first.attempt.id, answers_for(questions))

        check = await can_attempt(session_factory, student_id, assignment.id)
        assert check.can_attempt is True
        assert check.next_attempt == 2
        assert check.attempts_used == 1

        second = await start(session_factory, student_id, assignment.id)
        assert second.attempt.attempt_number == 2
        await submit(session_factory, student_id, second.attempt.id, answers_for(questions, wrong_indexes={0}))

        check = await can_attempt(session_factory, student_id, assignment.id)
        assert check.can_attempt is False
        assert check.reason == REASON_MAX_ATTEMPTS
        assert check.attempts_used == 2
        assert check.max_attempts == 2

        with pytest.raises(AttemptNotAllowed) as exc_info:
            await start(session_factory, student_id, assignment.id)
        assert exc_info.value.reason == REASON_MAX_ATTEMPTS
        assert exc_info.value.attempts_used == 2

        async with session_factory() as session:
            count = await session.scalar(select(func.count(Attempt.id)))
        assert count == 2

    async def test_active_attempt_blocks_new_start(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(max_attempts=3)
        started = await start(session_factory, student_id, assignment.id)

        check = await can_attempt(session_factory, student_id, assignment.id)
        assert check.can_attempt is False
        assert check.reason == REASON_ACTIVE_ATTEMPT
        assert check.has_active_attempt is True
        assert check.attempt_id == started.attempt.id
        assert check.attempt_number == 1

        with pytest.raises(AttemptNotAllowed) as exc_info:
            await start(session_factory, student_id, assignment.id)
        assert exc_info.value.attempt_id == started.attempt.id

        async with session_factory() as session:
            count = await session.scalar(select(func.count(Attempt.id)))
        assert count == 1

    async def test_attempts_are_per_student(self, session_factory, make_assignment):
        assignment = await make_assignment(max_attempts=1)
        first = await start(session_factory, uuid.uuid4(), assignment.id)
        second = await start(session_factory, uuid.uuid4(), assignment.id)

        assert first.attempt.attempt_number == 1
        assert second.attempt.attempt_number == 1

    async def test_unknown_assignment(self, session_factory, student_id):
        with pytest.raises(AssignmentNotFound):
            await can_attempt(session_factory, student_id, uuid.uuid4())


class TestAssignmentWindow:
    async def test_inactive_assignment(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(is_active=False)
        check = await can_attempt(session_factory, student_id, assignment.id)
        assert check.can_attempt is False
        assert check.reason == REASON_INACTIVE

    async def test_not_open_yet(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(start_date=utcnow() + timedelta(days=1))
        check = await can_attempt(session_factory, student_id, assignment.id)
        assert check.reason == REASON_NOT_OPEN

    async def test_closed_after_end_date(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(end_date=utcnow() - timedelta(minutes=1))
        check = await can_attempt(session_factory, student_id, assignment.id)
        assert check.can_attempt is False
        assert check.reason == REASON_CLOSED

        with pytest.raises(AttemptNotAllowed):
            await start(session_factory, student_id, assignment.id)

    async def test_attempt_window_counts_from_first_start(
        self, session_factory, make_assignment, student_id, expire_attempt
    ):
        assignment = await make_assignment(max_attempts=3, attempt_window_days=7)
        first = await start(session_factory, student_id, assignment.id)
        await submit(session_factory, student_id, first.attempt.id, {})

        # Pretend the first attempt started eight days ago
        await expire_attempt(first.attempt.id, minutes_ago=8 * 24 * 60)

        check = await can_attempt(session_factory, student_id, assignment.id)
        assert check.can_attempt is False
        assert check.reason == REASON_WINDOW_CLOSED


class TestStartAndResume:
    async def test_questions_never_expose_correct_answers(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment()
        started = await start(session_factory, student_id, assignment.id)

        assert started.total_questions == 10
        assert started.time_limit_seconds == 30 * 60
        for question in started.questions:
            dumped = question.model_dump()
            assert "correct_answers" not in dumped
            assert "explanation" not in dumped
            assert [option.key for option in question.options] == ["A", "B", "C", "D"]

    async def test_unshuffled_order_follows_display_order(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment()
        started = await start(session_factory, student_id, assignment.id)
        expected = [q["id"] for q in assignment.question_data]
        assert [q.id for q in started.questions] == expected

    async def test_shuffled_order_is_stable_for_the_attempt(self, session_factory, make_assignment, student_id):
        questions = [single_question(order=i) for i in range(20)]
        assignment = await make_assignment(questions=questions, shuffle_questions=True)

        started = await start(session_factory, student_id, assignment.id)
        async with session_factory() as session:
            resumed = await AttemptService(session).resume_attempt(student_id, started.attempt.id)

        assert [q.id for q in resumed.questions] == [q.id for q in started.questions]
        assert {q.id for q in started.questions} == {q["id"] for q in questions}

    async def test_resume_returns_saved_answers(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment()
        started = await start(session_factory, student_id, assignment.id)
        first_id = assignment.question_data[0]["id"]

        async with session_factory() as session:
            await AttemptService(session).save_progress(
                student_id,
                started.attempt.id,
                SaveProgressRequest(answers={first_id: "b"}, current_question_index=3, time_remaining=900),
            )
        async with session_factory() as session:
            resumed = await AttemptService(session).resume_attempt(student_id, started.attempt.id)

        assert resumed.attempt.answers == {str(first_id): "B"}
        assert resumed.attempt.current_question_index == 3

    async def test_other_students_cannot_see_attempt(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment()
        started = await start(session_factory, student_id, assignment.id)

        async with session_factory() as session:
            with pytest.raises(AttemptNotFound):
                await AttemptService(session).get_attempt(uuid.uuid4(), started.attempt.id)

    async def test_inconsistent_question_bank_blocks_start(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(
            questions=[single_question(correct_answers=["A", "B"])]
        )
        with pytest.raises(QuestionBankInconsistent):
            await start(session_factory, student_id, assignment.id)

        async with session_factory() as session:
            count = await session.scalar(select(func.count(Attempt.id)))
        assert count == 0

    async def test_declared_question_count_mismatch(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(question_count=12)
        with pytest.raises(QuestionBankInconsistent):
            await start(session_factory, student_id, assignment.id)


class TestTimeout:
    async def test_scenario_expired_attempt_finalized_from_saved_answers(
        self, session_factory, make_assignment, student_id, expire_attempt
    ):
        assignment = await make_assignment(time_limit_minutes=1, max_attempts=2)
        questions = assignment.question_data
        started = await start(session_factory, student_id, assignment.id)

        saved = answers_for(questions[:4])
        async with session_factory() as session:
            await AttemptService(session).save_progress(
                student_id, started.attempt.id, SaveProgressRequest(answers=saved)
            )

        await expire_attempt(started.attempt.id, minutes_ago=1, time_limit_minutes=1)

        async with session_factory() as session:
            state = await AttemptService(session).get_attempt(student_id, started.attempt.id)
        assert state.status == "timed_out"
        assert state.remaining_seconds == 0

        async with session_factory() as session:
            submission = await session.scalar(
                select(Submission).where(Submission.attempt_id == started.attempt.id)
            )
        assert submission.status is AttemptStatus.TIMED_OUT
        assert submission.score == 4
        assert submission.time_taken_seconds == 60

        with pytest.raises(AttemptNotActive):
            await submit(session_factory, student_id, started.attempt.id, answers_for(questions))

    async def test_can_attempt_finalizes_elapsed_attempt(
        self, session_factory, make_assignment, student_id, expire_attempt
    ):
        assignment = await make_assignment(max_attempts=2)
        started = await start(session_factory, student_id, assignment.id)
        await expire_attempt(started.attempt.id)

        check = await can_attempt(session_factory, student_id, assignment.id)
        assert check.can_attempt is True
        assert check.has_active_attempt is False
        assert check.next_attempt == 2
        assert check.attempts_used == 1

    async def test_resume_after_deadline_is_rejected(
        self, session_factory, make_assignment, student_id, expire_attempt
    ):
        assignment = await make_assignment()
        started = await start(session_factory, student_id, assignment.id)
        await expire_attempt(started.attempt.id)

        async with session_factory() as session:
            with pytest.raises(AttemptNotActive):
                await AttemptService(session).resume_attempt(student_id, started.attempt.id)

        async with session_factory() as session:
            attempt = await session.get(Attempt, started.attempt.id)
        assert attempt.status is AttemptStatus.TIMED_OUT


class TestAbandon:
    async def test_abandon_closes_attempt_without_submission(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(max_attempts=2)
        started = await start(session_factory, student_id, assignment.id)

        async with session_factory() as session:
            abandoned = await AttemptService(session).abandon_attempt(started.attempt.id)
        assert abandoned.status == "abandoned"
        assert abandoned.ended_at is not None

        async with session_factory() as session:
            count = await session.scalar(select(func.count(Submission.id)))
        assert count == 0

        # An abandoned attempt still counts towards the limit
        check = await can_attempt(session_factory, student_id, assignment.id)
        assert check.attempts_used == 1
        assert check.next_attempt == 2

        async with session_factory() as session:
            with pytest.raises(AttemptNotActive):
                await AttemptService(session).abandon_attempt(started.attempt.id)


class TestAssignmentDetails:
    async def details(self, session_factory, student_id, part_id):
        async with session_factory() as session:
            return await AttemptService(session).get_assignment_details(student_id, part_id)

    async def test_fresh_student_sees_assignment_and_eligibility(
        self, session_factory, make_assignment, student_id
    ):
        part_id = uuid.uuid4()
        assignment = await make_assignment(part_id=part_id)

        details = await self.details(session_factory, student_id, part_id)

        assert details.assignment.id == assignment.id
        assert details.assignment.part_id == part_id
        assert details.eligibility.can_attempt is True
        assert details.eligibility.next_attempt == 1
        assert details.attempts == []
        assert details.best_result is None

    async def test_attempts_and_best_result_are_included(
        self, session_factory, make_assignment, student_id
    ):
        part_id = uuid.uuid4()
        assignment = await make_assignment(part_id=part_id, max_attempts=3)
        questions = assignment.question_data

        first = await start(session_factory, student_id, assignment.id)
        await submit(session_factory, student_id, first.attempt.id, answers_for(questions, wrong_indexes={0, 1}))
        second = await start(session_factory, student_id, assignment.id)

        details = await self.details(session_factory, student_id, part_id)

        assert details.eligibility.has_active_attempt is True
        assert details.eligibility.attempt_id == second.attempt.id
        assert [a.attempt_number for a in details.attempts] == [2, 1]

        in_progress, graded = details.attempts
        assert in_progress.status == "in_progress"
        assert in_progress.score is None
        assert graded.status == "completed"
        assert graded.score == 8
        assert graded.passed is True
        assert graded.submitted_at is not None

        assert details.best_result.best_score == 8
        assert details.best_result.attempts_used == 1

    async def test_elapsed_attempt_is_finalized_on_open(
        self, session_factory, make_assignment, student_id, expire_attempt
    ):
        part_id = uuid.uuid4()
        assignment = await make_assignment(part_id=part_id)
        started = await start(session_factory, student_id, assignment.id)
        await expire_attempt(started.attempt.id)

        details = await self.details(session_factory, student_id, part_id)

        assert details.eligibility.can_attempt is True
        assert details.attempts[0].status == "timed_out"
        assert details.attempts[0].score == 0
        assert details.best_result.attempts_used == 1

    async def test_inactive_or_unknown_part(self, session_factory, make_assignment, student_id):
        part_id = uuid.uuid4()
        await make_assignment(part_id=part_id, is_active=False)

        with pytest.raises(AssignmentNotFound):
            await self.details(session_factory, student_id, part_id)
        with pytest.raises(AssignmentNotFound):
            await self.details(session_factory, student_id, uuid.uuid4())
