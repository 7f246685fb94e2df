import pytest

from assignment_engine.core.exceptions import AttemptNotActive, InvalidAnswerPayload
from assignment_engine.models import Attempt, AttemptStatus
from assignment_engine.schemas.attempt import SaveProgressRequest
from assignment_engine.services.attempt_service import AttemptService
from assignment_engine.services.submission_service import SubmissionService

from conftest import answers_for, multiple_question, single_question


async def start(session_factory, student_id, assignment_id):
    async with session_factory() as session:
        return await AttemptService(session).start_attempt(student_id, assignment_id)


async def save(session_factory, student_id, attempt_id, request):
    async with session_factory() as session:
        return await AttemptService(session).save_progress(student_id, attempt_id, request)


async def load_attempt(session_factory, attempt_id):
    async with session_factory() as session:
        return await session.get(Attempt, attempt_id)


class TestSaveProgress:
    async def test_save_overwrites_answers_and_position(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment()
        questions = assignment.question_data
        started = await start(session_factory, student_id, assignment.id)

        await save(
            session_factory, student_id, started.attempt.id,
            SaveProgressRequest(answers=answers_for(questions[:2]), current_question_index=2),
        )
        response = await save(
            session_factory, student_id, started.attempt.id,
            SaveProgressRequest(answers=answers_for(questions[:1]), current_question_index=1, time_remaining=42),
        )

        assert response.attempt_id == started.attempt.id
        assert response.remaining_seconds > 0

        attempt = await load_attempt(session_factory, started.attempt.id)
        assert attempt.answers == answers_for(questions[:1])
        assert attempt.current_question_index == 1
        assert attempt.time_remaining_seconds == 42
        assert attempt.last_saved_at is not None

    async def test_repeated_save_is_idempotent(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment()
        started = await start(session_factory, student_id, assignment.id)
        request = SaveProgressRequest(
            answers=answers_for(assignment.question_data[:3]),
            current_question_index=4,
        )

        await save(session_factory, student_id, started.attempt.id, request)
        first = await load_attempt(session_factory, started.attempt.id)
        await save(session_factory, student_id, started.attempt.id, request)
        second = await load_attempt(session_factory, started.attempt.id)

        assert first.answers == second.answers
        assert first.current_question_index == second.current_question_index
        assert second.status is AttemptStatus.IN_PROGRESS

    async def test_client_countdown_does_not_move_deadline(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(time_limit_minutes=30)
        started = await start(session_factory, student_id, assignment.id)

        response = await save(
            session_factory, student_id, started.attempt.id,
            SaveProgressRequest(time_remaining=999999),
        )

        assert response.remaining_seconds <= 30 * 60
        attempt = await load_attempt(session_factory, started.attempt.id)
        assert attempt.deadline_at.replace(tzinfo=None) == started.attempt.deadline_at.replace(tzinfo=None)

    async def test_multiple_answers_are_stored_sorted(self, session_factory, make_assignment, student_id):
        question = multiple_question(correct=("A", "C"))
        assignment = await make_assignment(questions=[question], passing_marks=1)
        started = await start(session_factory, student_id, assignment.id)

        await save(
            session_factory, student_id, started.attempt.id,
            SaveProgressRequest(answers={question["id"]: ["c", "a"]}),
        )

        attempt = await load_attempt(session_factory, started.attempt.id)
        assert attempt.answers == {str(question["id"]): ["A", "C"]}


class TestSaveProgressRejections:
    async def test_invalid_label_rejected(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment()
        started = await start(session_factory, student_id, assignment.id)
        first_id = assignment.question_data[0]["id"]

        with pytest.raises(InvalidAnswerPayload):
            await save(
                session_factory, student_id, started.attempt.id,
                SaveProgressRequest(answers={first_id: "Z"}),
            )

    async def test_question_index_out_of_range(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment(questions=[single_question(order=i) for i in range(3)], passing_marks=1)
        started = await start(session_factory, student_id, assignment.id)

        with pytest.raises(InvalidAnswerPayload):
            await save(
                session_factory, student_id, started.attempt.id,
                SaveProgressRequest(current_question_index=3),
            )

    async def test_save_after_submit_rejected(self, session_factory, make_assignment, student_id):
        assignment = await make_assignment()
        questions = assignment.question_data
        started = await start(session_factory, student_id, assignment.id)

        async with session_factory() as session:
            await SubmissionService(session).submit(student_id, started.attempt.id, answers_for(questions))

        with pytest.raises(AttemptNotActive):
            await save(
                session_factory, student_id, started.attempt.id,
                SaveProgressRequest(answers={}),
            )

        attempt = await load_attempt(session_factory, started.attempt.id)
        assert attempt.status is AttemptStatus.COMPLETED
        assert attempt.answers == {}

    async def test_save_after_deadline_finalizes_previous_answers(
        self, session_factory, make_assignment, student_id, expire_attempt
    ):
        assignment = await make_assignment()
        questions = assignment.question_data
        started = await start(session_factory, student_id, assignment.id)

        await save(
            session_factory, student_id, started.attempt.id,
            SaveProgressRequest(answers=answers_for(questions[:2])),
        )
        await expire_attempt(started.attempt.id)

        with pytest.raises(AttemptNotActive):
            await save(
                session_factory, student_id, started.attempt.id,
                SaveProgressRequest(answers=answers_for(questions)),
            )

        attempt = await load_attempt(session_factory, started.attempt.id)
        assert attempt.status is AttemptStatus.TIMED_OUT
        assert attempt.answers == answers_for(questions[:2])
