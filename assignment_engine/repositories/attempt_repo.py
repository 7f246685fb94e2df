"""
Attempt Repository

Data access layer for Attempt. Every status change goes through a
conditional UPDATE so a terminal attempt can never be written again.
"""

import hashlib
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, text

from assignment_engine.repositories.base import BaseRepository
from assignment_engine.models.attempt import Attempt, AttemptStatus
from assignment_engine.models.submission import Submission


def _lock_key(student_id: UUID, assignment_id: UUID) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.blake2b(
        f"{student_id}:{assignment_id}".encode("utf-8"),
        digest_size=8,
    ).digest()
    return int.from_bytes(digest, "big", signed=True)


class AttemptRepository(BaseRepository[Attempt]):
    """Repository for Attempt model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Attempt, db)

    # -----------------------------
    # Locking
    # -----------------------------
    async def lock_student_assignment(self, student_id: UUID, assignment_id: UUID) -> None:
        """
        Serialize attempt creation for one (student, assignment) pair.

        Held until the surrounding transaction ends. Only PostgreSQL has
        advisory locks; other backends rely on the unique indexes alone.
        """
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": _lock_key(student_id, assignment_id)},
        )

    # -----------------------------
    # Reads
    # -----------------------------
    async def get_for_student(self, attempt_id: UUID, student_id: UUID) -> Optional[Attempt]:
        stmt = select(self.model).where(
            self.model.id == attempt_id,
            self.model.student_id == student_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_in_progress(self, student_id: UUID, assignment_id: UUID) -> Optional[Attempt]:
        stmt = (
            select(self.model)
            .where(
                self.model.student_id == student_id,
                self.model.assignment_id == assignment_id,
                self.model.status == AttemptStatus.IN_PROGRESS,
            )
            .order_by(self.model.attempt_number.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def count_for_student(self, student_id: UUID, assignment_id: UUID) -> int:
        stmt = (
            select(func.count(self.model.id))
            .where(
                self.model.student_id == student_id,
                self.model.assignment_id == assignment_id,
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def list_with_submissions(
        self,
        student_id: UUID,
        assignment_id: UUID,
    ) -> List[Tuple[Attempt, Optional[Submission]]]:
        """Every attempt of a student, newest first, with its submission if graded."""
        stmt = (
            select(self.model, Submission)
            .outerjoin(Submission, Submission.attempt_id == self.model.id)
            .where(
                self.model.student_id == student_id,
                self.model.assignment_id == assignment_id,
            )
            .order_by(self.model.attempt_number.desc())
        )
        result = await self.db.execute(stmt)
        return [(attempt, submission) for attempt, submission in result.all()]

    async def get_first_started_at(self, student_id: UUID, assignment_id: UUID) -> Optional[datetime]:
        stmt = (
            select(func.min(self.model.started_at))
            .where(
                self.model.student_id == student_id,
                self.model.assignment_id == assignment_id,
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar()

    async def get_expired_in_progress(self, now: datetime, limit: int = 100) -> List[Attempt]:
        stmt = (
            select(self.model)
            .where(
                self.model.status == AttemptStatus.IN_PROGRESS,
                self.model.deadline_at < now,
            )
            .order_by(self.model.deadline_at)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # -----------------------------
    # Conditional writes
    # -----------------------------
    async def transition_status(
        self,
        attempt_id: UUID,
        new_status: AttemptStatus,
        ended_at: datetime,
    ) -> bool:
        """
        Move an in-progress attempt to a terminal status.

        Returns False when the attempt was no longer in progress.
        """
        stmt = (
            update(self.model)
            .where(
                self.model.id == attempt_id,
                self.model.status == AttemptStatus.IN_PROGRESS,
            )
            .values(status=new_status, ended_at=ended_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def save_progress(
        self,
        attempt_id: UUID,
        answers: dict,
        current_question_index: int,
        time_remaining_seconds: Optional[int],
        saved_at: datetime,
    ) -> bool:
        """Overwrite autosave fields; returns False if no longer in progress."""
        stmt = (
            update(self.model)
            .where(
                self.model.id == attempt_id,
                self.model.status == AttemptStatus.IN_PROGRESS,
            )
            .values(
                answers=answers,
                current_question_index=current_question_index,
                time_remaining_seconds=time_remaining_seconds,
                last_saved_at=saved_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1
