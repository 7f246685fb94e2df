"""
Submission Repository

Data access layer for Submission. Submissions are insert-only.
"""

from typing import List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from assignment_engine.repositories.base import BaseRepository
from assignment_engine.models.submission import Submission


class SubmissionRepository(BaseRepository[Submission]):
    """Repository for Submission model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Submission, db)

    async def get_history(
        self,
        student_id: UUID,
        assignment_id: UUID,
        skip: int = 0,
        limit: int = 50
    ) -> List[Submission]:
        stmt = (
            select(self.model)
            .where(
                self.model.student_id == student_id,
                self.model.assignment_id == assignment_id,
            )
            .order_by(self.model.attempt_number.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_history(self, student_id: UUID, assignment_id: UUID) -> int:
        stmt = (
            select(func.count(self.model.id))
            .where(
                self.model.student_id == student_id,
                self.model.assignment_id == assignment_id,
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0
