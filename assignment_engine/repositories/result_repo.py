"""
Result Repository

Data access layer for the per-student best-result summary.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from assignment_engine.repositories.base import BaseRepository
from assignment_engine.models.result import AssignmentResult


class ResultRepository(BaseRepository[AssignmentResult]):
    """Repository for AssignmentResult model."""

    def __init__(self, db: AsyncSession):
        super().__init__(AssignmentResult, db)

    async def get_for_student(
        self,
        student_id: UUID,
        assignment_id: UUID,
        for_update: bool = False,
    ) -> Optional[AssignmentResult]:
        stmt = select(self.model).where(
            self.model.student_id == student_id,
            self.model.assignment_id == assignment_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
