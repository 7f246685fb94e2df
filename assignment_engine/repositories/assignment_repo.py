"""
Assignment Repository

Read access to Assignment and Question definitions (the question bank).
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from assignment_engine.repositories.base import BaseRepository
from assignment_engine.models.assignment import Assignment
from assignment_engine.models.question import Question


class AssignmentRepository(BaseRepository[Assignment]):
    """Repository for Assignment model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Assignment, db)

    async def get_active_by_part(self, part_id: UUID) -> Optional[Assignment]:
        """Newest active assignment attached to a content part."""
        stmt = (
            select(self.model)
            .where(
                self.model.part_id == part_id,
                self.model.is_active.is_(True),
            )
            .order_by(self.model.created_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()


class QuestionRepository(BaseRepository[Question]):
    """Repository for Question model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Question, db)

    async def get_active_by_assignment(self, assignment_id: UUID) -> List[Question]:
        stmt = (
            select(self.model)
            .where(
                self.model.assignment_id == assignment_id,
                self.model.is_active.is_(True),
            )
            .order_by(self.model.display_order, self.model.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
