from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import BaseModel, JSONType

QUESTION_TYPE_SINGLE = "single"
QUESTION_TYPE_MULTIPLE = "multiple"

OPTION_LABELS = ("A", "B", "C", "D", "E")


class Question(BaseModel):
    __tablename__ = "questions"

    assignment_id = Column(UUID(as_uuid=True), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)

    # Question content
    question_type = Column(String(20), default=QUESTION_TYPE_SINGLE, nullable=False)  # single | multiple
    question_text = Column(Text, nullable=False)

    # {"A": "...", "B": "..."} and ["A", "C"]
    options = Column(JSONType, nullable=False)
    correct_answers = Column(JSONType, nullable=False)
    explanation = Column(Text, nullable=True)

    # Metadata
    marks = Column(Integer, default=1, nullable=False)
    difficulty_level = Column(String(10), default="medium", nullable=False)  # easy | medium | hard
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    assignment = relationship("Assignment", back_populates="questions")
