from sqlalchemy import (
    Column, Integer, Boolean, String, Text, ForeignKey, DateTime, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from transcript_annotator.database import Base, generate_uuid, utcnow

VISIBILITY_CHOICES = ("hidden", "visible_after_completion", "always_visible")


class ScavengerHunt(Base):
    """The fixed question set attached to one transcript."""
    __tablename__ = "scavenger_hunts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    transcript_id = Column(
        String(36), ForeignKey("transcripts.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    scavenger_visibility_admin = Column(String(30), nullable=False, default="hidden")
    scavenger_visibility_user = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    transcript = relationship("Transcript", back_populates="scavenger_hunt")
    questions = relationship(
        "ScavengerHuntQuestion", back_populates="scavenger",
        order_by="ScavengerHuntQuestion.order_index", cascade="all, delete-orphan",
    )
    assignments = relationship(
        "ScavengerHuntAssignment", back_populates="scavenger", cascade="all, delete-orphan"
    )


class ScavengerHuntQuestion(Base):
    __tablename__ = "scavenger_hunt_questions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    scavenger_id = Column(String(36), ForeignKey("scavenger_hunts.id", ondelete="CASCADE"), nullable=False)
    question = Column(Text, nullable=False)
    order_index = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("scavenger_id", "order_index", name="uq_scavenger_question_order"),
    )

    # Relationships
    scavenger = relationship("ScavengerHunt", back_populates="questions")
    answers = relationship(
        "ScavengerHuntAnswer", back_populates="question", cascade="all, delete-orphan"
    )


class ScavengerHuntAssignment(Base):
    """
    One annotator's work on one hunt. Created when the hunt is saved for
    already-assigned annotators, or lazily on the annotator's first write.
    """
    __tablename__ = "scavenger_hunt_assignments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    scavenger_id = Column(String(36), ForeignKey("scavenger_hunts.id", ondelete="CASCADE"), nullable=False)
    created_for = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    scavenger_completed = Column(Boolean, nullable=False, default=False)
    scavenger_visibility_admin = Column(String(30), nullable=False, default="hidden")
    scavenger_visibility_user = Column(Boolean, nullable=False, default=True)
    assigned_time = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("scavenger_id", "created_for", name="uq_scavenger_assignment"),
    )

    # Relationships
    scavenger = relationship("ScavengerHunt", back_populates="assignments")
    user = relationship("User", back_populates="scavenger_assignments")
    answers = relationship(
        "ScavengerHuntAnswer", back_populates="assignment", cascade="all, delete-orphan"
    )


class ScavengerHuntAnswer(Base):
    """
    Absence of a row means "not answered": a save with no text and no
    lines deletes the row instead of storing it empty.
    """
    __tablename__ = "scavenger_hunt_answers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    assignment_id = Column(
        String(36), ForeignKey("scavenger_hunt_assignments.id", ondelete="CASCADE"), nullable=False
    )
    question_id = Column(
        String(36), ForeignKey("scavenger_hunt_questions.id", ondelete="CASCADE"), nullable=False
    )
    answer = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("assignment_id", "question_id", name="uq_scavenger_answer"),
    )

    # Relationships
    assignment = relationship("ScavengerHuntAssignment", back_populates="answers")
    question = relationship("ScavengerHuntQuestion", back_populates="answers")
    lines = relationship(
        "ScavengerHuntAnswerLine", back_populates="answer", cascade="all, delete-orphan"
    )


class ScavengerHuntAnswerLine(Base):
    """Supporting transcript line cited by an answer."""
    __tablename__ = "scavenger_hunt_answer_lines"

    answer_id = Column(
        String(36), ForeignKey("scavenger_hunt_answers.id", ondelete="CASCADE"), primary_key=True
    )
    line_id = Column(
        String(36), ForeignKey("transcript_lines.line_id", ondelete="CASCADE"), primary_key=True
    )

    # Relationships
    answer = relationship("ScavengerHuntAnswer", back_populates="lines")
    line = relationship("TranscriptLine")
