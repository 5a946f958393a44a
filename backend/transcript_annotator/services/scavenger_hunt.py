"""
Annotator side of the scavenger hunt: reading the question set with the
caller's answers, saving one answer at a time, and toggling completion.

Write paths commit exactly once so the answer row, its supporting lines
and a lazily created assignment become visible together.
"""
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transcript_annotator.database import utcnow
from transcript_annotator.errors import NotFound, ValidationError
from transcript_annotator.models.annotation import Annotation
from transcript_annotator.models.scavenger_hunt import (
    ScavengerHunt, ScavengerHuntQuestion, ScavengerHuntAssignment,
    ScavengerHuntAnswer, ScavengerHuntAnswerLine,
)
from transcript_annotator.models.transcript import TranscriptLine
from transcript_annotator.models.user import User
from transcript_annotator.schemas.scavenger_hunt import (
    SavedAnswer, ScavengerHuntResponse, ScavengerHuntState, ScavengerQuestionState,
)

logger = logging.getLogger(__name__)


def find_assigned_annotation(db: Session, transcript_id: str, annotator_id: str) -> Optional[Annotation]:
    return (
        db.query(Annotation)
        .filter(
            Annotation.transcript_id == transcript_id,
            Annotation.created_for == annotator_id,
            Annotation.hide == False,
        )
        .first()
    )


def require_assigned_annotation(db: Session, transcript_id: str, annotator_id: str) -> Annotation:
    annotation = find_assigned_annotation(db, transcript_id, annotator_id)
    if not annotation:
        raise NotFound("Transcript not found or not assigned to the current user.")
    return annotation


def normalize_line_ids(raw: Any) -> list[str]:
    """Trim, drop blanks and non-strings, dedupe keeping first occurrence."""
    if not isinstance(raw, list):
        return []
    stripped = (value.strip() for value in raw if isinstance(value, str))
    return list(dict.fromkeys(value for value in stripped if value))


def _get_or_create_assignment(db: Session, scavenger_id: str, annotator_id: str) -> ScavengerHuntAssignment:
    assignment = (
        db.query(ScavengerHuntAssignment)
        .filter(
            ScavengerHuntAssignment.scavenger_id == scavenger_id,
            ScavengerHuntAssignment.created_for == annotator_id,
        )
        .first()
    )
    if assignment:
        return assignment
    assignment = ScavengerHuntAssignment(scavenger_id=scavenger_id, created_for=annotator_id)
    db.add(assignment)
    db.flush()  # get assignment.id
    return assignment


def _selected_lines_by_answer(db: Session, answer_ids: list[str]) -> dict[str, list[str]]:
    """Supporting line ids per answer, in transcript order."""
    if not answer_ids:
        return {}
    rows = (
        db.query(ScavengerHuntAnswerLine.answer_id, ScavengerHuntAnswerLine.line_id)
        .join(TranscriptLine, TranscriptLine.line_id == ScavengerHuntAnswerLine.line_id)
        .filter(ScavengerHuntAnswerLine.answer_id.in_(answer_ids))
        .order_by(TranscriptLine.line)
        .all()
    )
    lines_by_answer: dict[str, list[str]] = {}
    for answer_id, line_id in rows:
        lines_by_answer.setdefault(answer_id, []).append(line_id)
    return lines_by_answer


# ── Read path ─────────────────────────────────────────────────────

def get_hunt_for_annotator(db: Session, transcript_id: str, annotator: User) -> ScavengerHuntResponse:
    require_assigned_annotation(db, transcript_id, annotator.id)

    hunt = db.query(ScavengerHunt).filter(ScavengerHunt.transcript_id == transcript_id).first()
    if not hunt:
        return ScavengerHuntResponse(scavenger_completed=False, scavenger_hunt=None)

    questions = (
        db.query(ScavengerHuntQuestion)
        .filter(ScavengerHuntQuestion.scavenger_id == hunt.id)
        .order_by(ScavengerHuntQuestion.order_index)
        .all()
    )
    assignment = (
        db.query(ScavengerHuntAssignment)
        .filter(
            ScavengerHuntAssignment.scavenger_id == hunt.id,
            ScavengerHuntAssignment.created_for == annotator.id,
        )
        .first()
    )

    answers = []
    if assignment:
        answers = (
            db.query(ScavengerHuntAnswer)
            .filter(ScavengerHuntAnswer.assignment_id == assignment.id)
            .all()
        )
    lines_by_answer = _selected_lines_by_answer(db, [a.id for a in answers])
    answers_by_question = {a.question_id: a for a in answers}

    question_states = []
    for question in questions:
        answer = answers_by_question.get(question.id)
        question_states.append(ScavengerQuestionState(
            id=question.id,
            question=question.question,
            order_index=question.order_index,
            answer=(answer.answer or "") if answer else "",
            selected_line_ids=lines_by_answer.get(answer.id, []) if answer else [],
        ))

    return ScavengerHuntResponse(
        scavenger_completed=bool(assignment and assignment.scavenger_completed),
        scavenger_hunt=ScavengerHuntState(
            id=hunt.id,
            created_at=hunt.created_at,
            questions=question_states,
        ),
    )


# ── Answer save ───────────────────────────────────────────────────

def save_answer(
    db: Session,
    transcript_id: str,
    annotator: User,
    question_id: Any,
    answer: Any = None,
    line_ids: Any = None,
) -> SavedAnswer:
    """
    Upsert one answer for the caller.

    Empty text with no lines deletes the existing answer, which is the only
    way an annotator clears a question. Otherwise the text is stored (None
    when blank) and the supporting lines are replaced wholesale.
    """
    question_id = question_id.strip() if isinstance(question_id, str) else ""
    answer_text = answer.strip() if isinstance(answer, str) else ""
    if not question_id:
        raise ValidationError("Question id is required.")
    selected_line_ids = normalize_line_ids(line_ids)

    require_assigned_annotation(db, transcript_id, annotator.id)

    question = (
        db.query(ScavengerHuntQuestion)
        .join(ScavengerHunt, ScavengerHunt.id == ScavengerHuntQuestion.scavenger_id)
        .filter(
            ScavengerHuntQuestion.id == question_id,
            ScavengerHunt.transcript_id == transcript_id,
        )
        .first()
    )
    if not question:
        raise NotFound("Scavenger hunt question not found.")

    if selected_line_ids:
        valid_count = (
            db.query(TranscriptLine.line_id)
            .filter(
                TranscriptLine.transcript_id == transcript_id,
                TranscriptLine.line_id.in_(selected_line_ids),
            )
            .count()
        )
        if valid_count != len(selected_line_ids):
            raise ValidationError("One or more selected lines are invalid.")

    try:
        assignment = _get_or_create_assignment(db, question.scavenger_id, annotator.id)
        existing = (
            db.query(ScavengerHuntAnswer)
            .filter(
                ScavengerHuntAnswer.assignment_id == assignment.id,
                ScavengerHuntAnswer.question_id == question.id,
            )
            .first()
        )

        if not answer_text and not selected_line_ids:
            if existing:
                db.delete(existing)
            db.commit()
            return SavedAnswer(question_id=question.id, answer="", selected_line_ids=[], updated_at=None)

        if existing:
            record = existing
            record.answer = answer_text or None
            record.updated_at = utcnow()
        else:
            record = ScavengerHuntAnswer(
                assignment_id=assignment.id,
                question_id=question.id,
                answer=answer_text or None,
            )
            db.add(record)
            db.flush()  # get record.id

        # Replace, never patch, the supporting lines
        db.query(ScavengerHuntAnswerLine).filter(
            ScavengerHuntAnswerLine.answer_id == record.id
        ).delete(synchronize_session=False)
        db.add_all([
            ScavengerHuntAnswerLine(answer_id=record.id, line_id=line_id)
            for line_id in selected_line_ids
        ])

        db.commit()
        db.refresh(record)
    except SQLAlchemyError:
        db.rollback()
        raise

    return SavedAnswer(
        question_id=question.id,
        answer=record.answer or "",
        selected_line_ids=selected_line_ids,
        updated_at=record.updated_at,
    )


# ── Completion toggle ─────────────────────────────────────────────

def set_completion(db: Session, transcript_id: str, annotator: User, completed: bool = True) -> bool:
    """
    Mark the caller's hunt complete or incomplete.

    Repeating the same value leaves the same flag, but every completing
    call stamps a fresh completed_at.
    """
    require_assigned_annotation(db, transcript_id, annotator.id)

    hunt = db.query(ScavengerHunt).filter(ScavengerHunt.transcript_id == transcript_id).first()
    if not hunt:
        raise NotFound("Scavenger hunt not found for this transcript.")

    try:
        assignment = _get_or_create_assignment(db, hunt.id, annotator.id)
        assignment.scavenger_completed = completed
        assignment.completed_at = utcnow() if completed else None
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Scavenger hunt %s marked %s by %s",
        hunt.id, "complete" if completed else "incomplete", annotator.id,
    )
    return completed
