"""Administrator side of the scavenger hunt, scoped to the actor's workspace."""
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from transcript_annotator.errors import NotFound, ValidationError
from transcript_annotator.models.annotation import Annotation
from transcript_annotator.models.scavenger_hunt import (
    VISIBILITY_CHOICES, ScavengerHunt, ScavengerHuntQuestion, ScavengerHuntAssignment,
    ScavengerHuntAnswer,
)
from transcript_annotator.models.transcript import Transcript
from transcript_annotator.models.user import User

logger = logging.getLogger(__name__)

VISIBILITY_ERROR = "Admin visibility must be hidden, visible_after_completion, or always_visible."


def get_workspace_transcript(db: Session, transcript_id: str, actor: User) -> Transcript:
    transcript = (
        db.query(Transcript)
        .filter(Transcript.id == transcript_id, Transcript.workspace_id == actor.workspace_id)
        .first()
    )
    if not transcript:
        raise NotFound("Transcript not found.")
    return transcript


def _find_hunt(db: Session, transcript_id: str) -> Optional[ScavengerHunt]:
    return db.query(ScavengerHunt).filter(ScavengerHunt.transcript_id == transcript_id).first()


def _require_hunt(db: Session, transcript_id: str) -> ScavengerHunt:
    hunt = _find_hunt(db, transcript_id)
    if not hunt:
        raise NotFound("Scavenger hunt not found.")
    return hunt


def _user_summary(user: Optional[User]) -> Optional[dict]:
    if not user:
        return None
    return {"id": user.id, "name": user.name, "username": user.username}


# ── Hunt definition ───────────────────────────────────────────────

def get_hunt_definition(db: Session, transcript_id: str, actor: User) -> Optional[dict]:
    get_workspace_transcript(db, transcript_id, actor)
    hunt = _find_hunt(db, transcript_id)
    if not hunt:
        return None
    return {
        "id": hunt.id,
        "created_at": hunt.created_at,
        "questions": [
            {"id": q.id, "question": q.question, "orderIndex": q.order_index}
            for q in hunt.questions
        ],
    }


def normalize_questions(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        raise ValidationError("Questions must be provided as a list.")
    questions = [q.strip() for q in raw if isinstance(q, str) and q.strip()]
    if not questions:
        raise ValidationError("Add at least one question to save the scavenger hunt.")
    return questions


def replace_questions(db: Session, transcript_id: str, actor: User, raw_questions: Any) -> dict:
    """
    Create the hunt if needed and replace its question list.

    Existing questions are deleted (their answers go with them) and the
    new ones are numbered from 1. Every annotator currently assigned to
    the transcript gets an assignment row if they lack one.
    """
    get_workspace_transcript(db, transcript_id, actor)
    questions = normalize_questions(raw_questions)

    try:
        hunt = _find_hunt(db, transcript_id)
        if not hunt:
            hunt = ScavengerHunt(transcript_id=transcript_id)
            db.add(hunt)
            db.flush()  # get hunt.id

        # ORM delete so answers and their lines cascade on every backend
        for question in list(hunt.questions):
            db.delete(question)
        db.flush()

        for index, text in enumerate(questions, start=1):
            db.add(ScavengerHuntQuestion(scavenger_id=hunt.id, question=text, order_index=index))

        assigned_ids = {
            row.created_for
            for row in db.query(Annotation.created_for)
            .filter(Annotation.transcript_id == transcript_id, Annotation.hide == False)
            .all()
        }
        existing_ids = {
            row.created_for
            for row in db.query(ScavengerHuntAssignment.created_for)
            .filter(ScavengerHuntAssignment.scavenger_id == hunt.id)
            .all()
        }
        for annotator_id in sorted(assigned_ids - existing_ids):
            db.add(ScavengerHuntAssignment(scavenger_id=hunt.id, created_for=annotator_id))

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(hunt)
    logger.info("Saved scavenger hunt %s with %d questions", hunt.id, len(questions))
    return {
        "id": hunt.id,
        "created_at": hunt.created_at,
        "question_count": len(hunt.questions),
    }


def delete_hunt(db: Session, transcript_id: str, actor: User) -> None:
    get_workspace_transcript(db, transcript_id, actor)
    hunt = _require_hunt(db, transcript_id)
    try:
        db.delete(hunt)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Deleted scavenger hunt %s for transcript %s", hunt.id, transcript_id)


# ── Visibility ────────────────────────────────────────────────────

def _ordered_assignments(db: Session, scavenger_id: str) -> list[ScavengerHuntAssignment]:
    return (
        db.query(ScavengerHuntAssignment)
        .options(joinedload(ScavengerHuntAssignment.user))
        .filter(ScavengerHuntAssignment.scavenger_id == scavenger_id)
        .order_by(ScavengerHuntAssignment.assigned_time)
        .all()
    )


def get_visibility(db: Session, transcript_id: str, actor: User) -> dict:
    get_workspace_transcript(db, transcript_id, actor)
    hunt = _require_hunt(db, transcript_id)
    assignments = _ordered_assignments(db, hunt.id)

    return {
        "adminVisibility": hunt.scavenger_visibility_admin,
        "userVisibility": hunt.scavenger_visibility_user,
        "perAnnotator": any(
            a.scavenger_visibility_admin != hunt.scavenger_visibility_admin for a in assignments
        ),
        "assignments": [
            {
                "id": a.id,
                "created_for": a.created_for,
                "scavenger_visibility_admin": a.scavenger_visibility_admin,
                "user": _user_summary(a.user),
            }
            for a in assignments
        ],
    }


def _parse_annotator_visibility(value: Any) -> Optional[dict[str, str]]:
    if not isinstance(value, dict):
        return None
    result = {}
    for annotator_id, visibility in value.items():
        if not annotator_id:
            continue
        if visibility not in VISIBILITY_CHOICES:
            return None
        result[annotator_id] = visibility
    return result


def update_visibility(db: Session, transcript_id: str, actor: User, payload: Optional[dict]) -> dict:
    """
    Apply any of adminVisibility, userVisibility, perAnnotator and
    annotatorVisibility. Turning perAnnotator off pushes the hunt-level
    admin visibility down to every assignment.
    """
    get_workspace_transcript(db, transcript_id, actor)
    hunt = _require_hunt(db, transcript_id)

    if not isinstance(payload, dict):
        raise ValidationError("Request body is required.")

    has_admin = "adminVisibility" in payload
    has_user = "userVisibility" in payload
    has_per_annotator = "perAnnotator" in payload
    has_annotator = "annotatorVisibility" in payload

    admin_visibility = payload.get("adminVisibility")
    user_visibility = payload.get("userVisibility")
    per_annotator = payload.get("perAnnotator")
    annotator_visibility = _parse_annotator_visibility(payload.get("annotatorVisibility"))

    if has_admin and admin_visibility not in VISIBILITY_CHOICES:
        raise ValidationError(VISIBILITY_ERROR)
    if has_user and not isinstance(user_visibility, bool):
        raise ValidationError("User visibility must be true or false.")
    if has_per_annotator and not isinstance(per_annotator, bool):
        raise ValidationError("Per-annotator visibility must be true or false.")
    if has_annotator and annotator_visibility is None:
        raise ValidationError(
            "Annotator visibility must be an object keyed by annotator id with values of "
            "hidden, visible_after_completion, or always_visible."
        )
    if not (has_admin or has_user or has_per_annotator or has_annotator):
        raise ValidationError(
            "At least one visibility field (adminVisibility, userVisibility, perAnnotator, "
            "or annotatorVisibility) must be provided."
        )

    try:
        if has_admin:
            hunt.scavenger_visibility_admin = admin_visibility
        if has_user:
            hunt.scavenger_visibility_user = user_visibility

        if per_annotator is False:
            db.query(ScavengerHuntAssignment).filter(
                ScavengerHuntAssignment.scavenger_id == hunt.id
            ).update(
                {ScavengerHuntAssignment.scavenger_visibility_admin: hunt.scavenger_visibility_admin},
                synchronize_session=False,
            )
        elif annotator_visibility:
            for annotator_id, visibility in annotator_visibility.items():
                db.query(ScavengerHuntAssignment).filter(
                    ScavengerHuntAssignment.scavenger_id == hunt.id,
                    ScavengerHuntAssignment.created_for == annotator_id,
                ).update(
                    {ScavengerHuntAssignment.scavenger_visibility_admin: visibility},
                    synchronize_session=False,
                )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    result = {
        "adminVisibility": hunt.scavenger_visibility_admin,
        "userVisibility": hunt.scavenger_visibility_user,
    }
    if has_per_annotator:
        result["perAnnotator"] = per_annotator
    if per_annotator is not False and annotator_visibility is not None:
        result["annotatorVisibility"] = annotator_visibility
    return result


# ── Submissions ───────────────────────────────────────────────────

def _submission_status(completed: bool, answered_count: int) -> str:
    if completed:
        return "completed"
    return "in_progress" if answered_count > 0 else "not_started"


def list_submissions(db: Session, actor: User) -> list[dict]:
    assignments = (
        db.query(ScavengerHuntAssignment)
        .join(ScavengerHunt, ScavengerHunt.id == ScavengerHuntAssignment.scavenger_id)
        .join(Transcript, Transcript.id == ScavengerHunt.transcript_id)
        .filter(Transcript.workspace_id == actor.workspace_id)
        .options(
            joinedload(ScavengerHuntAssignment.user),
            selectinload(ScavengerHuntAssignment.scavenger).options(
                joinedload(ScavengerHunt.transcript),
                selectinload(ScavengerHunt.questions),
            ),
            selectinload(ScavengerHuntAssignment.answers).selectinload(ScavengerHuntAnswer.lines),
        )
        .order_by(ScavengerHuntAssignment.assigned_time.desc())
        .all()
    )

    submissions = []
    for assignment in assignments:
        linked_line_ids = set()
        answered_count = 0
        latest_answer_at = None
        for answer in assignment.answers:
            if (answer.answer or "").strip() or answer.lines:
                answered_count += 1
            linked_line_ids.update(line.line_id for line in answer.lines)
            if latest_answer_at is None or answer.updated_at > latest_answer_at:
                latest_answer_at = answer.updated_at

        candidates = [value for value in (latest_answer_at, assignment.completed_at) if value is not None]
        transcript = assignment.scavenger.transcript
        submissions.append({
            "id": assignment.id,
            "status": _submission_status(assignment.scavenger_completed, answered_count),
            "assignedAt": assignment.assigned_time,
            "completedAt": assignment.completed_at,
            "lastUpdatedAt": max(candidates) if candidates else None,
            "scavenger_visibility_admin": assignment.scavenger_visibility_admin,
            "scavenger_visibility_user": assignment.scavenger_visibility_user,
            "questionCount": len(assignment.scavenger.questions),
            "answeredQuestionCount": answered_count,
            "linkedLineCount": len(linked_line_ids),
            "transcript": {"id": transcript.id, "title": transcript.title},
            "annotator": _user_summary(assignment.user),
        })
    return submissions
