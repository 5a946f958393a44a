import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from transcript_annotator.database import get_db
from transcript_annotator.dependencies import get_actor, json_object_body, resolve_transcript_id
from transcript_annotator.errors import InternalError, NotFound
from transcript_annotator.models.transcript import Transcript
from transcript_annotator.models.user import User
from transcript_annotator.schemas.scavenger_hunt import (
    CompletionResponse, SaveAnswerRequest, SaveAnswerResponse, ScavengerHuntResponse,
    VideoDetail, VideoResponse,
)
from transcript_annotator.services import scavenger_hunt
from transcript_annotator.utils.storage import resolve_video_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/annotator", tags=["Annotator"])


# ── Scavenger Hunt ────────────────────────────────────────────────
# Each route also answers on /annotator/scavenger-hunt?transcriptId=...

@router.get("/transcripts/{transcript_id}/scavenger-hunt", response_model=ScavengerHuntResponse)
@router.get("/scavenger-hunt", response_model=ScavengerHuntResponse)
def get_scavenger_hunt(
    transcript_id: str = Depends(resolve_transcript_id),
    user: User = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Hunt questions in order, each merged with the caller's answer and selected lines."""
    try:
        return scavenger_hunt.get_hunt_for_annotator(db, transcript_id, user)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to load scavenger responses for transcript %s", transcript_id)
        raise InternalError("Unable to load scavenger responses right now.")


@router.post("/transcripts/{transcript_id}/scavenger-hunt", response_model=SaveAnswerResponse)
@router.post("/scavenger-hunt", response_model=SaveAnswerResponse)
def save_scavenger_answer(
    transcript_id: str = Depends(resolve_transcript_id),
    user: User = Depends(get_actor),
    db: Session = Depends(get_db),
    body: dict = Depends(json_object_body),
):
    payload = SaveAnswerRequest.model_validate(body)
    try:
        saved = scavenger_hunt.save_answer(
            db,
            transcript_id,
            user,
            question_id=payload.question_id,
            answer=payload.answer,
            line_ids=payload.line_ids,
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to save scavenger response for transcript %s", transcript_id)
        raise InternalError("Unable to save scavenger response right now.")
    return SaveAnswerResponse(answer=saved)


@router.patch("/transcripts/{transcript_id}/scavenger-hunt", response_model=CompletionResponse)
@router.patch("/scavenger-hunt", response_model=CompletionResponse)
def update_scavenger_completion(
    transcript_id: str = Depends(resolve_transcript_id),
    user: User = Depends(get_actor),
    db: Session = Depends(get_db),
    body: dict = Depends(json_object_body),  # {"completed": bool}, defaults to true
):
    requested = body.get("completed")
    completed = requested if isinstance(requested, bool) else True
    try:
        completed = scavenger_hunt.set_completion(db, transcript_id, user, completed)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to update scavenger completion for transcript %s", transcript_id)
        raise InternalError("Unable to update scavenger completion status right now.")
    return CompletionResponse(completed=completed)


# ── Video ─────────────────────────────────────────────────────────

@router.get("/transcripts/{transcript_id}/video", response_model=VideoResponse)
def get_transcript_video(
    transcript_id: str = Depends(resolve_transcript_id),
    user: User = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Video attached to an assigned transcript, with a time-limited access URL."""
    scavenger_hunt.require_assigned_annotation(db, transcript_id, user.id)

    transcript = db.query(Transcript).filter(Transcript.id == transcript_id).first()
    if not transcript or not transcript.video:
        raise NotFound("Video not found for this transcript.")
    video = transcript.video

    try:
        url = resolve_video_url(video.gcs_path)
    except ValueError:
        logger.exception("Unusable storage path for video %s", video.id)
        raise InternalError("Unable to load video right now.")

    return VideoResponse(video=VideoDetail(
        id=video.id,
        file_name=video.file_name,
        mime_type=video.mime_type,
        gcs_path=video.gcs_path,
        uploaded_at=video.uploaded_at,
        url=url,
    ))
