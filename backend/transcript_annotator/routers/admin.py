import logging
from typing import Callable, Optional
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from fastapi.routing import APIRoute
from sqlalchemy.orm import Session

from transcript_annotator.database import get_db
from transcript_annotator.dependencies import require_admin, resolve_assignment_id, resolve_transcript_id
from transcript_annotator.errors import InternalError
from transcript_annotator.models.user import User
from transcript_annotator.services import scavenger_admin
from transcript_annotator.services.submission_export import XLSX_MEDIA_TYPE, build_submission_workbook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


class PlainErrorRoute(APIRoute):
    """Renders errors as {"error": ...} without the success flag (file download routes)."""

    def get_route_handler(self) -> Callable:
        original_handler = super().get_route_handler()

        async def handler(request: Request) -> Response:
            try:
                return await original_handler(request)
            except HTTPException as exc:
                return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

        return handler


export_router = APIRouter(prefix="/admin", tags=["Admin"], route_class=PlainErrorRoute)


# ── Scavenger Hunt Definition ─────────────────────────────────────

@router.get("/transcripts/{transcript_id}/scavenger-hunt")
def get_scavenger_hunt(
    transcript_id: str = Depends(resolve_transcript_id),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        hunt = scavenger_admin.get_hunt_definition(db, transcript_id, admin)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to fetch scavenger hunt for transcript %s", transcript_id)
        raise InternalError("Unable to fetch scavenger hunt right now.")
    return {"success": True, "scavengerHunt": hunt}


@router.put("/transcripts/{transcript_id}/scavenger-hunt")
def save_scavenger_hunt(
    payload: Optional[dict] = Body(None),  # {"questions": [str]}
    transcript_id: str = Depends(resolve_transcript_id),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Replace the hunt's questions (creating the hunt on first save)."""
    try:
        hunt = scavenger_admin.replace_questions(
            db, transcript_id, admin, (payload or {}).get("questions")
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to save scavenger hunt for transcript %s", transcript_id)
        raise InternalError("Unable to save scavenger hunt right now.")
    return {"success": True, "scavengerHunt": hunt}


@router.delete("/transcripts/{transcript_id}/scavenger-hunt")
def delete_scavenger_hunt(
    transcript_id: str = Depends(resolve_transcript_id),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        scavenger_admin.delete_hunt(db, transcript_id, admin)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to delete scavenger hunt for transcript %s", transcript_id)
        raise InternalError("Unable to delete scavenger hunt right now.")
    return {"success": True}


# ── Scavenger Hunt Visibility ─────────────────────────────────────

@router.get("/transcripts/{transcript_id}/scavenger-visibility")
def get_scavenger_visibility(
    transcript_id: str = Depends(resolve_transcript_id),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        details = scavenger_admin.get_visibility(db, transcript_id, admin)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to fetch scavenger visibility for transcript %s", transcript_id)
        raise InternalError("Unable to load scavenger hunt visibility details right now.")
    return {"success": True, **details}


@router.patch("/transcripts/{transcript_id}/scavenger-visibility")
def update_scavenger_visibility(
    payload: Optional[dict] = Body(None),
    transcript_id: str = Depends(resolve_transcript_id),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        updated = scavenger_admin.update_visibility(db, transcript_id, admin, payload)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to update scavenger visibility for transcript %s", transcript_id)
        raise InternalError("Unable to update scavenger hunt visibility right now.")
    return {"success": True, **updated}


# ── Submissions ───────────────────────────────────────────────────

@router.get("/scavenger-submissions")
def list_scavenger_submissions(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        submissions = scavenger_admin.list_submissions(db, admin)
    except Exception:
        logger.exception("Failed to fetch scavenger submissions")
        raise InternalError("Unable to fetch scavenger submissions. Please try again later.")
    return {"success": True, "submissions": submissions}


@export_router.get("/scavenger-submissions/{assignment_id}/download")
@export_router.get("/scavenger-submissions/download")
def download_scavenger_submission(
    assignment_id: str = Depends(resolve_assignment_id),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    One xlsx sheet per hunt question with the annotator's answer and supporting lines.

    Admins only: an annotator in the same workspace gets 403.
    """
    try:
        content, file_name = build_submission_workbook(db, assignment_id, admin)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to generate scavenger submission download %s", assignment_id)
        raise InternalError("Unable to download scavenger submission right now.")

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{quote(file_name)}"'},
    )
