import logging
from typing import Optional

from fastapi import Cookie, Depends, Header, Request
from sqlalchemy.orm import Session

from transcript_annotator.database import get_db
from transcript_annotator.errors import ActorNotRegistered, Forbidden, Unauthenticated, ValidationError
from transcript_annotator.models.user import User
from transcript_annotator.services.auth import (
    SESSION_COOKIE, InvalidSessionToken, extract_token, verify_session_token,
)

logger = logging.getLogger(__name__)


def _resolve_id(request: Request, path_key: str, query_aliases: tuple[str, ...]) -> str:
    value = (request.path_params.get(path_key) or "").strip()
    if value:
        return value
    for alias in query_aliases:
        candidate = (request.query_params.get(alias) or "").strip()
        if candidate:
            return candidate
    return ""


def resolve_transcript_id(request: Request) -> str:
    """Transcript id from the path, falling back to ?transcriptId= / ?transcript=."""
    transcript_id = _resolve_id(request, "transcript_id", ("transcriptId", "transcript"))
    if not transcript_id:
        raise ValidationError("Transcript id is required.")
    return transcript_id


def resolve_assignment_id(request: Request) -> str:
    """Assignment id from the path, falling back to ?assignmentId= / ?id=."""
    assignment_id = _resolve_id(request, "assignment_id", ("assignmentId", "id"))
    if not assignment_id:
        raise ValidationError("Assignment id is required.")
    return assignment_id


async def json_object_body(request: Request) -> dict:
    """JSON body when it is an object; missing, malformed or non-object bodies read as {}."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def get_auth_user_id(
    authorization: Optional[str] = Header(None),
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE),
) -> str:
    """External user id from the identity provider's session token."""
    token = extract_token(authorization, session_token)
    if not token:
        raise Unauthenticated()
    try:
        claims = verify_session_token(token)
    except InvalidSessionToken as e:
        logger.info("Rejected session token: %s", e)
        raise Unauthenticated()
    return claims["sub"]


def get_actor(
    auth_user_id: str = Depends(get_auth_user_id),
    db: Session = Depends(get_db),
) -> User:
    actor = db.query(User).filter(User.auth_user_id == auth_user_id).first()
    if not actor:
        raise ActorNotRegistered()
    return actor


def require_admin(actor: User = Depends(get_actor)) -> User:
    if actor.role != "admin":
        raise Forbidden("Admin access required.")
    return actor
