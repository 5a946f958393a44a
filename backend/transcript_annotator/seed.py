"""Seed database with the default workspace and configured admin accounts."""
import logging

from sqlalchemy.orm import Session
from transcript_annotator.config import settings
from transcript_annotator.models.user import User
from transcript_annotator.models.workspace import Workspace

logger = logging.getLogger(__name__)


def seed_workspace(db: Session) -> Workspace:
    workspace = db.query(Workspace).filter(Workspace.name == settings.SEED_WORKSPACE_NAME).first()
    if not workspace:
        workspace = Workspace(name=settings.SEED_WORKSPACE_NAME)
        db.add(workspace)
        db.flush()
        logger.info("Created workspace '%s'", workspace.name)
    return workspace


def seed_admins(db: Session, workspace: Workspace) -> int:
    """Link identity-provider users to admin rows. Existing auth ids are left alone."""
    created = 0
    for admin in settings.seed_admins_list:
        if not isinstance(admin, dict):
            logger.warning("Skipping seed admin that is not an object: %r", admin)
            continue
        auth_user_id = str(admin.get("auth_user_id") or "").strip()
        username = str(admin.get("username") or "").strip()
        if not auth_user_id or not username:
            logger.warning("Skipping seed admin without auth_user_id/username: %s", admin)
            continue
        if db.query(User).filter(User.auth_user_id == auth_user_id).first():
            continue
        db.add(User(
            auth_user_id=auth_user_id,
            workspace_id=workspace.id,
            name=admin.get("name") or username,
            username=username,
            role="admin",
        ))
        created += 1
    return created


def seed_database(db: Session):
    workspace = seed_workspace(db)
    created = seed_admins(db, workspace)
    db.commit()
    if created:
        logger.info("Seeded %d admin user(s)", created)
