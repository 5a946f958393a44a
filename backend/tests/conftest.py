from __future__ import annotations

import os
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CLERK_JWT_KEY", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from transcript_annotator.database import Base, build_engine, get_db
from transcript_annotator.dependencies import get_auth_user_id
from transcript_annotator.errors import Unauthenticated
from transcript_annotator.main import create_app
from transcript_annotator.models import annotation, scavenger_hunt, transcript, user, workspace  # noqa: F401
from transcript_annotator.models.annotation import Annotation
from transcript_annotator.models.scavenger_hunt import ScavengerHunt, ScavengerHuntQuestion
from transcript_annotator.models.transcript import Transcript, TranscriptLine
from transcript_annotator.models.user import User
from transcript_annotator.models.workspace import Workspace

engine = build_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


class AuthState:
    """Stands in for the identity provider: whoever is set here is 'signed in'."""

    def __init__(self):
        self.auth_user_id: str | None = None

    def sign_in(self, auth_user_id: str | None):
        self.auth_user_id = auth_user_id


@pytest.fixture()
def auth() -> AuthState:
    return AuthState()


@pytest.fixture()
def client(db, auth):
    app = create_app()

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    def override_get_auth_user_id():
        if not auth.auth_user_id:
            raise Unauthenticated()
        return auth.auth_user_id

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_user_id] = override_get_auth_user_id
    return TestClient(app)


def _add_lines(db, transcript_id: str, rows: list[tuple[int, str, str]]) -> list[str]:
    lines = [
        TranscriptLine(transcript_id=transcript_id, line=number, speaker=speaker, utterance=utterance)
        for number, speaker, utterance in rows
    ]
    db.add_all(lines)
    db.flush()
    return [line.line_id for line in lines]


@pytest.fixture()
def world(db):
    """
    Workspace with an admin, two annotators and two transcripts.

    T1 carries a hunt with questions Q1, Q2 and lines L1..L3; T2 has line L4
    and no hunt. U1 is assigned both transcripts, U2 only T1.
    """
    ws = Workspace(name="Default Workspace")
    other_ws = Workspace(name="Other Workspace")
    db.add_all([ws, other_ws])
    db.flush()

    admin = User(auth_user_id="auth_admin", workspace_id=ws.id, name="Ada Admin", username="ada", role="admin")
    u1 = User(auth_user_id="auth_u1", workspace_id=ws.id, name="Uma One", username="uma", role="annotator")
    u2 = User(auth_user_id="auth_u2", workspace_id=ws.id, name="Ulf Two", username="ulf", role="annotator")
    outsider = User(
        auth_user_id="auth_outsider", workspace_id=other_ws.id, name="Olga", username="olga", role="admin"
    )
    db.add_all([admin, u1, u2, outsider])
    db.flush()

    t1 = Transcript(workspace_id=ws.id, uploaded_by=admin.id, title="Fractions Lesson 3", instruction_context="")
    t2 = Transcript(workspace_id=ws.id, uploaded_by=admin.id, title="Geometry Lesson", instruction_context="")
    db.add_all([t1, t2])
    db.flush()

    l1, l2, l3 = _add_lines(db, t1.id, [
        (1, "Teacher", "What is half of a half?"),
        (2, "Student A", "A quarter, because you split it again."),
        (3, "Teacher", "Can you show that on the number line?"),
    ])
    (l4,) = _add_lines(db, t2.id, [(1, "Teacher", "Name this shape.")])

    db.add_all([
        Annotation(transcript_id=t1.id, created_for=u1.id),
        Annotation(transcript_id=t1.id, created_for=u2.id),
        Annotation(transcript_id=t2.id, created_for=u1.id),
    ])

    hunt = ScavengerHunt(transcript_id=t1.id)
    db.add(hunt)
    db.flush()
    q1 = ScavengerHuntQuestion(scavenger_id=hunt.id, question="Where does a student justify?", order_index=1)
    q2 = ScavengerHuntQuestion(scavenger_id=hunt.id, question="Where does the teacher press?", order_index=2)
    db.add_all([q1, q2])
    db.commit()

    return SimpleNamespace(
        workspace_id=ws.id,
        admin_id=admin.id,
        u1_id=u1.id,
        u2_id=u2.id,
        t1=t1.id,
        t2=t2.id,
        hunt=hunt.id,
        q1=q1.id,
        q2=q2.id,
        l1=l1,
        l2=l2,
        l3=l3,
        l4=l4,
    )
