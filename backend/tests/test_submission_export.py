from __future__ import annotations

import io
from types import SimpleNamespace

from openpyxl import load_workbook

from transcript_annotator.models.scavenger_hunt import ScavengerHuntAssignment
from transcript_annotator.services.submission_export import (
    XLSX_MEDIA_TYPE, build_download_name, normalize_supporting_lines,
)


def _annotator_url(transcript_id: str) -> str:
    return f"/api/annotator/transcripts/{transcript_id}/scavenger-hunt"


def _u1_assignment_id(db, world) -> str:
    db.expire_all()
    return db.query(ScavengerHuntAssignment).filter_by(created_for=world.u1_id).one().id


def _prepare_submission(client, auth, world) -> None:
    auth.sign_in("auth_u1")
    client.post(_annotator_url(world.t1), json={
        "questionId": world.q1, "answer": "  A quarter  ", "lineIds": [world.l3, world.l2],
    })
    auth.sign_in("auth_admin")


def test_download_has_one_sheet_per_question(client, auth, world, db):
    _prepare_submission(client, auth, world)
    assignment_id = _u1_assignment_id(db, world)

    response = client.get(f"/api/admin/scavenger-submissions/{assignment_id}/download")

    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE
    assert response.headers["content-disposition"] == (
        'attachment; filename="Fractions-Lesson-3-Uma-One-scavenger-submission.xlsx"'
    )

    wb = load_workbook(io.BytesIO(response.content))
    assert wb.sheetnames == ["Question 1", "Question 2"]

    answered = wb["Question 1"]
    assert answered["A1"].value == "Question"
    assert answered["A2"].value == "Where does a student justify?"
    assert answered["A5"].value == "A quarter"
    assert [c.value for c in answered[8]] == ["Line number", "Speaker", "Utterance"]
    assert [c.value for c in answered[9]] == [2, "Student A", "A quarter, because you split it again."]
    assert [c.value for c in answered[10]] == [3, "Teacher", "Can you show that on the number line?"]

    unanswered = wb["Question 2"]
    assert unanswered["A2"].value == "Where does the teacher press?"
    assert unanswered["A5"].value in (None, "")
    assert [c.value for c in unanswered[8]] == ["Line number", "Speaker", "Utterance"]
    assert all(c.value in (None, "") for c in unanswered[9])
    assert unanswered.max_row <= 9


def test_download_accepts_assignment_id_in_query(client, auth, world, db):
    _prepare_submission(client, auth, world)
    assignment_id = _u1_assignment_id(db, world)

    response = client.get("/api/admin/scavenger-submissions/download", params={"assignmentId": assignment_id})

    assert response.status_code == 200


def test_download_errors_use_plain_shape(client, auth, world, db):
    _prepare_submission(client, auth, world)
    assignment_id = _u1_assignment_id(db, world)

    missing_id = client.get("/api/admin/scavenger-submissions/download")
    unknown = client.get("/api/admin/scavenger-submissions/does-not-exist/download")
    auth.sign_in("auth_outsider")
    other_workspace = client.get(f"/api/admin/scavenger-submissions/{assignment_id}/download")
    auth.sign_in(None)
    anonymous = client.get(f"/api/admin/scavenger-submissions/{assignment_id}/download")

    assert missing_id.status_code == 400
    assert missing_id.json() == {"error": "Assignment id is required."}
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "Scavenger submission not found."}
    assert other_workspace.status_code == 404
    assert anonymous.status_code == 401
    assert anonymous.json() == {"error": "Unauthorized"}


def test_download_without_questions_is_not_found(client, auth, world, db):
    from transcript_annotator.models.scavenger_hunt import ScavengerHuntQuestion

    _prepare_submission(client, auth, world)
    assignment_id = _u1_assignment_id(db, world)
    for question in db.query(ScavengerHuntQuestion).all():
        db.delete(question)
    db.commit()

    response = client.get(f"/api/admin/scavenger-submissions/{assignment_id}/download")

    assert response.status_code == 404
    assert response.json() == {"error": "No scavenger hunt questions were found for this submission."}


def test_normalize_supporting_lines_dedupes_and_sorts():
    def row(line_id, number, speaker=None):
        return SimpleNamespace(
            line_id=line_id, line=SimpleNamespace(line=number, speaker=speaker, utterance=None)
        )

    lines = normalize_supporting_lines([
        row("b", 7, "T"), row("a", 2), row("b", 7, "T"), SimpleNamespace(line_id="gone", line=None),
    ])

    assert lines == [
        {"line_number": 2, "speaker": "", "utterance": ""},
        {"line_number": 7, "speaker": "T", "utterance": ""},
    ]


def test_build_download_name():
    assert build_download_name("Week 2: Ratios", "Sam Lee") == "Week-2-Ratios-Sam-Lee-scavenger-submission.xlsx"
    assert build_download_name(None, None) == "scavenger-submission-scavenger-submission.xlsx"
    assert build_download_name("  ", "sam") == "scavenger-submission-sam-scavenger-submission.xlsx"


def test_download_is_admin_only(client, auth, world, db):
    _prepare_submission(client, auth, world)
    assignment_id = _u1_assignment_id(db, world)
    auth.sign_in("auth_u1")

    response = client.get(f"/api/admin/scavenger-submissions/{assignment_id}/download")

    assert response.status_code == 403
    assert response.json() == {"error": "Admin access required."}
