"""Spreadsheet export of one annotator's scavenger hunt submission."""
import io
import re
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session, joinedload, selectinload

from transcript_annotator.errors import NotFound
from transcript_annotator.models.scavenger_hunt import (
    ScavengerHunt, ScavengerHuntAssignment, ScavengerHuntAnswer, ScavengerHuntAnswerLine,
)
from transcript_annotator.models.user import User

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
LINE_HEADER = ["Line number", "Speaker", "Utterance"]
COLUMN_WIDTHS = [14, 24, 80]


def _slug(value: Optional[str]) -> str:
    if not value:
        return ""
    return re.sub(r"[^a-zA-Z0-9_.-]", "", re.sub(r"\s+", "-", value.strip()))


def sanitize_file_name(value: str, fallback: str) -> str:
    trimmed = re.sub(r"[/\\]", "-", value.strip())
    normalized = re.sub(r"[^a-zA-Z0-9_.-]", "", re.sub(r"\s+", "-", trimmed))
    return normalized or fallback


def build_download_name(transcript_title: Optional[str], annotator_name: Optional[str]) -> str:
    transcript_segment = _slug(transcript_title) or "scavenger-submission"
    annotator_segment = _slug(annotator_name)
    if annotator_segment:
        combined = f"{transcript_segment}-{annotator_segment}-scavenger-submission"
    else:
        combined = f"{transcript_segment}-scavenger-submission"
    base_name = sanitize_file_name(combined, "scavenger-submission")
    return base_name if base_name.lower().endswith(".xlsx") else f"{base_name}.xlsx"


def normalize_supporting_lines(answer_lines: list[ScavengerHuntAnswerLine]) -> list[dict]:
    """One entry per distinct line id, ordered by line number."""
    unique_by_line_id = {}
    for answer_line in answer_lines:
        if answer_line.line is None or answer_line.line_id in unique_by_line_id:
            continue
        unique_by_line_id[answer_line.line_id] = {
            "line_number": answer_line.line.line,
            "speaker": answer_line.line.speaker or "",
            "utterance": answer_line.line.utterance or "",
        }
    return sorted(unique_by_line_id.values(), key=lambda line: line["line_number"])


def _load_assignment(db: Session, assignment_id: str) -> Optional[ScavengerHuntAssignment]:
    return (
        db.query(ScavengerHuntAssignment)
        .options(
            joinedload(ScavengerHuntAssignment.user),
            joinedload(ScavengerHuntAssignment.scavenger).joinedload(ScavengerHunt.transcript),
            selectinload(ScavengerHuntAssignment.answers)
            .selectinload(ScavengerHuntAnswer.lines)
            .joinedload(ScavengerHuntAnswerLine.line),
        )
        .filter(ScavengerHuntAssignment.id == assignment_id)
        .first()
    )


def _write_question_sheet(ws, question_text: str, answer_text: str, supporting_lines: list[dict]):
    bold = Font(bold=True)
    wrap = Alignment(wrap_text=True, vertical="top")

    ws.append(["Question"])
    ws.append([question_text])
    ws.append([])
    ws.append(["Answer"])
    ws.append([answer_text])
    ws.append([])
    ws.append(["Supporting Lines"])
    ws.append(LINE_HEADER)
    header_row = ws.max_row

    if supporting_lines:
        for line in supporting_lines:
            ws.append([line["line_number"], line["speaker"], line["utterance"]])
    else:
        ws.append(["", "", ""])

    for row in (1, 4, 7):
        ws.cell(row=row, column=1).font = bold
    for col in range(1, len(LINE_HEADER) + 1):
        ws.cell(row=header_row, column=col).font = bold
    for row in (2, 5):
        ws.cell(row=row, column=1).alignment = wrap
    for col, width in enumerate(COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(col)].width = width


def build_submission_workbook(db: Session, assignment_id: str, actor: User) -> tuple[bytes, str]:
    """
    Render the submission as xlsx bytes plus a download file name.

    One sheet per question in order_index order; unanswered questions still
    get a sheet with an empty placeholder line row.
    """
    assignment = _load_assignment(db, assignment_id)
    if not assignment or assignment.scavenger.transcript.workspace_id != actor.workspace_id:
        raise NotFound("Scavenger submission not found.")

    questions = assignment.scavenger.questions
    if not questions:
        raise NotFound("No scavenger hunt questions were found for this submission.")

    answers_by_question = {answer.question_id: answer for answer in assignment.answers}

    wb = Workbook()
    wb.remove(wb.active)
    for index, question in enumerate(questions, start=1):
        answer = answers_by_question.get(question.id)
        ws = wb.create_sheet(title=f"Question {index}")
        _write_question_sheet(
            ws,
            question.question or "",
            (answer.answer or "").strip() if answer else "",
            normalize_supporting_lines(answer.lines) if answer else [],
        )

    buffer = io.BytesIO()
    wb.save(buffer)

    annotator = assignment.user
    file_name = build_download_name(
        assignment.scavenger.transcript.title,
        (annotator.name or annotator.username) if annotator else None,
    )
    return buffer.getvalue(), file_name
