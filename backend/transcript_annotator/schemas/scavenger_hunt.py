from pydantic import BaseModel, Field
from typing import Any, Optional
from datetime import datetime


class SaveAnswerRequest(BaseModel):
    """Loosely typed: mistyped fields fall back to defaults in the service, never a 400."""
    question_id: Any = Field(None, alias="questionId")
    answer: Any = None
    line_ids: Any = Field(None, alias="lineIds")  # non-list or non-string entries are dropped

    class Config:
        populate_by_name = True


class ScavengerQuestionState(BaseModel):
    """A hunt question merged with the caller's current answer."""
    id: str
    question: str
    order_index: int = Field(alias="orderIndex")
    answer: str = ""
    selected_line_ids: list[str] = Field(default_factory=list, alias="selectedLineIds")

    class Config:
        populate_by_name = True


class ScavengerHuntState(BaseModel):
    id: str
    created_at: Optional[datetime] = None
    questions: list[ScavengerQuestionState] = []


class ScavengerHuntResponse(BaseModel):
    success: bool = True
    scavenger_completed: bool = Field(False, alias="scavengerCompleted")
    scavenger_hunt: Optional[ScavengerHuntState] = Field(None, alias="scavengerHunt")

    class Config:
        populate_by_name = True


class SavedAnswer(BaseModel):
    question_id: str = Field(alias="questionId")
    answer: str = ""
    selected_line_ids: list[str] = Field(default_factory=list, alias="selectedLineIds")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")  # None when the answer was cleared

    class Config:
        populate_by_name = True


class SaveAnswerResponse(BaseModel):
    success: bool = True
    answer: SavedAnswer


class CompletionResponse(BaseModel):
    success: bool = True
    completed: bool


class VideoDetail(BaseModel):
    id: str
    file_name: str = Field(alias="fileName")
    mime_type: Optional[str] = Field(None, alias="mimeType")
    gcs_path: str = Field(alias="gcsPath")
    uploaded_at: Optional[datetime] = Field(None, alias="uploadedAt")
    url: str

    class Config:
        populate_by_name = True


class VideoResponse(BaseModel):
    success: bool = True
    video: VideoDetail
