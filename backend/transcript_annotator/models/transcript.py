from sqlalchemy import Column, Integer, Boolean, String, Text, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from transcript_annotator.database import Base, generate_uuid


class Transcript(Base):
    __tablename__ = "transcripts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    title = Column(String(255), nullable=False)
    instruction_context = Column(Text, nullable=False, default="")
    upload_time = Column(DateTime(timezone=True), server_default=func.now())

    # Optional associated recording
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="SET NULL"), nullable=True, unique=True)
    video_uploaded = Column(Boolean, nullable=False, default=False)

    # Relationships
    workspace = relationship("Workspace", back_populates="transcripts")
    uploader = relationship("User", foreign_keys=[uploaded_by])
    video = relationship("Video", back_populates="transcript")
    lines = relationship(
        "TranscriptLine", back_populates="transcript",
        order_by="TranscriptLine.line", cascade="all, delete-orphan",
    )
    annotations = relationship("Annotation", back_populates="transcript", cascade="all, delete-orphan")
    scavenger_hunt = relationship(
        "ScavengerHunt", back_populates="transcript", uselist=False, cascade="all, delete-orphan"
    )


class TranscriptLine(Base):
    """One utterance row of a transcript. Never edited after upload."""
    __tablename__ = "transcript_lines"

    line_id = Column(String(36), primary_key=True, default=generate_uuid)
    transcript_id = Column(String(36), ForeignKey("transcripts.id", ondelete="CASCADE"), nullable=False, index=True)
    line = Column(Integer, nullable=False)
    speaker = Column(String(255), nullable=True)
    utterance = Column(Text, nullable=True)
    segment = Column(String(255), nullable=True)

    # Relationships
    transcript = relationship("Transcript", back_populates="lines")


class Video(Base):
    __tablename__ = "videos"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    file_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=True)
    gcs_path = Column(String(1024), nullable=False)  # gs://bucket/key
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    transcript = relationship("Transcript", back_populates="video", uselist=False)
