from sqlalchemy import Column, Boolean, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from transcript_annotator.database import Base, generate_uuid


class Annotation(Base):
    """
    Assignment of a transcript to an annotator.
    An annotator can only work on transcripts with a non-hidden row here.
    """
    __tablename__ = "annotations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    transcript_id = Column(String(36), ForeignKey("transcripts.id", ondelete="CASCADE"), nullable=False, index=True)
    created_for = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="not_started")  # not_started, in_progress, completed
    hide = Column(Boolean, nullable=False, default=False)  # unassigned without losing work
    upload_time = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    transcript = relationship("Transcript", back_populates="annotations")
    annotator = relationship("User", back_populates="annotations")
