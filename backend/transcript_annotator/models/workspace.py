from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from transcript_annotator.database import Base, generate_uuid


class Workspace(Base):
    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    users = relationship("User", back_populates="workspace", cascade="all, delete-orphan")
    transcripts = relationship("Transcript", back_populates="workspace", cascade="all, delete-orphan")
