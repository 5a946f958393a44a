from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from transcript_annotator.database import Base, generate_uuid


class User(Base):
    """
    Internal actor record. Authentication happens at the identity provider;
    this row maps its external user id to a role and a workspace.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    auth_user_id = Column(String(255), nullable=True, index=True)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    username = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default="user")  # admin / annotator / user
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("workspace_id", "username", name="uq_workspace_username"),
    )

    # Relationships
    workspace = relationship("Workspace", back_populates="users")
    annotations = relationship("Annotation", back_populates="annotator")
    scavenger_assignments = relationship(
        "ScavengerHuntAssignment", back_populates="user", cascade="all, delete-orphan"
    )
