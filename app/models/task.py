"""Task model: one uploaded video and the album derived from it."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    original_filename = Column(Text, nullable=False)
    album_name = Column(Text, nullable=False)
    source_path = Column(Text, nullable=True)  # uploaded video, removed once completed
    total_frames = Column(Integer, nullable=False, default=0)
    resolution = Column(String(32), nullable=True)  # e.g. 1920x1080
    fps = Column(Float, nullable=True)
    duration = Column(Float, nullable=True)  # seconds
    status = Column(String(20), nullable=False, default="pending")  # pending | processing | completed | failed
    progress = Column(Integer, nullable=False, default=0)  # 0-100
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    images = relationship("Image", back_populates="task", cascade="all, delete-orphan", passive_deletes=True)
