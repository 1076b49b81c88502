"""Image model: one encoded frame of an album."""
import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Image(Base):
    __tablename__ = "images"
    __table_args__ = (UniqueConstraint("task_id", "frame_number", name="uq_images_task_frame"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id = Column(Uuid(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    frame_number = Column(Integer, nullable=False)  # 1-based
    filename = Column(Text, nullable=False)
    file_path = Column(Text, nullable=False)  # relative to ALBUMS_DIR
    thumbnail_path = Column(Text, nullable=True)
    file_size = Column(BigInteger, nullable=True)
    is_favorite = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("Task", back_populates="images")
