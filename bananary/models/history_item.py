from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, ForeignKey, DateTime

from bananary.core.database import Base

class HistoryItem(Base):
    __tablename__ = "history_items"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    # image | video
    type: Mapped[str] = mapped_column(String(10))

    # data URLs can be large
    original_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result_video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    secondary_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    transformation_key: Mapped[str] = mapped_column(String(64))
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
