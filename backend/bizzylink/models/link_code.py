"""
BizzyLink Backend: Link Code Model
====================================

One-time codes a website user types in-game (`/link CODE`) to prove they own
a Minecraft account. A user holds at most one code at a time: generating a
new one deletes the old ones, and a successful link deletes them all.
"""

import uuid
from datetime import datetime

from sqlalchemy import TIMESTAMP, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bizzylink.database import Base, new_id, utcnow


class LinkCode(Base):
    __tablename__ = "link_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Minecraft name the user said they will link, if they gave one
    minecraft_username: Mapped[str | None] = mapped_column(String(16), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<LinkCode(user={self.user_id}, expires_at='{self.expires_at}')>"
