"""
Comment model.

Comments hang off an issuance. Replies reference a top-level
parent comment; threads are one level deep.
"""

from datetime import datetime

from sqlalchemy import Text, Boolean, DateTime, ForeignKey, Index, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from usg_portal.models.base import Base
from usg_portal.models.enums import CommentVisibility

MAX_COMMENT_LENGTH = 2000


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_issuance_created", "issuance_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    issuance_id: Mapped[int] = mapped_column(
        ForeignKey("issuances.id"), nullable=False, index=True
    )
    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_comment_id: Mapped[int | None] = mapped_column(
        ForeignKey("comments.id"), nullable=True
    )
    visibility: Mapped[CommentVisibility] = mapped_column(
        SAEnum(
            CommentVisibility,
            name="comment_visibility_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=CommentVisibility.PUBLIC,
    )
    is_edited: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    edited_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    author: Mapped["User"] = relationship()

    def __repr__(self) -> str:
        return f"<Comment {self.id} on issuance {self.issuance_id}>"
