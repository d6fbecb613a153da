from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index

from app.db.base import Base
from app.core.timeutils import utcnow


class Resume(Base):
    """
    Resume document owned by exactly one user.

    Every query must filter on user_id.
    """
    __tablename__ = "resumes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    data = Column(JSON, nullable=False, default=dict)  # structured form fields
    content = Column(Text, nullable=False, default="")  # pre-rendered long-form text
    template = Column(String, nullable=False, default="default")

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_resume_user_created', 'user_id', 'created_at'),
    )

    def __repr__(self):
        return f"<Resume(id={self.id}, title='{self.title}', user_id={self.user_id})>"
