from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from datetime import datetime

DEFAULT_PERMISSIONS = "view,download"

class Share(Base):
    __tablename__ = "share"

    id = Column(Integer, primary_key=True, index=True)
    share_token = Column(String(64), unique=True, index=True, nullable=False)
    # No FK cascade: a hard-deleted file leaves the share behind and lookups treat it as not found
    file_id = Column(Integer, ForeignKey("file_meta.id"), nullable=False, index=True)
    shared_by = Column(Integer, ForeignKey("sys_user.id"), nullable=False)  # Creator
    shared_with_email = Column(String(255), nullable=True, index=True)

    password_hash = Column(String(255), nullable=True)
    permissions = Column(String(64), nullable=False, default=DEFAULT_PERMISSIONS)

    expires_at = Column(DateTime, nullable=True)
    max_downloads = Column(Integer, nullable=True)  # None for unlimited
    download_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    file = relationship("FileMeta")
    sharer = relationship("User")

    @property
    def permission_list(self):
        return [p for p in (self.permissions or DEFAULT_PERMISSIONS).split(",") if p]
