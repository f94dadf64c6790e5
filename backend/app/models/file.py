from sqlalchemy import Column, Integer, String, Boolean, BigInteger, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from datetime import datetime

ROOT_FOLDER_ID = 0
FOLDER_MIME_TYPE = "inode/directory"

class FileMeta(Base):
    __tablename__ = "file_meta"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False, index=True)
    # 0 is the user's root folder
    parent_id = Column(Integer, nullable=False, default=ROOT_FOLDER_ID, index=True)
    file_name = Column(String(255), nullable=False)
    is_folder = Column(Boolean, nullable=False, default=False)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    file_size = Column(BigInteger, nullable=False, default=0)
    # Object key in the active ObjectStore; never exposed through the API. Folders have none.
    storage_path = Column(String(512), nullable=True)

    # Recycle Bin fields
    is_deleted = Column(Boolean, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)

    # Time fields
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User")
