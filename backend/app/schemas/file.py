from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime

# Properties to return to client (storage location stays server-side)
class FileMeta(BaseModel):
    id: int
    parent_id: int = 0
    file_name: str
    is_folder: bool = False
    mime_type: str
    file_size: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class FolderCreate(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    parent_id: int = 0

# Rename and/or move; omitted fields stay as they are
class FileMetaUpdate(BaseModel):
    file_name: Optional[str] = Field(None, min_length=1, max_length=255)
    parent_id: Optional[int] = None
