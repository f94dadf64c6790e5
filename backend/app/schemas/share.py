from typing import List, Optional
from pydantic import BaseModel, EmailStr, StrictInt
from datetime import datetime

class ShareCreate(BaseModel):
    file_id: int
    password: Optional[str] = None
    shared_with_email: Optional[EmailStr] = None
    expires_in_days: Optional[float] = None
    # Strict so a JSON boolean is not read as 1
    max_downloads: Optional[StrictInt] = None

# Owner-facing view; never carries the password hash or the storage path
class ShareView(BaseModel):
    id: int
    file_id: int
    share_token: str
    share_url: str
    shared_with_email: Optional[str] = None
    requires_password: bool
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None
    download_count: int
    created_at: datetime

class SharedFileInfo(BaseModel):
    name: str
    size: int
    mime_type: str

# Public info for share page (hide sensitive info)
class SharePeek(BaseModel):
    requires_password: bool
    file: SharedFileInfo
    expires_at: Optional[datetime] = None
    downloads_remaining: Optional[int] = None  # None means unlimited

class SharePassword(BaseModel):
    password: Optional[str] = None

class ShareValidation(BaseModel):
    valid: bool

class SharedFileRef(SharedFileInfo):
    id: int

class SharerInfo(BaseModel):
    id: int
    name: str
    email: str

# Recipient-facing entry of "shared with me"
class ShareSummary(BaseModel):
    id: int
    share_token: str
    file: SharedFileRef
    shared_by: SharerInfo
    shared_at: datetime
    expires_at: Optional[datetime] = None
    permissions: List[str]
    is_password_protected: bool
    download_count: int
    max_downloads: Optional[int] = None
