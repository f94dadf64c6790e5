from .token import Token, TokenPayload
from .auth import LoginRequest, LoginResponse, TwoFactorLogin
from .user import User, UserCreate, TwoFactorSetup, TwoFactorCode
from .file import FileMeta, FolderCreate, FileMetaUpdate
from .share import (
    ShareCreate,
    ShareView,
    SharePeek,
    SharedFileInfo,
    SharePassword,
    ShareValidation,
    ShareSummary,
)
