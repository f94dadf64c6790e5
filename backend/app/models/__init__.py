from .user import User
from .file import FileMeta
from .share import Share
