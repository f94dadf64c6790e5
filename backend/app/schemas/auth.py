from typing import Optional
from pydantic import BaseModel, EmailStr

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class LoginResponse(BaseModel):
    # Either a bearer token, or a temp token to exchange with a TOTP code
    access_token: Optional[str] = None
    token_type: str = "bearer"
    requires_two_factor: bool = False
    temp_token: Optional[str] = None

class TwoFactorLogin(BaseModel):
    temp_token: str
    code: str
