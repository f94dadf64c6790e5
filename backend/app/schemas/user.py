from pydantic import BaseModel, EmailStr, Field

class UserBase(BaseModel):
    username: str = Field(..., min_length=2, max_length=255)
    email: EmailStr

class UserCreate(UserBase):
    password: str = Field(..., min_length=8)

class UserInDBBase(UserBase):
    id: int
    two_factor_enabled: bool = False

    class Config:
        from_attributes = True

class User(UserInDBBase):
    pass

class TwoFactorSetup(BaseModel):
    secret: str
    otpauth_uri: str

class TwoFactorCode(BaseModel):
    code: str
