from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, SecretStr


class RegisterIn(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr = Field(max_length=100)
    password: SecretStr = Field(min_length=3, max_length=72)


class UserOut(BaseModel):
    id: int
    username: str
    email: EmailStr
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
    )


class UserWithToken(UserOut):
    token: str


class UserSummary(BaseModel):
    id: int
    username: str

    model_config = ConfigDict(
        from_attributes=True,
    )


class ActivateIn(BaseModel):
    token: SecretStr


class LoginIn(BaseModel):
    email: EmailStr
    password: SecretStr


class LoginOut(BaseModel):
    token: str
    user: UserOut
