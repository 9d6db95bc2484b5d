from datetime import datetime

from pydantic import BaseModel, EmailStr

from app.models.user import UserRole


class UserOut(BaseModel):
    id: str
    name: str
    email: EmailStr
    roles: list[UserRole]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class IdentityOut(BaseModel):
    user: UserOut
    is_admin: bool
