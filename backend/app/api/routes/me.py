from fastapi import APIRouter, Depends

from app.api.deps import get_current_user
from app.models.user import User
from app.schemas.user import IdentityOut, UserOut
from app.services.roles import Identity

router = APIRouter()


@router.get("/me", response_model=IdentityOut)
def read_identity(current_user: User = Depends(get_current_user)) -> IdentityOut:
    identity = Identity.from_user(current_user)
    return IdentityOut(user=UserOut.model_validate(current_user), is_admin=identity.is_admin)
