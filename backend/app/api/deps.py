from collections.abc import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.security import decode_token
from app.db.session import SessionLocal
from app.models.user import User
from app.services.consultation_workflow import ConsultationWorkflow
from app.services.proposal_workflow import ProposalWorkflow
from app.services.roles import Identity
from app.services.sempro_workflow import SemproWorkflow

security = HTTPBearer()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError as exc:
        raise credentials_exception from exc

    user = db.get(User, user_id)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


def get_current_identity(current_user: User = Depends(get_current_user)) -> Identity:
    return Identity.from_user(current_user)


def get_proposal_workflow(db: Session = Depends(get_db)) -> ProposalWorkflow:
    return ProposalWorkflow(db)


def get_consultation_workflow(db: Session = Depends(get_db)) -> ConsultationWorkflow:
    return ConsultationWorkflow(db)


def get_sempro_workflow(db: Session = Depends(get_db)) -> SemproWorkflow:
    return SemproWorkflow(db)
