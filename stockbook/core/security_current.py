from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from stockbook.core.deps import get_db
from stockbook.core.security import ACCESS_TOKEN_TYPE, TokenValidationError, decode_token
from stockbook.models.business import Business
from stockbook.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    try:
        claims = decode_token(token, expected_type=ACCESS_TOKEN_TYPE)
    except TokenValidationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user = db.get(User, claims.subject)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="Account not found or disabled")
    return user


def get_current_business(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
) -> Business:
    """The owner's books; every bookkeeping query is scoped to this business."""
    business = db.execute(
        select(Business).where(Business.owner_user_id == user.id)
    ).scalar_one_or_none()
    if business is None:
        raise HTTPException(status_code=404, detail="No business is set up for this account")
    return business
