# pharmastock/core/auth.py

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from pharmastock.core.jwt import staff_id_from_token
from pharmastock.database import get_db
from pharmastock.models.users import PharmacyUser

# Tokens come from the account service's login endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> PharmacyUser:
    """Resolve the bearer token to an active staff member (cashier / audit actor)."""
    staff_id = staff_id_from_token(token)

    if staff_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.get(PharmacyUser, staff_id)

    if user is None or not user.active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Staff account not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user
