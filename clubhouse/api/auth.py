"""Auth API router — login, refresh, me."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clubhouse.db.session import get_db
from clubhouse.schemas.schemas import LoginRequest, RefreshRequest, TokenResponse, UserOut
from clubhouse.services.auth_service import auth_service
from clubhouse.services.audit_service import audit_service
from clubhouse.core.security import get_current_user_id

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate and return JWT tokens."""
    result = auth_service.authenticate(db, body.username, body.password)
    audit_service.log(
        db,
        actor_id=result["user"]["id"],
        actor_username=body.username,
        action="user.login",
        resource_type="user",
        resource_id=result["user"]["id"],
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent", "")[:500],
    )
    return result


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Refresh access token."""
    return auth_service.refresh_access_token(db, body.refresh_token)


@router.get("/me", response_model=UserOut)
async def get_me(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Get current user profile."""
    return UserOut.model_validate(auth_service.get_user(db, user_id))
