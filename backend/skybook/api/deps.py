from typing import List, Tuple
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
import jwt

from skybook.core.security import decode_access_token, identity_from_payload
from skybook.services.cancellation import CancellationPolicy
from skybook.services.dashboard import DashboardRegistry
from skybook.services.reminder_scheduler import ReminderScheduler

# Tokens come from the external identity service
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

def get_current_identity(token: str = Depends(oauth2_scheme)) -> Tuple[str, List[str]]:
    """Return (email, roles) from the JWT token."""
    try:
        return identity_from_payload(decode_access_token(token))
    except (jwt.PyJWTError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def require_roles(*allowed: str):
    def checker(identity: Tuple[str, List[str]] = Depends(get_current_identity)):
        _email, roles = identity
        if not any(r in roles for r in allowed):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return checker

def get_reminder_scheduler(request: Request) -> ReminderScheduler:
    scheduler = getattr(request.app.state, "reminder_scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Reminder scheduler not started")
    return scheduler

def get_cancellation_policy(request: Request) -> CancellationPolicy:
    policy = getattr(request.app.state, "cancellation_policy", None)
    if policy is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cancellation service not started")
    return policy

def get_dashboard_registry(request: Request) -> DashboardRegistry:
    return request.app.state.dashboards
