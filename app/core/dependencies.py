from fastapi import BackgroundTasks, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import InvalidTokenError
from sqlmodel import Session
from pydantic import ValidationError

from app.core.notifications import BackgroundNotificationSink, NotificationSink
from app.db.core import engine, get_session
from app.services.dpp import DPPService
from app.services.identity import CallerIdentity, IdentityService

bearer_scheme = HTTPBearer()


def get_identity_service() -> IdentityService:
    return IdentityService()


def get_notification_sink(background_tasks: BackgroundTasks) -> NotificationSink:
    """Quality alerts are delivered after the response has been sent."""
    return BackgroundNotificationSink(background_tasks, engine)


def get_dpp_service(
    session: Session = Depends(get_session),
    notifier: NotificationSink = Depends(get_notification_sink)
) -> DPPService:
    """Creates a DPPService instance using the active DB session."""
    return DPPService(session, notifier=notifier)


def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    service: IdentityService = Depends(get_identity_service)
) -> CallerIdentity:
    """
    Validates the JWT token and returns the calling organization.
    This is the gatekeeper for every mutating route.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        return service.verify_access_token(credentials.credentials)
    except (InvalidTokenError, ValidationError):
        raise credentials_exception
