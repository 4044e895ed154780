from jose import JWTError, jwt
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from bidding_api.core.config import settings
import structlog

logger = structlog.get_logger()

ADMIN_ROLE = "ADMIN"

security = HTTPBearer(auto_error=False)


def verify_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        user_id = payload.get("userId")
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token missing userId",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return {"user_id": str(user_id), "role": payload.get("role"), "payload": payload}
    except JWTError as e:
        logger.error("JWT validation error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def validate_request(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, please login",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verify_token(credentials.credentials)


def validate_admin_request(current_user: dict = Depends(validate_request)) -> dict:
    role = current_user.get("role") or ""
    if str(role).upper() != ADMIN_ROLE:
        logger.warning("Admin route denied", user_id=current_user.get("user_id"), role=role)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You are not an admin.",
        )
    return current_user
