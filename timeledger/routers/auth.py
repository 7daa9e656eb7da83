"""Auth router - identity of the caller."""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from timeledger.database import get_database
from timeledger.errors import ServiceError
from timeledger.models.user import User
from timeledger.utils.auth import verify_access_token
from timeledger.utils.ids import parse_object_id


router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Dependency to get current user ID from JWT token.

    Args:
        credentials: HTTP bearer credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is invalid (401)
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        return verify_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )


async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
) -> User:
    """
    Dependency to load the authenticated user, role included.

    Raises:
        HTTPException: If the token's user no longer exists (401)
    """
    try:
        doc = await db["users"].find_one({"_id": parse_object_id(user_id, "user")})
    except ServiceError:
        doc = None

    if not doc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )

    return User(
        _id=str(doc["_id"]),
        email=doc["email"],
        name=doc["name"],
        role=doc.get("role", "user"),
        status=doc.get("status", "active"),
        # Decimal128 and float rates both arrive here
        pay_rate=str(doc["pay_rate"]) if doc.get("pay_rate") is not None else None,
    )


async def require_privileged(user: User = Depends(get_current_user)) -> User:
    """Dependency admitting only admins and developers."""
    if not user.is_privileged:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin or developer role required",
        )
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency admitting only admins."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return user


@router.get("/me", response_model=User)
async def me(user: User = Depends(get_current_user)):
    """
    Get current authenticated user.

    Returns:
        Current user object
    """
    return user
