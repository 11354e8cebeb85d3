#mechconnect/utils/auth
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from typing import Optional

from ..database import get_store
from ..config import settings
from ..queries.customer_queries import CUSTOMERS, get_customer_credentials
from ..queries.mechanic_queries import MECHANICS, get_mechanic_credentials
from ..store import DocumentStore

# Constants
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")

USER_COLLECTIONS = {
    "customer": CUSTOMERS,
    "mechanic": MECHANICS,
}

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

async def authenticate_user(username: str, password: str, store: DocumentStore) -> Optional[dict]:
    # Try customer
    user = await get_customer_credentials(store, username)
    if user and verify_password(password, user["password_hash"]):
        return {"id": user["id"], "type": "customer"}

    # Try mechanic
    user = await get_mechanic_credentials(store, username)
    if user and verify_password(password, user["password_hash"]):
        return {"id": user["id"], "type": "mechanic"}

    return None

async def get_current_user(token: str = Depends(oauth2_scheme), store: DocumentStore = Depends(get_store)) -> dict:
    """Get the current authenticated user from JWT token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
        user_id: str = payload.get("sub")
        user_type: str = payload.get("type")
        if user_id is None or user_type is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    if user_type not in USER_COLLECTIONS:
        raise credentials_exception

    user = await store.get(USER_COLLECTIONS[user_type], user_id)
    if user is None:
        raise credentials_exception

    return {"id": user["id"], "name": user["name"], "email": user["email"], "type": user_type}

async def get_socket_user(token: str, store: DocumentStore) -> Optional[dict]:
    """Resolve a WebSocket query-string token; None when it does not name a user"""
    try:
        return await get_current_user(token, store)
    except HTTPException:
        return None

def require_customer(current_user: dict = Depends(get_current_user)) -> dict:
    if current_user["type"] != "customer":
        raise HTTPException(status_code=403, detail="Only customers can access this endpoint")
    return current_user

def require_mechanic(current_user: dict = Depends(get_current_user)) -> dict:
    if current_user["type"] != "mechanic":
        raise HTTPException(status_code=403, detail="Only mechanics can access this endpoint")
    return current_user

def require_admin(x_admin_key: Optional[str] = Header(None)) -> None:
    if not settings.admin_api_key or x_admin_key != settings.admin_api_key:
        raise HTTPException(status_code=403, detail="Admin access required")

__all__ = [
    "oauth2_scheme",
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "authenticate_user",
    "get_current_user",
    "get_socket_user",
    "require_customer",
    "require_mechanic",
    "require_admin",
    "ACCESS_TOKEN_EXPIRE_MINUTES"
]
