from datetime import timedelta
from typing import Optional
from jose import JWTError, jwt
from werkzeug.security import generate_password_hash
from gymdesk.config import JWT_SECRET_KEY, JWT_ACCESS_TOKEN_EXPIRE_MINUTES
from gymdesk.utils import utcnow


SECRET_KEY = JWT_SECRET_KEY
ALGORITHM = "HS256"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def create_user_token(user) -> str:
    role = user.role.value if hasattr(user.role, "value") else user.role
    return create_access_token({"sub": user.id, "role": role})


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT token."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload


def hash_password(password: str) -> str:
    """Hash a password using werkzeug."""
    return generate_password_hash(password)
