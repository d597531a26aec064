from datetime import timedelta
import uuid
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.core.config import settings
from app.core.timezone_utils import utcnow
from app.db.session import get_db
from app.models.user import User
from app.models.session import Session as SessionModel

# pbkdf2_sha256 has no 72-byte password limit; bcrypt stays so older hashes verify.
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    try:
        return pwd_context.hash(password)
    except ValueError as exc:
        raise ValueError("password too long to hash; choose a shorter password") from exc


def create_access_token(data: dict, session_jti: Optional[str] = None, expires_delta: Optional[timedelta] = None):
    """Short-lived bearer token. `sid` ties it to the refresh session so sign-out revokes it."""
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "jti": str(uuid.uuid4()), "type": "access"})
    if session_jti:
        to_encode["sid"] = session_jti
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))
    jti = str(uuid.uuid4())
    to_encode.update({"exp": expire, "jti": jti, "type": "refresh"})
    encoded = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded, jti, expire


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def start_session(db: Session, user: User):
    """Persist a refresh session and issue the token pair for it."""
    refresh_token, jti, refresh_expires = create_refresh_token(data={"sub": user.email})
    db.add(SessionModel(jti=jti, user_email=user.email, expires_at=refresh_expires))
    db.commit()
    access_token = create_access_token(data={"sub": user.email}, session_jti=jti)
    return access_token, refresh_token, refresh_expires


def session_is_active(ses: Optional[SessionModel]) -> bool:
    if ses is None or ses.revoked:
        return False
    return not (ses.expires_at and ses.expires_at < utcnow())


def authenticate_user(db: Session, email: str, password: str):
    user = db.query(User).filter(User.email == email).first()
    if not user:
        return False
    if not verify_password(password, user.senha_hash):
        return False
    return user


def user_from_token(token: str, db: Session) -> Optional[User]:
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    email = payload.get("sub")
    if email is None or payload.get("type") != "access":
        return None
    sid = payload.get("sid")
    if sid:
        ses = db.query(SessionModel).filter(SessionModel.jti == sid).first()
        if not session_is_active(ses):
            return None
    return db.query(User).filter(User.email == email).first()


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user = user_from_token(token, db)
    if user is None:
        raise credentials_exception
    return user


def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme), db: Session = Depends(get_db)):
    """Like get_current_user, but an anonymous caller yields None instead of 401."""
    if not token:
        return None
    return user_from_token(token, db)


def role_value(user) -> str:
    papel = getattr(user, 'papel', None)
    return papel.value if hasattr(papel, 'value') else str(papel)


def require_roles(*roles: str):
    """Return a dependency that ensures the current user has one of the provided roles.

    Usage in a route:
        @router.put('/financeiro/metas')
        def update_metas(current_user=Depends(require_roles('admin', 'gerente'))):
            ...
    """
    def role_checker(current_user=Depends(get_current_user)):
        if role_value(current_user) not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient privileges",
            )
        return current_user

    return role_checker
