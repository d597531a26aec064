import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, Request
from jose import JWTError
from sqlalchemy.orm import Session

from app.schemas.user import UserCreate, UserRead, Token, UserUpdate, LoginRequest, SessionInfo
from app.services import auth as auth_service
from app.db.session import get_db
from app.models.user import User as UserModel, RoleEnum
from app.models.session import Session as SessionModel
from app.core.timezone_utils import utcnow
from app.utils.pubsub import publish

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)

REFRESH_COOKIE = "refresh_token"


def _set_refresh_cookie(response: Response, token: str):
    # secure should be True in production (HTTPS)
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=token,
        httponly=True,
        secure=auth_service.settings.APP_ENV == "production",
        samesite="lax",
        max_age=auth_service.settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600,
        path="/",
    )


def _auth_event(event: str, email: str):
    publish("auth", event, {"event": event, "user_email": email, "at": utcnow()})


@router.post("/register", response_model=UserRead)
def register(user_in: UserCreate, db: Session = Depends(get_db)):
    if db.query(UserModel).filter(UserModel.email == user_in.email).first():
        raise HTTPException(status_code=400, detail="Email já registrado")
    try:
        hashed = auth_service.get_password_hash(user_in.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    # the very first account bootstraps the system as admin
    papel = RoleEnum.admin if db.query(UserModel.id).first() is None else RoleEnum.atendente
    try:
        user = UserModel(email=user_in.email, nome=user_in.nome, senha_hash=hashed, papel=papel)
        db.add(user)
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    logger.info("Usuário %s registrado como %s", user.email, papel.value)
    return user


@router.post("/login", response_model=Token)
def login(form_data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate_user(db, form_data.email, form_data.password)
    if not user:
        raise HTTPException(status_code=400, detail="Email ou senha incorretos")
    try:
        access_token, refresh_token, _ = auth_service.start_session(db, user)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    _set_refresh_cookie(response, refresh_token)
    _auth_event("SIGNED_IN", user.email)
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db),
           token: Optional[str] = Depends(auth_service.optional_oauth2_scheme)):
    """Revoke the caller's session. Works from the refresh cookie or the bearer token."""
    jti = None
    email = None
    raw = request.cookies.get(REFRESH_COOKIE)
    for candidate, claim in ((raw, "jti"), (token, "sid")):
        if not candidate or jti:
            continue
        try:
            payload = auth_service.decode_token(candidate)
        except JWTError:
            continue
        jti = payload.get(claim)
        email = payload.get("sub")
    if jti:
        ses = db.query(SessionModel).filter(SessionModel.jti == jti).first()
        if ses and not ses.revoked:
            ses.revoked = True
            db.add(ses)
            db.commit()
    response.delete_cookie(REFRESH_COOKIE, path="/")
    if email:
        _auth_event("SIGNED_OUT", email)
    return {"ok": True}


@router.get("/session", response_model=Optional[SessionInfo])
def get_session(token: Optional[str] = Depends(auth_service.optional_oauth2_scheme),
                current_user=Depends(auth_service.get_optional_user)):
    """Current session, or null for an anonymous caller."""
    if current_user is None:
        return None
    payload = auth_service.decode_token(token)
    exp = payload.get("exp")
    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None
    return {"user": current_user, "expires_at": expires_at}


@router.get("/me", response_model=UserRead)
def read_users_me(current_user=Depends(auth_service.get_current_user)):
    return current_user


@router.post("/refresh", response_model=Token)
def refresh_token(request: Request, response: Response, db: Session = Depends(get_db)):
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Token de refresh ausente")
    try:
        payload = auth_service.decode_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Token de refresh inválido")
    email = payload.get("sub")
    jti = payload.get("jti")
    if email is None or jti is None or payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Token de refresh inválido")

    ses = db.query(SessionModel).filter(SessionModel.jti == jti).first()
    if not auth_service.session_is_active(ses):
        raise HTTPException(status_code=401, detail="Token de refresh revogado ou expirado")
    user = db.query(UserModel).filter(UserModel.email == email).first()
    if not user:
        raise HTTPException(status_code=401, detail="Token de refresh inválido")

    # rotate: new session row, old one revoked
    try:
        ses.revoked = True
        db.add(ses)
        access_token, new_refresh_token, _ = auth_service.start_session(db, user)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    _set_refresh_cookie(response, new_refresh_token)
    _auth_event("TOKEN_REFRESHED", email)
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/sessions")
def list_sessions(db: Session = Depends(get_db), current_user=Depends(auth_service.get_current_user)):
    try:
        rows = db.query(SessionModel).filter(SessionModel.user_email == current_user.email).order_by(SessionModel.created_at.desc()).all()
        return [{"jti": r.jti, "created_at": r.created_at, "expires_at": r.expires_at, "revoked": r.revoked} for r in rows]
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/sessions/{jti}/revoke")
def revoke_session(jti: str, db: Session = Depends(get_db), current_user=Depends(auth_service.get_current_user)):
    ses = db.query(SessionModel).filter(SessionModel.jti == jti, SessionModel.user_email == current_user.email).first()
    if not ses:
        raise HTTPException(status_code=404, detail="Sessão não encontrada")
    try:
        ses.revoked = True
        db.add(ses)
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    _auth_event("SIGNED_OUT", current_user.email)
    return {"ok": True}


@router.delete("/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), current_user=Depends(auth_service.get_current_user)):
    """Delete a user. Only admins or the user themself can delete.
    This also removes the session rows for the user's email.
    """
    target = db.query(UserModel).filter(UserModel.id == user_id).first()
    if not target:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    if current_user.email != target.email and auth_service.role_value(current_user) != 'admin':
        raise HTTPException(status_code=403, detail="Privilégios insuficientes")
    try:
        db.query(SessionModel).filter(SessionModel.user_email == target.email).delete()
        db.delete(target)
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True}


@router.patch("/users/{user_id}", response_model=UserRead)
def update_user(user_id: int, user_in: UserUpdate, db: Session = Depends(get_db), current_user=Depends(auth_service.get_current_user)):
    target = db.query(UserModel).filter(UserModel.id == user_id).first()
    if not target:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    is_admin = auth_service.role_value(current_user) == 'admin'
    if current_user.email != target.email and not is_admin:
        raise HTTPException(status_code=403, detail="Privilégios insuficientes")

    if user_in.email:
        existing = db.query(UserModel).filter(UserModel.email == user_in.email, UserModel.id != user_id).first()
        if existing:
            raise HTTPException(status_code=400, detail="Email já em uso")
        target.email = user_in.email
    if user_in.papel:
        # role changes are admin-only
        if not is_admin:
            raise HTTPException(status_code=403, detail="Apenas administradores alteram papéis")
        try:
            target.papel = RoleEnum(user_in.papel)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Papel inválido: {user_in.papel}")
    if user_in.nome:
        target.nome = user_in.nome
    if user_in.password:
        try:
            target.senha_hash = auth_service.get_password_hash(user_in.password)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    try:
        db.add(target)
        db.commit()
        db.refresh(target)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    return target
