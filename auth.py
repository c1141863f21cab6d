"""
Session-cookie authentication.

Passwords are stored as werkzeug salted hashes. A login creates an opaque
session token in the store and hands it to the client as an HTTP-only
cookie.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response
from werkzeug.security import check_password_hash, generate_password_hash

from database import Database
from schemas import User

logger = logging.getLogger(__name__)


def hash_password(password: str, method: str = "scrypt") -> str:
    return generate_password_hash(password, method=method)


def verify_password(user: User, password: str) -> bool:
    return check_password_hash(user.password_hash, password)


def get_db(request: Request) -> Database:
    return request.app.state.db


def authenticate(db: Database, username: str, password: str) -> Optional[User]:
    user = db.get_user_by_username(username)
    if user is None or not verify_password(user, password):
        return None
    return user


def start_session(request: Request, response: Response, user: User) -> None:
    settings = request.app.state.settings
    token = request.app.state.db.create_session(user.id)
    response.set_cookie(settings.session_cookie, token, httponly=True, samesite="lax")


def end_session(request: Request, response: Response) -> None:
    settings = request.app.state.settings
    request.app.state.db.delete_session(request.cookies.get(settings.session_cookie))
    response.delete_cookie(settings.session_cookie)


def optional_user(request: Request, db: Database = Depends(get_db)) -> Optional[User]:
    token = request.cookies.get(request.app.state.settings.session_cookie)
    user_id = db.get_session_user_id(token)
    if user_id is None:
        return None
    return db.get_user(user_id)


def current_user(user: Optional[User] = Depends(optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def admin_user(user: User = Depends(current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
