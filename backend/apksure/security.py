# apksure/security.py

import logging
from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession
from werkzeug.security import check_password_hash, generate_password_hash

from . import session_store
from .db import User, normalize_email

MIN_PASSWORD_LENGTH = 6

# Compared against when the email is unknown, so both failure paths do the same work
_DUMMY_HASH = generate_password_hash("apksure-dummy-password")


class RegistrationError(ValueError):
    pass


def hash_password(plain: str) -> str:
    # scrypt with a random per-user salt (werkzeug default)
    return generate_password_hash(plain)


def verify_password(password_hash: str, plain: str) -> bool:
    if not password_hash or plain is None:
        return False
    return check_password_hash(password_hash, plain)


def create_user(db: DBSession, email: str, password: str) -> User:
    email = normalize_email(email)
    if not email or "@" not in email:
        raise RegistrationError("A valid email is required.")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise RegistrationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")

    user = User(email=email, password_hash=hash_password(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise RegistrationError(f"A user with email {email} already exists.")

    logging.info(f"Created user {email}")
    return user


def authenticate(db: DBSession, email: str, password: str) -> Optional[User]:
    """
    Return the user when the password matches, otherwise None.
    Unknown email and wrong password are indistinguishable to the caller.
    """
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if user is None:
        verify_password(_DUMMY_HASH, password or "")
        return None
    if not verify_password(user.password_hash, password or ""):
        return None
    return user


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        return ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def require_session(authorization: Optional[str] = Header(None)) -> session_store.Session:
    """FastAPI dependency guarding the analysis endpoints."""
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required.")

    session = session_store.lookup(token)
    if session is None:
        raise HTTPException(status_code=401, detail="Session expired or invalid.")
    return session
