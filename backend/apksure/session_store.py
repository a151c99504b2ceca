# apksure/session_store.py

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from . import config


@dataclass
class Session:
    token: str
    email: str
    created_at: float
    expires_at: float

    def expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at


# Simple in-memory session store, keyed by bearer token
SESSION_STORE: Dict[str, Session] = {}
_lock = threading.Lock()


def issue(email: str, ttl: Optional[int] = None) -> Session:
    now = time.time()
    session = Session(
        token=secrets.token_urlsafe(32),
        email=email,
        created_at=now,
        expires_at=now + (ttl if ttl is not None else config.SESSION_TTL),
    )
    with _lock:
        SESSION_STORE[session.token] = session
    return session


def lookup(token: str) -> Optional[Session]:
    if not token:
        return None
    with _lock:
        session = SESSION_STORE.get(token)
        if session is None:
            return None
        if session.expired():
            del SESSION_STORE[token]
            return None
        return session


def revoke(token: str) -> bool:
    with _lock:
        return SESSION_STORE.pop(token, None) is not None


def clear() -> None:
    with _lock:
        SESSION_STORE.clear()
