"""
Email/password identity provider.

Credentials live in their own table; sessions are JWTs whose `jti` must still
be registered here, so signing out revokes a token before it expires. Session
listeners are keyed by token and replayed once on subscribe.
"""
import itertools
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from app.core import errors
from app.core.config import Settings
from app.core.security import create_access_token, decode_access_token, hash_password, verify_password
from app.models.account import Credential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class Session:
    token: str
    identity: Identity


SessionListener = Callable[[Optional[Identity]], None]


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityProvider:
    def __init__(self, session_factory: sessionmaker, secret: str, algorithm: str = "HS256", expire_minutes: int = 60, bcrypt_rounds: int = 12):
        self._session_factory = session_factory
        self._secret = secret
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes
        self._bcrypt_rounds = bcrypt_rounds

        self._lock = threading.Lock()
        self._sessions: Dict[str, Identity] = {}
        self._listeners: Dict[str, Dict[int, SessionListener]] = {}
        self._handles = itertools.count(1)

    @classmethod
    def from_settings(cls, settings: Settings, session_factory: sessionmaker) -> "IdentityProvider":
        return cls(
            session_factory,
            secret=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
            bcrypt_rounds=settings.BCRYPT_ROUNDS,
        )

    def create_credential(self, email: str, password: str, display_name: Optional[str] = None) -> Identity:
        email = normalize_email(email)
        with self._session_factory() as db:
            existing = db.execute(select(Credential).where(Credential.email == email)).scalar_one_or_none()
            if existing is not None:
                raise errors.AuthError("Email already registered")

            credential = Credential(
                uid=uuid.uuid4().hex,
                email=email,
                password_hash=hash_password(password, self._bcrypt_rounds),
                display_name=display_name,
            )
            db.add(credential)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise errors.AuthError("Email already registered")

        logger.info("Credential created for %s", email)
        return Identity(uid=credential.uid, email=credential.email, display_name=credential.display_name)

    def delete_credential(self, uid: str):
        with self._session_factory() as db:
            db.execute(delete(Credential).where(Credential.uid == uid))
            db.commit()

        with self._lock:
            revoked = [jti for jti, identity in self._sessions.items() if identity.uid == uid]
        for jti in revoked:
            self._end_session(jti)

    def authenticate(self, email: str, password: str) -> Session:
        email = normalize_email(email)
        with self._session_factory() as db:
            credential = db.execute(select(Credential).where(Credential.email == email)).scalar_one_or_none()

        if credential is None or not verify_password(password or "", credential.password_hash):
            raise errors.AuthError("Invalid credentials")

        identity = Identity(uid=credential.uid, email=credential.email, display_name=credential.display_name)
        jti = uuid.uuid4().hex
        token = create_access_token(
            {"sub": identity.uid, "email": identity.email, "jti": jti},
            self._secret,
            self._algorithm,
            self._expire_minutes,
        )
        with self._lock:
            self._sessions[jti] = identity
        logger.info("Session opened for %s", email)
        return Session(token=token, identity=identity)

    def verify(self, token: Optional[str]) -> Identity:
        if not token:
            raise errors.AuthRequired()
        jti = self._token_id(token)
        with self._lock:
            identity = self._sessions.get(jti)
        if identity is None:
            raise errors.AuthRequired("Session has ended")
        return identity

    def sign_out(self, token: str):
        try:
            jti = self._token_id(token)
        except errors.AuthRequired:
            return
        self._end_session(jti)

    def on_session_change(self, token: str, callback: SessionListener) -> Callable[[], None]:
        """
        Watch the session behind `token`. `callback` gets the identity now and
        None once the session ends.
        """
        try:
            jti = self._token_id(token)
        except errors.AuthRequired:
            callback(None)
            return lambda: None

        handle = next(self._handles)
        with self._lock:
            current = self._sessions.get(jti)
            if current is not None:
                self._listeners.setdefault(jti, {})[handle] = callback
        callback(current)

        def unsubscribe():
            with self._lock:
                listeners = self._listeners.get(jti)
                if listeners is not None:
                    listeners.pop(handle, None)
                    if not listeners:
                        del self._listeners[jti]

        return unsubscribe

    def _token_id(self, token: str) -> str:
        payload = decode_access_token(token, self._secret, self._algorithm)
        jti = payload.get("jti")
        if not jti:
            raise errors.AuthRequired("Invalid or expired session")
        return jti

    def _end_session(self, jti: str):
        with self._lock:
            identity = self._sessions.pop(jti, None)
            listeners = list(self._listeners.pop(jti, {}).values())
        if identity is not None:
            logger.info("Session closed for %s", identity.email)
        for listener in listeners:
            try:
                listener(None)
            except Exception:
                logger.exception("Session listener failed")
