import logging
import time
import uuid

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.config import settings
from app.models.user import Role, User
from app.services.permissions import ADMIN_ROLE_NAME, full_access
from app.utils.dates import utc_now
from app.utils.security import generate_token, hash_password, verify_password

logger = logging.getLogger("app.auth")


class AuthService:
    def __init__(self):
        self._active_tokens: dict[str, tuple[str, float]] = {}  # token -> (user_id, expires_at)

    def _cleanup_expired(self):
        now = time.time()
        self._active_tokens = {
            t: entry for t, entry in self._active_tokens.items() if entry[1] > now
        }

    def is_initialized(self, db: Session) -> bool:
        return db.query(User.id).first() is not None

    def setup(self, db: Session, name: str, email: str, password: str) -> User:
        """Create the Admin role and the first admin user."""
        now = utc_now()
        role = db.query(Role).filter(Role.name == ADMIN_ROLE_NAME).first()
        if role is None:
            role = Role(
                id=str(uuid.uuid4()),
                name=ADMIN_ROLE_NAME,
                permissions=full_access().model_dump(),
                created_at=now,
                updated_at=now,
            )
            db.add(role)

        user = User(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            password_hash=hash_password(password),
            role_id=role.id,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Initial admin user %s created", user.email)
        return user

    def login(self, db: Session, email: str, password: str, throttle_key: str = "login") -> dict | None:
        delay = self._get_throttle_delay(db, throttle_key)
        if delay > 0:
            return {"error": "too_many_attempts", "retry_after_seconds": delay}

        user = db.query(User).filter(User.email == email).first()
        if user is None or not verify_password(user.password_hash, password):
            self._record_failed_attempt(db, throttle_key)
            logger.warning("Failed login for %s", email)
            return None

        self._reset_failed_attempts(db, throttle_key)
        token = generate_token()
        self._active_tokens[token] = (user.id, time.time() + settings.session_ttl_seconds)
        return {"token": token, "expires_in_seconds": settings.session_ttl_seconds, "user": user}

    def clear_sessions(self):
        self._active_tokens = {}

    def logout(self, token: str):
        self._active_tokens.pop(token, None)

    def revoke_user(self, user_id: str):
        self._active_tokens = {
            t: entry for t, entry in self._active_tokens.items() if entry[0] != user_id
        }

    def resolve_token(self, token: str) -> str | None:
        """Return the user id bound to ``token`` and slide its expiry forward."""
        self._cleanup_expired()
        entry = self._active_tokens.get(token)
        if entry is None:
            return None
        user_id = entry[0]
        self._active_tokens[token] = (user_id, time.time() + settings.session_ttl_seconds)
        return user_id

    def _get_throttle_delay(self, db: Session, key: str) -> float:
        # Counters live in the database so restarts do not reset them.
        row = db.execute(
            text("SELECT failed_attempts, last_failed_at FROM auth_throttle WHERE key = :key"),
            {"key": key},
        ).fetchone()
        if not row:
            return 0
        failed_attempts = int(row[0])
        last_failed_at = float(row[1])

        if failed_attempts < 3:
            return 0
        if failed_attempts < 5:
            delay = 5.0
        elif failed_attempts < 10:
            delay = 30.0
        else:
            delay = 300.0
        elapsed = time.time() - last_failed_at
        remaining = delay - elapsed
        return max(0, remaining)

    def _record_failed_attempt(self, db: Session, key: str):
        now = time.time()
        db.execute(
            text(
                """
                INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                VALUES (:key, 1, :now)
                ON CONFLICT(key) DO UPDATE SET
                    failed_attempts = failed_attempts + 1,
                    last_failed_at = :now
                """
            ),
            {"key": key, "now": now},
        )
        db.commit()

    def _reset_failed_attempts(self, db: Session, key: str):
        db.execute(
            text(
                """
                INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                VALUES (:key, 0, :now)
                ON CONFLICT(key) DO UPDATE SET
                    failed_attempts = 0,
                    last_failed_at = :now
                """
            ),
            {"key": key, "now": time.time()},
        )
        db.commit()


auth_service = AuthService()
