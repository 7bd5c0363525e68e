import datetime
import logging
from typing import Optional
import bcrypt
from itsdangerous import URLSafeTimedSerializer, BadSignature
from loantrack import configs
from loantrack.configs import SEED, COOKIE_TTL, REMEMBER_ME_TTL, DEFAULT_ROLE
from loantrack.core.audit import ActorContext, AuditService
from loantrack.core.exceptions import LoantrackError, Result
from loantrack.core.models import User
from loantrack.core.utils import normalize_email
from loantrack.schemas.user import User as UserDto

logger = logging.getLogger(__name__)

SERIALIZER = None  # Will be initialized lazily


def _get_serializer():
    """Get or initialize the SERIALIZER lazily."""
    global SERIALIZER
    if SERIALIZER is None:
        SERIALIZER = URLSafeTimedSerializer(SEED, salt="auth-cookie")
    return SERIALIZER


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=configs.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8')[:72], password_hash.encode('utf-8'))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def create_session_cookie(user, ip: str = None, remember_me: bool = False) -> str:
    """Returns a signed session cookie identifying the user."""
    data = {
        "id": user.id,
        "email": user.email,
        "role": user.role_name,
        "ttl": REMEMBER_ME_TTL if remember_me else COOKIE_TTL,
    }
    if ip:
        data["ip"] = ip
    return _get_serializer().dumps(data)


def verify_session_cookie(session, client_ip: str = None) -> Optional[dict]:
    """Returns the cookie payload if the signature, age and IP check out."""
    if not session:
        return None
    try:
        data, signed_at = _get_serializer().loads(
            session, max_age=max(COOKIE_TTL, REMEMBER_ME_TTL), return_timestamp=True)
    except BadSignature:
        return None
    if not isinstance(data, dict) or "id" not in data:
        return None
    age = datetime.datetime.now(datetime.timezone.utc) - signed_at
    if age.total_seconds() > data.get("ttl", COOKIE_TTL):
        return None
    stored_ip = data.get("ip")
    if client_ip and stored_ip and client_ip != stored_ip:
        return None  # IP mismatch
    return data


class AuthService:

    def __init__(self, uow):
        self.uow = uow
        self.audit = AuditService(uow)

    def _load_active(self, email: str) -> Optional[User]:
        user = self.uow.users.get_by_email(email)
        if user is None or not user.is_active:
            return None
        return user

    def validate_password(self, email: str, password: str) -> bool:
        user = self._load_active(email)
        return bool(user) and verify_password(password, user.password_hash)

    def hash_password(self, password: str) -> str:
        return hash_password(password)

    def login(self, actor: ActorContext, email: str, password: str) -> Result:
        user = self._load_active(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login for %s", email)
            return Result.unauthenticated("Invalid email or password")

        actor = actor.with_user(user)
        with self.uow.atomic(actor):
            self.audit.record(
                actor, "Users", "LOGIN", user.id,
                None, {"email": user.email},
                "Successful login")
        return Result.success(UserDto.model_validate(user))

    def register(self, actor: ActorContext, name: str, email: str, password: str) -> Result:
        email = normalize_email(email)
        if self.uow.users.email_exists(email):
            return Result.conflict("Email already exists")

        role = self.uow.roles.get_by_name(DEFAULT_ROLE)
        if role is None:
            raise LoantrackError(f"Default role '{DEFAULT_ROLE}' not found")

        with self.uow.atomic(actor):
            user = self.uow.users.add(User(
                name=name.strip(),
                email=email,
                password_hash=hash_password(password),
                role=role,
                is_active=True,
            ))
            self.uow.flush(actor)
            self.audit.record(
                actor, "Users", "REGISTER", user.id,
                None, {"email": user.email, "role": role.name},
                "User registration")
        logger.info("Registered user %s", email)
        return Result.success(UserDto.model_validate(user))

    def logout(self, actor: ActorContext) -> Result:
        if not actor.is_authenticated:
            return Result.success()
        with self.uow.atomic(actor):
            self.audit.record(
                actor, "Users", "LOGOUT", actor.user_id,
                None, {"email": actor.email},
                "User logout")
        return Result.success()
