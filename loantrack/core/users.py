"""
    User and role management for Loantrack.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from loantrack.configs import ADMIN_ROLE, DEFAULT_ROLE
from loantrack.core.audit import ActorContext, AuditService
from loantrack.core.auth import hash_password
from loantrack.core.exceptions import Result
from loantrack.core.models import Role, User
from loantrack.core.utils import normalize_email
from loantrack.schemas.role import Role as RoleDto, CreateRole
from loantrack.schemas.user import User as UserDto, CreateUser, UpdateUser

logger = logging.getLogger(__name__)

FIXED_ROLES = {
    ADMIN_ROLE: "Full access to inventory, loans, users and reports",
    DEFAULT_ROLE: "Can browse items and request loans",
}


class UserService:

    def __init__(self, uow):
        self.uow = uow
        self.audit = AuditService(uow)

    def get_all(self) -> Result:
        users = sorted(self.uow.users.get_all(), key=lambda u: u.name.lower())
        return Result.success([UserDto.model_validate(u) for u in users])

    def get(self, user_id: int) -> Result:
        user = self.uow.users.get(user_id)
        if user is None:
            return Result.not_found(f"User with ID {user_id} not found")
        return Result.success(UserDto.model_validate(user))

    def get_by_role(self, role_id: int) -> Result:
        if self.uow.roles.get(role_id) is None:
            return Result.not_found(f"Role with ID {role_id} not found")
        return Result.success([UserDto.model_validate(u) for u in self.uow.users.get_by_role(role_id)])

    def create(self, actor: ActorContext, data: CreateUser) -> Result:
        email = normalize_email(data.email)
        if self.uow.users.email_exists(email):
            return Result.conflict("Email already exists")
        role = self.uow.roles.get(data.role_id)
        if role is None:
            return Result.not_found(f"Role with ID {data.role_id} not found")

        with self.uow.atomic(actor):
            user = self.uow.users.add(User(
                name=data.name,
                email=email,
                password_hash=hash_password(data.password),
                role=role,
                is_active=True,
            ))
            self.uow.flush(actor)
            self.audit.record(
                actor, "Users", "CREATE", user.id,
                None, {"name": user.name, "email": user.email, "role": role.name},
                "User created by admin")
        return Result.success(UserDto.model_validate(user))

    def update(self, actor: ActorContext, user_id: int, data: UpdateUser) -> Result:
        user = self.uow.users.get(user_id)
        if user is None:
            return Result.not_found(f"User with ID {user_id} not found")
        email = normalize_email(data.email)
        if self.uow.users.email_exists(email, exclude_id=user_id):
            return Result.conflict("Email already exists")
        role = self.uow.roles.get(data.role_id)
        if role is None:
            return Result.not_found(f"Role with ID {data.role_id} not found")

        old_values = {"name": user.name, "email": user.email,
                      "role_id": user.role_id, "is_active": user.is_active}
        with self.uow.atomic(actor):
            user.name = data.name.strip()
            user.email = email
            user.role = role
            user.is_active = data.is_active
            new_values = {"name": user.name, "email": user.email,
                          "role_id": role.id, "is_active": user.is_active}
            self.audit.record(
                actor, "Users", "UPDATE", user.id,
                old_values, new_values, "User updated by admin")
        return Result.success(UserDto.model_validate(user))

    def delete(self, actor: ActorContext, user_id: int) -> Result:
        user = self.uow.users.get(user_id)
        if user is None:
            return Result.not_found(f"User with ID {user_id} not found")
        if self.uow.loans.has_active_loan_for_user(user_id):
            return Result.conflict("Cannot delete user with active loans")

        old_values = {"name": user.name, "email": user.email, "is_active": user.is_active}
        with self.uow.atomic(actor):
            detached = self.uow.loans.detach_closed(user_id=user_id)
            if detached:
                self.uow.flush(actor)
            self.uow.users.delete(user)
            self.audit.record(
                actor, "Users", "DELETE", user_id,
                old_values, None, "User deleted by admin")
        logger.info("Deleted user %s (%d closed loans kept)", user_id, detached)
        return Result.success()

    def change_role(self, actor: ActorContext, user_id: int, role_id: int) -> Result:
        user = self.uow.users.get(user_id)
        if user is None:
            return Result.not_found(f"User with ID {user_id} not found")
        role = self.uow.roles.get(role_id)
        if role is None:
            return Result.not_found(f"Role with ID {role_id} not found")

        old_role = user.role_name
        with self.uow.atomic(actor):
            user.role = role
            self.audit.record(
                actor, "Users", "ROLE_CHANGE", user.id,
                {"old_role": old_role}, {"new_role": role.name},
                f"Role changed from {old_role} to {role.name}")
        return Result.success(UserDto.model_validate(user))


class RoleService:

    def __init__(self, uow):
        self.uow = uow
        self.audit = AuditService(uow)

    def get_all(self) -> Result:
        roles = self.uow.roles.query().order_by(Role.name).all()
        return Result.success([RoleDto.model_validate(r) for r in roles])

    def create(self, actor: ActorContext, data: CreateRole) -> Result:
        name = data.name.strip()
        if not name:
            return Result.invalid("Role name is required")
        if self.uow.roles.name_exists(name):
            return Result.conflict(f"Role '{name}' already exists")

        with self.uow.atomic(actor):
            role = self.uow.roles.add(Role(name=name, description=data.description))
            self.uow.flush(actor)
            self.audit.record(
                actor, "Roles", "CREATE", role.id,
                None, {"name": role.name, "description": role.description})
        return Result.success(RoleDto.model_validate(role))

    def delete(self, actor: ActorContext, role_id: int) -> Result:
        role = self.uow.roles.get(role_id)
        if role is None:
            return Result.not_found(f"Role with ID {role_id} not found")
        if role.name in FIXED_ROLES:
            return Result.conflict(f"The {role.name} role cannot be deleted")
        if self.uow.roles.has_users(role_id):
            return Result.conflict("Cannot delete a role that has users assigned")

        with self.uow.atomic(actor):
            self.uow.roles.delete(role)
            self.audit.record(
                actor, "Roles", "DELETE", role_id,
                {"name": role.name, "description": role.description}, None)
        return Result.success()

    def seed_roles(self, actor: ActorContext) -> int:
        """Creates the fixed roles that are missing; returns how many were added."""
        missing = [name for name in FIXED_ROLES if self.uow.roles.get_by_name(name) is None]
        if not missing:
            return 0
        with self.uow.atomic(actor):
            for name in missing:
                self.uow.roles.add(Role(name=name, description=FIXED_ROLES[name]))
        logger.info("Seeded roles: %s", ", ".join(missing))
        return len(missing)


def ensure_admin(uow, actor: ActorContext, email: str, password: str) -> bool:
    """Creates the bootstrap administrator unless that email is already taken."""
    if uow.users.email_exists(email):
        return False
    role = uow.roles.get_by_name(ADMIN_ROLE)
    with uow.atomic(actor):
        uow.users.add(User(
            name="Administrator",
            email=normalize_email(email),
            password_hash=hash_password(password),
            role=role,
            is_active=True,
        ))
    logger.info("Created bootstrap administrator %s", email)
    return True
