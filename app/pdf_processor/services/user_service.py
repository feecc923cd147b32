"""
User directory service.

CRUD over user accounts and role assignment, layered on the credential
store. Failures are reported as identity-style errors
(``{"code": ..., "description": ...}``) collected in ``UserServiceError``.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import (
    MIN_PASSWORD_LENGTH,
    ChangePasswordRequest,
    RegisterRequest,
    UpdateUserRequest,
    UserResponse,
)
from ..models_db import Role, RoleName, User
from ..security import hash_password, verify_password

logger = logging.getLogger(__name__)


class UserServiceError(Exception):
    """Raised when a directory operation is rejected."""

    def __init__(self, errors: list[dict[str, str]]):
        self.errors = errors
        super().__init__("; ".join(e["description"] for e in errors))

    @classmethod
    def single(cls, code: str, description: str) -> "UserServiceError":
        return cls([{"code": code, "description": description}])

    @property
    def codes(self) -> list[str]:
        return [e["code"] for e in self.errors]


def _user_not_found() -> UserServiceError:
    return UserServiceError.single("UserNotFound", "User not found")


class UserService:
    """Directory operations bound to one database session."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def ensure_roles(self) -> None:
        """Create the fixed roles if they are missing. Safe to call repeatedly."""
        existing = set(self.db.scalars(select(Role.name)).all())
        created = [name.value for name in RoleName if name.value not in existing]
        for name in created:
            self.db.add(Role(name=name))
        if created:
            self.db.commit()
            logger.info("Seeded roles: %s", created)

    def list_roles(self) -> list[str]:
        return list(self.db.scalars(select(Role.name).order_by(Role.name)).all())

    def _get_role(self, name: str) -> Role:
        role = self.db.scalar(select(Role).where(Role.name == name))
        if role is None:
            raise UserServiceError.single("InvalidRoleName", f"Role '{name}' does not exist")
        return role

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        return self.db.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )

    def find_by_id(self, user_id: str) -> User | None:
        return self.db.get(User, user_id)

    @staticmethod
    def to_response(user: User) -> UserResponse:
        return UserResponse(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            roles=user.role_names,
            created_at=user.created_at,
            is_active=user.is_active,
        )

    def list_users(self) -> list[UserResponse]:
        users = self.db.scalars(select(User).order_by(User.created_at, User.email)).all()
        return [self.to_response(user) for user in users]

    def get_user(self, user_id: str) -> UserResponse | None:
        user = self.find_by_id(user_id)
        if user is None:
            return None
        return self.to_response(user)

    # ------------------------------------------------------------------
    # Account lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def _check_password(password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise UserServiceError.single(
                "PasswordTooShort",
                f"Passwords must be at least {MIN_PASSWORD_LENGTH} characters.",
            )

    def _create_user(
        self,
        email: str,
        password: str,
        role: RoleName,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        self._check_password(password)
        if self.find_by_email(email) is not None:
            raise UserServiceError.single(
                "DuplicateEmail", f"Email '{email}' is already taken."
            )

        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            is_active=True,
        )
        user.roles.append(self._get_role(role.value))
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            self.db.rollback()
            raise UserServiceError.single(
                "DuplicateEmail", f"Email '{email}' is already taken."
            )
        self.db.refresh(user)
        logger.info("Created user %s with role %s", user.id, role.value)
        return user

    def register(self, request: RegisterRequest) -> User:
        """Create an account holding the User role."""
        return self._create_user(
            request.email,
            request.password,
            RoleName.USER,
            first_name=request.first_name,
            last_name=request.last_name,
        )

    def authenticate(self, email: str, password: str) -> User | None:
        """Return the account for valid credentials; None otherwise."""
        user = self.find_by_email(email)
        if user is None or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    @staticmethod
    def get_roles(user: User) -> list[str]:
        return user.role_names

    def change_password(self, user_id: str, request: ChangePasswordRequest) -> None:
        user = self.find_by_id(user_id)
        if user is None:
            raise _user_not_found()
        if not verify_password(request.current_password, user.password_hash):
            raise UserServiceError.single("PasswordMismatch", "Incorrect password.")
        self._check_password(request.new_password)

        user.password_hash = hash_password(request.new_password)
        self.db.commit()
        logger.info("Password changed for user %s", user_id)

    def create_or_promote_admin(self, request: RegisterRequest) -> str:
        """
        Create an admin account, or promote an existing account to Admin.

        Returns:
            A status message for the caller.

        Raises:
            UserServiceError: If the account is already an admin or the
                new account is rejected.
        """
        existing = self.find_by_email(request.email)
        if existing is not None:
            if RoleName.ADMIN.value in existing.role_names:
                raise UserServiceError.single(
                    "AdminAlreadyExists", "Admin user already exists"
                )
            existing.roles.append(self._get_role(RoleName.ADMIN.value))
            self.db.commit()
            logger.info("Promoted user %s to Admin", existing.id)
            return "User promoted to Admin role"

        self._create_user(
            request.email,
            request.password,
            RoleName.ADMIN,
            first_name=request.first_name,
            last_name=request.last_name,
        )
        return "Admin user created successfully"

    def ensure_admin(self, email: str, password: str) -> None:
        """Create the bootstrap admin account if it does not exist yet."""
        if self.find_by_email(email) is not None:
            return
        self._create_user(email, password, RoleName.ADMIN, first_name="Admin", last_name="User")

    # ------------------------------------------------------------------
    # Admin directory management
    # ------------------------------------------------------------------

    def update_user(self, user_id: str, request: UpdateUserRequest) -> None:
        user = self.find_by_id(user_id)
        if user is None:
            raise _user_not_found()

        added_roles: list[Role] = []
        if request.roles is not None:
            added_roles = [
                self._get_role(name)
                for name in sorted(set(request.roles) - set(user.role_names))
            ]

        if request.email is not None and request.email.lower() != user.email.lower():
            other = self.find_by_email(request.email)
            if other is not None and other.id != user.id:
                raise UserServiceError.single(
                    "DuplicateEmail", f"Email '{request.email}' is already taken."
                )
            user.email = request.email

        if request.first_name is not None:
            user.first_name = request.first_name

        if request.last_name is not None:
            user.last_name = request.last_name

        if request.is_active is not None:
            user.is_active = request.is_active

        if request.roles is not None:
            wanted = set(request.roles)
            for role in list(user.roles):
                if role.name not in wanted:
                    user.roles.remove(role)
            user.roles.extend(added_roles)

        self.db.commit()
        logger.info("Updated user %s", user_id)

    def delete_user(self, user_id: str) -> None:
        user = self.find_by_id(user_id)
        if user is None:
            raise _user_not_found()
        self.db.delete(user)
        self.db.commit()
        logger.info("Deleted user %s", user_id)
