"""Pydantic schemas for the session user and the authentication forms."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


class User(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    id: int
    username: str
    full_name: str = ""
    role: str = "employee"
    needs_password_change: bool = False

    @field_validator("needs_password_change", mode="before")
    @classmethod
    def none_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    @property
    def initials(self) -> str:
        parts = [part for part in self.display_name.split() if part]
        return "".join(part[0] for part in parts[:2]).upper()


class LoginForm(BaseModel):
    username: str = ""
    password: str = ""

    @field_validator("username")
    @classmethod
    def username_length(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_USERNAME_LENGTH:
            raise ValueError(f"Lo username deve contenere almeno {MIN_USERNAME_LENGTH} caratteri")
        return value

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"La password deve contenere almeno {MIN_PASSWORD_LENGTH} caratteri")
        return value


class ChangePasswordForm(BaseModel):
    current_password: str = ""
    new_password: str = ""
    confirm_password: str = ""

    @field_validator("current_password")
    @classmethod
    def current_required(cls, value: str) -> str:
        if not value:
            raise ValueError("La password attuale è obbligatoria")
        return value

    @field_validator("new_password")
    @classmethod
    def new_length(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"La nuova password deve essere di almeno {MIN_PASSWORD_LENGTH} caratteri")
        return value

    @field_validator("confirm_password")
    @classmethod
    def confirm_length(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"La conferma password deve essere di almeno {MIN_PASSWORD_LENGTH} caratteri")
        return value

    @model_validator(mode="after")
    def passwords_match(self) -> "ChangePasswordForm":
        if self.new_password != self.confirm_password:
            raise ValueError("Le password non corrispondono")
        return self


class InvitationForm(BaseModel):
    new_password: str = ""
    confirm_password: str = ""

    @field_validator("new_password")
    @classmethod
    def new_length(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"La password deve essere di almeno {MIN_PASSWORD_LENGTH} caratteri")
        return value

    @model_validator(mode="after")
    def passwords_match(self) -> "InvitationForm":
        if self.new_password != self.confirm_password:
            raise ValueError("Le password non corrispondono")
        return self


ROLES = ("employee", "admin")


class RoleForm(BaseModel):
    role: str = "employee"

    @field_validator("role")
    @classmethod
    def known_role(cls, value: str) -> str:
        if value not in ROLES:
            raise ValueError("Ruolo non valido")
        return value


class NewUserForm(RoleForm):
    username: str = ""
    full_name: str = ""
    password: str = ""

    @field_validator("username")
    @classmethod
    def username_length(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_USERNAME_LENGTH:
            raise ValueError(f"Username deve essere almeno {MIN_USERNAME_LENGTH} caratteri.")
        return value

    @field_validator("full_name")
    @classmethod
    def full_name_length(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_USERNAME_LENGTH:
            raise ValueError(f"Nome completo deve essere almeno {MIN_USERNAME_LENGTH} caratteri.")
        return value

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password deve essere almeno {MIN_PASSWORD_LENGTH} caratteri.")
        return value

    def payload(self) -> dict[str, str]:
        return {"username": self.username, "fullName": self.full_name, "password": self.password, "role": self.role}


class InvitedUser(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    username: str = ""
    full_name: str = ""


class Invitation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user: InvitedUser


class UserOut(User):
    """Row of the admin user list; tolerates missing ids from older backends."""

    id: int = 0
    email: Optional[str] = None


def form_errors(exc: ValidationError) -> dict[str, str]:
    """Map validation errors to ``{field: message}``; model-level errors land on ``confirm_password``."""

    errors: dict[str, str] = {}
    for error in exc.errors():
        location = error.get("loc") or ()
        field = str(location[0]) if location else "confirm_password"
        ctx_error = (error.get("ctx") or {}).get("error")
        message = str(ctx_error) if ctx_error is not None else error.get("msg", "")
        errors.setdefault(field, message)
    return errors
