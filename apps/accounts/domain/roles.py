from __future__ import annotations

from enum import StrEnum


class AccountRole(StrEnum):
    USER = "user"
    SELLER = "seller"
    ADMIN = "admin"


class AccountStatus(StrEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
