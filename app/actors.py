"""Authenticated callers.

Every request resolves to exactly one of these. Services take an ``Actor`` and
branch on its type with ``isinstance``; each kind only carries what it can use.
"""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    WORKER = "worker"
    CLIENT = "client"


@dataclass(frozen=True)
class AdminActor:
    user_id: str
    name: str = ""

    role = Role.ADMIN

    @property
    def subject_id(self) -> str:
        return self.user_id


@dataclass(frozen=True)
class WorkerActor:
    user_id: str
    name: str = ""

    role = Role.WORKER

    @property
    def subject_id(self) -> str:
        return self.user_id


@dataclass(frozen=True)
class ClientActor:
    client_id: str
    name: str = ""

    role = Role.CLIENT

    @property
    def subject_id(self) -> str:
        return self.client_id


Actor = AdminActor | WorkerActor | ClientActor


def staff_user_id(actor: Actor) -> str | None:
    """User id for admins and workers, None for clients."""
    if isinstance(actor, (AdminActor, WorkerActor)):
        return actor.user_id
    return None
