# app/policies.py
"""
Access policy checks applied in front of every repository call.

Each (resource, action) pair maps to a rule. A pair without a rule is
denied. Routers call `authorize()` with the caller id and the ids that own
the resource (the owner, or both members of a match) before touching any
business logic.
"""

from __future__ import annotations

import enum
import logging
import uuid
from typing import Callable, Iterable

from app.errors import Forbidden
from app.models import Match

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


Rule = Callable[[uuid.UUID, tuple[uuid.UUID, ...]], bool]


def public(caller_id: uuid.UUID, owner_ids: tuple[uuid.UUID, ...]) -> bool:
    return True


def owner(caller_id: uuid.UUID, owner_ids: tuple[uuid.UUID, ...]) -> bool:
    return len(owner_ids) == 1 and owner_ids[0] == caller_id


def member(caller_id: uuid.UUID, owner_ids: tuple[uuid.UUID, ...]) -> bool:
    return caller_id in owner_ids


RULES: dict[tuple[str, Action], Rule] = {
    ("user", Action.READ): public,
    ("user", Action.CREATE): owner,
    ("user", Action.UPDATE): owner,

    ("swipe", Action.READ): owner,
    ("swipe", Action.CREATE): owner,

    ("match", Action.READ): member,

    ("message", Action.READ): member,
    ("message", Action.CREATE): member,
    ("message", Action.UPDATE): member,

    ("post", Action.READ): public,
    ("post", Action.CREATE): owner,
    ("post", Action.UPDATE): owner,
    ("post", Action.DELETE): owner,

    ("like", Action.READ): public,
    ("like", Action.CREATE): owner,
    ("like", Action.DELETE): owner,

    ("comment", Action.READ): public,
    ("comment", Action.CREATE): owner,
    ("comment", Action.DELETE): owner,

    ("block", Action.READ): owner,
    ("block", Action.CREATE): owner,
    ("block", Action.DELETE): owner,

    ("report", Action.READ): owner,
    ("report", Action.CREATE): owner,
}


def is_allowed(
    caller_id: uuid.UUID,
    resource: str,
    action: Action,
    owner_ids: Iterable[uuid.UUID] = (),
) -> bool:
    rule = RULES.get((resource, action))
    if rule is None:
        return False
    return rule(caller_id, tuple(owner_ids))


def authorize(
    caller_id: uuid.UUID,
    resource: str,
    action: Action,
    owner_ids: Iterable[uuid.UUID] = (),
) -> None:
    if not is_allowed(caller_id, resource, action, owner_ids):
        logger.warning(
            "Denied %s on %s for user %s",
            action.value,
            resource,
            caller_id,
        )
        raise Forbidden(f"Not allowed to {action.value} this {resource}")


def authorize_message_send(
    caller_id: uuid.UUID,
    match: Match,
    sender_id: uuid.UUID,
) -> None:
    authorize(caller_id, "message", Action.CREATE, match.member_ids)
    # sender must be the caller, not just any member
    authorize(caller_id, "message", Action.CREATE, (sender_id,))
