import uuid

import pytest

from app.errors import Forbidden
from app.models import Match
from app.policies import Action, authorize, authorize_message_send, is_allowed


ALICE = uuid.UUID("00000000-0000-0000-0000-00000000000a")
BOB = uuid.UUID("00000000-0000-0000-0000-00000000000b")
MALLORY = uuid.UUID("00000000-0000-0000-0000-0000000000ff")


@pytest.mark.policies
def test_owner_rule_allows_only_the_owner():
    assert is_allowed(ALICE, "swipe", Action.CREATE, (ALICE,))
    assert not is_allowed(ALICE, "swipe", Action.CREATE, (BOB,))
    assert not is_allowed(ALICE, "swipe", Action.CREATE, ())


@pytest.mark.policies
def test_member_rule_allows_either_member():
    members = (ALICE, BOB)
    assert is_allowed(ALICE, "match", Action.READ, members)
    assert is_allowed(BOB, "message", Action.CREATE, members)
    assert not is_allowed(MALLORY, "message", Action.READ, members)


@pytest.mark.policies
def test_public_reads():
    assert is_allowed(MALLORY, "post", Action.READ)
    assert is_allowed(MALLORY, "user", Action.READ)


@pytest.mark.policies
@pytest.mark.parametrize(
    "resource, action",
    [
        ("swipe", Action.DELETE),
        ("swipe", Action.UPDATE),
        ("match", Action.CREATE),
        ("match", Action.DELETE),
        ("message", Action.DELETE),
        ("unknown", Action.READ),
    ],
)
def test_missing_rule_is_denied(resource, action):
    assert not is_allowed(ALICE, resource, action, (ALICE,))


@pytest.mark.policies
def test_authorize_raises_forbidden():
    authorize(ALICE, "post", Action.DELETE, (ALICE,))

    with pytest.raises(Forbidden) as exc_info:
        authorize(MALLORY, "post", Action.DELETE, (ALICE,))
    assert exc_info.value.status_code == 403


@pytest.mark.policies
def test_message_send_requires_membership_and_own_sender_id():
    match = Match(id=uuid.uuid4(), user1_id=ALICE, user2_id=BOB)

    authorize_message_send(ALICE, match, ALICE)

    with pytest.raises(Forbidden):
        authorize_message_send(MALLORY, match, MALLORY)
    with pytest.raises(Forbidden):
        # member posting on behalf of the other member
        authorize_message_send(ALICE, match, BOB)
