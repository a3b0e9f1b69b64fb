import pytest

from tourneydata.db import Database, DuplicatedEntityError
from tourneydata.friends import (
    Friend,
    InvitationRequestUser,
    approve_friend_invitation,
    create_friend_invite,
    fetch_friend_invites,
    get_friend_invitations,
    get_friend_list,
    reject_friend_invitation,
)
from tourneydata.users import user_signup


@pytest.fixture
def db():
    database = Database("sqlite3", ":memory:")
    database.connect()
    user_signup(database, "alice", "Alice", "0x1", "sub-a", None)
    user_signup(database, "bob", "Bob", "0x2", "sub-b", None)
    return database


def _invite(db):
    return create_friend_invite(
        db, Friend(user_id_one="sub-a", user_id_two="sub-b", user_one_decision=1)
    )


def test_fetch_invites(db):
    _invite(db)
    invites = fetch_friend_invites(db, "sub-a", "sub-b")
    assert [(f.user_id_one, f.user_id_two) for f in invites] == [("sub-a", "sub-b")]
    assert fetch_friend_invites(db, "sub-b", "sub-a") == []


def test_duplicate_invite_rejected(db):
    _invite(db)
    with pytest.raises(DuplicatedEntityError):
        _invite(db)


def test_pending_invitation_shows_sender(db):
    _invite(db)
    invitations = get_friend_invitations(db, "sub-b")
    assert invitations == [InvitationRequestUser("Alice", "", 0)]
    assert get_friend_invitations(db, "sub-a") == []


def test_approve_makes_friends(db):
    _invite(db)
    assert get_friend_list(db, "sub-a") == []
    approve_friend_invitation(db, "sub-a", "sub-b")
    for user in ("sub-a", "sub-b"):
        friends = get_friend_list(db, user)
        assert [(f.user_id_one, f.user_id_two) for f in friends] == [("sub-a", "sub-b")]
    assert get_friend_invitations(db, "sub-b") == []


def test_reject_keeps_them_apart(db):
    _invite(db)
    reject_friend_invitation(db, "sub-a", "sub-b")
    assert get_friend_list(db, "sub-b") == []
    assert fetch_friend_invites(db, "sub-a", "sub-b")[0].user_two_decision == -1


def test_decision_needs_conditions(db):
    with pytest.raises(ValueError):
        approve_friend_invitation(db, "", "")


def test_invitation_dict_shape():
    data = InvitationRequestUser("Alice", "a.png", 0).to_dict()
    assert data == {"displayName": "Alice", "avatarUrl": "a.png", "userTwoDecision": 0}