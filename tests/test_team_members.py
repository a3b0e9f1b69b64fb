import pytest

from tourneydata.db import Database, DuplicatedEntityError, RecordNotFoundError
from tourneydata.team_members import (
    JoinRequestBody,
    RequestType,
    Role,
    Status,
    TeamMemberHandler,
    TransferType,
)
from tourneydata.users import user_signup

SUB1 = "sub-one"
SUB2 = "sub-two"


@pytest.fixture
def db():
    database = Database("sqlite3", ":memory:")
    database.connect()
    user_signup(database, "player-one", "Player One", "", SUB1, {})
    user_signup(database, "player-two", "Player Two", "", SUB2, {})
    return database


@pytest.fixture
def handler(db):
    return TeamMemberHandler(db)


def test_create_member(handler):
    handler.create_team_member("1", SUB1, Role.MEMBER, RequestType.APPLY)
    handler.change_role("1", SUB1, Role.MANAGER)
    updated = handler.find_team_member("1", SUB1)
    assert updated.role == Role.MANAGER
    assert updated.sub == updated.user.sub
    handler.delete_team_member("1", SUB1)
    with pytest.raises(RecordNotFoundError):
        handler.find_team_member("1", SUB1)


def test_owner_starts_approved_member_pending(handler):
    owner = handler.create_team_member("t", SUB1, Role.OWNER, RequestType.INVITE)
    member = handler.create_team_member("t", SUB2, Role.MEMBER, RequestType.APPLY)
    assert owner.status == Status.APPROVED
    assert member.status == Status.PENDING
    assert member.request_type == RequestType.APPLY


def test_unknown_user_is_rejected(handler):
    with pytest.raises(RecordNotFoundError):
        handler.create_team_member("t", "nobody", Role.MEMBER, RequestType.APPLY)


def test_duplicate_member(handler):
    handler.create_team_member("t", SUB1, Role.MEMBER, RequestType.APPLY)
    with pytest.raises(DuplicatedEntityError):
        handler.create_team_member("t", SUB1, Role.MEMBER, RequestType.INVITE)


def test_invalid_role(handler):
    with pytest.raises(ValueError):
        handler.create_team_member("t", SUB1, "ADMIN", RequestType.APPLY)


def test_approve_and_reject(handler):
    handler.create_team_member("t", SUB1, Role.MEMBER, RequestType.APPLY)
    handler.create_team_member("t", SUB2, Role.MEMBER, RequestType.APPLY)
    handler.approve("t", SUB1)
    handler.reject("t", SUB2)
    assert handler.find_team_member("t", SUB1).status == Status.APPROVED
    assert handler.find_team_member("t", SUB2).status == Status.REJECTED


def test_find_team_members_attaches_users(handler):
    handler.create_team_member("t", SUB1, Role.OWNER, RequestType.INVITE)
    handler.create_team_member("t", SUB2, Role.MEMBER, RequestType.APPLY)
    handler.create_team_member("other", SUB1, Role.MEMBER, RequestType.APPLY)
    members = handler.find_team_members("t")
    assert sorted(m.sub for m in members) == [SUB1, SUB2]
    assert all(m.user.sub == m.sub for m in members)


def test_delete_team_members(handler):
    handler.create_team_member("t", SUB1, Role.OWNER, RequestType.INVITE)
    handler.create_team_member("t", SUB2, Role.MEMBER, RequestType.APPLY)
    handler.create_team_member("other", SUB1, Role.MEMBER, RequestType.APPLY)
    handler.delete_team_members("t")
    assert handler.find_team_members("t") == []
    assert [m.sub for m in handler.find_team_members("other")] == [SUB1]


def test_delete_team_members_needs_team(handler):
    with pytest.raises(ValueError):
        handler.delete_team_members("")


def test_enum_validity():
    assert Role.is_valid("OWNER")
    assert not Role.is_valid("ADMIN")
    assert TransferType.is_valid("DISTRIBUTE")
    assert not TransferType.is_valid("SEND")
    assert Status.is_valid(Status.PENDING)
    assert RequestType.is_valid("ACCEPT")
    assert not RequestType.is_valid("")


def test_join_request_body_round_trip():
    data = {"teamId": "t", "action": "APPLY", "userId": SUB1}
    body = JoinRequestBody.from_dict(data)
    assert body.action is RequestType.APPLY
    assert body.to_dict() == data