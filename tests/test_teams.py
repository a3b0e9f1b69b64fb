import pytest

from tourneydata.db import (
    Database,
    DuplicatedEntityError,
    NotAllowedError,
    RecordNotFoundError,
)
from tourneydata.team_members import RequestType, Role, Status, TransferType
from tourneydata.teams import (
    GenrePreferred,
    Publicity,
    TeamHandler,
    TeamMachine,
    TeamNotOpenError,
    TransferLog,
)
from tourneydata.users import user_signup

OWNER = "owner-sub"
MEMBER = "member-sub"
GUEST = "guest-sub"


@pytest.fixture
def db():
    database = Database("sqlite3", ":memory:")
    database.connect()
    for number, sub in enumerate((OWNER, MEMBER, GUEST)):
        user_signup(database, f"user{number}", f"Display {number}", "", sub, {})
    with database.session() as session:
        session.add(
            TeamMachine(
                id="team-open",
                name="Alpha Squad",
                publicity=Publicity.OPEN.value,
                genre_preferred=GenrePreferred.FPS.value,
            )
        )
        session.add(
            TeamMachine(
                id="team-closed",
                name="Beta Squad",
                publicity=Publicity.INVITE_ONLY.value,
                genre_preferred=GenrePreferred.SPORTS.value,
            )
        )
    return database


@pytest.fixture
def handler(db):
    teams = TeamHandler(db)
    teams.members.create_team_member("team-open", OWNER, Role.OWNER, RequestType.INVITE)
    teams.members.create_team_member("team-closed", OWNER, Role.OWNER, RequestType.INVITE)
    return teams


def test_fetch_team_includes_members(handler):
    team = handler.fetch_team("team-open")
    assert team.name == "Alpha Squad"
    assert [m.sub for m in team.members] == [OWNER]
    assert team.members[0].user.sub == OWNER


def test_fetch_missing_team(handler):
    with pytest.raises(RecordNotFoundError):
        handler.fetch_team("nope")


def test_ask_to_join_open_team(handler):
    member = handler.ask_to_join("team-open", MEMBER)
    assert member.status == Status.PENDING
    assert member.request_type == RequestType.APPLY
    assert member.role == Role.MEMBER


def test_ask_to_join_closed_team(handler):
    with pytest.raises(TeamNotOpenError):
        handler.ask_to_join("team-closed", MEMBER)


def test_invite_to_closed_team(handler):
    member = handler.invite_to_join("team-closed", MEMBER)
    assert member.request_type == RequestType.INVITE
    assert handler.fetch_team_member("team-closed", MEMBER).status == Status.PENDING


def test_invite_to_missing_team(handler):
    with pytest.raises(RecordNotFoundError):
        handler.invite_to_join("nope", MEMBER)


@pytest.mark.parametrize(
    "accepted, expected", [(True, Status.APPROVED), (False, Status.REJECTED)]
)
def test_owner_decides_membership(handler, accepted, expected):
    handler.ask_to_join("team-open", MEMBER)
    handler.approve_membership("team-open", OWNER, MEMBER, accepted)
    assert handler.fetch_team_member("team-open", MEMBER).status == expected


def test_plain_member_cannot_approve(handler):
    handler.ask_to_join("team-open", MEMBER)
    handler.ask_to_join("team-open", GUEST)
    with pytest.raises(NotAllowedError):
        handler.approve_membership("team-open", MEMBER, GUEST, True)


def test_owner_promotes_member(handler):
    handler.ask_to_join("team-open", MEMBER)
    handler.change_role("team-open", MEMBER, OWNER, Role.MANAGER)
    assert handler.fetch_team_member("team-open", MEMBER).role == Role.MANAGER


def test_member_cannot_change_roles(handler):
    handler.ask_to_join("team-open", MEMBER)
    handler.ask_to_join("team-open", GUEST)
    with pytest.raises(NotAllowedError):
        handler.change_role("team-open", GUEST, MEMBER, Role.MEMBER)


def test_ownership_transfer_demotes_owner(handler):
    handler.ask_to_join("team-open", MEMBER)
    handler.change_role("team-open", MEMBER, OWNER, Role.OWNER)
    assert handler.fetch_team_member("team-open", MEMBER).role == Role.OWNER
    assert handler.fetch_team_member("team-open", OWNER).role == Role.MANAGER


def test_manager_limits(handler):
    handler.ask_to_join("team-open", MEMBER)
    handler.ask_to_join("team-open", GUEST)
    handler.change_role("team-open", MEMBER, OWNER, Role.MANAGER)
    with pytest.raises(NotAllowedError):
        handler.change_role("team-open", GUEST, MEMBER, Role.MANAGER)
    handler.change_role("team-open", GUEST, MEMBER, Role.MEMBER)
    assert handler.fetch_team_member("team-open", GUEST).role == Role.MEMBER


def test_unknown_role_not_allowed(handler):
    handler.ask_to_join("team-open", MEMBER)
    with pytest.raises(NotAllowedError):
        handler.change_role("team-open", MEMBER, OWNER, "ADMIN")


def test_fetch_teams_by_name(handler):
    assert sorted(t.id for t in handler.fetch_teams_by_name("Squad")) == [
        "team-closed",
        "team-open",
    ]
    assert [t.id for t in handler.fetch_teams_by_name("Alpha")] == ["team-open"]


def test_fetch_all_teams_skips_placeholder(db, handler):
    with db.session() as session:
        session.add(TeamMachine(id="team-one", name="1"))
    ids = sorted(t.id for t in handler.fetch_all_teams())
    assert ids == ["team-closed", "team-open"]


def test_update_team(handler):
    changes = TeamMachine(
        name="Gamma Squad",
        publicity=Publicity.INVITE_ONLY,
        genre_preferred=GenrePreferred.BATTLE_ROYALE,
    )
    handler.update_team("team-open", changes)
    team = handler.fetch_team("team-open")
    assert team.name == "Gamma Squad"
    assert team.publicity == Publicity.INVITE_ONLY
    assert team.genre_preferred == "BATTLE ROYALE"


def test_update_team_duplicate_name(handler):
    with pytest.raises(DuplicatedEntityError):
        handler.update_team("team-open", TeamMachine(name="Beta Squad"))


def test_delete_team(handler):
    handler.ask_to_join("team-open", MEMBER)
    handler.delete_team("team-open")
    with pytest.raises(RecordNotFoundError):
        handler.fetch_team("team-open")
    assert handler.members.find_team_members("team-open") == []
    assert [m.sub for m in handler.members.find_team_members("team-closed")] == [OWNER]


def test_delete_team_member(handler):
    handler.ask_to_join("team-open", MEMBER)
    handler.delete_team_member("team-open", MEMBER)
    with pytest.raises(RecordNotFoundError):
        handler.fetch_team_member("team-open", MEMBER)


def test_update_avatar(handler):
    handler.update_avatar("team-open", "https://cdn.example.com/a.png")
    assert handler.fetch_team("team-open").avatar_url == "https://cdn.example.com/a.png"


def test_insert_transfer_log(db, handler):
    log = handler.insert_transfer_log("team-open", "0xfrom", "0xto", "250", TransferType.FUND)
    with db.session() as session:
        stored = session.get(TransferLog, log.id)
        assert stored is not None
        assert (stored.team_id, stored.sender, stored.receiver, stored.amount) == (
            "team-open",
            "0xfrom",
            "0xto",
            "250",
        )
        assert stored.trx_type == "FUND"


def test_team_enums():
    assert Publicity.is_valid("OPEN")
    assert not Publicity.is_valid("CLOSED")
    assert GenrePreferred.is_valid("BATTLE ROYALE")
    assert not GenrePreferred.is_valid("RPG")