# tourneydata

A storage layer for an esports platform. It keeps player accounts,
friendships, game platform identities, teams and their members, social
media links, challenges with their entries and leaderboards, marketplace
orders, and assorted catalogue tables (admin settings, badges,
notifications, featured items, consoles, game types and sub types,
challenge sub types, tournament formats, deposit records).

Models are SQLAlchemy declarative classes sharing one `Base`. Queries are
plain functions, or small handler classes, that take a connected
`Database`.

## Installing

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Connecting

```python
from tourneydata.db import Database

db = Database("sqlite3", ":memory:")
db.connect()          # opens the engine and creates every table
```

`db_type` is `"sqlite3"` or `"postgres"`; any other value raises
`ValueError`. For SQLite an empty path or `":memory:"` gives one shared
in-memory database; any other path is a file. For PostgreSQL the
connection path is either a URL (`postgres://` is accepted and rewritten
to `postgresql://`) or a libpq connection string handed to psycopg2.
The PostgreSQL driver is not a dependency of this package; install one
yourself if you need it.

`db.session()` is a context manager yielding a SQLAlchemy session. Work
is committed on a clean exit and rolled back if an exception escapes.
Calling it before `connect()` raises `RuntimeError`.

## Errors

`tourneydata.db` defines `RecordNotFoundError`, `DuplicatedEntityError`,
`NotAllowedError` and `WrongValuesError`. Exceptions leaving a session
pass through `convert_error`: a query that found no row becomes
`RecordNotFoundError`, and a unique-key clash (recognised by
`is_duplicate_key_error`) becomes `DuplicatedEntityError`. Team
operations that the requesting member's role does not permit raise
`NotAllowedError`; applying to a team that is not open raises
`tourneydata.teams.TeamNotOpenError`, a subclass of it.

In most single-row and list lookups an empty string argument places no
condition on that column, so it matches any value.

## Modules

- `tourneydata.db` – `Base`, `Database`, the error types,
  `convert_error`, `is_duplicate_key_error`.
- `tourneydata.catalog` – `AdminConfig`, `Badge`, `Notification`,
  `Featured`, `Console`, `ChallengeSubType`, `GameSubType`, `GameType`,
  `TournamentFormat`, `BestOfNFormat`, `DepositRecord`, the
  `PRIZE_ALLOCATION` table, and their query functions.
- `tourneydata.users` – `UserAccount`, `UserGameAccount`,
  `UserPaymentAccount`, `UserFeed`, `UserInfo` and the account value
  classes (`GameAccount`, `PaymentAccount`, `Favourite`, …).
- `tourneydata.friends` – `Friend` invitations and friend lists.
- `tourneydata.games` – `GamePlatform` rows, `GameDTO` views and the
  known `GAME_PLATFORMS`.
- `tourneydata.team_members` – `TeamMember`, `TeamMemberHandler` and the
  `Role`, `Status`, `RequestType`, `TransferType` enums.
- `tourneydata.teams` – `TeamMachine`, `TransferLog`, `TeamHandler`,
  `Publicity`, `GenrePreferred`.
- `tourneydata.social` – `SocialLink`, `SocialHandler`, `SocialType`.
- `tourneydata.challenges` – `ChallengeData`, `Challenge`,
  `ChallengeResponse`, MessagePack encoding with `pack_challenge` and
  `unpack_challenge`, and challenge queries.
- `tourneydata.challenge_records` – `ChallengeRecord`, leaderboards,
  `group_by_team`, winner reporting.
- `tourneydata.marketplace` – `MarketplaceOrderRecord` and
  `MarketplaceHandler`.

## Examples

Users and games:

```python
from tourneydata import users, games

users.user_signup(db, "alice", "Alice", "0xabc", "sub-1", {"favouriteGame": []})
print(users.get_user(db, "sub-1").display_name)

games.update_game_platform_player_id(db, "sub-1", "APEX_LEGENDS", "STEAM", "alice_steam")
for game in games.get_user_games(db, "sub-1"):
    print(game.game_name, game.selected_platform)
```

Teams. Members are added through the handler; the first owner of a team
is approved at once, everyone else starts out pending:

```python
from tourneydata.teams import TeamHandler, Publicity
from tourneydata.team_members import Role, RequestType

teams = TeamHandler(db)
teams.members.create_team_member("team-1", "sub-1", Role.OWNER, RequestType.INVITE)
teams.invite_to_join("team-1", "sub-2")
teams.approve_membership("team-1", "sub-1", "sub-2", accepted=True)
```

Social links (one per user and network; storing again replaces the id):

```python
from tourneydata.social import SocialHandler, SocialLink, SocialType

social = SocialHandler(db)
social.create_social_link(
    SocialLink(user_id="sub-1", social_type=SocialType.TWITTER, social_id="alice")
)
```

Challenges and their responses. `format_challenges_for_response` parses
the entry fee and the comma-separated prize allocation as integers and
upper-cases the type, status and game mode:

```python
from tourneydata.challenges import Challenge, create_challenge, get_challenge_response

challenge = Challenge(challenge_name="Weekend", entry_fee="10", prize_allocation="50,30,20")
create_challenge(db, challenge)
print(get_challenge_response(db, challenge.challenge_id).prize_allocation)
```

Leaderboards grouped by team, highest team score first; leaders without
a team are left out:

```python
from tourneydata.challenge_records import ChallengeLeader, group_by_team

leaders = [
    ChallengeLeader(display_name="p1", score=10, team_name="red"),
    ChallengeLeader(display_name="p2", score=30, team_name="blue"),
]
for team in group_by_team(leaders):
    print(team.team_name, team.team_score)
```

Page-count helpers such as `catalog.count_deposit_record_pages` and
`MarketplaceHandler.count_record_pages` return the record count divided
by `per_page`, rounded up, and raise `ValueError` if `per_page` is not
positive.

## What it does not do

This is a library only: it has no command line, no web server and no
API layer. `TeamHandler` has no method for creating a team; add a
`TeamMachine` row through `db.session()` yourself, including any public
key you want stored with it. Tournaments, matches and per-tournament play
records are not stored by this package.