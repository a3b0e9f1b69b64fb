"""Players' identities on game platforms."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType

from sqlalchemy import DateTime, String, select
from sqlalchemy.orm import Mapped, mapped_column

from tourneydata.db import Base, Database
from tourneydata.users import UserGameAccount

GAME_PLATFORMS = MappingProxyType(
    {
        "CODMWBR": ("XBOX", "PSN", "BATTLENET"),
        "APEX_LEGENDS": ("XBOX", "PSN", "STEAM", "ORIGIN", "NINTENDO"),
    }
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _nonzero(*pairs):
    return [column == value for column, value in pairs if value]


class GamePlatform(Base):
    __tablename__ = "game_platforms"

    sub: Mapped[str] = mapped_column(String, primary_key=True)
    game_name: Mapped[str] = mapped_column(String, primary_key=True)
    platform_name: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(String, default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


@dataclass
class PlatformDetail:
    platform_name: str
    player_id: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"platformName": self.platform_name, "id": self.player_id}


@dataclass
class GameDTO:
    sub: str
    game_name: str
    selected_platform: str = ""
    platforms: list[PlatformDetail] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sub": self.sub,
            "gameName": self.game_name,
            "selectedPlatform": self.selected_platform,
            "platforms": [platform.to_dict() for platform in self.platforms],
        }


def get_user_games(db: Database, sub: str) -> list[GameDTO]:
    """Every known game with the user's player id on each of its platforms."""
    with db.session() as session:
        rows = list(
            session.execute(
                select(GamePlatform)
                .where(GamePlatform.sub == sub)
                .order_by(GamePlatform.updated_at)
            ).scalars()
        )
    ids = {game: dict.fromkeys(platforms, "") for game, platforms in GAME_PLATFORMS.items()}
    selected: dict[str, str] = {}
    for row in rows:
        ids.setdefault(row.game_name, {})[row.platform_name] = row.player_id
        selected[row.game_name] = row.platform_name
    return [
        GameDTO(
            sub=sub,
            game_name=game,
            selected_platform=selected.get(game, ""),
            platforms=[PlatformDetail(name, player) for name, player in platforms.items()],
        )
        for game, platforms in ids.items()
    ]


def get_specific_game(db: Database, sub: str, game_name: str) -> GameDTO | None:
    return next(
        (game for game in get_user_games(db, sub) if game.game_name == game_name),
        None,
    )


def update_game_platform_player_id(
    db: Database, sub: str, game_name: str, platform_name: str, player_id: str
) -> list[GameDTO]:
    """Store the player's id on a platform and return all of the user's games."""
    with db.session() as session:
        session.merge(
            GamePlatform(
                sub=sub,
                game_name=game_name,
                platform_name=platform_name,
                player_id=player_id,
                updated_at=_utcnow(),
            )
        )
    return get_user_games(db, sub)


def disconnect_game(db: Database, sub: str, game_name: str, platform_name: str) -> None:
    """Forget the user's platform identity for a game and in the game account."""
    key = platform_name.lower()
    with db.session() as session:
        link = session.get(GamePlatform, (sub, game_name, platform_name))
        if link is not None:
            session.delete(link)
        account = session.get(UserGameAccount, sub)
        if account is not None and isinstance(account.game_account, dict):
            account.game_account = {
                name: value
                for name, value in account.game_account.items()
                if name != key
            }


def is_platform_username_used(
    db: Database, sub: str, game_name: str, platform_name: str, platform_username: str
) -> bool:
    """Tell whether another user already claims this platform identity."""
    conditions = _nonzero(
        (GamePlatform.game_name, game_name),
        (GamePlatform.platform_name, platform_name),
        (GamePlatform.player_id, platform_username),
    )
    if sub:
        conditions.append(GamePlatform.sub != sub)
    with db.session() as session:
        found = session.execute(
            select(GamePlatform.sub).where(*conditions).limit(1)
        ).first()
    return found is not None