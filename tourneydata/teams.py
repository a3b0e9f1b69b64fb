"""Teams, their membership workflow and fund transfer logs."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, delete, select, update
from sqlalchemy.orm import Mapped, mapped_column

from tourneydata.db import Base, Database, NotAllowedError
from tourneydata.team_members import (
    RequestType,
    Role,
    TeamMember,
    TeamMemberHandler,
    _CheckedEnum,
    _text,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _nonzero(*pairs):
    return [column == value for column, value in pairs if value]


class Publicity(_CheckedEnum):
    OPEN = "OPEN"
    INVITE_ONLY = "INVITE_ONLY"


class GenrePreferred(_CheckedEnum):
    BATTLE_ROYALE = "BATTLE ROYALE"
    SPORTS = "SPORTS"
    FPS = "FPS"


class TeamNotOpenError(NotAllowedError):
    """The team does not accept applications."""

    def __init__(self, message: str = "the team is not open for new members") -> None:
        super().__init__(message)


class TeamMachine(Base):
    __tablename__ = "team_machines"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    publicity: Mapped[str] = mapped_column(String, default="")
    genre_preferred: Mapped[str] = mapped_column(String, default="")
    avatar_url: Mapped[str] = mapped_column(String, default="")
    public_key: Mapped[str] = mapped_column(String, default="")

    members = None


class TransferLog(Base):
    __tablename__ = "transfer_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    team_id: Mapped[str] = mapped_column(String, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    trx_type: Mapped[str] = mapped_column(String, default="")
    sender: Mapped[str] = mapped_column("from", String, default="")
    receiver: Mapped[str] = mapped_column("to", String, default="")
    amount: Mapped[str] = mapped_column(String, default="")


class TeamHandler:
    """Team operations, checked against the requesting member's role."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.members = TeamMemberHandler(db)

    def approve_membership(
        self, team_id: str, requested_sub: str, sub: str, accepted: bool
    ) -> TeamMember:
        """Let an owner or manager accept or turn down a pending member."""
        requester = self.members.find_team_member(team_id, requested_sub)
        if requester.role not in (Role.MANAGER, Role.OWNER):
            raise NotAllowedError()
        if accepted:
            return self.members.approve(team_id, sub)
        return self.members.reject(team_id, sub)

    def ask_to_join(self, team_id: str, sub: str) -> TeamMember:
        """Apply to an open team as a pending member."""
        team = self.fetch_team(team_id)
        if team.publicity != Publicity.OPEN:
            raise TeamNotOpenError()
        return self.members.create_team_member(
            team_id, sub, Role.MEMBER, RequestType.APPLY
        )

    def invite_to_join(self, team_id: str, sub: str) -> TeamMember:
        self.fetch_team(team_id)
        return self.members.create_team_member(
            team_id, sub, Role.MEMBER, RequestType.INVITE
        )

    def change_role(
        self, team_id: str, sub: str, requested_sub: str, role: Role | str
    ) -> TeamMember:
        """Give a member a new role; handing over ownership demotes the owner."""
        requester = self.members.find_team_member(team_id, requested_sub)
        try:
            role = Role(role)
        except ValueError:
            raise NotAllowedError() from None
        if role is Role.MEMBER:
            if requester.role not in (Role.OWNER, Role.MANAGER):
                raise NotAllowedError()
        elif role is Role.MANAGER:
            if requester.role != Role.OWNER:
                raise NotAllowedError()
        else:
            if requester.role != Role.OWNER:
                raise NotAllowedError()
            self.members.change_role(team_id, requested_sub, Role.MANAGER)
        return self.members.change_role(team_id, sub, role)

    def fetch_team(self, team_id: str) -> TeamMachine:
        """A team together with its members."""
        with self.db.session() as session:
            team = session.execute(
                select(TeamMachine)
                .where(*_nonzero((TeamMachine.id, team_id)))
                .order_by(TeamMachine.id)
                .limit(1)
            ).scalar_one()
        team.members = self.members.find_team_members(team_id)
        return team

    def fetch_team_member(self, team_id: str, sub: str) -> TeamMember:
        return self.members.find_team_member(team_id, sub)

    def fetch_teams_by_name(self, name: str) -> list[TeamMachine]:
        """Teams whose name contains ``name``."""
        with self.db.session() as session:
            return list(
                session.execute(
                    select(TeamMachine).where(TeamMachine.name.like(f"%{name}%"))
                ).scalars()
            )

    def fetch_all_teams(self) -> list[TeamMachine]:
        with self.db.session() as session:
            return list(
                session.execute(
                    select(TeamMachine).where(TeamMachine.name != "1")
                ).scalars()
            )

    def update_team(self, team_id: str, team: TeamMachine) -> None:
        """Overwrite a team's name, preferred genre and publicity."""
        with self.db.session() as session:
            session.execute(
                update(TeamMachine)
                .where(TeamMachine.id == team_id)
                .values(
                    name=team.name or "",
                    genre_preferred=_text(team.genre_preferred),
                    publicity=_text(team.publicity),
                    updated_at=_utcnow(),
                )
            )

    def delete_team(self, team_id: str) -> None:
        """Delete a team and all of its memberships."""
        with self.db.session() as session:
            team = session.execute(
                select(TeamMachine)
                .where(*_nonzero((TeamMachine.id, team_id)))
                .order_by(TeamMachine.id)
                .limit(1)
            ).scalar_one()
            session.execute(delete(TeamMember).where(TeamMember.team_id == team.id))
            session.delete(team)

    def delete_team_member(self, team_id: str, sub: str) -> None:
        self.members.delete_team_member(team_id, sub)

    def update_avatar(self, team_id: str, url: str) -> TeamMachine:
        team = self.fetch_team(team_id)
        with self.db.session() as session:
            session.execute(
                update(TeamMachine)
                .where(TeamMachine.id == team.id)
                .values(avatar_url=url, updated_at=_utcnow())
            )
        team.avatar_url = url
        return team

    def insert_transfer_log(
        self, team_id: str, sender: str, receiver: str, amount: str, trx_type
    ) -> TransferLog:
        """Record a transfer of funds for a team."""
        log = TransferLog(
            id=str(uuid.uuid4()),
            team_id=team_id,
            sender=sender,
            receiver=receiver,
            amount=amount,
            trx_type=_text(trx_type),
        )
        with self.db.session() as session:
            session.add(log)
            session.flush()
            return log