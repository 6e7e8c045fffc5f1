"""SQLAlchemy-backed library data source.

Read-only: queries the hosted library tables and maps rows to the plain
dataclasses in ``assistant.services.library``.
"""

import logging
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from assistant.db import models
from assistant.services.library import (
    AccessControl,
    EntityKind,
    Playlist,
    PlaylistItem,
    Principal,
    Resource,
    Score,
    Song,
    SongState,
    Track,
    TrackState,
    UserGroup,
    UserProfile,
    song_is_accessible,
)

logger = logging.getLogger(__name__)


def _song_from_row(row: models.Song) -> Song:
    access = row.access_control
    return Song(
        id=row.id,
        title=row.title,
        artist=row.artist or "",
        album=row.album,
        lyrics=row.lyrics,
        tracks=[
            Track(id=str(t.get("id", "")), name=t.get("name", ""), path=t.get("path", ""))
            for t in row.tracks or []
        ],
        scores=[
            Score(
                id=str(s.get("id", "")),
                name=s.get("name", ""),
                url=s.get("url"),
                pages=list(s.get("pages") or []),
            )
            for s in row.scores or []
        ],
        resources=[
            Resource(
                id=str(r.get("id", "")),
                name=r.get("name", ""),
                type=r.get("type", "link"),
                url=r.get("url", ""),
                description=r.get("description"),
            )
            for r in row.resources or []
        ],
        access_control=AccessControl(
            visibility=access.get("visibility", "public"),
            access_level=access.get("access_level", "read"),
            allowed_users=list(access.get("allowed_users") or []),
            allowed_groups=list(access.get("allowed_groups") or []),
        ) if access else None,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _playlist_from_row(row: models.Playlist) -> Playlist:
    return Playlist(
        id=row.id,
        name=row.name,
        user_id=row.user_id,
        description=row.description,
        songs=[
            PlaylistItem(
                song_id=item.song_id,
                song_title=item.song.title if item.song else "",
                song_artist=item.song.artist if item.song else "",
                position=item.position,
                notes=item.notes,
                added_at=item.added_at,
            )
            for item in row.items
        ],
        is_public=row.is_public,
        play_count=row.play_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_played_at=row.last_played_at,
    )


def _group_from_row(row: models.UserGroup) -> UserGroup:
    return UserGroup(
        id=row.id,
        name=row.name,
        description=row.description,
        members=[m.user_id for m in row.memberships],
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_active=row.is_active,
        is_admin=row.is_admin,
        color=row.color,
        icon=row.icon,
    )


def _profile_from_row(row: models.User) -> UserProfile:
    return UserProfile(
        id=row.id,
        email=row.email,
        display_name=row.display_name,
        avatar=row.avatar,
        email_verified=row.email_verified,
        preferences=dict(row.preferences or {}),
        stats=dict(row.stats or {}),
        created_at=row.created_at,
        last_active_at=row.last_active_at,
    )


def _song_state_from_row(row: models.SongState) -> SongState:
    return SongState(
        song_id=row.song_id,
        active_track_ids=list(row.active_track_ids or []),
        soloed_track_ids=list(row.soloed_track_ids or []),
        track_volumes=dict(row.track_volumes or {}),
        last_updated=row.last_updated,
    )


class DatabaseLibrary:
    """LibraryDataSource over the hosted Postgres library.

    Reads run concurrently (snapshot loading, parallel tool calls), so each
    one opens its own short-lived session from ``session_factory``. Never
    share one AsyncSession across reads.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _active_group_ids(self, db: AsyncSession, user_id: str) -> set[str]:
        stmt = (
            select(models.GroupMembership.group_id)
            .join(models.UserGroup, models.UserGroup.id == models.GroupMembership.group_id)
            .where(models.GroupMembership.user_id == user_id)
            .where(models.UserGroup.is_active.is_(True))
        )
        result = await db.execute(stmt)
        return set(result.scalars().all())

    async def get_accessible_entities(self, kind: EntityKind, principal: Principal) -> list[Any]:
        if kind == "songs":
            return await self._accessible_songs(principal)
        if kind == "playlists":
            return await self._accessible_playlists(principal)
        if kind == "groups":
            return await self._member_groups(principal)
        raise ValueError(f"Unknown entity kind: {kind}")

    async def _accessible_songs(self, principal: Principal) -> list[Song]:
        async with self.session_factory() as db:
            result = await db.execute(select(models.Song).order_by(models.Song.title))
            songs = [_song_from_row(row) for row in result.scalars().all()]
            group_ids = await self._active_group_ids(db, principal.user_id)
        visible = [s for s in songs if song_is_accessible(s, principal.user_id, group_ids)]
        logger.debug(f"{len(visible)} of {len(songs)} songs visible to {principal.user_id}")
        return visible

    async def _accessible_playlists(self, principal: Principal) -> list[Playlist]:
        stmt = (
            select(models.Playlist)
            .where(or_(
                models.Playlist.user_id == principal.user_id,
                models.Playlist.is_public.is_(True),
            ))
            .options(selectinload(models.Playlist.items).selectinload(models.PlaylistItem.song))
            .order_by(models.Playlist.updated_at.desc())
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [_playlist_from_row(row) for row in result.scalars().all()]

    async def _member_groups(self, principal: Principal) -> list[UserGroup]:
        stmt = (
            select(models.UserGroup)
            .join(models.GroupMembership, models.GroupMembership.group_id == models.UserGroup.id)
            .where(models.GroupMembership.user_id == principal.user_id)
            .where(models.UserGroup.is_active.is_(True))
            .options(selectinload(models.UserGroup.memberships))
            .order_by(models.UserGroup.name)
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [_group_from_row(row) for row in result.scalars().unique().all()]

    async def get_song(self, song_id: str) -> Song | None:
        async with self.session_factory() as db:
            row = await db.get(models.Song, song_id)
            return _song_from_row(row) if row else None

    async def can_access_song(self, principal: Principal, song: Song) -> bool:
        async with self.session_factory() as db:
            group_ids = await self._active_group_ids(db, principal.user_id)
        return song_is_accessible(song, principal.user_id, group_ids)

    async def get_favorite_song_ids(self, principal: Principal) -> list[str]:
        stmt = (
            select(models.FavoriteSong.song_id)
            .where(models.FavoriteSong.user_id == principal.user_id)
            .order_by(models.FavoriteSong.favorited_at.desc())
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def get_user(self, user_id: str) -> UserProfile | None:
        async with self.session_factory() as db:
            row = await db.get(models.User, user_id)
            return _profile_from_row(row) if row else None

    async def get_group_member_profiles(self, group: UserGroup) -> list[UserProfile]:
        if not group.members:
            return []
        stmt = select(models.User).where(models.User.id.in_(group.members))
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [_profile_from_row(row) for row in result.scalars().all()]

    async def get_song_state(self, principal: Principal, song_id: str) -> SongState | None:
        async with self.session_factory() as db:
            row = await db.get(models.SongState, (principal.user_id, song_id))
            return _song_state_from_row(row) if row else None

    async def get_song_states(self, principal: Principal) -> list[SongState]:
        stmt = select(models.SongState).where(models.SongState.user_id == principal.user_id)
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [_song_state_from_row(row) for row in result.scalars().all()]

    async def get_track_states(self, principal: Principal, song_id: str) -> list[TrackState]:
        stmt = (
            select(models.TrackState)
            .where(models.TrackState.user_id == principal.user_id)
            .where(models.TrackState.song_id == song_id)
            .order_by(models.TrackState.track_id)
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [
                TrackState(
                    track_id=row.track_id,
                    song_id=row.song_id,
                    is_solo=row.is_solo,
                    is_muted=row.is_muted,
                    volume=row.volume,
                    last_updated=row.last_updated,
                )
                for row in result.scalars().all()
            ]
