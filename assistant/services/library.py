"""Library snapshot types and the data-source interface the assistant reads from.

The assistant never writes to the library. Everything it sees comes through a
``LibraryDataSource``, which is responsible for filtering entities down to what
the requesting principal is allowed to access.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Protocol

EntityKind = Literal["songs", "playlists", "groups"]


@dataclass(frozen=True)
class Principal:
    """The authenticated user a request is evaluated for."""

    user_id: str


@dataclass
class Track:
    id: str
    name: str
    path: str


@dataclass
class Score:
    id: str
    name: str
    url: str | None = None
    pages: list[str] = field(default_factory=list)


@dataclass
class Resource:
    id: str
    name: str
    type: str  # youtube, audio, download, link, pdf
    url: str
    description: str | None = None


@dataclass
class AccessControl:
    visibility: str = "public"  # public, group_restricted, private
    access_level: str = "read"
    allowed_users: list[str] = field(default_factory=list)
    allowed_groups: list[str] = field(default_factory=list)


@dataclass
class Song:
    id: str
    title: str
    artist: str = ""
    album: str | None = None
    lyrics: str | None = None
    tracks: list[Track] = field(default_factory=list)
    scores: list[Score] = field(default_factory=list)
    resources: list[Resource] = field(default_factory=list)
    access_control: AccessControl | None = None
    created_by: str | None = None
    created_at: datetime | None = None

    @property
    def has_lyrics(self) -> bool:
        return bool(self.lyrics and self.lyrics.strip())


@dataclass
class PlaylistItem:
    song_id: str
    song_title: str
    song_artist: str
    position: int
    notes: str | None = None
    added_at: datetime | None = None


@dataclass
class Playlist:
    id: str
    name: str
    user_id: str
    description: str | None = None
    songs: list[PlaylistItem] = field(default_factory=list)
    is_public: bool = False
    play_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_played_at: datetime | None = None


@dataclass
class UserGroup:
    id: str
    name: str
    description: str | None = None
    members: list[str] = field(default_factory=list)
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_active: bool = True
    is_admin: bool = False
    color: str | None = None
    icon: str | None = None


@dataclass
class UserProfile:
    id: str
    email: str | None = None
    display_name: str | None = None
    avatar: str | None = None
    email_verified: bool = False
    preferences: dict[str, Any] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    last_active_at: datetime | None = None


@dataclass
class SongState:
    """Saved mixer state of a song for one user."""

    song_id: str
    active_track_ids: list[str] = field(default_factory=list)
    soloed_track_ids: list[str] = field(default_factory=list)
    track_volumes: dict[str, float] = field(default_factory=dict)
    last_updated: datetime | None = None


@dataclass
class TrackState:
    track_id: str
    song_id: str
    is_solo: bool = False
    is_muted: bool = False
    volume: float = 1.0
    last_updated: datetime | None = None


@dataclass
class LibrarySnapshot:
    """Everything the assistant may ground one turn on."""

    songs: list[Song] = field(default_factory=list)
    playlists: list[Playlist] = field(default_factory=list)
    groups: list[UserGroup] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.songs or self.playlists or self.groups)


class LibraryDataSource(Protocol):
    """Read-only view of the library for one principal.

    Implementations must be idempotent and side-effect free. List methods only
    return entities the principal is allowed to see; point lookups return the
    raw entity and leave the access decision to ``can_access_song``.
    """

    async def get_accessible_entities(self, kind: EntityKind, principal: Principal) -> list[Any]:
        ...

    async def get_song(self, song_id: str) -> Song | None:
        ...

    async def can_access_song(self, principal: Principal, song: Song) -> bool:
        ...

    async def get_favorite_song_ids(self, principal: Principal) -> list[str]:
        ...

    async def get_user(self, user_id: str) -> UserProfile | None:
        ...

    async def get_group_member_profiles(self, group: UserGroup) -> list[UserProfile]:
        ...

    async def get_song_state(self, principal: Principal, song_id: str) -> SongState | None:
        ...

    async def get_song_states(self, principal: Principal) -> list[SongState]:
        ...

    async def get_track_states(self, principal: Principal, song_id: str) -> list[TrackState]:
        ...


def song_is_accessible(song: Song, user_id: str, group_ids: list[str] | set[str]) -> bool:
    """Evaluate a song's access control for a user and their active groups."""
    access = song.access_control
    if access is None or access.visibility == "public":
        return True
    if song.created_by == user_id:
        return True
    if user_id in access.allowed_users:
        return True
    return any(group_id in group_ids for group_id in access.allowed_groups)


async def load_snapshot(library: LibraryDataSource, principal: Principal) -> LibrarySnapshot:
    """Fetch songs, playlists and groups for a principal in one go."""
    songs, playlists, groups = await asyncio.gather(
        library.get_accessible_entities("songs", principal),
        library.get_accessible_entities("playlists", principal),
        library.get_accessible_entities("groups", principal),
    )
    return LibrarySnapshot(songs=songs, playlists=playlists, groups=groups)
