"""
Test fixtures for the library assistant tests.

The library is an in-memory fake; no database is needed. API tests use
FastAPI's synchronous TestClient with dependency overrides.
"""

from collections.abc import Generator
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from assistant.services.library import (
    AccessControl,
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

USER_ID = "user-1"


class FakeLibrary:
    """In-memory LibraryDataSource."""

    def __init__(
        self,
        songs: list[Song] | None = None,
        playlists: list[Playlist] | None = None,
        groups: list[UserGroup] | None = None,
        users: list[UserProfile] | None = None,
        favorites: dict[str, list[str]] | None = None,
        song_states: dict[tuple[str, str], SongState] | None = None,
        track_states: dict[tuple[str, str], list[TrackState]] | None = None,
    ):
        self.songs = songs or []
        self.playlists = playlists or []
        self.groups = groups or []
        self.users = {u.id: u for u in users or []}
        self.favorites = favorites or {}
        self.song_states = song_states or {}
        self.track_states = track_states or {}
        self.calls: list[str] = []

    def _group_ids(self, user_id: str) -> set[str]:
        return {g.id for g in self.groups if user_id in g.members and g.is_active}

    async def get_accessible_entities(self, kind: str, principal: Principal) -> list[Any]:
        self.calls.append(kind)
        if kind == "songs":
            group_ids = self._group_ids(principal.user_id)
            return [s for s in self.songs if song_is_accessible(s, principal.user_id, group_ids)]
        if kind == "playlists":
            return [p for p in self.playlists if p.user_id == principal.user_id or p.is_public]
        if kind == "groups":
            return [g for g in self.groups if principal.user_id in g.members and g.is_active]
        raise ValueError(kind)

    async def get_song(self, song_id: str) -> Song | None:
        return next((s for s in self.songs if s.id == song_id), None)

    async def can_access_song(self, principal: Principal, song: Song) -> bool:
        return song_is_accessible(song, principal.user_id, self._group_ids(principal.user_id))

    async def get_favorite_song_ids(self, principal: Principal) -> list[str]:
        return list(self.favorites.get(principal.user_id, []))

    async def get_user(self, user_id: str) -> UserProfile | None:
        return self.users.get(user_id)

    async def get_group_member_profiles(self, group: UserGroup) -> list[UserProfile]:
        return [self.users[m] for m in group.members if m in self.users]

    async def get_song_state(self, principal: Principal, song_id: str) -> SongState | None:
        return self.song_states.get((principal.user_id, song_id))

    async def get_song_states(self, principal: Principal) -> list[SongState]:
        return [s for (uid, _), s in self.song_states.items() if uid == principal.user_id]

    async def get_track_states(self, principal: Principal, song_id: str) -> list[TrackState]:
        return list(self.track_states.get((principal.user_id, song_id), []))


def make_song(song_id: str, title: str, artist: str = "Test Artist", **kwargs: Any) -> Song:
    return Song(id=song_id, title=title, artist=artist, **kwargs)


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id=USER_ID)


@pytest.fixture
def songs() -> list[Song]:
    return [
        make_song(
            "song-1",
            "Amazing Grace",
            "John Newton",
            album="Hymns",
            lyrics="Amazing grace how sweet the sound that saved a wretch like me",
            tracks=[
                Track(id="t1", name="Vocals", path="audio/grace/vocals.mp3"),
                Track(id="t2", name="Piano", path="audio/grace/piano.mp3"),
            ],
            scores=[Score(id="sc1", name="Lead Sheet", url="https://cdn.example.com/grace.pdf")],
            resources=[
                Resource(
                    id="r1",
                    name="Performance video",
                    type="youtube",
                    url="https://youtube.com/watch?v=abc",
                    description="Live choir performance",
                )
            ],
            created_by="user-2",
            created_at=datetime(2024, 1, 5, 12, 0),
        ),
        make_song(
            "song-2",
            "Ocean Eyes",
            "Billie",
            album="Dont Smile",
            lyrics="I've been watching you for some time, ocean eyes, ocean eyes",
        ),
        make_song("song-3", "River Song", "Billie", album="Dont Smile"),
        make_song(
            "song-4",
            "Secret Tune",
            "Hidden Band",
            lyrics="nobody should see this",
            access_control=AccessControl(visibility="private", allowed_users=["user-9"]),
        ),
        make_song(
            "song-5",
            "Choir Only",
            "Choir",
            lyrics="sing along with grace",
            access_control=AccessControl(visibility="group_restricted", allowed_groups=["group-1"]),
        ),
    ]


@pytest.fixture
def library(songs: list[Song]) -> FakeLibrary:
    return FakeLibrary(
        songs=songs,
        playlists=[
            Playlist(
                id="pl-1",
                name="Sunday Set",
                user_id=USER_ID,
                description="Songs for Sunday",
                songs=[
                    PlaylistItem("song-1", "Amazing Grace", "John Newton", 1, notes="Key of G"),
                    PlaylistItem("song-2", "Ocean Eyes", "Billie", 2),
                ],
                play_count=3,
            ),
            Playlist(id="pl-2", name="Someone Else", user_id="user-2"),
        ],
        groups=[
            UserGroup(id="group-1", name="Choir", members=[USER_ID, "user-2"]),
            UserGroup(id="group-2", name="Band", members=["user-2"]),
        ],
        users=[
            UserProfile(id=USER_ID, email="one@example.com", display_name="User One"),
            UserProfile(id="user-2", email="two@example.com", display_name="User Two"),
        ],
        favorites={USER_ID: ["song-2", "song-4"]},
        song_states={
            (USER_ID, "song-1"): SongState(
                song_id="song-1",
                active_track_ids=["t1", "t2"],
                soloed_track_ids=["t1"],
                track_volumes={"t1": 0.8},
            )
        },
        track_states={
            (USER_ID, "song-1"): [
                TrackState(track_id="t1", song_id="song-1", is_solo=True, volume=0.8),
                TrackState(track_id="t2", song_id="song-1", is_muted=True),
            ]
        },
    )


@pytest.fixture
def settings_service(tmp_path: Path):
    from assistant.services.app_settings import AppSettingsService

    return AppSettingsService(tmp_path / "settings.json")


@pytest.fixture
def client(library: FakeLibrary, settings_service) -> Generator[TestClient, None, None]:
    """Test client with the library and settings replaced by fakes."""
    from assistant.api.deps import get_library, get_settings_service
    from assistant.api.ratelimit import limiter
    from assistant.main import app

    app.dependency_overrides[get_library] = lambda: library
    app.dependency_overrides[get_settings_service] = lambda: settings_service
    limiter.reset()
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


def make_user_headers(user_id: str = USER_ID) -> dict[str, str]:
    """Create headers identifying the requesting user."""
    return {"X-User-ID": user_id}
