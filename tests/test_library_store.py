"""Tests for the database-backed library.

Most tests run against real tables in a temporary SQLite file through
aiosqlite, so concurrent reads go through real AsyncSessions.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from assistant.db import models
from assistant.services.library import Principal, UserGroup, load_snapshot
from assistant.services.library_store import DatabaseLibrary
from assistant.services.llm.executor import ToolExecutor
from assistant.services.llm.models import ToolCallRequest

PRINCIPAL = Principal(user_id="u1")


def _seed_rows() -> list[models.Base]:
    return [
        models.User(id="u1", email="u1@example.com", display_name="User One", stats={"plays": 3}),
        models.User(id="u2", email="u2@example.com", display_name="User Two"),
        models.UserGroup(id="g1", name="Choir", is_active=True),
        models.UserGroup(id="g2", name="Old Band", is_active=False),
        models.GroupMembership(group_id="g1", user_id="u1"),
        models.GroupMembership(group_id="g1", user_id="u2"),
        models.GroupMembership(group_id="g2", user_id="u1"),
        models.Song(
            id="s1",
            title="Amazing Grace",
            artist="John Newton",
            album="Hymns",
            lyrics="Amazing grace how sweet the sound",
            tracks=[{"id": "t1", "name": "Vocals", "path": "grace/vocals.mp3"}],
            access_control={"visibility": "public"},
        ),
        models.Song(
            id="s2",
            title="Secret Tune",
            access_control={"visibility": "private", "allowed_users": ["u9"]},
        ),
        models.Song(
            id="s3",
            title="Choir Only",
            access_control={"visibility": "group_restricted", "allowed_groups": ["g1"]},
        ),
        models.Song(
            id="s4",
            title="Disbanded",
            access_control={"visibility": "group_restricted", "allowed_groups": ["g2"]},
        ),
        models.Song(id="s5", title="Open Door"),
        models.Playlist(id="p1", user_id="u1", name="Sunday Set"),
        models.Playlist(id="p2", user_id="u2", name="Private Mix"),
        models.Playlist(id="p3", user_id="u2", name="Shared Mix", is_public=True),
        models.PlaylistItem(playlist_id="p1", song_id="s3", position=1),
        models.PlaylistItem(playlist_id="p1", song_id="s1", position=0, notes="Key of G"),
        models.FavoriteSong(user_id="u1", song_id="s1"),
        models.SongState(user_id="u1", song_id="s1", active_track_ids=["t1"]),
        models.TrackState(user_id="u1", song_id="s1", track_id="t1", is_muted=True),
    ]


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        session.add_all(_seed_rows())
        await session.commit()

    yield factory
    await engine.dispose()


@pytest.fixture
def db_library(session_factory) -> DatabaseLibrary:
    return DatabaseLibrary(session_factory)


@pytest.mark.asyncio
async def test_snapshot_loads_concurrently(db_library):
    snapshot = await load_snapshot(db_library, PRINCIPAL)

    assert {s.id for s in snapshot.songs} == {"s1", "s3", "s5"}
    assert {p.id for p in snapshot.playlists} == {"p1", "p3"}
    assert [g.id for g in snapshot.groups] == ["g1"]

    sunday = next(p for p in snapshot.playlists if p.id == "p1")
    assert [item.song_id for item in sunday.songs] == ["s1", "s3"]
    assert sunday.songs[0].song_title == "Amazing Grace"
    assert sunday.songs[0].notes == "Key of G"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name",
    ["get_library_statistics", "get_user_info", "get_favorite_songs", "get_all_user_data"],
)
async def test_tools_that_gather_reads_succeed(db_library, name):
    result = await ToolExecutor(db_library, PRINCIPAL).invoke(name, {}, "c1")
    assert not result.is_error, result.content
    json.loads(result.content)


@pytest.mark.asyncio
async def test_parallel_tool_calls_share_one_library(db_library):
    executor = ToolExecutor(db_library, PRINCIPAL)
    calls = [
        ToolCallRequest(id="c1", name="get_library_statistics", arguments={}),
        ToolCallRequest(id="c2", name="get_playlists", arguments={}),
        ToolCallRequest(id="c3", name="get_song_details", arguments={"song_id": "s1"}),
        ToolCallRequest(id="c4", name="get_track_states", arguments={"song_id": "s1"}),
    ]
    results = await asyncio.gather(*(executor.execute(call) for call in calls))

    assert [r.tool_call_id for r in results] == ["c1", "c2", "c3", "c4"]
    assert not any(r.is_error for r in results), [r.content for r in results]
    stats = json.loads(results[0].content)
    assert stats["total_songs"] == 3
    assert stats["favorite_songs"] == 1


@pytest.mark.asyncio
async def test_point_lookups(db_library):
    song = await db_library.get_song("s1")
    assert song.tracks[0].path == "grace/vocals.mp3"
    assert song.access_control.visibility == "public"
    assert (await db_library.get_song("s5")).access_control is None
    assert await db_library.get_song("nope") is None

    assert await db_library.can_access_song(PRINCIPAL, await db_library.get_song("s3")) is True
    assert await db_library.can_access_song(PRINCIPAL, await db_library.get_song("s4")) is False

    assert (await db_library.get_user("u1")).stats == {"plays": 3}
    assert await db_library.get_favorite_song_ids(PRINCIPAL) == ["s1"]

    state = await db_library.get_song_state(PRINCIPAL, "s1")
    assert state.active_track_ids == ["t1"]
    assert await db_library.get_song_state(PRINCIPAL, "s3") is None

    tracks = await db_library.get_track_states(PRINCIPAL, "s1")
    assert [(t.track_id, t.is_muted) for t in tracks] == [("t1", True)]


@pytest.mark.asyncio
async def test_group_member_profiles(db_library):
    groups = await db_library.get_accessible_entities("groups", PRINCIPAL)
    profiles = await db_library.get_group_member_profiles(groups[0])
    assert {p.id for p in profiles} == {"u1", "u2"}


@pytest.mark.asyncio
async def test_unknown_entity_kind(db_library):
    with pytest.raises(ValueError):
        await db_library.get_accessible_entities("albums", PRINCIPAL)


@pytest.mark.asyncio
async def test_group_members_without_members_skips_query():
    factory = MagicMock()
    profiles = await DatabaseLibrary(factory).get_group_member_profiles(
        UserGroup(id="group-1", name="Choir", members=[])
    )
    assert profiles == []
    factory.assert_not_called()


@pytest.mark.asyncio
async def test_each_read_opens_its_own_session():
    session = AsyncMock()
    session.get.return_value = None
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session

    library = DatabaseLibrary(factory)
    await library.get_song("s1")
    await library.get_user("u1")
    assert factory.call_count == 2
