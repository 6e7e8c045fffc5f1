"""Tool executor for LLM service."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic import ValidationError as PydanticValidationError

from assistant.services.library import (
    LibraryDataSource,
    Playlist,
    Principal,
    Resource,
    Score,
    Song,
    Track,
    UserGroup,
    UserProfile,
)

from .models import ToolCallRequest, ToolDefinition, ToolResult
from .relevance import lyric_overlap, theme_score
from .tools import LIBRARY_TOOLS

logger = logging.getLogger(__name__)

LYRICS_PREVIEW_CHARS = 200
MAX_SUGGESTIONS = 5
DEFAULT_SUGGESTIONS = [
    "Try a different search term",
    "Check spelling",
    "Use get_library_statistics to see available artists and albums",
]

_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
}


class ToolError(Exception):
    """A handler-level failure reported back to the model as an error result.

    ``payload`` replaces the plain message when the model benefits from
    structured hints (e.g. a suggestion of which tool to try next).
    """

    def __init__(self, message: str, payload: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.payload = payload


def build_argument_model(tool: ToolDefinition) -> type[BaseModel]:
    """Generate a pydantic model validating a tool's arguments."""
    properties: dict[str, Any] = tool.parameters.get("properties") or {}
    required = set(tool.parameters.get("required") or [])

    fields: dict[str, Any] = {}
    for name, prop in properties.items():
        py_type = _JSON_TYPES.get(prop.get("type", ""), Any)
        default = prop.get("default")
        bounds = {"ge": prop.get("minimum"), "le": prop.get("maximum")}
        constraints = {k: v for k, v in bounds.items() if v is not None}
        if name in required:
            fields[name] = (py_type, Field(..., **constraints))
        elif default is not None:
            fields[name] = (py_type, Field(default, **constraints))
        else:
            fields[name] = (py_type | None, Field(None, **constraints))

    model_name = "".join(part.title() for part in tool.name.split("_")) + "Arguments"
    return create_model(model_name, __config__=ConfigDict(extra="ignore"), **fields)


def _describe_validation_error(exc: PydanticValidationError) -> str:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "arguments"
        problems.append(f"{field}: {error['msg']}")
    return "; ".join(problems)


def _lower(value: str | None) -> str:
    return (value or "").lower()


def _loosely_matches(candidate: str, wanted: str) -> bool:
    """Either string contains the other (both lowercased, candidate non-empty)."""
    return bool(candidate) and (wanted in candidate or candidate in wanted)


class ToolExecutor:
    """Executes tools called by the LLM against one principal's library view."""

    def __init__(
        self,
        library: LibraryDataSource,
        principal: Principal | None,
        tools: tuple[ToolDefinition, ...] = LIBRARY_TOOLS,
    ) -> None:
        self.library = library
        self.principal = principal
        self.tools = tools
        self._tools_by_name = {tool.name: tool for tool in tools}
        self._argument_models = {tool.name: build_argument_model(tool) for tool in tools}
        self.handlers: dict[str, Callable[..., Awaitable[dict[str, Any]]]] = {
            "search_songs": self._search_songs,
            "get_song_details": self._get_song_details,
            "get_song_by_title": self._get_song_by_title,
            "get_playlists": self._get_playlists,
            "get_user_groups": self._get_user_groups,
            "search_songs_by_theme": self._search_songs_by_theme,
            "get_song_resources": self._get_song_resources,
            "search_songs_advanced": self._search_songs_advanced,
            "get_songs_by_artist": self._get_songs_by_artist,
            "get_songs_by_album": self._get_songs_by_album,
            "get_favorite_songs": self._get_favorite_songs,
            "get_library_statistics": self._get_library_statistics,
            "find_similar_songs": self._find_similar_songs,
            "search_with_suggestions": self._search_with_suggestions,
            "get_user_info": self._get_user_info,
            "get_playlist_details": self._get_playlist_details,
            "get_group_details": self._get_group_details,
            "get_song_access_control": self._get_song_access_control,
            "get_song_state": self._get_song_state,
            "get_track_states": self._get_track_states,
            "get_all_user_data": self._get_all_user_data,
        }

    def list_tools(self) -> list[ToolDefinition]:
        """The tool catalog, in declaration order."""
        return list(self.tools)

    async def execute(self, call: ToolCallRequest) -> ToolResult:
        """Execute a model-requested tool call. Never raises."""
        return await self.invoke(call.name, call.arguments, call.id)

    async def invoke(
        self,
        name: str,
        arguments: dict[str, Any] | None,
        call_id: str = "",
    ) -> ToolResult:
        """Look up and run a tool handler, turning every failure into an error result."""
        tool = self._tools_by_name.get(name)
        handler = self.handlers.get(name)
        if tool is None or handler is None:
            available = ", ".join(t.name for t in self.tools)
            return self._error(call_id, f'Error: Tool "{name}" not found. Available tools: {available}')

        if self.principal is None:
            return self._error(call_id, "Error: User not authenticated")

        if arguments is None:
            return self._error(
                call_id,
                f'Error: Invalid arguments for tool "{name}": arguments must be a JSON object',
            )

        try:
            validated = self._argument_models[name].model_validate(arguments)
        except PydanticValidationError as e:
            return self._error(
                call_id,
                f'Error: Invalid arguments for tool "{name}": {_describe_validation_error(e)}',
            )

        try:
            payload = await handler(**validated.model_dump())
        except ToolError as e:
            logger.warning(f"Tool {name} returned an error: {e.message}")
            content = json.dumps(e.payload, indent=2, default=str) if e.payload else f"Error: {e.message}"
            return self._error(call_id, content)
        except Exception as e:
            logger.warning(f"Tool {name} failed: {e}", exc_info=True)
            return self._error(call_id, f'Error executing tool "{name}": {e}')

        return ToolResult(
            tool_call_id=call_id,
            content=json.dumps(payload, indent=2, default=str),
        )

    @staticmethod
    def _error(call_id: str, content: str) -> ToolResult:
        return ToolResult(tool_call_id=call_id, content=content, is_error=True)

    # --- Helper methods ---

    @property
    def _principal(self) -> Principal:
        assert self.principal is not None
        return self.principal

    async def _songs(self) -> list[Song]:
        return await self.library.get_accessible_entities("songs", self._principal)

    async def _playlists(self) -> list[Playlist]:
        return await self.library.get_accessible_entities("playlists", self._principal)

    async def _groups(self) -> list[UserGroup]:
        return await self.library.get_accessible_entities("groups", self._principal)

    async def _accessible_song(self, song_id: str) -> Song:
        """Fetch a song by id, enforcing the principal's access to it."""
        song = await self.library.get_song(song_id)
        if song is None:
            raise ToolError(f'Song with ID "{song_id}" not found')
        if not await self.library.can_access_song(self._principal, song):
            raise ToolError(f'Access denied to song "{song_id}"')
        return song

    def _song_stub(self, song: Song) -> dict[str, Any]:
        preview = None
        if song.lyrics:
            preview = song.lyrics[:LYRICS_PREVIEW_CHARS]
            if len(song.lyrics) > LYRICS_PREVIEW_CHARS:
                preview += "..."
        return {
            "id": song.id,
            "title": song.title,
            "artist": song.artist,
            "album": song.album,
            "has_lyrics": song.has_lyrics,
            "lyrics_preview": preview,
            "tracks_count": len(song.tracks),
            "scores_count": len(song.scores),
            "resources_count": len(song.resources),
        }

    def _song_brief(self, song: Song) -> dict[str, Any]:
        return {"id": song.id, "title": song.title, "artist": song.artist, "album": song.album}

    def _track_to_dict(self, track: Track) -> dict[str, Any]:
        return {"id": track.id, "name": track.name, "path": track.path}

    def _score_to_dict(self, score: Score) -> dict[str, Any]:
        if score.url:
            note = "Single PDF URL available"
        elif score.pages:
            note = f"{len(score.pages)} page URLs available"
        else:
            note = "No URL available"
        return {
            "id": score.id,
            "name": score.name,
            "url": score.url,
            "pages": list(score.pages),
            "note": note,
        }

    def _resource_to_dict(self, resource: Resource) -> dict[str, Any]:
        return {
            "id": resource.id,
            "name": resource.name,
            "type": resource.type,
            "url": resource.url,
            "description": resource.description,
        }

    def _song_detail(self, song: Song) -> dict[str, Any]:
        detail = {
            **self._song_brief(song),
            "lyrics": song.lyrics or None,
            "has_lyrics": song.has_lyrics,
            "lyrics_length": len(song.lyrics or ""),
            "tracks": [self._track_to_dict(t) for t in song.tracks],
            "scores": [self._score_to_dict(s) for s in song.scores],
            "resources": [self._resource_to_dict(r) for r in song.resources],
            "tracks_count": len(song.tracks),
            "scores_count": len(song.scores),
            "resources_count": len(song.resources),
            "note": "Tracks include a path, scores a url or pages, and resources a url. These can be shared with the user.",
        }
        if song.has_lyrics:
            detail["note"] = 'Full lyrics are available in the "lyrics" field'
        return detail

    def _profile_to_dict(self, profile: UserProfile) -> dict[str, Any]:
        return {
            "id": profile.id,
            "email": profile.email,
            "display_name": profile.display_name,
            "avatar": profile.avatar,
        }

    def _matches_query(self, song: Song, query: str) -> bool:
        return any(
            query in _lower(field) for field in (song.title, song.artist, song.album, song.lyrics)
        )

    # --- Tool implementations ---

    async def _search_songs(self, query: str, limit: int = 20) -> dict[str, Any]:
        """Substring search over title, artist, album and lyrics."""
        needle = query.lower()
        matches: list[Song] = []
        for song in await self._songs():
            if self._matches_query(song, needle):
                matches.append(song)
                if len(matches) >= limit:
                    break

        return {
            "songs": [self._song_stub(s) for s in matches],
            "count": len(matches),
            "query": query,
            "note": "Use get_song_details with the song ID or get_song_by_title to get full lyrics",
        }

    async def _get_song_details(self, song_id: str) -> dict[str, Any]:
        song = await self._accessible_song(song_id)
        return self._song_detail(song)

    async def _get_song_by_title(self, title: str, artist: str | None = None) -> dict[str, Any]:
        """First accessible song whose title (and artist, if given) loosely match."""
        wanted_title = title.lower()
        wanted_artist = _lower(artist)

        for song in await self._songs():
            if not _loosely_matches(_lower(song.title), wanted_title):
                continue
            if wanted_artist and not _loosely_matches(_lower(song.artist), wanted_artist):
                continue
            return self._song_detail(song)

        by_artist = f" by {artist}" if artist else ""
        raise ToolError(
            f'Song "{title}"{by_artist} not found',
            payload={
                "error": f"Song \"{title}\"{by_artist} not found in user's library",
                "song": None,
                "suggestion": "Try using search_songs to find similar songs",
            },
        )

    async def _get_playlists(self, include_songs: bool = True) -> dict[str, Any]:
        playlists = await self._playlists()
        data = []
        for playlist in playlists:
            entry: dict[str, Any] = {
                "id": playlist.id,
                "name": playlist.name,
                "description": playlist.description,
                "is_public": playlist.is_public,
                "play_count": playlist.play_count,
                "last_played_at": playlist.last_played_at,
                "created_at": playlist.created_at,
                "updated_at": playlist.updated_at,
                "song_count": len(playlist.songs),
            }
            if include_songs:
                entry["songs"] = [
                    {
                        "song_id": item.song_id,
                        "song_title": item.song_title,
                        "song_artist": item.song_artist,
                        "position": item.position,
                        "notes": item.notes,
                    }
                    for item in playlist.songs
                ]
            data.append(entry)
        return {"playlists": data, "count": len(data)}

    async def _get_user_groups(self) -> dict[str, Any]:
        groups = await self._groups()
        return {
            "groups": [
                {
                    "id": group.id,
                    "name": group.name,
                    "description": group.description,
                    "is_admin": group.is_admin,
                    "member_count": len(group.members),
                    "created_at": group.created_at,
                }
                for group in groups
            ],
            "count": len(groups),
        }

    async def _search_songs_by_theme(self, theme: str, limit: int = 20) -> dict[str, Any]:
        """Rank songs by how often the theme's words occur in their lyrics."""
        scored = []
        for song in await self._songs():
            score = theme_score(song.lyrics, theme)
            if score > 0:
                scored.append((score, song))

        scored.sort(key=lambda item: item[0], reverse=True)
        top = scored[:limit]
        return {
            "songs": [
                {**self._song_brief(song), "relevance_score": score, "has_lyrics": song.has_lyrics}
                for score, song in top
            ],
            "count": len(top),
            "theme": theme,
        }

    async def _get_song_resources(self, song_id: str) -> dict[str, Any]:
        song = await self._accessible_song(song_id)
        return {
            "song_id": song.id,
            "title": song.title,
            "artist": song.artist,
            "tracks": [self._track_to_dict(t) for t in song.tracks],
            "scores": [self._score_to_dict(s) for s in song.scores],
            "resources": [self._resource_to_dict(r) for r in song.resources],
            "tracks_count": len(song.tracks),
            "scores_count": len(song.scores),
            "resources_count": len(song.resources),
            "note": "Tracks include a full path, scores a url or pages array, and resources a url. Use them directly.",
        }

    async def _search_songs_advanced(
        self,
        query: str | None = None,
        artist: str | None = None,
        album: str | None = None,
        has_lyrics: bool | None = None,
        has_tracks: bool | None = None,
        has_scores: bool | None = None,
        has_resources: bool | None = None,
        favorites_only: bool | None = None,
        limit: int = 50,
    ) -> dict[str, Any]:
        """Combine text search with content and favorites filters."""
        needle = _lower(query)
        artist_filter = _lower(artist)
        album_filter = _lower(album)

        favorite_ids: set[str] = set()
        if favorites_only:
            favorite_ids = set(await self.library.get_favorite_song_ids(self._principal))

        matches: list[Song] = []
        for song in await self._songs():
            if favorites_only and song.id not in favorite_ids:
                continue
            if has_lyrics and not song.has_lyrics:
                continue
            if has_tracks and not song.tracks:
                continue
            if has_scores and not song.scores:
                continue
            if has_resources and not song.resources:
                continue
            if needle and not self._matches_query(song, needle):
                continue
            if artist_filter and not _loosely_matches(_lower(song.artist), artist_filter):
                continue
            if album_filter and not _loosely_matches(_lower(song.album), album_filter):
                continue
            matches.append(song)
            if len(matches) >= limit:
                break

        filters = {
            key: value
            for key, value in {
                "query": query,
                "artist": artist,
                "album": album,
                "has_lyrics": has_lyrics,
                "has_tracks": has_tracks,
                "has_scores": has_scores,
                "has_resources": has_resources,
                "favorites_only": favorites_only,
                "limit": limit,
            }.items()
            if value is not None
        }
        return {
            "songs": [
                {
                    **self._song_brief(song),
                    "has_lyrics": song.has_lyrics,
                    "has_tracks": bool(song.tracks),
                    "has_scores": bool(song.scores),
                    "has_resources": bool(song.resources),
                }
                for song in matches
            ],
            "count": len(matches),
            "filters": filters,
        }

    def _song_listing(self, song: Song, include_lyrics: bool) -> dict[str, Any]:
        entry = {
            **self._song_brief(song),
            "has_lyrics": song.has_lyrics,
            "tracks_count": len(song.tracks),
            "scores_count": len(song.scores),
        }
        if include_lyrics:
            entry["lyrics"] = song.lyrics
        return entry

    async def _get_songs_by_artist(self, artist: str, include_lyrics: bool = False) -> dict[str, Any]:
        wanted = artist.lower()
        matches = [s for s in await self._songs() if _loosely_matches(_lower(s.artist), wanted)]
        return {
            "artist": artist,
            "songs": [self._song_listing(s, include_lyrics) for s in matches],
            "count": len(matches),
        }

    async def _get_songs_by_album(self, album: str) -> dict[str, Any]:
        wanted = album.lower()
        matches = [s for s in await self._songs() if _loosely_matches(_lower(s.album), wanted)]
        return {
            "album": album,
            "songs": [self._song_brief(s) for s in matches],
            "count": len(matches),
        }

    async def _get_favorite_songs(self, include_lyrics: bool = False) -> dict[str, Any]:
        favorite_ids, songs = await asyncio.gather(
            self.library.get_favorite_song_ids(self._principal),
            self._songs(),
        )
        by_id = {song.id: song for song in songs}
        # Favorites the principal can no longer access are left out
        favorites = [by_id[song_id] for song_id in favorite_ids if song_id in by_id]
        return {
            "favorites": [self._song_listing(s, include_lyrics) for s in favorites],
            "count": len(favorites),
        }

    async def _get_library_statistics(self) -> dict[str, Any]:
        songs, playlists, groups, favorite_ids = await asyncio.gather(
            self._songs(),
            self._playlists(),
            self._groups(),
            self.library.get_favorite_song_ids(self._principal),
        )

        artists: list[str] = []
        for song in songs:
            if song.artist and song.artist not in artists:
                artists.append(song.artist)
        albums = {song.album for song in songs if song.album}

        return {
            "total_songs": len(songs),
            "unique_artists": len(artists),
            "unique_albums": len(albums),
            "songs_with_lyrics": sum(1 for s in songs if s.has_lyrics),
            "songs_with_tracks": sum(1 for s in songs if s.tracks),
            "songs_with_scores": sum(1 for s in songs if s.scores),
            "songs_with_resources": sum(1 for s in songs if s.resources),
            "favorite_songs": len(favorite_ids),
            "total_playlists": len(playlists),
            "total_groups": len(groups),
            "top_artists": artists[:10],
        }

    async def _find_similar_songs(
        self,
        song_id: str | None = None,
        song_title: str | None = None,
        by_artist: bool = True,
        by_album: bool = True,
        by_theme: bool = False,
        limit: int = 20,
    ) -> dict[str, Any]:
        """Score songs against a target by shared artist, album and lyric words."""
        songs = await self._songs()

        if song_id:
            target = await self._accessible_song(song_id)
        elif song_title:
            wanted = song_title.lower()
            target = next((s for s in songs if wanted in _lower(s.title)), None)
            if target is None:
                raise ToolError(f'Song "{song_title}" not found')
        else:
            raise ToolError("Provide either song_id or song_title")

        target_artist = _lower(target.artist)
        target_album = _lower(target.album)

        similar = []
        for song in songs:
            if song.id == target.id:
                continue
            score = 0
            if by_artist and target_artist and _lower(song.artist) == target_artist:
                score += 10
            if by_album and target_album and _lower(song.album) == target_album:
                score += 8
            if by_theme:
                score += lyric_overlap(target.lyrics, song.lyrics)
            if score > 0:
                similar.append((score, song))

        similar.sort(key=lambda item: item[0], reverse=True)
        top = similar[:limit]
        return {
            "target_song": self._song_brief(target),
            "similar_songs": [
                {**self._song_brief(song), "similarity_score": score} for score, song in top
            ],
            "count": len(top),
        }

    async def _search_with_suggestions(self, query: str, limit: int = 20) -> dict[str, Any]:
        """Regular search, falling back to artist and title suggestions."""
        result = await self._search_songs(query=query, limit=limit)
        if result["count"] > 0:
            return result

        songs = await self._songs()
        if not songs:
            return {
                "songs": [],
                "count": 0,
                "query": query,
                "suggestions": ["No songs found in library"],
            }

        needle = query.lower()
        suggestions: list[str] = []
        seen_artists: set[str] = set()
        for song in songs:
            if not song.artist or song.artist in seen_artists:
                continue
            seen_artists.add(song.artist)
            artist = song.artist.lower()
            if needle in artist or (len(artist) >= 3 and artist[:3] in needle):
                suggestions.append(f'Try searching for artist: "{song.artist}"')

        for song in songs[:10]:
            title = _lower(song.title)
            if title and (needle in title or (len(title) >= 3 and title[:3] in needle)):
                suggestions.append(f'Try searching for: "{song.title}"')

        return {
            "songs": [],
            "count": 0,
            "query": query,
            "message": "No exact matches found",
            "suggestions": suggestions[:MAX_SUGGESTIONS] or list(DEFAULT_SUGGESTIONS),
        }

    async def _get_user_info(self) -> dict[str, Any]:
        user, favorite_ids, playlists, groups = await asyncio.gather(
            self.library.get_user(self._principal.user_id),
            self.library.get_favorite_song_ids(self._principal),
            self._playlists(),
            self._groups(),
        )
        if user is None:
            raise ToolError("User profile not found")

        return {
            **self._profile_to_dict(user),
            "email_verified": user.email_verified,
            "preferences": user.preferences,
            "stats": {**user.stats, "favorite_songs_count": len(favorite_ids)},
            "created_at": user.created_at,
            "last_active_at": user.last_active_at,
            "playlists_count": len(playlists),
            "groups_count": len(groups),
        }

    async def _get_playlist_details(
        self, playlist_id: str, include_song_details: bool = False
    ) -> dict[str, Any]:
        playlist = next((p for p in await self._playlists() if p.id == playlist_id), None)
        if playlist is None:
            raise ToolError(f'Playlist with ID "{playlist_id}" not found')

        songs_by_id: dict[str, Song] = {}
        if include_song_details:
            songs_by_id = {song.id: song for song in await self._songs()}

        items = []
        for item in playlist.songs:
            entry: dict[str, Any] = {
                "song_id": item.song_id,
                "song_title": item.song_title,
                "song_artist": item.song_artist,
                "position": item.position,
                "notes": item.notes,
                "added_at": item.added_at,
            }
            if include_song_details:
                song = songs_by_id.get(item.song_id)
                entry["song_details"] = (
                    {
                        **self._song_brief(song),
                        "has_lyrics": song.has_lyrics,
                        "tracks_count": len(song.tracks),
                        "scores_count": len(song.scores),
                    }
                    if song
                    else None
                )
            items.append(entry)

        return {
            "id": playlist.id,
            "name": playlist.name,
            "description": playlist.description,
            "user_id": playlist.user_id,
            "is_public": playlist.is_public,
            "play_count": playlist.play_count,
            "last_played_at": playlist.last_played_at,
            "created_at": playlist.created_at,
            "updated_at": playlist.updated_at,
            "songs": items,
            "song_count": len(items),
        }

    async def _get_group_details(self, group_id: str, include_members: bool = True) -> dict[str, Any]:
        group = next((g for g in await self._groups() if g.id == group_id), None)
        if group is None:
            raise ToolError(f'Group with ID "{group_id}" not found or user is not a member')

        details: dict[str, Any] = {
            "id": group.id,
            "name": group.name,
            "description": group.description,
            "created_by": group.created_by,
            "created_at": group.created_at,
            "updated_at": group.updated_at,
            "is_active": group.is_active,
            "is_admin": group.is_admin,
            "color": group.color,
            "icon": group.icon,
            "member_count": len(group.members),
        }
        if include_members:
            profiles = {p.id: p for p in await self.library.get_group_member_profiles(group)}
            details["members"] = [
                self._profile_to_dict(profiles[member_id])
                if member_id in profiles
                else {"id": member_id, "display_name": "Unknown User"}
                for member_id in group.members
            ]
        return details

    async def _get_song_access_control(self, song_id: str) -> dict[str, Any]:
        song = await self._accessible_song(song_id)
        access = song.access_control
        return {
            "song_id": song.id,
            "title": song.title,
            "artist": song.artist,
            "created_by": song.created_by,
            "visibility": access.visibility if access else "public",
            "access_level": access.access_level if access else "read",
            "allowed_users": list(access.allowed_users) if access else [],
            "allowed_groups": list(access.allowed_groups) if access else [],
            "allowed_users_count": len(access.allowed_users) if access else 0,
            "allowed_groups_count": len(access.allowed_groups) if access else 0,
            "note": None if access else "No explicit access control - song is public",
        }

    async def _get_song_state(self, song_id: str) -> dict[str, Any]:
        await self._accessible_song(song_id)
        state = await self.library.get_song_state(self._principal, song_id)
        if state is None:
            return {"song_id": song_id, "state": None, "message": "No saved state found for this song"}
        return {
            "song_id": state.song_id,
            "active_track_ids": state.active_track_ids,
            "soloed_track_ids": state.soloed_track_ids,
            "track_volumes": state.track_volumes,
            "last_updated": state.last_updated,
            "active_tracks_count": len(state.active_track_ids),
            "soloed_tracks_count": len(state.soloed_track_ids),
        }

    async def _get_track_states(self, song_id: str) -> dict[str, Any]:
        await self._accessible_song(song_id)
        states = await self.library.get_track_states(self._principal, song_id)
        if not states:
            return {
                "song_id": song_id,
                "track_states": None,
                "message": "No saved track states found for this song",
            }
        return {
            "song_id": song_id,
            "track_states": [
                {"track_id": s.track_id, "solo": s.is_solo, "mute": s.is_muted, "volume": s.volume}
                for s in states
            ],
            "tracks_count": len(states),
        }

    async def _get_all_user_data(self, include_song_states: bool = True) -> dict[str, Any]:
        """Everything about the current user in one payload."""
        user, favorite_ids, playlists, groups, songs = await asyncio.gather(
            self.library.get_user(self._principal.user_id),
            self.library.get_favorite_song_ids(self._principal),
            self._playlists(),
            self._groups(),
            self._songs(),
        )
        songs_by_id = {song.id: song for song in songs}

        data: dict[str, Any] = {
            "user": (
                {
                    **self._profile_to_dict(user),
                    "email_verified": user.email_verified,
                    "preferences": user.preferences,
                    "stats": user.stats,
                    "created_at": user.created_at,
                    "last_active_at": user.last_active_at,
                }
                if user
                else {"id": self._principal.user_id}
            ),
            "favorites": {
                "count": len(favorite_ids),
                "song_ids": list(favorite_ids),
                "songs": [
                    {"id": sid, "title": songs_by_id[sid].title, "artist": songs_by_id[sid].artist}
                    for sid in favorite_ids
                    if sid in songs_by_id
                ],
            },
            "playlists": [
                {
                    "id": p.id,
                    "name": p.name,
                    "description": p.description,
                    "song_count": len(p.songs),
                    "is_public": p.is_public,
                    "play_count": p.play_count,
                }
                for p in playlists
            ],
            "groups": [
                {
                    "id": g.id,
                    "name": g.name,
                    "description": g.description,
                    "member_count": len(g.members),
                    "is_admin": g.is_admin,
                }
                for g in groups
            ],
            "library": {
                "total_songs": len(songs),
                "songs_with_lyrics": sum(1 for s in songs if s.has_lyrics),
                "songs_with_tracks": sum(1 for s in songs if s.tracks),
                "songs_with_scores": sum(1 for s in songs if s.scores),
            },
        }

        if include_song_states:
            song_states = await self.library.get_song_states(self._principal)
            track_lists = await asyncio.gather(
                *(self.library.get_track_states(self._principal, s.song_id) for s in song_states)
            )
            data["song_states"] = {
                state.song_id: {
                    "active_track_ids": state.active_track_ids,
                    "soloed_track_ids": state.soloed_track_ids,
                    "track_volumes": state.track_volumes,
                    "last_updated": state.last_updated,
                }
                for state in song_states
            }
            data["track_states"] = {
                state.song_id: {
                    t.track_id: {"solo": t.is_solo, "mute": t.is_muted, "volume": t.volume}
                    for t in tracks
                }
                for state, tracks in zip(song_states, track_lists)
            }

        return data
