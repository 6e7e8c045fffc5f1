"""Grounding text for the system message.

Two modes: a bounded summary when the model can call tools, and a full dump
of every candidate entity when it cannot. The input snapshot is assumed to be
access-filtered already.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from assistant.services.library import LibrarySnapshot, Playlist, Song, UserGroup

from .relevance import filter_relevant_songs

logger = logging.getLogger(__name__)

SONG_SAMPLE_SIZE = 30
COLLECTION_SAMPLE_SIZE = 20
TRUNCATION_MARKER = "... (truncated)"


@dataclass(frozen=True)
class ProviderBudget:
    """Full-mode limits for one vendor. None means unlimited."""

    max_songs: int | None
    max_lyrics_chars: int | None
    relevance_cap: int


PROVIDER_BUDGETS: dict[str, ProviderBudget] = {
    "google": ProviderBudget(max_songs=None, max_lyrics_chars=None, relevance_cap=50),
    "anthropic": ProviderBudget(max_songs=150, max_lyrics_chars=800, relevance_cap=30),
    "openai": ProviderBudget(max_songs=50, max_lyrics_chars=500, relevance_cap=20),
}


def _fmt_date(value: datetime | None) -> str:
    if value is None:
        return "unknown"
    return value.isoformat()


def truncate_lyrics(lyrics: str, limit: int | None) -> str:
    if limit is None or len(lyrics) <= limit:
        return lyrics
    return lyrics[:limit] + TRUNCATION_MARKER


class ContextBuilder:
    """Builds the library context blob for one provider."""

    def __init__(
        self,
        provider: str,
        tools_enabled: bool = True,
        song_sample_size: int = SONG_SAMPLE_SIZE,
        collection_sample_size: int = COLLECTION_SAMPLE_SIZE,
    ) -> None:
        self.provider = provider
        self.tools_enabled = tools_enabled
        self.budget = PROVIDER_BUDGETS.get(provider, PROVIDER_BUDGETS["openai"])
        self.song_sample_size = song_sample_size
        self.collection_sample_size = collection_sample_size

    def build(self, snapshot: LibrarySnapshot, question: str = "") -> str:
        if self.tools_enabled:
            return self.build_summary(snapshot)
        return self.build_full(snapshot, question)

    # --- Summary mode ---

    def build_summary(self, snapshot: LibrarySnapshot) -> str:
        songs, playlists, groups = snapshot.songs, snapshot.playlists, snapshot.groups
        lines: list[str] = ["SONGS:", f"- Total songs: {len(songs)}"]

        if songs:
            artists = {s.artist for s in songs if s.artist}
            albums = {s.album for s in songs if s.album}
            lines += [
                f"- Songs with lyrics: {sum(1 for s in songs if s.has_lyrics)}",
                f"- Songs with audio tracks: {sum(1 for s in songs if s.tracks)}",
                f"- Songs with scores/PDFs: {sum(1 for s in songs if s.scores)}",
                f"- Unique artists: {len(artists)}",
                f"- Unique albums: {len(albums)}",
            ]
            sample = songs[: self.song_sample_size]
            lines.append("")
            lines.append(f"Sample of songs ({len(sample)} of {len(songs)}):")
            for index, song in enumerate(sample, start=1):
                entry = f'{index}. "{song.title}" by {song.artist or "Unknown"}'
                if song.album:
                    entry += f" (Album: {song.album})"
                lines.append(f"{entry} [ID: {song.id}]")
            if len(songs) > len(sample):
                lines.append(
                    f"... and {len(songs) - len(sample)} more songs. "
                    "Use the tools to search for specific songs."
                )
        else:
            lines.append("- No songs available.")

        lines += ["", "PLAYLISTS:", f"- Total playlists: {len(playlists)}"]
        if playlists:
            total_items = sum(len(p.songs) for p in playlists)
            lines.append(f"- Total songs across all playlists: {total_items}")
            sample_playlists = playlists[: self.collection_sample_size]
            lines.append("")
            lines.append(f"Playlist names ({len(sample_playlists)} of {len(playlists)}):")
            for index, playlist in enumerate(sample_playlists, start=1):
                lines.append(
                    f'{index}. "{playlist.name}" ({len(playlist.songs)} songs) [ID: {playlist.id}]'
                )
            if len(playlists) > len(sample_playlists):
                lines.append(
                    f"... and {len(playlists) - len(sample_playlists)} more playlists. "
                    "Use the tools to get detailed playlist information."
                )
        else:
            lines.append("- No playlists available.")

        lines += ["", "USER GROUPS:", f"- Total groups: {len(groups)}"]
        if groups:
            sample_groups = groups[: self.collection_sample_size]
            lines.append("")
            lines.append(f"Group names ({len(sample_groups)} of {len(groups)}):")
            for index, group in enumerate(sample_groups, start=1):
                lines.append(
                    f'{index}. "{group.name}" ({len(group.members)} members) [ID: {group.id}]'
                )
            if len(groups) > len(sample_groups):
                lines.append(
                    f"... and {len(groups) - len(sample_groups)} more groups. "
                    "Use the tools to get detailed group information."
                )
        else:
            lines.append("- User is not a member of any groups.")

        lines += [
            "",
            "",
            "NOTE: This is a summary only. For detailed information about specific songs, "
            "playlists, or groups, you must use the tools (search_songs, get_song_details, "
            "get_playlists, get_user_groups, etc.).",
        ]
        return "\n".join(lines)

    # --- Full mode ---

    def select_songs(self, songs: list[Song], question: str) -> list[Song]:
        """Apply the vendor's entity cap, narrowing by relevance when over it."""
        max_songs = self.budget.max_songs
        if max_songs is None or len(songs) <= max_songs:
            return list(songs)
        selected = filter_relevant_songs(songs, question, self.budget.relevance_cap)
        logger.info(
            f"Narrowed {len(songs)} songs to {len(selected)} for {self.provider} context"
        )
        return selected[:max_songs]

    def build_full(self, snapshot: LibrarySnapshot, question: str = "") -> str:
        songs = self.select_songs(snapshot.songs, question)
        return (
            f"SONGS ({len(snapshot.songs)} total songs):\n{self.format_songs(songs, len(snapshot.songs))}"
            f"\n\nPLAYLISTS:\n{self.format_playlists(snapshot.playlists)}"
            f"\n\nUSER GROUPS:\n{self.format_groups(snapshot.groups)}"
        )

    def format_songs(self, songs: list[Song], total: int | None = None) -> str:
        if not songs:
            return "No songs are available in the library."

        total = total if total is not None else len(songs)
        header = f"The user has access to {total} songs in their music library."
        if total > len(songs):
            header += f" Showing the {len(songs)} most relevant:"
        blocks = [header]

        for index, song in enumerate(songs, start=1):
            lines = [
                f"Song {index}:",
                f"- ID: {song.id}",
                f'- Title: "{song.title}"',
                f'- Artist: "{song.artist}"',
            ]
            if song.album:
                lines.append(f'- Album: "{song.album}"')
            if song.created_by:
                lines.append(f"- Created by user ID: {song.created_by}")
            if song.created_at:
                lines.append(f"- Created at: {_fmt_date(song.created_at)}")

            if song.has_lyrics:
                lyrics = truncate_lyrics(song.lyrics or "", self.budget.max_lyrics_chars)
                lines.append(f"- Lyrics:\n{lyrics}")
            else:
                lines.append("- Lyrics: (no lyrics available)")

            if song.tracks:
                lines.append(f"- Audio Tracks ({len(song.tracks)}):")
                for n, track in enumerate(song.tracks, start=1):
                    lines.append(f'  Track {n}: "{track.name}" (path: {track.path})')
            else:
                lines.append("- Audio Tracks: (no tracks available)")

            if song.scores:
                lines.append(f"- Scores/PDFs ({len(song.scores)}):")
                for n, score in enumerate(song.scores, start=1):
                    entry = f'  Score {n}: "{score.name}"'
                    if score.url:
                        entry += f" (URL: {score.url})"
                    if score.pages:
                        entry += f" ({len(score.pages)} pages)"
                    lines.append(entry)
            else:
                lines.append("- Scores/PDFs: (no scores available)")

            if song.resources:
                lines.append(f"- Resources ({len(song.resources)}):")
                for n, resource in enumerate(song.resources, start=1):
                    entry = f'  Resource {n}: "{resource.name}" (Type: {resource.type})'
                    if resource.url:
                        entry += f" (URL: {resource.url})"
                    if resource.description:
                        entry += f" - {resource.description}"
                    lines.append(entry)
            else:
                lines.append("- Resources: (no resources available)")

            access = song.access_control
            if access:
                lines += [
                    "- Access Control:",
                    f"  Visibility: {access.visibility}",
                    f"  Access Level: {access.access_level}",
                ]
                if access.allowed_users:
                    lines.append(f"  Allowed Users: {len(access.allowed_users)} user(s)")
                if access.allowed_groups:
                    lines.append(f"  Allowed Groups: {len(access.allowed_groups)} group(s)")

            blocks.append("\n".join(lines))

        return "\n\n".join(blocks)

    def format_playlists(self, playlists: list[Playlist]) -> str:
        if not playlists:
            return "No playlists are available."

        blocks = [f"The user has {len(playlists)} playlist(s):"]
        for index, playlist in enumerate(playlists, start=1):
            lines = [
                f"Playlist {index}:",
                f"- ID: {playlist.id}",
                f'- Name: "{playlist.name}"',
            ]
            if playlist.description:
                lines.append(f'- Description: "{playlist.description}"')
            lines += [
                f"- Created: {_fmt_date(playlist.created_at)}",
                f"- Updated: {_fmt_date(playlist.updated_at)}",
                f"- Public: {'Yes' if playlist.is_public else 'No'}",
                f"- Play Count: {playlist.play_count}",
            ]
            if playlist.last_played_at:
                lines.append(f"- Last Played: {_fmt_date(playlist.last_played_at)}")

            if playlist.songs:
                lines.append(f"- Songs ({len(playlist.songs)}):")
                for n, item in enumerate(playlist.songs, start=1):
                    entry = (
                        f'  {n}. "{item.song_title}" by {item.song_artist} '
                        f"(Song ID: {item.song_id}, Position: {item.position})"
                    )
                    if item.notes:
                        entry += f" - Notes: {item.notes}"
                    lines.append(entry)
            else:
                lines.append("- Songs: (no songs in playlist)")
            blocks.append("\n".join(lines))

        return "\n\n".join(blocks)

    def format_groups(self, groups: list[UserGroup]) -> str:
        if not groups:
            return "The user is not a member of any groups."

        blocks = [f"The user is a member of {len(groups)} group(s):"]
        for index, group in enumerate(groups, start=1):
            lines = [
                f"Group {index}:",
                f"- ID: {group.id}",
                f'- Name: "{group.name}"',
            ]
            if group.description:
                lines.append(f'- Description: "{group.description}"')
            lines += [
                f"- Members: {len(group.members)} member(s)",
                f"- Created: {_fmt_date(group.created_at)}",
            ]
            if group.is_admin:
                lines.append("- Admin Group: Yes (members have admin access)")
            blocks.append("\n".join(lines))

        return "\n\n".join(blocks)
