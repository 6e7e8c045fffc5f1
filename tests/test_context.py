"""Tests for the library context builder."""

from assistant.services.library import LibrarySnapshot, Playlist, UserGroup
from assistant.services.llm.context import (
    PROVIDER_BUDGETS,
    SONG_SAMPLE_SIZE,
    TRUNCATION_MARKER,
    ContextBuilder,
    truncate_lyrics,
)
from assistant.services.llm.prompts import build_system_prompt
from assistant.services.llm.tools import LIBRARY_TOOLS
from tests.conftest import make_song


def _songs(count: int, lyrics: str | None = None):
    return [make_song(f"s{i}", f"Song {i}", "Artist", lyrics=lyrics) for i in range(count)]


class TestSummaryMode:
    def test_sample_is_capped_but_count_is_total(self):
        snapshot = LibrarySnapshot(songs=_songs(10_000))
        text = ContextBuilder("openai").build(snapshot)

        assert "- Total songs: 10000" in text
        assert f"Sample of songs ({SONG_SAMPLE_SIZE} of 10000):" in text
        assert f'{SONG_SAMPLE_SIZE}. "Song {SONG_SAMPLE_SIZE - 1}"' in text
        assert f'"Song {SONG_SAMPLE_SIZE}"' not in text
        assert "... and 9970 more songs." in text

    def test_summary_never_includes_lyrics(self):
        snapshot = LibrarySnapshot(songs=_songs(3, lyrics="secret verse"))
        assert "secret verse" not in ContextBuilder("google").build(snapshot)

    def test_collections_are_capped(self):
        playlists = [Playlist(id=f"p{i}", name=f"List {i}", user_id="u") for i in range(25)]
        groups = [UserGroup(id=f"g{i}", name=f"Group {i}") for i in range(25)]
        text = ContextBuilder("anthropic").build(LibrarySnapshot(playlists=playlists, groups=groups))

        assert "Playlist names (20 of 25):" in text
        assert "... and 5 more playlists." in text
        assert "Group names (20 of 25):" in text
        assert '"List 24"' not in text

    def test_empty_library(self):
        text = ContextBuilder("openai").build(LibrarySnapshot())
        assert "- Total songs: 0" in text
        assert "- No songs available." in text
        assert "- No playlists available." in text
        assert "- User is not a member of any groups." in text


class TestFullMode:
    def test_empty_library(self):
        text = ContextBuilder("openai", tools_enabled=False).build(LibrarySnapshot())
        assert "No songs are available in the library." in text
        assert "No playlists are available." in text
        assert "The user is not a member of any groups." in text

    def test_google_inlines_everything(self):
        snapshot = LibrarySnapshot(songs=_songs(200, lyrics="x" * 2000))
        text = ContextBuilder("google", tools_enabled=False).build(snapshot, "anything")
        assert "Song 200:" in text
        assert TRUNCATION_MARKER not in text

    def test_openai_caps_songs_and_truncates_lyrics(self):
        songs = _songs(80, lyrics="y" * 600)
        songs[70] = make_song("target", "Submarine", "Artist", lyrics="yellow submarine " * 40)
        text = ContextBuilder("openai", tools_enabled=False).build(
            LibrarySnapshot(songs=songs), "the submarine one"
        )

        assert "SONGS (80 total songs):" in text
        assert "- ID: target" in text
        assert "Song 2:" not in text
        assert text.count(TRUNCATION_MARKER) == 1

    def test_under_cap_keeps_all_songs(self):
        snapshot = LibrarySnapshot(songs=_songs(PROVIDER_BUDGETS["openai"].max_songs))
        text = ContextBuilder("openai", tools_enabled=False).build(snapshot, "zzz")
        assert f"Song {PROVIDER_BUDGETS['openai'].max_songs}:" in text

    def test_song_block_lists_media(self, songs):
        text = ContextBuilder("anthropic", tools_enabled=False).format_songs(songs[:1])
        assert 'Track 1: "Vocals" (path: audio/grace/vocals.mp3)' in text
        assert "(URL: https://cdn.example.com/grace.pdf)" in text
        assert "(Type: youtube)" in text

    def test_playlist_block(self, library):
        text = ContextBuilder("openai", tools_enabled=False).format_playlists(library.playlists[:1])
        assert '"Amazing Grace" by John Newton (Song ID: song-1, Position: 1) - Notes: Key of G' in text


def test_truncate_lyrics():
    assert truncate_lyrics("short", 10) == "short"
    assert truncate_lyrics("abcdef", 3) == "abc" + TRUNCATION_MARKER
    assert truncate_lyrics("abcdef", None) == "abcdef"


class TestSystemPrompt:
    def test_with_tools(self):
        prompt = build_system_prompt("CTX", LIBRARY_TOOLS)
        assert "=== LIBRARY SUMMARY ===\n\nCTX" in prompt
        assert "- get_song_by_title:" in prompt
        assert "STRICT SCOPE LIMITATIONS" in prompt

    def test_without_tools(self):
        prompt = build_system_prompt("CTX", None)
        assert "=== LIBRARY CONTEXT ===\n\nCTX" in prompt
        assert "=== TOOLS ===" not in prompt
        assert "EMBEDDING MEDIA" in prompt
