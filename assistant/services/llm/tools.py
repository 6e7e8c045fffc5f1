"""LLM tool definitions for library questions."""

import copy
from typing import Any

from .models import ToolDefinition

_SONG_ID = {
    "type": "string",
    "description": "The ID of the song (get this from search_songs results or the library summary)",
}

# Tool definitions (Claude-style input_schema)
_TOOL_ENTRIES: list[dict[str, Any]] = [
    {
        "name": "search_songs",
        "description": "Search for songs in the music library by title, artist, album, or lyrics content. Returns matching songs with their metadata.",
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query to find songs (searches in title, artist, album, and lyrics)",
                },
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Maximum number of results to return (default: 20)",
                    "default": 20,
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "get_song_details",
        "description": "Get detailed information about a specific song including FULL LYRICS, metadata, tracks, scores, and resources. Use this when you have the song ID.",
        "input_schema": {
            "type": "object",
            "properties": {"song_id": _SONG_ID},
            "required": ["song_id"],
        },
    },
    {
        "name": "get_song_by_title",
        "description": "Get detailed information about a song by its title and artist, including FULL LYRICS. This is the BEST tool to use when users ask for lyrics of a specific song.",
        "input_schema": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "The title of the song"},
                "artist": {
                    "type": "string",
                    "description": "The artist name (optional, but recommended for better matching)",
                },
            },
            "required": ["title"],
        },
    },
    {
        "name": "get_playlists",
        "description": "Get all playlists for the current user, including their songs and metadata.",
        "input_schema": {
            "type": "object",
            "properties": {
                "include_songs": {
                    "type": "boolean",
                    "description": "Whether to include the songs in each playlist (default: true)",
                    "default": True,
                },
            },
        },
    },
    {
        "name": "get_user_groups",
        "description": "Get all groups the current user belongs to, including group metadata and member counts.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "search_songs_by_theme",
        "description": "Search for songs that match a specific theme, topic, or mood based on lyrics content.",
        "input_schema": {
            "type": "object",
            "properties": {
                "theme": {
                    "type": "string",
                    "description": "The theme, topic, or mood to search for in song lyrics",
                },
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Maximum number of results to return (default: 20)",
                    "default": 20,
                },
            },
            "required": ["theme"],
        },
    },
    {
        "name": "get_song_resources",
        "description": "Get all available resources (tracks, scores, links) for a specific song. Returns full URLs and paths for audio tracks, PDF scores, and external resources.",
        "input_schema": {
            "type": "object",
            "properties": {"song_id": _SONG_ID},
            "required": ["song_id"],
        },
    },
    {
        "name": "search_songs_advanced",
        "description": "Advanced search with multiple filters. Use this when users want songs by criteria like \"songs with lyrics\", \"my favorites\" or \"songs with audio tracks\". Filters can be combined.",
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Optional text search query (searches in title, artist, album, lyrics)",
                },
                "artist": {"type": "string", "description": "Filter by artist name"},
                "album": {"type": "string", "description": "Filter by album name"},
                "has_lyrics": {"type": "boolean", "description": "Only return songs that have lyrics"},
                "has_tracks": {"type": "boolean", "description": "Only return songs that have audio tracks"},
                "has_scores": {"type": "boolean", "description": "Only return songs that have scores/PDFs"},
                "has_resources": {
                    "type": "boolean",
                    "description": "Only return songs that have external resources/links",
                },
                "favorites_only": {
                    "type": "boolean",
                    "description": "Only return songs in the user's favorites",
                },
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Maximum number of results to return (default: 50)",
                    "default": 50,
                },
            },
        },
    },
    {
        "name": "get_songs_by_artist",
        "description": "Get all songs by a specific artist.",
        "input_schema": {
            "type": "object",
            "properties": {
                "artist": {"type": "string", "description": "The artist name to search for"},
                "include_lyrics": {
                    "type": "boolean",
                    "description": "Whether to include full lyrics (default: false, set to true only if needed)",
                    "default": False,
                },
            },
            "required": ["artist"],
        },
    },
    {
        "name": "get_songs_by_album",
        "description": "Get all songs from a specific album.",
        "input_schema": {
            "type": "object",
            "properties": {
                "album": {"type": "string", "description": "The album name to search for"},
            },
            "required": ["album"],
        },
    },
    {
        "name": "get_favorite_songs",
        "description": "Get all songs that the user has marked as favorites.",
        "input_schema": {
            "type": "object",
            "properties": {
                "include_lyrics": {
                    "type": "boolean",
                    "description": "Whether to include full lyrics (default: false)",
                    "default": False,
                },
            },
        },
    },
    {
        "name": "get_library_statistics",
        "description": "Get statistics about the user's music library including counts, artists, albums, and content availability.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "find_similar_songs",
        "description": "Find songs similar to a given song, by same artist, same album, or shared words in the lyrics.",
        "input_schema": {
            "type": "object",
            "properties": {
                "song_id": {"type": "string", "description": "The ID of the song to find similar songs for"},
                "song_title": {
                    "type": "string",
                    "description": "Alternative: the title of the song (if you don't have the ID)",
                },
                "by_artist": {
                    "type": "boolean",
                    "description": "Find songs by the same artist (default: true)",
                    "default": True,
                },
                "by_album": {
                    "type": "boolean",
                    "description": "Find songs from the same album (default: true)",
                    "default": True,
                },
                "by_theme": {
                    "type": "boolean",
                    "description": "Find songs with similar themes in lyrics (default: false)",
                    "default": False,
                },
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Maximum number of results (default: 20)",
                    "default": 20,
                },
            },
        },
    },
    {
        "name": "search_with_suggestions",
        "description": "Search for songs and, if nothing matches, return suggestions for similar artists or titles. Use when a regular search comes back empty.",
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The search query"},
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Maximum number of results (default: 20)",
                    "default": 20,
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "get_user_info",
        "description": "Get the current user's profile information including stats, preferences, and favorite/playlist/group counts.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_playlist_details",
        "description": "Get detailed information about a specific playlist including all songs with their positions and notes.",
        "input_schema": {
            "type": "object",
            "properties": {
                "playlist_id": {"type": "string", "description": "The ID of the playlist to retrieve"},
                "include_song_details": {
                    "type": "boolean",
                    "description": "Whether to include song details for each playlist item (default: false)",
                    "default": False,
                },
            },
            "required": ["playlist_id"],
        },
    },
    {
        "name": "get_group_details",
        "description": "Get detailed information about a specific group including its members.",
        "input_schema": {
            "type": "object",
            "properties": {
                "group_id": {"type": "string", "description": "The ID of the group to retrieve"},
                "include_members": {
                    "type": "boolean",
                    "description": "Whether to include member details (default: true)",
                    "default": True,
                },
            },
            "required": ["group_id"],
        },
    },
    {
        "name": "get_song_access_control",
        "description": "Get access control information for a song: visibility, allowed users, allowed groups, and access level.",
        "input_schema": {
            "type": "object",
            "properties": {"song_id": _SONG_ID},
            "required": ["song_id"],
        },
    },
    {
        "name": "get_song_state",
        "description": "Get the saved playback state for a song: active tracks, soloed tracks, and track volumes.",
        "input_schema": {
            "type": "object",
            "properties": {"song_id": _SONG_ID},
            "required": ["song_id"],
        },
    },
    {
        "name": "get_track_states",
        "description": "Get individual track states (solo, mute, volume) for all tracks in a song.",
        "input_schema": {
            "type": "object",
            "properties": {"song_id": _SONG_ID},
            "required": ["song_id"],
        },
    },
    {
        "name": "get_all_user_data",
        "description": "Get comprehensive user data: profile, favorites, playlists, groups, library counts, and song states.",
        "input_schema": {
            "type": "object",
            "properties": {
                "include_song_states": {
                    "type": "boolean",
                    "description": "Whether to include song and track states (default: true)",
                    "default": True,
                },
            },
        },
    },
]

LIBRARY_TOOLS: tuple[ToolDefinition, ...] = tuple(
    ToolDefinition(
        name=entry["name"],
        description=entry["description"],
        parameters=entry["input_schema"],
    )
    for entry in _TOOL_ENTRIES
)

TOOLS_BY_NAME: dict[str, ToolDefinition] = {tool.name: tool for tool in LIBRARY_TOOLS}


def convert_tools_to_openai_format(tools: list[ToolDefinition] | tuple[ToolDefinition, ...]) -> list[dict[str, Any]]:
    """Convert tool definitions to the OpenAI function-calling format."""
    openai_tools = []
    for tool in tools:
        openai_tools.append({
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": copy.deepcopy(tool.parameters),
            },
        })
    return openai_tools


def convert_tools_to_anthropic_format(tools: list[ToolDefinition] | tuple[ToolDefinition, ...]) -> list[dict[str, Any]]:
    """Convert tool definitions to the Anthropic ``input_schema`` format."""
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "input_schema": copy.deepcopy(tool.parameters),
        }
        for tool in tools
    ]


def _strip_unsupported(schema: dict[str, Any]) -> dict[str, Any]:
    # Gemini's OpenAPI subset rejects "default"
    cleaned: dict[str, Any] = {}
    for key, value in schema.items():
        if key == "default":
            continue
        if isinstance(value, dict):
            cleaned[key] = _strip_unsupported(value)
        else:
            cleaned[key] = copy.deepcopy(value)
    return cleaned


def convert_tools_to_google_format(tools: list[ToolDefinition] | tuple[ToolDefinition, ...]) -> list[dict[str, Any]]:
    """Convert tool definitions to a Gemini ``tools`` entry."""
    declarations = []
    for tool in tools:
        declaration: dict[str, Any] = {"name": tool.name, "description": tool.description}
        properties = tool.parameters.get("properties") or {}
        if properties:
            declaration["parameters"] = {
                "type": "object",
                "properties": {
                    name: _strip_unsupported(prop) for name, prop in properties.items()
                },
                "required": list(tool.parameters.get("required", [])),
            }
        declarations.append(declaration)
    return [{"functionDeclarations": declarations}]


def tools_description(tools: list[ToolDefinition] | tuple[ToolDefinition, ...]) -> str:
    """Plain-text catalog of tools for the system prompt."""
    lines = ["Available tools:", ""]
    for tool in tools:
        lines.append(f"- {tool.name}: {tool.description}")
        properties = tool.parameters.get("properties") or {}
        if properties:
            lines.append("  Parameters:")
            for name, prop in properties.items():
                lines.append(
                    f"    - {name} ({prop.get('type', 'any')}): {prop.get('description', 'No description')}"
                )
        lines.append("")
    return "\n".join(lines)
