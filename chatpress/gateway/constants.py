"""Platform-wide constants for the gateway."""

# Joins sibling fragments while rendering. Heading promotion uses it to tell
# "next sibling" apart from a newline typed by the author; removed before output.
SEPARATOR = "\x1e"

# Message bodies that mark a post as deleted/redacted upstream
DELETED_SENTINEL = "[deleted]"
PLACEHOLDER_BODY = "[placeholder]"
DEFAULT_TOMBSTONE_BODIES = (PLACEHOLDER_BODY, DELETED_SENTINEL)

DEFAULT_PAGE_SIZE = 50
HISTORY_PAGE_LIMIT = 100  # platform maximum per history request

EMOJI_CDN_URL = "https://cdn.discordapp.com/emojis/{emoji_id}.{ext}"
DISCORD_API_BASE = "https://discord.com/api/v10"
MESSAGE_URL = "https://discord.com/channels/{guild_id}/{channel_id}/{message_id}"
