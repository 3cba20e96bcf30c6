"""
Public rules of the giveaway draw engine.

These values define how entries are matched, filtered and recorded.
Changing them changes eligibility or audit hashes and MUST be announced.
"""

# Entry categories
RETWEET = "retweet"
LIKE = "like"
FOLLOW_PREFIX = "follows:"

# Metadata precedence when one handle appears in several categories.
# Follow categories rank after these, anything unknown ranks last.
CATEGORY_PRECEDENCE = (RETWEET, LIKE)

# Substrings identifying a placeholder / default profile image
DEFAULT_AVATAR_PATTERNS = (
    "default_profile",
    "default-profile",
    "default_profile_normal",
    "/sticky/default_profile_images/",
    "abs.twimg.com/sticky/default_profile",
)

# Canonical participant list: sorted normalized handles joined by this
HASH_DELIMITER = ","

# Draw hash fields are joined by this
DRAW_HASH_SEPARATOR = "|"

# Recorded audit seed size (bytes, hex encoded)
SEED_RANDOM_BYTES = 32

# Random suffix of a draw id (bytes, base58 encoded)
DRAW_ID_SUFFIX_BYTES = 6

# Follow verification defaults
FOLLOW_CHECK_DELAY_S = 1.0
FOLLOW_CHECK_BACKUP = 3

AUDIT_TOOL_NAME = "giveaway-draw"
AUDIT_VERSION = "1.0.0"
