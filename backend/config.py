"""
Single place for game rules and deployment configuration.
Rule constants are plain values; anything a deployment may change is read from the environment.
"""

import os

# First player to reach this many accepted challenges wins; all scores then reset to 0.
WINNING_SCORE = 15

MIN_ROOM_NAME_LENGTH = 3
MAX_ROOM_NAME_LENGTH = 64

# Readers ignore "is typing" pings older than this.
TYPING_WINDOW_MS = 3000

# Kick-vote threshold as a step function of room size: (max_players, votes_required).
# Rooms larger than the last breakpoint need KICK_VOTES_LARGE_ROOM votes.
KICK_VOTE_STEPS = ((4, 2), (7, 3))
KICK_VOTES_LARGE_ROOM = 4

# How many times a write that lost a version race is re-read and re-applied.
ROOM_WRITE_RETRIES = int(os.environ.get("ROOM_WRITE_RETRIES", "5"))

CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get(
        "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
    ).split(",")
    if o.strip()
]

# Where a client keeps its chosen display name between sessions.
LOCAL_CACHE_PATH = os.environ.get(
    "LOCAL_CACHE_PATH",
    os.path.join(os.path.expanduser("~"), ".truth_or_dare", "identity.json"),
)
