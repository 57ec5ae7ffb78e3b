import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Realtime
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Host advertised in join URLs; autodetected from the LAN interface when empty
    PUBLIC_HOST = os.environ.get("PUBLIC_HOST", "")

    # Room
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "3"))
    MAX_PLAYERS = int(os.environ.get("MAX_PLAYERS", "10"))
    ROOM_CODE_ATTEMPTS = int(os.environ.get("ROOM_CODE_ATTEMPTS", "50"))
    ROOM_RETENTION_HOURS = int(os.environ.get("ROOM_RETENTION_HOURS", "24"))

    # Game
    ROTATIONS = int(os.environ.get("ROTATIONS", "1"))
    THEME_COUNT = int(os.environ.get("THEME_COUNT", "3"))
    ANSWER_MAX_LENGTH = int(os.environ.get("ANSWER_MAX_LENGTH", "100"))
    NAME_MAX_LENGTH = int(os.environ.get("NAME_MAX_LENGTH", "20"))
    NO_SUBMISSION_PENALTY = int(os.environ.get("NO_SUBMISSION_PENALTY", "-1"))
    PERFECT_ROUND_BONUS = int(os.environ.get("PERFECT_ROUND_BONUS", "3"))
    MAX_SUDDEN_DEATH_ROUNDS = int(os.environ.get("MAX_SUDDEN_DEATH_ROUNDS", "5"))

    # Timers (seconds)
    THEME_SELECTION_SEC = int(os.environ.get("THEME_SELECTION_SEC", "30"))
    ANSWERING_SEC = int(os.environ.get("ANSWERING_SEC", "60"))
    MATCHING_SEC = int(os.environ.get("MATCHING_SEC", "90"))
    ROUND_END_SEC = int(os.environ.get("ROUND_END_SEC", "10"))
    REVEAL_STEP_SEC = float(os.environ.get("REVEAL_STEP_SEC", "3"))
    REVEAL_PREROLL_SEC = float(os.environ.get("REVEAL_PREROLL_SEC", "5"))
    SUDDEN_DEATH_INTRO_SEC = float(os.environ.get("SUDDEN_DEATH_INTRO_SEC", "5"))
    HOST_GRACE_PERIOD_SEC = float(os.environ.get("HOST_GRACE_PERIOD_SEC", "15"))
