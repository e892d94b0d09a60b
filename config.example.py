# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TWOMINS_APP_NAME": "App display name (default: 2Mins).",
    "TWOMINS_LOG_LEVEL": "Console logging level (default: INFO).",
    # Front-end
    "TWOMINS_CONSOLE_ENABLED": "Run the console REPL (true/false, default: true).",
    "TWOMINS_NOTIFICATIONS_ENABLED": "Show challenge reminders in the terminal (true/false, default: true).",
    # 2Mins API
    "TWOMINS_API_BASE_URL": "Server base URL (default: http://localhost:5000).",
    "TWOMINS_SESSION_COOKIE": "Cookie header value of a signed-in session, e.g. 'connect.sid=...'.",
    "TWOMINS_HTTP_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
    "TWOMINS_HTTP_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 15).",
    # Challenge scheduler
    "TWOMINS_POLL_INTERVAL_SECONDS": "How often to ask for the next scheduled challenge (default: 30).",
    "TWOMINS_TICK_INTERVAL_SECONDS": "Countdown / challenge clock resolution (default: 0.1).",
    "TWOMINS_NOTIFICATION_ADVANCE_SECONDS": "Reminder lead time before a challenge (default: 120).",
    "TWOMINS_CHALLENGE_DURATION_SECONDS": "Length of a challenge (default: 120).",
    # Alarm monitor
    "TWOMINS_ALARM_POLL_INTERVAL_SECONDS": "How often to reload scheduled challenges (default: 2).",
    "TWOMINS_ALARM_CHECK_INTERVAL_SECONDS": "How often to look for due alarms (default: 1).",
    "TWOMINS_SNOOZE_MINUTES": "Snooze length (default: 2).",
    # Paths (gitignored)
    "TWOMINS_DATA_DIR": "Local data directory for logs (default: .local/twomins).",
}
