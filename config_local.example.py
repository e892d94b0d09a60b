# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env` for secrets (the session cookie belongs there). This file should contain only safe overrides.
"""

# Example: point the client at a staging server
# API_BASE_URL = "https://staging.2mins.example"

# Example: run the scheduler headless (no REPL)
# CONSOLE_ENABLED = False

# Example: keep the terminal quiet
# NOTIFICATIONS_ENABLED = False
