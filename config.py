"""
Runtime configuration for the 5512 Lesson Plan Assistant.
Values come from the environment (optionally a local .env file).
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ── AI provider ─────────────────────────────────────────────

AI_PROVIDER = os.environ.get("AI_PROVIDER", "gemini").strip().lower()
AI_MODEL = os.environ.get("AI_MODEL", "").strip()

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "anthropic": "claude-sonnet-4-5-20250929",
    "openai": "gpt-4o",
    "offline": "offline",
}

# Provider -> environment variables holding its credential, first match wins.
# API_KEY is kept for deployments configured before GEMINI_API_KEY existed.
API_KEY_ENV_VARS = {
    "gemini": ("GEMINI_API_KEY", "API_KEY"),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "openai": ("OPENAI_API_KEY",),
}

# Upper bound for one generation call, in seconds.
GENERATION_TIMEOUT = float(os.environ.get("GENERATION_TIMEOUT", "180"))

# ── Web app ─────────────────────────────────────────────────

MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "20"))
MAX_PLANNER_SESSIONS = int(os.environ.get("MAX_PLANNER_SESSIONS", "500"))


def get_api_key(provider=None):
    """Return the credential for a provider, or "" when none is configured."""
    provider = provider or AI_PROVIDER
    for name in API_KEY_ENV_VARS.get(provider, ()):
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""


def get_model(provider=None):
    provider = provider or AI_PROVIDER
    return AI_MODEL or DEFAULT_MODELS.get(provider, "")
