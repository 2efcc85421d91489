"""Credentials for Reddit and OpenAI, read from the environment or a ``.env`` file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

# praw.Reddit keyword -> environment variable
REDDIT_ENV_VARS: Dict[str, str] = {
    "client_id": "REDDIT_CLIENT_ID",
    "client_secret": "REDDIT_CLIENT_SECRET",
    "user_agent": "REDDIT_USER_AGENT",
}
OPENAI_ENV_VAR = "OPENAI_API_KEY"

_ENV_LOADED = False


class MissingCredentialsError(RuntimeError):
    def __init__(self, names: List[str]) -> None:
        super().__init__(f"Missing required environment variable(s): {', '.join(names)}")
        self.names = names


def load_environment(dotenv_path: Optional[Path] = None) -> None:
    """Load ``.env`` once per process; variables already set win."""

    global _ENV_LOADED
    if _ENV_LOADED:
        return
    load_dotenv(dotenv_path)
    _ENV_LOADED = True


def _read(names: List[str]) -> Dict[str, str]:
    load_environment()
    values = {name: (os.getenv(name) or "").strip() for name in names}
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise MissingCredentialsError(missing)
    return values


def require_env(name: str) -> str:
    return _read([name])[name]


def reddit_credentials() -> Dict[str, str]:
    """Keyword arguments for ``praw.Reddit``. Reports every missing variable at once."""

    values = _read(list(REDDIT_ENV_VARS.values()))
    return {keyword: values[env_name] for keyword, env_name in REDDIT_ENV_VARS.items()}


def openai_api_key() -> str:
    return require_env(OPENAI_ENV_VAR)
