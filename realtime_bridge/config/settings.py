"""
Environment-driven settings for the realtime bridge.

Values are read from the process environment, after loading a ``.env`` file from
the working directory when one exists. Both the FastAPI server and the console
client build a single ``Settings`` instance at startup and pass it down
explicitly.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import dotenv
from pydantic import BaseModel, Field

from realtime_bridge.config.constants import (
    DEFAULT_DATA_ANALYZER_MODEL,
    DEFAULT_INSTRUCTIONS,
    DEFAULT_LANGUAGE,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_SPEED,
    DEFAULT_TOOL_CHOICE,
    DEFAULT_TOOL_TIMEOUT,
    DEFAULT_TRANSCRIPTION_MODEL,
    DEFAULT_TRANSCRIPTION_PROMPT,
    DEFAULT_VOICE,
    OPENAI_API_BASE,
    REALTIME_BASE_URL,
)


def load_env_file(env_path: Path = Path(".") / ".env") -> None:
    """Load environment variables from a .env file if it exists."""
    if env_path.exists():
        dotenv.load_dotenv(env_path)


class Settings(BaseModel):
    """Runtime configuration shared by the server, the tools and the session."""

    openai_api_key: Optional[str] = Field(None, description="Standard OpenAI API key (server side only)")
    realtime_base_url: str = REALTIME_BASE_URL
    openai_api_base: str = OPENAI_API_BASE
    model: str = DEFAULT_REALTIME_MODEL
    voice: str = DEFAULT_VOICE
    speed: float = DEFAULT_SPEED
    tool_choice: str = DEFAULT_TOOL_CHOICE
    instructions: str = DEFAULT_INSTRUCTIONS
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    transcription_prompt: str = DEFAULT_TRANSCRIPTION_PROMPT
    default_language: str = DEFAULT_LANGUAGE

    server_url: str = Field("http://localhost:8000", description="Base URL of the bridge server")
    price_lookup_webhook_url: Optional[str] = None
    web_search_webhook_url: Optional[str] = None
    rag_webhook_url: Optional[str] = None
    data_analyzer_model: str = DEFAULT_DATA_ANALYZER_MODEL
    image_save_path: Optional[str] = None
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT

    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls, load_dotenv: bool = True) -> "Settings":
        """Build settings from environment variables."""
        if load_dotenv:
            load_env_file()

        def env(name: str, default: Any = None) -> Any:
            value = os.getenv(name)
            return default if value in (None, "") else value

        return cls(
            openai_api_key=env("OPENAI_API_KEY"),
            realtime_base_url=env("REALTIME_BASE_URL", REALTIME_BASE_URL),
            openai_api_base=env("OPENAI_API_BASE", OPENAI_API_BASE),
            model=env("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
            voice=env("REALTIME_VOICE", DEFAULT_VOICE),
            speed=env("REALTIME_SPEED", DEFAULT_SPEED),
            tool_choice=env("REALTIME_TOOL_CHOICE", DEFAULT_TOOL_CHOICE),
            instructions=env("REALTIME_INSTRUCTIONS", DEFAULT_INSTRUCTIONS),
            transcription_model=env("TRANSCRIPTION_MODEL", DEFAULT_TRANSCRIPTION_MODEL),
            default_language=env("DEFAULT_LANGUAGE", DEFAULT_LANGUAGE),
            server_url=env("BRIDGE_SERVER_URL", "http://localhost:8000"),
            price_lookup_webhook_url=env("PRICE_LOOKUP_WEBHOOK_URL"),
            web_search_webhook_url=env("WEB_SEARCH_WEBHOOK_URL"),
            rag_webhook_url=env("RAG_WEBHOOK_URL"),
            data_analyzer_model=env("DATA_ANALYZER_MODEL", DEFAULT_DATA_ANALYZER_MODEL),
            image_save_path=env("IMAGE_SAVE_PATH"),
            tool_timeout=env("TOOL_TIMEOUT", DEFAULT_TOOL_TIMEOUT),
            host=env("HOST", "0.0.0.0"),
            port=env("PORT", 8000),
        )

    @property
    def token_url(self) -> str:
        """URL of the credential endpoint served by the bridge server."""
        return f"{self.server_url.rstrip('/')}/session"

    def tool_url(self, route: str) -> str:
        """URL of a tool proxy route served by the bridge server."""
        return f"{self.server_url.rstrip('/')}/api/{route.strip('/')}"

    def session_request(self, language: Optional[str] = None) -> Dict[str, Any]:
        """
        Build the body used to mint an ephemeral realtime session.

        Args:
            language: Input transcription language (ISO-639-1); defaults to
                ``default_language``

        Returns:
            The JSON body for ``POST {realtime_base_url}/sessions``
        """
        return {
            "model": self.model,
            "voice": self.voice,
            "instructions": self.instructions,
            "speed": self.speed,
            "tool_choice": self.tool_choice,
            "input_audio_transcription": {
                "model": self.transcription_model,
                "language": language or self.default_language,
                "prompt": self.transcription_prompt,
            },
            "include": ["item.input_audio_transcription.logprobs"],
        }
