"""Application settings."""

import os
from typing import Optional
from pydantic import BaseModel


# Environment variable holding the API key for each provider tag
API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "together": "TOGETHER_API_KEY",
    "kimi": "MOONSHOT_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


class Settings(BaseModel):
    """Application configuration settings."""

    # LLM Provider settings
    llm_provider: str = "together"  # openai, anthropic, together, kimi, openrouter
    llm_model: Optional[str] = None  # Override the provider's default model

    # API Keys
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    together_api_key: Optional[str] = None
    moonshot_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None

    # Persistence (conversations + checkpoints), off unless SAVE_MESSAGES=true
    save_messages: bool = False
    db_path: str = "data/annotations.db"

    # Analyzer settings
    max_iterations: int = 10
    temperature: float = 0.6
    min_patch_lines: int = 1

    # Logging
    verbose: bool = False

    def __init__(self, **data):
        # Auto-load API keys from environment if not provided
        for env_var in API_KEY_ENV_VARS.values():
            field = env_var.lower()
            if data.get(field) is None:
                data[field] = os.environ.get(env_var)

        if "save_messages" not in data:
            data["save_messages"] = os.environ.get("SAVE_MESSAGES", "").lower() == "true"

        if data.get("llm_provider") is None:
            data.pop("llm_provider", None)
            if os.environ.get("LLM_PROVIDER"):
                data["llm_provider"] = os.environ["LLM_PROVIDER"].lower()

        super().__init__(**data)

    def get_llm_api_key(self) -> Optional[str]:
        """Get the API key for the configured LLM provider."""
        env_var = API_KEY_ENV_VARS.get(self.llm_provider)
        if env_var is None:
            return None
        return getattr(self, env_var.lower())
