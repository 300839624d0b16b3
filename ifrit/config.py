"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root .env, independent of CWD
_THIS_DIR = Path(__file__).resolve().parent          # ifrit/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Data directory; job documents live under <data_dir>/jobs
    ifrit_data_dir: str = "./data"

    # Generated articles (markdown + front matter); defaults to <data_dir>/content
    ifrit_content_dir: str | None = None

    # Runner pacing (seconds)
    ifrit_inter_item_delay: float = 1.0
    ifrit_max_wait: float = 5.0

    ifrit_log_level: str = "INFO"

    # GitHub API used for pre-flight, publishing and deployment verification
    github_api_url: str = "https://api.github.com"
    github_timeout: float = 30.0

    # Per-provider model overrides (OpenAI-compatible endpoints + Anthropic)
    ifrit_gemini_model: str = "gemini-2.5-flash"
    ifrit_deepseek_model: str = "deepseek-chat"
    ifrit_openrouter_model: str = "deepseek/deepseek-chat:free"
    ifrit_perplexity_model: str = "sonar"
    ifrit_vercel_model: str = "anthropic/claude-sonnet-4"
    ifrit_anthropic_model: str = "claude-3-5-sonnet-20241022"
    ifrit_generation_timeout: float = 180.0

    # Optional bearer token for the HTTP API. Unset = no auth.
    ifrit_api_token: str | None = None

    # CORS origins (comma-separated). Defaults to localhost dev.
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Server port
    port: int = 8000

    @property
    def data_dir(self) -> Path:
        """Get data directory as Path.

        Relative paths are resolved against the project root (not CWD),
        so the backend works whether started from project root or backend/.
        """
        p = Path(self.ifrit_data_dir)
        if not p.is_absolute():
            return (_PROJECT_ROOT / p).resolve()
        return p.resolve()

    @property
    def jobs_dir(self) -> Path:
        return self.data_dir / "jobs"

    @property
    def content_dir(self) -> Path:
        """Directory generated articles are written to before publishing."""
        if self.ifrit_content_dir:
            return Path(self.ifrit_content_dir).resolve()
        return self.data_dir / "content"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def model_for(self, provider: str) -> str | None:
        """Configured model name for a provider id, if any."""
        return getattr(self, f"ifrit_{provider}_model", None)

    def ensure_dirs(self) -> None:
        """Ensure all data directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.jobs_dir.mkdir(parents=True, exist_ok=True)
        self.content_dir.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_dirs()
    return settings
