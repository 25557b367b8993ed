"""Configuration management."""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Load .env file from current working directory
load_dotenv()

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; URL-Analyzer/1.0)"
DEFAULT_BEDROCK_MODEL = "anthropic.claude-3-5-sonnet-20241022-v2:0"


@dataclass
class Config:
    """Application configuration."""

    database_path: Path = Path("./analyses.db")
    fetch_timeout_seconds: int = 30
    max_content_length: int = 1_000_000
    user_agent: str = DEFAULT_USER_AGENT
    bedrock_model: str = DEFAULT_BEDROCK_MODEL
    bedrock_region: str = "us-east-1"
    max_tokens: int = 500
    resend_api_key: str | None = None
    email_from: str = "onboarding@resend.dev"

    @property
    def email_enabled(self) -> bool:
        return bool(self.resend_api_key)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from YAML file.

        A missing file yields the defaults. Environment variables take
        precedence over YAML values:
        - DATABASE_PATH: Path to SQLite database file
        - RESEND_API_KEY: Enables email delivery
        - EMAIL_FROM: Sender address for emails
        - BEDROCK_MODEL / BEDROCK_REGION: Summarization model
        """
        data: dict = {}
        if Path(path).exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

        database_path = os.environ.get("DATABASE_PATH") or data.get(
            "database_path", "./analyses.db"
        )

        return cls(
            database_path=Path(database_path).expanduser(),
            fetch_timeout_seconds=data.get("fetch_timeout_seconds", 30),
            max_content_length=data.get("max_content_length", 1_000_000),
            user_agent=data.get("user_agent", DEFAULT_USER_AGENT),
            bedrock_model=os.environ.get("BEDROCK_MODEL")
            or data.get("bedrock_model", DEFAULT_BEDROCK_MODEL),
            bedrock_region=os.environ.get("BEDROCK_REGION")
            or data.get("bedrock_region", "us-east-1"),
            max_tokens=data.get("max_tokens", 500),
            resend_api_key=os.environ.get("RESEND_API_KEY") or data.get("resend_api_key"),
            email_from=os.environ.get("EMAIL_FROM")
            or data.get("email_from", "onboarding@resend.dev"),
        )
