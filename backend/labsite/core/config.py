"""
Centralized configuration management using Pydantic Settings.

Settings are loaded from environment variables and an optional .env file.
Secrets (Mailgun key, setup key, Reddit/GitHub credentials) must never be
committed - keep them in the gitignored .env file.
"""

from typing import Annotated, List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
import ipaddress
import json


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field can be overridden with an environment variable of the same
    name (case-insensitive).
    """

    # API Configuration
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version 1 prefix for all endpoints"
    )
    project_name: str = Field(
        default="0xJerry's Lab API",
        description="Project name displayed in API docs"
    )
    environment: str = Field(
        default="development",
        description="Deployment environment (development, production)"
    )

    # Site identity (used in outgoing emails)
    site_name: str = Field(
        default="0xJerry's Lab",
        description="Display name used as the email sender name"
    )
    site_url: str = Field(
        default="https://0xjerry.jerome.co.in",
        description="Public site URL used for links in emails"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/labsite.db",
        description="Database connection URL (SQLite by default, PostgreSQL-ready format)"
    )
    db_create_all: bool = Field(
        default=False,
        description="Create missing tables on startup (local development)"
    )

    # Admin authentication
    session_duration_hours: int = Field(
        default=24,
        ge=1,
        description="Lifetime of an admin session, extended on each session check"
    )
    max_login_attempts: int = Field(
        default=5,
        ge=1,
        description="Failed logins from one IP before it is locked out"
    )
    lockout_minutes: int = Field(
        default=15,
        ge=1,
        description="Lockout duration after too many failed logins"
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor for admin password hashes"
    )
    admin_setup_key: Optional[str] = Field(
        default=None,
        description="Key required to create admin users and initialise the database"
    )
    admin_api_key: Optional[str] = Field(
        default=None,
        description="Shared key for cron jobs and runtime stats updates (X-Admin-Key header)"
    )

    # Writeup OTP
    otp_expiry_minutes: int = Field(
        default=10,
        ge=1,
        description="Minutes a writeup OTP stays valid"
    )
    otp_resend_cooldown_minutes: int = Field(
        default=2,
        ge=0,
        description="Minimum minutes between two OTP emails for the same address"
    )

    # Mailgun
    mailgun_api_key: Optional[str] = Field(
        default=None,
        description="Mailgun API key"
    )
    mailgun_domain: Optional[str] = Field(
        default=None,
        description="Mailgun sending domain"
    )
    mailgun_base_url: str = Field(
        default="https://api.mailgun.net/v3",
        description="Mailgun API base URL (use api.eu.mailgun.net for EU domains)"
    )

    # Upstream feeds
    http_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for outbound HTTP calls"
    )
    nvd_api_url: str = Field(
        default="https://services.nvd.nist.gov/rest/json/cves/2.0",
        description="NVD CVE API endpoint"
    )
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL"
    )
    github_token: Optional[str] = Field(
        default=None,
        description="Optional GitHub token to raise API rate limits"
    )
    security_repos: Annotated[List[str], NoDecode] = Field(
        default=[
            "danielmiessler/SecLists",
            "swisskyrepo/PayloadsAllTheThings",
            "OWASP/CheatSheetSeries",
            "carlospolop/PEASS-ng",
            "rebootuser/LinEnum",
            "pentestmonkey/php-reverse-shell",
            "PowerShellMafia/PowerSploit",
            "trustedsec/ptf",
            "sqlmapproject/sqlmap",
            "vanhauser-thc/thc-hydra",
            "volatilityfoundation/volatility",
            "rapid7/metasploit-framework",
            "nmap/nmap",
            "aircrack-ng/aircrack-ng",
            "SecureAuthCorp/impacket",
        ],
        description="GitHub repositories listed as dynamic tools (owner/name)"
    )
    ipgeo_api_url: str = Field(
        default="http://ip-api.com/json",
        description="IP geolocation lookup endpoint"
    )
    stackexchange_api_url: str = Field(
        default="https://api.stackexchange.com/2.3",
        description="Stack Exchange API base URL"
    )
    reddit_client_id: Optional[str] = Field(
        default=None,
        description="Reddit app client ID (read-only access)"
    )
    reddit_client_secret: Optional[str] = Field(
        default=None,
        description="Reddit app client secret"
    )
    reddit_user_agent: str = Field(
        default="labsite:forum-feed:1.0 (by /u/0xjerry)",
        description="Reddit API user agent string"
    )
    forum_subreddits: Annotated[List[str], NoDecode] = Field(
        default=["netsec", "cybersecurity", "hacking", "redteamsec"],
        description="Subreddits aggregated by the forums feed"
    )

    # Runtime HTB stats defaults
    htb_machines_pwned: int = Field(default=127)
    htb_global_ranking: int = Field(default=15420)
    htb_final_score: int = Field(default=890)
    htb_rank: str = Field(default="Hacker")

    # CORS Configuration
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins (frontend URLs)"
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow cookies/credentials in CORS requests"
    )

    # Reverse proxies
    trusted_proxies: Annotated[List[str], NoDecode] = Field(
        default=[],
        description="Proxy addresses or CIDR ranges whose forwarding headers are trusted"
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable per-IP rate limiting middleware"
    )
    rate_limit_auth: int = Field(
        default=10,
        ge=1,
        description="Requests per minute for authentication endpoints"
    )
    rate_limit_default: int = Field(
        default=60,
        ge=1,
        description="Requests per minute for all other endpoints"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    log_json: bool = Field(
        default=True,
        description="Emit JSON log lines (False for plain text)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "security_repos", "forum_subreddits", "cors_origins", "trusted_proxies", mode="before"
    )
    @classmethod
    def parse_list(cls, v: str | List[str]) -> List[str]:
        """
        Parse list settings from a JSON array string, a comma-separated
        string or a Python list.
        """
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                try:
                    parsed = json.loads(v)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("trusted_proxies")
    @classmethod
    def validate_trusted_proxies(cls, v: List[str]) -> List[str]:
        """CIDR entries must parse; plain entries match the peer host exactly."""
        for entry in v:
            if "/" in entry:
                ipaddress.ip_network(entry, strict=False)
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Only async SQLite and PostgreSQL drivers are supported."""
        if not v.startswith(("sqlite+aiosqlite://", "postgresql+asyncpg://")):
            raise ValueError(
                "database_url must use sqlite+aiosqlite:// or postgresql+asyncpg://"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
