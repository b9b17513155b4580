"""Process-wide configuration, read once from the environment."""
import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .utils.errors import ConfigError

SERVER_NAME = "github-mcp"
SERVER_VERSION = "0.3.0"

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_API_VERSION = "2022-11-28"
DEFAULT_TIMEOUT_SECS = 30

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    return default


class Settings(BaseModel):
    """Connection settings for the GitHub APIs."""

    model_config = ConfigDict(frozen=True)

    token: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    graphql_url: str = DEFAULT_API_URL + "/graphql"
    api_version: str = DEFAULT_API_VERSION
    user_agent: str = f"{SERVER_NAME}/{SERVER_VERSION}"
    timeout_secs: float = DEFAULT_TIMEOUT_SECS
    debug: bool = False
    enable_ping: bool = True
    diag_log: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Load settings.

        Env vars:
            GITHUB_TOKEN (or GH_TOKEN): bearer token for upstream calls
            GITHUB_API_URL: REST base URL
            GITHUB_GRAPHQL_URL: defaults to <GITHUB_API_URL>/graphql
            GITHUB_API_VERSION: X-GitHub-Api-Version header value
            GITHUB_HTTP_TIMEOUT_SECS: per-attempt timeout
            GITHUB_USER_AGENT: User-Agent header value
            GITHUB_MCP_DEBUG: "1" logs every upstream call
            GITHUB_MCP_ENABLE_PING: advertise the ping tool (default on)
            MCP_DIAG_LOG: file that also receives diagnostics
        """
        env = os.environ if environ is None else environ

        token = env.get("GITHUB_TOKEN") or env.get("GH_TOKEN") or None
        api_url = (env.get("GITHUB_API_URL") or DEFAULT_API_URL).rstrip("/")
        graphql_url = env.get("GITHUB_GRAPHQL_URL") or f"{api_url}/graphql"

        try:
            timeout_secs = float(env.get("GITHUB_HTTP_TIMEOUT_SECS", DEFAULT_TIMEOUT_SECS))
        except ValueError:
            timeout_secs = DEFAULT_TIMEOUT_SECS
        if timeout_secs <= 0:
            timeout_secs = DEFAULT_TIMEOUT_SECS

        return cls(
            token=token,
            api_url=api_url,
            graphql_url=graphql_url,
            api_version=env.get("GITHUB_API_VERSION") or DEFAULT_API_VERSION,
            user_agent=env.get("GITHUB_USER_AGENT") or f"{SERVER_NAME}/{SERVER_VERSION}",
            timeout_secs=timeout_secs,
            debug=env.get("GITHUB_MCP_DEBUG") == "1",
            enable_ping=_env_flag(env, "GITHUB_MCP_ENABLE_PING", True),
            diag_log=env.get("MCP_DIAG_LOG") or None,
        )

    def require_token(self) -> str:
        """Return the token or raise ConfigError."""
        if not self.token:
            raise ConfigError("Missing GITHUB_TOKEN or GH_TOKEN")
        return self.token
