"""Process configuration, read once from the environment at startup."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUPPORTED_SIGNATURE_ALGORITHMS = ("sha1", "sha256")

_TRUTHY = ("1", "true", "yes")


class RelaySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    port: int = Field(default=5000, ge=1, le=65535)
    app_secret: str = ""
    verify_token: str = "token"
    app_id: str = ""
    redirect_uri: str = ""
    graph_api_version: str = "v19.0"
    signature_algorithm: str = "sha1"
    verify_all_channels: bool = False
    audit_log_path: str | None = None
    log_level: str = "INFO"

    @field_validator("signature_algorithm")
    @classmethod
    def _check_algorithm(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_SIGNATURE_ALGORITHMS:
            raise ValueError(
                f"unsupported signature algorithm {value!r}; "
                f"expected one of {', '.join(SUPPORTED_SIGNATURE_ALGORITHMS)}"
            )
        return value

    @property
    def has_app_credentials(self) -> bool:
        return bool(self.app_id and self.app_secret)

    @property
    def callback_url(self) -> str:
        return self.redirect_uri or f"http://localhost:{self.port}/auth/callback"

    @property
    def graph_base_url(self) -> str:
        return f"https://graph.facebook.com/{self.graph_api_version}"

    @property
    def dialog_url(self) -> str:
        return f"https://www.facebook.com/{self.graph_api_version}/dialog/oauth"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelaySettings:
        """Build settings from environment variables (``os.environ`` by default)."""
        env = os.environ if environ is None else environ
        return cls(
            port=int(env.get("PORT", "5000")),
            app_secret=env.get("APP_SECRET", ""),
            verify_token=env.get("TOKEN", "token"),
            app_id=env.get("APP_ID", ""),
            redirect_uri=env.get("REDIRECT_URI", ""),
            graph_api_version=env.get("GRAPH_API_VERSION", "v19.0"),
            signature_algorithm=env.get("WEBHOOK_SIGNATURE_ALGORITHM", "sha1"),
            verify_all_channels=(
                env.get("WEBHOOK_VERIFY_ALL", "").strip().lower() in _TRUTHY
            ),
            audit_log_path=env.get("AUDIT_LOG_PATH") or None,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
