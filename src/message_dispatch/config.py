# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Process configuration from an INI file with environment fallbacks.

The INI file path comes from ``MDS_CONFIG`` (default ``config.ini``). A value
present in the file wins over the environment variable.

Example:
    Configuration file format (config.ini)::

        [storage]
        db_path = /data/message_dispatch.db

        [server]
        host = 0.0.0.0
        port = 8000
        api_token = secret

        [logging]
        level = INFO

        [email]
        resend_api_key = re_xxx
        from_email = noreply@example.com
        from_name = Academy

        [sms]
        twilio_account_sid = ACxxx
        twilio_auth_token = xxx
        twilio_phone_number = +15550001111

        [app]
        public_url = https://lms.example.com

    Loading::

        config = load_config()
        db = DispatchDb(config.db_path)
"""

from __future__ import annotations

import configparser
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

# Route serving Twilio status callbacks, relative to the public app URL
TWILIO_WEBHOOK_PATH = "/messaging/webhooks/twilio"


@dataclass
class DispatchConfig:
    """Process level settings.

    Attributes:
        db_path: SQLite database path.
        http_host: Bind address for ``serve``.
        http_port: Bind port for ``serve``.
        api_token: Value expected in the X-API-Token header (None = open).
        log_level: Root log level name.
        resend_api_key: Fallback Resend key when no usable settings record exists.
        from_email: Fallback sender address.
        from_name: Fallback sender display name.
        twilio_account_sid: Fallback Twilio account SID.
        twilio_auth_token: Fallback Twilio auth token.
        twilio_phone_number: Fallback originating number.
        app_url: Public base URL used to build webhook callback URLs.
    """

    db_path: str = "/data/message_dispatch.db"
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    api_token: str | None = None
    log_level: str = "INFO"

    resend_api_key: str | None = None
    from_email: str | None = None
    from_name: str | None = None

    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_phone_number: str | None = None

    app_url: str | None = None

    @property
    def twilio_status_callback(self) -> str | None:
        if not self.app_url:
            return None
        return self.app_url.rstrip("/") + TWILIO_WEBHOOK_PATH


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> DispatchConfig:
    """Load configuration from INI file with environment variables as fallbacks.

    Environment variables:
      MDS_CONFIG - Path to config.ini file (default: config.ini)
      MDS_DB_PATH - Database path (default: /data/message_dispatch.db)
      MDS_HOST, MDS_PORT, MDS_API_TOKEN - HTTP server
      MDS_LOG_LEVEL - Logging level (default: INFO)
      RESEND_API_KEY, FROM_EMAIL, FROM_NAME - fallback email sender
      TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER - fallback SMS sender
      APP_URL - public base URL for webhook callbacks

    Args:
        config_path: Explicit INI path. Defaults to MDS_CONFIG or config.ini.
        env: Environment mapping. Defaults to ``os.environ``.
    """
    env = os.environ if env is None else env
    path = Path(config_path or env.get("MDS_CONFIG", "config.ini"))
    parser = configparser.ConfigParser()
    parser.read(path)

    def get(section: str, option: str, fallback: str | None = None) -> str | None:
        if parser.has_option(section, option):
            value = parser.get(section, option)
            return value if value != "" else fallback
        return fallback

    def get_int(section: str, option: str, fallback: str | None = None, default: int = 0) -> int:
        value = get(section, option, fallback)
        if value is None:
            return default
        return int(value)

    return DispatchConfig(
        db_path=get("storage", "db_path", env.get("MDS_DB_PATH")) or DispatchConfig.db_path,
        http_host=get("server", "host", env.get("MDS_HOST")) or DispatchConfig.http_host,
        http_port=get_int("server", "port", env.get("MDS_PORT"), default=DispatchConfig.http_port),
        api_token=get("server", "api_token", env.get("MDS_API_TOKEN")),
        log_level=get("logging", "level", env.get("MDS_LOG_LEVEL")) or DispatchConfig.log_level,
        resend_api_key=get("email", "resend_api_key", env.get("RESEND_API_KEY")),
        from_email=get("email", "from_email", env.get("FROM_EMAIL")),
        from_name=get("email", "from_name", env.get("FROM_NAME")),
        twilio_account_sid=get("sms", "twilio_account_sid", env.get("TWILIO_ACCOUNT_SID")),
        twilio_auth_token=get("sms", "twilio_auth_token", env.get("TWILIO_AUTH_TOKEN")),
        twilio_phone_number=get("sms", "twilio_phone_number", env.get("TWILIO_PHONE_NUMBER")),
        app_url=get("app", "public_url", env.get("APP_URL")),
    )


__all__ = ["DispatchConfig", "TWILIO_WEBHOOK_PATH", "load_config"]
