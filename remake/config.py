"""Runtime configuration: env-driven, overridable from the command line.

Reads from a .env file and REMAKE_* environment variables; the CLI passes
its options as explicit keyword arguments, which take precedence.
"""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemakeSettings(BaseSettings):
    """Timing and make invocation settings.

    Examples
    --------
    Override via environment::

        export REMAKE_GRACE_PERIOD=30
        export REMAKE_POLL_INTERVAL=2
        export REMAKE_MAKE_COMMAND=gmake

    Or via .env file::

        REMAKE_WATCH_DEBOUNCE=0.25
        REMAKE_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="REMAKE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Timing, in seconds
    grace_period: float = 10.0
    poll_interval: float = 0.0  # 0 disables polling
    watch_debounce: float = 0.1  # 0 disables the filesystem watcher
    error_sleep: float = 5.0
    kill_retry_delay: float = 1.0
    forced_check_delay: float = 1.0

    # make invocation
    make_command: str = "make"
    make_flags: list[str] = ["--warn-undefined-variables"]

    # Observability
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _require_a_trigger(self) -> RemakeSettings:
        if not self.watching_enabled and not self.polling_enabled:
            raise ValueError("watch_debounce or poll_interval must be enabled")
        return self

    @property
    def watching_enabled(self) -> bool:
        return self.watch_debounce > 0

    @property
    def polling_enabled(self) -> bool:
        return self.poll_interval > 0
