"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, shelfctl.toml only contains
overrides. A fresh library needs nothing at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- shelfctl.toml sections ---


class LibraryConfig(BaseModel):
    """[library] section."""

    model_config = {"frozen": True}

    name: str = "my-library"


class DatabaseConfig(BaseModel):
    """[database] section."""

    model_config = {"frozen": True}

    busy_timeout: float = Field(default=5.0, gt=0)
    backup_max_count: int = Field(default=10, ge=1)


class CirculationConfig(BaseModel):
    """[circulation] section."""

    model_config = {"frozen": True}

    lock_timeout: float = Field(default=5.0, gt=0)
    default_actor: str = "librarian"


class NotificationsConfig(BaseModel):
    """[notifications] section.

    Email delivery is off until an SMTP host is configured. The log
    notifier records one structured line per notification.
    """

    model_config = {"frozen": True}

    enabled: bool = True
    log: bool = True
    email: bool = False
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    sender: str = "library@localhost"
    use_tls: bool = True
    timeout: float = 10.0


class EventsConfig(BaseModel):
    """[events] section."""

    model_config = {"frozen": True}

    max_retries: int = Field(default=3, ge=1)
    max_workers: int = Field(default=2, ge=1)


class ShelfConfig(BaseModel):
    """Root configuration composing all sections."""

    model_config = {"frozen": True}

    library: LibraryConfig = Field(default_factory=LibraryConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    circulation: CirculationConfig = Field(default_factory=CirculationConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
