"""FastAPI adapter exposing runtime logging configuration and analytics."""

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from perflog.core.encoding.ndjson import encode_entries
from perflog.core.exceptions import ConfigurationError
from perflog.core.manager import PerformanceManager
from perflog.core.models import Channel, LogLevel


class LevelUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel: str = Field(alias="loggerName", min_length=1)
    level: str = Field(min_length=1)


class FormatUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    channel: str = Field(alias="loggerName", min_length=1)
    format: str = Field(min_length=1)


class BeaconPayload(BaseModel):
    """Log lines rendered by a client and posted in one batch."""

    lines: list[str] = Field(default_factory=list)


def _bad_request(exc: ConfigurationError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


def create_logging_router(
    manager: PerformanceManager, prefix: str = "/logging"
) -> APIRouter:
    """Create a FastAPI router for runtime logging control.

    Args:
        manager: The application's PerformanceManager.
        prefix: Path prefix of every endpoint.

    Returns:
        APIRouter with level, format, config, formatter, analytics,
        recent-entry, flush and beacon endpoints configured.
    """
    router = APIRouter(prefix=prefix)

    @router.get("/levels")
    async def get_levels() -> dict[str, str]:
        """Return the minimum level of every channel."""
        return manager.levels()

    @router.post("/levels")
    async def set_level(update: LevelUpdate) -> dict:
        try:
            config = manager.set_log_level(update.channel, update.level)
        except ConfigurationError as exc:
            raise _bad_request(exc) from exc
        manager.log_business_event(
            "log_level_changed",
            "configure",
            details={"loggerName": update.channel, "level": config.level.name},
        )
        return {
            "success": True,
            "message": f"Log level for {update.channel} updated to {config.level.name}",
            "levels": manager.levels(),
        }

    @router.get("/formats")
    async def get_formats() -> dict[str, str]:
        """Return the format name of every channel."""
        return manager.formats()

    @router.post("/formats")
    async def set_format(update: FormatUpdate) -> dict:
        try:
            config = manager.set_log_format(update.channel, update.format)
        except ConfigurationError as exc:
            raise _bad_request(exc) from exc
        manager.log_business_event(
            "log_format_changed",
            "configure",
            details={"loggerName": update.channel, "format": config.format},
        )
        return {
            "success": True,
            "message": f"Log format for {update.channel} updated to {config.format}",
            "formats": manager.formats(),
        }

    @router.get("/config")
    async def get_config() -> dict:
        return manager.config_snapshot()

    @router.get("/formatters")
    async def get_formatters() -> list[dict]:
        """Describe every registered formatter and the channels it suits."""
        registry = manager.registry
        return [
            {
                "name": name,
                "displayName": formatter.display_name(),
                "fileExtension": formatter.file_extension(),
                "channels": [c.value for c in Channel if formatter.supports_channel(c)],
            }
            for name in registry.names()
            if (formatter := registry.get(name)) is not None
        ]

    @router.get("/analytics")
    async def get_analytics() -> dict:
        return manager.get_analytics().as_dict()

    @router.get("/recent/{channel}")
    async def get_recent(
        channel: str, level: str | None = Query(default=None)
    ) -> Response:
        """Return the channel's rolling window in NDJSON format.

        Args:
            channel: Channel name.
            level: Minimum level of the returned entries.
        """
        try:
            entries = manager.recent(channel)
        except ConfigurationError as exc:
            raise _bad_request(exc) from exc
        if level is not None:
            if not LogLevel.is_valid(level):
                raise HTTPException(status_code=400, detail=f"Unknown log level: {level!r}")
            minimum = LogLevel.parse(level)
            entries = [entry for entry in entries if entry.level >= minimum]
        return Response(
            content=encode_entries(entries),
            media_type="application/x-ndjson",
        )

    @router.post("/flush", status_code=204)
    async def flush() -> Response:
        await manager.flush()
        return Response(status_code=204)

    @router.post("/beacon/{channel}", status_code=204)
    async def beacon(channel: str, payload: BeaconPayload) -> Response:
        """Append client-rendered lines to the channel's destination."""
        try:
            config = manager.get_logger_config(channel)
        except ConfigurationError as exc:
            raise _bad_request(exc) from exc
        lines = [line.rstrip("\r\n") for line in payload.lines]
        if any("\n" in line or "\r" in line for line in lines):
            raise HTTPException(
                status_code=400, detail="Beacon lines must not contain line breaks"
            )
        if not config.enabled:
            return Response(status_code=204)
        for line in lines:
            manager.delivery.enqueue(line, config.destination)
        return Response(status_code=204)

    return router
