"""Activation options."""

from pydantic import BaseModel, Field, field_validator

from autoreloader.paths import normalize_path


class ReloaderConfig(BaseModel):
    """Options accepted by ``activate``.

    Attributes:
        reloadable_paths: Roots whose modules are unloaded on reload.
        onchange: Only unload when a tracked file changed.
        delay: Minimum seconds between unloads (None = no delay).
        watch_paths: Use a push-based watcher (None = use it if available).
        watch_latency: Seconds of quiet before watch events are reported.
        sync_loads: Serialize module loads with a re-entrant lock.
        await_before_unload: Wait for running reload bodies before unloading.
    """

    reloadable_paths: list[str] = Field(default_factory=list)
    onchange: bool = True
    delay: float | None = Field(default=None, ge=0)
    watch_paths: bool | None = None
    watch_latency: float = Field(default=1.0, gt=0)
    sync_loads: bool = False
    await_before_unload: bool = True

    @field_validator("reloadable_paths", mode="before")
    @classmethod
    def _absolute_paths(cls, value):
        if isinstance(value, str):
            value = [value]
        return [normalize_path(p) for p in value]
