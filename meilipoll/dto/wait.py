from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Seconds. No deadline unless the caller asks for one.
DEFAULT_WAIT_TIMEOUT: Optional[float] = None
# Seconds between two polls of the same task.
DEFAULT_WAIT_INTERVAL: float = 0.05


class WaitOptions(BaseModel):
    """
    Polling policy for one wait call.

    :param timeout: Maximum number of seconds to wait for each task. ``None`` or a
        value ``<= 0`` disables the deadline.
    :param interval: Seconds to sleep between two polls. ``0`` polls again as soon as
        the event loop has run other pending work.
    """

    model_config = ConfigDict(frozen=True)

    timeout: Optional[float] = Field(default=DEFAULT_WAIT_TIMEOUT)
    interval: float = Field(default=DEFAULT_WAIT_INTERVAL, ge=0)

    @property
    def deadline_enabled(self) -> bool:
        return self.timeout is not None and self.timeout > 0

    def merge(
        self,
        options: Optional["WaitOptions"] = None,
        *,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ) -> "WaitOptions":
        """Return a copy with every explicitly set field of ``options`` and the keywords applied."""
        update = {}
        if options is not None:
            update.update(options.model_dump(exclude_unset=True))
        if timeout is not None:
            update["timeout"] = timeout
        if interval is not None:
            update["interval"] = interval
        if not update:
            return self
        return WaitOptions(**{**self.model_dump(), **update})
