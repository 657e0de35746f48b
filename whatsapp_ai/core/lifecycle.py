"""Single-instance lifecycle of the bridge process."""
import enum
import logging

logger = logging.getLogger(__name__)


class LifecycleState(str, enum.Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class LifecycleError(RuntimeError):
    """Invalid lifecycle transition."""


class AlreadyRunningError(LifecycleError):
    """A system instance already owns this process lifecycle."""


class SystemLifecycle:
    """Tracks not_started -> starting -> running -> shutting_down.

    One instance exists per process and is handed to the system, which
    claims it once at construction; a second claim fails.
    """

    def __init__(self) -> None:
        self.state = LifecycleState.NOT_STARTED

    @property
    def active(self) -> bool:
        return self.state is not LifecycleState.NOT_STARTED

    def _move(self, allowed, target: LifecycleState) -> None:
        if self.state not in allowed:
            raise LifecycleError(f"Cannot go from {self.state.value} to {target.value}")
        logger.debug(f"Lifecycle {self.state.value} -> {target.value}")
        self.state = target

    def claim(self) -> None:
        if self.active:
            raise AlreadyRunningError(f"System already {self.state.value}")
        self._move((LifecycleState.NOT_STARTED,), LifecycleState.STARTING)

    def mark_running(self) -> None:
        self._move((LifecycleState.STARTING,), LifecycleState.RUNNING)

    def begin_shutdown(self) -> None:
        self._move((LifecycleState.STARTING, LifecycleState.RUNNING), LifecycleState.SHUTTING_DOWN)

    def release(self) -> None:
        """Back to not_started; allowed from any state."""
        self.state = LifecycleState.NOT_STARTED


# Process-wide lifecycle used by the entry point.
lifecycle = SystemLifecycle()
