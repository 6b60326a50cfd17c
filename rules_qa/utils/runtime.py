from datetime import datetime, timezone


class RuntimeState:
    """Tracks process start time for the health endpoint."""

    def __init__(self) -> None:
        self.started_at = datetime.now(timezone.utc)

    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.started_at).total_seconds()

    def started_at_iso(self) -> str:
        return self.started_at.isoformat()


runtime_state = RuntimeState()
