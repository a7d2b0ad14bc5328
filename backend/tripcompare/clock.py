from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current time; injected as the default clock."""
    return datetime.now(timezone.utc)
