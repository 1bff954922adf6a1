from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class GrantStatus(str, enum.Enum):
    """Canonical grant status"""
    OPEN = "open"
    ACTIVE = "active"
    CLOSED = "closed"
    AWARDED = "awarded"
    FORECASTED = "forecasted"
    ARCHIVED = "archived"


class SyncType(str, enum.Enum):
    """What triggered a sync run"""
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class SyncRunStatus(str, enum.Enum):
    """Sync run lifecycle status"""
    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncStrategy(str, enum.Enum):
    """Schedule strategy"""
    FULL = "full"
    INCREMENTAL = "incremental"


class CategoryType(str, enum.Enum):
    SUBJECT = "subject"
    TOPIC = "topic"
    THEME = "theme"
    CFDA = "cfda"
    SECTOR = "sector"
    RESEARCH_AREA = "research_area"
    SDG = "sdg"
    CUSTOM = "custom"


class KeywordSource(str, enum.Enum):
    API_PROVIDED = "api_provided"
    EXTRACTED = "extracted"


class LocationType(str, enum.Enum):
    ELIGIBLE = "eligible"
    TARGET = "target"
    EXCLUDED = "excluded"


# Allowed SyncRun status transitions; completed and failed are terminal.
SYNC_RUN_TRANSITIONS = {
    SyncRunStatus.STARTED: {SyncRunStatus.IN_PROGRESS, SyncRunStatus.COMPLETED, SyncRunStatus.FAILED},
    SyncRunStatus.IN_PROGRESS: {SyncRunStatus.IN_PROGRESS, SyncRunStatus.COMPLETED, SyncRunStatus.FAILED},
    SyncRunStatus.COMPLETED: set(),
    SyncRunStatus.FAILED: set(),
}


def enum_values(enum_cls):
    """Persist enum values ("active"), not member names ("ACTIVE")."""
    return [member.value for member in enum_cls]
