from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class Destination(str, enum.Enum):
    """Where load() writes documents"""
    LOCAL_FILE = "local-file"
    EMULATOR = "emulator"
    LIVE_STORE = "live-store"


class ProcessingStatus(str, enum.Enum):
    """Pipeline run state"""
    INITIALIZING = "initializing"
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    TRANSFORMING = "transforming"
    LOADING = "loading"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.DONE, ProcessingStatus.FAILED)


class DetailStatus(str, enum.Enum):
    """Per-document load outcome"""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
