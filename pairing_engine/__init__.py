"""Tournament pairing engine helpers."""

from .config import EngineSettings, ScoringRules, read_settings
from .engine import CommandResult, TournamentEngine
from .errors import (
    CapacityExceededError,
    DataIntegrityError,
    EngineError,
    InvalidStateError,
    LockTimeoutError,
    NotFoundError,
    SchemaMismatchError,
    ValidationError,
)
from .history import OpponentHistory
from .locking import DynamoLeaseLock, LocalLock
from .models import (
    MatchRecord,
    Player,
    PlayerStatus,
    TableSlot,
    TournamentConfig,
    TournamentStatus,
    Variant,
    utc_now_iso,
)
from .pairing import (
    LadderStrategy,
    PairingEngine,
    PairingOutcome,
    SwissStrategy,
    pair_avoiding_rematches,
)
from .registry import PlayerRegistry
from .results import Outcome, ResultRecorder
from .rounds import RoundController
from .storage import TournamentStorage
from .tables import TableAllocator

__all__ = [
    "CapacityExceededError",
    "CommandResult",
    "DataIntegrityError",
    "DynamoLeaseLock",
    "EngineError",
    "EngineSettings",
    "InvalidStateError",
    "LadderStrategy",
    "LocalLock",
    "LockTimeoutError",
    "MatchRecord",
    "NotFoundError",
    "OpponentHistory",
    "Outcome",
    "PairingEngine",
    "PairingOutcome",
    "Player",
    "PlayerRegistry",
    "PlayerStatus",
    "ResultRecorder",
    "RoundController",
    "SchemaMismatchError",
    "ScoringRules",
    "SwissStrategy",
    "TableAllocator",
    "TableSlot",
    "TournamentConfig",
    "TournamentEngine",
    "TournamentStatus",
    "TournamentStorage",
    "ValidationError",
    "Variant",
    "pair_avoiding_rematches",
    "read_settings",
    "utc_now_iso",
]
