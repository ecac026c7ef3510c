"""Domain records for one reconciliation pass."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, List, Optional


class ProofMode(str, Enum):
    """How proofs are acquired for a pass."""
    PER_ITEM = "per_item"  # one oracle call per close request
    BATCH = "batch"  # one shared multiproof per pass


class OutcomeStatus(str, Enum):
    """Terminal state of a close request within a pass."""
    CLOSED = "closed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class CloseRequest:
    """A pending close recorded on the ledger."""
    position_id: int
    asset_index: int

    @property
    def is_assigned(self) -> bool:
        """Position id 0 is the ledger's unassigned sentinel."""
        return bool(self.position_id)


@dataclass(frozen=True, slots=True)
class Proof:
    """A validated proof, ready to be passed to the contract."""
    data: bytes
    encoded: Optional[str] = None

    def __len__(self) -> int:
        return len(self.data)

    def hex(self) -> str:
        return self.encoded or "0x" + self.data.hex()


@dataclass(frozen=True, slots=True)
class TransactionReference:
    """A confirmed close transaction."""
    tx_hash: str
    block_number: Optional[int] = None
    gas_used: Optional[int] = None


@dataclass(frozen=True, slots=True)
class AttemptOutcome:
    """How one close request ended in a pass.

    Exactly one of tx_hash, error or reason is set, matching the status.
    Use the closed/failed/skipped constructors.
    """
    position_id: int
    status: OutcomeStatus
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None
    attempts: int = 0

    @classmethod
    def closed(cls, position_id: int, tx_hash: str, attempts: int = 1) -> "AttemptOutcome":
        return cls(position_id, OutcomeStatus.CLOSED, tx_hash=tx_hash, attempts=attempts)

    @classmethod
    def failed(cls, position_id: int, error: str, attempts: int = 0) -> "AttemptOutcome":
        return cls(position_id, OutcomeStatus.FAILED, error=error or "unknown error", attempts=attempts)

    @classmethod
    def skipped(cls, position_id: int, reason: str) -> "AttemptOutcome":
        return cls(position_id, OutcomeStatus.SKIPPED, reason=reason)


@dataclass
class PassResult:
    """Ordered outcomes of one pass, one per discovered request."""
    pass_id: str
    mode: ProofMode
    outcomes: List[AttemptOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def append(self, outcome: AttemptOutcome) -> None:
        self.outcomes.append(outcome)

    def finish(self) -> None:
        self.finished_at = datetime.now(timezone.utc)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def counts(self) -> Dict[str, int]:
        """Outcome count per status, every status present."""
        counter = Counter(o.status.value for o in self.outcomes)
        return {s.value: counter.get(s.value, 0) for s in OutcomeStatus}

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self) -> Iterator[AttemptOutcome]:
        return iter(self.outcomes)


@dataclass(frozen=True, slots=True)
class ProofInspection:
    """Debug view of one request: would its proof be accepted?"""
    position_id: int
    asset_index: int
    valid: bool
    proof_length: Optional[int] = None
    reason: Optional[str] = None
