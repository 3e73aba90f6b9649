from __future__ import annotations

import secrets
import threading
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class IntentStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FILLED = "filled"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (IntentStatus.CONFIRMED, IntentStatus.FILLED, IntentStatus.ERROR)


# Allowed forward moves; anything else is a bug in the runner.
_TRANSITIONS: Dict[IntentStatus, frozenset] = {
    IntentStatus.IDLE: frozenset({IntentStatus.LOADING}),
    IntentStatus.LOADING: frozenset({IntentStatus.SUBMITTED, IntentStatus.ERROR}),
    IntentStatus.SUBMITTED: frozenset({IntentStatus.CONFIRMED, IntentStatus.FILLED, IntentStatus.ERROR}),
    IntentStatus.CONFIRMED: frozenset(),
    IntentStatus.FILLED: frozenset(),
    IntentStatus.ERROR: frozenset(),
}


class JobInFlight(Exception):
    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"An intent is already being processed ({job_id})")


@dataclass
class IntentJob:
    job_id: str
    owner: str
    text: str
    created_at: float
    status: IntentStatus = IntentStatus.IDLE
    message: str = ""
    kind: Optional[str] = None
    chain: Optional[str] = None
    tx_hash: Optional[str] = None
    explorer_url: Optional[str] = None
    order_id: Optional[str] = None
    order_status: Optional[str] = None
    error_code: Optional[str] = None
    updated_at: float = field(default_factory=time.time)
    dismissed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d


class IntentJobStore:
    """
    In-memory store of intent jobs. One unfinished job per owner at a time.
    """

    def __init__(self, *, max_jobs_per_owner: int = 20) -> None:
        self._lock = threading.Lock()
        self._items: Dict[str, IntentJob] = {}
        self._max_per_owner = max(1, int(max_jobs_per_owner))

    def create(self, *, owner: str, text: str) -> IntentJob:
        with self._lock:
            active = self._active_locked(owner)
            if active is not None:
                raise JobInFlight(active.job_id)
            job = IntentJob(job_id=secrets.token_hex(12), owner=owner, text=text, created_at=time.time())
            self._items[job.job_id] = job
            self._prune_locked(owner)
            return job

    def get(self, job_id: str) -> Optional[IntentJob]:
        return self._items.get(job_id)

    def transition(self, job_id: str, status: IntentStatus, **fields: Any) -> IntentJob:
        with self._lock:
            job = self._items.get(job_id)
            if job is None:
                raise KeyError(job_id)
            if status != job.status and status not in _TRANSITIONS[job.status]:
                raise ValueError(f"Illegal transition {job.status.value} -> {status.value}")
            if status != job.status:
                # A new status re-opens a popup the user closed earlier.
                job.dismissed = False
            job.status = status
            for k, v in fields.items():
                if not hasattr(job, k):
                    raise AttributeError(k)
                setattr(job, k, v)
            job.updated_at = time.time()
            return job

    def active_for(self, owner: str) -> Optional[IntentJob]:
        with self._lock:
            return self._active_locked(owner)

    def latest_for(self, owner: str) -> Optional[IntentJob]:
        jobs = self.list_for(owner)
        return jobs[0] if jobs else None

    def list_for(self, owner: str) -> List[IntentJob]:
        with self._lock:
            jobs = [j for j in self._items.values() if j.owner == owner]
        # Newest first; insertion order breaks created_at ties.
        return sorted(jobs, key=lambda j: j.created_at)[::-1]

    def dismiss(self, job_id: str, *, owner: str) -> bool:
        with self._lock:
            job = self._items.get(job_id)
            if job is None or job.owner != owner:
                return False
            job.dismissed = True
            return True

    def _active_locked(self, owner: str) -> Optional[IntentJob]:
        for j in self._items.values():
            if j.owner == owner and not j.status.terminal:
                return j
        return None

    def _prune_locked(self, owner: str) -> None:
        mine = sorted(
            (j for j in self._items.values() if j.owner == owner and j.status.terminal),
            key=lambda j: j.created_at,
        )
        for j in mine[: max(0, len(mine) - self._max_per_owner)]:
            self._items.pop(j.job_id, None)
