# src/formcoach/io/storage.py
"""Persistence collaborators: a key-value store for the Q-table and append-only
sample / rating stores. Memory versions serve tests and embedding hosts; file
versions keep the data between sessions (JSON object file, CSV logs)."""
from __future__ import annotations
import csv
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Sample:
    timestamp: float             # wall-clock seconds when the rep was stored
    reps: int                    # reps this sample covers (1 per recorded rep)
    avg_angle: float
    errors: Tuple[str, ...] = ()  # form error names


@dataclass(frozen=True)
class Rating:
    workout_id: str
    rating: int  # 1..5


# -----------------------------------------------------------------------------
# Key-value store (Q-table lives under a single key)
# -----------------------------------------------------------------------------
class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """String values kept in one JSON object file; every write replaces the file atomically."""
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not os.path.isfile(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path}: expected a JSON object")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=folder, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except ValueError:  # unreadable file is overwritten rather than blocking writes
                data = {}
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except ValueError:
                data = {}
            data.pop(key, None)
            self._write_all(data)


# -----------------------------------------------------------------------------
# Sample store: insert one, fetch N most recent (newest first)
# -----------------------------------------------------------------------------
class SampleStore(ABC):
    @abstractmethod
    def insert(self, sample: Sample) -> None: ...

    @abstractmethod
    def recent(self, limit: int) -> List[Sample]: ...

    @abstractmethod
    def count(self) -> int: ...


def _newest_first(samples: List[Sample], limit: int) -> List[Sample]:
    # Newest timestamp first; among equal stamps the later insert wins
    ordered = list(reversed(samples))
    ordered.sort(key=lambda s: s.timestamp, reverse=True)
    return ordered[:max(0, limit)]


class MemorySampleStore(SampleStore):
    def __init__(self) -> None:
        self.samples: List[Sample] = []
        self._lock = threading.Lock()

    def insert(self, sample: Sample) -> None:
        with self._lock:
            self.samples.append(sample)

    def recent(self, limit: int) -> List[Sample]:
        with self._lock:
            return _newest_first(self.samples, limit)

    def count(self) -> int:
        with self._lock:
            return len(self.samples)


# What a store read or write can raise: I/O failures, undecodable files, malformed CSV
STORAGE_ERRORS = (OSError, ValueError, csv.Error)

SAMPLE_COLUMNS = ["timestamp", "reps", "avg_angle", "errors"]
RATING_COLUMNS = ["workout_id", "rating"]


def _append_row(path: str, columns: List[str], row: Dict[str, object]) -> None:
    # Append one CSV row, writing the header on first use
    new_file = not os.path.isfile(path) or os.path.getsize(path) == 0
    folder = os.path.dirname(os.path.abspath(path))
    os.makedirs(folder, exist_ok=True)
    with open(path, "a", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=columns)
        if new_file:
            w.writeheader()
        w.writerow(row)
        f.flush()
        os.fsync(f.fileno())


def _read_rows(path: str) -> List[Dict[str, str]]:
    if not os.path.isfile(path):
        return []
    with open(path, "r", encoding="utf-8", newline="") as f:
        return list(csv.DictReader(f))


def _parse_rows(path: str, parse: Callable[[Dict[str, str]], T]) -> List[T]:
    # Truncated or hand-edited rows are skipped so one bad line does not hide the rest of the log
    out: List[T] = []
    for line_no, row in enumerate(_read_rows(path), start=2):
        try:
            out.append(parse(row))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("%s:%d: skipping unreadable row (%s)", path, line_no, exc)
    return out


class CsvSampleStore(SampleStore):
    """samples.csv with columns timestamp, reps, avg_angle, errors (JSON list)."""
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def insert(self, sample: Sample) -> None:
        with self._lock:
            _append_row(self.path, SAMPLE_COLUMNS, {
                "timestamp": repr(float(sample.timestamp)),
                "reps": int(sample.reps),
                "avg_angle": repr(float(sample.avg_angle)),
                "errors": json.dumps(list(sample.errors)),
            })

    @staticmethod
    def _parse(row: Dict[str, str]) -> Sample:
        errors = json.loads(row.get("errors") or "[]")
        if not isinstance(errors, list):
            raise ValueError("errors column is not a JSON list")
        return Sample(
            timestamp=float(row["timestamp"]),
            reps=int(row["reps"]),
            avg_angle=float(row["avg_angle"]),
            errors=tuple(str(e) for e in errors),
        )

    def _load(self) -> List[Sample]:
        return _parse_rows(self.path, self._parse)

    def recent(self, limit: int) -> List[Sample]:
        with self._lock:
            return _newest_first(self._load(), limit)

    def count(self) -> int:
        with self._lock:
            return len(self._load())


# -----------------------------------------------------------------------------
# Rating store: insert one, fetch all (insertion order)
# -----------------------------------------------------------------------------
class RatingStore(ABC):
    @abstractmethod
    def insert(self, rating: Rating) -> None: ...

    @abstractmethod
    def all(self) -> List[Rating]: ...


class MemoryRatingStore(RatingStore):
    def __init__(self) -> None:
        self.ratings: List[Rating] = []
        self._lock = threading.Lock()

    def insert(self, rating: Rating) -> None:
        with self._lock:
            self.ratings.append(rating)

    def all(self) -> List[Rating]:
        with self._lock:
            return list(self.ratings)


class CsvRatingStore(RatingStore):
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def insert(self, rating: Rating) -> None:
        with self._lock:
            _append_row(self.path, RATING_COLUMNS, {"workout_id": rating.workout_id, "rating": int(rating.rating)})

    def all(self) -> List[Rating]:
        with self._lock:
            return _parse_rows(self.path, self._parse)

    @staticmethod
    def _parse(row: Dict[str, str]) -> Rating:
        if not row.get("workout_id"):
            raise ValueError("missing workout_id")
        return Rating(row["workout_id"], int(row["rating"]))
