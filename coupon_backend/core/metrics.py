from collections import Counter
from threading import Lock
from typing import Dict, Counter as CounterType

_metrics: CounterType[str] = Counter()
_lock = Lock()


def _inc(key: str) -> None:
    with _lock:
        _metrics[key] += 1


def record_claim_succeeded() -> None:
    _inc("claims_succeeded")


def record_claim_rejected(reason: str) -> None:
    _inc(f"claims_rejected_{reason}")


def record_claims_exhausted() -> None:
    _inc("claims_exhausted")


def record_store_error() -> None:
    _inc("store_errors")


def snapshot() -> Dict[str, int]:
    with _lock:
        return dict(_metrics)


def reset() -> None:
    with _lock:
        _metrics.clear()
