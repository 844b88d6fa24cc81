from __future__ import annotations

import datetime as _dt
import hashlib
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from genrelay_cli.gen.errors import OrchestrationError
    from genrelay_cli.gen.types import GenerationRequest, GenerationResult


def now_utc_iso() -> str:
    return _dt.datetime.now(tz=_dt.timezone.utc).isoformat().replace("+00:00", "Z")


def stable_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def request_fingerprint(request: GenerationRequest) -> str:
    """Content hash of a request; source images are hashed, never logged."""
    payload = request.model_dump(mode="json")
    if payload.get("source_image"):
        payload["source_image"] = sha256_hex(payload["source_image"])
    return sha256_hex(stable_json(payload))


def append_jsonl(log_path: Path, payload: dict[str, Any]) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(payload, ensure_ascii=False) + "\n")


def log_generation_run(
    log_path: Path,
    request: GenerationRequest,
    caller_id: str,
    result: Optional[GenerationResult] = None,
    error: Optional[OrchestrationError] = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "timestamp": now_utc_iso(),
        "caller_id": caller_id,
        "kind": request.kind,
        "fingerprint": request_fingerprint(request),
    }
    if result is not None:
        payload.update(
            {
                "ok": True,
                "provider_used": result.provider_used,
                "job_id": result.job_id,
                "attempts_made": result.attempts_made,
                "total_latency_ms": result.total_latency_ms,
                "output_count": len(result.outputs),
                "attempts": [a.to_dict() for a in result.attempts],
            }
        )
    if error is not None:
        payload.update(
            {
                "ok": False,
                "error_kind": error.kind,
                "message": error.summary(),
                "attempts": [a.to_dict() for a in error.attempts],
            }
        )
    append_jsonl(log_path, payload)
    return payload
