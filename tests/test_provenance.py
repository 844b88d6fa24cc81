from __future__ import annotations

import json
from pathlib import Path

from genrelay_cli.gen.errors import Exhausted
from genrelay_cli.gen.provenance import (
    append_jsonl,
    log_generation_run,
    now_utc_iso,
    request_fingerprint,
    stable_json,
)
from genrelay_cli.gen.types import AttemptRecord, GenerationRequest, GenerationResult


class TestFingerprint:
    def test_stable_json_sorts_keys(self) -> None:
        assert stable_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_identical_requests_share_fingerprint(self) -> None:
        a = GenerationRequest(kind="image", prompt="a red bicycle")
        b = GenerationRequest(kind="image", prompt="a red bicycle")
        c = GenerationRequest(kind="image", prompt="a blue bicycle")

        assert request_fingerprint(a) == request_fingerprint(b)
        assert request_fingerprint(a) != request_fingerprint(c)
        assert len(request_fingerprint(a)) == 64

    def test_timestamp_is_utc(self) -> None:
        assert now_utc_iso().endswith("Z")


class TestRunLog:
    def test_append_jsonl_creates_parents(self, tmp_path: Path) -> None:
        log_path = tmp_path / "logs" / "runs.jsonl"
        append_jsonl(log_path, {"n": 1})
        append_jsonl(log_path, {"n": 2})

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["n"] for line in lines] == [1, 2]

    def test_success_record(self, tmp_path: Path) -> None:
        request = GenerationRequest(kind="image", prompt="p", source_image="data:image/png;base64,SECRETBYTES")
        result = GenerationResult(
            outputs=["https://example/output.png"],
            provider_used="replicate-flux-schnell",
            attempts_made=2,
            total_latency_ms=1234,
            job_id="pred-1",
            attempts=[AttemptRecord("runpod-flux", 0, "provider_unavailable", "HTTP 503")],
        )
        log_path = tmp_path / "runs.jsonl"

        log_generation_run(log_path, request, "user-1", result=result)

        text = log_path.read_text(encoding="utf-8")
        record = json.loads(text)
        assert record["ok"] is True
        assert record["provider_used"] == "replicate-flux-schnell"
        assert record["attempts"][0]["failure_kind"] == "provider_unavailable"
        assert "SECRETBYTES" not in text

    def test_failure_record(self, tmp_path: Path) -> None:
        request = GenerationRequest(kind="video", prompt="p")
        error = Exhausted([AttemptRecord("runpod-flux", 0, "capability_mismatch", "image only")])

        payload = log_generation_run(tmp_path / "runs.jsonl", request, "user-1", error=error)

        assert payload["ok"] is False
        assert payload["error_kind"] == "exhausted"
        assert len(payload["attempts"]) == 1
