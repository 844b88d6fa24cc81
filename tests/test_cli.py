from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from fakes import ScriptedClient
from genrelay_cli import cli
from genrelay_cli.gen.errors import AdmissionDenied, ContentRejected, JobCancelled

runner = CliRunner()

NO_SECRETS = {"RUNPOD_API_KEY": "", "REPLICATE_API_TOKEN": ""}


def _config(tmp_path: Path, placeholder: bool = True) -> Path:
    config_file = tmp_path / "genrelay.toml"
    config_file.write_text("[providers.placeholder]\n" if placeholder else "")
    return config_file


class TestGenerate:
    def test_placeholder_generation(self, tmp_path: Path) -> None:
        pytest.importorskip("PIL")
        config_file = _config(tmp_path)
        log_path = tmp_path / "logs" / "runs.jsonl"

        result = runner.invoke(
            cli.app,
            ["generate", "a red bicycle", "--config", str(config_file), "--log", str(log_path), "--json"],
            env=NO_SECRETS,
        )

        assert result.exit_code == 0, result.output
        assert '"provider_used": "placeholder"' in result.output
        record = json.loads(log_path.read_text(encoding="utf-8").splitlines()[0])
        assert record["ok"] is True
        assert record["caller_id"] == "cli"

    def test_request_file(self, tmp_path: Path) -> None:
        pytest.importorskip("PIL")
        config_file = _config(tmp_path)
        request_file = tmp_path / "request.yaml"
        request_file.write_text(
            "kind: image\nprompt: a lighthouse\ndimensions: {width: 256, height: 256}\n"
            "preferred_providers: [placeholder]\n"
        )

        result = runner.invoke(
            cli.app,
            ["generate", "--request", str(request_file), "--config", str(config_file)],
            env=NO_SECRETS,
        )

        assert result.exit_code == 0, result.output
        assert "placeholder" in result.output

    def test_nothing_configured_is_exhausted(self, tmp_path: Path) -> None:
        config_file = _config(tmp_path, placeholder=False)

        result = runner.invoke(cli.app, ["generate", "a red bicycle", "--config", str(config_file)], env=NO_SECRETS)

        assert result.exit_code == 4

    def test_invalid_request(self, tmp_path: Path) -> None:
        config_file = _config(tmp_path)

        result = runner.invoke(
            cli.app, ["generate", "--kind", "llm-text", "--config", str(config_file)], env=NO_SECRETS
        )

        assert result.exit_code == 1

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = runner.invoke(cli.app, ["generate", "p", "--config", str(tmp_path / "missing.toml")])

        assert result.exit_code == 1

    @pytest.mark.parametrize(
        "error,code",
        [
            (AdmissionDenied("slow down", "aiGeneration", 20, 0, 30), 2),
            (ContentRejected("rejected", provider_id="runpod-flux"), 3),
            (JobCancelled("cancelled"), 130),
        ],
    )
    def test_exit_codes(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, error, code: int) -> None:
        def fail(self, *args, **kwargs):
            raise error

        monkeypatch.setattr(cli.JobOrchestrator, "generate", fail)
        config_file = _config(tmp_path)

        result = runner.invoke(cli.app, ["generate", "p", "--config", str(config_file)], env=NO_SECRETS)

        assert result.exit_code == code


class TestProviderCommands:
    def test_providers_table(self, tmp_path: Path) -> None:
        result = runner.invoke(cli.app, ["providers", "--config", str(_config(tmp_path))], env=NO_SECRETS)

        assert result.exit_code == 0
        assert "replicate-flux-schnell" in result.output
        assert "placeholder" in result.output

    def test_health_without_runpod(self, tmp_path: Path) -> None:
        result = runner.invoke(cli.app, ["health", "--config", str(_config(tmp_path))], env=NO_SECRETS)

        assert result.exit_code == 0
        assert "No Runpod endpoints" in result.output

    def test_health_with_non_runpod_client_exits_cleanly(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = tmp_path / "genrelay.toml"
        config_file.write_text('[providers.runpod]\nendpoint_ids = { flux = "ep-flux" }\n')
        monkeypatch.setattr(cli.ProviderRegistry, "get_client", lambda self, family: ScriptedClient(family))

        result = runner.invoke(
            cli.app, ["health", "--config", str(config_file)], env={**NO_SECRETS, "RUNPOD_API_KEY": "rp-key"}
        )

        assert result.exit_code == 1
        assert not isinstance(result.exception, AssertionError)
        assert "ScriptedClient" in result.output

    def test_status_of_unknown_provider(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli.app, ["status", "nonexistent", "job-1", "--config", str(_config(tmp_path))], env=NO_SECRETS
        )

        assert result.exit_code == 1

    def test_cancel_unsupported(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli.app, ["cancel", "placeholder", "job-1", "--config", str(_config(tmp_path))], env=NO_SECRETS
        )

        assert result.exit_code == 1
        assert "Could not cancel" in result.output
