"""Smoke tests for the EchoPaths command surface."""

from __future__ import annotations

from typer.testing import CliRunner

from echopaths.cli import app


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(app, ["--help"])

    assert result.exit_code == 0
    for command in ("narrate", "outline", "history", "credentials"):
        assert command in result.output


def test_outline_prints_one_beat_per_segment() -> None:
    result = CliRunner().invoke(
        app,
        ["outline", "--from", "A", "--to", "B", "--duration", "200", "--stop", "C"],
    )

    assert result.exit_code == 0, result.output
    assert "1. Planned beat 1" in result.output
    assert "4. Planned beat 4" in result.output
    assert "5. " not in result.output


def test_credentials_set_status_and_clear(credential_store) -> None:  # type: ignore[no-untyped-def]
    runner = CliRunner()

    stored = runner.invoke(app, ["credentials", "--set-api-key"], input="sk-test\n")
    status = runner.invoke(app, ["credentials"])
    cleared = runner.invoke(app, ["credentials", "--clear-api-key"])

    assert stored.exit_code == 0, stored.output
    assert "API key stored in secure credential storage." in stored.output
    assert "Stored OpenAI API key: present" in status.output
    assert "Stored API key cleared" in cleared.output
    assert credential_store.api_key is None


def test_credentials_rejects_conflicting_flags() -> None:
    result = CliRunner().invoke(app, ["credentials", "--set-api-key", "--clear-api-key"])

    assert result.exit_code == 1
    assert "credentials failed at stage `credentials`" in result.output
