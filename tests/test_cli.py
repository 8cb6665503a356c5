from __future__ import annotations

import dataclasses
from datetime import date
from typing import Any, Dict, List, Optional

import pytest
from typer.testing import CliRunner

from app.schemas import FallbackMode, ProductionResult
from cli.app import app
from datastore.readings import JsonReadingStore
from notify.mailer import NotificationError
from services.delta import DeltaEngine
from services.report import ReportService
from services.window import WindowResolver
from settings import Settings

NOW = 1713441600
APR_17_START = 1713312000


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.calls: List[tuple[str, Optional[int], Optional[date]]] = []
        self.payload: Dict[str, Any] = {
            "window_label": "2024-04-17",
            "window_start": APR_17_START,
            "window_end": APR_17_START + 86400,
            "status": "EXACT",
            "delta": 15.0,
            "first_reading": {"timestamp": APR_17_START + 60, "value": 10.0},
            "last_reading": {"timestamp": APR_17_START + 120, "value": 25.0},
            "reading_count_in_window": 2,
            "used_fallback": False,
            "verified_delta": None,
            "warning": None,
            "malformed_count": 0,
        }
        self.closed = False

    def get_report(self, day_offset: Optional[int] = None, target_date: Optional[date] = None) -> Dict[str, Any]:
        self.calls.append(("get", day_offset, target_date))
        return dict(self.payload)

    def send_report(self, day_offset: Optional[int] = None, target_date: Optional[date] = None) -> Dict[str, Any]:
        self.calls.append(("send", day_offset, target_date))
        return dict(self.payload)

    def close(self) -> None:
        self.closed = True


class RecordingNotifier:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.sent: List[ProductionResult] = []
        self.error = error

    def send(self, result: ProductionResult) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(result)


BASE_SETTINGS = Settings(
    readings_path=None,
    readings_collection="production",
    timezone_offset_seconds=0,
    day_offset=-1,
    fallback_mode="bounded",
    fallback_span_seconds=86400,
    smtp_host="smtp.example.com",
    smtp_port=465,
    smtp_starttls=False,
    sender_email="plant@example.com",
    recipient_email="boss@example.com",
    smtp_password="secret",
    log_level="INFO",
)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def _install_service(monkeypatch, notifier: Optional[RecordingNotifier], settings: Settings = BASE_SETTINGS) -> ReportService:
    store = JsonReadingStore(name="production")
    store.put_record({"timestamp": APR_17_START + 60, "value": 10.0})
    store.put_record({"timestamp": APR_17_START + 120, "value": 25.0})
    service = ReportService(
        store=store,
        engine=DeltaEngine(),
        resolver=WindowResolver(offset_seconds=0, clock=lambda: NOW),
        notifier=notifier,
        fallback_mode=FallbackMode.bounded,
    )
    monkeypatch.setattr("cli.app.build_default_service", lambda: service)
    monkeypatch.setattr("cli.app.get_settings", lambda: settings)
    return service


def test_report_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["--base-url", "http://reports:9000/", "report", "--date", "2024-04-17"])

    assert result.exit_code == 0
    assert "Production Result" in result.output
    assert "window_label: 2024-04-17" in result.output
    assert "delta: 15.0" in result.output
    assert stub.calls == [("get", None, date(2024, 4, 17))]
    assert stub.config.base_url == "http://reports:9000"
    assert stub.closed is True


def test_send_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["send", "--day-offset=-2"])

    assert result.exit_code == 0
    assert "Report for 2024-04-17 sent." in result.output
    assert stub.calls == [("send", -2, None)]


def test_report_command_shows_warning(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    stub.payload.update(delta=-20.0, warning="counter decreased by 20.0 over the window")
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["report"])

    assert result.exit_code == 0
    assert "Warning: counter decreased" in result.output


def test_run_command_computes_locally(monkeypatch, runner: CliRunner) -> None:
    notifier = RecordingNotifier()
    _install_service(monkeypatch, notifier)

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 0
    assert "status: EXACT" in result.output
    assert "delta: 15.0" in result.output
    assert notifier.sent == []


def test_run_command_sends(monkeypatch, runner: CliRunner) -> None:
    notifier = RecordingNotifier()
    _install_service(monkeypatch, notifier)

    result = runner.invoke(app, ["run", "--send"])

    assert result.exit_code == 0
    assert len(notifier.sent) == 1
    assert "Report for 2024-04-17 sent." in result.output


def test_run_command_send_requires_credentials(monkeypatch, runner: CliRunner) -> None:
    notifier = RecordingNotifier()
    settings = dataclasses.replace(BASE_SETTINGS, smtp_password=None, recipient_email=None)
    _install_service(monkeypatch, notifier, settings=settings)

    result = runner.invoke(app, ["run", "--send"])

    assert result.exit_code == 1
    assert "RECIPIENT_EMAIL" in result.output
    assert "SMTP_PASSWORD" in result.output
    assert notifier.sent == []


def test_run_command_delivery_failure_exits_non_zero(monkeypatch, runner: CliRunner) -> None:
    _install_service(monkeypatch, RecordingNotifier(error=NotificationError("Email delivery failed: boom")))

    result = runner.invoke(app, ["run", "--send"])

    assert result.exit_code == 1
    assert "boom" in result.output


def test_run_command_writes_html_report(monkeypatch, runner: CliRunner, tmp_path) -> None:
    notifier = RecordingNotifier()
    _install_service(monkeypatch, notifier)
    target = tmp_path / "report.html"

    result = runner.invoke(app, ["run", "--output", str(target)])

    assert result.exit_code == 0
    assert f"HTML report written to {target}" in result.output
    html = target.read_text(encoding="utf-8")
    assert "2024-04-17" in html
    assert "15.00" in html
    assert notifier.sent == []


def test_run_command_output_failure_exits_non_zero(monkeypatch, runner: CliRunner, tmp_path) -> None:
    _install_service(monkeypatch, RecordingNotifier())
    target = tmp_path / "missing" / "report.html"

    result = runner.invoke(app, ["run", "--output", str(target)])

    assert result.exit_code == 1
    assert "Could not write report" in result.output
    assert not target.exists()
