"""Tests for the composition root and its slash commands."""

import pytest

from coachwire.app import HELP_TEXT, CoachApp
from coachwire.core.errors import CredentialError
from coachwire.modality import CONNECT_FIRST_HINT, Modality
from coachwire.preferences import PreferenceStore
from coachwire.session.models import Role

from conftest import FakeAcquirer, FakeTransport, MemorySurface


def _app(tmp_path, acquirer=None):
    transport = FakeTransport()
    surface = MemorySurface()
    app = CoachApp(
        surface,
        acquirer=acquirer or FakeAcquirer(),
        transport_factory=lambda: transport,
        preferences=PreferenceStore(tmp_path / "prefs.json"),
    )
    return app, transport, surface


async def _connected_app(tmp_path):
    app, transport, surface = _app(tmp_path)
    assert await app.connect()
    transport.emit({"type": "session.created"})
    return app, transport, surface


@pytest.mark.asyncio
async def test_connect_uses_text_output_and_enables_input(tmp_path):
    app, transport, _ = await _connected_app(tmp_path)

    assert transport.of_type("session.update")[0]["session"]["output_modalities"] == ["text"]
    assert transport.mute_calls == [True]
    assert app.text_input.enabled
    await app.close()


@pytest.mark.asyncio
async def test_plain_line_is_sent_as_user_text(tmp_path):
    app, transport, surface = await _connected_app(tmp_path)

    assert await app.handle_input("  I feel stuck at work ") is True

    assert transport.user_texts()[-1] == "I feel stuck at work"
    assert surface.log.texts(Role.USER) == ["I feel stuck at work"]
    await app.close()


@pytest.mark.asyncio
async def test_text_before_connect_shows_hint(tmp_path):
    app, transport, surface = _app(tmp_path)

    await app.handle_input("hello")

    assert surface.hints == [CONNECT_FIRST_HINT]
    assert app.text_input.draft == "hello"


@pytest.mark.asyncio
async def test_connect_failure_alerts(tmp_path):
    app, _, surface = _app(tmp_path, acquirer=FakeAcquirer(CredentialError("Token generation failed (HTTP 401): bad key")))

    assert await app.connect() is False
    assert surface.alerts == ["Token generation failed (HTTP 401): bad key"]


@pytest.mark.asyncio
async def test_switching_to_voice_unmutes_and_updates_session(tmp_path):
    app, transport, _ = await _connected_app(tmp_path)

    await app.handle_input("/voice")

    assert app.modality.modality is Modality.VOICE
    assert transport.mute_calls[-1] is False
    assert transport.of_type("session.update")[-1]["session"]["output_modalities"] == ["audio"]
    assert not app.text_input.enabled

    updates = len(transport.of_type("session.update"))
    await app.handle_input("/voice")
    assert len(transport.of_type("session.update")) == updates
    await app.close()


@pytest.mark.asyncio
async def test_auto_summary_toggle_is_persisted(tmp_path):
    app, _, surface = await _connected_app(tmp_path)

    await app.handle_input("/auto off")

    assert app.controller.analyzer.auto_summary_enabled is False
    assert PreferenceStore(tmp_path / "prefs.json").load().auto_summary is False
    assert surface.hints[-1] == "auto summary off"
    await app.close()


@pytest.mark.asyncio
async def test_summary_command_posts_notice(tmp_path):
    app, transport, surface = await _connected_app(tmp_path)

    await app.handle_input("/summary")

    assert surface.log.texts(Role.SYSTEM) == ["セッションのまとめを要求しました。"]
    assert transport.with_purpose("session-summary")
    await app.close()


@pytest.mark.asyncio
async def test_unknown_command_shows_help(tmp_path):
    app, _, surface = _app(tmp_path)
    await app.handle_input("/dance")
    assert surface.hints == [HELP_TEXT]


@pytest.mark.asyncio
async def test_quit_disconnects(tmp_path):
    app, transport, surface = await _connected_app(tmp_path)

    assert await app.handle_input("/quit") is False

    assert transport.closed
    assert not app.controller.is_connected()
    assert not app.text_input.enabled
