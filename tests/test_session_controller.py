"""Tests for the session lifecycle and event handling."""

import asyncio
from dataclasses import replace

import pytest

from coachwire.core.config import ClosureConfig, CoachwireConfig, SessionConfig
from coachwire.core.errors import CredentialError, NotConnectedError, TransportError
from coachwire.modality import Modality
from coachwire.render.base import END_MARKER
from coachwire.session.controller import SessionController
from coachwire.session.models import ConnectionState, ConnectOptions, Role

from conftest import FakeAcquirer, FakeTransport, MemorySurface, make_controller

FAST = replace(
    CoachwireConfig(),
    session=SessionConfig(connect_fallback_s=0.01),
    closure=ClosureConfig(disconnect_grace_s=0.01),
)


async def _connected(**kwargs):
    controller, transport, surface, clock = make_controller(**kwargs)
    await controller.connect()
    transport.emit({"type": "session.created"})
    return controller, transport, surface, clock


def _assistant_done(response_id, text, item_id="item_a", purpose=None, usage=None):
    response = {
        "id": response_id,
        "output": [
            {
                "id": item_id,
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": text}],
            }
        ],
    }
    if purpose:
        response["metadata"] = {"purpose": purpose}
    if usage:
        response["usage"] = usage
    return {"type": "response.done", "response": response}


# ─── Connect ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_connect_reports_connecting_then_connected():
    controller, transport, surface, _ = make_controller()
    await controller.connect()

    assert controller.state is ConnectionState.CONNECTING
    assert surface.statuses[-1].connecting
    assert transport.credential.token == "ek_test"

    transport.emit({"type": "session.created"})

    assert controller.state is ConnectionState.CONNECTED
    assert surface.statuses[-1].connected
    assert transport.mute_calls == [False]
    await controller.disconnect()


@pytest.mark.asyncio
async def test_connect_sends_initial_session_config():
    controller, transport, _, _ = make_controller()
    await controller.connect(ConnectOptions(instructions="Be brief.", output_modalities=("audio",)))

    (update,) = transport.of_type("session.update")
    assert update["session"] == {
        "type": "realtime",
        "instructions": "Be brief.",
        "output_modalities": ["audio"],
    }
    assert controller.last_sent_config == ("Be brief.", ["audio"])
    await controller.disconnect()


@pytest.mark.asyncio
async def test_greeting_is_sent_once_and_never_rendered():
    controller, transport, surface, _ = await _connected()

    assert transport.user_texts() == ["おはようございます"]
    assert transport.of_type("response.create")[-1] == {"type": "response.create", "response": {}}
    assert controller.greeting_sent

    transport.emit({"type": "session.created"})
    assert transport.user_texts() == ["おはようございます"]

    # The server echoes the greeting back as a user item
    transport.emit(
        {
            "type": "conversation.item.created",
            "item": {"id": "g1", "role": "user", "content": [{"type": "input_text", "text": "おはようございます"}]},
        }
    )
    assert surface.log.texts(Role.USER) == []
    await controller.disconnect()


@pytest.mark.asyncio
async def test_fallback_marks_connected_without_session_created():
    controller, transport, surface, _ = make_controller(settings=FAST)
    await controller.connect()
    assert not controller.is_connected()

    await asyncio.sleep(0.05)

    assert controller.is_connected()
    assert transport.user_texts() == ["おはようございます"]
    await controller.disconnect()


@pytest.mark.asyncio
async def test_credential_failure_leaves_session_disconnected():
    acquirer = FakeAcquirer(error=CredentialError("Token generation failed (HTTP 500): boom", status_code=500))
    controller, transport, surface, _ = make_controller(acquirer=acquirer)

    with pytest.raises(CredentialError):
        await controller.connect()

    assert controller.state is ConnectionState.DISCONNECTED
    assert controller.transport is None
    assert transport.credential is None
    assert not surface.statuses[-1].connected
    assert not surface.statuses[-1].connecting


@pytest.mark.asyncio
async def test_transport_failure_closes_channel_and_reraises():
    transport = FakeTransport()
    transport.fail_connect = TransportError("Could not open realtime channel: refused")
    controller, _, surface, _ = make_controller(transport=transport)

    with pytest.raises(TransportError):
        await controller.connect()

    assert transport.closed
    assert controller.analyzer is None
    assert controller.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_reconnect_tears_down_previous_session():
    transports = [FakeTransport(), FakeTransport()]
    surface = MemorySurface()
    controller = SessionController(
        acquirer=FakeAcquirer(),
        transport_factory=lambda: transports.pop(0),
        surface=surface,
    )
    await controller.connect()
    first = controller.transport
    first.emit({"type": "session.created"})

    await controller.connect()

    assert first.closed
    assert controller.transport is not first
    # The old channel no longer reaches the controller
    first.emit({"type": "response.output_text.done", "response_id": "r", "text": "late"})
    assert surface.log.texts(Role.ASSISTANT) == []
    await controller.disconnect()


# ─── Rendering ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_user_text_renders_immediately_and_echo_is_dropped():
    controller, transport, surface, _ = await _connected(modality=Modality.TEXT)

    controller.send_user_text("Hello world")

    assert surface.log.texts(Role.USER) == ["Hello world"]
    assert transport.user_texts()[-1] == "Hello world"

    transport.emit(
        {
            "type": "conversation.item.created",
            "item": {"id": "u1", "role": "user", "content": [{"type": "input_text", "text": "Hello   world"}]},
        }
    )
    assert surface.log.texts(Role.USER) == ["Hello world"]
    await controller.disconnect()


@pytest.mark.asyncio
async def test_send_user_text_requires_connection():
    controller, _, _, _ = make_controller()
    with pytest.raises(NotConnectedError):
        controller.send_user_text("hi")


@pytest.mark.asyncio
async def test_internal_responses_never_reach_the_log():
    controller, transport, surface, _ = await _connected()

    transport.emit(
        {"type": "response.created", "response": {"id": "r_p", "metadata": {"purpose": "progress-score"}}}
    )
    transport.emit({"type": "response.output_item.added", "response_id": "r_p", "item": {"id": "i_p"}})
    transport.emit({"type": "response.output_text.done", "response_id": "r_p", "item_id": "i_p", "text": '{"scores":{}}'})
    transport.emit(_assistant_done("r_p", '{"scores":{}}', item_id="i_p", purpose="progress-score"))

    transport.emit({"type": "response.created", "response": {"id": "r_v"}})
    transport.emit(_assistant_done("r_v", "What would success look like?", item_id="i_v"))

    assert surface.log.texts(Role.ASSISTANT) == ["What would success look like?"]
    await controller.disconnect()


@pytest.mark.asyncio
async def test_same_message_delivered_twice_renders_once():
    controller, transport, surface, _ = await _connected()

    transport.emit({"type": "response.output_audio_transcript.done", "response_id": "r1", "item_id": "i1", "transcript": "Tell me more."})
    transport.emit(_assistant_done("r1", "Tell me more.", item_id="i1"))

    assert surface.log.texts(Role.ASSISTANT) == ["Tell me more."]
    assert surface.speaking
    await controller.disconnect()


@pytest.mark.asyncio
async def test_speech_indicators():
    controller, transport, surface, _ = await _connected()
    surface.speaking = True

    transport.emit({"type": "input_audio_buffer.speech_started"})
    assert surface.recording
    assert not surface.speaking

    transport.emit({"type": "input_audio_buffer.speech_stopped"})
    assert not surface.recording
    await controller.disconnect()


# ─── Session config ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_update_session_config_is_noop_when_unchanged():
    controller, transport, _, _ = await _connected()
    instructions, modalities = controller.last_sent_config
    before = len(transport.of_type("session.update"))

    assert controller.update_session_config(instructions, modalities) is False
    assert len(transport.of_type("session.update")) == before

    assert controller.update_session_config(output_modalities=["text"]) is True
    assert len(transport.of_type("session.update")) == before + 1
    assert controller.last_sent_config == (instructions, ["text"])
    await controller.disconnect()


@pytest.mark.asyncio
async def test_update_session_config_without_session():
    controller, _, _, _ = make_controller()
    assert controller.update_session_config("x", ["text"]) is False


@pytest.mark.asyncio
async def test_update_session_config_send_failure_keeps_last_config():
    controller, transport, _, _ = await _connected()
    last = controller.last_sent_config
    transport.fail_sends = True

    assert controller.update_session_config(output_modalities=["text"]) is False
    assert controller.last_sent_config == last
    transport.fail_sends = False
    await controller.disconnect()


@pytest.mark.asyncio
async def test_modality_change_mutes_and_forces_next_update():
    controller, transport, surface, _ = await _connected()

    controller.handle_modality_change(Modality.TEXT)

    assert transport.mute_calls[-1] is True
    assert not surface.recording
    assert controller.desired_output_modalities() == ["text"]
    assert controller.update_session_config(output_modalities=controller.desired_output_modalities())
    await controller.disconnect()


# ─── Teardown ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_error_event_tears_down_and_alerts():
    controller, transport, surface, _ = await _connected()

    transport.emit({"type": "error", "error": {"message": "session expired"}})
    await asyncio.sleep(0)

    assert controller.state is ConnectionState.DISCONNECTED
    assert surface.alerts == ["Error: session expired"]
    assert transport.closed
    assert controller.analyzer is None


@pytest.mark.asyncio
async def test_disconnect_appends_end_marker_and_disposes():
    controller, transport, surface, _ = await _connected()
    analyzer = controller.analyzer

    await controller.disconnect()

    assert surface.log.texts()[-1] == END_MARKER
    assert transport.closed
    assert analyzer.disposed
    assert not controller.greeting_sent
    assert surface.alerts == []


# ─── Usage ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_summary_becomes_available_after_four_responses():
    controller, transport, surface, _ = await _connected()

    for n in range(3):
        transport.emit(_assistant_done(f"r{n}", f"reply {n}", item_id=f"i{n}", usage={"input_tokens": 10, "output_tokens": 5}))
    assert not surface.summary_available

    transport.emit(_assistant_done("r3", "reply 3", item_id="i3", usage={"input_tokens": 10, "output_tokens": 5}))
    assert surface.summary_available
    assert controller.usage.total_tokens == 60

    await controller.disconnect()
    assert not surface.summary_available
    assert surface.statuses[-1].has_usage_data


# ─── Summary ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_text_summary_disconnects_after_grace():
    controller, transport, surface, _ = await _connected(settings=FAST, modality=Modality.TEXT)

    assert controller.negotiator.request_summary(triggered_by_analyzer=False)
    assert transport.with_purpose("session-summary")

    transport.emit(
        {"type": "response.created", "response": {"id": "r_sum", "metadata": {"purpose": "session-summary"}}}
    )
    transport.emit(_assistant_done("r_sum", "Today you decided to...", item_id="i_sum", purpose="session-summary"))

    assert surface.log.texts(Role.ASSISTANT) == ["Today you decided to..."]
    assert controller.negotiator.disconnect_scheduled

    await asyncio.sleep(0.05)

    assert controller.state is ConnectionState.DISCONNECTED
    assert transport.closed
    assert surface.log.texts()[-1] == END_MARKER


@pytest.mark.asyncio
async def test_voice_summary_waits_for_playback_stop():
    controller, transport, _, _ = await _connected(settings=FAST)

    controller.negotiator.request_summary(triggered_by_analyzer=False)
    transport.emit({"type": "response.created", "response": {"id": "r_sum"}})
    transport.emit(_assistant_done("r_sum", "Summary.", item_id="i_sum"))

    assert not controller.negotiator.disconnect_scheduled
    assert controller.negotiator.is_waiting_for_playback_stop()

    transport.emit({"type": "output_audio_buffer.stopped"})
    assert controller.negotiator.disconnect_scheduled

    await asyncio.sleep(0.05)
    assert controller.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_voice_summary_outlives_earlier_audio_ending():
    controller, transport, _, _ = await _connected(settings=FAST)

    controller.negotiator.request_summary(triggered_by_analyzer=False)
    transport.emit(
        {"type": "response.created", "response": {"id": "r_sum", "metadata": {"purpose": "session-summary"}}}
    )
    transport.emit({"type": "output_audio_buffer.stopped", "response_id": "r_prev"})
    await asyncio.sleep(0.05)

    assert controller.is_connected()
    assert not controller.negotiator.disconnect_scheduled

    transport.emit({"type": "response.output_audio.done", "response_id": "r_sum"})
    transport.emit(_assistant_done("r_sum", "Summary.", item_id="i_sum", purpose="session-summary"))
    assert controller.negotiator.disconnect_scheduled

    await asyncio.sleep(0.05)
    assert controller.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_summary_prompt_is_not_rendered_as_user_text():
    controller, transport, surface, _ = await _connected(modality=Modality.TEXT)

    controller.negotiator.request_summary(triggered_by_analyzer=False)

    assert surface.log.texts(Role.USER) == []
    assert surface.log.texts(Role.SYSTEM) == ["セッションのまとめを要求しました。"]
    await controller.disconnect()
