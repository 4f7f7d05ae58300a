import mido
import pytest

from oscmidibridge.bridge import (
    CONTROL_CHANGE,
    MIDI_IN_PREFIX,
    NONE_LABEL,
    NOTE_ON,
    MidiOscBridge,
    parse_osc_address,
)
from oscmidibridge.messagelog import MessageLog
from oscmidibridge.osc import OscMessage
from oscmidibridge.settings import Settings


class FakePort:
    def __init__(self, name, callback=None):
        self.name = name
        self.callback = callback
        self.sent = []
        self.closed = False

    def send(self, message):
        self.sent.append(message)

    def close(self):
        self.closed = True


class FakeSender:
    def __init__(self, host, port):
        self.host = host
        self.port = port
        self.sent = []
        self.closed = False

    def send(self, message):
        self.sent.append(message)

    def close(self):
        self.closed = True


class Devices:
    def __init__(self):
        self.inputs = {}
        self.outputs = {}
        self.senders = []

    def open_input(self, name, callback):
        port = FakePort(name, callback)
        self.inputs[name] = port
        return port

    def open_output(self, name):
        port = FakePort(name)
        self.outputs[name] = port
        return port

    def sender(self, host, port):
        sender = FakeSender(host, port)
        self.senders.append(sender)
        return sender


class FakeReceiver:
    def __init__(self, messages):
        self.messages = messages

    def poll(self):
        return list(self.messages)


@pytest.fixture
def devices():
    return Devices()


def build(devices, **overrides):
    values = dict(
        midi_in_port="In",
        midi_out_port="Out",
        midi_thru_port="Thru",
        osc_network="127.0.0.1",
        outgoing_port_osc=9000,
    )
    values.update(overrides)
    return MidiOscBridge(
        Settings(**values), devices.open_input, devices.open_output, devices.sender, MessageLog()
    )


def test_parse_note_on():
    assert parse_osc_address("/noteOn/1/60", NOTE_ON) == (1, 60)


def test_parse_is_case_insensitive():
    assert parse_osc_address("/NOTEON/2/61", NOTE_ON) == (2, 61)


def test_parse_control_change():
    assert parse_osc_address("/controlChange/16/7", CONTROL_CHANGE) == (16, 7)


@pytest.mark.parametrize(
    "address",
    ["/noteOn/0/60", "/noteOn/17/60", "/noteOn/1/abc", "/noteOn/x/60", "/other/1/60", "/noteOn/60"],
)
def test_parse_rejects(address):
    assert parse_osc_address(address, NOTE_ON) is None


def test_restores_ports_from_settings(devices):
    bridge = build(devices)
    assert (bridge.midi_in_active, bridge.midi_out_active, bridge.midi_thru_active) == (
        True,
        True,
        True,
    )
    assert set(devices.outputs) == {"Out", "Thru"}
    assert (devices.senders[0].host, devices.senders[0].port) == ("127.0.0.1", 9000)


def test_none_ports_stay_inactive(devices):
    bridge = build(devices, midi_in_port=NONE_LABEL, midi_out_port="", midi_thru_port=NONE_LABEL)
    assert not bridge.midi_in_active
    assert not bridge.midi_out_active
    assert not bridge.midi_thru_active
    assert devices.inputs == {} and devices.outputs == {}


def test_restore_failure_is_logged(devices):
    def failing_output(name):
        raise OSError("no such port")

    bridge = MidiOscBridge(
        Settings(midi_out_port="Out"),
        devices.open_input,
        failing_output,
        devices.sender,
        MessageLog(),
    )
    assert bridge.midi_out_active is False
    assert any("Out" in line for line in bridge.log)


def test_midi_note_on_normalized(devices):
    bridge = build(devices)
    bridge.handle_midi(mido.Message("note_on", channel=0, note=60, velocity=127))
    sent = devices.senders[0].sent
    assert [m.address for m in sent] == ["/noteOn/1/60"]
    assert sent[0].args == [1.0, 127]


def test_midi_note_on_raw(devices):
    bridge = build(devices, normalize_osc=False)
    bridge.handle_midi(mido.Message("note_on", channel=0, note=60, velocity=100))
    assert devices.senders[0].sent[0].args == [100, 100]


def test_midi_note_off_sends_zero_velocity(devices):
    bridge = build(devices)
    bridge.handle_midi(mido.Message("note_off", channel=0, note=60, velocity=50))
    assert devices.senders[0].sent[0].args == [0.0, 0]


def test_midi_control_change_normalized(devices):
    bridge = build(devices)
    bridge.handle_midi(mido.Message("control_change", channel=2, control=7, value=127))
    sent = devices.senders[0].sent[0]
    assert sent.address == "/controlChange/3/7"
    assert sent.args == [1.0]


def test_midi_forwarded_to_thru(devices):
    bridge = build(devices)
    message = mido.Message("note_on", channel=0, note=60, velocity=127)
    bridge.handle_midi(message)
    assert devices.outputs["Thru"].sent == [message]


def test_midi_log_lines(devices):
    bridge = build(devices, normalize_osc=False)
    bridge.handle_midi(mido.Message("note_on", channel=0, note=60, velocity=100))
    assert list(bridge.log)[-3:] == [
        "Midi In: Note On:60 100 Channel:1 In",
        "Midi Thru: Note On:60 100 Channel:1 Thru",
        "OSC Out: /noteOn/1/60 100",
    ]


def test_midi_ignored_when_input_disabled(devices):
    bridge = build(devices)
    bridge.select_midi_in(NONE_LABEL)
    bridge.handle_midi(mido.Message("note_on", channel=0, note=60, velocity=100))
    assert devices.senders[0].sent == []
    assert devices.inputs["In"].closed


def test_osc_note_on_to_midi(devices):
    bridge = build(devices, normalize_osc=False)
    bridge.handle_osc(OscMessage("/noteOn/2/64", [100]))
    expected = mido.Message("note_on", channel=1, note=64, velocity=100)
    assert devices.outputs["Out"].sent == [expected]
    assert devices.outputs["Thru"].sent == [expected]


def test_osc_note_on_normalized_full_scale(devices):
    bridge = build(devices)
    bridge.handle_osc(OscMessage("/noteOn/1/60", [1.0]))
    assert devices.outputs["Out"].sent[0].velocity == 127


def test_osc_control_change_normalized(devices):
    bridge = build(devices)
    bridge.handle_osc(OscMessage("/controlChange/1/10", [1.0]))
    assert devices.outputs["Out"].sent == [
        mido.Message("control_change", channel=0, control=10, value=127)
    ]
    assert devices.outputs["Thru"].sent == []


def test_osc_control_change_raw(devices):
    bridge = build(devices, normalize_osc=False)
    bridge.handle_osc(OscMessage("/controlChange/1/10", [42]))
    assert devices.outputs["Out"].sent[0].value == 42


def test_osc_trailing_slash_is_stripped(devices):
    bridge = build(devices, normalize_osc=False)
    bridge.handle_osc(OscMessage("/noteOn/1/60/", [5]))
    assert devices.outputs["Out"].sent == [
        mido.Message("note_on", channel=0, note=60, velocity=5)
    ]


@pytest.mark.parametrize(
    "address", ["/noteOn/0/60", "/noteOn/17/60", "/noteOn/1/abc", "/controlChange/x/1"]
)
def test_osc_invalid_addresses_send_nothing(devices, address):
    bridge = build(devices, normalize_osc=False)
    bridge.handle_osc(OscMessage(address, [5]))
    assert devices.outputs["Out"].sent == []


def test_osc_out_of_range_velocity_dropped(devices):
    bridge = build(devices, normalize_osc=False)
    bridge.handle_osc(OscMessage("/noteOn/1/60", [200]))
    assert devices.outputs["Out"].sent == []


def test_osc_note_off_is_ignored(devices):
    bridge = build(devices, normalize_osc=False)
    bridge.handle_osc(OscMessage("/noteOff/1/60", [1]))
    assert devices.outputs["Out"].sent == []
    assert list(bridge.log)[-1] == "Osc In:/noteOff/1/60 1"


def test_osc_unknown_address_is_logged(devices):
    bridge = build(devices, normalize_osc=False)
    bridge.handle_osc(OscMessage("/foo", [1, "bar"]))
    assert list(bridge.log)[-1] == "/foo 1 bar "


def test_osc_empty_messages_ignored(devices):
    bridge = build(devices)
    before = list(bridge.log)
    bridge.handle_osc(OscMessage("", [1]))
    bridge.handle_osc(OscMessage("/noteOn/1/60"))
    assert list(bridge.log) == before
    assert devices.outputs["Out"].sent == []


def test_osc_logged_but_not_sent_without_output(devices):
    bridge = build(devices, midi_out_port="", normalize_osc=False)
    bridge.handle_osc(OscMessage("/noteOn/1/60", [100]))
    assert list(bridge.log)[-1] == "Osc In:/noteOn/1/60 100"
    assert devices.outputs["Thru"].sent == []


def test_osc_in_log_normalized(devices):
    bridge = build(devices)
    bridge.handle_osc(OscMessage("/x", [0.5]))
    assert "Osc In:/x 0.5" in list(bridge.log)


def test_toggle_normalize(devices):
    bridge = build(devices)
    assert bridge.toggle_normalize() is False
    assert bridge.settings.normalize_osc is False
    assert bridge.toggle_normalize() is True


def test_select_network_replaces_sender(devices):
    bridge = build(devices)
    bridge.select_network("10.0.0.255")
    assert devices.senders[0].closed
    assert (devices.senders[1].host, devices.senders[1].port) == ("10.0.0.255", 9000)
    assert bridge.settings.osc_network == "10.0.0.255"


def test_labels_and_thru_enabled(devices):
    bridge = build(devices)
    assert bridge.thru_enabled
    bridge.select_midi_in(NONE_LABEL)
    assert bridge.midi_in_label == MIDI_IN_PREFIX + NONE_LABEL
    assert bridge.thru_enabled is False


def test_poll_osc_handles_waiting_messages(devices):
    bridge = build(devices, normalize_osc=False)
    bridge.poll_osc(FakeReceiver([OscMessage("/noteOn/1/60", [5])]))
    assert len(devices.outputs["Out"].sent) == 1


def test_close_closes_everything(devices):
    bridge = build(devices)
    bridge.close()
    assert devices.inputs["In"].closed
    assert all(port.closed for port in devices.outputs.values())
    assert devices.senders[0].closed
    assert not bridge.midi_in_active