"""Routing between MIDI ports and OSC messages."""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable
from typing import Any, Protocol

import mido

from .messagelog import MessageLog
from .osc import OscError, OscMessage, OscSender
from .settings import Settings

NONE_LABEL = "[none]"
MIDI_IN_PREFIX = "Midi In to OSC: "
MIDI_OUT_PREFIX = "Midi Out from OSC: "
MIDI_THRU_PREFIX = "Midi THRU: "
OSC_FORMAT_INFO = "OSC Format: noteOn/Channel/Pitch  controlChange/Channel/Value"

NOTE_ON = "noteOn"
NOTE_OFF = "noteOff"
CONTROL_CHANGE = "controlChange"

PORT_ERRORS = (OSError, ImportError)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class _Port(Protocol):
    def close(self) -> None: ...


class _Receiver(Protocol):
    def poll(self) -> Iterable[OscMessage]: ...


def _leading_int(text: str) -> int | None:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else None


def _format_number(value: float) -> str:
    return f"{value:g}"


def parse_osc_address(address: str, kind: str) -> tuple[int, int] | None:
    """Parse ``/<kind>/<channel>/<number>`` into ``(channel, number)``.

    The kind is matched case-insensitively. Like integer parsing in the
    original address scheme, leading digits are taken and anything after
    them is ignored. Returns None when the address does not fit or the
    channel lies outside 1..16.
    """
    head = f"/{kind.lower()}/"
    if not address.lower().startswith(head):
        return None
    number = _leading_int(address.rpartition("/")[2])
    if number is None:
        return None
    rest = address[len(head):]
    slash = rest.rfind("/")
    channel = _leading_int(rest if slash < 0 else rest[:slash])
    if channel is None or not 1 <= channel <= 16:
        return None
    return channel, number


def _open_mido_input(name: str, callback: Callable[[mido.Message], None]) -> Any:
    return mido.open_input(name, callback=callback)


def _open_mido_output(name: str) -> Any:
    return mido.open_output(name)


class MidiOscBridge:
    """Forwards MIDI input to OSC and OSC input to MIDI output."""

    def __init__(
        self,
        settings: Settings | None = None,
        open_input: Callable[[str, Callable[[mido.Message], None]], Any] = _open_mido_input,
        open_output: Callable[[str], Any] = _open_mido_output,
        sender_factory: Callable[[str, int], Any] = OscSender,
        log: MessageLog | None = None,
    ) -> None:
        self.settings = settings if settings is not None else Settings()
        self.log = log if log is not None else MessageLog()
        self._open_input = open_input
        self._open_output = open_output
        self._sender_factory = sender_factory
        self._lock = threading.RLock()
        self._midi_in: Any = None
        self._midi_out: Any = None
        self._midi_thru: Any = None
        self._sender: Any = None
        self.midi_in_active = False
        self.midi_out_active = False
        self.midi_thru_active = False
        self._restore()

    def _restore(self) -> None:
        ports = (
            (self.settings.midi_in_port, self.select_midi_in),
            (self.settings.midi_out_port, self.select_midi_out),
            (self.settings.midi_thru_port, self.select_midi_thru),
        )
        for name, select in ports:
            if name and name != NONE_LABEL:
                try:
                    select(name)
                except PORT_ERRORS as exc:
                    self.log.add(f"Could not open MIDI port {name}: {exc}")
        if self.settings.osc_network:
            self.select_network(self.settings.osc_network)

    @property
    def normalize(self) -> bool:
        return self.settings.normalize_osc

    @property
    def midi_in_label(self) -> str:
        return MIDI_IN_PREFIX + self.settings.midi_in_port

    @property
    def midi_out_label(self) -> str:
        return MIDI_OUT_PREFIX + self.settings.midi_out_port

    @property
    def midi_thru_label(self) -> str:
        return MIDI_THRU_PREFIX + self.settings.midi_thru_port

    @property
    def thru_enabled(self) -> bool:
        """The thru port can only be chosen while MIDI input is active."""
        return self.midi_in_active

    @staticmethod
    def _close(port: _Port | None) -> None:
        if port is not None:
            port.close()

    def select_midi_in(self, name: str) -> None:
        """Open ``name`` as the MIDI input, or disable input for the none entry."""
        with self._lock:
            self._close(self._midi_in)
            self._midi_in = None
            self.midi_in_active = False
            self.settings.midi_in_port = name
            if name == NONE_LABEL:
                return
            self._midi_in = self._open_input(name, self.handle_midi)
            self.midi_in_active = True
            self.log.add(f"Midi In:{name}")

    def select_midi_out(self, name: str) -> None:
        """Open ``name`` as the MIDI output, or disable output for the none entry."""
        with self._lock:
            self._close(self._midi_out)
            self._midi_out = None
            self.midi_out_active = False
            self.settings.midi_out_port = name
            if name == NONE_LABEL:
                return
            self._midi_out = self._open_output(name)
            self.midi_out_active = True
            self.log.add(f"Midi Out:{name}")

    def select_midi_thru(self, name: str) -> None:
        """Open ``name`` as the MIDI thru port, or disable thru for the none entry."""
        with self._lock:
            self._close(self._midi_thru)
            self._midi_thru = None
            self.midi_thru_active = False
            self.settings.midi_thru_port = name
            if name == NONE_LABEL:
                return
            self._midi_thru = self._open_output(name)
            self.midi_thru_active = True
            self.log.add(f"Midi Thru:{name}")

    def select_network(self, address: str) -> None:
        """Send OSC to ``address`` on the configured outgoing port."""
        with self._lock:
            self._close(self._sender)
            self._sender = None
            self.settings.osc_network = address
            self._sender = self._sender_factory(address, self.settings.outgoing_port_osc)

    def toggle_normalize(self) -> bool:
        """Flip OSC value normalisation and return the new state."""
        with self._lock:
            self.settings.normalize_osc = not self.settings.normalize_osc
            return self.settings.normalize_osc

    def _send_osc(self, message: OscMessage) -> None:
        if self._sender is None:
            return
        try:
            self._sender.send(message)
        except OSError as exc:
            self.log.add(f"OSC send failed: {exc}")

    def handle_midi(self, message: mido.Message) -> None:
        """Translate an incoming MIDI message to OSC (and thru, when active)."""
        with self._lock:
            if not self.midi_in_active:
                return
            if message.type == "note_on":
                self._midi_note_on(message.channel + 1, message.note, message.velocity)
            elif message.type == "note_off":
                self._midi_note_on(message.channel + 1, message.note, 0)
            elif message.type == "control_change":
                self._midi_control_change(message.channel + 1, message.control, message.value)

    def _midi_note_on(self, channel: int, pitch: int, velocity: int) -> None:
        thru_text = None
        if self.midi_thru_active and self._midi_thru is not None:
            self._midi_thru.send(
                mido.Message("note_on", channel=channel - 1, note=pitch, velocity=velocity)
            )
            thru_text = (
                f"Midi Thru: Note On:{pitch} {velocity} Channel:{channel} "
                f"{self.settings.midi_thru_port}"
            )
        address = f"/noteOn/{channel}/{pitch}"
        if self.normalize:
            first: float | int = velocity / 127.0
            shown = _format_number(first)
        else:
            first = velocity
            shown = str(velocity)
        self._send_osc(OscMessage(address, [first, velocity]))
        self.log.add(
            f"Midi In: Note On:{pitch} {velocity} Channel:{channel} {self.settings.midi_in_port}"
        )
        if thru_text is not None:
            self.log.add(thru_text)
        self.log.add(f"OSC Out: {address} {shown}")

    def _midi_control_change(self, channel: int, control: int, value: int) -> None:
        thru_text = None
        if self.midi_thru_active and self._midi_thru is not None:
            self._midi_thru.send(
                mido.Message("control_change", channel=channel - 1, control=control, value=value)
            )
            thru_text = (
                f"Midi Thru: Control Change:{control} {value} Channel:{channel} "
                f"{self.settings.midi_thru_port}"
            )
        address = f"/controlChange/{channel}/{control}"
        if self.normalize:
            arg: float | int = value / 127.0
            shown = _format_number(arg)
        else:
            arg = value
            shown = str(value)
        self._send_osc(OscMessage(address, [arg]))
        self.log.add(
            f"Midi In: Control Change:{control} {value} Channel:{channel} "
            f"{self.settings.midi_in_port}"
        )
        if thru_text is not None:
            self.log.add(thru_text)
        self.log.add(f"OSC Out: {address} {shown}")

    def _incoming_text(self, message: OscMessage) -> str:
        try:
            if self.normalize:
                return _format_number(message.arg_as_float(0))
            return str(message.arg_as_int(0))
        except OscError:
            return message.arg_as_string(0)

    def handle_osc(self, message: OscMessage) -> None:
        """Translate an incoming OSC message to MIDI output."""
        with self._lock:
            if not message.address or not message.args:
                return
            self.log.add(f"Osc In:{message.address} {self._incoming_text(message)}")
            if not self.midi_out_active:
                return
            address = message.address
            if address.endswith("/"):
                address = address[:-1]
            lowered = address.lower()
            if lowered.startswith(f"/{NOTE_OFF.lower()}/"):
                return
            if lowered.startswith(f"/{NOTE_ON.lower()}/"):
                self._osc_note_on(address, message)
            elif lowered.startswith(f"/{CONTROL_CHANGE.lower()}/"):
                self._osc_control_change(address, message)
            else:
                args = "".join(
                    f"{message.arg_as_string(index)} " for index, _ in enumerate(message.args)
                )
                self.log.add(f"{address} {args}")

    def _osc_note_on(self, address: str, message: OscMessage) -> None:
        parsed = parse_osc_address(address, NOTE_ON)
        if parsed is None:
            return
        channel, pitch = parsed
        try:
            # Normalised velocities are truncated to an integer before scaling.
            velocity = message.arg_as_int(0)
        except OscError:
            return
        if self.normalize:
            velocity *= 127
        try:
            midi = mido.Message("note_on", channel=channel - 1, note=pitch, velocity=velocity)
        except (ValueError, TypeError):
            return
        self._midi_out.send(midi)
        if self._midi_thru is not None:
            self._midi_thru.send(midi)
        thru_name = self.settings.midi_thru_port if self._midi_thru is not None else ""
        self.log.add(
            f"Midi Out: Note On:{pitch} 0 Channel:{channel} {self.settings.midi_out_port}"
        )
        self.log.add(f"Midi Out: Note On:{pitch} 0 Channel:{channel} {thru_name}")

    def _osc_control_change(self, address: str, message: OscMessage) -> None:
        parsed = parse_osc_address(address, CONTROL_CHANGE)
        if parsed is None:
            return
        channel, control = parsed
        try:
            if self.normalize:
                value = int(message.arg_as_float(0) * 127)
            else:
                value = message.arg_as_int(0)
        except (OscError, ValueError, OverflowError):
            return
        try:
            midi = mido.Message(
                "control_change", channel=channel - 1, control=control, value=value
            )
        except (ValueError, TypeError):
            return
        self._midi_out.send(midi)
        self.log.add(
            f"Midi Out: CC:{control} Val:{value} Channel:{channel} {self.settings.midi_out_port}"
        )

    def poll_osc(self, receiver: _Receiver) -> None:
        """Handle every OSC message waiting on ``receiver``."""
        for message in receiver.poll():
            self.handle_osc(message)

    def close(self) -> None:
        """Close every open MIDI port and the OSC sender."""
        with self._lock:
            for port in (self._midi_in, self._midi_out, self._midi_thru, self._sender):
                self._close(port)
            self._midi_in = self._midi_out = self._midi_thru = self._sender = None
            self.midi_in_active = self.midi_out_active = self.midi_thru_active = False

    def __enter__(self) -> MidiOscBridge:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()