"""Command-line entry point that runs the MIDI/OSC bridge."""

from __future__ import annotations

import argparse
import ipaddress
import socket
import sys
import time
from collections.abc import Sequence
from dataclasses import replace

import mido
import psutil

from .bridge import NONE_LABEL, OSC_FORMAT_INFO, PORT_ERRORS, MidiOscBridge
from .messagelog import MessageLog
from .osc import OscReceiver
from .settings import Settings, load_settings, save_settings

LOOPBACK = "127.0.0.1"
FRAME_INTERVAL = 1 / 30

_SITE_LOCAL = tuple(
    ipaddress.IPv4Network(network) for network in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16")
)


class _ConsoleLog(MessageLog):
    """Message log that also echoes every line to standard output."""

    def add(self, text: str) -> None:
        print(text, flush=True)
        super().add(text)


def list_broadcast_addresses() -> list[str]:
    """Return the loopback address followed by broadcast addresses of site-local interfaces."""
    found = [LOOPBACK]
    for entries in psutil.net_if_addrs().values():
        for entry in entries:
            if entry.family != socket.AF_INET:
                continue
            try:
                address = ipaddress.IPv4Address(entry.address)
            except ValueError:
                continue
            if not any(address in network for network in _SITE_LOCAL):
                continue
            broadcast = entry.broadcast
            if not broadcast and entry.netmask:
                network = ipaddress.IPv4Network(f"{entry.address}/{entry.netmask}", strict=False)
                broadcast = str(network.broadcast_address)
            if broadcast and broadcast not in found:
                found.append(broadcast)
    return found


def _midi_port_names() -> tuple[list[str], list[str]]:
    try:
        return list(mido.get_input_names()), list(mido.get_output_names())
    except (ImportError, OSError, RuntimeError):
        return [], []


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oscmidibridge", description="Bridge MIDI ports and OSC over UDP."
    )
    parser.add_argument("--settings", default="settings.xml", help="settings file")
    parser.add_argument("--list", action="store_true", help="list ports and networks, then exit")
    parser.add_argument("--midi-in", help="MIDI input port name")
    parser.add_argument("--midi-out", help="MIDI output port name")
    parser.add_argument("--midi-thru", help="MIDI thru port name")
    parser.add_argument("--network", help="OSC destination address")
    parser.add_argument(
        "--normalize",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="send and expect OSC values scaled to 0..1",
    )
    parser.add_argument(
        "--interval", type=float, default=FRAME_INTERVAL, help="seconds between OSC polls"
    )
    return parser


def _print_section(title: str, names: Sequence[str]) -> None:
    print(f"{title}:")
    for name in names or ["(none)"]:
        print(f"  {name}")


def _available(name: str, choices: Sequence[str], log: MessageLog, what: str) -> str:
    if not name or name == NONE_LABEL or name in choices:
        return name
    log.add(f"{what} not found: {name}")
    return ""


def _settings_to_save(current: Settings, original: Settings) -> Settings:
    return replace(
        current,
        midi_in_port=current.midi_in_port or original.midi_in_port,
        midi_out_port=current.midi_out_port or original.midi_out_port,
        midi_thru_port=current.midi_thru_port or original.midi_thru_port,
        osc_network=current.osc_network or original.osc_network,
    )


def _apply_overrides(bridge: MidiOscBridge, args: argparse.Namespace) -> None:
    if args.midi_in is not None:
        bridge.select_midi_in(args.midi_in)
    if args.midi_out is not None:
        bridge.select_midi_out(args.midi_out)
    if args.midi_thru is not None:
        bridge.select_midi_thru(args.midi_thru)
    if args.network is not None:
        bridge.select_network(args.network)
    if args.normalize is not None and args.normalize != bridge.settings.normalize_osc:
        bridge.toggle_normalize()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the bridge until interrupted; returns the process exit status."""
    args = _parser().parse_args(argv)
    inputs, outputs = _midi_port_names()
    networks = list_broadcast_addresses()

    if args.list:
        _print_section("MIDI inputs", inputs)
        _print_section("MIDI outputs", outputs)
        _print_section("Networks", networks)
        return 0

    log = _ConsoleLog()
    original = load_settings(args.settings)
    log.add("XML loaded" if original.loaded else "Could not load xml. Reverting to default values.")
    usable = replace(
        original,
        midi_in_port=_available(original.midi_in_port, inputs, log, "MIDI port"),
        midi_out_port=_available(original.midi_out_port, outputs, log, "MIDI port"),
        midi_thru_port=_available(original.midi_thru_port, outputs, log, "MIDI port"),
        osc_network=_available(original.osc_network, networks, log, "Network"),
    )

    bridge = MidiOscBridge(usable, log=log)
    try:
        _apply_overrides(bridge, args)
        receiver = OscReceiver(bridge.settings.incoming_port_osc)
    except PORT_ERRORS as exc:
        print(f"error: {exc}", file=sys.stderr)
        bridge.close()
        return 1

    settings = bridge.settings
    log.add(OSC_FORMAT_INFO)
    log.add(
        f"OSC:{settings.osc_network} Port(out):{settings.outgoing_port_osc} "
        f"Port(in):{settings.incoming_port_osc}"
    )
    try:
        while True:
            bridge.poll_osc(receiver)
            time.sleep(args.interval)
    except KeyboardInterrupt:
        pass
    finally:
        receiver.close()
        bridge.close()
        save_settings(_settings_to_save(bridge.settings, original), args.settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())