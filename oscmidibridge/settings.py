"""Loading and saving the bridge's XML settings file."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from xml.sax.saxutils import escape

_DECLARATION = re.compile(r"<\?xml[^>]*\?>")


@dataclass
class Settings:
    """Bridge configuration; defaults apply when the file lacks a value."""

    incoming_port_osc: int = 54321
    outgoing_port_osc: int = 12344
    midi_in_port: str = ""
    midi_out_port: str = ""
    midi_thru_port: str = ""
    osc_network: str = ""
    normalize_osc: bool = True
    loaded: bool = field(default=False, compare=False, repr=False)


def _int_value(root: ET.Element, key: str, default: int) -> int:
    text = root.findtext(key)
    if text is None:
        return default
    try:
        return int(text.strip())
    except ValueError:
        return default


def _str_value(root: ET.Element, key: str, default: str) -> str:
    text = root.findtext(key)
    return default if text is None else text


def load_settings(path: str | PathLike[str]) -> Settings:
    """Read settings from ``path``; a missing or malformed file yields defaults."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError:
        return Settings()
    body = _DECLARATION.sub("", text)
    try:
        root = ET.fromstring(f"<settings>{body}</settings>")
    except ET.ParseError:
        return Settings()
    defaults = Settings()
    normalize = _str_value(root, "oscNormalize", "true")
    return Settings(
        incoming_port_osc=_int_value(root, "incomingPortOsc", defaults.incoming_port_osc),
        outgoing_port_osc=_int_value(root, "outGoingPortOsc", defaults.outgoing_port_osc),
        midi_in_port=_str_value(root, "midiInPort", defaults.midi_in_port),
        midi_out_port=_str_value(root, "midiOutPort", defaults.midi_out_port),
        midi_thru_port=_str_value(root, "midiThruPort", defaults.midi_thru_port),
        osc_network=_str_value(root, "oscNetwork", defaults.osc_network),
        normalize_osc=normalize.strip().lower() == "true",
        loaded=True,
    )


def save_settings(settings: Settings, path: str | PathLike[str]) -> None:
    """Write ``settings`` to ``path`` in the same XML layout that is read."""
    values = [
        ("incomingPortOsc", str(settings.incoming_port_osc)),
        ("outGoingPortOsc", str(settings.outgoing_port_osc)),
        ("midiInPort", settings.midi_in_port),
        ("midiOutPort", settings.midi_out_port),
        ("midiThruPort", settings.midi_thru_port),
        ("oscNetwork", settings.osc_network),
        ("oscNormalize", "true" if settings.normalize_osc else "false"),
    ]
    lines = [f"<{key}>{escape(value)}</{key}>" for key, value in values]
    Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")