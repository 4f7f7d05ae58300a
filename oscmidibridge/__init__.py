"""Bridge MIDI note and control-change messages to OSC over UDP and back."""

__version__ = "0.8.0"