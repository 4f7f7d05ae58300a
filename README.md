# oscmidibridge

A console bridge between MIDI ports and Open Sound Control (OSC) over UDP.

- MIDI **note on**, **note off** and **control change** messages from the
  selected MIDI input are sent out as OSC messages. When a MIDI *thru* port
  is selected, they are also passed on to it unchanged.
- OSC messages that arrive on the listening port are turned into MIDI
  note-on and control-change messages on the selected MIDI output.

MIDI ports are opened through `mido`, so a MIDI backend that `mido` can use
(for example `python-rtmidi`) must be installed separately.

## OSC address format

MIDI to OSC:

| MIDI message   | OSC address                          | Arguments                        |
|----------------|--------------------------------------|----------------------------------|
| note on        | `/noteOn/<channel>/<pitch>`          | velocity, then raw velocity (int)|
| note off       | `/noteOn/<channel>/<pitch>`          | velocity 0, then 0               |
| control change | `/controlChange/<channel>/<control>` | value                            |

OSC to MIDI:

| OSC address                          | MIDI message                                     |
|--------------------------------------|--------------------------------------------------|
| `/noteOn/<channel>/<pitch>`          | note on, sent to the output and the thru port    |
| `/controlChange/<channel>/<control>` | control change, sent to the output               |
| `/noteOff/...`                       | ignored                                          |
| anything else                        | only written to the log                          |

Channels run from 1 to 16 in addresses. Messages with any other channel are
dropped. Address matching ignores case and a single trailing `/` is allowed.
Only the first OSC argument is used, and messages without arguments are
ignored. Incoming OSC is only turned into MIDI while a MIDI output is open.

When *normalize* is on, outgoing velocities and values are floats in the
range 0–1 (the MIDI value divided by 127). Incoming control-change values
are multiplied by 127 and truncated. Incoming note velocities are truncated
to an integer first and then multiplied by 127, so only `0` and `1` are
meaningful there. When normalize is off, plain integers are used both ways.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Running

```
oscmidibridge
```

The bridge reads its settings from `settings.xml` in the current directory,
polls for OSC about 30 times a second, and prints every log line to standard
output. Stop it with Ctrl+C; the settings are then written back to the file.

Options:

- `--settings PATH`: settings file to read and write (default `settings.xml`)
- `--list`: print the MIDI inputs, MIDI outputs and network addresses, then exit
- `--midi-in NAME`, `--midi-out NAME`, `--midi-thru NAME`: choose MIDI ports;
  `[none]` disables that port
- `--network ADDRESS`: address OSC is sent to
- `--normalize` / `--no-normalize`: turn value scaling on or off
- `--interval SECONDS`: time between OSC polls

The network addresses offered by `--list` are `127.0.0.1` followed by the
broadcast addresses of the machine's private (10/8, 172.16/12, 192.168/16)
IPv4 interfaces. Ports or networks named in the settings file that are not
currently available are reported and left unselected.

### Settings file

The file holds one element per setting:

```
<incomingPortOsc>54321</incomingPortOsc>
<outGoingPortOsc>12344</outGoingPortOsc>
<midiInPort>[none]</midiInPort>
<midiOutPort>[none]</midiOutPort>
<midiThruPort>[none]</midiThruPort>
<oscNetwork>127.0.0.1</oscNetwork>
<oscNormalize>true</oscNormalize>
```

- `incomingPortOsc`: UDP port to listen on for OSC (default 54321)
- `outGoingPortOsc`: UDP port OSC is sent to (default 12344)
- `midiInPort`, `midiOutPort`, `midiThruPort`: MIDI port names, or `[none]`
- `oscNetwork`: address OSC is sent to
- `oscNormalize`: `true` or `false` (default `true`)

A missing or unreadable file gives the defaults.

## Library use

- `oscmidibridge.osc`: `OscMessage` (with `arg_as_int`, `arg_as_float`,
  `arg_as_string`), `encode_message`, `decode_packet` (messages and bundles),
  `OscSender` and the non-blocking `OscReceiver` with `poll()`. Malformed data
  raises `OscError`.
- `oscmidibridge.settings`: the `Settings` dataclass, `load_settings` and
  `save_settings`.
- `oscmidibridge.messagelog`: `MessageLog`, which keeps the latest 14 lines
  by default; `add`, `clear` and `render`.
- `oscmidibridge.bridge`: `MidiOscBridge`, which does the routing
  (`select_midi_in`, `select_midi_out`, `select_midi_thru`, `select_network`,
  `toggle_normalize`, `handle_midi`, `handle_osc`, `poll_osc`, `close`), and
  `parse_osc_address`, which returns `(channel, number)` for a note or
  control-change address, or `None`. Port opening and the OSC sender can be
  replaced through the constructor.
- `oscmidibridge.cli`: `main` and `list_broadcast_addresses`.

## What it does not do

There is no graphical window: ports are chosen on the command line or in the
settings file, and the log goes to the terminal. Only note on, note off and
control change are handled; other MIDI messages, such as clock, start and
stop, are ignored, and OSC note-off addresses produce no MIDI.