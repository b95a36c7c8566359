"""Global constants for notecraft."""

# Pitch names (canonical chromatic spelling used for labels)
NOTE_NAMES = ["C", "C#", "D", "Eb", "E", "F", "F#", "G", "Ab", "A", "Bb", "B"]

# Timing defaults
DEFAULT_PPQ = 480
DEFAULT_TEMPO = 120.0
DEFAULT_TIME_SIGNATURE = (4, 4)

# MIDI ranges
MIDI_MIN = 0
MIDI_MAX = 127
MIDDLE_C = 60

# Note value -> length in quarter notes
NOTE_VALUE_MULTIPLIERS = {
    "1/1": 4.0,
    "1/2": 2.0,
    "1/4": 1.0,
    "1/8": 0.5,
    "1/16": 0.25,
    "1/32": 0.125,
    "1/64": 0.0625,
    "1/128": 0.03125,
    # Triplets
    "1/2t": 2.0 * (2 / 3),
    "1/4t": 1.0 * (2 / 3),
    "1/8t": 0.5 * (2 / 3),
    "1/16t": 0.25 * (2 / 3),
    "1/32t": 0.125 * (2 / 3),
    "1/64t": 0.0625 * (2 / 3),
    # Quintuplets
    "1/4q": 4 / 5,
    "1/8q": 2 / 5,
    "1/16q": 0.2,
    "1/32q": 0.1,
    "1/64q": 0.05,
}
