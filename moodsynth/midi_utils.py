import logging
import typing
import mido

logger = logging.getLogger(__name__)


def list_output_devices() -> typing.List[str]:
    """Return the names of the MIDI outputs mido can see, or an empty list on error."""
    try:
        return list(mido.get_output_names())
    except Exception as e:
        logger.error(f"Could not list MIDI outputs: {e}")
        return []


def match_output_name(requested: str, outputs: typing.Sequence[str]) -> typing.Optional[str]:
    """
    Resolve a configured port name against the ports that exist.

    An exact match wins. Otherwise the first port whose name starts with
    `requested` is used, since ALSA port names carry a client:port suffix
    that changes between sessions.
    """
    if requested in outputs:
        return requested

    for name in outputs:
        if name.startswith(requested):
            return name

    return None


def prompt_for_output(outputs: typing.Sequence[str]) -> typing.Optional[str]:
    """Ask on the console which port to mirror notes to. Returns None without a console."""
    print("\nMIDI ports moodsynth can mirror notes to:\n")
    for number, name in enumerate(outputs, 1):
        print(f"  {number}. {name}")
    print()

    while True:
        try:
            answer = input(f"Mirror notes to port (1-{len(outputs)}): ")
        except EOFError:
            logger.warning("No console input - MIDI mirroring disabled.")
            return None

        if answer.strip().isdigit() and 1 <= int(answer) <= len(outputs):
            chosen = outputs[int(answer) - 1]
            print(f"\nSet midi.output_device to \"{chosen}\" in config.yaml to skip this question.\n")
            return chosen

        print(f"Pick a number from 1 to {len(outputs)}.")


def select_output_device(device_name: typing.Optional[str] = None, interactive: bool = False) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:
    """
    Choose and open the MIDI port that the MIDI tap mirrors played notes to.

    A named port is resolved with :func:`match_output_name`. Without a name, a
    lone port is used as-is and several ports are only offered on the console
    when `interactive` is set. MIDI mirroring is optional, so every failure
    ends in ``(None, None)`` rather than an exception.

    Returns:
        ``(port_name, port)`` or ``(None, None)``.
    """
    outputs = list_output_devices()

    if not outputs:
        logger.warning("No MIDI output devices found - MIDI mirroring disabled.")
        return None, None

    if device_name is not None:
        chosen = match_output_name(device_name, outputs)
        if chosen is None:
            logger.error(f"MIDI output device '{device_name}' not found (have {outputs}) - MIDI mirroring disabled.")
            return None, None
    elif len(outputs) == 1:
        chosen = outputs[0]
    elif interactive:
        chosen = prompt_for_output(outputs)
        if chosen is None:
            return None, None
    else:
        logger.info(f"{len(outputs)} MIDI outputs found - set midi.output_device to mirror notes to one.")
        return None, None

    try:
        port = mido.open_output(chosen)
    except Exception as e:
        logger.error(f"Failed to open MIDI output '{chosen}': {e}")
        return None, None

    logger.info(f"Mirroring notes to MIDI output '{chosen}'")
    return chosen, port
