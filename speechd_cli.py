#!/usr/bin/env python3
"""speechd CLI Tool

Install with: pip install -e .
Run from anywhere: speechd-say say "Hello world"
"""

import argparse
import sys
import threading

from dotenv import load_dotenv
from loguru import logger

from speechd_client import (
    CallbackType,
    DataMode,
    Priority,
    PunctuationMode,
    Scope,
    SSIPClient,
    SSIPError,
    VoiceType,
)
from speechd_client.config import ClientSettings, load_settings, write_default_settings
from speechd_client.logging_config import LEVELS, setup_logging


def resolve_settings(args) -> ClientSettings:
    """Settings from file and env, with CLI flags on top."""
    return load_settings(
        address=args.address,
        reply_timeout=args.timeout,
        autospawn=False if args.no_autospawn else None,
    )


def open_client(args) -> SSIPClient:
    return SSIPClient.from_settings(args.settings, name="speechd-cli")


def apply_speech_options(client: SSIPClient, args):
    """Send SET commands for every speech option given on the command line."""
    if args.module:
        client.set_output_module(args.module)
    if args.language:
        client.set_language(args.language)
    if args.voice_type:
        client.set_voice(VoiceType(args.voice_type))
    if args.synthesis_voice:
        client.set_synthesis_voice(args.synthesis_voice)
    if args.rate is not None:
        client.set_rate(args.rate)
    if args.pitch is not None:
        client.set_pitch(args.pitch)
    if args.pitch_range is not None:
        client.set_pitch_range(args.pitch_range)
    if args.volume is not None:
        client.set_volume(args.volume)
    if args.punctuation:
        client.set_punctuation(PunctuationMode(args.punctuation))
    if args.spelling:
        client.set_spelling(True)
    if args.priority:
        client.set_priority(Priority(args.priority))
    if args.ssml:
        client.set_data_mode(DataMode.SSML)


def cmd_say(args):
    """Handle the 'say' subcommand."""
    text = args.text if args.text is not None else sys.stdin.read()
    if not text.strip():
        print("Usage: speechd-say say <text>")
        sys.exit(1)

    finished = threading.Event()

    def on_event(kind, index_mark):
        logger.debug(f"Event: {kind.name} {index_mark or ''}")
        if kind & (CallbackType.END | CallbackType.CANCEL):
            finished.set()

    with open_client(args) as client:
        apply_speech_options(client, args)
        reply = client.speak(text, callback=on_event if args.wait else None)
        logger.info(f"Queued message {reply.data[0] if reply.data else '?'}")

        if args.wait and not finished.wait(args.wait_timeout):
            print(f"Timed out after {args.wait_timeout}s waiting for speech to finish")
            sys.exit(1)


def cmd_voices(args):
    """List synthesis voices of the current (or given) output module."""
    with open_client(args) as client:
        if args.module:
            client.set_output_module(args.module)
        voices = client.list_synthesis_voices()
        if not voices:
            print("No synthesis voices available")
            return
        for voice in voices:
            print(f"  {voice.name:<30} {voice.language or '':<10} {voice.variant or ''}")


def cmd_modules(args):
    """List output modules."""
    with open_client(args) as client:
        for module in client.list_output_modules():
            print(f"  {module}")


def cmd_control(args):
    """Handle cancel/stop/pause/resume."""
    scope = Scope.ALL if args.all else Scope.SELF
    with open_client(args) as client:
        getattr(client, args.command)(scope)


def cmd_char(args):
    with open_client(args) as client:
        client.char(args.char)


def cmd_key(args):
    with open_client(args) as client:
        client.key(args.key)


def cmd_sound_icon(args):
    with open_client(args) as client:
        client.sound_icon(args.name)


def cmd_config(args):
    """Write the default settings file."""
    path = write_default_settings(overwrite=args.force)
    print(f"Settings file: {path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Speech Dispatcher client CLI")
    parser.add_argument("--address", help="Daemon address, e.g. unix_socket:/path or inet_socket:host:port")
    parser.add_argument("--no-autospawn", action="store_true", help="Don't start the daemon if it isn't running")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for each reply")
    parser.add_argument("--log-level", choices=LEVELS, help="Set logging level (default: ERROR)")
    subparsers = parser.add_subparsers(dest="command")

    # === say subcommand ===
    say_parser = subparsers.add_parser("say", help="Speak text (reads stdin if no text given)")
    say_parser.add_argument("text", nargs="?", help="Text to speak")
    say_parser.add_argument("-o", "--module", help="Output module")
    say_parser.add_argument("-l", "--language", help="Language code")
    say_parser.add_argument("-t", "--voice-type", choices=[v.value for v in VoiceType])
    say_parser.add_argument("-y", "--synthesis-voice", help="Synthesis voice name")
    say_parser.add_argument("-r", "--rate", type=int, help="Rate (-100..100)")
    say_parser.add_argument("-p", "--pitch", type=int, help="Pitch (-100..100)")
    say_parser.add_argument("-R", "--pitch-range", type=int, help="Pitch range (-100..100)")
    say_parser.add_argument("-i", "--volume", type=int, help="Volume (-100..100)")
    say_parser.add_argument("-m", "--punctuation", choices=[m.value for m in PunctuationMode])
    say_parser.add_argument("-s", "--spelling", action="store_true", help="Spell the text")
    say_parser.add_argument("-P", "--priority", choices=[p.value for p in Priority])
    say_parser.add_argument("-x", "--ssml", action="store_true", help="Text is SSML")
    say_parser.add_argument("-w", "--wait", action="store_true", help="Wait until speech finishes")
    say_parser.add_argument("--wait-timeout", type=float, default=60.0, help="Max seconds for --wait")
    say_parser.set_defaults(func=cmd_say)

    # === discovery ===
    voices_parser = subparsers.add_parser("voices", help="List synthesis voices")
    voices_parser.add_argument("-o", "--module", help="Output module to query")
    voices_parser.set_defaults(func=cmd_voices)

    modules_parser = subparsers.add_parser("modules", help="List output modules")
    modules_parser.set_defaults(func=cmd_modules)

    # === job control ===
    for name in ("cancel", "stop", "pause", "resume"):
        control_parser = subparsers.add_parser(name, help=f"{name.capitalize()} speech")
        control_parser.add_argument("--all", action="store_true", help="Apply to all clients")
        control_parser.set_defaults(func=cmd_control)

    char_parser = subparsers.add_parser("char", help="Speak a single character")
    char_parser.add_argument("char")
    char_parser.set_defaults(func=cmd_char)

    key_parser = subparsers.add_parser("key", help="Speak a key name")
    key_parser.add_argument("key")
    key_parser.set_defaults(func=cmd_key)

    icon_parser = subparsers.add_parser("sound-icon", help="Play a sound icon")
    icon_parser.add_argument("name")
    icon_parser.set_defaults(func=cmd_sound_icon)

    # === config subcommand ===
    config_parser = subparsers.add_parser("config", help="Write default settings file")
    config_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    try:
        args.settings = resolve_settings(args)
        # Priority: --log-level > SPEECHD_CLIENT_LOG_LEVEL > settings file > ERROR
        setup_logging(args.log_level or args.settings.log_level)
        args.func(args)
    except (SSIPError, ValueError) as e:
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
