#!/usr/bin/env python3
"""Command-line entry point: recognize the handwritten number in one image file."""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from .config.defaults import LOG_FORMATS
from .config.env_config import EnvironmentValidator, load_environment_config
from .core.entities import AnalysisResult, RawImage
from .core.exceptions import ConfigError, ErrorKind, RecognitionError
from .core.logging_config import configure_logging
from .services.gemini_service import GeminiService
from .services.recognition_orchestrator import (
    NullListener, RecognitionConfig, RecognitionOrchestrator,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_INPUT = 2
EXIT_AUTH = 3

_INPUT_KINDS = {
    ErrorKind.EMPTY_FILE, ErrorKind.UNSUPPORTED_TYPE,
    ErrorKind.TOO_LARGE, ErrorKind.PREPROCESSING_FAILED,
}


class ConsoleListener(NullListener):
    """Renders busy ticks and the final outcome on the terminal."""

    def __init__(self, as_json: bool = False, debug: bool = False, stream=None):
        self.as_json = as_json
        self.debug = debug
        self.stream = stream or sys.stdout
        self._ticking = False
        self.last_error: Optional[RecognitionError] = None

    def on_busy(self, elapsed_seconds: float) -> None:
        if self.as_json or not sys.stderr.isatty():
            return
        sys.stderr.write(f"\rAnalyzing... {elapsed_seconds:5.1f}s")
        sys.stderr.flush()
        self._ticking = True

    def _end_ticker(self) -> None:
        if self._ticking:
            sys.stderr.write("\n")
            self._ticking = False

    def on_result(self, result: AnalysisResult) -> None:
        self._end_ticker()
        if self.as_json:
            json.dump(result.to_dict(), self.stream, indent=2)
            self.stream.write("\n")
            return

        print(f"Identified number: {result.identified_number}", file=self.stream)
        print(f"Classification:    {result.classification.value}", file=self.stream)
        for index, digit in enumerate(result.digits, 1):
            print(f"  {index}. {digit.value}  ({digit.confidence.value})", file=self.stream)
        if self.debug:
            print(f"Raw response: {result.raw_response}", file=self.stream)

    def on_error(self, error: RecognitionError) -> None:
        self.last_error = error
        self._end_ticker()
        if self.as_json:
            payload = {"error": error.kind.value, "message": error.message,
                       "retryable": error.retryable}
            if self.debug and error.detail:
                payload["detail"] = error.detail
            json.dump(payload, self.stream, indent=2)
            self.stream.write("\n")
            return

        print(f"Error [{error.kind.value}]: {error.message}", file=sys.stderr)
        if self.debug and error.detail:
            print(f"Detail: {error.detail}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="digitscan",
        description="Recognize handwritten digits in an image using Gemini",
    )
    parser.add_argument("image", help="Path to a JPEG, PNG or WEBP image")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--env-file", default=None, help="Path to a .env file (default: ./.env)")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Seconds to wait for the model, 5-300 (default: GEMINI_TIMEOUT or 60)")
    parser.add_argument("--debug", action="store_true",
                        help="Verbose logging and raw model output")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=None,
                        help="Log line format (default: LOG_FORMAT or text)")
    return parser


def _exit_code(error: RecognitionError) -> int:
    if error.kind is ErrorKind.AUTH_FAILURE:
        return EXIT_AUTH
    if error.kind in _INPUT_KINDS:
        return EXIT_BAD_INPUT
    return EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.timeout is not None:
        try:
            EnvironmentValidator.validate_numeric_range(args.timeout, 5, 300, float)
        except ConfigError as e:
            parser.error(f"--timeout: {e}")

    try:
        config = load_environment_config(args.env_file)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    debug = args.debug or config.debug_logging
    structured = args.log_format == "json" if args.log_format else config.structured_logging
    configure_logging(
        log_level="DEBUG" if debug else "WARNING",
        structured_logging=structured,
        log_dir=config.log_dir,
        enable_file_logging=bool(config.log_dir),
    )

    try:
        raw_image = RawImage.from_path(args.image)
    except OSError as e:
        print(f"Cannot read {args.image}: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    listener = ConsoleListener(as_json=args.json, debug=debug)
    timeout = args.timeout if args.timeout is not None else float(config.gemini_timeout)
    orchestrator = RecognitionOrchestrator(
        GeminiService.from_config(config),
        RecognitionConfig(timeout_seconds=timeout),
        listener=listener,
    )

    try:
        asyncio.run(orchestrator.submit(raw_image))
    finally:
        orchestrator.close()

    return _exit_code(listener.last_error) if listener.last_error else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
