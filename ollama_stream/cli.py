#!/usr/bin/env python3
"""
Main CLI application for ollama-stream.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import after loading env vars to ensure proper configuration
from . import __version__
from .application.chat_service import ChatService, ChatSession
from .domain.models.usage import UsageState
from .infrastructure.config.model_limits import get_context_limit
from .infrastructure.config.settings import AppSettings, get_settings
from .infrastructure.ollama.client import OllamaChatClient
from .plugins import build_default_registry
from .presentation.cli import ChatCLI
from .runtime.spinner import ConsoleSink
from .utils import setup_logging


def build_parser(settings: AppSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-stream",
        description="Streaming chat with a local Ollama model, with concurrent tool calling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                          # Interactive mode
  %(prog)s --message "What is 15 * 8?"               # Single message
  %(prog)s --model llama3.1:8b --no-tools           # Different model, no tools
  %(prog)s --host http://gpu-box:11434               # Remote Ollama server
        """
    )

    parser.add_argument("--model",
                        default=settings.ollama.model,
                        help=f"Model name (default: {settings.ollama.model})")
    parser.add_argument("--host",
                        default=settings.ollama.host,
                        help=f"Ollama server URL (default: {settings.ollama.host})")
    parser.add_argument("--message",
                        help="Single message mode (non-interactive)")
    parser.add_argument("--no-tools",
                        action="store_true",
                        default=not settings.tools_enabled,
                        help="Disable tool calling")
    parser.add_argument("--quiet",
                        action="store_true",
                        default=settings.quiet,
                        help="Reduce CLI output (suppress spinner, tool and usage lines)")
    parser.add_argument("--log-level",
                        default=settings.log_level,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Set logging level")
    parser.add_argument("--version",
                        action="version",
                        version=f"%(prog)s {__version__}")
    return parser


async def run(args: argparse.Namespace, settings: AppSettings) -> int:
    logger = logging.getLogger(__name__)
    registry = None if args.no_tools else build_default_registry()
    context_limit = get_context_limit(args.model)

    async with OllamaChatClient(model=args.model, host=args.host, settings=settings) as client:
        service = ChatService(
            client,
            registry,
            usage=UsageState.initial(context_limit),
            max_tool_iterations=settings.chat.max_tool_iterations,
            sink=None if args.quiet else ConsoleSink(),
            spinner_interval=settings.chat.spinner_interval,
        )
        session = ChatSession(
            service,
            system_prompt=settings.chat.system_prompt,
            turn_retries=settings.chat.turn_retries,
        )
        cli = ChatCLI(
            session,
            model=args.model,
            tools=registry.names() if registry is not None else (),
            quiet=args.quiet,
        )
        logger.info(f"Initialized chat session with model: {args.model} (context {context_limit})")

        if args.message:
            return await cli.single_message(args.message)
        await cli.interactive_mode()
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for ollama-stream."""
    settings = get_settings()
    args = build_parser(settings).parse_args(argv)

    # Setup logging
    setup_logging(args.log_level, settings.log_format)

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        print("\nGoodbye!")
        return 130


if __name__ == "__main__":
    sys.exit(main())
