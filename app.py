#!/usr/bin/env python3
"""
BridgeKeeper - Main Application
Runs prompts through a local Ollama model (with a git tool) or through Gemini.
"""

import sys
import argparse
import logging
from typing import List, Optional

from bridgekeeper import (
    BridgeKeeperError,
    Dispatcher,
    GeminiAgent,
    OllamaServer,
    OllamaTransport,
    ShutdownError,
    ToolRegistry,
    git_tool,
)
from bridgekeeper.messages import USER, Message

from bridgekeeper_app.config import Config, load_config, setup_logging
from bridgekeeper_app.console import Colors, print_colored, print_stream
from bridgekeeper_app.session import BatchSession


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bridgekeeper", description="Tool-calling chat over Ollama or Gemini")
    parser.add_argument("prompts", nargs="*", help="Prompts to run, in order")
    parser.add_argument("--gemini", action="store_true", help="Use the hosted Gemini API instead of Ollama")
    parser.add_argument("--git", action="store_true", help="Gemini: let the model run git in REPO_PATH")
    parser.add_argument("--concise", action="store_true", default=None, help="Gemini: concise answers")
    parser.add_argument("--plain", action="store_true", help="Ollama: no tools, stream the reply")
    parser.add_argument("--model", help="Override the configured model")
    parser.add_argument("--list-models", action="store_true", help="List models of the selected backend")
    return parser


def run_ollama(config: Config, args: argparse.Namespace) -> int:
    server = OllamaServer(config.ollama_port, binary=config.ollama_bin, startup_timeout=config.startup_timeout)
    try:
        server.initialize()
    except BridgeKeeperError as e:
        print_colored(f"❌ {e}", Colors.RED)
        return 2

    status = 1
    try:
        status = _run_prompts(server, config, args)
    except BridgeKeeperError as e:
        print_colored(f"❌ {e}", Colors.RED)
    finally:
        try:
            server.shutdown()
        except ShutdownError as e:
            logger.error(f"Shutdown failed: {e}")
            print_colored(f"❌ {e}", Colors.RED)
            status = 1
    return status


def _run_prompts(server: OllamaServer, config: Config, args: argparse.Namespace) -> int:
    if args.list_models:
        for name in server.list_models():
            print("- " + name)
        return 0

    with OllamaTransport.from_server(server, args.model or config.model_name) as transport:
        if args.plain:
            def run_one(prompt: str) -> str:
                stream = transport.stream_text([Message(role=USER, content=prompt)])
                return print_stream("(Ollama) - ", stream)
            session = BatchSession(run_one, echo=False)
        else:
            registry = ToolRegistry([git_tool(config.repo_path)])
            dispatcher = Dispatcher(transport, registry, max_rounds=config.max_tool_rounds)
            session = BatchSession(dispatcher.query, label="Ollama")
        results = session.run(args.prompts)
    return 0 if all(r.ok for r in results) else 1


def run_gemini(config: Config, args: argparse.Namespace) -> int:
    if not config.gemini_api_key:
        print_colored("❌ Error: GEMINI_API_KEY is not set.", Colors.RED)
        return 2
    agent = GeminiAgent.from_env(args.model or config.gemini_model)
    concise = config.concise if args.concise is None else args.concise

    try:
        if args.list_models:
            for name in agent.list_models():
                print("- " + name)
            return 0
    except BridgeKeeperError as e:
        print_colored(f"❌ {e}", Colors.RED)
        return 1

    if args.git:
        session = BatchSession(lambda prompt: agent.analyze_with_git(prompt, config.repo_path), label="Gemini")
    else:
        def run_one(prompt: str) -> str:
            print_colored(f"Thinking ({agent.model})...", Colors.GRAY)
            return print_stream("(Gemini) - ", agent.generate_stream(prompt, concise))
        session = BatchSession(run_one, echo=False)

    results = session.run(args.prompts)
    return 0 if all(r.ok for r in results) else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Application entrypoint that wires up dependencies and runs the prompts."""
    args = build_parser().parse_args(argv)
    config = load_config()

    setup_logging(config.log_level_str)
    logger.info(f"Logging level set to: {config.log_level_str}")

    if not args.prompts and not args.list_models:
        print_colored("Nothing to do: pass one or more prompts.", Colors.YELLOW)
        return 0

    if args.gemini:
        return run_gemini(config, args)
    return run_ollama(config, args)


if __name__ == "__main__":
    sys.exit(main())
