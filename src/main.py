#!/usr/bin/env python3
"""
TA Agent: Options Trade Analysis
Main entry point - Market Data -> Gate Pipeline -> Brain -> Recommendation

Architecture:
  DhanHQ candles/chain -> 15m/5m/options/1m gates -> StructuredBrief
                       -> reasoning loop (LLM + tools) | deterministic fallback

Commands:
  analyse SYMBOL : one run, printed as a console report or JSON
  watch SYMBOL   : repeated runs every --interval seconds until interrupted
  tools          : print the tool schema the model is given
"""
import argparse
import json
import logging
import os
import sys
import time
from dataclasses import replace

from colorama import Fore, Style, init

from brain.context import StructuredBrief
from brain.providers import provider_from_config
from brain.tools import ToolMode
from config import DEFAULT_MODELS, AgentConfig, load_config
from errors import ConfigurationError
from market_data import DhanClient
from pipeline.orchestrator import TradingPipeline
from pipeline.tools import build_tool_registry
from reporting import render_console, render_json


# Initialize Colorama
init(autoreset=True)

VERSION = "0.1.0"
AGENT_NAME = "TA-AGENT"

EXIT_OK = 0
EXIT_CONFIG = 2


def setup_logging(log_dir: str = "data/logs", verbose: bool = False, stream=None):
    """Configure logging to file and console."""
    os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s | %(name)-12s | %(levelname)-5s | %(message)s',
        datefmt='%H:%M:%S',
        handlers=[
            logging.FileHandler(f"{log_dir}/agent_{time.strftime('%Y%m%d')}.log"),
            logging.StreamHandler(stream or sys.stdout)
        ]
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger(AGENT_NAME)


def apply_overrides(config: AgentConfig, args) -> AgentConfig:
    """Fold CLI flags over the loaded configuration."""
    changes = {}
    if getattr(args, "mode", None):
        changes["tool_mode"] = args.mode
    if getattr(args, "provider", None):
        changes["llm_provider"] = args.provider
        changes["llm_model"] = DEFAULT_MODELS[args.provider]
    if getattr(args, "model", None):
        changes["llm_model"] = args.model
    return replace(config, **changes) if changes else config


def build_pipeline(config: AgentConfig, use_llm: bool = True) -> TradingPipeline:
    client = DhanClient(
        client_id=config.dhan_client_id,
        access_token=config.dhan_access_token,
        base_url=config.dhan_base_url,
        timeout=config.data_timeout,
        connect_timeout=config.connect_timeout,
    )
    provider = None
    if use_llm and config.llm_enabled:
        provider = provider_from_config(config)
    return TradingPipeline(config, client, provider=provider, use_llm=use_llm)


def _print_banner(logger, config: AgentConfig, symbol: str, use_llm: bool):
    reasoning = (
        f"{config.llm_provider}/{config.llm_model}" if use_llm and config.llm_enabled else "deterministic"
    )
    mode = f"{Fore.RED}LIVE" if config.tool_mode == "live" else f"{Fore.YELLOW}ALERT"
    logger.info("=" * 50)
    logger.info(f"{Fore.CYAN}  {AGENT_NAME} v{VERSION}")
    logger.info(f"  Symbol: {symbol}")
    logger.info(f"  Reasoning: {reasoning}")
    logger.info(f"  Mode: {mode}{Style.RESET_ALL}")
    logger.info("=" * 50)


def _emit(result, as_json: bool):
    print(render_json(result) if as_json else render_console(result))


def cmd_analyse(config: AgentConfig, args, logger) -> int:
    symbol = (args.symbol or config.default_symbol).upper()
    _print_banner(logger, config, symbol, not args.no_llm)
    pipeline = build_pipeline(config, use_llm=not args.no_llm)
    _emit(pipeline.run(symbol), args.json)
    return EXIT_OK


def cmd_watch(config: AgentConfig, args, logger) -> int:
    symbol = (args.symbol or config.default_symbol).upper()
    _print_banner(logger, config, symbol, not args.no_llm)
    pipeline = build_pipeline(config, use_llm=not args.no_llm)
    logger.info(f"{Fore.GREEN}Watching {symbol} every {args.interval}s (Ctrl+C to stop)")
    runs = 0
    try:
        while True:
            runs += 1
            _emit(pipeline.run(symbol), args.json)
            time.sleep(args.interval)
    except KeyboardInterrupt:
        logger.info(f"{Fore.RED}Stopped after {runs} runs")
    return EXIT_OK


def cmd_tools(args) -> int:
    # Handlers are never called here, so an empty brief is enough
    brief = StructuredBrief(symbol="", tf_15m={}, tf_5m={}, tf_1m={})
    registry = build_tool_registry(brief, ToolMode(args.mode or "alert"))
    print(json.dumps(registry.to_schema(), indent=2))
    return EXIT_OK


def _interval(value: str) -> int:
    seconds = int(value)
    if seconds < 1:
        raise argparse.ArgumentTypeError("interval must be at least 1 second")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ta-agent", description="Gated options trade analysis agent")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_run_args(p):
        p.add_argument("symbol", nargs="?", default=None, help="Index symbol (default: TA_DEFAULT_SYMBOL)")
        p.add_argument("--json", action="store_true", help="Print the result as JSON")
        p.add_argument("--no-llm", action="store_true", help="Skip the reasoning loop")
        p.add_argument("--mode", choices=["alert", "live"], default=None, help="Tool safety mode")
        p.add_argument("--provider", choices=sorted(DEFAULT_MODELS), default=None, help="LLM provider")
        p.add_argument("--model", type=str, default=None, help="LLM model override")
        p.add_argument("--verbose", action="store_true", help="Debug logging")

    analyse = sub.add_parser("analyse", help="Analyse a symbol once")
    add_run_args(analyse)

    watch = sub.add_parser("watch", help="Analyse a symbol repeatedly")
    add_run_args(watch)
    watch.add_argument("--interval", type=_interval, default=60, help="Seconds between runs")

    tools = sub.add_parser("tools", help="Print the tool schema")
    tools.add_argument("--mode", choices=["alert", "live"], default=None, help="Tool safety mode")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "tools":
        return cmd_tools(args)

    # Keep stdout clean for JSON output
    logger = setup_logging(verbose=args.verbose, stream=sys.stderr if args.json else sys.stdout)
    try:
        config = apply_overrides(load_config(), args)
    except ConfigurationError as e:
        print(f"{Fore.RED}Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    if args.command == "watch":
        return cmd_watch(config, args, logger)
    return cmd_analyse(config, args, logger)


if __name__ == "__main__":
    sys.exit(main())
