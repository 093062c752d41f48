import os
import logging
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv


@dataclass
class Config:
    log_level_str: str
    ollama_port: int
    ollama_bin: str
    model_name: str
    startup_timeout: float
    max_tool_rounds: int
    repo_path: str
    gemini_api_key: Optional[str]
    gemini_model: str
    concise: bool


def setup_logging(log_level_str: str) -> None:
    level = getattr(logging, log_level_str.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True,
    )
    # Per-request httpx logs drown out the dispatch loop's own
    logging.getLogger('httpx').setLevel(max(level, logging.WARNING))


def _parse_int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        if value is None:
            return default
        return int(value.strip())
    except ValueError:
        return default


def _parse_float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        if value is None:
            return default
        return float(value.strip())
    except ValueError:
        return default


def load_config() -> Config:
    load_dotenv()

    log_level_str = os.getenv('LOGGING_LEVEL', 'INFO').upper()
    if log_level_str.startswith('LOGGING.'):
        log_level_str = log_level_str.replace('LOGGING.', '')

    return Config(
        log_level_str=log_level_str,
        ollama_port=_parse_int_env('OLLAMA_PORT', 11434),
        ollama_bin=os.getenv('OLLAMA_BIN', 'ollama'),
        model_name=os.getenv('MODEL_NAME', 'functiongemma:latest'),
        startup_timeout=_parse_float_env('STARTUP_TIMEOUT', 15.0),
        max_tool_rounds=max(1, _parse_int_env('MAX_TOOL_ROUNDS', 1)),
        repo_path=os.getenv('REPO_PATH') or './',
        gemini_api_key=os.getenv('GEMINI_API_KEY') or None,
        gemini_model=os.getenv('GEMINI_MODEL', 'gemini-2.5-flash-lite'),
        concise=os.getenv('CONCISE', 'false').lower() == 'true',
    )
