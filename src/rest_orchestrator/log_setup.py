"""
Logging configuration for the request orchestrator
"""

import logging
from pathlib import Path
from typing import Dict, Any, List


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(logging_config: Dict[str, Any], logs_dir: Path = Path('logs')) -> logging.Logger:
    """
    Configure root logging from the [logging] section of the client config

    Args:
        logging_config: Logging section, optionally with 'level' and 'log_file_name'
        logs_dir: Directory that receives the log file when one is configured

    Returns:
        The package logger
    """
    level_name = str(logging_config.get('level', 'INFO')).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level: {level_name}")

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    log_file_name = logging_config.get('log_file_name')
    if log_file_name:
        logs_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(logs_dir / log_file_name))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )
    return logging.getLogger('rest_orchestrator')
