# utils.py
"""
Utility functions for the simulation framework.

This module provides helper functions, such as logging setup, config
loading and color handling, that are used across different parts of the
application but do not belong to a specific domain like physics or
rendering.
"""
import logging
import logging.handlers
import json
import os
import numpy as np
from typing import Dict, Any, Tuple

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: the full config dict. Its "logging" section may set
#       "level", "format", "log_file", "max_bytes" and "backup_count".
#   - Side Effects: Replaces the root logger's handlers with a console
#     handler and a rotating file handler; creates the log directory.
#
# blend_colors(path_color, impact_color, t) -> np.ndarray:
#   - Inputs: two RGB triples (0-255) and a scalar or (N,) array of blend
#     values; blend values are clamped to [0, 1].
#   - Outputs: float64 array of shape (3,) or (N, 3).

def setup_logging(config: Dict[str, Any]) -> None:
    """
    Configures the root logger from the "logging" section of the config.

    Log records go to the console and to a size-rotated file. Third-party
    loggers that are chatty at DEBUG (numba's compiler) are held at WARNING.
    """
    log_config = config.get('logging', {})
    log_level = log_config.get('level', 'INFO').upper()
    log_format = log_config.get('format', '%(asctime)s - %(levelname)s - %(message)s')
    log_file_path = log_config.get('log_file', 'logs/simulation.log')
    max_bytes = int(log_config.get('max_bytes', 1024 * 1024))
    backup_count = int(log_config.get('backup_count', 5))

    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Re-running setup replaces the handlers rather than stacking them.
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path, maxBytes=max_bytes, backupCount=backup_count
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logging.getLogger('numba').setLevel(logging.WARNING)

    logging.info("Logging system initialized.")
    logging.debug(f"Log level {log_level}, file {log_file_path} ({max_bytes} bytes x {backup_count}).")

def load_config(path: str) -> Dict[str, Any]:
    """
    Loads the JSON run configuration.

    Raises:
        FileNotFoundError: if `path` does not exist.
        json.JSONDecodeError: if the file is not valid JSON.
    """
    logging.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r') as f:
            config = json.load(f)
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError as e:
        logging.error(f"Error decoding JSON from {path}: line {e.lineno}, column {e.colno}.")
        raise
    logging.info(f"Configuration loaded with sections: {', '.join(sorted(config))}.")
    return config

def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """Parses '#rrggbb' (or 'rrggbb', or '#rgb') into an RGB tuple."""
    text = value.strip().lstrip('#')
    if len(text) == 3:
        text = ''.join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Invalid hex color '{value}'.")
    try:
        return tuple(int(text[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ValueError(f"Invalid hex color '{value}'.") from None

def blend_colors(path_color, impact_color, t) -> np.ndarray:
    """Linearly blends from the path color to the impact color."""
    start = np.asarray(path_color, dtype=np.float64)
    end = np.asarray(impact_color, dtype=np.float64)
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    if t.ndim == 0:
        return start + (end - start) * t
    return start + (end - start) * t[:, np.newaxis]
