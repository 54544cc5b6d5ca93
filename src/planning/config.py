"""
Configuration loading for choreography planning and swarm event handling.

Reads a YAML file and fills any missing section or key from the built-in
defaults, so a partial (or absent) file still yields a complete config.
"""

import os
import copy
import logging
from typing import Any, Dict, Optional

import yaml

from .types import PlanningConstraints

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(__file__),
    '../../config/choreography.yaml'
)

DEFAULT_CONFIG: Dict[str, Any] = {
    'planning': {
        'min_separation_meters': 2.0,
        'max_velocity_ms': 5.0,
        'delay_steps': 4,
        'samples_per_path': 20,
    },
    'solver': {
        'shots': 1000,
        'max_oracle_variables': 20,
        'time_budget_ms': 5000,
        'seed': None,
    },
    'swarm': {
        'max_hold_time_seconds': 30.0,
        'max_compute_time_ms': 5000,
        'use_oracle': True,
        'oracle_shots': 1000,
        'motor_departure_severity': 0.5,
        'motor_urgent_severity': 0.7,
    },
}


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML.

    Args:
        config_path: Path to the YAML file (default config/choreography.yaml)

    Returns:
        Complete configuration dictionary
    """
    path = config_path or DEFAULT_CONFIG_PATH
    try:
        with open(path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Config file {path} not found, using defaults")
        loaded = {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    return _merge(DEFAULT_CONFIG, loaded)


def constraints_from_config(config: Dict[str, Any]) -> PlanningConstraints:
    """Build PlanningConstraints from the 'planning' section."""
    planning = config.get('planning', {})
    defaults = DEFAULT_CONFIG['planning']
    return PlanningConstraints(
        min_separation_meters=float(planning.get('min_separation_meters', defaults['min_separation_meters'])),
        max_velocity_ms=float(planning.get('max_velocity_ms', defaults['max_velocity_ms'])),
        delay_steps=max(2, int(planning.get('delay_steps', defaults['delay_steps']))),
        samples_per_path=max(5, int(planning.get('samples_per_path', defaults['samples_per_path']))),
    )
