import json
import logging
import os
import random
import sys
from typing import Dict, Optional

import numpy as np
from tqdm import tqdm


def set_seeds(seed_value=42):
    """Sets all global random seeds for reproducibility."""
    np.random.seed(seed_value)
    random.seed(seed_value)

def setup_logging(save_dir: Optional[str] = None, level=logging.INFO, log_name: str = 'forage3d.log'):
    """Sets up logging to file (if `save_dir` is given) and console."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if save_dir:
        os.makedirs(save_dir, exist_ok=True)
        handlers.insert(0, logging.FileHandler(os.path.join(save_dir, log_name), mode='w'))  # Overwrite log file each run
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=handlers,
        force=True
    )
    # Keep tqdm's progress bars out of the log handlers
    tqdm.pandas(file=open(os.devnull, 'w'))

def load_env_config(path: Optional[str]) -> Dict:
    """
    Loads a JSON file of `Forage3DEnv` keyword overrides, e.g.
    {"move_force": 3.0, "max_steps": 2000, "reward_overrides": {"r_boundary": 2.0}}.
    """
    if not path:
        return {}
    with open(path, 'r') as f:
        config = json.load(f)
    if not isinstance(config, dict):
        raise ValueError(f"Config file {path} must contain a JSON object, got {type(config).__name__}")
    return config
