"""
Fly the hummingbird yourself.

The PyBullet GUI shows the scene; a small pygame window takes the keyboard.
Keep the pygame window focused while playing.

Controls:
    W/S         fly forward/backward along the beak
    A/D         strafe left/right
    E/C         rise/sink
    Arrow keys  pitch (up/down) and turn (left/right)
    F           freeze/unfreeze the bird
    R           start a new episode
    Esc         quit

Example Usage:
    python manual_play.py
    python manual_play.py --headless --config my_env.json
"""
import argparse
import logging
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from Forage3d.constants import FPS
from Forage3d.env.controls import KeyboardWindow
from Forage3d.env.env import Forage3DEnv
from Forage3d.utils import load_env_config, setup_logging

logger = logging.getLogger(__name__)


def manual_play(render: bool = True, seed: int = None, config_path: str = None):
    env_config = {
        'training_mode': False,
        'render_mode': "gui" if render else None,
    }
    env_config.update(load_env_config(config_path))
    # Freezing is only available outside training
    env_config['training_mode'] = False

    env = Forage3DEnv(**env_config)
    window = KeyboardWindow()
    try:
        obs, info = env.reset(seed=seed)
        frozen = False
        running = True
        while running:
            commands = window.poll()
            if commands["quit"]:
                break
            if commands["toggle_freeze"]:
                if frozen:
                    env.unfreeze()
                else:
                    env.freeze()
                frozen = not frozen
                logger.info("Bird %s", "frozen" if frozen else "unfrozen")
            if commands["reset"]:
                if frozen:
                    env.unfreeze()
                    frozen = False
                obs, info = env.reset()

            action = window.action(env.agent.orientation)
            obs, reward, terminated, truncated, info = env.step(action)

            nearest = info['nearest_flower']
            window.draw([
                f"Nectar obtained: {info['nectar_obtained']:.2f}",
                f"Flowers with nectar: {info['flowers_with_nectar']}",
                f"Nearest flower: {nearest if nearest is not None else '-'}",
                f"Distance: {obs[9] * env.area.diameter:.2f}",
                "FROZEN (F to resume)" if frozen else "F freeze | R reset | Esc quit",
            ], fps=FPS)
    finally:
        window.close()
        env.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Fly the Forage3d hummingbird with the keyboard.")
    parser.add_argument("--headless", action="store_true", help="Do not open the PyBullet GUI.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed.")
    parser.add_argument("--config", type=str, default=None, help="JSON file with Forage3DEnv keyword overrides.")
    args = parser.parse_args()

    setup_logging()
    manual_play(render=not args.headless, seed=args.seed, config_path=args.config)
