"""
A command-line script for running a headless or rendered Forage3d simulation.

This script runs Forage3DEnv with a simple policy. It is useful for quick
tests, demonstrations and debugging of the environment itself.

Example Usage:
    # Run the heuristic policy in the PyBullet GUI
    python run_simulation.py --policy heuristic

    # Run the random policy headless with config overrides
    python run_simulation.py --policy random --no-render --config my_env.json
"""
import argparse
import logging
import os
import sys
import time

# Add root to sys.path so the script also runs from a plain checkout
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from Forage3d.env.env import Forage3DEnv
from Forage3d.policies import HeuristicPolicy, RandomPolicy
from Forage3d.utils import load_env_config, set_seeds, setup_logging

logger = logging.getLogger(__name__)

AVAILABLE_POLICIES = {
    'random': RandomPolicy,
    'heuristic': HeuristicPolicy
}


def run_simulation(policy_name: str, render: bool, episodes: int = 1, max_steps: int = 1000,
                   seed: int = 42, config_path: str = None):
    """
    Initializes and runs the Forage3d simulation with a specified policy.

    Args:
        policy_name (str): The name of the policy to use (e.g., 'random', 'heuristic').
        render (bool): If True, the simulation is shown in the PyBullet GUI.
        episodes (int): Number of episodes to run.
        max_steps (int): Episode length.
        seed (int): Seed for the first reset.
        config_path (str): Optional JSON file of environment overrides.
    """
    set_seeds(seed)
    env_config = {
        'training_mode': True,
        'max_steps': max_steps,
        'render_mode': "gui" if render else None,
    }
    env_config.update(load_env_config(config_path))

    env = Forage3DEnv(**env_config)

    policy_class = AVAILABLE_POLICIES.get(policy_name.lower())
    if not policy_class:
        raise ValueError(f"Unknown policy: '{policy_name}'. Available policies: {list(AVAILABLE_POLICIES.keys())}")
    policy = policy_class(env.action_space)

    logger.info("Running %d episode(s) with '%s' policy", episodes, policy_name)
    try:
        obs, info = env.reset(seed=seed)
        for episode in range(episodes):
            episode_reward = 0.0
            step = 0
            while True:
                action = policy.act(obs)
                obs, reward, terminated, truncated, info = env.step(action)
                episode_reward += reward
                step += 1
                if render:
                    time.sleep(1.0 / env.metadata["render_fps"])
                if terminated or truncated:
                    break
            logger.info("Episode %d finished after %d steps: reward %.3f, nectar %.3f, flowers left %d",
                        episode + 1, step, episode_reward, info['nectar_obtained'], info['flowers_with_nectar'])
            if episode + 1 < episodes:
                obs, info = env.reset()
    finally:
        env.close()
    logger.info("Simulation closed")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Run a Forage3d simulation with a specific policy.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument(
        "--policy",
        type=str,
        default="heuristic",
        choices=list(AVAILABLE_POLICIES.keys()),
        help="The policy to use for the simulation.\n"
             "Available choices: %(choices)s"
    )
    parser.add_argument(
        "--no-render",
        action="store_true",
        help="If set, the simulation will run headless without the PyBullet GUI."
    )
    parser.add_argument("--episodes", type=int, default=1, help="Number of episodes to run.")
    parser.add_argument("--max-steps", type=int, default=1000, help="Steps per episode.")
    parser.add_argument("--seed", type=int, default=42, help="Random seed.")
    parser.add_argument("--config", type=str, default=None, help="JSON file with Forage3DEnv keyword overrides.")
    parser.add_argument("--log-dir", type=str, default=None, help="Also write the log to this directory.")
    args = parser.parse_args()

    setup_logging(args.log_dir)
    run_simulation(policy_name=args.policy, render=not args.no_render, episodes=args.episodes,
                   max_steps=args.max_steps, seed=args.seed, config_path=args.config)
