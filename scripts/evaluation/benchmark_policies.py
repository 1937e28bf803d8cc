"""
Benchmark script for comparing the simple Forage3d policies.

Runs a number of headless episodes per policy, records nectar and reward per
episode and writes the raw results plus a per-policy summary as CSV files.

Example Usage:
    python benchmark_policies.py --episodes 20 --max-steps 2000 --out-dir results/benchmark
"""
import argparse
import logging
import os
import sys
import time

import pandas as pd
from tqdm import tqdm

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from Forage3d.env.env import Forage3DEnv
from Forage3d.policies import HeuristicPolicy, RandomPolicy
from Forage3d.utils import load_env_config, set_seeds, setup_logging

logger = logging.getLogger(__name__)


class PolicyBenchmark:
    def __init__(self, num_episodes=20, max_steps=2000, seed=0, env_overrides=None):
        self.num_episodes = num_episodes
        self.max_steps = max_steps
        self.seed = seed

        self.policies = {
            'Heuristic': HeuristicPolicy,
            'Random': RandomPolicy
        }

        self.env_config = {
            'training_mode': True,
            'max_steps': max_steps,
            'render_mode': None,
        }
        self.env_config.update(env_overrides or {})
        self.records = []

    def run_episode(self, env, policy, episode_seed):
        """Run a single episode and return its metrics."""
        obs, info = env.reset(seed=episode_seed)
        metrics = {
            'total_reward': 0.0,
            'boundary_hits': 0,
            'feeding_steps': 0,
            'steps': 0,
        }
        while True:
            action = policy.act(obs)
            obs, reward, terminated, truncated, info = env.step(action)
            components = info['reward_components']
            metrics['total_reward'] += reward
            metrics['boundary_hits'] += int(components.get('r_boundary', 0.0) < 0.0)
            metrics['feeding_steps'] += int(components.get('r_nectar', 0.0) > 0.0)
            metrics['steps'] += 1
            if terminated or truncated:
                break
        metrics['nectar_obtained'] = info['nectar_obtained']
        metrics['flowers_emptied'] = len(env.area) - info['flowers_with_nectar']
        return metrics

    def run_benchmark(self):
        """Run all episodes for all policies."""
        env = Forage3DEnv(**self.env_config)
        try:
            for policy_name, policy_class in self.policies.items():
                policy = policy_class(env.action_space)
                env.action_space.seed(self.seed)
                start_time = time.time()
                for episode in tqdm(range(self.num_episodes), desc=policy_name):
                    metrics = self.run_episode(env, policy, self.seed + episode)
                    metrics.update({'policy': policy_name, 'episode': episode})
                    self.records.append(metrics)
                elapsed = time.time() - start_time
                logger.info("[%s] %d episodes in %.2fs (%.2fs per episode)",
                            policy_name, self.num_episodes, elapsed, elapsed / max(self.num_episodes, 1))
        finally:
            env.close()
        return pd.DataFrame(self.records)

    @staticmethod
    def compute_statistics(results: pd.DataFrame) -> pd.DataFrame:
        """Mean and std of every metric, per policy."""
        metric_cols = ['total_reward', 'nectar_obtained', 'flowers_emptied', 'feeding_steps', 'boundary_hits']
        summary = results.groupby('policy')[metric_cols].agg(['mean', 'std'])
        summary.columns = [f"{metric}_{stat}" for metric, stat in summary.columns]
        return summary.reset_index()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Benchmark the simple Forage3d policies.")
    parser.add_argument("--episodes", type=int, default=20, help="Episodes per policy.")
    parser.add_argument("--max-steps", type=int, default=2000, help="Steps per episode.")
    parser.add_argument("--seed", type=int, default=0, help="Seed of the first episode.")
    parser.add_argument("--config", type=str, default=None, help="JSON file with Forage3DEnv keyword overrides.")
    parser.add_argument("--out-dir", type=str, default="results/benchmark", help="Where to write the CSV files.")
    args = parser.parse_args()

    os.makedirs(args.out_dir, exist_ok=True)
    setup_logging(args.out_dir, log_name='benchmark.log')
    set_seeds(args.seed)

    benchmark = PolicyBenchmark(num_episodes=args.episodes, max_steps=args.max_steps, seed=args.seed,
                                env_overrides=load_env_config(args.config))
    results = benchmark.run_benchmark()
    summary = PolicyBenchmark.compute_statistics(results)

    results.to_csv(os.path.join(args.out_dir, 'episodes.csv'), index=False)
    summary.to_csv(os.path.join(args.out_dir, 'summary.csv'), index=False)
    logger.info("Summary:\n%s", summary.to_string(index=False))
