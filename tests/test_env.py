"""Integration tests against the PyBullet physics adapter in DIRECT mode."""

import gymnasium as gym
import numpy as np
import pytest

import Forage3d  # noqa: F401  registers the environment
from Forage3d.constants import BEAK_TIP_OFFSET
from Forage3d.env.env import Forage3DEnv
from Forage3d.env.helper import look_rotation
from Forage3d.env.spawn import Pose
from Forage3d.policies import HeuristicPolicy, RandomPolicy

IDLE = np.zeros(5, dtype=np.float32)


@pytest.fixture
def env():
    environment = Forage3DEnv(max_steps=20)
    yield environment
    environment.close()


def test_spaces(env):
    assert env.observation_space.shape == (10,)
    assert env.action_space.shape == (5,)
    assert np.all(env.action_space.low == -1.0) and np.all(env.action_space.high == 1.0)


def test_reset_and_step_follow_the_gymnasium_api(env):
    obs, info = env.reset(seed=0)
    assert obs.shape == (10,) and obs.dtype == np.float32
    assert env.observation_space.contains(obs)
    assert info['nearest_flower'] is not None

    env.action_space.seed(0)
    for step in range(20):
        obs, reward, terminated, truncated, info = env.step(env.action_space.sample())
        assert isinstance(reward, float)
        assert terminated is False
        assert truncated == (step == 19)
        assert env.observation_space.contains(obs)
        assert -80.0 <= env.agent.pitch <= 80.0


def test_seeded_resets_are_reproducible(env):
    first, _ = env.reset(seed=123)
    env.step(IDLE)
    second, _ = env.reset(seed=123)
    np.testing.assert_allclose(first, second, atol=1e-6)


def test_beak_in_the_nectar_feeds(env):
    env.reset(seed=1)
    flower = env.area.get(0)
    pitch, yaw = look_rotation(-flower.up)
    env.agent.teleport(Pose(position=flower.position + flower.up * BEAK_TIP_OFFSET, pitch=pitch, yaw=yaw))
    env.agent.update_nearest()

    obs, reward, terminated, truncated, info = env.step(IDLE)

    assert info['nectar_obtained'] == pytest.approx(0.01)
    assert flower.quantity == pytest.approx(0.99)
    assert reward == pytest.approx(0.03, abs=1e-3)
    assert info['reward_components']['r_nectar'] == pytest.approx(0.01)


def test_hitting_the_ground_is_penalized(env):
    env.reset(seed=2)
    env.agent.teleport(Pose(position=np.array([0.0, 0.035, 0.0]), pitch=0.0, yaw=0.0))

    _, reward, _, _, info = env.step(IDLE)

    assert reward == pytest.approx(-0.5)
    assert info['reward_components']['r_boundary'] == pytest.approx(-0.5)


def test_emptied_flower_stops_reporting_nectar(env):
    env.reset(seed=3)
    flower = env.area.get(0)
    flower.feed(1.0)
    pitch, yaw = look_rotation(-flower.up)
    env.agent.teleport(Pose(position=flower.position + flower.up * BEAK_TIP_OFFSET, pitch=pitch, yaw=yaw))

    _, _, _, _, info = env.step(IDLE)

    assert info['nectar_obtained'] == 0.0
    assert info['nearest_flower'] != flower.resource_id


@pytest.mark.parametrize("policy_class", [RandomPolicy, HeuristicPolicy])
def test_policies_run_a_full_episode(env, policy_class):
    policy = policy_class(env.action_space)
    obs, _ = env.reset(seed=4)
    truncated = False
    steps = 0
    while not truncated:
        obs, _, _, truncated, _ = env.step(policy.act(obs))
        steps += 1
    assert steps == 20


def test_gymnasium_make():
    environment = gym.make("Forage3d/Hummingbird-v0", max_steps=5)
    try:
        obs, _ = environment.reset(seed=0)
        assert obs.shape == (10,)
        obs, reward, terminated, truncated, _ = environment.step(environment.action_space.sample())
        assert obs.shape == (10,)
    finally:
        environment.close()
