import numpy as np
import pytest

from Forage3d.constants import BEAK_TIP_OFFSET, MAX_PITCH_ANGLE
from Forage3d.env.errors import ActionContractError, PreconditionError, ResourceNotFoundError
from Forage3d.env.helper import distance
from Forage3d.env.spawn import Pose

FACING_AGENT = (0.0, 0.0, -1.0)
SENSOR = np.array([0.0, 0.0, BEAK_TIP_OFFSET])


def flowers_at_distances(distances, axis=(1.0, 0.0, 0.0)):
    """Flowers placed along `axis` at the given distances from the beak tip of an agent at the origin."""
    axis = np.asarray(axis, dtype=float)
    return [(SENSOR + axis * d, FACING_AGENT) for d in distances]


# ----------------------------------------------------------------------
# Nearest flower tracking
# ----------------------------------------------------------------------
def test_nearest_is_the_closest_flower_with_nectar(make_agent):
    agent = make_agent(flowers_at_distances([3.0, 1.0, 5.0]))
    assert agent.update_nearest().resource_id == 1
    assert agent.nearest_id == 1


def test_emptied_target_is_replaced(make_agent):
    agent = make_agent(flowers_at_distances([3.0, 1.0, 5.0]))
    agent.update_nearest()

    agent.area.get(1).feed(1.0)
    agent.fixed_update()

    assert agent.nearest_id == 0


def test_no_flower_with_nectar_clears_target_and_zeroes_observation(make_agent):
    agent = make_agent(flowers_at_distances([3.0, 1.0]))
    agent.update_nearest()
    for flower in agent.area:
        flower.feed(1.0)

    assert agent.nearest is None
    assert agent.update_nearest() is None
    assert agent.nearest_id is None
    np.testing.assert_array_equal(agent.observe(), np.zeros(10, dtype=np.float32))


def test_observation_moves_on_when_the_target_is_drained_elsewhere(make_agent):
    agent = make_agent(flowers_at_distances([3.0, 1.0]))
    agent.update_nearest()
    assert agent.nearest_id == 1

    agent.area.get(1).feed(1.0)
    obs = agent.observe()

    assert agent.nearest_id == 0
    assert obs[9] == pytest.approx(3.0 / 20.0)
    np.testing.assert_allclose(obs[4:7], [1.0, 0.0, 0.0], atol=1e-6)


def test_equally_close_flowers_keep_the_first_one(make_agent):
    agent = make_agent(flowers_at_distances([2.0, 2.0]))
    assert agent.update_nearest().resource_id == 0


def test_tracked_target_is_kept_unless_another_is_strictly_closer(make_agent):
    agent = make_agent([(SENSOR + np.array([2.0, 0.0, 0.0]), FACING_AGENT),
                        (SENSOR + np.array([-2.0, 0.0, 0.0]), FACING_AGENT)])
    agent.nearest_id = 1
    agent.update_nearest()
    assert agent.nearest_id == 1


# ----------------------------------------------------------------------
# Observation
# ----------------------------------------------------------------------
def test_observation_of_a_flower_straight_ahead(make_agent):
    agent = make_agent(flowers_at_distances([1.0], axis=(0.0, 0.0, 1.0)))
    agent.update_nearest()

    obs = agent.observe()

    assert obs.shape == (10,)
    assert obs.dtype == np.float32
    np.testing.assert_allclose(obs[0:4], [0.0, 0.0, 0.0, 1.0], atol=1e-6)
    np.testing.assert_allclose(obs[4:7], [0.0, 0.0, 1.0], atol=1e-6)
    assert obs[7] == pytest.approx(1.0)
    assert obs[8] == pytest.approx(1.0)
    assert obs[9] == pytest.approx(1.0 / 20.0)


def test_observation_of_a_flower_to_the_side(make_agent):
    # Flower to the right, facing back along -x
    agent = make_agent([(SENSOR + np.array([2.0, 0.0, 0.0]), (-1.0, 0.0, 0.0))])
    agent.update_nearest()

    obs = agent.observe()

    np.testing.assert_allclose(obs[4:7], [1.0, 0.0, 0.0], atol=1e-6)
    assert obs[7] == pytest.approx(1.0)
    assert obs[8] == pytest.approx(0.0, abs=1e-6)
    assert obs[9] == pytest.approx(0.1)
    assert np.linalg.norm(obs[0:4]) == pytest.approx(1.0)


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------
def test_move_part_of_the_action_becomes_a_force(make_agent, fake_physics):
    agent = make_agent(flowers_at_distances([1.0]))
    agent.act([0.5, -1.0, 0.25, 0.0, 0.0])
    np.testing.assert_allclose(fake_physics.forces[-1], [1.0, -2.0, 0.5])


def test_out_of_range_inputs_are_clamped(make_agent, fake_physics):
    agent = make_agent(flowers_at_distances([1.0]))
    agent.act([5.0, 0.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(fake_physics.forces[-1], [2.0, 0.0, 0.0])


def test_turning_is_smoothed(make_agent):
    agent = make_agent(flowers_at_distances([1.0]))
    agent.act([0.0, 0.0, 0.0, 0.0, 1.0])

    # Rate moves toward 1 by at most 2 * dt = 0.04; yaw moves by 0.04 * dt * 100
    assert agent.smooth_yaw_change == pytest.approx(0.04)
    assert agent.yaw == pytest.approx(0.08)

    for _ in range(100):
        agent.act([0.0, 0.0, 0.0, 0.0, 1.0])
    assert agent.smooth_yaw_change == pytest.approx(1.0)


@pytest.mark.parametrize("pitch_input, limit", [(1.0, MAX_PITCH_ANGLE), (-1.0, -MAX_PITCH_ANGLE)])
def test_pitch_never_leaves_the_clamp(make_agent, pitch_input, limit):
    agent = make_agent(flowers_at_distances([1.0]))
    for _ in range(500):
        agent.act([0.0, 0.0, 0.0, pitch_input, 0.0])
        assert -MAX_PITCH_ANGLE <= agent.pitch <= MAX_PITCH_ANGLE
    assert agent.pitch == pytest.approx(limit)


def test_yaw_wraps_around(make_agent):
    agent = make_agent(flowers_at_distances([1.0]))
    for _ in range(1000):
        agent.act([0.0, 0.0, 0.0, 0.0, 1.0])
        assert -180.0 < agent.yaw <= 180.0


def test_orientation_is_pushed_to_physics(make_agent, fake_physics):
    agent = make_agent(flowers_at_distances([1.0]))
    for _ in range(10):
        agent.act([0.0, 0.0, 0.0, 1.0, 1.0])
    np.testing.assert_allclose(fake_physics.orientation, agent.orientation.as_quat())


@pytest.mark.parametrize("action", [
    [0.0, 0.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
    [0.0, np.nan, 0.0, 0.0, 0.0],
    [0.0, 0.0, np.inf, 0.0, 0.0],
    ["fly", 0.0, 0.0, 0.0, 0.0],
])
def test_malformed_actions_are_rejected(make_agent, action):
    agent = make_agent(flowers_at_distances([1.0]))
    with pytest.raises(ActionContractError):
        agent.act(action)


# ----------------------------------------------------------------------
# Feeding and boundary
# ----------------------------------------------------------------------
def test_feeding_while_facing_the_flower_earns_the_full_bonus(make_agent):
    agent = make_agent(flowers_at_distances([0.0], axis=(0.0, 0.0, 1.0)))
    contact_id = agent.area.get(0).contact_id

    taken = agent.on_nectar_contact(contact_id, sensor_distance=0.0)

    assert taken == pytest.approx(0.01)
    assert agent.nectar_obtained == pytest.approx(0.01)
    assert agent.area.get(0).quantity == pytest.approx(0.99)
    total, components = agent.reward_manager.flush()
    assert total == pytest.approx(0.03)
    assert components['r_nectar'] == pytest.approx(0.01)
    assert components['r_nectar_alignment'] == pytest.approx(0.02)


def test_feeding_from_behind_earns_only_the_base_reward(make_agent):
    agent = make_agent([(SENSOR, (0.0, 0.0, 1.0))])
    agent.on_nectar_contact(agent.area.get(0).contact_id, sensor_distance=0.0)
    total, _ = agent.reward_manager.flush()
    assert total == pytest.approx(0.01)


def test_contact_away_from_the_beak_tip_is_ignored(make_agent):
    agent = make_agent(flowers_at_distances([0.0]))
    taken = agent.on_nectar_contact(agent.area.get(0).contact_id, sensor_distance=0.008)
    assert taken == 0.0
    assert agent.nectar_obtained == 0.0
    assert agent.area.get(0).quantity == 1.0
    assert agent.reward_manager.flush()[0] == 0.0


def test_feeding_outside_training_earns_no_reward(make_agent):
    agent = make_agent(flowers_at_distances([0.0]), training_mode=False)
    agent.on_nectar_contact(agent.area.get(0).contact_id, sensor_distance=0.0)
    assert agent.nectar_obtained == pytest.approx(0.01)
    assert agent.reward_manager.flush()[0] == 0.0


def test_emptying_the_target_moves_on_to_the_next_flower(make_agent):
    agent = make_agent(flowers_at_distances([0.0, 1.0]))
    agent.update_nearest()
    target = agent.area.get(0)
    target.feed(0.995)

    taken = agent.on_nectar_contact(target.contact_id, sensor_distance=0.0)

    assert taken == pytest.approx(0.005)
    assert not target.has_nectar
    assert agent.nearest_id == 1


def test_beak_tip_contact_with_an_empty_flower_is_still_rewarded(make_agent):
    agent = make_agent(flowers_at_distances([0.0], axis=(0.0, 0.0, 1.0)))
    flower = agent.area.get(0)
    flower.feed(1.0)

    taken = agent.on_nectar_contact(flower.contact_id, sensor_distance=0.0)

    assert taken == 0.0
    assert agent.nectar_obtained == 0.0
    assert agent.reward_manager.flush()[0] == pytest.approx(0.03)


def test_contact_with_unknown_collider_raises(make_agent):
    agent = make_agent(flowers_at_distances([1.0]))
    with pytest.raises(ResourceNotFoundError):
        agent.on_nectar_contact("not-a-flower", sensor_distance=0.0)


def test_boundary_contact_is_penalized_in_training_only(make_agent):
    agent = make_agent(flowers_at_distances([1.0]))
    agent.on_boundary_contact()
    assert agent.reward_manager.flush()[0] == pytest.approx(-0.5)

    manual = make_agent(flowers_at_distances([1.0]), training_mode=False)
    manual.on_boundary_contact()
    assert manual.reward_manager.flush()[0] == 0.0


# ----------------------------------------------------------------------
# Episode begin and freezing
# ----------------------------------------------------------------------
def test_episode_begin_resets_state_and_spawns_safely(make_agent, fake_physics):
    agent = make_agent(flowers_at_distances([3.0, 1.0, 5.0]))
    agent.nectar_obtained = 0.5
    agent.smooth_yaw_change = 0.7

    agent.on_episode_begin()

    assert agent.nectar_obtained == 0.0
    assert agent.smooth_yaw_change == 0.0
    assert fake_physics.stop_count >= 1
    np.testing.assert_allclose(fake_physics.position, agent.position)
    assert agent.nearest is not None
    closest = min(agent.area, key=lambda r: distance(r.position, agent.sensor_point))
    assert agent.nearest_id == closest.resource_id


def test_turn_smoothing_can_carry_over_episodes(make_agent):
    agent = make_agent(flowers_at_distances([1.0]), reset_turn_smoothing=False)
    agent.smooth_yaw_change = 0.7
    agent.on_episode_begin()
    assert agent.smooth_yaw_change == 0.7


def test_manual_play_always_spawns_in_front_of_a_flower(make_agent):
    agent = make_agent(flowers_at_distances([3.0, 1.0, 5.0]), training_mode=False)
    for _ in range(10):
        agent.on_episode_begin()
        assert min(distance(r.position, agent.position) for r in agent.area) <= 0.2 + 1e-9


def test_teleport_clamps_a_steep_pitch(make_agent, fake_physics):
    agent = make_agent(flowers_at_distances([1.0]))
    agent.teleport(Pose(position=np.zeros(3), pitch=89.5, yaw=30.0))
    assert agent.pitch == MAX_PITCH_ANGLE
    assert agent.yaw == pytest.approx(30.0)

    agent.teleport(Pose(position=np.zeros(3), pitch=-95.0, yaw=0.0))
    assert agent.pitch == -MAX_PITCH_ANGLE


def test_spawning_above_an_upward_flower_respects_the_pitch_clamp(make_agent):
    agent = make_agent([((0.0, 1.0, 0.0), (0.0, 1.0, 0.0))], training_mode=False)
    agent.on_episode_begin()
    assert agent.pitch == MAX_PITCH_ANGLE


def test_freeze_is_refused_in_training(make_agent):
    agent = make_agent(flowers_at_distances([1.0]))
    with pytest.raises(PreconditionError):
        agent.freeze()
    with pytest.raises(PreconditionError):
        agent.unfreeze()


def test_frozen_agent_ignores_actions(make_agent, fake_physics):
    agent = make_agent(flowers_at_distances([1.0]), training_mode=False)
    agent.freeze()
    assert fake_physics.sleeping

    agent.act([1.0, 0.0, 0.0, 1.0, 1.0])
    assert fake_physics.forces == []
    assert agent.pitch == 0.0 and agent.yaw == 0.0

    agent.unfreeze()
    assert not fake_physics.sleeping
    agent.act([1.0, 0.0, 0.0, 1.0, 1.0])
    assert len(fake_physics.forces) == 1
