from collections import defaultdict

import numpy as np
import pygame
import pytest

from Forage3d.env.controls import keyboard_action
from Forage3d.env.helper import euler_rotation

IDENTITY = euler_rotation(0.0, 0.0)


def keys(*held):
    pressed = defaultdict(bool)
    for key in held:
        pressed[key] = True
    return pressed


def test_no_keys_means_no_action():
    np.testing.assert_array_equal(keyboard_action(keys(), IDENTITY), np.zeros(5))


@pytest.mark.parametrize("key, expected", [
    (pygame.K_w, [0.0, 0.0, 1.0]),
    (pygame.K_s, [0.0, 0.0, -1.0]),
    (pygame.K_a, [-1.0, 0.0, 0.0]),
    (pygame.K_d, [1.0, 0.0, 0.0]),
    (pygame.K_e, [0.0, 1.0, 0.0]),
    (pygame.K_c, [0.0, -1.0, 0.0]),
])
def test_single_movement_keys(key, expected):
    action = keyboard_action(keys(key), IDENTITY)
    np.testing.assert_allclose(action[0:3], expected, atol=1e-7)
    assert action[3] == 0.0 and action[4] == 0.0


def test_combined_movement_is_normalized():
    action = keyboard_action(keys(pygame.K_w, pygame.K_d, pygame.K_e), IDENTITY)
    np.testing.assert_allclose(action[0:3], np.ones(3) / np.sqrt(3.0), atol=1e-6)
    assert np.linalg.norm(action[0:3]) == pytest.approx(1.0, abs=1e-6)


def test_movement_follows_the_bird_heading():
    turned_right = euler_rotation(0.0, 90.0)
    action = keyboard_action(keys(pygame.K_w), turned_right)
    np.testing.assert_allclose(action[0:3], [1.0, 0.0, 0.0], atol=1e-6)


def test_arrow_keys_pitch_and_turn():
    action = keyboard_action(keys(pygame.K_UP, pygame.K_LEFT), IDENTITY)
    assert action[3] == 1.0
    assert action[4] == -1.0

    action = keyboard_action(keys(pygame.K_DOWN, pygame.K_RIGHT), IDENTITY)
    assert action[3] == -1.0
    assert action[4] == 1.0


def test_opposite_keys_prefer_the_first():
    action = keyboard_action(keys(pygame.K_w, pygame.K_s), IDENTITY)
    np.testing.assert_allclose(action[0:3], [0.0, 0.0, 1.0], atol=1e-7)
