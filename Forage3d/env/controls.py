"""
Keyboard control of the hummingbird for manual play.

Movement keys act relative to the bird: W/S fly along its beak, A/D strafe,
E/C rise and sink along its own up axis. The arrow keys pitch and turn. The
resulting action uses the same 5-float layout a policy would produce, so
manual play goes through exactly the same `act` path.
"""
import logging
from typing import Dict, Optional

import numpy as np
import pygame
from scipy.spatial.transform import Rotation

from Forage3d.constants import ACTION_DIM
from Forage3d.env.helper import basis_vectors, normalize_vector

logger = logging.getLogger(__name__)

HUD_SIZE = (360, 140)


def keyboard_action(pressed, orientation: Rotation) -> np.ndarray:
    """
    Converts the current key state into an action vector.

    Args:
        pressed: Key state indexable by pygame key constants, e.g. the result
                 of `pygame.key.get_pressed()`.
        orientation (Rotation): Current orientation of the agent.

    Returns:
        np.ndarray: [move_x, move_y, move_z, pitch, yaw]; the move part is a
        unit vector in world space, or zero when no movement key is held.
    """
    right, up, forward = basis_vectors(orientation)
    move_forward = np.zeros(3)
    move_side = np.zeros(3)
    move_up = np.zeros(3)
    pitch = 0.0
    yaw = 0.0

    if pressed[pygame.K_w]:
        move_forward = forward
    elif pressed[pygame.K_s]:
        move_forward = -forward

    if pressed[pygame.K_a]:
        move_side = -right
    elif pressed[pygame.K_d]:
        move_side = right

    if pressed[pygame.K_e]:
        move_up = up
    elif pressed[pygame.K_c]:
        move_up = -up

    if pressed[pygame.K_UP]:
        pitch = 1.0
    elif pressed[pygame.K_DOWN]:
        pitch = -1.0

    if pressed[pygame.K_LEFT]:
        yaw = -1.0
    elif pressed[pygame.K_RIGHT]:
        yaw = 1.0

    action = np.zeros(ACTION_DIM, dtype=np.float32)
    action[0:3] = normalize_vector(move_forward + move_side + move_up)
    action[3] = pitch
    action[4] = yaw
    return action


class KeyboardWindow:
    """
    Small pygame window that owns keyboard focus during manual play and shows
    a status line for the bird.

    Keys handled here rather than in `keyboard_action`: F toggles freeze,
    R requests a new episode, Escape or closing the window quits.
    """
    def __init__(self, caption: str = "Forage3d manual play", size=HUD_SIZE):
        pygame.init()
        pygame.display.init()
        pygame.font.init()
        self.screen = pygame.display.set_mode(size)
        pygame.display.set_caption(caption)
        self.clock = pygame.time.Clock()
        try:
            self.font = pygame.font.SysFont("arial", 16)
        except pygame.error:
            logger.warning("SysFont 'arial' not found, using default font.")
            self.font = pygame.font.Font(None, 20)

    def poll(self) -> Dict[str, bool]:
        """Drains pending events. Returns which one-shot commands were requested."""
        commands = {"quit": False, "toggle_freeze": False, "reset": False}
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                commands["quit"] = True
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    commands["quit"] = True
                elif event.key == pygame.K_f:
                    commands["toggle_freeze"] = True
                elif event.key == pygame.K_r:
                    commands["reset"] = True
        return commands

    def action(self, orientation: Rotation) -> np.ndarray:
        return keyboard_action(pygame.key.get_pressed(), orientation)

    def draw(self, lines, fps: Optional[int] = None) -> None:
        self.screen.fill((30, 30, 30))
        for i, text in enumerate(lines):
            surface = self.font.render(str(text), True, (220, 220, 220))
            self.screen.blit(surface, (10, 10 + i * 22))
        pygame.display.flip()
        if fps:
            self.clock.tick(fps)

    def close(self) -> None:
        if pygame.get_init():
            pygame.display.quit()
            pygame.quit()
