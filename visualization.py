# visualization.py
"""
Handles the visualization of the airflow simulation using Pygame.

The viewer is a side projection: world +Z (downstream) runs to the right
and world +Y runs up. Particles are colored by blending the path color
toward the impact color with their off-lane deviation.
"""
import logging
import itertools
import pygame
import numpy as np
from particle import ParticleSystem
from playback import PlaybackState
from obstacles import ObstacleDescriptor, ShapeKind
from constants import (
    BACKGROUND_COLOR, DEFAULT_PARTICLE_RADIUS, DEFAULT_PIXELS_PER_UNIT, DEFAULT_WINDOW_SIZE, EMITTER_COLOR,
    FULLSCREEN, MOTION_BLUR_ALPHA, OBSTACLE_COLOR,
    UI_BACKGROUND_ALPHA, UI_PANEL_WIDTH, DEFAULT_PATH_COLOR, DEFAULT_IMPACT_COLOR,
)
from utils import blend_colors, parse_hex_color
from typing import Optional, Tuple

# Forward reference for type hinting to avoid circular import
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from simulation import Simulation


# --- Data Contracts ---
#
# class Visualizer:
#   - __init__(self, vis_params: Optional[dict] = None):
#     - Inputs:
#       - vis_params: the "visualization" section of config.json
#         ("path_color", "impact_color", "pixels_per_unit").
#     - Side Effects: Initializes Pygame and creates a display surface.
#
#   - draw(self, particles, simulation, playback) -> bool:
#     - Outputs:
#       - bool: False if the user has quit, True otherwise.
#     - Side Effects: Renders particles, obstacle outlines and the parameter
#       panel; handles keyboard playback and turbulence controls.

TURBULENCE_STEP = 0.05


class Visualizer:
    """
    Renders the particle state and a small parameter panel.
    """
    def __init__(self, vis_params: Optional[dict] = None):
        """
        Initializes Pygame and the display window.
        """
        pygame.init()
        pygame.font.init()

        vis_params = vis_params if vis_params is not None else {}
        self.screen = self._create_display(vis_params)
        width, height = self.screen.get_size()
        self.sim_width = width - UI_PANEL_WIDTH
        self.sim_height = height

        self.sim_surface = pygame.Surface((self.sim_width, self.sim_height))
        # Fading the previous frame stands in for particle trails.
        self.blur_surface = pygame.Surface((self.sim_width, self.sim_height), pygame.SRCALPHA)
        self.blur_surface.fill((BACKGROUND_COLOR[0], BACKGROUND_COLOR[1], BACKGROUND_COLOR[2], MOTION_BLUR_ALPHA))
        self.ui_panel_surface = pygame.Surface((UI_PANEL_WIDTH, self.sim_height), pygame.SRCALPHA)
        self.ui_panel_surface.fill((40, 40, 40, UI_BACKGROUND_ALPHA))

        pygame.display.set_caption("Airflow Shaper")
        self.clock = pygame.time.Clock()

        self.pixels_per_unit = float(vis_params.get('pixels_per_unit', DEFAULT_PIXELS_PER_UNIT))
        self.path_color, self.impact_color = self._initialize_colors(vis_params)
        # World origin sits a third of the way across the view.
        self.origin = (self.sim_width / 3.0, self.sim_height / 2.0)

        try:
            self.font_title = pygame.font.SysFont("Segoe UI", 16, bold=True)
            self.font_main = pygame.font.SysFont("Segoe UI", 14)
        except pygame.error:
            logging.warning("Segoe UI font not found, falling back to default sans-serif.")
            self.font_title = pygame.font.SysFont(None, 20, bold=True)
            self.font_main = pygame.font.SysFont(None, 18)

        self.text_color_title = (255, 255, 255)
        self.text_color_key = (200, 200, 200)
        self.param_box_color = (60, 60, 60, 160)

        logging.info(f"Visualizer initialized with Pygame display ({width}x{height}).")

    def _create_display(self, vis_params: dict) -> pygame.Surface:
        """Opens a borderless fullscreen display or a window of the configured size."""
        if FULLSCREEN:
            info = pygame.display.Info()
            return pygame.display.set_mode((info.current_w, info.current_h), pygame.FULLSCREEN)
        view_width, view_height = vis_params.get('window_size', DEFAULT_WINDOW_SIZE)
        return pygame.display.set_mode((int(view_width) + UI_PANEL_WIDTH, int(view_height)))

    def _initialize_colors(self, vis_params: dict) -> Tuple[Tuple[int, int, int], Tuple[int, int, int]]:
        """Reads the path and impact colors, falling back to the defaults."""
        try:
            path = parse_hex_color(vis_params.get('path_color', DEFAULT_PATH_COLOR))
            impact = parse_hex_color(vis_params.get('impact_color', DEFAULT_IMPACT_COLOR))
        except (ValueError, AttributeError) as e:
            logging.error(f"Could not parse colors from config: {e}. Falling back to defaults.")
            path = parse_hex_color(DEFAULT_PATH_COLOR)
            impact = parse_hex_color(DEFAULT_IMPACT_COLOR)
        return path, impact

    def project(self, points: np.ndarray) -> np.ndarray:
        """Maps world points of shape (N, 3) to integer screen coordinates (N, 2)."""
        points = np.atleast_2d(points)
        screen = np.empty((len(points), 2))
        screen[:, 0] = self.origin[0] + points[:, 2] * self.pixels_per_unit
        screen[:, 1] = self.origin[1] - points[:, 1] * self.pixels_per_unit
        return screen.astype(np.int32)

    def _local_half_extents(self, descriptor: ObstacleDescriptor) -> np.ndarray:
        p = descriptor.shape_params
        if descriptor.kind == ShapeKind.SPHERE:
            return np.array([p[0], p[0], p[0]])
        if descriptor.kind == ShapeKind.TORUS:
            return np.array([p[0] + p[1], p[0] + p[1], p[1]])
        if descriptor.kind == ShapeKind.PYRAMID:
            return np.array([p[0], p[1], p[2] * 0.5])
        return p.copy()

    def _draw_obstacle(self, descriptor: ObstacleDescriptor):
        """Draws the projected local bounding box of one obstacle."""
        half = self._local_half_extents(descriptor) * descriptor.scale
        corners_local = np.array(list(itertools.product((-1, 1), repeat=3)), dtype=np.float64) * half
        corners = descriptor.center + corners_local @ descriptor.axes
        screen = self.project(corners)
        for a, b in itertools.combinations(range(8), 2):
            # Box edges join corners that differ in exactly one sign.
            if bin(a ^ b).count('1') == 1:
                pygame.draw.line(self.sim_surface, OBSTACLE_COLOR, screen[a].tolist(), screen[b].tolist(), 1)

    def _draw_emitter(self, simulation: "Simulation"):
        spawn_set = simulation.spawn_set
        if spawn_set is None or len(spawn_set.vertices) == 0:
            return
        screen = self.project(spawn_set.vertices)
        top, bottom = int(screen[:, 1].min()), int(screen[:, 1].max())
        x = int(np.median(screen[:, 0]))
        pygame.draw.line(self.sim_surface, EMITTER_COLOR, (x, top), (x, bottom), 3)

    def _draw_simulation_parameters(self, simulation: "Simulation", playback: PlaybackState):
        """Renders the flow settings as a list of key/value rows."""
        settings = simulation.settings
        rows = [
            ("State", "Playing" if playback.is_playing else "Paused"),
            ("Time", f"{simulation.time:.2f}s"),
            ("Obstacles", str(len(simulation.field))),
            ("Particles", str(simulation.particles.particle_count)),
            ("Contacts", str(int(np.count_nonzero(simulation.particles.contacts)))),
            ("Flow Speed", f"{settings.flow_speed:.2f}"),
            ("Flow Length", f"{settings.flow_length:.2f}"),
            ("Turbulence", f"{settings.turbulence_strength:.2f}"),
            ("Recovery Length", f"{settings.recovery_length:.2f}"),
            ("Impact Buffer", f"{settings.influence_radius:.2f}"),
            ("Wake Strength", f"{settings.wake_strength:.2f}"),
            ("Drag", f"{settings.drag:.2f}"),
        ]
        panel_x = self.sim_width + 20
        current_y = 20
        title = self.font_title.render("Airflow", True, self.text_color_title)
        self.screen.blit(title, (panel_x, current_y))
        current_y += title.get_height() + 10

        line_height = self.font_main.get_linesize()
        for key, value in rows:
            box_rect = pygame.Rect(panel_x, current_y, UI_PANEL_WIDTH - 40, line_height + 8)
            pygame.draw.rect(self.screen, self.param_box_color, box_rect, border_radius=6)
            key_surf = self.font_main.render(key, True, self.text_color_key)
            value_surf = self.font_main.render(value, True, self.text_color_title)
            self.screen.blit(key_surf, (panel_x + 8, current_y + 4))
            self.screen.blit(value_surf, value_surf.get_rect(topright=(box_rect.right - 8, current_y + 4)))
            current_y += box_rect.height + 4

        hint = self.font_main.render("Space: play/pause  R: restart  Up/Down: turbulence", True, self.text_color_key)
        self.screen.blit(hint, (self.sim_width + 10, self.sim_height - line_height - 10))

    def _handle_key(self, key: int, simulation: "Simulation", playback: PlaybackState) -> bool:
        if key == pygame.K_ESCAPE:
            logging.info("ESC key pressed. Shutting down visualizer.")
            return False
        if key == pygame.K_SPACE:
            playback.toggle()
            logging.info(f"Playback {'resumed' if playback.is_playing else 'paused'} by user.")
        elif key == pygame.K_r:
            playback.restart()
            simulation.restart()
        elif key in (pygame.K_UP, pygame.K_DOWN):
            change = TURBULENCE_STEP if key == pygame.K_UP else -TURBULENCE_STEP
            old_value = simulation.settings.turbulence_strength
            new_value = max(0.0, old_value + change)
            simulation.apply_settings(simulation.settings._replace(impact_turbulence=new_value))
            logging.info(f"Turbulence updated. Old: {old_value:.2f}, New: {new_value:.2f}")
        return True

    def draw(self, particles: ParticleSystem, simulation: "Simulation", playback: PlaybackState) -> bool:
        """
        Draws all particles and UI, and handles events.

        Returns:
            bool: False if the simulation should exit, True otherwise.
        """
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit event received. Shutting down visualizer.")
                return False
            if event.type == pygame.KEYDOWN:
                if not self._handle_key(event.key, simulation, playback):
                    return False

        # 1. Fade the previous frame.
        self.sim_surface.blit(self.blur_surface, (0, 0))

        # 2. Scene geometry.
        for descriptor in simulation.field.descriptors:
            self._draw_obstacle(descriptor)
        self._draw_emitter(simulation)

        # 3. Particles, colored by their off-lane deviation.
        screen = self.project(particles.positions)
        colors = blend_colors(self.path_color, self.impact_color, simulation.color_blend()).astype(np.int32)
        visible = (
            (screen[:, 0] >= 0) & (screen[:, 0] < self.sim_width)
            & (screen[:, 1] >= 0) & (screen[:, 1] < self.sim_height)
        )
        for i in np.flatnonzero(visible):
            pygame.draw.circle(
                self.sim_surface,
                tuple(int(c) for c in colors[i]),
                (int(screen[i, 0]), int(screen[i, 1])),
                DEFAULT_PARTICLE_RADIUS
            )

        self.screen.blit(self.sim_surface, (0, 0))
        self.screen.blit(self.ui_panel_surface, (self.sim_width, 0))
        self._draw_simulation_parameters(simulation, playback)

        pygame.display.flip()
        return True

    def tick(self, fps: int) -> float:
        """Waits for the next frame and returns the elapsed wall time in seconds."""
        return self.clock.tick(fps) / 1000.0

    def close(self):
        """Shuts down Pygame."""
        pygame.font.quit()
        pygame.quit()
