# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They are the tuned constants of the procedural flow model and the
rendering properties of the viewer, as opposed to the experimental
configuration that lives in config.json.
"""

# --- Flow Field ---
# Central-difference step used to estimate the curl of the noise potentials.
CURL_EPSILON = 0.05
# Raw curl magnitudes below this are treated as zero instead of normalized.
CURL_MIN_MAGNITUDE = 1e-5
# Wake decay length relative to the wake radius. Tuned by eye, not derived.
WAKE_DECAY_LENGTH_RATIO = 5.5

# --- Obstacle Interaction ---
# Smallest accepted magnitude for any scale component or shape parameter.
SCALE_EPSILON = 1e-4
MIN_INFLUENCE_RADIUS = 0.01
# Hard barrier thickness is min(BARRIER_MAX, influence * BARRIER_INFLUENCE_RATIO).
BARRIER_MAX = 0.05
BARRIER_INFLUENCE_RATIO = 0.35
PUSH_OUT_EPSILON = 1e-4
# Tangential steering around the obstacle, scaled by shell depth.
BYPASS_STEER_STRENGTH = 0.75
# Pull along the tangential flow direction for sliding particles.
SLIDE_FLOW_PULL = 0.5
# Plane obstacles are thin boxes of this thickness relative to the influence radius.
PLANE_THICKNESS_RATIO = 0.25
# Wake realignment toward the stream direction.
WAKE_REALIGN_RATE = 0.35
WAKE_REALIGN_MAX_BLEND = 0.2
WAKE_MIN_FACTOR = 1e-5

# --- Particle Integrator ---
BASE_FLOW_RELAX_RATE = 1.4
IMPACT_TURBULENCE_GAIN = 2.25
LANE_RECOVERY_GAIN = 1.2
LANE_RECOVERY_MAX_STEP = 0.35
LANE_MIN_FORWARD_SPEED = 0.2
MIN_RECOVERY_LENGTH = 0.1
# Impact weight relaxes toward min(1, deviation * 2) at rate dt * (BASE + SPAN / recovery).
IMPACT_WEIGHT_RELAX_BASE = 1.2
IMPACT_WEIGHT_RELAX_SPAN = 2.8
IMPACT_WEIGHT_SNAP = 0.02
IMPACT_DEVIATION_SNAP = 0.01

# --- Off-Lane Deviation ---
# Lateral distance (world units) mapped to the full impact color.
OFF_PATH_DISTANCE_FOR_MAX_COLOR = 0.9

# --- Emission ---
EMITTER_WIDTH = 2.0
EMITTER_HEIGHT = 1.2
EMITTER_DENSITY_MIN = 1
EMITTER_DENSITY_MAX = 70
SPAWN_JITTER = 0.15
SPAWN_RATE_PER_VERTEX = 1.5
MIN_EFFECTIVE_SPAWN_RATE = 8.0
FLOW_LENGTH_MIN = 0.1
FLOW_LENGTH_LIFETIME_EXPONENT = 0.5
MIN_PARTICLE_LIFETIME = 0.05

# --- Timing ---
# Callers clamp the frame delta into this range before ticking.
MIN_DELTA_TIME = 1.0 / 240.0
MAX_DELTA_TIME = 0.05
MIN_PLAYBACK_SPEED = 0.05

# --- Colors ---
DEFAULT_PATH_COLOR = "#1100ff"
DEFAULT_IMPACT_COLOR = "#ff8552"

# --- Visualization settings ---
# Set to True to run in borderless fullscreen mode.
# Set to False to run in a window; its view size comes from
# visualization.window_size in config.json (the panel is added on the right).
FULLSCREEN = False
DEFAULT_WINDOW_SIZE = (1500, 700)
UI_PANEL_WIDTH = 300
FPS = 60
BACKGROUND_COLOR = (0, 0, 0)
OBSTACLE_COLOR = (95, 115, 138)
EMITTER_COLOR = (27, 126, 165)
DEFAULT_PARTICLE_RADIUS = 2
DEFAULT_PIXELS_PER_UNIT = 90.0
# Alpha value for the motion blur effect (0-255). Lower is a longer trail.
MOTION_BLUR_ALPHA = 40
# Alpha for the UI panel background
UI_BACKGROUND_ALPHA = 100
