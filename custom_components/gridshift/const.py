"""Constants for the GridShift integration."""

DOMAIN = "gridshift"

# Device types
DEVICE_TYPE_EV_CHARGER = "ev_charger"
DEVICE_TYPE_HVAC = "hvac"
DEVICE_TYPES = [DEVICE_TYPE_EV_CHARGER, DEVICE_TYPE_HVAC]

# Config keys
CONF_DEVICE_TYPE = "device_type"
CONF_POSTCODE = "postcode"
CONF_DEADLINE = "deadline"
CONF_TARGET_STATE = "target_state"
CONF_CURRENT_STATE = "current_state"
CONF_STATE_ENTITY = "state_entity"
CONF_MIN_CLEAN_FRACTION = "min_clean_fraction"
CONF_MIN_WINDOW_MINUTES = "min_window_minutes"
CONF_QUALIFYING_MODE = "qualifying_mode"
CONF_SCORE_THRESHOLD = "score_threshold"
CONF_CLEAN_FLOOR = "clean_floor"
CONF_COMFORT_MIN = "comfort_min"
CONF_COMFORT_MAX = "comfort_max"
CONF_AWAY_TEMPERATURE = "away_temperature"
CONF_OFF_SCORE_THRESHOLD = "off_score_threshold"

# HVAC qualifying modes
QUALIFYING_MODE_SCORE = "score"
QUALIFYING_MODE_TIER = "tier"
QUALIFYING_MODES = [QUALIFYING_MODE_SCORE, QUALIFYING_MODE_TIER]

# Defaults
DEFAULT_DEADLINE = "07:30:00"
DEFAULT_MIN_CLEAN_FRACTION = 0.6
DEFAULT_EV_MIN_WINDOW_MINUTES = 30
DEFAULT_HVAC_MIN_WINDOW_MINUTES = 60
DEFAULT_SCORE_THRESHOLD = 0.5
DEFAULT_CLEAN_FLOOR = 0.5
DEFAULT_EV_TARGET_STATE = 80.0
DEFAULT_EV_CURRENT_STATE = 50.0
DEFAULT_HVAC_TARGET_STATE = 21.0
DEFAULT_HVAC_CURRENT_STATE = 20.0
DEFAULT_COMFORT_MIN = 20.0
DEFAULT_COMFORT_MAX = 24.0
DEFAULT_AWAY_TEMPERATURE = 16.0
DEFAULT_OFF_SCORE_THRESHOLD = 0.7

# Carbon Intensity API (GB National Grid ESO)
CARBON_INTENSITY_API_BASE = "https://api.carbonintensity.org.uk"
CARBON_INTENSITY_SAMPLE_MINUTES = 30

# Forecast sources
SOURCE_CARBON_INTENSITY = "carbon_intensity"
SOURCE_SYNTHETIC = "synthetic"

# Planning horizon requested from the provider
FORECAST_HORIZON_HOURS = 48

# Re-plan cadence between forecast fetches
REPLAN_INTERVAL_MIN = 15
