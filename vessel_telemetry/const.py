"""
Application constants and metadata.
"""

# Application info
APP_NAME = "Vessel Telemetry"
APP_VERSION = "0.1.0"

# Server defaults
DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8080
DEFAULT_STREAM_PORT = 8081
DEFAULT_CLIENT_ID_PREFIX = "vessel_telemetry"
DEFAULT_MQTT_KEEPALIVE = 30
DEFAULT_QOS = 1

# Simulation defaults
DEFAULT_INTERVAL_MS = 1000

# Physical constants
EARTH_RADIUS_M = 6_371_000.0
KNOTS_TO_MPS = 0.514444
MAX_SPEED_KNOTS = 102.2

# Orientation envelope (degrees)
ROLL_LIMIT = 60.0
PITCH_LIMIT = 30.0
YAW_RATE_LIMIT = 50.0

# Subscriber outbound queue size (messages)
SUBSCRIBER_QUEUE_SIZE = 256
