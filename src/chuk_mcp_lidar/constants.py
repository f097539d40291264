"""
Constants for chuk-mcp-lidar server.

All magic strings, source metadata, and configuration values live here.
"""


class ServerConfig:
    NAME = "chuk-mcp-lidar"
    VERSION = "0.1.0"
    DESCRIPTION = "LIDAR Tile Retrieval & Heightmap Synthesis MCP Server"


class EnvVar:
    OUTPUT_DIR = "LIDAR_OUTPUT_DIR"
    URL_TEMPLATE = "LIDAR_URL_TEMPLATE"
    FETCH_WORKERS = "LIDAR_FETCH_WORKERS"
    MCP_STDIO = "MCP_STDIO"


class LidarSource:
    ARSO_OTR = "arso_otr"


class OriginPolicy:
    ARRIVAL = "arrival"
    SMALLEST = "smallest"


DEFAULT_SOURCE = LidarSource.ARSO_OTR

# Full source metadata
LIDAR_SOURCES: dict[str, dict] = {
    LidarSource.ARSO_OTR: {
        "id": LidarSource.ARSO_OTR,
        "name": "ARSO LIDAR OTR (classified ground points)",
        "url_template": (
            "https://gis.arso.gov.si/lidar/otr/laz/b_{block}/D96TM/TMR_{x}_{y}.laz"
        ),
        "coverage": "Slovenia",
        "horizontal_crs": "EPSG:3794",
        "tile_size_m": 1000.0,
        "format": "laz",
        "min_tile_dim": 0,
        "max_tile_dim": 800,
        "license": "CC-BY-4.0",
        "llm_guidance": (
            "Ground-classified LIDAR tiles on a 1 km D96/TM grid. Tiles are split "
            "across numbered blocks; pass every candidate block in "
            "source_variants and the first block that serves a tile wins."
        ),
    },
}

ALL_SOURCE_IDS = list(LIDAR_SOURCES.keys())

# Tile grid
MIN_TILE_DIM = 0
MAX_TILE_DIM = 800
MAX_RADIUS = 255
MAX_AREA_SIDE = 255

# Synthesis defaults
DEFAULT_BLUR_KERNEL_SIZE = 10
DEFAULT_SAMPLE_SIZE = 3
DEFAULT_RESOLUTION = 1024
DEFAULT_ORIGIN_POLICY = OriginPolicy.ARRIVAL
ORIGIN_POLICIES = [OriginPolicy.ARRIVAL, OriginPolicy.SMALLEST]
BLUR_TRUNCATE = 3.0
DEFAULT_BLUR_WORKERS = 1

# Output naming
TILE_FILE_PREFIX = "img"
TILE_FILE_SUFFIX = ".tif"
NEGATIVE_PREFIX = "n"
METADATA_FILENAME = "config.json"
OUTPUT_FORMAT = "geotiff-float32"
OUTPUT_BANDS = 3

# Network
FETCH_TIMEOUT_S = 300.0
PACING_MAX_S = 4.0
RETRY_ATTEMPTS = 3
RETRY_WAIT_MIN = 1
RETRY_WAIT_MAX = 10

TOOL_NAMES = [
    "lidar_list_sources",
    "lidar_describe_source",
    "lidar_status",
    "lidar_capabilities",
    "lidar_plan_region",
    "lidar_generate_heightmaps",
]


class ErrorMessages:
    UNKNOWN_SOURCE = "Unknown LIDAR source '{}'. Available: {}"
    INVALID_POINT = "Invalid tile coordinate '{}': structure should be '(x, y)'"
    POINTS_RADII_MISMATCH = "Number of points ({}) must equal number of radii ({})"
    INVALID_RADIUS = "radius must be between 0 and {}, got {}"
    NO_AREAS = "At least one core point must be given"
    NO_VARIANTS = "At least one source variant (block) must be given"
    INVALID_SAMPLE_SIZE = "sample_size must be >= 1, got {}"
    INVALID_BLUR_KERNEL = "blur_kernel_size must be >= 0, got {}"
    INVALID_RESOLUTION = "resolution must be > 0, got {}"
    INVALID_WORKERS = "{} must be >= 1, got {}"
    INVALID_ORIGIN_POLICY = "Invalid origin policy '{}'. Available: {}"
    NO_OUTPUT_DIR = "No output directory given. Pass output_dir or set {}"
    NO_TILES_ASSEMBLED = "No tiles were assembled; cannot compute height bounds"
    DEGENERATE_BOUNDS = "Degenerate height bounds: min ({}) equals max ({})"
    PARSE_FAILED = "Tile {} could not be decoded as a point cloud: {}"
    WORKER_CRASHED = "Fetch worker {} crashed: {}"
    COMPUTE_CRASHED = "Compute worker crashed: {}"
    INVALID_TILE_FILENAME = "Invalid tile filename '{}'"


class SuccessMessages:
    SOURCES_LIST = "{} LIDAR sources available"
    SOURCE_DESCRIBE = "Source: {} ({})"
    REGION_PLANNED = "{} tiles planned from {} areas"
    RUN_COMPLETE = "Wrote {} heightmaps ({} missing, {} failed)"
