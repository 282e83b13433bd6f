"""
Centralized configuration — all env vars, constants, status vocabularies.
"""
import os


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# ── Redis (circuit breaker state) ────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── Database ─────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── LightFusion (external modeling provider) ─────────────────────────────────
LIGHTFUSION_API_URL = os.getenv('LIGHTFUSION_API_URL', 'http://localhost:8085')
LIGHTFUSION_API_KEY = os.getenv('LIGHTFUSION_API_KEY')
LIGHTFUSION_EMAIL = os.getenv('LIGHTFUSION_EMAIL')
LIGHTFUSION_PASSWORD = os.getenv('LIGHTFUSION_PASSWORD')
LIGHTFUSION_STORAGE_URL = os.getenv(
    'LIGHTFUSION_STORAGE_URL', 'https://storage.googleapis.com/lightfusiondev',
)
LIGHTFUSION_TIMEOUT = float(os.getenv('LIGHTFUSION_TIMEOUT', '30'))
LIGHTFUSION_SESSION_TTL = int(os.getenv('LIGHTFUSION_SESSION_TTL', '43200'))  # 12h, 0 = never expires

# Master switch for dual-write/dual-read against the provider
USE_EXTERNAL_API = _env_bool('USE_EXTERNAL_API', True)

# ── Circuit breaker ──────────────────────────────────────────────────────────
BREAKER_FAILURE_THRESHOLD = int(os.getenv('BREAKER_FAILURE_THRESHOLD', '3'))
BREAKER_RESET_TIMEOUT = int(os.getenv('BREAKER_RESET_TIMEOUT', '120'))

# ── Mesh assets ──────────────────────────────────────────────────────────────
MEDIA_DIR = os.getenv('MEDIA_DIR', './media')
ASSET_WORKERS = int(os.getenv('ASSET_WORKERS', '4'))
FETCH_ASSETS_ON_COMPLETE = _env_bool('FETCH_ASSETS_ON_COMPLETE', True)

# ── Listing ──────────────────────────────────────────────────────────────────
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

# ── Sync status values ───────────────────────────────────────────────────────
SYNC_PENDING = 'pending'
SYNC_SYNCED = 'synced'
SYNC_FAILED = 'failed'

# ── 3D model status values ───────────────────────────────────────────────────
MODEL_NONE = 'none'
MODEL_REQUESTED = 'requested'
MODEL_PROCESSING = 'processing'
MODEL_COMPLETED = 'completed'
MODEL_FAILED = 'failed'
MODEL_STATUSES = [MODEL_NONE, MODEL_REQUESTED, MODEL_PROCESSING, MODEL_COMPLETED, MODEL_FAILED]

# Project lifecycle as seen from a lead with no binding
PROJECT_NONE = 'no_project'

# ── Lead lifecycle / source codes ────────────────────────────────────────────
LEAD_STATE_INITIALIZED = 0

LEAD_SOURCE_MANUAL = 1
LEAD_SOURCE_EARTH = 2
