"""
Configuration module for the Caravan Ops API
Environment-agnostic: Works locally, in Docker, and on Google Cloud
Loads environment variables and validates configuration
"""
import os
import tempfile
from pathlib import Path
from dotenv import load_dotenv

# Get project root directory (parent of src/)
PROJECT_ROOT = Path(__file__).parent.parent

# Load environment variables from .env file (if exists - local dev only)
env_file = PROJECT_ROOT / '.env'
if env_file.exists():
    load_dotenv(env_file)

# ═══════════════════════════════════════════════════════════════════
# ENVIRONMENT DETECTION
# ═══════════════════════════════════════════════════════════════════

def detect_environment() -> str:
    """
    Detect which environment we're running in

    Returns:
        'cloud_run', 'kubernetes', 'docker', or 'local'
    """
    if os.getenv('K_SERVICE'):
        return 'cloud_run'

    if os.getenv('KUBERNETES_SERVICE_HOST'):
        return 'kubernetes'

    if Path('/.dockerenv').exists():
        return 'docker'

    if os.getenv('GOOGLE_CLOUD_PROJECT') or os.getenv('GCP_PROJECT'):
        return 'cloud_run'

    return 'local'

RUNTIME_ENVIRONMENT = detect_environment()

# ═══════════════════════════════════════════════════════════════════
# CREDENTIAL RESOLUTION - Google Sheets service account
# ═══════════════════════════════════════════════════════════════════

_credentials_path = None  # Lazy loaded

def resolve_credentials() -> str:
    """
    Resolve Google Sheets credentials from multiple sources.
    Priority order:
    1. Local file (GOOGLE_SHEETS_CREDENTIALS_FILE env var or default path)
    2. JSON string in environment variable (GOOGLE_SHEETS_CREDENTIALS_JSON)
    3. Application Default Credentials (for Workload Identity)

    Returns:
        Path to credentials JSON file (may be temp file for JSON string sources)
        None if using Application Default Credentials
    """
    creds_file = os.getenv('GOOGLE_SHEETS_CREDENTIALS_FILE')
    if creds_file:
        if not os.path.isabs(creds_file):
            creds_file = str(PROJECT_ROOT / creds_file)
        if os.path.exists(creds_file):
            return creds_file

    default_path = PROJECT_ROOT / 'config' / 'credentials.json'
    if default_path.exists():
        return str(default_path)

    creds_json = os.getenv('GOOGLE_SHEETS_CREDENTIALS_JSON')
    if creds_json:
        temp_path = Path(tempfile.gettempdir()) / 'caravan_ops_credentials.json'
        temp_path.write_text(creds_json)
        return str(temp_path)

    if RUNTIME_ENVIRONMENT in ('cloud_run', 'kubernetes'):
        return None  # Signal to use ADC

    raise ValueError(
        "No valid credentials source found. Set one of:\n"
        "  - GOOGLE_SHEETS_CREDENTIALS_FILE (path to JSON file)\n"
        "  - GOOGLE_SHEETS_CREDENTIALS_JSON (JSON string)\n"
        "  - Place credentials.json in config/ folder"
    )

def get_credentials_path():
    """Get credentials path (lazy loaded)"""
    global _credentials_path
    if _credentials_path is None:
        _credentials_path = resolve_credentials()
    return _credentials_path


def _split_csv(value: str) -> list:
    return [item.strip() for item in value.split(',') if item.strip()]

# ═══════════════════════════════════════════════════════════════════
# GOOGLE SHEETS (production schedule, van details)
# ═══════════════════════════════════════════════════════════════════

GOOGLE_SHEET_ID = os.getenv('GOOGLE_SHEET_ID')
SCHEDULE_SHEET_NAME = os.getenv('SCHEDULE_SHEET_NAME', 'SCHEDULE')
VAN_DETAILS_SHEET_NAME = os.getenv('VAN_DETAILS_SHEET_NAME', 'Van Details')

# Range expressions read by each endpoint
DEALER_RANGE = os.getenv('DEALER_RANGE', f"{SCHEDULE_SHEET_NAME}!E:E")
PRODUCTION_RANGE = os.getenv('PRODUCTION_RANGE', f"{SCHEDULE_SHEET_NAME}!A:S")
DASHBOARD_RANGE = os.getenv('DASHBOARD_RANGE', 'A:R')
VAN_DETAILS_RANGE = os.getenv('VAN_DETAILS_RANGE', f"{VAN_DETAILS_SHEET_NAME}!A:O")

# How checkbox-style cells on the Van Details tab are written: 'checkbox' ("TRUE") or 'x'
VAN_DETAILS_TRUE_MARKER = os.getenv('VAN_DETAILS_TRUE_MARKER', 'checkbox')

# Production schedule admission rules
VAN_NUMBER_PREFIX = os.getenv('VAN_NUMBER_PREFIX', 'LTRV')
VAN_NUMBER_FLOOR = int(os.getenv('VAN_NUMBER_FLOOR', '25101'))

# ═══════════════════════════════════════════════════════════════════
# SUPABASE (auth, relational store, storage)
# ═══════════════════════════════════════════════════════════════════

SUPABASE_URL = os.getenv('SUPABASE_URL', '').rstrip('/')
SUPABASE_ANON_KEY = os.getenv('SUPABASE_ANON_KEY', '')
SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY', '')

# When set, access tokens are verified locally instead of via /auth/v1/user
SUPABASE_JWT_SECRET = os.getenv('SUPABASE_JWT_SECRET', '')
SUPABASE_JWT_AUDIENCE = os.getenv('SUPABASE_JWT_AUDIENCE', 'authenticated')


def _default_auth_cookie() -> str:
    """sb-<project-ref>-auth-token, the cookie name used by the Supabase auth helpers."""
    host = SUPABASE_URL.split('://')[-1]
    ref = host.split('.')[0] if host else 'local'
    return f"sb-{ref}-auth-token"

SUPABASE_AUTH_COOKIE = os.getenv('SUPABASE_AUTH_COOKIE') or _default_auth_cookie()
PKCE_VERIFIER_COOKIE = os.getenv('PKCE_VERIFIER_COOKIE', 'sb-code-verifier')
OAUTH_PROVIDER = os.getenv('OAUTH_PROVIDER', 'google')

# Relational tables and storage bucket
TASKS_TABLE = os.getenv('TASKS_TABLE', 'important_tasks')
ORDERS_TABLE = os.getenv('ORDERS_TABLE', 'upholstery_orders')
PRESETS_TABLE = os.getenv('PRESETS_TABLE', 'upholstery_presets')
LAYOUTS_BUCKET = os.getenv('LAYOUTS_BUCKET', 'upholstery-layouts')
LAYOUT_MAX_BYTES = int(os.getenv('LAYOUT_MAX_BYTES', str(10 * 1024 * 1024)))  # 10MB
LAYOUT_ALLOWED_MIME_TYPES = _split_csv(
    os.getenv('LAYOUT_ALLOWED_MIME_TYPES', 'image/jpeg,image/png,image/webp')
)

HTTP_TIMEOUT_SECONDS = float(os.getenv('HTTP_TIMEOUT_SECONDS', '10'))

# ═══════════════════════════════════════════════════════════════════
# ACCESS GATE
# ═══════════════════════════════════════════════════════════════════

# Comma-separated list of emails allowed into the application (exact match)
ALLOWED_EMAILS = _split_csv(os.getenv('ALLOWED_EMAILS', ''))

LOGIN_PATH = os.getenv('LOGIN_PATH', '/login')
UNAUTHORIZED_PATH = os.getenv('UNAUTHORIZED_PATH', '/unauthorized')
HOME_PATH = os.getenv('HOME_PATH', '/dashboard')
AUTH_CALLBACK_PATH = os.getenv('AUTH_CALLBACK_PATH', '/auth/callback')
SIGNOUT_PATH = os.getenv('SIGNOUT_PATH', '/auth/signout')

# Paths that skip the gate entirely (health probes, API docs, sign-in error page)
GATE_EXEMPT_PREFIXES = _split_csv(
    os.getenv('GATE_EXEMPT_PREFIXES', '/health,/docs,/redoc,/openapi.json,/auth/error')
)

# ═══════════════════════════════════════════════════════════════════
# REST API (FastAPI)
# ═══════════════════════════════════════════════════════════════════

API_PORT = int(os.getenv('API_PORT', '8000'))
API_HOST = os.getenv('API_HOST', '0.0.0.0')

# Cloud Run sets PORT to the single port it routes traffic to
_cloud_run_port = os.getenv('PORT')
if _cloud_run_port:
    API_PORT = int(_cloud_run_port)

API_CORS_ORIGINS = _split_csv(os.getenv('API_CORS_ORIGINS', 'http://localhost:3000'))

# Public base URL used to build the OAuth redirect back to /auth/callback
PUBLIC_BASE_URL = os.getenv('PUBLIC_BASE_URL', f"http://localhost:{API_PORT}").rstrip('/')

# Set SESSION_COOKIE_SECURE=false for plain-http local development
SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'true').lower() == 'true'

# ═══════════════════════════════════════════════════════════════════
# MONITORING
# ═══════════════════════════════════════════════════════════════════

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_DIR = os.getenv('LOG_DIR', str(PROJECT_ROOT / 'logs'))
LOG_FILE_MAX_MB = int(os.getenv('LOG_FILE_MAX_MB', '10'))
LOG_FILE_BACKUP_COUNT = int(os.getenv('LOG_FILE_BACKUP_COUNT', '5'))


def validate_config():
    """Validate that all required configuration is present"""
    errors = []

    if not GOOGLE_SHEET_ID:
        errors.append("GOOGLE_SHEET_ID is not set")

    if not SUPABASE_URL:
        errors.append("SUPABASE_URL is not set")

    if not SUPABASE_ANON_KEY:
        errors.append("SUPABASE_ANON_KEY is not set")

    if not ALLOWED_EMAILS:
        errors.append("ALLOWED_EMAILS is empty - nobody would be able to sign in")

    if VAN_DETAILS_TRUE_MARKER not in ('checkbox', 'x'):
        errors.append(f"VAN_DETAILS_TRUE_MARKER must be 'checkbox' or 'x', got '{VAN_DETAILS_TRUE_MARKER}'")

    try:
        creds_path = get_credentials_path()
        if creds_path and not os.path.exists(creds_path):
            errors.append(f"Google Sheets credentials file not found: {creds_path}")
    except ValueError as e:
        errors.append(str(e))

    if errors:
        raise ValueError("Configuration errors:\n" + "\n".join(errors))

    return True


if __name__ == "__main__":
    try:
        validate_config()
        print("[OK] Configuration validated successfully")
    except ValueError as e:
        print(f"[FAIL] Configuration validation failed:\n{e}")
