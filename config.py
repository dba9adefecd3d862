"""Configuration constants and runtime profiles for the kiosk."""
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _normalized_database_url() -> str:
    url = os.environ.get('DATABASE_URL', 'sqlite:///kiosk.db')
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


class BaseConfig:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-key-change-in-production')
    KIOSK_VERSION = os.environ.get('KIOSK_VERSION', '1.0.0')

    # Persistence
    DATA_DIR = os.environ.get('DATA_DIR', 'instance/data')
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'file').strip().lower()
    SQLALCHEMY_DATABASE_URI = _normalized_database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    # What a version change resets on boot
    RESET_ADMIN_ON_VERSION = _env_flag('RESET_ADMIN_ON_VERSION', True)
    FORCE_SETUP_MODE_ON_VERSION = _env_flag('FORCE_SETUP_MODE_ON_VERSION', True)
    WIPE_CHECKPOINTS_ON_VERSION = _env_flag('WIPE_CHECKPOINTS_ON_VERSION', False)
    WIPE_TEAMS_ON_VERSION = _env_flag('WIPE_TEAMS_ON_VERSION', False)

    # Wireless
    DEFAULT_SETUP_SSID = os.environ.get('DEFAULT_SETUP_SSID', 'SCAVENGER-SETUP')
    DEFAULT_SETUP_PASS = os.environ.get('DEFAULT_SETUP_PASS', 'organizer123')
    DEFAULT_GAME_SSID = os.environ.get('DEFAULT_GAME_SSID', 'SCAVENGER')
    AP_BACKEND = os.environ.get('AP_BACKEND', 'logging').strip().lower()
    DNS_BACKEND = os.environ.get('DNS_BACKEND', 'logging').strip().lower()
    AP_INTERFACE = os.environ.get('AP_INTERFACE', 'wlan0')
    AP_CONNECTION_NAME = os.environ.get('AP_CONNECTION_NAME', 'ScavengerAP')
    AP_ADDRESS = os.environ.get('AP_ADDRESS', '192.168.4.1')

    PASSWORD_HASH_METHOD = os.environ.get('PASSWORD_HASH_METHOD', 'scrypt')
    STRUCTURED_LOGGING = _env_flag('STRUCTURED_LOGGING', True)
    SENTRY_DSN = os.environ.get('SENTRY_DSN', '').strip()

    RESTART_ON_FACTORY_RESET = _env_flag('RESTART_ON_FACTORY_RESET', True)
    RESTART_DELAY_SECONDS = float(os.environ.get('RESTART_DELAY_SECONDS', '0.25'))
    BACKUP_BEFORE_RESET = _env_flag('BACKUP_BEFORE_RESET', True)
    BACKUP_DIR = os.environ.get('BACKUP_DIR', 'instance/backups')


class DevelopmentConfig(BaseConfig):
    ENV_NAME = 'development'


class ProductionConfig(BaseConfig):
    ENV_NAME = 'production'
    AP_BACKEND = os.environ.get('AP_BACKEND', 'nmcli').strip().lower()
    DNS_BACKEND = os.environ.get('DNS_BACKEND', 'dnsmasq').strip().lower()


class TestingConfig(BaseConfig):
    ENV_NAME = 'testing'
    TESTING = True
    WTF_CSRF_ENABLED = False
    STORAGE_BACKEND = 'file'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    AP_BACKEND = 'logging'
    DNS_BACKEND = 'logging'
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256:1000'
    STRUCTURED_LOGGING = False
    RESTART_ON_FACTORY_RESET = False
    BACKUP_BEFORE_RESET = False


def get_config():
    env = os.environ.get('FLASK_ENV', '').strip().lower()
    if env == 'production' or os.environ.get('PRODUCTION', '').strip() == '1':
        return ProductionConfig
    return DevelopmentConfig


def validate_runtime(app_config: dict) -> None:
    """Fail fast for production misconfiguration."""
    backend = app_config.get('STORAGE_BACKEND', 'file')
    if backend not in {'file', 'sql'}:
        raise RuntimeError(f'Unknown STORAGE_BACKEND {backend!r}; expected "file" or "sql".')

    env_name = app_config.get('ENV_NAME', 'development')
    if env_name != 'production':
        return

    secret = app_config.get('SECRET_KEY') or ''
    weak_values = {'dev-key-change-in-production', 'changeme', 'secret', 'default'}
    if len(secret) < 16 or secret.lower() in weak_values:
        raise RuntimeError('Invalid SECRET_KEY for production. Set a strong random secret.')


# Functional limits
CODE_MAXLEN = 64
NAME_MAXLEN = 40
PIN_MINLEN = 4
PIN_MAXLEN = 6
ADMIN_PASS_MINLEN = 6
SSID_MAXLEN = 31
DEFAULT_CHECKPOINT_POINTS = 10
MAX_CHECKPOINT_POINTS = 1000
LEADERBOARD_SIZE = 20
