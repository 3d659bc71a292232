"""
Configuration management for the Merit Engine.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Every storage call is bounded; a timeout surfaces as StorageError.
DB_TIMEOUT_SECONDS = int(os.getenv('DB_TIMEOUT_SECONDS', '5'))


def _split_keys(raw: str) -> tuple:
    return tuple(k.strip() for k in raw.split(',') if k.strip())


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # API keys for event producers (deal/quote workflows, quest systems)
    MERIT_PRODUCER_API_KEYS = _split_keys(os.getenv('MERIT_PRODUCER_API_KEYS', ''))
    # API key for the administrative interface (seasons, league runs, rules)
    MERIT_ADMIN_API_KEY = os.getenv('MERIT_ADMIN_API_KEY', '')

    # Merit rule overrides - the rest of the defaults live in rules.py
    MERIT_TIMEZONE = os.getenv('MERIT_TIMEZONE', 'UTC')
    MERIT_MIN_LEAGUE_SIZE = int(os.getenv('MERIT_MIN_LEAGUE_SIZE', '10'))
    MERIT_RANKING_BIAS_CAP = float(os.getenv('MERIT_RANKING_BIAS_CAP', '0.05'))
    MERIT_INITIAL_SHELTERS = int(os.getenv('MERIT_INITIAL_SHELTERS', '0'))

    # Retries for first-row creation races (streak / membership rows)
    MERIT_ROW_CREATE_RETRIES = 3


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///merit_engine_dev.db'  # SQLite fallback for local dev
    )
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'timeout': DB_TIMEOUT_SECONDS},
    }


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,  # Verify connections before using
        'pool_timeout': DB_TIMEOUT_SECONDS,
        'connect_args': {
            'connect_timeout': DB_TIMEOUT_SECONDS,
            # statement and lock waits are bounded server-side (milliseconds)
            'options': (
                f'-c statement_timeout={DB_TIMEOUT_SECONDS * 1000} '
                f'-c lock_timeout={DB_TIMEOUT_SECONDS * 1000}'
            ),
        },
    }

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY and the admin key in production.

        Raises:
            RuntimeError: If a key is missing or obviously insecure
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        if len(cls._secret_key) < 32:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!"
            )

        if not os.getenv('MERIT_ADMIN_API_KEY'):
            raise RuntimeError(
                "CRITICAL: MERIT_ADMIN_API_KEY is not set!\n"
                "Season and league administration would be unreachable."
            )

        return cls._secret_key

    SECRET_KEY = _secret_key  # Validated at app startup


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    MERIT_PRODUCER_API_KEYS = ('test-producer-key',)
    MERIT_ADMIN_API_KEY = 'test-admin-key'
    MERIT_TIMEZONE = 'UTC'
    MERIT_MIN_LEAGUE_SIZE = 10
    MERIT_RANKING_BIAS_CAP = 0.05
    MERIT_INITIAL_SHELTERS = 0


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
