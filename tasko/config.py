"""Configuration and key management for Tasko."""

import os
import base64
import logging
import warnings
from pathlib import Path

import keyring
from keyring.errors import KeyringError
from cryptography.fernet import Fernet
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


SERVICE_NAME = "tasko"
KEY_NAME = "master_key"
CONFIG_DIR = Path.home() / ".tasko"
STORAGE_PATH = CONFIG_DIR / "storage.json"
KEYRING_FALLBACK_FILE = CONFIG_DIR / "key.enc"

DEFAULT_API_URL = "http://localhost:4000/api"
DEFAULT_SESSION_BACKEND = "file"

# Load environment variables from .env file (does not override the real environment)
# Try multiple locations: current directory, ~/.tasko/, and project root
env_paths = [
    Path.cwd() / ".env",
    CONFIG_DIR / ".env",
    Path(__file__).parent.parent / ".env",
]
for env_path in env_paths:
    if env_path.exists():
        try:
            load_dotenv(env_path, override=False)
            break
        except Exception as e:
            warnings.warn(f"Could not parse .env file at {env_path}: {e}. Using defaults.", UserWarning)


def get_api_url() -> str:
    """Get the API base URL, without a trailing slash."""
    return (os.environ.get("TASKO_API_URL") or DEFAULT_API_URL).rstrip("/")


def get_session_backend() -> str:
    """Get the name of the storage backend used for the session."""
    return (os.environ.get("TASKO_SESSION_BACKEND") or DEFAULT_SESSION_BACKEND).strip().lower()


def is_debug() -> bool:
    """Check whether debug logging was requested through the environment."""
    return os.environ.get("TASKO_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def ensure_config_dir():
    """Ensure the configuration directory exists."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True, mode=0o700)


def generate_master_key() -> bytes:
    """Generate a new master encryption key."""
    return Fernet.generate_key()


def get_master_key() -> bytes:
    """
    Get the master encryption key from secure storage.
    Creates a new key if one doesn't exist.
    """
    ensure_config_dir()

    # Try to get key from keyring first
    try:
        stored_key = keyring.get_password(SERVICE_NAME, KEY_NAME)
        if stored_key:
            return stored_key.encode()
    except KeyringError as e:
        logger.debug("Master key not readable from the keyring: %s", e)

    # If not in keyring, try fallback file
    if KEYRING_FALLBACK_FILE.exists():
        try:
            return base64.b64decode(KEYRING_FALLBACK_FILE.read_bytes())
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable key file %s: %s", KEYRING_FALLBACK_FILE, e)

    new_key = generate_master_key()
    save_master_key(new_key)
    return new_key


def save_master_key(key: bytes):
    """Save the master key to secure storage."""
    ensure_config_dir()

    try:
        keyring.set_password(SERVICE_NAME, KEY_NAME, key.decode())
        return
    except KeyringError as e:
        logger.debug("Could not store the master key in the keyring, using %s: %s", KEYRING_FALLBACK_FILE, e)

    # Fallback to a file readable by the owner only
    try:
        KEYRING_FALLBACK_FILE.write_bytes(base64.b64encode(key))
        KEYRING_FALLBACK_FILE.chmod(0o600)
    except OSError as e:
        raise RuntimeError(f"Failed to save master key: {e}")


def get_fernet() -> Fernet:
    """Get a Fernet instance with the master key."""
    return Fernet(get_master_key())
