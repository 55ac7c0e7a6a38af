# -*- coding: utf-8 -*-
"""
================================================================================
Common Utility Functions
================================================================================
Purpose:
----------------
Reads settings and credentials from the `secrets.txt` file in the project
root. Each line of that file is formatted as `KEY_NAME=SECRET_VALUE`; blank
lines and lines starting with `#` are ignored.

Environment variables with the same name take precedence over the file, so a
deployment can override a single value without editing the secrets file.

Key Functions:
- `read_secrets_file(path)`: Parses the whole file into a dictionary.
- `get_secret(key_name, secrets=None)`: Looks a single key up, environment first.
----------------
"""

# =====================================================================================
# --- Imports and Configuration ---
# =====================================================================================
import os
import logging

logger = logging.getLogger(__name__)

# The secrets file is expected to be in the project root, one level above /common.
SECRETS_FILE = os.path.join(os.path.dirname(__file__), '..', 'secrets.txt')


# =====================================================================================
# --- Core Functions ---
# =====================================================================================

def read_secrets_file(path=None):
    """
    Reads every KEY=VALUE pair from the secrets file.

    Args:
        path (str, optional): Path to the secrets file. Defaults to `SECRETS_FILE`.

    Returns:
        dict: The parsed key/value pairs. An empty dictionary if the file does
              not exist, so that a deployment driven purely by environment
              variables still works.
    """
    path = path or SECRETS_FILE
    secrets = {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#') or '=' not in line:
                    continue
                # Split at the first '=' only; values may contain '=' themselves.
                key, value = line.split('=', 1)
                secrets[key.strip()] = value.strip()
    except FileNotFoundError:
        logger.info(f"{path} not found; reading settings from the environment only.")
    return secrets


def get_secret(key_name, secrets=None, default=None):
    """
    Returns the value for `key_name`.

    The environment is checked first, then the given `secrets` dictionary
    (as returned by `read_secrets_file`). Empty strings count as missing.

    Args:
        key_name (str): The name of the key (e.g. "SHOP_SG_PARTNER_KEY").
        secrets (dict, optional): Pre-parsed secrets file contents.
        default: Value returned when the key is found nowhere.
    """
    value = os.environ.get(key_name)
    if value:
        return value
    if secrets is not None:
        value = secrets.get(key_name)
        if value:
            return value
    return default


def parse_bool(value, default=False):
    """Interprets the usual spellings of a boolean flag ("1", "true", "yes", "on")."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')
