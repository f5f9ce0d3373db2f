"""
Configuration module for the Eris DB client.

Holds process-wide defaults for the server address, the method namespace the
backend expects, the HTTP timeout and the log level. Every getter honours an
environment variable override so deployments can be configured without code
changes.
"""

import os
from typing import Optional

DEFAULT_NAMESPACE = "erisdb"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_LOG_LEVEL = "INFO"

_server_url: Optional[str] = None
_namespace: str = DEFAULT_NAMESPACE
_http_timeout: float = DEFAULT_HTTP_TIMEOUT
_log_level: str = DEFAULT_LOG_LEVEL


def set_config(server_url: str, namespace: Optional[str] = None):
    """
    Set basic client configuration.

    Args:
        server_url: Address of the Eris DB node
        namespace: Method namespace, unchanged if None
    """
    global _server_url, _namespace
    _server_url = server_url
    if namespace is not None:
        _namespace = namespace


def get_server_url() -> str:
    """
    Get the configured server URL.

    Returns:
        The node address

    Raises:
        RuntimeError: If no server URL is configured
    """
    global _server_url
    if _server_url is None:
        _server_url = os.getenv("ERISDB_URL")
    if _server_url is None:
        raise RuntimeError("Server URL is not configured. Pass --url or set ERISDB_URL.")
    return _server_url


def get_namespace() -> str:
    """
    Get the method namespace prefixed to every remote call.

    Returns:
        Namespace string
    """
    env_namespace = os.getenv("ERISDB_NAMESPACE")
    if env_namespace:
        return env_namespace
    return _namespace


def set_http_timeout(timeout: float):
    """
    Set the HTTP request timeout.

    Args:
        timeout: Timeout in seconds, must be positive
    """
    global _http_timeout
    if timeout <= 0:
        raise ValueError(f"Invalid HTTP timeout: {timeout}. Must be positive")
    _http_timeout = timeout


def get_http_timeout() -> float:
    """
    Get the HTTP request timeout.

    Returns:
        Timeout in seconds
    """
    env_timeout = os.getenv("ERISDB_HTTP_TIMEOUT")
    if env_timeout:
        try:
            return float(env_timeout)
        except ValueError:
            raise ValueError(f"Invalid ERISDB_HTTP_TIMEOUT value: {env_timeout!r}") from None
    return _http_timeout


def set_log_level(level: str):
    global _log_level
    _log_level = level.upper()


def get_log_level() -> str:
    env_level = os.getenv("ERISDB_LOG_LEVEL")
    if env_level:
        return env_level.upper()
    return _log_level


def reset_config():
    """
    Reset all configuration to defaults.

    Useful for testing and cleanup.
    """
    global _server_url, _namespace, _http_timeout, _log_level

    _server_url = None
    _namespace = DEFAULT_NAMESPACE
    _http_timeout = DEFAULT_HTTP_TIMEOUT
    _log_level = DEFAULT_LOG_LEVEL
