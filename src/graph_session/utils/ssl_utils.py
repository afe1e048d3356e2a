"""SSL certificate handling utilities.

Token exchanges with the identity provider and calls to Graph go over HTTPS.
Python's bundled certificates often lack corporate CA certificates, which
breaks sign-in behind TLS-inspecting proxies. truststore injects the OS's
native certificate store into Python's SSL context.
"""

import logging
import platform

import truststore

logger = logging.getLogger(__name__)

_ssl_initialized = False


def setup_ssl_truststore() -> bool:
    """
    Configure SSL to use the OS native certificate store.

    Returns:
        True if truststore was injected (now or earlier), False otherwise.
    """
    global _ssl_initialized

    if _ssl_initialized:
        return True

    try:
        truststore.inject_into_ssl()
    except Exception as e:
        logger.warning(f"Failed to inject truststore: {e}")
        return False

    _ssl_initialized = True
    logger.info(f"SSL truststore injected for {platform.system()}")
    return True


def init_ssl() -> bool:
    """
    Initialize SSL handling for the current platform.

    Call this early in application startup, before the identity client
    opens any HTTPS connection.
    """
    logger.debug(f"{platform.system()} detected, setting up SSL truststore...")
    return setup_ssl_truststore()
