"""
SHOTCOACH Analysis Service - Connectivity Probe

Reports network reachability. Connection type and meteredness cannot be
observed from a socket, so they come from host-supplied settings.
"""

import logging
import socket

from core.config import settings
from .types import ConnectionType, ConnectivityStatus, DISCONNECTED

logger = logging.getLogger(__name__)


def check_connectivity(
    host: str = None,
    port: int = None,
    timeout: float = None,
) -> ConnectivityStatus:
    """Probe reachability; any failure reports a disconnected status."""
    host = host or settings.CONNECTIVITY_CHECK_HOST
    port = port or settings.CONNECTIVITY_CHECK_PORT
    timeout = timeout if timeout is not None else settings.CONNECTIVITY_TIMEOUT_SECONDS
    
    try:
        with socket.create_connection((host, port), timeout=timeout):
            pass
        connection_type = ConnectionType(settings.CONNECTION_TYPE)
    except (OSError, ValueError) as e:
        logger.info(f"📡 No connectivity ({e})")
        return DISCONNECTED
    
    return ConnectivityStatus(
        is_connected=True,
        connection_type=connection_type,
        is_metered=settings.CONNECTION_METERED,
    )
