"""
Point-in-time network availability check.

One bounded TCP connect to the storage host answers "is there a usable
path right now?". It is a single-shot check with its own timeout, never
a polling loop.
"""

from __future__ import annotations

import socket
from typing import Optional

from logging_config import get_logger


logger = get_logger(__name__)


class NetworkMonitor:
    """
    Checks connectivity by opening (and closing) a TCP connection.

    Attributes:
        host: Host to probe (normally the storage API host)
        port: Port to probe
        timeout_seconds: Upper bound for a single check
    """

    def __init__(self, host: str, port: int = 443, timeout_seconds: float = 3.0):
        self.host = host
        self.port = port
        self.timeout_seconds = timeout_seconds

    def is_available(self, timeout_seconds: Optional[float] = None) -> bool:
        """
        Return True if a connection to the probe host can be opened.

        Args:
            timeout_seconds: Override for this call only

        Returns:
            True when the probe connects within the timeout
        """
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        try:
            with socket.create_connection((self.host, self.port), timeout=timeout):
                return True
        except OSError as e:
            logger.info(f"Network probe to {self.host}:{self.port} failed: {e}")
            return False
