"""
Captive DNS responder.

Answers every A/ANY query with the access point's own address so whatever
hostname a joined client looks up lands on the portal.
"""
import logging
from typing import Optional

from dnslib import QTYPE, RR, A
from dnslib.server import BaseResolver, DNSLogger, DNSServer

from settings import DNS_PORT, DNS_TTL

logger = logging.getLogger(__name__)


class CaptiveResolver(BaseResolver):
    """Resolve every name to one address"""

    def __init__(self, address: str, ttl: int = DNS_TTL):
        self.address = address
        self.ttl = ttl

    def resolve(self, request, handler):
        reply = request.reply()
        qname = request.q.qname
        if request.q.qtype in (QTYPE.A, QTYPE.ANY):
            reply.add_answer(RR(qname, QTYPE.A, rdata=A(self.address), ttl=self.ttl))
        return reply


class CaptiveDNS:
    """UDP DNS responder running on its own thread"""

    def __init__(self, address: str, port: int = DNS_PORT, bind_address: str = ""):
        self.address = address
        self.port = port
        self.bind_address = bind_address
        self._server: Optional[DNSServer] = None

    def start(self) -> bool:
        """Start answering queries; restarts if already running

        Returns:
            False if the port could not be bound
        """
        self.stop()
        try:
            self._server = DNSServer(
                CaptiveResolver(self.address),
                address=self.bind_address,
                port=self.port,
                logger=DNSLogger(prefix=False, logf=logger.debug),
            )
        except OSError as e:
            logger.error(f"Could not bind DNS responder on port {self.port}: {e}")
            self._server = None
            return False
        self._server.start_thread()
        logger.info(f"Captive DNS answering {self.address} on port {self.port}")
        return True

    def stop(self) -> None:
        """Stop the responder; safe to call when it is not running"""
        if self._server is None:
            return
        server, self._server = self._server, None
        server.stop()
        logger.info("Captive DNS stopped")

    @property
    def is_running(self) -> bool:
        return self._server is not None and self._server.isAlive()
