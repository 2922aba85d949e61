"""
Soft access point lifecycle.

There is a single radio, so at most one access point is up at a time:
starting a new one tears the previous one down first. The AccessPoint also
owns the captive DNS responder, which lives and dies with the AP.
"""
import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from settings import AP_ADDRESS, DNS_PORT, RADIO_BACKEND, WIFI_INTERFACE
from portal.dns import CaptiveDNS

logger = logging.getLogger(__name__)

NMCLI_CONNECTION = "gitportal-ap"


@dataclass(frozen=True)
class PortalSession:
    """Snapshot of the access point seen by the menus

    The submitted token is never part of this snapshot; it only travels in
    the PortalOutcome delivered through the outcome channel.
    """
    ap_ssid: str = ""
    ap_active: bool = False
    token_received: bool = False


class Radio(ABC):
    """Brings the wireless interface up as a hotspot"""

    @abstractmethod
    def start(self, ssid: str, address: str) -> bool:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass


class NmcliRadio(Radio):
    """NetworkManager hotspot driven through nmcli"""

    def __init__(self, interface: str = WIFI_INTERFACE, connection: str = NMCLI_CONNECTION):
        self.interface = interface
        self.connection = connection

    def _nmcli(self, *args: str) -> bool:
        command: List[str] = ["nmcli", *args]
        try:
            subprocess.run(command, capture_output=True, text=True, check=True, timeout=30)
        except FileNotFoundError:
            logger.error("nmcli not found; set RADIO_BACKEND=loopback to run without a radio")
            return False
        except subprocess.TimeoutExpired:
            logger.error(f"nmcli timed out: {' '.join(args)}")
            return False
        except subprocess.CalledProcessError as e:
            logger.error(f"nmcli {' '.join(args[:3])} failed: {e.stderr.strip()}")
            return False
        return True

    def start(self, ssid: str, address: str) -> bool:
        # Open network: the portal itself is the only thing served
        if not self._nmcli(
            "connection", "add", "type", "wifi", "ifname", self.interface,
            "con-name", self.connection, "autoconnect", "no", "ssid", ssid,
        ):
            return False
        if not self._nmcli(
            "connection", "modify", self.connection,
            "802-11-wireless.mode", "ap", "802-11-wireless.band", "bg",
            "ipv4.method", "shared", "ipv4.addresses", f"{address}/24",
        ):
            self.stop()
            return False
        if not self._nmcli("connection", "up", self.connection):
            self.stop()
            return False
        return True

    def stop(self) -> None:
        self._nmcli("connection", "down", self.connection)
        self._nmcli("connection", "delete", self.connection)


class LoopbackRadio(Radio):
    """No radio at all: the portal is reached on the host's own interfaces"""

    def start(self, ssid: str, address: str) -> bool:
        logger.info(f"Loopback radio: pretending to broadcast '{ssid}' at {address}")
        return True

    def stop(self) -> None:
        pass


def create_radio(backend: str = RADIO_BACKEND) -> Radio:
    if backend == "loopback":
        return LoopbackRadio()
    if backend == "nmcli":
        return NmcliRadio()
    raise ValueError(f"Unknown radio backend: {backend}")


class AccessPoint:
    """The device's single soft access point plus its captive DNS"""

    def __init__(
        self,
        radio: Optional[Radio] = None,
        dns: Optional[CaptiveDNS] = None,
        address: str = AP_ADDRESS,
    ):
        self.address = address
        self.radio = radio or create_radio()
        self.dns = dns if dns is not None else CaptiveDNS(address, port=DNS_PORT)
        self._ssid = ""
        self._active = False

    def start(self, ssid: str) -> bool:
        """Bring the access point up with the given SSID

        Any access point already running is torn down first.

        Args:
            ssid: Network name to broadcast

        Returns:
            True if both the radio and the DNS responder came up
        """
        self.stop()
        logger.info(f"Starting access point '{ssid}' at {self.address}")
        if not self.radio.start(ssid, self.address):
            return False
        if not self.dns.start():
            self.radio.stop()
            return False
        self._ssid = ssid
        self._active = True
        return True

    def stop(self) -> None:
        """Tear down DNS and radio; safe to call repeatedly or before start"""
        if not self._active:
            return
        self._active = False
        self.dns.stop()
        self.radio.stop()
        logger.info(f"Access point '{self._ssid}' stopped")
        self._ssid = ""

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def ssid(self) -> str:
        return self._ssid
