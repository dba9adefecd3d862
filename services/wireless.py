"""
Access point and captive DNS collaborators.

The mode state machine drives these through ``start``/``stop`` only:
  - ``LoggingAccessPoint`` / ``LoggingDnsResponder`` record and log what
    would happen; the default off-device and in tests.
  - ``NmcliAccessPoint`` runs a NetworkManager hotspot connection.
  - ``DnsmasqResponder`` answers every name with the AP address so joining
    clients hit the kiosk's captive-portal probes.
"""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from services.errors import WirelessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkProfile:
    ssid: str
    passphrase: str = ''

    @property
    def is_open(self) -> bool:
        return not self.passphrase


def _run(cmd: List[str], check: bool = True) -> str:
    try:
        proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise WirelessError(f'{cmd[0]} failed: {exc}') from exc
    if check and proc.returncode != 0:
        raise WirelessError(f'cmd failed ({proc.returncode}): {" ".join(cmd)}\n{proc.stdout}')
    return proc.stdout


# ---------------------------------------------------------------------------
# Access points
# ---------------------------------------------------------------------------

class AccessPoint:

    def start(self, profile: NetworkProfile) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class LoggingAccessPoint(AccessPoint):

    def __init__(self):
        self.active_profile: Optional[NetworkProfile] = None
        self.history: List[tuple] = []

    def start(self, profile: NetworkProfile) -> None:
        self.active_profile = profile
        self.history.append(('start', profile))
        logger.info('AP up: %s (%s)', profile.ssid, 'open' if profile.is_open else 'secured')

    def stop(self) -> None:
        if self.active_profile is not None:
            logger.info('AP down: %s', self.active_profile.ssid)
        self.active_profile = None
        self.history.append(('stop', None))


class NmcliAccessPoint(AccessPoint):
    """Hotspot managed through a named NetworkManager connection."""

    def __init__(self, interface: str, connection_name: str, address: str):
        self.interface = interface
        self.connection_name = connection_name
        self.address = address

    def _ensure_connection(self) -> None:
        out = _run(['nmcli', '-t', '-f', 'NAME', 'connection', 'show'])
        if self.connection_name not in out.splitlines():
            _run([
                'nmcli', 'connection', 'add', 'type', 'wifi', 'ifname', self.interface,
                'con-name', self.connection_name, 'ssid', 'kiosk',
            ])

    def start(self, profile: NetworkProfile) -> None:
        self._ensure_connection()
        args = [
            'nmcli', 'connection', 'modify', self.connection_name,
            '802-11-wireless.mode', 'ap',
            '802-11-wireless.ssid', profile.ssid,
            'ipv4.method', 'shared',
            'ipv4.addresses', f'{self.address}/24',
        ]
        if profile.is_open:
            _run(args)
            _run(['nmcli', 'connection', 'modify', self.connection_name, 'remove', '802-11-wireless-security'],
                 check=False)
        else:
            _run(args + ['wifi-sec.key-mgmt', 'wpa-psk', 'wifi-sec.psk', profile.passphrase])
        _run(['nmcli', 'connection', 'up', self.connection_name])
        logger.info('AP up via nmcli: %s on %s', profile.ssid, self.interface)

    def stop(self) -> None:
        _run(['nmcli', 'connection', 'down', self.connection_name], check=False)


# ---------------------------------------------------------------------------
# Captive DNS
# ---------------------------------------------------------------------------

class DnsResponder:

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class LoggingDnsResponder(DnsResponder):

    def __init__(self):
        self.running = False
        self.starts = 0

    def start(self) -> None:
        self.running = True
        self.starts += 1
        logger.info('Captive DNS started')

    def stop(self) -> None:
        if self.running:
            logger.info('Captive DNS stopped')
        self.running = False


class DnsmasqResponder(DnsResponder):
    """Wildcard resolver: every name points at the kiosk."""

    def __init__(self, interface: str, address: str):
        self.interface = interface
        self.address = address
        self._proc: Optional[subprocess.Popen] = None

    def start(self) -> None:
        self.stop()
        cmd = [
            'dnsmasq', '--no-daemon', '--no-resolv', '--no-hosts',
            f'--interface={self.interface}', '--bind-interfaces',
            f'--address=/#/{self.address}',
        ]
        try:
            self._proc = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            raise WirelessError(f'dnsmasq failed to start: {exc}') from exc
        logger.info('Captive DNS (dnsmasq) answering with %s', self.address)

    def stop(self) -> None:
        if self._proc is None:
            return
        self._proc.terminate()
        try:
            self._proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self._proc.kill()
        self._proc = None


def build_access_point(app_config) -> AccessPoint:
    if app_config.get('AP_BACKEND') == 'nmcli':
        return NmcliAccessPoint(
            app_config['AP_INTERFACE'], app_config['AP_CONNECTION_NAME'], app_config['AP_ADDRESS'],
        )
    return LoggingAccessPoint()


def build_dns_responder(app_config) -> DnsResponder:
    if app_config.get('DNS_BACKEND') == 'dnsmasq':
        return DnsmasqResponder(app_config['AP_INTERFACE'], app_config['AP_ADDRESS'])
    return LoggingDnsResponder()
