"""Network reachability monitors."""

import asyncio
import logging
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

_logger = logging.getLogger(__name__)

_SYS_NET = Path("/sys/class/net")
_UP_STATES = {"up", "unknown"}


class ConnectivityMonitor(Protocol):
    """Interface for reading the current reachability flag."""

    @property
    def is_connected(self) -> bool:
        """Return whether the OS reports a usable network path."""

    def start(self) -> None:
        """Begin observing reachability."""

    def stop(self) -> None:
        """Stop observing reachability."""


@dataclass
class StaticConnectivityMonitor(ConnectivityMonitor):
    """Monitor with a fixed, manually controlled flag."""

    connected: bool = True

    @property
    def is_connected(self) -> bool:
        return self.connected

    def start(self) -> None:
        return None

    def stop(self) -> None:
        return None


def read_interface_status(sys_net: Path = _SYS_NET) -> bool:
    """Return True if any non-loopback interface is reported up."""
    if sys_net.is_dir():
        for iface in sys_net.iterdir():
            if iface.name == "lo":
                continue
            try:
                state = (iface / "operstate").read_text().strip().lower()
            except OSError:
                continue
            if state in _UP_STATES:
                return True
        return False
    return any(name != "lo" for _, name in socket.if_nameindex())


@dataclass
class InterfaceConnectivityMonitor(ConnectivityMonitor):
    """Passively tracks OS-reported interface status on a background task."""

    poll_interval: float = 5.0
    sys_net: Path = _SYS_NET
    _connected: bool = field(default=True, init=False)
    _task: asyncio.Task[None] | None = field(default=None, init=False)

    @property
    def is_connected(self) -> bool:
        return self._connected

    def start(self) -> None:
        """Start polling on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._observe()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Cancel the polling task."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            self._observe()

    def _observe(self) -> None:
        try:
            connected = read_interface_status(self.sys_net)
        except OSError:
            _logger.warning("Unable to read interface status", exc_info=True)
            return
        if connected != self._connected:
            _logger.info("Connectivity changed: connected=%s", connected)
        self._connected = connected
