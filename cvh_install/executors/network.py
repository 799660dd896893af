# cvh_install/executors/network.py
import subprocess
import time
from typing import Callable, List, Optional

from cvh_install.config.models import Network
from cvh_install.utils.exceptions import FatalInstallError
from cvh_install.utils.executor import Executor


def parse_interfaces(output: str) -> List[str]:
    """
    Interface names from `ip -o link show`, without the loopback device.
    VLAN-style names such as 'eth0.10@eth0' are reduced to 'eth0.10'.
    """
    names = []
    for line in output.splitlines():
        parts = line.split(": ", 2)
        if len(parts) < 2:
            continue
        name = parts[1].split("@", 1)[0].strip()
        if name and name != "lo":
            names.append(name)
    return names


class ConnectivityChecker:
    """
    Verifies that the package mirrors are reachable, with a single
    reconnection attempt when they are not.
    """

    def __init__(self, executor: Executor, settings: Optional[Network] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.executor = executor
        self.logger = executor.logger
        self.settings = settings or Network()
        self._sleep = sleep
        self._dhcp_clients: List[subprocess.Popen] = []

    def is_online(self) -> bool:
        exit_code, _, _ = self.executor.query(
            ["ping", "-c", "1", "-W", str(self.settings.probe_timeout), self.settings.probe_host]
        )
        return exit_code == 0

    def interfaces(self) -> List[str]:
        _, stdout, _ = self.executor.query(["ip", "-o", "link", "show"])
        return parse_interfaces(stdout)

    def reconnect(self) -> None:
        """Starts NetworkManager, then a DHCP client on every interface."""
        self.executor.run(
            description="Starting NetworkManager",
            command=["systemctl", "start", "NetworkManager"],
            check=False
        )
        self._sleep(self.settings.service_wait)

        for iface in self.interfaces():
            process = self.executor.spawn(f"DHCP on {iface}", ["dhcpcd", iface])
            if process is not None:
                self._dhcp_clients.append(process)
        self._sleep(self.settings.dhcp_wait)

    @property
    def dhcp_clients(self) -> List[subprocess.Popen]:
        return list(self._dhcp_clients)

    def reap_dhcp_clients(self) -> None:
        """Collects the exit status of DHCP clients that have finished. Running ones are kept."""
        self._dhcp_clients = [process for process in self._dhcp_clients if process.poll() is None]

    def ensure_online(self) -> None:
        """Raises FatalInstallError when the probe host stays unreachable after one reconnection pass."""
        if self.executor.dry_run:
            self.logger.info("DRY RUN: Network check skipped")
            return

        if self.is_online():
            self.logger.success("Network: [bold]connected[/bold]")
            return

        self.logger.warning("Network not connected, attempting to connect...")
        self.reconnect()
        online = self.is_online()
        self.reap_dhcp_clients()

        if not online:
            raise FatalInstallError("No network connection. Use 'nmtui' or 'nmcli' to configure network")

        self.logger.success("Network: [bold]connected[/bold]")
