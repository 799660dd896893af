from cvh_install.executors.disk import DiskManager, partition_name
from cvh_install.executors.network import ConnectivityChecker
from cvh_install.executors.packages import PackageInstaller, PackageSet
from cvh_install.executors.system import SystemProbe
from cvh_install.executors.target import TargetSystem

__all__ = [
    "DiskManager",
    "partition_name",
    "ConnectivityChecker",
    "PackageInstaller",
    "PackageSet",
    "SystemProbe",
    "TargetSystem",
]
