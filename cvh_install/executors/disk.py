# cvh_install/executors/disk.py
import os
from typing import Optional, Tuple

from cvh_install.config.models import Layout
from cvh_install.state import BootMode
from cvh_install.utils.executor import Executor


def partition_name(disk: str, number: int) -> str:
    """
    Device path of partition `number` on `disk`. NVMe and MMC devices put a
    'p' between the disk name and the number (/dev/nvme0n1p1, /dev/mmcblk0p1).
    """
    if "nvme" in disk or "mmcblk" in disk:
        return f"{disk}p{number}"
    return f"{disk}{number}"


class DiskManager:
    """
    Disk and partition operations for preparing the target disk.
    All operations are delegated to the provided Executor instance.
    """

    def __init__(self, executor: Executor, layout: Optional[Layout] = None):
        """
        Args:
            executor (Executor): An instance of the Executor class for command execution.
            layout (Layout): Partition offsets; defaults to a 512 MiB ESP starting at 1 MiB.
        """
        self.executor = executor
        self.logger = executor.logger
        self.layout = layout or Layout()
        self.logger.debug("Disk manager initialized.")

    # --- DISK LEVEL OPERATIONS ---

    def wipe_disk(self, device: str) -> None:
        """
        Removes filesystem signatures and any GPT/MBR structures from a disk.
        Both commands may fail on a blank disk, so their exit codes are ignored.
        """
        self.executor.run(
            description=f"Wiping filesystem signatures on {device}",
            command=["wipefs", "-af", device],
            check=False
        )
        self.executor.run(
            description=f"Clearing partition table on {device}",
            command=["sgdisk", "-Z", device],
            check=False
        )

    def _parted(self, device: str, description: str, *args: str) -> Tuple[int, str, str]:
        return self.executor.run(
            description=description,
            command=["parted", "-s", device, *args],
            check=True
        )

    def partition_uefi(self, device: str) -> Tuple[str, str]:
        """
        GPT table with a FAT32 EFI system partition and an ext4 root filling the rest.

        Returns:
            Tuple[str, str]: (efi_partition, root_partition).
        """
        start = f"{self.layout.start_mib}MiB"
        esp_end = f"{self.layout.esp_end_mib}MiB"

        self._parted(device, f"Creating GPT partition table on {device}", "mklabel", "gpt")
        self._parted(device, f"Creating EFI system partition ({start} - {esp_end})",
                     "mkpart", "primary", "fat32", start, esp_end)
        self._parted(device, "Flagging partition 1 as ESP", "set", "1", "esp", "on")
        self._parted(device, f"Creating root partition ({esp_end} - 100%)",
                     "mkpart", "primary", "ext4", esp_end, "100%")

        return partition_name(device, 1), partition_name(device, 2)

    def partition_bios(self, device: str) -> str:
        """
        MBR table with a single bootable ext4 partition spanning the disk.

        Returns:
            str: the root partition.
        """
        start = f"{self.layout.start_mib}MiB"

        self._parted(device, f"Creating MBR partition table on {device}", "mklabel", "msdos")
        self._parted(device, f"Creating root partition ({start} - 100%)",
                     "mkpart", "primary", "ext4", start, "100%")
        self._parted(device, "Flagging partition 1 as bootable", "set", "1", "boot", "on")

        return partition_name(device, 1)

    def reread_partition_table(self, device: str) -> None:
        self.executor.run(
            description=f"Re-reading partition table of {device}",
            command=["partprobe", device],
            check=False
        )
        # mkfs needs the new partition device nodes
        self.executor.run(
            description="Waiting for partition device nodes",
            command=["udevadm", "settle"],
            check=False
        )

    # --- PARTITION LEVEL OPERATIONS ---

    def format_partition(self, partition_path: str, filesystem: str) -> Tuple[int, str, str]:
        """
        Formats a partition with a specified filesystem.

        Args:
            partition_path (str): The partition path (e.g., '/dev/sda1').
            filesystem (str): 'ext4' or 'fat32'.
        """
        if filesystem == "ext4":
            fs_cmd = ["mkfs.ext4", "-F"]
        elif filesystem == "fat32":
            # Used for EFI system partition
            fs_cmd = ["mkfs.fat", "-F32"]
        else:
            raise ValueError(f"Unsupported filesystem: {filesystem}")

        fs_cmd.append(partition_path)

        return self.executor.run(
            description=f"Formatting {partition_path} as {filesystem}",
            command=fs_cmd,
            check=True
        )

    # --- MOUNT/UNMOUNT OPERATIONS ---

    def mount_partition(self, source: str, target: str) -> Tuple[int, str, str]:
        """
        Mounts a partition, creating the target directory first when it is missing.
        """
        if not os.path.isdir(target):
            self.executor.run(
                description=f"Creating mount point {target}",
                command=["mkdir", "-p", target],
                check=True
            )

        return self.executor.run(
            description=f"Mounting {source} to {target}",
            command=["mount", source, target],
            check=True
        )

    def unmount_all(self, target: str) -> Tuple[int, str, str]:
        """Recursively unmounts everything below `target`."""
        return self.executor.run(
            description=f"Unmounting {target}",
            command=["umount", "-R", target],
            check=True
        )

    # --- ORCHESTRATION ---

    def prepare(self, device: str, boot_mode: BootMode, mount_root: str) -> Tuple[Optional[str], str]:
        """
        Wipes, partitions, formats and mounts `device` for the given boot mode.
        Any failure after the wipe propagates; nothing is cleaned up.

        Returns:
            Tuple[Optional[str], str]: (efi_partition or None on BIOS, root_partition).
        """
        self.wipe_disk(device)

        if boot_mode is BootMode.UEFI:
            efi_partition, root_partition = self.partition_uefi(device)
        else:
            efi_partition, root_partition = None, self.partition_bios(device)

        self.reread_partition_table(device)

        if efi_partition:
            self.format_partition(efi_partition, "fat32")
        self.format_partition(root_partition, "ext4")

        self.mount_partition(root_partition, mount_root)
        if efi_partition:
            esp_target = os.path.join(mount_root, self.layout.esp_mount.lstrip("/"))
            self.mount_partition(efi_partition, esp_target)

        self.logger.success("Disk prepared successfully")
        return efi_partition, root_partition
