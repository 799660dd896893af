# cvh_install/executors/target.py
import glob
import os
import shutil
from typing import List, Optional

from cvh_install.plan import ConfigurationPlan, RunInChroot, WriteFile
from cvh_install.utils.exceptions import FatalInstallError
from cvh_install.utils.executor import Executor


class TargetSystem:
    """
    File-level access to the new root mounted at `executor.chroot_path`.

    Paths handed to this class are absolute paths as seen from inside the
    new system ('/etc/hostname'); they are resolved below the mount root.
    In dry-run mode nothing is written, every write is only logged.
    """

    def __init__(self, executor: Executor):
        self.executor = executor
        self.logger = executor.logger

    @property
    def root(self) -> str:
        return self.executor.chroot_path

    def path(self, target_path: str) -> str:
        return os.path.join(self.root, target_path.lstrip("/"))

    def exists(self, target_path: str) -> bool:
        return os.path.exists(self.path(target_path))

    def has_base_system(self) -> bool:
        return os.path.isdir(self.path("/etc"))

    def write_file(self, target_path: str, content: str, mode: Optional[int] = None, append: bool = False) -> None:
        full_path = self.path(target_path)

        if self.executor.dry_run:
            self.logger.info(f"DRY RUN: {'Append to' if append else 'Write'} {full_path} skipped")
            self.logger.debug(f"DRY RUN CONTENT for {full_path}:\n{content}")
            return

        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        # Replace symlinks such as /etc/os-release instead of writing through them
        if not append and os.path.islink(full_path):
            os.unlink(full_path)
        with open(full_path, "a" if append else "w", encoding="utf-8") as f:
            f.write(content)
        if mode is not None:
            os.chmod(full_path, mode)

        self.logger.debug(f"{'Appended to' if append else 'Wrote'} {full_path} ({len(content)} bytes)")

    def read_file(self, target_path: str) -> str:
        with open(self.path(target_path), encoding="utf-8") as f:
            return f.read()

    def copy_matching(self, pattern: str, target_dir: str) -> List[str]:
        """
        Copies every host file matching `pattern` into `target_dir` of the new root.
        Returns the copied file names.
        """
        sources = sorted(glob.glob(pattern))
        names = [os.path.basename(source) for source in sources]
        destination = self.path(target_dir)

        if self.executor.dry_run:
            self.logger.info(f"DRY RUN: Copy of {len(sources)} file(s) into {destination} skipped")
            return names

        os.makedirs(destination, exist_ok=True)
        for source in sources:
            shutil.copy2(source, destination)
        return names

    def generate_fstab(self) -> None:
        """Appends `genfstab -U` output for the mounted tree to its etc/fstab."""
        _, stdout, _ = self.executor.run(
            description="Generating /etc/fstab",
            command=["genfstab", "-U", self.root],
            check=True
        )
        self.write_file("/etc/fstab", stdout, append=True)

    def copy_log(self, log_file_path: str, target_path: str = "/var/log/cvh-install.log") -> None:
        if not log_file_path or not os.path.isfile(log_file_path):
            self.logger.warning("No installer log to copy")
            return
        if self.executor.dry_run:
            self.logger.info(f"DRY RUN: Log copy to {self.path(target_path)} skipped")
            return

        os.makedirs(os.path.dirname(self.path(target_path)), exist_ok=True)
        shutil.copy2(log_file_path, self.path(target_path))
        self.logger.debug(f"Installer log copied to {self.path(target_path)}")

    # --- CONFIGURATION PLAN ---

    def apply(self, plan: ConfigurationPlan) -> None:
        """
        Executes the plan in order: files are written below the mount root,
        commands run through arch-chroot. The base system must already exist.
        """
        if not self.executor.dry_run and not self.has_base_system():
            raise FatalInstallError(f"No base system found at {self.root} (missing etc/)")

        for action in plan.actions:
            if isinstance(action, WriteFile):
                self.write_file(action.path, action.content, mode=action.mode, append=action.append)
            elif isinstance(action, RunInChroot):
                self.executor.run(description=action.description, command=list(action.argv), chroot=True, check=True)
            else:
                raise TypeError(f"Unknown plan action: {action!r}")

        self.verify(plan)

    def verify(self, plan: ConfigurationPlan) -> None:
        """Raises FatalInstallError listing every planned file that is not present."""
        if self.executor.dry_run:
            return

        missing = [path for path in plan.file_paths() if not self.exists(path)]
        if missing:
            raise FatalInstallError(f"Configuration incomplete, missing: {', '.join(missing)}")
        self.logger.success(f"{len(plan.file_paths())} configuration files in place")
