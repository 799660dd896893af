# cvh_install/installer.py

from typing import List, Optional

from cvh_install import ui
from cvh_install.config.models import InstallerSettings
from cvh_install.executors import (
    ConnectivityChecker,
    DiskManager,
    PackageInstaller,
    SystemProbe,
    TargetSystem,
)
from cvh_install.plan import build_plan
from cvh_install.prompts import Prompter
from cvh_install.sequencer import Sequencer, Step
from cvh_install.state import InstallationState
from cvh_install.utils.exceptions import FatalInstallError, ShellCommandError
from cvh_install.utils.executor import Executor
from cvh_install.utils.logger import RichAppLogger


class Installer:
    """
    The CVH Linux installation. Each step is a method taking the shared
    InstallationState; the Sequencer runs them in the order of build_steps().
    """

    def __init__(self,
                 settings: InstallerSettings,
                 logger: RichAppLogger,
                 executor: Optional[Executor] = None,
                 prompter: Optional[Prompter] = None,
                 dry_run: bool = False):
        self.settings = settings
        self.logger = logger
        self.executor = executor or Executor(
            logger_instance=logger,
            default_timeout=settings.command_timeout,
            chroot_path=settings.mount_root,
            dry_run=dry_run,
        )
        self.prompter = prompter or Prompter(logger, settings.identity)

        self.probe = SystemProbe(self.executor)
        self.disks = DiskManager(self.executor, settings.layout)
        self.network = ConnectivityChecker(self.executor, settings.network)
        self.target = TargetSystem(self.executor)
        self.packages = PackageInstaller(self.executor, self.target, settings)

        self.local_packages: List[str] = []
        self.sequencer = Sequencer(self.build_steps(), logger)

    def build_steps(self) -> List[Step]:
        return [
            Step("detect", "Detecting System", self.detect),
            Step("keyboard", "Keyboard Layout", self.keyboard),
            Step("timezone", "Timezone", self.timezone),
            Step("compositor", "Compositor Selection", self.compositor),
            Step("disk", "Disk Selection", self.disk),
            Step("identity", "System Configuration", self.identity),
            Step("partition", "Partitioning Disk", self.partition, requires=("detect", "disk")),
            Step("base", "Installing Base System", self.base, requires=("partition", "compositor")),
            Step("fstab", "Generating Filesystem Table", self.fstab, requires=("base",)),
            Step("configure", "Configuring System", self.configure,
                 requires=("fstab", "keyboard", "timezone", "identity")),
            Step("credentials", "Setting Passwords", self.credentials, requires=("configure",)),
            Step("finalize", "Finishing Installation", self.finalize, requires=("credentials",)),
        ]

    def run(self, state: Optional[InstallationState] = None) -> InstallationState:
        """Privilege check and welcome banner, then every step in order."""
        self.probe.require_root()
        ui.show_welcome(self.logger)
        self.prompter.wait_for_enter("Press Enter to begin installation or Ctrl+C to cancel...")
        self.logger.debug(self.settings.display_summary())
        if self.executor.dry_run:
            self.logger.warning("Running in DRY-RUN mode: no command is executed and no file is written.")

        state = state or InstallationState(locale=self.settings.identity.locale)
        return self.sequencer.run(state)

    # --- INPUT STEPS ---

    def detect(self, state: InstallationState) -> None:
        state.boot_mode = self.probe.detect_boot_mode()

    def keyboard(self, state: InstallationState) -> None:
        state.keymap = self.prompter.choose_keymap()
        self.probe.load_keymap(state.keymap)

    def timezone(self, state: InstallationState) -> None:
        state.timezone = self.prompter.choose_timezone()

    def compositor(self, state: InstallationState) -> None:
        state.compositor = self.prompter.choose_compositor()

    def disk(self, state: InstallationState) -> None:
        disk = self.prompter.choose_disk(self.probe.list_disks())
        self.prompter.confirm_destruction(disk)
        state.disk = disk

    def identity(self, state: InstallationState) -> None:
        state.hostname = self.prompter.ask_hostname()
        state.username = self.prompter.ask_username()

    # --- SYSTEM STEPS ---

    def partition(self, state: InstallationState) -> None:
        state.require("disk", "boot_mode")
        efi_partition, root_partition = self.disks.prepare(state.disk, state.boot_mode, self.settings.mount_root)
        state.efi_partition = efi_partition
        state.root_partition = root_partition

    def base(self, state: InstallationState) -> None:
        state.require("compositor")
        self.network.ensure_online()
        self.local_packages = self.packages.install(state.compositor)

    def fstab(self, state: InstallationState) -> None:
        self.target.generate_fstab()
        self.logger.success("Filesystem table generated")

    def configure(self, state: InstallationState) -> None:
        plan = build_plan(state, self.settings, self.local_packages)
        self.logger.debug(f"Configuration plan: {len(plan.files())} files, {len(plan.commands())} commands")
        self.target.apply(plan)
        self.logger.success("System configured")

    def credentials(self, state: InstallationState) -> None:
        state.require("username")
        for account in ("root", state.username):
            self._set_password(account)
        self.logger.success("Passwords set")

    def _set_password(self, account: str) -> None:
        """Runs passwd interactively, retrying a mistyped password a limited number of times."""
        attempts = self.settings.password_attempts
        for attempt in range(1, attempts + 1):
            self.logger.console.print(f"\n  [bold]Set password for {account}:[/bold]")
            try:
                self.executor.run(
                    description=f"Setting password for {account}",
                    command=["passwd", account],
                    chroot=True,
                    capture_output=False,
                    timeout=self.settings.install_timeout,
                    check=True,
                )
                return
            except ShellCommandError:
                self.logger.warning(f"Password for {account} was not set (attempt {attempt}/{attempts})")

        raise FatalInstallError(f"Could not set the password for {account} after {attempts} attempts")

    def finalize(self, state: InstallationState) -> None:
        self.executor.run(description="Syncing filesystems", command=["sync"])
        self.target.copy_log(self.logger.log_file_path)
        self.disks.unmount_all(self.settings.mount_root)

        ui.overall_progress(self.logger, self.sequencer.current_index, self.sequencer.total)
        ui.show_completion(self.logger)
        ui.show_summary(self.logger, self.summary(state), self.next_steps(state))

        self.prompter.wait_for_enter("Press Enter to reboot...")
        self.executor.run(description="Rebooting", command=["reboot"], check=False)

    def summary(self, state: InstallationState) -> List[tuple]:
        return [
            ("Username", state.username or ""),
            ("Hostname", state.hostname or ""),
            ("Timezone", state.timezone or ""),
            ("Boot Mode", state.boot_mode.value if state.boot_mode else ""),
            ("Compositor", state.compositor.display_name if state.compositor else ""),
        ]

    def next_steps(self, state: InstallationState) -> List[str]:
        session = state.compositor.display_name if state.compositor else "your"
        return [
            "[success]Ly display manager[/success] will appear on boot",
            f"Select [cyan]{session}[/cyan] session",
            "Enter your username and password",
            "Press [cyan]Mod+Return[/cyan] to open terminal",
            "Press [cyan]Mod+D[/cyan] to open app launcher (cvh-fuzzy)",
        ]
