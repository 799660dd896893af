# cvh_install/utils/executor.py

import subprocess
import shlex
from typing import Tuple, Optional, Union, List

from cvh_install.utils.logger import RichAppLogger
from cvh_install.utils.exceptions import (
    ShellCommandError,
    CommandNotFoundError,
    CommandTimeoutError,
    InvalidCommandError,
    PermissionDeniedError,
)

__all__ = [
    "Executor",
    "ShellCommandError",
    "CommandNotFoundError",
    "CommandTimeoutError",
    "InvalidCommandError",
    "PermissionDeniedError",
]


class Executor:
    """
    Executes system commands for the installer, using Dependency Injection for logging,
    chroot support, and centralized exception handling via the RichAppLogger.
    """

    def __init__(self,
                 logger_instance: RichAppLogger,
                 default_timeout: Optional[float] = 600.0,
                 chroot_path: str = "/mnt",
                 dry_run: bool = False):
        self.logger = logger_instance

        if default_timeout is not None and default_timeout <= 0:
            self.logger.error("Default timeout must be a positive number or None.")
            raise ValueError("Default timeout must be a positive number or None.")
        if not isinstance(chroot_path, str) or not chroot_path:
            self.logger.error("Chroot path must be a non-empty string.")
            raise ValueError("Chroot path must be a non-empty string.")

        self._default_timeout = default_timeout
        self._chroot_path = chroot_path
        self.dry_run = dry_run
        self.logger.debug(f"Executor initialized with default_timeout: {self._default_timeout}, "
                          f"chroot_path: {self._chroot_path}, dry_run: {self.dry_run}")

    @property
    def chroot_path(self) -> str:
        return self._chroot_path

    def _prepare_command(self, command: Union[str, list], chroot: bool) -> List[str]:
        """
        Prepares the command for execution by shlex.split if it's a string,
        and prepends arch-chroot if chroot is True.
        """
        if not command:
            self.logger.error("Attempted to prepare an empty command.")
            raise InvalidCommandError(str(command), "Command cannot be empty.")

        if isinstance(command, str):
            try:
                parsed_command = shlex.split(command)
            except ValueError as e:
                self.logger.error(f"Failed to parse command string '{command}': {e}")
                raise InvalidCommandError(command, f"Failed to parse command string: {e}")
        elif isinstance(command, list):
            if not all(isinstance(arg, str) for arg in command):
                raise InvalidCommandError(str(command), "All elements in command list must be strings.")
            parsed_command = command
        else:
            self.logger.error(f"Invalid command type: {type(command)}. Expected str or list.")
            raise InvalidCommandError(str(command), "Command must be a string or a list of strings.")

        if chroot:
            return ["arch-chroot", self._chroot_path] + parsed_command
        return parsed_command

    def execute_command(self,
                        command: Union[str, list],
                        capture_output: bool = True,
                        timeout: Optional[float] = None,
                        check: bool = True,
                        shell: bool = False,
                        cwd: Optional[str] = None
                        ) -> Tuple[int, str, str]:
        """
        Executes a command using subprocess.run. This is the low-level execution method.
        """
        actual_timeout = timeout if timeout is not None else self._default_timeout
        cmd_string_for_log = shlex.join(command) if isinstance(command, list) else command

        self.logger.debug(f"Attempting low-level execution: '{cmd_string_for_log}' "
                          f"timeout={actual_timeout}s, capture_output={capture_output}, check={check}, shell={shell}")

        try:
            if shell:
                command_to_execute = shlex.join(command) if isinstance(command, list) else command
            else:
                if isinstance(command, str):
                    command_to_execute = self._prepare_command(command, chroot=False)
                else:
                    command_to_execute = command

            process = subprocess.run(
                command_to_execute,
                capture_output=capture_output,
                text=True,
                timeout=actual_timeout,
                check=False,
                shell=shell,
                cwd=cwd
            )

            stdout = process.stdout if capture_output and process.stdout else ""
            stderr = process.stderr if capture_output and process.stderr else ""
            exit_code = process.returncode

            if check and exit_code != 0:
                error_message = f"Command failed with exit code {exit_code}"
                self.logger.error(f"Command: '{cmd_string_for_log}', Exit Code: {exit_code}, Stderr: {stderr.strip()}")

                if "command not found" in stderr.lower() or exit_code == 127:
                    raise CommandNotFoundError(command=cmd_string_for_log, stdout=stdout, stderr=stderr)
                elif "permission denied" in stderr.lower() or exit_code == 126:
                    raise PermissionDeniedError(command=cmd_string_for_log, stdout=stdout, stderr=stderr)
                else:
                    raise ShellCommandError(
                        command=cmd_string_for_log,
                        exit_code=exit_code,
                        stdout=stdout,
                        stderr=stderr,
                        message=error_message
                    )

            self.logger.debug(f"Low-level execution of '{cmd_string_for_log}' completed with exit code {exit_code}")
            return exit_code, stdout, stderr

        except FileNotFoundError:
            self.logger.error(f"Command '{cmd_string_for_log}' not found. Ensure it's in the system's PATH.")
            raise CommandNotFoundError(command=cmd_string_for_log, stdout="", stderr="Command not found. Check PATH.")
        except subprocess.TimeoutExpired as e:
            self.logger.warning(f"Command '{cmd_string_for_log}' timed out after {actual_timeout} seconds.")
            stdout = e.stdout.decode() if isinstance(e.stdout, bytes) else (e.stdout or "")
            stderr = e.stderr.decode() if isinstance(e.stderr, bytes) else (e.stderr or "")
            raise CommandTimeoutError(command=cmd_string_for_log, timeout=actual_timeout, stdout=stdout, stderr=stderr)
        except (TypeError, ValueError) as e:
            self.logger.error(f"Argument error during low-level command execution '{cmd_string_for_log}': {e}")
            raise InvalidCommandError(cmd_string_for_log, f"Argument error in command execution: {e}")

    def run(self,
            description: str,
            command: Union[str, list],
            chroot: bool = False,
            dryrun: Optional[bool] = None,
            capture_output: bool = True,
            timeout: Optional[float] = None,
            check: bool = True,
            shell: bool = False,
            cwd: Optional[str] = None
            ) -> Tuple[int, str, str]:
        """
        Executes a command inside the RichAppLogger's execution_step context manager
        for TUI feedback, logging, and centralized exception handling.

        Commands run with capture_output=False keep the terminal (progress output,
        password prompts), so no spinner is drawn over them.
        """
        original_command_str = shlex.join(command) if isinstance(command, list) else command

        prepared_command_list = self._prepare_command(command, chroot=chroot)

        if dryrun is None:
            dryrun = self.dry_run

        if dryrun:
            self.logger.info(f"DRY RUN: Execution skipped for: '{description}'")
            self.logger.debug(f"DRY RUN COMMAND (Prepared): {shlex.join(prepared_command_list)}")
            return 0, "DRY_RUN_STDOUT", "DRY_RUN_STDERR"

        with self.logger.execution_step(description, spinner=capture_output):

            cmd_to_pass = prepared_command_list if not shell else original_command_str

            exit_code, stdout, stderr = self.execute_command(
                command=cmd_to_pass,
                capture_output=capture_output,
                timeout=timeout,
                check=check,
                shell=shell,
                cwd=cwd
            )

            self.logger.debug(f"Command '{description}' completed with exit code {exit_code}. Output details:")
            if stdout:
                self.logger.debug(f"  Stdout:\n{stdout.strip()}")
            if stderr:
                self.logger.debug(f"  Stderr:\n{stderr.strip()}")

            return exit_code, stdout, stderr

    def query(self, command: Union[str, list], check: bool = False) -> Tuple[int, str, str]:
        """
        Runs a read-only probe (lsblk, ping, ip) without TUI output.
        Probes also run in dry-run mode, they never modify the system.
        """
        prepared_command_list = self._prepare_command(command, chroot=False)
        return self.execute_command(prepared_command_list, capture_output=True, check=check)

    def spawn(self, description: str, command: Union[str, list]) -> Optional[subprocess.Popen]:
        """
        Starts a command in the background and returns without waiting for it.
        Output is discarded; a missing executable is logged and skipped.
        """
        prepared_command_list = self._prepare_command(command, chroot=False)
        self.logger.debug(f"Spawning background command for '{description}': {shlex.join(prepared_command_list)}")

        if self.dry_run:
            self.logger.info(f"DRY RUN: Background start skipped for: '{description}'")
            return None

        try:
            return subprocess.Popen(
                prepared_command_list,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            self.logger.warning(f"Could not start '{prepared_command_list[0]}': not found in PATH.")
            return None
