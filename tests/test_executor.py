import pytest
import subprocess
from unittest.mock import MagicMock, patch
import shlex

# ======= Execute with: pytest tests/test_executor.py ========

from cvh_install.utils.executor import (
    Executor, ShellCommandError, CommandTimeoutError,
    CommandNotFoundError, PermissionDeniedError, InvalidCommandError
)

# --- Test Helper Classes/Mocks ---

class MockCompletedProcess:
    """A mock object to simulate the return value of subprocess.run."""
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.args = []

# --- Fixtures ---

@pytest.fixture
def executor(mock_rich_logger):
    """Provides an Executor instance with the mocked logger injected."""
    return Executor(logger_instance=mock_rich_logger, default_timeout=5.0)

# ----------------------------------------------------------------------
# --- Tests for Initialization and Setup ---
# ----------------------------------------------------------------------

def test_executor_initialization(mock_rich_logger):
    """Tests if the Executor initializes correctly and stores the logger."""
    exec_instance = Executor(logger_instance=mock_rich_logger, default_timeout=10.0, chroot_path="/mnt/target")
    assert exec_instance._default_timeout == 10.0
    assert exec_instance.chroot_path == "/mnt/target"
    assert exec_instance.logger == mock_rich_logger
    assert exec_instance.dry_run is False
    mock_rich_logger.debug.assert_called()

def test_executor_initialization_invalid_timeout(mock_rich_logger):
    """Tests if initialization raises ValueError for invalid timeout."""
    with pytest.raises(ValueError, match="positive number"):
        Executor(logger_instance=mock_rich_logger, default_timeout=-1)

def test_executor_initialization_empty_chroot(mock_rich_logger):
    with pytest.raises(ValueError, match="non-empty"):
        Executor(logger_instance=mock_rich_logger, chroot_path="")

# ----------------------------------------------------------------------
# --- Tests for _prepare_command ---
# ----------------------------------------------------------------------

def test_prepare_command_string_with_chroot(executor):
    """Tests preparation of a string command with chroot prepended."""
    cmd = "ls /etc/pacman.conf"
    executor._chroot_path = "/newroot"
    prepared = executor._prepare_command(cmd, chroot=True)
    assert prepared == ["arch-chroot", "/newroot", "ls", "/etc/pacman.conf"]

def test_prepare_command_list_without_chroot(executor):
    assert executor._prepare_command(["parted", "-s", "/dev/sda", "print"], chroot=False) == \
        ["parted", "-s", "/dev/sda", "print"]

def test_prepare_command_invalid_input(executor):
    """Tests that InvalidCommandError is raised for invalid input."""
    with pytest.raises(InvalidCommandError):
        executor._prepare_command("", chroot=False)
    with pytest.raises(InvalidCommandError):
        executor._prepare_command(None, chroot=False)
    with pytest.raises(InvalidCommandError):
        executor._prepare_command(["ls", 123], chroot=False)
    with pytest.raises(InvalidCommandError):
        executor._prepare_command("echo 'unterminated", chroot=False)

# ----------------------------------------------------------------------
# --- Tests for execute_command (Low-level) ---
# ----------------------------------------------------------------------

@patch('subprocess.run')
def test_execute_command_success(mock_run, executor):
    """Tests successful command execution (exit code 0)."""
    mock_run.return_value = MockCompletedProcess(returncode=0, stdout="sda 20G", stderr="")

    exit_code, stdout, stderr = executor.execute_command(["lsblk", "-dno", "NAME,SIZE"], check=True)

    mock_run.assert_called_once()
    assert mock_run.call_args.kwargs["timeout"] == 5.0
    assert exit_code == 0
    assert stdout == "sda 20G"
    assert stderr == ""

@patch('subprocess.run')
def test_execute_command_error_no_check(mock_run, executor):
    """Tests command failure when 'check' is False (no exception raised)."""
    mock_run.return_value = MockCompletedProcess(returncode=1, stdout="", stderr="Minor error")

    exit_code, stdout, stderr = executor.execute_command(["wipefs", "-af", "/dev/sda"], check=False)

    assert exit_code == 1
    assert stderr == "Minor error"
    executor.logger.error.assert_not_called()

@patch('subprocess.run')
def test_execute_command_error_shellcommanderror(mock_run, executor):
    """Tests command failure when 'check' is True (raises ShellCommandError with the exit code)."""
    mock_run.return_value = MockCompletedProcess(returncode=5, stdout="Some output", stderr="Unknown failure")

    with pytest.raises(ShellCommandError) as excinfo:
        executor.execute_command(["parted", "-s", "/dev/sda", "mklabel", "gpt"], check=True)

    assert excinfo.value.exit_code == 5
    assert excinfo.value.stderr == "Unknown failure"
    executor.logger.error.assert_called_once()

@patch('subprocess.run')
def test_execute_command_command_not_found_error(mock_run, executor):
    """Tests CommandNotFoundError detection via returncode 127 and stderr string."""
    mock_run.return_value = MockCompletedProcess(
        returncode=127,
        stdout="",
        stderr="bash: my_command: command not found"
    )

    with pytest.raises(CommandNotFoundError) as excinfo:
        executor.execute_command("my_command --arg", check=True)

    assert excinfo.value.exit_code == 127
    executor.logger.error.assert_called_once()

@patch('subprocess.run')
def test_execute_command_permission_denied(mock_run, executor):
    mock_run.return_value = MockCompletedProcess(returncode=126, stderr="")

    with pytest.raises(PermissionDeniedError) as excinfo:
        executor.execute_command(["mount", "/dev/sda2", "/mnt"], check=True)

    assert excinfo.value.exit_code == 126

@patch('subprocess.run', side_effect=FileNotFoundError())
def test_execute_command_missing_executable(mock_run, executor):
    with pytest.raises(CommandNotFoundError):
        executor.execute_command(["sgdisk", "-Z", "/dev/sda"])

@patch('subprocess.run', side_effect=subprocess.TimeoutExpired(cmd=["test"], timeout=5.0, output=b'', stderr=b''))
def test_execute_command_timeout_error(mock_run, executor):
    """Tests CommandTimeoutError when subprocess.TimeoutExpired is raised."""
    with pytest.raises(CommandTimeoutError) as excinfo:
        executor.execute_command(["long_running_script"], timeout=5.0)

    assert "timed out" in str(excinfo.value)
    assert excinfo.value.exit_code == 124
    executor.logger.warning.assert_called_once()

# ----------------------------------------------------------------------
# --- Tests for run() (High-level) ---
# ----------------------------------------------------------------------

@patch.object(Executor, 'execute_command')
def test_run_success(mock_execute_command, executor, mock_rich_logger):
    """Tests the high-level run() method on successful command execution."""
    mock_execute_command.return_value = (0, "Success!", "")

    description = "Test success"
    exit_code, stdout, stderr = executor.run(description, "test_cmd")

    assert exit_code == 0
    assert stdout == "Success!"

    mock_rich_logger.execution_step.assert_called_once_with(description, spinner=True)
    executor.logger.debug.assert_called()

@patch.object(Executor, 'execute_command')
def test_run_without_capture_has_no_spinner(mock_execute_command, executor, mock_rich_logger):
    """Commands that own the terminal (pacstrap, passwd) run without a spinner."""
    mock_execute_command.return_value = (0, "", "")

    executor.run("Installing packages", ["pacstrap", "-K", "/mnt", "base"], capture_output=False)

    mock_rich_logger.execution_step.assert_called_once_with("Installing packages", spinner=False)
    assert mock_execute_command.call_args.kwargs["capture_output"] is False

@patch.object(Executor, 'execute_command')
def test_run_failure(mock_execute_command, executor, mock_rich_logger):
    """Tests the high-level run() method on command execution failure."""
    mock_execute_command.side_effect = ShellCommandError(
        command="test_cmd", exit_code=1, stderr="Permission denied."
    )

    description = "Test failure"
    with pytest.raises(ShellCommandError):
        executor.run(description, "test_cmd")

    mock_rich_logger.execution_step.assert_called_once_with(description, spinner=True)

@patch.object(Executor, 'execute_command')
def test_run_dryrun(mock_execute_command, executor, mock_rich_logger):
    """Tests the dry-run feature."""
    exit_code, stdout, stderr = executor.run("Test dryrun", "mkfs.ext4 -F /dev/sda2", dryrun=True)

    assert exit_code == 0
    assert stdout == "DRY_RUN_STDOUT"

    mock_execute_command.assert_not_called()
    mock_rich_logger.info.assert_called()
    mock_rich_logger.execution_step.assert_not_called()

@patch.object(Executor, 'execute_command')
def test_run_dryrun_from_instance(mock_execute_command, mock_rich_logger):
    """An executor created with dry_run=True skips every command by default."""
    executor = Executor(logger_instance=mock_rich_logger, dry_run=True)

    executor.run("Wiping disk", ["wipefs", "-af", "/dev/sda"])

    mock_execute_command.assert_not_called()

@patch.object(Executor, 'execute_command')
def test_run_with_chroot(mock_execute_command, executor, mock_rich_logger):
    """Tests that the command passed to the low-level executor includes arch-chroot."""
    mock_execute_command.return_value = (0, "", "")

    executor._chroot_path = "/mnt/arch"
    cmd = "pacman -U --noconfirm /var/cache/pacman/cvh-packages/cvh-fuzzy.pkg.tar.zst"

    executor.run("Install local packages", cmd, chroot=True)

    expected_command = shlex.split(f"arch-chroot {executor._chroot_path} {cmd}")

    mock_execute_command.assert_called_once()
    actual_command = mock_execute_command.call_args[1]['command']
    assert actual_command == expected_command

# ----------------------------------------------------------------------
# --- Tests for query() and spawn() ---
# ----------------------------------------------------------------------

@patch.object(Executor, 'execute_command')
def test_query_runs_in_dry_run(mock_execute_command, mock_rich_logger):
    """Probes are read-only and run even in dry-run mode, without TUI output."""
    mock_execute_command.return_value = (0, "sda 20G", "")
    executor = Executor(logger_instance=mock_rich_logger, dry_run=True)

    assert executor.query(["lsblk", "-dno", "NAME,SIZE"]) == (0, "sda 20G", "")

    mock_execute_command.assert_called_once_with(["lsblk", "-dno", "NAME,SIZE"], capture_output=True, check=False)
    mock_rich_logger.execution_step.assert_not_called()

@patch('subprocess.Popen')
def test_spawn_starts_background_process(mock_popen, executor):
    process = MagicMock()
    mock_popen.return_value = process

    assert executor.spawn("DHCP on eth0", ["dhcpcd", "eth0"]) is process

    assert mock_popen.call_args[0][0] == ["dhcpcd", "eth0"]
    assert mock_popen.call_args.kwargs["stdout"] == subprocess.DEVNULL

@patch('subprocess.Popen', side_effect=FileNotFoundError())
def test_spawn_missing_executable_is_a_warning(mock_popen, executor):
    assert executor.spawn("DHCP on eth0", ["dhcpcd", "eth0"]) is None
    executor.logger.warning.assert_called_once()

@patch('subprocess.Popen')
def test_spawn_dry_run(mock_popen, mock_rich_logger):
    executor = Executor(logger_instance=mock_rich_logger, dry_run=True)

    assert executor.spawn("DHCP on eth0", ["dhcpcd", "eth0"]) is None
    mock_popen.assert_not_called()
