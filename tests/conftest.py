import pytest
from unittest.mock import MagicMock

from cvh_install.utils.executor import Executor
from cvh_install.utils.logger import RichAppLogger


@pytest.fixture
def mock_rich_logger():
    """Provides a fully-mocked RichAppLogger instance for dependency injection."""
    mock_logger = MagicMock(spec=RichAppLogger)

    # Configure the mock to return a context manager for execution_step
    mock_context_manager = MagicMock()
    mock_context_manager.__enter__.return_value = None
    mock_context_manager.__exit__.return_value = None
    mock_logger.execution_step.return_value = mock_context_manager

    # Instance attributes are not part of the class spec
    mock_logger.console = MagicMock()
    mock_logger.logger = MagicMock()
    mock_logger.log_file_path = ""

    return mock_logger


@pytest.fixture
def mock_executor(mock_rich_logger):
    """An Executor stand-in whose commands all succeed with empty output."""
    executor = MagicMock(spec=Executor)
    executor.logger = mock_rich_logger
    executor.dry_run = False
    executor.chroot_path = "/mnt"
    executor.run.return_value = (0, "", "")
    executor.query.return_value = (0, "", "")
    executor.spawn.return_value = None
    return executor


@pytest.fixture
def run_commands():
    """Returns a helper listing the commands passed to executor.run, in call order."""
    def _commands(executor):
        return [c.kwargs["command"] for c in executor.run.call_args_list]
    return _commands
