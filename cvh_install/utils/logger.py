import logging
import os
import sys
from contextlib import contextmanager

from rich.console import Console
from rich.text import Text
from rich.logging import RichHandler
from rich.theme import Theme

from cvh_install.utils.exceptions import ShellCommandError

# --- 1. Custom Log Levels and Subclassed Logger ---
# Define custom levels (must be done before setting LoggerClass)
SECTION_LEVEL_NUM = 25
EXECUTE_LEVEL_NUM = 26
logging.addLevelName(SECTION_LEVEL_NUM, 'SECTION')
logging.addLevelName(EXECUTE_LEVEL_NUM, 'EXECUTE')

LOG_FILE_NAME = "cvh-install.log"

THEME = Theme({
    'info':     'cyan',
    'section':  'bold cyan',
    'success':  'green',
    'warning':  'bold yellow',
    'error':    'red',
    'critical': 'bold reverse red',
    'dim':      'dim',
})


class AppLogger(logging.Logger):
    """
    Subclasses logging.Logger to add custom methods for SECTION and EXECUTE levels.
    """

    def section(self, msg, *args, **kwargs):
        """Logs a message at the SECTION level."""
        if self.isEnabledFor(SECTION_LEVEL_NUM):
            self._log(SECTION_LEVEL_NUM, msg, args, **kwargs)

    def execute(self, msg, *args, **kwargs):
        """Logs a message at the EXECUTE level."""
        if self.isEnabledFor(EXECUTE_LEVEL_NUM):
            self._log(EXECUTE_LEVEL_NUM, msg, args, **kwargs)


# Set the custom logger class globally
logging.setLoggerClass(AppLogger)


# --- 2. File Formatter (For consistent file structure) ---
class FileFormatter(logging.Formatter):
    """
    Detailed formatter for file output.
    """

    def format(self, record):
        # Prepare fixed-width attributes for consistent file structure
        record.levelname_fixed = f"{record.levelname:<9}"
        record.name_fixed = f"{record.name:<15}"
        record.filename_fixed = f"{record.filename:<20}"
        record.lineno_fixed = f"{record.lineno:<5}"

        fmt = '%(asctime)s - %(levelname_fixed)s - %(name_fixed)s - %(filename_fixed)s:%(lineno_fixed)s - %(message)s'
        self._style._fmt = fmt

        return super().format(record)


# --- 3. RichAppLogger Wrapper (Focuses on TUI presentation) ---
class RichAppLogger:
    """
    Manages TUI output via Rich Console and wraps the AppLogger instance.
    """

    def __init__(self, console: Console, logger: AppLogger, log_file_path: str = ""):
        self.console = console
        self.logger: AppLogger = logger
        self.log_file_path = log_file_path

    def section(self, message: str, *args, **kwargs):
        """Logs a message with the custom SECTION level and prints a styled header to TUI."""
        console_msg = Text(f"SECTION: {message}", style="section")
        self.console.print(console_msg)

        # File only: the console filter drops SECTION records
        self.logger.section(f"SECTION: {message}", *args, **kwargs)

    def success(self, message: str):
        """Prints a green status line and records it in the log file."""
        self.console.print(f"  [success]✓[/success] {message}")
        self.logger.info(Text.from_markup(message).plain, extra={"rendered": True})

    @contextmanager
    def execution_step(self, message: str, spinner: bool = True):
        """
        Context manager for a live Rich Status display, ensuring the
        [RUNNING] status is overwritten by the final [COMPLETED]/[CRITICAL] message.

        With spinner=False the command owns the terminal (pacstrap, passwd),
        so only a plain [RUNNING] line is printed before it starts.
        """
        if spinner:
            status_cm = self.console.status(f"[bold green]...[/] [RUNNING] {message}", spinner="dots")
        else:
            self.console.print(f"[bold cyan]● [RUNNING][/bold cyan] {message}")
            status_cm = _nullstatus()

        with status_cm as status:

            # Log the start to file. This will NOT be printed to console due to the filter.
            self.logger.execute(f"[RUNNING] {message}")

            try:
                yield status

                self.console.print(f"[green]✔ [COMPLETED][/green] {message}")
                self.logger.execute(f"[COMPLETED] {message}")

            except Exception as e:
                # Command failures already carry a readable message, no traceback needed
                is_critical = isinstance(e, ShellCommandError)
                status_tag = "[CRITICAL]" if is_critical else "[FAILED]"

                self.console.print(f"[bold red]✘ {status_tag}[/bold red] {message}")
                self.logger.execute(f"{status_tag} {message}")

                self.logger.exception(f"Exception during execution step: {message}")

                if not is_critical:
                    self.console.print("\n[bold red]Traceback (most recent call last):[/bold red]")
                    self.console.print_exception(show_locals=True)

                raise

    # --- Standard Logging Wrappers (Simple pass-through to logger) ---

    def info(self, message, *args, **kwargs):
        self.logger.info(message, *args, **kwargs)

    def warning(self, message, *args, **kwargs):
        self.logger.warning(message, *args, **kwargs)

    def error(self, message, *args, **kwargs):
        self.logger.error(message, *args, **kwargs)

    def debug(self, message, *args, **kwargs):
        self.logger.debug(message, *args, **kwargs)

    def critical(self, message, *args, **kwargs):
        self.logger.critical(message, *args, **kwargs)

    def exception(self, message, *args, **kwargs):
        """Logs an ERROR to file with traceback and prints a rich traceback to the console."""
        self.logger.exception(message, *args, **kwargs)
        self.console.print(f"[bold red]FATAL ERROR: {message}[/bold red]")
        self.console.print_exception(show_locals=True)


@contextmanager
def _nullstatus():
    yield None


# --- 4. Custom Filter for the console handler ---

class ConsoleFilter(logging.Filter):
    """
    Keeps records that the TUI already rendered away from the RichHandler:
    SECTION and EXECUTE levels, and records logged with extra={"rendered": True}.
    """
    def filter(self, record):
        if record.levelno in (SECTION_LEVEL_NUM, EXECUTE_LEVEL_NUM):
            return False
        return not getattr(record, "rendered", False)


# --- 5. Initialization Routine ---
def initialize_app_logger(
    app_name: str,
    log_directory: str = "logs",
    log_file_name: str = LOG_FILE_NAME,
    file_log_level: int = logging.DEBUG,
    console_log_level: int = logging.INFO,
) -> RichAppLogger:
    """
    Initializes and configures the AppLogger for file output and Rich Console for TUI.
    """
    logger: AppLogger = logging.getLogger(app_name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    # 1. File Handler Setup
    os.makedirs(log_directory, exist_ok=True)
    log_file_path = os.path.join(log_directory, log_file_name)

    file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
    file_handler.setLevel(file_log_level)
    file_handler.setFormatter(FileFormatter())
    logger.addHandler(file_handler)

    # 2. Rich Console Setup
    console = Console(file=sys.stderr, force_terminal=True, soft_wrap=True, theme=THEME)

    # 3. Rich Handler Setup (For standard logs: INFO, WARNING, ERROR, etc.)
    stream_handler = RichHandler(
        console=console,
        show_time=False,
        show_level=True,
        show_path=False,
        keywords=[],
        level=console_log_level
    )
    stream_handler.addFilter(ConsoleFilter())
    logger.addHandler(stream_handler)

    return RichAppLogger(console, logger, log_file_path=log_file_path)
