# cvh_install/sequencer.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from cvh_install.state import InstallationState
from cvh_install.utils.exceptions import FatalInstallError, ShellCommandError
from cvh_install.utils.logger import RichAppLogger
from cvh_install import ui


class StepOutcome(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


@dataclass(frozen=True)
class Step:
    """A named unit of work in the fixed installation order."""
    name: str
    label: str
    action: Callable[[InstallationState], None]
    requires: Tuple[str, ...] = ()


@dataclass
class Sequencer:
    """
    Runs installer steps strictly in order, threading one InstallationState
    through them.

    The first fatal failure stops the run. Nothing is retried or rolled back
    here; a step that wants a retry does it itself.
    """
    steps: Sequence[Step]
    logger: RichAppLogger
    outcomes: Dict[str, StepOutcome] = field(init=False)
    current_index: int = field(init=False, default=0)

    def __post_init__(self):
        seen: List[str] = []
        for step in self.steps:
            if step.name in seen:
                raise ValueError(f"Duplicate step name: {step.name}")
            for dependency in step.requires:
                if dependency not in seen:
                    raise ValueError(f"Step '{step.name}' requires '{dependency}', which does not run before it")
            seen.append(step.name)
        self.outcomes = {step.name: StepOutcome.PENDING for step in self.steps}

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def current_step(self) -> Optional[Step]:
        if 0 < self.current_index <= self.total:
            return self.steps[self.current_index - 1]
        return None

    def _check_dependencies(self, step: Step) -> None:
        unmet = [name for name in step.requires if self.outcomes[name] is not StepOutcome.PASSED]
        if unmet:
            raise FatalInstallError(f"Step '{step.label}' cannot run before: {', '.join(unmet)}", step=step.name)

    def run(self, state: InstallationState) -> InstallationState:
        """
        Executes every step. Raises FatalInstallError on the first failure,
        after marking that step as failed.
        """
        for index, step in enumerate(self.steps, start=1):
            self.current_index = index
            self._check_dependencies(step)

            ui.step_header(self.logger, index, self.total, step.label)

            try:
                step.action(state)
            except FatalInstallError as e:
                self.outcomes[step.name] = StepOutcome.FAILED
                e.step = e.step or step.name
                self.logger.error(f"{step.label} failed: {e.message}")
                raise
            except (ShellCommandError, ValueError, OSError, EOFError) as e:
                self.outcomes[step.name] = StepOutcome.FAILED
                message = str(e) or type(e).__name__
                self.logger.error(f"{step.label} failed: {message}")
                raise FatalInstallError(message, step=step.name) from e

            self.outcomes[step.name] = StepOutcome.PASSED
            self.logger.debug(f"Step {index}/{self.total} '{step.name}' passed")

        return state

    def progress(self) -> float:
        """Fraction of steps that have passed."""
        if not self.total:
            return 1.0
        passed = sum(1 for outcome in self.outcomes.values() if outcome is StepOutcome.PASSED)
        return passed / self.total
