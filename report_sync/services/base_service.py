from abc import ABC, abstractmethod
from typing import Any, FrozenSet

from report_sync.core.exceptions import AppError, ValidationError
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Base class for services driven by an ``action`` keyword.

    Subclasses list the actions they accept in ``ACTIONS`` and route them in
    ``run``. ``execute`` validates the action and turns unexpected exceptions
    into ``AppError``.
    """

    ACTIONS: FrozenSet[str] = frozenset()

    def __init__(self):
        self.logger = LOGGER

    async def execute(self, action: str, **kwargs) -> Any:
        """Validate and run one action.

        Args:
            action: Name of the operation to run
            **kwargs: Arguments of the operation

        Returns:
            Result of the action

        Raises:
            ValidationError: If the action or its arguments are invalid
            AppError: If execution fails
        """
        try:
            self.validate(action, **kwargs)
            return await self.run(action, **kwargs)

        except AppError:
            raise

        except Exception as e:
            self.logger.error(
                f"Service action failed: action={action}, error={str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__, "action": action},
            )
            raise AppError(f"Service action {action} failed: {str(e)}", original_error=e)

    def validate(self, action: str, **kwargs) -> None:
        """Reject actions this service does not know.

        Override to add argument checks; call super() first.
        """
        if action not in self.ACTIONS:
            raise ValidationError(f"Unknown action for {self.__class__.__name__}: {action}")

    @abstractmethod
    async def run(self, action: str, **kwargs) -> Any:
        """Route an already validated action to its handler."""
