from typing import Any
from abc import ABC, abstractmethod

from manual_kb.core.exceptions import AppError
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseService(ABC):
    """Base class for pipeline services.

    Provides a standardized execution flow with validation and error handling.
    """

    def __init__(self):
        self.logger = LOGGER

    async def execute(self, *args, **kwargs) -> Any:
        """Validate input, then run the service logic.

        Application errors propagate unchanged; anything else is logged and
        wrapped in AppError.
        """
        try:
            self.validate(*args, **kwargs)

            return await self.run(*args, **kwargs)

        except AppError:
            raise

        except Exception as e:
            self.logger.error(
                f"Service execution failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__}
            )
            raise AppError(f"Service execution failed: {str(e)}", original_error=e)

    def validate(self, *args, **kwargs):
        """Validate service input. Override to add checks."""
        pass

    @abstractmethod
    async def run(self, *args, **kwargs) -> Any:
        pass
