# src/image_derivatives/core/error_handling.py

import functools
import logging
import time
from typing import Type

from cloudinary.exceptions import GeneralError as CloudinaryGeneralError
from cloudinary.exceptions import RateLimited as CloudinaryRateLimited

from .exceptions import ImageDerivativesError, PublishError

RETRYABLE_CDN_ERRORS = (CloudinaryRateLimited, CloudinaryGeneralError)


def with_error_handling(error_cls: Type[ImageDerivativesError] = ImageDerivativesError):
    """
    A decorator to wrap functions with standardized error handling.

    Errors already belonging to the service hierarchy are logged and re-raised
    untouched; anything else is logged and re-raised as ``error_cls``.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__ + '.' + func.__name__)
            try:
                return func(*args, **kwargs)
            except ImageDerivativesError as e:
                logger.error(f"Error in '{func.__name__}': {e}")
                raise
            except Exception as e:
                logger.error(
                    f"Error in '{func.__name__}': {e}",
                    exc_info=True
                )
                raise error_cls(f"{func.__name__} failed: {e}") from e
        return wrapper
    return decorator


def retry_cdn_operation(max_attempts=3, initial_delay=1, backoff_factor=2):
    """
    Decorator to retry CDN operations with exponential backoff.

    Only a ``PublishError`` caused by a transient Cloudinary error (rate
    limiting, server-side failure) is retried; other errors are raised at once.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__ + '.' + func.__name__)
            attempts = 0
            delay = initial_delay
            while True:
                try:
                    return func(*args, **kwargs)
                except PublishError as e:
                    attempts += 1
                    if not isinstance(e.__cause__, RETRYABLE_CDN_ERRORS):
                        logger.error(f"CDN operation '{func.__name__}' failed with non-retryable error: {e}")
                        raise
                    if attempts >= max_attempts:
                        logger.error(
                            f"CDN operation '{func.__name__}' failed after {max_attempts} attempts. Error: {e}"
                        )
                        raise
                    logger.info(
                        f"CDN operation '{func.__name__}' failed. Attempt {attempts}/{max_attempts}. "
                        f"Retrying in {delay:.2f}s. Error: {e}"
                    )
                    time.sleep(delay)
                    delay *= backoff_factor
        return wrapper
    return decorator


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """
    def __init__(self, operation_name="Batch Operation"):
        self.operation_name = operation_name
        self.errors = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                item_identifier = error_detail.get('item', 'Unknown item')
                error_message = error_detail.get('error', 'Unknown error')
                self.logger.error(
                    f"  Error {i+1}/{len(self.errors)} for item '{item_identifier}': {error_message}"
                )
        elif exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Exceptions not reported through add_error keep propagating
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Report an error for a specific item from within the 'with' block.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): A string identifying the item that failed (e.g., filename).
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")
