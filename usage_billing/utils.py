"""Usage billing utilities: logging setup, decimal helpers."""

import logging
from decimal import Decimal
from typing import Iterable, Optional


def setup_logging(log_file: Optional[str] = None, level: str = "INFO") -> logging.Logger:
    """Attach handlers to the usage_billing logger tree.

    The package only logs through module loggers; embedding billing runs
    call this once. Later calls just change the level.
    """
    log_level = getattr(logging, level.upper())

    logger = logging.getLogger("usage_billing")
    logger.setLevel(log_level)
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(log_level)
        return logger

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def to_decimal(value) -> Decimal:
    """Coerce int/str/float/Decimal to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    """Sum decimal amounts, starting from Decimal 0."""
    total = Decimal("0")
    for amount in amounts:
        total += amount
    return total


def ceil_div(units: int, size: int) -> int:
    """Number of blocks of `size` needed to cover `units`."""
    return units // size + (0 if units % size == 0 else 1)
