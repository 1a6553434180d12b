"""FastAPI dependencies for dependency injection."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from statutory_payroll.calculators.engine import PayrollCalculator
from statutory_payroll.calculators.rate_table import RateTable
from statutory_payroll.config import get_settings
from statutory_payroll.presets import load_preset, load_rate_file


@lru_cache(maxsize=1)
def get_default_rate_table() -> RateTable:
    """Resolve the service's rate snapshot from RATE_TABLE_FILE or RATE_PRESET."""
    settings = get_settings()
    if settings.rate_table_file:
        return load_rate_file(settings.rate_table_file)
    return load_preset(settings.rate_preset)


@lru_cache(maxsize=1)
def get_calculator() -> PayrollCalculator:
    return PayrollCalculator()


# Type aliases for cleaner dependency injection
DefaultRates = Annotated[RateTable, Depends(get_default_rate_table)]
Calculator = Annotated[PayrollCalculator, Depends(get_calculator)]
