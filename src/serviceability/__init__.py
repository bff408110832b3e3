"""Pincode serviceability — existence checks against public postal data.

Provides get_checker() / set_checker() so tests can inject a checker built
on a mock transport.
"""

import os

from serviceability.pincode import PincodeChecker

_checker_instance: PincodeChecker | None = None


def get_checker() -> PincodeChecker:
    """Return the process-wide pincode checker (singleton).

    The primary data.gov.in source is only consulted when DATA_GOV_API_KEY
    is set; otherwise every lookup goes to the public fallback.
    """
    global _checker_instance
    if _checker_instance is None:
        _checker_instance = PincodeChecker(api_key=os.environ.get("DATA_GOV_API_KEY") or None)
    return _checker_instance


def set_checker(checker: PincodeChecker) -> None:
    global _checker_instance
    _checker_instance = checker


def reset_checker() -> None:
    """Reset the checker singleton (useful for testing)."""
    global _checker_instance
    _checker_instance = None
