"""
Validation — command-line input and preset selection checks.

Every check is fail-fast: the first violation raises
:class:`ExternalTestFailure` with a message meant for the person who
invoked the run.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ext_tests.errors import fail
from ext_tests.policy.presets import AVAILABLE_PRESETS, BinaryType, parse_presets

logger = logging.getLogger(__name__)

USAGE = "native|solcjs <path to solc or soljson.js> [preset]"


def check_binary_type(binary_type: str) -> BinaryType:
    try:
        return BinaryType(binary_type)
    except ValueError:
        fail(
            f"Invalid binary type: '{binary_type}'. "
            f"Must be either 'native' or 'solcjs'."
        )


def verify_input(
    binary_type: str,
    binary_path: Union[str, Path],
    selected_presets: Optional[Union[str, Iterable[str]]] = None,
) -> List[str]:
    """
    Validate the binary type, the binary path and any selected presets.

    Returns the parsed preset selection (possibly empty).
    """
    check_binary_type(binary_type)

    if not Path(binary_path).is_file():
        fail(f"The compiler binary does not exist at '{binary_path}'")

    presets = parse_presets(selected_presets)
    for preset in presets:
        if preset not in AVAILABLE_PRESETS:
            fail(
                f"Preset '{preset}' does not exist. "
                f"Available presets: {' '.join(AVAILABLE_PRESETS)}."
            )
    return presets


def print_presets_or_exit(selected_presets: Iterable[str]) -> bool:
    """
    Log the preset selection.

    Returns False (after a warning) when there is nothing to run; callers
    stop with success in that case.
    """
    presets = list(selected_presets)
    if not presets:
        logger.warning("No presets to run. Exiting.")
        return False

    logger.info("Selected settings presets: %s", " ".join(presets))
    return True
