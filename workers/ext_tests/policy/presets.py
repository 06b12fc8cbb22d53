"""
Presets — the fixed compiler-settings combinations external tests run with.

A preset selects the codegen pipeline (legacy or via IR) and the optimizer
setup.  The EVM version is orthogonal and filled in when settings are
rendered.  Settings are rendered as JavaScript object literals because they
are spliced straight into Truffle / Hardhat config files.
"""
from enum import Enum, unique
from typing import Dict, Iterable, List, Optional, Union

from ext_tests.errors import fail

CURRENT_EVM_VERSION = "london"


@unique
class Preset(str, Enum):
    LEGACY_NO_OPTIMIZE = "legacy-no-optimize"
    IR_NO_OPTIMIZE = "ir-no-optimize"
    LEGACY_OPTIMIZE_EVM_ONLY = "legacy-optimize-evm-only"
    IR_OPTIMIZE_EVM_ONLY = "ir-optimize-evm-only"
    LEGACY_OPTIMIZE_EVM_YUL = "legacy-optimize-evm+yul"
    IR_OPTIMIZE_EVM_YUL = "ir-optimize-evm+yul"


@unique
class BinaryType(str, Enum):
    """How the compiler under test is distributed."""
    NATIVE = "native"
    SOLCJS = "solcjs"


AVAILABLE_PRESETS: List[str] = [p.value for p in Preset]

# (via_ir, optimizer_enabled, yul); yul is None when the optimizer is off
_PRESET_MATRIX: Dict[str, tuple] = {
    Preset.LEGACY_NO_OPTIMIZE.value: (False, False, None),
    Preset.IR_NO_OPTIMIZE.value: (True, False, None),
    Preset.LEGACY_OPTIMIZE_EVM_ONLY.value: (False, True, False),
    Preset.IR_OPTIMIZE_EVM_ONLY.value: (True, True, False),
    Preset.LEGACY_OPTIMIZE_EVM_YUL.value: (False, True, True),
    Preset.IR_OPTIMIZE_EVM_YUL.value: (True, True, True),
}


def _js_bool(value: bool) -> str:
    return "true" if value else "false"


def _lookup(preset: str) -> tuple:
    entry = _PRESET_MATRIX.get(preset)
    if entry is None:
        fail(f"Unknown settings preset: '{preset}'.")
    return entry


def settings_from_preset(preset: str, evm_version: str = CURRENT_EVM_VERSION) -> str:
    """Render the compiler settings of *preset* as a JS object literal."""
    via_ir, optimize, yul = _lookup(preset)

    if optimize:
        optimizer = f"{{enabled: true, details: {{yul: {_js_bool(yul)}}}}}"
    else:
        optimizer = "{enabled: false}"

    return (
        f"{{evmVersion: '{evm_version}', viaIR: {_js_bool(via_ir)}, "
        f"optimizer: {optimizer}}}"
    )


def preset_settings(preset: str, evm_version: str = CURRENT_EVM_VERSION) -> dict:
    """Same settings as :func:`settings_from_preset`, as a plain dict."""
    via_ir, optimize, yul = _lookup(preset)

    optimizer: dict = {"enabled": optimize}
    if optimize:
        optimizer["details"] = {"yul": yul}

    return {
        "evmVersion": evm_version,
        "viaIR": via_ir,
        "optimizer": optimizer,
    }


def parse_presets(selected: Optional[Union[str, Iterable[str]]]) -> List[str]:
    """Split a whitespace-separated preset selection into a list.

    Order is preserved; duplicates are dropped.
    """
    if selected is None:
        return []
    if isinstance(selected, str):
        items = selected.split()
    else:
        items = [s for item in selected for s in str(item).split()]

    seen = set()
    result: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
