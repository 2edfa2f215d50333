"""
variables.py - Typed variable bindings and text substitution

Numscript text reaches the executor with two kinds of placeholders:
    {NAME}   - demo-configuration style
    $name    - Numscript style

Both are resolved from one flat map before parsing. Bound values are one
of three kinds:
    str       - rendered as-is (account addresses, references, ...)
    int       - rendered in base 10
    Monetary  - rendered as a bracketed literal "[USD/2 100]"

A mapping with "asset" and "amount" keys is accepted as a Monetary, which
is the shape monetary variables take in JSON demo configurations.
Unknown placeholders are left untouched.
"""

from __future__ import annotations
import re
from typing import Any, Dict, Mapping, Optional, Union

from .core import Monetary


VariableValue = Union[str, int, Monetary]
Bindings = Dict[str, VariableValue]

_BRACE_PLACEHOLDER = re.compile(r"\{(\w+)\}")
_DOLLAR_PLACEHOLDER = re.compile(r"\$(\w+)")


def bind_variable(name: str, value: Any) -> VariableValue:
    """
    Coerce a raw value into a typed binding.

    Raises:
        ValueError: If the value is not a str, int, Monetary or monetary mapping
    """
    if isinstance(value, Monetary):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Variable ${name}: booleans are not supported")
    if isinstance(value, (str, int)):
        return value
    if isinstance(value, Mapping) and 'asset' in value and 'amount' in value:
        return Monetary(asset=str(value['asset']), amount=int(value['amount']))
    raise ValueError(f"Variable ${name}: unsupported value {value!r}")


def bind_variables(variables: Optional[Mapping[str, Any]]) -> Bindings:
    """Coerce every entry of a raw variable map (None is an empty map)."""
    if not variables:
        return {}
    return {name: bind_variable(name, value) for name, value in variables.items()}


def render_variable(value: VariableValue) -> str:
    """Render a bound value the way it is spliced into script text."""
    # Monetary renders as its bracketed literal
    return str(value)


def substitute_variables(text: str, variables: Optional[Mapping[str, Any]]) -> str:
    """
    Replace {NAME} and $name placeholders with bound values.

    {NAME} placeholders are replaced first, then $name placeholders.
    Placeholders with no binding are left in the text.

    Example:
        substitute_variables("send [USD/2 {AMOUNT}] (", {"AMOUNT": 500})
        # -> "send [USD/2 500] ("
    """
    bindings = bind_variables(variables)
    if not bindings:
        return text

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in bindings:
            return match.group(0)
        return render_variable(bindings[name])

    result = _BRACE_PLACEHOLDER.sub(replace, text)
    return _DOLLAR_PLACEHOLDER.sub(replace, result)
