# === SECTION: InputConvert [id: InputConvert]===
from __future__ import annotations

from typing import Any, Optional, Type, TypeVar
import sympy as sp

T = TypeVar("T", int, float)

# Names available to expression strings in settings files.
_SETTINGS_NAMESPACE = {"log10": lambda v: sp.log(v, 10)}


def InputConvert(obj: Any, dest_type: Type[T] = float, truncate: bool = True) -> T:
    """
    Read a numeric settings value as `dest_type` (``float`` or ``int``).

    Curtain settings files are written by several frontends, so numeric
    fields arrive as JSON numbers, numeric strings (``"1.5"``), or small
    expressions (``"-log10(0.05)"`` for a cutoff drawn on the -log10 axis).
    Strings are tried with ``float`` first and handed to SymPy only when
    that fails.

    With ``dest_type=int`` a fractional value is truncated toward zero,
    unless ``truncate=False``, in which case it is rejected.

    Raises
    ------
    NotImplementedError
        For a `dest_type` other than ``float`` or ``int``.
    ValueError
        For booleans, empty strings, unparsable or non-real expressions,
        and (with ``truncate=False``) fractional values read as ``int``.
    """
    if dest_type is not float and dest_type is not int:
        raise NotImplementedError(
            f"InputConvert reads float or int settings values, not {dest_type!r}."
        )
    name = dest_type.__name__

    if isinstance(obj, bool):
        raise ValueError(f"Could not convert boolean {obj!r} to {name}.")

    if isinstance(obj, str):
        text = obj.strip()
        if not text:
            raise ValueError(f"Cannot convert empty string to {name}.")
        try:
            value = float(text)
        except ValueError:
            value = _evaluate(text, name)
    else:
        try:
            value = float(obj)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Could not convert {obj!r} to {name}.") from e

    if dest_type is float:
        return value  # type: ignore[return-value]
    if not truncate and not value.is_integer():
        raise ValueError(f"Could not convert {obj!r} to int: value is not an exact integer.")
    return int(value)  # type: ignore[return-value]


def _evaluate(text: str, name: str) -> float:
    try:
        result = complex(sp.sympify(text, locals=_SETTINGS_NAMESPACE).evalf())
    except Exception as e:
        raise ValueError(f"Could not convert {text!r} to {name} (neither directly nor via SymPy).") from e
    if result.imag != 0:
        raise ValueError(f"Could not convert non-real {text!r} to {name}.")
    return result.real


def OptionalConvert(obj: Any, dest_type: Type[T] = float) -> Optional[T]:
    """Like :func:`InputConvert`, but ``None`` passes through unchanged."""
    if obj is None:
        return None
    return InputConvert(obj, dest_type)

# === END OF SECTION: InputConvert [id: InputConvert]===
