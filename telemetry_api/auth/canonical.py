"""Serialización canónica del payload compacto del sobre {p, d, s}.

El firmware firma `JSON.stringify(p)`. Para verificar hay que reproducir esos
bytes exactamente:
- separadores "," y ":" sin espacios
- claves en el orden recibido
- sin escapar caracteres no ASCII (salvo surrogates sueltos, como JS)
- floats enteros sin parte decimal (25.0 -> "25")

Para el formato plano NO se usa este módulo: se firma el body crudo.
"""

from __future__ import annotations

import json
import math
import re
from decimal import Decimal
from typing import Any


_LONE_SURROGATE = re.compile(r"[\ud800-\udfff]")


def _number(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        # JSON.stringify(NaN) === "null"
        return "null"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if 1e-6 <= abs(value) < 1e21:
        # JS usa notación posicional en este rango (0.00001, no 1e-05)
        return format(Decimal(text), "f")
    # 1e-07 -> 1e-7, 1e+21 -> 1e+21 (formato de JS)
    mantissa, _, exp = text.partition("e")
    sign = "-" if exp.startswith("-") else "+"
    return f"{mantissa}e{sign}{int(exp.lstrip('+-'))}"


def _string(value: str) -> str:
    # Un par válido ya llega combinado en un solo carácter: lo que queda es un
    # surrogate suelto, que JSON.stringify escribe como \udXXX
    text = json.dumps(value, ensure_ascii=False)
    return _LONE_SURROGATE.sub(lambda m: "\\u%04x" % ord(m.group()), text)


def canonical_json(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _number(value)
    if isinstance(value, str):
        return _string(value)
    if isinstance(value, dict):
        items = (
            f"{_string(str(k))}:{canonical_json(v)}"
            for k, v in value.items()
        )
        return "{" + ",".join(items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonical_json(v) for v in value) + "]"
    raise TypeError(f"Unsupported type for canonical JSON: {type(value).__name__}")


def canonical_bytes(value: Any) -> bytes:
    return canonical_json(value).encode("utf-8")
