"""
Contract ABI model & argument validation.

This module defines:
- Dataclass shapes for the TVM ABI JSON document (functions and parameters)
- A loader/validator for ABI documents (dict, JSON text, or file path)
- Structural checking of call arguments against a function's declared inputs,
  done at message-build time so malformed calls never reach the network
- Decoding of a function's declared outputs into Python values

The raw document is kept untouched in `ContractAbi.document`; the network
client encodes messages from it. Validation here is structural and
type-string aware; wire encoding is not done in this package.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from .errors import ConfigError, DecodeError, EncodingError

# --- Type-string parsing -----------------------------------------------------

_INT_RE = re.compile(r"^(u?int)(\d+)$")
_VARINT_RE = re.compile(r"^var(u?int)(\d+)$")
_FIXED_BYTES_RE = re.compile(r"^fixedbytes(\d+)$")
_ARRAY_RE = re.compile(r"^(.*)\[(\d*)\]$")
_WRAPPER_RE = re.compile(r"^(optional|ref)\((.*)\)$")
_MAP_RE = re.compile(r"^map\((.*)\)$")
_ADDRESS_RE = re.compile(r"^-?\d+:[0-9a-fA-F]{64}$")
_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]*$")

_SCALARS = {"bool", "address", "address_std", "string", "bytes", "cell", "token"}


def _split_map_args(inner: str) -> Tuple[str, str]:
    depth = 0
    for i, ch in enumerate(inner):
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == "," and depth == 0:
            return inner[:i].strip(), inner[i + 1 :].strip()
    raise ConfigError(f"malformed map type: map({inner})")


def is_integer_type(type_str: str) -> bool:
    t = type_str.strip()
    return bool(_INT_RE.match(t) or _VARINT_RE.match(t) or t == "token")


def _int_bounds(type_str: str) -> Optional[Tuple[int, int]]:
    m = _INT_RE.match(type_str)
    if not m:
        return None
    kind, bits = m.group(1), int(m.group(2))
    if kind == "uint":
        return 0, (1 << bits) - 1
    return -(1 << (bits - 1)), (1 << (bits - 1)) - 1


# --- ABI shapes --------------------------------------------------------------


@dataclass(frozen=True)
class AbiParam:
    name: str
    type: str
    components: Tuple["AbiParam", ...] = ()

    @staticmethod
    def from_dict(p: Any, ctx: str) -> "AbiParam":
        if not isinstance(p, Mapping):
            raise ConfigError(f"{ctx}: parameter must be an object")
        name, typ = p.get("name"), p.get("type")
        if not isinstance(name, str):
            raise ConfigError(f"{ctx}: param.name must be string")
        if not isinstance(typ, str) or not typ.strip():
            raise ConfigError(f"{ctx}: param.type must be non-empty string")
        comps = p.get("components") or []
        if not isinstance(comps, list):
            raise ConfigError(f"{ctx}: param.components must be a list")
        return AbiParam(
            name=name,
            type=re.sub(r"\s+", "", typ),
            components=tuple(AbiParam.from_dict(c, f"{ctx}.{name}") for c in comps),
        )


@dataclass(frozen=True)
class AbiFunction:
    name: str
    inputs: Tuple[AbiParam, ...] = ()
    outputs: Tuple[AbiParam, ...] = ()


# --- Argument validation -----------------------------------------------------


def _fail(fn: str, param: str, msg: str) -> EncodingError:
    return EncodingError(msg, function=fn, parameter=param)


def _check_int(fn: str, path: str, typ: str, value: Any) -> int:
    if isinstance(value, bool):
        raise _fail(fn, path, f"expected integer for {typ}, got bool")
    if isinstance(value, int):
        n = value
    elif isinstance(value, str):
        s = value.strip()
        try:
            n = int(s, 16) if s.lower().startswith(("0x", "-0x")) else int(s, 10)
        except ValueError:
            raise _fail(fn, path, f"expected integer for {typ}, got {value!r}") from None
    else:
        raise _fail(fn, path, f"expected integer for {typ}, got {type(value).__name__}")
    bounds = _int_bounds(typ)
    if bounds is not None and not (bounds[0] <= n <= bounds[1]):
        raise _fail(fn, path, f"value {n} out of range for {typ}")
    if bounds is None and n < 0 and (typ.startswith("varuint") or typ == "token"):
        raise _fail(fn, path, f"value {n} out of range for {typ}")
    return n


def check_value(fn: str, path: str, typ: str, value: Any, components: Sequence[AbiParam] = ()) -> Any:
    """
    Validate `value` against ABI type `typ`; return the normalized value
    (numeric strings become ints, containers are rebuilt).
    Unknown type strings are passed through untouched.
    """
    m = _ARRAY_RE.match(typ)
    if m:
        if not isinstance(value, (list, tuple)):
            raise _fail(fn, path, f"expected list for {typ}")
        if m.group(2) and len(value) != int(m.group(2)):
            raise _fail(fn, path, f"expected {m.group(2)} items for {typ}, got {len(value)}")
        return [check_value(fn, f"{path}[{i}]", m.group(1), v, components) for i, v in enumerate(value)]

    m = _WRAPPER_RE.match(typ)
    if m:
        if m.group(1) == "optional" and value is None:
            return None
        return check_value(fn, path, m.group(2), value, components)

    m = _MAP_RE.match(typ)
    if m:
        if not isinstance(value, Mapping):
            raise _fail(fn, path, f"expected mapping for {typ}")
        _key_t, val_t = _split_map_args(m.group(1))
        return {str(k): check_value(fn, f"{path}.{k}", val_t, v, components) for k, v in value.items()}

    if typ == "tuple":
        if not isinstance(value, Mapping):
            raise _fail(fn, path, "expected mapping for tuple")
        return check_args(fn, components, value, prefix=f"{path}.")

    if is_integer_type(typ):
        return _check_int(fn, path, typ, value)
    if typ == "bool":
        if not isinstance(value, bool):
            raise _fail(fn, path, f"expected bool, got {type(value).__name__}")
        return value
    if typ in ("address", "address_std"):
        if not isinstance(value, str) or not _ADDRESS_RE.match(value.strip()):
            raise _fail(fn, path, f"expected address '<wc>:<64 hex>', got {value!r}")
        return value.strip()
    if typ == "string":
        if not isinstance(value, str):
            raise _fail(fn, path, f"expected string, got {type(value).__name__}")
        return value
    if typ == "bytes" or _FIXED_BYTES_RE.match(typ):
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).hex()
        if not isinstance(value, str) or not _HEX_RE.match(value):
            raise _fail(fn, path, f"expected hex string for {typ}")
        return value[2:] if value.startswith("0x") else value
    if typ == "cell":
        if not isinstance(value, str):
            raise _fail(fn, path, "expected base64 BOC string for cell")
        return value
    return value


def check_args(
    fn: str,
    params: Sequence[AbiParam],
    args: Optional[Mapping[str, Any]],
    *,
    prefix: str = "",
) -> Dict[str, Any]:
    """
    Check a name->value mapping against declared parameters: every declared
    parameter present, nothing undeclared, each value of the declared type.
    """
    if args is None:
        args = {}
    if not isinstance(args, Mapping):
        raise EncodingError("arguments must be a mapping of name -> value", function=fn)
    declared = {p.name for p in params}
    extra = sorted(set(args) - declared)
    if extra:
        raise _fail(fn, prefix + extra[0], f"unexpected argument(s): {', '.join(extra)}")
    out: Dict[str, Any] = {}
    for p in params:
        if p.name not in args:
            raise _fail(fn, prefix + p.name, f"missing argument {p.name!r} ({p.type})")
        out[p.name] = check_value(fn, prefix + p.name, p.type, args[p.name], p.components)
    return out


# --- Output decoding ---------------------------------------------------------


def _decode_value(typ: str, value: Any, components: Sequence[AbiParam]) -> Any:
    m = _ARRAY_RE.match(typ)
    if m and isinstance(value, list):
        return [_decode_value(m.group(1), v, components) for v in value]
    m = _WRAPPER_RE.match(typ)
    if m:
        return None if value is None else _decode_value(m.group(2), value, components)
    m = _MAP_RE.match(typ)
    if m and isinstance(value, Mapping):
        _k, val_t = _split_map_args(m.group(1))
        return {k: _decode_value(val_t, v, components) for k, v in value.items()}
    if typ == "tuple" and isinstance(value, Mapping):
        return {c.name: _decode_value(c.type, value.get(c.name), c.components) for c in components}
    if is_integer_type(typ) and isinstance(value, str):
        s = value.strip()
        return int(s, 16) if s.lower().startswith(("0x", "-0x")) else int(s, 10)
    return value


# --- Contract ABI ------------------------------------------------------------


@dataclass(frozen=True)
class ContractAbi:
    """
    Parsed interface description of one contract.

    `document` is the JSON document as loaded, handed to the network client as-is;
    `functions` indexes the callable functions by name.
    """

    name: str
    document: Dict[str, Any] = field(repr=False)
    functions: Dict[str, AbiFunction] = field(repr=False)
    header: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, doc: Mapping[str, Any], *, name: str = "contract") -> "ContractAbi":
        if not isinstance(doc, Mapping):
            raise ConfigError(f"ABI document for {name} must be a JSON object")
        fns_raw = doc.get("functions")
        if not isinstance(fns_raw, list):
            raise ConfigError(f"ABI document for {name} has no 'functions' list")
        functions: Dict[str, AbiFunction] = {}
        for i, f in enumerate(fns_raw):
            if not isinstance(f, Mapping) or not isinstance(f.get("name"), str) or not f["name"]:
                raise ConfigError(f"{name}: function entry #{i} must have a non-empty name")
            fname = f["name"]
            if fname in functions:
                raise ConfigError(f"{name}: duplicate function {fname!r}")
            ins, outs = f.get("inputs", []), f.get("outputs", [])
            if not isinstance(ins, list) or not isinstance(outs, list):
                raise ConfigError(f"{name}: function {fname!r} inputs/outputs must be lists")
            functions[fname] = AbiFunction(
                name=fname,
                inputs=tuple(AbiParam.from_dict(p, f"{fname} input") for p in ins),
                outputs=tuple(AbiParam.from_dict(p, f"{fname} output") for p in outs),
            )
        header = doc.get("header") or []
        return cls(name=name, document=dict(doc), functions=functions, header=tuple(str(h) for h in header))

    @classmethod
    def from_json(cls, text: str, *, name: str = "contract") -> "ContractAbi":
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"ABI document for {name} is not valid JSON: {e}") from e
        return cls.from_dict(doc, name=name)

    @classmethod
    def from_path(cls, path: Union[str, Path], *, name: Optional[str] = None) -> "ContractAbi":
        p = Path(path)
        try:
            text = p.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"cannot read ABI file: {e}", path=str(p)) from e
        return cls.from_json(text, name=name or p.name.split(".")[0])

    def to_json(self) -> str:
        return json.dumps(self.document, separators=(",", ":"))

    # ------------------------------------------------------------------ lookup

    def get_function(self, name: str) -> AbiFunction:
        try:
            return self.functions[name]
        except KeyError:
            raise EncodingError(f"function not declared in {self.name} ABI", function=name) from None

    def has_function(self, name: str) -> bool:
        return name in self.functions

    # ------------------------------------------------------------------ in/out

    def check_call(self, function: str, args: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Validate call arguments; returns the normalized input mapping."""
        return check_args(function, self.get_function(function).inputs, args)

    def decode_output(self, function: str, output: Any) -> Dict[str, Any]:
        """
        Decode the raw output mapping of `function` according to its declared
        outputs. Raises DecodeError when the output is absent or incomplete.
        """
        fn = self.functions.get(function)
        if fn is None:
            raise DecodeError(f"function not declared in {self.name} ABI", function=function)
        if not fn.outputs:
            return {}
        if not isinstance(output, Mapping):
            raise DecodeError("execution produced no decoded output", function=function, data=output)
        decoded: Dict[str, Any] = {}
        for p in fn.outputs:
            if p.name not in output:
                raise DecodeError(f"output field {p.name!r} missing", function=function, data=output)
            try:
                decoded[p.name] = _decode_value(p.type, output[p.name], p.components)
            except (TypeError, ValueError) as e:
                raise DecodeError(
                    f"output field {p.name!r} does not match {p.type}: {e}", function=function, data=output
                ) from e
        return decoded


__all__ = [
    "AbiParam",
    "AbiFunction",
    "ContractAbi",
    "check_args",
    "check_value",
    "is_integer_type",
]
