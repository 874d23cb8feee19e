"""
Antelope (EOSIO) binary encoding, just enough to pack actions and transactions.

Action data is encoded from the contract ABI as returned by ``get_abi``:
typedefs are resolved, structs are written base first, ``[]`` marks a vector,
``?`` an optional and ``$`` a binary extension.
"""

import struct
from datetime import datetime, timezone

from hexbytes import HexBytes

from goldmand.errors import SerializationError

NAME_CHARS = ".12345abcdefghijklmnopqrstuvwxyz"


# ======================== Primitives ========================
def char_to_symbol(c):
    if "a" <= c <= "z":
        return ord(c) - ord("a") + 6
    if "1" <= c <= "5":
        return ord(c) - ord("1") + 1
    return 0


def name_to_int(name):
    if len(name) > 13 or any(c not in NAME_CHARS for c in name):
        raise SerializationError(f"invalid name: {name!r}")
    if len(name) == 13 and name[12] not in NAME_CHARS[:16]:
        raise SerializationError(f"invalid 13th character in name: {name!r}")

    value = 0
    for i in range(13):
        c = char_to_symbol(name[i]) if i < len(name) else 0
        if i < 12:
            value |= (c & 0x1F) << (64 - 5 * (i + 1))
        else:
            value |= c & 0x0F
    return value


def time_point_sec(value):
    """Seconds since epoch of a chain timestamp ("2021-06-01T12:00:00.500", always UTC)"""
    if isinstance(value, (int, float)):
        return int(value)
    dt = datetime.fromisoformat(value.rstrip("Z")).replace(tzinfo=timezone.utc)
    millis = round(dt.timestamp() * 1000)
    # same rounding as the reference JS client
    return (millis + 500) // 1000


def parse_symbol(value):
    precision, _, code = value.partition(",")
    if not code:
        raise SerializationError(f"invalid symbol: {value!r}")
    return int(precision), code


def parse_asset(value):
    amount, _, code = value.strip().partition(" ")
    if not code:
        raise SerializationError(f"invalid asset: {value!r}")
    negative = amount.startswith("-")
    whole, _, frac = amount.lstrip("-").partition(".")
    precision = len(frac)
    units = int((whole or "0") + frac)
    return -units if negative else units, precision, code


class ByteWriter:
    def __init__(self):
        self.buf = bytearray()

    def getvalue(self):
        return bytes(self.buf)

    def raw(self, data):
        self.buf += data

    def _pack(self, fmt, value):
        try:
            self.buf += struct.pack(fmt, value)
        except struct.error as e:
            raise SerializationError(f"cannot pack {value!r}: {e}")

    def bool(self, value):
        self.uint8(1 if value else 0)

    def int8(self, value):
        self._pack("<b", int(value))

    def uint8(self, value):
        self._pack("<B", int(value))

    def int16(self, value):
        self._pack("<h", int(value))

    def uint16(self, value):
        self._pack("<H", int(value))

    def int32(self, value):
        self._pack("<i", int(value))

    def uint32(self, value):
        self._pack("<I", int(value))

    def int64(self, value):
        self._pack("<q", int(value))

    def uint64(self, value):
        self._pack("<Q", int(value))

    def float32(self, value):
        self._pack("<f", float(value))

    def float64(self, value):
        self._pack("<d", float(value))

    def varuint32(self, value):
        value = int(value)
        if value < 0 or value > 0xFFFFFFFF:
            raise SerializationError(f"varuint32 out of range: {value}")
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self.buf.append(byte | 0x80)
            else:
                self.buf.append(byte)
                break

    def bytes(self, value):
        data = bytes(HexBytes(value)) if isinstance(value, str) else bytes(value)
        self.varuint32(len(data))
        self.raw(data)

    def string(self, value):
        data = str(value).encode("utf-8")
        self.varuint32(len(data))
        self.raw(data)

    def name(self, value):
        self.uint64(name_to_int(value))

    def time_point_sec(self, value):
        self.uint32(time_point_sec(value))

    def time_point(self, value):
        if isinstance(value, str):
            dt = datetime.fromisoformat(value.rstrip("Z")).replace(tzinfo=timezone.utc)
            value = round(dt.timestamp() * 1_000_000)
        self.uint64(value)

    def symbol_code(self, code):
        data = code.encode("ascii")
        if len(data) > 7:
            raise SerializationError(f"symbol code too long: {code!r}")
        self.raw(data.ljust(8, b"\0"))

    def symbol(self, value):
        precision, code = parse_symbol(value)
        data = code.encode("ascii")
        if len(data) > 7:
            raise SerializationError(f"symbol code too long: {code!r}")
        self.uint8(precision)
        self.raw(data.ljust(7, b"\0"))

    def asset(self, value):
        units, precision, code = parse_asset(value)
        self.int64(units)
        self.symbol(f"{precision},{code}")

    def checksum256(self, value):
        data = bytes(HexBytes(value))
        if len(data) != 32:
            raise SerializationError("checksum256 must be 32 bytes")
        self.raw(data)


BUILTINS = {
    "bool": ByteWriter.bool,
    "int8": ByteWriter.int8,
    "uint8": ByteWriter.uint8,
    "int16": ByteWriter.int16,
    "uint16": ByteWriter.uint16,
    "int32": ByteWriter.int32,
    "uint32": ByteWriter.uint32,
    "int64": ByteWriter.int64,
    "uint64": ByteWriter.uint64,
    "float32": ByteWriter.float32,
    "float64": ByteWriter.float64,
    "varuint32": ByteWriter.varuint32,
    "bytes": ByteWriter.bytes,
    "string": ByteWriter.string,
    "name": ByteWriter.name,
    "account_name": ByteWriter.name,
    "time_point_sec": ByteWriter.time_point_sec,
    "time_point": ByteWriter.time_point,
    "symbol": ByteWriter.symbol,
    "symbol_code": ByteWriter.symbol_code,
    "asset": ByteWriter.asset,
    "checksum256": ByteWriter.checksum256,
}


# ======================== ABI driven encoding ========================
class AbiSerializer:
    def __init__(self, abi):
        self.typedefs = {t["new_type_name"]: t["type"] for t in abi.get("types", [])}
        self.structs = {s["name"]: s for s in abi.get("structs", [])}
        self.actions = {a["name"]: a["type"] for a in abi.get("actions", [])}

    def resolve(self, type_name):
        seen = set()
        while type_name in self.typedefs:
            if type_name in seen:
                raise SerializationError(f"typedef loop on {type_name}")
            seen.add(type_name)
            type_name = self.typedefs[type_name]
        return type_name

    def serialize_action_data(self, action, data):
        if action not in self.actions:
            raise SerializationError(f"action {action!r} not found in abi")
        w = ByteWriter()
        self.write(w, self.actions[action], data)
        return w.getvalue()

    def write(self, w, type_name, value):
        if type_name.endswith("$"):
            if value is not None:
                self.write(w, type_name[:-1], value)
            return
        if type_name.endswith("?"):
            w.bool(value is not None)
            if value is not None:
                self.write(w, type_name[:-1], value)
            return
        if type_name.endswith("[]"):
            w.varuint32(len(value))
            for item in value:
                self.write(w, type_name[:-2], item)
            return

        resolved = self.resolve(type_name)
        if resolved != type_name:
            return self.write(w, resolved, value)
        if type_name in BUILTINS:
            return BUILTINS[type_name](w, value)
        if type_name in self.structs:
            return self.write_struct(w, self.structs[type_name], value)
        raise SerializationError(f"unknown type {type_name!r}")

    def write_struct(self, w, struct_def, value):
        if struct_def.get("base"):
            self.write(w, struct_def["base"], value)
        for field in struct_def.get("fields", []):
            field_type = field["type"]
            if field["name"] not in value:
                if field_type.endswith("$"):
                    continue
                raise SerializationError(
                    f"missing field {field['name']!r} for {struct_def['name']}"
                )
            self.write(w, field_type, value[field["name"]])


# ======================== Transactions ========================
def write_action(w, action):
    """``action['data']`` must already be packed (bytes or hex)"""
    w.name(action["account"])
    w.name(action["name"])
    w.varuint32(len(action["authorization"]))
    for auth in action["authorization"]:
        w.name(auth["actor"])
        w.name(auth["permission"])
    w.bytes(action["data"])


def serialize_transaction(trx):
    w = ByteWriter()
    w.time_point_sec(trx["expiration"])
    w.uint16(trx["ref_block_num"])
    w.uint32(trx["ref_block_prefix"])
    w.varuint32(trx.get("max_net_usage_words", 0))
    w.uint8(trx.get("max_cpu_usage_ms", 0))
    w.varuint32(trx.get("delay_sec", 0))
    for key in ("context_free_actions", "actions"):
        actions = trx.get(key, [])
        w.varuint32(len(actions))
        for action in actions:
            write_action(w, action)
    # transaction_extensions
    w.varuint32(0)
    return w.getvalue()
