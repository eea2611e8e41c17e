"""Binary record layouts and key helpers shared by every part of the search system."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

DATA_FILE = "data.bin"
SLOT_INDEX_FILE = "slot_index.bin"
METADATA_FILE = "metadata.bin"
HASHTABLE_FILE = "hashtable.bin"
REQUEST_PIPE = "/tmp/search_request"
RESPONSE_PIPE_TEMPLATE = "/tmp/search_response_{}"
HASH_SIZE = 1000003

_UINT32_LIMIT = 1 << 32

# Layout of one record on disk, including the alignment padding of the native struct.
_RECORD = struct.Struct("<20sII50s5s100sx4Q100s4x4Q")
_METADATA = struct.Struct("<IIQ")
_BLOCK_INDEX = struct.Struct("<IIq")
_REQUEST = struct.Struct("<iii52s52s")
_HASH_ENTRY = struct.Struct("<Qq")

RECORD_SIZE = _RECORD.size
METADATA_SIZE = _METADATA.size
BLOCK_INDEX_SIZE = _BLOCK_INDEX.size
REQUEST_SIZE = _REQUEST.size
HASH_ENTRY_SIZE = _HASH_ENTRY.size


class SearchType(IntEnum):
    """Criteria a search request can filter on."""

    SLOT = 1
    TX_IDX = 2
    DIRECTION = 3
    WALLET = 4
    ROW = 5


_NUMERIC_TYPES = frozenset({SearchType.SLOT, SearchType.TX_IDX, SearchType.ROW})
_TEXT_LIMITS = {SearchType.DIRECTION: 5, SearchType.WALLET: 50}

Param = Union[int, str, None]


def _cstr(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


def _text_field(text: str, size: int, name: str) -> bytes:
    data = text.encode("utf-8")
    if len(data) >= size:
        raise ValueError(f"{name} must be shorter than {size} bytes")
    return data


def _check_length(data: bytes, size: int, what: str) -> bytes:
    data = bytes(data)
    if len(data) != size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")
    return data


@dataclass
class Record:
    """One trade as stored in the data file."""

    block_time: str
    slot: int
    tx_idx: int
    signing_wallet: str
    direction: str
    base_coin: str
    base_coin_amount: int
    quote_coin_amount: int
    virtual_token_balance_after: int
    virtual_sol_balance_after: int
    signature: str
    provided_gas_fee: int
    provided_gas_limit: int
    fee: int
    consumed_gas: int

    def pack(self) -> bytes:
        """Encode the record in its fixed-size binary form."""
        try:
            return _RECORD.pack(
                _text_field(self.block_time, 20, "block_time"),
                self.slot,
                self.tx_idx,
                _text_field(self.signing_wallet, 50, "signing_wallet"),
                _text_field(self.direction, 5, "direction"),
                _text_field(self.base_coin, 100, "base_coin"),
                self.base_coin_amount,
                self.quote_coin_amount,
                self.virtual_token_balance_after,
                self.virtual_sol_balance_after,
                _text_field(self.signature, 100, "signature"),
                self.provided_gas_fee,
                self.provided_gas_limit,
                self.fee,
                self.consumed_gas,
            )
        except struct.error as exc:
            raise ValueError(f"record does not fit its binary layout: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "Record":
        """Decode a record from its fixed-size binary form."""
        fields = _RECORD.unpack(_check_length(data, RECORD_SIZE, "record"))
        return cls(
            _cstr(fields[0]),
            fields[1],
            fields[2],
            _cstr(fields[3]),
            _cstr(fields[4]),
            _cstr(fields[5]),
            fields[6],
            fields[7],
            fields[8],
            fields[9],
            _cstr(fields[10]),
            fields[11],
            fields[12],
            fields[13],
            fields[14],
        )


@dataclass
class Metadata:
    """Counts describing the data and slot index files."""

    record_count: int
    block_count: int
    record_size: int = RECORD_SIZE

    def pack(self) -> bytes:
        try:
            return _METADATA.pack(self.record_count, self.block_count, self.record_size)
        except struct.error as exc:
            raise ValueError(f"metadata does not fit its binary layout: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "Metadata":
        return cls(*_METADATA.unpack(_check_length(data, METADATA_SIZE, "metadata")))


@dataclass
class BlockIndex:
    """Slot range covered by one block of records and where the block starts."""

    min_slot: int
    max_slot: int
    offset: int

    def pack(self) -> bytes:
        try:
            return _BLOCK_INDEX.pack(self.min_slot, self.max_slot, self.offset)
        except struct.error as exc:
            raise ValueError(f"block index does not fit its binary layout: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "BlockIndex":
        return cls(*_BLOCK_INDEX.unpack(_check_length(data, BLOCK_INDEX_SIZE, "block index")))


def _search_type(value: int) -> Optional[SearchType]:
    if value == 0:
        return None
    try:
        return SearchType(value)
    except ValueError:
        raise ValueError(f"unknown search type {value}") from None


def _pack_param(search_type: Optional[SearchType], value: Param) -> bytes:
    if search_type is None:
        return b""
    if search_type in _NUMERIC_TYPES:
        if not isinstance(value, int) or not 0 <= value < _UINT32_LIMIT:
            raise ValueError(f"{search_type.name.lower()} needs an unsigned 32-bit integer")
        return struct.pack("<I", value)
    if not isinstance(value, str):
        raise ValueError(f"{search_type.name.lower()} needs a string")
    return _text_field(value, _TEXT_LIMITS[search_type], search_type.name.lower())


def _unpack_param(search_type: Optional[SearchType], raw: bytes) -> Param:
    if search_type is None:
        return None
    if search_type in _NUMERIC_TYPES:
        return struct.unpack_from("<I", raw)[0]
    return _cstr(raw[: _TEXT_LIMITS[search_type]])


@dataclass
class SearchRequest:
    """A search with up to two criteria, sent from a client to the server."""

    client_pid: int = 0
    type1: Optional[SearchType] = None
    type2: Optional[SearchType] = None
    param1: Param = None
    param2: Param = None

    def pack(self) -> bytes:
        try:
            return _REQUEST.pack(
                self.client_pid,
                int(self.type1 or 0),
                int(self.type2 or 0),
                _pack_param(self.type1, self.param1),
                _pack_param(self.type2, self.param2),
            )
        except struct.error as exc:
            raise ValueError(f"request does not fit its binary layout: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "SearchRequest":
        pid, raw_type1, raw_type2, raw1, raw2 = _REQUEST.unpack(
            _check_length(data, REQUEST_SIZE, "search request")
        )
        type1 = _search_type(raw_type1)
        type2 = _search_type(raw_type2)
        return cls(pid, type1, type2, _unpack_param(type1, raw1), _unpack_param(type2, raw2))


def make_key(slot: int, tx_idx: int) -> int:
    """Combine a slot and a transaction index into one 64-bit key."""
    if not 0 <= slot < _UINT32_LIMIT or not 0 <= tx_idx < _UINT32_LIMIT:
        raise ValueError("slot and tx_idx must be unsigned 32-bit integers")
    return (slot << 32) | tx_idx


def hash_function(key: int) -> int:
    """Bucket number of a key in a table of HASH_SIZE buckets."""
    return key % HASH_SIZE


def response_pipe_path(client_pid: int) -> str:
    """Path of the pipe on which a client receives its results."""
    return RESPONSE_PIPE_TEMPLATE.format(client_pid)