"""Turn a trade CSV file into the binary data, index, metadata and hash files."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from .records import (
    DATA_FILE,
    HASHTABLE_FILE,
    METADATA_FILE,
    RECORD_SIZE,
    SLOT_INDEX_FILE,
    BlockIndex,
    Metadata,
    Record,
    _HASH_ENTRY,
    make_key,
)

BLOCK_SIZE = 5000

logger = logging.getLogger(__name__)

_WHITESPACE = b" \t\n\v\f\r"


class ParseError(ValueError):
    """Raised when CSV input does not hold what a record needs."""


class _Scanner:
    """Reads fields the way the fixed CSV line format prescribes."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def text(self, width: int) -> str:
        start = self.pos
        end = self.data.find(b",", start)
        if end < 0:
            end = len(self.data)
        end = min(end, start + width)
        if end == start:
            raise ParseError(f"empty text field at byte {start}")
        self.pos = end
        return self.data[start:end].decode("utf-8", errors="replace")

    def comma(self) -> None:
        if self.data[self.pos:self.pos + 1] != b",":
            raise ParseError(f"expected ',' at byte {self.pos}")
        self.pos += 1

    def unsigned(self, bits: int) -> int:
        data = self.data
        while self.pos < len(data) and data[self.pos] in _WHITESPACE:
            self.pos += 1
        negative = False
        sign = data[self.pos:self.pos + 1]
        if sign in (b"+", b"-"):
            negative = sign == b"-"
            self.pos += 1
        start = self.pos
        while self.pos < len(data) and 0x30 <= data[self.pos] <= 0x39:
            self.pos += 1
        if self.pos == start:
            raise ParseError(f"expected a number at byte {start}")
        value = int(data[start:self.pos])
        limit = 1 << bits
        if value >= limit:
            raise ParseError(f"number at byte {start} does not fit in {bits} bits")
        return (-value) % limit if negative else value


def parse_line(line: Union[str, bytes]) -> Record:
    """Parse one CSV data line into a record; extra trailing columns are ignored."""
    data = line.encode("utf-8") if isinstance(line, str) else bytes(line)
    scan = _Scanner(data)

    def text_then_comma(width: int) -> str:
        value = scan.text(width)
        scan.comma()
        return value

    def number_then_comma(bits: int) -> int:
        value = scan.unsigned(bits)
        scan.comma()
        return value

    block_time = text_then_comma(19)
    slot = number_then_comma(32)
    tx_idx = number_then_comma(32)
    wallet = text_then_comma(49)
    direction = text_then_comma(4)
    base_coin = text_then_comma(99)
    amounts = [number_then_comma(64) for _ in range(4)]
    signature = text_then_comma(99)
    gas = [number_then_comma(64) for _ in range(3)]
    gas.append(scan.unsigned(64))
    return Record(block_time, slot, tx_idx, wallet, direction, base_coin,
                  *amounts, signature, *gas)


class _BlockBuilder:
    """Groups consecutive records into blocks of BLOCK_SIZE and tracks their slot range."""

    def __init__(self) -> None:
        self.blocks: List[BlockIndex] = []
        self._count = 0
        self._min = 0
        self._max = 0
        self._offset = 0

    def add(self, slot: int, offset: int) -> None:
        if self._count == 0:
            self._min = self._max = slot
            self._offset = offset
            self._count = 1
            return
        self._min = min(self._min, slot)
        self._max = max(self._max, slot)
        self._count += 1
        if self._count >= BLOCK_SIZE:
            self._emit()

    def _emit(self) -> None:
        self.blocks.append(BlockIndex(self._min, self._max, self._offset))
        self._count = 0

    def finish(self) -> List[BlockIndex]:
        if self._count:
            self._emit()
        return self.blocks


def build_block_index(records: Iterable[Record]) -> List[BlockIndex]:
    """Block index for records laid out one after another in the data file."""
    builder = _BlockBuilder()
    for position, record in enumerate(records):
        builder.add(record.slot, position * RECORD_SIZE)
    return builder.finish()


def preprocess(csv_path: Union[str, Path], output_dir: Union[str, Path] = ".") -> Metadata:
    """Write the data, slot index, metadata and hash files for a CSV into output_dir."""
    out = Path(output_dir)
    blocks = _BlockBuilder()
    hash_entries: List[Tuple[int, int]] = []
    count = 0

    with open(csv_path, "rb") as csv_file:
        if not csv_file.readline():
            raise ParseError(f"{csv_path}: missing header line")
        with open(out / DATA_FILE, "wb") as data_file:
            for line in csv_file:
                try:
                    record = parse_line(line)
                except ParseError:
                    logger.warning("Error parsing line: %s",
                                   line.decode("utf-8", errors="replace").rstrip("\n"))
                    continue
                offset = count * RECORD_SIZE
                data_file.write(record.pack())
                hash_entries.append((make_key(record.slot, record.tx_idx), offset))
                blocks.add(record.slot, offset)
                count += 1

    block_list = blocks.finish()
    with open(out / SLOT_INDEX_FILE, "wb") as slot_file:
        slot_file.write(b"".join(block.pack() for block in block_list))

    meta = Metadata(record_count=count, block_count=len(block_list))
    (out / METADATA_FILE).write_bytes(meta.pack())

    hash_entries.sort(key=lambda entry: entry[0])
    (out / HASHTABLE_FILE).write_bytes(
        b"".join(_HASH_ENTRY.pack(key, offset) for key, offset in hash_entries)
    )
    return meta


def main(argv=None) -> int:
    """Command entry point: preprocess <input_csv>."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: preprocess <input_csv>")
        return 1
    logging.basicConfig(level=logging.WARNING, format="%(message)s")
    try:
        meta = preprocess(args[0], ".")
    except ParseError as exc:
        print(f"Error leyendo encabezado: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error opening files: {exc}", file=sys.stderr)
        return 1
    print(f"Preprocesamiento completado. Registros: {meta.record_count}, "
          f"Bloques: {meta.block_count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())