"""Search server answering requests against the preprocessed binary files."""

from __future__ import annotations

import logging
import os
import signal
import sys
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from .client import encode_response
from .records import (
    BLOCK_INDEX_SIZE,
    DATA_FILE,
    HASH_ENTRY_SIZE,
    HASHTABLE_FILE,
    METADATA_FILE,
    METADATA_SIZE,
    RECORD_SIZE,
    REQUEST_PIPE,
    REQUEST_SIZE,
    SLOT_INDEX_FILE,
    BlockIndex,
    Metadata,
    Record,
    SearchRequest,
    SearchType,
    _HASH_ENTRY,
    make_key,
    response_pipe_path,
)

logger = logging.getLogger(__name__)

# Number of records the scan reads from the start of each indexed block.
_SCAN_BLOCK_RECORDS = 1000


def matches_criteria(record: Record, request: SearchRequest) -> bool:
    """Whether a record satisfies every criterion of the request; row criteria always pass."""
    for search_type, value in ((request.type1, request.param1), (request.type2, request.param2)):
        if search_type == SearchType.SLOT and record.slot != value:
            return False
        if search_type == SearchType.TX_IDX and record.tx_idx != value:
            return False
        if search_type == SearchType.DIRECTION and record.direction != value:
            return False
        if search_type == SearchType.WALLET and record.signing_wallet != value:
            return False
    return True


def binary_search_offset(path: Union[str, Path], target_key: int) -> Optional[int]:
    """Data-file offset stored for a key in a sorted hash file, or None if absent."""
    with open(path, "rb") as table:
        entries = os.fstat(table.fileno()).st_size // HASH_ENTRY_SIZE
        left, right = 0, entries - 1
        while left <= right:
            mid = (left + right) // 2
            table.seek(mid * HASH_ENTRY_SIZE)
            key, offset = _HASH_ENTRY.unpack(table.read(HASH_ENTRY_SIZE))
            if key == target_key:
                return offset
            if key < target_key:
                left = mid + 1
            else:
                right = mid - 1
    return None


def _split_records(chunk: bytes) -> Iterator[Record]:
    view = memoryview(chunk)
    whole = len(chunk) - len(chunk) % RECORD_SIZE
    for start in range(0, whole, RECORD_SIZE):
        yield Record.unpack(view[start:start + RECORD_SIZE])


def _read_prefix(path: Path, size: int, what: str) -> bytes:
    with open(path, "rb") as stream:
        data = stream.read(size)
    if len(data) != size:
        raise ValueError(f"error reading {what}: expected {size} bytes, got {len(data)}")
    return data


class SearchServer:
    """Answers search requests from the data, index and hash files in one directory."""

    def __init__(self, directory: Union[str, Path] = ".", request_pipe: str = REQUEST_PIPE) -> None:
        self.directory = Path(directory)
        self.request_pipe = request_pipe
        self._owns_pipe = False
        self.meta = Metadata.unpack(
            _read_prefix(self.directory / METADATA_FILE, METADATA_SIZE, "metadata")
        )
        self._data = open(self.directory / DATA_FILE, "rb")
        try:
            raw = _read_prefix(
                self.directory / SLOT_INDEX_FILE,
                self.meta.block_count * BLOCK_INDEX_SIZE,
                "block index",
            )
        except (OSError, ValueError):
            self._data.close()
            raise
        self.blocks: List[BlockIndex] = [
            BlockIndex.unpack(raw[start:start + BLOCK_INDEX_SIZE])
            for start in range(0, len(raw), BLOCK_INDEX_SIZE)
        ]

    def _record_at(self, offset: int) -> List[Record]:
        self._data.seek(offset)
        raw = self._data.read(RECORD_SIZE)
        if len(raw) != RECORD_SIZE:
            return []
        return [Record.unpack(raw)]

    def _row(self, row: int) -> List[Record]:
        if not 1 <= row <= self.meta.record_count:
            return []
        return self._record_at((row - 1) * RECORD_SIZE)

    def _scan(self, request: SearchRequest) -> List[Record]:
        results: List[Record] = []
        last = self.meta.block_count - 1
        for number, block in enumerate(self.blocks):
            count = _SCAN_BLOCK_RECORDS
            if number == last:
                count = self.meta.record_count % _SCAN_BLOCK_RECORDS or _SCAN_BLOCK_RECORDS
            self._data.seek(block.offset)
            chunk = self._data.read(count * RECORD_SIZE)
            results.extend(r for r in _split_records(chunk) if matches_criteria(r, request))
        return results

    def search(self, request: SearchRequest) -> List[Record]:
        """Records matching the request, in data-file order."""
        if request.type1 == SearchType.ROW:
            return self._row(request.param1)
        if request.type2 == SearchType.ROW:
            return self._row(request.param2)
        if request.type1 == SearchType.SLOT and request.type2 == SearchType.TX_IDX:
            key = make_key(request.param1, request.param2)
            try:
                offset = binary_search_offset(self.directory / HASHTABLE_FILE, key)
            except OSError as exc:
                logger.error("Error opening hashtable for binary search: %s", exc)
                return []
            return [] if offset is None else self._record_at(offset)
        return self._scan(request)

    def handle_request(self, data: bytes) -> Tuple[str, List[Record]]:
        """Decode a raw request and run it; return the client's response pipe and the matches."""
        request = SearchRequest.unpack(data)
        return response_pipe_path(request.client_pid), self.search(request)

    def serve_forever(self) -> None:
        """Read requests from the request pipe and answer each on its client's pipe."""
        try:
            os.mkfifo(self.request_pipe, 0o666)
        except FileExistsError:
            pass
        self._owns_pipe = True
        while True:
            print("Waiting for client requests...")
            try:
                with open(self.request_pipe, "rb") as pipe:
                    data = pipe.read(REQUEST_SIZE)
            except OSError as exc:
                logger.error("Error opening request pipe: %s", exc)
                continue
            if len(data) != REQUEST_SIZE:
                logger.error("Error reading request")
                continue
            try:
                path, results = self.handle_request(data)
            except ValueError as exc:
                logger.error("Error reading request: %s", exc)
                continue
            try:
                fd = os.open(path, os.O_WRONLY)
            except OSError as exc:
                logger.error("Error opening response pipe: %s", exc)
                continue
            try:
                with os.fdopen(fd, "wb") as pipe:
                    pipe.write(encode_response(results))
            except OSError as exc:
                logger.error("Error writing results: %s", exc)
            print(f"Search complete. Results: {len(results)}")

    def close(self) -> None:
        """Close the data file and remove the request pipe if this server created it."""
        self._data.close()
        if self._owns_pipe:
            try:
                os.unlink(self.request_pipe)
            except FileNotFoundError:
                pass
            self._owns_pipe = False

    def __enter__(self) -> "SearchServer":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def _on_signal(signum, frame) -> None:
    print(f"\nSignal {signum} received. Cleaning up...")
    raise SystemExit(0)


def main(argv=None) -> int:
    """Command entry point: run the search server in the current directory."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        server = SearchServer(".")
    except (OSError, ValueError) as exc:
        print(f"Error starting server: {exc}", file=sys.stderr)
        return 1
    with server:
        signal.signal(signal.SIGINT, _on_signal)
        signal.signal(signal.SIGTERM, _on_signal)
        print(f"Server running (PID: {os.getpid()})")
        print(f"Records: {server.meta.record_count}, Blocks: {server.meta.block_count}")
        server.serve_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())