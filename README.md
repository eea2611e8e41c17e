# slotsearch

slotsearch searches a CSV dataset of trades. A preprocessing step first turns the CSV into fixed-size binary files. A server process then keeps those files open and answers searches that arrive over a named pipe (FIFO). An interactive client sends each search to the server and prints the results.

The server and the client talk over FIFOs, so a POSIX system is required. The client's menus and messages are in Spanish.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

### 1. Preprocess the dataset

```
slotsearch-preprocess dataset.csv
```

The first line of the CSV is a header and is skipped. If the file has no first line, the command fails. Each data line holds these 15 comma-separated fields, and any columns after them are ignored:

`block_time, slot, tx_idx, signing_wallet, direction, base_coin, base_coin_amount, quote_coin_amount, virtual_token_balance_after, virtual_sol_balance_after, signature, provided_gas_fee, provided_gas_limit, fee, consumed_gas`

The text fields are cut to these lengths: 19 bytes for `block_time`, 49 for `signing_wallet`, 4 for `direction`, and 99 each for `base_coin` and `signature`. `slot` and `tx_idx` must fit in 32 bits. The other numbers must fit in 64 bits. A line that cannot be parsed is reported on standard error ("Error parsing line: ...") and skipped.

The command writes four files to the current directory and then prints the number of records and blocks:

| File | Contents |
|------|----------|
| `data.bin` | every record in fixed-size binary form, in CSV order |
| `slot_index.bin` | one entry per block of 5000 consecutive records: minimum slot, maximum slot, and the offset of the block's first record |
| `metadata.bin` | record count, block count and record size |
| `hashtable.bin` | `(slot << 32) \| tx_idx` keys, sorted, each with its record's offset in `data.bin` |

### 2. Start the server

```
slotsearch-server
```

Start the server in the directory that holds the preprocessed files. It loads the metadata and the block index. If it cannot, it exits with status 1. Otherwise it creates the request FIFO `/tmp/search_request` and answers requests one at a time. Each answer goes to the client's FIFO `/tmp/search_response_<pid>`. On SIGINT or SIGTERM the server closes its files, removes the request FIFO and exits.

### 3. Run the client

```
slotsearch-client
```

Run the client in the same directory, because it reads `metadata.bin` to learn the record count. It creates its response FIFO and shows a menu with these choices:

1. set the first criterion
2. set the second criterion
3. run the search
4. quit

Each criterion is one of the following:

1. Slot
2. Tx_idx
3. Direction (`buy`/`sell`, cut to 4 characters)
4. Wallet (cut to 49 characters)
5. Row number (counted from 1)

If a value is invalid, the client prints `Error: Valor invalido` and clears that criterion. At least one criterion must be set before a search can run. The client prints up to 10 results. When there are more, it says how many were found in total. It prints `NA - No se encontraron resultados` when there are none. When it quits, or when input ends, it removes its response FIFO.

## How searches are answered

* If the first criterion is a row number, that row is returned. Otherwise, if the second criterion is a row number, that row is returned. The other criterion is ignored. A row outside `1..record_count` gives no results.
* If the first criterion is a slot and the second is a tx_idx, the search is an exact lookup by binary search in `hashtable.bin`.
* Every other search is a scan that keeps the records matching every criterion that is set. Direction and wallet are compared exactly. The scan reads up to 1000 records from the start of each indexed block, and each block holds up to 5000 records. Records past the first 1000 of a block are therefore not examined.

## Library use

The modules can also be used directly from Python:

* `slotsearch.records`: the record layouts `Record`, `Metadata`, `BlockIndex` and `SearchRequest`, each with `pack()` and `unpack()`. Also the `SearchType` enum (`SLOT`, `TX_IDX`, `DIRECTION`, `WALLET`, `ROW`), `make_key(slot, tx_idx)`, `hash_function(key)` and `response_pipe_path(client_pid)`. Values that do not fit a layout raise `ValueError`.
* `slotsearch.preprocess`: `parse_line(line)` returns a `Record` or raises `ParseError`. `build_block_index(records)` builds the block index, and `preprocess(csv_path, output_dir)` writes the four files and returns the `Metadata`.
* `slotsearch.server`: `SearchServer(directory, request_pipe)` is a context manager with `search(request)`, `handle_request(data)`, `serve_forever()` and `close()`. The module also has `matches_criteria(record, request)` and `binary_search_offset(path, target_key)`, which returns `None` when the key is absent.
* `slotsearch.client`: `format_record(record)` and `read_criterion(search_type, read, record_count)`. It also has `encode_response(records)` and `decode_response(data)` for the response wire format (a 32-bit count followed by the packed records), and `send_request(request, request_pipe, response_pipe)`.

```python
from slotsearch.preprocess import preprocess
from slotsearch.records import SearchRequest, SearchType
from slotsearch.server import SearchServer

preprocess("dataset.csv", "out")
with SearchServer("out") as server:
    hits = server.search(SearchRequest(type1=SearchType.DIRECTION, param1="buy"))
```

## What it does not do

The hash file is written in sorted order, and it is used only for exact slot-and-tx_idx lookups. The block index's slot ranges are stored but not used to narrow scans. The server handles one request at a time and has no network interface; it works only through local FIFOs.