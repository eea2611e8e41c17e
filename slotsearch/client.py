"""Interactive client that sends search requests and shows the results."""

from __future__ import annotations

import os
import re
import struct
import sys
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from .records import (
    METADATA_FILE,
    METADATA_SIZE,
    RECORD_SIZE,
    REQUEST_PIPE,
    Metadata,
    Record,
    SearchRequest,
    SearchType,
    response_pipe_path,
)

_COUNT = struct.Struct("<i")
_UINT32_LIMIT = 1 << 32
_NUMBER = re.compile(r"[+-]?\d+")
_SHOWN = 10
_RULE = "-" * 40

_MENU = (
    "\nSistema de Busqueda\n"
    "1. Seleccionar primer criterio\n"
    "2. Seleccionar segundo criterio\n"
    "3. Realizar búsqueda\n"
    "4. Salir\n"
    "Seleccione una opción: "
)

_CRITERIA_MENU = (
    "\nCriterios de Búsqueda:\n"
    "1. Slot\n"
    "2. Tx_idx\n"
    "3. Dirección (buy/sell)\n"
    "4. Wallet\n"
    "5. Fila\n"
    "Seleccione un criterio: "
)

_TEXT_WIDTHS = {SearchType.DIRECTION: 4, SearchType.WALLET: 49}


def format_record(record: Record) -> str:
    """Human-readable block describing one record."""
    return (
        f"\n{_RULE}"
        f"\nBlock Time: {record.block_time}"
        f"\nSlot: {record.slot}"
        f"\nTx Index: {record.tx_idx}"
        f"\nWallet: {record.signing_wallet}"
        f"\nDirection: {record.direction}"
        f"\nBase Coin: {record.base_coin}"
        f"\nBase Amount: {record.base_coin_amount}"
        f"\nQuote Amount: {record.quote_coin_amount}"
        f"\nVirtual token balance: {record.virtual_token_balance_after}"
        f"\nVirtual sol balance: {record.virtual_sol_balance_after}"
        f"\nSignature: {record.signature}"
        f"\nProvided gas fee: {record.provided_gas_fee}"
        f"\nProvided gas limit: {record.provided_gas_limit}"
        f"\nFee: {record.fee}"
        f"\nConsumed gas: {record.consumed_gas}"
        f"\n{_RULE}\n"
    )


def _prompt(search_type: SearchType, record_count: int) -> str:
    if search_type == SearchType.SLOT:
        return "Ingrese slot: "
    if search_type == SearchType.TX_IDX:
        return "Ingrese tx_idx: "
    if search_type == SearchType.DIRECTION:
        return "Ingrese direccion (buy/sell): "
    if search_type == SearchType.WALLET:
        return "Ingrese wallet: "
    return f"Ingrese numero de fila (1 - {record_count}): "


def read_criterion(search_type, read: Callable[[str], str], record_count: int) -> Union[int, str]:
    """Ask for the value of a criterion with read(prompt); raise ValueError if it is invalid."""
    search_type = SearchType(search_type)
    tokens = read(_prompt(search_type, record_count)).split()
    if not tokens:
        raise ValueError("no value given")
    token = tokens[0]
    if search_type in _TEXT_WIDTHS:
        return token[:_TEXT_WIDTHS[search_type]]
    match = _NUMBER.match(token)
    if not match:
        raise ValueError(f"not a number: {token!r}")
    value = int(match.group())
    if abs(value) >= _UINT32_LIMIT:
        raise ValueError(f"number out of range: {token!r}")
    return value % _UINT32_LIMIT


def encode_response(records: Iterable[Record]) -> bytes:
    """Wire form of a result list: a count followed by the packed records."""
    packed = [record.pack() for record in records]
    return _COUNT.pack(len(packed)) + b"".join(packed)


def decode_response(data: bytes) -> List[Record]:
    """Records carried by a response in wire form."""
    if len(data) < _COUNT.size:
        raise ValueError("response is missing its result count")
    (count,) = _COUNT.unpack_from(data)
    if count < 0:
        raise ValueError(f"negative result count {count}")
    body = memoryview(data)[_COUNT.size:]
    if len(body) != count * RECORD_SIZE:
        raise ValueError(f"response holds {len(body)} bytes for {count} records")
    return [Record.unpack(body[start:start + RECORD_SIZE])
            for start in range(0, len(body), RECORD_SIZE)]


def send_request(request: SearchRequest, request_pipe: str = REQUEST_PIPE,
                 response_pipe: Optional[str] = None) -> List[Record]:
    """Send a request to the server and wait for its results."""
    if response_pipe is None:
        response_pipe = response_pipe_path(request.client_pid)
    fd = os.open(request_pipe, os.O_WRONLY)
    with os.fdopen(fd, "wb") as pipe:
        pipe.write(request.pack())
    with open(response_pipe, "rb") as pipe:
        header = pipe.read(_COUNT.size)
        if len(header) != _COUNT.size:
            raise ValueError("response is missing its result count")
        (count,) = _COUNT.unpack(header)
        body = pipe.read(count * RECORD_SIZE) if count > 0 else b""
    return decode_response(header + body)


def _choose_criterion(record_count: int):
    try:
        search_type = SearchType(int(input(_CRITERIA_MENU).strip()))
        return search_type, read_criterion(search_type, input, record_count)
    except ValueError:
        print("Error: Valor invalido")
        return None, None


def _show_results(results: List[Record]) -> None:
    if not results:
        print("\nNA - No se encontraron resultados")
        return
    print(f"\nResultados encontrados: {len(results)}")
    for number, record in enumerate(results[:_SHOWN], start=1):
        print(f"\nResultado {number}:", end="")
        print(format_record(record), end="")
    if len(results) > _SHOWN:
        print(f"\nMostrando {_SHOWN} de {len(results)} resultados")


def main(argv=None) -> int:
    """Command entry point: interactive search client."""
    try:
        with open(METADATA_FILE, "rb") as stream:
            meta = Metadata.unpack(stream.read(METADATA_SIZE))
    except (OSError, ValueError) as exc:
        print(f"Error abriendo metadatos: {exc}", file=sys.stderr)
        return 1

    pid = os.getpid()
    response_pipe = response_pipe_path(pid)
    try:
        os.mkfifo(response_pipe, 0o666)
    except FileExistsError:
        pass
    except OSError as exc:
        print(f"Error creando tubería de respuesta: {exc}", file=sys.stderr)
        return 1

    request = SearchRequest(client_pid=pid)
    try:
        while True:
            choice = input(_MENU).strip()
            if choice == "1":
                request.type1, request.param1 = _choose_criterion(meta.record_count)
            elif choice == "2":
                request.type2, request.param2 = _choose_criterion(meta.record_count)
            elif choice == "3":
                if request.type1 is None and request.type2 is None:
                    print("Error: Seleccione al menos un criterio")
                    continue
                try:
                    results = send_request(request, REQUEST_PIPE, response_pipe)
                except (OSError, ValueError) as exc:
                    print(f"Error en la búsqueda: {exc}", file=sys.stderr)
                    continue
                _show_results(results)
            elif choice == "4":
                print("Saliendo...")
                break
            else:
                print("Opción invalida")
    except EOFError:
        pass
    finally:
        Path(response_pipe).unlink(missing_ok=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())