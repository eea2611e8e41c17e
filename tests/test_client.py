import os
from unittest import mock

import pytest

from slotsearch.client import (
    decode_response,
    encode_response,
    format_record,
    main,
    read_criterion,
    send_request,
)
from slotsearch.records import (
    METADATA_FILE,
    RECORD_SIZE,
    Metadata,
    Record,
    SearchRequest,
    SearchType,
    response_pipe_path,
)


def make_record(slot=7, tx_idx=3, wallet="walletX", direction="buy"):
    return Record("2024-02-02 10:00:00", slot, tx_idx, wallet, direction, "COIN",
                  11, 12, 13, 14, "sigX", 15, 16, 17, 18)


class Prompter:
    def __init__(self, answer):
        self.answer = answer
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.answer


def test_format_record_layout():
    record = make_record()
    text = format_record(record)
    assert text.startswith("\n" + "-" * 40 + "\nBlock Time: 2024-02-02 10:00:00")
    assert text.endswith("-" * 40 + "\n")
    assert "\nSlot: 7\n" in text
    assert "\nWallet: walletX\n" in text
    assert "\nConsumed gas: 18\n" in text


def test_read_criterion_slot():
    read = Prompter("42\n")
    assert read_criterion(SearchType.SLOT, read, 10) == 42
    assert read.prompts == ["Ingrese slot: "]


def test_read_criterion_row_prompt_shows_count():
    read = Prompter("3")
    assert read_criterion(SearchType.ROW, read, 10) == 3
    assert read.prompts == ["Ingrese numero de fila (1 - 10): "]


def test_read_criterion_accepts_plain_int_type():
    assert read_criterion(2, Prompter(" 9 extra"), 1) == 9


def test_read_criterion_direction_truncated():
    assert read_criterion(SearchType.DIRECTION, Prompter("buyer"), 1) == "buye"


def test_read_criterion_wallet_truncated():
    wallet = "w" * 60
    assert read_criterion(SearchType.WALLET, Prompter(wallet), 1) == wallet[:49]


def test_read_criterion_number_prefix():
    assert read_criterion(SearchType.TX_IDX, Prompter("12abc"), 1) == 12


@pytest.mark.parametrize("answer", ["", "abc", "   "])
def test_read_criterion_invalid_number(answer):
    with pytest.raises(ValueError):
        read_criterion(SearchType.SLOT, Prompter(answer), 1)


def test_read_criterion_unknown_type():
    with pytest.raises(ValueError):
        read_criterion(9, Prompter("1"), 1)


def test_encode_empty_response():
    assert encode_response([]) == b"\x00\x00\x00\x00"


def test_response_round_trip():
    records = [make_record(), make_record(slot=8, direction="sell")]
    data = encode_response(records)
    assert len(data) == 4 + 2 * RECORD_SIZE
    assert decode_response(data) == records


def test_decode_response_wrong_length():
    data = encode_response([make_record()])
    with pytest.raises(ValueError):
        decode_response(data[:-1])


def test_decode_response_too_short():
    with pytest.raises(ValueError):
        decode_response(b"\x01")


def test_decode_response_negative_count():
    with pytest.raises(ValueError):
        decode_response(b"\xff\xff\xff\xff")


def test_send_request_with_files(tmp_path):
    request_path = tmp_path / "request"
    request_path.write_bytes(b"")
    response_path = tmp_path / "response"
    records = [make_record()]
    response_path.write_bytes(encode_response(records) + b"trailing")
    request = SearchRequest(client_pid=77, type1=SearchType.WALLET, param1="walletX")
    assert send_request(request, str(request_path), str(response_path)) == records
    assert SearchRequest.unpack(request_path.read_bytes()) == request


def test_send_request_empty_response(tmp_path):
    request_path = tmp_path / "request"
    request_path.write_bytes(b"")
    response_path = tmp_path / "response"
    response_path.write_bytes(b"")
    with pytest.raises(ValueError):
        send_request(SearchRequest(client_pid=1), str(request_path), str(response_path))


def test_main_without_metadata(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main([]) == 1


@pytest.fixture
def with_metadata(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / METADATA_FILE).write_bytes(Metadata(record_count=4, block_count=1).pack())


def test_main_exit_removes_pipe(with_metadata, capsys):
    with mock.patch("builtins.input", side_effect=["4"]):
        assert main([]) == 0
    assert "Saliendo..." in capsys.readouterr().out
    assert not os.path.exists(response_pipe_path(os.getpid()))


def test_main_search_without_criteria(with_metadata, capsys):
    with mock.patch("builtins.input", side_effect=["3", "4"]):
        assert main([]) == 0
    assert "Error: Seleccione al menos un criterio" in capsys.readouterr().out


def test_main_invalid_criterion(with_metadata, capsys):
    with mock.patch("builtins.input", side_effect=["1", "9", "7", "4"]):
        assert main([]) == 0
    out = capsys.readouterr().out
    assert "Error: Valor invalido" in out
    assert "Opción invalida" in out