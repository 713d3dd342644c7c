import textwrap
from datetime import date, datetime
from io import BytesIO

from ledger_import.parsers import (
    decode_csv_bytes,
    detect_format,
    parse_ing_csv,
    parse_initial_workbook,
    parse_statement,
)
from openpyxl import Workbook

HEADER = (
    "Date;Name / Description;Account;Counterparty;Code;Debit/credit;Amount (EUR);"
    "Transaction type;Notifications;Resulting balance;Tag"
)


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n").rstrip()


def _xlsx(rows: list[list], *, sheet: str = "transacties 2025") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet
    for row in rows:
        ws.append(row)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ---- ING CSV ------------------------------------------------------------------


def test_ing_csv_rows_and_row_numbers():
    text = _dedent(
        f"""
        {HEADER}
        20250102;Albert Heijn 1234;NL89INGB0006369960;;BA;Debit;12,50;Payment terminal;Reference: AH-1;987,50;
        ;;;;;;;;;;
        20250103;Gemeente Subsidie;NL89INGB0006369960;NL11RABO0123456789;GT;Credit;1.000,00;Transfer;;1987,50;
        20250104;Broken row;NL89INGB0006369960;;GT;Credit;abc;Transfer;;;
        """
    )

    result = parse_ing_csv(text)

    assert result.format == "csv_ing"
    assert [s.row_number for s in result.successes] == [2, 4]
    assert [(e.row_number, e.message) for e in result.errors] == [
        (5, "Invalid or missing amount")
    ]
    assert result.total_rows == 3

    first = result.successes[0].transaction
    assert first.amount_minor == -1250
    assert first.reference == "AH-1"
    assert first.counterparty is None
    assert first.source == "ing_csv"
    assert first.raw["Resulting balance"] == "987,50"

    second = result.successes[1].transaction
    assert second.amount_minor == 100000
    assert second.counterparty == "NL11RABO0123456789"
    assert second.date == date(2025, 1, 3)


def test_ing_csv_missing_required_columns_is_one_row_zero_error():
    text = "Date;Name / Description;Counterparty\n20250102;Foo;Bar\n"

    result = parse_ing_csv(text)

    assert result.successes == []
    assert len(result.errors) == 1
    assert result.errors[0].row_number == 0
    assert "Account" in result.errors[0].message
    assert "Amount (EUR)" in result.errors[0].message


def test_ing_csv_accepts_singular_notification_column():
    text = _dedent(
        """
        Account;Date;Name / Description;Amount (EUR);Debit/credit;Notification
        NL89INGB0006369960;20250102;Rent;500,00;Debit;Reference: HUUR-01
        """
    )

    result = parse_ing_csv(text)

    assert result.successes[0].transaction.reference == "HUUR-01"


def test_parse_statement_decodes_bom_and_routes_by_extension():
    data = (
        "\ufeffAccount;Date;Name / Description;Amount (EUR)\n"
        "NL89INGB0006369960;20250102;Rent;-500,00\n"
    ).encode()

    assert detect_format("jan.CSV") == "csv_ing"
    assert detect_format("initial.xlsx") == "xlsx_initial"
    result = parse_statement("jan.csv", data)
    assert len(result.successes) == 1
    assert result.successes[0].transaction.amount_minor == -50000


def test_parse_statement_falls_back_to_windows_1252():
    data = (
        "Account;Date;Name / Description;Amount (EUR);Debit/credit\n"
        "NL89INGB0006369960;20250102;Caf\u00e9 Noir \u20ac;12,50;Debit\n"
    ).encode("cp1252")

    assert decode_csv_bytes(b"\x81ok") == "\ufffdok"
    result = parse_statement("jan.csv", data)
    assert result.errors == []
    assert result.successes[0].transaction.description == "Caf\u00e9 Noir \u20ac"


# ---- Workbook ----------------------------------------------------------------


def test_workbook_rows_keep_cell_types():
    data = _xlsx(
        [
            ["Date", "Name / Description", "Account", "Counterparty", "Debit/credit", "Amount (EUR)", "Notifications", "Resulting balance"],
            [datetime(2025, 1, 2), "Albert Heijn", "NL89INGB0006369960", None, "Debit", 12.5, "Reference: AH-1", 987.5],
            [" "] * 8,
            [20250103, "Donation", "NL89INGB0006369960", "Jansen", "Credit", 100, None, None],
            [None, "No date", "NL89INGB0006369960", None, "Credit", 5, None, None],
        ]
    )

    result = parse_initial_workbook(data)

    assert result.format == "xlsx_initial"
    assert [s.row_number for s in result.successes] == [2, 4]
    assert [(e.row_number, e.message) for e in result.errors] == [
        (5, "Invalid or missing transaction date")
    ]

    first = result.successes[0].transaction
    assert first.date == date(2025, 1, 2)
    assert first.amount_minor == -1250
    assert first.reference == "AH-1"
    assert first.source == "xlsx_initial"
    assert first.raw["Date"] == "2025-01-02T00:00:00"

    second = result.successes[1].transaction
    assert second.amount_minor == 10000
    assert second.counterparty == "Jansen"


def test_workbook_missing_sheet():
    data = _xlsx([["Date"]], sheet="Blad1")

    result = parse_initial_workbook(data)

    assert result.successes == []
    assert [(e.row_number, e.message) for e in result.errors] == [
        (0, 'Sheet "transacties 2025" not found')
    ]


def test_workbook_custom_sheet_name():
    data = _xlsx(
        [
            ["Account", "Date", "Name / Description", "Amount (EUR)"],
            ["NL89INGB0006369960", "2025-03-01", "Bank costs", -2.95],
        ],
        sheet="2024",
    )

    result = parse_statement("opening.xlsx", data, sheet_name="2024")

    assert len(result.successes) == 1
    assert result.successes[0].transaction.amount_minor == -295


def test_workbook_unreadable_bytes():
    result = parse_initial_workbook(b"definitely not a zip file")

    assert result.successes == []
    assert result.errors[0].row_number == 0
    assert result.errors[0].message.startswith("Unreadable workbook")
