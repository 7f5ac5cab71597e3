"""位置引数の解釈のテスト。"""

from accountbox.args import (
    disambiguate_account_arg,
    has_any,
    read_option_number,
    read_option_value,
)
from accountbox.codex import CODEX_HELPER_SUBCOMMANDS


def test_helper_subcommand_in_account_position() -> None:
    d = disambiguate_account_arg("limits", None, CODEX_HELPER_SUBCOMMANDS)
    assert d.account_arg is None
    assert d.args_list == ["limits"]
    assert d.is_subcommand is True


def test_option_in_account_position() -> None:
    d = disambiguate_account_arg("--json", ["x"], CODEX_HELPER_SUBCOMMANDS)
    assert d.account_arg is None
    assert d.args_list == ["--json", "x"]
    assert d.looks_like_option is True
    assert d.is_subcommand is False


def test_plain_account() -> None:
    d = disambiguate_account_arg("work", ["limits", "--json"], CODEX_HELPER_SUBCOMMANDS)
    assert d.account_arg == "work"
    assert d.args_list == ["limits", "--json"]
    assert d.is_subcommand is False


def test_no_known_subcommands() -> None:
    d = disambiguate_account_arg("limits", [], None)
    assert d.account_arg == "limits"


def test_empty_account() -> None:
    d = disambiguate_account_arg("", ["a"], CODEX_HELPER_SUBCOMMANDS)
    assert d.account_arg is None
    assert d.args_list == ["a"]


def test_read_option_value_forms() -> None:
    assert read_option_value(["--timeout-ms=500"], "--timeout-ms") == "500"
    assert read_option_value(["--timeout-ms", "700"], "--timeout-ms") == "700"
    assert read_option_value(["--timeout-ms"], "--timeout-ms", "d") == "d"


def test_read_option_number_fallbacks() -> None:
    assert read_option_number(["--concurrency", "3"], "--concurrency", 4) == 3
    assert read_option_number(["--concurrency", "abc"], "--concurrency", 4) == 4
    assert read_option_number(["--concurrency=inf"], "--concurrency", 4) == 4
    assert read_option_number([], "--concurrency", 4) == 4


def test_has_any() -> None:
    assert has_any(["login", "--browser"], ["browser", "--browser"])
    assert not has_any(["login"], ["browser", "--browser"])
