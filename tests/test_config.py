import pytest
from pydantic import ValidationError

from config import Settings, build_arg_parser, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)  # no stray .env
    for name in ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "SIGNAL_BOT_SMA_SHORT", "SIGNAL_BOT_BACKTEST"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    s = load_settings([])
    assert s.backtest is False
    assert str(s.historical_data) == "historical_prices.csv"
    assert (s.sma_short, s.sma_long, s.stop_loss) == (5, 20, 5.0)
    assert s.telegram_bot_token is None
    assert s.poll_interval_s == 60.0
    assert s.max_retries == 3


def test_cli_flags():
    s = load_settings([
        "--backtest",
        "--historical-data", "data/btc.csv",
        "--sma-short", "3",
        "--sma-long", "10",
        "--stop-loss", "2.5",
    ])
    assert s.backtest is True
    assert str(s.historical_data) == "data/btc.csv"
    assert (s.sma_short, s.sma_long, s.stop_loss) == (3, 10, 2.5)


def test_telegram_credentials_from_env(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "-100")
    s = load_settings([])
    assert s.telegram_bot_token == "123:abc"
    assert s.telegram_chat_id == "-100"


def test_cli_overrides_env(monkeypatch):
    monkeypatch.setenv("SIGNAL_BOT_SMA_SHORT", "8")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "-100")
    assert load_settings([]).sma_short == 8
    s = load_settings(["--sma-short", "4", "--telegram-chat-id", "@alerts"])
    assert s.sma_short == 4
    assert s.telegram_chat_id == "@alerts"


def test_unset_flags_do_not_override_env(monkeypatch):
    monkeypatch.setenv("SIGNAL_BOT_BACKTEST", "true")
    args = build_arg_parser().parse_args([])
    assert args.backtest is None
    assert load_settings([]).backtest is True


@pytest.mark.parametrize("kwargs", [{"stop_loss": 0}, {"sma_short": 0}, {"poll_interval_s": -1}])
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValidationError):
        Settings(**kwargs)
