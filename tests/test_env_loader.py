import os

from env_loader import load_dotenv_like, parse_env_lines


def test_parse_env_lines_skips_comments_and_strips_quotes():
    parsed = parse_env_lines(
        [
            "# comment",
            "",
            "TELEGRAM_BOT_TOKEN='123:abc'",
            'export ADMIN_CHAT_ID="-100500"',
            "BROKEN LINE",
            "POLL_HOLD_SECONDS = 25",
        ]
    )
    assert parsed == {
        "TELEGRAM_BOT_TOKEN": "123:abc",
        "ADMIN_CHAT_ID": "-100500",
        "POLL_HOLD_SECONDS": "25",
    }


def test_load_does_not_override_existing(tmp_path, monkeypatch):
    env_file = tmp_path / "custom.env"
    env_file.write_text("MG_TEST_A=from-file\nMG_TEST_B=from-file\n", encoding="utf-8")
    monkeypatch.setenv("MG_TEST_A", "from-env")
    monkeypatch.delenv("MG_TEST_B", raising=False)

    assert load_dotenv_like(str(env_file)) == str(env_file)
    assert os.environ["MG_TEST_A"] == "from-env"
    assert os.environ["MG_TEST_B"] == "from-file"
    monkeypatch.delenv("MG_TEST_B")
