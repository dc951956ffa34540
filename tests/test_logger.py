import io
import logging

from vault_pilot.logger import TRACE, resolve_level, setup_logging


def test_resolve_level(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    assert resolve_level() == ("INFO", logging.INFO)
    assert resolve_level("debug") == ("DEBUG", logging.DEBUG)
    assert resolve_level("trace") == ("TRACE", TRACE)
    assert resolve_level("loud") == ("INFO", logging.INFO)

    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    assert resolve_level() == ("WARNING", logging.WARNING)


def test_setup_logging_writes_plain_text_to_stream():
    stream = io.StringIO()
    setup_logging("DEBUG", stream=stream)

    logging.getLogger("vault_pilot.ranking").debug("ranked %s assets", 2)

    output = stream.getvalue()
    assert "[vault_pilot.ranking] ranked 2 assets" in output
    assert "\033[" not in output
    assert logging.getLogger("urllib3").level == logging.WARNING

