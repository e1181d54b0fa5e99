import json

from loguru import logger

from oanda_stream.log import configure_logging
from oanda_stream.settings import LoggingSettings


def test_file_handler_writes_json_lines(tmp_path):
    log_file = tmp_path / "logs" / "stream.log"
    configure_logging(LoggingSettings(level="DEBUG", file_path=str(log_file)))
    logger.info("Pricing stream open for {}", "EUR_USD")
    logger.complete()

    record = json.loads(log_file.read_text().splitlines()[-1])
    assert record["record"]["message"] == "Pricing stream open for EUR_USD"
    assert record["record"]["level"]["name"] == "INFO"


def test_level_filters_console(capsys):
    configure_logging(LoggingSettings(level="WARNING"))
    logger.info("hidden")
    logger.warning("shown")
    err = capsys.readouterr().err
    assert "shown" in err
    assert "hidden" not in err
