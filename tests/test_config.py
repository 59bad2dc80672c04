import logging

import pytest

from api_autodoc.config import HANDLER_NAME, setup_logging


def _named_handlers(logger):
    return [h for h in logger.handlers if h.get_name() == HANDLER_NAME]


class TestSetupLogging:
    def test_level_by_name(self):
        logger = setup_logging("debug")
        assert logger.name == "api_autodoc"
        assert logger.level == logging.DEBUG

    def test_level_by_number(self):
        assert setup_logging(logging.ERROR).level == logging.ERROR

    def test_single_handler(self):
        setup_logging("INFO")
        logger = setup_logging("WARNING")
        assert len(_named_handlers(logger)) == 1

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            setup_logging("LOUD")

    def test_child_loggers_propagate(self, capsys):
        setup_logging("INFO")
        logging.getLogger("api_autodoc.version.store").info("saved snapshot")
        assert "saved snapshot" in capsys.readouterr().err
