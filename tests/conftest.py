import logging
from freezegun.api import FakeDatetime
import pytest
from yaml.dumper import SafeDumper
from yaml.representer import SafeRepresenter


def pytest_configure():
    SafeDumper.add_representer(FakeDatetime, SafeRepresenter.represent_datetime)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger('sessionnotes')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
