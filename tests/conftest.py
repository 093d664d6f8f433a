import datetime as dt
import logging

import pytest

from wbs_planner.store import YamlTaskStore


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """The CLI reconfigures the package logger; undo that between tests."""
    logger = logging.getLogger("wbs_planner")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


@pytest.fixture
def clock():
    """Deterministic, strictly increasing created_at timestamps."""
    state = {"tick": 0}

    def tick():
        state["tick"] += 1
        moment = dt.datetime(2024, 5, 1, 9, 0, 0) + dt.timedelta(seconds=state["tick"])
        return moment.strftime("%Y-%m-%d %H:%M:%S")

    return tick


@pytest.fixture
def store(tmp_path, clock):
    return YamlTaskStore(tmp_path / "store.yml", clock=clock)
