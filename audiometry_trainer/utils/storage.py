"""Save and load sessions as JSON so bracketing can resume exactly."""
# Standard library imports
import json
import logging
from pathlib import Path

# Local imports
from ..procedures.session import TestSession

logger = logging.getLogger(__name__)


def save_session_json(session: TestSession, path):
    """
    Write a ``TestSession`` (ledger and results included) to ``path``.

    Returns:
        Path: the file written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(session.to_dict(), f, indent=2)
    logger.info("Saved session %s to %s", session.id, path)
    return path


def load_session_json(path) -> TestSession:
    """Read a session written by ``save_session_json``."""
    with open(path, 'r') as f:
        data = json.load(f)
    session = TestSession.from_dict(data)
    logger.info("Loaded session %s from %s", session.id, path)
    return session
