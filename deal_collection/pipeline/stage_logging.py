from contextlib import contextmanager
from pathlib import Path
import logging

# Per-venue progress lines ("FOUND 3 → Venue") go here and, while a stage
# runs, into that stage's companion .log file.
stage_logger = logging.getLogger("deal_collection.stage")

@contextmanager
def companion_log(path, resume: bool = False):
    """Attach a plain-message file handler for the duration of a stage"""
    if path is None:
        yield stage_logger
        return

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode='a' if resume else 'w', encoding='utf-8')
    handler.setFormatter(logging.Formatter('%(message)s'))
    handler.setLevel(logging.INFO)
    previous_level = stage_logger.level
    if stage_logger.getEffectiveLevel() > logging.INFO:
        stage_logger.setLevel(logging.INFO)
    stage_logger.addHandler(handler)
    try:
        yield stage_logger
    finally:
        stage_logger.removeHandler(handler)
        stage_logger.setLevel(previous_level)
        handler.close()
