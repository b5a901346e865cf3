import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Union

LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
PACKAGE_LOGGER = "clipkeep"

logger = logging.getLogger(__name__)


class DiagnosticLogHandler(RotatingFileHandler):
    """Append-only diagnostic log that keeps a single ``.old`` generation.

    Once the file would grow past ``max_bytes`` it is renamed to
    ``<name>.old`` (replacing any earlier rotation) and a fresh file is
    started.
    """

    def __init__(self, filename: Union[str, Path], max_bytes: int = LOG_MAX_BYTES):
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        super().__init__(str(filename), maxBytes=max_bytes, backupCount=1, encoding="utf-8")
        self.setFormatter(logging.Formatter(LOG_FORMAT))

    def rotation_filename(self, default_name: str) -> str:
        if default_name.endswith(".1"):
            return default_name[:-2] + ".old"
        return super().rotation_filename(default_name)

    @property
    def old_path(self) -> Path:
        return Path(self.baseFilename + ".old")

    def read_tail(self, max_lines: int = 500) -> List[str]:
        self.flush()
        path = Path(self.baseFilename)
        if not path.exists():
            return []
        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        if max_lines <= 0:
            return []
        return lines[-max_lines:]

    def clear(self) -> None:
        self.acquire()
        try:
            if self.stream is not None:
                self.stream.seek(0)
                self.stream.truncate()
            else:
                Path(self.baseFilename).write_text("", encoding="utf-8")
        finally:
            self.release()


def attach_diagnostic_log(
    path: Union[str, Path],
    max_bytes: int = LOG_MAX_BYTES,
    level: int = logging.INFO,
) -> DiagnosticLogHandler:
    handler = DiagnosticLogHandler(path, max_bytes=max_bytes)
    handler.setLevel(level)
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.addHandler(handler)
    if package_logger.level == logging.NOTSET or package_logger.level > level:
        package_logger.setLevel(level)
    logger.debug("Diagnostic log attached at %s", path)
    return handler


def detach_diagnostic_log(handler: DiagnosticLogHandler) -> None:
    logging.getLogger(PACKAGE_LOGGER).removeHandler(handler)
    handler.close()
