import logging


LOG_PREFIX = 'cms-backup'


class BackupLog:
    """Writes plain, prefixed messages to the host application's logger."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger('cmsbackup')

    def _format(self, message: str) -> str:
        return f"{LOG_PREFIX}: {message}"

    def debug(self, message: str):
        self.logger.debug(self._format(message))

    def info(self, message: str):
        self.logger.info(self._format(message))

    def warning(self, message: str):
        self.logger.warning(self._format(message))

    def error(self, message: str):
        self.logger.error(self._format(message))
