import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from nanocore.database.Exceptions import NanoCoreError


def status_for(exception: BaseException) -> int:
    """
    HTTP exceptions keep their code, library errors carry a ``status`` hint,
    and anything else may offer an integer ``code`` in the HTTP range.
    """
    if isinstance(exception, HTTPException):
        return exception.code or 500
    if isinstance(exception, NanoCoreError):
        return exception.status
    code = getattr(exception, "code", None)
    if isinstance(code, int) and not isinstance(code, bool) and 100 <= code <= 599:
        return code
    return 500


def error_payload(exception: BaseException, status: int) -> dict:
    message = exception.description if isinstance(exception, HTTPException) else str(exception)
    return {"error": message, "code": status, "type": type(exception).__name__}


class ErrorHandler:
    def __init__(self, name="nanocore.http", log_to_console=True, log_to_file=None, log_level=logging.INFO):
        """
        :param name: logger name
        :param log_to_console: whether to log to the terminal
        :param log_to_file: filepath string to enable file logging
        :param log_level: default log level (e.g., logging.DEBUG)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(log_level)

        formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        if log_to_console and not self._has_handler(logging.StreamHandler):
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        if log_to_file and not self._has_handler(logging.FileHandler, log_to_file):
            file_handler = logging.FileHandler(log_to_file)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def _has_handler(self, handler_type, filename=None):
        for handler in self.logger.handlers:
            if isinstance(handler, handler_type):
                if isinstance(handler, logging.FileHandler):
                    return handler.baseFilename == filename
                return True
        return False

    def handle(self, exception: Exception):
        status = status_for(exception)
        if status >= 500:
            self.logger.error("%s: %s", type(exception).__name__, exception, exc_info=exception)
        else:
            self.logger.info("%s %s: %s", status, type(exception).__name__, exception)

        response = jsonify(error_payload(exception, status))
        response.status_code = status
        return response

    def register(self, app) -> None:
        # HTTPException derives from Exception, so 404 / 405 land here too.
        app.register_error_handler(Exception, self.handle)
