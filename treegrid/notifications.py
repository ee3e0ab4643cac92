"""User-facing notification sinks."""

import logging

from django.contrib import messages
from django.utils.encoding import force_str

SUCCESS = 'success'
INFO = 'info'
WARN = 'warn'
ERROR = 'error'

SEVERITIES = (SUCCESS, INFO, WARN, ERROR)


class BaseNotifier:
    """Receives a notification for every load, save and toggle outcome."""

    def notify(self, severity, summary, detail=None):
        raise NotImplementedError

    def success(self, summary, detail=None):
        self.notify(SUCCESS, summary, detail)

    def info(self, summary, detail=None):
        self.notify(INFO, summary, detail)

    def warn(self, summary, detail=None):
        self.notify(WARN, summary, detail)

    def error(self, summary, detail=None):
        self.notify(ERROR, summary, detail)

    @staticmethod
    def format(summary, detail=None):
        if detail:
            return '%s: %s' % (force_str(summary), force_str(detail))
        return force_str(summary)


class LoggingNotifier(BaseNotifier):
    "Writes notifications to the ``treegrid`` logger."

    levels = {
        SUCCESS: logging.INFO,
        INFO: logging.INFO,
        WARN: logging.WARNING,
        ERROR: logging.ERROR,
    }

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger('treegrid')

    def notify(self, severity, summary, detail=None):
        self.logger.log(self.levels[severity], self.format(summary, detail))


class MessagesNotifier(BaseNotifier):
    """Queues notifications with :mod:`django.contrib.messages`, so they are
    shown on the next rendered page of the request's user.
    """

    levels = {
        SUCCESS: messages.SUCCESS,
        INFO: messages.INFO,
        WARN: messages.WARNING,
        ERROR: messages.ERROR,
    }

    def __init__(self, request, fail_silently=False):
        self.request = request
        self.fail_silently = fail_silently

    def notify(self, severity, summary, detail=None):
        messages.add_message(
            self.request, self.levels[severity], self.format(summary, detail),
            extra_tags=severity, fail_silently=self.fail_silently)
