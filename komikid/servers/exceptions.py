# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-License-Identifier: GPL-3.0-or-later
# Author: Valéry Febvre <vfebvre@easter-eggs.com>

from gettext import gettext as _


class ServerException(Exception):
    def __init__(self, message):
        self.message = _('Error: {}').format(message)
        super().__init__(self.message)


class NotFoundError(ServerException):
    def __init__(self):
        super().__init__(_('No longer exists.'))


class WebviewError(ServerException):
    def __init__(self, message=None):
        super().__init__(message or _('Webview failure.'))


class ChallengeTimeoutError(WebviewError):
    def __init__(self, url, timeout):
        self.url = url
        self.timeout = timeout
        super().__init__(_('Browser challenge not completed after {0} seconds: {1}').format(timeout, url))
