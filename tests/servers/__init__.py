# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-FileContributor: Valéry Febvre <vfebvre@easter-eggs.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

import datetime

# Minimal PNG: signature + IHDR chunk (1x1)
PNG_BUFFER = (
    b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89'
    + b'\x00' * 64
)


class MockResponse:
    def __init__(self, content=b'', status_code=200, headers=None):
        if isinstance(content, str):
            content = content.encode('utf-8')

        self.content = content
        self.status_code = status_code
        self.headers = headers or {}
        self.elapsed = datetime.timedelta(milliseconds=120)

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def text(self):
        return self.content.decode('utf-8')


class FakeSession:
    """Serves canned responses by URL and records requests

    Unknown URLs get a 404 response.
    """

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def get(self, url, params=None, headers=None, **kwargs):
        self.requests.append(dict(method='GET', url=url, params=params, headers=headers))

        return self.routes.get(url) or MockResponse(status_code=404)

    def post(self, url, data=None, headers=None, **kwargs):
        self.requests.append(dict(method='POST', url=url, data=data, headers=headers))

        return self.routes.get(url) or MockResponse(status_code=404)

    def last_request(self, method='GET'):
        return [request for request in self.requests if request['method'] == method][-1]


def plug_fake_session(server, routes):
    """Replaces server requests methods by a FakeSession ones"""
    session = FakeSession(routes)
    server.session_get = session.get
    server.session_post = session.post

    return session
