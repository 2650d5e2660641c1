# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-FileContributor: Valéry Febvre <vfebvre@easter-eggs.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

import time
from urllib.parse import urlsplit

import pytest

from komikid.servers.exceptions import ChallengeTimeoutError
from komikid.servers.exceptions import WebviewError


class FakeWebview:
    """Stands in for the browser

    `outcome` drives `resolve`:
    - solve: clearance cookie is stored in cookie store
    - timeout: ChallengeTimeoutError is raised
    - error: WebviewError is raised
    - nothing: page loads but no clearance cookie is issued
    """

    user_agent = 'Mozilla/5.0 (X11; Linux x86_64) FakeWebview/1.0'

    def __init__(self, outcome='solve', delay=0, cookie='cf_clearance=abc123; __cf_bm=xyz'):
        self.outcome = outcome
        self.delay = delay
        self.cookie = cookie

        self.cookies = {}
        self.purges = 0
        self.resolve_calls = []

    def get_cookie(self, url):
        return self.cookies.get(urlsplit(url).hostname)

    def remove_all_cookies(self):
        self.purges += 1
        self.cookies.clear()

    def resolve(self, url, intercept_url=None, user_agent=None, use_requests=False, additional_urls=(), request_callback=None,
                timeout=60):
        self.resolve_calls.append(dict(
            url=url,
            intercept_url=intercept_url,
            user_agent=user_agent,
            use_requests=use_requests,
            additional_urls=additional_urls,
            timeout=timeout,
        ))

        if self.delay:
            time.sleep(self.delay)

        if self.outcome == 'timeout':
            raise ChallengeTimeoutError(url, timeout)
        if self.outcome == 'error':
            raise WebviewError('Browser crashed')
        if self.outcome == 'nothing':
            return False

        self.cookies[urlsplit(url).hostname] = self.cookie

        return bool(request_callback and request_callback(url))


@pytest.fixture
def fake_webview():
    return FakeWebview


@pytest.fixture(autouse=True)
def cloudflare_adapter(monkeypatch):
    """Shared Cloudflare adapter backed by a fake browser, real browser is never started"""
    from komikid.servers import cloudflare

    adapter = cloudflare.CloudflareAdapter(webview=FakeWebview())
    monkeypatch.setattr(cloudflare, '_adapter', adapter)

    return adapter
