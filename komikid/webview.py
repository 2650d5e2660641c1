# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-License-Identifier: GPL-3.0-or-later
# Author: Valéry Febvre <vfebvre@easter-eggs.com>

from collections import deque
import concurrent.futures
from gettext import gettext as _
import glob
import logging
import os
import re
import threading
import time

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
import requests
import tzlocal

from komikid.consts import CHALLENGE_TIMEOUT
from komikid.servers.exceptions import ChallengeTimeoutError
from komikid.servers.exceptions import WebviewError
from komikid.utils import get_webview_data_dir

DEBUG = False  # Show browser window
RESOLVE_POLL_INTERVAL = 250  # in milliseconds
STOP_GRACE_DELAY = 10  # in seconds, on top of a resolution timeout before giving up waiting the browser

logger = logging.getLogger('komikid.webview')

_default_webview = None
_default_webview_lock = threading.Lock()


def get_default_webview():
    """Returns the process-wide Webview, created on first use"""
    global _default_webview

    with _default_webview_lock:
        if _default_webview is None:
            _default_webview = Webview()

        return _default_webview


class Webview:
    """Hidden browser used to load pages with full script execution

    Chromium is driven with Playwright, using a persistent profile (cookies are stored on disk).

    Playwright sync API is bound to the thread that started it: every browser call is
    executed by a single dedicated worker thread. Callers block until the call is done.
    Calls made from the worker thread itself (callbacks) are executed immediately.
    """

    def __init__(self, data_dir=None, headless=None):
        self.data_dir = data_dir or get_webview_data_dir()
        self.headless = not DEBUG if headless is None else headless

        self.context = None
        self.playwright = None
        self._user_agent = None

        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix='webview')
        self.thread_ident = None

    @property
    def started(self):
        return self.context is not None

    @property
    def user_agent(self):
        """User agent reported by the browser, `None` if browser has never been started"""
        return self._user_agent

    def call(self, func, *args, timeout=None, **kwargs):
        """
        Runs a function in the worker thread and returns its result

        :param timeout: Maximum waiting time in seconds, queuing time included (optional)
        :type timeout: float

        :raises WebviewError: The browser failed or the worker has not answered in time
        """
        def run():
            self.thread_ident = threading.get_ident()
            return func(*args, **kwargs)

        try:
            if threading.get_ident() == self.thread_ident:
                return func(*args, **kwargs)

            future = self.executor.submit(run)
            try:
                return future.result(timeout=timeout)
            except concurrent.futures.TimeoutError as e:
                # Not run at all if still queued
                future.cancel()
                raise WebviewError(_('Browser has not answered within {0} seconds').format(timeout)) from e
        except PlaywrightError as e:
            raise WebviewError(str(e)) from e

    def close(self):
        def stop():
            if self.context is not None:
                self.context.close()
                self.context = None
            if self.playwright is not None:
                self.playwright.stop()
                self.playwright = None

            logger.debug('Browser closed')

        if self.context is None:
            return

        self.call(stop)

    def get_cookie(self, url):
        """
        Returns the cookies of the browser cookie store that would be sent to an URL

        :param url: An URL
        :type url: str

        :return: A cookie string (`name1=value1; name2=value2`) or None if there is no cookies
        :rtype: str
        """
        def get():
            self.start()

            cookies = self.context.cookies(url)
            if not cookies:
                return None

            return '; '.join(f'{cookie["name"]}={cookie["value"]}' for cookie in cookies)

        return self.call(get, timeout=CHALLENGE_TIMEOUT)

    def remove_all_cookies(self):
        """Purges browser cookie store"""
        def clear():
            self.context.clear_cookies()

        if self.context is not None:
            self.call(clear, timeout=CHALLENGE_TIMEOUT)
        else:
            # Browser is not running, remove the cookies databases of the persistent profile
            for path in glob.glob(os.path.join(self.data_dir, 'Default', '**', 'Cookies*'), recursive=True):
                os.remove(path)

        logger.debug('Cookies removed')

    def resolve(self, url, intercept_url=None, user_agent=None, use_requests=False, additional_urls=(), request_callback=None,
                timeout=CHALLENGE_TIMEOUT):
        """
        Loads a page and watches the requests it makes

        The resolution ends when a request URL matches `intercept_url`, or when `request_callback`,
        called with the URL of every request matching one of `additional_urls`, returns True.

        :param url: URL of the page
        :type url: str

        :param intercept_url: A regular expression, the URL of the request that ends the resolution (optional)
        :type intercept_url: str or re.Pattern

        :param user_agent: User agent, browser default user agent is used if None (optional)
        :type user_agent: str

        :param use_requests: Whether the page requests are performed by `requests` instead of the browser networking
        :type use_requests: bool

        :param additional_urls: A list of regular expressions, the requests URLs passed to `request_callback`
        :type additional_urls: list

        :param request_callback: A function called with request URLs, returning True when resolution is complete
        :type request_callback: callable

        :param timeout: Resolution upper bound in seconds
        :type timeout: int

        :return: True when resolution has ended by an intercepted URL or by the callback
        :rtype: bool

        :raises ChallengeTimeoutError: The resolution has not ended in time
        :raises WebviewError: The browser failed or was busy beyond the timeout
        """
        if isinstance(intercept_url, str):
            intercept_url = re.compile(intercept_url)
        additional_urls = [re.compile(regex) if isinstance(regex, str) else regex for regex in additional_urls]

        def route_with_requests(route, session):
            request = route.request
            try:
                r = session.request(request.method, request.url, headers=request.headers, data=request.post_data_buffer)
            except requests.exceptions.RequestException as e:
                logger.debug('Failed to load %s: %s', request.url, e)
                route.abort()
                return

            # Body is already decoded
            headers = {
                name: value for name, value in r.headers.items()
                if name.lower() not in ('content-encoding', 'content-length', 'transfer-encoding')
            }
            route.fulfill(status=r.status_code, headers=headers, body=r.content)

        def load():
            deadline = time.monotonic() + timeout
            requested_urls = deque()

            self.start()

            page = self.context.new_page()
            try:
                if user_agent:
                    page.set_extra_http_headers({'User-Agent': user_agent})
                if use_requests:
                    session = requests.Session()
                    page.route('**/*', lambda route: route_with_requests(route, session))

                page.on('request', lambda request: requested_urls.append(request.url))

                logger.debug('Load page %s', url)
                try:
                    page.goto(url, wait_until='load', timeout=timeout * 1000)
                except PlaywrightTimeoutError:
                    logger.debug('Page load not completed: %s', url)

                while True:
                    while requested_urls:
                        request_url = requested_urls.popleft()

                        if intercept_url and intercept_url.search(request_url):
                            logger.debug('URL intercepted: %s', request_url)
                            return True

                        if request_callback and any(regex.search(request_url) for regex in additional_urls):
                            if request_callback(request_url):
                                return True

                    if time.monotonic() >= deadline:
                        raise ChallengeTimeoutError(url, timeout)

                    # Page keeps running (scripts, redirections) while waiting
                    page.wait_for_timeout(RESOLVE_POLL_INTERVAL)
            finally:
                page.close()

        return self.call(load, timeout=timeout + STOP_GRACE_DELAY)

    def start(self):
        if self.context is not None:
            return

        os.makedirs(self.data_dir, exist_ok=True)

        self.playwright = sync_playwright().start()
        self.context = self.playwright.chromium.launch_persistent_context(
            self.data_dir,
            headless=self.headless,
            locale='en-US',
            timezone_id=tzlocal.get_localzone_name(),
        )

        page = self.context.pages[0] if self.context.pages else self.context.new_page()
        self._user_agent = page.evaluate('navigator.userAgent')

        logger.debug('Browser started (headless=%s), user agent: %s', self.headless, self._user_agent)
