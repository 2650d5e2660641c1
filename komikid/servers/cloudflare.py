# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-License-Identifier: GPL-3.0-or-later
# Author: Valéry Febvre <vfebvre@easter-eggs.com>

# Cloudflare challenge bypass
#
# A transport adapter intercepts the requests of a session:
# - requests to a host for which clearance cookies are known are sent with these cookies
# - otherwise, when a response is a Cloudflare challenge, the challenge is completed in the webview,
#   cookies are harvested from the browser cookie store and the request is sent again with them

from contextlib import contextmanager
import logging
import threading
import time
from urllib.parse import urlsplit

from requests.adapters import HTTPAdapter

from komikid.consts import CHALLENGE_TIMEOUT
from komikid.consts import USER_AGENT
from komikid.servers.exceptions import ChallengeTimeoutError
from komikid.servers.exceptions import WebviewError

CLEARANCE_COOKIE = 'cf_clearance'
CLOUDFLARE_SERVERS = ('cloudflare-nginx', 'cloudflare')
ERROR_CODES = (403, 503)

ANY_URL_RE = r'.'  # Match every URL
NO_URL_RE = r'.^'  # Never match

logger = logging.getLogger('komikid.servers.cloudflare')

_adapter = None
_adapter_lock = threading.Lock()


def get_cloudflare_adapter():
    """Returns the process-wide adapter, shared by all sessions of servers using Cloudflare"""
    global _adapter

    with _adapter_lock:
        if _adapter is None:
            _adapter = CloudflareAdapter()

        return _adapter


def get_host(url):
    return urlsplit(url).hostname


def is_challenge_response(r):
    return r.status_code in ERROR_CODES and r.headers.get('Server') in CLOUDFLARE_SERVERS


def parse_cookie_map(cookie):
    """
    Parses a cookie string

    Pairs with a blank name or a blank value are dropped.

    :param cookie: A cookie string: `name1=value1; name2=value2`
    :type cookie: str

    :return: The cookies names and values
    :rtype: dict
    """
    cookies = {}
    for pair in cookie.split(';'):
        name, _sep, value = pair.partition('=')
        name = name.strip()
        value = value.strip()
        if name and value:
            cookies[name] = value

    return cookies


def serialize_cookie_map(cookies):
    return '; '.join(f'{name}={value}' for name, value in cookies.items())


class CookieCache:
    """Clearance cookies by host

    Thread-safe. Entries never expire unless a TTL (in seconds) is given.
    """

    def __init__(self, ttl=None):
        self.ttl = ttl

        self.__entries = {}
        self.__lock = threading.Lock()

    def __contains__(self, host):
        return self.get(host) is not None

    def __len__(self):
        with self.__lock:
            return len(self.__entries)

    def clear(self):
        with self.__lock:
            self.__entries.clear()

    def get(self, host):
        with self.__lock:
            if host not in self.__entries:
                return None

            cookies, timestamp = self.__entries[host]
            if self.ttl is not None and time.monotonic() - timestamp > self.ttl:
                logger.debug('%s: cookies expired', host)
                del self.__entries[host]
                return None

            return cookies.copy()

    def invalidate(self, host):
        with self.__lock:
            self.__entries.pop(host, None)

    def set(self, host, cookies):
        with self.__lock:
            self.__entries[host] = (dict(cookies), time.monotonic())


class ChallengeSolver:
    """Obtains Cloudflare clearance cookies using the webview

    Concurrent solves for a same host are serialized: the first one loads the page in the webview,
    the following ones find the cookies in cache.
    """

    def __init__(self, webview, cookies, timeout=CHALLENGE_TIMEOUT):
        self.webview = webview
        self.cookies = cookies
        self.timeout = timeout

        # host => [lock, number of callers holding or waiting the lock]
        self._hosts_locks = {}
        self.__lock = threading.Lock()

    @contextmanager
    def host_lock(self, host):
        """Serializes solves of a host. The lock is dropped once no caller needs it"""
        with self.__lock:
            entry = self._hosts_locks.setdefault(host, [threading.Lock(), 0])
            entry[1] += 1

        try:
            with entry[0]:
                yield
        finally:
            with self.__lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._hosts_locks[host]

    def solve(self, request, send, **kwargs):
        """
        Completes the challenge for the request URL, then sends the request with the clearance cookies

        :param request: The challenged request
        :type request: requests.PreparedRequest

        :param send: A function sending a request with cookies: `send(request, cookies, **kwargs)`
        :type send: callable

        :return: The response or None if the challenge has not been completed
        :rtype: requests.Response
        """
        host = get_host(request.url)

        with self.host_lock(host):
            if self.cookies.get(host) is None and not self.try_solve_with_saved_cookies(request.url):
                logger.debug('Loading webview to solve Cloudflare challenge for %s', request.url)
                try:
                    self.webview.resolve(
                        request.url,
                        # Never exit based on URL
                        intercept_url=NO_URL_RE,
                        # Cloudflare needs browser default user agent
                        user_agent=None,
                        # Browser own networking
                        use_requests=False,
                        # Every request is an opportunity to check cookies
                        additional_urls=[ANY_URL_RE],
                        request_callback=lambda _url: self.try_solve_with_saved_cookies(request.url),
                        timeout=self.timeout,
                    )
                except ChallengeTimeoutError:
                    logger.warning('Cloudflare challenge timed out after %ss: %s', self.timeout, request.url)
                except WebviewError as e:
                    logger.warning('Cloudflare challenge failed (webview error): %s: %s', request.url, e)

                # Page has settled: last chance
                self.try_solve_with_saved_cookies(request.url)

            cookies = self.cookies.get(host)

        if cookies is None:
            return None

        return send(request, cookies, **kwargs)

    def try_solve_with_saved_cookies(self, url):
        """
        Looks for a clearance cookie in webview cookie store, and caches the cookies if found

        :return: True if the clearance cookie was found
        :rtype: bool
        """
        try:
            cookie = self.webview.get_cookie(url)
        except WebviewError as e:
            logger.debug('Failed to get webview cookies: %s', e)
            return False

        if not cookie or CLEARANCE_COOKIE not in cookie:
            return False

        self.cookies.set(get_host(url), parse_cookie_map(cookie))

        return True


class CloudflareAdapter(HTTPAdapter):
    """Transport adapter bypassing Cloudflare challenges

    Once a challenge is completed for a host, clearance cookies are attached to every request to this host.
    If a challenge can't be completed, the response of the original request is returned.
    """

    def __init__(self, webview=None, cookies=None, timeout=CHALLENGE_TIMEOUT, **kwargs):
        super().__init__(**kwargs)

        if webview is None:
            from komikid.webview import get_default_webview

            webview = get_default_webview()

        self.webview = webview
        self.cookies = cookies if cookies is not None else CookieCache()
        self.solver = ChallengeSolver(self.webview, self.cookies, timeout=timeout)

        # Cookies of a previous session are cleared, new ones must be generated
        try:
            self.webview.remove_all_cookies()
        except Exception as e:
            logger.debug('Failed to clear webview cookies: %s', e)

    def get_cookie_headers(self, url):
        """
        Returns the headers to use to request an URL: clearance cookies and webview user agent

        :param url: An URL
        :type url: str

        :rtype: dict
        """
        headers = {'User-Agent': self.webview.user_agent or USER_AGENT}
        if cookies := self.cookies.get(get_host(url)):
            headers['Cookie'] = serialize_cookie_map(cookies)

        return headers

    def proceed(self, request, cookies, **kwargs):
        """Sends a copy of the request with cookies and webview user agent"""
        request = request.copy()

        # Cookies of the request take precedence
        request_cookies = parse_cookie_map(request.headers.get('Cookie', ''))
        request.headers['Cookie'] = serialize_cookie_map({**cookies, **request_cookies})
        request.headers['User-Agent'] = self.webview.user_agent or USER_AGENT

        return super().send(request, **kwargs)

    def send(self, request, **kwargs):
        cookies = self.cookies.get(get_host(request.url))
        if cookies is not None:
            return self.proceed(request, cookies, **kwargs)

        r = super().send(request, **kwargs)
        if not is_challenge_response(r):
            return r

        logger.debug('Cloudflare challenge detected (%s): %s', r.status_code, request.url)
        r.close()

        if (r := self.solver.solve(request, self.proceed, **kwargs)) is not None:
            logger.info('Succeeded bypassing Cloudflare: %s', request.url)
            return r

        logger.warning('Failed to bypass Cloudflare: %s', request.url)

        return super().send(request, **kwargs)
