# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-License-Identifier: GPL-3.0-or-later
# Author: Valéry Febvre <vfebvre@easter-eggs.com>

from abc import ABC
from abc import abstractmethod
import logging
import os

import requests

from komikid.consts import USER_AGENT
from komikid.servers.cloudflare import get_cloudflare_adapter
from komikid.servers.loader import clear_servers_finders
from komikid.servers.loader import ServerFinder
from komikid.servers.loader import ServerFinderPriority
from komikid.servers.utils import get_servers_modules
from komikid.utils import BaseServer

# https://www.localeplanet.com/icu/
LANGUAGES = dict(
    id='Bahasa Indonesia',
    en='English',
    ja='日本語',
)

logger = logging.getLogger('komikid.servers')


class Server(BaseServer, ABC):
    id: str
    name: str
    lang: str

    base_url = None
    logo_url = None

    filters = []
    has_cf = False  # Whether requests must go through the Cloudflare challenge interceptor
    is_nsfw = False
    is_nsfw_only = False
    long_strip_genres = []

    def __init__(self):
        if self.session is None:
            self.session = self.create_session()

    def create_session(self):
        session = requests.Session()
        session.headers.update(self.headers or {'User-Agent': USER_AGENT})

        if self.has_cf:
            adapter = get_cloudflare_adapter()
            session.mount('http://', adapter)
            session.mount('https://', adapter)

        return session

    @classmethod
    def get_manga_initial_data_from_url(cls, url):
        slug = list(filter(None, url.split('?')[0].split('/')))[-1]

        return dict(slug=slug)

    @abstractmethod
    def get_latest_updates(self, page=1, **filters):
        """This method must return a list of manga data dictionaries (see `search` method)"""

    @abstractmethod
    def get_manga_data(self, initial_data):
        """This method must return a dictionary.

        Data are usually obtained by scrapping an HTML page.

        The URL of the HTML page is forged using a slug provided by method `search`
        and available in `initial_data` argument.

        By convention, returned dict MUST contain the following keys:
        - name: Name of the manga
        - authors: List of authors (str) [optional]
        - scanlators: List of scanlators (str) [optional]
        - genres: List of genres (str) [optional]
        - status: Status of the manga (ongoing, complete, suspended, hiatus) [optional]
        - synopsis: Synopsis of the manga [optional]
        - chapters: List of chapters (See description below)
        - server_id: The server ID
        - cover: Absolute URL of the cover

        By convention, a chapter is a dictionary which MUST contain the following keys:
        - slug: A slug (str) allowing to forge HTML page URL of the chapter
        - url: URL of chapter HTML page if `slug` is not usable
        - title: Title of the chapter
        - num: Number of the chapter [optional]
        - date: Publish date of the chapter, `None` if unknown or unparsable [optional]
        """

    @abstractmethod
    def get_manga_chapter_data(self, manga_slug, manga_name, chapter_slug, chapter_url):
        """This method must return a dictionary with a `pages` key: the list of pages.

        By convention, each page is a dictionary which MUST contain one of the 3 keys `slug`, `image` or `url`:
        - slug : A slug (str) allowing to forge image URL of the page
        - image: Absolute URL of the page image
        - url: URL of the HTML page to scrape to get the URL of the page image

        The page data are passed to `get_manga_chapter_page_image` method.
        """

    @abstractmethod
    def get_manga_chapter_page_image(self, manga_slug, manga_name, chapter_slug, page):
        """This method must return a dictionary with the following keys:

        - buffer: Image buffer
        - mime_type: Image MIME type
        - name: Filename of the image
        """

    @abstractmethod
    def get_manga_url(self, slug, url):
        """This method must return absolute URL of the manga"""

    @abstractmethod
    def get_most_populars(self, page=1, **filters):
        """This method must return a list of manga data dictionaries (see `search` method)"""

    def is_long_strip(self, data):
        """
        Returns True if the manga is a long strip, False otherwise.

        The server shall not modify `data` to form the return value.
        """
        if not self.long_strip_genres:
            return False

        for genre in data['genres']:
            if genre in self.long_strip_genres:
                return True

        return False

    @abstractmethod
    def search(self, term, page=1, **filters):
        """This method must return a list of dictionaries.

        By convention, each dictionary MUST contain the following keys:
        - slug: A slug (str) allowing to forge URL of the HTML page of the manga
        - url: URL of manga HTML page if `slug` is not usable
        - name: Name of the manga
        - cover: Absolute URL of the manga cover [optional]

        The data are passed to `get_manga_data` method.
        """


def init_servers_modules(servers_path=None, reload_modules=False):
    """
    Installs the Finder of external servers modules

    External servers modules are searched in `servers_path` or, if not provided,
    in the folder defined by `KOMIKID_SERVERS_PATH` environment variable.
    They take precedence over internal servers modules.
    """
    clear_servers_finders()

    server_finder = ServerFinder(priority=ServerFinderPriority.HIGH)
    server_finder.add_path(servers_path or os.environ.get('KOMIKID_SERVERS_PATH'))
    server_finder.install()

    if reload_modules:
        get_servers_modules(reload=reload_modules)
