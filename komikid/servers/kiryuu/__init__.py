# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-License-Identifier: GPL-3.0-or-later
# Author: Valéry Febvre <vfebvre@easter-eggs.com>

# Kiryuu uses MangaThemesia WordPress Theme

from gettext import gettext as _
import re

from bs4 import BeautifulSoup

from komikid.servers import Server
from komikid.servers.exceptions import NotFoundError
from komikid.servers.utils import convert_date_string
from komikid.servers.utils import get_image_url
from komikid.servers.utils import get_soup_element_inner_text
from komikid.utils import get_buffer_mime_type
from komikid.utils import is_number

IMAGE_CONTENT_TYPE = 'image/jpeg'


class Kiryuu(Server):
    id = 'kiryuu'
    name = 'Kiryuu'
    lang = 'id'

    base_url = 'https://kiryuu02.com'
    manga_list_url = base_url + '/manga/'
    manga_url = base_url + '/manga/{0}/'
    chapter_url = base_url + '/{0}/'

    requests_per_second = 4
    long_strip_genres = ['Manhwa', 'Manhua']

    date_format = '%B %d, %Y'  # ex. Januari 21, 2025

    filters = [
        {
            'key': 'status',
            'type': 'select',
            'name': _('Status'),
            'description': _('Filter by status'),
            'value_type': 'single',
            'default': '',
            'options': [
                {'key': '', 'name': _('All')},
                {'key': 'ongoing', 'name': _('Ongoing')},
                {'key': 'completed', 'name': _('Completed')},
                {'key': 'hiatus', 'name': _('Hiatus')},
            ],
        },
        {
            'key': 'type',
            'type': 'select',
            'name': _('Type'),
            'description': _('Filter by type'),
            'value_type': 'single',
            'default': '',
            'options': [
                {'key': '', 'name': _('All')},
                {'key': 'manga', 'name': _('Manga')},
                {'key': 'manhwa', 'name': _('Manhwa')},
                {'key': 'manhua', 'name': _('Manhua')},
                {'key': 'comic', 'name': _('Comic')},
            ],
        },
        {
            'key': 'order',
            'type': 'select',
            'name': _('Order'),
            'description': _('Order results by'),
            'value_type': 'single',
            'default': '',
            'options': [
                {'key': '', 'name': _('Default')},
                {'key': 'title', 'name': _('A-Z')},
                {'key': 'titlereverse', 'name': _('Z-A')},
                {'key': 'update', 'name': _('Latest Updates')},
                {'key': 'latest', 'name': _('Recently Added')},
                {'key': 'popular', 'name': _('Most Popular')},
            ],
        },
    ]

    @staticmethod
    def compute_status(label):
        if not label:
            return None

        label = label.strip()

        if re.search('ongoing|berjalan', label, re.IGNORECASE):
            return 'ongoing'
        if re.search('completed|tamat', label, re.IGNORECASE):
            return 'complete'
        if re.search('hiatus', label, re.IGNORECASE):
            return 'hiatus'
        if re.search('cancelled|dropped', label, re.IGNORECASE):
            return 'suspended'

        return None

    def get_manga_data(self, initial_data):
        """
        Returns manga data by scraping manga HTML page content

        Initial data should contain at least manga's slug (provided by search)
        """
        assert 'slug' in initial_data, 'Manga slug is missing in initial data'

        r = self.session_get(self.manga_url.format(initial_data['slug']))
        if r.status_code == 404:
            raise NotFoundError()
        if r.status_code != 200:
            return None

        mime_type = get_buffer_mime_type(r.content)
        if mime_type not in ('text/html', 'text/plain'):
            return None

        soup = BeautifulSoup(r.text, 'lxml')

        data = initial_data.copy()
        data.update(dict(
            authors=[],
            scanlators=[],
            genres=[],
            status=None,
            synopsis=None,
            chapters=[],
            server_id=self.id,
        ))

        # Name & cover
        # Thumbnail title is cleaner than page title (no `Bahasa Indonesia` suffix)
        thumbnail_element = soup.select_one('.thumb img')
        if thumbnail_element is not None and thumbnail_element.get('title'):
            data['name'] = thumbnail_element.get('title').strip()
        elif title_element := soup.select_one('.entry-title'):
            data['name'] = title_element.text.strip()
        data['cover'] = get_image_url(thumbnail_element, self.base_url)

        # Details
        for element in soup.select('.infox .fmed:-soup-contains("Author") span, .tsinfo .imptdt:-soup-contains("Author") i'):
            for author in get_soup_element_inner_text(element).split(','):
                author = author.strip().strip('-').strip()
                if author and author not in data['authors']:
                    data['authors'].append(author)

        data['genres'] = [element.text.strip() for element in soup.select('.infox .mgen a')]
        if element := soup.select_one('.tsinfo .imptdt:-soup-contains("Type") a'):
            type_ = element.text.strip()
            if type_ and type_ not in data['genres']:
                data['genres'].append(type_)

        if element := soup.select_one('.tsinfo .imptdt:-soup-contains("Status") i'):
            data['status'] = self.compute_status(get_soup_element_inner_text(element))

        if element := soup.select_one('[itemprop="description"]'):
            data['synopsis'] = element.text.strip() or None

        # Chapters
        data['chapters'] = self.get_manga_chapters_data(soup)

        return data

    def get_manga_chapters_data(self, soup):
        chapters = []

        # Site lists most recent first, chapters are returned oldest first
        for a_element in reversed(soup.select('div.eph-num a')):
            if not a_element.get('href'):
                continue

            if title_element := a_element.select_one('span.chapternum'):
                title = title_element.text.strip()
            else:
                title = a_element.text.strip()

            date = None
            if date_element := a_element.select_one('span.chapterdate'):
                date = convert_date_string(date_element.text.strip(), format=self.date_format, languages=[self.lang])

            num = None
            if (li_element := a_element.find_parent('li')) is not None and is_number(li_element.get('data-num')):
                num = li_element.get('data-num')

            chapters.append(dict(
                slug=a_element.get('href').rstrip('/').split('/')[-1],
                title=' '.join(title.split()),
                num=num,
                date=date,
            ))

        return chapters

    def get_manga_chapter_data(self, manga_slug, manga_name, chapter_slug, chapter_url):
        """
        Returns manga chapter data by scraping chapter HTML page content

        Currently, only pages are expected.
        """
        r = self.session_get(
            self.chapter_url.format(chapter_slug),
            headers={
                'Referer': self.manga_url.format(manga_slug),
            }
        )
        if r.status_code != 200:
            return None

        soup = BeautifulSoup(r.text, 'lxml')

        data = dict(
            pages=[],
        )
        for img_element in soup.select('div#readerarea img'):
            if not (image := get_image_url(img_element, self.base_url)):
                continue

            data['pages'].append(dict(
                slug=None,
                image=image,
                index=len(data['pages']) + 1,
            ))

        return data

    def get_manga_chapter_page_image(self, manga_slug, manga_name, chapter_slug, page):
        """
        Returns chapter page scan (image) content
        """
        r = self.session_get(
            page['image'],
            headers={
                'Accept': 'image/avif,image/webp,*/*',
                'Referer': self.chapter_url.format(chapter_slug),
            }
        )
        if r.status_code != 200:
            return None

        # Some images are served without a proper content type
        if r.headers.get('Content-Type') == 'application/octet-stream':
            mime_type = IMAGE_CONTENT_TYPE
        else:
            mime_type = get_buffer_mime_type(r.content)
            if not mime_type.startswith('image'):
                return None

        return dict(
            buffer=r.content,
            mime_type=mime_type,
            name='{0:03d}.{1}'.format(page['index'], mime_type.split('/')[-1]),
        )

    def get_manga_url(self, slug, url):
        """
        Returns manga absolute URL
        """
        return self.manga_url.format(slug)

    def get_manga_list(self, title=None, status=None, type=None, order=None, page=1):
        params = dict(
            page=page,
            status=status or '',
            type=type or '',
            order=order or '',
        )
        if title is not None:
            params['title'] = title

        r = self.session_get(self.manga_list_url, params=params, headers={'Referer': f'{self.base_url}/'})
        if r.status_code != 200:
            return None

        soup = BeautifulSoup(r.text, 'lxml')

        results = []
        for element in soup.select('div.listupd div.bs'):
            if (a_element := element.select_one('a')) is None or not a_element.get('href'):
                continue

            results.append(dict(
                slug=a_element.get('href').rstrip('/').split('/')[-1],
                name=a_element.get('title', '').strip(),
                cover=get_image_url(element.select_one('img'), self.base_url),
            ))

        return results

    def get_latest_updates(self, page=1, status=None, type=None, **_filters):
        return self.get_manga_list(status=status, type=type, order='update', page=page)

    def get_most_populars(self, page=1, status=None, type=None, **_filters):
        return self.get_manga_list(status=status, type=type, order='popular', page=page)

    def search(self, term, page=1, status=None, type=None, order=None, **_filters):
        return self.get_manga_list(title=term, status=status, type=type, order=order, page=page)
