# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-License-Identifier: GPL-3.0-or-later
# Author: Valéry Febvre <vfebvre@easter-eggs.com>

# DoujinDesu uses EastManga WordPress Theme

from gettext import gettext as _
import os
import re

from bs4 import BeautifulSoup

from komikid.servers import Server
from komikid.servers.exceptions import NotFoundError
from komikid.servers.utils import convert_date_string
from komikid.servers.utils import get_image_url
from komikid.servers.utils import get_soup_element_inner_text
from komikid.servers.utils import slugify
from komikid.utils import get_buffer_mime_type
from komikid.utils import is_number

CHAPTER_LIST_RE = re.compile(r'\d+[-–]?\d*\..+?<br\s*/?>', re.IGNORECASE)
HTML_TAG_RE = re.compile(r'<[^>]*>')

GENRES = (
    'Age Progression', 'Age Regression', 'Ahegao', 'All The Way Through', 'Amputee', 'Anal', 'Anorexia', 'Apron',
    'Artist CG', 'Aunt', 'Bald', 'Bestiality', 'Big Ass', 'Big Breast', 'Big Penis', 'Bike Shorts', 'Bikini', 'Birth',
    'Bisexual', 'Blackmail', 'Blindfold', 'Bloomers', 'Blowjob', 'Body Swap', 'Bodysuit', 'Bondage', 'Bowjob',
    'Business Suit', 'Cheating', 'Collar', 'Collor', 'Condom', 'Cousin', 'Crossdressing', 'Cunnilingus', 'Dark Skin',
    'Daughter', 'Defloration', 'Demon', 'Demon Girl', 'Dick Growth', 'DILF', 'Double Penetration', 'Drugs', 'Drunk',
    'Elf', 'Emotionless Sex', 'Exhibitionism', 'Eyepatch', 'Females Only', 'Femdom', 'Filming', 'Fingering', 'Footjob',
    'Full Color', 'Furry', 'Futanari', 'Garter Belt', 'Gender Bender', 'Ghost', 'Glasses', 'Gore', 'Group', 'Guro',
    'Gyaru', 'Hairy', 'Handjob', 'Harem', 'Horns', 'Huge Breast', 'Huge Penis', 'Humiliation', 'Impregnation', 'Incest',
    'Inflation', 'Insect', 'Inseki', 'Inverted Nipples', 'Invisible', 'Kemomimi', 'Kimono', 'Lactation', 'Leotard',
    'Lingerie', 'Loli', 'Lolipai', 'Maid', 'Males', 'Males Only', 'Masturbation', 'Miko', 'MILF', 'Mind Break',
    'Mind Control', 'Minigirl', 'Miniguy', 'Monster', 'Monster Girl', 'Mother', 'Multi-work Series', 'Muscle',
    'Nakadashi', 'Necrophilia', 'Netorare', 'Niece', 'Nipple Fuck', 'Nurse', 'Old Man', 'Only', 'Oyakodon', 'Paizuri',
    'Pantyhose', 'Possession', 'Pregnant', 'Prostitution', 'Rape', 'Rimjob', 'Scat', 'School Uniform', 'Sex Toys',
    'Shemale', 'Shota', 'Sister', 'Sleeping', 'Slime', 'Small Breast', 'Snuff', 'Sole Female', 'Sole Male', 'Stocking',
    'Story Arc', 'Sumata', 'Sweating', 'Swimsuit', 'Tanlines', 'Teacher', 'Tentacles', 'Tomboy', 'Tomgirl', 'Torture',
    'Twins', 'Twintails', 'Uncensored', 'Unusual Pupils', 'Virginity', 'Webtoon', 'Widow', 'X-Ray', 'Yandere', 'Yaoi',
    'Yuri',
)


class Doujindesu(Server):
    id = 'doujindesu'
    name = 'DoujinDesu'
    lang = 'id'
    is_nsfw_only = True
    has_cf = True

    base_url = os.environ.get('KOMIKID_DOUJINDESU_URL', 'https://doujindesu.tv').rstrip('/')
    long_strip_genres = ['Manhwa', 'Webtoon']

    date_format = '%A, %d %B %Y'  # ex. Senin, 12 Februari 2024

    filters = [
        {
            'key': 'author',
            'type': 'entry',
            'name': _('Author'),
            'description': _('Filter by author. Can not be combined with a search term or other filters'),
            'default': '',
        },
        {
            'key': 'group',
            'type': 'entry',
            'name': _('Group'),
            'description': _('Filter by group. Can not be combined with a search term or other filters'),
            'default': '',
        },
        {
            'key': 'series',
            'type': 'entry',
            'name': _('Series'),
            'description': _('Filter by series. Can not be combined with a search term or other filters'),
            'default': '',
        },
        {
            'key': 'character',
            'type': 'entry',
            'name': _('Character'),
            'description': _('Filter by character name (partial match)'),
            'default': '',
        },
        {
            'key': 'status',
            'type': 'select',
            'name': _('Status'),
            'description': _('Filter by status'),
            'value_type': 'single',
            'default': '',
            'options': [
                {'key': '', 'name': _('All')},
                {'key': 'Publishing', 'name': _('Ongoing')},
                {'key': 'Finished', 'name': _('Completed')},
            ],
        },
        {
            'key': 'category',
            'type': 'select',
            'name': _('Category'),
            'description': _('Filter by category'),
            'value_type': 'single',
            'default': '',
            'options': [
                {'key': '', 'name': _('All')},
                {'key': 'Doujinshi', 'name': _('Doujinshi')},
                {'key': 'Manga', 'name': _('Manga')},
                {'key': 'Manhwa', 'name': _('Manhwa')},
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
                {'key': '', 'name': _('All')},
                {'key': 'title', 'name': _('A-Z')},
                {'key': 'update', 'name': _('Latest Updates')},
                {'key': 'latest', 'name': _('Recently Added')},
                {'key': 'popular', 'name': _('Most Popular')},
            ],
        },
        {
            'key': 'genres',
            'type': 'select',
            'name': _('Genres'),
            'description': _('Filter by genres'),
            'value_type': 'multiple',
            'options': [{'key': genre, 'name': genre, 'default': False} for genre in GENRES],
        },
    ]

    def __init__(self):
        self.manga_list_url = self.base_url + '/manga/page/{0}/'
        self.manga_url = self.base_url + '/manga/{0}/'
        self.chapter_url = self.base_url + '/{0}/'
        self.pages_url = self.base_url + '/themes/ajax/ch.php'

        super().__init__()

    @staticmethod
    def compute_status(label):
        label = label.strip().lower()

        if 'publishing' in label:
            return 'ongoing'
        if 'finished' in label:
            return 'complete'

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

        info_element = soup.select_one('section.metadata')
        if info_element is None or (title_element := info_element.select_one('h1.title')) is None:
            return None

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

        def get_row_values(label):
            return [
                get_soup_element_inner_text(element)
                for element in info_element.select(f'td:-soup-contains("{label}") ~ td')
            ]

        # Name & cover
        alternative_title = None
        if alter_element := title_element.select_one('span.alter'):
            alternative_title = alter_element.text.strip()
            alter_element.extract()
        data['name'] = title_element.text.strip()
        data['cover'] = get_image_url(soup.select_one('figure.thumbnail img'), self.base_url)

        # Details
        data['authors'] = get_row_values('Author')
        data['scanlators'] = get_row_values('Group')
        data['genres'] = [element.text.strip() for element in info_element.select('div.tags a')]
        for type_ in get_row_values('Type'):
            if type_ not in data['genres']:
                data['genres'].append(type_)
        if status := get_row_values('Status'):
            data['status'] = self.compute_status(status[0])

        # Synopsis
        # Some descriptions contain a chapters list (ex: `1. Title<br>`), it's moved at the end of the synopsis
        info = []
        if alternative_title:
            info.append('{0}: {1}'.format(_('Alternative title'), alternative_title))
        if series := get_row_values('Series'):
            info.append('{0}: {1}'.format(_('Series'), ', '.join(series)))
        if characters := get_row_values('Character'):
            info.append('{0}: {1}'.format(_('Characters'), ', '.join(characters)))

        paragraphs = []
        chapters_lines = []
        for p_element in info_element.select('.pb-2 > p'):
            content = p_element.decode_contents()
            for line in CHAPTER_LIST_RE.findall(content):
                chapters_lines.append(HTML_TAG_RE.sub('', line).strip())
                content = content.replace(line, '', 1)

            if text := BeautifulSoup(content, 'lxml').text.strip():
                paragraphs.append(text)

        synopsis = []
        if info:
            synopsis.append('\n'.join(info))
        synopsis += paragraphs
        if chapters_lines:
            synopsis.append('{0}\n{1}'.format(_('Chapters:'), '\n'.join(chapters_lines)))
        data['synopsis'] = '\n\n'.join(synopsis) or None

        # Chapters
        for li_element in reversed(soup.select('#chapter_list li')):
            if (a_element := li_element.select_one('div.epsleft span.lchx a')) is None:
                continue

            num = None
            if num_element := li_element.select_one('div.epsleft span.eps'):
                num = num_element.text.strip().split(' ')[0]
                if not is_number(num):
                    num = None

            date = None
            if date_element := li_element.select_one('div.epsleft span.date'):
                date = convert_date_string(date_element.text.strip(), format=self.date_format, languages=[self.lang])

            data['chapters'].append(dict(
                slug=a_element.get('href').rstrip('/').split('/')[-1],
                title=a_element.text.strip(),
                num=num,
                date=date,
            ))

        return data

    def get_manga_chapter_data(self, manga_slug, manga_name, chapter_slug, chapter_url):
        """
        Returns manga chapter data

        Chapter HTML page provides an ID, pages images are then retrieved via an AJAX request.
        """
        chapter_url = self.chapter_url.format(chapter_slug)

        r = self.session_get(chapter_url, headers={'Referer': self.manga_url.format(manga_slug)})
        if r.status_code != 200:
            return None

        soup = BeautifulSoup(r.text, 'lxml')

        if (reader_element := soup.select_one('#reader[data-id]')) is None:
            return None

        r = self.session_post(
            self.pages_url,
            data={'id': reader_element.get('data-id')},
            headers={
                'Origin': self.base_url,
                'Referer': chapter_url,
                'X-Requested-With': 'XMLHttpRequest',
            }
        )
        if r.status_code != 200:
            return None

        soup = BeautifulSoup(r.text, 'lxml')

        data = dict(
            pages=[],
        )
        for index, img_element in enumerate(soup.select('img'), start=1):
            if image := get_image_url(img_element, self.base_url):
                data['pages'].append(dict(
                    slug=None,
                    image=image,
                    index=index,
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

        mime_type = get_buffer_mime_type(r.content)
        if not mime_type.startswith('image'):
            return None

        return dict(
            buffer=r.content,
            mime_type=mime_type,
            name='{0:03d}.{1}'.format(page['index'], mime_type.split('/')[-1]),
        )

    def get_manga_list(self, term=None, author=None, group=None, series=None, character=None, status=None, category=None,
                       order=None, genres=None, page=1):
        url = None
        params = None

        if not term:
            # Author, group and series have their own pages (in this order of priority)
            for path, value in (('author', author), ('group', group), ('series', series)):
                if not value or not (slug := slugify(value)):
                    continue

                url = f'{self.base_url}/{path}/{slug}/'
                if page > 1:
                    url += f'page/{page}/'
                break

        if url is None:
            url = self.manga_list_url.format(page)
            params = [
                ('title', term or ''),
                ('character', character or ''),
                ('statusx', status or ''),
                ('typex', category or ''),
                ('order', order or ''),
            ]
            for genre in genres or []:
                params.append(('genre[]', genre))

        r = self.session_get(url, params=params, headers={'Referer': f'{self.base_url}/'})
        if r.status_code != 200:
            return None

        soup = BeautifulSoup(r.text, 'lxml')

        results = []
        for element in soup.select('#archives > div.entries > article'):
            a_element = element.select_one('a')
            name_element = element.select_one('h3.title')
            if a_element is None or name_element is None:
                continue

            results.append(dict(
                slug=a_element.get('href').rstrip('/').split('/')[-1],
                name=name_element.text.strip(),
                cover=get_image_url(element.select_one('a > figure.thumbnail > img'), self.base_url),
            ))

        return results

    def get_manga_url(self, slug, url):
        """
        Returns manga absolute URL
        """
        return self.manga_url.format(slug)

    def get_latest_updates(self, page=1, **_filters):
        return self.get_manga_list(order='update', page=page)

    def get_most_populars(self, page=1, **_filters):
        return self.get_manga_list(order='popular', page=page)

    def search(self, term, page=1, **filters):
        return self.get_manga_list(term=term, page=page, **filters)
