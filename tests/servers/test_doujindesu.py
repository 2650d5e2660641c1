# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-FileContributor: Valéry Febvre <vfebvre@easter-eggs.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

import datetime
import logging

import pytest
from pytest_steps import test_steps

from . import MockResponse
from . import plug_fake_session
from . import PNG_BUFFER
from komikid.servers.exceptions import NotFoundError
from komikid.utils import log_error_traceback

logging.basicConfig(level=logging.DEBUG)

LISTING_HTML = '''<!DOCTYPE html>
<html>
<head><title>DoujinDesu</title></head>
<body>
<div id="archives">
  <div class="entries">
    <article class="entry">
      <a href="https://doujindesu.tv/manga/ore-no-kanojo/" title="Ore no Kanojo">
        <figure class="thumbnail"><img src="https://desu.photos/storage/uploads/ore-no-kanojo.jpg"></figure>
        <div class="metadata"><h3 class="title">Ore no Kanojo</h3></div>
      </a>
    </article>
    <article class="entry">
      <a href="https://doujindesu.tv/manga/natsu-no-hi/">
        <figure class="thumbnail"><img src="/placeholder.gif" data-src="//desu.photos/storage/uploads/natsu.jpg"></figure>
        <div class="metadata"><h3 class="title">Natsu no Hi</h3></div>
      </a>
    </article>
  </div>
</div>
</body>
</html>
'''

MANGA_HTML = '''<!DOCTYPE html>
<html>
<head><title>Ore no Kanojo - DoujinDesu</title></head>
<body>
<main>
<figure class="thumbnail"><img src="/storage/uploads/ore-no-kanojo.jpg"></figure>
<section class="metadata">
  <h1 class="title">Ore no Kanojo<span class="alter">俺の彼女</span></h1>
  <table>
    <tbody>
      <tr><td>Status</td><td><a href="/status/publishing/">Publishing</a></td></tr>
      <tr><td>Type</td><td><a href="/type/manga/">Manga</a></td></tr>
      <tr><td>Series</td><td><a href="/series/original/">Original</a></td></tr>
      <tr><td>Author</td><td><a href="/author/kaito-sensei/">Kaito Sensei</a></td></tr>
      <tr><td>Group</td><td><a href="/group/circle-x/">Circle X</a></td></tr>
      <tr><td>Character</td><td><a href="/character/yui/">Yui</a></td></tr>
    </tbody>
  </table>
  <div class="tags"><a href="/genre/romance/">Romance</a><a href="/genre/full-color/">Full Color</a></div>
  <div class="pb-2">
    <p>A short story about a summer.</p>
    <p>1. First night<br>2. Second night<br></p>
  </div>
</section>
<div id="chapter_list">
  <ul>
    <li>
      <div class="epsleft">
        <span class="lchx"><a href="https://doujindesu.tv/ore-no-kanojo-chapter-2/">Chapter 2</a></span>
        <span class="eps">2</span>
        <span class="date">Senin, 12 Februari 2024</span>
      </div>
    </li>
    <li>
      <div class="epsleft">
        <span class="lchx"><a href="https://doujindesu.tv/ore-no-kanojo-chapter-1/">Chapter 1</a></span>
        <span class="eps">1</span>
        <span class="date"></span>
      </div>
    </li>
  </ul>
</div>
</main>
</body>
</html>
'''

CHAPTER_HTML = '''<!DOCTYPE html>
<html>
<head><title>Ore no Kanojo Chapter 1</title></head>
<body><main id="reader" data-id="12345"></main></body>
</html>
'''

PAGES_HTML = '''<img src="https://desu.photos/storage/12345/01.jpg">
<img src="https://desu.photos/storage/12345/02.jpg">
'''


@pytest.fixture
def doujindesu_server():
    from komikid.servers.doujindesu import Doujindesu

    server = Doujindesu()
    base_url = server.base_url

    plug_fake_session(server, {
        f'{base_url}/manga/page/1/': MockResponse(LISTING_HTML),
        f'{base_url}/manga/ore-no-kanojo/': MockResponse(MANGA_HTML),
        f'{base_url}/ore-no-kanojo-chapter-1/': MockResponse(CHAPTER_HTML),
        f'{base_url}/themes/ajax/ch.php': MockResponse(PAGES_HTML),
        'https://desu.photos/storage/12345/01.jpg': MockResponse(PNG_BUFFER, headers={'Content-Type': 'image/png'}),
        f'{base_url}/author/kaito-sensei/': MockResponse(LISTING_HTML),
    })

    return server


@test_steps('get_latest_updates', 'get_most_popular', 'search', 'get_manga_data', 'get_chapter_data', 'get_page_image')
def test_doujindesu(doujindesu_server):
    session = doujindesu_server.session_get.__self__

    # Get latest updates
    print('Get latest updates')
    try:
        response = doujindesu_server.get_latest_updates()
    except Exception as e:
        response = None
        log_error_traceback(e)

    assert response == [
        dict(
            slug='ore-no-kanojo',
            name='Ore no Kanojo',
            cover='https://desu.photos/storage/uploads/ore-no-kanojo.jpg',
        ),
        dict(
            slug='natsu-no-hi',
            name='Natsu no Hi',
            cover='https://desu.photos/storage/uploads/natsu.jpg',
        ),
    ]
    assert ('order', 'update') in session.last_request()['params']
    yield

    # Get most popular
    print('Get most popular')
    response = doujindesu_server.get_most_populars()

    assert len(response) == 2
    assert ('order', 'popular') in session.last_request()['params']
    yield

    # Search
    print('Search')
    try:
        response = doujindesu_server.search('ore', genres=['Romance', 'Full Color'], status='Publishing')
        slug = response[0]['slug']
    except Exception as e:
        slug = None
        log_error_traceback(e)

    assert slug == 'ore-no-kanojo'
    params = session.last_request()['params']
    assert ('title', 'ore') in params
    assert ('statusx', 'Publishing') in params
    assert [value for name, value in params if name == 'genre[]'] == ['Romance', 'Full Color']
    yield

    # Get manga data
    print('Get manga data')
    try:
        response = doujindesu_server.get_manga_data(dict(slug=slug))
        chapter_slug = response['chapters'][0]['slug']
    except Exception as e:
        response = None
        chapter_slug = None
        log_error_traceback(e)

    assert chapter_slug == 'ore-no-kanojo-chapter-1'
    assert response['name'] == 'Ore no Kanojo'
    assert response['cover'] == f'{doujindesu_server.base_url}/storage/uploads/ore-no-kanojo.jpg'
    assert response['authors'] == ['Kaito Sensei']
    assert response['scanlators'] == ['Circle X']
    assert response['genres'] == ['Romance', 'Full Color', 'Manga']
    assert response['status'] == 'ongoing'
    assert response['server_id'] == 'doujindesu'
    assert 'Alternative title: 俺の彼女' in response['synopsis']
    assert 'A short story about a summer.' in response['synopsis']
    assert response['synopsis'].endswith('Chapters:\n1. First night\n2. Second night')
    assert [chapter['num'] for chapter in response['chapters']] == ['1', '2']
    assert response['chapters'][0]['date'] is None
    assert response['chapters'][1]['date'] == datetime.date(2024, 2, 12)
    assert doujindesu_server.is_long_strip(response) is False
    yield

    # Get chapter data
    print('Get chapter data')
    try:
        response = doujindesu_server.get_manga_chapter_data(slug, None, chapter_slug, None)
        page = response['pages'][0]
    except Exception as e:
        page = None
        log_error_traceback(e)

    assert page == dict(slug=None, image='https://desu.photos/storage/12345/01.jpg', index=1)
    assert len(response['pages']) == 2
    post = session.last_request('POST')
    assert post['data'] == {'id': '12345'}
    assert post['headers']['X-Requested-With'] == 'XMLHttpRequest'
    yield

    # Get page image
    print('Get page image')
    try:
        response = doujindesu_server.get_manga_chapter_page_image(slug, None, chapter_slug, page)
    except Exception as e:
        response = None
        log_error_traceback(e)

    assert response['mime_type'] == 'image/png'
    assert response['name'] == '001.png'
    assert response['buffer'] == PNG_BUFFER
    yield


def test_doujindesu_search_by_author(doujindesu_server):
    session = doujindesu_server.session_get.__self__
    base_url = doujindesu_server.base_url

    response = doujindesu_server.search('', author='Kaito Sensei', group='Circle X')

    assert len(response) == 2
    assert session.last_request()['url'] == f'{base_url}/author/kaito-sensei/'
    assert session.last_request()['params'] is None

    doujindesu_server.search('', page=2, group='Circle X')
    assert session.last_request()['url'] == f'{base_url}/group/circle-x/page/2/'


def test_doujindesu_not_found(doujindesu_server):
    with pytest.raises(NotFoundError):
        doujindesu_server.get_manga_data(dict(slug='unknown'))


def test_doujindesu_missing_reader(doujindesu_server):
    session = doujindesu_server.session_get.__self__
    session.routes[f'{doujindesu_server.base_url}/ore-no-kanojo-chapter-2/'] = MockResponse('<html><body></body></html>')

    assert doujindesu_server.get_manga_chapter_data('ore-no-kanojo', None, 'ore-no-kanojo-chapter-2', None) is None


def test_doujindesu_filters():
    from komikid.servers.doujindesu import Doujindesu

    filters = {filter_['key']: filter_ for filter_ in Doujindesu.filters}

    assert list(filters) == ['author', 'group', 'series', 'character', 'status', 'category', 'order', 'genres']
    assert filters['genres']['value_type'] == 'multiple'
    assert {'key': 'Yuri', 'name': 'Yuri', 'default': False} in filters['genres']['options']
