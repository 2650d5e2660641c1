# SPDX-FileCopyrightText: 2019-2025 Valéry Febvre
# SPDX-License-Identifier: GPL-3.0-or-later
# Author: Valéry Febvre <vfebvre@easter-eggs.com>

import datetime
import glob
import importlib
import inspect
import logging
from operator import itemgetter
import os
from pkgutil import iter_modules
import re
import sys
from urllib.parse import urljoin

from bs4 import NavigableString
import dateparser

from komikid.servers.loader import ServerFinder

logger = logging.getLogger(__name__)

IMAGE_URL_ATTRIBUTES = (
    'data-lzl-src',
    'data-lazy-src',
    'data-src',
    'data-cfsrc',
    'srcset',
    'src',
)


def convert_date_string(date_string, format=None, languages=None):
    """
    Convert a date string into a date object

    :param date_string: A string representing date in a recognizably valid format
    :type date_string: str

    :param format: A format string using directives as given `here <https://docs.python.org/3/library/datetime.html#strftime-and-strptime-behavior>`_
    :type format: str

    :param languages: A list of language codes, e.g. ['en', 'id', 'pt_BR']
    :type languages: list

    :return: A date object representing parsed date string if successful, `None` otherwise
    :rtype: datetime.date
    """

    if not date_string:
        return None

    # Check if languages are supported by dateparser
    # And detect whether a language code should be treated as a locale code
    if languages:
        language_locale = dateparser.data.language_locale_dict
        supported_languages = set()
        supported_locales = set()

        for code in languages:
            # Some codes should not be treated as locales
            if code.startswith(('zh_',)):
                code = code.replace('_', '-', 1)

            if '_' in code:
                lang, country = code.split('_')
            else:
                lang, country = code, None

            if lang not in language_locale:
                # Not supported
                continue

            if country and f'{lang}-{country}' in language_locale[lang]:
                # Code is a locale code
                supported_locales.add(f'{lang}-{country}')

            supported_languages.add(lang)

        languages = list(supported_languages) or None
        locales = list(supported_locales) or None
    else:
        locales = None

    d = None
    if format is not None:
        try:
            d = datetime.datetime.strptime(date_string, format)
        except ValueError:
            pass

    if d is None:
        try:
            d = dateparser.parse(date_string, languages=languages, locales=locales)
        except Exception as e:
            logger.debug('Failed to parse date %s: %s', date_string, e)

    return d.date() if d else None


def get_image_url(element, base_url=None):
    """
    Returns the URL of an image element, lazy-loading attributes included

    :param element: An `img` tag
    :type element: bs4.element.Tag

    :param base_url: URL against which a relative URL is made absolute (optional)
    :type base_url: str

    :return: The image URL or None
    :rtype: str
    """
    if element is None:
        return None

    for attr in IMAGE_URL_ATTRIBUTES:
        value = element.get(attr)
        if not value or not value.strip():
            continue

        url = value.strip()
        if attr == 'srcset':
            # First candidate
            url = url.split(' ')[0]
        if url.startswith('//'):
            url = f'https:{url}'  # noqa: E231
        elif base_url:
            url = urljoin(base_url, url)

        return url

    return None


def get_server_class_name_by_id(id):
    """
    Returns a server class name from its ID

    `id` must respect the following format: `name[_lang][_whatever][:module_name]`

    + `name` is the name of the server.
    + `lang` is the language of the server (optional).
        Only useful when server belongs to a multi-languages server.
    + `whatever` is any string (optional).
        Only useful when a server must be backed up because it's dead.
    + `module_name` is the name of the module in which the server is defined (optional).
        Only useful if `module_name` is different from `name`.

    :param id: A server ID
    :type id: str

    :return: The server class name corresponding to ID
    :rtype: str
    """
    return id.split(':')[0].capitalize()


def get_server_dir_name_by_id(id):
    name = id.split(':')[0]
    # Remove _whatever
    name = '_'.join(filter(None, name.split('_')[:2]))

    return name


def get_server_main_id_by_id(id):
    return id.split(':')[0].split('_')[0]


def get_server_module_name_by_id(id):
    return id.split(':')[-1].split('_')[0]


def get_servers_list(include_disabled=False, order_by=('lang', 'name')):
    servers = []
    for module in get_servers_modules():
        for _name, obj in inspect.getmembers(module, inspect.isclass):
            if obj.__module__ != module.__name__:
                # Imported class (base class for ex.)
                continue
            if not hasattr(obj, 'id') or not hasattr(obj, 'name') or not hasattr(obj, 'lang'):
                continue
            if inspect.isabstract(obj):
                continue

            if not include_disabled and obj.status == 'disabled':
                continue

            servers.append(dict(
                id=obj.id,
                name=obj.name,
                lang=obj.lang,
                has_cf=obj.has_cf,
                is_nsfw=obj.is_nsfw,
                is_nsfw_only=obj.is_nsfw_only,
                logo_url=obj.logo_url,
                module=module,
                class_name=get_server_class_name_by_id(obj.id),
            ))

    return sorted(servers, key=itemgetter(*order_by))


def get_servers_modules(reload=False):
    def import_external_modules(servers_path, modules, modules_names):
        count = 0
        for path in glob.glob(os.path.join(servers_path, '*')):
            if not os.path.isdir(path):
                continue

            name = os.path.basename(path)
            if name == '__pycache__':
                continue

            module_name = f'komikid.servers.{name}'
            if module_name in modules_names:
                continue

            module = importlib.import_module(module_name)
            if reload:
                module = importlib.reload(module)
            modules.append(module)
            modules_names.append(module_name)
            count += 1

        if count > 0:
            logger.info('Import %d servers modules from external folder: %s', count, servers_path)

        return count

    def import_internal_modules(namespace, modules, modules_names):
        count = 0
        # Specifying the second argument (prefix) to iter_modules makes the returned name an absolute name
        for _finder, module_name, ispkg in iter_modules(namespace.__path__, namespace.__name__ + '.'):
            if module_name in modules_names or not ispkg:
                continue

            module = importlib.import_module(module_name)
            if reload:
                module = importlib.reload(module)
            modules.append(module)
            modules_names.append(module_name)
            count += 1

        if count > 0:
            logger.info('Import %d servers modules from internal folder', count)

        return count

    modules = []
    modules_names = []

    # External servers first: they take precedence over internal ones with the same name
    for finder in sys.meta_path:
        if not isinstance(finder, ServerFinder):
            continue

        for servers_path in finder.paths:
            if os.path.exists(servers_path):
                import_external_modules(servers_path, modules, modules_names)

    import komikid.servers

    import_internal_modules(komikid.servers, modules, modules_names)

    return modules


def get_soup_element_inner_text(tag, text=None, recursive=True):
    """
    Returns inner text of a tag

    :param tag: A Tag
    :type tag: bs4.element.Tag

    :param text: A optional list of text strings to prepend
    :type text: list of str

    :param recursive: Recursively walk in children or not
    :type recursive: bool

    :return: The inner text of tag
    :rtype: str
    """
    if text is None:
        text = []

    for el in tag:
        if isinstance(el, NavigableString):
            text.append(el.strip())
        elif recursive:
            get_soup_element_inner_text(el, text)

    return ' '.join(filter(None, text)).strip()


def slugify(value):
    """
    Returns a multi-words slug: lowercase, only alphanumeric characters and dashes

    :param value: A string
    :type value: str

    :return: The slug
    :rtype: str
    """
    value = re.sub(r'[^a-z0-9\s-]', '', value.strip().lower())

    return re.sub(r'\s+', '-', value)
