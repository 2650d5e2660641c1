# SPDX-FileCopyrightText: 2021-2024 Liliana Prikler
# SPDX-License-Identifier: GPL-3.0-or-later
# Author: Valéry Febvre <vfebvre@easter-eggs.com>
# Author: Liliana Prikler <liliana.prikler@gmail.com>

from enum import IntEnum
import importlib.abc
import importlib.machinery
import os
import sys
import types


def clear_servers_finders():
    """Removes all installed servers Finders from the meta path"""
    sys.meta_path = [finder for finder in sys.meta_path if not isinstance(finder, ServerFinder)]


class ServerFinderPriority(IntEnum):
    # Position of the Finder in the meta path finders list
    LOW = 1   # appended
    HIGH = 2  # prepended


class ServerFinder(importlib.abc.MetaPathFinder):
    """Locates servers modules living outside of the package (external servers folders)

    An external folder has the same layout as `komikid/servers`: one sub-folder per server,
    containing an `__init__.py` file.
    """

    _PREFIX = 'komikid.servers.'

    def __init__(self, priority=ServerFinderPriority.LOW):
        self._paths = []
        self.priority = priority

    @property
    def paths(self):
        return self._paths

    def add_path(self, path):
        if not isinstance(path, str):
            return

        path = os.path.abspath(path)
        if not os.path.exists(path) or path in self._paths:
            return

        self._paths.append(path)

    def find_spec(self, fullname, path, target=None):
        if not fullname.startswith(self._PREFIX):
            return None

        base_dir = fullname[len(self._PREFIX):].replace('.', '/')
        for servers_path in self._paths:
            candidate_path = os.path.join(servers_path, base_dir, '__init__.py')
            if os.path.exists(candidate_path):
                return importlib.machinery.ModuleSpec(
                    fullname,
                    ServerLoader(fullname, candidate_path),
                    origin=candidate_path,
                    is_package=True,
                )

        return None

    def install(self):
        if not self._paths or self in sys.meta_path:
            return

        if self.priority == ServerFinderPriority.HIGH:
            sys.meta_path.insert(0, self)
        else:
            sys.meta_path.append(self)


class ServerLoader(importlib.machinery.SourceFileLoader):
    def create_module(self, spec):
        module = types.ModuleType(spec.name)

        # File name is set early, it helps locating relative files
        module.__file__ = spec.origin
        # A server module is always a package
        module.__path__ = [os.path.dirname(spec.origin)]

        return module
