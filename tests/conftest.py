"""Pytest configuration file"""

import os

import pytest

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'tests.settings')

import django

from treegrid.conf import TreeConfig
from treegrid.editor import TreeEditor
from treegrid.exceptions import DataSourceError
from treegrid.notifications import BaseNotifier
from treegrid.sources import DataSource


def pytest_report_header(config):
    return 'Django: ' + django.get_version()


def pytest_configure(config):
    django.setup()


RECORDS = [
    {'id': 1, 'parentId': None, 'name': 'Head office', 'isActive': True},
    {'id': 2, 'parentId': 1, 'name': 'Sales', 'isActive': True},
    {'id': 3, 'parentId': 1, 'name': 'Engineering', 'isActive': True},
    {'id': 4, 'parentId': 3, 'name': 'Platform', 'isActive': False},
    {'id': 5, 'parentId': None, 'name': 'Branch', 'isActive': True},
]


class MemorySource(DataSource):
    """In-memory data source that records every call.

    Names added to ``fail`` make the matching call raise a
    ``DataSourceError``.
    """

    def __init__(self, records):
        self.records = [dict(record) for record in records]
        self.calls = []
        self.fail = set()
        self.next_id = max([r['id'] for r in self.records] or [0]) + 1

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise DataSourceError('%s rejected by server' % name, status=400)

    def _get(self, pk):
        for record in self.records:
            if record['id'] == pk:
                return record
        raise DataSourceError('%r not found' % pk, status=404)

    def calls_to(self, name):
        return [call[1:] for call in self.calls if call[0] == name]

    def list(self):
        self._call('list')
        return [dict(record) for record in self.records]

    def create(self, payload):
        self._call('create', payload)
        record = dict(payload, id=self.next_id)
        self.next_id += 1
        self.records.append(record)
        return dict(record)

    def update(self, pk, payload):
        self._call('update', pk, payload)
        record = self._get(pk)
        record.update(payload)
        return dict(record)

    def toggle(self, pk):
        self._call('toggle', pk)
        record = self._get(pk)
        record['isActive'] = not record['isActive']
        return dict(record)


class RecordingNotifier(BaseNotifier):
    def __init__(self):
        self.notifications = []

    def notify(self, severity, summary, detail=None):
        self.notifications.append((severity, str(summary), detail))

    @property
    def severities(self):
        return [notification[0] for notification in self.notifications]


@pytest.fixture
def config():
    return TreeConfig(
        api_base_url='/system/department',
        id_field='id',
        parent_id_field='parentId',
        parent_object_field='parent',
        new_row_defaults={'name': '', 'isActive': True},
    )


@pytest.fixture
def source():
    return MemorySource(RECORDS)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def editor(config, source, notifier):
    editor = TreeEditor(config, source, notifier)
    assert editor.load_forest()
    return editor
