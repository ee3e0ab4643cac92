"""Per-tree configuration, read from Django settings.

Example::

    TREEGRID_TREES = {
        'departments': {
            'api_base_url': '/system/department',
            'id_field': 'deptId',
            'parent_id_field': 'parentDeptId',
            'parent_object_field': 'parent',
            'new_row_defaults': {'deptNm': '', 'sortOrder': 0, 'isActive': True},
            'notify_load_success': False,
        },
    }
    TREEGRID_HTTP_TIMEOUT = 10.0
"""

import copy
from dataclasses import dataclass, field, fields
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

DEFAULT_HTTP_TIMEOUT = 10.0


def default_filters():
    return {'isActive': {'value': True, 'matchMode': 'equals'}}


@dataclass
class TreeConfig:
    """Configuration surface of a single tree instance."""

    api_base_url: str
    id_field: str
    parent_id_field: str | None = None
    parent_object_field: str | None = None
    new_row_defaults: dict[str, Any] = field(default_factory=dict)
    default_filters: dict[str, Any] = field(default_factory=default_filters)
    active_field: str = 'isActive'
    new_flag_field: str = 'isNew'
    notify_load_success: bool = False

    def __post_init__(self):
        if not self.id_field:
            raise ImproperlyConfigured('TreeConfig.id_field is required.')
        if self.parent_object_field and not self.parent_id_field:
            raise ImproperlyConfigured(
                'TreeConfig.parent_object_field needs parent_id_field.')

    @classmethod
    def from_settings(cls, name):
        """
        :returns: the configuration stored under ``name`` in the
            ``TREEGRID_TREES`` setting.
        """
        trees = getattr(settings, 'TREEGRID_TREES', {})
        try:
            options = trees[name]
        except KeyError:
            raise ImproperlyConfigured(
                'No tree named %r in the TREEGRID_TREES setting.' % name)
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ImproperlyConfigured(
                'Unknown options for tree %r: %s' % (
                    name, ', '.join(sorted(unknown))))
        for required in ('api_base_url', 'id_field'):
            if required not in options:
                raise ImproperlyConfigured(
                    'Tree %r is missing the %r option.' % (name, required))
        return cls(**copy.deepcopy(options))


def get_http_timeout():
    return getattr(settings, 'TREEGRID_HTTP_TIMEOUT', DEFAULT_HTTP_TIMEOUT)
