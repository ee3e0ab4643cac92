"""Tree editor: structural mutations over a forest store and its edit
session.

Example::

    editor = TreeEditor.from_settings('departments')
    editor.load_forest()
    node = editor.add_child_node(editor.nodes[0])
    editor.set_editing_field('deptNm', 'Research')
    editor.save_edit()
"""

import copy
import logging

from django.core.exceptions import ImproperlyConfigured
from django.utils.translation import gettext_lazy as _

from treegrid import utils
from treegrid.conf import TreeConfig
from treegrid.exceptions import DataSourceError, NodeNotFound, UnsavedNodeError
from treegrid.notifications import LoggingNotifier
from treegrid.session import EditSessionManager
from treegrid.sources import HttpDataSource
from treegrid.store import ForestStore

logger = logging.getLogger(__name__)


class TreeEditor:
    """Editable tree bound to one data source.

    :param config: a :class:`~treegrid.conf.TreeConfig`.
    :param source: defaults to an :class:`~treegrid.sources.HttpDataSource`
        on ``config.api_base_url``.
    :param notifier: defaults to a
        :class:`~treegrid.notifications.LoggingNotifier`.
    """

    def __init__(self, config, source=None, notifier=None):
        self.config = config
        self.source = source or HttpDataSource(config.api_base_url)
        self.notifier = notifier or LoggingNotifier()
        self.store = ForestStore(config, self.source, self.notifier)
        self.session = EditSessionManager(config, self.store, self.source,
                                          self.notifier)

    @classmethod
    def from_settings(cls, name, source=None, notifier=None):
        return cls(TreeConfig.from_settings(name), source, notifier)

    # read side

    @property
    def nodes(self):
        return self.store.nodes

    @property
    def expanded_keys(self):
        return self.store.expanded_keys

    @property
    def filters(self):
        return self.store.filters

    @property
    def global_filter(self):
        return self.store.global_filter

    @property
    def loading(self):
        return self.store.loading

    @property
    def total_node_count(self):
        return self.store.total_node_count

    @property
    def editing_key(self):
        return self.session.editing_key

    @property
    def editing_data(self):
        return self.session.editing_data

    @property
    def is_busy(self):
        return self.session.is_busy

    # forest store

    def load_forest(self):
        return self.store.load_forest()

    def set_filter(self, filters):
        self.store.set_filter(filters)

    def set_global_filter(self, text):
        self.store.set_global_filter(text)

    def toggle_expansion(self, key):
        self.store.toggle_expansion(key)

    def set_expanded_keys(self, expanded_keys):
        self.store.set_expanded_keys(expanded_keys)

    # edit session

    def start_edit(self, node):
        return self.session.start_edit(node)

    def set_editing_field(self, name, value):
        return self.session.set_editing_field(name, value)

    def cancel_edit(self):
        self.session.cancel_edit()

    def save_edit(self, node=None):
        return self.session.save_edit(node)

    # structural mutations

    def _new_data(self, defaults):
        if defaults is None:
            defaults = self.config.new_row_defaults
        data = copy.deepcopy(defaults)
        data[self.config.new_flag_field] = True
        return data

    def add_root_node(self, defaults=None):
        """
        Adds an unsaved record on top of the root nodes and starts editing
        it. Any active session is cancelled first.

        :param defaults: initial data, ``new_row_defaults`` if not given.

        :returns: the new node.
        """
        self.session.cancel_edit()
        node = {'key': utils.make_temp_key(), 'data': self._new_data(defaults),
                'children': []}
        self.store.insert_node(node)
        self.session.open(node)
        return node

    def add_child_node(self, parent, defaults=None):
        """
        Adds an unsaved record as the first child of ``parent``, expands the
        parent and starts editing the new record. Any active session is
        cancelled first.

        :raises NodeNotFound: when ``parent`` is not in the forest anymore.
        :raises UnsavedNodeError: when ``parent`` has no identity yet.

        :returns: the new node.
        """
        config = self.config
        if not config.parent_id_field:
            raise ImproperlyConfigured(
                'add_child_node needs TreeConfig.parent_id_field.')
        self.session.cancel_edit()
        current = self.store.find(parent['key'])
        if current is None:
            raise NodeNotFound('No node with key %r' % parent['key'])
        parent_id = current['data'].get(config.id_field)
        if parent_id is None or parent_id == '':
            raise UnsavedNodeError(
                "Can't add a child under %r, it has no %r." % (current['key'], config.id_field))
        data = self._new_data(defaults)
        data[config.parent_id_field] = parent_id
        if config.parent_object_field:
            data[config.parent_object_field] = dict(current['data'])
        node = {'key': utils.make_temp_key(), 'data': data, 'children': []}
        self.store.insert_node(node, current['key'])
        self.store.expand(current['key'])
        self.session.open(node)
        return node

    def delete_or_restore(self, node):
        """
        Soft deletes an active record, or restores an inactive one, then
        reloads the forest. The edit session is left alone.

        :returns: ``True`` on success. On failure the notifier receives the
            error and the forest is not reloaded.

        :raises UnsavedNodeError: when the record was never saved.
        """
        self.session.ensure_not_busy()
        data = node['data']
        if data.get(self.config.new_flag_field) is True:
            raise UnsavedNodeError("Can't toggle a record that was never saved.")
        pk = data.get(self.config.id_field)
        if pk is None or pk == '':
            raise UnsavedNodeError(
                "Can't toggle %r, it has no %r." % (node['key'], self.config.id_field))
        was_active = data.get(self.config.active_field)
        try:
            self.source.toggle(pk)
        except DataSourceError as exc:
            logger.warning('Toggling %r failed: %s', pk, exc.detail)
            self.notifier.error(_('Action failed'), exc.detail)
            return False
        if was_active:
            self.notifier.warn(_('Deactivated'))
        else:
            self.notifier.success(_('Restored'))
        logger.info('Toggled %r (was active: %s)', pk, was_active)
        self.store.load_forest()
        return True
