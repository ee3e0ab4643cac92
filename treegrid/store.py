"""Forest store: the loaded forest plus its expansion and filter state."""

import copy
import logging

from django.utils.translation import gettext_lazy as _

from treegrid import utils
from treegrid.exceptions import DataSourceError, StructuralIntegrityError

logger = logging.getLogger(__name__)


class ForestStore:
    """Holds the current forest of a tree and reloads it from its source.

    The forest is replaced as a whole on every load, and every local
    mutation produces a new forest that shares the untouched subtrees with
    the previous one, so consumers can detect changes by identity.

    Filters are kept verbatim for the presentation layer; the store itself
    never filters the forest.
    """

    def __init__(self, config, source, notifier):
        self.config = config
        self.source = source
        self.notifier = notifier
        self.nodes = []
        self.expanded_keys = {}
        self.filters = copy.deepcopy(config.default_filters)
        self.global_filter = ''
        self.total_node_count = 0
        self.loading = False

    def load_forest(self):
        """
        Fetches every record and replaces the forest.

        Failures are always notified, successes only when the tree is
        configured with ``notify_load_success``.

        :returns: ``True`` on success. On failure the previous forest is
            kept and the notifier receives the error.
        """
        self.loading = True
        try:
            records = self.source.list()
            forest = utils.build_forest(
                records, self.config.id_field, self.config.parent_id_field)
        except (DataSourceError, StructuralIntegrityError) as exc:
            logger.warning('Loading %s failed: %s', self.config.api_base_url, exc)
            self.notifier.error(_('Load failed'), str(exc))
            return False
        finally:
            self.loading = False

        if self.config.parent_object_field:
            utils.attach_parent_snapshots(forest, self.config.parent_object_field)
        self.nodes = forest
        self.total_node_count = utils.count_total_nodes(forest)
        logger.debug('Loaded %d nodes from %s', self.total_node_count,
                     self.config.api_base_url)
        if self.config.notify_load_success:
            self.notifier.info(
                _('Loaded'), _('%(count)d records') % {'count': self.total_node_count})
        return True

    @property
    def root_count(self):
        "Number of nodes at the root level."
        return len(self.nodes)

    def find(self, key):
        return utils.find_node_by_key(self.nodes, key)

    def replace_node_data(self, key, data):
        self.nodes = utils.replace_node_data(self.nodes, key, data)

    def remove_node(self, key):
        self.nodes = utils.remove_node(self.nodes, key)

    def insert_node(self, node, parent_key=None):
        "Prepends ``node`` to the roots, or to the children of ``parent_key``."
        self.nodes = utils.insert_node(self.nodes, node, parent_key)

    def set_filter(self, filters):
        self.filters = filters

    def set_global_filter(self, text):
        self.global_filter = text

    def toggle_expansion(self, key):
        expanded = dict(self.expanded_keys)
        expanded[key] = not expanded.get(key, False)
        self.expanded_keys = expanded

    def expand(self, key):
        self.expanded_keys = {**self.expanded_keys, key: True}

    def set_expanded_keys(self, expanded_keys):
        self.expanded_keys = dict(expanded_keys)

    def expand_all(self):
        "Expands every node that has children."
        self.expanded_keys = {node['key']: True
                              for node in utils.iter_nodes(self.nodes)
                              if node['children']}

    def collapse_all(self):
        self.expanded_keys = {}

    def tree_select_options(self, label_field):
        return utils.map_to_tree_select_nodes(self.nodes, label_field)
