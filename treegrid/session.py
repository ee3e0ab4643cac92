"""
Edit session manager.

At most one record of a tree is edited at a time. The session lives in a
single slot holding one of three states:

- :class:`Idle`: nothing is being edited,
- :class:`Editing`: a record is being edited; ``original`` is the snapshot
  used to roll back, ``draft`` the data shown in the forest,
- :class:`Saving`: the draft is being persisted; every mutation is refused
  with :exc:`~treegrid.exceptions.EditorBusy` until the save resolves.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Union

from django.utils.translation import gettext_lazy as _

from treegrid import utils
from treegrid.exceptions import (
    DataSourceError,
    EditorBusy,
    InvalidMoveToDescendant,
    NoActiveEdit,
    NodeNotFound,
    UnsavedNodeError,
)
from treegrid.types import Record, TreeNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Editing:
    key: str
    original: Record = field(repr=False)
    draft: Record
    is_new: bool = False


@dataclass(frozen=True)
class Saving:
    key: str
    original: Record = field(repr=False)
    draft: Record
    is_new: bool = False


EditSession = Union[Idle, Editing, Saving]

IDLE = Idle()


class EditSessionManager:
    """Owns the single edit session of a tree and applies drafts to the
    forest store.

    :param store: the :class:`~treegrid.store.ForestStore` being edited.
    :param source: the data source drafts are saved to.
    :param notifier: receives save outcomes.
    """

    def __init__(self, config, store, source, notifier):
        self.config = config
        self.store = store
        self.source = source
        self.notifier = notifier
        self.state: EditSession = IDLE

    @property
    def is_busy(self) -> bool:
        "``True`` while a save is in flight."
        return isinstance(self.state, Saving)

    @property
    def editing_key(self) -> str | None:
        if isinstance(self.state, Idle):
            return None
        return self.state.key

    @property
    def editing_data(self) -> Record | None:
        if isinstance(self.state, Idle):
            return None
        return self.state.draft

    def ensure_not_busy(self) -> None:
        if self.is_busy:
            raise EditorBusy('A save is in progress for %r' % self.state.key)

    def _require_editing(self) -> Editing:
        self.ensure_not_busy()
        if not isinstance(self.state, Editing):
            raise NoActiveEdit('No record is being edited.')
        return self.state

    def open(self, node: TreeNode) -> Editing:
        """
        Opens a session on ``node`` without closing the current one. Callers
        are responsible for cancelling first, see :meth:`start_edit`.
        """
        self.ensure_not_busy()
        original = copy.deepcopy(node['data'])
        self.state = Editing(
            key=node['key'],
            original=original,
            draft=copy.deepcopy(original),
            is_new=original.get(self.config.new_flag_field) is True,
        )
        logger.debug('Editing %r', node['key'])
        return self.state

    def start_edit(self, node: TreeNode) -> Editing:
        """
        Closes the active session, if any, and starts editing ``node``.

        The node is looked up again once the previous session is closed, so
        the new session starts from the data currently in the forest.

        :raises NodeNotFound: when the node is no longer in the forest.
        """
        self.cancel_edit()
        current = self.store.find(node['key'])
        if current is None:
            raise NodeNotFound('No node with key %r' % node['key'])
        return self.open(current)

    def set_editing_field(self, name: str, value: Any) -> Record:
        """
        Sets a field of the draft and shows the draft in the forest.

        Changing the parent link is checked against the forest, and also
        refreshes the denormalized parent snapshot when
        ``parent_object_field`` is configured. An unknown parent is stored
        as ``None``.

        :raises InvalidMoveToDescendant: when the new parent is the edited
            node or one of its descendants.

        :returns: the new draft.
        """
        editing = self._require_editing()
        draft = dict(editing.draft)
        draft[name] = value
        config = self.config
        if name == config.parent_id_field:
            parent = self._resolve_parent(editing.key, value)
            if config.parent_object_field:
                draft[config.parent_object_field] = (
                    dict(parent['data']) if parent is not None else None)
        self.state = Editing(editing.key, editing.original, draft, editing.is_new)
        self.store.replace_node_data(editing.key, draft)
        return draft

    def _resolve_parent(self, key: str, value: Any) -> TreeNode | None:
        if value is None or value == '':
            return None
        parent_key = str(value)
        if parent_key == key or utils.is_descendant_of(self.store.nodes, parent_key, key):
            raise InvalidMoveToDescendant("Can't move node to a descendant.")
        return self.store.find(parent_key)

    def cancel_edit(self) -> None:
        """
        Drops the active session. A never-saved node is removed from the
        forest, any other node gets its original data back.
        """
        self.ensure_not_busy()
        editing = self.state
        if isinstance(editing, Idle):
            return
        if editing.is_new:
            self.store.remove_node(editing.key)
        else:
            self.store.replace_node_data(editing.key, editing.original)
        self.state = IDLE
        logger.debug('Cancelled edit of %r', editing.key)

    def build_payload(self, data: Record, creating: bool = False) -> Record:
        """
        :returns: ``data`` without the local-only fields (the new-record
            flag and the parent snapshot). The identity is dropped too when
            ``creating``.
        """
        local = {self.config.new_flag_field, self.config.parent_object_field}
        if creating:
            local.add(self.config.id_field)
        return {name: value for name, value in data.items() if name not in local}

    @contextmanager
    def _saving(self, editing: Editing) -> Iterator[None]:
        """
        Enters the :class:`Saving` state for the write. A failed write
        returns to ``editing``, a successful one stays in :class:`Saving`
        until :meth:`save_edit` has reloaded the forest.
        """
        self.state = Saving(editing.key, editing.original, editing.draft,
                            editing.is_new)
        try:
            yield
        except BaseException:
            self.state = editing
            raise

    def save_edit(self, node: TreeNode | None = None) -> bool:
        """
        Persists the draft: creates new records, partially updates the
        others, then reloads the forest.

        Once the data source accepted the write the session is closed, even
        when the notification or the reload that follow raise.

        :param node: the edited node, checked against the session.

        :returns: ``True`` on success. On failure the notifier receives the
            server message and the session stays open with its draft.

        :raises UnsavedNodeError: when a persisted record has no identity.
        """
        editing = self._require_editing()
        if node is not None and node['key'] != editing.key:
            raise NoActiveEdit('%r is not being edited.' % node['key'])
        pk = None
        if not editing.is_new:
            pk = editing.original.get(self.config.id_field)
            if pk is None or pk == '':
                raise UnsavedNodeError(
                    '%r has no %r to update.' % (editing.key, self.config.id_field))
        payload = self.build_payload(editing.draft, creating=editing.is_new)
        try:
            with self._saving(editing):
                if editing.is_new:
                    self.source.create(payload)
                else:
                    self.source.update(pk, payload)
        except DataSourceError as exc:
            logger.warning('Saving %r failed: %s', editing.key, exc.detail)
            self.notifier.error(_('Save failed'), exc.detail)
            return False
        try:
            logger.info('Saved %r to %s', editing.key, self.config.api_base_url)
            self.notifier.success(_('Saved'), _('The record was saved.'))
            self.store.load_forest()
        finally:
            self.state = IDLE
        return True
