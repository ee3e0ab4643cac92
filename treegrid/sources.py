"""Data sources the forest store loads from and persists to.

Every source implements the same four calls. Failures are always raised as
:exc:`treegrid.exceptions.DataSourceError`, whatever the transport.
"""

import logging

import httpx
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from treegrid.conf import get_http_timeout
from treegrid.exceptions import DataSourceError

logger = logging.getLogger(__name__)


class DataSource:
    """Base class of the record sources used by the forest store."""

    def list(self):
        """
        :returns: every record, unfiltered and unpaginated. Records are
            either flat (pointing to their parent) or nested in ``children``.
        """
        raise NotImplementedError

    def create(self, payload):
        """
        Persists a new record.

        :returns: the created record, as stored.
        """
        raise NotImplementedError

    def update(self, pk, payload):
        """
        Partially updates the record identified by ``pk``.

        :returns: the updated record.
        """
        raise NotImplementedError

    def toggle(self, pk):
        """
        Flips the active flag of the record identified by ``pk`` (soft
        delete or restore).

        :returns: the toggled record.
        """
        raise NotImplementedError


class HttpDataSource(DataSource):
    """REST source.

    ``GET base``, ``POST base``, ``PATCH base/<pk>`` and
    ``PATCH base/toggle/<pk>``. Responses may be wrapped in a
    ``{"success": ..., "data": ..., "message": ...}`` envelope.
    """

    def __init__(self, base_url, client=None, timeout=None):
        self.base_url = base_url.rstrip('/')
        if client is None:
            if timeout is None:
                timeout = get_http_timeout()
            client = httpx.Client(timeout=httpx.Timeout(timeout),
                                  headers={'Accept': 'application/json'})
        self.client = client

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _url(self, *parts):
        return '/'.join([self.base_url] + [str(part) for part in parts])

    def _request(self, method, url, **kwargs):
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning('%s %s failed: %s', method, url, exc)
            raise DataSourceError(str(exc) or exc.__class__.__name__) from exc
        return self._handle_response(response)

    @staticmethod
    def _error_message(response):
        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get('message') if isinstance(body, dict) else None
        if isinstance(message, list):
            message = ', '.join(str(item) for item in message)
        return message or 'HTTP %s %s' % (response.status_code,
                                          response.reason_phrase)

    def _handle_response(self, response):
        if response.is_error:
            message = self._error_message(response)
            logger.warning('%s %s returned %s: %s', response.request.method,
                           response.request.url, response.status_code, message)
            raise DataSourceError(message, status=response.status_code)
        try:
            body = response.json()
        except ValueError as exc:
            raise DataSourceError('Invalid response format') from exc
        if isinstance(body, dict) and 'success' in body and 'data' in body:
            return body['data']
        return body

    def list(self):
        records = self._request('GET', self._url())
        if not isinstance(records, list):
            raise DataSourceError('Expected a list of records')
        return records

    def create(self, payload):
        return self._request('POST', self._url(), json=payload)

    def update(self, pk, payload):
        return self._request('PATCH', self._url(pk), json=payload)

    def toggle(self, pk):
        return self._request('PATCH', self._url('toggle', pk))


class ModelDataSource(DataSource):
    """Django model source.

    Records are ``QuerySet.values()`` rows, so foreign keys use their
    attribute name (``parent_id``). Payload keys that are not concrete
    fields of the model are ignored.

    :param model: the model class, usually an adjacency list with a nullable
        ``parent`` foreign key to ``self``.
    :param active_field: the boolean field flipped by :meth:`toggle`.
    :param parent_field: the foreign key to the parent, used to refuse
        deactivating records that still have active children.
    :param order_by: ordering of :meth:`list`; defaults to the model's
        ``Meta.ordering`` or the primary key.
    """

    def __init__(self, model, active_field='is_active', parent_field='parent',
                 order_by=None):
        self.model = model
        self.active_field = active_field
        self.parent_field = parent_field
        self.order_by = order_by or model._meta.ordering or ['pk']

    def _writable(self, payload):
        names = set()
        for field in self.model._meta.concrete_fields:
            names.update((field.name, field.attname))
        return {name: value for name, value in payload.items() if name in names}

    def _serialize(self, obj):
        return {field.attname: getattr(obj, field.attname)
                for field in self.model._meta.concrete_fields}

    def _get(self, pk):
        try:
            return self.model.objects.get(pk=pk)
        except (self.model.DoesNotExist, ValueError, ValidationError):
            raise DataSourceError('%s %r not found' % (
                self.model._meta.verbose_name, pk), status=404)

    def _save(self, obj):
        try:
            obj.full_clean()
            obj.save()
        except ValidationError as exc:
            raise DataSourceError(', '.join(exc.messages), status=400) from exc
        except DatabaseError as exc:
            logger.warning('Saving %r failed: %s', obj, exc)
            raise DataSourceError(str(exc)) from exc
        return self._serialize(obj)

    def list(self):
        try:
            return list(self.model.objects.order_by(*self.order_by).values())
        except DatabaseError as exc:
            raise DataSourceError(str(exc)) from exc

    def create(self, payload):
        obj = self.model(**self._writable(payload))
        return self._save(obj)

    def update(self, pk, payload):
        obj = self._get(pk)
        for name, value in self._writable(payload).items():
            setattr(obj, name, value)
        return self._save(obj)

    @transaction.atomic
    def toggle(self, pk):
        obj = self._get(pk)
        active = getattr(obj, self.active_field)
        if active and self.parent_field:
            children = self.model.objects.filter(
                **{self.parent_field: obj, self.active_field: True})
            if children.exists():
                raise DataSourceError(
                    'Cannot deactivate %s %r: it still has active children.'
                    % (self.model._meta.verbose_name, pk), status=400)
        setattr(obj, self.active_field, not active)
        obj.save(update_fields=[self.active_field])
        logger.debug('%s %r is_active => %s', self.model.__name__, pk, not active)
        return self._serialize(obj)
