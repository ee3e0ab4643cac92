"""Tree builder and copy-on-write helper tests"""

import pytest

from tests.conftest import RECORDS
from treegrid import utils
from treegrid.exceptions import NodeNotFound, StructuralIntegrityError


def keys(forest):
    return [(node['key'], keys(node['children'])) for node in forest]


@pytest.fixture
def forest():
    return utils.build_tree_from_flat(RECORDS, 'id', 'parentId')


class TestBuildTreeFromFlat:
    def test_example(self):
        a = {'id': 1, 'parentId': None, 'name': 'A'}
        b = {'id': 2, 'parentId': 1, 'name': 'B'}
        c = {'id': 3, 'parentId': None, 'name': 'C'}
        forest = utils.build_tree_from_flat([a, b, c], 'id', 'parentId')
        assert forest == [
            {'key': '1', 'data': a, 'children': [
                {'key': '2', 'data': b, 'children': []},
            ]},
            {'key': '3', 'data': c, 'children': []},
        ]
        assert utils.count_total_nodes(forest) == 3

    def test_keeps_input_order(self, forest):
        assert keys(forest) == [
            ('1', [('2', []), ('3', [('4', [])])]),
            ('5', []),
        ]

    def test_children_declared_before_parent(self):
        records = [
            {'id': 'b', 'parent': 'a'},
            {'id': 'a', 'parent': None},
        ]
        forest = utils.build_tree_from_flat(records, 'id', 'parent')
        assert keys(forest) == [('a', [('b', [])])]

    def test_preorder_flatten_reproduces_input(self, forest):
        flat = utils.flatten_forest(forest)
        assert sorted(r['id'] for r in flat) == [r['id'] for r in RECORDS]
        assert utils.count_total_nodes(forest) == len(RECORDS)

    def test_data_is_a_copy(self, forest):
        forest[0]['data']['name'] = 'changed'
        assert RECORDS[0]['name'] == 'Head office'

    def test_dangling_parent_becomes_root(self):
        records = [
            {'id': 1, 'parentId': 99},
            {'id': 2, 'parentId': 1},
        ]
        forest = utils.build_tree_from_flat(records, 'id', 'parentId')
        assert keys(forest) == [('1', [('2', [])])]

    def test_empty_parent_string_is_root(self):
        forest = utils.build_tree_from_flat(
            [{'id': 1, 'parentId': ''}], 'id', 'parentId')
        assert keys(forest) == [('1', [])]

    def test_duplicate_identity(self):
        records = [{'id': 1, 'parentId': None}, {'id': 1, 'parentId': None}]
        with pytest.raises(StructuralIntegrityError):
            utils.build_tree_from_flat(records, 'id', 'parentId')

    def test_missing_identity(self):
        with pytest.raises(StructuralIntegrityError):
            utils.build_tree_from_flat([{'parentId': None}], 'id', 'parentId')

    def test_cycle(self):
        records = [
            {'id': 1, 'parentId': None},
            {'id': 2, 'parentId': 3},
            {'id': 3, 'parentId': 2},
        ]
        with pytest.raises(StructuralIntegrityError) as excinfo:
            utils.build_tree_from_flat(records, 'id', 'parentId')
        assert '2, 3' in str(excinfo.value)

    def test_self_parent(self):
        with pytest.raises(StructuralIntegrityError):
            utils.build_tree_from_flat([{'id': 1, 'parentId': 1}], 'id', 'parentId')


class TestMapNestedRecords:
    def test_keeps_nesting(self):
        records = [
            {'id': 1, 'name': 'A', 'children': [
                {'id': 2, 'name': 'B', 'children': []},
            ]},
            {'id': 3, 'name': 'C'},
        ]
        forest = utils.map_nested_records(records, 'id')
        assert keys(forest) == [('1', [('2', [])]), ('3', [])]
        assert forest[0]['data'] == {'id': 1, 'name': 'A'}
        assert 'children' in records[0]

    def test_missing_identity_gets_temp_key(self):
        forest = utils.map_nested_records([{'name': 'A'}], 'id')
        assert utils.is_temp_key(forest[0]['key'])

    def test_duplicate_identity_across_levels(self):
        records = [{'id': 1, 'children': [{'id': 1}]}]
        with pytest.raises(StructuralIntegrityError):
            utils.map_nested_records(records, 'id')


class TestBuildForest:
    def test_empty(self):
        assert utils.build_forest([], 'id', 'parentId') == []

    def test_nested(self):
        records = [{'id': 1, 'parentId': None, 'children': [{'id': 2}]}]
        forest = utils.build_forest(records, 'id', 'parentId')
        assert keys(forest) == [('1', [('2', [])])]

    def test_flat_with_parent(self):
        forest = utils.build_forest(RECORDS, 'id', 'parentId')
        assert utils.count_total_nodes(forest) == 5
        assert len(forest) == 2

    def test_flat_without_parent_field(self):
        forest = utils.build_forest(RECORDS, 'id')
        assert len(forest) == 5

    def test_parent_field_absent_from_records(self):
        records = [{'id': 1}, {'id': 2}]
        forest = utils.build_forest(records, 'id', 'parentId')
        assert keys(forest) == [('1', []), ('2', [])]


class TestLookups:
    def test_find_node_by_key(self, forest):
        assert utils.find_node_by_key(forest, '4')['data']['name'] == 'Platform'
        assert utils.find_node_by_key(forest, '42') is None

    def test_iter_nodes_is_preorder(self, forest):
        assert [n['key'] for n in utils.iter_nodes(forest)] == ['1', '2', '3', '4', '5']

    def test_count_empty(self):
        assert utils.count_total_nodes([]) == 0

    def test_is_descendant_of(self, forest):
        assert utils.is_descendant_of(forest, '4', '1')
        assert utils.is_descendant_of(forest, '4', '3')
        assert not utils.is_descendant_of(forest, '1', '1')
        assert not utils.is_descendant_of(forest, '5', '1')
        assert not utils.is_descendant_of(forest, '4', '404')


class TestCopyOnWrite:
    def test_replace_node_data_shares_other_subtrees(self, forest):
        updated = utils.replace_node_data(forest, '4', {'id': 4, 'name': 'Infra'})
        assert updated is not forest
        assert utils.find_node_by_key(updated, '4')['data'] == {'id': 4, 'name': 'Infra'}
        # the path to the node is copied
        assert updated[0] is not forest[0]
        assert updated[0]['children'][1] is not forest[0]['children'][1]
        # everything else is shared
        assert updated[1] is forest[1]
        assert updated[0]['children'][0] is forest[0]['children'][0]
        # the original forest is untouched
        assert utils.find_node_by_key(forest, '4')['data']['name'] == 'Platform'

    def test_replace_missing_key_returns_same_forest(self, forest):
        assert utils.replace_node_data(forest, '404', {}) is forest

    def test_remove_node(self, forest):
        updated = utils.remove_node(forest, '3')
        assert keys(updated) == [('1', [('2', [])]), ('5', [])]
        assert updated[1] is forest[1]
        assert utils.count_total_nodes(forest) == 5

    def test_remove_root(self, forest):
        assert keys(utils.remove_node(forest, '5')) == keys(forest)[:1]

    def test_insert_root_first(self, forest):
        node = {'key': 'new', 'data': {}, 'children': []}
        updated = utils.insert_node(forest, node)
        assert updated[0] is node
        assert updated[1:] == forest

    def test_insert_child(self, forest):
        node = {'key': 'new', 'data': {}, 'children': []}
        updated = utils.insert_node(forest, node, '3')
        assert [n['key'] for n in updated[0]['children'][1]['children']] == ['new', '4']
        assert updated[0]['children'][0] is forest[0]['children'][0]
        assert len(forest[0]['children'][1]['children']) == 1

    def test_insert_child_last(self, forest):
        node = {'key': 'new', 'data': {}, 'children': []}
        updated = utils.insert_node(forest, node, '1', first=False)
        assert [n['key'] for n in updated[0]['children']] == ['2', '3', 'new']

    def test_insert_under_missing_parent(self, forest):
        with pytest.raises(NodeNotFound):
            utils.insert_node(forest, {'key': 'x', 'data': {}, 'children': []}, '404')


def test_attach_parent_snapshots(forest):
    utils.attach_parent_snapshots(forest, 'parent')
    platform = utils.find_node_by_key(forest, '4')
    engineering = utils.find_node_by_key(forest, '3')
    assert platform['data']['parent']['name'] == 'Engineering'
    assert platform['data']['parent'] is not engineering['data']
    assert 'parent' not in forest[0]['data']


def test_map_to_tree_select_nodes(forest):
    options = utils.map_to_tree_select_nodes(forest, 'name')
    assert [o['label'] for o in options] == ['Head office', 'Branch']
    assert [o['label'] for o in options[0]['children']] == ['Sales', 'Engineering']
    assert options[0]['children'][1]['children'][0]['key'] == '4'


def test_make_temp_key():
    first, second = utils.make_temp_key(), utils.make_temp_key()
    assert first != second
    assert utils.is_temp_key(first)
    assert not utils.is_temp_key('42')
