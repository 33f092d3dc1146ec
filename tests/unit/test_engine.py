"""
Unit tests for the resolution engine: direct checks, transitive inheritance, strict mode,
permission and resource aggregation, cache coherence and configuration swaps.
"""

import sys

import pytest
import structlog
from structlog.testing import capture_logs

from rolegate import CacheOptions, RBACEngine, RBACOptions
from rolegate.exceptions import (
    CircularHierarchyError,
    ConfigurationError,
    InvalidInputError,
    UnknownRoleError,
)


@pytest.fixture
def engine(shop_config):
    return RBACEngine(shop_config, {'cache': {'enabled': True, 'maxSize': 100, 'ttl': 60}})


class TestDirectResolution:

    def test_admin_can_delete_products(self, engine):
        assert engine.can('ADMIN', 'Products', 'DELETE') is True

    def test_client_cannot_delete_products(self, engine):
        assert engine.can('CLIENT', 'Products', 'DELETE') is False

    def test_unknown_resource_denies(self, engine):
        assert engine.can('ADMIN', 'Warehouses', 'READ') is False

    def test_unknown_permission_denies(self, engine):
        assert engine.can('ADMIN', 'Products', 'PUBLISH') is False

    def test_wildcard_is_never_honored(self):
        engine = RBACEngine({'roles': {'ROOT': {'permissions': {'Products': ['*']}}}})

        assert engine.can('ROOT', 'Products', 'DELETE') is False
        assert engine.can('ROOT', 'Products', '*') is True

    def test_unknown_role_denies_with_warning(self, shop_config):
        engine = RBACEngine(shop_config, RBACOptions(logger=structlog.get_logger("rolegate.tests")))

        with capture_logs() as logs:
            assert engine.can('NO_SUCH_ROLE', 'Products', 'READ') is False

        assert any(
            entry['event'] == 'Unknown role denied' and entry['log_level'] == 'warning'
            for entry in logs
        )

    def test_invalid_identifiers_raise(self, engine):
        with pytest.raises(InvalidInputError):
            engine.can('', 'Products', 'READ')
        with pytest.raises(InvalidInputError):
            engine.can('ADMIN', None, 'READ')
        with pytest.raises(InvalidInputError):
            engine.can('ADMIN', 'Products', '${x}')

    def test_rejected_value_is_logged_truncated(self, shop_config):
        engine = RBACEngine(shop_config, RBACOptions(logger=structlog.get_logger("rolegate.tests")))

        with capture_logs() as logs:
            with pytest.raises(InvalidInputError):
                engine.can('{{' + 'A' * 200, 'Products', 'READ')

        rejected = [entry for entry in logs if entry['event'] == 'Rejected invalid authorization input']
        assert rejected
        assert rejected[0]['field'] == 'role'
        assert rejected[0]['rejected_value'].endswith('...')


class TestStrictMode:

    def test_unknown_role_raises(self, shop_config):
        engine = RBACEngine(shop_config, RBACOptions(strict=True))

        with pytest.raises(UnknownRoleError) as exc_info:
            engine.can('NO_SUCH_ROLE', 'Products', 'READ')
        assert exc_info.value.role == 'NO_SUCH_ROLE'

    def test_unknown_resource_and_permission_still_deny(self, shop_config):
        engine = RBACEngine(shop_config, RBACOptions(strict=True))

        assert engine.can('ADMIN', 'Warehouses', 'READ') is False
        assert engine.can('ADMIN', 'Products', 'PUBLISH') is False

    def test_dangling_parent_does_not_raise(self, shop_config):
        engine = RBACEngine(shop_config, RBACOptions(strict=True))
        engine.set_role_hierarchy({'CLIENT': ['GHOST']})

        assert engine.can('CLIENT', 'News', 'READ') is False

    def test_unknown_role_raises_even_when_cached_as_parent(self, shop_config):
        engine = RBACEngine(shop_config, RBACOptions(cache=CacheOptions(enabled=True), strict=True))
        engine.set_role_hierarchy({'CLIENT': ['GHOST']})
        engine.can('CLIENT', 'News', 'READ')

        with pytest.raises(UnknownRoleError):
            engine.can('GHOST', 'News', 'READ')

    def test_get_permissions_raises_for_unknown_role(self, shop_config):
        engine = RBACEngine(shop_config, RBACOptions(strict=True))

        with pytest.raises(UnknownRoleError):
            engine.get_permissions('NO_SUCH_ROLE', 'Products')


class TestHierarchyResolution:

    def test_inherited_permission(self):
        engine = RBACEngine({
            'roles': {
                'ADMIN': {'permissions': {'News': ['UPDATE']}},
                'EDITOR': {'permissions': {'Products': ['READ']}},
            },
        })
        engine.set_role_hierarchy({'EDITOR': ['ADMIN']})

        assert engine.can('EDITOR', 'News', 'UPDATE') is True
        assert engine.can('ADMIN', 'Products', 'READ') is False

    def test_transitive_inheritance(self):
        engine = RBACEngine({
            'roles': {
                'INTERN': {'permissions': {}},
                'EDITOR': {'permissions': {}},
                'ADMIN': {'permissions': {'News': ['DELETE']}},
            },
        })
        engine.set_role_hierarchy({'INTERN': ['EDITOR'], 'EDITOR': ['ADMIN']})

        assert engine.can('INTERN', 'News', 'DELETE') is True

    def test_any_parent_grants(self, engine):
        engine.set_role_hierarchy({'EDITOR': ['CLIENT', 'ADMIN']})

        assert engine.can('EDITOR', 'Locations', 'CREATE') is True
        assert engine.can('EDITOR', 'Bookings', 'CREATE') is True

    def test_dangling_parent_resolves_to_no_permissions(self, engine):
        engine.set_role_hierarchy({'CLIENT': ['GHOST']})

        assert engine.can('CLIENT', 'Products', 'READ') is True
        assert engine.can('CLIENT', 'Products', 'DELETE') is False

    def test_dangling_parent_logged_at_assignment(self, shop_config):
        engine = RBACEngine(shop_config, RBACOptions(logger=structlog.get_logger("rolegate.tests")))

        with capture_logs() as logs:
            engine.set_role_hierarchy({'CLIENT': ['GHOST']})

        warnings = [entry for entry in logs if entry['log_level'] == 'warning']
        assert warnings[0]['missing_roles'] == ['GHOST']

    def test_rejected_cycle_leaves_previous_hierarchy(self, engine):
        engine.set_role_hierarchy({'EDITOR': ['ADMIN']})

        with pytest.raises(CircularHierarchyError):
            engine.set_role_hierarchy({'EDITOR': ['CLIENT'], 'CLIENT': ['EDITOR']})

        assert engine.hierarchy.as_dict() == {'EDITOR': ['ADMIN']}
        assert engine.can('EDITOR', 'News', 'DELETE') is True
        assert engine.can('CLIENT', 'Products', 'UPDATE') is False

    def test_chain_deeper_than_recursion_limit(self):
        depth = sys.getrecursionlimit() + 500
        roles = {f'R{i}': {'permissions': {}} for i in range(depth)}
        roles['ADMIN'] = {'permissions': {'News': ['DELETE']}}
        engine = RBACEngine({'roles': roles}, {'cache': {'enabled': True, 'maxSize': depth * 2}})
        hierarchy = {f'R{i}': [f'R{i + 1}'] for i in range(depth - 1)}
        hierarchy[f'R{depth - 1}'] = ['ADMIN']

        engine.set_role_hierarchy(hierarchy)

        assert engine.can('R0', 'News', 'DELETE') is True
        assert engine.can('R0', 'News', 'READ') is False
        assert engine.get_permissions('R0', 'News') == {'DELETE'}
        assert engine.get_resources('R0') == {'News'}


class TestAggregation:

    def test_get_permissions_unions_inherited(self, engine):
        engine.set_role_hierarchy({'CLIENT': ['EDITOR']})

        assert engine.get_permissions('CLIENT', 'Products') == {'READ', 'VIEW', 'UPDATE'}

    def test_get_permissions_returns_fresh_set(self, engine):
        first = engine.get_permissions('ADMIN', 'Products')
        first.clear()

        assert 'DELETE' in engine.get_permissions('ADMIN', 'Products')

    def test_get_permissions_for_unknown_role_is_empty(self, engine):
        assert engine.get_permissions('NO_SUCH_ROLE', 'Products') == set()

    def test_unknown_role_with_hierarchy_entry_has_nothing(self, engine):
        engine.set_role_hierarchy({'GHOST': ['ADMIN']})

        assert engine.get_permissions('GHOST', 'Products') == set()
        assert engine.get_resources('GHOST') == set()
        assert engine.can('GHOST', 'Products', 'READ') is False

    def test_undefined_parent_does_not_pass_on_its_own_parents(self, engine):
        engine.set_role_hierarchy({'CLIENT': ['GHOST'], 'GHOST': ['ADMIN']})

        assert engine.can('CLIENT', 'Locations', 'DELETE') is False
        assert engine.get_permissions('CLIENT', 'Products') == {'READ', 'VIEW'}

    def test_get_resources_unions_inherited(self, engine):
        engine.set_role_hierarchy({'CLIENT': ['EDITOR']})

        assert engine.get_resources('CLIENT') == {'Products', 'Bookings', 'AdditionalServices'}

    def test_diamond_hierarchy_aggregates_once(self, engine):
        engine.set_role_hierarchy({'CLIENT': ['EDITOR', 'ADMIN'], 'EDITOR': ['ADMIN']})

        assert 'Locations' in engine.get_resources('CLIENT')
        assert engine.get_permissions('CLIENT', 'Locations') == {
            'CREATE', 'READ', 'UPDATE', 'DELETE', 'VIEW'
        }

    def test_get_roles_in_configuration_order(self, engine):
        assert engine.get_roles() == ['ADMIN', 'EDITOR', 'CLIENT']


class TestCacheCoherence:

    def test_repeated_query_served_from_cache(self, engine):
        first = engine.can('CLIENT', 'Products', 'READ')
        size_after_first = engine.get_cache_stats()['size']
        second = engine.can('CLIENT', 'Products', 'READ')

        assert first is second is True
        assert size_after_first == 1
        assert engine.get_cache_stats()['size'] == size_after_first
        assert engine.cache.statistics()['hits'] == 1

    def test_inherited_query_caches_ancestors(self, engine):
        engine.set_role_hierarchy({'CLIENT': ['EDITOR']})
        engine.can('CLIENT', 'AdditionalServices', 'READ')

        assert engine.get_cache_stats()['size'] == 2

    def test_hierarchy_change_clears_cache(self, engine):
        engine.can('ADMIN', 'Products', 'READ')
        engine.set_role_hierarchy({'EDITOR': ['ADMIN']})

        assert engine.get_cache_stats()['size'] == 0

    def test_config_update_clears_cache_and_applies(self, engine, shop_config):
        assert engine.can('CLIENT', 'News', 'READ') is False

        shop_config['roles']['CLIENT']['permissions']['News'] = ['READ']
        engine.update_config(shop_config)

        assert engine.get_cache_stats()['size'] == 0
        assert engine.can('CLIENT', 'News', 'READ') is True

    def test_invalid_update_keeps_configuration(self, engine):
        with pytest.raises(ConfigurationError):
            engine.update_config({'roles': {}})

        assert engine.get_roles() == ['ADMIN', 'EDITOR', 'CLIENT']

    def test_cache_disabled_reports_zero_size(self, shop_config):
        engine = RBACEngine(shop_config)
        engine.can('ADMIN', 'Products', 'READ')

        assert engine.get_cache_stats() == {'enabled': False, 'size': 0}

    def test_stale_resolution_not_written_after_clear(self, engine):
        version = engine.cache.version
        engine.clear_cache()
        engine.cache.set('ADMIN', 'Products', 'READ', False, version=version)

        assert engine.get_cache_stats()['size'] == 0
        assert engine.can('ADMIN', 'Products', 'READ') is True


class TestConfigurationLifecycle:

    def test_construction_copies_configuration(self, shop_config):
        engine = RBACEngine(shop_config)
        shop_config['roles']['CLIENT']['permissions']['Products'].append('DELETE')

        assert engine.can('CLIENT', 'Products', 'DELETE') is False

    def test_get_config_is_deep_copy(self, engine):
        config = engine.get_config()
        config['roles']['CLIENT']['permissions']['Products'].add('DELETE')
        config['roles'].pop('ADMIN')

        assert engine.can('CLIENT', 'Products', 'DELETE') is False
        assert 'ADMIN' in engine.get_roles()

    def test_invalid_options_rejected(self, shop_config):
        with pytest.raises(ConfigurationError):
            RBACEngine(shop_config, 'strict')
        with pytest.raises(ConfigurationError):
            RBACEngine(shop_config, {'cache': {'enabled': True, 'maxSize': 0}})
