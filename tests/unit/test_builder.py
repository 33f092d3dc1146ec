"""
Unit tests for the fluent configuration builder.
"""

import pytest

from rolegate import (
    FULL_ACCESS_PERMISSIONS,
    RBACBuilder,
    RBACConfig,
    RBACManager,
)
from rolegate.exceptions import ConfigurationError, RBACErrorCode


def build_shop_config() -> RBACConfig:
    return (
        RBACBuilder()
        .role('ADMIN', 'Shop administrator')
            .grant_full_access('Products')
            .grant_full_access('News')
            .done()
        .role('EDITOR')
            .for_resource('Products').grant('READ', 'UPDATE')
            .for_resource('News').grant_all()
            .and_()
            .grant_read_only('Bookings')
            .done()
        .role('CLIENT')
            .for_resource('Products').grant_read_only()
            .done()
        .set_default_role('CLIENT')
        .build()
    )


class TestBuilder:

    def test_builds_validated_configuration(self):
        config = build_shop_config()

        assert isinstance(config, RBACConfig)
        assert config.role_names() == ['ADMIN', 'EDITOR', 'CLIENT']
        assert config.default_role == 'CLIENT'
        assert config.roles['ADMIN'].description == 'Shop administrator'
        assert config.roles['ADMIN'].permissions['Products'] == frozenset(FULL_ACCESS_PERMISSIONS)
        assert config.roles['EDITOR'].permissions['Products'] == frozenset({'READ', 'UPDATE'})
        assert config.roles['EDITOR'].permissions['Bookings'] == frozenset({'READ', 'VIEW'})
        assert config.roles['CLIENT'].permissions['Products'] == frozenset({'READ', 'VIEW'})

    def test_full_access_is_explicit_enumeration(self):
        config = build_shop_config()

        for permissions in config.roles['ADMIN'].permissions.values():
            assert '*' not in permissions

    def test_grant_accumulates(self):
        config = (
            RBACBuilder()
            .role('EDITOR')
                .for_resource('News').grant('READ').grant('UPDATE', 'READ')
                .done()
            .build()
        )

        assert config.roles['EDITOR'].permissions['News'] == frozenset({'READ', 'UPDATE'})

    def test_grant_all_replaces_previous_grants(self):
        config = (
            RBACBuilder()
            .role('EDITOR')
                .for_resource('News').grant('PUBLISH').grant_all()
                .done()
            .build()
        )

        assert 'PUBLISH' not in config.roles['EDITOR'].permissions['News']

    def test_extend_role_unions_permissions(self):
        config = (
            RBACBuilder()
            .role('CLIENT')
                .for_resource('Products').grant('READ')
                .for_resource('Bookings').grant('CREATE')
                .done()
            .role('VIP')
                .for_resource('Products').grant('VIEW')
                .done()
            .extend_role('VIP', 'CLIENT')
            .build()
        )

        assert config.roles['VIP'].permissions['Products'] == frozenset({'READ', 'VIEW'})
        assert config.roles['VIP'].permissions['Bookings'] == frozenset({'CREATE'})
        assert config.roles['CLIENT'].permissions['Products'] == frozenset({'READ'})

    def test_extend_unknown_role_raises(self):
        builder = RBACBuilder().role('CLIENT').done()

        with pytest.raises(ConfigurationError):
            builder.extend_role('VIP', 'CLIENT')
        with pytest.raises(ConfigurationError):
            builder.extend_role('CLIENT', 'VIP')

    def test_default_role_must_exist(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RBACBuilder().role('CLIENT').done().set_default_role('GUEST')
        assert exc_info.value.error_code == RBACErrorCode.CONFIG_DEFAULT_ROLE_UNDEFINED

    def test_empty_builder_fails_validation(self):
        with pytest.raises(ConfigurationError):
            RBACBuilder().build()

    def test_malformed_identifier_fails_validation(self):
        with pytest.raises(ConfigurationError):
            RBACBuilder().role('ADMIN').for_resource('Products').grant('${x}').done().build()

    def test_built_config_drives_manager(self):
        rbac = RBACManager(build_shop_config())

        assert rbac.can('ADMIN', 'News', 'DELETE') is True
        assert rbac.can('EDITOR', 'News', 'DELETE') is True
        assert rbac.can('CLIENT', 'Products', 'UPDATE') is False
        assert rbac.user_can([], 'Products', 'VIEW') is True
