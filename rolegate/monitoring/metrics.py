"""
Prometheus metrics for authorization monitoring.

Labels deliberately exclude role, resource and permission identifiers to keep metric
cardinality bounded.
"""

from prometheus_client import Counter, Histogram

authorization_metrics = {
    'decisions_total': Counter(
        'rbac_decisions_total',
        'Total authorization decisions by outcome and source',
        ['decision', 'source']
    ),
    'permission_check_duration': Histogram(
        'rbac_permission_check_duration_seconds',
        'Permission resolution processing time',
        ['decision'],
        buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1]
    ),
    'policy_evaluations_total': Counter(
        'rbac_policy_evaluations_total',
        'Policy evaluations and results',
        ['result']
    ),
    'configuration_changes_total': Counter(
        'rbac_configuration_changes_total',
        'Configuration and hierarchy mutations by operation and result',
        ['operation', 'result']
    ),
    'middleware_decisions_total': Counter(
        'rbac_middleware_decisions_total',
        'Middleware adapter decisions by outcome',
        ['decision']
    ),
    'rejected_inputs_total': Counter(
        'rbac_rejected_inputs_total',
        'Identifiers rejected by validation',
        ['field']
    )
}

cache_metrics = {
    'operations_total': Counter(
        'rbac_cache_operations_total',
        'Permission cache operations by type and result',
        ['operation', 'result']
    ),
    'invalidations_total': Counter(
        'rbac_cache_invalidations_total',
        'Permission cache invalidations by reason',
        ['reason']
    ),
    'evictions_total': Counter(
        'rbac_cache_evictions_total',
        'Entries evicted from the permission cache',
        ['reason']
    )
}

audit_metrics = {
    'events_total': Counter(
        'rbac_audit_events_total',
        'Audit events emitted by event type',
        ['event_type']
    )
}


__all__ = [
    'authorization_metrics',
    'cache_metrics',
    'audit_metrics'
]
