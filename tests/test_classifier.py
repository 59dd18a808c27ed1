import pytest

from fleet_tuner.core.errors import TopologyInvalid, UnknownTopology
from fleet_tuner.core.types import ComponentFlags, InventoryRoles, ServiceClass, Topology
from fleet_tuner.topology.classifier import (
    classify_memberships,
    classify_roles,
    component_flags_for,
    validate_topology,
)

S = ServiceClass


def test_monolithic_primary_carries_every_service():
    topology = classify_roles(InventoryRoles(primary_controller_host="primary"))

    for cls in ServiceClass:
        if cls == S.replica:
            assert topology.nodes_with(cls) == frozenset()
        else:
            assert topology.nodes_with(cls) == {"primary"}, cls


def test_split_roles_move_services_off_the_primary():
    roles = InventoryRoles(
        primary_controller_host="primary",
        console_host="console",
        job_queue_hosts=("jq1", "jq2"),
        compiler_hosts=("c1", "c2"),
    )
    topology = classify_roles(roles)

    assert topology.nodes_with(S.console) == {"console"}
    assert topology.nodes_with(S.job_queue) == {"jq1", "jq2"}
    # The first job queue host defaults to the database.
    assert topology.nodes_with(S.database) == {"jq1"}
    assert topology.nodes_with(S.compiler) == {"primary", "c1", "c2"}


def test_declared_database_host_wins_over_job_queue_default():
    roles = InventoryRoles(
        primary_controller_host="primary",
        job_queue_hosts=("jq1",),
        database_host="db",
    )
    topology = classify_roles(roles)

    assert topology.nodes_with(S.database) == {"db"}
    assert not topology.has("jq1", S.database)


def test_external_database_leaves_job_queue_on_primary():
    topology = classify_roles(InventoryRoles(primary_controller_host="primary", database_host="db"))

    assert topology.nodes_with(S.database) == {"db"}
    assert topology.has("primary", S.job_queue)
    assert not topology.has("primary", S.database)


def test_replica_is_a_full_standby():
    topology = classify_roles(
        InventoryRoles(primary_controller_host="primary", replica_host="replica")
    )

    assert topology.nodes_with(S.replica) == {"replica"}
    assert topology.nodes_with(S.certificate_authority) == {"primary"}
    # The standby console does not count as a second active console.
    assert topology.nodes_with(S.console) == {"primary", "replica"}
    assert component_flags_for(topology, "replica") == ComponentFlags(
        message_broker=True, console=True, database=True, orchestrator=True, job_queue=True
    )


def test_missing_primary_is_unknown_topology():
    with pytest.raises(UnknownTopology):
        classify_roles(InventoryRoles(console_host="console"))


def test_unknown_topology_is_a_topology_error():
    with pytest.raises(TopologyInvalid):
        classify_memberships({"compiler": ["c1"]})


def test_memberships_infer_primary_from_certificate_authority():
    memberships = {
        "certificate_authority": ["primary"],
        "compiler": ["primary", "replica", "c1"],
        "message_broker": ["primary", "replica"],
        "orchestrator": ["primary", "replica"],
        "console": ["primary", "replica"],
        "replica": ["replica"],
    }
    topology = classify_memberships(memberships)

    assert topology.nodes_with(S.primary_controller) == {"primary"}
    assert topology.nodes_with(S.compiler) == {"primary", "replica", "c1"}


def test_memberships_accept_enum_keys_and_deduplicate():
    topology = classify_memberships(
        {
            S.certificate_authority: ["p", "p"],
            S.compiler: ["p"],
            S.message_broker: ["p"],
            S.orchestrator: "p",
        }
    )

    assert topology.nodes_with(S.primary_controller) == {"p"}
    assert topology.nodes_with(S.orchestrator) == {"p"}


def test_unknown_service_class_is_rejected():
    with pytest.raises(TopologyInvalid):
        classify_memberships({"certificate_authority": ["p"], "mystery": ["p"]})


def test_two_certificate_authorities_are_rejected():
    memberships = {
        "primary_controller": ["p"],
        "certificate_authority": ["p", "q"],
        "compiler": ["p"],
        "message_broker": ["p"],
        "orchestrator": ["p"],
    }
    with pytest.raises(TopologyInvalid):
        classify_memberships(memberships)


def test_two_active_consoles_are_rejected():
    memberships = {
        "certificate_authority": ["p"],
        "compiler": ["p"],
        "message_broker": ["p"],
        "orchestrator": ["p"],
        "console": ["p", "c"],
    }
    with pytest.raises(TopologyInvalid):
        classify_memberships(memberships)


def test_primary_missing_a_required_service_is_rejected():
    topology = Topology(
        {
            S.primary_controller: frozenset({"p"}),
            S.certificate_authority: frozenset({"p"}),
            S.message_broker: frozenset({"p"}),
            S.orchestrator: frozenset({"p"}),
        }
    )
    with pytest.raises(TopologyInvalid):
        validate_topology(topology)


def test_memberships_add_the_services_a_primary_always_runs():
    topology = classify_memberships({"certificate_authority": ["p"], "compiler": ["c1"]})

    assert topology.nodes_with(S.primary_controller) == {"p"}
    assert topology.nodes_with(S.compiler) == {"p", "c1"}
    assert topology.nodes_with(S.message_broker) == {"p"}
    assert topology.nodes_with(S.orchestrator) == {"p"}
    # Nothing else runs them, so they stay on the primary.
    assert topology.nodes_with(S.console) == {"p"}
    assert topology.nodes_with(S.job_queue) == {"p"}
    assert topology.nodes_with(S.database) == {"p"}


def test_memberships_keep_services_listed_on_other_nodes():
    topology = classify_memberships(
        {
            "certificate_authority": ["p"],
            "console": ["console"],
            "job_queue": ["jq1"],
            "database": ["db"],
        }
    )

    assert topology.nodes_with(S.console) == {"console"}
    assert topology.nodes_with(S.job_queue) == {"jq1"}
    assert topology.nodes_with(S.database) == {"db"}


def test_replica_standby_services_do_not_move_them_off_the_primary():
    topology = classify_memberships(
        {
            "certificate_authority": ["p"],
            "replica": ["r"],
            "console": ["r"],
            "job_queue": ["r"],
            "database": ["r"],
        }
    )

    assert topology.nodes_with(S.console) == {"p", "r"}
    assert topology.nodes_with(S.database) == {"p", "r"}


def test_two_replicas_are_rejected():
    memberships = {"certificate_authority": ["p"], "replica": ["r1", "r2"]}
    with pytest.raises(TopologyInvalid):
        classify_memberships(memberships)


def test_primary_cannot_be_its_own_replica():
    with pytest.raises(TopologyInvalid):
        classify_roles(InventoryRoles(primary_controller_host="p", replica_host="p"))


def test_reclassifying_memberships_is_idempotent():
    topology = classify_roles(
        InventoryRoles(
            primary_controller_host="primary",
            replica_host="replica",
            console_host="console",
            job_queue_hosts=("jq1",),
            compiler_hosts=("c1",),
        )
    )

    assert classify_memberships(topology.memberships()) == topology


def test_each_classification_builds_fresh_state():
    first = classify_roles(InventoryRoles(primary_controller_host="a", compiler_hosts=("c1",)))
    second = classify_roles(InventoryRoles(primary_controller_host="b"))

    assert first.nodes_with(S.compiler) == {"a", "c1"}
    assert second.nodes_with(S.compiler) == {"b"}
