from consistent_hash_ring import new, new_with_nodes
from rebalance import RebalancePlanner


def test_plan_on_join():
    ring = new_with_nodes(["node-A", "node-B", "node-C"])
    keys = [f"key-{i}" for i in range(1000)]

    before = ring.clone()
    ring.add("node-D")

    planner = RebalancePlanner()
    plan = planner.plan_moved(keys, before, ring)
    print(f"Moved fraction after adding node-D: {len(plan) / len(keys):.2%}")

    # only the new node gains keys
    assert plan
    assert all(to == "node-D" for (_, to) in plan.values())
    stats = planner.stats(plan)
    assert stats["moved_count"] == len(plan)
    assert stats["by_to"] == {"node-D": len(plan)}
    assert sum(stats["by_from"].values()) == len(plan)


def test_plan_on_leave():
    ring = new_with_nodes([f"node{i}" for i in range(5)])
    keys = [f"key-{i}" for i in range(2000)]
    before = ring.clone()
    ring.remove_string("node3")

    planner = RebalancePlanner()
    plan = planner.plan_moved(keys, before, ring)
    assert all(frm == "node3" for (frm, _) in plan.values())
    assert planner.moved_fraction(keys, before, ring) == len(plan) / len(keys)
    assert planner.moved_fraction(keys, before, ring) <= 2.5 / 5


def test_plan_with_empty_ring():
    empty = new()
    ring = new_with_nodes(["only"])
    planner = RebalancePlanner()

    plan = planner.plan_moved(["a", "b"], empty, ring)
    assert plan == {"a": (None, "only"), "b": (None, "only")}
    assert planner.stats(plan)["by_from"] == {}
    assert planner.moved_fraction([], empty, ring) == 0.0
