# tests/domains/test_ref_tree.py

"""
Построение дерева оборудования (kipzra.domains.ref.services) и маршрут
`GET /api/v1/ref/device-tree`.
"""

from types import SimpleNamespace

import pytest
from httpx import AsyncClient

from kipzra.domains.ref import services as ref_services


def _device(id, equipment_code, device_type="Датчик", position_code=None):
    return SimpleNamespace(
        id=id,
        equipment_code=equipment_code,
        position_code=position_code or f"POS-{id}",
        device_type=device_type,
    )


def _walk(root, code):
    node = root
    for _, node_id in ref_services.split_code(code):
        node = node.children[node_id]
    return node


def _all_devices(node):
    found = list(node.devices)
    for child in node.children.values():
        found.extend(_all_devices(child))
    return found


def test_full_code_builds_expected_path():
    print("\n--- Running test_full_code_builds_expected_path ---")
    device = _device(1, "A.1-B-C-D.1")
    root = ref_services.build_tree([device])

    node = _walk(root, "A.1-B-C-D.1")
    assert node.leaf_device is device
    assert node.devices == [device]
    assert node.id == "A.1-B-C-D.1"

    ids, names = [], []
    current = root
    while current.children:
        (current,) = current.children.values()
        ids.append(current.id)
        names.append(current.name)
    assert ids == ["A", "A.1", "A.1-B", "A.1-B-C", "A.1-B-C-D", "A.1-B-C-D.1"]
    assert names == ["A", "1", "B", "C", "D", "1"]
    # промежуточные узлы устройств не содержат
    assert _walk(root, "A.1-B").devices == []
    assert _walk(root, "A.1-B").leaf_device is None


def test_split_code_ids_for_deep_last_group():
    path = ref_services.split_code("A.1-B-C-D.1.2")
    assert [name for name, _ in path] == ["A", "1", "B", "C", "D", "1", "2"]
    assert path[-1][1] == "A.1-B-C-D.1.2"


def test_short_codes_stop_on_internal_nodes():
    print("\n--- Running test_short_codes_stop_on_internal_nodes ---")
    parent = _device(1, "A.1-B")
    child = _device(2, "A.1-B-C-D.1")
    root = ref_services.build_tree([parent, child])

    node_b = _walk(root, "A.1-B")
    assert node_b.devices == [parent]
    assert node_b.leaf_device is parent
    assert "A.1-B-C" in node_b.children
    assert _walk(root, "A.1-B-C-D.1").leaf_device is child


def test_identical_codes_share_node_without_leaf():
    print("\n--- Running test_identical_codes_share_node_without_leaf ---")
    first = _device(1, "A.1-B-C-D.1")
    second = _device(2, "A.1-B-C-D.1")
    root = ref_services.build_tree([first, second])

    node = _walk(root, "A.1-B-C-D.1")
    assert node.devices == [first, second]
    assert node.leaf_device is None


def test_empty_segments_are_skipped():
    device = _device(1, "A..1--B")
    root = ref_services.build_tree([device])

    assert list(root.children) == ["A"]
    node = _walk(root, "A.1-B")
    assert node.devices == [device]
    assert node.id == "A.1-B"


def test_devices_without_code_are_left_out():
    placed = _device(1, "X.1")
    missing = _device(2, None)
    blank = _device(3, "   ")
    root = ref_services.build_tree([placed, missing, blank])

    assert _all_devices(root) == [placed]


def test_code_of_only_delimiters_lands_on_root():
    device = _device(1, "---")
    root = ref_services.build_tree([device])

    assert root.devices == [device]
    assert root.children == {}
    assert root.leaf_device is None


@pytest.mark.parametrize("codes", [
    ["A.1-B-C-D.1", "A.1-B-C-D.2", "A.2", "Z"],
    ["...", "-", "A-B-C-D-E-F", "A.1-B-C-D..9", " A . 1 - B "],
    ["1-2-3-4.5.6.7", "1-2", "1", "1.2.3.4.5", ""],
])
def test_every_coded_device_is_reachable(codes):
    print("\n--- Running test_every_coded_device_is_reachable ---")
    devices = [_device(i, code) for i, code in enumerate(codes)]
    root = ref_services.build_tree(devices)

    coded = [d for d in devices if d.equipment_code and d.equipment_code.strip()]
    placed = _all_devices(root)
    assert sorted(d.id for d in placed) == sorted(d.id for d in coded)
    for device in coded:
        node = _walk(root, device.equipment_code.strip())
        assert device in node.devices


def test_tree_by_position_code():
    device = _device(1, None, position_code="P.1-Q")
    root = ref_services.build_tree([device], code_field="position_code")
    assert _walk(root, "P.1-Q").leaf_device is device


def test_build_type_groups_orders_types_and_prefixes():
    print("\n--- Running test_build_type_groups_orders_types_and_prefixes ---")
    devices = [
        _device(1, "B.2-X", device_type="Расходомер"),
        _device(2, "A.1-Y", device_type="Расходомер"),
        _device(3, "A.5", device_type="Расходомер"),
        _device(4, "C.1", device_type="Датчик"),
    ]
    groups = ref_services.build_type_groups(devices)

    assert [g.device_type for g in groups] == ["Датчик", "Расходомер"]
    flow = groups[1]
    assert [g.prefix for g in flow.groups] == ["A", "B"]
    assert [d.id for d in flow.groups[0].devices] == [2, 3]
    assert flow.device_count == 3


@pytest.mark.asyncio
async def test_device_tree_endpoint(client: AsyncClient, test_project, device_factory):
    print("\n--- Running test_device_tree_endpoint ---")
    await device_factory(test_project.id, "FT-101", device_type="Расходомер", equipment_code="A.1-B-C-D.1")
    await device_factory(test_project.id, "FT-102", device_type="Расходомер", equipment_code="A.1-B-C-D.2")
    await device_factory(test_project.id, "PT-201", device_type="Датчик", equipment_code=None)

    response = await client.get("/api/v1/ref/device-tree", params={"project_id": test_project.id})
    print(f"Response status code: {response.status_code}")
    assert response.status_code == 200
    root = response.json()

    assert root["id"] == "root"
    node_d = root["children"]["A"]["children"]["A.1"]["children"]["A.1-B"]["children"]["A.1-B-C"]["children"]["A.1-B-C-D"]
    assert node_d["id"] == "A.1-B-C-D"
    assert set(node_d["children"]) == {"A.1-B-C-D.1", "A.1-B-C-D.2"}
    assert node_d["children"]["A.1-B-C-D.1"]["name"] == "1"
    assert node_d["children"]["A.1-B-C-D.1"]["leaf_device"]["position_code"] == "FT-101"
    assert node_d["children"]["A.1-B-C-D.2"]["leaf_device"]["position_code"] == "FT-102"


@pytest.mark.asyncio
async def test_device_tree_by_type_endpoint(client: AsyncClient, test_project, device_factory):
    await device_factory(test_project.id, "FT-101", device_type="Расходомер", equipment_code="A.1-B")
    await device_factory(test_project.id, "PT-201", device_type="Датчик", equipment_code="B.2")

    response = await client.get("/api/v1/ref/device-tree/by-type", params={"project_id": test_project.id})
    assert response.status_code == 200
    data = response.json()
    assert [group["device_type"] for group in data] == ["Датчик", "Расходомер"]
    assert data[1]["groups"][0]["prefix"] == "A"
    assert data[1]["groups"][0]["devices"][0]["position_code"] == "FT-101"


def test_dot_and_dash_siblings_stay_separate():
    print("\n--- Running test_dot_and_dash_siblings_stay_separate ---")
    dotted = _device(1, "A.B")
    dashed = _device(2, "A-B")
    root = ref_services.build_tree([dotted, dashed])

    node_a = root.children["A"]
    assert set(node_a.children) == {"A.B", "A-B"}
    assert [child.name for child in node_a.children.values()] == ["B", "B"]
    assert node_a.children["A.B"].leaf_device is dotted
    assert node_a.children["A-B"].leaf_device is dashed
