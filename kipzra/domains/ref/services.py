# kipzra/domains/ref/services.py

"""
Построение дерева оборудования по кодам устройств.

Код оборудования вида "A.1-B-C-D.1.2" делится по "-" не более чем на
четыре группы. Первая и последняя группы дополнительно делятся по ".",
вторая и третья дают по одному узлу. Идентификатор узла - путь
от корня: "A", "A.1", "A.1-B", "A.1-B-C", "A.1-B-C-D", "A.1-B-C-D.1".
Дочерние узлы хранятся по идентификатору, поэтому "A.B" и "A-B"
дают два разных узла с одинаковым именем "B".

Функции этого модуля не обращаются к базе данных и не бросают исключений:
некорректный код просто даёт более короткий путь.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

ROOT_ID = "root"
GROUP_DELIMITER = "-"
SEGMENT_DELIMITER = "."
MAX_GROUPS = 4


@dataclass
class TreeNode:
    id: str
    name: str
    children: Dict[str, "TreeNode"] = field(default_factory=dict)
    devices: List[Any] = field(default_factory=list)
    leaf_device: Optional[Any] = None

    def child(self, name: str, node_id: str) -> "TreeNode":
        node = self.children.get(node_id)
        if node is None:
            node = TreeNode(id=node_id, name=name)
            self.children[node_id] = node
        return node


@dataclass
class PrefixGroup:
    prefix: str
    devices: List[Any] = field(default_factory=list)


@dataclass
class TypeGroup:
    device_type: str
    groups: List[PrefixGroup] = field(default_factory=list)

    @property
    def device_count(self) -> int:
        return sum(len(group.devices) for group in self.groups)


def split_code(code: str) -> List[Tuple[str, str]]:
    """
    Раскладывает код на последовательность (имя узла, идентификатор узла).
    Пустые сегменты пропускаются.
    """
    path: List[Tuple[str, str]] = []
    node_id = ""
    groups = code.split(GROUP_DELIMITER, MAX_GROUPS - 1)

    for index, group in enumerate(groups):
        group = group.strip()
        if not group:
            continue
        # 1-я и 4-я группы делятся по точке, 2-я и 3-я - один сегмент
        if index in (0, MAX_GROUPS - 1):
            segments = [s.strip() for s in group.split(SEGMENT_DELIMITER)]
        else:
            segments = [group]

        first_in_group = True
        for segment in segments:
            if not segment:
                continue
            if not node_id:
                node_id = segment
            elif first_in_group:
                node_id = f"{node_id}{GROUP_DELIMITER}{segment}"
            else:
                node_id = f"{node_id}{SEGMENT_DELIMITER}{segment}"
            first_in_group = False
            path.append((segment, node_id))

    return path


def _device_code(device: Any, code_field: str) -> str:
    value = getattr(device, code_field, None)
    if value is None and isinstance(device, dict):
        value = device.get(code_field)
    return str(value).strip() if value is not None else ""


def build_tree(devices: Iterable[Any], code_field: str = "equipment_code") -> TreeNode:
    """
    Строит дерево из плоского списка устройств.

    Устройство добавляется в список devices узла, на котором закончился
    его код. Узел получает leaf_device, если на нём заканчивается ровно
    одно устройство. Устройства с пустым кодом в дерево не попадают.
    """
    root = TreeNode(id=ROOT_ID, name=ROOT_ID)
    skipped = 0

    for device in devices:
        code = _device_code(device, code_field)
        if not code:
            skipped += 1
            continue

        node = root
        for name, node_id in split_code(code):
            node = node.child(name, node_id)
        node.devices.append(device)

    _mark_leaves(root)
    if skipped:
        logger.debug("%d devices without %s were left out of the tree", skipped, code_field)
    return root


def _mark_leaves(root: TreeNode) -> None:
    stack = list(root.children.values())
    while stack:
        node = stack.pop()
        node.leaf_device = node.devices[0] if len(node.devices) == 1 else None
        stack.extend(node.children.values())


def build_type_groups(devices: Iterable[Any], code_field: str = "equipment_code") -> List[TypeGroup]:
    """
    Альтернативное плоское представление: тип устройства -> префикс кода
    до первой точки -> устройства. Типы и префиксы упорядочены по возрастанию.
    """
    by_type: Dict[str, Dict[str, List[Any]]] = {}
    for device in devices:
        device_type = (getattr(device, "device_type", None) or "").strip()
        code = _device_code(device, code_field)
        prefix = code.split(SEGMENT_DELIMITER, 1)[0].strip() if code else ""
        by_type.setdefault(device_type, {}).setdefault(prefix, []).append(device)

    return [
        TypeGroup(
            device_type=device_type,
            groups=[PrefixGroup(prefix=prefix, devices=items) for prefix, items in sorted(prefixes.items())],
        )
        for device_type, prefixes in sorted(by_type.items())
    ]
