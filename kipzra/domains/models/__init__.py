# kipzra/domains/models/__init__.py

"""
Все SQLModel-модели в одном месте: импорт этого модуля гарантирует,
что SQLModel.metadata знает о каждой таблице.
"""

# prj (Project)
from kipzra.domains.prj.models import Project, ProjectStatus

# ref (Device, Kip, Zra, FilterPreset)
from kipzra.domains.ref.models import Device, Kip, Zra, FilterPreset

# sig (Signal, DeviceSignal, DeviceTypeSignal, SignalTypeDefinition)
from kipzra.domains.sig.models import (
    Signal, SignalType, DeviceSignal, DeviceTypeSignal, SignalTypeDefinition,
)

__all__ = [
    "Project", "ProjectStatus",
    "Device", "Kip", "Zra", "FilterPreset",
    "Signal", "SignalType", "DeviceSignal", "DeviceTypeSignal", "SignalTypeDefinition",
]
