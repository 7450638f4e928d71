"""
Staff roles and the permission set each one carries.

A doctor owns the chamber and holds every permission. Staff act on behalf of
one doctor with the permission set of their role.
"""
from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, List


@dataclass(frozen=True)
class StaffPermissions:
    can_manage_queue: bool = False
    can_view_patient_list: bool = False
    can_add_patients: bool = False
    can_edit_patients: bool = False
    can_view_prescriptions: bool = False
    can_view_finances: bool = False
    can_manage_staff: bool = False
    can_manage_integrations: bool = False
    can_view_settings: bool = False

    def allows(self, permission: str) -> bool:
        if permission not in PERMISSION_NAMES:
            raise ValueError(f"Unknown permission: {permission}")
        return getattr(self, permission)

    def granted(self) -> List[str]:
        return [name for name in PERMISSION_NAMES if getattr(self, name)]

    def as_dict(self) -> Dict[str, bool]:
        return {name: getattr(self, name) for name in PERMISSION_NAMES}


PERMISSION_NAMES = tuple(f.name for f in fields(StaffPermissions))

NO_PERMISSIONS = StaffPermissions()

FULL_PERMISSIONS = StaffPermissions(**{name: True for name in PERMISSION_NAMES})


class StaffRole(Enum):
    RECEPTIONIST = (
        "receptionist",
        StaffPermissions(
            can_manage_queue=True,
            can_view_patient_list=True,
        ),
    )
    ASSISTANT = (
        "assistant",
        StaffPermissions(
            can_manage_queue=True,
            can_view_patient_list=True,
            can_add_patients=True,
            can_edit_patients=True,
            can_view_prescriptions=True,
        ),
    )
    # Managers run the front office but never manage other staff or
    # integrations; those stay with the doctor.
    MANAGER = (
        "manager",
        StaffPermissions(
            can_manage_queue=True,
            can_view_patient_list=True,
            can_add_patients=True,
            can_edit_patients=True,
            can_view_prescriptions=True,
            can_view_finances=True,
            can_view_settings=True,
        ),
    )

    def __init__(self, label: str, permissions: StaffPermissions):
        self.label = label
        self.permissions = permissions

    @classmethod
    def from_label(cls, label: str) -> "StaffRole":
        for role in cls:
            if role.label == label:
                return role
        raise ValueError(f"Unknown staff role: {label}")


STAFF_ROLE_LABELS = tuple(role.label for role in StaffRole)
