from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)

PIPELINE_VERSION = "5-stage/1"


class Stage(str, Enum):
    REQUEST = "Request"
    PENDING_APPROVAL = "PendingApproval"
    IN_PRODUCTION = "InProduction"
    DISPATCH = "Dispatch"
    DONE = "Done"

    def __str__(self):
        return self.value


class FileStatus(str, Enum):
    RED = "Red"
    YELLOW = "Yellow"
    GREEN = "Green"

    def __str__(self):
        return self.value


class Role(str, Enum):
    CLIENT = "client"
    OPERATIONS = "operations"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    def __str__(self):
        return self.value


# Declaration order of Stage is the pipeline order.
PIPELINE: tuple[Stage, ...] = tuple(Stage)

DRAG_ENABLED_ROLES = frozenset({Role.ADMIN, Role.SUPERADMIN, Role.OPERATIONS})

# Labels written by earlier board revisions (six-stage and Spanish variants).
LEGACY_STAGE_LABELS: dict[str, Stage] = {
    "Leads": Stage.REQUEST,
    "Solicitud": Stage.REQUEST,
    "Quoting": Stage.REQUEST,
    "En Cotización": Stage.REQUEST,
    "Por Aprobar": Stage.PENDING_APPROVAL,
    "En Producción": Stage.IN_PRODUCTION,
    "Despacho": Stage.DISPATCH,
    "Terminado": Stage.DONE,
    "Collections": Stage.DONE,
    "Cobranza": Stage.DONE,
}

LEGACY_FILE_STATUS_LABELS: dict[str, FileStatus] = {
    "Rojo": FileStatus.RED,
    "Amarillo": FileStatus.YELLOW,
    "Verde": FileStatus.GREEN,
}


def stage_index(stage: Stage) -> int:
    return PIPELINE.index(stage)


def next_stage(stage: Stage) -> Stage | None:
    idx = stage_index(stage)
    if idx + 1 >= len(PIPELINE):
        return None
    return PIPELINE[idx + 1]


def previous_stage(stage: Stage) -> Stage | None:
    idx = stage_index(stage)
    if idx == 0:
        return None
    return PIPELINE[idx - 1]


def is_first(stage: Stage) -> bool:
    return stage == PIPELINE[0]


def is_last(stage: Stage) -> bool:
    return stage == PIPELINE[-1]


def normalize_stage(label: str | Stage) -> Stage:
    """Map a persisted stage label onto the canonical pipeline.

    Unknown labels land in the first stage, the same place the board shows
    cards whose status it does not recognise.
    """
    if isinstance(label, Stage):
        return label
    try:
        return Stage(label)
    except ValueError:
        pass
    legacy = LEGACY_STAGE_LABELS.get(label)
    if legacy is not None:
        return legacy
    logger.warning("unknown stage label=%r, placing order in %s", label, PIPELINE[0])
    return PIPELINE[0]


def normalize_file_status(label: str | FileStatus) -> FileStatus:
    if isinstance(label, FileStatus):
        return label
    try:
        return FileStatus(label)
    except ValueError:
        pass
    legacy = LEGACY_FILE_STATUS_LABELS.get(label)
    if legacy is None:
        raise ValueError(f"unknown file status: {label!r}")
    return legacy
