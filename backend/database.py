"""
Database connection, session management and queries for the offshore
inspection backend.

Every public function opens its own session through get_session() and
returns plain dictionaries (via the models' to_dict()).
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import create_engine, func, or_
from sqlalchemy.orm import sessionmaker, scoped_session

from config import DATABASE_URL, DEFAULT_USER
import jobpack as jp
import library as lib
import report_data
from models import (
    Base,
    Structure,
    StructureComponent,
    InspectionType,
    SOW,
    SOWItem,
    LibraryMaster,
    LibraryItem,
    LibraryCombo,
    Attachment,
    JobPack,
    TaskStructure,
    TaskComponent,
    TaskInspection,
    AnomalyRecord,
    DiveJob,
    DiveMovement,
    VideoTape,
    VideoLog,
)

logger = logging.getLogger(__name__)

STRUCTURE_TYPES = ("PLATFORM", "PIPELINE")
ITEM_STATUSES = ("pending", "completed", "incomplete")

# Columns a SOW item update may touch; component_id / inspection_type_id are fixed at creation
SOW_ITEM_FIELDS = (
    "component_qid", "component_type", "description", "s_node", "f_node", "s_leg", "f_leg",
    "inspection_code", "inspection_name", "elevation_required", "elevation_data",
    "status", "inspection_count", "notes", "report_number",
)

# Create engine
engine = create_engine(DATABASE_URL, echo=False)

# Create session factory
session_factory = sessionmaker(bind=engine)
Session = scoped_session(session_factory)


class DuplicateError(ValueError):
    """A unique combination already exists."""


class StaleWriteError(ValueError):
    """The record changed since the caller last read it."""


def init_db():
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(engine)
    logger.info(f"Database initialized at {DATABASE_URL}")


def drop_db():
    """Drop all tables (use with caution!)."""
    Base.metadata.drop_all(engine)
    logger.info("All tables dropped")


def reset_db():
    """Drop and recreate every table."""
    Session.remove()
    drop_db()
    init_db()


@contextmanager
def get_session():
    """
    Context manager for database sessions.

    Usage:
        with get_session() as session:
            session.query(SOW).all()
    """
    session = Session()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        raise e
    finally:
        session.close()


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise ValueError(f"Invalid date/time: {value!r}")


# =============================================================================
# STRUCTURES / COMPONENTS / INSPECTION TYPES
# =============================================================================

def create_structure(title: str, str_type: str = "PLATFORM", field_name: str = None) -> dict:
    if str_type not in STRUCTURE_TYPES:
        raise ValueError("str_type must be PLATFORM or PIPELINE")
    with get_session() as session:
        structure = Structure(title=title, str_type=str_type, field_name=field_name)
        session.add(structure)
        session.flush()
        return structure.to_dict()


def get_structures(str_type: str = None) -> list:
    with get_session() as session:
        query = session.query(Structure)
        if str_type:
            query = query.filter(Structure.str_type == str_type)
        return [s.to_dict() for s in query.order_by(Structure.title).all()]


def get_structure(structure_id: int) -> dict:
    with get_session() as session:
        structure = session.query(Structure).filter(Structure.id == structure_id).first()
        return structure.to_dict() if structure else None


def create_component(structure_id: int, qid: str, comp_type: str = None, **fields) -> dict:
    with get_session() as session:
        component = StructureComponent(structure_id=structure_id, qid=qid, comp_type=comp_type, **fields)
        session.add(component)
        session.flush()
        return component.to_dict()


def get_components(structure_id: int = None) -> list:
    with get_session() as session:
        query = session.query(StructureComponent)
        if structure_id is not None:
            query = query.filter(StructureComponent.structure_id == structure_id)
        return [c.to_dict() for c in query.order_by(StructureComponent.qid).all()]


def create_inspection_type(code: str, name: str) -> dict:
    with get_session() as session:
        itype = InspectionType(code=code, name=name)
        session.add(itype)
        session.flush()
        return itype.to_dict()


def get_inspection_types() -> list:
    with get_session() as session:
        return [t.to_dict() for t in session.query(InspectionType).order_by(InspectionType.code).all()]


# =============================================================================
# SCOPE OF WORK
# =============================================================================

def _sow_payload(sow: SOW) -> dict:
    return {"header": sow.to_dict(), "items": [i.to_dict() for i in sow.items]}


def _refresh_sow_counts(session, sow_id: int):
    """Recompute the header's item counters and move its updated_at token."""
    session.flush()
    sow = session.query(SOW).filter(SOW.id == sow_id).first()
    if not sow:
        return
    rows = session.query(SOWItem.status, func.count(SOWItem.id))\
        .filter(SOWItem.sow_id == sow_id)\
        .group_by(SOWItem.status)\
        .all()
    counts = {status or "pending": count for status, count in rows}
    sow.total_items = sum(counts.values())
    sow.completed_items = counts.get("completed", 0)
    sow.incomplete_items = counts.get("incomplete", 0)
    sow.pending_items = counts.get("pending", 0)
    sow.updated_at = datetime.utcnow()


def get_sow(sow_id: int) -> dict:
    """
    Get a SOW header with its items.

    Returns:
        {"header": ..., "items": [...]}, or None if not found
    """
    with get_session() as session:
        sow = session.query(SOW).filter(SOW.id == sow_id).first()
        return _sow_payload(sow) if sow else None


def find_sow(jobpack_id: int, structure_id: int) -> dict:
    """The SOW of a (jobpack, structure) pair, or None."""
    with get_session() as session:
        sow = session.query(SOW).filter(
            SOW.jobpack_id == jobpack_id,
            SOW.structure_id == structure_id
        ).first()
        return _sow_payload(sow) if sow else None


def list_sows(jobpack_id: int) -> list:
    with get_session() as session:
        sows = session.query(SOW).filter(SOW.jobpack_id == jobpack_id).order_by(SOW.id).all()
        return [s.to_dict() for s in sows]


def _save_sow_header(session, data: dict) -> SOW:
    structure_type = data.get("structure_type")
    if structure_type is not None and structure_type not in STRUCTURE_TYPES:
        raise ValueError("structure_type must be PLATFORM or PIPELINE")

    if data.get("id"):
        sow = session.query(SOW).filter(SOW.id == data["id"]).first()
        if not sow:
            return None

        expected = data.get("updated_at")
        if expected and sow.updated_at and _parse_datetime(expected) != sow.updated_at:
            raise StaleWriteError("SOW was modified by someone else. Reload and try again.")

        for column in ("structure_type", "structure_title", "report_numbers"):
            if column in data:
                setattr(sow, column, data[column])
        if "metadata" in data:
            sow.meta_data = data["metadata"]
        sow.updated_by = data.get("updated_by") or DEFAULT_USER
        sow.updated_at = datetime.utcnow()
        return sow

    if data.get("jobpack_id") is None or data.get("structure_id") is None:
        raise ValueError("jobpack_id and structure_id are required")

    existing = session.query(SOW).filter(
        SOW.jobpack_id == data["jobpack_id"],
        SOW.structure_id == data["structure_id"]
    ).first()
    if existing:
        raise DuplicateError("A SOW already exists for this job pack and structure")

    sow = SOW(
        jobpack_id=data["jobpack_id"],
        structure_id=data["structure_id"],
        structure_type=structure_type or "PLATFORM",
        structure_title=data.get("structure_title"),
        report_numbers=data.get("report_numbers") or [],
        meta_data=data.get("metadata") or {},
        created_by=data.get("created_by") or DEFAULT_USER,
    )
    session.add(sow)
    session.flush()
    return sow


def save_sow(data: dict) -> dict:
    """
    Create a SOW header, or update it when data["id"] is set.

    Returns:
        The header dict, or None when updating an unknown id
    """
    with get_session() as session:
        sow = _save_sow_header(session, data)
        return sow.to_dict() if sow else None


def delete_sow(sow_id: int) -> bool:
    """Delete a SOW header and (cascade) its items."""
    with get_session() as session:
        sow = session.query(SOW).filter(SOW.id == sow_id).first()
        if sow:
            session.delete(sow)
            return True
        return False


def get_sow_item(item_id: int) -> dict:
    with get_session() as session:
        item = session.query(SOWItem).filter(SOWItem.id == item_id).first()
        return item.to_dict() if item else None


def get_sow_items(sow_id: int) -> list:
    with get_session() as session:
        items = session.query(SOWItem)\
            .filter(SOWItem.sow_id == sow_id)\
            .order_by(SOWItem.component_qid)\
            .all()
        return [i.to_dict() for i in items]


def _apply_item_fields(item: SOWItem, data: dict):
    for column in SOW_ITEM_FIELDS:
        if column in data:
            setattr(item, column, data[column])
    if "last_inspection_date" in data:
        item.last_inspection_date = _parse_datetime(data["last_inspection_date"])
    if item.status not in ITEM_STATUSES:
        raise ValueError(f"status must be one of {', '.join(ITEM_STATUSES)}")


def _upsert_item(session, data: dict) -> Optional[SOWItem]:
    if data.get("id"):
        query = session.query(SOWItem).filter(SOWItem.id == data["id"])
        if data.get("sow_id") is not None:
            query = query.filter(SOWItem.sow_id == data["sow_id"])
        item = query.first()
        if not item:
            return None
        _apply_item_fields(item, data)
        return item

    for column in ("sow_id", "component_id", "inspection_type_id"):
        if data.get(column) is None:
            raise ValueError("sow_id, component_id and inspection_type_id are required")

    item = SOWItem(
        sow_id=data["sow_id"],
        component_id=data["component_id"],
        inspection_type_id=data["inspection_type_id"],
        elevation_required=False,
        elevation_data=[],
        status="pending",
    )
    _apply_item_fields(item, data)
    session.add(item)
    return item


def upsert_sow_item(data: dict) -> dict:
    """
    Update an item by id, or insert a new one.

    Returns:
        The item dict, or None when updating an unknown id
    """
    with get_session() as session:
        item = _upsert_item(session, data)
        if item is None:
            return None
        session.flush()
        _refresh_sow_counts(session, item.sow_id)
        return item.to_dict()


def bulk_update_sow_items(updates: List[dict]) -> Tuple[list, list]:
    """
    Apply several item updates independently.

    Returns:
        (updated items, [{"id", "error"}] for the ones that failed)
    """
    updated, errors = [], []
    for data in updates:
        if not data.get("id"):
            errors.append({"id": None, "error": "id is required"})
            continue
        try:
            item = upsert_sow_item(data)
        except ValueError as e:
            errors.append({"id": data["id"], "error": str(e)})
            continue
        if item is None:
            errors.append({"id": data["id"], "error": "Item not found"})
        else:
            updated.append(item)
    return updated, errors


def delete_sow_item(item_id: int) -> bool:
    with get_session() as session:
        item = session.query(SOWItem).filter(SOWItem.id == item_id).first()
        if not item:
            return False
        sow_id = item.sow_id
        session.delete(item)
        _refresh_sow_counts(session, sow_id)
        return True


def apply_sow_save_plan(plan: dict) -> dict:
    """
    Apply a SOW editor save plan in a single transaction.

    plan = {"header": {...}, "upserts": [...], "deletes": [ids]}. New items
    get the header's id. Any failure rolls back the whole plan.

    Returns:
        The saved header dict
    """
    with get_session() as session:
        sow = _save_sow_header(session, plan["header"])
        if sow is None:
            raise ValueError(f"SOW not found: {plan['header'].get('id')}")

        for data in plan.get("upserts", []):
            payload = dict(data)
            payload["sow_id"] = sow.id
            try:
                item = _upsert_item(session, payload)
            except ValueError as e:
                raise ValueError(f"Failed to save item for component {data.get('component_qid')}: {e}")
            if item is None:
                raise ValueError(f"Failed to save item for component {data.get('component_qid')}")

        delete_ids = plan.get("deletes") or []
        if delete_ids:
            items = session.query(SOWItem).filter(
                SOWItem.sow_id == sow.id,
                SOWItem.id.in_(delete_ids)
            ).all()
            for item in items:
                session.delete(item)

        _refresh_sow_counts(session, sow.id)
        return sow.to_dict()


# =============================================================================
# LIBRARY
# =============================================================================

def get_library_masters() -> list:
    """Library categories ordered by name, hidden ones excluded."""
    with get_session() as session:
        masters = session.query(LibraryMaster).order_by(LibraryMaster.lib_name).all()
        return [m.to_dict() for m in masters if not lib.is_hidden(m.to_dict())]


def create_library_master(lib_code: str, lib_name: str, hidden_item: str = None) -> dict:
    with get_session() as session:
        if session.query(LibraryMaster).filter(LibraryMaster.lib_code == lib_code).first():
            raise DuplicateError(f"Library {lib_code} already exists")
        master = LibraryMaster(lib_code=lib_code, lib_name=lib_name, hidden_item=hidden_item)
        session.add(master)
        return master.to_dict()


def get_library_items(lib_codes: List[str], include_deleted: bool = True) -> list:
    """Items of one or more libraries, ordered by description, hidden ones excluded."""
    with get_session() as session:
        query = session.query(LibraryItem).filter(LibraryItem.lib_code.in_(lib_codes))
        if not include_deleted:
            query = query.filter(or_(LibraryItem.lib_delete.is_(None), LibraryItem.lib_delete == 0))
        items = [i.to_dict() for i in query.order_by(LibraryItem.lib_desc).all()]
        return [i for i in items if not lib.is_hidden(i)]


def get_library_item(lib_code: str, lib_id: str) -> dict:
    with get_session() as session:
        item = session.query(LibraryItem).filter(
            LibraryItem.lib_code == lib_code,
            LibraryItem.lib_id == lib_id
        ).first()
        return item.to_dict() if item else None


def _next_lib_id(session, lib_code: str) -> str:
    ids = [row[0] for row in session.query(LibraryItem.lib_id).filter(LibraryItem.lib_code == lib_code).all()]
    numeric = [int(i) for i in ids if i and i.isdigit()]
    return str(max(numeric) + 1 if numeric else 1)


def create_library_item(lib_code: str, data: dict, user: str = None) -> dict:
    """
    Add an item to a library.

    COLOR items are normalised to "R,G,B" ids; other libraries get the next
    numeric lib_id when none is given.
    """
    if lib_code == lib.COLOR_LIBRARY:
        data = lib.prepare_color_item(data)
    if not (data.get("lib_desc") or "").strip():
        raise ValueError("lib_desc is required")

    with get_session() as session:
        lib_id = (data.get("lib_id") or "").strip() or _next_lib_id(session, lib_code)
        duplicate = session.query(LibraryItem).filter(
            LibraryItem.lib_code == lib_code,
            LibraryItem.lib_id == lib_id
        ).first()
        if duplicate:
            raise DuplicateError(f"{lib_code} item {lib_id} already exists")

        item = LibraryItem(
            lib_code=lib_code,
            lib_id=lib_id,
            lib_desc=data["lib_desc"].strip(),
            lib_com=data.get("lib_com"),
            lib_delete=0,
            hidden_item=data.get("hidden_item"),
            logo_url=data.get("logo_url"),
            workunit=lib.DEFAULT_WORKUNIT,
            cr_user=(user or DEFAULT_USER)[:30],
        )
        session.add(item)
        session.flush()
        return item.to_dict()


def update_library_item(lib_code: str, lib_id: str, data: dict) -> dict:
    """Update description/comment/logo and the soft-delete flag. None if not found."""
    with get_session() as session:
        item = session.query(LibraryItem).filter(
            LibraryItem.lib_code == lib_code,
            LibraryItem.lib_id == lib_id
        ).first()
        if not item:
            return None
        for column in ("lib_desc", "lib_com", "logo_url", "hidden_item"):
            if column in data:
                setattr(item, column, data[column])
        if "lib_delete" in data:
            item.lib_delete = 1 if data["lib_delete"] else 0
        return item.to_dict()


def toggle_library_item(lib_code: str, lib_id: str) -> dict:
    """Flip lib_delete between 0 and 1. None if not found."""
    with get_session() as session:
        item = session.query(LibraryItem).filter(
            LibraryItem.lib_code == lib_code,
            LibraryItem.lib_id == lib_id
        ).first()
        if not item:
            return None
        item.lib_delete = lib.toggled_delete_flag(item.lib_delete)
        return item.to_dict()


def get_library_stats(lib_code: str) -> dict:
    items = get_library_items([lib_code])
    deleted = sum(1 for i in items if lib.is_deleted(i))
    return {"lib_code": lib_code, "total": len(items), "active": len(items) - deleted, "deleted": deleted}


def get_combos(lib_code: str, include_deleted: bool = True) -> list:
    with get_session() as session:
        query = session.query(LibraryCombo).filter(LibraryCombo.lib_code == lib_code)
        if not include_deleted:
            query = query.filter(or_(LibraryCombo.lib_delete.is_(None), LibraryCombo.lib_delete == 0))
        combos = query.order_by(LibraryCombo.code_1, LibraryCombo.code_2).all()
        return [c.to_dict() for c in combos]


def create_combo(lib_code: str, code_1: str, code_2: str, lib_com: str = None, user: str = None) -> dict:
    with get_session() as session:
        duplicate = session.query(LibraryCombo).filter(
            LibraryCombo.lib_code == lib_code,
            LibraryCombo.code_1 == code_1,
            LibraryCombo.code_2 == code_2
        ).first()
        if duplicate:
            raise DuplicateError("This combination already exists")

        combo = LibraryCombo(
            lib_code=lib_code,
            code_1=code_1,
            code_2=code_2,
            lib_com=lib_com,
            lib_delete=0,
            workunit=lib.DEFAULT_WORKUNIT,
            cr_user=(user or DEFAULT_USER)[:30],
        )
        session.add(combo)
        session.flush()
        return combo.to_dict()


def update_combo(lib_code: str, combo_id: int, data: dict) -> dict:
    """Update lib_com and the soft-delete flag of a combination. None if not found."""
    with get_session() as session:
        combo = session.query(LibraryCombo).filter(
            LibraryCombo.lib_code == lib_code,
            LibraryCombo.id == combo_id
        ).first()
        if not combo:
            return None
        if "lib_com" in data:
            combo.lib_com = data["lib_com"]
        if "lib_delete" in data:
            combo.lib_delete = 1 if data["lib_delete"] else 0
        return combo.to_dict()


def get_combo_options(lib_code: str) -> dict:
    """Selectable values for both sides of a combination library."""
    code1_lib, code2_lib = lib.COMBO_CONFIG[lib_code]
    with get_session() as session:
        masters = session.query(LibraryMaster).filter(
            LibraryMaster.lib_code.in_([code1_lib, code2_lib])
        ).all()
        labels = {m.lib_code: m.lib_name for m in masters}

    return {
        "code1_options": get_library_items([code1_lib], include_deleted=False),
        "code2_options": get_library_items([code2_lib], include_deleted=False),
        "labels": {
            "code_1": labels.get(code1_lib, code1_lib),
            "code_2": labels.get(code2_lib, code2_lib),
        },
        "code1_lib": code1_lib,
        "code2_lib": code2_lib,
    }


def get_priority_colors() -> dict:
    """{priority label: "R,G,B"} from AMLY_TYP and the ANMLYCLR combination."""
    priority_types = get_library_items([lib.PRIORITY_LIBRARY], include_deleted=False)
    combos = get_combos(lib.PRIORITY_COLOR_COMBO, include_deleted=False)
    return report_data.build_priority_colors(priority_types, combos)


# =============================================================================
# ATTACHMENTS
# =============================================================================

def create_attachment(name: str, source_type: str, source_id: Optional[int], path: str, meta: dict) -> dict:
    with get_session() as session:
        attachment = Attachment(name=name, source_type=source_type, source_id=source_id, path=path, meta=meta)
        session.add(attachment)
        session.flush()
        return attachment.to_dict()


def get_attachments(page: int = 1, page_size: int = 20) -> dict:
    """
    Get all attachments with pagination.

    Returns:
        Dictionary with data and pagination info
    """
    with get_session() as session:
        total = session.query(Attachment).count()
        offset = (page - 1) * page_size

        attachments = session.query(Attachment)\
            .order_by(Attachment.created_at.desc(), Attachment.id.desc())\
            .offset(offset)\
            .limit(page_size)\
            .all()

        return {
            "data": [a.to_dict() for a in attachments],
            "pagination": {
                "page": page,
                "pageSize": page_size,
                "total": total,
                "pages": (total + page_size - 1) // page_size
            }
        }


def get_attachment(attachment_id: int) -> dict:
    with get_session() as session:
        attachment = session.query(Attachment).filter(Attachment.id == attachment_id).first()
        return attachment.to_dict() if attachment else None


def get_attachments_by_source(source_type: str, source_ids: List[int]) -> list:
    with get_session() as session:
        attachments = session.query(Attachment).filter(
            Attachment.source_type == source_type,
            Attachment.source_id.in_(source_ids)
        ).order_by(Attachment.created_at, Attachment.id).all()
        return [a.to_dict() for a in attachments]


def delete_attachment(attachment_id: int) -> bool:
    with get_session() as session:
        attachment = session.query(Attachment).filter(Attachment.id == attachment_id).first()
        if attachment:
            session.delete(attachment)
            return True
        return False


def get_all_attachments() -> list:
    with get_session() as session:
        return [a.to_dict() for a in session.query(Attachment).order_by(Attachment.id).all()]


# =============================================================================
# JOB PACKS
# =============================================================================

def _max_inspno(session) -> Optional[str]:
    row = session.query(func.max(JobPack.inspno)).first()
    return row[0] if row else None


def get_next_inspno() -> str:
    with get_session() as session:
        return jp.next_inspno(_max_inspno(session))


def get_contractors() -> list:
    """Active CONTR_NAM library rows ordered by name."""
    return get_library_items([lib.CONTRACTOR_LIBRARY], include_deleted=False)


def create_jobpack(payload: dict, user: str = None) -> str:
    """
    Persist a wizard payload as workpl + task rows.

    The inspection number is recomputed here, inside the insert transaction.

    Returns:
        The new inspno
    """
    with get_session() as session:
        inspno = jp.next_inspno(_max_inspno(session))
        records = jp.build_jobpack_records(payload, inspno, user)

        session.add(JobPack(**records["jobpack"]))
        session.add_all(TaskStructure(**row) for row in records["taskstr"])
        session.add_all(TaskComponent(**row) for row in records["taskcomp"])
        session.add_all(TaskInspection(**row) for row in records["taskinsp"])
        return inspno


def get_jobpacks() -> list:
    with get_session() as session:
        packs = session.query(JobPack).order_by(JobPack.inspno.desc()).all()
        return [p.to_dict() for p in packs]


def get_jobpack(inspno: str) -> dict:
    with get_session() as session:
        pack = session.query(JobPack).filter(JobPack.inspno == inspno).first()
        return pack.to_dict(include_tasks=True) if pack else None


# =============================================================================
# REPORT SOURCES
# =============================================================================

def create_anomaly(**fields) -> dict:
    if "inspection_date" in fields:
        fields["inspection_date"] = _parse_datetime(fields["inspection_date"])
    with get_session() as session:
        record = AnomalyRecord(**fields)
        session.add(record)
        session.flush()
        return record.to_dict()


def create_dive_job(**fields) -> dict:
    with get_session() as session:
        job = DiveJob(**fields)
        session.add(job)
        session.flush()
        return job.to_dict()


def add_dive_movement(dive_job_id: int, **fields) -> dict:
    if "movement_time" in fields:
        fields["movement_time"] = _parse_datetime(fields["movement_time"])
    with get_session() as session:
        movement = DiveMovement(dive_job_id=dive_job_id, **fields)
        session.add(movement)
        session.flush()
        return movement.to_dict()


def create_video_tape(dive_job_id: int, **fields) -> dict:
    with get_session() as session:
        tape = VideoTape(dive_job_id=dive_job_id, **fields)
        session.add(tape)
        session.flush()
        return tape.to_dict()


def add_video_log(tape_id: int, **fields) -> dict:
    if "event_time" in fields:
        fields["event_time"] = _parse_datetime(fields["event_time"])
    with get_session() as session:
        log = VideoLog(tape_id=tape_id, **fields)
        session.add(log)
        session.flush()
        return log.to_dict()


def get_anomaly_rows(jobpack_id: int, structure_id: int = None, sow_report_no: str = None) -> list:
    with get_session() as session:
        query = session.query(AnomalyRecord).filter(AnomalyRecord.jobpack_id == jobpack_id)
        if structure_id is not None:
            query = query.filter(AnomalyRecord.structure_id == structure_id)
        if sow_report_no:
            query = query.filter(AnomalyRecord.sow_report_no == sow_report_no)
        return [r.to_dict() for r in query.order_by(AnomalyRecord.id).all()]


def get_anomaly_report(jobpack_id: int, structure_id: int = None, sow_report_no: str = None) -> list:
    """Anomaly rows, each with its inspection attachments."""
    rows = get_anomaly_rows(jobpack_id, structure_id, sow_report_no)
    if not rows:
        return rows
    attachments = get_attachments_by_source("inspection", [r["id"] for r in rows])
    by_record = report_data.group_by(attachments, "source_id")
    for row in rows:
        row["attachments"] = by_record.get(row["id"], [])
    return rows


def get_defect_summary(jobpack_id: int, structure_id: int = None, sow_report_no: str = None) -> dict:
    rows = report_data.sort_by_priority(get_anomaly_rows(jobpack_id, structure_id, sow_report_no))
    return {"data": rows, "priority_colors": get_priority_colors()}


def get_diver_log(jobpack_id: int, structure_id: int = None) -> list:
    """
    Dive jobs ordered by creation, each with its movements.

    A failed movement lookup leaves the jobs with empty movement lists.
    """
    with get_session() as session:
        query = session.query(DiveJob).filter(DiveJob.jobpack_id == jobpack_id)
        if structure_id is not None:
            query = query.filter(DiveJob.structure_id == structure_id)
        jobs = [j.to_dict() for j in query.order_by(DiveJob.cr_date, DiveJob.dive_job_id).all()]

    if not jobs:
        return jobs

    try:
        with get_session() as session:
            movements = session.query(DiveMovement)\
                .filter(DiveMovement.dive_job_id.in_([j["dive_job_id"] for j in jobs]))\
                .order_by(DiveMovement.movement_time, DiveMovement.id)\
                .all()
            grouped = report_data.group_by([m.to_dict() for m in movements], "dive_job_id")
    except Exception as e:
        logger.warning(f"Could not load dive movements for jobpack {jobpack_id}: {e}")
        grouped = {}

    for job in jobs:
        job["movements"] = grouped.get(job["dive_job_id"], [])
    return jobs


def get_video_log(jobpack_id: int, structure_id: int = None, sow_report_no: str = None) -> list:
    """Tapes of the matching dive jobs with their deduplicated events."""
    with get_session() as session:
        query = session.query(DiveJob).filter(DiveJob.jobpack_id == jobpack_id)
        if structure_id is not None:
            query = query.filter(DiveJob.structure_id == structure_id)
        if sow_report_no:
            query = query.filter(DiveJob.sow_report_no == sow_report_no)
        dive_numbers = {j.dive_job_id: j.dive_no for j in query.all()}
        if not dive_numbers:
            return []

        tapes = [t.to_dict() for t in session.query(VideoTape).filter(
            VideoTape.dive_job_id.in_(list(dive_numbers))
        ).all()]
        if not tapes:
            return []

        logs = session.query(VideoLog)\
            .filter(VideoLog.tape_id.in_([t["tape_id"] for t in tapes]))\
            .order_by(VideoLog.event_time, VideoLog.video_log_id)\
            .all()
        logs = [log.to_dict() for log in logs]

    return report_data.attach_tape_logs(report_data.sort_tapes(tapes), logs, dive_numbers)


# Initialize database on import
init_db()
