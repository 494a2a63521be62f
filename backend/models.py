"""
SQLAlchemy models for the offshore inspection backend.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey, Boolean, Float
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def _iso(value):
    return value.isoformat() if value else None


# =============================================================================
# STRUCTURES / COMPONENTS / INSPECTION TYPES (read-only reference data)
# =============================================================================

class Structure(Base):
    """
    A platform or pipeline being inspected.
    """
    __tablename__ = 'structures'

    id = Column(Integer, primary_key=True, autoincrement=True)
    str_type = Column(String(20), default='PLATFORM')  # PLATFORM | PIPELINE
    title = Column(String(255), nullable=False)
    field_name = Column(String(255), nullable=True)

    components = relationship("StructureComponent", back_populates="structure",
                              cascade="all, delete-orphan")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "str_type": self.str_type,
            "title": self.title,
            "field_name": self.field_name,
        }


class StructureComponent(Base):
    """
    A component of a structure (leg, brace, riser...). elv_1/elv_2 bound its
    elevation span in either order.
    """
    __tablename__ = 'structure_components'

    id = Column(Integer, primary_key=True, autoincrement=True)
    structure_id = Column(Integer, ForeignKey('structures.id'), nullable=False)
    qid = Column(String(50), nullable=False)
    comp_type = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    elv_1 = Column(Float, nullable=True)
    elv_2 = Column(Float, nullable=True)
    s_node = Column(String(50), nullable=True)
    f_node = Column(String(50), nullable=True)
    s_leg = Column(String(50), nullable=True)
    f_leg = Column(String(50), nullable=True)

    structure = relationship("Structure", back_populates="components")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "structure_id": self.structure_id,
            "qid": self.qid,
            "type": self.comp_type,
            "description": self.description,
            "elv_1": self.elv_1,
            "elv_2": self.elv_2,
            "s_node": self.s_node,
            "f_node": self.f_node,
            "s_leg": self.s_leg,
            "f_leg": self.f_leg,
        }


class InspectionType(Base):
    __tablename__ = 'inspection_types'

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=True)

    def to_dict(self):
        return {"id": self.id, "code": self.code, "name": self.name}


# =============================================================================
# SCOPE OF WORK
# =============================================================================

class SOW(Base):
    """
    Scope-of-work header. One per (jobpack, structure).
    """
    __tablename__ = 'sow'

    id = Column(Integer, primary_key=True, autoincrement=True)
    jobpack_id = Column(Integer, nullable=False, index=True)
    structure_id = Column(Integer, nullable=False, index=True)
    structure_type = Column(String(20), default='PLATFORM')
    structure_title = Column(String(255), nullable=True)
    report_numbers = Column(JSON, default=list)  # [{"number", "contractor_ref", "date"}]
    # "metadata" is reserved on declarative classes
    meta_data = Column('metadata', JSON, default=dict)

    total_items = Column(Integer, default=0)
    completed_items = Column(Integer, default=0)
    incomplete_items = Column(Integer, default=0)
    pending_items = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(String(100), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = Column(String(100), nullable=True)

    items = relationship("SOWItem", back_populates="sow", cascade="all, delete-orphan",
                         order_by="SOWItem.component_qid")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "jobpack_id": self.jobpack_id,
            "structure_id": self.structure_id,
            "structure_type": self.structure_type,
            "structure_title": self.structure_title,
            "report_numbers": self.report_numbers or [],
            "metadata": self.meta_data or {},
            "total_items": self.total_items,
            "completed_items": self.completed_items,
            "incomplete_items": self.incomplete_items,
            "pending_items": self.pending_items,
            "created_at": _iso(self.created_at),
            "created_by": self.created_by,
            "updated_at": _iso(self.updated_at),
            "updated_by": self.updated_by,
        }


class SOWItem(Base):
    """
    One (report, component, inspection type) entry of a scope of work.
    Split items carry their ranges in elevation_data.
    """
    __tablename__ = 'sow_items'

    id = Column(Integer, primary_key=True, autoincrement=True)
    sow_id = Column(Integer, ForeignKey('sow.id'), nullable=False, index=True)
    component_id = Column(Integer, nullable=False)
    inspection_type_id = Column(Integer, nullable=False)

    component_qid = Column(String(50), nullable=True)
    component_type = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    s_node = Column(String(50), nullable=True)
    f_node = Column(String(50), nullable=True)
    s_leg = Column(String(50), nullable=True)
    f_leg = Column(String(50), nullable=True)
    inspection_code = Column(String(50), nullable=True)
    inspection_name = Column(String(255), nullable=True)

    elevation_required = Column(Boolean, default=False)
    elevation_data = Column(JSON, default=list)  # [{"elevation", "start", "end", "status", "inspection_count"}]

    status = Column(String(20), default='pending')  # pending | completed | incomplete
    inspection_count = Column(Integer, default=0)
    last_inspection_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    report_number = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sow = relationship("SOW", back_populates="items")

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "sow_id": self.sow_id,
            "component_id": self.component_id,
            "inspection_type_id": self.inspection_type_id,
            "component_qid": self.component_qid,
            "component_type": self.component_type,
            "description": self.description,
            "s_node": self.s_node,
            "f_node": self.f_node,
            "s_leg": self.s_leg,
            "f_leg": self.f_leg,
            "inspection_code": self.inspection_code,
            "inspection_name": self.inspection_name,
            "elevation_required": bool(self.elevation_required),
            "elevation_data": self.elevation_data or [],
            "status": self.status,
            "inspection_count": self.inspection_count,
            "last_inspection_date": _iso(self.last_inspection_date),
            "notes": self.notes,
            "report_number": self.report_number,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# =============================================================================
# LIBRARY / MASTER DATA
# =============================================================================

class LibraryMaster(Base):
    """
    A lookup category (e.g. AMLY_TYP, COLOR, CONTR_NAM).
    """
    __tablename__ = 'u_lib_mast'

    lib_code = Column(String(20), primary_key=True)
    lib_name = Column(String(255), nullable=False)
    hidden_item = Column(String(1), nullable=True)

    def to_dict(self):
        return {
            "lib_code": self.lib_code,
            "lib_name": self.lib_name,
            "hidden_item": self.hidden_item,
        }


class LibraryItem(Base):
    """
    A value/description row of a lookup category. lib_delete is a soft-delete
    flag: 0 active, 1 deleted.
    """
    __tablename__ = 'u_lib_list'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lib_code = Column(String(20), nullable=False, index=True)
    lib_id = Column(String(50), nullable=False)
    lib_desc = Column(String(255), nullable=True)
    lib_com = Column(Text, nullable=True)
    lib_delete = Column(Integer, default=0)
    hidden_item = Column(String(1), nullable=True)
    logo_url = Column(String(500), nullable=True)
    workunit = Column(String(10), default='000')
    cr_user = Column(String(30), nullable=True)
    cr_date = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "lib_code": self.lib_code,
            "lib_id": self.lib_id,
            "lib_desc": self.lib_desc,
            "lib_com": self.lib_com,
            "lib_delete": self.lib_delete or 0,
            "hidden_item": self.hidden_item,
            "logo_url": self.logo_url,
            "workunit": self.workunit,
            "cr_user": self.cr_user,
            "cr_date": _iso(self.cr_date),
        }


class LibraryCombo(Base):
    """
    A paired-code row of a combination library (e.g. priority -> color).
    """
    __tablename__ = 'u_lib_combo'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lib_code = Column(String(20), nullable=False, index=True)
    code_1 = Column(String(50), nullable=False)
    code_2 = Column(String(50), nullable=False)
    lib_com = Column(Text, nullable=True)
    lib_delete = Column(Integer, default=0)
    workunit = Column(String(10), default='000')
    cr_user = Column(String(30), nullable=True)
    cr_date = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "lib_code": self.lib_code,
            "code_1": self.code_1,
            "code_2": self.code_2,
            "lib_com": self.lib_com,
            "lib_delete": self.lib_delete or 0,
        }


# =============================================================================
# ATTACHMENTS
# =============================================================================

class Attachment(Base):
    __tablename__ = 'attachments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    source_type = Column(String(50), nullable=True, index=True)  # platform | component | inspection
    source_id = Column(Integer, nullable=True, index=True)
    path = Column(String(500), nullable=True)  # public URL
    meta = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "path": self.path,
            "meta": self.meta or {},
            "created_at": _iso(self.created_at),
        }


# =============================================================================
# JOB PACKS
# =============================================================================

class JobPack(Base):
    """
    Work pack header, keyed by the zero-padded inspection number.
    """
    __tablename__ = 'jobpack'

    inspno = Column(String(11), primary_key=True)
    jobname = Column(String(20), nullable=True)
    tasktype = Column(String(20), nullable=True)  # STRUCTURE | COMP TYPE | COMPONENT
    contrac = Column(String(50), nullable=True)
    status = Column(String(20), default='OPEN')
    topside = Column(Integer, default=0)
    subsea = Column(Integer, default=0)
    plantype = Column(String(20), nullable=True)  # PLANNED | INSTANT
    istart = Column(String(30), nullable=True)
    iend = Column(String(30), nullable=True)
    comprep = Column(String(100), nullable=True)
    vessel = Column(String(20), nullable=True)
    divetyp = Column(String(50), nullable=True)
    contract_ref = Column(String(100), nullable=True)
    contractor_ref = Column(String(100), nullable=True)
    idesc = Column(Text, nullable=True)
    site_hrs = Column(Integer, nullable=True)
    workunit = Column(String(10), default='000')
    cr_user = Column(String(30), nullable=True)
    cr_date = Column(DateTime, default=datetime.utcnow)

    structures = relationship("TaskStructure", cascade="all, delete-orphan")
    components = relationship("TaskComponent", cascade="all, delete-orphan")
    inspections = relationship("TaskInspection", cascade="all, delete-orphan")

    def to_dict(self, include_tasks: bool = False):
        """Convert to dictionary for JSON serialization."""
        data = {
            "inspno": self.inspno,
            "jobname": self.jobname,
            "tasktype": self.tasktype,
            "contrac": self.contrac,
            "status": self.status,
            "topside": self.topside,
            "subsea": self.subsea,
            "plantype": self.plantype,
            "istart": self.istart,
            "iend": self.iend,
            "comprep": self.comprep,
            "vessel": self.vessel,
            "divetyp": self.divetyp,
            "contract_ref": self.contract_ref,
            "contractor_ref": self.contractor_ref,
            "idesc": self.idesc,
            "site_hrs": self.site_hrs,
            "workunit": self.workunit,
            "cr_user": self.cr_user,
            "cr_date": _iso(self.cr_date),
        }
        if include_tasks:
            data["structures"] = [s.to_dict() for s in self.structures]
            data["components"] = [c.to_dict() for c in self.components]
            data["inspections"] = [i.to_dict() for i in self.inspections]
        return data


class TaskStructure(Base):
    __tablename__ = 'taskstr'

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspno = Column(String(11), ForeignKey('jobpack.inspno'), nullable=False)
    str_id = Column(Integer, nullable=False)
    workunit = Column(String(10), default='000')

    def to_dict(self):
        return {"inspno": self.inspno, "str_id": self.str_id}


class TaskComponent(Base):
    __tablename__ = 'taskcomp'

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspno = Column(String(11), ForeignKey('jobpack.inspno'), nullable=False)
    str_id = Column(Integer, default=0)
    comp_id = Column(Integer, nullable=False)
    workunit = Column(String(10), default='000')

    def to_dict(self):
        return {"inspno": self.inspno, "str_id": self.str_id, "comp_id": self.comp_id}


class TaskInspection(Base):
    __tablename__ = 'taskinsp'

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspno = Column(String(11), ForeignKey('jobpack.inspno'), nullable=False)
    str_id = Column(Integer, default=0)
    comp_id = Column(Integer, default=0)
    compcode = Column(String(50), default='')
    inspcode = Column(String(50), nullable=False)
    plantype = Column(String(20), nullable=True)
    topside = Column(Integer, default=0)
    subsea = Column(Integer, default=0)
    status = Column(String(20), default='OPEN')
    workunit = Column(String(10), default='000')

    def to_dict(self):
        return {
            "inspno": self.inspno,
            "str_id": self.str_id,
            "comp_id": self.comp_id,
            "compcode": self.compcode,
            "inspcode": self.inspcode,
            "status": self.status,
        }


# =============================================================================
# REPORT SOURCES
# =============================================================================

class AnomalyRecord(Base):
    """
    Flattened anomaly detail row (one per recorded anomaly), as consumed by
    the anomaly and defect-summary reports.
    """
    __tablename__ = 'anomalies'

    id = Column(Integer, primary_key=True, autoincrement=True)
    jobpack_id = Column(Integer, nullable=False, index=True)
    structure_id = Column(Integer, nullable=True, index=True)
    sow_report_no = Column(String(100), nullable=True)
    display_ref_no = Column(String(100), nullable=True)
    ref_no = Column(String(100), nullable=True)
    priority = Column(String(50), nullable=True)
    priority_color = Column(String(20), nullable=True)  # "R,G,B"
    defect_type = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    observations = Column(Text, nullable=True)
    is_rectified = Column(Boolean, default=False)
    rectified_remarks = Column(Text, nullable=True)
    tape_no = Column(String(50), nullable=True)
    video_ref = Column(String(50), nullable=True)
    diver_name = Column(String(100), nullable=True)
    rov_name = Column(String(100), nullable=True)
    deployment_no = Column(String(50), nullable=True)
    main_vessel = Column(String(100), nullable=True)
    dive_vessel = Column(String(100), nullable=True)
    inspection_date = Column(DateTime, nullable=True)
    component_qid = Column(String(50), nullable=True)

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "jobpack_id": self.jobpack_id,
            "structure_id": self.structure_id,
            "sow_report_no": self.sow_report_no,
            "display_ref_no": self.display_ref_no,
            "ref_no": self.ref_no,
            "priority": self.priority,
            "priority_color": self.priority_color,
            "defect_type": self.defect_type,
            "category": self.category,
            "description": self.description,
            "observations": self.observations,
            "is_rectified": bool(self.is_rectified),
            "rectified_remarks": self.rectified_remarks,
            "tape_no": self.tape_no,
            "video_ref": self.video_ref,
            "diver_name": self.diver_name,
            "rov_name": self.rov_name,
            "deployment_no": self.deployment_no,
            "main_vessel": self.main_vessel,
            "dive_vessel": self.dive_vessel,
            "inspection_date": _iso(self.inspection_date),
            "component_qid": self.component_qid,
        }


class DiveJob(Base):
    __tablename__ = 'dive_jobs'

    dive_job_id = Column(Integer, primary_key=True, autoincrement=True)
    jobpack_id = Column(Integer, nullable=False, index=True)
    structure_id = Column(Integer, nullable=True)
    sow_report_no = Column(String(100), nullable=True)
    dive_no = Column(String(50), nullable=True)
    dive_type = Column(String(50), nullable=True)
    diver_name = Column(String(100), nullable=True)
    dive_supervisor = Column(String(100), nullable=True)
    dive_date = Column(String(30), nullable=True)
    start_time = Column(String(30), nullable=True)
    cr_date = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "dive_job_id": self.dive_job_id,
            "jobpack_id": self.jobpack_id,
            "structure_id": self.structure_id,
            "sow_report_no": self.sow_report_no,
            "dive_no": self.dive_no,
            "dive_type": self.dive_type,
            "diver_name": self.diver_name,
            "dive_supervisor": self.dive_supervisor,
            "dive_date": self.dive_date,
            "start_time": self.start_time,
            "cr_date": _iso(self.cr_date),
        }


class DiveMovement(Base):
    __tablename__ = 'dive_movements'

    id = Column(Integer, primary_key=True, autoincrement=True)
    dive_job_id = Column(Integer, ForeignKey('dive_jobs.dive_job_id'), nullable=False, index=True)
    movement_type = Column(String(100), nullable=True)
    movement_time = Column(DateTime, nullable=True)
    depth_meters = Column(Float, nullable=True)
    remarks = Column(Text, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "dive_job_id": self.dive_job_id,
            "movement_type": self.movement_type,
            "movement_time": _iso(self.movement_time),
            "depth_meters": self.depth_meters,
            "remarks": self.remarks,
        }


class VideoTape(Base):
    __tablename__ = 'video_tapes'

    tape_id = Column(Integer, primary_key=True, autoincrement=True)
    dive_job_id = Column(Integer, ForeignKey('dive_jobs.dive_job_id'), nullable=False, index=True)
    tape_no = Column(String(50), nullable=True)
    chapter_no = Column(String(50), nullable=True)
    status = Column(String(20), nullable=True)
    remarks = Column(Text, nullable=True)

    def to_dict(self):
        return {
            "tape_id": self.tape_id,
            "dive_job_id": self.dive_job_id,
            "tape_no": self.tape_no,
            "chapter_no": self.chapter_no,
            "status": self.status,
            "remarks": self.remarks,
        }


class VideoLog(Base):
    __tablename__ = 'video_logs'

    video_log_id = Column(Integer, primary_key=True, autoincrement=True)
    tape_id = Column(Integer, ForeignKey('video_tapes.tape_id'), nullable=False, index=True)
    event_type = Column(String(50), nullable=True)
    event_time = Column(DateTime, nullable=True)
    timecode_start = Column(String(20), nullable=True)
    tape_counter_start = Column(Integer, nullable=True)
    remarks = Column(Text, nullable=True)

    def to_dict(self):
        return {
            "video_log_id": self.video_log_id,
            "tape_id": self.tape_id,
            "event_type": self.event_type,
            "event_time": _iso(self.event_time),
            "timecode_start": self.timecode_start,
            "tape_counter_start": self.tape_counter_start,
            "remarks": self.remarks,
        }
