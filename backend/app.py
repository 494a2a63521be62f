"""
Offshore Inspection Dashboard - Backend API

Flask application serving master data, attachments, job packs, scope of
work matrices and PDF reports.
"""

import os
import logging
from datetime import datetime
from flask import Flask, request, jsonify, send_file, Response
from flask_cors import CORS

import attachments as storage
import database as db
import library as lib
import pdf_generator
import report_data
from config import (
    MAX_CONTENT_LENGTH,
    ATTACHMENT_BUCKET,
    CONTRACTOR_LOGO_BUCKET,
    LOGO_EXTENSIONS,
    DEFAULT_USER,
)
from jobpack import format_inspno
from sow_editor import filter_inspection_types

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

REPORT_TYPES = ("anomaly-report", "defect-summary", "diver-log", "video-log")


def current_user():
    """Caller identity for audit columns."""
    return request.headers.get('X-User') or DEFAULT_USER


def _int_arg(name):
    """Integer query parameter; "undefined"/"null"/blank count as missing."""
    value = report_data.clean_param(request.args.get(name))
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer")


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat()
    })


# =============================================================================
# STRUCTURES / COMPONENTS / INSPECTION TYPES
# =============================================================================

@app.route('/api/structures', methods=['GET'])
def list_structures():
    return jsonify({"data": db.get_structures(request.args.get('type'))}), 200


@app.route('/api/structures/<int:structure_id>/components', methods=['GET'])
def list_structure_components(structure_id):
    if not db.get_structure(structure_id):
        return jsonify({"error": "Structure not found"}), 404
    return jsonify({"data": db.get_components(structure_id)}), 200


@app.route('/api/inspection-types', methods=['GET'])
def list_inspection_types():
    """Inspection types; ?sow=true keeps only the ones usable in a SOW."""
    types = db.get_inspection_types()
    if request.args.get('sow', '').lower() in ('1', 'true'):
        types = filter_inspection_types(types)
    return jsonify({"data": types}), 200


# =============================================================================
# SCOPE OF WORK
# =============================================================================

@app.route('/api/sow', methods=['GET'])
def get_sow():
    """
    Fetch SOW data.

    ?sow_id=                    -> header + items
    ?jobpack_id=&structure_id=  -> header + items, or data null
    ?jobpack_id=                -> list of headers
    """
    try:
        sow_id = _int_arg('sow_id')
        jobpack_id = _int_arg('jobpack_id')
        structure_id = _int_arg('structure_id')
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if sow_id is not None:
        payload = db.get_sow(sow_id)
        if not payload:
            return jsonify({"error": "SOW not found"}), 404
        return jsonify({"data": payload}), 200

    if jobpack_id is not None and structure_id is not None:
        return jsonify({"data": db.find_sow(jobpack_id, structure_id)}), 200

    if jobpack_id is not None:
        return jsonify({"data": db.list_sows(jobpack_id)}), 200

    return jsonify({"error": "Missing required parameters"}), 400


@app.route('/api/sow', methods=['POST'])
def save_sow():
    """Create a SOW header, or update it when an id is supplied."""
    data = request.get_json() or {}
    if data.get("id"):
        data.setdefault("updated_by", current_user())
    else:
        data.setdefault("created_by", current_user())

    try:
        header = db.save_sow(data)
    except db.StaleWriteError as e:
        return jsonify({"error": str(e)}), 409
    except db.DuplicateError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Error saving SOW: {e}", exc_info=True)
        return jsonify({"error": "Failed to save SOW", "message": str(e)}), 500

    if header is None:
        return jsonify({"error": "SOW not found"}), 404
    return jsonify({"data": header}), 200


@app.route('/api/sow', methods=['DELETE'])
def delete_sow():
    try:
        sow_id = _int_arg('id')
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if sow_id is None:
        return jsonify({"error": "id is required"}), 400

    if not db.delete_sow(sow_id):
        return jsonify({"error": "SOW not found"}), 404
    return jsonify({"message": "SOW deleted successfully"}), 200


@app.route('/api/sow/items', methods=['GET'])
def get_sow_items():
    try:
        item_id = _int_arg('id')
        sow_id = _int_arg('sow_id')
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if item_id is not None:
        item = db.get_sow_item(item_id)
        if not item:
            return jsonify({"error": "Item not found"}), 404
        return jsonify({"data": item}), 200
    if sow_id is not None:
        return jsonify({"data": db.get_sow_items(sow_id)}), 200
    return jsonify({"error": "id or sow_id is required"}), 400


@app.route('/api/sow/items', methods=['POST'])
def upsert_sow_item():
    """Update an item by id or create one; component/inspection type never change."""
    data = request.get_json() or {}
    try:
        item = db.upsert_sow_item(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Error saving SOW item: {e}", exc_info=True)
        return jsonify({"error": "Failed to save SOW item", "message": str(e)}), 500

    if item is None:
        return jsonify({"error": "Item not found"}), 404
    return jsonify({"data": item}), 200


@app.route('/api/sow/items', methods=['PUT'])
def bulk_update_sow_items():
    data = request.get_json()
    updates = data.get("items") if isinstance(data, dict) else data
    if not isinstance(updates, list):
        return jsonify({"error": "A list of items is required"}), 400

    updated, errors = db.bulk_update_sow_items(updates)
    return jsonify({"data": updated, "errors": errors}), 200


@app.route('/api/sow/items', methods=['DELETE'])
def delete_sow_item():
    try:
        item_id = _int_arg('id')
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if item_id is None:
        return jsonify({"error": "id is required"}), 400

    if not db.delete_sow_item(item_id):
        return jsonify({"error": "Item not found"}), 404
    return jsonify({"message": "Item deleted successfully"}), 200


# =============================================================================
# LIBRARY
# =============================================================================

@app.route('/api/library/master', methods=['GET'])
def list_library_masters():
    return jsonify({"data": db.get_library_masters()}), 200


@app.route('/api/library/master', methods=['POST'])
def create_library_master():
    data = request.get_json() or {}
    if not data.get("lib_code") or not data.get("lib_name"):
        return jsonify({"error": "lib_code and lib_name are required"}), 400
    try:
        master = db.create_library_master(data["lib_code"], data["lib_name"], data.get("hidden_item"))
    except db.DuplicateError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"data": master}), 201


@app.route('/api/library/color/suggest', methods=['GET'])
def suggest_color_name():
    """Nearest palette name for ?rgb=R,G,B or ?hex=#rrggbb."""
    rgb = lib.parse_rgb(request.args.get('rgb')) or lib.hex_to_rgb(request.args.get('hex', ''))
    if rgb is None:
        return jsonify({"error": "rgb or hex is required"}), 400
    return jsonify({
        "rgb": lib.format_rgb(rgb),
        "hex": lib.rgb_to_hex(*rgb),
        "name": lib.nearest_color_name(*rgb),
    }), 200


@app.route('/api/library/combo/<lib_code>', methods=['GET'])
def list_combos(lib_code):
    if not lib.is_combo_library(lib_code):
        return jsonify({"error": "Not a combo library"}), 400
    return jsonify({"data": db.get_combos(lib_code)}), 200


@app.route('/api/library/combo/<lib_code>', methods=['POST'])
def create_combo(lib_code):
    if not lib.is_combo_library(lib_code):
        return jsonify({"error": "Not a combo library"}), 400

    data = request.get_json() or {}
    code_1 = (data.get("code_1") or "").strip()
    code_2 = (data.get("code_2") or "").strip()
    if not code_1 or not code_2:
        return jsonify({"error": "code_1 and code_2 are required"}), 400

    try:
        combo = db.create_combo(lib_code, code_1, code_2, data.get("lib_com"), current_user())
    except db.DuplicateError as e:
        return jsonify({"error": str(e)}), 409
    except Exception as e:
        logger.error(f"Error creating {lib_code} combination: {e}", exc_info=True)
        return jsonify({"error": "Failed to create combination", "message": str(e)}), 500
    return jsonify({"data": combo}), 201


@app.route('/api/library/combo/<lib_code>/<int:combo_id>', methods=['PUT'])
def update_combo(lib_code, combo_id):
    if not lib.is_combo_library(lib_code):
        return jsonify({"error": "Not a combo library"}), 400
    combo = db.update_combo(lib_code, combo_id, request.get_json() or {})
    if combo is None:
        return jsonify({"error": "Combination not found"}), 404
    return jsonify({"data": combo}), 200


@app.route('/api/library/combo/<lib_code>/options', methods=['GET'])
def combo_options(lib_code):
    if not lib.is_combo_library(lib_code):
        return jsonify({"error": "Not a combo library"}), 400
    return jsonify(db.get_combo_options(lib_code)), 200


@app.route('/api/library/<lib_code>', methods=['GET'])
def list_library_items(lib_code):
    """Items of one library, or of several with a comma-separated code list."""
    codes = lib.split_codes(lib_code)
    include_deleted = request.args.get('include_deleted', 'true').lower() != 'false'
    return jsonify({"data": db.get_library_items(codes, include_deleted=include_deleted)}), 200


@app.route('/api/library/<lib_code>', methods=['POST'])
def create_library_item(lib_code):
    data = request.get_json() or {}
    try:
        item = db.create_library_item(lib_code, data, current_user())
    except db.DuplicateError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Error creating {lib_code} item: {e}", exc_info=True)
        return jsonify({"error": "Failed to create library item", "message": str(e)}), 500
    return jsonify({"data": item}), 201


@app.route('/api/library/<lib_code>/stats', methods=['GET'])
def library_stats(lib_code):
    return jsonify(db.get_library_stats(lib_code)), 200


@app.route('/api/library/<lib_code>/<lib_id>', methods=['PUT'])
def update_library_item(lib_code, lib_id):
    """Update an item; sending lib_delete 0/1 restores or soft-deletes it."""
    item = db.update_library_item(lib_code, lib_id, request.get_json() or {})
    if item is None:
        return jsonify({"error": "Library item not found"}), 404
    return jsonify({"data": item}), 200


@app.route('/api/library/<lib_code>/<lib_id>/toggle', methods=['POST'])
def toggle_library_item(lib_code, lib_id):
    item = db.toggle_library_item(lib_code, lib_id)
    if item is None:
        return jsonify({"error": "Library item not found"}), 404
    return jsonify({"data": item}), 200


@app.route('/api/library/CONTR_NAM/<lib_id>/logo', methods=['POST'])
def upload_contractor_logo(lib_id):
    """Upsert a contractor logo at {path or lib_id}.{ext} and store its URL."""
    if not db.get_library_item(lib.CONTRACTOR_LIBRARY, lib_id):
        return jsonify({"error": "Contractor not found"}), 404
    if 'file' not in request.files:
        return jsonify({"error": "No file provided"}), 400

    file = request.files['file']
    if not storage.allowed_file(file.filename, LOGO_EXTENSIONS):
        return jsonify({"error": "Invalid file type. Only image files are allowed."}), 400

    path = f"{request.form.get('path') or lib_id}.{storage.file_extension(file.filename)}"
    try:
        key = storage.upload(CONTRACTOR_LOGO_BUCKET, path, file.read(), upsert=True)
        url = storage.public_url(CONTRACTOR_LOGO_BUCKET, key)
        item = db.update_library_item(lib.CONTRACTOR_LIBRARY, lib_id, {"logo_url": url})
    except storage.StorageError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Error uploading contractor logo: {e}", exc_info=True)
        return jsonify({"error": "Failed to upload logo", "message": str(e)}), 500
    return jsonify({"data": item}), 200


# =============================================================================
# JOB PACKS
# =============================================================================

@app.route('/api/jobpack/utils/next-seq', methods=['GET'])
def next_jobpack_seq():
    return jsonify({"data": db.get_next_inspno()}), 200


@app.route('/api/jobpack/utils/contractors', methods=['GET'])
def list_contractors():
    return jsonify({"data": db.get_contractors()}), 200


@app.route('/api/jobpack/create', methods=['POST'])
def create_jobpack():
    data = request.get_json() or {}
    if not (data.get("name") or "").strip():
        return jsonify({"error": "name is required"}), 400
    try:
        inspno = db.create_jobpack(data, current_user())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Error creating job pack: {e}", exc_info=True)
        return jsonify({"error": "Failed to create job pack", "message": str(e)}), 500

    logger.info(f"Created job pack {inspno}")
    return jsonify({"data": {"inspno": inspno}}), 201


@app.route('/api/jobpack', methods=['GET'])
def list_jobpacks():
    return jsonify({"data": db.get_jobpacks()}), 200


@app.route('/api/jobpack/<inspno>', methods=['GET'])
def get_jobpack(inspno):
    pack = db.get_jobpack(inspno)
    if not pack:
        return jsonify({"error": "Job pack not found"}), 404
    return jsonify({"data": pack}), 200


# =============================================================================
# ATTACHMENTS
# =============================================================================

@app.route('/api/attachment', methods=['GET'])
def list_attachments():
    page = max(request.args.get('page', 1, type=int), 1)
    page_size = min(max(request.args.get('pageSize', 20, type=int), 1), 200)
    return jsonify(db.get_attachments(page, page_size)), 200


@app.route('/api/attachment', methods=['POST'])
def upload_attachment():
    """Upload a file and link it to a platform/component/inspection record."""
    if 'file' not in request.files:
        return jsonify({"error": "No file provided"}), 400

    file = request.files['file']
    if file.filename == '' or not file.filename:
        return jsonify({"error": "No file selected"}), 400
    if not storage.allowed_file(file.filename):
        return jsonify({
            "error": "Invalid file type.",
            "received": file.filename
        }), 400

    name = (request.form.get('name') or file.filename).strip()
    source_type = request.form.get('source_type')
    source_id = request.form.get('source_id', type=int)

    try:
        data = file.read()
        path = storage.upload(ATTACHMENT_BUCKET, storage.generate_object_name(file.filename), data)
        meta = storage.build_attachment_meta(name, file.filename, ATTACHMENT_BUCKET, path,
                                             len(data), file.mimetype)
        attachment = db.create_attachment(name, source_type, source_id,
                                          storage.public_url(ATTACHMENT_BUCKET, path), meta)
    except Exception as e:
        logger.error(f"Error uploading attachment: {e}", exc_info=True)
        return jsonify({"error": "Failed to upload attachment", "message": str(e)}), 500

    logger.info(f"Stored attachment {attachment['id']} at {path}")
    return jsonify({"data": attachment}), 201


@app.route('/api/attachment', methods=['DELETE'])
def delete_attachment():
    """Delete the row; a failure to remove the stored file is only logged."""
    raw_id = request.args.get('id')
    if not raw_id:
        return jsonify({"error": "id is required"}), 400
    if not raw_id.isdigit():
        return jsonify({"error": "id must be numeric"}), 400

    attachment = db.get_attachment(int(raw_id))
    if not attachment:
        return jsonify({"error": "Attachment not found"}), 404

    meta = attachment.get("meta") or {}
    if meta.get("file_path"):
        try:
            storage.remove(meta.get("bucket") or ATTACHMENT_BUCKET, meta["file_path"])
        except (storage.StorageError, OSError) as e:
            logger.warning(f"Could not remove stored file for attachment {raw_id}: {e}")

    db.delete_attachment(int(raw_id))
    return jsonify({"message": "Attachment deleted successfully"}), 200


@app.route('/api/attachment/tree', methods=['GET'])
def attachment_tree():
    tree = storage.build_attachment_tree(
        db.get_structures("PLATFORM"),
        db.get_components(),
        db.get_all_attachments(),
    )
    return jsonify({"data": tree}), 200


@app.route('/api/attachment/<source_type>/<int:source_id>', methods=['GET'])
def list_source_attachments(source_type, source_id):
    return jsonify({"data": db.get_attachments_by_source(source_type, [source_id])}), 200


@app.route('/storage/<bucket>/<path:path>', methods=['GET'])
def serve_storage(bucket, path):
    try:
        local = storage.local_path(bucket, path)
    except storage.StorageError as e:
        return jsonify({"error": str(e)}), 400
    if not os.path.exists(local):
        return jsonify({"error": "File not found"}), 404
    return send_file(local)


# =============================================================================
# REPORTS
# =============================================================================

def _report_params():
    jobpack_id = _int_arg('jobpack_id')
    if jobpack_id is None:
        raise ValueError("jobpack_id is required")
    return jobpack_id, _int_arg('structure_id'), report_data.clean_param(request.args.get('sow_report_no'))


def _report_rows(report_type, jobpack_id, structure_id, sow_report_no):
    if report_type == "anomaly-report":
        return {"data": db.get_anomaly_report(jobpack_id, structure_id, sow_report_no)}
    if report_type == "defect-summary":
        return db.get_defect_summary(jobpack_id, structure_id, sow_report_no)
    if report_type == "diver-log":
        # dive jobs are not filtered by report number
        return {"data": db.get_diver_log(jobpack_id, structure_id)}
    return {"data": db.get_video_log(jobpack_id, structure_id, sow_report_no)}


def _report_context(jobpack_id, structure_id, sow_report_no):
    pack = db.get_jobpack(format_inspno(jobpack_id)) or {}
    structure = db.get_structure(structure_id) if structure_id is not None else None
    structure = structure or {}

    logo_path = None
    if pack.get("contrac"):
        contractor = db.get_library_item(lib.CONTRACTOR_LIBRARY, pack["contrac"])
        if contractor:
            logo_path = storage.local_path_from_url(contractor.get("logo_url"))

    return pdf_generator.ReportContext(
        project_description=pack.get("jobname") or "",
        field_name=structure.get("field_name") or "",
        installation=structure.get("title") or "",
        sow_report_no=sow_report_no or "",
        vessel=pack.get("vessel") or "",
        contractor_logo_path=logo_path,
    )


@app.route('/api/reports/<report_type>', methods=['GET'])
def get_report_data(report_type):
    if report_type not in REPORT_TYPES:
        return jsonify({"error": f"Unknown report type: {report_type}"}), 404
    try:
        params = _report_params()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        return jsonify(_report_rows(report_type, *params)), 200
    except Exception as e:
        logger.error(f"Error fetching {report_type} data: {e}", exc_info=True)
        return jsonify({"error": f"Failed to fetch {report_type} data", "message": str(e)}), 500


@app.route('/api/reports/<report_type>/pdf', methods=['GET'])
def get_report_pdf(report_type):
    """Render one of the reports and return it as a PDF download."""
    if report_type not in REPORT_TYPES:
        return jsonify({"error": f"Unknown report type: {report_type}"}), 404
    try:
        params = _report_params()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    config = pdf_generator.ReportConfig.from_dict(request.args.to_dict())
    config.return_blob = True

    try:
        rows = _report_rows(report_type, *params)
        context = _report_context(*params)
        if report_type == "anomaly-report":
            pdf_bytes = pdf_generator.generate_defect_anomaly_report(rows["data"], context, config=config)
            name = pdf_generator.REPORT_ANOMALY
        elif report_type == "defect-summary":
            pdf_bytes = pdf_generator.generate_defect_summary_report(
                rows["data"], context, rows["priority_colors"], config=config)
            name = pdf_generator.REPORT_DEFECT_SUMMARY
        elif report_type == "diver-log":
            pdf_bytes = pdf_generator.generate_diver_log_report(rows["data"], context, config=config)
            name = pdf_generator.REPORT_DIVER_LOG
        else:
            pdf_bytes = pdf_generator.generate_video_log_report(rows["data"], context, config=config)
            name = pdf_generator.REPORT_VIDEO_LOG

        filename = pdf_generator.report_filename(config, name)
        return Response(
            pdf_bytes,
            mimetype='application/pdf',
            headers={
                'Content-Disposition': f'attachment; filename="{filename}"'
            }
        )
    except Exception as e:
        logger.error(f"Error generating {report_type} PDF: {e}", exc_info=True)
        return jsonify({
            "error": "Failed to generate PDF",
            "message": str(e)
        }), 500


if __name__ == '__main__':
    port = int(os.getenv("BACKEND_PORT", "5000"))
    logger.info(f"Backend API running on http://localhost:{port}")
    app.run(debug=True, host='0.0.0.0', port=port)
