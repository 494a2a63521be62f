"""
Configuration settings for the offshore inspection backend.
"""

import os

# Base directory
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Database configuration (supports Docker override via environment variable)
DATABASE_PATH = os.getenv('DATABASE_PATH', os.path.join(BASE_DIR, 'inspection.db'))
DATABASE_URL = f'sqlite:///{DATABASE_PATH}'

# File storage buckets live under this folder
UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'storage'))
PUBLIC_STORAGE_URL = os.getenv('PUBLIC_STORAGE_URL', '/storage')
MAX_CONTENT_LENGTH = 50 * 1024 * 1024  # 50MB max file size
ALLOWED_EXTENSIONS = {
    'pdf', 'png', 'jpg', 'jpeg', 'gif', 'webp', 'mp4',
    'doc', 'docx', 'xls', 'xlsx', 'txt', 'csv',
}
LOGO_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}

ATTACHMENT_BUCKET = 'attachments'
CONTRACTOR_LOGO_BUCKET = 'contractor-logos'

# Report header defaults
COMPANY_NAME = os.getenv('COMPANY_NAME', '')
COMPANY_LOGO_PATH = os.getenv('COMPANY_LOGO_PATH', '')
REPORT_FORM_NO = os.getenv('REPORT_FORM_NO', '')
REPORT_REVISION = os.getenv('REPORT_REVISION', '0')
REPORT_OUTPUT_FOLDER = os.getenv('REPORT_OUTPUT_FOLDER', os.path.join(BASE_DIR, 'reports'))

# Fallback for cr_user / updated_by columns when the caller does not send one
DEFAULT_USER = os.getenv('DEFAULT_USER', 'system')

# Ensure folders exist
os.makedirs(UPLOAD_FOLDER, exist_ok=True)
if os.path.dirname(DATABASE_PATH):
    os.makedirs(os.path.dirname(DATABASE_PATH), exist_ok=True)
