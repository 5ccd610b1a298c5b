import logging
import mimetypes
import os
import uuid
from collections import namedtuple

from flask import current_app
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {
    # Images
    '.jpg', '.jpeg', '.png', '.gif', '.webp', '.bmp',
    # Documents
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    # Text & data
    '.txt', '.csv',
    # Archives
    '.zip',
}

StoredFile = namedtuple('StoredFile', 'filename original_name mime_type size upload_path relative_path')


def sanitize_filename(filename):
    cleaned = secure_filename(filename or '')
    if not cleaned:
        cleaned = f'file_{uuid.uuid4().hex[:8]}'
    return cleaned[:255]


def is_allowed(filename):
    return os.path.splitext(sanitize_filename(filename))[1].lower() in ALLOWED_EXTENSIONS


def upload_size(file_storage):
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def store_upload(file_storage, subfolder=''):
    """Save an uploaded file under a generated name and return its metadata."""
    original_name = sanitize_filename(file_storage.filename)
    ext = os.path.splitext(original_name)[1].lower()
    filename = f'{uuid.uuid4().hex}{ext}'
    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], subfolder)
    os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, filename)
    file_storage.save(path)
    mime_type = file_storage.mimetype or mimetypes.guess_type(original_name)[0] or 'application/octet-stream'
    relative_path = f'{subfolder}/{filename}' if subfolder else filename
    logger.info('Stored upload %s as %s', original_name, relative_path)
    return StoredFile(filename, original_name, mime_type, os.path.getsize(path), path, relative_path)


def remove_stored_file(path):
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning('Could not remove stored file %s', path, exc_info=True)
