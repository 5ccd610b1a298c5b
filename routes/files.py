from flask import Blueprint, current_app, send_from_directory
from flask_login import login_required

files_bp = Blueprint('files', __name__)


@files_bp.route('/files/<path:filename>', methods=['GET'])
@login_required
def serve_file(filename):
    # send_from_directory refuses paths that escape the upload folder
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename, as_attachment=True)
