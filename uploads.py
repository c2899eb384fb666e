import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from errors import ValidationError


def allowed_file(filename):
    """
    Security check: Only allow safe image formats.
    Prevents users from uploading .exe or .php files.
    """
    allowed = current_app.config['ALLOWED_EXTENSIONS']
    # Splits the filename at the last dot to check the extension
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed


def save_image(file, kind, field='image'):
    """
    Stores an uploaded image under UPLOAD_FOLDER/<kind>/ and returns the
    public path (/uploads/<kind>/<name>). Returns None when no file was sent.
    """
    if file is None or file.filename == '':
        return None
    if not allowed_file(file.filename):
        raise ValidationError.single(field, 'Invalid file type (Images only)')

    # A random prefix keeps two uploads of "cover.png" apart
    filename = f"{uuid.uuid4().hex[:12]}-{secure_filename(file.filename)}"
    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], kind)
    # Ensure the folder exists so we don't crash on first run
    os.makedirs(folder, exist_ok=True)
    file.save(os.path.join(folder, filename))
    return f'/uploads/{kind}/{filename}'
