#!/usr/bin/env python3
"""
Border Trim API Server
Upload an image, get back the trimmed PNG (as JSON with a data URL, or as a download).
"""

import io
import logging
import os

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge

from .config import env_int, env_list
from .exceptions import InvalidInputError
from .pipeline.trim_pipeline import DEFAULT_TOLERANCE, REMOVE_WATERMARK, trim_image
from .services.image_service import ImageService

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

app = Flask(__name__)
CORS(app)  # Enable CORS for the upload page

# Configuration
ALLOWED_EXTENSIONS = {ext.lower() for ext in env_list("ALLOWED_EXTENSIONS", "png,jpg,jpeg,gif,bmp,webp")}
MAX_UPLOAD_SIZE_MB = env_int("MAX_UPLOAD_SIZE_MB", 20)
MAX_TOLERANCE = 100

app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_SIZE_MB * 1024 * 1024

# Initialize services
image_service = ImageService()

logger = logging.getLogger(__name__)


class TrimRequestError(Exception):
    """Client error carrying the message returned to the caller."""


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def parse_tolerance(raw) -> float:
    if raw is None or raw == '':
        return DEFAULT_TOLERANCE
    try:
        tolerance = float(raw)
    except ValueError:
        raise TrimRequestError(f"Tolerance must be a number, got {raw!r}") from None
    if not 0 <= tolerance <= MAX_TOLERANCE:
        raise TrimRequestError(f"Tolerance must be between 0 and {MAX_TOLERANCE}")
    return tolerance


def parse_flag(raw, default: bool) -> bool:
    if raw is None or raw == '':
        return default
    value = raw.strip().lower()
    if value in ('1', 'true', 'yes', 'on'):
        return True
    if value in ('0', 'false', 'no', 'off'):
        return False
    raise TrimRequestError(f"Expected a boolean flag, got {raw!r}")


def run_trim_request():
    """Shared request handling for both trim endpoints."""
    if 'image' not in request.files:
        raise TrimRequestError('No image provided')

    file = request.files['image']
    if file.filename == '':
        raise TrimRequestError('No file selected')
    filename = file.filename
    if not allowed_file(file.filename):
        raise TrimRequestError(f"Unsupported file type: {file.filename}")

    tolerance = parse_tolerance(request.form.get('tolerance'))
    remove_watermark = parse_flag(request.form.get('remove_watermark'), REMOVE_WATERMARK)

    image = image_service.decode(file.read(), filename)
    logger.info(f"Trimming {filename} {image.width}x{image.height} at tolerance {tolerance:g}")
    return filename, trim_image(image, tolerance, remove_watermark, image_service=image_service)


@app.route('/api/trim', methods=['POST'])
def trim():
    """Trim an uploaded image and return the result as a PNG data URL."""
    try:
        filename, result = run_trim_request()
    except (TrimRequestError, InvalidInputError) as e:
        return jsonify({'success': False, 'message': str(e)}), 400

    if result.image is None:
        return jsonify({
            'success': False,
            'message': result.message,
            'original_size': list(result.source_size),
            'background': result.background.to_dict(),
        }), 422

    bounds = result.bounds
    return jsonify({
        'success': True,
        'bounds': bounds.to_dict(),
        'original_size': list(result.source_size),
        'trimmed_size': [bounds.width, bounds.height],
        'meta': f"{image_service.format_size(bounds.width, bounds.height)} / trimmed",
        'filename': image_service.trimmed_filename(filename),
        'watermark_removed': result.watermark_removed,
        'background': result.background.to_dict(),
        'data_url': image_service.to_data_url(result.image),
    })


@app.route('/api/trim/download', methods=['POST'])
def trim_download():
    """Trim an uploaded image and return the PNG as an attachment."""
    try:
        filename, result = run_trim_request()
    except (TrimRequestError, InvalidInputError) as e:
        return jsonify({'success': False, 'message': str(e)}), 400

    if result.image is None:
        return jsonify({'success': False, 'message': result.message}), 422

    return send_file(
        io.BytesIO(image_service.encode_png(result.image)),
        mimetype='image/png',
        as_attachment=True,
        download_name=image_service.trimmed_filename(filename),
    )


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Border Trim API is running',
        'default_tolerance': DEFAULT_TOLERANCE,
    })


@app.errorhandler(RequestEntityTooLarge)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_UPLOAD_SIZE_MB}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    host = os.getenv("API_HOST", "127.0.0.1")
    port = env_int("API_PORT", 5000)
    logger.info(f"Starting Border Trim API on {host}:{port} (max upload {MAX_UPLOAD_SIZE_MB}MB)")
    app.run(host=host, port=port, debug=False)


if __name__ == '__main__':
    main()
