#!/usr/bin/env python3
"""
dualpng API Server
Step-by-step endpoints for the two-source workflow:
upload source 1, upload source 2, merge, fetch the gAMA PNG result.
"""

import os
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge

from .models.errors import (
    DecodeFailureError,
    DualPngError,
    MalformedInputError,
    PreconditionFailedError,
    SessionLimitError,
    SessionNotFoundError,
)
from .models.image import Image
from .models.session import ResultMode
from .repositories.image_repository import ImageRepository
from .services.session_service import SessionService

logger = logging.getLogger(__name__)

PLACEHOLDER_COLOR = (200, 200, 200)

ERROR_STATUS = {
    SessionNotFoundError: 404,
    PreconditionFailedError: 428,
    MalformedInputError: 400,
    DecodeFailureError: 400,
    SessionLimitError: 503,
}


def _png_response(data: bytes):
    return send_file(BytesIO(data), mimetype='image/png')


def create_app(session_service: SessionService = None) -> Flask:
    """Build the Flask app around a SessionService (a fresh one by default)."""
    static_dir = os.getenv("STATIC_DIR")
    if static_dir:
        app = Flask(__name__, static_folder=str(Path(static_dir).resolve()), static_url_path="")
    else:
        app = Flask(__name__, static_folder=None)
    CORS(app)  # Enable CORS for frontend communication

    app.config['MAX_CONTENT_LENGTH'] = int(os.getenv("MAX_UPLOAD_SIZE_MB", "24")) * 1024 * 1024

    if session_service is None:
        session_service = SessionService()
        session_service.bootstrap()
    image_repository = session_service.image_repository

    placeholder_size = int(os.getenv("PLACEHOLDER_SIZE", "256"))
    placeholder_png = ImageRepository.encode_png(
        ImageRepository.create_uniform(PLACEHOLDER_COLOR, placeholder_size, placeholder_size)
    )

    app.config['SESSION_SERVICE'] = session_service

    def image_or_placeholder(image: Optional[Image]):
        if image is None:
            return _png_response(placeholder_png)
        return _png_response(image_repository.encode_png(image))

    def slot_or_404(imgname: str):
        try:
            return session_service.slot_for(imgname)
        except KeyError:
            return None

    @app.route('/api/session', methods=['POST'])
    def create_session():
        """Create a session, optionally with a caller-chosen id."""
        session_id = request.form.get('session_id') or None
        session = session_service.create_session(session_id)
        return jsonify({'success': True, 'session_id': session.session_id})

    @app.route('/api/upload/<session_id>/<imgname>', methods=['POST'])
    def upload(session_id, imgname):
        """Decode an uploaded image into source slot img1 or img2."""
        slot = slot_or_404(imgname)
        if slot is None:
            return jsonify({'success': False, 'message': f'Unknown image slot: {imgname}'}), 404

        session_service.find_session(session_id)
        if 'img' not in request.files:
            raise MalformedInputError(['img: no image file provided'])

        image = session_service.upload_source(session_id, slot, request.files['img'].read())
        logger.info(f"Session {session_id}: uploaded {imgname} ({image.width}x{image.height})")
        return image_or_placeholder(image)

    @app.route('/api/image/<session_id>/<imgname>', methods=['GET'])
    def source_image(session_id, imgname):
        """Serve a source image, or the placeholder if the slot is empty."""
        slot = slot_or_404(imgname)
        if slot is None:
            return jsonify({'success': False, 'message': f'Unknown image slot: {imgname}'}), 404
        return image_or_placeholder(session_service.get_source(session_id, slot))

    @app.route('/api/merge/<session_id>', methods=['POST'])
    def merge(session_id):
        """Level, optionally resize/brighten, and merge both sources."""
        result = session_service.merge_from_form(session_id, request.form)
        return jsonify({
            'success': True,
            'session_id': session_id,
            'width': result.width,
            'height': result.height,
            'message': f'Merged sources into a {result.width}x{result.height} image',
        })

    @app.route('/api/result/<session_id>/<mode>', methods=['GET'])
    def result(session_id, mode):
        """Serve the merge result. MODES: gamma | nogamma"""
        result_mode = ResultMode.NO_GAMMA if mode == ResultMode.NO_GAMMA.value else ResultMode.GAMMA
        png = session_service.encode_result(session_id, result_mode)
        if png is None:
            return _png_response(placeholder_png)
        return _png_response(png)

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'message': 'dualpng API is running',
            'active_sessions': session_service.session_count,
        })

    @app.errorhandler(DualPngError)
    def dualpng_error(e):
        status = next((code for cls, code in ERROR_STATUS.items() if isinstance(e, cls)), 400)
        logger.warning(f"{type(e).__name__}: {e}")
        body = {'success': False, 'message': str(e)}
        if isinstance(e, MalformedInputError):
            body['problems'] = e.problems
        return jsonify(body), status

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        """Handle file too large error."""
        limit_mb = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
        return jsonify({'success': False, 'message': f'File too large. Maximum size is {limit_mb}MB.'}), 413

    @app.errorhandler(OSError)
    def io_error(e):
        logger.error(f"I/O error: {e}")
        return jsonify({'success': False, 'message': 'Error encoding image'}), 500

    return app


def main():
    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8800"))

    app = create_app()
    logger.info(f"Starting dualpng API server on {host}:{port}")
    logger.info(f"Connect to http://localhost:{port}/ in your browser")
    app.run(host=host, port=port, threaded=True)


if __name__ == '__main__':
    main()
