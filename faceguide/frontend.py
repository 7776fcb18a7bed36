import argparse
import logging
import time

import cv2
from flask import Flask, Response, jsonify, request

from .app import render
from .errors import AcquisitionError, CaptureError
from .utils import setup_logging
from .viewfinder import Viewfinder

logger = logging.getLogger(__name__)


def create_app(vf: Viewfinder) -> Flask:
    app = Flask(__name__)
    app.config["VIEWFINDER"] = vf

    def fail(msg, code=409):
        return jsonify({"success": False, "msg": msg}), code

    # ================= API ENDPOINTS =================

    @app.route('/api/status')
    def api_status():
        return jsonify(vf.status())

    @app.route('/api/capture', methods=['POST'])
    def api_capture():
        """Masked still of the current frame, returned to the caller as-is."""
        try:
            image = vf.capture()
        except CaptureError as e:
            return fail(str(e))
        return Response(image.data, mimetype=image.media_type,
                        headers={"X-Image-Width": str(image.width), "X-Image-Height": str(image.height)})

    @app.route('/api/shape/cycle', methods=['POST'])
    def api_cycle_shape():
        shape = vf.cycle_shape()
        return jsonify({"success": True, "shape": shape.as_dict()})

    @app.route('/api/shape/move', methods=['POST'])
    def api_move_shape():
        data = request.get_json(silent=True) or {}
        try:
            x, y = float(data['x']), float(data['y'])
        except (KeyError, TypeError, ValueError):
            return fail("x and y are required numbers", 400)
        shape = vf.move_shape(x, y)
        return jsonify({"success": True, "shape": shape.as_dict()})

    @app.route('/api/viewport', methods=['POST'])
    def api_viewport():
        data = request.get_json(silent=True) or {}
        try:
            w, h = int(data['width']), int(data['height'])
        except (KeyError, TypeError, ValueError):
            return fail("width and height are required integers", 400)
        if w <= 0 or h <= 0:
            return fail("width and height must be positive", 400)
        shape = vf.resize_viewport(w, h)
        return jsonify({"success": True, "shape": shape.as_dict()})

    @app.route('/api/camera', methods=['POST'])
    def api_camera():
        data = request.get_json(silent=True) or {}
        try:
            if 'on' in data:
                vf.set_camera(bool(data['on']))
            else:
                vf.toggle_camera()
        except AcquisitionError as e:
            return fail(str(e))
        return jsonify({"success": True, "camera_on": vf.camera_on})

    @app.route('/api/camera/flip', methods=['POST'])
    def api_flip():
        try:
            facing = vf.flip_camera()
        except AcquisitionError as e:
            return fail(str(e))
        return jsonify({"success": True, "facing": facing.value})

    # ================= VIDEO STREAM LOOP =================

    def generate_frames():
        while True:
            img = render(vf, vf.source.read())
            ok, buffer = cv2.imencode('.jpg', img)
            if ok:
                yield (b'--frame\r\n' b'Content-Type: image/jpeg\r\n\r\n' + buffer.tobytes() + b'\r\n')
            time.sleep(1 / 30)

    @app.route('/video_feed')
    def video_feed():
        return Response(generate_frames(), mimetype='multipart/x-mixed-replace; boundary=frame')

    return app


def main():
    ap = argparse.ArgumentParser(description="Serve the face guide viewfinder over HTTP")
    ap.add_argument('--host', default='0.0.0.0')
    ap.add_argument('--port', type=int, default=5000)
    ap.add_argument('--width', type=int, default=1280)
    ap.add_argument('--height', type=int, default=720)
    ap.add_argument('--log-level', default='INFO')
    args = ap.parse_args()
    setup_logging(args.log_level)

    vf = Viewfinder(display_size=(args.width, args.height)).open()
    try:
        create_app(vf).run(host=args.host, port=args.port, debug=False, use_reloader=False, threaded=True)
    finally:
        vf.close()


if __name__ == '__main__':
    main()
