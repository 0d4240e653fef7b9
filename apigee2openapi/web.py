"""Upload UI and Swagger UI preview for converted bundles."""

import logging
import re
import tempfile
import webbrowser
from pathlib import Path
from typing import Optional, Sequence, Union

from flask import Flask, abort, jsonify, render_template_string, request, send_from_directory

from .converter import convert_bundle
from .errors import ArchiveError
from .output import save_document

logger = logging.getLogger(__name__)

UPLOAD_PAGE = """
<!DOCTYPE html><html><head>
  <meta charset="utf-8"><title>Apigee → OpenAPI</title>
  <style>body{font-family:sans-serif;margin:40px;}
  .box{border:2px dashed #aaa;padding:20px;border-radius:10px;width:420px;}
  .warn{color:#a66;font-size:13px;}
  </style></head><body>
  <h2>Apigee Proxy → OpenAPI 3.0</h2>
  <form method="post" enctype="multipart/form-data" class="box">
    <input type="file" name="file" accept=".zip" required><br><br>
    <input type="text" name="name" placeholder="Proxy name (optional)" style="width:400px"><br><br>
    <input type="text" name="hostname" placeholder="Hostname (optional)" style="width:400px"><br><br>
    <button type="submit">Convert</button>
  </form>
{% if error %}
  <p class="warn">{{ error }}</p>
{% endif %}
{% if swagger_url %}
  <p>Conversion done.</p>
  <a href="{{ swagger_url }}" target="_blank">Open Swagger UI Preview</a>
  <ul class="warn">
  {% for d in diagnostics %}<li>{{ d }}</li>{% endfor %}
  </ul>
{% endif %}
</body></html>
"""

SWAGGER_PAGE = """
<!DOCTYPE html><html><head>
<meta charset="utf-8"><title>Swagger UI</title>
<link rel="stylesheet" href="https://unpkg.com/swagger-ui-dist/swagger-ui.css">
</head><body><div id="swagger"></div>
<script src="https://unpkg.com/swagger-ui-dist/swagger-ui-bundle.js"></script>
<script>SwaggerUIBundle({url: {{ spec_url|tojson }}, dom_id: '#swagger'});</script>
</body></html>
"""

SAFE_NAME = re.compile(r'[^A-Za-z0-9._-]+')


def _output_name(filename: str) -> str:
    stem = Path(filename or 'openapi').stem
    return SAFE_NAME.sub('-', stem) or 'openapi'


def create_app(workdir: Optional[Union[str, Path]] = None, hostnames: Sequence[str] = ()) -> Flask:
    """
    Build the upload UI application

    Args:
        workdir: Directory for generated specs; a temporary one if omitted
        hostnames: Default hostnames for server URLs
    """
    app = Flask(__name__)
    workdir = Path(workdir) if workdir else Path(tempfile.mkdtemp())
    app.config['WORKDIR'] = workdir
    app.config['HOSTNAMES'] = list(hostnames)

    def _convert_upload():
        upload = request.files.get('file')
        if upload is None or not upload.filename:
            return None, "No bundle uploaded"
        proxy_name = request.form.get('name') or None
        hostname = request.form.get('hostname')
        hosts = [hostname] if hostname else app.config['HOSTNAMES']
        try:
            return convert_bundle(upload.read(), proxy_name, hosts), None
        except ArchiveError as e:
            logger.warning(f"Upload {upload.filename} rejected: {e}")
            return None, str(e)

    @app.route("/", methods=["GET"])
    def index():
        return render_template_string(UPLOAD_PAGE, swagger_url=None, error=None)

    @app.route("/", methods=["POST"])
    def convert():
        result, error = _convert_upload()
        if error:
            return render_template_string(UPLOAD_PAGE, swagger_url=None, error=error), 400
        name = _output_name(request.files['file'].filename)
        yaml_path = save_document(result.document, workdir, name, formats=('yaml',))[0]
        return render_template_string(
            UPLOAD_PAGE,
            swagger_url=f"/swagger/{yaml_path.name}",
            diagnostics=[str(d) for d in result.diagnostics],
            error=None,
        )

    @app.route("/api/convert", methods=["POST"])
    def api_convert():
        result, error = _convert_upload()
        if error:
            return jsonify({"error": error}), 400
        return jsonify({
            "document": result.document,
            "diagnostics": [
                {"severity": d.severity.value, "source": d.source, "message": d.message}
                for d in result.diagnostics
            ],
        })

    @app.route("/swagger/<fname>")
    def swagger(fname):
        if not (workdir / fname).is_file():
            abort(404)
        return render_template_string(SWAGGER_PAGE, spec_url=f"/files/{fname}")

    @app.route("/files/<fname>")
    def files(fname):
        return send_from_directory(workdir, fname)

    return app


def launch_ui(port: int = 5000, hostnames: Sequence[str] = ()):
    app = create_app(hostnames=hostnames)
    print(f"🌐 UI at http://127.0.0.1:{port}")
    webbrowser.open(f"http://127.0.0.1:{port}")
    app.run(port=port, debug=False)


def swagger_preview(spec_path: Union[str, Path], port: int = 5001):
    """Serve one generated spec file in Swagger UI"""
    spec_path = Path(spec_path).resolve()
    app = create_app(workdir=spec_path.parent)
    webbrowser.open(f"http://127.0.0.1:{port}/swagger/{spec_path.name}")
    app.run(port=port, debug=False)
