import io
import os
import time
import hashlib
import zipfile

from flask import (Flask, Response, request, render_template_string, abort, send_file, jsonify, g,
                   current_app)
from werkzeug.exceptions import HTTPException

from .config import conf, logger, APP_TITLE, MAX_CONTENT_LENGTH, EXPORTABLE
from .listing import (get_all_files, build_folder_tree, format_size, safe_filename,
                      safe_relative_path, validate_path)
from .netinfo import server_urls, qr_data_url
from .notify import Broadcaster, event_stream
from .templates import HTML_TEMPLATE

CHUNK_SIZE = 64 * 1024
_ZERO_CHUNK = bytes(CHUNK_SIZE)

# ==========================================
# 4. Flask 웹 서버 로직
# ==========================================
app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

broadcaster = Broadcaster()


@app.template_filter('format_size')
def _format_size_filter(num):
    return format_size(num)


@app.template_filter('folder_id')
def _folder_id_filter(path):
    # 한글 등 비ASCII 폴더명끼리도 겹치지 않도록 경로 해시 사용
    return hashlib.md5(path.encode("utf-8")).hexdigest()[:12]


def get_real_ip():
    if request.headers.get('X-Forwarded-For'):
        return request.headers.get('X-Forwarded-For').split(',')[0]
    return request.remote_addr


def error_response(message, status):
    return jsonify({'success': False, 'error': message}), status


@app.before_request
def before_request():
    g.start = time.time()


@app.after_request
def after_request(response):
    elapsed = (time.time() - g.get('start', time.time())) * 1000
    logger.add(f"{get_real_ip()} {request.method} {request.path} {response.status_code} ({elapsed:.0f}ms)", "DEBUG")
    return response


@app.errorhandler(413)
def request_entity_too_large(error):
    limit = current_app.config.get("MAX_CONTENT_LENGTH") or MAX_CONTENT_LENGTH
    return error_response(f"Upload too large. Maximum allowed size is {format_size(limit)}.", 413)


@app.errorhandler(Exception)
def internal_error(error):
    # abort()로 발생한 HTTP 예외는 그대로 응답
    if isinstance(error, HTTPException):
        return error
    logger.add(f"처리되지 않은 오류: {request.method} {request.path} - {error!r}", "ERROR")
    return error_response("Internal server error", 500)


@app.route('/')
def index():
    imported_dir = conf.get('imported_dir')
    exportable_dir = conf.get('exportable_dir')
    imported_files = get_all_files(imported_dir, imported_dir)
    exportable_files = get_all_files(exportable_dir, exportable_dir)

    urls = [{'url': url, 'qr': qr_data_url(url)} for url in server_urls(conf.get('port'))]

    return render_template_string(HTML_TEMPLATE, title=APP_TITLE, urls=urls,
                                  imported_files=imported_files,
                                  exportable_files=exportable_files,
                                  exportable_tree=build_folder_tree(exportable_files))


@app.route('/upload', methods=['POST'])
def upload_file():
    base_dir = conf.get('imported_dir')
    files = request.files.getlist('files')
    paths = request.form.getlist('paths')

    count = 0
    failed = 0
    for i, file in enumerate(files):
        if not file.filename:
            continue
        # 폴더 업로드는 'paths'에 상대 경로가 함께 전달됨
        raw = paths[i] if i < len(paths) and paths[i] else file.filename
        rel_path = safe_relative_path(raw) or safe_relative_path(file.filename)
        if not rel_path:
            logger.add(f"업로드 파일명 무시: {raw}", "WARN")
            continue

        is_valid, save_path, error = validate_path(base_dir, rel_path)
        # 저장 위치가 imported 폴더 자체가 되는 이름은 거부
        if not is_valid or save_path == os.path.normpath(base_dir):
            logger.add(f"업로드 경로 검증 실패: {raw}", "WARN")
            continue

        try:
            os.makedirs(os.path.dirname(save_path), exist_ok=True)
            file.save(save_path)
        except OSError as e:
            logger.add(f"업로드 오류: {rel_path} ({e})", "ERROR")
            failed += 1
            continue
        count += 1

    if count == 0:
        if failed:
            return error_response("Upload failed", 500)
        return error_response("No files uploaded", 400)

    logger.add(f"업로드: {count}개 파일 <- {get_real_ip()}")
    broadcaster.publish('files-uploaded', {'count': count})
    return jsonify({'success': True, 'count': count})


@app.route('/download/<directory>/<path:filepath>')
def download_file(directory, filepath):
    base_dir = conf.shared_dir(directory)
    if base_dir is None:
        return abort(404)

    # 경로 검증
    is_valid, full_path, error = validate_path(base_dir, filepath)
    if not is_valid:
        logger.add(f"다운로드 경로 검증 실패: {directory}/{filepath}", "WARN")
        return abort(403)

    if not os.path.isfile(full_path):
        return abort(404)

    logger.add(f"다운로드: {directory}/{filepath} -> {get_real_ip()}")
    return send_file(full_path, as_attachment=True, download_name=os.path.basename(full_path))


@app.route('/download-folder/')
@app.route('/download-folder/<path:folder>')
def download_folder(folder='.'):
    # 브라우저는 '/download-folder/.'의 '.'을 지워서 보내므로 빈 경로도 전체 폴더로 처리
    base_dir = os.path.normpath(conf.get('exportable_dir'))

    is_valid, target_dir, error = validate_path(base_dir, folder)
    if not is_valid:
        logger.add(f"폴더 다운로드 경로 검증 실패: {folder}", "WARN")
        return abort(403)

    if not os.path.isdir(target_dir):
        return abort(404)

    zip_name = EXPORTABLE if target_dir == base_dir else os.path.basename(target_dir)

    try:
        mem_zip = io.BytesIO()
        with zipfile.ZipFile(mem_zip, 'w', zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for entry in get_all_files(target_dir, target_dir):
                zf.write(os.path.join(target_dir, entry['path']), entry['path'])
        mem_zip.seek(0)
    except OSError as e:
        logger.add(f"압축 오류: {e}", "ERROR")
        return error_response("Archive creation failed", 500)

    logger.add(f"폴더 다운로드: {folder} ({format_size(mem_zip.getbuffer().nbytes)})")
    return send_file(mem_zip, mimetype='application/zip', as_attachment=True, download_name=f"{zip_name}.zip")


@app.route('/link-folder', methods=['POST'])
def link_folder():
    data = request.get_json(silent=True) or {}
    folder_path = data.get('folderPath')
    if not isinstance(folder_path, str) or not folder_path.strip():
        return error_response("Folder path is required", 400)

    folder_path = os.path.abspath(os.path.expanduser(folder_path.strip()))
    if not os.path.exists(folder_path):
        return error_response("Folder does not exist", 404)
    if not os.path.isdir(folder_path):
        return error_response("Path is not a directory", 400)

    folder_name = safe_filename(os.path.basename(os.path.normpath(folder_path)) or 'linked_folder')
    link_path = os.path.join(conf.get('exportable_dir'), folder_name)

    # 깨진 링크도 같은 이름으로 취급
    if os.path.lexists(link_path):
        return error_response("A folder with this name already exists", 409)

    try:
        os.symlink(folder_path, link_path, target_is_directory=True)
    except OSError as e:
        logger.add(f"폴더 연결 오류: {e}", "ERROR")
        return error_response(f"Failed to link folder: {e}", 500)

    logger.add(f"폴더 연결: {folder_path} -> {link_path}")
    broadcaster.publish('folder-linked', {'folderName': folder_name})
    return jsonify({'success': True, 'message': f"Successfully linked folder: {folder_name}"})


# ==========================================
# 속도 측정 (Speed Test)
# ==========================================

@app.route('/speedtest/ping')
def speedtest_ping():
    return jsonify({'status': 'ok'})


@app.route('/speedtest/download')
def speedtest_download():
    size = request.args.get('size', type=int)
    if not size or size < 1:
        size = 1
    size = min(size, int(conf.get('speedtest_max_mb')))
    total = size * 1024 * 1024

    def generate():
        for _ in range(total // CHUNK_SIZE):
            yield _ZERO_CHUNK

    return Response(generate(), mimetype='application/octet-stream',
                    headers={'Content-Length': str(total), 'Cache-Control': 'no-store'})


@app.route('/speedtest/upload', methods=['POST'])
def speedtest_upload():
    received = 0
    while True:
        chunk = request.stream.read(CHUNK_SIZE)
        if not chunk:
            break
        received += len(chunk)
    return jsonify({'received': received})


@app.route('/events')
def events():
    return Response(event_stream(broadcaster), mimetype='text/event-stream',
                    headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'})
