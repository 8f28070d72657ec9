import os
import re
from datetime import datetime

from .config import logger

SIZE_UNITS = ['B', 'KB', 'MB', 'GB']


# ==========================================
# 2. 유틸리티 함수 (Utility Functions)
# ==========================================

def safe_filename(filename):
    """
    업로드된 파일명을 안전한 형태로 변환합니다.
    Werkzeug의 secure_filename은 ASCII 외 문자를 모두 삭제하므로 직접 구현합니다.
    """
    # 1. 경로 구분자 제거 (보안)
    filename = filename.replace('/', '').replace('\\', '')

    # 2. 상위 디렉토리 탐색(..) 방지
    filename = re.sub(r'\.\.+', '.', filename)

    # 3. 윈도우/리눅스 예약 문자 치환
    filename = re.sub(r'[<>:"|?*]', '_', filename)

    filename = filename.strip()

    if not filename:
        filename = "unnamed_file"

    return filename


def safe_relative_path(raw):
    """폴더 업로드 시 전달되는 'a/b/c.txt' 형태의 상대 경로를 세그먼트 단위로 정리"""
    parts = []
    for part in re.split(r'[\\/]+', raw or ''):
        part = part.strip()
        if not part or part in ('.', '..'):
            continue
        part = safe_filename(part)
        if part == '.':
            continue
        parts.append(part)
    if not parts:
        return None
    return '/'.join(parts)


def validate_path(base_dir: str, path: str) -> tuple:
    """
    경로 탐색 공격을 방지하기 위한 경로 검증 함수.
    심볼릭 링크는 따라가지 않으므로 연결된 폴더 아래의 파일도 허용됩니다.

    Args:
        base_dir: 기본 허용 디렉토리
        path: 검증할 상대 경로

    Returns:
        tuple: (is_valid: bool, full_path: str, error_msg: str)
    """
    base_dir_normalized = os.path.normpath(os.path.abspath(base_dir))
    full_path = os.path.normpath(os.path.join(base_dir_normalized, path))

    if full_path != base_dir_normalized and not full_path.startswith(base_dir_normalized + os.sep):
        return (False, None, "Access denied")

    return (True, full_path, None)


def format_size(num):
    if num <= 0:
        return "0 B"
    i = 0
    while i < len(SIZE_UNITS) - 1 and num >= 1024 ** (i + 1):
        i += 1
    value = f"{num / 1024 ** i:.2f}".rstrip('0').rstrip('.')
    return f"{value} {SIZE_UNITS[i]}"


# ==========================================
# 3. 파일 목록 / 폴더 트리 (Listing)
# ==========================================

def get_all_files(directory, base_dir, _seen=None):
    """
    directory 아래의 모든 파일을 재귀적으로 수집합니다.
    경로는 base_dir 기준 상대 경로('/' 구분)로 반환됩니다.
    """
    files = []
    real = os.path.realpath(directory)
    seen = (_seen or frozenset()) | {real}

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name.lower())
    except OSError as e:
        logger.add(f"디렉토리 읽기 오류 {directory}: {e}", "ERROR")
        return files

    for entry in entries:
        try:
            if entry.is_dir():
                # 연결된 폴더가 자기 상위를 가리키면 순환
                if os.path.realpath(entry.path) in seen:
                    logger.add(f"순환 링크 건너뜀: {entry.path}", "WARN")
                    continue
                files.extend(get_all_files(entry.path, base_dir, seen))
                continue
            stat = entry.stat()
        except OSError as e:
            logger.add(f"파일 정보 오류 {entry.path}: {e}", "ERROR")
            continue

        files.append({
            'path': os.path.relpath(entry.path, base_dir).replace('\\', '/'),
            'name': entry.name,
            'size': stat.st_size,
            'modified': stat.st_mtime,
            'mod_time': datetime.fromtimestamp(stat.st_mtime).strftime('%Y-%m-%d %H:%M'),
        })

    return files


def _new_folder(name, path):
    return {'name': name, 'path': path, 'files': [], 'subfolders': {}, 'total_size': 0}


def build_folder_tree(files):
    root = _new_folder('', '')

    for file in files:
        node = root
        parts = file['path'].split('/')
        for i, folder_name in enumerate(parts[:-1]):
            if not folder_name:
                continue
            if folder_name not in node['subfolders']:
                folder_path = '/'.join(p for p in parts[:i + 1] if p)
                node['subfolders'][folder_name] = _new_folder(folder_name, folder_path)
            node = node['subfolders'][folder_name]
        node['files'].append(file)

    _calculate_size(root)
    return root


def _calculate_size(node):
    size = sum(f['size'] for f in node['files'])
    for sub in node['subfolders'].values():
        size += _calculate_size(sub)
    node['total_size'] = size
    return size
