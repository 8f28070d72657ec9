import os
import json
import logging

# ==========================================
# 1. 설정 및 상수 (Constants)
# ==========================================
APP_TITLE = "Local WiFi File Share"
CONFIG_FILE = "wifishare_config.json"
DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
MAX_CONTENT_LENGTH = 10 * 1024 * 1024 * 1024  # 10GB 제한
SPEEDTEST_MAX_MB = 100

IMPORTED = "imported"
EXPORTABLE = "exportable"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


class LogManager:
    def __init__(self, name="wifishare"):
        self.log = logging.getLogger(name)

    def add(self, msg, level="INFO"):
        self.log.log(_LEVELS.get(level, logging.INFO), msg)

    def setup(self, verbose=False):
        """콘솔 출력 형식: [HH:MM:SS] [LEVEL] 메시지"""
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", "%H:%M:%S"))
        self.log.handlers[:] = [handler]
        self.log.setLevel(logging.DEBUG if verbose else logging.INFO)
        self.log.propagate = False
        logging.getLogger('werkzeug').setLevel(logging.ERROR)


logger = LogManager()


class ConfigManager:
    def __init__(self, path=CONFIG_FILE):
        self.path = path
        self.config = {
            'imported_dir': os.path.abspath(os.path.join(os.getcwd(), 'data', IMPORTED)),
            'exportable_dir': os.path.abspath(os.path.join(os.getcwd(), 'data', EXPORTABLE)),
            'host': DEFAULT_HOST,
            'port': DEFAULT_PORT,
            'watch': True,
            'speedtest_max_mb': SPEEDTEST_MAX_MB,
        }

    def load(self):
        if os.path.exists(self.path):
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("top-level value must be an object")
                self.config.update(data)
            except (OSError, ValueError) as e:
                logger.add(f"설정 로드 실패: {e}", "ERROR")
        for key in ('imported_dir', 'exportable_dir'):
            self.config[key] = os.path.abspath(os.path.expanduser(self.config[key]))
        return self

    def save(self):
        try:
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4)
        except OSError as e:
            logger.add(f"설정 저장 실패: {e}", "ERROR")

    def ensure_directories(self):
        for key in ('imported_dir', 'exportable_dir'):
            try:
                os.makedirs(self.config[key], exist_ok=True)
            except OSError as e:
                logger.add(f"폴더 생성 실패: {self.config[key]} ({e})", "ERROR")

    def shared_dir(self, name):
        """'imported' / 'exportable' 이름을 실제 경로로 변환 (그 외는 None)"""
        if name == IMPORTED:
            return self.config['imported_dir']
        if name == EXPORTABLE:
            return self.config['exportable_dir']
        return None

    def get(self, key): return self.config.get(key)
    def set(self, key, value): self.config[key] = value


conf = ConfigManager()
