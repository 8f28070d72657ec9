import os
import sys
import errno
import argparse
import threading

from werkzeug.serving import make_server

from .config import conf, logger, CONFIG_FILE, IMPORTED, EXPORTABLE
from .netinfo import server_urls
from .notify import DirectoryWatcher
from .server import app, broadcaster


# ==========================================
# 5. 서버 스레드 관리
# ==========================================
class ServerThread(threading.Thread):
    def __init__(self, host=None, port=None):
        threading.Thread.__init__(self)
        self.daemon = True
        self.host = host or conf.get('host')
        self.port = int(conf.get('port') if port is None else port)
        # 소켓 바인딩은 생성 시점에 수행됨
        self.server = make_server(self.host, self.port, app, threaded=True)
        self.port = self.server.server_port

    def run(self):
        logger.add(f"서버 시작: http://{self.host}:{self.port}")
        self.server.serve_forever()

    def shutdown(self):
        logger.add("서버 종료 중...")
        # serve_forever가 돌고 있지 않으면 shutdown()은 영원히 대기함
        if self.is_alive():
            self.server.shutdown()
        self.server.server_close()
        logger.add("서버가 중지되었습니다.")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="wifishare", description="Share files with devices on the same WiFi network.")
    parser.add_argument("--config", default=CONFIG_FILE, help=f"JSON config file (default: {CONFIG_FILE})")
    parser.add_argument("--host", help="bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="bind port (default: 3000)")
    parser.add_argument("--imported", help="directory that receives uploads")
    parser.add_argument("--exportable", help="directory offered for download")
    parser.add_argument("--no-watch", action="store_true", help="disable live refresh on file changes")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every request")
    return parser.parse_args(argv)


def apply_args(args):
    conf.path = args.config
    conf.load()
    if args.host:
        conf.set('host', args.host)
    if args.port is not None:
        conf.set('port', args.port)
    if args.imported:
        conf.set('imported_dir', args.imported)
    if args.exportable:
        conf.set('exportable_dir', args.exportable)
    if args.no_watch:
        conf.set('watch', False)
    # 명령행에서 받은 경로도 절대 경로로 정리
    for key in ('imported_dir', 'exportable_dir'):
        conf.set(key, os.path.abspath(os.path.expanduser(conf.get(key))))
    conf.ensure_directories()


def print_banner(port):
    print("\n🚀 Local WiFi File Share Server Started!\n")
    print("📡 Access from your devices:")
    for url in server_urls(port):
        print(f"   {url}")
    print("\n📁 Sharing directories:")
    print(f"   imported   -> {conf.get('imported_dir')} (uploads)")
    print(f"   exportable -> {conf.get('exportable_dir')} (downloads)")
    if conf.get('watch'):
        print("\n🔌 Live updates enabled")
    print("\n✨ Ready to share files! (Ctrl+C to stop)\n")


def main(argv=None):
    args = parse_args(argv)
    logger.setup(verbose=args.verbose)
    apply_args(args)

    try:
        server_thread = ServerThread()
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            logger.add(f"포트 {conf.get('port')}가 이미 사용 중입니다.", "ERROR")
        else:
            logger.add(f"서버 시작 오류: {e}", "ERROR")
        return 1
    except SystemExit:
        # werkzeug는 바인딩 실패 시 원인을 stderr에 출력한 뒤 sys.exit(1) 호출
        logger.add(f"서버 시작 실패: {conf.get('host')}:{conf.get('port')}", "ERROR")
        return 1

    watcher = None
    if conf.get('watch'):
        watcher = DirectoryWatcher(broadcaster, {
            IMPORTED: conf.get('imported_dir'),
            EXPORTABLE: conf.get('exportable_dir'),
        }).start()

    print_banner(server_thread.port)
    server_thread.start()
    try:
        while server_thread.is_alive():
            server_thread.join(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        if watcher is not None:
            watcher.stop()
        server_thread.shutdown()
    return 0


if __name__ == '__main__':
    sys.exit(main())
