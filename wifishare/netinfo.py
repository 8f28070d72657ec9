import io
import base64
import socket
from functools import lru_cache

import qrcode
from qrcode.image.pil import PilImage
from PIL import Image

from .config import logger

QR_SIZE = 128


def get_local_ips():
    """같은 네트워크의 다른 기기에서 접속 가능한 IPv4 주소 목록"""
    ips = []
    try:
        # UDP connect는 패킷을 보내지 않고 라우팅에 쓰일 로컬 주소만 결정함
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.settimeout(0.1)
            s.connect(("8.8.8.8", 80))
            ip = s.getsockname()[0]
            if ip and not ip.startswith('127.'):
                ips.append(ip)
    except OSError as e:
        logger.add(f"기본 경로 IP 확인 실패: {e}", "DEBUG")

    try:
        host_name = socket.gethostname()
        for ip in socket.gethostbyname_ex(host_name)[2]:
            if ip and not ip.startswith("127.") and ip not in ips:
                ips.append(ip)
    except OSError as e:
        logger.add(f"호스트 이름 IP 확인 실패: {e}", "DEBUG")

    return ips or ['127.0.0.1']


def server_urls(port, ips=None):
    if ips is None:
        ips = get_local_ips()
    return [f"http://{ip}:{port}" for ip in ips]


@lru_cache(maxsize=32)
def qr_data_url(url, size=QR_SIZE):
    """url을 담은 QR 코드 PNG를 data URL로 반환 (페이지에 직접 삽입)"""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=4,
        border=1,
        image_factory=PilImage,
    )
    qr.add_data(url)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white").get_image()
    img = img.convert("RGB").resize((size, size), Image.NEAREST)

    buffered = io.BytesIO()
    img.save(buffered, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffered.getvalue()).decode('ascii')
