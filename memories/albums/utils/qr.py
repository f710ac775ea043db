# albums/utils/qr.py
import qrcode
from PIL import Image


def make_qr_image(data: str, box_size: int = 10, border: int = 4) -> Image.Image:
    """QR code for the album page's scan link, as an RGB PIL image"""
    qr = qrcode.QRCode(version=1, box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    return img.get_image().convert('RGB') if hasattr(img, 'get_image') else img.convert('RGB')
