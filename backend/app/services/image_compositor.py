"""
图片合成：旋转/翻转 → 按像素框裁剪 → 叠加水印 → 编码 JPEG

  - 裁剪框坐标是相对"旋转后外接矩形"的，不是原图
  - 翻转在原图自身坐标系里做，再绕原图中心旋转，最后居中放进外接矩形画布
  - 要么返回完整的 JPEG 字节，要么抛 DecodeError / RenderSurfaceError，不返回半成品
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from app.core.config import settings
from app.core.errors import DecodeError, RenderSurfaceError, ValidationError
from app.utils.serialization import split_data_url


logger = logging.getLogger(__name__)

WATERMARK_POSITIONS = ("top-left", "top-right", "center", "bottom-left", "bottom-right")
WATERMARK_PADDING_RATIO = 0.03      # 3% 输出宽度
DEFAULT_WATERMARK_SCALE = 0.2
DEFAULT_WATERMARK_OPACITY = 0.8
DEFAULT_WATERMARK_POSITION = "bottom-right"

# 浏览器 canvas 的面积上限（16384 x 16384）
MAX_SURFACE_PIXELS = 16384 * 16384


@dataclass(slots=True)
class CropSpec:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CropSpec":
        try:
            return cls(
                x=float(data.get("x", 0) or 0),
                y=float(data.get("y", 0) or 0),
                width=float(data["width"]),
                height=float(data["height"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"invalid crop rectangle: {data!r}") from e


@dataclass(slots=True)
class Flip:
    horizontal: bool = False
    vertical: bool = False


@dataclass(slots=True)
class WatermarkSpec:
    enabled: bool = True
    image: Optional[bytes] = None
    opacity: float = DEFAULT_WATERMARK_OPACITY
    scale: float = DEFAULT_WATERMARK_SCALE
    position: str = DEFAULT_WATERMARK_POSITION

    @classmethod
    def from_settings(cls, data: Optional[Mapping[str, Any]]) -> Optional["WatermarkSpec"]:
        """
        店铺设置 / 请求体里的水印配置 → WatermarkSpec。
        image 既可以是 data URL 也可以是 "src" 字段（前端两种写法都出现过）。
        """
        if not data:
            return None
        raw = data.get("image") or data.get("src")
        image: Optional[bytes] = None
        if isinstance(raw, (bytes, bytearray)):
            image = bytes(raw)
        elif isinstance(raw, str) and raw:
            _, image = split_data_url(raw)
            if image is None:
                raise ValidationError("watermark image must be a base64 data URL")

        opacity = data.get("opacity")
        scale = data.get("scale")
        try:
            opacity = DEFAULT_WATERMARK_OPACITY if opacity is None else float(opacity)
            scale = float(scale or DEFAULT_WATERMARK_SCALE)
        except (TypeError, ValueError) as e:
            raise ValidationError("watermark opacity and scale must be numbers") from e
        return cls(
            enabled=bool(data.get("enabled", True)),
            image=image,
            opacity=opacity,
            scale=scale,
            position=str(data.get("position") or DEFAULT_WATERMARK_POSITION),
        )


# ---------------- 几何 ----------------

def get_radian_angle(degree_value: float) -> float:
    return (degree_value * math.pi) / 180


def rotate_size(width: float, height: float, rotation: float) -> Tuple[float, float]:
    """旋转后的外接矩形尺寸。"""
    rot_rad = get_radian_angle(rotation)
    return (
        abs(math.cos(rot_rad) * width) + abs(math.sin(rot_rad) * height),
        abs(math.sin(rot_rad) * width) + abs(math.cos(rot_rad) * height),
    )


def watermark_box(
    canvas_width: float,
    canvas_height: float,
    wm_width: float,
    wm_height: float,
    *,
    scale: float = DEFAULT_WATERMARK_SCALE,
    position: str = DEFAULT_WATERMARK_POSITION,
) -> Tuple[float, float, float, float]:
    """
    返回水印的 (x, y, width, height)：
      - 宽度 = 输出宽度 × scale，高度按水印原图比例
      - 四角离边 padding（3% 输出宽度），center 两个方向都居中
    """
    display_w = canvas_width * (scale or DEFAULT_WATERMARK_SCALE)
    display_h = display_w * (wm_height / wm_width)
    padding = canvas_width * WATERMARK_PADDING_RATIO

    if position == "top-left":
        x, y = padding, padding
    elif position == "top-right":
        x, y = canvas_width - display_w - padding, padding
    elif position == "center":
        x, y = (canvas_width - display_w) / 2, (canvas_height - display_h) / 2
    elif position == "bottom-left":
        x, y = padding, canvas_height - display_h - padding
    else:
        # bottom-right 以及未知值
        x, y = canvas_width - display_w - padding, canvas_height - display_h - padding
    return x, y, display_w, display_h


def clamp_crop(crop: CropSpec, surface_width: int, surface_height: int) -> Tuple[int, int, int, int]:
    """把裁剪框收进外接矩形内，返回 PIL box (left, top, right, bottom)。"""
    left = int(round(crop.x))
    top = int(round(crop.y))
    right = left + int(round(crop.width))
    bottom = top + int(round(crop.height))

    left, top = max(0, left), max(0, top)
    right, bottom = min(surface_width, right), min(surface_height, bottom)
    if right <= left or bottom <= top:
        raise RenderSurfaceError(
            f"crop rectangle {crop} does not intersect the {surface_width}x{surface_height} surface"
        )
    return left, top, right, bottom


# ---------------- 解码 / 画布 ----------------

def decode_image(raw: bytes, *, what: str = "source") -> Image.Image:
    if not raw:
        raise DecodeError(f"{what} image is empty")
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"cannot decode {what} image: {e}") from e

    # 浏览器绘制时会按 EXIF 方向摆正
    img = ImageOps.exif_transpose(img)
    return img.convert("RGBA")


def _new_surface(width: int, height: int) -> Image.Image:
    if width <= 0 or height <= 0:
        raise RenderSurfaceError(f"invalid surface size {width}x{height}")
    if width * height > MAX_SURFACE_PIXELS:
        raise RenderSurfaceError(f"surface {width}x{height} exceeds {MAX_SURFACE_PIXELS} pixels")
    try:
        return Image.new("RGBA", (width, height), (0, 0, 0, 0))
    except (MemoryError, ValueError) as e:
        raise RenderSurfaceError(f"cannot allocate {width}x{height} surface: {e}") from e


def render_rotated(img: Image.Image, rotation: float = 0, flip: Optional[Flip] = None) -> Image.Image:
    """把原图（翻转 + 旋转后）画到外接矩形大小的透明画布中心。"""
    flip = flip or Flip()
    bbox_w, bbox_h = rotate_size(img.width, img.height, rotation)
    canvas = _new_surface(int(round(bbox_w)), int(round(bbox_h)))

    work = img
    if flip.horizontal:
        work = ImageOps.mirror(work)
    if flip.vertical:
        work = ImageOps.flip(work)
    if rotation % 360:
        # PIL 逆时针为正；canvas 的 rotate 在 y 轴向下的坐标里是顺时针
        work = work.rotate(-rotation, resample=Image.BICUBIC, expand=True)

    offset = ((canvas.width - work.width) // 2, (canvas.height - work.height) // 2)
    canvas.paste(work, offset)
    return canvas


def apply_watermark(surface: Image.Image, watermark: Optional[WatermarkSpec]) -> Image.Image:
    # 开了水印但没有图片：当作没有水印
    if watermark is None or not watermark.enabled or not watermark.image:
        return surface

    wm_img = decode_image(watermark.image, what="watermark")
    x, y, w, h = watermark_box(
        surface.width,
        surface.height,
        wm_img.width,
        wm_img.height,
        scale=watermark.scale,
        position=watermark.position,
    )
    size = (max(1, int(round(w))), max(1, int(round(h))))
    mark = wm_img.resize(size, Image.LANCZOS)

    opacity = min(1.0, max(0.0, float(watermark.opacity)))
    alpha = mark.getchannel("A").point(lambda a: int(round(a * opacity)))
    mark.putalpha(alpha)

    layer = Image.new("RGBA", surface.size, (0, 0, 0, 0))
    layer.paste(mark, (int(round(x)), int(round(y))))
    return Image.alpha_composite(surface, layer)


def encode_jpeg(surface: Image.Image, quality: Optional[int] = None) -> bytes:
    # JPEG 无透明通道：和 canvas.toDataURL('image/jpeg') 一样，透明区域落在黑底上
    flat = Image.new("RGB", surface.size, (0, 0, 0))
    flat.paste(surface, mask=surface.getchannel("A"))
    buf = io.BytesIO()
    flat.save(buf, format="JPEG", quality=quality or settings.COMPOSITOR_JPEG_QUALITY)
    return buf.getvalue()


# ---------------- 入口 ----------------

def get_cropped_image(
    source: bytes,
    crop: CropSpec,
    rotation: float = 0,
    flip: Optional[Flip] = None,
    watermark: Optional[WatermarkSpec] = None,
    *,
    quality: Optional[int] = None,
) -> bytes:
    """
    source 原图字节 + 裁剪框（相对旋转后外接矩形）→ JPEG 字节。
    输出尺寸 = 裁剪框尺寸（裁剪框超出外接矩形时按交集）。
    """
    img = decode_image(source, what="source")
    canvas = render_rotated(img, rotation, flip)

    box = clamp_crop(crop, canvas.width, canvas.height)
    region = canvas.crop(box)

    # 换一块裁剪框大小的新画布，把像素贴在左上角
    surface = _new_surface(region.width, region.height)
    surface.paste(region, (0, 0))

    surface = apply_watermark(surface, watermark)
    out = encode_jpeg(surface, quality)
    logger.info(
        "compositor.done src=%sx%s rotation=%s crop=%s out=%sx%s watermark=%s bytes=%s",
        img.width, img.height, rotation, box, surface.width, surface.height,
        bool(watermark and watermark.enabled and watermark.image), len(out),
    )
    return out
