import base64
import io
import os
import tempfile
import unittest

from PIL import Image

from media.images import (
    ResizeOptions,
    generate_thumbnail,
    get_dimensions,
    resize_image,
    resize_to_jpeg_bytes,
    to_base64,
)


class TestImages(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def make_image(self, name, size, mode="RGB", orientation=None):
        path = self.path(name)
        img = Image.new(mode, size, color=(200, 100, 50, 255) if mode == "RGBA" else (200, 100, 50))
        fmt = "PNG" if name.endswith(".png") else "JPEG"
        if orientation is not None:
            exif = Image.Exif()
            exif[0x0112] = orientation
            img.save(path, fmt, exif=exif)
        else:
            img.save(path, fmt)
        return path

    def test_resize_fits_inside_box(self):
        src = self.make_image("wide.jpg", (4000, 1000))
        out = self.path("out.jpg")

        size = resize_image(src, out, ResizeOptions(max_width=1920, max_height=1080))

        self.assertEqual(size, (1920, 480))
        with Image.open(out) as img:
            self.assertEqual(img.format, "JPEG")
            self.assertEqual(img.size, (1920, 480))

    def test_no_upscaling(self):
        src = self.make_image("small.jpg", (300, 200))
        self.assertEqual(resize_image(src, self.path("out.jpg")), (300, 200))

    def test_in_place_resize(self):
        src = self.make_image("same.jpg", (3000, 3000))
        resize_image(src, src, ResizeOptions(max_width=500, max_height=500))
        with Image.open(src) as img:
            self.assertEqual(img.size, (500, 500))

    def test_alpha_png_becomes_rgb_jpeg(self):
        src = self.make_image("alpha.png", (100, 50), mode="RGBA")
        out = self.path("alpha.jpg")
        resize_image(src, out)
        with Image.open(out) as img:
            self.assertEqual(img.mode, "RGB")

    def test_exif_orientation_applied(self):
        src = self.make_image("rotated.jpg", (400, 200), orientation=6)

        self.assertEqual(get_dimensions(src), (200, 400))
        self.assertEqual(resize_image(src, self.path("upright.jpg")), (200, 400))

    def test_dimensions_without_exif(self):
        src = self.make_image("plain.jpg", (640, 480))
        self.assertEqual(get_dimensions(src), (640, 480))

    def test_thumbnail(self):
        src = self.make_image("photo.jpg", (1200, 800))
        out = self.path(os.path.join("thumbnails", "photo.jpg"))

        self.assertEqual(generate_thumbnail(src, out, size=128), out)
        with Image.open(out) as img:
            self.assertEqual(img.size, (128, 85))

    def test_resize_to_jpeg_bytes(self):
        src = self.make_image("big.png", (1600, 900))
        data = resize_to_jpeg_bytes(src, max_width=800)
        with Image.open(io.BytesIO(data)) as img:
            self.assertEqual(img.size, (800, 450))

        self.assertEqual(base64.b64decode(to_base64(data)), data)


if __name__ == "__main__":
    unittest.main()
