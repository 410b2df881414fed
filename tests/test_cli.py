"""Tests for the command line interface."""
import json

import numpy as np
import pytest
from PIL import Image

from colortree.cli import create_parser, main, render_preview
from colortree.image import load_image
from colortree.runner import Runner
from colortree.types import ClusteringError, KeyingAction


@pytest.fixture
def square_png(tmp_path):
    pixels = np.full((24, 24, 3), 255, dtype=np.uint8)
    pixels[6:18, 6:18] = (0, 0, 255)
    path = tmp_path / "square.png"
    Image.fromarray(pixels).save(path)
    return path


class TestLoadImage:
    """Test image loading."""

    def test_load_rgb(self, square_png):
        image = load_image(square_png)
        assert (image.width, image.height) == (24, 24)
        assert tuple(image.get(10, 10)) == (0, 0, 255)

    def test_transparent_composited_on_white(self, tmp_path):
        pixels = np.zeros((2, 2, 4), dtype=np.uint8)
        path = tmp_path / "clear.png"
        Image.fromarray(pixels).save(path)
        assert tuple(load_image(path).get(0, 0)) == (255, 255, 255)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_image(tmp_path / "nope.png")

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "bad.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ClusteringError):
            load_image(path)


class TestCli:
    """Test the colortree command."""

    def test_parser_defaults(self):
        args = create_parser().parse_args(["in.png"])
        assert args.batch_size == 25600
        assert args.keying == "keep"
        assert args.key_color == "#000000"

    def test_json_and_preview(self, square_png, tmp_path, capsys):
        summary_path = tmp_path / "out.json"
        preview_path = tmp_path / "out.png"
        code = main([str(square_png), "--json", str(summary_path),
                     "--preview", str(preview_path), "--batch-size", "50"])
        assert code == 0
        assert "Clusters: 2" in capsys.readouterr().out

        summary = json.loads(summary_path.read_text())
        assert summary["width"] == 24
        assert summary["roots"] == [0, 1]
        inner = summary["clusters"][1]
        assert inner["area"] == 144
        assert inner["hollow"] is True
        assert inner["color"] == "#0000ff"

        preview = np.array(Image.open(preview_path))
        assert preview.shape == (24, 24, 3)

    def test_keying_option(self, square_png, tmp_path):
        summary_path = tmp_path / "out.json"
        code = main([str(square_png), "--keying", "discard", "--key-color", "0000ff",
                     "--json", str(summary_path)])
        assert code == 0
        summary = json.loads(summary_path.read_text())
        assert summary["output"] == [0]
        assert summary["clusters"][1]["keyed"] is True

    def test_missing_input(self, tmp_path):
        assert main([str(tmp_path / "missing.png")]) == 1

    def test_invalid_shift(self, square_png):
        assert main([str(square_png), "--shift", "8"]) == 1

    def test_invalid_key_color(self, square_png):
        assert main([str(square_png), "--key-color", "blue"]) == 1


class TestRenderPreview:
    """Test the preview rendering."""

    def test_shape_and_type(self, square_png):
        clusters = Runner(image=load_image(square_png)).run()
        preview = render_preview(clusters)
        assert preview.shape == (24, 24, 3)
        assert preview.dtype == np.uint8
