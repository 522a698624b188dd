import json
import random
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
from PIL import Image

from webpbatch.conversion.models import KB, EncodeFailure, EncodeSuccess, Settings, Task

REPO_CONFIGS_DIR = Path(__file__).resolve().parent.parent / "configs"


def noise_image(width: int = 64, height: int = 64, seed: int = 0) -> Image.Image:
    """Deterministic noisy RGB image; noise keeps encoded sizes sensitive to quality."""
    data = random.Random(seed).randbytes(width * height * 3)
    return Image.frombytes("RGB", (width, height), data)


def write_image(path: Path, width: int = 64, height: int = 64, seed: int = 0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    noise_image(width, height, seed).save(path)
    return path


def thread_pool(workers: int) -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=workers)


def make_tasks(count: int, settings: Settings = None) -> list[Task]:
    settings = settings or Settings()
    return [Task(source=Path(f"img{i}.png"), destination=Path(f"out/img{i}.webp"), settings=settings) for i in range(count)]


def success_for(task: Task, original_kb: float = 100, encoded_kb: float = 50) -> EncodeSuccess:
    return EncodeSuccess(
        source=task.source,
        destination=task.destination,
        original_size=int(original_kb * KB),
        encoded_size=int(encoded_kb * KB),
        quality=task.settings.quality,
    )


def failure_for(task: Task, error: str = "boom") -> EncodeFailure:
    return EncodeFailure(source=task.source, error=error)


class StubEncoder:
    """Encoder whose output size in KB is ``size_fn(quality)``; records every call."""

    def __init__(self, size_fn):
        self.size_fn = size_fn
        self.calls = []

    def __call__(self, image, quality: int) -> bytes:
        self.calls.append(quality)
        return b"\0" * round(self.size_fn(quality) * KB)


@pytest.fixture
def source_tree(tmp_path):
    """assets/ with two images at the root and one in a subdirectory."""
    root = tmp_path / "assets"
    write_image(root / "a.png", seed=1)
    write_image(root / "b.jpg", seed=2)
    write_image(root / "nested" / "c.png", seed=3)
    (root / "notes.txt").write_text("not an image")
    return root


@pytest.fixture
def configs_dir(tmp_path):
    d = tmp_path / "configs"
    d.mkdir()
    return d


def write_config(configs_dir: Path, name: str, data: dict) -> Path:
    path = configs_dir / f"{name}.json"
    path.write_text(json.dumps(data))
    return path
