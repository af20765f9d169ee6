import json
from pathlib import Path

from .errors import InvalidInput
from .models import Scene


def save_scene(path: str | Path, scene: Scene) -> None:
    path = Path(path)
    path.write_text(json.dumps(scene.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")


def load_scene(path: str | Path) -> Scene:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise InvalidInput(f"{path} is not valid JSON: {exc}") from None
    return Scene.from_dict(data)
