"""JSON serialization for register descriptors and state snapshots.

Plain JSON loses three things these objects carry: enum members (register kinds),
integer dict keys (memory addresses) and the class of the object itself. Each is
written as a small marker object and restored by the decoder.
"""

import enum
import importlib
import json
import logging
from typing import Any, Self

logger = logging.getLogger(__name__)


def _qualified_name(cls: type) -> str:
    return f'{cls.__module__}:{cls.__qualname__}'


def _resolve(qualified_name: str) -> Any:
    module_name, _, attr = qualified_name.partition(':')
    return getattr(importlib.import_module(module_name), attr)


class CpuStateEncoder(json.JSONEncoder):
    """Marks enums, int-keyed dicts and serializable objects before encoding."""

    def encode(self, o: Any) -> str:
        # int keys never reach default(), so everything is marked up front
        return super().encode(self._mark(o))

    def _mark(self, obj: Any) -> Any:
        if isinstance(obj, enum.Enum):
            return {'_enum': _qualified_name(type(obj)), 'value': obj.value}
        if isinstance(obj, dict):
            marked = {str(k): self._mark(v) for k, v in obj.items()}
            if obj and all(isinstance(k, int) for k in obj):
                return {'_int_keys': marked}
            return marked
        if isinstance(obj, (list, tuple)):
            return [self._mark(item) for item in obj]
        if isinstance(obj, SerializableMixin):
            fields = {k: self._mark(v) for k, v in vars(obj).items()}
            return {'_class': _qualified_name(type(obj)), **fields}
        return obj


class CpuStateDecoder(json.JSONDecoder):
    """Inverse of CpuStateEncoder."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, object_hook=self.object_hook, **kwargs)

    def object_hook(self, dct: dict[str, Any]) -> Any:
        if '_int_keys' in dct:
            return {int(k): v for k, v in dct['_int_keys'].items()}

        if '_enum' in dct:
            return _resolve(dct['_enum'])(dct['value'])

        if '_class' not in dct:
            return dct

        qualified_name = dct.pop('_class')
        try:
            cls = _resolve(qualified_name)
        except (ImportError, AttributeError) as e:
            logger.warning(f'Could not deserialize {qualified_name}: {e}')
            return dct

        # frozen dataclasses included, __init__ is bypassed
        obj = cls.__new__(cls)
        obj.__dict__.update(dct)
        return obj


class SerializableMixin:
    """Adds JSON round-tripping through CpuStateEncoder/CpuStateDecoder."""

    def serialize(self) -> str:
        return json.dumps(self, cls=CpuStateEncoder)

    @classmethod
    def deserialize(cls, data: str) -> Self:
        obj = json.loads(data, cls=CpuStateDecoder)
        if not isinstance(obj, cls):
            raise TypeError(f'Expected serialized {cls.__name__}, got {type(obj).__name__}')
        return obj
