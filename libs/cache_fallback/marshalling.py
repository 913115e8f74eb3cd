"""Stock marshallers for persisting fallback values.

Marshallers never close the streams handed to them; the fallback file owns
the stream lifecycle and commits the value when the stream is closed.
"""

from __future__ import annotations

import json
import pickle
from typing import Any, BinaryIO, Generic, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


class PickleMarshaller:
    """Marshals arbitrary picklable values.

    Only use for fallback directories written by trusted processes: unpickling
    executes code from the file.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self.protocol = protocol

    def write(self, value: Any, sink: BinaryIO) -> None:
        pickle.dump(value, sink, protocol=self.protocol)

    def read(self, source: BinaryIO) -> Any:
        return pickle.load(source)


class JsonMarshaller:
    """Marshals JSON-compatible values (dicts, lists, strings, numbers)."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def write(self, value: Any, sink: BinaryIO) -> None:
        sink.write(json.dumps(value, ensure_ascii=False).encode(self.encoding))

    def read(self, source: BinaryIO) -> Any:
        return json.loads(source.read().decode(self.encoding))


class PydanticMarshaller(Generic[M]):
    """Marshals pydantic models as JSON, validating on read.

    Example:
        >>> class Rate(BaseModel):
        ...     pair: str
        ...     value: float
        >>> marshaller = PydanticMarshaller(Rate)
    """

    def __init__(self, model_cls: type[M]) -> None:
        self.model_cls = model_cls

    def write(self, value: M, sink: BinaryIO) -> None:
        sink.write(value.model_dump_json().encode("utf-8"))

    def read(self, source: BinaryIO) -> M:
        return self.model_cls.model_validate_json(source.read())
