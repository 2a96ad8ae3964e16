"""
=============================================================================
REQUEST PARAMETERS
=============================================================================

A single parameter name can arrive from several places at once:

    POST /users/42?id=7 HTTP/1.1            route: /users/:id
    Content-Type: multipart/form-data

        path variable     id = "42"
        query string      id = "7"
        form field        id = "9"          (multipart, no filename)
        file part         avatar = me.png   (multipart, with filename)

The ParameterResolver merges them under one precedence rule:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    PARAMETER PRECEDENCE                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. path variable        always first                               │
    │  2. query values         transport order                            │
    │  3. form values          transport order                            │
    │                                                                      │
    │  → param("id").to_list() == ["42", "7", "9"]                        │
    │                                                                      │
    │  FILES are only looked up when steps 1-3 found NOTHING, and only    │
    │  for multipart requests. A name never mixes strings and files:      │
    │  if a scalar value exists, the scalar wins.                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The result is a ParameterView: one name, its raw values (or uploads),
and typed coercions on top.

    request.param("id").to_int()          → 42
    request.param("tags").to_list()       → ["a", "b"]
    request.param("avatar").to_upload()   → Upload(...)
    request.param("missing").to_optional()→ None

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    TYPE_CHECKING, Any, BinaryIO, Callable, Dict, List, Optional, Sequence, Set, Union,
    get_args, get_origin,
)
import io
import logging
import uuid

from .converters import ConverterRegistry, Outcome
from .errors import InvalidMediaType, UnsupportedConversion, ValidationError
from .media_type import ALL, MediaType, get_mime_type

if TYPE_CHECKING:
    from ..transport.request import HTTPRequest
    from .request import Request


logger = logging.getLogger(__name__)


# =============================================================================
# UPLOADS
# =============================================================================

@dataclass(frozen=True)
class Upload:
    """
    A file-valued multipart part.

    The bytes behind `byte_source` belong to the upload storage; an Upload
    is only valid while its request is being handled.
    """

    field_name: str
    submitted_file_name: str
    content_type: MediaType
    byte_source: Callable[[], BinaryIO] = field(repr=False, compare=False)
    work_dir: Optional[Path] = field(default=None, repr=False, compare=False)

    def open(self) -> BinaryIO:
        return self.byte_source()

    def read(self) -> bytes:
        with self.open() as stream:
            return stream.read()

    def save(self, directory: Optional[Union[str, Path]] = None) -> Path:
        """
        Copy the upload into `directory` (default: the configured work dir).

        Returns:
            Path of the written file.
        """
        target_dir = Path(directory) if directory is not None else self.work_dir
        if target_dir is None:
            raise ValueError("No directory given and no work directory configured")

        target_dir.mkdir(parents=True, exist_ok=True)
        # Keep only the final path component of the client's file name
        safe_name = Path(self.submitted_file_name.replace("\\", "/")).name or "upload"
        target = target_dir / f"{uuid.uuid4().hex}-{safe_name}"
        with self.open() as source, open(target, "wb") as out:
            out.write(source.read())
        return target


class UploadStorage(ABC):
    """Provides the uploads of one request; owns their backing storage."""

    @abstractmethod
    def uploads(self, request: "HTTPRequest", name: str, work_dir: Path) -> List[Upload]:
        """All file parts named `name`, in body order."""


class PartUploadStorage(UploadStorage):
    """Serves uploads straight from the parts the transport parsed."""

    def uploads(self, request: "HTTPRequest", name: str, work_dir: Path) -> List[Upload]:
        uploads = []
        for part in request.parts:
            if part.name != name or part.filename is None:
                continue
            uploads.append(Upload(
                field_name=part.name,
                submitted_file_name=part.filename,
                content_type=_part_type(part.content_type, part.filename),
                byte_source=lambda data=part.data: io.BytesIO(data),
                work_dir=work_dir,
            ))
        return uploads


def _part_type(content_type: Optional[str], filename: Optional[str] = None) -> MediaType:
    if content_type:
        try:
            return MediaType.parse(content_type)
        except InvalidMediaType:
            logger.debug(f"Ignoring malformed part Content-Type {content_type!r}")
    if filename:
        return MediaType.parse(get_mime_type(filename))
    return ALL


# =============================================================================
# PARAMETER VIEW
# =============================================================================

class ParameterView:
    """
    Typed view over the raw values (or uploads) of one name.

    Holds either strings or uploads, never both. Coercions that need a
    value raise ValidationError when none is present; the Optional
    variants return None instead.
    """

    def __init__(
        self,
        name: str,
        values: Sequence[str] = (),
        media_type: MediaType = ALL,
        uploads: Sequence[Upload] = (),
        converters: Optional[ConverterRegistry] = None,
    ):
        if values and uploads:
            raise ValueError(f"Parameter {name!r} cannot hold both values and uploads")
        self.name = name
        self.values: tuple = tuple(values)
        self.uploads: tuple = tuple(uploads)
        self.media_type = media_type
        self._converters = converters or ConverterRegistry()

    @classmethod
    def of_uploads(
        cls,
        name: str,
        uploads: Sequence[Upload],
        converters: Optional[ConverterRegistry] = None,
    ) -> "ParameterView":
        return cls(name, uploads=uploads, converters=converters)

    # =========================================================================
    # PRESENCE
    # =========================================================================

    def is_set(self) -> bool:
        return bool(self.values or self.uploads)

    @property
    def is_upload(self) -> bool:
        return bool(self.uploads)

    # =========================================================================
    # SCALAR COERCIONS
    # =========================================================================

    def to_str(self) -> str:
        return self.to(str)

    def to_bool(self) -> bool:
        return self.to(bool)

    def to_int(self) -> int:
        return self.to(int)

    def to_float(self) -> float:
        return self.to(float)

    def to_enum(self, enum_type: type) -> Any:
        return self.to(enum_type)

    def to_optional(self, target_type: Any = str) -> Any:
        """Like to(), but None when the parameter is absent."""
        if not self.is_set():
            return None
        return self.to(target_type)

    # =========================================================================
    # COLLECTION COERCIONS
    # =========================================================================

    def to_list(self, target_type: Any = str) -> List[Any]:
        """Every value converted to `target_type`, in precedence order."""
        if target_type is Upload:
            return self.to_uploads()
        self._require_scalar()
        return [self._convert(target_type, value) for value in self.values]

    def to_set(self, target_type: Any = str) -> Set[Any]:
        return set(self.to_list(target_type))

    # =========================================================================
    # FILES
    # =========================================================================

    def to_upload(self) -> Upload:
        if not self.uploads:
            raise ValidationError(f"Required file missing: {self.name}")
        return self.uploads[0]

    def to_uploads(self) -> List[Upload]:
        """All uploads; empty when this view holds strings."""
        return list(self.uploads)

    # =========================================================================
    # GENERIC COERCION
    # =========================================================================

    def to(self, target_type: Any) -> Any:
        """
        Convert to `target_type`.

        Understands Upload, list[T], set[T] and Optional[T]; everything
        else goes through the value converter registry.

        Raises:
            ValidationError: Value missing or not convertible (400).
            UnsupportedConversion: No converter for `target_type`.
        """
        if target_type is Upload:
            return self.to_upload()

        origin = get_origin(target_type)
        args = get_args(target_type)
        if origin in (list, List):
            return self.to_list(args[0] if args else str)
        if origin in (set, Set):
            return self.to_set(args[0] if args else str)
        if origin is Union and type(None) in args:
            inner = [a for a in args if a is not type(None)]
            return self.to_optional(inner[0] if len(inner) == 1 else str)

        self._require_scalar()
        if not self.values:
            raise ValidationError(f"Required parameter missing: {self.name}")
        return self._convert(target_type, self.values[0])

    def _convert(self, target_type: Any, value: str) -> Any:
        conversion = self._converters.convert(target_type, value)
        if conversion.outcome is Outcome.OK:
            return conversion.value

        type_name = getattr(target_type, "__name__", str(target_type))
        if conversion.outcome is Outcome.NOT_FOUND:
            raise UnsupportedConversion(f"No converter for {type_name} ({self.name})")

        logger.debug(f"Cannot convert {self.name}={value!r} to {type_name}: {conversion.error}")
        raise ValidationError(f"Invalid value for {self.name}: {value!r} is not a valid {type_name}")

    def _require_scalar(self) -> None:
        if self.uploads:
            raise ValidationError(f"Parameter {self.name} is a file upload")

    # =========================================================================
    # VALUE SEMANTICS
    # =========================================================================

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParameterView):
            return NotImplemented
        return (
            self.name == other.name
            and self.values == other.values
            and self.uploads == other.uploads
            and self.media_type == other.media_type
        )

    def __hash__(self) -> int:
        return hash((self.name, self.values, self.uploads))

    def __repr__(self) -> str:
        if self.uploads:
            return f"ParameterView({self.name!r}, uploads={list(self.uploads)!r})"
        return f"ParameterView({self.name!r}, {list(self.values)!r}, {self.media_type})"


# =============================================================================
# RESOLVER
# =============================================================================

class ParameterResolver:
    """
    Merges path variables, query/form values and uploads into views.

    Configuration (upload work directory, storage, converters) is given
    at construction; resolution never looks anything up globally.
    """

    def __init__(
        self,
        work_dir: Path,
        upload_storage: Optional[UploadStorage] = None,
        converters: Optional[ConverterRegistry] = None,
    ):
        self.work_dir = Path(work_dir)
        self.upload_storage = upload_storage or PartUploadStorage()
        self.converters = converters or ConverterRegistry()

    def names(self, request: "Request") -> List[str]:
        """
        Every resolvable name: path variables, then transport parameters,
        then (multipart only) file field names.
        """
        names: Dict[str, None] = dict.fromkeys(request.vars)
        names.update(dict.fromkeys(request.transport.parameter_names()))
        if request.type.is_multipart:
            names.update(dict.fromkeys(p.name for p in request.transport.parts if p.filename))
        return list(names)

    def resolve(self, request: "Request") -> Dict[str, ParameterView]:
        """Name → view for every resolvable name, in name order."""
        return {name: self.resolve_one(request, name) for name in self.names(request)}

    def resolve_one(self, request: "Request", name: str) -> ParameterView:
        transport = request.transport
        multipart = request.type.is_multipart

        values: List[str] = []
        var = request.vars.get(name)
        if var is not None:
            values.append(var)
        values.extend(transport.parameter_values(name))

        if not values and multipart:
            uploads = [
                upload
                for upload in self.upload_storage.uploads(transport, name, self.work_dir)
                if upload.submitted_file_name
            ]
            if uploads:
                return ParameterView.of_uploads(name, uploads, self.converters)

        media_type = ALL
        if multipart:
            part = transport.part(name)
            if part is not None:
                media_type = _part_type(part.content_type)

        return ParameterView(name, values, media_type, converters=self.converters)
