"""
=============================================================================
CONVERTERS
=============================================================================

Two kinds of conversion live here:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         CONVERSION LAYERS                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  VALUE CONVERTERS  (ConverterRegistry)                              │
    │     "42"  ──►  42          one string → one typed value             │
    │     used by ParameterView.to(int), header(...).to_bool(), ...       │
    │                                                                      │
    │  BODY CONVERTERS   (BodyParser / BodyWriter)                        │
    │     request body bytes  ──►  typed value      (parse, decode side)  │
    │     typed value  ──►  response body bytes     (write, encode side)  │
    │     picked by BodyConverterSelector via media type negotiation      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
DISCRIMINATED RESULTS
=============================================================================

The value registry never raises across layers. convert() answers with a
Conversion whose outcome is one of:

    OK            value converted
    NOT_FOUND     nothing registered for the target type
    DECODE_ERROR  a converter exists but rejected the string

The caller (ParameterView) decides which exception, if any, each outcome
becomes.

=============================================================================
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import (
    Any, BinaryIO, Callable, Dict, Iterator, List, Optional, Sequence, TextIO, Tuple,
)
import json
import logging

from .errors import DecodeError, NotAcceptable, UnsupportedMediaType
from .media_type import JSON, OCTET_STREAM, TEXT_PLAIN, MediaType, first_match


logger = logging.getLogger(__name__)


# =============================================================================
# VALUE CONVERTERS
# =============================================================================

class Outcome(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    DECODE_ERROR = "decode_error"


@dataclass(frozen=True)
class Conversion:
    """Result of a value conversion."""

    outcome: Outcome
    value: Any = None
    error: str = ""

    @classmethod
    def ok(cls, value: Any) -> "Conversion":
        return cls(Outcome.OK, value)

    @classmethod
    def not_found(cls) -> "Conversion":
        return cls(Outcome.NOT_FOUND)

    @classmethod
    def failed(cls, error: str) -> "Conversion":
        return cls(Outcome.DECODE_ERROR, error=error)

    @property
    def is_ok(self) -> bool:
        return self.outcome is Outcome.OK


# A value converter receives the raw string and the requested type
ValueConverter = Callable[[str, type], Any]


def _to_str(value: str, target_type: type) -> str:
    return value


def _to_int(value: str, target_type: type) -> int:
    return int(value.strip())


def _to_float(value: str, target_type: type) -> float:
    return float(value.strip())


def _to_decimal(value: str, target_type: type) -> Decimal:
    return Decimal(value.strip())


def _to_bool(value: str, target_type: type) -> bool:
    normalized = value.strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_enum(value: str, target_type: type) -> Enum:
    # By member name first ("RED"), then by value ("red")
    try:
        return target_type[value.strip()]
    except KeyError:
        return target_type(value.strip())


class ConverterRegistry:
    """
    Maps target types to value converters.

    Lookup tries the exact type first, then the registered base classes,
    most recently registered first, so Enum (registered after int) covers
    IntEnum subclasses too.

    Example:
        registry = ConverterRegistry()
        registry.register(date, lambda value, _: date.fromisoformat(value))

        registry.convert(date, "2026-01-01")   # Conversion(OK, date(...))
        registry.convert(bytes, "x")           # Conversion(NOT_FOUND)
    """

    def __init__(self, defaults: bool = True):
        self._converters: Dict[type, ValueConverter] = {}
        if defaults:
            self.register(str, _to_str)
            self.register(int, _to_int)
            self.register(float, _to_float)
            self.register(bool, _to_bool)
            self.register(Decimal, _to_decimal)
            self.register(Enum, _to_enum)

    def register(self, target_type: type, converter: ValueConverter) -> "ConverterRegistry":
        """Register (or replace) the converter for a target type. Returns self."""
        self._converters[target_type] = converter
        return self

    def lookup(self, target_type: type) -> Optional[ValueConverter]:
        converter = self._converters.get(target_type)
        if converter is not None:
            return converter

        if not isinstance(target_type, type):
            return None

        for base, candidate in reversed(list(self._converters.items())):
            if issubclass(target_type, base):
                return candidate
        return None

    def supports(self, target_type: type) -> bool:
        return self.lookup(target_type) is not None

    def convert(self, target_type: type, value: str) -> Conversion:
        """Convert one raw string. Never raises for bad input."""
        converter = self.lookup(target_type)
        if converter is None:
            return Conversion.not_found()

        try:
            return Conversion.ok(converter(value, target_type))
        except (ValueError, TypeError, KeyError, InvalidOperation) as e:
            return Conversion.failed(str(e) or f"invalid {getattr(target_type, '__name__', target_type)}")


# =============================================================================
# BODY READING
# =============================================================================

class BodyReader:
    """
    Scoped, read-once access to a request body.

    The underlying transport stream is opened lazily, only when a parser
    actually reads, and closed as soon as the read finishes.
    """

    def __init__(self, charset: str, opener: Callable[[], BinaryIO]):
        self.charset = charset
        self._opener = opener

    @contextmanager
    def stream(self) -> Iterator[BinaryIO]:
        stream = self._opener()
        try:
            yield stream
        finally:
            stream.close()

    def bytes(self) -> bytes:
        with self.stream() as stream:
            return stream.read()

    def text(self) -> str:
        """Read the whole body, decoded with the request charset."""
        data = self.bytes()
        try:
            return data.decode(self.charset)
        except (UnicodeDecodeError, LookupError) as e:
            raise DecodeError(f"Body is not valid {self.charset}: {e}")


# =============================================================================
# BODY STRATEGIES
# =============================================================================

class BodyOutput(ABC):
    """
    The two write paths a BodyWriter may use.

    Response implements this; writers never touch the transport directly.
    """

    @abstractmethod
    def text(self, strategy: Callable[[TextIO], None]) -> Any:
        """Frame the response as character data and run strategy(writer)."""

    @abstractmethod
    def bytes(self, strategy: Callable[[BinaryIO], None]) -> Any:
        """Frame the response as binary data and run strategy(stream)."""


class BodyParser(ABC):
    """Decodes a request body of one of `types` into a target type."""

    types: Tuple[MediaType, ...] = ()

    @abstractmethod
    def can_parse(self, target_type: Any) -> bool:
        ...

    @abstractmethod
    def parse(self, target_type: Any, body: BodyReader) -> Any:
        """
        Raises:
            DecodeError: If the body is malformed.
        """


class BodyWriter(ABC):
    """Encodes a value as a response body of one of `types`."""

    types: Tuple[MediaType, ...] = ()

    @abstractmethod
    def can_write(self, value: Any) -> bool:
        ...

    @abstractmethod
    def write(self, value: Any, out: BodyOutput) -> None:
        ...


_JSON_TARGETS = (dict, list, str, int, float, bool, object, Any)


def _is_json_shape(value: Any, expected: type) -> bool:
    # bool is an int subclass; JSON integers are valid numbers for float
    if isinstance(value, bool):
        return expected is bool
    if expected is float:
        return isinstance(value, (int, float))
    return isinstance(value, expected)


class JsonBodyConverter(BodyParser, BodyWriter):
    """application/json, for JSON-native Python types only."""

    types = (JSON,)

    def can_parse(self, target_type: Any) -> bool:
        origin = getattr(target_type, "__origin__", None)
        return target_type in _JSON_TARGETS or origin in (dict, list)

    def parse(self, target_type: Any, body: BodyReader) -> Any:
        try:
            value = json.loads(body.text())
        except json.JSONDecodeError as e:
            raise DecodeError(f"Invalid JSON body: {e}")

        expected = getattr(target_type, "__origin__", None) or target_type
        if expected in (dict, list, str, int, float, bool) and not _is_json_shape(value, expected):
            raise DecodeError(f"Expected JSON {expected.__name__}, got {type(value).__name__}")
        if expected is float:
            return float(value)
        return value

    def can_write(self, value: Any) -> bool:
        return value is None or isinstance(value, (dict, list, tuple, int, float, bool))

    def write(self, value: Any, out: BodyOutput) -> None:
        out.text(lambda writer: writer.write(json.dumps(value, ensure_ascii=False)))


class TextBodyConverter(BodyParser, BodyWriter):
    """text/plain: reads str, writes anything with a meaningful str()."""

    types = (TEXT_PLAIN,)

    def can_parse(self, target_type: Any) -> bool:
        return target_type is str

    def parse(self, target_type: Any, body: BodyReader) -> str:
        return body.text()

    def can_write(self, value: Any) -> bool:
        return isinstance(value, (str, int, float, Decimal, Enum))

    def write(self, value: Any, out: BodyOutput) -> None:
        text = value.value if isinstance(value, Enum) else value
        out.text(lambda writer: writer.write(str(text)))


class BytesBodyConverter(BodyParser, BodyWriter):
    """application/octet-stream on the binary path."""

    types = (OCTET_STREAM,)

    def can_parse(self, target_type: Any) -> bool:
        return target_type in (bytes, bytearray)

    def parse(self, target_type: Any, body: BodyReader) -> Any:
        return target_type(body.bytes())

    def can_write(self, value: Any) -> bool:
        return isinstance(value, (bytes, bytearray, memoryview))

    def write(self, value: Any, out: BodyOutput) -> None:
        out.bytes(lambda stream: stream.write(bytes(value)))


class NotAcceptableWriter(BodyWriter):
    """
    Stand-in returned when no writer matches.

    Selection succeeds; the failure is raised only when write() runs, so
    the response is still unframed and can answer 406 the normal way.
    """

    def __init__(self, accepts: Sequence[MediaType]):
        self.accepts = list(accepts)

    def can_write(self, value: Any) -> bool:
        return False

    def write(self, value: Any, out: BodyOutput) -> None:
        raise NotAcceptable(", ".join(str(t) for t in self.accepts))


# =============================================================================
# SELECTOR
# =============================================================================

class BodyConverterSelector:
    """
    Picks a BodyParser for a request body or a BodyWriter for a result.

    Parsers and writers are tried in registration order; the first one
    that handles the type AND matches the media type wins.
    """

    def __init__(
        self,
        parsers: Sequence[BodyParser] = (),
        writers: Sequence[BodyWriter] = (),
    ):
        self._parsers: List[BodyParser] = list(parsers)
        self._writers: List[BodyWriter] = list(writers)

    @classmethod
    def default(cls) -> "BodyConverterSelector":
        """JSON, plain text and raw bytes, in that order."""
        selector = cls()
        for converter in (JsonBodyConverter(), TextBodyConverter(), BytesBodyConverter()):
            selector.add(converter)
        return selector

    def add(self, converter: Any) -> "BodyConverterSelector":
        """Register a parser, a writer, or an object that is both."""
        if not isinstance(converter, (BodyParser, BodyWriter)):
            raise TypeError(f"Not a body converter: {converter!r}")
        if isinstance(converter, BodyParser):
            self._parsers.append(converter)
        if isinstance(converter, BodyWriter):
            self._writers.append(converter)
        return self

    @property
    def parsers(self) -> List[BodyParser]:
        return list(self._parsers)

    @property
    def writers(self) -> List[BodyWriter]:
        return list(self._writers)

    def parser_for(self, target_type: Any, acceptable: Sequence[MediaType]) -> BodyParser:
        """
        Find a parser for `target_type` among those declaring an acceptable type.

        Raises:
            UnsupportedMediaType: If none qualifies (HTTP 415).
        """
        for parser in self._parsers:
            if parser.can_parse(target_type) and first_match(parser.types, acceptable):
                return parser

        name = getattr(target_type, "__name__", str(target_type))
        wanted = ", ".join(str(t) for t in acceptable)
        logger.info(f"No parser for {name} from {wanted}")
        raise UnsupportedMediaType(wanted)

    def writer_for(self, value: Any, accepts: Sequence[MediaType]) -> BodyWriter:
        """
        Find a writer for `value` honoring the client's preference order.

        Never raises: when nothing matches, a NotAcceptableWriter is
        returned and the 406 surfaces when it is asked to write.
        """
        capable = [w for w in self._writers if w.can_write(value)]
        for wanted in accepts:
            for writer in capable:
                if first_match(writer.types, [wanted]):
                    return writer
        return NotAcceptableWriter(accepts)

    @staticmethod
    def negotiate(writer: BodyWriter, accepts: Sequence[MediaType]) -> Optional[MediaType]:
        """The concrete media type `writer` will produce for `accepts`."""
        if not writer.types:
            return None
        matched = first_match(writer.types, accepts)
        if matched is None or matched.is_wildcard:
            return writer.types[0]
        return matched
