"""Transform router: maps a processing type to its engine and output naming.

Everything here is a pure function of ``(processing_type, parameters)``.
Nothing reads the store or the media bytes, so the derived key of a request
can be computed before any I/O and is identical on every redelivery.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple, Union

from .exceptions import MalformedRequest, UnsupportedType
from .models import EngineKind, Namespace, ProcessingRequest, ProcessingType

JSON_CONTENT_TYPE = "application/json"
JPEG_CONTENT_TYPE = "image/jpeg"
MP4_CONTENT_TYPE = "video/mp4"
MP3_CONTENT_TYPE = "audio/mpeg"

# format parameter -> (Pillow format name, media type)
IMAGE_FORMATS: Dict[str, Tuple[str, str]] = {
    "jpg": ("JPEG", "image/jpeg"),
    "jpeg": ("JPEG", "image/jpeg"),
    "png": ("PNG", "image/png"),
    "gif": ("GIF", "image/gif"),
    "bmp": ("BMP", "image/bmp"),
    "webp": ("WEBP", "image/webp"),
    "tif": ("TIFF", "image/tiff"),
    "tiff": ("TIFF", "image/tiff"),
}

THUMBNAIL_PREFIX = "thumb"

Params = Mapping[str, str]


@dataclass(frozen=True)
class Route:
    """Routing entry for one processing type."""

    engine: EngineKind
    namespace: Namespace
    suffix: Callable[[Params], str]
    content_type: Callable[[Params], str]
    defaults: Mapping[str, str] = field(default_factory=dict)
    integer_parameters: Tuple[str, ...] = ()

    def effective_parameters(self, supplied: Optional[Params] = None) -> Dict[str, str]:
        """Merge supplied parameters over the defaults, ignoring unknown keys."""
        supplied = supplied or {}
        params = {
            name: supplied.get(name, default) for name, default in self.defaults.items()
        }
        for name in self.integer_parameters:
            _positive_int(name, params[name])
        return params


@dataclass(frozen=True)
class ArtifactPlan:
    """Where and how the output of a request is written."""

    processing_type: ProcessingType
    route: Route
    parameters: Dict[str, str]
    namespace: Namespace
    key: str
    content_type: str


def _positive_int(name: str, value: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise MalformedRequest(f"Parameter '{name}' must be an integer, got {value!r}")
    if number <= 0:
        raise MalformedRequest(f"Parameter '{name}' must be positive, got {number}")
    return number


def _fixed(text: str) -> Callable[[Params], str]:
    return lambda params: text


def _image_format_content_type(params: Params) -> str:
    fmt = params["format"].lower()
    if fmt not in IMAGE_FORMATS:
        raise MalformedRequest(f"Unsupported image format: {params['format']}")
    return IMAGE_FORMATS[fmt][1]


def _image(suffix, content_type=_fixed(JPEG_CONTENT_TYPE), defaults=None, integers=()):
    return Route(
        engine=EngineKind.IMAGE,
        namespace=Namespace.PROCESSED,
        suffix=suffix,
        content_type=content_type,
        defaults=defaults or {},
        integer_parameters=integers,
    )


def _video(suffix, content_type=_fixed(MP4_CONTENT_TYPE), defaults=None, integers=()):
    return Route(
        engine=EngineKind.VIDEO,
        namespace=Namespace.PROCESSED,
        suffix=suffix,
        content_type=content_type,
        defaults=defaults or {},
        integer_parameters=integers,
    )


def _analysis(suffix: str) -> Route:
    return Route(
        engine=EngineKind.ANALYSIS,
        namespace=Namespace.PROCESSED,
        suffix=_fixed(suffix),
        content_type=_fixed(JSON_CONTENT_TYPE),
    )


ROUTES: Dict[ProcessingType, Route] = {
    ProcessingType.THUMBNAIL: _image(
        _fixed("thumb"),
        defaults={"width": "200", "height": "200"},
        integers=("width", "height"),
    ),
    ProcessingType.WATERMARK: _image(
        _fixed("watermark"), defaults={"text": "Copyright"}
    ),
    ProcessingType.RESIZE: _image(
        _fixed("resize"),
        defaults={"width": "800", "height": "600"},
        integers=("width", "height"),
    ),
    ProcessingType.FILTER: _image(
        lambda params: f"filter-{params['type']}", defaults={"type": "grayscale"}
    ),
    ProcessingType.FORMAT_CONVERSION: _image(
        lambda params: f"convert-{params['format']}",
        content_type=_image_format_content_type,
        defaults={"format": "jpg"},
    ),
    ProcessingType.VIDEO_THUMBNAIL: _video(
        _fixed("thumb"), content_type=_fixed(JPEG_CONTENT_TYPE)
    ),
    ProcessingType.VIDEO_WATERMARK: _video(
        _fixed("watermark"), defaults={"text": "Copyright"}
    ),
    ProcessingType.VIDEO_COMPRESS: _video(
        lambda params: f"compress-{params['quality']}", defaults={"quality": "medium"}
    ),
    ProcessingType.AUDIO_EXTRACT: _video(
        _fixed("audio"), content_type=_fixed(MP3_CONTENT_TYPE)
    ),
    ProcessingType.VIDEO_PREVIEW: _video(
        lambda params: f"preview-{int(params['duration'])}s",
        defaults={"duration": "10"},
        integers=("duration",),
    ),
    ProcessingType.IMAGE_ANALYSIS: _analysis("analysis"),
    ProcessingType.OBJECT_RECOGNITION: _analysis("objects"),
    ProcessingType.FACE_DETECTION: _analysis("faces"),
    ProcessingType.TEXT_EXTRACTION: _analysis("text"),
    ProcessingType.CONTENT_MODERATION: _analysis("moderation"),
}


def resolve(processing_type: Union[ProcessingType, str]) -> Route:
    """Return the routing entry, or raise UnsupportedType."""
    if not isinstance(processing_type, ProcessingType):
        if not isinstance(processing_type, str):
            raise UnsupportedType(processing_type)
        try:
            processing_type = ProcessingType[processing_type]
        except KeyError:
            raise UnsupportedType(processing_type) from None

    route = ROUTES.get(processing_type)
    if route is None:
        raise UnsupportedType(processing_type.value)
    return route


def plan_artifact(
    source_key: str,
    processing_type: Union[ProcessingType, str],
    parameters: Optional[Params] = None,
) -> ArtifactPlan:
    """Resolve the route and compute the output location of a request."""
    route = resolve(processing_type)
    params = route.effective_parameters(parameters)
    return ArtifactPlan(
        processing_type=ProcessingType(processing_type),
        route=route,
        parameters=params,
        namespace=route.namespace,
        key=f"{route.suffix(params)}-{source_key}",
        content_type=route.content_type(params),
    )


def plan_for_request(request: ProcessingRequest) -> ArtifactPlan:
    return plan_artifact(request.source_key, request.processing_type, request.parameters)


def derived_key(
    source_key: str,
    processing_type: Union[ProcessingType, str],
    parameters: Optional[Params] = None,
) -> str:
    """``<suffix>-<source_key>`` for the given request inputs."""
    return plan_artifact(source_key, processing_type, parameters).key


def thumbnail_key(source_key: str) -> str:
    """Key of the upload-time thumbnail in the thumbnails namespace."""
    return f"{THUMBNAIL_PREFIX}-{source_key}"
