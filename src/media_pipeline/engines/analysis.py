"""Analysis engine facade over Amazon Rekognition.

Backend failures never escape ``apply``: each feature runs on its own and a
failure is reported in the ``error`` field next to whatever did succeed.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..core.exceptions import UnsupportedType
from ..core.logging_config import get_logger
from ..core.models import ProcessingType
from ..core.protocols import RekognitionClientProtocol

CAPTION_UNSUPPORTED = "Image captioning is not offered by the analysis backend"


def _confidence(value: Any) -> float:
    return round(float(value or 0.0), 2)


class AnalysisEngine:
    SUPPORTED_TYPES = (
        ProcessingType.IMAGE_ANALYSIS,
        ProcessingType.OBJECT_RECOGNITION,
        ProcessingType.FACE_DETECTION,
        ProcessingType.TEXT_EXTRACTION,
        ProcessingType.CONTENT_MODERATION,
    )

    def __init__(
        self,
        rekognition_client: RekognitionClientProtocol,
        min_confidence: float = 70.0,
        max_labels: int = 25,
    ):
        self._client = rekognition_client
        self._min_confidence = min_confidence
        self._max_labels = max_labels
        self._logger = get_logger("media-pipeline.analysis")

    def apply(
        self,
        data: bytes,
        processing_type: ProcessingType,
        parameters: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        image = {"Bytes": data}

        # OBJECT_RECOGNITION deliberately reuses the general image analysis call
        if processing_type in (ProcessingType.IMAGE_ANALYSIS, ProcessingType.OBJECT_RECOGNITION):
            features = [("labels", lambda: self._labels(image)), ("description", self._caption)]
        elif processing_type == ProcessingType.FACE_DETECTION:
            features = [("faces", lambda: {"faces": self._faces(image)})]
        elif processing_type == ProcessingType.TEXT_EXTRACTION:
            features = [("text", lambda: {"text": self._text(image)})]
        elif processing_type == ProcessingType.CONTENT_MODERATION:
            features = [("moderation", lambda: {"moderation": self._moderation(image)})]
        else:
            raise UnsupportedType(processing_type.value)

        return self._run_features(processing_type, features)

    def _run_features(
        self,
        processing_type: ProcessingType,
        features: List[Tuple[str, Callable[[], Dict[str, Any]]]],
    ) -> Dict[str, Any]:
        results: Dict[str, Any] = {}
        errors = []
        for name, feature in features:
            try:
                results.update(feature())
            except Exception as exc:  # noqa: BLE001
                self._logger.error(
                    f"Error running {name} for {processing_type.value}: {exc}", exc_info=True
                )
                errors.append(f"{name}: {exc}")

        if errors:
            results["error"] = "; ".join(errors)
        return results

    def _labels(self, image: Dict[str, bytes]) -> Dict[str, Any]:
        response = self._client.detect_labels(
            Image=image, MaxLabels=self._max_labels, MinConfidence=self._min_confidence
        )
        labels = response.get("Labels", [])
        tags = [
            {"name": label["Name"], "confidence": _confidence(label.get("Confidence"))}
            for label in labels
        ]
        objects = [
            {
                "name": label["Name"],
                "confidence": _confidence(instance.get("Confidence")),
                "boundingBox": instance.get("BoundingBox", {}),
            }
            for label in labels
            for instance in label.get("Instances", [])
        ]
        return {"tags": tags, "objects": objects}

    def _caption(self) -> Dict[str, Any]:
        return {"description": {"message": CAPTION_UNSUPPORTED}}

    def _faces(self, image: Dict[str, bytes]) -> List[Dict[str, Any]]:
        response = self._client.detect_faces(Image=image, Attributes=["DEFAULT"])
        return [
            {
                "confidence": _confidence(face.get("Confidence")),
                "boundingBox": face.get("BoundingBox", {}),
            }
            for face in response.get("FaceDetails", [])
        ]

    def _text(self, image: Dict[str, bytes]) -> Dict[str, Any]:
        response = self._client.detect_text(Image=image)
        detections = response.get("TextDetections", [])
        lines = [d["DetectedText"] for d in detections if d.get("Type") == "LINE"]
        words = [d["DetectedText"] for d in detections if d.get("Type") == "WORD"]
        return {"content": "\n".join(lines), "lines": lines, "words": words}

    def _moderation(self, image: Dict[str, bytes]) -> Dict[str, Any]:
        response = self._client.detect_moderation_labels(
            Image=image, MinConfidence=self._min_confidence
        )
        labels = [
            {
                "name": label["Name"],
                "parent": label.get("ParentName", ""),
                "confidence": _confidence(label.get("Confidence")),
            }
            for label in response.get("ModerationLabels", [])
        ]
        return {"flagged": bool(labels), "labels": labels}
